# architect/model_props.py
from typing import Any, Dict, Optional, Tuple

# Gateway-style names ("google/gemini-2.5-flash") are accepted and reduced to the bare model.
_PROVIDER_PREFIXES = ("google/", "openai/")

_VERBOSITY_TOKENS = {"low", "medium", "high"}
_REASONING_TOKENS = {"none", "minimal", "low", "medium", "high"}
_SERVICE_TIER_TOKENS = {"auto", "default", "flex", "priority"}

# preset -> (verbosity, reasoning_effort, service_tier)
_PRESETS: Dict[str, Tuple[Optional[str], Optional[str], Optional[str]]] = {
    "standard": ("low", "low", None),
    "fast": ("low", "none", None),
    "deep": ("medium", "high", None),
    "standard-flex": ("low", "low", "flex"),
    "fast-flex": ("low", "none", "flex"),
}


def strip_provider_prefix(model_name: str) -> str:
    name = (model_name or "").strip()
    for prefix in _PROVIDER_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def is_openai_model(model_name) -> bool:
    name = strip_provider_prefix(model_name)
    prefixes = ("gpt-", "gpt4", "o3", "o4")
    return any(name.startswith(p) for p in prefixes)


def parse_model_name(raw: str) -> Tuple[str, Dict[str, Any]]:
    """Parse strings like:
        - 'gpt-5.1'
        - 'gpt-5.1_fast'
        - 'gpt-5.1_deep_flex'
        - 'gpt-5.1_low_medium'
    into (base_model, openai_params) for the Responses API.
    """
    raw = strip_provider_prefix(raw)
    if not raw:
        raise ValueError("parse_model_name: No Model Name passed.")

    parts = raw.split("_")
    base = parts[0]
    if len(parts) <= 1:
        return base, {}

    verbosity: Optional[str] = None
    reasoning_effort: Optional[str] = None
    service_tier: Optional[str] = None

    unknown = []
    for tok in parts[1:]:
        t = tok.strip().lower()
        if not t:
            continue

        if t in _PRESETS:
            w_verb, w_reason, w_tier = _PRESETS[t]
            verbosity = verbosity or w_verb
            reasoning_effort = reasoning_effort or w_reason
            service_tier = service_tier or w_tier
            continue

        # first bare level is verbosity, second is reasoning effort
        if verbosity is None and t in _VERBOSITY_TOKENS:
            verbosity = t
            continue
        if reasoning_effort is None and t in _REASONING_TOKENS:
            reasoning_effort = t
            continue
        if service_tier is None and t in _SERVICE_TIER_TOKENS:
            service_tier = t
            continue

        unknown.append(t)

    if unknown:
        raise ValueError(f"parse_model_name: Unknown model suffix token(s) {unknown} in '{raw}'.")

    params: Dict[str, Any] = {}
    if verbosity is not None:
        params.setdefault("text", {})["verbosity"] = verbosity
    if reasoning_effort is not None:
        params.setdefault("reasoning", {})["effort"] = reasoning_effort
    params["service_tier"] = service_tier or "default"
    return base, params
