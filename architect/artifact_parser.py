# architect/artifact_parser.py
from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

import commentjson
from json_repair import repair_json

from architect.errors import ParseFailure

logger = logging.getLogger("prompt_architect")

REQUIRED_DATASETS = ("faq_patterns", "conversation_flows", "tone_guidelines", "edge_cases")

_FENCE_RE = re.compile(r"```[a-zA-Z]*\n?|```\n?")
_BRACE_SPAN_RE = re.compile(r"\{[\s\S]*\}")


def _metaprompt_defaults() -> dict:
    return {
        "version": "1.0.0",
        "persona": {},
        "goals": [],
        "policies": {},
        "datasets": [],
        "tools": [],
        "output_contract": {},
        "self_checks": [],
    }


def _compliance_defaults() -> dict:
    return {"privacy": "", "guardrails": [], "auditability": ""}


def empty_artifact() -> dict:
    """
    Structurally complete artifact with empty values; what generation yields when the
    model output cannot be parsed at all.
    """
    return {
        "metaprompt": _metaprompt_defaults(),
        "datasets": {name: {} for name in REQUIRED_DATASETS},
        "compliance": _compliance_defaults(),
        "citations": [],
        "confidence": 0.5,
    }


def clean_triple_backticks(code: str) -> str:
    return _FENCE_RE.sub("", code or "")


def extract_json_object(raw: str) -> Optional[str]:
    """
    Largest brace-delimited span of the text (first '{' to last '}'), fences removed.
    """
    m = _BRACE_SPAN_RE.search(clean_triple_backticks(raw))
    return m.group(0) if m else None


def parse_json_object(raw: str) -> dict:
    """
    Strict parse of the embedded object, then one json_repair pass.
    Raises ParseFailure when neither yields a non-empty JSON object.
    """
    candidate = extract_json_object(raw)
    if candidate is None:
        raise ParseFailure("No JSON object found in model output")

    err = ""
    try:
        data = commentjson.loads(candidate)
        if isinstance(data, dict) and data:
            return data
        err = "top-level value is not a non-empty object"
    except Exception as e:
        err = str(e)

    try:
        data = commentjson.loads(repair_json(candidate))
        if isinstance(data, dict) and data:
            return data
    except Exception as e:
        err += "\n--\n" + str(e)

    raise ParseFailure(f"Model output is not a valid JSON object: {err}")


def _ensure_keys(target: dict, defaults: dict) -> None:
    for key, default in defaults.items():
        if key not in target or not isinstance(target[key], type(default)):
            target[key] = default


def normalize_artifact(data: dict) -> dict:
    """
    Copy of `data` with every required key present and of the expected container type.
    Whatever else the model emitted is kept untouched.
    """
    out = copy.deepcopy(data) if isinstance(data, dict) else {}
    defaults = empty_artifact()

    if not isinstance(out.get("metaprompt"), dict):
        out["metaprompt"] = defaults["metaprompt"]
    else:
        _ensure_keys(out["metaprompt"], _metaprompt_defaults())

    if not isinstance(out.get("datasets"), dict):
        out["datasets"] = defaults["datasets"]
    else:
        for name in REQUIRED_DATASETS:
            if not isinstance(out["datasets"].get(name), dict):
                out["datasets"][name] = {}

    if not isinstance(out.get("compliance"), dict):
        out["compliance"] = defaults["compliance"]
    else:
        _ensure_keys(out["compliance"], _compliance_defaults())

    if not isinstance(out.get("citations"), list):
        out["citations"] = []

    confidence = out.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        out["confidence"] = defaults["confidence"]

    return out


def merge_citations(artifact: dict, citations: Iterable[dict]) -> dict:
    """
    New artifact whose citation list is the model's own citations followed by the
    retrieval citations. Appends, never replaces or de-duplicates.
    """
    out = dict(artifact)
    out["citations"] = list(artifact.get("citations") or []) + [dict(c) for c in citations]
    return out


@dataclass
class ParsedArtifact:
    artifact: dict
    parsed: bool
    error: str = ""


def parse_artifact(raw: str, citations: Iterable[dict] = ()) -> ParsedArtifact:
    """
    Model text -> structurally complete artifact with retrieval citations merged in.
    Never raises: unparseable output becomes empty_artifact() and parsed=False.
    """
    try:
        data = parse_json_object(raw)
        artifact, parsed, error = normalize_artifact(data), True, ""
    except ParseFailure as e:
        logger.error("[R4P] Failed to parse synthesis JSON: %s", e)
        artifact, parsed, error = empty_artifact(), False, str(e)

    return ParsedArtifact(artifact=merge_citations(artifact, list(citations)), parsed=parsed, error=error)
