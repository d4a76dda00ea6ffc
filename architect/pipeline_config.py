# architect/pipeline_config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import commentjson

from architect import settings

RUBRIC_DIMENSIONS = (
    "IntentAccuracy",
    "TaskCompletion",
    "PolicyAdherence",
    "ToneFit",
    "FormatCompliance",
)

_WEIGHT_TOLERANCE = 1e-9


def _frozen(d: Dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(d))


@dataclass(frozen=True)
class PipelineConfig:
    hybrid_lambda: float = 0.65
    k_retrieve: int = 12
    rerank_top: int = 5
    match_threshold: float = 0.5
    sparse_similarity: float = 0.6
    min_keyword_length: int = 4
    historical_floor: float = 0.75
    historical_limit: int = 3
    historical_snippet_chars: int = 400
    min_uplift: float = 0.02
    weak_dimension_cutoff: float = 0.80
    pipeline_version: str = "1.3.2"
    confidence_thresholds: Mapping[str, float] = field(default_factory=lambda: _frozen({
        "ship": 0.80,
        "refine_min": 0.60,
        "skip_refine_if_over": 0.75,
    }))
    latency_budgets_ms: Mapping[str, int] = field(default_factory=lambda: _frozen({
        "retrieve": 150,
        "rerank": 60,
        "draft": 400,
        "validate": 60,
        "refine": 150,
    }))
    rubric_weights: Mapping[str, float] = field(default_factory=lambda: _frozen({
        "IntentAccuracy": 0.30,
        "TaskCompletion": 0.25,
        "PolicyAdherence": 0.20,
        "ToneFit": 0.15,
        "FormatCompliance": 0.10,
    }))
    rerank_boosts: Mapping[str, float] = field(default_factory=lambda: _frozen({
        "best_practices": 0.10,
        "prompt": 0.05,
    }))
    models: Mapping[str, str] = field(default_factory=lambda: _frozen({
        "synthesis": "gemini-2.5-flash",
        "grading": "gemini-2.5-pro",
        "interview": "gemini-2.5-flash",
    }))

    @property
    def ship_threshold(self) -> float:
        return self.confidence_thresholds["ship"]

    @property
    def refine_min(self) -> float:
        return self.confidence_thresholds["refine_min"]

    @property
    def skip_refine_if_over(self) -> float:
        return self.confidence_thresholds["skip_refine_if_over"]

    def validate(self) -> "PipelineConfig":
        if not 0.0 <= self.hybrid_lambda <= 1.0:
            raise ValueError(f"hybrid_lambda must be within [0, 1], got {self.hybrid_lambda}")

        if set(self.rubric_weights.keys()) != set(RUBRIC_DIMENSIONS):
            raise ValueError(
                f"rubric_weights must define exactly {list(RUBRIC_DIMENSIONS)}, got {sorted(self.rubric_weights)}"
            )
        total = sum(float(w) for w in self.rubric_weights.values())
        if abs(total - 1.0) > _WEIGHT_TOLERANCE:
            raise ValueError(f"rubric_weights must sum to 1.0, got {total}")

        for key in ("ship", "refine_min", "skip_refine_if_over"):
            if key not in self.confidence_thresholds:
                raise ValueError(f"confidence_thresholds missing key: {key}")
        if self.refine_min > self.skip_refine_if_over:
            raise ValueError("confidence_thresholds.refine_min must not exceed skip_refine_if_over")

        for key in ("synthesis", "grading", "interview"):
            if not self.models.get(key):
                raise ValueError(f"models missing key: {key}")

        if self.k_retrieve <= 0 or self.rerank_top <= 0:
            raise ValueError("k_retrieve and rerank_top must be positive")
        return self


_MAPPING_FIELDS = {"confidence_thresholds", "latency_budgets_ms", "rubric_weights", "rerank_boosts", "models"}


def load_pipeline_config(path: Optional[str] = None) -> PipelineConfig:
    """
    Load pipeline tunables from a JSON-with-comments file, layered over the defaults.

    Mapping sections (thresholds, budgets, weights, boosts, models) are merged key by key,
    except rubric_weights which is replaced whole so a file can never leave a half-old table.
    Fails fast on a missing file, unknown keys or an inconsistent configuration.
    """
    cfg_path = path or settings.PIPELINE_CONFIG_PATH or os.getenv("PIPELINE_CONFIG_PATH")
    base = PipelineConfig()
    if not cfg_path:
        return base.validate()

    p = Path(cfg_path)
    if not p.exists():
        raise FileNotFoundError(f"Pipeline config file not found at '{p}'.")

    with p.open("r", encoding="utf-8") as f:
        data = commentjson.load(f)

    if not isinstance(data, dict):
        raise ValueError("Pipeline config must be a JSON object")

    known = {f.name for f in fields(PipelineConfig)}
    unknown = sorted(set(data.keys()) - known)
    if unknown:
        raise ValueError(f"Pipeline config has unknown key(s): {unknown}")

    overrides: Dict[str, Any] = {}
    for key, value in data.items():
        if key in _MAPPING_FIELDS:
            if not isinstance(value, dict):
                raise ValueError(f"Pipeline config key '{key}' must be an object")
            if key == "rubric_weights":
                overrides[key] = _frozen({k: float(v) for k, v in value.items()})
            else:
                merged = dict(getattr(base, key))
                merged.update(value)
                overrides[key] = _frozen(merged)
        else:
            overrides[key] = value

    return replace(base, **overrides).validate()
