# architect/grading.py
from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple

import commentjson

from architect.backend_prompts import GRADING_SYSTEM_PROMPT, GRADING_USER_PROMPT
from architect.base_utils import unsafe_string_format
from architect.errors import ParseFailure
from architect.llm_client import build_messages
from architect.pipeline_config import RUBRIC_DIMENSIONS, PipelineConfig

logger = logging.getLogger("prompt_architect")

# Neutral vector used whenever the grader's reply cannot be read.
DEFAULT_DIMENSION_SCORES: Dict[str, float] = {
    "IntentAccuracy": 0.85,
    "TaskCompletion": 0.85,
    "PolicyAdherence": 0.85,
    "ToneFit": 0.80,
    "FormatCompliance": 0.90,
}
DEFAULT_CONFIDENCE = 0.85

_FLAT_OBJECT_RE = re.compile(r"\{[^{}]*\}")


def composite_score(dimensions: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """
    Weighted sum over the rubric in its fixed order, so grade and re-grade add
    the same terms in the same sequence.

    The result is rounded to 12 places and clamped to [min, max] of the dimensions,
    so uniform scores give back exactly that score.
    """
    values = [float(dimensions[d]) for d in RUBRIC_DIMENSIONS]
    total = round(math.fsum(v * float(weights[d]) for v, d in zip(values, RUBRIC_DIMENSIONS)), 12)
    return max(min(values), min(max(values), total))


@dataclass(frozen=True)
class ScoreVector:
    dimensions: Mapping[str, float]
    composite: float
    confidence: float
    fallback: bool = False

    def to_dict(self) -> dict:
        out = {d: self.dimensions[d] for d in RUBRIC_DIMENSIONS}
        out["confidence"] = self.confidence
        out["composite"] = self.composite
        return out

    def weakest_dimensions(self, cutoff: float) -> List[str]:
        weak = [d for d in RUBRIC_DIMENSIONS if self.dimensions[d] < cutoff]
        if weak:
            return weak
        return [min(RUBRIC_DIMENSIONS, key=lambda d: self.dimensions[d])]


def build_score_vector(
    dimensions: Mapping[str, float],
    confidence: float,
    weights: Mapping[str, float],
    fallback: bool = False,
) -> ScoreVector:
    dims = {d: float(dimensions[d]) for d in RUBRIC_DIMENSIONS}
    return ScoreVector(
        dimensions=dims,
        composite=composite_score(dims, weights),
        confidence=float(confidence),
        fallback=fallback,
    )


def fallback_score_vector(weights: Mapping[str, float]) -> ScoreVector:
    return build_score_vector(DEFAULT_DIMENSION_SCORES, DEFAULT_CONFIDENCE, weights, fallback=True)


def _as_unit_score(value, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseFailure(f"{name} is not numeric: {value!r}")
    return max(0.0, min(1.0, float(value)))


def parse_scores(raw: str) -> Tuple[Dict[str, float], float | None]:
    """
    First flat JSON object in the grader's reply -> (dimension scores, confidence).
    Every rubric dimension must be present and numeric; values are clamped to [0, 1].
    """
    m = _FLAT_OBJECT_RE.search(raw or "")
    if not m:
        raise ParseFailure("No score object in grader output")
    try:
        data = commentjson.loads(m.group(0))
    except Exception as e:
        raise ParseFailure(f"Grader output is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseFailure("Grader output is not a JSON object")

    missing = [d for d in RUBRIC_DIMENSIONS if d not in data]
    if missing:
        raise ParseFailure(f"Grader output missing dimension(s): {missing}")

    dims = {d: _as_unit_score(data[d], d) for d in RUBRIC_DIMENSIONS}
    confidence = None
    if "confidence" in data:
        confidence = _as_unit_score(data["confidence"], "confidence")
    return dims, confidence


class GradingEngine:
    def __init__(self, llm, config: PipelineConfig):
        self.llm = llm
        self.config = config

    def rubric_text(self) -> str:
        w = self.config.rubric_weights
        return ", ".join(f"{d} ({round(w[d] * 100)}%)" for d in RUBRIC_DIMENSIONS)

    def build_messages(self, artifact: dict):
        example = {d: DEFAULT_DIMENSION_SCORES[d] for d in RUBRIC_DIMENSIONS}
        example["confidence"] = DEFAULT_CONFIDENCE
        system_prompt = unsafe_string_format(
            GRADING_SYSTEM_PROMPT,
            RUBRIC=self.rubric_text(),
            EXAMPLE=json.dumps(example),
        )
        user_prompt = unsafe_string_format(GRADING_USER_PROMPT, ARTIFACT_JSON=json.dumps(artifact, indent=2))
        return build_messages(system_prompt, user_prompt)

    def grade(self, artifact: dict) -> ScoreVector:
        """
        One grading call. Transport failures propagate (classified by the client);
        an unreadable reply yields the neutral fallback vector.
        """
        raw = self.llm.invoke(self.build_messages(artifact))
        weights = self.config.rubric_weights
        try:
            dims, confidence = parse_scores(raw)
        except ParseFailure as e:
            logger.error("[R4P] Error parsing grades, using neutral defaults: %s", e)
            return fallback_score_vector(weights)

        if confidence is None:
            confidence = composite_score(dims, weights)
        scores = build_score_vector(dims, confidence, weights)
        logger.info("[R4P] Graded composite=%.3f", scores.composite)
        return scores
