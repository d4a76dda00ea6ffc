# architect/refinement.py
from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from architect.artifact_parser import parse_artifact
from architect.backend_prompts import REFINEMENT_USER_PROMPT, SYNTHESIS_SYSTEM_PROMPT
from architect.base_utils import unsafe_string_format
from architect.grading import GradingEngine, ScoreVector
from architect.llm_client import build_messages
from architect.pipeline_config import PipelineConfig

logger = logging.getLogger("prompt_architect")


class GateState(str, Enum):
    SHIPPED = "shipped"
    NEEDS_REFINEMENT = "needs_refinement"
    BELOW_FLOOR = "below_floor"


def classify_composite(composite: float, config: PipelineConfig) -> GateState:
    if composite >= config.skip_refine_if_over:
        return GateState.SHIPPED
    if composite >= config.refine_min:
        return GateState.NEEDS_REFINEMENT
    return GateState.BELOW_FLOOR


@dataclass(frozen=True)
class RefinementOutcome:
    artifact: dict
    scores: ScoreVector
    state: GateState
    refinement_attempted: bool = False
    refinement_accepted: bool = False
    refine_ms: Optional[int] = None

    @property
    def gate(self) -> str:
        if self.state is GateState.NEEDS_REFINEMENT:
            return "refined" if self.refinement_accepted else "refinement_rejected"
        return self.state.value

    @property
    def low_confidence(self) -> bool:
        return self.state is GateState.BELOW_FLOOR


class RefinementController:
    """
    Score-gated, single-shot refinement.

    >= skip_refine_if_over        ship as is
    [refine_min, skip_refine_if_over)  one refine + re-grade; keep it only on >= min_uplift
    < refine_min                  ship as is, flagged low confidence
    """

    def __init__(self, synthesis_llm, grader: GradingEngine, config: PipelineConfig):
        self.synthesis_llm = synthesis_llm
        self.grader = grader
        self.config = config

    def build_refinement_messages(self, artifact: dict, scores: ScoreVector):
        weak = scores.weakest_dimensions(self.config.weak_dimension_cutoff)
        user_prompt = unsafe_string_format(
            REFINEMENT_USER_PROMPT,
            COMPOSITE=f"{scores.composite:.2f}",
            TARGET=f"{self.config.ship_threshold:.2f}",
            WEAK_DIMENSIONS=", ".join(weak),
            ARTIFACT_JSON=json.dumps(artifact, indent=2),
            SCORES_JSON=json.dumps(scores.to_dict()),
        )
        return build_messages(SYNTHESIS_SYSTEM_PROMPT, user_prompt)

    async def run(self, artifact: dict, scores: ScoreVector, citations: Sequence[dict]) -> RefinementOutcome:
        state = classify_composite(scores.composite, self.config)

        if state is GateState.SHIPPED:
            return RefinementOutcome(artifact=artifact, scores=scores, state=state)

        if state is GateState.BELOW_FLOOR:
            logger.warning(
                "[R4P] Composite score %.2f < %.2f, shipping flagged as low confidence; should escalate for clarification",
                scores.composite, self.config.refine_min,
            )
            return RefinementOutcome(artifact=artifact, scores=scores, state=state)

        logger.info(
            "[R4P] Composite score %.2f < %.2f, attempting refinement...",
            scores.composite, self.config.skip_refine_if_over,
        )
        started = time.monotonic()
        accepted_artifact, accepted_scores = await self._refine_once(artifact, scores, list(citations))
        refine_ms = int(round((time.monotonic() - started) * 1000))

        accepted = accepted_artifact is not None
        return RefinementOutcome(
            artifact=accepted_artifact if accepted else artifact,
            scores=accepted_scores if accepted else scores,
            state=state,
            refinement_attempted=True,
            refinement_accepted=accepted,
            refine_ms=refine_ms,
        )

    async def _refine_once(
        self,
        artifact: dict,
        scores: ScoreVector,
        citations: List[dict],
    ) -> tuple[Optional[dict], Optional[ScoreVector]]:
        raw = await asyncio.to_thread(self.synthesis_llm.invoke, self.build_refinement_messages(artifact, scores))

        refined = parse_artifact(raw, citations)
        if not refined.parsed:
            logger.info("[R4P] Refinement parse failed, keeping original")
            return None, None

        new_scores = await asyncio.to_thread(self.grader.grade, refined.artifact)
        if new_scores.fallback:
            logger.info("[R4P] Re-grade unreadable, no measurable uplift; keeping original")
            return None, None

        if new_scores.composite >= scores.composite + self.config.min_uplift:
            logger.info("[R4P] Refinement successful, new composite: %.3f", new_scores.composite)
            return refined.artifact, new_scores

        logger.info(
            "[R4P] Refinement yielded no material uplift (%.3f -> %.3f), keeping original",
            scores.composite, new_scores.composite,
        )
        return None, None
