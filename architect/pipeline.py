# architect/pipeline.py
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from architect.artifact_parser import parse_artifact
from architect.backend_prompts import (
    OPTIONAL_FIELD_DEFAULTS,
    SYNTHESIS_SYSTEM_PROMPT,
    SYNTHESIS_USER_PROMPT,
)
from architect.base_utils import unsafe_string_format
from architect.evidence_assembler import AssembledEvidence, assemble_evidence
from architect.evidence_store import EvidenceStore, build_search_terms
from architect.fusion import fuse_candidates, rerank
from architect.grading import GradingEngine, ScoreVector
from architect.intake import CORE_FIELDS
from architect.llm_client import build_messages
from architect.pipeline_config import PipelineConfig
from architect.prompt_records import PromptRecordStore
from architect.refinement import RefinementController, RefinementOutcome

logger = logging.getLogger("prompt_architect")

DEFAULT_PROMPT_TEXT = "Generated from interview"


class LatencyTracker:
    """
    Per-stage wall-clock durations in ms. Budgets are reported, never enforced.
    """

    def __init__(self, budgets_ms: Mapping[str, int]):
        self.budgets_ms = dict(budgets_ms)
        self._started = time.monotonic()
        self.metrics: Dict[str, object] = {}

    @contextmanager
    def stage(self, name: str):
        t0 = time.monotonic()
        try:
            yield
        finally:
            self.record(name, (time.monotonic() - t0) * 1000)

    def record(self, name: str, elapsed_ms: float) -> None:
        self.metrics[f"{name}_ms"] = int(round(elapsed_ms))

    def finish(self) -> Dict[str, object]:
        self.metrics["total_ms"] = int(round((time.monotonic() - self._started) * 1000))
        self.metrics["budget_overruns"] = [
            stage for stage, budget in self.budgets_ms.items()
            if isinstance(self.metrics.get(f"{stage}_ms"), int) and self.metrics[f"{stage}_ms"] > budget
        ]
        return dict(self.metrics)


@dataclass
class GenerationResult:
    record_id: str
    artifact: dict
    scores: ScoreVector
    outcome: RefinementOutcome
    collected: Dict[str, str]
    latency_metrics: Dict[str, object]
    kb_chunks_used: int
    historical_used: int
    metadata: Dict[str, object] = field(default_factory=dict)

    @property
    def confidence(self) -> float:
        c = self.artifact.get("confidence")
        if isinstance(c, (int, float)) and not isinstance(c, bool):
            return float(c)
        return self.scores.confidence

    def to_response(self) -> dict:
        return {
            "type": "generated",
            "metaprompt": self.artifact.get("metaprompt"),
            "datasets": self.artifact.get("datasets"),
            "compliance": self.artifact.get("compliance"),
            "citations": self.artifact.get("citations"),
            "scores": self.scores.to_dict(),
            "confidence": self.confidence,
            "latency_metrics": self.latency_metrics,
            "id": self.record_id,
            "collected": self.collected,
            "references": {
                "kb_chunks": self.kb_chunks_used,
                "historical_prompts": self.historical_used,
            },
            "gate": self.outcome.gate,
            "low_confidence": self.outcome.low_confidence,
        }


def _usage_of(llm) -> dict:
    get_usage = getattr(llm, "get_usage", None)
    if callable(get_usage):
        usage = get_usage()
        if isinstance(usage, dict):
            return usage
    return {}


class GenerationPipeline:
    """
    intake -> retrieve -> fuse/rerank -> assemble -> synthesize -> validate -> grade
    -> (refine + re-grade, at most once) -> persist.

    Every run owns its candidate map, evidence buffer and score vectors. Nothing is
    written until the final artifact is settled, so a cancelled run leaves no record.
    """

    def __init__(
        self,
        store: EvidenceStore,
        synthesis_llm,
        grading_llm,
        records: PromptRecordStore,
        config: PipelineConfig,
    ):
        self.store = store
        self.synthesis_llm = synthesis_llm
        self.grading_llm = grading_llm
        self.records = records
        self.config = config
        self.grader = GradingEngine(grading_llm, config)
        self.refiner = RefinementController(synthesis_llm, self.grader, config)

    def build_synthesis_messages(self, collected: Dict[str, str], evidence: AssembledEvidence):
        fields = {f: collected.get(f, "") for f in CORE_FIELDS}
        for name, default in OPTIONAL_FIELD_DEFAULTS.items():
            fields[name] = collected.get(name) or default
        user_prompt = unsafe_string_format(SYNTHESIS_USER_PROMPT, EVIDENCE=evidence.text, **fields)
        return build_messages(SYNTHESIS_SYSTEM_PROMPT, user_prompt)

    async def run(
        self,
        *,
        project_id: str,
        collected: Dict[str, str],
        conversation_id: Optional[str] = None,
        user_message: Optional[str] = None,
    ) -> GenerationResult:
        cfg = self.config
        latency = LatencyTracker(cfg.latency_budgets_ms)

        # === STEP 1: HYBRID RETRIEVAL ===
        logger.info("[R4P] Starting hybrid retrieval for project: %s", project_id)
        with latency.stage("retrieve"):
            retrieval = await self.store.retrieve(build_search_terms(collected), project_id)
            fused = fuse_candidates(retrieval.dense, retrieval.sparse, cfg.hybrid_lambda)

        # === STEP 2: RE-RANKING ===
        with latency.stage("rerank"):
            reranked = rerank(fused, cfg.rerank_boosts, cfg.rerank_top)

        # === STEP 3: CONTEXT ASSEMBLY ===
        evidence = assemble_evidence(reranked, retrieval.historical, cfg.historical_snippet_chars)
        citations = evidence.citation_dicts()
        logger.info(
            "[R4P] Evidence assembled - KB chunks: %d Historical: %d",
            evidence.kb_chunks_used, evidence.historical_used,
        )

        # === STEP 4: SYNTHESIS (Draft) ===
        with latency.stage("draft"):
            raw = await asyncio.to_thread(
                self.synthesis_llm.invoke,
                self.build_synthesis_messages(collected, evidence),
            )

        # === STEP 5: VALIDATION ===
        with latency.stage("validate"):
            parsed = parse_artifact(raw, citations)

        # === STEP 6: GRADING ===
        with latency.stage("grade"):
            scores = await asyncio.to_thread(self.grader.grade, parsed.artifact)

        # === STEP 7: CONFIDENCE GATING & REFINEMENT ===
        outcome = await self.refiner.run(parsed.artifact, scores, citations)
        if outcome.refine_ms is not None:
            latency.record("refine", outcome.refine_ms)

        latency_metrics = latency.finish()
        final_artifact, final_scores = outcome.artifact, outcome.scores

        # === STEP 8: STORE ===
        metadata = {
            "datasets": final_artifact.get("datasets") or {},
            "compliance": final_artifact.get("compliance") or {},
            "citations": final_artifact.get("citations") or [],
            "collected_fields": collected,
            "kb_chunks_used": evidence.kb_chunks_used,
            "historical_prompts_used": evidence.historical_used,
            "retrieval": {
                "dense_candidates": len(retrieval.dense),
                "sparse_candidates": len(retrieval.sparse),
                "dense_degraded": retrieval.dense_degraded,
                "sparse_degraded": retrieval.sparse_degraded,
            },
            "latency_metrics": latency_metrics,
            "r4p_version": cfg.pipeline_version,
            "models_used": {
                "synthesis": cfg.models["synthesis"],
                "grading": cfg.models["grading"],
            },
            "gate": outcome.gate,
            "low_confidence": outcome.low_confidence,
            "synthesis_parsed": parsed.parsed,
            "usage": {
                "synthesis": _usage_of(self.synthesis_llm),
                "grading": _usage_of(self.grading_llm),
            },
        }

        logger.info("[R4P] Storing prompt record, composite score: %.2f", final_scores.composite)
        record_id = await asyncio.to_thread(
            self.records.save,
            project_id=project_id,
            conversation_id=conversation_id,
            prompt_text=user_message or DEFAULT_PROMPT_TEXT,
            metaprompt=final_artifact.get("metaprompt") or {},
            scores=final_scores.to_dict(),
            total_score=final_scores.composite,
            features=collected,
            metadata=metadata,
        )
        logger.info("[R4P] Generation complete, prompt ID: %s (gate=%s)", record_id, outcome.gate)

        return GenerationResult(
            record_id=record_id,
            artifact=final_artifact,
            scores=final_scores,
            outcome=outcome,
            collected=collected,
            latency_metrics=latency_metrics,
            kb_chunks_used=evidence.kb_chunks_used,
            historical_used=evidence.historical_used,
            metadata=metadata,
        )
