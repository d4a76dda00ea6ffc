# architect/evidence_store.py
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from architect.entities import KbChunk, PromptRecord
from architect.pipeline_config import PipelineConfig

logger = logging.getLogger("prompt_architect")

DENSE = "dense"
SPARSE = "sparse"


@dataclass
class EvidenceCandidate:
    id: str
    text: str
    source_name: Optional[str]
    origin: str
    similarity: float


@dataclass(frozen=True)
class HistoricalArtifact:
    id: str
    synthesized_prompt: str
    total_score: float


@dataclass
class RetrievalResult:
    dense: List[EvidenceCandidate] = field(default_factory=list)
    sparse: List[EvidenceCandidate] = field(default_factory=list)
    historical: List[HistoricalArtifact] = field(default_factory=list)
    dense_degraded: bool = False
    sparse_degraded: bool = False


def build_search_terms(collected: dict) -> str:
    collected = collected or {}
    return f"{collected.get('Goal') or ''} {collected.get('Audience') or ''} {collected.get('Output_Format') or ''}".lower()


def extract_keywords(search_terms: str, min_length: int = 4) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for tok in (search_terms or "").split():
        if len(tok) < min_length or tok in seen:
            continue
        seen.add(tok)
        out.append(tok)
    return out


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return max(0.0, min(1.0, dot / (norm_a * norm_b)))


class EvidenceStore:
    """
    Read side of the knowledge base for one project scope.

    Dense and sparse failures never escape: a broken embedding service means
    sparse-only evidence, a broken keyword search means no sparse evidence, and
    the pipeline carries on with whatever is left (possibly nothing).
    """

    def __init__(self, session_factory: Callable[[], Session], embedding_client, config: PipelineConfig):
        self.SessionFactory = session_factory
        self.embedding_client = embedding_client
        self.config = config

    # -----------------------
    # Store capabilities
    # -----------------------

    def match_chunks(
        self,
        query_embedding: Sequence[float],
        match_threshold: float,
        match_count: int,
        project_id: str,
    ) -> List[EvidenceCandidate]:
        session = self.SessionFactory()
        try:
            rows: Iterable[KbChunk] = (
                session.query(KbChunk)
                .filter(KbChunk.project_id == str(project_id))
                .filter(KbChunk.embedding.isnot(None))
                .all()
            )
            scored = []
            for row in rows:
                sim = cosine_similarity(query_embedding, row.embedding or [])
                if sim >= match_threshold:
                    scored.append(EvidenceCandidate(
                        id=row.id,
                        text=row.text or "",
                        source_name=row.source_name,
                        origin=DENSE,
                        similarity=sim,
                    ))
        finally:
            session.close()

        scored.sort(key=lambda c: c.similarity, reverse=True)
        return scored[:match_count]

    def keyword_search(self, terms: Sequence[str], project_id: str, limit: int) -> List[EvidenceCandidate]:
        if not terms:
            return []
        session = self.SessionFactory()
        try:
            rows = (
                session.query(KbChunk)
                .filter(KbChunk.project_id == str(project_id))
                .filter(or_(*[KbChunk.text.icontains(t, autoescape=True) for t in terms]))
                .order_by(KbChunk.created_at.asc(), KbChunk.id.asc())
                .limit(limit)
                .all()
            )
            return [
                EvidenceCandidate(
                    id=row.id,
                    text=row.text or "",
                    source_name=row.source_name,
                    origin=SPARSE,
                    similarity=self.config.sparse_similarity,
                )
                for row in rows
            ]
        finally:
            session.close()

    def top_historical(self, project_id: str, floor: float, limit: int) -> List[HistoricalArtifact]:
        session = self.SessionFactory()
        try:
            rows = (
                session.query(PromptRecord)
                .filter(PromptRecord.project_id == str(project_id))
                .filter(PromptRecord.total_score >= floor)
                .order_by(PromptRecord.total_score.desc(), PromptRecord.created_at.desc())
                .limit(limit)
                .all()
            )
            return [
                HistoricalArtifact(
                    id=row.id,
                    synthesized_prompt=row.synthesized_prompt or "",
                    total_score=float(row.total_score or 0.0),
                )
                for row in rows
            ]
        finally:
            session.close()

    # -----------------------
    # Degrading wrappers
    # -----------------------

    def dense_candidates(self, search_terms: str, project_id: str) -> tuple[List[EvidenceCandidate], bool]:
        try:
            query_embedding = self.embedding_client.embed(search_terms)
            found = self.match_chunks(
                query_embedding,
                match_threshold=self.config.match_threshold,
                match_count=self.config.k_retrieve,
                project_id=project_id,
            )
            return found, False
        except Exception as e:
            logger.warning("[R4P] Dense retrieval degraded to sparse-only: %s", e)
            return [], True

    def sparse_candidates(self, search_terms: str, project_id: str) -> tuple[List[EvidenceCandidate], bool]:
        keywords = extract_keywords(search_terms, self.config.min_keyword_length)
        try:
            return self.keyword_search(keywords, project_id, self.config.k_retrieve), False
        except Exception as e:
            logger.warning("[R4P] Keyword retrieval failed, continuing without sparse evidence: %s", e)
            return [], True

    def historical_artifacts(self, project_id: str) -> List[HistoricalArtifact]:
        try:
            return self.top_historical(project_id, self.config.historical_floor, self.config.historical_limit)
        except Exception as e:
            logger.warning("[R4P] Historical prompt lookup failed, continuing without examples: %s", e)
            return []

    async def retrieve(self, search_terms: str, project_id: str) -> RetrievalResult:
        (dense, dense_degraded), (sparse, sparse_degraded), historical = await asyncio.gather(
            asyncio.to_thread(self.dense_candidates, search_terms, project_id),
            asyncio.to_thread(self.sparse_candidates, search_terms, project_id),
            asyncio.to_thread(self.historical_artifacts, project_id),
        )
        logger.info(
            "[R4P] Retrieval for project %s: dense=%d sparse=%d historical=%d",
            project_id, len(dense), len(sparse), len(historical),
        )
        return RetrievalResult(
            dense=dense,
            sparse=sparse,
            historical=historical,
            dense_degraded=dense_degraded,
            sparse_degraded=sparse_degraded,
        )
