# architect/fusion.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from architect.evidence_store import EvidenceCandidate


@dataclass(frozen=True)
class FusedCandidate:
    id: str
    text: str
    source_name: Optional[str]
    origins: Tuple[str, ...]
    score: float
    rerank_score: float = 0.0


def fuse_candidates(
    dense: Sequence[EvidenceCandidate],
    sparse: Sequence[EvidenceCandidate],
    hybrid_lambda: float,
) -> List[FusedCandidate]:
    """
    Weighted hybrid fusion keyed by candidate id.

    dense-only  -> similarity * lambda
    sparse-only -> similarity * (1 - lambda)
    both        -> the sum of the two
    Result is sorted by fused score, descending; ties keep first-seen order.
    """
    fused: Dict[str, dict] = {}

    for c in dense:
        fused[c.id] = {
            "candidate": c,
            "origins": [c.origin],
            "score": c.similarity * hybrid_lambda,
        }

    sparse_weight = 1.0 - hybrid_lambda
    for c in sparse:
        entry = fused.get(c.id)
        if entry is not None:
            entry["score"] += c.similarity * sparse_weight
            if c.origin not in entry["origins"]:
                entry["origins"].append(c.origin)
        else:
            fused[c.id] = {
                "candidate": c,
                "origins": [c.origin],
                "score": c.similarity * sparse_weight,
            }

    out = [
        FusedCandidate(
            id=e["candidate"].id,
            text=e["candidate"].text,
            source_name=e["candidate"].source_name,
            origins=tuple(e["origins"]),
            score=e["score"],
            rerank_score=e["score"],
        )
        for e in fused.values()
    ]
    out.sort(key=lambda c: c.score, reverse=True)
    return out


def rerank_boost(source_name: Optional[str], boosts: Mapping[str, float]) -> float:
    if not source_name:
        return 0.0
    name = source_name.lower()
    return sum(float(amount) for pattern, amount in boosts.items() if pattern.lower() in name)


def rerank(
    fused: Sequence[FusedCandidate],
    boosts: Mapping[str, float],
    top_n: int,
) -> List[FusedCandidate]:
    """
    Add the fixed source-name boosts to each fused score, re-sort, keep the top N.
    """
    reranked = [replace(c, rerank_score=c.score + rerank_boost(c.source_name, boosts)) for c in fused]
    reranked.sort(key=lambda c: c.rerank_score, reverse=True)
    return reranked[:top_n]
