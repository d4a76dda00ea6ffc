# architect/evidence_assembler.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import List, Optional, Sequence

from architect.evidence_store import HistoricalArtifact
from architect.fusion import FusedCandidate

CITATION_VERSION = "1.0"
HASH_LENGTH = 8
HISTORICAL_SOURCE = "historical_prompt"

_RULE = "=" * 23


@dataclass(frozen=True)
class Citation:
    uri: str
    version: str
    hash: str
    source: Optional[str]

    def to_dict(self) -> dict:
        return asdict(self)


def chunk_citation(candidate: FusedCandidate) -> Citation:
    return Citation(
        uri=f"kb://chunk/{candidate.id}",
        version=CITATION_VERSION,
        hash=str(candidate.id)[:HASH_LENGTH],
        source=candidate.source_name,
    )


def historical_citation(artifact: HistoricalArtifact) -> Citation:
    return Citation(
        uri=f"prompt://record/{artifact.id}",
        version=CITATION_VERSION,
        hash=str(artifact.id)[:HASH_LENGTH],
        source=HISTORICAL_SOURCE,
    )


@dataclass
class AssembledEvidence:
    text: str
    citations: List[Citation] = field(default_factory=list)
    kb_chunks_used: int = 0
    historical_used: int = 0

    def citation_dicts(self) -> List[dict]:
        return [c.to_dict() for c in self.citations]


def assemble_evidence(
    reranked: Sequence[FusedCandidate],
    historical: Sequence[HistoricalArtifact],
    snippet_chars: int = 400,
) -> AssembledEvidence:
    """
    Build the evidence block handed to synthesis and, position for position, the
    citation list: entry i of `citations` is the i-th item written into the text
    (chunks first, then historical prompts). Duplicates are kept as they come.
    """
    parts = [f"\n{_RULE}\nRETRIEVED EVIDENCE\n{_RULE}\n"]
    citations: List[Citation] = []

    if reranked:
        parts.append(f"\nKNOWLEDGE BASE (Top {len(reranked)} chunks by hybrid retrieval + re-ranking):\n\n")
        for i, chunk in enumerate(reranked, start=1):
            parts.append(
                f"[{i}] {chunk.source_name or 'KB'} (score: {chunk.rerank_score:.2f})\n{chunk.text}\n\n"
            )
            citations.append(chunk_citation(chunk))

    if historical:
        parts.append("\nHIGH-PERFORMING HISTORICAL PROMPTS:\n\n")
        for i, record in enumerate(historical, start=1):
            snippet = (record.synthesized_prompt or "")[:snippet_chars]
            parts.append(f"[Example {i}] Score: {record.total_score:.2f}\n{snippet}...\n\n")
            citations.append(historical_citation(record))

    return AssembledEvidence(
        text="".join(parts),
        citations=citations,
        kb_chunks_used=len(reranked),
        historical_used=len(historical),
    )
