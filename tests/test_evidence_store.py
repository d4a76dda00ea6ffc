# FILE: tests/test_evidence_store.py
"""
Tests for the evidence store: dense and sparse lookups, historical examples,
and degradation when a retrieval path fails.
"""
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from architect.embedding_client import EmbeddingUnavailable
from architect.entities import KbChunk, Project, PromptRecord
from architect.evidence_store import (
    DENSE,
    SPARSE,
    EvidenceStore,
    build_search_terms,
    cosine_similarity,
    extract_keywords,
)

from conftest import FixedEmbedder

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def add_chunk(session, project_id, text, embedding=None, source="faq.pdf", minutes=0):
    chunk = KbChunk(
        id=str(uuid.uuid4()),
        project_id=project_id,
        source_name=source,
        text=text,
        embedding=embedding,
        created_at=T0 + timedelta(minutes=minutes),
    )
    session.add(chunk)
    return chunk


def add_record(session, project_id, score, text="prior prompt"):
    record = PromptRecord(id=str(uuid.uuid4()), project_id=project_id, synthesized_prompt=text, total_score=score)
    session.add(record)
    return record


@pytest.fixture
def chunks(session_factory, seeded):
    session = session_factory()
    pid = seeded["project_id"]
    ids = {
        "exact": add_chunk(session, pid, "Bakery opening hours", [1.0, 0.0], minutes=1).id,
        "orthogonal": add_chunk(session, pid, "Parking information", [0.0, 1.0], minutes=2).id,
        "diagonal": add_chunk(session, pid, "Walk-in customers welcome", [1.0, 1.0],
                              source="best_practices.md", minutes=3).id,
        "no_vector": add_chunk(session, pid, "bakery allergens list", None, minutes=4).id,
    }
    other = str(uuid.uuid4())
    session.add(Project(project_id=other, user_id=seeded["user_id"], name="Other"))
    add_chunk(session, other, "bakery from another project", [1.0, 0.0])
    session.commit()
    session.close()
    return ids


class TestHelpers:

    def test_search_terms(self, bakery_intake):
        assert build_search_terms(bakery_intake) == "build a faq bot for a bakery walk-in customers json"

    def test_keywords(self):
        assert extract_keywords("build a faq bot for a bakery bakery json", 4) == ["build", "bakery", "json"]

    def test_cosine(self):
        assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [-1, 0]) == 0.0
        assert cosine_similarity([1, 0], [1, 0, 0]) == 0.0
        assert cosine_similarity([0, 0], [1, 0]) == 0.0


class TestEvidenceStore:

    def test_match_chunks_threshold_and_scope(self, session_factory, config, seeded, chunks):
        store = EvidenceStore(session_factory, FixedEmbedder(), config)
        found = store.match_chunks([1.0, 0.0], 0.5, 12, seeded["project_id"])

        assert [c.id for c in found] == [chunks["exact"], chunks["diagonal"]]
        assert found[0].similarity == pytest.approx(1.0)
        assert found[1].similarity == pytest.approx(0.7071, abs=1e-4)
        assert all(c.origin == DENSE for c in found)

    def test_match_chunks_cap(self, session_factory, config, seeded, chunks):
        store = EvidenceStore(session_factory, FixedEmbedder(), config)
        assert len(store.match_chunks([1.0, 0.0], 0.0, 1, seeded["project_id"])) == 1

    def test_keyword_search(self, session_factory, config, seeded, chunks):
        store = EvidenceStore(session_factory, FixedEmbedder(), config)
        found = store.keyword_search(["BAKERY"], seeded["project_id"], 12)

        assert [c.id for c in found] == [chunks["exact"], chunks["no_vector"]]
        assert all(c.origin == SPARSE and c.similarity == 0.6 for c in found)

    def test_keyword_search_escapes_wildcards(self, session_factory, config, seeded, chunks):
        store = EvidenceStore(session_factory, FixedEmbedder(), config)
        assert store.keyword_search(["%%%%"], seeded["project_id"], 12) == []

    def test_historical_floor(self, session_factory, config, seeded):
        session = session_factory()
        for score in (0.9, 0.7, 0.8, 0.95, 0.76, 0.74):
            add_record(session, seeded["project_id"], score)
        session.commit()
        session.close()

        store = EvidenceStore(session_factory, FixedEmbedder(), config)
        found = store.historical_artifacts(seeded["project_id"])

        assert [h.total_score for h in found] == [0.95, 0.9, 0.8]

    @pytest.mark.asyncio
    async def test_retrieve(self, session_factory, config, seeded, chunks):
        embedder = FixedEmbedder([1.0, 0.0])
        store = EvidenceStore(session_factory, embedder, config)

        result = await store.retrieve("bakery walk-in customers", seeded["project_id"])

        assert embedder.calls == ["bakery walk-in customers"]
        assert {c.id for c in result.dense} == {chunks["exact"], chunks["diagonal"]}
        assert {c.id for c in result.sparse} == {chunks["exact"], chunks["diagonal"], chunks["no_vector"]}
        assert result.dense_degraded is False
        assert result.sparse_degraded is False

    @pytest.mark.asyncio
    async def test_embedding_failure_degrades_to_sparse(self, session_factory, config, seeded, chunks):
        embedder = FixedEmbedder(error=EmbeddingUnavailable("no key"))
        store = EvidenceStore(session_factory, embedder, config)

        result = await store.retrieve("bakery", seeded["project_id"])

        assert result.dense == []
        assert result.dense_degraded is True
        assert {c.id for c in result.sparse} == {chunks["exact"], chunks["no_vector"]}

    @pytest.mark.asyncio
    async def test_keyword_failure_is_absorbed(self, session_factory, config, seeded, chunks):
        store = EvidenceStore(session_factory, FixedEmbedder([1.0, 0.0]), config)

        with patch.object(store, "keyword_search", side_effect=RuntimeError("db gone")):
            result = await store.retrieve("bakery", seeded["project_id"])

        assert result.sparse == []
        assert result.sparse_degraded is True
        assert len(result.dense) == 2

    @pytest.mark.asyncio
    async def test_everything_down(self, session_factory, config, seeded):
        store = EvidenceStore(session_factory, FixedEmbedder(error=RuntimeError("down")), config)

        with patch.object(store, "keyword_search", side_effect=RuntimeError("down")), \
                patch.object(store, "top_historical", side_effect=RuntimeError("down")):
            result = await store.retrieve("bakery", seeded["project_id"])

        assert (result.dense, result.sparse, result.historical) == ([], [], [])
