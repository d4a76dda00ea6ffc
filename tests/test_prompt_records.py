# FILE: tests/test_prompt_records.py
"""
Tests for write-once prompt records and the project history read.
"""
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from architect.entities import PromptRecord
from architect.errors import PersistenceFailure
from architect.prompt_records import PromptRecordStore


def save(store, project_id, score=0.8, **overrides):
    kwargs = dict(
        project_id=project_id,
        conversation_id=None,
        prompt_text="Generated from interview",
        metaprompt={"version": "1.0.0"},
        scores={"composite": score},
        total_score=score,
        features={"Goal": "FAQ bot"},
        metadata={"gate": "shipped"},
    )
    kwargs.update(overrides)
    return store.save(**kwargs)


class TestPromptRecordStore:

    def test_save(self, session_factory, seeded):
        store = PromptRecordStore(session_factory)
        record_id = save(store, seeded["project_id"], conversation_id=seeded["conversation_id"])

        session = session_factory()
        record = session.get(PromptRecord, record_id)
        assert json.loads(record.synthesized_prompt) == {"version": "1.0.0"}
        assert record.metadata_json == {"gate": "shipped"}
        assert record.conversation_id == seeded["conversation_id"]
        session.close()

    def test_each_save_is_a_new_record(self, session_factory, seeded):
        store = PromptRecordStore(session_factory)
        assert save(store, seeded["project_id"]) != save(store, seeded["project_id"])

    def test_write_failure(self, session_factory, seeded):
        def failing_factory():
            session = session_factory()
            session.commit = Mock(side_effect=OperationalError("INSERT", {}, Exception("locked")))
            return session

        with pytest.raises(PersistenceFailure):
            save(PromptRecordStore(failing_factory), seeded["project_id"])
        assert PromptRecordStore(session_factory).list_recent(seeded["project_id"]) == []

    def test_list_recent_newest_first(self, session_factory, seeded):
        session = session_factory()
        base = datetime(2025, 3, 1, tzinfo=timezone.utc)
        for i in range(25):
            session.add(PromptRecord(
                id=f"00000000-0000-0000-0000-{i:012d}",
                project_id=seeded["project_id"],
                prompt_text=f"prompt {i}",
                total_score=0.8,
                created_at=base + timedelta(minutes=i),
            ))
        session.commit()
        session.close()

        prompts = PromptRecordStore(session_factory).list_recent(seeded["project_id"])

        assert len(prompts) == 20
        assert prompts[0]["prompt_text"] == "prompt 24"
        assert prompts[-1]["prompt_text"] == "prompt 5"
        assert set(prompts[0]) == {
            "id", "prompt_text", "synthesized_prompt", "total_score", "created_at", "scores", "features", "metadata",
        }
        assert prompts[0]["created_at"].startswith("2025-03-01T00:24")
