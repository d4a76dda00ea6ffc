# FILE: tests/conftest.py
"""
Shared fixtures for the prompt architect test suite.

- SQLite database under tmp_path with the full schema
- one seeded user / project / conversation
- scripted stand-ins for the generation and embedding services
"""
import json
import uuid

import pytest

from architect.db_connection import DbConnection
from architect.entities import Conversation, Project, User
from architect.pipeline_config import RUBRIC_DIMENSIONS, PipelineConfig


class ScriptedLlm:
    """
    Stand-in for ChatLlmClient: returns (or raises) the scripted replies in order
    and remembers every message list it was given.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        if not self.replies:
            raise AssertionError("ScriptedLlm ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    def get_usage(self):
        return {"total_token_count": 10 * len(self.calls)}


class FixedEmbedder:
    def __init__(self, vector=None, error=None):
        self.vector = vector or [1.0, 0.0]
        self.error = error
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vector)


def artifact_json(**overrides) -> str:
    artifact = {
        "metaprompt": {
            "version": "1.0.0",
            "persona": {"role": "Bakery FAQ assistant", "tone": "warm"},
            "goals": ["Answer menu questions"],
            "policies": {"privacy": "No PII"},
            "datasets": ["faq_patterns"],
            "tools": [],
            "output_contract": {"format": "JSON"},
            "self_checks": ["Under 200 words"],
        },
        "datasets": {
            "faq_patterns": {"hours": "8am-6pm"},
            "conversation_flows": {},
            "tone_guidelines": {"voice": "warm"},
            "edge_cases": {},
        },
        "compliance": {"privacy": "none stored", "guardrails": ["no medical advice"], "auditability": "logged"},
        "citations": [],
        "confidence": 0.9,
    }
    artifact.update(overrides)
    return json.dumps(artifact)


def grade_json(value=None, confidence=None, **dims) -> str:
    scores = {d: value for d in RUBRIC_DIMENSIONS}
    scores.update(dims)
    if confidence is not None:
        scores["confidence"] = confidence
    return json.dumps(scores)


@pytest.fixture
def config():
    return PipelineConfig().validate()


@pytest.fixture
def db(tmp_path):
    conn = DbConnection(f"sqlite:///{tmp_path / 'architect.db'}")
    conn.create_all()
    return conn


@pytest.fixture
def session_factory(db):
    return db.build_db_session_factory()


@pytest.fixture
def seeded(session_factory):
    """Owner user with one project and one conversation inside it."""
    ids = {
        "user_id": str(uuid.uuid4()),
        "project_id": str(uuid.uuid4()),
        "conversation_id": str(uuid.uuid4()),
    }
    session = session_factory()
    session.add(User(id=ids["user_id"]))
    session.add(Project(project_id=ids["project_id"], user_id=ids["user_id"], name="Bakery"))
    session.add(Conversation(
        id=ids["conversation_id"],
        user_id=ids["user_id"],
        project_id=ids["project_id"],
        title="FAQ bot",
    ))
    session.commit()
    session.close()
    return ids


@pytest.fixture
def bakery_intake():
    return {
        "Goal": "Build a FAQ bot for a bakery",
        "Audience": "walk-in customers",
        "Inputs": "menu PDF",
        "Output_Format": "JSON",
        "Constraints": "under 200 words",
    }
