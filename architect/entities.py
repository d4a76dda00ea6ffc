# architect/entities.py
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from typing import TypeAlias
UUID: TypeAlias = str

Base = declarative_base()


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "user"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Project(Base):
    __tablename__ = "project"

    project_id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_project_user_id", "user_id"),
    )


class Conversation(Base):
    __tablename__ = "conversation"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("project.project_id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ConversationMessage(Base):
    __tablename__ = "conversation_message"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    conversation_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # user | assistant
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_conversation_message_conversation_id", "conversation_id"),
    )


class KbChunk(Base):
    """
    One knowledge-base chunk. Upload and chunking happen elsewhere; the pipeline only reads.
    `embedding` holds the dense vector as a JSON list of floats.
    """
    __tablename__ = "kb_chunk"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("project.project_id", ondelete="CASCADE"),
        nullable=False,
    )
    source_name: Mapped[str | None] = mapped_column(String)
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    embedding: Mapped[list | None] = mapped_column(JSON)
    metadata_json: Mapped[dict[str, object]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_kb_chunk_project_id", "project_id"),
    )


class PromptRecord(Base):
    """
    Write-once result of one generation run. Regenerating creates a new row.
    """
    __tablename__ = "prompt_record"

    id: Mapped[UUID] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[UUID] = mapped_column(
        String(36),
        ForeignKey("project.project_id", ondelete="CASCADE"),
        nullable=False,
    )
    conversation_id: Mapped[UUID | None] = mapped_column(
        String(36),
        ForeignKey("conversation.id", ondelete="SET NULL"),
        nullable=True,
    )
    prompt_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    synthesized_prompt: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # freeform JSON metadata (NOTE: name is metadata_json, not metadata)
    metadata_json: Mapped[dict[str, object]] = mapped_column(JSON, nullable=False, default=dict)
    scores: Mapped[dict[str, object]] = mapped_column(JSON, nullable=False, default=dict)
    total_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    features: Mapped[dict[str, object]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_prompt_record_project_score", "project_id", "total_score"),
        Index("ix_prompt_record_project_created", "project_id", "created_at"),
    )
