# architect/prompt_records.py
import json
import logging
from typing import Callable, List
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from architect.entities import PromptRecord
from architect.errors import PersistenceFailure

logger = logging.getLogger("prompt_architect")

HISTORY_LIMIT = 20


class PromptRecordStore:
    """
    Write-once storage for finished generation runs, plus the project history read.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.SessionFactory = session_factory

    def save(
        self,
        *,
        project_id: str,
        conversation_id: str | None,
        prompt_text: str,
        metaprompt: dict,
        scores: dict,
        total_score: float,
        features: dict,
        metadata: dict,
    ) -> str:
        """
        Insert one record and return its id. Any write error rolls back and raises
        PersistenceFailure; the caller must treat the whole generation as failed.
        """
        session = self.SessionFactory()
        try:
            record_id = str(uuid4())
            record = PromptRecord(
                id=record_id,
                project_id=str(project_id),
                conversation_id=conversation_id,
                prompt_text=prompt_text,
                synthesized_prompt=json.dumps(metaprompt, indent=2),
                metadata_json=metadata,
                scores=scores,
                total_score=float(total_score),
                features=features,
            )
            session.add(record)
            session.commit()
            return record_id
        except (SQLAlchemyError, TypeError, ValueError) as e:
            session.rollback()
            logger.error("[R4P] Error storing prompt: %s", e)
            raise PersistenceFailure("Failed to save prompt record") from e
        finally:
            session.close()

    def list_recent(self, project_id: str, limit: int = HISTORY_LIMIT) -> List[dict]:
        session = self.SessionFactory()
        try:
            rows = (
                session.query(PromptRecord)
                .filter(PromptRecord.project_id == str(project_id))
                .order_by(PromptRecord.created_at.desc())
                .limit(limit)
                .all()
            )
            return [
                {
                    "id": r.id,
                    "prompt_text": r.prompt_text,
                    "synthesized_prompt": r.synthesized_prompt,
                    "total_score": r.total_score,
                    "created_at": r.created_at.isoformat() if r.created_at else None,
                    "scores": r.scores,
                    "features": r.features,
                    "metadata": r.metadata_json,
                }
                for r in rows
            ]
        finally:
            session.close()
