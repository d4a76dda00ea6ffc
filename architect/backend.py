# architect/backend.py

import asyncio
import json
import logging
from typing import Callable, Optional

from architect import settings
from architect.backend_prompts import (
    INTERVIEW_FOCUS_ORDER,
    INTERVIEW_QUESTIONS,
    INTERVIEW_SYSTEM_PROMPT,
    READY_MESSAGE,
)
from architect.backend_utils import Utils
from architect.base_utils import json_preview
from architect.db_connection import DbConnection
from architect.embedding_client import EmbeddingClient
from architect.errors import AuthorizationError, SynthesisFailure, ValidationError
from architect.evidence_store import EvidenceStore
from architect.intake import (
    MAX_FIELD_LENGTH,
    missing_fields,
    require_fields,
    required_fields,
    validate_collected,
    validate_string,
    validate_uuid,
)
from architect.llm_client import build_messages
from architect.pipeline import GenerationPipeline
from architect.pipeline_config import PipelineConfig, load_pipeline_config
from architect.prompt_records import PromptRecordStore

logger = logging.getLogger("prompt_architect")

INTERVIEW_DEFAULT_TURN = "Continue the interview."


class Backend(Utils):
    def __init__(
        self,
        session_factory: Optional[Callable] = None,
        config: Optional[PipelineConfig] = None,
        embedding_client=None,
        llm_factory: Optional[Callable] = None,
    ):
        self.SessionFactory = session_factory or DbConnection().build_db_session_factory()
        self.config = config or load_pipeline_config()
        self.embedding_client = embedding_client or EmbeddingClient()
        # model name -> chat client (or None when it cannot be built)
        self.llm_factory = llm_factory or self._build_llm_for_model

        self.evidence_store = EvidenceStore(self.SessionFactory, self.embedding_client, self.config)
        self.prompt_records = PromptRecordStore(self.SessionFactory)

    async def process_request(self, user_id: Optional[str], request_data: dict) -> dict:
        """
        Single action-dispatch entry point. Takes the parsed JSON body and returns
        the response dict; every failure is raised as an ArchitectError subclass.
        """
        logger.debug(f"process_request request {json_preview(request_data)}")

        if not user_id:
            raise AuthorizationError("Missing caller identity")

        action = request_data.get("action")
        collected = validate_collected(request_data.get("collected"))

        if action == "interview":
            response_data = await self.handle_interview(user_id, request_data, collected)

        elif action == "generate":
            response_data = await self.handle_generate(user_id, request_data, collected)

        elif action == "get_history":
            response_data = await self.handle_get_history(user_id, request_data)

        else:
            raise ValidationError("Invalid action")

        logger.debug(f"response {json_preview(response_data)}")
        return response_data

    # -----------------------
    # Handlers
    # -----------------------

    async def handle_interview(self, user_id: str, request_data: dict, collected: dict) -> dict:
        user_message = self._optional_text(request_data, "user_message")
        session_id = request_data.get("session_id")
        conversation_id = None
        if session_id:
            session_id = validate_uuid(session_id, "session_id")
            if await asyncio.to_thread(self.owns_conversation, user_id, session_id):
                conversation_id = session_id

        if conversation_id and user_message:
            await asyncio.to_thread(self.record_message, conversation_id, "user", user_message)

        required = required_fields(settings.INTERVIEW_PROFILE)
        missing = missing_fields(collected, settings.INTERVIEW_PROFILE)

        if not missing:
            if conversation_id:
                await asyncio.to_thread(self.record_message, conversation_id, "assistant", READY_MESSAGE)
            return {"type": "ready", "message": READY_MESSAGE, "collected": collected}

        llm = self._require_llm("interview")
        messages = self.build_interview_messages(collected, missing, user_message)
        logger.info("Interview turn, %d field(s) missing", len(missing))
        questions = await asyncio.to_thread(llm.invoke, messages)

        if conversation_id:
            await asyncio.to_thread(self.record_message, conversation_id, "assistant", questions)

        return {
            "type": "questions",
            "questions": questions,
            "missing": missing,
            "collected": collected,
            "progress": f"{len(required) - len(missing)}/{len(required)} fields collected",
        }

    async def handle_generate(self, user_id: str, request_data: dict, collected: dict) -> dict:
        project_id = request_data.get("project_id")
        if not project_id:
            raise ValidationError("project_id required")
        project_id = validate_string(project_id, MAX_FIELD_LENGTH, "project_id")

        conversation_id = request_data.get("conversation_id")
        if not conversation_id:
            raise ValidationError("conversation_id required")
        conversation_id = validate_uuid(conversation_id, "conversation_id")

        await asyncio.to_thread(self.verify_project_owner, user_id, project_id)
        await asyncio.to_thread(self.verify_conversation_owner, user_id, conversation_id, project_id)

        require_fields(collected, settings.GENERATE_PROFILE)
        user_message = self._optional_text(request_data, "user_message")

        pipeline = GenerationPipeline(
            store=self.evidence_store,
            synthesis_llm=self._require_llm("synthesis"),
            grading_llm=self._require_llm("grading"),
            records=self.prompt_records,
            config=self.config,
        )
        result = await pipeline.run(
            project_id=project_id,
            conversation_id=conversation_id,
            collected=collected,
            user_message=user_message,
        )
        return result.to_response()

    async def handle_get_history(self, user_id: str, request_data: dict) -> dict:
        project_id = request_data.get("project_id")
        if not project_id:
            raise ValidationError("project_id required")
        project_id = validate_string(project_id, MAX_FIELD_LENGTH, "project_id")

        await asyncio.to_thread(self.verify_project_owner, user_id, project_id)
        prompts = await asyncio.to_thread(self.prompt_records.list_recent, project_id)
        return {"prompts": prompts}

    # -----------------------
    # Helpers
    # -----------------------

    def build_interview_messages(self, collected: dict, missing: list, user_message: Optional[str]):
        focus_label, section = self._interview_focus(missing)
        hints = INTERVIEW_QUESTIONS.get(section) or []
        system_prompt = self.unsafe_string_format(
            INTERVIEW_SYSTEM_PROMPT,
            FOCUS_AREA=focus_label,
            COLLECTED_JSON=json.dumps(collected, indent=2),
            MISSING=", ".join(missing),
            QUESTION_HINTS="\n".join(f"- {q}" for q in hints),
        )
        return build_messages(system_prompt, user_message or INTERVIEW_DEFAULT_TURN)

    def _interview_focus(self, missing: list) -> tuple:
        for field_name, label, section in INTERVIEW_FOCUS_ORDER:
            if field_name in missing:
                return label, section
        return missing[0].replace("_", " "), None

    def _require_llm(self, role: str):
        model_name = self.config.models[role]
        llm = self.llm_factory(model_name)
        if llm is None:
            raise SynthesisFailure(f"No LLM client available for {role} model {model_name}")
        return llm

    def _optional_text(self, request_data: dict, field_name: str) -> Optional[str]:
        value = request_data.get(field_name)
        if value is None:
            return None
        return validate_string(value, MAX_FIELD_LENGTH, field_name) or None
