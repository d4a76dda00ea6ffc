# architect/backend_utils.py

import logging

from sqlalchemy.exc import SQLAlchemyError

from architect.base_utils import BaseUtils
from architect.entities import Conversation, ConversationMessage, Project
from architect.errors import AuthorizationError

logger = logging.getLogger("prompt_architect")


class Utils(BaseUtils):
    SessionFactory: None

    # -----------------------
    # Ownership checks
    # -----------------------
    # A missing row and a row owned by someone else answer the same way, so the
    # caller cannot probe for ids that exist.

    def verify_project_owner(self, user_id: str, project_id: str) -> None:
        session = self.SessionFactory()
        try:
            project = session.get(Project, str(project_id))
            if project is None or project.user_id != str(user_id):
                logger.info("Ownership check failed for project %s", project_id)
                raise AuthorizationError("Project not owned by caller")
        finally:
            session.close()

    def verify_conversation_owner(self, user_id: str, conversation_id: str, project_id: str | None = None) -> None:
        session = self.SessionFactory()
        try:
            conversation = session.get(Conversation, str(conversation_id))
            if conversation is None or conversation.user_id != str(user_id):
                logger.info("Ownership check failed for conversation %s", conversation_id)
                raise AuthorizationError("Conversation not owned by caller")
            if project_id is not None and conversation.project_id != str(project_id):
                logger.info("Conversation %s does not belong to project %s", conversation_id, project_id)
                raise AuthorizationError("Conversation not in project")
        finally:
            session.close()

    def owns_conversation(self, user_id: str, conversation_id: str) -> bool:
        try:
            self.verify_conversation_owner(user_id, conversation_id)
            return True
        except AuthorizationError:
            return False

    # -----------------------
    # Conversation transcript
    # -----------------------

    def record_message(self, conversation_id: str, role: str, content: str) -> None:
        """
        Append one turn to the conversation. The transcript is a convenience for the
        UI, so a failed write is logged and the request goes on.
        """
        if not content:
            return
        session = self.SessionFactory()
        try:
            session.add(ConversationMessage(conversation_id=str(conversation_id), role=role, content=content))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning("Could not record %s message for conversation %s: %s", role, conversation_id, e)
        finally:
            session.close()
