"""Persistent AI tutor chat sessions."""

import logging
from typing import List, Dict, Any, Optional

from core.errors import NotFoundError, AccessDeniedError, ValidationError
from core.models import (
    ChatSession,
    GoalComplexity,
    MessageRole,
    SessionContext,
    SessionStatus,
)
from core.repository import Repository

logger = logging.getLogger(__name__)


class ChatSessionManager:
    """Owner-scoped CRUD for tutor sessions and their transcripts."""

    def __init__(self, repository: Repository):
        self.repository = repository

    def create_session(
        self,
        user_id: str,
        title: Optional[str] = None,
        goal_id: Optional[str] = None,
        active_module: Optional[str] = None,
        user_level: Optional[str] = None
    ) -> ChatSession:
        if goal_id:
            goal = self.repository.get_goal(goal_id)
            if goal is None:
                raise NotFoundError("Goal not found")
            if goal.user_id != user_id:
                raise AccessDeniedError("Access denied")
        try:
            level = GoalComplexity(user_level or "beginner")
        except ValueError:
            raise ValidationError(f"Invalid user level: {user_level}")

        session = ChatSession(
            user_id=user_id,
            title=title or "AI Tutor Session",
            context=SessionContext(goal_id=goal_id, active_module=active_module, user_level=level),
        )
        saved = self.repository.save_session(session)
        logger.info(f"Created chat session {saved.session_id} for user {user_id}")
        return saved

    def get_session(self, user_id: str, session_id: str) -> ChatSession:
        session = self.repository.get_session(session_id)
        if session is None:
            raise NotFoundError("Chat session not found")
        if session.user_id != user_id:
            raise AccessDeniedError("Access denied")
        return session

    def list_sessions(self, user_id: str, status: Optional[str] = None) -> List[ChatSession]:
        """A user's sessions, most recently active first."""
        sessions = self.repository.list_sessions(user_id)
        if status:
            sessions = [s for s in sessions if s.status.value == status]
        return sorted(sessions, key=lambda s: s.last_activity, reverse=True)

    def record_exchange(
        self,
        session: ChatSession,
        message: str,
        response: str,
        metadata: Dict[str, Any]
    ) -> ChatSession:
        """Append a user message and the tutor's reply, then persist."""
        session.add_message(MessageRole.USER, message)
        session.add_message(MessageRole.ASSISTANT, response, metadata)
        return self.repository.save_session(session)

    def update_status(self, user_id: str, session_id: str, status: str) -> ChatSession:
        session = self.get_session(user_id, session_id)
        try:
            session.status = SessionStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid session status: {status}")
        return self.repository.save_session(session)

    def delete_session(self, user_id: str, session_id: str) -> None:
        session = self.get_session(user_id, session_id)
        self.repository.delete_session(session.session_id)
        logger.info(f"Deleted chat session {session_id}")
