"""AI tutor API routes: chat, sessions and learning aids."""

import logging
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from api.deps import (
    get_current_user,
    get_goal_manager,
    get_session_manager,
    get_tutor_agent,
)
from api.rate_limit import rate_limit
from api.schemas import (
    ChatRequest,
    PracticeRequest,
    QuickResponseRequest,
    SessionCreate,
    SessionStatusUpdate,
    envelope,
)
from config import get_settings
from core.errors import NotFoundError, ValidationError
from core.goal_manager import GoalManager
from core.models import ChatSession, GoalStatus
from core.session_manager import ChatSessionManager

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(get_current_user), Depends(rate_limit("ai_tutor"))])


def _check_length(message: str) -> None:
    limit = get_settings().max_message_length
    if len(message) > limit:
        raise ValidationError(f"Message cannot exceed {limit} characters")


def _agent_context(session: ChatSession, goals: GoalManager) -> Dict[str, Any]:
    """What the tutor should know about the learner for this session."""
    context = {
        "user_level": session.context.user_level.value,
        "active_module": session.context.active_module,
        "goal": None,
    }
    if session.context.goal_id:
        try:
            goal = goals.get_goal(session.user_id, session.context.goal_id)
            context["goal"] = {"title": goal.title, "category": goal.category.value}
        except NotFoundError:
            logger.debug(f"Session {session.session_id} points at a deleted goal")
    return context


@router.post("/chat")
async def chat(
    request: ChatRequest,
    user: dict = Depends(get_current_user),
    sessions: ChatSessionManager = Depends(get_session_manager),
    goals: GoalManager = Depends(get_goal_manager),
    agent=Depends(get_tutor_agent)
):
    """
    Send a message to the tutor.

    Continues the given session, or opens a new one when none is given.
    """
    _check_length(request.message)

    if request.session_id:
        session = sessions.get_session(user["id"], request.session_id)
    else:
        context = request.context
        session = sessions.create_session(
            user["id"],
            goal_id=context.goal_id if context else None,
            active_module=context.active_module if context else None,
            user_level=context.user_level.value if context and context.user_level else None
        )

    started = time.perf_counter()
    reply = await agent.chat(request.message, session.messages, _agent_context(session, goals))
    response_time_ms = int((time.perf_counter() - started) * 1000)

    session = sessions.record_exchange(
        session,
        request.message,
        reply.content,
        metadata={
            "model": reply.model,
            "tokens": reply.total_tokens,
            "response_time_ms": response_time_ms,
        }
    )
    logger.info(f"Tutor replied in session {session.session_id} ({response_time_ms} ms)")

    return envelope({
        "session_id": session.session_id,
        "response": reply.content,
        "model": reply.model,
        "usage": reply.usage,
        "response_time_ms": response_time_ms,
        "session": session.to_dict(include_messages=False),
    })


@router.post("/quick-response", dependencies=[Depends(rate_limit("quick_response"))])
async def quick_response(
    request: QuickResponseRequest,
    agent=Depends(get_tutor_agent)
):
    """Concise one-off answer outside any session."""
    _check_length(request.message)
    reply = await agent.quick_response(request.message)
    return envelope({
        "response": reply.content,
        "model": reply.model,
        "usage": reply.usage,
    })


@router.get("/sessions")
async def list_sessions(
    status: Optional[str] = None,
    user: dict = Depends(get_current_user),
    sessions: ChatSessionManager = Depends(get_session_manager)
):
    items = sessions.list_sessions(user["id"], status)
    return envelope([s.to_dict(include_messages=False) for s in items])


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    user: dict = Depends(get_current_user),
    sessions: ChatSessionManager = Depends(get_session_manager)
):
    return envelope(sessions.get_session(user["id"], session_id).to_dict())


@router.post("/sessions", status_code=201)
async def create_session(
    request: SessionCreate,
    user: dict = Depends(get_current_user),
    sessions: ChatSessionManager = Depends(get_session_manager)
):
    session = sessions.create_session(
        user["id"],
        title=request.title,
        goal_id=request.goal_id,
        active_module=request.active_module,
        user_level=request.user_level.value if request.user_level else None
    )
    return envelope(session.to_dict(), message="Chat session created successfully")


@router.put("/sessions/{session_id}/status")
async def update_session_status(
    session_id: str,
    request: SessionStatusUpdate,
    user: dict = Depends(get_current_user),
    sessions: ChatSessionManager = Depends(get_session_manager)
):
    session = sessions.update_status(user["id"], session_id, request.status.value)
    return envelope(session.to_dict(include_messages=False), message="Session status updated")


@router.delete("/sessions/{session_id}")
async def delete_session(
    session_id: str,
    user: dict = Depends(get_current_user),
    sessions: ChatSessionManager = Depends(get_session_manager)
):
    sessions.delete_session(user["id"], session_id)
    return envelope(None, message="Chat session deleted successfully")


@router.post("/practice-problems", dependencies=[Depends(rate_limit("practice"))])
async def practice_problems(
    request: PracticeRequest,
    agent=Depends(get_tutor_agent)
):
    module = {"title": request.module_title, "related_goal": request.related_goal}
    return envelope(await agent.practice_problems(module, request.user_progress))


@router.get("/recommendations")
async def recommendations(
    user: dict = Depends(get_current_user),
    goals: GoalManager = Depends(get_goal_manager),
    agent=Depends(get_tutor_agent)
):
    """Next learning steps based on the caller's open goals."""
    open_goals = [
        g for g in goals.list_goals(user["id"], is_archived=False)
        if g.status in (GoalStatus.DRAFT, GoalStatus.ACTIVE, GoalStatus.PAUSED)
    ]
    analytics = goals.goal_analytics(user["id"])
    user_progress = {
        "total_goals": analytics["total_goals"],
        "completed_goals": analytics["completed_goals"],
        "average_progress": analytics["average_progress"],
    }
    return envelope(await agent.recommendations(user_progress, open_goals))
