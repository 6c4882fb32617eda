"""Shared FastAPI dependencies: auth, storage and managers."""

import logging
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import get_settings
from core.checkin_manager import CheckInManager
from core.goal_manager import GoalManager
from core.journey_manager import JourneyManager
from core.repository import Repository
from core.session_manager import ChatSessionManager

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def verify_jwt_token(token: str) -> Dict[str, Any]:
    """Verify a token signed by the auth service and return its claims."""
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Dict[str, Any]:
    """Claims of the bearer token, with the user id under ``id``."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Access token required")

    claims = verify_jwt_token(credentials.credentials)
    user_id = claims.get("sub") or claims.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return {**claims, "id": str(user_id)}


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


def get_goal_manager(repository: Repository = Depends(get_repository)) -> GoalManager:
    return GoalManager(repository)


def get_journey_manager(repository: Repository = Depends(get_repository)) -> JourneyManager:
    return JourneyManager(repository)


def get_checkin_manager(repository: Repository = Depends(get_repository)) -> CheckInManager:
    return CheckInManager(repository)


def get_session_manager(repository: Repository = Depends(get_repository)) -> ChatSessionManager:
    return ChatSessionManager(repository)


def get_tutor_agent(request: Request):
    """Tutor shared by the app, built on first use."""
    agent = getattr(request.app.state, "tutor_agent", None)
    if agent is None:
        if get_settings().use_mock_ai:
            from agents.mock_tutor import MockTutorAgent
            agent = MockTutorAgent()
            logger.info("Using mock AI tutor")
        else:
            from agents.tutor_agent import TutorAgent
            agent = TutorAgent()
        request.app.state.tutor_agent = agent
    return agent
