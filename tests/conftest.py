"""Shared pytest fixtures.

Fixture overview
----------------
repository    fresh in-memory repository
make_token    builds HS256 bearer tokens the API accepts
app           FastAPI app over ``repository`` with the offline tutor
api_client    FastAPI TestClient for ``app``
auth_headers  Authorization header for user "user-1"
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient

from agents.mock_tutor import MockTutorAgent
from api.main import create_app
from config import get_settings
from core.repository import InMemoryRepository


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def make_token():
    """Factory for tokens signed the way the auth service signs them."""
    settings = get_settings()

    def _make(user_id: str = "user-1", expires_in: int = 3600, **claims) -> str:
        payload = {
            "sub": user_id,
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            **claims,
        }
        return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    return _make


@pytest.fixture
def app(repository):
    application = create_app(repository)
    application.state.tutor_agent = MockTutorAgent()
    return application


@pytest.fixture
def api_client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers(make_token):
    return {"Authorization": f"Bearer {make_token('user-1', email='ada@example.com')}"}


@pytest.fixture
def other_headers(make_token):
    return {"Authorization": f"Bearer {make_token('user-2')}"}


@pytest.fixture
def rate_limits():
    """Restore rate limit settings changed by a test."""
    settings = get_settings()
    saved = settings.model_dump()
    yield settings
    for name in (
        "rate_limit_enabled",
        "practice_rate_limit",
        "quick_response_rate_limit",
        "ai_tutor_rate_limit",
    ):
        setattr(settings, name, saved[name])
