"""FastAPI backend for Goal Achiever."""

from api.main import app, create_app
from api.routes import ai_tutor, auth, checkins, goals

__all__ = [
    "app",
    "create_app",
    "ai_tutor",
    "auth",
    "checkins",
    "goals",
]
