"""Async client library for the Goal Achiever API."""

from client.app import GoalAchieverClient
from client.errors import (
    ApiError,
    NetworkError,
    RateLimitedError,
    RequestTimeoutError,
    UnauthorizedError,
)
from client.http import ApiClient, TokenStore
from client.retry import call_with_retry, retry_with_backoff
from client.services import AITutorService, AuthService, CheckInService, GoalService, JourneyService
from client.state import (
    AITutorStore,
    AuthStore,
    CheckInStore,
    GoalStore,
    JourneyStore,
    RequestGate,
)

__all__ = [
    "GoalAchieverClient",
    # Errors
    "ApiError",
    "NetworkError",
    "RateLimitedError",
    "RequestTimeoutError",
    "UnauthorizedError",
    # Transport
    "ApiClient",
    "TokenStore",
    "call_with_retry",
    "retry_with_backoff",
    # Services
    "AITutorService",
    "AuthService",
    "CheckInService",
    "GoalService",
    "JourneyService",
    # Stores
    "AITutorStore",
    "AuthStore",
    "CheckInStore",
    "GoalStore",
    "JourneyStore",
    "RequestGate",
]
