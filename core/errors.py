"""Domain exceptions shared by the managers, agents and API layer."""

from typing import Optional


class GoalAchieverError(Exception):
    """Base class for domain errors carrying an HTTP status and error code."""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.error_code = code


class ValidationError(GoalAchieverError):
    """Input failed a domain rule."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class NotFoundError(GoalAchieverError):
    """Requested entity does not exist."""

    status_code = 404
    error_code = "NOT_FOUND"


class AccessDeniedError(GoalAchieverError):
    """Entity exists but belongs to another user."""

    status_code = 403
    error_code = "FORBIDDEN"


class TutorServiceError(GoalAchieverError):
    """The AI model could not produce a reply."""

    status_code = 503
    error_code = "SERVICE_UNAVAILABLE"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, code)
        if status_code:
            self.status_code = status_code
        self.retry_after = retry_after


class RateLimitError(GoalAchieverError):
    """Caller exceeded a request quota."""

    status_code = 429
    error_code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str, retry_after: int, code: Optional[str] = None):
        super().__init__(message, code)
        self.retry_after = retry_after
