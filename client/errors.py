"""Errors raised by the API client."""

from typing import Any, Dict, Optional


class ApiError(Exception):
    """
    Failed API call.

    ``status_code`` is None when no HTTP response was received.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.payload = payload or {}

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code}, code={self.code!r})"


class NetworkError(ApiError):
    """The server could not be reached."""

    def __init__(self, message: str = "Network error. Please check your connection."):
        super().__init__(message, code="NETWORK_ERROR")


class RequestTimeoutError(NetworkError):
    """The server did not answer within the client timeout."""

    def __init__(self, message: str = "Request timed out. Please try again."):
        super().__init__(message)
        self.code = "TIMEOUT"


class UnauthorizedError(ApiError):
    """The bearer token was missing, invalid or expired."""


class RateLimitedError(ApiError):
    """The server asked us to slow down."""

    @property
    def retry_after(self) -> Optional[int]:
        return self.payload.get("retry_after")
