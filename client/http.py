"""Async HTTP client for the Goal Achiever API."""

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from client.errors import (
    ApiError,
    NetworkError,
    RateLimitedError,
    RequestTimeoutError,
    UnauthorizedError,
)
from config import get_settings

logger = logging.getLogger(__name__)


class TokenStore:
    """Holds the bearer token issued by the auth service."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: Optional[str]) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class ApiClient:
    """
    Thin wrapper over ``httpx.AsyncClient``.

    Adds the bearer token to every request, turns transport failures and
    non-2xx responses into ``ApiError`` subclasses, and unwraps the
    ``{"success": ..., "data": ...}`` envelope. A 401 clears the token and
    notifies the unauthorized listeners before the error is raised.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_store: Optional[TokenStore] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.token_store = token_store or TokenStore()
        self._unauthorized_listeners: List[Callable[[], Any]] = []
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.request_timeout_seconds,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=transport
        )

    def on_unauthorized(self, listener: Callable[[], Any]) -> Callable[[], None]:
        """Register a callback fired on 401; returns an unsubscribe function."""
        self._unauthorized_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._unauthorized_listeners:
                self._unauthorized_listeners.remove(listener)

        return unsubscribe

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Send a request and return the decoded response envelope.

        Raises:
            RequestTimeoutError: the server did not answer in time
            NetworkError: the server could not be reached
            UnauthorizedError: 401
            RateLimitedError: 429
            ApiError: any other non-2xx response
        """
        headers = {}
        token = self.token_store.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await self._client.request(
                method,
                path if path.startswith("/") else f"/{path}",
                json=json,
                params=params,
                headers=headers
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out: {e}")
            raise RequestTimeoutError() from e
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise NetworkError() from e

        body = self._decode(response)

        if response.is_success:
            return body

        message = body.get("message") or f"Request failed with status {response.status_code}"
        code = body.get("error")

        if response.status_code == 401:
            self.token_store.clear()
            self._notify_unauthorized()
            raise UnauthorizedError(message, response.status_code, code, body)
        if response.status_code == 429:
            raise RateLimitedError(message, response.status_code, code, body)
        raise ApiError(message, response.status_code, code, body)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Dict[str, Any]:
        return await self.request("DELETE", path)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {"message": response.text}
        return body if isinstance(body, dict) else {"data": body}

    def _notify_unauthorized(self) -> None:
        for listener in list(self._unauthorized_listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"Unauthorized listener failed: {e}")
