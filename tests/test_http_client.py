"""Tests for ApiClient using httpx.MockTransport."""

import json

import httpx
import pytest

from client.errors import (
    ApiError,
    NetworkError,
    RateLimitedError,
    RequestTimeoutError,
    UnauthorizedError,
)
from client.http import ApiClient, TokenStore

BASE_URL = "http://api.test/api"


def _client(handler, token=None) -> ApiClient:
    return ApiClient(
        base_url=BASE_URL,
        token_store=TokenStore(token),
        transport=httpx.MockTransport(handler)
    )


class TestApiClient:
    """Tests for request building and error mapping."""

    @pytest.mark.asyncio
    async def test_injects_token_and_returns_body(self):
        """Test the bearer header and envelope pass-through."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"success": True, "data": {"id": "g1"}})

        async with _client(handler, token="abc") as api:
            body = await api.post("/goals/", json={"title": "Run"})

        assert body == {"success": True, "data": {"id": "g1"}}
        assert seen["auth"] == "Bearer abc"
        assert seen["url"] == "http://api.test/api/goals/"
        assert seen["body"] == {"title": "Run"}

    @pytest.mark.asyncio
    async def test_no_token_no_header(self):
        """Test anonymous requests carry no Authorization header."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"success": True, "data": None})

        async with _client(handler) as api:
            await api.get("/health")

        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_drops_none_params(self):
        """Test query parameters with None values are omitted."""
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"success": True, "data": []})

        async with _client(handler) as api:
            await api.get("/goals/", params={"status": "active", "category": None})

        assert seen["params"] == {"status": "active"}

    @pytest.mark.asyncio
    async def test_unauthorized_clears_token_and_notifies(self):
        """Test a 401 clears the token and fires listeners."""
        fired = []

        def handler(request):
            return httpx.Response(401, json={"success": False, "error": "UNAUTHORIZED", "message": "Invalid token"})

        api = _client(handler, token="stale")
        api.on_unauthorized(lambda: fired.append(True))

        with pytest.raises(UnauthorizedError) as exc_info:
            await api.get("/goals/")
        await api.aclose()

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Invalid token"
        assert api.token_store.get() is None
        assert fired == [True]

    @pytest.mark.asyncio
    async def test_unsubscribe_listener(self):
        """Test unsubscribed listeners are not called."""
        fired = []

        def handler(request):
            return httpx.Response(401, json={"success": False, "message": "nope"})

        api = _client(handler, token="t")
        unsubscribe = api.on_unauthorized(lambda: fired.append(True))
        unsubscribe()

        with pytest.raises(UnauthorizedError):
            await api.get("/goals/")
        await api.aclose()

        assert fired == []

    @pytest.mark.asyncio
    async def test_unsubscribe_twice_is_harmless(self):
        """Test calling unsubscribe again does not raise."""
        api = _client(lambda request: httpx.Response(200, json={"success": True}))
        unsubscribe = api.on_unauthorized(lambda: None)

        unsubscribe()
        unsubscribe()
        await api.aclose()

        assert api._unauthorized_listeners == []

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        """Test a 429 exposes retry_after from the body."""
        def handler(request):
            return httpx.Response(429, json={
                "success": False,
                "error": "RATE_LIMIT_EXCEEDED",
                "message": "slow down",
                "retry_after": 12,
            })

        async with _client(handler) as api:
            with pytest.raises(RateLimitedError) as exc_info:
                await api.post("/ai-tutor/chat", json={"message": "hi"})

        assert exc_info.value.retry_after == 12
        assert exc_info.value.code == "RATE_LIMIT_EXCEEDED"

    @pytest.mark.asyncio
    async def test_server_error(self):
        """Test non-JSON 5xx bodies still produce an ApiError."""
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        async with _client(handler) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.get("/goals/")

        assert exc_info.value.status_code == 502
        assert exc_info.value.is_server_error
        assert exc_info.value.message == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test timeouts become RequestTimeoutError."""
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler) as api:
            with pytest.raises(RequestTimeoutError) as exc_info:
                await api.get("/goals/")

        assert exc_info.value.code == "TIMEOUT"
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test connection failures become NetworkError."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as api:
            with pytest.raises(NetworkError) as exc_info:
                await api.get("/goals/")

        assert exc_info.value.code == "NETWORK_ERROR"
