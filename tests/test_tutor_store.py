"""Tests for RequestGate pacing and the AI tutor store."""

import asyncio

import pytest

from client.errors import ApiError, RateLimitedError
from client.state import AITutorStore, RequestGate


async def _settle(ticks=3):
    for _ in range(ticks):
        await asyncio.sleep(0)


class FakeTime:
    """Monotonic clock plus sleep that records delays."""

    def __init__(self, start=100.0, advance=True):
        self.now = start
        self.advance = advance
        self.delays = []

    def clock(self):
        return self.now

    async def sleep(self, delay):
        self.delays.append(delay)
        if self.advance:
            self.now += delay
        await asyncio.sleep(0)


class TestRequestGate:
    """Tests for de-duplication and minimum spacing."""

    @pytest.mark.asyncio
    async def test_duplicate_key_joins_in_flight_call(self):
        """Test concurrent calls with one key run the factory once."""
        gate = RequestGate(min_interval=0)
        calls = []

        async def factory():
            calls.append(1)
            await asyncio.sleep(0)
            return "reply"

        results = await asyncio.gather(gate.run("send", factory), gate.run("send", factory))

        assert results == ["reply", "reply"]
        assert len(calls) == 1
        assert gate.in_flight("send") is False

    @pytest.mark.asyncio
    async def test_joined_callers_share_errors(self):
        """Test every joined caller sees the in-flight error."""
        gate = RequestGate(min_interval=0)

        async def factory():
            await asyncio.sleep(0)
            raise ApiError("boom", 500)

        results = await asyncio.gather(
            gate.run("k", factory), gate.run("k", factory), return_exceptions=True
        )

        assert all(isinstance(r, ApiError) for r in results)
        assert results[0] is results[1]

    @pytest.mark.asyncio
    async def test_key_reusable_after_completion(self):
        """Test a finished key runs again on the next call."""
        time = FakeTime()
        gate = RequestGate(min_interval=2.0, clock=time.clock, sleep=time.sleep)
        calls = []

        async def factory():
            calls.append(1)
            return len(calls)

        assert await gate.run("k", factory) == 1
        assert await gate.run("k", factory) == 2

    @pytest.mark.asyncio
    async def test_sequential_requests_are_spaced(self):
        """Test a request right after another waits out the interval."""
        time = FakeTime()
        gate = RequestGate(min_interval=2.0, clock=time.clock, sleep=time.sleep)

        async def factory():
            return time.now

        first = await gate.run("a", factory)
        second = await gate.run("b", factory)

        assert time.delays == [2.0]
        assert second - first == 2.0

    @pytest.mark.asyncio
    async def test_no_wait_after_interval_passed(self):
        """Test requests spaced further apart are not delayed."""
        time = FakeTime()
        gate = RequestGate(min_interval=2.0, clock=time.clock, sleep=time.sleep)

        async def factory():
            return None

        await gate.run("a", factory)
        time.now += 5
        await gate.run("b", factory)

        assert time.delays == []

    @pytest.mark.asyncio
    async def test_concurrent_requests_queue_behind_each_other(self):
        """Test three different keys issued together get successive slots."""
        time = FakeTime(advance=False)
        gate = RequestGate(min_interval=2.0, clock=time.clock, sleep=time.sleep)

        async def factory():
            return None

        await asyncio.gather(gate.run("a", factory), gate.run("b", factory), gate.run("c", factory))

        assert sorted(time.delays) == [2.0, 4.0]


class FakeTutorService:
    """Tutor service double; send_message can be held open with an event."""

    def __init__(self):
        self.release = None
        self.sent = []
        self.error = None

    async def send_message(self, message, session_id=None, context=None):
        self.sent.append((message, session_id))
        if self.release is not None:
            await self.release.wait()
        if self.error:
            raise self.error
        session_id = session_id or "s1"
        return {
            "session_id": session_id,
            "response": f"echo: {message}",
            "model": "mock-ai-service",
            "response_time_ms": 5,
            "session": {"id": session_id, "title": "AI Tutor Session"},
        }

    async def get_sessions(self, status=None):
        if self.release is not None:
            await self.release.wait()
        return [{"id": "s1", "status": "active"}, {"id": "s2", "status": "active"}]

    async def get_session(self, session_id):
        return {"id": session_id, "messages": [{"role": "user", "content": "earlier"}]}

    async def create_session(self, data=None):
        return {"id": "s3", "messages": []}

    async def update_session_status(self, session_id, status):
        return {"id": session_id, "status": status}

    async def delete_session(self, session_id):
        return None

    async def quick_response(self, message):
        return {"response": "short"}

    async def practice_problems(self, module_title, related_goal=None, user_progress=0):
        if self.error:
            raise self.error
        return {"problems": [{"id": 1}], "model": "mock-ai-service"}

    async def get_recommendations(self):
        return {"recommendations": ["Practice daily"]}


class TestAITutorStore:
    """Tests for AITutorStore."""

    def setup_method(self):
        self.service = FakeTutorService()
        self.store = AITutorStore(self.service, gate=RequestGate(min_interval=0))

    @pytest.mark.asyncio
    async def test_send_message_shows_user_message_first(self):
        """Test the user message and typing flag appear before the reply."""
        self.service.release = asyncio.Event()

        task = asyncio.ensure_future(self.store.send_message("hello"))
        await asyncio.sleep(0)

        assert [m["role"] for m in self.store.state.messages] == ["user"]
        assert self.store.state.is_typing is True

        self.service.release.set()
        data = await task

        assert data["session_id"] == "s1"
        assert [m["content"] for m in self.store.state.messages] == ["hello", "echo: hello"]
        assert self.store.state.is_typing is False
        assert self.store.state.current_session["id"] == "s1"
        assert [s["id"] for s in self.store.state.sessions] == ["s1"]

    @pytest.mark.asyncio
    async def test_duplicate_send_is_sent_once(self):
        """Test an identical message while one is in flight shares its reply."""
        self.service.release = asyncio.Event()

        first = asyncio.ensure_future(self.store.send_message("hello"))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(self.store.send_message("hello"))
        await asyncio.sleep(0)
        self.service.release.set()
        results = await asyncio.gather(first, second)

        assert len(self.service.sent) == 1
        assert results[0] == results[1]
        assert [m["role"] for m in self.store.state.messages] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_follow_up_uses_current_session(self):
        """Test later messages continue the session from the first reply."""
        await self.store.send_message("one")
        await self.store.send_message("two")

        assert self.service.sent == [("one", None), ("two", "s1")]
        assert len(self.store.state.messages) == 4

    @pytest.mark.asyncio
    async def test_send_failure(self):
        """Test a failed send clears typing and records the error."""
        self.service.error = RateLimitedError("slow down", 429, "RATE_LIMIT_EXCEEDED", {"retry_after": 9})

        with pytest.raises(RateLimitedError):
            await self.store.send_message("hello")

        assert self.store.state.is_typing is False
        assert self.store.state.error.retry_after == 9

    @pytest.mark.asyncio
    async def test_start_new_session(self):
        """Test a new session forgets the transcript and session id."""
        await self.store.send_message("one")
        self.store.start_new_session()
        await self.store.send_message("two")

        assert self.service.sent[1] == ("two", None)
        assert [m["content"] for m in self.store.state.messages] == ["two", "echo: two"]

    @pytest.mark.asyncio
    async def test_sessions_lifecycle(self):
        """Test loading, selecting, archiving and deleting sessions."""
        await self.store.load_sessions()
        await self.store.load_session("s2")
        assert self.store.state.messages[0]["content"] == "earlier"

        await self.store.update_session_status("s2", "archived")
        assert self.store.state.current_session["status"] == "archived"
        assert self.store.state.sessions[1]["status"] == "archived"

        await self.store.delete_session("s2")
        assert [s["id"] for s in self.store.state.sessions] == ["s1"]
        assert self.store.state.current_session is None
        assert self.store.state.messages == []

    @pytest.mark.asyncio
    async def test_create_session(self):
        """Test a created session becomes current."""
        await self.store.create_session({"title": "New"})

        assert self.store.state.current_session["id"] == "s3"
        assert self.store.state.sessions[0]["id"] == "s3"

    @pytest.mark.asyncio
    async def test_practice_and_recommendations(self):
        """Test learning aids land in state."""
        await self.store.load_practice_problems("Loops")
        await self.store.load_recommendations()

        assert self.store.state.practice_problems == [{"id": 1}]
        assert self.store.state.recommendations == ["Practice daily"]
        assert self.store.state.loading is False

    @pytest.mark.asyncio
    async def test_practice_failure(self):
        """Test errors from learning aids are recorded."""
        self.service.error = ApiError("unavailable", 503)

        with pytest.raises(ApiError):
            await self.store.load_practice_problems("Loops")

        assert self.store.state.error is self.service.error
        assert self.store.state.loading is False

    @pytest.mark.asyncio
    async def test_reset_during_load_drops_sessions(self):
        """Test sessions loaded for a signed-out user are discarded."""
        self.service.release = asyncio.Event()

        task = asyncio.ensure_future(self.store.load_sessions())
        await _settle()
        self.store.reset()
        self.service.release.set()
        sessions = await task

        assert [s["id"] for s in sessions] == ["s1", "s2"]
        assert self.store.state.sessions == []
        assert self.store.state.loading is False

    @pytest.mark.asyncio
    async def test_reset_during_send_drops_reply(self):
        """Test a reply arriving after sign-out leaves the transcript empty."""
        self.service.release = asyncio.Event()

        task = asyncio.ensure_future(self.store.send_message("hello"))
        await _settle()
        self.store.reset()
        self.service.release.set()
        await task

        assert self.store.state.messages == []
        assert self.store.state.sessions == []
        assert self.store.state.current_session is None
        assert self.store.state.is_typing is False
