"""Tests for CheckInStore."""

import asyncio
import copy
from datetime import datetime, timezone

import pytest

from client.errors import ApiError, NetworkError
from client.state import CheckInStore


def _checkin(checkin_id, **fields):
    checkin = {
        "id": checkin_id,
        "goal_id": "g1",
        "status": "scheduled",
        "scheduled_date": "2024-01-01T09:00:00+00:00",
        "progress_assessment": None,
    }
    checkin.update(fields)
    return checkin


class FakeCheckInService:
    """Check-in service double recording the state seen during calls."""

    def __init__(self, checkins=None):
        self.checkins = checkins or []
        self.store = None
        self.seen = []
        self.error = None
        self.list_error = None
        self.release = None

    def _observe(self):
        self.seen.append(self.store.state)
        if self.error:
            raise self.error

    async def get_checkins(self, **filters):
        if self.release is not None:
            await self.release.wait()
        if self.list_error:
            raise self.list_error
        items = copy.deepcopy(self.checkins)
        return items, {"current": 1, "pages": 1, "total": len(items), "limit": 20}

    async def get_checkin(self, checkin_id):
        return copy.deepcopy(next(c for c in self.checkins if c["id"] == checkin_id))

    async def create_checkin(self, data):
        self._observe()
        created = _checkin("c-new", **data)
        self.checkins.append(created)
        return copy.deepcopy(created)

    async def update_checkin(self, checkin_id, changes):
        self._observe()
        return _checkin(checkin_id, **changes)

    async def delete_checkin(self, checkin_id):
        self._observe()

    async def complete_checkin(self, checkin_id, assessment=None):
        self._observe()
        return _checkin(checkin_id, status="completed", progress_assessment=assessment)

    async def mark_missed(self, checkin_id):
        self._observe()
        return _checkin(checkin_id, status="missed")

    async def reschedule_checkin(self, checkin_id, new_date):
        self._observe()
        return _checkin(checkin_id, scheduled_date=new_date.isoformat())

    async def get_upcoming(self, limit=10):
        return [_checkin("c2")]

    async def get_overdue(self):
        return [_checkin("c1")]

    async def get_statistics(self, time_range="month"):
        return {"total": 2}


class TestCheckInStore:
    """Tests for CheckInStore."""

    def setup_method(self):
        self.service = FakeCheckInService([_checkin("c1"), _checkin("c2")])
        self.store = CheckInStore(self.service)
        self.service.store = self.store

    @pytest.mark.asyncio
    async def test_fetch_with_pagination(self):
        """Test list and pagination are stored together."""
        items = await self.store.fetch_checkins(goal_id="g1")

        assert [c["id"] for c in items] == ["c1", "c2"]
        assert self.store.state.pagination["total"] == 2
        assert self.store.state.filters == {"goal_id": "g1"}

    @pytest.mark.asyncio
    async def test_complete_optimistic(self):
        """Test completion is visible during the call and confirmed after."""
        await self.store.fetch_checkins()

        await self.store.complete_checkin("c1", {"rating": 9})

        speculative = self.service.seen[0].checkins[0]
        assert speculative["status"] == "completed"
        assert speculative["progress_assessment"] == {"rating": 9}
        assert speculative["completed_date"] is not None
        assert self.store.state.checkins[0]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_complete_rollback(self):
        """Test a failed completion restores the exact prior state."""
        await self.store.fetch_checkins()
        await self.store.fetch_overdue()
        before = copy.deepcopy(self.store.state)
        self.service.error = ApiError("down", 500)

        with pytest.raises(ApiError):
            await self.store.complete_checkin("c1", {"rating": 9})

        assert self.service.seen[0].overdue[0]["status"] == "completed"
        assert self.store.state.checkins == before.checkins
        assert self.store.state.overdue == before.overdue
        assert self.store.state.error is self.service.error

    @pytest.mark.asyncio
    async def test_mark_missed_and_reschedule(self):
        """Test status transitions are reconciled with the server copy."""
        await self.store.fetch_checkins()

        await self.store.mark_missed("c2")
        assert self.store.state.checkins[1]["status"] == "missed"

        await self.store.reschedule_checkin("c2", datetime(2024, 3, 1, tzinfo=timezone.utc))
        assert self.service.seen[1].checkins[1]["scheduled_date"] == "2024-03-01T00:00:00+00:00"
        assert self.store.state.checkins[1]["status"] == "scheduled"

    @pytest.mark.asyncio
    async def test_delete_rollback(self):
        """Test a failed delete restores the check-in everywhere."""
        await self.store.fetch_checkins()
        await self.store.fetch_upcoming()
        self.service.error = NetworkError()

        with pytest.raises(NetworkError):
            await self.store.delete_checkin("c2")

        assert self.service.seen[0].upcoming == []
        assert [c["id"] for c in self.store.state.upcoming] == ["c2"]
        assert [c["id"] for c in self.store.state.checkins] == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_create_refreshes_list(self):
        """Test creation prepends then refreshes from the server."""
        await self.store.fetch_checkins()

        await self.store.create_checkin({"goal_id": "g1"})

        assert [c["id"] for c in self.store.state.checkins] == ["c1", "c2", "c-new"]
        assert self.store.state.pagination["total"] == 3

    @pytest.mark.asyncio
    async def test_create_keeps_prepended_when_refresh_fails(self):
        """Test a failed refresh after create is not an error."""
        await self.store.fetch_checkins()
        self.service.list_error = NetworkError()

        created = await self.store.create_checkin({"goal_id": "g1"})

        assert created["id"] == "c-new"
        assert [c["id"] for c in self.store.state.checkins] == ["c-new", "c1", "c2"]
        assert self.store.state.error is None

    @pytest.mark.asyncio
    async def test_current_checkin_follows_updates(self):
        """Test the viewed check-in is patched and reconciled too."""
        await self.store.fetch_checkins()
        await self.store.get_checkin("c1")

        await self.store.update_checkin("c1", {"title": "Weekly review"})

        assert self.service.seen[0].current_checkin["title"] == "Weekly review"
        assert self.store.state.current_checkin["title"] == "Weekly review"

    @pytest.mark.asyncio
    async def test_statistics(self):
        """Test statistics land in state."""
        await self.store.fetch_statistics()

        assert self.store.state.statistics == {"total": 2}

    @pytest.mark.asyncio
    async def test_reset_during_create_refresh_drops_result(self):
        """Test the refresh after create does not refill a reset store."""
        await self.store.fetch_checkins()
        self.service.release = asyncio.Event()

        task = asyncio.ensure_future(self.store.create_checkin({"goal_id": "g1"}))
        await asyncio.sleep(0)
        self.store.reset()
        self.service.release.set()
        created = await task

        assert created["id"] == "c-new"
        assert self.store.state.checkins == []
        assert self.store.state.pagination == {}

    @pytest.mark.asyncio
    async def test_reset_during_fetch_drops_result(self):
        """Test a list fetched before sign-out is discarded."""
        self.service.release = asyncio.Event()

        task = asyncio.ensure_future(self.store.fetch_checkins())
        await asyncio.sleep(0)
        self.store.reset()
        self.service.release.set()
        await task

        assert self.store.state.checkins == []
        assert self.store.state.loading is False
