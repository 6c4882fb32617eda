"""Domain services wrapping the REST endpoints."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from client.http import ApiClient
from client.retry import retry_with_backoff

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    """Datetimes become ISO strings, containers are converted recursively."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class BaseService:
    """Holds the API client; ``retry_sleep`` is what retries await between attempts."""

    retry_sleep = staticmethod(asyncio.sleep)

    def __init__(self, api: ApiClient):
        self.api = api


class GoalService(BaseService):
    """
    Goal endpoints.

    Reads and idempotent updates retry transient failures; creates,
    deletes and additions do not, so they are never applied twice.
    """

    @retry_with_backoff()
    async def get_goals(self, **filters) -> List[Dict[str, Any]]:
        body = await self.api.get("/goals/", params=_jsonable(filters))
        return body.get("data") or []

    @retry_with_backoff()
    async def get_goal(self, goal_id: str) -> Dict[str, Any]:
        body = await self.api.get(f"/goals/{goal_id}")
        return body.get("data")

    async def create_goal(self, data: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.api.post("/goals/", json=_jsonable(data))
        return body.get("data")

    @retry_with_backoff()
    async def update_goal(self, goal_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.api.put(f"/goals/{goal_id}", json=_jsonable(data))
        return body.get("data")

    async def delete_goal(self, goal_id: str) -> None:
        await self.api.delete(f"/goals/{goal_id}")

    async def add_milestone(self, goal_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.api.post(f"/goals/{goal_id}/milestones", json=_jsonable(data))
        return body.get("data")

    @retry_with_backoff()
    async def update_milestone(self, goal_id: str, milestone_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.api.put(f"/goals/{goal_id}/milestones/{milestone_id}", json=_jsonable(data))
        return body.get("data")

    async def delete_milestone(self, goal_id: str, milestone_id: str) -> Dict[str, Any]:
        body = await self.api.delete(f"/goals/{goal_id}/milestones/{milestone_id}")
        return body.get("data")

    @retry_with_backoff()
    async def update_progress(self, goal_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.api.put(f"/goals/{goal_id}/progress", json=_jsonable(data))
        return body.get("data")

    async def add_note(self, goal_id: str, content: str, is_important: bool = False) -> Dict[str, Any]:
        body = await self.api.post(
            f"/goals/{goal_id}/notes",
            json={"content": content, "is_important": is_important}
        )
        return body.get("data")

    @retry_with_backoff()
    async def archive_goal(self, goal_id: str, is_archived: bool = True) -> Dict[str, Any]:
        body = await self.api.put(f"/goals/{goal_id}/archive", json={"is_archived": is_archived})
        return body.get("data")

    @retry_with_backoff()
    async def get_analytics(self, time_range: str = "all") -> Dict[str, Any]:
        body = await self.api.get("/goals/analytics", params={"time_range": time_range})
        return body.get("data") or {}

    @retry_with_backoff()
    async def get_overdue_goals(self) -> List[Dict[str, Any]]:
        body = await self.api.get("/goals/overdue")
        return body.get("data") or []


class CheckInService(BaseService):
    """Check-in endpoints, with the same retry policy as goals."""

    @retry_with_backoff()
    async def get_checkins(self, **filters) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        """Returns (check-ins, pagination)."""
        body = await self.api.get("/checkin/", params=_jsonable(filters))
        return body.get("data") or [], body.get("pagination") or {}

    @retry_with_backoff()
    async def get_checkin(self, checkin_id: str) -> Dict[str, Any]:
        body = await self.api.get(f"/checkin/{checkin_id}")
        return body.get("data")

    async def create_checkin(self, data: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.api.post("/checkin/", json=_jsonable(data))
        return body.get("data")

    @retry_with_backoff()
    async def update_checkin(self, checkin_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.api.put(f"/checkin/{checkin_id}", json=_jsonable(data))
        return body.get("data")

    async def delete_checkin(self, checkin_id: str) -> None:
        await self.api.delete(f"/checkin/{checkin_id}")

    @retry_with_backoff()
    async def complete_checkin(self, checkin_id: str, assessment: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body = await self.api.post(f"/checkin/{checkin_id}/complete", json=_jsonable(assessment or {}))
        return body.get("data")

    @retry_with_backoff()
    async def mark_missed(self, checkin_id: str) -> Dict[str, Any]:
        body = await self.api.post(f"/checkin/{checkin_id}/miss")
        return body.get("data")

    @retry_with_backoff()
    async def reschedule_checkin(self, checkin_id: str, new_date: Any) -> Dict[str, Any]:
        body = await self.api.post(
            f"/checkin/{checkin_id}/reschedule",
            json={"new_date": _jsonable(new_date)}
        )
        return body.get("data")

    @retry_with_backoff()
    async def get_upcoming(self, limit: int = 10) -> List[Dict[str, Any]]:
        body = await self.api.get("/checkin/upcoming", params={"limit": limit})
        return body.get("data") or []

    @retry_with_backoff()
    async def get_overdue(self) -> List[Dict[str, Any]]:
        body = await self.api.get("/checkin/overdue")
        return body.get("data") or []

    @retry_with_backoff()
    async def get_statistics(self, time_range: str = "month") -> Dict[str, Any]:
        body = await self.api.get("/checkin/statistics", params={"time_range": time_range})
        return body.get("data") or {}

    @retry_with_backoff()
    async def get_calendar(self, start_date: Any, end_date: Any) -> Dict[str, List[Dict[str, Any]]]:
        params = _jsonable({"start_date": start_date, "end_date": end_date})
        body = await self.api.get("/checkin/calendar", params=params)
        return body.get("data") or {}

    @retry_with_backoff()
    async def get_by_date_range(self, start_date: Any, end_date: Any) -> List[Dict[str, Any]]:
        params = _jsonable({"start_date": start_date, "end_date": end_date})
        body = await self.api.get("/checkin/date-range", params=params)
        return body.get("data") or []

    async def create_recurring(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        body = await self.api.post("/checkin/recurring/create", json=_jsonable(data))
        return body.get("data") or []


class JourneyService(BaseService):
    """Journey endpoints, with the same retry policy as goals."""

    async def create_from_goal(self, goal_id: str) -> Dict[str, Any]:
        body = await self.api.post(f"/goals/{goal_id}/journey")
        return body.get("data")

    @retry_with_backoff()
    async def get_journeys(self, **filters) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        """Returns (journeys, pagination)."""
        body = await self.api.get("/goals/journeys", params=_jsonable(filters))
        return body.get("data") or [], body.get("pagination") or {}

    @retry_with_backoff()
    async def get_goal_journeys(self, goal_id: str) -> List[Dict[str, Any]]:
        body = await self.api.get(f"/goals/{goal_id}/journeys")
        return body.get("data") or []

    @retry_with_backoff()
    async def get_journey(self, journey_id: str) -> Dict[str, Any]:
        body = await self.api.get(f"/goals/journeys/{journey_id}")
        return body.get("data")

    @retry_with_backoff()
    async def update_journey(self, journey_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.api.put(f"/goals/journeys/{journey_id}", json=_jsonable(data))
        return body.get("data")

    async def delete_journey(self, journey_id: str) -> None:
        await self.api.delete(f"/goals/journeys/{journey_id}")

    @retry_with_backoff()
    async def archive_journey(self, journey_id: str, is_archived: bool = True) -> Dict[str, Any]:
        body = await self.api.put(f"/goals/journeys/{journey_id}/archive", json={"is_archived": is_archived})
        return body.get("data")

    @retry_with_backoff()
    async def get_overdue_journeys(self) -> List[Dict[str, Any]]:
        body = await self.api.get("/goals/journeys/overdue")
        return body.get("data") or []

    @retry_with_backoff()
    async def get_current_chunk(self, journey_id: str) -> Dict[str, Any]:
        body = await self.api.get(f"/goals/journeys/{journey_id}/current-chunk")
        return body.get("data") or {}

    async def add_chunk(self, journey_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.api.post(f"/goals/journeys/{journey_id}/chunks", json=_jsonable(data))
        return body.get("data")

    @retry_with_backoff()
    async def update_chunk(self, journey_id: str, chunk_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.api.put(f"/goals/journeys/{journey_id}/chunks/{chunk_id}", json=_jsonable(data))
        return body.get("data")

    async def delete_chunk(self, journey_id: str, chunk_id: str) -> Dict[str, Any]:
        body = await self.api.delete(f"/goals/journeys/{journey_id}/chunks/{chunk_id}")
        return body.get("data")

    @retry_with_backoff()
    async def update_chunk_progress(self, journey_id: str, chunk_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.api.put(
            f"/goals/journeys/{journey_id}/chunks/{chunk_id}/progress",
            json=_jsonable(data)
        )
        return body.get("data")

    async def add_objective(self, journey_id: str, chunk_id: str, objective: str) -> Dict[str, Any]:
        body = await self.api.post(
            f"/goals/journeys/{journey_id}/chunks/{chunk_id}/objectives",
            json={"objective": objective}
        )
        return body.get("data")

    @retry_with_backoff()
    async def update_objective(
        self,
        journey_id: str,
        chunk_id: str,
        objective_id: str,
        data: Dict[str, Any]
    ) -> Dict[str, Any]:
        body = await self.api.put(
            f"/goals/journeys/{journey_id}/chunks/{chunk_id}/objectives/{objective_id}",
            json=_jsonable(data)
        )
        return body.get("data")

    async def add_note(
        self,
        journey_id: str,
        chunk_id: str,
        content: str,
        is_important: bool = False
    ) -> Dict[str, Any]:
        body = await self.api.post(
            f"/goals/journeys/{journey_id}/chunks/{chunk_id}/notes",
            json={"content": content, "is_important": is_important}
        )
        return body.get("data")


class AITutorService(BaseService):
    """AI tutor endpoints; pacing is the AITutorStore's job, not retries."""

    async def send_message(
        self,
        message: str,
        session_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        payload = {"message": message, "session_id": session_id, "context": context}
        body = await self.api.post("/ai-tutor/chat", json={k: v for k, v in payload.items() if v is not None})
        return body.get("data")

    async def quick_response(self, message: str) -> Dict[str, Any]:
        body = await self.api.post("/ai-tutor/quick-response", json={"message": message})
        return body.get("data")

    async def get_sessions(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        body = await self.api.get("/ai-tutor/sessions", params={"status": status})
        return body.get("data") or []

    async def get_session(self, session_id: str) -> Dict[str, Any]:
        body = await self.api.get(f"/ai-tutor/sessions/{session_id}")
        return body.get("data")

    async def create_session(self, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body = await self.api.post("/ai-tutor/sessions", json=data or {})
        return body.get("data")

    async def update_session_status(self, session_id: str, status: str) -> Dict[str, Any]:
        body = await self.api.put(f"/ai-tutor/sessions/{session_id}/status", json={"status": status})
        return body.get("data")

    async def delete_session(self, session_id: str) -> None:
        await self.api.delete(f"/ai-tutor/sessions/{session_id}")

    async def practice_problems(
        self,
        module_title: str,
        related_goal: Optional[str] = None,
        user_progress: float = 0
    ) -> Dict[str, Any]:
        payload = {"module_title": module_title, "user_progress": user_progress}
        if related_goal:
            payload["related_goal"] = related_goal
        body = await self.api.post("/ai-tutor/practice-problems", json=payload)
        return body.get("data")

    async def get_recommendations(self) -> Dict[str, Any]:
        body = await self.api.get("/ai-tutor/recommendations")
        return body.get("data") or {}


class AuthService(BaseService):

    async def get_profile(self) -> Dict[str, Any]:
        body = await self.api.get("/auth/profile")
        return body.get("data")

    @retry_with_backoff()
    async def health(self) -> Dict[str, Any]:
        body = await self.api.get("/health")
        return body.get("data") or {}
