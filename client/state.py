"""
State containers for goals, journeys, check-ins, the AI tutor and auth.

Each store keeps an immutable state object that is replaced on every
change and pushed to subscribers. Goal, journey and check-in mutations
are applied optimistically: the speculative state is visible at once,
replaced by the server's entity on success, and rolled back to the exact
prior state on failure. Mutations on a store are serialized by an asyncio
lock, so at most one speculative overlay exists at a time.
"""

import asyncio
import copy
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional

from client.errors import ApiError, UnauthorizedError
from client.http import ApiClient
from client.services import AITutorService, AuthService, CheckInService, GoalService, JourneyService
from config import get_settings
from core.models import compute_progress, round_percent, utcnow

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


def _now_iso() -> str:
    return utcnow().isoformat()


def _has_id(entity: Any) -> bool:
    return isinstance(entity, dict) and bool(entity.get("id"))


def _replace_item(items: List[Dict[str, Any]], entity: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [entity if item.get("id") == entity["id"] else item for item in items]


def _patch_item(
    items: List[Dict[str, Any]],
    item_id: str,
    patch: Callable[[Dict[str, Any]], Dict[str, Any]]
) -> List[Dict[str, Any]]:
    return [patch(item) if item.get("id") == item_id else item for item in items]


def _remove_item(items: List[Dict[str, Any]], item_id: str) -> List[Dict[str, Any]]:
    return [item for item in items if item.get("id") != item_id]


# ===========================
# States
# ===========================

@dataclass(frozen=True)
class GoalState:
    goals: List[Dict[str, Any]] = field(default_factory=list)
    current_goal: Optional[Dict[str, Any]] = None
    overdue: List[Dict[str, Any]] = field(default_factory=list)
    analytics: Dict[str, Any] = field(default_factory=dict)
    filters: Dict[str, Any] = field(default_factory=dict)
    loading: bool = False
    error: Optional[Exception] = None
    needs_refresh: bool = False


@dataclass(frozen=True)
class CheckInState:
    checkins: List[Dict[str, Any]] = field(default_factory=list)
    current_checkin: Optional[Dict[str, Any]] = None
    pagination: Dict[str, Any] = field(default_factory=dict)
    upcoming: List[Dict[str, Any]] = field(default_factory=list)
    overdue: List[Dict[str, Any]] = field(default_factory=list)
    statistics: Dict[str, Any] = field(default_factory=dict)
    filters: Dict[str, Any] = field(default_factory=dict)
    loading: bool = False
    error: Optional[Exception] = None


@dataclass(frozen=True)
class JourneyState:
    journeys: List[Dict[str, Any]] = field(default_factory=list)
    current_journey: Optional[Dict[str, Any]] = None
    current_chunk: Dict[str, Any] = field(default_factory=dict)
    overdue: List[Dict[str, Any]] = field(default_factory=list)
    pagination: Dict[str, Any] = field(default_factory=dict)
    filters: Dict[str, Any] = field(default_factory=dict)
    loading: bool = False
    error: Optional[Exception] = None


@dataclass(frozen=True)
class AITutorState:
    sessions: List[Dict[str, Any]] = field(default_factory=list)
    current_session: Optional[Dict[str, Any]] = None
    messages: List[Dict[str, Any]] = field(default_factory=list)
    practice_problems: List[Dict[str, Any]] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    is_typing: bool = False
    loading: bool = False
    error: Optional[Exception] = None


@dataclass(frozen=True)
class AuthState:
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    is_authenticated: bool = False
    loading: bool = False
    error: Optional[Exception] = None


# ===========================
# Base store
# ===========================

class Store:
    """Observable holder of one immutable state object."""

    state_class: type = object

    def __init__(self):
        self._state = self.state_class()
        self._listeners: List[Listener] = []
        self._lock = asyncio.Lock()
        self._generation = 0

    @property
    def state(self):
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(state)`` after every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reset(self) -> None:
        """Back to the initial state (used on sign-out)."""
        self._generation += 1
        self._set_state(self.state_class())

    def clear_error(self) -> None:
        self._update(error=None)

    def _is_current(self, generation: int) -> bool:
        """False once the store was reset after ``generation`` was taken."""
        return generation == self._generation

    def _discard(self, action: str) -> None:
        logger.info(f"{type(self).__name__} was reset during {action}, dropping the result")

    def _update(self, **changes) -> None:
        self._set_state(replace(self._state, **changes))

    def _set_state(self, state) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"{type(self).__name__} listener failed: {e}")

    async def _optimistic(
        self,
        action: str,
        apply: Callable[[Any], Any],
        call: Callable[[], Awaitable[Any]],
        reconcile: Callable[[Any], Awaitable[None]]
    ) -> Any:
        """
        Show ``apply(state)`` immediately, then confirm it with ``call``.

        On failure the pre-mutation snapshot is restored, the error is
        stored on it and re-raised.
        """
        async with self._lock:
            snapshot = copy.deepcopy(self._state)
            generation = self._generation
            self._set_state(apply(self._state))
            try:
                result = await call()
            except Exception as e:
                if self._is_current(generation):
                    logger.warning(f"{action} failed, rolling back: {e}")
                    self._set_state(replace(snapshot, error=e))
                else:
                    self._discard(action)
                raise
            if self._is_current(generation):
                await reconcile(result)
            else:
                self._discard(action)
            return result

    async def _load(self, action: str, call: Callable[[], Awaitable[Any]], **on_success) -> Any:
        """Run a fetch with the loading flag; ``on_success`` maps fields to result -> value."""
        async with self._lock:
            generation = self._generation
            self._update(loading=True)
            try:
                result = await call()
            except Exception as e:
                logger.warning(f"{action} failed: {e}")
                if self._is_current(generation):
                    self._update(loading=False, error=e)
                raise
            if not self._is_current(generation):
                self._discard(action)
                return result
            changes = {name: build(result) for name, build in on_success.items()}
            self._update(loading=False, error=None, **changes)
            return result


# ===========================
# Goals
# ===========================

class GoalStore(Store):
    """Goals list, the goal being viewed, and optimistic goal edits."""

    state_class = GoalState

    def __init__(self, service: GoalService):
        super().__init__()
        self.service = service

    async def fetch_goals(self, **filters) -> List[Dict[str, Any]]:
        return await self._load(
            "fetch_goals",
            lambda: self.service.get_goals(**filters),
            goals=lambda goals: goals,
            filters=lambda _: dict(filters),
            needs_refresh=lambda _: False
        )

    async def get_goal(self, goal_id: str) -> Optional[Dict[str, Any]]:
        """Cached goal unless flagged for refresh; falls back to the cache on failure."""
        cached = self._cached(goal_id)
        if cached is not None and not self._state.needs_refresh:
            self._update(current_goal=cached)
            return cached

        async with self._lock:
            generation = self._generation
            try:
                goal = await self.service.get_goal(goal_id)
            except Exception as e:
                if not self._is_current(generation):
                    self._discard("get_goal")
                    raise
                if cached is not None:
                    logger.warning(f"get_goal {goal_id} failed, serving cached copy: {e}")
                    self._update(current_goal=cached)
                    return cached
                self._update(error=e)
                raise
            if not self._is_current(generation):
                self._discard("get_goal")
                return goal
            goals = _replace_item(self._state.goals, goal) if self._cached_in_list(goal_id) else self._state.goals
            self._update(current_goal=goal, goals=goals, error=None)
            return goal

    async def create_goal(self, data: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            generation = self._generation
            try:
                goal = await self.service.create_goal(data)
            except Exception as e:
                if self._is_current(generation):
                    self._update(error=e)
                raise
            if not self._is_current(generation):
                self._discard("create_goal")
                return goal
            self._update(goals=[goal] + self._state.goals, error=None)
            return goal

    async def update_goal(self, goal_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return await self._optimistic(
            "update_goal",
            lambda state: self._patch(state, goal_id, lambda g: {**g, **changes}),
            lambda: self.service.update_goal(goal_id, changes),
            self._reconcile
        )

    async def delete_goal(self, goal_id: str) -> None:
        def apply(state: GoalState) -> GoalState:
            current = state.current_goal
            if current is not None and current.get("id") == goal_id:
                current = None
            return replace(
                state,
                goals=_remove_item(state.goals, goal_id),
                overdue=_remove_item(state.overdue, goal_id),
                current_goal=current
            )

        async def reconcile(_) -> None:
            self._update(error=None)

        await self._optimistic(
            "delete_goal",
            apply,
            lambda: self.service.delete_goal(goal_id),
            reconcile
        )

    async def archive_goal(self, goal_id: str, is_archived: bool = True) -> Dict[str, Any]:
        archived_at = _now_iso() if is_archived else None
        return await self._optimistic(
            "archive_goal",
            lambda state: self._patch(
                state, goal_id,
                lambda g: {**g, "is_archived": is_archived, "archived_at": archived_at}
            ),
            lambda: self.service.archive_goal(goal_id, is_archived),
            self._reconcile
        )

    async def update_milestone(
        self,
        goal_id: str,
        milestone_id: str,
        changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Merge milestone fields and recompute progress before the server answers."""

        def patch(goal: Dict[str, Any]) -> Dict[str, Any]:
            milestones = [
                {**m, **changes} if m.get("id") == milestone_id else m
                for m in goal.get("milestones") or []
            ]
            counters = compute_progress(m.get("status") for m in milestones)
            progress = {**(goal.get("progress") or {}), **counters, "last_updated": _now_iso()}
            return {**goal, "milestones": milestones, "progress": progress}

        return await self._optimistic(
            "update_milestone",
            lambda state: self._patch(state, goal_id, patch),
            lambda: self.service.update_milestone(goal_id, milestone_id, changes),
            self._reconcile
        )

    async def add_milestone(self, goal_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._confirmed(lambda: self.service.add_milestone(goal_id, data))

    async def delete_milestone(self, goal_id: str, milestone_id: str) -> Dict[str, Any]:
        return await self._confirmed(lambda: self.service.delete_milestone(goal_id, milestone_id))

    async def update_progress(self, goal_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._confirmed(lambda: self.service.update_progress(goal_id, data))

    async def add_note(self, goal_id: str, content: str, is_important: bool = False) -> Dict[str, Any]:
        return await self._confirmed(lambda: self.service.add_note(goal_id, content, is_important))

    async def fetch_analytics(self, time_range: str = "all") -> Dict[str, Any]:
        return await self._load(
            "fetch_analytics",
            lambda: self.service.get_analytics(time_range),
            analytics=lambda data: data
        )

    async def fetch_overdue(self) -> List[Dict[str, Any]]:
        return await self._load(
            "fetch_overdue",
            self.service.get_overdue_goals,
            overdue=lambda goals: goals
        )

    def invalidate(self) -> None:
        """Force the next get_goal to hit the server."""
        self._update(needs_refresh=True)

    # Helpers

    def _cached(self, goal_id: str) -> Optional[Dict[str, Any]]:
        current = self._state.current_goal
        if current is not None and current.get("id") == goal_id:
            return current
        for goal in self._state.goals:
            if goal.get("id") == goal_id:
                return goal
        return None

    def _cached_in_list(self, goal_id: str) -> bool:
        return any(goal.get("id") == goal_id for goal in self._state.goals)

    def _patch(self, state: GoalState, goal_id: str, patch) -> GoalState:
        current = state.current_goal
        if current is not None and current.get("id") == goal_id:
            current = patch(current)
        return replace(state, goals=_patch_item(state.goals, goal_id, patch), current_goal=current)

    def _with_entity(self, state: GoalState, goal: Dict[str, Any]) -> GoalState:
        current = state.current_goal
        if current is not None and current.get("id") == goal["id"]:
            current = goal
        return replace(state, goals=_replace_item(state.goals, goal), current_goal=current, error=None)

    async def _reconcile(self, goal: Any) -> None:
        if _has_id(goal):
            self._set_state(self._with_entity(self._state, goal))
            return
        logger.info("Server response carried no goal, re-fetching list")
        generation = self._generation
        try:
            goals = await self.service.get_goals(**self._state.filters)
        except ApiError as e:
            logger.warning(f"Re-fetch after update failed: {e}")
            if self._is_current(generation):
                self._update(needs_refresh=True)
            return
        if not self._is_current(generation):
            self._discard("goal re-fetch")
            return
        self._update(goals=goals, error=None, needs_refresh=False)

    async def _confirmed(self, call: Callable[[], Awaitable[Any]]) -> Dict[str, Any]:
        async with self._lock:
            generation = self._generation
            try:
                goal = await call()
            except Exception as e:
                if self._is_current(generation):
                    self._update(error=e)
                raise
            if self._is_current(generation):
                await self._reconcile(goal)
            else:
                self._discard("goal edit")
            return goal


# ===========================
# Check-ins
# ===========================

class CheckInStore(Store):
    """Check-in list with pagination and optimistic status changes."""

    state_class = CheckInState

    def __init__(self, service: CheckInService):
        super().__init__()
        self.service = service

    async def fetch_checkins(self, **filters) -> List[Dict[str, Any]]:
        result = await self._load(
            "fetch_checkins",
            lambda: self.service.get_checkins(**filters),
            checkins=lambda result: result[0],
            pagination=lambda result: result[1],
            filters=lambda _: dict(filters)
        )
        return result[0]

    async def get_checkin(self, checkin_id: str) -> Dict[str, Any]:
        return await self._load(
            "get_checkin",
            lambda: self.service.get_checkin(checkin_id),
            current_checkin=lambda checkin: checkin
        )

    async def create_checkin(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Prepend the new check-in, then refresh the list (refresh errors are ignored)."""
        async with self._lock:
            generation = self._generation
            try:
                checkin = await self.service.create_checkin(data)
            except Exception as e:
                if self._is_current(generation):
                    self._update(error=e)
                raise
            if not self._is_current(generation):
                self._discard("create_checkin")
                return checkin
            self._update(checkins=[checkin] + self._state.checkins, error=None)
            try:
                checkins, pagination = await self.service.get_checkins(**self._state.filters)
            except ApiError as e:
                logger.warning(f"Refresh after create_checkin failed: {e}")
            else:
                if self._is_current(generation):
                    self._update(checkins=checkins, pagination=pagination)
            return checkin

    async def update_checkin(self, checkin_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return await self._optimistic(
            "update_checkin",
            lambda state: self._patch(state, checkin_id, lambda c: {**c, **changes}),
            lambda: self.service.update_checkin(checkin_id, changes),
            self._reconcile
        )

    async def delete_checkin(self, checkin_id: str) -> None:
        def apply(state: CheckInState) -> CheckInState:
            current = state.current_checkin
            if current is not None and current.get("id") == checkin_id:
                current = None
            return replace(
                state,
                checkins=_remove_item(state.checkins, checkin_id),
                upcoming=_remove_item(state.upcoming, checkin_id),
                overdue=_remove_item(state.overdue, checkin_id),
                current_checkin=current
            )

        async def reconcile(_) -> None:
            self._update(error=None)

        await self._optimistic(
            "delete_checkin",
            apply,
            lambda: self.service.delete_checkin(checkin_id),
            reconcile
        )

    async def complete_checkin(self, checkin_id: str, assessment: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        assessment = assessment or {}
        completed_date = _now_iso()

        def patch(checkin: Dict[str, Any]) -> Dict[str, Any]:
            merged = {**(checkin.get("progress_assessment") or {}), **assessment}
            return {
                **checkin,
                "status": "completed",
                "completed_date": completed_date,
                "progress_assessment": merged,
            }

        return await self._optimistic(
            "complete_checkin",
            lambda state: self._patch(state, checkin_id, patch),
            lambda: self.service.complete_checkin(checkin_id, assessment),
            self._reconcile
        )

    async def mark_missed(self, checkin_id: str) -> Dict[str, Any]:
        return await self._optimistic(
            "mark_missed",
            lambda state: self._patch(state, checkin_id, lambda c: {**c, "status": "missed"}),
            lambda: self.service.mark_missed(checkin_id),
            self._reconcile
        )

    async def reschedule_checkin(self, checkin_id: str, new_date: Any) -> Dict[str, Any]:
        scheduled = new_date.isoformat() if hasattr(new_date, "isoformat") else new_date
        return await self._optimistic(
            "reschedule_checkin",
            lambda state: self._patch(state, checkin_id, lambda c: {**c, "scheduled_date": scheduled}),
            lambda: self.service.reschedule_checkin(checkin_id, new_date),
            self._reconcile
        )

    async def fetch_upcoming(self, limit: int = 10) -> List[Dict[str, Any]]:
        return await self._load(
            "fetch_upcoming",
            lambda: self.service.get_upcoming(limit),
            upcoming=lambda items: items
        )

    async def fetch_overdue(self) -> List[Dict[str, Any]]:
        return await self._load(
            "fetch_overdue",
            self.service.get_overdue,
            overdue=lambda items: items
        )

    async def fetch_statistics(self, time_range: str = "month") -> Dict[str, Any]:
        return await self._load(
            "fetch_statistics",
            lambda: self.service.get_statistics(time_range),
            statistics=lambda data: data
        )

    # Helpers

    def _patch(self, state: CheckInState, checkin_id: str, patch) -> CheckInState:
        current = state.current_checkin
        if current is not None and current.get("id") == checkin_id:
            current = patch(current)
        return replace(
            state,
            checkins=_patch_item(state.checkins, checkin_id, patch),
            upcoming=_patch_item(state.upcoming, checkin_id, patch),
            overdue=_patch_item(state.overdue, checkin_id, patch),
            current_checkin=current
        )

    async def _reconcile(self, checkin: Any) -> None:
        if _has_id(checkin):
            current = self._state.current_checkin
            if current is not None and current.get("id") == checkin["id"]:
                current = checkin
            self._update(
                checkins=_replace_item(self._state.checkins, checkin),
                upcoming=_replace_item(self._state.upcoming, checkin),
                overdue=_replace_item(self._state.overdue, checkin),
                current_checkin=current,
                error=None
            )
            return
        logger.info("Server response carried no check-in, re-fetching list")
        generation = self._generation
        try:
            checkins, pagination = await self.service.get_checkins(**self._state.filters)
        except ApiError as e:
            logger.warning(f"Re-fetch after update failed: {e}")
            return
        if not self._is_current(generation):
            self._discard("check-in re-fetch")
            return
        self._update(checkins=checkins, pagination=pagination, error=None)


# ===========================
# Journeys
# ===========================

def _with_journey_progress(journey: Dict[str, Any]) -> Dict[str, Any]:
    """Recount chunk and objective progress the way the server does."""
    chunks = journey.get("chunks") or []
    completed = sum(1 for c in chunks if c.get("status") == "completed")
    objectives = [o for c in chunks for o in c.get("learning_objectives") or []]
    progress = {
        **(journey.get("progress") or {}),
        "overall": round_percent(completed, len(chunks)),
        "chunks_completed": completed,
        "total_chunks": len(chunks),
        "objectives_completed": sum(1 for o in objectives if o.get("is_completed")),
        "total_objectives": len(objectives),
        "last_updated": _now_iso(),
    }
    return {**journey, "progress": progress}


def _patch_chunk(journey: Dict[str, Any], chunk_id: str, patch) -> Dict[str, Any]:
    chunks = _patch_item(journey.get("chunks") or [], chunk_id, patch)
    return _with_journey_progress({**journey, "chunks": chunks})


class JourneyStore(Store):
    """Learning journeys, with optimistic progress and objective changes."""

    state_class = JourneyState

    def __init__(self, service: JourneyService):
        super().__init__()
        self.service = service

    async def fetch_journeys(self, **filters) -> List[Dict[str, Any]]:
        result = await self._load(
            "fetch_journeys",
            lambda: self.service.get_journeys(**filters),
            journeys=lambda result: result[0],
            pagination=lambda result: result[1],
            filters=lambda _: dict(filters)
        )
        return result[0]

    async def fetch_goal_journeys(self, goal_id: str) -> List[Dict[str, Any]]:
        return await self._load(
            "fetch_goal_journeys",
            lambda: self.service.get_goal_journeys(goal_id),
            journeys=lambda journeys: journeys,
            filters=lambda _: {"goal_id": goal_id}
        )

    async def get_journey(self, journey_id: str) -> Dict[str, Any]:
        return await self._load(
            "get_journey",
            lambda: self.service.get_journey(journey_id),
            current_journey=lambda journey: journey
        )

    async def fetch_overdue(self) -> List[Dict[str, Any]]:
        return await self._load(
            "fetch_overdue_journeys",
            self.service.get_overdue_journeys,
            overdue=lambda journeys: journeys
        )

    async def fetch_current_chunk(self, journey_id: str) -> Dict[str, Any]:
        return await self._load(
            "fetch_current_chunk",
            lambda: self.service.get_current_chunk(journey_id),
            current_chunk=lambda data: data
        )

    async def create_from_goal(self, goal_id: str) -> Dict[str, Any]:
        async with self._lock:
            generation = self._generation
            try:
                journey = await self.service.create_from_goal(goal_id)
            except Exception as e:
                if self._is_current(generation):
                    self._update(error=e)
                raise
            if not self._is_current(generation):
                self._discard("create_from_goal")
                return journey
            self._update(journeys=[journey] + self._state.journeys, error=None)
            return journey

    async def update_journey(self, journey_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return await self._optimistic(
            "update_journey",
            lambda state: self._patch(state, journey_id, lambda j: {**j, **changes}),
            lambda: self.service.update_journey(journey_id, changes),
            self._reconcile
        )

    async def delete_journey(self, journey_id: str) -> None:
        def apply(state: JourneyState) -> JourneyState:
            current = state.current_journey
            if current is not None and current.get("id") == journey_id:
                current = None
            return replace(
                state,
                journeys=_remove_item(state.journeys, journey_id),
                overdue=_remove_item(state.overdue, journey_id),
                current_journey=current
            )

        async def reconcile(_) -> None:
            self._update(error=None)

        await self._optimistic(
            "delete_journey",
            apply,
            lambda: self.service.delete_journey(journey_id),
            reconcile
        )

    async def archive_journey(self, journey_id: str, is_archived: bool = True) -> Dict[str, Any]:
        archived_at = _now_iso() if is_archived else None
        return await self._optimistic(
            "archive_journey",
            lambda state: self._patch(
                state, journey_id,
                lambda j: {**j, "is_archived": is_archived, "archived_at": archived_at}
            ),
            lambda: self.service.archive_journey(journey_id, is_archived),
            self._reconcile
        )

    async def update_chunk_progress(
        self,
        journey_id: str,
        chunk_id: str,
        progress: Optional[float] = None,
        status: Optional[str] = None
    ) -> Dict[str, Any]:
        """Show the chunk's new progress and status, recounting the journey's totals."""
        payload = {k: v for k, v in {"progress": progress, "status": status}.items() if v is not None}
        changes = dict(payload)
        if progress is not None:
            changes["progress"] = int(max(0, min(100, round(progress))))

        return await self._optimistic(
            "update_chunk_progress",
            lambda state: self._patch(
                state, journey_id,
                lambda j: _patch_chunk(j, chunk_id, lambda c: {**c, **changes})
            ),
            lambda: self.service.update_chunk_progress(journey_id, chunk_id, payload),
            self._reconcile
        )

    async def update_objective(
        self,
        journey_id: str,
        chunk_id: str,
        objective_id: str,
        changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        completed_at = _now_iso()

        def patch_objective(objective: Dict[str, Any]) -> Dict[str, Any]:
            patched = {**objective, **changes}
            if "is_completed" in changes:
                if not changes["is_completed"]:
                    patched["completed_at"] = None
                elif not objective.get("completed_at"):
                    patched["completed_at"] = completed_at
            return patched

        def patch_chunk(chunk: Dict[str, Any]) -> Dict[str, Any]:
            objectives = _patch_item(chunk.get("learning_objectives") or [], objective_id, patch_objective)
            return {**chunk, "learning_objectives": objectives}

        return await self._optimistic(
            "update_objective",
            lambda state: self._patch(state, journey_id, lambda j: _patch_chunk(j, chunk_id, patch_chunk)),
            lambda: self.service.update_objective(journey_id, chunk_id, objective_id, changes),
            self._reconcile
        )

    async def add_chunk(self, journey_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._confirmed(lambda: self.service.add_chunk(journey_id, data))

    async def update_chunk(self, journey_id: str, chunk_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._confirmed(lambda: self.service.update_chunk(journey_id, chunk_id, data))

    async def delete_chunk(self, journey_id: str, chunk_id: str) -> Dict[str, Any]:
        return await self._confirmed(lambda: self.service.delete_chunk(journey_id, chunk_id))

    async def add_objective(self, journey_id: str, chunk_id: str, objective: str) -> Dict[str, Any]:
        return await self._confirmed(lambda: self.service.add_objective(journey_id, chunk_id, objective))

    async def add_note(
        self,
        journey_id: str,
        chunk_id: str,
        content: str,
        is_important: bool = False
    ) -> Dict[str, Any]:
        return await self._confirmed(
            lambda: self.service.add_note(journey_id, chunk_id, content, is_important)
        )

    # Helpers

    def _patch(self, state: JourneyState, journey_id: str, patch) -> JourneyState:
        current = state.current_journey
        if current is not None and current.get("id") == journey_id:
            current = patch(current)
        return replace(
            state,
            journeys=_patch_item(state.journeys, journey_id, patch),
            overdue=_patch_item(state.overdue, journey_id, patch),
            current_journey=current
        )

    async def _reconcile(self, journey: Any) -> None:
        if _has_id(journey):
            current = self._state.current_journey
            if current is not None and current.get("id") == journey["id"]:
                current = journey
            self._update(
                journeys=_replace_item(self._state.journeys, journey),
                overdue=_replace_item(self._state.overdue, journey),
                current_journey=current,
                error=None
            )
            return
        logger.info("Server response carried no journey, re-fetching list")
        generation = self._generation
        try:
            journeys, pagination = await self.service.get_journeys(**self._state.filters)
        except ApiError as e:
            logger.warning(f"Re-fetch after update failed: {e}")
            return
        if not self._is_current(generation):
            self._discard("journey re-fetch")
            return
        self._update(journeys=journeys, pagination=pagination, error=None)

    async def _confirmed(self, call: Callable[[], Awaitable[Any]]) -> Dict[str, Any]:
        async with self._lock:
            generation = self._generation
            try:
                journey = await call()
            except Exception as e:
                if self._is_current(generation):
                    self._update(error=e)
                raise
            if self._is_current(generation):
                await self._reconcile(journey)
            else:
                self._discard("journey edit")
            return journey


# ===========================
# AI tutor
# ===========================

class RequestGate:
    """
    De-duplicates and paces outgoing tutor requests.

    A caller whose key is already in flight joins that call and gets its
    result or error. Requests of any key are spaced at least
    ``min_interval`` seconds apart; later ones wait for their slot.
    """

    def __init__(
        self,
        min_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        if min_interval is None:
            min_interval = get_settings().tutor_min_request_interval_seconds
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self._in_flight: Dict[str, asyncio.Future] = {}
        self._last_issue: Optional[float] = None

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def run(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        existing = self._in_flight.get(key)
        if existing is not None:
            logger.debug(f"Request {key} already in progress, joining it")
            return await asyncio.shield(existing)

        task = asyncio.ensure_future(self._issue(key, factory))
        self._in_flight[key] = task
        return await asyncio.shield(task)

    async def _issue(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        try:
            now = self.clock()
            issue_at = now
            if self._last_issue is not None:
                issue_at = max(now, self._last_issue + self.min_interval)
            # Reserve the slot before sleeping so later callers queue behind us
            self._last_issue = issue_at

            delay = issue_at - now
            if delay > 0:
                logger.info(f"Pacing tutor request {key}: waiting {delay * 1000:.0f} ms")
                await self.sleep(delay)
            return await factory()
        finally:
            self._in_flight.pop(key, None)


class AITutorStore(Store):
    """Tutor sessions and chat transcript; every network call goes through the gate."""

    state_class = AITutorState

    def __init__(self, service: AITutorService, gate: Optional[RequestGate] = None):
        super().__init__()
        self.service = service
        self.gate = gate or RequestGate()

    async def load_sessions(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        generation = self._generation

        async def call():
            return await self._tracked(
                "load_sessions",
                generation,
                lambda: self.service.get_sessions(status),
                lambda sessions: {"sessions": sessions}
            )

        return await self.gate.run(f"loadSessions:{status or ''}", call)

    async def load_session(self, session_id: str) -> Dict[str, Any]:
        generation = self._generation

        async def call():
            return await self._tracked(
                "load_session",
                generation,
                lambda: self.service.get_session(session_id),
                lambda session: {
                    "current_session": session,
                    "messages": list(session.get("messages") or []),
                }
            )

        return await self.gate.run(f"loadSession:{session_id}", call)

    async def create_session(self, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        generation = self._generation

        async def call():
            return await self._tracked(
                "create_session",
                generation,
                lambda: self.service.create_session(data),
                lambda session: {
                    "sessions": [session] + self._state.sessions,
                    "current_session": session,
                    "messages": list(session.get("messages") or []),
                }
            )

        return await self.gate.run(f"createSession:{sorted((data or {}).items())}", call)

    async def send_message(self, message: str, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send a chat message in the current session (a new one when none).

        The user's message shows up immediately; the reply is appended when
        it arrives. Identical sends while one is in flight share its reply.
        """
        generation = self._generation
        current = self._state.current_session
        session_id = current.get("id") if current else None
        key = f"sendMessage:{session_id or ''}:{message}"
        if self.gate.in_flight(key):
            return await self.gate.run(key, self._noop)

        self._update(
            is_typing=True,
            messages=self._state.messages + [
                {"role": "user", "content": message, "timestamp": _now_iso()}
            ]
        )

        async def call():
            try:
                data = await self.service.send_message(message, session_id, context)
            except Exception as e:
                if self._is_current(generation):
                    self._update(is_typing=False, error=e)
                raise
            if not self._is_current(generation):
                self._discard("send_message")
                return data
            reply = {
                "role": "assistant",
                "content": data["response"],
                "timestamp": _now_iso(),
                "metadata": {
                    "model": data.get("model"),
                    "response_time_ms": data.get("response_time_ms"),
                },
            }
            summary = data.get("session") or {"id": data.get("session_id")}
            sessions = self._state.sessions
            if any(s.get("id") == summary.get("id") for s in sessions):
                sessions = _replace_item(sessions, summary)
            else:
                sessions = [summary] + sessions
            self._update(
                is_typing=False,
                error=None,
                messages=self._state.messages + [reply],
                sessions=sessions,
                current_session={**(self._state.current_session or {}), **summary}
            )
            return data

        return await self.gate.run(key, call)

    async def quick_response(self, message: str) -> Dict[str, Any]:
        generation = self._generation

        async def call():
            return await self._tracked(
                "quick_response",
                generation,
                lambda: self.service.quick_response(message),
                None
            )

        return await self.gate.run(f"quickResponse:{message}", call)

    async def update_session_status(self, session_id: str, status: str) -> Dict[str, Any]:
        def changes(session: Dict[str, Any]) -> Dict[str, Any]:
            current = self._state.current_session
            if current is not None and current.get("id") == session_id:
                current = {**current, **session}
            return {"sessions": _replace_item(self._state.sessions, session), "current_session": current}

        generation = self._generation

        async def call():
            return await self._tracked(
                "update_session_status",
                generation,
                lambda: self.service.update_session_status(session_id, status),
                changes
            )

        return await self.gate.run(f"updateSessionStatus:{session_id}:{status}", call)

    async def delete_session(self, session_id: str) -> None:
        def changes(_) -> Dict[str, Any]:
            current = self._state.current_session
            update = {"sessions": _remove_item(self._state.sessions, session_id)}
            if current is not None and current.get("id") == session_id:
                update.update(current_session=None, messages=[])
            return update

        generation = self._generation

        async def call():
            return await self._tracked(
                "delete_session",
                generation,
                lambda: self.service.delete_session(session_id),
                changes
            )

        await self.gate.run(f"deleteSession:{session_id}", call)

    async def load_practice_problems(
        self,
        module_title: str,
        related_goal: Optional[str] = None,
        user_progress: float = 0
    ) -> Dict[str, Any]:
        generation = self._generation

        async def call():
            return await self._tracked(
                "load_practice_problems",
                generation,
                lambda: self.service.practice_problems(module_title, related_goal, user_progress),
                lambda data: {"practice_problems": data.get("problems") or []}
            )

        return await self.gate.run(f"practiceProblems:{module_title}", call)

    async def load_recommendations(self) -> Dict[str, Any]:
        generation = self._generation

        async def call():
            return await self._tracked(
                "load_recommendations",
                generation,
                self.service.get_recommendations,
                lambda data: {"recommendations": data.get("recommendations") or []}
            )

        return await self.gate.run("loadRecommendations", call)

    def start_new_session(self) -> None:
        """Forget the current session so the next message opens a new one."""
        self._update(current_session=None, messages=[])

    async def _tracked(
        self,
        action: str,
        generation: int,
        call: Callable[[], Awaitable[Any]],
        changes: Optional[Callable[[Any], Dict[str, Any]]]
    ) -> Any:
        if self._is_current(generation):
            self._update(loading=True)
        try:
            result = await call()
        except Exception as e:
            logger.warning(f"{action} failed: {e}")
            if self._is_current(generation):
                self._update(loading=False, error=e)
            raise
        if not self._is_current(generation):
            self._discard(action)
            return result
        update = changes(result) if changes else {}
        self._update(loading=False, error=None, **update)
        return result

    @staticmethod
    async def _noop() -> None:
        return None


# ===========================
# Auth
# ===========================

class AuthStore(Store):
    """
    Signed-in identity.

    Any 401 seen by the API client signs the user out and resets the
    dependent stores.
    """

    state_class = AuthState

    def __init__(self, api: ApiClient, service: AuthService, dependents: Optional[List[Store]] = None):
        super().__init__()
        self.api = api
        self.service = service
        self.dependents = list(dependents or [])
        api.on_unauthorized(self._handle_unauthorized)

    async def sign_in(self, token: str) -> Dict[str, Any]:
        """Adopt a token issued by the auth service and load the profile."""
        self.api.token_store.set(token)
        self._update(token=token, loading=True, error=None)
        generation = self._generation
        try:
            profile = await self.service.get_profile()
        except UnauthorizedError as e:
            self._update(error=e)
            raise
        except Exception as e:
            if self._is_current(generation):
                self._update(loading=False, error=e)
            raise
        if not self._is_current(generation):
            self._discard("sign_in")
            return profile
        self._update(user=profile, is_authenticated=True, loading=False)
        logger.info(f"Signed in as {profile.get('id')}")
        return profile

    def sign_out(self) -> None:
        self.api.token_store.clear()
        for store in self.dependents:
            store.reset()
        self.reset()

    def _handle_unauthorized(self) -> None:
        logger.warning("Session expired or token rejected, signing out")
        self.sign_out()
