"""Storage interface for goals, journeys, check-ins and chat sessions."""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from core.models import Goal, Journey, CheckIn, ChatSession

logger = logging.getLogger(__name__)


class Repository(ABC):
    """
    Persistence boundary used by the managers.

    Implementations must hand out copies: mutating a returned object has no
    effect until it is passed back through a save method.
    """

    # Goals
    @abstractmethod
    def save_goal(self, goal: Goal) -> Goal: ...

    @abstractmethod
    def get_goal(self, goal_id: str) -> Optional[Goal]: ...

    @abstractmethod
    def list_goals(self, user_id: str) -> List[Goal]: ...

    @abstractmethod
    def delete_goal(self, goal_id: str) -> bool: ...

    # Journeys
    @abstractmethod
    def save_journey(self, journey: Journey) -> Journey: ...

    @abstractmethod
    def get_journey(self, journey_id: str) -> Optional[Journey]: ...

    @abstractmethod
    def list_journeys(self, user_id: str) -> List[Journey]: ...

    @abstractmethod
    def delete_journey(self, journey_id: str) -> bool: ...

    # Check-ins
    @abstractmethod
    def save_checkin(self, checkin: CheckIn) -> CheckIn: ...

    @abstractmethod
    def get_checkin(self, checkin_id: str) -> Optional[CheckIn]: ...

    @abstractmethod
    def list_checkins(self, user_id: Optional[str] = None) -> List[CheckIn]: ...

    @abstractmethod
    def delete_checkin(self, checkin_id: str) -> bool: ...

    # Chat sessions
    @abstractmethod
    def save_session(self, session: ChatSession) -> ChatSession: ...

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[ChatSession]: ...

    @abstractmethod
    def list_sessions(self, user_id: str) -> List[ChatSession]: ...

    @abstractmethod
    def delete_session(self, session_id: str) -> bool: ...


class InMemoryRepository(Repository):
    """Process-local repository backed by dictionaries."""

    def __init__(self):
        self._goals: Dict[str, Goal] = {}
        self._journeys: Dict[str, Journey] = {}
        self._checkins: Dict[str, CheckIn] = {}
        self._sessions: Dict[str, ChatSession] = {}
        self._lock = threading.RLock()

    def _put(self, table: Dict, key: str, item):
        with self._lock:
            table[key] = copy.deepcopy(item)
        return copy.deepcopy(item)

    def _get(self, table: Dict, key: str):
        with self._lock:
            item = table.get(key)
            return copy.deepcopy(item) if item is not None else None

    def _delete(self, table: Dict, key: str) -> bool:
        with self._lock:
            return table.pop(key, None) is not None

    def save_goal(self, goal: Goal) -> Goal:
        return self._put(self._goals, goal.goal_id, goal)

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self._get(self._goals, goal_id)

    def list_goals(self, user_id: str) -> List[Goal]:
        with self._lock:
            return [copy.deepcopy(g) for g in self._goals.values() if g.user_id == user_id]

    def delete_goal(self, goal_id: str) -> bool:
        return self._delete(self._goals, goal_id)

    def save_journey(self, journey: Journey) -> Journey:
        return self._put(self._journeys, journey.journey_id, journey)

    def get_journey(self, journey_id: str) -> Optional[Journey]:
        return self._get(self._journeys, journey_id)

    def list_journeys(self, user_id: str) -> List[Journey]:
        with self._lock:
            return [copy.deepcopy(j) for j in self._journeys.values() if j.user_id == user_id]

    def delete_journey(self, journey_id: str) -> bool:
        return self._delete(self._journeys, journey_id)

    def save_checkin(self, checkin: CheckIn) -> CheckIn:
        return self._put(self._checkins, checkin.checkin_id, checkin)

    def get_checkin(self, checkin_id: str) -> Optional[CheckIn]:
        return self._get(self._checkins, checkin_id)

    def list_checkins(self, user_id: Optional[str] = None) -> List[CheckIn]:
        with self._lock:
            return [
                copy.deepcopy(c) for c in self._checkins.values()
                if user_id is None or c.user_id == user_id
            ]

    def delete_checkin(self, checkin_id: str) -> bool:
        return self._delete(self._checkins, checkin_id)

    def save_session(self, session: ChatSession) -> ChatSession:
        return self._put(self._sessions, session.session_id, session)

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        return self._get(self._sessions, session_id)

    def list_sessions(self, user_id: str) -> List[ChatSession]:
        with self._lock:
            return [copy.deepcopy(s) for s in self._sessions.values() if s.user_id == user_id]

    def delete_session(self, session_id: str) -> bool:
        return self._delete(self._sessions, session_id)

    def clear(self) -> None:
        """Drop everything (used by tests)."""
        with self._lock:
            self._goals.clear()
            self._journeys.clear()
            self._checkins.clear()
            self._sessions.clear()
        logger.debug("In-memory repository cleared")
