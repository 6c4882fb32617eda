"""Learning journeys: plans generated from goals, split into dated chunks."""

import logging
import math
from datetime import datetime, timedelta
from typing import List, Dict, Any, Optional, Tuple

from core.errors import NotFoundError, AccessDeniedError, ValidationError
from core.goal_manager import GoalManager, _parse_enum, _validate_tags, _validate_text
from core.models import (
    ChunkStatus,
    GoalNote,
    GoalPriority,
    Journey,
    JourneyChunk,
    JourneyStatus,
    LearningObjective,
    Milestone,
    ensure_utc,
    utcnow,
)
from core.repository import Repository

logger = logging.getLogger(__name__)


TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
CHUNK_TITLE_MAX_LENGTH = 100
CHUNK_DESCRIPTION_MAX_LENGTH = 500
OBJECTIVE_MAX_LENGTH = 200
NOTE_MAX_LENGTH = 1000
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Generated chunks run two weeks back to back.
CHUNK_SPACING_DAYS = 14
CHUNK_LENGTH_DAYS = 13


def _parse_date(value, name: str) -> Optional[datetime]:
    try:
        return ensure_utc(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}: {value}")


def _validate_duration(weeks) -> int:
    if weeks is None or not 1 <= int(weeks) <= 4:
        raise ValidationError("Duration weeks must be between 1 and 4")
    return int(weeks)


def generate_objectives(title: str) -> List[LearningObjective]:
    """Default objectives for a chunk built from a milestone."""
    topic = title.lower()
    return [
        LearningObjective(objective=f"Understand the core concepts related to {topic}"),
        LearningObjective(objective=f"Practice implementing {topic} through exercises"),
        LearningObjective(objective="Apply knowledge to solve real-world problems"),
    ]


def chunks_from_milestones(milestones: List[Milestone], start: datetime) -> List[JourneyChunk]:
    """One two-week chunk per milestone, starting at ``start``."""
    chunks = []
    for index, milestone in enumerate(milestones):
        chunk_start = start + timedelta(days=index * CHUNK_SPACING_DAYS)
        chunks.append(JourneyChunk(
            title=milestone.title,
            description=milestone.description,
            start_date=chunk_start,
            end_date=chunk_start + timedelta(days=CHUNK_LENGTH_DAYS),
            duration_weeks=2,
            learning_objectives=generate_objectives(milestone.title),
            order=index,
        ))
    return chunks


class JourneyManager:
    """
    Application service for learning journeys.

    Ownership follows goals: a missing journey raises ``NotFoundError`` and
    a journey of another user raises ``AccessDeniedError``.
    """

    def __init__(self, repository: Repository, goals: Optional[GoalManager] = None):
        self.repository = repository
        self.goals = goals or GoalManager(repository)

    # ===========================
    # Journeys
    # ===========================

    def create_from_goal(self, user_id: str, goal_id: str, now: Optional[datetime] = None) -> Journey:
        """
        Build a journey spanning now to the goal's target date.

        Each milestone becomes a two-week chunk with three default
        objectives. The duration is split into whole months of four weeks
        plus the remaining weeks, with at least one week.
        """
        goal = self.goals.get_goal(user_id, goal_id)
        if goal.target_date is None:
            raise ValidationError("Goal needs a target date to plan a journey")

        now = now or utcnow()
        week_seconds = timedelta(weeks=1).total_seconds()
        total_weeks = math.ceil(abs((goal.target_date - now).total_seconds()) / week_seconds)
        chunks = chunks_from_milestones(sorted(goal.milestones, key=lambda m: m.order), now)

        journey = Journey(
            goal_id=goal.goal_id,
            user_id=user_id,
            title=f"{goal.title} - Learning Journey"[:TITLE_MAX_LENGTH],
            description=f"A structured learning journey for: {goal.description}"[:DESCRIPTION_MAX_LENGTH],
            duration_weeks=max(1, total_weeks % 4),
            duration_months=total_weeks // 4,
            start_date=now,
            end_date=goal.target_date,
            priority=goal.priority,
            chunks=chunks,
            tags=list(goal.tags),
        )
        journey.recalculate_progress()

        saved = self.repository.save_journey(journey)
        logger.info(f"Created journey {saved.journey_id} with {len(chunks)} chunks from goal {goal_id}")
        return saved

    def list_journeys(
        self,
        user_id: str,
        status: Optional[str] = None,
        goal_id: Optional[str] = None,
        is_archived: Optional[bool] = None,
        page: int = 1,
        limit: Optional[int] = None
    ) -> Tuple[List[Journey], Dict[str, int]]:
        """Filtered, paginated journeys ordered by start date."""
        limit = limit or DEFAULT_PAGE_SIZE
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"Page must be positive and limit between 1 and {MAX_PAGE_SIZE}")
        if status:
            _parse_enum(JourneyStatus, status, "status")

        journeys = self.repository.list_journeys(user_id)
        if status:
            journeys = [j for j in journeys if j.status.value == status]
        if goal_id:
            journeys = [j for j in journeys if j.goal_id == goal_id]
        if is_archived is not None:
            journeys = [j for j in journeys if j.is_archived == is_archived]

        journeys.sort(key=lambda j: j.start_date)
        total = len(journeys)
        offset = (page - 1) * limit

        pagination = {
            "current": page,
            "pages": math.ceil(total / limit),
            "total": total,
            "limit": limit,
        }
        return journeys[offset:offset + limit], pagination

    def journeys_for_goal(self, user_id: str, goal_id: str) -> List[Journey]:
        goal = self.goals.get_goal(user_id, goal_id)
        journeys = [j for j in self.repository.list_journeys(user_id) if j.goal_id == goal.goal_id]
        return sorted(journeys, key=lambda j: j.created_at, reverse=True)

    def get_journey(self, user_id: str, journey_id: str) -> Journey:
        journey = self.repository.get_journey(journey_id)
        if journey is None:
            raise NotFoundError("Journey not found")
        if journey.user_id != user_id:
            raise AccessDeniedError("Access denied")
        return journey

    def update_journey(self, user_id: str, journey_id: str, data: Dict[str, Any]) -> Journey:
        """Apply title, description, status, priority, tags and date updates."""
        journey = self.get_journey(user_id, journey_id)

        if data.get("title") is not None:
            _validate_text(data["title"], "Title", TITLE_MAX_LENGTH, required=True)
            journey.title = data["title"].strip()
        if data.get("description") is not None:
            _validate_text(data["description"], "Description", DESCRIPTION_MAX_LENGTH, required=True)
            journey.description = data["description"].strip()
        if data.get("priority") is not None:
            journey.priority = _parse_enum(GoalPriority, data["priority"], "priority")
        if data.get("tags") is not None:
            _validate_tags(data["tags"])
            journey.tags = [t.strip() for t in data["tags"]]
        if data.get("start_date") is not None:
            journey.start_date = _parse_date(data["start_date"], "start date")
        if data.get("end_date") is not None:
            journey.end_date = _parse_date(data["end_date"], "end date")
        if journey.end_date < journey.start_date:
            raise ValidationError("End date must be after start date")
        if data.get("status") is not None:
            journey.mark_status(_parse_enum(JourneyStatus, data["status"], "status"))

        return self._save(journey)

    def delete_journey(self, user_id: str, journey_id: str) -> None:
        journey = self.get_journey(user_id, journey_id)
        self.repository.delete_journey(journey.journey_id)
        logger.info(f"Deleted journey {journey_id}")

    def toggle_archive(self, user_id: str, journey_id: str, is_archived: bool) -> Journey:
        journey = self.get_journey(user_id, journey_id)
        journey.set_archived(is_archived)
        return self._save(journey)

    # ===========================
    # Chunks
    # ===========================

    def add_chunk(self, user_id: str, journey_id: str, data: Dict[str, Any]) -> Journey:
        """Append a chunk; start and end dates and a duration are required."""
        journey = self.get_journey(user_id, journey_id)
        _validate_text(data.get("title"), "Chunk title", CHUNK_TITLE_MAX_LENGTH, required=True)
        _validate_text(data.get("description"), "Chunk description", CHUNK_DESCRIPTION_MAX_LENGTH)
        start = _parse_date(data.get("start_date"), "start date")
        end = _parse_date(data.get("end_date"), "end date")
        if start is None or end is None:
            raise ValidationError("Chunk start and end dates are required")
        if end < start:
            raise ValidationError("End date must be after start date")

        journey.add_chunk(JourneyChunk(
            title=data["title"].strip(),
            description=(data.get("description") or "").strip(),
            start_date=start,
            end_date=end,
            duration_weeks=_validate_duration(data.get("duration_weeks")),
        ))
        return self._save(journey)

    def update_chunk(self, user_id: str, journey_id: str, chunk_id: str, data: Dict[str, Any]) -> Journey:
        journey = self.get_journey(user_id, journey_id)
        chunk = self._chunk(journey, chunk_id)

        if data.get("title") is not None:
            _validate_text(data["title"], "Chunk title", CHUNK_TITLE_MAX_LENGTH, required=True)
            chunk.title = data["title"].strip()
        if data.get("description") is not None:
            _validate_text(data["description"], "Chunk description", CHUNK_DESCRIPTION_MAX_LENGTH)
            chunk.description = data["description"].strip()
        if data.get("start_date") is not None:
            chunk.start_date = _parse_date(data["start_date"], "start date")
        if data.get("end_date") is not None:
            chunk.end_date = _parse_date(data["end_date"], "end date")
        if chunk.end_date < chunk.start_date:
            raise ValidationError("End date must be after start date")
        if data.get("duration_weeks") is not None:
            chunk.duration_weeks = _validate_duration(data["duration_weeks"])
        if data.get("status") is not None:
            chunk.status = _parse_enum(ChunkStatus, data["status"], "chunk status")

        journey.recalculate_progress()
        return self._save(journey)

    def delete_chunk(self, user_id: str, journey_id: str, chunk_id: str) -> Journey:
        journey = self.get_journey(user_id, journey_id)
        if not journey.remove_chunk(chunk_id):
            raise NotFoundError("Chunk not found")
        return self._save(journey)

    def update_chunk_progress(
        self,
        user_id: str,
        journey_id: str,
        chunk_id: str,
        progress: Optional[float] = None,
        status: Optional[str] = None
    ) -> Journey:
        """Set a chunk's progress (clamped to 0-100) and/or status."""
        journey = self.get_journey(user_id, journey_id)
        chunk = self._chunk(journey, chunk_id)
        if progress is not None:
            chunk.set_progress(progress)
        if status is not None:
            chunk.status = _parse_enum(ChunkStatus, status, "chunk status")
        journey.recalculate_progress()
        return self._save(journey)

    def current_chunk(self, user_id: str, journey_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """The running chunk, the next one to start, and the journey's progress."""
        journey = self.get_journey(user_id, journey_id)
        current = journey.current_chunk(now)
        upcoming = journey.next_chunk(now)
        return {
            "current_chunk": current.to_dict() if current else None,
            "next_chunk": upcoming.to_dict() if upcoming else None,
            "progress": journey.progress.to_dict(),
        }

    # ===========================
    # Objectives and notes
    # ===========================

    def add_objective(self, user_id: str, journey_id: str, chunk_id: str, objective: str) -> Journey:
        _validate_text(objective, "Objective", OBJECTIVE_MAX_LENGTH, required=True)
        journey = self.get_journey(user_id, journey_id)
        chunk = self._chunk(journey, chunk_id)
        chunk.learning_objectives.append(LearningObjective(objective=objective.strip()))
        journey.recalculate_progress()
        return self._save(journey)

    def update_objective(
        self,
        user_id: str,
        journey_id: str,
        chunk_id: str,
        objective_id: str,
        data: Dict[str, Any]
    ) -> Journey:
        journey = self.get_journey(user_id, journey_id)
        chunk = self._chunk(journey, chunk_id)
        objective = chunk.get_objective(objective_id)
        if objective is None:
            raise NotFoundError("Objective not found")

        if data.get("objective") is not None:
            _validate_text(data["objective"], "Objective", OBJECTIVE_MAX_LENGTH, required=True)
            objective.objective = data["objective"].strip()
        if data.get("is_completed") is not None:
            objective.set_completed(bool(data["is_completed"]))

        journey.recalculate_progress()
        return self._save(journey)

    def add_note(
        self,
        user_id: str,
        journey_id: str,
        chunk_id: str,
        content: str,
        is_important: bool = False
    ) -> Journey:
        _validate_text(content, "Note content", NOTE_MAX_LENGTH, required=True)
        journey = self.get_journey(user_id, journey_id)
        chunk = self._chunk(journey, chunk_id)
        chunk.notes.append(GoalNote(content=content.strip(), is_important=is_important))
        return self._save(journey)

    # ===========================
    # Queries
    # ===========================

    def overdue_journeys(self, user_id: str, now: Optional[datetime] = None) -> List[Journey]:
        """Active journeys past their end date, earliest end first."""
        now = now or utcnow()
        journeys = [j for j in self.repository.list_journeys(user_id) if j.is_overdue(now)]
        return sorted(journeys, key=lambda j: j.end_date)

    # ===========================
    # Helpers
    # ===========================

    def _chunk(self, journey: Journey, chunk_id: str) -> JourneyChunk:
        chunk = journey.get_chunk(chunk_id)
        if chunk is None:
            raise NotFoundError("Chunk not found")
        return chunk

    def _save(self, journey: Journey) -> Journey:
        journey.updated_at = utcnow()
        return self.repository.save_journey(journey)
