"""Goal management: ownership checks, milestones, progress and notes."""

import logging
from datetime import datetime
from typing import List, Dict, Any, Optional

from core.analytics import AnalyticsCalculator
from core.errors import NotFoundError, AccessDeniedError, ValidationError
from core.models import (
    Goal,
    GoalCategory,
    GoalComplexity,
    GoalPriority,
    GoalStatus,
    Milestone,
    MilestoneStatus,
    ensure_utc,
    utcnow,
)
from core.repository import Repository

logger = logging.getLogger(__name__)


TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
TAG_MAX_LENGTH = 30
MILESTONE_TITLE_MAX_LENGTH = 100
MILESTONE_DESCRIPTION_MAX_LENGTH = 500

UPDATABLE_FIELDS = (
    "title",
    "description",
    "category",
    "complexity",
    "status",
    "priority",
    "target_date",
    "tags",
)


def _validate_text(value: Optional[str], name: str, max_length: int, required: bool = False) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{name} is required")
        return
    if len(value) > max_length:
        raise ValidationError(f"{name} cannot exceed {max_length} characters")


def _validate_tags(tags: Optional[List[str]]) -> None:
    for tag in tags or []:
        if len(tag) > TAG_MAX_LENGTH:
            raise ValidationError(f"Tag cannot exceed {TAG_MAX_LENGTH} characters")


def _parse_enum(enum_cls, value, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value}")


class GoalManager:
    """
    Application service for goals owned by a user.

    Every lookup checks ownership: missing goals raise ``NotFoundError``,
    goals of another user raise ``AccessDeniedError``.
    """

    def __init__(self, repository: Repository, analytics: Optional[AnalyticsCalculator] = None):
        self.repository = repository
        self.analytics = analytics or AnalyticsCalculator()

    # ===========================
    # CRUD
    # ===========================

    def create_goal(self, user_id: str, data: Dict[str, Any]) -> Goal:
        """Create a goal, with any milestones appended in order."""
        _validate_text(data.get("title"), "Title", TITLE_MAX_LENGTH, required=True)
        _validate_text(data.get("description"), "Description", DESCRIPTION_MAX_LENGTH)
        _validate_tags(data.get("tags"))

        goal = Goal(
            user_id=user_id,
            title=data["title"].strip(),
            description=data.get("description") or "",
            category=_parse_enum(GoalCategory, data.get("category") or "learning", "category"),
            complexity=_parse_enum(GoalComplexity, data.get("complexity") or "beginner", "complexity"),
            status=_parse_enum(GoalStatus, data.get("status") or "draft", "status"),
            priority=_parse_enum(GoalPriority, data.get("priority") or "medium", "priority"),
            target_date=ensure_utc(data.get("target_date")),
            tags=[t.strip() for t in data.get("tags") or []],
        )
        for milestone_data in data.get("milestones") or []:
            goal.add_milestone(self._build_milestone(milestone_data))
        goal.recalculate_progress()

        saved = self.repository.save_goal(goal)
        logger.info(f"Created goal {saved.goal_id} for user {user_id}")
        return saved

    def list_goals(
        self,
        user_id: str,
        status: Optional[str] = None,
        category: Optional[str] = None,
        complexity: Optional[str] = None,
        is_archived: Optional[bool] = None,
        tag: Optional[str] = None
    ) -> List[Goal]:
        """List a user's goals, newest first."""
        goals = self.repository.list_goals(user_id)
        if status:
            goals = [g for g in goals if g.status.value == status]
        if category:
            goals = [g for g in goals if g.category.value == category]
        if complexity:
            goals = [g for g in goals if g.complexity.value == complexity]
        if is_archived is not None:
            goals = [g for g in goals if g.is_archived == is_archived]
        if tag:
            goals = [g for g in goals if tag in g.tags]
        return sorted(goals, key=lambda g: g.created_at, reverse=True)

    def get_goal(self, user_id: str, goal_id: str) -> Goal:
        goal = self.repository.get_goal(goal_id)
        if goal is None:
            raise NotFoundError("Goal not found")
        if goal.user_id != user_id:
            raise AccessDeniedError("Access denied")
        return goal

    def update_goal(self, user_id: str, goal_id: str, data: Dict[str, Any]) -> Goal:
        """Apply whitelisted field updates; unknown keys are ignored."""
        goal = self.get_goal(user_id, goal_id)
        updates = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None}

        if "title" in updates:
            _validate_text(updates["title"], "Title", TITLE_MAX_LENGTH, required=True)
            goal.title = updates["title"].strip()
        if "description" in updates:
            _validate_text(updates["description"], "Description", DESCRIPTION_MAX_LENGTH)
            goal.description = updates["description"]
        if "category" in updates:
            goal.category = _parse_enum(GoalCategory, updates["category"], "category")
        if "complexity" in updates:
            goal.complexity = _parse_enum(GoalComplexity, updates["complexity"], "complexity")
        if "priority" in updates:
            goal.priority = _parse_enum(GoalPriority, updates["priority"], "priority")
        if "target_date" in updates:
            goal.target_date = ensure_utc(updates["target_date"])
        if "tags" in updates:
            _validate_tags(updates["tags"])
            goal.tags = [t.strip() for t in updates["tags"]]
        if "status" in updates:
            goal.mark_status(_parse_enum(GoalStatus, updates["status"], "status"))

        return self._save(goal)

    def delete_goal(self, user_id: str, goal_id: str) -> None:
        """Delete a goal together with its check-ins and journeys."""
        goal = self.get_goal(user_id, goal_id)
        removed = 0
        for checkin in self.repository.list_checkins(user_id):
            if checkin.goal_id == goal.goal_id:
                self.repository.delete_checkin(checkin.checkin_id)
                removed += 1
        journeys = 0
        for journey in self.repository.list_journeys(user_id):
            if journey.goal_id == goal.goal_id:
                self.repository.delete_journey(journey.journey_id)
                journeys += 1
        self.repository.delete_goal(goal.goal_id)
        logger.info(f"Deleted goal {goal_id}, {removed} check-ins and {journeys} journeys")

    # ===========================
    # Milestones
    # ===========================

    def add_milestone(self, user_id: str, goal_id: str, data: Dict[str, Any]) -> Goal:
        goal = self.get_goal(user_id, goal_id)
        goal.add_milestone(self._build_milestone(data))
        return self._save(goal)

    def update_milestone(
        self,
        user_id: str,
        goal_id: str,
        milestone_id: str,
        data: Dict[str, Any]
    ) -> Goal:
        """Merge milestone fields and recompute the goal's progress."""
        goal = self.get_goal(user_id, goal_id)
        milestone = goal.get_milestone(milestone_id)
        if milestone is None:
            raise NotFoundError("Milestone not found")

        if data.get("title") is not None:
            _validate_text(data["title"], "Milestone title", MILESTONE_TITLE_MAX_LENGTH, required=True)
            milestone.title = data["title"]
        if data.get("description") is not None:
            _validate_text(data["description"], "Milestone description", MILESTONE_DESCRIPTION_MAX_LENGTH)
            milestone.description = data["description"]
        if data.get("target_date") is not None:
            milestone.target_date = ensure_utc(data["target_date"])
        if data.get("status") is not None:
            milestone.status = _parse_enum(MilestoneStatus, data["status"], "milestone status")

        goal.recalculate_progress()
        return self._save(goal)

    def delete_milestone(self, user_id: str, goal_id: str, milestone_id: str) -> Goal:
        goal = self.get_goal(user_id, goal_id)
        if not goal.remove_milestone(milestone_id):
            raise NotFoundError("Milestone not found")
        return self._save(goal)

    # ===========================
    # Progress, notes, archive
    # ===========================

    def update_progress(self, user_id: str, goal_id: str, data: Dict[str, Any]) -> Goal:
        """
        Update progress from a milestone status change and/or an explicit value.

        Args:
            data: ``milestone_id`` + ``status`` and/or ``overall_progress``
        """
        goal = self.get_goal(user_id, goal_id)

        if data.get("milestone_id"):
            milestone = goal.get_milestone(data["milestone_id"])
            if milestone is None:
                raise NotFoundError("Milestone not found")
            if data.get("status"):
                milestone.status = _parse_enum(MilestoneStatus, data["status"], "milestone status")
            goal.recalculate_progress()

        if data.get("overall_progress") is not None:
            goal.set_progress(data["overall_progress"])

        return self._save(goal)

    def set_progress(self, user_id: str, goal_id: str, percentage: float) -> Goal:
        goal = self.get_goal(user_id, goal_id)
        goal.set_progress(percentage)
        return self._save(goal)

    def add_note(self, user_id: str, goal_id: str, content: str, is_important: bool = False) -> Goal:
        if not content or not content.strip():
            raise ValidationError("Note content is required")
        goal = self.get_goal(user_id, goal_id)
        goal.add_note(content.strip(), is_important)
        return self._save(goal)

    def toggle_archive(self, user_id: str, goal_id: str, is_archived: bool) -> Goal:
        goal = self.get_goal(user_id, goal_id)
        goal.set_archived(is_archived)
        return self._save(goal)

    # ===========================
    # Queries
    # ===========================

    def overdue_goals(self, user_id: str, now: Optional[datetime] = None) -> List[Goal]:
        """Active goals past their target date, earliest deadline first."""
        now = now or utcnow()
        goals = [g for g in self.repository.list_goals(user_id) if g.is_overdue(now)]
        return sorted(goals, key=lambda g: g.target_date)

    def goal_analytics(self, user_id: str, time_range: str = "all") -> Dict[str, Any]:
        return self.analytics.goal_analytics(self.repository.list_goals(user_id), time_range)

    # ===========================
    # Helpers
    # ===========================

    def _build_milestone(self, data: Dict[str, Any]) -> Milestone:
        _validate_text(data.get("title"), "Milestone title", MILESTONE_TITLE_MAX_LENGTH, required=True)
        _validate_text(data.get("description"), "Milestone description", MILESTONE_DESCRIPTION_MAX_LENGTH)
        return Milestone(
            title=data["title"],
            description=data.get("description") or "",
            target_date=ensure_utc(data.get("target_date")),
            status=_parse_enum(MilestoneStatus, data.get("status") or "pending", "milestone status"),
        )

    def _save(self, goal: Goal) -> Goal:
        goal.updated_at = utcnow()
        return self.repository.save_goal(goal)
