"""Check-in scheduling, completion and reminder sweeps."""

import logging
import math
from datetime import datetime, timedelta
from typing import List, Dict, Any, Optional, Tuple

from config import get_settings
from core.analytics import AnalyticsCalculator
from core.errors import NotFoundError, AccessDeniedError, ValidationError
from core.models import (
    CheckIn,
    CheckInFrequency,
    CheckInStatus,
    CheckInType,
    Goal,
    ReminderSettings,
    ensure_utc,
    utcnow,
)
from core.repository import Repository

logger = logging.getLogger(__name__)


UPDATABLE_FIELDS = (
    "title",
    "description",
    "type",
    "status",
    "frequency",
    "custom_frequency",
    "scheduled_date",
    "reminder_settings",
    "is_recurring",
    "recurrence_end_date",
)

REMINDER_METHODS = ("email", "push", "in-app")


def _parse_enum(enum_cls, value, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value}")


def _parse_date(value, name: str) -> Optional[datetime]:
    try:
        return ensure_utc(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}: {value}")


def _validate_custom_frequency(custom: Dict[str, Any]) -> Tuple[Optional[int], Optional[int]]:
    days = custom.get("days")
    hours = custom.get("hours")
    if days is not None and not 1 <= days <= 365:
        raise ValidationError("Custom frequency days must be between 1 and 365")
    if hours is not None and not 0 <= hours <= 23:
        raise ValidationError("Custom frequency hours must be between 0 and 23")
    return days, hours


def _reminder_settings(data: Optional[Dict[str, Any]]) -> ReminderSettings:
    settings = ReminderSettings.from_dict(data)
    for method in settings.methods:
        if method not in REMINDER_METHODS:
            raise ValidationError(f"Invalid reminder method: {method}")
    return settings


def next_occurrence(current: datetime, frequency: str) -> datetime:
    """Step a recurring series forward by one period."""
    template = CheckIn(
        scheduled_date=current,
        frequency=CheckInFrequency(frequency),
        is_recurring=False
    )
    return template.calculate_next_scheduled_date()


class CheckInManager:
    """
    Application service for check-ins.

    Check-ins are always bound to a goal owned by the same user; goal
    progress follows completed assessments.
    """

    def __init__(self, repository: Repository, analytics: Optional[AnalyticsCalculator] = None):
        self.repository = repository
        self.analytics = analytics or AnalyticsCalculator()
        self.settings = get_settings()

    # ===========================
    # CRUD
    # ===========================

    def create_checkin(self, user_id: str, data: Dict[str, Any]) -> CheckIn:
        """Create a check-in for one of the user's goals."""
        if not data.get("goal_id"):
            raise ValidationError("Goal ID is required")
        goal = self._owned_goal(user_id, data["goal_id"])

        days, hours = _validate_custom_frequency(data.get("custom_frequency") or {})
        checkin = CheckIn(
            user_id=user_id,
            goal_id=goal.goal_id,
            title=data.get("title") or f"Check-in for {goal.title}",
            description=data.get("description") or "",
            type=_parse_enum(CheckInType, data.get("type") or "goal", "type"),
            frequency=_parse_enum(CheckInFrequency, data.get("frequency") or "weekly", "frequency"),
            custom_frequency_days=days,
            custom_frequency_hours=hours,
            scheduled_date=_parse_date(data.get("scheduled_date"), "scheduled date") or utcnow(),
            reminder_settings=_reminder_settings(data.get("reminder_settings")),
            is_recurring=data.get("is_recurring", True),
            recurrence_end_date=_parse_date(data.get("recurrence_end_date"), "recurrence end date"),
        )

        saved = self.repository.save_checkin(checkin)
        logger.info(f"Created check-in {saved.checkin_id} for goal {goal.goal_id}")
        return saved

    def list_checkins(
        self,
        user_id: str,
        status: Optional[str] = None,
        goal_id: Optional[str] = None,
        frequency: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: Optional[int] = None,
        sort_order: str = "asc"
    ) -> Tuple[List[CheckIn], Dict[str, int]]:
        """
        Filtered, paginated check-ins ordered by scheduled date.

        Returns:
            Tuple of (page of check-ins, pagination dict with
            current/pages/total/limit)
        """
        limit = limit or self.settings.default_page_size
        if page < 1 or limit < 1:
            raise ValidationError("Page and limit must be positive")

        checkins = self.repository.list_checkins(user_id)
        if status:
            checkins = [c for c in checkins if c.status.value == status]
        if goal_id:
            checkins = [c for c in checkins if c.goal_id == goal_id]
        if frequency:
            checkins = [c for c in checkins if c.frequency.value == frequency]
        if start_date:
            checkins = [c for c in checkins if c.scheduled_date >= ensure_utc(start_date)]
        if end_date:
            checkins = [c for c in checkins if c.scheduled_date <= ensure_utc(end_date)]

        checkins.sort(key=lambda c: c.scheduled_date, reverse=(sort_order == "desc"))
        total = len(checkins)
        offset = (page - 1) * limit

        pagination = {
            "current": page,
            "pages": math.ceil(total / limit),
            "total": total,
            "limit": limit,
        }
        return checkins[offset:offset + limit], pagination

    def get_checkin(self, user_id: str, checkin_id: str) -> CheckIn:
        checkin = self.repository.get_checkin(checkin_id)
        if checkin is None:
            raise NotFoundError("Check-in not found")
        if checkin.user_id != user_id:
            raise AccessDeniedError("Access denied")
        return checkin

    def update_checkin(self, user_id: str, checkin_id: str, data: Dict[str, Any]) -> CheckIn:
        """Merge whitelisted fields; the next date follows schedule changes."""
        checkin = self.get_checkin(user_id, checkin_id)
        updates = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None}

        if "title" in updates:
            checkin.title = updates["title"]
        if "description" in updates:
            checkin.description = updates["description"]
        if "type" in updates:
            checkin.type = _parse_enum(CheckInType, updates["type"], "type")
        if "status" in updates:
            checkin.status = _parse_enum(CheckInStatus, updates["status"], "status")
        if "frequency" in updates:
            checkin.frequency = _parse_enum(CheckInFrequency, updates["frequency"], "frequency")
        if "custom_frequency" in updates:
            checkin.custom_frequency_days, checkin.custom_frequency_hours = (
                _validate_custom_frequency(updates["custom_frequency"])
            )
        if "scheduled_date" in updates:
            checkin.scheduled_date = _parse_date(updates["scheduled_date"], "scheduled date")
        if "reminder_settings" in updates:
            checkin.reminder_settings = _reminder_settings(updates["reminder_settings"])
        if "is_recurring" in updates:
            checkin.is_recurring = updates["is_recurring"]
        if "recurrence_end_date" in updates:
            checkin.recurrence_end_date = _parse_date(updates["recurrence_end_date"], "recurrence end date")

        if "frequency" in updates or "scheduled_date" in updates or "custom_frequency" in updates:
            checkin.next_scheduled_date = checkin.calculate_next_scheduled_date()

        return self._save(checkin)

    def delete_checkin(self, user_id: str, checkin_id: str) -> None:
        checkin = self.get_checkin(user_id, checkin_id)
        self.repository.delete_checkin(checkin.checkin_id)
        logger.info(f"Deleted check-in {checkin_id}")

    # ===========================
    # State transitions
    # ===========================

    def complete_checkin(
        self,
        user_id: str,
        checkin_id: str,
        assessment: Optional[Dict[str, Any]] = None
    ) -> CheckIn:
        """Complete a check-in; an overall_progress value also moves the goal."""
        assessment = assessment or {}
        checkin = self.get_checkin(user_id, checkin_id)
        try:
            checkin.mark_completed(assessment)
        except ValueError as e:
            raise ValidationError(f"Invalid assessment: {e}")
        saved = self._save(checkin)

        if assessment.get("overall_progress") is not None:
            self._update_goal_progress(saved.goal_id, assessment["overall_progress"])
        return saved

    def miss_checkin(self, user_id: str, checkin_id: str) -> CheckIn:
        checkin = self.get_checkin(user_id, checkin_id)
        checkin.mark_missed()
        return self._save(checkin)

    def reschedule_checkin(self, user_id: str, checkin_id: str, new_date: Any) -> CheckIn:
        parsed = _parse_date(new_date, "date")
        if parsed is None:
            raise ValidationError("New date is required")
        checkin = self.get_checkin(user_id, checkin_id)
        checkin.reschedule(parsed)
        return self._save(checkin)

    # ===========================
    # Queries
    # ===========================

    def upcoming_checkins(self, user_id: str, limit: int = 10, now: Optional[datetime] = None) -> List[CheckIn]:
        """Open check-ins scheduled from now on, soonest first."""
        now = now or utcnow()
        checkins = [
            c for c in self.repository.list_checkins(user_id)
            if c.status in CheckInStatus.open_states() and c.scheduled_date >= now
        ]
        checkins.sort(key=lambda c: c.scheduled_date)
        return checkins[:limit]

    def overdue_checkins(self, user_id: str, now: Optional[datetime] = None) -> List[CheckIn]:
        now = now or utcnow()
        checkins = [
            c for c in self.repository.list_checkins(user_id)
            if c.status in CheckInStatus.open_states() and c.scheduled_date < now
        ]
        checkins.sort(key=lambda c: c.scheduled_date)
        return checkins

    def checkins_by_date_range(self, user_id: str, start_date: Any, end_date: Any) -> List[CheckIn]:
        start = _parse_date(start_date, "start date")
        end = _parse_date(end_date, "end date")
        if start is None or end is None:
            raise ValidationError("Start date and end date are required")
        checkins = [
            c for c in self.repository.list_checkins(user_id)
            if start <= c.scheduled_date <= end
        ]
        checkins.sort(key=lambda c: c.scheduled_date)
        return checkins

    def calendar(self, user_id: str, start_date: Any, end_date: Any) -> Dict[str, List[Dict[str, Any]]]:
        """Calendar events in a date range, grouped by ISO date."""
        now = utcnow()
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for checkin in self.checkins_by_date_range(user_id, start_date, end_date):
            day = checkin.scheduled_date.date().isoformat()
            grouped.setdefault(day, []).append({
                "id": checkin.checkin_id,
                "title": checkin.title,
                "start": checkin.scheduled_date.isoformat(),
                "end": checkin.scheduled_date.isoformat(),
                "status": checkin.status.value,
                "type": checkin.type.value,
                "goal_id": checkin.goal_id,
                "frequency": checkin.frequency.value,
                "is_overdue": checkin.is_overdue(now),
            })
        return grouped

    def statistics(self, user_id: str, time_range: str = "month") -> Dict[str, Any]:
        return self.analytics.checkin_statistics(self.repository.list_checkins(user_id), time_range)

    # ===========================
    # Recurring series and sweeps
    # ===========================

    def create_recurring_checkins(
        self,
        user_id: str,
        goal_id: str,
        frequency: str,
        start_date: Any,
        end_date: Any = None,
        reminder_settings: Optional[Dict[str, Any]] = None
    ) -> List[CheckIn]:
        """
        Create a series of check-ins from start_date.

        The series ends at end_date (or one year out) and is capped at
        ``max_recurring_checkins`` entries.
        """
        goal = self._owned_goal(user_id, goal_id)
        frequency_enum = _parse_enum(CheckInFrequency, frequency, "frequency")
        if frequency_enum == CheckInFrequency.CUSTOM:
            raise ValidationError("Recurring series need a fixed frequency")

        current = _parse_date(start_date, "start date")
        if current is None:
            raise ValidationError("Start date is required")
        end = _parse_date(end_date, "end date")
        last = end or utcnow() + timedelta(days=365)
        reminders = reminder_settings or ReminderSettings().to_dict()

        created = []
        while current <= last and len(created) < self.settings.max_recurring_checkins:
            checkin = CheckIn(
                user_id=user_id,
                goal_id=goal.goal_id,
                title=f"{goal.title} - {frequency_enum.value} Check-in",
                description=f"Regular {frequency_enum.value} check-in for goal progress tracking",
                type=CheckInType.GOAL,
                frequency=frequency_enum,
                scheduled_date=current,
                reminder_settings=_reminder_settings(reminders),
                is_recurring=True,
                recurrence_end_date=end,
            )
            created.append(self.repository.save_checkin(checkin))
            current = next_occurrence(current, frequency_enum.value)

        logger.info(f"Created {len(created)} recurring check-ins for goal {goal_id}")
        return created

    def mark_overdue_checkins(self, now: Optional[datetime] = None) -> List[CheckIn]:
        """Mark every open check-in scheduled in the past as missed."""
        now = now or utcnow()
        missed = []
        for checkin in self.repository.list_checkins():
            if checkin.status in CheckInStatus.open_states() and checkin.scheduled_date < now:
                checkin.mark_missed()
                missed.append(self._save(checkin))
        if missed:
            logger.info(f"Marked {len(missed)} overdue check-ins as missed")
        return missed

    def checkins_needing_reminders(self, now: Optional[datetime] = None) -> List[CheckIn]:
        """Open check-ins with reminders enabled that fall due within the lookahead window."""
        now = now or utcnow()
        horizon = now + timedelta(minutes=self.settings.reminder_lookahead_minutes)
        return [
            c for c in self.repository.list_checkins()
            if c.status in CheckInStatus.open_states()
            and c.reminder_settings.enabled
            and now <= c.scheduled_date <= horizon
        ]

    # ===========================
    # Helpers
    # ===========================

    def _owned_goal(self, user_id: str, goal_id: str) -> Goal:
        goal = self.repository.get_goal(goal_id)
        if goal is None:
            raise NotFoundError("Goal not found")
        if goal.user_id != user_id:
            raise AccessDeniedError("Access denied")
        return goal

    def _update_goal_progress(self, goal_id: str, percentage: float) -> None:
        goal = self.repository.get_goal(goal_id)
        if goal is None:
            logger.warning(f"Goal {goal_id} vanished before its progress could be updated")
            return
        goal.set_progress(percentage)
        goal.updated_at = utcnow()
        self.repository.save_goal(goal)

    def _save(self, checkin: CheckIn) -> CheckIn:
        checkin.updated_at = utcnow()
        return self.repository.save_checkin(checkin)
