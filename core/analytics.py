"""Goal and check-in analytics."""

from collections import Counter
from datetime import datetime, timedelta
from typing import List, Dict, Any, Optional

from core.models import (
    Goal,
    GoalStatus,
    CheckIn,
    CheckInStatus,
    utcnow,
    round_percent,
)


TIME_RANGE_DAYS = {
    "week": 7,
    "month": 30,
    "quarter": 90,
    "year": 365,
}


def range_start(
    time_range: Optional[str],
    default: str = "all",
    now: Optional[datetime] = None
) -> Optional[datetime]:
    """
    Start of the analytics window for a named time range.

    Unknown names fall back to ``default``; ``"all"`` has no lower bound.
    """
    name = time_range if time_range in TIME_RANGE_DAYS or time_range == "all" else default
    if name not in TIME_RANGE_DAYS:
        return None
    return (now or utcnow()) - timedelta(days=TIME_RANGE_DAYS[name])


def _mean(values: List[float]) -> float:
    if not values:
        return 0
    return round(sum(values) / len(values), 2)


class AnalyticsCalculator:
    """
    Aggregates a user's goals and check-ins into dashboard counters.

    Both calculations are pure functions of the lists handed in, so the
    same calculator can be shared between requests.
    """

    def goal_analytics(
        self,
        goals: List[Goal],
        time_range: str = "all",
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Summarize goals created within the time range.

        Returns:
            Totals, rounded average progress and breakdowns by
            category, complexity and status
        """
        now = now or utcnow()
        start = range_start(time_range, default="all", now=now)
        if start is not None:
            goals = [g for g in goals if g.created_at >= start]

        average = 0
        if goals:
            average = round_percent(sum(g.progress.overall for g in goals), len(goals) * 100)

        return {
            "total_goals": len(goals),
            "active_goals": sum(1 for g in goals if g.status == GoalStatus.ACTIVE),
            "completed_goals": sum(1 for g in goals if g.status == GoalStatus.COMPLETED),
            "overdue_goals": sum(1 for g in goals if g.is_overdue(now)),
            "average_progress": average,
            "goals_by_category": dict(Counter(g.category.value for g in goals)),
            "goals_by_complexity": dict(Counter(g.complexity.value for g in goals)),
            "goals_by_status": dict(Counter(g.status.value for g in goals)),
        }

    def checkin_statistics(
        self,
        checkins: List[CheckIn],
        time_range: str = "month",
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Summarize check-ins scheduled within the time range."""
        start = range_start(time_range, default="month", now=now)
        if start is not None:
            checkins = [c for c in checkins if c.scheduled_date >= start]

        counts = Counter(c.status for c in checkins)
        assessments = [c.progress_assessment for c in checkins if c.progress_assessment]

        ratings = [a.rating for a in assessments if a.rating is not None]
        progress = [a.overall_progress for a in assessments if a.overall_progress is not None]
        moods = [a.mood.score for a in assessments if a.mood is not None]

        return {
            "total": len(checkins),
            "completed": counts[CheckInStatus.COMPLETED],
            "missed": counts[CheckInStatus.MISSED],
            "pending": counts[CheckInStatus.PENDING],
            "average_rating": _mean(ratings),
            "average_progress": _mean(progress),
            "average_mood": _mean(moods),
            "completion_rate": round_percent(counts[CheckInStatus.COMPLETED], len(checkins)),
        }
