"""Tests for the goal, check-in and chat session services."""

from datetime import datetime, timedelta, timezone

import pytest

from config import get_settings
from core import (
    AccessDeniedError,
    ChatSessionManager,
    CheckInManager,
    GoalManager,
    InMemoryRepository,
    JourneyManager,
    NotFoundError,
    ValidationError,
)
from core.models import ChunkStatus, CheckInStatus, GoalStatus, JourneyStatus, MessageRole


def _dt(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestGoalManager:
    """Tests for GoalManager."""

    def setup_method(self):
        self.repository = InMemoryRepository()
        self.manager = GoalManager(self.repository)

    def _create(self, user_id="u1", **data):
        data.setdefault("title", "Learn Rust")
        return self.manager.create_goal(user_id, data)

    def test_create_goal_with_milestones(self):
        """Test milestones are ordered and progress computed on create."""
        goal = self._create(milestones=[
            {"title": "Book", "status": "completed"},
            {"title": "Project"},
        ])

        assert [m.order for m in goal.milestones] == [0, 1]
        assert goal.progress.overall == 50
        assert goal.status == GoalStatus.ACTIVE

    def test_create_goal_requires_title(self):
        """Test a blank title is rejected."""
        with pytest.raises(ValidationError):
            self.manager.create_goal("u1", {"title": "   "})

    def test_create_goal_limits(self):
        """Test title and tag length limits."""
        with pytest.raises(ValidationError):
            self._create(title="x" * 201)
        with pytest.raises(ValidationError):
            self._create(tags=["t" * 31])

    def test_create_goal_invalid_enum(self):
        """Test unknown categories are validation errors."""
        with pytest.raises(ValidationError):
            self._create(category="gardening")

    def test_get_goal_ownership(self):
        """Test missing goals are 404 and foreign goals are 403."""
        goal = self._create()

        with pytest.raises(NotFoundError):
            self.manager.get_goal("u1", "missing")
        with pytest.raises(AccessDeniedError):
            self.manager.get_goal("u2", goal.goal_id)

    def test_list_goals_filters(self):
        """Test filtering by status, archive flag and tag."""
        a = self._create(tags=["rust"])
        b = self._create(title="Run", status="active")
        self.manager.toggle_archive("u1", a.goal_id, True)
        self._create(user_id="u2")

        assert {g.goal_id for g in self.manager.list_goals("u1")} == {a.goal_id, b.goal_id}
        assert [g.goal_id for g in self.manager.list_goals("u1", status="active")] == [b.goal_id]
        assert [g.goal_id for g in self.manager.list_goals("u1", is_archived=True)] == [a.goal_id]
        assert [g.goal_id for g in self.manager.list_goals("u1", tag="rust")] == [a.goal_id]

    def test_update_goal_ignores_unknown_fields(self):
        """Test only whitelisted fields are applied."""
        goal = self._create()

        updated = self.manager.update_goal("u1", goal.goal_id, {
            "title": "Learn Rust well",
            "user_id": "u2",
            "progress": {"overall": 99},
        })

        assert updated.title == "Learn Rust well"
        assert updated.user_id == "u1"
        assert updated.progress.overall == 0

    def test_update_status_completed_stamps_date(self):
        """Test completing through an update records completed_at."""
        goal = self._create()

        updated = self.manager.update_goal("u1", goal.goal_id, {"status": "completed"})

        assert updated.completed_at is not None

    def test_delete_goal_cascades_checkins(self):
        """Test deleting a goal removes its check-ins."""
        goal = self._create()
        checkins = CheckInManager(self.repository)
        checkins.create_checkin("u1", {"goal_id": goal.goal_id})

        self.manager.delete_goal("u1", goal.goal_id)

        assert self.repository.get_goal(goal.goal_id) is None
        assert self.repository.list_checkins("u1") == []

    def test_delete_goal_cascades_journeys(self):
        """Test deleting a goal removes the journeys planned from it."""
        goal = self._create(target_date="2030-01-01T00:00:00Z")
        other = self._create(title="Other", target_date="2030-01-01T00:00:00Z")
        journeys = JourneyManager(self.repository)
        journeys.create_from_goal("u1", goal.goal_id)
        kept = journeys.create_from_goal("u1", other.goal_id)

        self.manager.delete_goal("u1", goal.goal_id)

        assert [j.journey_id for j in self.repository.list_journeys("u1")] == [kept.journey_id]

    def test_milestone_lifecycle(self):
        """Test add, update and delete of milestones recompute progress."""
        goal = self._create()
        goal = self.manager.add_milestone("u1", goal.goal_id, {"title": "One"})
        goal = self.manager.add_milestone("u1", goal.goal_id, {"title": "Two"})
        first = goal.milestones[0].milestone_id

        goal = self.manager.update_milestone("u1", goal.goal_id, first, {"status": "completed"})
        assert goal.progress.overall == 50

        goal = self.manager.delete_milestone("u1", goal.goal_id, goal.milestones[1].milestone_id)
        assert goal.progress.overall == 100
        assert goal.status == GoalStatus.COMPLETED

    def test_update_missing_milestone(self):
        """Test unknown milestone ids are 404."""
        goal = self._create()
        with pytest.raises(NotFoundError):
            self.manager.update_milestone("u1", goal.goal_id, "nope", {"status": "completed"})
        with pytest.raises(NotFoundError):
            self.manager.delete_milestone("u1", goal.goal_id, "nope")

    def test_update_progress_explicit_value(self):
        """Test overall_progress sets progress directly."""
        goal = self._create()

        updated = self.manager.update_progress("u1", goal.goal_id, {"overall_progress": 30})

        assert updated.progress.overall == 30
        assert updated.status == GoalStatus.ACTIVE

    def test_update_progress_by_milestone(self):
        """Test a milestone status change through update_progress."""
        goal = self._create(milestones=[{"title": "A"}, {"title": "B"}, {"title": "C"}])

        updated = self.manager.update_progress("u1", goal.goal_id, {
            "milestone_id": goal.milestones[0].milestone_id,
            "status": "completed",
        })

        assert updated.progress.overall == 33
        assert updated.progress.milestones_completed == 1

    def test_add_note(self):
        """Test notes are appended and empty notes rejected."""
        goal = self._create()

        updated = self.manager.add_note("u1", goal.goal_id, " Week one done ", is_important=True)

        assert updated.notes[0].content == "Week one done"
        assert updated.notes[0].is_important is True
        with pytest.raises(ValidationError):
            self.manager.add_note("u1", goal.goal_id, "  ")

    def test_overdue_goals_sorted(self):
        """Test overdue goals are sorted by target date."""
        now = datetime.now(timezone.utc)
        late = self._create(status="active", target_date=now - timedelta(days=10))
        later = self._create(status="active", target_date=now - timedelta(days=1))
        self._create(status="active", target_date=now + timedelta(days=5))

        overdue = self.manager.overdue_goals("u1")

        assert [g.goal_id for g in overdue] == [late.goal_id, later.goal_id]

    def test_goal_analytics(self):
        """Test analytics only see the user's goals."""
        self._create()
        self._create(user_id="u2")

        assert self.manager.goal_analytics("u1")["total_goals"] == 1


class TestCheckInManager:
    """Tests for CheckInManager."""

    def setup_method(self):
        self.repository = InMemoryRepository()
        self.goals = GoalManager(self.repository)
        self.manager = CheckInManager(self.repository)
        self.goal = self.goals.create_goal("u1", {"title": "Run a marathon"})

    def _create(self, **data):
        data.setdefault("goal_id", self.goal.goal_id)
        return self.manager.create_checkin("u1", data)

    def test_create_defaults(self):
        """Test default title, frequency and next date."""
        checkin = self._create(scheduled_date="2024-01-01T09:00:00Z")

        assert checkin.title == "Check-in for Run a marathon"
        assert checkin.status == CheckInStatus.SCHEDULED
        assert checkin.next_scheduled_date == _dt(2024, 1, 8, 9)

    def test_create_requires_goal(self):
        """Test goal id is mandatory and must be owned."""
        with pytest.raises(ValidationError):
            self.manager.create_checkin("u1", {})
        with pytest.raises(NotFoundError):
            self._create(goal_id="missing")
        with pytest.raises(AccessDeniedError):
            self.manager.create_checkin("u2", {"goal_id": self.goal.goal_id})

    def test_create_validates_custom_frequency(self):
        """Test custom days and hours bounds."""
        with pytest.raises(ValidationError):
            self._create(frequency="custom", custom_frequency={"days": 0})
        with pytest.raises(ValidationError):
            self._create(frequency="custom", custom_frequency={"days": 1, "hours": 24})

    def test_create_validates_reminder_methods(self):
        """Test unknown reminder methods are rejected."""
        with pytest.raises(ValidationError):
            self._create(reminder_settings={"methods": ["pigeon"]})

    def test_list_paginates_and_sorts(self):
        """Test pagination metadata and sort order."""
        for day in range(1, 6):
            self._create(scheduled_date=_dt(2024, 1, day))

        page, pagination = self.manager.list_checkins("u1", page=2, limit=2)
        assert [c.scheduled_date.day for c in page] == [3, 4]
        assert pagination == {"current": 2, "pages": 3, "total": 5, "limit": 2}

        page, _ = self.manager.list_checkins("u1", limit=2, sort_order="desc")
        assert [c.scheduled_date.day for c in page] == [5, 4]

    def test_list_date_filters(self):
        """Test start and end date bounds are inclusive."""
        for day in (1, 10, 20):
            self._create(scheduled_date=_dt(2024, 1, day))

        page, _ = self.manager.list_checkins(
            "u1", start_date=_dt(2024, 1, 10), end_date=_dt(2024, 1, 20)
        )

        assert [c.scheduled_date.day for c in page] == [10, 20]

    def test_update_recomputes_next_date(self):
        """Test changing the frequency moves next_scheduled_date."""
        checkin = self._create(scheduled_date=_dt(2024, 1, 1))

        updated = self.manager.update_checkin("u1", checkin.checkin_id, {"frequency": "daily"})

        assert updated.next_scheduled_date == _dt(2024, 1, 2)

    def test_complete_updates_goal_progress(self):
        """Test an assessment with overall_progress moves the goal."""
        checkin = self._create()

        completed = self.manager.complete_checkin("u1", checkin.checkin_id, {
            "overall_progress": 45,
            "mood": "good",
        })

        assert completed.status == CheckInStatus.COMPLETED
        goal = self.repository.get_goal(self.goal.goal_id)
        assert goal.progress.overall == 45
        assert goal.status == GoalStatus.ACTIVE

    def test_complete_invalid_assessment(self):
        """Test invalid assessment enums are validation errors."""
        checkin = self._create()
        with pytest.raises(ValidationError):
            self.manager.complete_checkin("u1", checkin.checkin_id, {"energy": "infinite"})

    def test_miss_and_reschedule(self):
        """Test missing then rescheduling a check-in."""
        checkin = self._create(scheduled_date=_dt(2024, 1, 1))

        missed = self.manager.miss_checkin("u1", checkin.checkin_id)
        assert missed.status == CheckInStatus.MISSED

        rescheduled = self.manager.reschedule_checkin("u1", checkin.checkin_id, "2024-03-01T00:00:00Z")
        assert rescheduled.status == CheckInStatus.SCHEDULED
        assert rescheduled.scheduled_date == _dt(2024, 3, 1)

    def test_reschedule_requires_date(self):
        """Test a missing date is rejected."""
        checkin = self._create()
        with pytest.raises(ValidationError):
            self.manager.reschedule_checkin("u1", checkin.checkin_id, None)

    def test_upcoming_and_overdue(self):
        """Test open check-ins split around now."""
        now = datetime.now(timezone.utc)
        past = self._create(scheduled_date=now - timedelta(days=1))
        soon = self._create(scheduled_date=now + timedelta(days=1))
        done = self._create(scheduled_date=now + timedelta(days=2))
        self.manager.complete_checkin("u1", done.checkin_id)

        assert [c.checkin_id for c in self.manager.upcoming_checkins("u1")] == [soon.checkin_id]
        assert [c.checkin_id for c in self.manager.overdue_checkins("u1")] == [past.checkin_id]

    def test_date_range_requires_both_dates(self):
        """Test the date range query validates its bounds."""
        with pytest.raises(ValidationError, match="Start date and end date are required"):
            self.manager.checkins_by_date_range("u1", "2024-01-01T00:00:00Z", None)

    def test_calendar_groups_by_day(self):
        """Test calendar events are keyed by ISO date."""
        self._create(scheduled_date=_dt(2024, 1, 1, 9))
        self._create(scheduled_date=_dt(2024, 1, 1, 18))
        self._create(scheduled_date=_dt(2024, 1, 3, 9))

        calendar = self.manager.calendar("u1", _dt(2024, 1, 1), _dt(2024, 1, 31))

        assert sorted(calendar) == ["2024-01-01", "2024-01-03"]
        assert len(calendar["2024-01-01"]) == 2
        assert calendar["2024-01-03"][0]["goal_id"] == self.goal.goal_id

    def test_recurring_series(self):
        """Test a weekly series up to an end date."""
        created = self.manager.create_recurring_checkins(
            "u1", self.goal.goal_id, "weekly", _dt(2024, 1, 1), _dt(2024, 1, 29)
        )

        assert [c.scheduled_date.day for c in created] == [1, 8, 15, 22, 29]
        assert created[0].title == "Run a marathon - weekly Check-in"

    def test_recurring_series_capped(self):
        """Test daily series stop at the configured maximum."""
        start = datetime.now(timezone.utc)

        created = self.manager.create_recurring_checkins("u1", self.goal.goal_id, "daily", start)

        assert len(created) == get_settings().max_recurring_checkins

    def test_recurring_rejects_custom(self):
        """Test custom frequency cannot drive a series."""
        with pytest.raises(ValidationError):
            self.manager.create_recurring_checkins("u1", self.goal.goal_id, "custom", _dt(2024, 1, 1))

    def test_mark_overdue_sweep(self):
        """Test the sweep marks past open check-ins across users."""
        now = datetime.now(timezone.utc)
        past = self._create(scheduled_date=now - timedelta(hours=2))
        self._create(scheduled_date=now + timedelta(hours=2))

        missed = self.manager.mark_overdue_checkins(now)

        assert [c.checkin_id for c in missed] == [past.checkin_id]
        assert self.repository.get_checkin(past.checkin_id).status == CheckInStatus.MISSED

    def test_reminder_window(self):
        """Test only check-ins inside the lookahead with reminders enabled are due."""
        now = datetime.now(timezone.utc)
        due = self._create(scheduled_date=now + timedelta(minutes=30))
        self._create(scheduled_date=now + timedelta(minutes=30), reminder_settings={"enabled": False})
        self._create(scheduled_date=now + timedelta(days=1))

        reminders = self.manager.checkins_needing_reminders(now)

        assert [c.checkin_id for c in reminders] == [due.checkin_id]

    def test_statistics(self):
        """Test statistics delegate to the analytics calculator."""
        checkin = self._create()
        self.manager.complete_checkin("u1", checkin.checkin_id, {"rating": 9})

        stats = self.manager.statistics("u1")

        assert stats["completed"] == 1
        assert stats["average_rating"] == 9


class TestChatSessionManager:
    """Tests for ChatSessionManager."""

    def setup_method(self):
        self.repository = InMemoryRepository()
        self.manager = ChatSessionManager(self.repository)

    def test_create_and_record(self):
        """Test an exchange appends both sides of the conversation."""
        session = self.manager.create_session("u1", title="Rust help")

        session = self.manager.record_exchange(session, "hi", "hello", {"tokens": 12})

        stored = self.manager.get_session("u1", session.session_id)
        assert [m.role for m in stored.messages] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert stored.statistics["total_tokens"] == 12

    def test_create_checks_goal_owner(self):
        """Test sessions cannot reference another user's goal."""
        goal = GoalManager(self.repository).create_goal("u2", {"title": "Theirs"})

        with pytest.raises(AccessDeniedError):
            self.manager.create_session("u1", goal_id=goal.goal_id)

    def test_invalid_user_level(self):
        """Test unknown levels are rejected."""
        with pytest.raises(ValidationError):
            self.manager.create_session("u1", user_level="wizard")

    def test_access_rules(self):
        """Test 404 and 403 for session lookups."""
        session = self.manager.create_session("u1")

        with pytest.raises(NotFoundError):
            self.manager.get_session("u1", "missing")
        with pytest.raises(AccessDeniedError):
            self.manager.get_session("u2", session.session_id)

    def test_status_filter_and_delete(self):
        """Test archiving, filtering and deleting sessions."""
        a = self.manager.create_session("u1")
        b = self.manager.create_session("u1")
        self.manager.update_status("u1", a.session_id, "archived")

        active = self.manager.list_sessions("u1", status="active")
        assert [s.session_id for s in active] == [b.session_id]

        self.manager.delete_session("u1", b.session_id)
        assert [s.session_id for s in self.manager.list_sessions("u1")] == [a.session_id]


class TestJourneyManager:
    """Tests for JourneyManager."""

    def setup_method(self):
        self.repository = InMemoryRepository()
        self.goals = GoalManager(self.repository)
        self.manager = JourneyManager(self.repository, self.goals)
        self.now = _dt(2024, 1, 1)
        self.goal = self.goals.create_goal("u1", {
            "title": "Learn Rust",
            "description": "Systems programming",
            "target_date": self.now + timedelta(weeks=10),
            "tags": ["rust"],
            "milestones": [{"title": "Ownership"}, {"title": "Async IO"}],
        })

    def _journey(self, user_id="u1"):
        return self.manager.create_from_goal(user_id, self.goal.goal_id, now=self.now)

    def _chunk_data(self, **data):
        data.setdefault("title", "Traits")
        data.setdefault("start_date", self.now)
        data.setdefault("end_date", self.now + timedelta(days=6))
        data.setdefault("duration_weeks", 1)
        return data

    def test_create_from_goal(self):
        """Test each milestone becomes a two-week chunk with three objectives."""
        journey = self._journey()

        assert journey.title == "Learn Rust - Learning Journey"
        assert journey.description == "A structured learning journey for: Systems programming"
        assert journey.status == JourneyStatus.PLANNED
        assert journey.end_date == self.goal.target_date
        assert journey.tags == ["rust"]
        assert [c.title for c in journey.chunks] == ["Ownership", "Async IO"]
        assert journey.chunks[1].start_date == self.now + timedelta(days=14)
        assert journey.chunks[1].end_date == self.now + timedelta(days=27)
        objectives = [o.objective for o in journey.chunks[0].learning_objectives]
        assert objectives == [
            "Understand the core concepts related to ownership",
            "Practice implementing ownership through exercises",
            "Apply knowledge to solve real-world problems",
        ]
        assert journey.progress.total_chunks == 2
        assert journey.progress.total_objectives == 6

    def test_create_splits_duration(self):
        """Test ten weeks become two months and two weeks."""
        journey = self._journey()

        assert journey.duration_months == 2
        assert journey.duration_weeks == 2

    def test_create_whole_months_keeps_a_week(self):
        """Test an exact number of months still reports at least one week."""
        goal = self.goals.create_goal("u1", {"title": "Run", "target_date": self.now + timedelta(weeks=8)})

        journey = self.manager.create_from_goal("u1", goal.goal_id, now=self.now)

        assert journey.duration_months == 2
        assert journey.duration_weeks == 1

    def test_create_requires_target_date(self):
        """Test a goal without a deadline cannot be planned."""
        goal = self.goals.create_goal("u1", {"title": "Someday"})

        with pytest.raises(ValidationError):
            self.manager.create_from_goal("u1", goal.goal_id)

    def test_create_checks_goal_owner(self):
        """Test planning another user's goal is denied."""
        with pytest.raises(AccessDeniedError):
            self._journey(user_id="u2")

    def test_get_journey_ownership(self):
        """Test missing journeys are 404 and foreign journeys are 403."""
        journey = self._journey()

        with pytest.raises(NotFoundError):
            self.manager.get_journey("u1", "missing")
        with pytest.raises(AccessDeniedError):
            self.manager.get_journey("u2", journey.journey_id)

    def test_list_filters_and_paginates(self):
        """Test status filter, archive filter and page slicing."""
        first = self._journey()
        second = self._journey()
        self.manager.update_journey("u1", second.journey_id, {"status": "active"})
        self.manager.toggle_archive("u1", first.journey_id, True)

        active, _ = self.manager.list_journeys("u1", status="active")
        archived, _ = self.manager.list_journeys("u1", is_archived=True)
        page, pagination = self.manager.list_journeys("u1", page=2, limit=1)

        assert [j.journey_id for j in active] == [second.journey_id]
        assert [j.journey_id for j in archived] == [first.journey_id]
        assert len(page) == 1
        assert pagination == {"current": 2, "pages": 2, "total": 2, "limit": 1}

    def test_list_rejects_bad_paging(self):
        """Test limits above the maximum are validation errors."""
        with pytest.raises(ValidationError):
            self.manager.list_journeys("u1", limit=101)
        with pytest.raises(ValidationError):
            self.manager.list_journeys("u1", status="dormant")

    def test_update_journey(self):
        """Test field updates and the completed timestamp."""
        journey = self._journey()

        updated = self.manager.update_journey("u1", journey.journey_id, {
            "title": "Rust in 10 weeks",
            "priority": "high",
            "status": "completed",
        })

        assert updated.title == "Rust in 10 weeks"
        assert updated.priority.value == "high"
        assert updated.completed_at is not None

    def test_update_journey_rejects_reversed_dates(self):
        """Test the end date cannot precede the start date."""
        journey = self._journey()

        with pytest.raises(ValidationError):
            self.manager.update_journey("u1", journey.journey_id, {"end_date": self.now - timedelta(days=1)})

    def test_chunk_lifecycle(self):
        """Test add, update and delete of chunks keep totals current."""
        journey = self._journey()

        journey = self.manager.add_chunk("u1", journey.journey_id, self._chunk_data())
        chunk = journey.chunks[-1]
        assert chunk.order == 2
        assert journey.progress.total_chunks == 3

        journey = self.manager.update_chunk("u1", journey.journey_id, chunk.chunk_id, {"status": "completed"})
        assert journey.progress.chunks_completed == 1
        assert journey.progress.overall == 33

        journey = self.manager.delete_chunk("u1", journey.journey_id, chunk.chunk_id)
        assert journey.progress.total_chunks == 2
        assert journey.progress.overall == 0

    def test_add_chunk_validation(self):
        """Test duration bounds and reversed dates are rejected."""
        journey = self._journey()

        with pytest.raises(ValidationError):
            self.manager.add_chunk("u1", journey.journey_id, self._chunk_data(duration_weeks=5))
        with pytest.raises(ValidationError):
            self.manager.add_chunk("u1", journey.journey_id, self._chunk_data(end_date=self.now - timedelta(days=1)))

    def test_missing_chunk(self):
        """Test unknown chunk ids are not found."""
        journey = self._journey()

        with pytest.raises(NotFoundError):
            self.manager.delete_chunk("u1", journey.journey_id, "missing")
        with pytest.raises(NotFoundError):
            self.manager.update_chunk_progress("u1", journey.journey_id, "missing", progress=10)

    def test_chunk_progress_clamps_and_completes(self):
        """Test progress is clamped and a completed status moves overall progress."""
        journey = self._journey()
        chunk_id = journey.chunks[0].chunk_id

        journey = self.manager.update_chunk_progress("u1", journey.journey_id, chunk_id, progress=150)
        assert journey.chunks[0].progress == 100
        assert journey.progress.overall == 0

        journey = self.manager.update_chunk_progress("u1", journey.journey_id, chunk_id, status="completed")
        assert journey.chunks[0].status == ChunkStatus.COMPLETED
        assert journey.progress.overall == 50

    def test_objectives(self):
        """Test adding and completing objectives updates the counters."""
        journey = self._journey()
        chunk_id = journey.chunks[0].chunk_id

        journey = self.manager.add_objective("u1", journey.journey_id, chunk_id, "Write a CLI")
        objective = journey.chunks[0].learning_objectives[-1]
        assert journey.progress.total_objectives == 7

        journey = self.manager.update_objective(
            "u1", journey.journey_id, chunk_id, objective.objective_id, {"is_completed": True}
        )
        assert journey.progress.objectives_completed == 1
        assert journey.chunks[0].learning_objectives[-1].completed_at is not None

        with pytest.raises(NotFoundError):
            self.manager.update_objective("u1", journey.journey_id, chunk_id, "missing", {"is_completed": True})

    def test_add_note(self):
        """Test chunk notes are stored; blank notes are rejected."""
        journey = self._journey()
        chunk_id = journey.chunks[0].chunk_id

        journey = self.manager.add_note("u1", journey.journey_id, chunk_id, "  Borrow checker  ", True)

        assert journey.chunks[0].notes[0].content == "Borrow checker"
        assert journey.chunks[0].notes[0].is_important is True
        with pytest.raises(ValidationError):
            self.manager.add_note("u1", journey.journey_id, chunk_id, "   ")

    def test_current_chunk(self):
        """Test the running chunk, the next chunk and progress are reported."""
        journey = self._journey()

        result = self.manager.current_chunk("u1", journey.journey_id, now=self.now + timedelta(days=3))

        assert result["current_chunk"]["title"] == "Ownership"
        assert result["next_chunk"]["title"] == "Async IO"
        assert result["progress"]["total_chunks"] == 2

    def test_overdue_journeys_are_per_user(self):
        """Test overdue journeys only include the caller's active journeys."""
        journey = self._journey()
        self.manager.update_journey("u1", journey.journey_id, {"status": "active"})
        other_goal = self.goals.create_goal("u2", {"title": "Swim", "target_date": self.now + timedelta(weeks=1)})
        other = self.manager.create_from_goal("u2", other_goal.goal_id, now=self.now)
        self.manager.update_journey("u2", other.journey_id, {"status": "active"})

        later = self.now + timedelta(weeks=20)

        assert [j.journey_id for j in self.manager.overdue_journeys("u1", now=later)] == [journey.journey_id]

    def test_journeys_for_goal(self):
        """Test journeys are listed per goal with the goal's ownership check."""
        journey = self._journey()

        assert [j.journey_id for j in self.manager.journeys_for_goal("u1", self.goal.goal_id)] == [journey.journey_id]
        with pytest.raises(AccessDeniedError):
            self.manager.journeys_for_goal("u2", self.goal.goal_id)

    def test_delete_journey(self):
        """Test deletion removes the journey."""
        journey = self._journey()

        self.manager.delete_journey("u1", journey.journey_id)

        assert self.repository.get_journey(journey.journey_id) is None
