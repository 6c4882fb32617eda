"""Core data models for goals, learning journeys, check-ins and AI tutor chat sessions."""

import calendar
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Dict, Any, Iterable


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Any) -> Optional[datetime]:
    """Coerce an ISO string or datetime into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the end of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def round_percent(numerator: float, denominator: float) -> int:
    """Percentage rounded half-up, 0 when the denominator is empty."""
    if not denominator:
        return 0
    return int(math.floor(numerator * 100 / denominator + 0.5))


def compute_progress(milestone_statuses: Iterable[str]) -> Dict[str, int]:
    """Progress counters for a list of milestone statuses."""
    statuses = [str(getattr(s, "value", s)) for s in milestone_statuses]
    completed = sum(1 for s in statuses if s == MilestoneStatus.COMPLETED.value)
    return {
        "overall": round_percent(completed, len(statuses)),
        "milestones_completed": completed,
        "total_milestones": len(statuses),
    }


def _new_id() -> str:
    return str(uuid.uuid4())


# ===========================
# Enumerations
# ===========================

class GoalCategory(str, Enum):
    LEARNING = "learning"
    CAREER = "career"
    HEALTH = "health"
    FITNESS = "fitness"
    PERSONAL = "personal"
    FINANCIAL = "financial"
    CREATIVE = "creative"
    TECHNICAL = "technical"
    OTHER = "other"


class GoalComplexity(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class GoalStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class GoalPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class JourneyStatus(str, Enum):
    PLANNED = "planned"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ChunkStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class ResourceType(str, Enum):
    ARTICLE = "article"
    VIDEO = "video"
    COURSE = "course"
    BOOK = "book"
    TOOL = "tool"
    EXERCISE = "exercise"
    OTHER = "other"


class MilestoneStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class CheckInType(str, Enum):
    GOAL = "goal"
    JOURNEY = "journey"
    MILESTONE = "milestone"
    GENERAL = "general"


class CheckInStatus(str, Enum):
    SCHEDULED = "scheduled"
    PENDING = "pending"
    COMPLETED = "completed"
    MISSED = "missed"
    CANCELLED = "cancelled"

    @classmethod
    def open_states(cls) -> tuple:
        """States of a check-in that is still waiting to happen."""
        return (cls.SCHEDULED, cls.PENDING)


class CheckInFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class Mood(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    NEUTRAL = "neutral"
    POOR = "poor"
    TERRIBLE = "terrible"

    @property
    def score(self) -> int:
        """Numeric mood used for averaging (excellent=5 .. terrible=1)."""
        return {
            "excellent": 5,
            "good": 4,
            "neutral": 3,
            "poor": 2,
            "terrible": 1,
        }[self.value]


class Energy(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Motivation(str, Enum):
    VERY_HIGH = "very_high"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very_low"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# ===========================
# Goals
# ===========================

@dataclass
class Milestone:
    """A dated step towards a goal."""
    milestone_id: str = field(default_factory=_new_id)
    title: str = ""
    description: str = ""
    target_date: Optional[datetime] = None
    status: MilestoneStatus = MilestoneStatus.PENDING
    order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.milestone_id,
            "title": self.title,
            "description": self.description,
            "target_date": _iso(self.target_date),
            "status": self.status.value,
            "order": self.order
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Milestone":
        return cls(
            milestone_id=data.get("id") or _new_id(),
            title=data.get("title", ""),
            description=data.get("description", "") or "",
            target_date=ensure_utc(data.get("target_date")),
            status=MilestoneStatus(data.get("status") or "pending"),
            order=data.get("order", 0)
        )


@dataclass
class GoalNote:
    """A free-form note attached to a goal."""
    content: str = ""
    is_important: bool = False
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "is_important": self.is_important,
            "created_at": _iso(self.created_at)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GoalNote":
        return cls(
            content=data.get("content", ""),
            is_important=data.get("is_important", False),
            created_at=ensure_utc(data.get("created_at")) or utcnow()
        )


@dataclass
class GoalProgress:
    overall: int = 0
    milestones_completed: int = 0
    total_milestones: int = 0
    last_updated: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "milestones_completed": self.milestones_completed,
            "total_milestones": self.total_milestones,
            "last_updated": _iso(self.last_updated)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GoalProgress":
        return cls(
            overall=data.get("overall", 0),
            milestones_completed=data.get("milestones_completed", 0),
            total_milestones=data.get("total_milestones", 0),
            last_updated=ensure_utc(data.get("last_updated")) or utcnow()
        )


@dataclass
class Goal:
    """A user-defined objective with milestones, progress and metadata."""
    goal_id: str = field(default_factory=_new_id)
    user_id: str = ""
    title: str = ""
    description: str = ""
    category: GoalCategory = GoalCategory.LEARNING
    complexity: GoalComplexity = GoalComplexity.BEGINNER
    status: GoalStatus = GoalStatus.DRAFT
    priority: GoalPriority = GoalPriority.MEDIUM
    target_date: Optional[datetime] = None
    milestones: List[Milestone] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    progress: GoalProgress = field(default_factory=GoalProgress)
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: List[GoalNote] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Active goals past their target date are overdue."""
        now = now or utcnow()
        return (
            self.status == GoalStatus.ACTIVE
            and self.target_date is not None
            and now > self.target_date
        )

    def days_remaining(self, now: Optional[datetime] = None) -> int:
        if self.target_date is None:
            return 0
        now = now or utcnow()
        days = math.ceil((self.target_date - now).total_seconds() / 86400)
        return days if days > 0 else 0

    @property
    def completion_percentage(self) -> int:
        return compute_progress(m.status for m in self.milestones)["overall"]

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        for milestone in self.milestones:
            if milestone.milestone_id == milestone_id:
                return milestone
        return None

    def add_milestone(self, milestone: Milestone) -> Milestone:
        """Append a milestone at the next order position."""
        milestone.order = len(self.milestones)
        self.milestones.append(milestone)
        self.recalculate_progress()
        return milestone

    def remove_milestone(self, milestone_id: str) -> bool:
        before = len(self.milestones)
        self.milestones = [m for m in self.milestones if m.milestone_id != milestone_id]
        removed = len(self.milestones) != before
        if removed:
            self.recalculate_progress()
        return removed

    def add_note(self, content: str, is_important: bool = False) -> GoalNote:
        note = GoalNote(content=content, is_important=is_important)
        self.notes.append(note)
        return note

    def recalculate_progress(self) -> None:
        """Recompute progress counters from milestones and advance status."""
        counters = compute_progress(m.status for m in self.milestones)
        self.progress.overall = counters["overall"]
        self.progress.milestones_completed = counters["milestones_completed"]
        self.progress.total_milestones = counters["total_milestones"]
        self.progress.last_updated = utcnow()
        self._apply_progress_status()

    def set_progress(self, percentage: float) -> None:
        """Set overall progress directly, clamped to 0-100."""
        self.progress.overall = int(max(0, min(100, round(percentage))))
        self.progress.last_updated = utcnow()
        self._apply_progress_status()

    def mark_status(self, status: GoalStatus) -> None:
        self.status = status
        if status == GoalStatus.COMPLETED and self.completed_at is None:
            self.completed_at = utcnow()

    def set_archived(self, is_archived: bool) -> None:
        self.is_archived = is_archived
        self.archived_at = utcnow() if is_archived else None

    def _apply_progress_status(self) -> None:
        if self.progress.overall == 100 and self.status != GoalStatus.COMPLETED:
            self.status = GoalStatus.COMPLETED
            self.completed_at = utcnow()
        elif self.progress.overall > 0 and self.status == GoalStatus.DRAFT:
            self.status = GoalStatus.ACTIVE

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Convert to dictionary, including derived fields."""
        return {
            "id": self.goal_id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "complexity": self.complexity.value,
            "status": self.status.value,
            "priority": self.priority.value,
            "target_date": _iso(self.target_date),
            "milestones": [m.to_dict() for m in self.milestones],
            "tags": list(self.tags),
            "progress": self.progress.to_dict(),
            "is_archived": self.is_archived,
            "archived_at": _iso(self.archived_at),
            "completed_at": _iso(self.completed_at),
            "notes": [n.to_dict() for n in self.notes],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "is_overdue": self.is_overdue(now),
            "days_remaining": self.days_remaining(now),
            "completion_percentage": self.completion_percentage
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Goal":
        """Create from dictionary."""
        return cls(
            goal_id=data.get("id") or _new_id(),
            user_id=data.get("user_id", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            category=GoalCategory(data.get("category") or "learning"),
            complexity=GoalComplexity(data.get("complexity") or "beginner"),
            status=GoalStatus(data.get("status") or "draft"),
            priority=GoalPriority(data.get("priority") or "medium"),
            target_date=ensure_utc(data.get("target_date")),
            milestones=[Milestone.from_dict(m) for m in data.get("milestones", [])],
            tags=list(data.get("tags", [])),
            progress=GoalProgress.from_dict(data.get("progress") or {}),
            is_archived=data.get("is_archived", False),
            archived_at=ensure_utc(data.get("archived_at")),
            completed_at=ensure_utc(data.get("completed_at")),
            notes=[GoalNote.from_dict(n) for n in data.get("notes", [])],
            created_at=ensure_utc(data.get("created_at")) or utcnow(),
            updated_at=ensure_utc(data.get("updated_at")) or utcnow()
        )


# ===========================
# Journeys
# ===========================

def compute_journey_progress(chunks: Iterable["JourneyChunk"]) -> Dict[str, int]:
    """Progress counters for a journey: overall follows completed chunks."""
    chunks = list(chunks)
    completed = sum(1 for c in chunks if c.status == ChunkStatus.COMPLETED)
    objectives = [o for c in chunks for o in c.learning_objectives]
    return {
        "overall": round_percent(completed, len(chunks)),
        "chunks_completed": completed,
        "total_chunks": len(chunks),
        "objectives_completed": sum(1 for o in objectives if o.is_completed),
        "total_objectives": len(objectives),
    }


@dataclass
class LearningObjective:
    objective_id: str = field(default_factory=_new_id)
    objective: str = ""
    is_completed: bool = False
    completed_at: Optional[datetime] = None

    def set_completed(self, is_completed: bool) -> None:
        self.is_completed = is_completed
        if not is_completed:
            self.completed_at = None
        elif self.completed_at is None:
            self.completed_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.objective_id,
            "objective": self.objective,
            "is_completed": self.is_completed,
            "completed_at": _iso(self.completed_at)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearningObjective":
        return cls(
            objective_id=data.get("id") or _new_id(),
            objective=data.get("objective", ""),
            is_completed=data.get("is_completed", False),
            completed_at=ensure_utc(data.get("completed_at"))
        )


@dataclass
class ChunkResource:
    title: str = ""
    url: Optional[str] = None
    resource_type: ResourceType = ResourceType.OTHER
    description: str = ""
    is_completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "type": self.resource_type.value,
            "description": self.description,
            "is_completed": self.is_completed
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChunkResource":
        return cls(
            title=data.get("title", ""),
            url=data.get("url"),
            resource_type=ResourceType(data.get("type") or "other"),
            description=data.get("description", "") or "",
            is_completed=data.get("is_completed", False)
        )


@dataclass
class JourneyChunk:
    """A block of one to four weeks inside a journey."""
    chunk_id: str = field(default_factory=_new_id)
    title: str = ""
    description: str = ""
    start_date: datetime = field(default_factory=utcnow)
    end_date: datetime = field(default_factory=utcnow)
    duration_weeks: int = 2
    learning_objectives: List[LearningObjective] = field(default_factory=list)
    status: ChunkStatus = ChunkStatus.PENDING
    order: int = 0
    progress: int = 0
    resources: List[ChunkResource] = field(default_factory=list)
    notes: List[GoalNote] = field(default_factory=list)

    def get_objective(self, objective_id: str) -> Optional[LearningObjective]:
        for objective in self.learning_objectives:
            if objective.objective_id == objective_id:
                return objective
        return None

    def set_progress(self, percentage: float) -> None:
        self.progress = int(max(0, min(100, round(percentage))))

    def is_running(self, now: datetime) -> bool:
        return self.start_date <= now <= self.end_date

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.chunk_id,
            "title": self.title,
            "description": self.description,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "duration_weeks": self.duration_weeks,
            "learning_objectives": [o.to_dict() for o in self.learning_objectives],
            "status": self.status.value,
            "order": self.order,
            "progress": self.progress,
            "resources": [r.to_dict() for r in self.resources],
            "notes": [n.to_dict() for n in self.notes]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JourneyChunk":
        return cls(
            chunk_id=data.get("id") or _new_id(),
            title=data.get("title", ""),
            description=data.get("description", "") or "",
            start_date=ensure_utc(data.get("start_date")) or utcnow(),
            end_date=ensure_utc(data.get("end_date")) or utcnow(),
            duration_weeks=data.get("duration_weeks", 2),
            learning_objectives=[LearningObjective.from_dict(o) for o in data.get("learning_objectives", [])],
            status=ChunkStatus(data.get("status") or "pending"),
            order=data.get("order", 0),
            progress=data.get("progress", 0),
            resources=[ChunkResource.from_dict(r) for r in data.get("resources", [])],
            notes=[GoalNote.from_dict(n) for n in data.get("notes", [])]
        )


@dataclass
class JourneyProgress:
    overall: int = 0
    chunks_completed: int = 0
    total_chunks: int = 0
    objectives_completed: int = 0
    total_objectives: int = 0
    last_updated: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "chunks_completed": self.chunks_completed,
            "total_chunks": self.total_chunks,
            "objectives_completed": self.objectives_completed,
            "total_objectives": self.total_objectives,
            "last_updated": _iso(self.last_updated)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JourneyProgress":
        return cls(
            overall=data.get("overall", 0),
            chunks_completed=data.get("chunks_completed", 0),
            total_chunks=data.get("total_chunks", 0),
            objectives_completed=data.get("objectives_completed", 0),
            total_objectives=data.get("total_objectives", 0),
            last_updated=ensure_utc(data.get("last_updated")) or utcnow()
        )


@dataclass
class Journey:
    """
    A dated learning plan for a goal, split into chunks.

    Progress follows the share of completed chunks; objective counts are
    tracked alongside but do not move the overall figure.
    """
    journey_id: str = field(default_factory=_new_id)
    goal_id: str = ""
    user_id: str = ""
    title: str = ""
    description: str = ""
    duration_weeks: int = 0
    duration_months: int = 0
    start_date: datetime = field(default_factory=utcnow)
    end_date: datetime = field(default_factory=utcnow)
    status: JourneyStatus = JourneyStatus.PLANNED
    priority: GoalPriority = GoalPriority.MEDIUM
    chunks: List[JourneyChunk] = field(default_factory=list)
    progress: JourneyProgress = field(default_factory=JourneyProgress)
    tags: List[str] = field(default_factory=list)
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.status == JourneyStatus.ACTIVE and now > self.end_date

    def days_remaining(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        days = math.ceil((self.end_date - now).total_seconds() / 86400)
        return days if days > 0 else 0

    def current_chunk(self, now: Optional[datetime] = None) -> Optional[JourneyChunk]:
        """The chunk whose dates include ``now``."""
        now = now or utcnow()
        return next((c for c in self._ordered_chunks() if c.is_running(now)), None)

    def next_chunk(self, now: Optional[datetime] = None) -> Optional[JourneyChunk]:
        """The first chunk that has not started yet."""
        now = now or utcnow()
        return next((c for c in self._ordered_chunks() if c.start_date > now), None)

    def get_chunk(self, chunk_id: str) -> Optional[JourneyChunk]:
        for chunk in self.chunks:
            if chunk.chunk_id == chunk_id:
                return chunk
        return None

    def add_chunk(self, chunk: JourneyChunk) -> JourneyChunk:
        """Append a chunk at the next order position."""
        chunk.order = len(self.chunks)
        self.chunks.append(chunk)
        self.recalculate_progress()
        return chunk

    def remove_chunk(self, chunk_id: str) -> bool:
        before = len(self.chunks)
        self.chunks = [c for c in self.chunks if c.chunk_id != chunk_id]
        removed = len(self.chunks) != before
        if removed:
            self.recalculate_progress()
        return removed

    def recalculate_progress(self) -> None:
        counters = compute_journey_progress(self.chunks)
        self.progress.overall = counters["overall"]
        self.progress.chunks_completed = counters["chunks_completed"]
        self.progress.total_chunks = counters["total_chunks"]
        self.progress.objectives_completed = counters["objectives_completed"]
        self.progress.total_objectives = counters["total_objectives"]
        self.progress.last_updated = utcnow()

    def mark_status(self, status: JourneyStatus) -> None:
        self.status = status
        if status == JourneyStatus.COMPLETED and self.completed_at is None:
            self.completed_at = utcnow()

    def set_archived(self, is_archived: bool) -> None:
        self.is_archived = is_archived
        self.archived_at = utcnow() if is_archived else None

    def _ordered_chunks(self) -> List[JourneyChunk]:
        return sorted(self.chunks, key=lambda c: c.order)

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Convert to dictionary, including derived fields."""
        return {
            "id": self.journey_id,
            "goal_id": self.goal_id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "duration": {"weeks": self.duration_weeks, "months": self.duration_months},
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "status": self.status.value,
            "priority": self.priority.value,
            "chunks": [c.to_dict() for c in self.chunks],
            "progress": self.progress.to_dict(),
            "tags": list(self.tags),
            "is_archived": self.is_archived,
            "archived_at": _iso(self.archived_at),
            "completed_at": _iso(self.completed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "is_overdue": self.is_overdue(now),
            "days_remaining": self.days_remaining(now)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Journey":
        duration = data.get("duration") or {}
        return cls(
            journey_id=data.get("id") or _new_id(),
            goal_id=data.get("goal_id", ""),
            user_id=data.get("user_id", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            duration_weeks=duration.get("weeks", 0),
            duration_months=duration.get("months", 0),
            start_date=ensure_utc(data.get("start_date")) or utcnow(),
            end_date=ensure_utc(data.get("end_date")) or utcnow(),
            status=JourneyStatus(data.get("status") or "planned"),
            priority=GoalPriority(data.get("priority") or "medium"),
            chunks=[JourneyChunk.from_dict(c) for c in data.get("chunks", [])],
            progress=JourneyProgress.from_dict(data.get("progress") or {}),
            tags=list(data.get("tags", [])),
            is_archived=data.get("is_archived", False),
            archived_at=ensure_utc(data.get("archived_at")),
            completed_at=ensure_utc(data.get("completed_at")),
            created_at=ensure_utc(data.get("created_at")) or utcnow(),
            updated_at=ensure_utc(data.get("updated_at")) or utcnow()
        )


# ===========================
# Check-ins
# ===========================

@dataclass
class ReminderSettings:
    enabled: bool = True
    advance_time: int = 60  # minutes before the scheduled time
    methods: List[str] = field(default_factory=lambda: ["email"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "advance_time": self.advance_time,
            "methods": list(self.methods)
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ReminderSettings":
        data = data or {}
        return cls(
            enabled=data.get("enabled", True),
            advance_time=data.get("advance_time", 60),
            methods=list(data.get("methods") or ["email"])
        )


@dataclass
class ProgressAssessment:
    """Self-assessment recorded when a check-in is completed."""
    overall_progress: Optional[float] = None
    mood: Optional[Mood] = None
    energy: Optional[Energy] = None
    motivation: Optional[Motivation] = None
    challenges: List[str] = field(default_factory=list)
    achievements: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    rating: Optional[int] = None

    def merge(self, data: Dict[str, Any]) -> "ProgressAssessment":
        """Return a copy with the given fields overlaid."""
        merged = self.to_dict()
        merged.update({k: v for k, v in data.items() if v is not None})
        return ProgressAssessment.from_dict(merged)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_progress": self.overall_progress,
            "mood": self.mood.value if self.mood else None,
            "energy": self.energy.value if self.energy else None,
            "motivation": self.motivation.value if self.motivation else None,
            "challenges": list(self.challenges),
            "achievements": list(self.achievements),
            "notes": self.notes,
            "rating": self.rating
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ProgressAssessment":
        data = data or {}
        return cls(
            overall_progress=data.get("overall_progress"),
            mood=Mood(data["mood"]) if data.get("mood") else None,
            energy=Energy(data["energy"]) if data.get("energy") else None,
            motivation=Motivation(data["motivation"]) if data.get("motivation") else None,
            challenges=list(data.get("challenges") or []),
            achievements=list(data.get("achievements") or []),
            notes=data.get("notes"),
            rating=data.get("rating")
        )


@dataclass
class CheckIn:
    """A scheduled progress-report event tied to a goal."""
    checkin_id: str = field(default_factory=_new_id)
    user_id: str = ""
    goal_id: str = ""
    title: str = ""
    description: str = ""
    type: CheckInType = CheckInType.GOAL
    status: CheckInStatus = CheckInStatus.SCHEDULED
    frequency: CheckInFrequency = CheckInFrequency.WEEKLY
    custom_frequency_days: Optional[int] = None
    custom_frequency_hours: Optional[int] = None
    scheduled_date: datetime = field(default_factory=utcnow)
    completed_date: Optional[datetime] = None
    next_scheduled_date: Optional[datetime] = None
    reminder_settings: ReminderSettings = field(default_factory=ReminderSettings)
    progress_assessment: Optional[ProgressAssessment] = None
    is_recurring: bool = True
    recurrence_end_date: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if self.is_recurring and self.next_scheduled_date is None:
            self.next_scheduled_date = self.calculate_next_scheduled_date()

    def calculate_next_scheduled_date(self) -> datetime:
        """Next occurrence after the scheduled date, based on frequency."""
        current = self.scheduled_date or utcnow()
        if self.frequency == CheckInFrequency.DAILY:
            return current + timedelta(days=1)
        if self.frequency == CheckInFrequency.BI_WEEKLY:
            return current + timedelta(days=14)
        if self.frequency == CheckInFrequency.MONTHLY:
            return add_months(current, 1)
        if self.frequency == CheckInFrequency.CUSTOM:
            return current + timedelta(
                days=self.custom_frequency_days or 0,
                hours=self.custom_frequency_hours or 0
            )
        return current + timedelta(days=7)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.status == CheckInStatus.COMPLETED:
            return False
        return (now or utcnow()) > self.scheduled_date

    @property
    def completion_percentage(self) -> float:
        if self.status == CheckInStatus.COMPLETED:
            return 100
        if self.status == CheckInStatus.MISSED:
            return 0
        if self.progress_assessment and self.progress_assessment.overall_progress is not None:
            return self.progress_assessment.overall_progress
        return 0

    def mark_completed(self, assessment: Optional[Dict[str, Any]] = None) -> None:
        self.status = CheckInStatus.COMPLETED
        self.completed_date = utcnow()
        if assessment:
            base = self.progress_assessment or ProgressAssessment()
            self.progress_assessment = base.merge(assessment)
        if self.is_recurring:
            self.next_scheduled_date = self.calculate_next_scheduled_date()

    def mark_missed(self) -> None:
        self.status = CheckInStatus.MISSED
        if self.is_recurring:
            self.next_scheduled_date = self.calculate_next_scheduled_date()

    def reschedule(self, new_date: datetime) -> None:
        self.scheduled_date = new_date
        self.status = CheckInStatus.SCHEDULED
        self.next_scheduled_date = self.calculate_next_scheduled_date()

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            "id": self.checkin_id,
            "user_id": self.user_id,
            "goal_id": self.goal_id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "status": self.status.value,
            "frequency": self.frequency.value,
            "custom_frequency": {
                "days": self.custom_frequency_days,
                "hours": self.custom_frequency_hours
            },
            "scheduled_date": _iso(self.scheduled_date),
            "completed_date": _iso(self.completed_date),
            "next_scheduled_date": _iso(self.next_scheduled_date),
            "reminder_settings": self.reminder_settings.to_dict(),
            "progress_assessment": (
                self.progress_assessment.to_dict() if self.progress_assessment else None
            ),
            "is_recurring": self.is_recurring,
            "recurrence_end_date": _iso(self.recurrence_end_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "is_overdue": self.is_overdue(now),
            "completion_percentage": self.completion_percentage
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckIn":
        custom = data.get("custom_frequency") or {}
        assessment = data.get("progress_assessment")
        return cls(
            checkin_id=data.get("id") or _new_id(),
            user_id=data.get("user_id", ""),
            goal_id=data.get("goal_id", ""),
            title=data.get("title", ""),
            description=data.get("description", "") or "",
            type=CheckInType(data.get("type") or "goal"),
            status=CheckInStatus(data.get("status") or "scheduled"),
            frequency=CheckInFrequency(data.get("frequency") or "weekly"),
            custom_frequency_days=custom.get("days"),
            custom_frequency_hours=custom.get("hours"),
            scheduled_date=ensure_utc(data.get("scheduled_date")) or utcnow(),
            completed_date=ensure_utc(data.get("completed_date")),
            next_scheduled_date=ensure_utc(data.get("next_scheduled_date")),
            reminder_settings=ReminderSettings.from_dict(data.get("reminder_settings")),
            progress_assessment=ProgressAssessment.from_dict(assessment) if assessment else None,
            is_recurring=data.get("is_recurring", True),
            recurrence_end_date=ensure_utc(data.get("recurrence_end_date")),
            created_at=ensure_utc(data.get("created_at")) or utcnow(),
            updated_at=ensure_utc(data.get("updated_at")) or utcnow()
        )


# ===========================
# AI tutor chat
# ===========================

@dataclass
class ChatMessage:
    role: MessageRole = MessageRole.USER
    content: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": _iso(self.timestamp),
            "metadata": dict(self.metadata)
        }


@dataclass
class SessionContext:
    """What the tutor knows about the learner when the session starts."""
    goal_id: Optional[str] = None
    active_module: Optional[str] = None
    user_level: GoalComplexity = GoalComplexity.BEGINNER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal_id": self.goal_id,
            "active_module": self.active_module,
            "user_level": self.user_level.value
        }


@dataclass
class ChatSession:
    """A persistent AI tutor conversation."""
    session_id: str = field(default_factory=_new_id)
    user_id: str = ""
    title: str = "AI Tutor Session"
    messages: List[ChatMessage] = field(default_factory=list)
    context: SessionContext = field(default_factory=SessionContext)
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)

    def add_message(
        self,
        role: MessageRole,
        content: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> ChatMessage:
        message = ChatMessage(role=role, content=content, metadata=metadata or {})
        self.messages.append(message)
        self.last_activity = utcnow()
        return message

    def recent_messages(self, limit: int = 10) -> List[ChatMessage]:
        return self.messages[-limit:] if limit else []

    @property
    def statistics(self) -> Dict[str, Any]:
        """Message counters derived from the transcript."""
        ai_messages = [m for m in self.messages if m.role == MessageRole.ASSISTANT]
        timed = [m.metadata["response_time_ms"] for m in ai_messages
                 if m.metadata.get("response_time_ms")]
        return {
            "total_messages": len(self.messages),
            "user_messages": sum(1 for m in self.messages if m.role == MessageRole.USER),
            "ai_messages": len(ai_messages),
            "total_tokens": sum(m.metadata.get("tokens") or 0 for m in self.messages),
            "average_response_time_ms": sum(timed) / len(timed) if timed else 0,
            "last_activity": _iso(self.last_activity)
        }

    def to_dict(self, include_messages: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.session_id,
            "user_id": self.user_id,
            "title": self.title,
            "context": self.context.to_dict(),
            "status": self.status.value,
            "statistics": self.statistics,
            "created_at": _iso(self.created_at),
            "last_message": self.messages[-1].content if self.messages else None
        }
        if include_messages:
            data["messages"] = [m.to_dict() for m in self.messages]
        return data
