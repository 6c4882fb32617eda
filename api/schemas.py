"""Request models and the response envelope."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from core.models import (
    CheckInFrequency,
    CheckInStatus,
    CheckInType,
    Energy,
    GoalCategory,
    GoalComplexity,
    GoalPriority,
    GoalStatus,
    ChunkStatus,
    JourneyStatus,
    MilestoneStatus,
    Mood,
    Motivation,
    SessionStatus,
)


def envelope(data: Any = None, message: Optional[str] = None, **extra) -> Dict[str, Any]:
    """Successful response body."""
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    body.update(extra)
    return body


def dump(model: BaseModel) -> Dict[str, Any]:
    """Plain JSON-ready dict of the fields the caller actually sent."""
    return model.model_dump(mode="json", exclude_none=True)


# ===========================
# Goals
# ===========================

class MilestoneCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    target_date: Optional[datetime] = None
    status: Optional[MilestoneStatus] = None


class MilestoneUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    target_date: Optional[datetime] = None
    status: Optional[MilestoneStatus] = None


class GoalCreate(BaseModel):
    """New goal."""
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[GoalCategory] = None
    complexity: Optional[GoalComplexity] = None
    status: Optional[GoalStatus] = None
    priority: Optional[GoalPriority] = None
    target_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    milestones: List[MilestoneCreate] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, tags: List[str]) -> List[str]:
        for tag in tags:
            if len(tag) > 30:
                raise ValueError("Tag cannot exceed 30 characters")
        return tags


class GoalUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[GoalCategory] = None
    complexity: Optional[GoalComplexity] = None
    status: Optional[GoalStatus] = None
    priority: Optional[GoalPriority] = None
    target_date: Optional[datetime] = None
    tags: Optional[List[str]] = None


class ProgressUpdate(BaseModel):
    milestone_id: Optional[str] = None
    status: Optional[MilestoneStatus] = None
    overall_progress: Optional[float] = Field(default=None, ge=0, le=100)


class NoteCreate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)
    is_important: bool = False


class ArchiveRequest(BaseModel):
    is_archived: bool


# ===========================
# Journeys
# ===========================

class JourneyUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    status: Optional[JourneyStatus] = None
    priority: Optional[GoalPriority] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    tags: Optional[List[str]] = None


class ChunkCreate(BaseModel):
    """New chunk appended to a journey."""
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    start_date: datetime
    end_date: datetime
    duration_weeks: int = Field(ge=1, le=4)


class ChunkUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    duration_weeks: Optional[int] = Field(default=None, ge=1, le=4)
    status: Optional[ChunkStatus] = None


class ObjectiveCreate(BaseModel):
    objective: str = Field(min_length=1, max_length=200)


class ObjectiveUpdate(BaseModel):
    objective: Optional[str] = Field(default=None, min_length=1, max_length=200)
    is_completed: Optional[bool] = None


class ChunkProgressUpdate(BaseModel):
    progress: Optional[float] = None
    status: Optional[ChunkStatus] = None


# ===========================
# Check-ins
# ===========================

class CustomFrequency(BaseModel):
    days: Optional[int] = Field(default=None, ge=1, le=365)
    hours: Optional[int] = Field(default=None, ge=0, le=23)


class ReminderSettingsModel(BaseModel):
    enabled: bool = True
    advance_time: int = Field(default=60, ge=0)
    methods: List[Literal["email", "push", "in-app"]] = Field(default_factory=lambda: ["email"])


class CheckInCreate(BaseModel):
    """New check-in bound to a goal."""
    goal_id: str = Field(min_length=1)
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    type: Optional[CheckInType] = None
    frequency: Optional[CheckInFrequency] = None
    custom_frequency: Optional[CustomFrequency] = None
    scheduled_date: Optional[datetime] = None
    reminder_settings: Optional[ReminderSettingsModel] = None
    is_recurring: Optional[bool] = None
    recurrence_end_date: Optional[datetime] = None


class CheckInUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    type: Optional[CheckInType] = None
    status: Optional[CheckInStatus] = None
    frequency: Optional[CheckInFrequency] = None
    custom_frequency: Optional[CustomFrequency] = None
    scheduled_date: Optional[datetime] = None
    reminder_settings: Optional[ReminderSettingsModel] = None
    is_recurring: Optional[bool] = None
    recurrence_end_date: Optional[datetime] = None


class AssessmentRequest(BaseModel):
    """Self-assessment submitted when completing a check-in."""
    overall_progress: Optional[float] = Field(default=None, ge=0, le=100)
    mood: Optional[Mood] = None
    energy: Optional[Energy] = None
    motivation: Optional[Motivation] = None
    challenges: Optional[List[str]] = None
    achievements: Optional[List[str]] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    rating: Optional[int] = Field(default=None, ge=1, le=10)


class RescheduleRequest(BaseModel):
    new_date: datetime


class RecurringCreate(BaseModel):
    goal_id: str = Field(min_length=1)
    frequency: CheckInFrequency
    start_date: datetime
    end_date: Optional[datetime] = None
    reminder_settings: Optional[ReminderSettingsModel] = None


# ===========================
# AI tutor
# ===========================

class ChatContext(BaseModel):
    goal_id: Optional[str] = None
    active_module: Optional[str] = None
    user_level: Optional[GoalComplexity] = None


class ChatRequest(BaseModel):
    """Chat message with optional session for conversation continuity."""
    message: str = Field(min_length=1, max_length=2000)
    session_id: Optional[str] = None
    context: Optional[ChatContext] = None

    @field_validator("message")
    @classmethod
    def check_message(cls, message: str) -> str:
        message = message.strip()
        if not message:
            raise ValueError("Message is required")
        return message


class QuickResponseRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)

    @field_validator("message")
    @classmethod
    def check_message(cls, message: str) -> str:
        message = message.strip()
        if not message:
            raise ValueError("Message is required")
        return message


class SessionCreate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    goal_id: Optional[str] = None
    active_module: Optional[str] = None
    user_level: Optional[GoalComplexity] = None


class SessionStatusUpdate(BaseModel):
    status: SessionStatus


class PracticeRequest(BaseModel):
    module_title: str = Field(min_length=1, max_length=200)
    related_goal: Optional[str] = None
    user_progress: float = Field(default=0, ge=0, le=100)
