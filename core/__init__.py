"""Domain core for Goal Achiever: models, storage and managers."""

from core.models import (
    GoalCategory,
    GoalComplexity,
    GoalStatus,
    GoalPriority,
    JourneyStatus,
    ChunkStatus,
    ResourceType,
    MilestoneStatus,
    CheckInType,
    CheckInStatus,
    CheckInFrequency,
    Mood,
    SessionStatus,
    MessageRole,
    Milestone,
    GoalNote,
    GoalProgress,
    Goal,
    LearningObjective,
    ChunkResource,
    JourneyChunk,
    JourneyProgress,
    Journey,
    compute_journey_progress,
    ReminderSettings,
    ProgressAssessment,
    CheckIn,
    ChatMessage,
    SessionContext,
    ChatSession,
)
from core.errors import (
    GoalAchieverError,
    ValidationError,
    NotFoundError,
    AccessDeniedError,
    TutorServiceError,
    RateLimitError,
)
from core.repository import Repository, InMemoryRepository
from core.analytics import AnalyticsCalculator
from core.goal_manager import GoalManager
from core.journey_manager import JourneyManager
from core.checkin_manager import CheckInManager
from core.session_manager import ChatSessionManager

__all__ = [
    # Enums
    "GoalCategory",
    "GoalComplexity",
    "GoalStatus",
    "GoalPriority",
    "JourneyStatus",
    "ChunkStatus",
    "ResourceType",
    "MilestoneStatus",
    "CheckInType",
    "CheckInStatus",
    "CheckInFrequency",
    "Mood",
    "SessionStatus",
    "MessageRole",
    # Data models
    "Milestone",
    "GoalNote",
    "GoalProgress",
    "Goal",
    "LearningObjective",
    "ChunkResource",
    "JourneyChunk",
    "JourneyProgress",
    "Journey",
    "compute_journey_progress",
    "ReminderSettings",
    "ProgressAssessment",
    "CheckIn",
    "ChatMessage",
    "SessionContext",
    "ChatSession",
    # Errors
    "GoalAchieverError",
    "ValidationError",
    "NotFoundError",
    "AccessDeniedError",
    "TutorServiceError",
    "RateLimitError",
    # Core components
    "Repository",
    "InMemoryRepository",
    "AnalyticsCalculator",
    "GoalManager",
    "JourneyManager",
    "CheckInManager",
    "ChatSessionManager",
]
