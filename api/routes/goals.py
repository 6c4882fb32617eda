"""Goal API routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from api.deps import get_current_user, get_goal_manager
from api.schemas import (
    ArchiveRequest,
    GoalCreate,
    GoalUpdate,
    MilestoneCreate,
    MilestoneUpdate,
    NoteCreate,
    ProgressUpdate,
    dump,
    envelope,
)
from core.goal_manager import GoalManager

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post("/", status_code=201)
async def create_goal(
    request: GoalCreate,
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    """Create a goal with optional milestones."""
    goal = manager.create_goal(user["id"], dump(request))
    return envelope(goal.to_dict(), message="Goal created successfully")


@router.get("/")
async def list_goals(
    status: Optional[str] = None,
    category: Optional[str] = None,
    complexity: Optional[str] = None,
    is_archived: Optional[bool] = None,
    tag: Optional[str] = None,
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    """List the caller's goals, newest first."""
    goals = manager.list_goals(
        user["id"],
        status=status,
        category=category,
        complexity=complexity,
        is_archived=is_archived,
        tag=tag
    )
    return envelope([g.to_dict() for g in goals], count=len(goals))


@router.get("/analytics")
async def goal_analytics(
    time_range: str = "all",
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    return envelope(manager.goal_analytics(user["id"], time_range))


@router.get("/overdue")
async def overdue_goals(
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    return envelope([g.to_dict() for g in manager.overdue_goals(user["id"])])


@router.get("/{goal_id}")
async def get_goal(
    goal_id: str,
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    return envelope(manager.get_goal(user["id"], goal_id).to_dict())


@router.put("/{goal_id}")
async def update_goal(
    goal_id: str,
    request: GoalUpdate,
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    goal = manager.update_goal(user["id"], goal_id, dump(request))
    return envelope(goal.to_dict(), message="Goal updated successfully")


@router.delete("/{goal_id}")
async def delete_goal(
    goal_id: str,
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    """Delete a goal and its check-ins."""
    manager.delete_goal(user["id"], goal_id)
    return envelope(None, message="Goal deleted successfully")


@router.post("/{goal_id}/milestones", status_code=201)
async def add_milestone(
    goal_id: str,
    request: MilestoneCreate,
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    goal = manager.add_milestone(user["id"], goal_id, dump(request))
    return envelope(goal.to_dict(), message="Milestone added successfully")


@router.put("/{goal_id}/milestones/{milestone_id}")
async def update_milestone(
    goal_id: str,
    milestone_id: str,
    request: MilestoneUpdate,
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    goal = manager.update_milestone(user["id"], goal_id, milestone_id, dump(request))
    return envelope(goal.to_dict(), message="Milestone updated successfully")


@router.delete("/{goal_id}/milestones/{milestone_id}")
async def delete_milestone(
    goal_id: str,
    milestone_id: str,
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    goal = manager.delete_milestone(user["id"], goal_id, milestone_id)
    return envelope(goal.to_dict(), message="Milestone deleted successfully")


@router.put("/{goal_id}/progress")
async def update_progress(
    goal_id: str,
    request: ProgressUpdate,
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    goal = manager.update_progress(user["id"], goal_id, dump(request))
    return envelope(goal.to_dict(), message="Progress updated successfully")


@router.post("/{goal_id}/notes", status_code=201)
async def add_note(
    goal_id: str,
    request: NoteCreate,
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    goal = manager.add_note(user["id"], goal_id, request.content, request.is_important)
    return envelope(goal.to_dict(), message="Note added successfully")


@router.put("/{goal_id}/archive")
async def toggle_archive(
    goal_id: str,
    request: ArchiveRequest,
    user: dict = Depends(get_current_user),
    manager: GoalManager = Depends(get_goal_manager)
):
    goal = manager.toggle_archive(user["id"], goal_id, request.is_archived)
    message = "Goal archived successfully" if request.is_archived else "Goal unarchived successfully"
    return envelope(goal.to_dict(), message=message)
