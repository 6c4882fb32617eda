"""Learning journey API routes, mounted under the goals prefix."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_current_user, get_journey_manager
from api.schemas import (
    ArchiveRequest,
    ChunkCreate,
    ChunkProgressUpdate,
    ChunkUpdate,
    JourneyUpdate,
    NoteCreate,
    ObjectiveCreate,
    ObjectiveUpdate,
    dump,
    envelope,
)
from core.journey_manager import JourneyManager
from core.models import JourneyStatus

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post("/{goal_id}/journey", status_code=201)
async def create_journey(
    goal_id: str,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    """Plan a journey from the goal's milestones."""
    journey = manager.create_from_goal(user["id"], goal_id)
    return envelope(journey.to_dict(), message="Journey created successfully")


@router.get("/{goal_id}/journeys")
async def journeys_for_goal(
    goal_id: str,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    journeys = manager.journeys_for_goal(user["id"], goal_id)
    return envelope([j.to_dict() for j in journeys], count=len(journeys))


@router.get("/journeys")
async def list_journeys(
    status: Optional[JourneyStatus] = None,
    goal_id: Optional[str] = None,
    is_archived: Optional[bool] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    """List the caller's journeys by start date, paginated."""
    journeys, pagination = manager.list_journeys(
        user["id"],
        status=status.value if status else None,
        goal_id=goal_id,
        is_archived=is_archived,
        page=page,
        limit=limit
    )
    return envelope([j.to_dict() for j in journeys], pagination=pagination)


@router.get("/journeys/overdue")
async def overdue_journeys(
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    journeys = manager.overdue_journeys(user["id"])
    return envelope([j.to_dict() for j in journeys], count=len(journeys))


@router.get("/journeys/{journey_id}")
async def get_journey(
    journey_id: str,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    return envelope(manager.get_journey(user["id"], journey_id).to_dict())


@router.put("/journeys/{journey_id}")
async def update_journey(
    journey_id: str,
    request: JourneyUpdate,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    journey = manager.update_journey(user["id"], journey_id, dump(request))
    return envelope(journey.to_dict(), message="Journey updated successfully")


@router.delete("/journeys/{journey_id}")
async def delete_journey(
    journey_id: str,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    manager.delete_journey(user["id"], journey_id)
    return envelope(None, message="Journey deleted successfully")


@router.put("/journeys/{journey_id}/archive")
async def toggle_archive(
    journey_id: str,
    request: ArchiveRequest,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    journey = manager.toggle_archive(user["id"], journey_id, request.is_archived)
    message = "Journey archived successfully" if request.is_archived else "Journey unarchived successfully"
    return envelope(journey.to_dict(), message=message)


@router.get("/journeys/{journey_id}/current-chunk")
async def current_chunk(
    journey_id: str,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    """The running chunk, the next chunk and overall progress."""
    return envelope(manager.current_chunk(user["id"], journey_id))


# ===========================
# Chunks
# ===========================

@router.post("/journeys/{journey_id}/chunks", status_code=201)
async def add_chunk(
    journey_id: str,
    request: ChunkCreate,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    journey = manager.add_chunk(user["id"], journey_id, dump(request))
    return envelope(journey.to_dict(), message="Chunk added successfully")


@router.put("/journeys/{journey_id}/chunks/{chunk_id}")
async def update_chunk(
    journey_id: str,
    chunk_id: str,
    request: ChunkUpdate,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    journey = manager.update_chunk(user["id"], journey_id, chunk_id, dump(request))
    return envelope(journey.to_dict(), message="Chunk updated successfully")


@router.delete("/journeys/{journey_id}/chunks/{chunk_id}")
async def delete_chunk(
    journey_id: str,
    chunk_id: str,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    journey = manager.delete_chunk(user["id"], journey_id, chunk_id)
    return envelope(journey.to_dict(), message="Chunk deleted successfully")


@router.put("/journeys/{journey_id}/chunks/{chunk_id}/progress")
async def update_chunk_progress(
    journey_id: str,
    chunk_id: str,
    request: ChunkProgressUpdate,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    journey = manager.update_chunk_progress(
        user["id"],
        journey_id,
        chunk_id,
        progress=request.progress,
        status=request.status.value if request.status else None
    )
    return envelope(journey.to_dict(), message="Chunk progress updated successfully")


@router.post("/journeys/{journey_id}/chunks/{chunk_id}/objectives", status_code=201)
async def add_objective(
    journey_id: str,
    chunk_id: str,
    request: ObjectiveCreate,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    journey = manager.add_objective(user["id"], journey_id, chunk_id, request.objective)
    return envelope(journey.to_dict(), message="Objective added successfully")


@router.put("/journeys/{journey_id}/chunks/{chunk_id}/objectives/{objective_id}")
async def update_objective(
    journey_id: str,
    chunk_id: str,
    objective_id: str,
    request: ObjectiveUpdate,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    journey = manager.update_objective(user["id"], journey_id, chunk_id, objective_id, dump(request))
    return envelope(journey.to_dict(), message="Objective updated successfully")


@router.post("/journeys/{journey_id}/chunks/{chunk_id}/notes", status_code=201)
async def add_note(
    journey_id: str,
    chunk_id: str,
    request: NoteCreate,
    user: dict = Depends(get_current_user),
    manager: JourneyManager = Depends(get_journey_manager)
):
    journey = manager.add_note(user["id"], journey_id, chunk_id, request.content, request.is_important)
    return envelope(journey.to_dict(), message="Note added successfully")
