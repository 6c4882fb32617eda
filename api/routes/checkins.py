"""Check-in API routes."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_checkin_manager, get_current_user
from api.schemas import (
    AssessmentRequest,
    CheckInCreate,
    CheckInUpdate,
    RecurringCreate,
    RescheduleRequest,
    dump,
    envelope,
)
from core.checkin_manager import CheckInManager

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post("/", status_code=201)
async def create_checkin(
    request: CheckInCreate,
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    """Create a check-in for one of the caller's goals."""
    checkin = manager.create_checkin(user["id"], dump(request))
    return envelope(checkin.to_dict(), message="Check-in created successfully")


@router.post("/recurring/create", status_code=201)
async def create_recurring(
    request: RecurringCreate,
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    """Create a series of check-ins up to the end date (or one year)."""
    data = dump(request)
    checkins = manager.create_recurring_checkins(
        user["id"],
        goal_id=data["goal_id"],
        frequency=data["frequency"],
        start_date=data["start_date"],
        end_date=data.get("end_date"),
        reminder_settings=data.get("reminder_settings")
    )
    return envelope(
        [c.to_dict() for c in checkins],
        message=f"Created {len(checkins)} recurring check-ins"
    )


@router.get("/")
async def list_checkins(
    status: Optional[str] = None,
    goal_id: Optional[str] = None,
    frequency: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    sort_order: str = Query(default="asc", pattern="^(asc|desc)$"),
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    """Filtered, paginated check-ins ordered by scheduled date."""
    checkins, pagination = manager.list_checkins(
        user["id"],
        status=status,
        goal_id=goal_id,
        frequency=frequency,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
        sort_order=sort_order
    )
    return envelope([c.to_dict() for c in checkins], pagination=pagination)


@router.get("/upcoming")
async def upcoming_checkins(
    limit: int = Query(default=10, ge=1, le=100),
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    return envelope([c.to_dict() for c in manager.upcoming_checkins(user["id"], limit)])


@router.get("/overdue")
async def overdue_checkins(
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    return envelope([c.to_dict() for c in manager.overdue_checkins(user["id"])])


@router.get("/statistics")
async def checkin_statistics(
    time_range: str = "month",
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    return envelope(manager.statistics(user["id"], time_range))


@router.get("/calendar")
async def calendar(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    """Check-ins in a date range grouped by day."""
    return envelope(manager.calendar(user["id"], start_date, end_date))


@router.get("/date-range")
async def checkins_by_date_range(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    checkins = manager.checkins_by_date_range(user["id"], start_date, end_date)
    return envelope([c.to_dict() for c in checkins])


@router.get("/{checkin_id}")
async def get_checkin(
    checkin_id: str,
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    return envelope(manager.get_checkin(user["id"], checkin_id).to_dict())


@router.put("/{checkin_id}")
async def update_checkin(
    checkin_id: str,
    request: CheckInUpdate,
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    checkin = manager.update_checkin(user["id"], checkin_id, dump(request))
    return envelope(checkin.to_dict(), message="Check-in updated successfully")


@router.delete("/{checkin_id}")
async def delete_checkin(
    checkin_id: str,
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    manager.delete_checkin(user["id"], checkin_id)
    return envelope(None, message="Check-in deleted successfully")


@router.post("/{checkin_id}/complete")
async def complete_checkin(
    checkin_id: str,
    request: Optional[AssessmentRequest] = None,
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    """Complete a check-in; overall_progress also updates the goal."""
    assessment = dump(request) if request else {}
    checkin = manager.complete_checkin(user["id"], checkin_id, assessment)
    return envelope(checkin.to_dict(), message="Check-in completed successfully")


@router.post("/{checkin_id}/miss")
async def miss_checkin(
    checkin_id: str,
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    checkin = manager.miss_checkin(user["id"], checkin_id)
    return envelope(checkin.to_dict(), message="Check-in marked as missed")


@router.post("/{checkin_id}/reschedule")
async def reschedule_checkin(
    checkin_id: str,
    request: RescheduleRequest,
    user: dict = Depends(get_current_user),
    manager: CheckInManager = Depends(get_checkin_manager)
):
    checkin = manager.reschedule_checkin(user["id"], checkin_id, request.new_date)
    return envelope(checkin.to_dict(), message="Check-in rescheduled successfully")
