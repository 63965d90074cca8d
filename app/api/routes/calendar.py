from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session, require_admin
from app.api.schemas.calendar import (
    BlockSlotRequest,
    CalendarDayColumn,
    CalendarResponse,
    SlotCell,
)
from app.models.blocked_slot import BlockedSlotPublic
from app.models.schedule import CalendarPreferences, CalendarView
from app.models.user import User
from app.services.booking_service import block_slot, unblock_slot
from app.services.calendar_service import CalendarGrid, blocked_to_public, list_blocked_slots, load_calendar
from app.services.settings_service import get_calendar_preferences, save_calendar_preferences
from app.services.slot_service import DerivedSlot, schedule_day_index

router = APIRouter(prefix="/calendar", tags=["calendar"])


def _to_cell(slot: DerivedSlot) -> SlotCell:
    return SlotCell(
        time=slot.time,
        available=slot.available,
        blocked=slot.blocked,
        state=slot.state,
        within_schedule=slot.within_schedule,
        block_id=slot.block_id,
        appointments=list(slot.appointments),
    )


def _to_response(grid: CalendarGrid) -> CalendarResponse:
    return CalendarResponse(
        view=grid.view,
        start=grid.start,
        end=grid.end,
        slot_duration=grid.slot_duration,
        times=grid.times,
        days=[
            CalendarDayColumn(
                date=day.date,
                weekday=schedule_day_index(day.date),
                enabled=day.enabled,
                slots=[_to_cell(s) for s in day.slots],
            )
            for day in grid.days
        ],
    )


@router.get("", response_model=CalendarResponse)
async def get_calendar(
    date_param: date = Query(..., alias="date"),
    view: CalendarView | None = Query(None),
    include_cancelled: bool = Query(False),
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
) -> CalendarResponse:
    """Day or week grid; without ``view`` the admin's saved preference is used."""
    prefs = CalendarPreferences(view=view) if view else await get_calendar_preferences(session, admin.id)
    grid = await load_calendar(session, date_param, prefs, include_cancelled=include_cancelled)
    return _to_response(grid)


@router.get("/day", response_model=CalendarResponse)
async def get_day(
    date_param: date = Query(..., alias="date"),
    include_cancelled: bool = Query(False),
    session: AsyncSession = Depends(get_session),
    _admin: User = Depends(require_admin),
) -> CalendarResponse:
    grid = await load_calendar(
        session, date_param, CalendarPreferences(view=CalendarView.DAY), include_cancelled=include_cancelled
    )
    return _to_response(grid)


@router.get("/week", response_model=CalendarResponse)
async def get_week(
    date_param: date = Query(..., alias="date"),
    include_cancelled: bool = Query(False),
    session: AsyncSession = Depends(get_session),
    _admin: User = Depends(require_admin),
) -> CalendarResponse:
    """Monday-to-Sunday week containing ``date``; all days share one set of time rows."""
    grid = await load_calendar(
        session, date_param, CalendarPreferences(view=CalendarView.WEEK), include_cancelled=include_cancelled
    )
    return _to_response(grid)


@router.get("/preferences", response_model=CalendarPreferences)
async def read_preferences(
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
) -> CalendarPreferences:
    return await get_calendar_preferences(session, admin.id)


@router.put("/preferences", response_model=CalendarPreferences)
async def update_preferences(
    body: CalendarPreferences,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
) -> CalendarPreferences:
    return await save_calendar_preferences(session, admin.id, body)


@router.get("/blocks", response_model=list[BlockedSlotPublic])
async def list_blocks(
    start: date = Query(...),
    end: date = Query(...),
    session: AsyncSession = Depends(get_session),
    _admin: User = Depends(require_admin),
) -> list[BlockedSlotPublic]:
    if end < start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end must not be before start")
    return await list_blocked_slots(session, start, end)


@router.post("/blocks", response_model=BlockedSlotPublic, status_code=status.HTTP_201_CREATED)
async def create_block(
    body: BlockSlotRequest,
    session: AsyncSession = Depends(get_session),
    _admin: User = Depends(require_admin),
) -> BlockedSlotPublic:
    try:
        block = await block_slot(
            session,
            body.date,
            body.time,
            reason=body.reason,
            block_duration_minutes=body.duration_minutes,
        )
    except IntegrityError:
        # Another admin blocked the same cell between our read and insert
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Slot was blocked concurrently; refresh the calendar",
        )
    if not block:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Slot already has appointments and cannot be blocked",
        )
    return blocked_to_public(block)


@router.delete("/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_block(
    block_id: int,
    session: AsyncSession = Depends(get_session),
    _admin: User = Depends(require_admin),
) -> None:
    ok = await unblock_slot(session, block_id)
    if not ok:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Blocked slot not found",
        )
