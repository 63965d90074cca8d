from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session
from app.api.schemas.appointment import AvailableSlotsResponse, SlotInfo
from app.services.appointment_service import is_past_slot
from app.services.calendar_service import list_blocked_slots, list_calendar_appointments
from app.services.settings_service import get_slot_duration, get_weekly_schedule
from app.services.slot_service import day_schedule_for, generate_slot_labels, get_slot_status

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    date_param: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> AvailableSlotsResponse:
    """Slots of the date that have not started yet; booked or blocked ones are unavailable."""
    schedule = await get_weekly_schedule(session)
    slot_duration = await get_slot_duration(session)
    day = day_schedule_for(date_param, schedule)
    labels = generate_slot_labels(day.start, day.end, slot_duration) if day and day.enabled else []
    labels = [t for t in labels if not is_past_slot(date_param, t)]
    appointments = await list_calendar_appointments(session, date_param, date_param)
    blocked = await list_blocked_slots(session, date_param, date_param)
    return AvailableSlotsResponse(
        date=date_param.isoformat(),
        slot_duration=slot_duration,
        slots=[
            SlotInfo(time=t, available=get_slot_status(date_param, t, appointments, blocked).available)
            for t in labels
        ],
    )
