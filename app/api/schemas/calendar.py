import datetime as dt

from pydantic import BaseModel, Field

from app.models.appointment import AppointmentRef
from app.models.schedule import CalendarView


class SlotCell(BaseModel):
    time: str  # HH:MM
    available: bool
    blocked: bool
    state: str  # occupied | blocked | available | closed
    within_schedule: bool
    block_id: int | None = None
    appointments: list[AppointmentRef] = []


class CalendarDayColumn(BaseModel):
    date: dt.date
    weekday: int  # 0=Sunday .. 6=Saturday
    enabled: bool
    slots: list[SlotCell]


class CalendarResponse(BaseModel):
    view: CalendarView
    start: dt.date
    end: dt.date
    slot_duration: int
    times: list[str]
    days: list[CalendarDayColumn]


class BlockSlotRequest(BaseModel):
    date: dt.date
    time: dt.time
    reason: str | None = Field(None, max_length=200)
    duration_minutes: int | None = Field(None, gt=0, le=24 * 60)
