from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointment import Appointment, AppointmentRef, AppointmentStatus
from app.models.blocked_slot import BlockedSlot, BlockedSlotPublic
from app.models.pet import Pet, PetSummary
from app.models.schedule import CalendarPreferences, CalendarView, WeeklySchedule
from app.models.service import Service, ServiceSummary
from app.models.user import User, UserSummary
from app.services.settings_service import get_slot_duration, get_weekly_schedule
from app.services.slot_service import (
    DerivedSlot,
    compute_day_slots,
    compute_week_slots,
    day_schedule_for,
    get_slot_status,
    week_dates,
)


@dataclass
class CalendarDay:
    date: date
    enabled: bool
    slots: list[DerivedSlot]


@dataclass
class CalendarGrid:
    view: CalendarView
    start: date
    end: date
    slot_duration: int
    times: list[str]
    days: list[CalendarDay] = field(default_factory=list)


def appointment_to_ref(
    a: Appointment,
    user: User | None = None,
    pet: Pet | None = None,
    service: Service | None = None,
) -> AppointmentRef:
    return AppointmentRef(
        id=a.id,
        scheduled_date=a.scheduled_date,
        scheduled_time=a.scheduled_time.strftime("%H:%M:%S"),
        status=AppointmentStatus(a.status),
        user=UserSummary(id=user.id, name=user.name, email=user.email, phone=user.phone) if user else None,
        pet=PetSummary(id=pet.id, name=pet.name, species=pet.species) if pet else None,
        service=ServiceSummary(id=service.id, name=service.name) if service else None,
    )


def blocked_to_public(b: BlockedSlot) -> BlockedSlotPublic:
    return BlockedSlotPublic(
        id=b.id,
        date=b.date,
        start_time=b.start_time.strftime("%H:%M:%S"),
        end_time=b.end_time.strftime("%H:%M:%S"),
        reason=b.reason,
    )


async def list_calendar_appointments(
    session: AsyncSession, start: date, end: date, include_cancelled: bool = False
) -> list[AppointmentRef]:
    q = (
        select(Appointment, User, Pet, Service)
        .join(User, User.id == Appointment.user_id, isouter=True)
        .join(Pet, Pet.id == Appointment.pet_id, isouter=True)
        .join(Service, Service.id == Appointment.service_id, isouter=True)
        .where(Appointment.scheduled_date >= start, Appointment.scheduled_date <= end)
        .order_by(Appointment.scheduled_date, Appointment.scheduled_time, Appointment.id)
    )
    if not include_cancelled:
        q = q.where(Appointment.status != AppointmentStatus.CANCELLED.value)
    result = await session.execute(q)
    return [appointment_to_ref(a, u, p, s) for a, u, p, s in result.all()]


async def list_blocked_slots(session: AsyncSession, start: date, end: date) -> list[BlockedSlotPublic]:
    result = await session.execute(
        select(BlockedSlot)
        .where(BlockedSlot.date >= start, BlockedSlot.date <= end)
        .order_by(BlockedSlot.date, BlockedSlot.start_time)
    )
    return [blocked_to_public(b) for b in result.scalars().all()]


def build_grid(
    view: CalendarView,
    days: list[date],
    schedule: WeeklySchedule,
    slot_duration: int,
    appointments: list[AppointmentRef],
    blocked_slots: list[BlockedSlotPublic],
) -> CalendarGrid:
    if view == CalendarView.WEEK:
        times = compute_week_slots(days, schedule, slot_duration, appointments)
    else:
        times = compute_day_slots(days[0], schedule, slot_duration, appointments)

    # Group once so each cell only scans its own day
    appointments_by_day: dict[date, list[AppointmentRef]] = defaultdict(list)
    for a in appointments:
        appointments_by_day[a.scheduled_date].append(a)
    blocks_by_day: dict[date, list[BlockedSlotPublic]] = defaultdict(list)
    for b in blocked_slots:
        blocks_by_day[b.date].append(b)

    grid = CalendarGrid(
        view=view,
        start=days[0],
        end=days[-1],
        slot_duration=slot_duration,
        times=times,
    )
    for d in days:
        day_schedule = day_schedule_for(d, schedule)
        grid.days.append(
            CalendarDay(
                date=d,
                enabled=bool(day_schedule and day_schedule.enabled),
                slots=[
                    get_slot_status(d, t, appointments_by_day[d], blocks_by_day[d], schedule)
                    for t in times
                ],
            )
        )
    return grid


async def load_calendar(
    session: AsyncSession,
    anchor: date,
    preferences: CalendarPreferences,
    include_cancelled: bool = False,
) -> CalendarGrid:
    """Fetch schedule, appointments and blocks for the requested view and derive the grid."""
    days = week_dates(anchor) if preferences.view == CalendarView.WEEK else [anchor]
    schedule = await get_weekly_schedule(session)
    slot_duration = await get_slot_duration(session)
    appointments = await list_calendar_appointments(
        session, days[0], days[-1], include_cancelled=include_cancelled
    )
    blocked = await list_blocked_slots(session, days[0], days[-1])
    return build_grid(preferences.view, days, schedule, slot_duration, appointments, blocked)
