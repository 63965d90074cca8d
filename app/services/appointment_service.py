import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.appointment import Appointment, AppointmentCreate, AppointmentRef, AppointmentStatus
from app.models.blocked_slot import BlockedSlot
from app.models.pet import Pet
from app.models.service import Service
from app.models.user import User
from app.services.booking_service import transition_appointment_status
from app.services.calendar_service import appointment_to_ref
from app.services.events import AppointmentEvent, AppointmentEventType
from app.services.settings_service import get_slot_duration, get_weekly_schedule
from app.services.slot_service import day_schedule_for, find_block, generate_slot_labels, parse_minutes, time_label

logger = logging.getLogger(__name__)


def business_now() -> datetime:
    return datetime.now(ZoneInfo(settings.business_timezone))


def business_today() -> date:
    return business_now().date()


def is_past_slot(d: date, slot_label: str) -> bool:
    """True once the slot has started in the business timezone."""
    now = business_now()
    if d != now.date():
        return d < now.date()
    return parse_minutes(slot_label) <= now.hour * 60 + now.minute


async def create_appointments(
    session: AsyncSession, user_id: int, data: AppointmentCreate
) -> tuple[list[Appointment], list[AppointmentEvent]] | None:
    """Request one appointment per (pet, service) pair at the chosen slot.

    Returns None when the time is not one of the day's offered slots (closed
    day, off-grid minute, trailing partial slot), when the slot has already
    started or is blocked, or when a pet is not the caller's or a service is
    inactive. Several appointments may share a slot (one per pet).
    """
    label = time_label(data.scheduled_time)
    if is_past_slot(data.scheduled_date, label):
        return None
    day = day_schedule_for(data.scheduled_date, await get_weekly_schedule(session))
    if day is None or not day.enabled:
        return None
    if label not in generate_slot_labels(day.start, day.end, await get_slot_duration(session)):
        return None
    blocks = await session.execute(select(BlockedSlot).where(BlockedSlot.date == data.scheduled_date))
    if find_block(data.scheduled_date, data.scheduled_time, blocks.scalars().all()):
        return None

    pet_ids = set(data.pet_ids)
    pets = (
        await session.execute(select(Pet).where(Pet.id.in_(pet_ids), Pet.user_id == user_id))
    ).scalars().all()
    if len(pets) != len(pet_ids):
        return None
    service_ids = set(data.service_ids)
    services = (
        await session.execute(select(Service).where(Service.id.in_(service_ids), Service.active.is_(True)))
    ).scalars().all()
    if len(services) != len(service_ids):
        return None

    slot_time = data.scheduled_time.replace(second=0, microsecond=0)
    appointments = [
        Appointment(
            user_id=user_id,
            pet_id=pet.id,
            service_id=service.id,
            scheduled_date=data.scheduled_date,
            scheduled_time=slot_time,
            status=AppointmentStatus.PENDING.value,
            price=service.base_price,
            notes=data.notes,
        )
        for pet in sorted(pets, key=lambda p: p.id)
        for service in sorted(services, key=lambda s: s.id)
    ]
    session.add_all(appointments)
    await session.flush()
    for appointment in appointments:
        await session.refresh(appointment)
    logger.info(
        "User %s requested %d appointment(s) on %s at %s",
        user_id, len(appointments), data.scheduled_date.isoformat(), slot_time.strftime("%H:%M"),
    )
    events = [
        AppointmentEvent(type=AppointmentEventType.REQUESTED, appointment_id=a.id) for a in appointments
    ]
    return appointments, events


async def list_appointments_for_user(
    session: AsyncSession, user_id: int, from_date: date | None = None
) -> list[Appointment]:
    q = (
        select(Appointment)
        .where(Appointment.user_id == user_id)
        .order_by(Appointment.scheduled_date, Appointment.scheduled_time)
    )
    if from_date:
        q = q.where(Appointment.scheduled_date >= from_date)
    result = await session.execute(q)
    return list(result.scalars().all())


async def list_admin_appointments(
    session: AsyncSession, status: AppointmentStatus | None = None
) -> list[AppointmentRef]:
    q = (
        select(Appointment, User, Pet, Service)
        .join(User, User.id == Appointment.user_id, isouter=True)
        .join(Pet, Pet.id == Appointment.pet_id, isouter=True)
        .join(Service, Service.id == Appointment.service_id, isouter=True)
        .order_by(Appointment.scheduled_date.desc(), Appointment.scheduled_time)
    )
    if status is not None:
        q = q.where(Appointment.status == status.value)
    result = await session.execute(q)
    return [appointment_to_ref(a, u, p, s) for a, u, p, s in result.all()]


async def cancel_appointment(
    session: AsyncSession, appointment_id: int, user_id: int, reason: str | None = None
) -> tuple[Appointment, AppointmentEvent | None] | None:
    """Client-side cancellation of an own appointment; None if not found or not theirs."""
    result = await session.execute(
        select(Appointment.id).where(
            Appointment.id == appointment_id,
            Appointment.user_id == user_id,
        )
    )
    if result.scalar_one_or_none() is None:
        return None
    return await transition_appointment_status(
        session, appointment_id, AppointmentStatus.CANCELLED, cancelled_by="client", reason=reason
    )
