"""Admin mutations behind the calendar grid: block, unblock and status changes.

Each operation is a single write; callers refetch the calendar afterwards
instead of patching derived state.
"""
import logging
from datetime import UTC, date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.appointment import Appointment, AppointmentStatus
from app.models.blocked_slot import BlockedSlot
from app.services.events import AppointmentEvent, AppointmentEventType
from app.services.settings_service import get_slot_duration
from app.services.slot_service import time_label

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "Blocked by administrator"

_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CANCELLED: frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}),
    AppointmentStatus.COMPLETED: frozenset(),
}


class StatusTransitionError(Exception):
    def __init__(self, current: AppointmentStatus, requested: AppointmentStatus):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change appointment status from {current.value} to {requested.value}")


def can_transition(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    return requested in _TRANSITIONS.get(current, frozenset())


def allowed_transitions(current: AppointmentStatus) -> list[AppointmentStatus]:
    return sorted(_TRANSITIONS.get(current, frozenset()), key=lambda s: list(AppointmentStatus).index(s))


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def block_end_time(d: date, start: time, duration_minutes: int) -> time:
    """Start plus duration, clamped to the end of the same day."""
    end = datetime.combine(d, start) + timedelta(minutes=duration_minutes)
    if end.date() != d:
        return time(23, 59, 59)
    return end.time()


async def _occupying_appointments(session: AsyncSession, d: date, slot_time: time) -> list[Appointment]:
    result = await session.execute(
        select(Appointment).where(
            Appointment.scheduled_date == d,
            Appointment.status != AppointmentStatus.CANCELLED.value,
        )
    )
    label = time_label(slot_time)
    return [a for a in result.scalars().all() if time_label(a.scheduled_time) == label]


async def block_slot(
    session: AsyncSession,
    d: date,
    slot_time: time,
    reason: str | None = None,
    block_duration_minutes: int | None = None,
) -> BlockedSlot | None:
    """Block one calendar cell. Returns None if appointments already occupy it.

    The block lasts ``block_duration_minutes``, falling back to the
    BLOCK_DURATION_MINUTES setting and then to the configured slot duration.
    Blocking a cell that is already blocked updates the existing row.
    """
    start = slot_time.replace(second=0, microsecond=0)
    if await _occupying_appointments(session, d, start):
        return None
    duration = block_duration_minutes or settings.block_duration_minutes or await get_slot_duration(session)
    end = block_end_time(d, start, duration)

    result = await session.execute(
        select(BlockedSlot).where(BlockedSlot.date == d, BlockedSlot.start_time == start)
    )
    block = result.scalar_one_or_none()
    if block is None:
        block = BlockedSlot(date=d, start_time=start, end_time=end, reason=reason or DEFAULT_BLOCK_REASON)
        session.add(block)
    else:
        block.end_time = end
        block.reason = reason or block.reason or DEFAULT_BLOCK_REASON
    await session.flush()
    await session.refresh(block)
    logger.info("Blocked slot %s %s-%s (id=%s)", d.isoformat(), time_label(start), time_label(end), block.id)
    return block


async def unblock_slot(session: AsyncSession, blocked_slot_id: int) -> bool:
    result = await session.execute(select(BlockedSlot).where(BlockedSlot.id == blocked_slot_id))
    block = result.scalar_one_or_none()
    if not block:
        return False
    await session.delete(block)
    await session.flush()
    logger.info("Unblocked slot id=%s (%s %s)", blocked_slot_id, block.date.isoformat(), time_label(block.start_time))
    return True


async def transition_appointment_status(
    session: AsyncSession,
    appointment_id: int,
    new_status: AppointmentStatus,
    cancelled_by: str = "admin",
    reason: str | None = None,
) -> tuple[Appointment, AppointmentEvent | None] | None:
    """Move an appointment to ``new_status``.

    Returns None when the appointment does not exist and raises
    StatusTransitionError when the change is not allowed. Confirming or
    cancelling yields an event for the notifier; the caller publishes it.
    """
    result = await session.execute(select(Appointment).where(Appointment.id == appointment_id))
    appointment = result.scalar_one_or_none()
    if not appointment:
        return None
    current = AppointmentStatus(appointment.status)
    if not can_transition(current, new_status):
        raise StatusTransitionError(current, new_status)

    now = _utc_naive_now()
    appointment.status = new_status.value
    appointment.updated_at = now
    if new_status == AppointmentStatus.COMPLETED:
        appointment.completed_at = now
    elif new_status == AppointmentStatus.CANCELLED:
        appointment.cancelled_at = now
    await session.flush()
    await session.refresh(appointment)
    logger.info("Appointment %s: %s -> %s", appointment_id, current.value, new_status.value)

    event = None
    if new_status == AppointmentStatus.CONFIRMED:
        event = AppointmentEvent(type=AppointmentEventType.CONFIRMED, appointment_id=appointment_id)
    elif new_status == AppointmentStatus.CANCELLED:
        event = AppointmentEvent(
            type=AppointmentEventType.CANCELLED,
            appointment_id=appointment_id,
            cancelled_by=cancelled_by,
            reason=reason,
        )
    return appointment, event
