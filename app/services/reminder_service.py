import asyncio
import logging
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointment import Appointment, AppointmentStatus
from app.services.appointment_service import business_today
from app.services.email_service import EmailType
from app.services.notification_service import load_email_data, send_email_async

logger = logging.getLogger(__name__)

REMINDER_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)


@dataclass
class ReminderSummary:
    date: date
    total: int
    sent: int
    failed: int


async def send_reminders_for(session: AsyncSession, target: date) -> ReminderSummary:
    """Send a reminder for every pending/confirmed appointment on ``target``.

    Sends run concurrently and independently: one failure does not stop the rest.
    Appointments without a client email count as failed.
    """
    result = await session.execute(
        select(Appointment.id).where(
            Appointment.scheduled_date == target,
            Appointment.status.in_(REMINDER_STATUSES),
        )
    )
    ids = list(result.scalars().all())
    if not ids:
        return ReminderSummary(date=target, total=0, sent=0, failed=0)

    payloads = [await load_email_data(session, appointment_id) for appointment_id in ids]
    sendable = [p for p in payloads if p is not None and p.recipient_email]
    outcomes = await asyncio.gather(
        *(send_email_async(EmailType.REMINDER, p) for p in sendable),
        return_exceptions=True,
    )
    sent = 0
    for payload, outcome in zip(sendable, outcomes):
        if isinstance(outcome, BaseException):
            logger.error("Reminder for appointment %s raised: %s", payload.appointment_id, outcome)
        elif outcome.success:
            sent += 1
    summary = ReminderSummary(date=target, total=len(ids), sent=sent, failed=len(ids) - sent)
    logger.info(
        "Reminders for %s: %d sent, %d failed (of %d)",
        target.isoformat(), summary.sent, summary.failed, summary.total,
    )
    return summary


async def send_reminders_for_tomorrow(session: AsyncSession) -> ReminderSummary:
    return await send_reminders_for(session, business_today() + timedelta(days=1))
