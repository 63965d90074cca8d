"""E-mail notifications driven by appointment events."""
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import async_session_maker
from app.models.appointment import Appointment
from app.models.pet import Pet
from app.models.service import Service
from app.models.user import User
from app.services.email_service import (
    AppointmentEmailData,
    EmailResult,
    EmailType,
    send_appointment_email,
)
from app.services.events import AppointmentEvent, AppointmentEventType, subscribe

logger = logging.getLogger(__name__)


async def load_email_data(
    session: AsyncSession,
    appointment_id: int,
    cancelled_by: str | None = None,
    reason: str | None = None,
) -> AppointmentEmailData | None:
    result = await session.execute(
        select(Appointment, User, Pet, Service)
        .join(User, User.id == Appointment.user_id, isouter=True)
        .join(Pet, Pet.id == Appointment.pet_id, isouter=True)
        .join(Service, Service.id == Appointment.service_id, isouter=True)
        .where(Appointment.id == appointment_id)
    )
    row = result.first()
    if row is None:
        return None
    appointment, user, pet, service = row
    return AppointmentEmailData(
        appointment_id=appointment.id,
        recipient_name=(user.name if user else None) or "Client",
        recipient_email=(user.email if user else None) or "",
        pet_name=pet.name if pet else "Pet",
        service_name=service.name if service else "Service",
        scheduled_date=appointment.scheduled_date,
        scheduled_time=appointment.scheduled_time.strftime("%H:%M:%S"),
        client_phone=user.phone if user else None,
        cancelled_by=cancelled_by,
        reason=reason,
    )


async def send_email_async(email_type: EmailType, data: AppointmentEmailData) -> EmailResult:
    # SMTP is blocking; keep it off the event loop
    return await asyncio.to_thread(send_appointment_email, email_type, data)


async def _notify(event: AppointmentEvent, email_types: list[EmailType]) -> None:
    async with async_session_maker() as session:
        data = await load_email_data(session, event.appointment_id, event.cancelled_by, event.reason)
    if data is None:
        logger.warning("Appointment %s not found, skipping %s emails", event.appointment_id, event.type.value)
        return
    for email_type in email_types:
        result = await send_email_async(email_type, data)
        if not result.success:
            logger.warning(
                "%s email for appointment %s not sent: %s",
                email_type.value, event.appointment_id, result.error,
            )


async def notify_appointment_requested(event: AppointmentEvent) -> None:
    await _notify(event, [EmailType.REQUESTED, EmailType.ADMIN_NOTIFICATION])


async def notify_appointment_confirmed(event: AppointmentEvent) -> None:
    await _notify(event, [EmailType.CONFIRMATION])


async def notify_appointment_cancelled(event: AppointmentEvent) -> None:
    email_types = [EmailType.CANCELLATION]
    if event.cancelled_by == "client":
        email_types.append(EmailType.CANCELLED_ADMIN)
    await _notify(event, email_types)


def register_notification_handlers() -> None:
    subscribe(AppointmentEventType.REQUESTED, notify_appointment_requested)
    subscribe(AppointmentEventType.CONFIRMED, notify_appointment_confirmed)
    subscribe(AppointmentEventType.CANCELLED, notify_appointment_cancelled)
