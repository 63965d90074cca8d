import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_session
from app.api.schemas.appointment import SendEmailRequest, SendEmailResponse
from app.models.appointment import Appointment
from app.models.user import User
from app.services.notification_service import load_email_data, send_email_async

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/email", tags=["email"])


@router.post("/send", response_model=SendEmailResponse)
async def send_email(
    body: SendEmailRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> SendEmailResponse:
    """Send one appointment email on demand (used by clients to re-trigger notifications)."""
    owner = await session.execute(select(Appointment.user_id).where(Appointment.id == body.appointment_id))
    owner_id = owner.scalar_one_or_none()
    # Clients may only trigger emails about their own appointments
    if owner_id is None or (owner_id != current_user.id and not current_user.is_admin):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    data = await load_email_data(session, body.appointment_id, body.cancelled_by, body.reason)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    if not data.recipient_email:
        data.recipient_email = body.email or current_user.email
    result = await send_email_async(body.type, data)
    if not result.success:
        logger.warning("On-demand %s email for appointment %s failed: %s", body.type.value, body.appointment_id, result.error)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error)
    return SendEmailResponse(success=True, message_id=result.message_id)
