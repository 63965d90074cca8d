from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session, verify_cron_secret
from app.api.schemas.appointment import ReminderRunResponse
from app.services.reminder_service import send_reminders_for_tomorrow

router = APIRouter(prefix="/cron", tags=["cron"])


@router.get("/send-reminders", response_model=ReminderRunResponse, dependencies=[Depends(verify_cron_secret)])
async def send_reminders(session: AsyncSession = Depends(get_session)) -> ReminderRunResponse:
    """Daily job: remind clients of tomorrow's pending and confirmed appointments."""
    summary = await send_reminders_for_tomorrow(session)
    message = "Reminder emails sent" if summary.total else "No appointments for tomorrow"
    return ReminderRunResponse(
        success=True,
        message=message,
        total=summary.total,
        sent=summary.sent,
        failed=summary.failed,
        date=summary.date,
    )
