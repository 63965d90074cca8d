from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session, require_admin
from app.models.schedule import ScheduleSettings
from app.models.user import User
from app.services.settings_service import get_schedule_settings, save_schedule_settings

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/schedule", response_model=ScheduleSettings)
async def read_schedule(
    session: AsyncSession = Depends(get_session),
    _admin: User = Depends(require_admin),
) -> ScheduleSettings:
    return await get_schedule_settings(session)


@router.put("/schedule", response_model=ScheduleSettings)
async def update_schedule(
    body: ScheduleSettings,
    session: AsyncSession = Depends(get_session),
    _admin: User = Depends(require_admin),
) -> ScheduleSettings:
    """Replace business hours and slot duration; days left out keep the default hours."""
    return await save_schedule_settings(session, body)
