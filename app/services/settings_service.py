import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.schedule import (
    CalendarPreferences,
    CalendarView,
    DaySchedule,
    ScheduleSettings,
    WeeklySchedule,
)
from app.models.setting import (
    BUSINESS_HOURS_KEY,
    CALENDAR_PREFERENCES_PREFIX,
    SLOT_DURATION_KEY,
    Setting,
)

logger = logging.getLogger(__name__)


def default_schedule() -> WeeklySchedule:
    return {
        day: DaySchedule(
            enabled=True,
            start=settings.default_business_start,
            end=settings.default_business_end,
        )
        for day in range(7)
    }


def parse_weekly_schedule(raw: Any) -> WeeklySchedule:
    """Merge a stored ``{"schedule": {"0": {...}}}`` document over the default week.

    Days missing from the stored document keep their defaults; a malformed
    document falls back to the default week entirely.
    """
    schedule = default_schedule()
    if not isinstance(raw, dict) or not isinstance(raw.get("schedule"), dict):
        return schedule
    try:
        stored = {int(k): DaySchedule.model_validate(v) for k, v in raw["schedule"].items()}
    except (ValidationError, ValueError, TypeError) as e:
        logger.warning("Invalid business_hours setting, using default schedule: %s", e)
        return schedule
    schedule.update({k: v for k, v in stored.items() if 0 <= k <= 6})
    return schedule


def parse_slot_duration(raw: Any) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return settings.default_slot_duration_minutes
    if value <= 0:
        logger.warning("Ignoring non-positive slot_duration setting: %s", raw)
        return settings.default_slot_duration_minutes
    return value


async def get_setting(session: AsyncSession, key: str) -> Any:
    result = await session.execute(select(Setting).where(Setting.key == key))
    row = result.scalar_one_or_none()
    return row.value if row else None


async def set_setting(session: AsyncSession, key: str, value: Any) -> Setting:
    result = await session.execute(select(Setting).where(Setting.key == key))
    row = result.scalar_one_or_none()
    now = datetime.now(UTC).replace(tzinfo=None)
    if row is None:
        row = Setting(key=key, value=value, updated_at=now)
        session.add(row)
    else:
        row.value = value
        row.updated_at = now
    await session.flush()
    return row


async def get_weekly_schedule(session: AsyncSession) -> WeeklySchedule:
    return parse_weekly_schedule(await get_setting(session, BUSINESS_HOURS_KEY))


async def get_slot_duration(session: AsyncSession) -> int:
    return parse_slot_duration(await get_setting(session, SLOT_DURATION_KEY))


async def get_schedule_settings(session: AsyncSession) -> ScheduleSettings:
    return ScheduleSettings(
        schedule=await get_weekly_schedule(session),
        slot_duration=await get_slot_duration(session),
    )


async def save_schedule_settings(session: AsyncSession, data: ScheduleSettings) -> ScheduleSettings:
    document = {
        "schedule": {str(day): entry.model_dump() for day, entry in sorted(data.schedule.items())}
    }
    await set_setting(session, BUSINESS_HOURS_KEY, document)
    await set_setting(session, SLOT_DURATION_KEY, data.slot_duration)
    logger.info("Business hours updated (slot duration %d min)", data.slot_duration)
    return await get_schedule_settings(session)


def _preferences_key(user_id: int) -> str:
    return f"{CALENDAR_PREFERENCES_PREFIX}{user_id}"


def default_calendar_preferences() -> CalendarPreferences:
    try:
        view = CalendarView(settings.default_calendar_view)
    except ValueError:
        view = CalendarView.WEEK
    return CalendarPreferences(view=view)


async def get_calendar_preferences(session: AsyncSession, user_id: int) -> CalendarPreferences:
    raw = await get_setting(session, _preferences_key(user_id))
    if not isinstance(raw, dict):
        return default_calendar_preferences()
    try:
        return CalendarPreferences.model_validate(raw)
    except ValidationError:
        return default_calendar_preferences()


async def save_calendar_preferences(
    session: AsyncSession, user_id: int, prefs: CalendarPreferences
) -> CalendarPreferences:
    await set_setting(session, _preferences_key(user_id), prefs.model_dump(mode="json"))
    return prefs
