"""Business hours, slot duration and calendar preferences stored as settings."""
import pytest
from pydantic import ValidationError

from app.models.schedule import CalendarPreferences, CalendarView, DaySchedule, ScheduleSettings
from app.models.setting import BUSINESS_HOURS_KEY, SLOT_DURATION_KEY
from app.services.settings_service import (
    default_schedule,
    get_calendar_preferences,
    get_schedule_settings,
    get_slot_duration,
    get_weekly_schedule,
    parse_slot_duration,
    parse_weekly_schedule,
    save_calendar_preferences,
    save_schedule_settings,
    set_setting,
)


class TestParseWeeklySchedule:
    def test_missing_document_gives_default_week(self):
        schedule = parse_weekly_schedule(None)

        assert sorted(schedule) == list(range(7))
        assert all(day.enabled and day.start == "08:00" and day.end == "21:00" for day in schedule.values())

    def test_stored_days_override_defaults(self):
        raw = {"schedule": {"2": {"enabled": True, "start": "18:00", "end": "21:00"}, "0": {"enabled": False}}}

        schedule = parse_weekly_schedule(raw)

        assert schedule[2].start == "18:00"
        assert not schedule[0].enabled
        assert schedule[1] == default_schedule()[1]

    def test_seconds_are_truncated(self):
        raw = {"schedule": {"1": {"enabled": True, "start": "09:00:00", "end": "17:30:00"}}}

        schedule = parse_weekly_schedule(raw)

        assert (schedule[1].start, schedule[1].end) == ("09:00", "17:30")

    @pytest.mark.parametrize(
        "raw",
        [
            {"schedule": {"1": {"start": "9am"}}},
            {"schedule": {"monday": {"start": "09:00"}}},
            {"schedule": ["08:00", "21:00"]},
            "08:00-21:00",
        ],
    )
    def test_malformed_document_falls_back_to_default(self, raw):
        assert parse_weekly_schedule(raw) == default_schedule()

    def test_out_of_range_weekdays_are_ignored(self):
        raw = {"schedule": {"9": {"enabled": False}}}

        assert parse_weekly_schedule(raw) == default_schedule()


class TestParseSlotDuration:
    @pytest.mark.parametrize("raw,expected", [(30, 30), ("45", 45), (None, 60), ("abc", 60), (0, 60), (-15, 60)])
    def test_parse(self, raw, expected):
        assert parse_slot_duration(raw) == expected


class TestScheduleModels:
    def test_invalid_time_is_rejected(self):
        with pytest.raises(ValidationError):
            DaySchedule(start="25:00")

    def test_weekday_keys_are_validated(self):
        with pytest.raises(ValidationError):
            ScheduleSettings(schedule={7: DaySchedule()})

    def test_slot_duration_must_be_positive(self):
        with pytest.raises(ValidationError):
            ScheduleSettings(schedule={}, slot_duration=0)


class TestStoredSettings:
    async def test_defaults_without_rows(self, session):
        assert await get_slot_duration(session) == 60
        assert await get_weekly_schedule(session) == default_schedule()

    async def test_save_and_reload_schedule(self, session):
        data = ScheduleSettings(
            schedule={2: DaySchedule(start="18:00", end="21:00"), 0: DaySchedule(enabled=False)},
            slot_duration=30,
        )

        saved = await save_schedule_settings(session, data)
        await session.commit()
        reloaded = await get_schedule_settings(session)

        assert saved == reloaded
        assert reloaded.slot_duration == 30
        assert reloaded.schedule[2].start == "18:00"
        assert not reloaded.schedule[0].enabled
        # Days not sent keep the default hours
        assert reloaded.schedule[3] == default_schedule()[3]

    async def test_set_setting_upserts(self, session):
        await set_setting(session, SLOT_DURATION_KEY, 30)
        await set_setting(session, SLOT_DURATION_KEY, 45)

        assert await get_slot_duration(session) == 45

    async def test_corrupt_business_hours_row_uses_defaults(self, session):
        await set_setting(session, BUSINESS_HOURS_KEY, {"schedule": {"1": {"start": "noon"}}})

        assert await get_weekly_schedule(session) == default_schedule()


class TestCalendarPreferences:
    async def test_default_view_is_week(self, session, admin_user):
        prefs = await get_calendar_preferences(session, admin_user.id)

        assert prefs.view == CalendarView.WEEK

    async def test_preferences_are_per_user(self, session, admin_user, client_user):
        await save_calendar_preferences(session, admin_user.id, CalendarPreferences(view=CalendarView.DAY))

        assert (await get_calendar_preferences(session, admin_user.id)).view == CalendarView.DAY
        assert (await get_calendar_preferences(session, client_user.id)).view == CalendarView.WEEK
