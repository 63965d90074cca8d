import re
from enum import Enum

from pydantic import BaseModel, Field, field_validator

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class DaySchedule(BaseModel):
    enabled: bool = True
    start: str = "08:00"
    end: str = "21:00"

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        # Stores sometimes hand back "HH:MM:SS"; minutes are all the schedule needs
        v = v[:5]
        if not _HHMM.match(v):
            raise ValueError("Time must be in HH:MM 24h format")
        return v


# Weekday index (0=Sunday .. 6=Saturday) -> that day's business hours
WeeklySchedule = dict[int, DaySchedule]


class ScheduleSettings(BaseModel):
    """Business hours plus the global slot length, as edited by the admin."""

    schedule: WeeklySchedule
    slot_duration: int = Field(60, gt=0, le=24 * 60)

    @field_validator("schedule")
    @classmethod
    def validate_weekdays(cls, v: WeeklySchedule) -> WeeklySchedule:
        bad = [day for day in v if day < 0 or day > 6]
        if bad:
            raise ValueError(f"Weekday keys must be 0 (Sunday) to 6 (Saturday), got {bad}")
        return v


class CalendarView(str, Enum):
    DAY = "day"
    WEEK = "week"


class CalendarPreferences(BaseModel):
    view: CalendarView = CalendarView.WEEK
