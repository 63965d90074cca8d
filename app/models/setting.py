from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

BUSINESS_HOURS_KEY = "business_hours"
SLOT_DURATION_KEY = "slot_duration"
CALENDAR_PREFERENCES_PREFIX = "calendar_preferences:"


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class Setting(SQLModel, table=True):
    """Key/value application settings; values are JSON documents."""

    __tablename__ = "settings"
    key: str = Field(primary_key=True, max_length=120)
    value: Any = Field(default=None, sa_column=Column(JSON))
    updated_at: datetime = Field(default_factory=_utc_naive_now)
