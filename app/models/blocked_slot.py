import datetime as dt

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC).replace(tzinfo=None)


class BlockedSlot(SQLModel, table=True):
    """Admin-imposed unavailability, independent of business hours."""

    __tablename__ = "blocked_slots"
    __table_args__ = (UniqueConstraint("date", "start_time", name="uq_blocked_slots_date_start"),)

    id: int | None = Field(default=None, primary_key=True)
    date: dt.date = Field(index=True)
    start_time: dt.time
    end_time: dt.time
    reason: str | None = None
    created_at: dt.datetime = Field(default_factory=_utc_naive_now)


class BlockedSlotPublic(SQLModel):
    id: int
    date: dt.date
    start_time: str  # "HH:MM:SS"
    end_time: str
    reason: str | None = None
