import datetime as dt
from enum import Enum

from sqlmodel import Field, SQLModel

from app.models.pet import PetSummary
from app.models.service import ServiceSummary
from app.models.user import UserSummary


def _utc_naive_now() -> dt.datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return dt.datetime.now(dt.UTC).replace(tzinfo=None)


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    pet_id: int = Field(foreign_key="pets.id", index=True)
    service_id: int = Field(foreign_key="services.id")
    scheduled_date: dt.date = Field(index=True)
    scheduled_time: dt.time
    # Stored as plain text so the column is portable; values come from AppointmentStatus
    status: str = Field(default=AppointmentStatus.PENDING.value, max_length=20, index=True)
    price: float = 0.0
    notes: str | None = None
    admin_notes: str | None = None
    created_at: dt.datetime = Field(default_factory=_utc_naive_now)
    updated_at: dt.datetime = Field(default_factory=_utc_naive_now)
    completed_at: dt.datetime | None = None
    cancelled_at: dt.datetime | None = None


class AppointmentCreate(SQLModel):
    pet_ids: list[int] = Field(min_length=1)
    service_ids: list[int] = Field(min_length=1)
    scheduled_date: dt.date
    scheduled_time: dt.time
    notes: str | None = None


class AppointmentRef(SQLModel):
    """Read-only view of an appointment as the calendar sees it.

    ``scheduled_time`` keeps the store's "HH:MM:SS" text; slot matching
    truncates it to minutes.
    """

    id: int
    scheduled_date: dt.date
    scheduled_time: str
    status: AppointmentStatus
    user: UserSummary | None = None
    pet: PetSummary | None = None
    service: ServiceSummary | None = None


class AppointmentPublic(SQLModel):
    id: int
    user_id: int
    pet_id: int
    service_id: int
    scheduled_date: dt.date
    scheduled_time: dt.time
    status: AppointmentStatus
    price: float
    notes: str | None = None
    created_at: dt.datetime
