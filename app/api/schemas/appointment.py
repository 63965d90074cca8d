import datetime as dt

from pydantic import BaseModel, EmailStr, Field

from app.models.appointment import AppointmentStatus
from app.services.email_service import EmailType


class SlotInfo(BaseModel):
    time: str  # HH:MM
    available: bool


class AvailableSlotsResponse(BaseModel):
    date: str  # YYYY-MM-DD
    slot_duration: int
    slots: list[SlotInfo]


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus
    reason: str | None = Field(None, max_length=500)


class TransitionsResponse(BaseModel):
    id: int
    status: AppointmentStatus
    allowed: list[AppointmentStatus]


class SendEmailRequest(BaseModel):
    type: EmailType
    appointment_id: int
    email: EmailStr | None = None  # fallback recipient when the client has no email on file
    cancelled_by: str | None = None
    reason: str | None = None


class SendEmailResponse(BaseModel):
    success: bool
    message_id: str | None = None


class ReminderRunResponse(BaseModel):
    success: bool
    message: str
    total: int
    sent: int
    failed: int
    date: dt.date
