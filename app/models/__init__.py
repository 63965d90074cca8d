from app.models.user import User, UserSummary
from app.models.pet import Pet, PetSummary
from app.models.service import Service, ServiceSummary
from app.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentRef,
    AppointmentStatus,
)
from app.models.blocked_slot import BlockedSlot, BlockedSlotPublic
from app.models.setting import Setting

__all__ = [
    "User",
    "UserSummary",
    "Pet",
    "PetSummary",
    "Service",
    "ServiceSummary",
    "Appointment",
    "AppointmentCreate",
    "AppointmentPublic",
    "AppointmentRef",
    "AppointmentStatus",
    "BlockedSlot",
    "BlockedSlotPublic",
    "Setting",
]
