from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_session, require_admin
from app.api.schemas.appointment import StatusUpdateRequest, TransitionsResponse
from app.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentRef,
    AppointmentStatus,
)
from app.models.user import User
from app.services.appointment_service import (
    cancel_appointment,
    create_appointments,
    list_admin_appointments,
    list_appointments_for_user,
)
from app.services.booking_service import (
    StatusTransitionError,
    allowed_transitions,
    transition_appointment_status,
)
from app.services.events import publish, publish_all

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic(
        id=a.id,
        user_id=a.user_id,
        pet_id=a.pet_id,
        service_id=a.service_id,
        scheduled_date=a.scheduled_date,
        scheduled_time=a.scheduled_time,
        status=AppointmentStatus(a.status),
        price=a.price,
        notes=a.notes,
        created_at=a.created_at,
    )


@router.post("", response_model=list[AppointmentPublic], status_code=status.HTTP_201_CREATED)
async def request_appointments(
    body: AppointmentCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[AppointmentPublic]:
    """Book one appointment per selected pet and service at the chosen slot (status pending)."""
    created = await create_appointments(session, current_user.id, body)
    if not created:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Slot not available (past, outside business hours or blocked) or invalid pets/services.",
        )
    appointments, events = created
    # The notifier reads the rows from its own session
    await session.commit()
    # Client + admin emails go out after the response; failures are only logged
    background_tasks.add_task(publish_all, events)
    return [_to_public(a) for a in appointments]


@router.get("", response_model=list[AppointmentPublic])
async def list_my_appointments(
    from_date: date | None = Query(None, alias="from_date"),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[AppointmentPublic]:
    appointments = await list_appointments_for_user(session, current_user.id, from_date=from_date)
    return [_to_public(a) for a in appointments]


@router.get("/admin", response_model=list[AppointmentRef])
async def list_all_appointments_admin(
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    _admin: User = Depends(require_admin),
) -> list[AppointmentRef]:
    return await list_admin_appointments(session, status=status_filter)


@router.get("/{appointment_id}/transitions", response_model=TransitionsResponse)
async def get_transitions(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    _admin: User = Depends(require_admin),
) -> TransitionsResponse:
    result = await session.execute(select(Appointment.status).where(Appointment.id == appointment_id))
    current = result.scalar_one_or_none()
    if current is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    current_status = AppointmentStatus(current)
    return TransitionsResponse(
        id=appointment_id,
        status=current_status,
        allowed=allowed_transitions(current_status),
    )


@router.patch("/{appointment_id}/status", response_model=AppointmentPublic)
async def update_status(
    appointment_id: int,
    body: StatusUpdateRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    _admin: User = Depends(require_admin),
) -> AppointmentPublic:
    try:
        outcome = await transition_appointment_status(
            session, appointment_id, body.status, cancelled_by="admin", reason=body.reason
        )
    except StatusTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    if not outcome:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    appointment, event = outcome
    if event:
        await session.commit()
        background_tasks.add_task(publish, event)
    return _to_public(appointment)


@router.delete("/{appointment_id}", response_model=AppointmentPublic)
async def cancel_my_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    reason: str | None = Query(None, max_length=500),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    try:
        outcome = await cancel_appointment(session, appointment_id, current_user.id, reason=reason)
    except StatusTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    if not outcome:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Appointment not found or not yours",
        )
    appointment, event = outcome
    if event:
        await session.commit()
        background_tasks.add_task(publish, event)
    return _to_public(appointment)
