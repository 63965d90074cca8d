"""In-process appointment events.

The booking service only returns events; routes publish them from a
background task and subscribers (e-mail notifications) react. A failing
subscriber is logged and never affects the request that produced the event.
"""
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class AppointmentEventType(str, Enum):
    REQUESTED = "appointment.requested"
    CONFIRMED = "appointment.confirmed"
    CANCELLED = "appointment.cancelled"


@dataclass(frozen=True)
class AppointmentEvent:
    type: AppointmentEventType
    appointment_id: int
    cancelled_by: str | None = None  # "client" | "admin"
    reason: str | None = None


Handler = Callable[[AppointmentEvent], Awaitable[None]]

_subscribers: dict[AppointmentEventType, list[Handler]] = defaultdict(list)


def subscribe(event_type: AppointmentEventType, handler: Handler) -> None:
    if handler not in _subscribers[event_type]:
        _subscribers[event_type].append(handler)


def clear_subscribers() -> None:
    _subscribers.clear()


async def publish(event: AppointmentEvent) -> None:
    for handler in list(_subscribers.get(event.type, ())):
        try:
            await handler(event)
        except Exception as e:
            logger.exception(
                "Handler %s failed for %s (appointment %s): %s",
                getattr(handler, "__name__", handler),
                event.type.value,
                event.appointment_id,
                e,
            )


async def publish_all(events: list[AppointmentEvent]) -> None:
    for event in events:
        await publish(event)
