"""Slot derivation for the admin calendar.

Everything here is pure: given the weekly schedule, the slot duration, the
appointments and the blocked slots, derive the time rows of a day or week and
the status of each (date, time) cell. Nothing is cached; callers recompute on
every fetch.
"""
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Protocol

from app.models.schedule import DaySchedule, WeeklySchedule


class _ScheduledItem(Protocol):
    scheduled_date: date
    scheduled_time: str | time


class _BlockedItem(Protocol):
    id: int | None
    date: date
    start_time: str | time


@dataclass(frozen=True)
class DerivedSlot:
    time: str
    available: bool
    blocked: bool
    appointments: tuple = ()
    block_id: int | None = None
    within_schedule: bool = False

    @property
    def state(self) -> str:
        """What the grid shows: appointments win over a block, a block wins over an empty cell."""
        if self.appointments:
            return "occupied"
        if self.blocked:
            return "blocked"
        return "available" if self.within_schedule else "closed"


def parse_minutes(value: str | time) -> int:
    """Minute of day for "HH:MM", "HH:MM:SS" or a time."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    hours, minutes = value[:5].split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_label(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def time_label(value: str | time) -> str:
    """Truncate a stored time ("14:00:00" or time(14, 0)) to its "HH:MM" slot label."""
    if isinstance(value, time):
        return value.strftime("%H:%M")
    return value[:5]


def schedule_day_index(d: date) -> int:
    # Schedule keys count from Sunday; date.weekday() counts from Monday
    return (d.weekday() + 1) % 7


def day_schedule_for(d: date, schedule: WeeklySchedule) -> DaySchedule | None:
    return schedule.get(schedule_day_index(d))


def generate_slot_labels(start: str, end: str, slot_duration: int) -> list[str]:
    """Labels for the half-open range [start, end) stepped by slot_duration minutes.

    A trailing partial slot is dropped.
    """
    if slot_duration <= 0:
        raise ValueError(f"slot_duration must be positive, got {slot_duration}")
    first, last = parse_minutes(start), parse_minutes(end)
    # Only slots that end by closing time
    return [minutes_to_label(m) for m in range(first, last - slot_duration + 1, slot_duration)]


def _schedule_labels(d: date, schedule: WeeklySchedule, slot_duration: int) -> set[str]:
    day = day_schedule_for(d, schedule)
    if day is None or not day.enabled:
        return set()
    return set(generate_slot_labels(day.start, day.end, slot_duration))


def compute_day_slots(
    d: date,
    schedule: WeeklySchedule,
    slot_duration: int,
    appointments: Iterable[_ScheduledItem],
) -> list[str]:
    """Ordered time rows for one day.

    Schedule-derived labels plus the time of every appointment on that date,
    so bookings made outside the current business hours still get a row.
    """
    labels = _schedule_labels(d, schedule, slot_duration)
    labels.update(time_label(a.scheduled_time) for a in appointments if a.scheduled_date == d)
    # Zero-padded 24h labels sort chronologically
    return sorted(labels)


def compute_week_slots(
    days: Sequence[date],
    schedule: WeeklySchedule,
    slot_duration: int,
    appointments: Iterable[_ScheduledItem],
) -> list[str]:
    """One shared row axis for the week grid, even when days have different hours."""
    labels: set[str] = set()
    for d in days:
        labels |= _schedule_labels(d, schedule, slot_duration)
    week = set(days)
    labels.update(time_label(a.scheduled_time) for a in appointments if a.scheduled_date in week)
    return sorted(labels)


def is_within_schedule(d: date, slot_time: str | time, schedule: WeeklySchedule) -> bool:
    day = day_schedule_for(d, schedule)
    if day is None or not day.enabled:
        return False
    minute = parse_minutes(slot_time)
    return parse_minutes(day.start) <= minute < parse_minutes(day.end)


def find_block(
    d: date, slot_time: str | time, blocked_slots: Iterable[_BlockedItem]
) -> _BlockedItem | None:
    # Exact start match only: a block from 18:00 to 19:00 does not cover an 18:30 row
    label = time_label(slot_time)
    for block in blocked_slots:
        if block.date == d and time_label(block.start_time) == label:
            return block
    return None


def get_slot_status(
    d: date,
    slot_time: str | time,
    appointments: Iterable[_ScheduledItem],
    blocked_slots: Iterable[_BlockedItem],
    schedule: WeeklySchedule | None = None,
) -> DerivedSlot:
    label = time_label(slot_time)
    matched = tuple(
        a for a in appointments
        if a.scheduled_date == d and time_label(a.scheduled_time) == label
    )
    block = find_block(d, label, blocked_slots)
    return DerivedSlot(
        time=label,
        available=not matched and block is None,
        blocked=block is not None,
        appointments=matched,
        block_id=block.id if block is not None else None,
        within_schedule=is_within_schedule(d, label, schedule) if schedule is not None else False,
    )


def week_dates(anchor: date) -> list[date]:
    """Monday..Sunday of the week containing anchor."""
    monday = anchor - timedelta(days=anchor.weekday())
    return [monday + timedelta(days=i) for i in range(7)]
