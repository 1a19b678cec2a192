"""
Durations and default times derived from a selected slot.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from .clock import Clock, minute_of_day
from .models import DEFAULT_POLICY, AvailabilitySlot, SchedulingPolicy
from .time_arithmetic import MINUTES_PER_DAY, round_up_to_step, to_minutes, to_time_string


@dataclass(frozen=True)
class EndTimeConstraints:
    """Bounds for the end-time picker, as ``HH:MM`` strings."""
    min_time: str
    max_time: str


def duration(start: Optional[str], end: Optional[str]) -> float:
    """
    Hours between ``start`` and ``end``.

    Returns 0 when either is missing or ``end <= start``; callers treat 0 as
    "not yet a valid duration".
    """
    if not start or not end:
        return 0.0

    start_minutes = to_minutes(start)
    end_minutes = to_minutes(end)

    if end_minutes <= start_minutes:
        return 0.0

    return (end_minutes - start_minutes) / 60


def compute_end_time_constraints(
    selected_slot: Optional[AvailabilitySlot],
    requested_start: Optional[str],
    policy: SchedulingPolicy = DEFAULT_POLICY,
) -> EndTimeConstraints:
    """
    Earliest and latest end time allowed for the current selection.

    ``min_time`` is the start plus the minimum gap once a start is chosen;
    ``max_time`` is the slot end, or business close with no slot.
    """
    if selected_slot is not None:
        min_minutes = (
            to_minutes(requested_start) + policy.min_gap_minutes
            if requested_start else selected_slot.start
        )
        return EndTimeConstraints(
            min_time=to_time_string(min_minutes),
            max_time=selected_slot.end_time,
        )

    base = to_minutes(requested_start) if requested_start else policy.opening_minutes
    return EndTimeConstraints(
        min_time=to_time_string(base + policy.min_gap_minutes),
        max_time=policy.closing,
    )


def default_start_time(
    inspection_date: date,
    clock: Clock,
    selected_slot: Optional[AvailabilitySlot],
    policy: SchedulingPolicy = DEFAULT_POLICY,
) -> str:
    """
    Suggested start time for a freshly selected slot.

    Today: the current time rounded up to the next step boundary, moved
    forward to the slot start when that is later. Future dates: the slot
    start, or business opening.
    """
    now = clock()

    if inspection_date == now.date():
        start = round_up_to_step(minute_of_day(now), policy.slot_step_minutes)
        if selected_slot is not None:
            start = max(start, selected_slot.start)
        return to_time_string(min(start, MINUTES_PER_DAY - 1))

    return selected_slot.start_time if selected_slot is not None else policy.opening


def default_end_time(
    start: str,
    selected_slot: Optional[AvailabilitySlot],
    policy: SchedulingPolicy = DEFAULT_POLICY,
) -> str:
    """The start plus the minimum gap, capped at the slot end."""
    end = to_minutes(start) + policy.min_gap_minutes
    if selected_slot is not None:
        end = min(end, selected_slot.end)
    return to_time_string(min(end, MINUTES_PER_DAY - 1))


def adjust_end_for_start(
    new_start: str,
    current_end: Optional[str],
    inspector_free_slots: Optional[Sequence[AvailabilitySlot]],
    selected_slot: Optional[AvailabilitySlot],
    policy: SchedulingPolicy = DEFAULT_POLICY,
) -> str:
    """
    End time to keep after the start changes.

    An end that still leaves the minimum gap is kept. Otherwise the end
    moves to ``start + gap``, capped at the end of the inspector's free
    slot containing the start, else the selected slot, else business close.
    """
    start_minutes = to_minutes(new_start)

    if current_end and to_minutes(current_end) - start_minutes >= policy.min_gap_minutes:
        return current_end

    max_end = policy.closing_minutes

    if inspector_free_slots is not None:
        containing = next(
            (slot for slot in inspector_free_slots if slot.contains_minute(start_minutes)),
            None,
        )
        if containing is not None:
            max_end = containing.end
    elif selected_slot is not None:
        max_end = selected_slot.end

    return to_time_string(min(start_minutes + policy.min_gap_minutes, max_end))
