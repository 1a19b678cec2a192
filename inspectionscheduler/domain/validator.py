"""
Single source of truth for whether a candidate start/end pair is acceptable.

The validator is pure: it is safe to call on every field change and again,
authoritatively, at submission time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Literal, Optional, Sequence

from pendulum import DateTime

from .exceptions import MalformedTimeError
from .models import DEFAULT_POLICY, AvailabilitySlot, SchedulingPolicy
from .time_arithmetic import to_minutes

Severity = Literal["error", "warning"]

MSG_BOTH_REQUIRED = "Please select both start and end times"
MSG_END_BEFORE_START = "End time must be after start time"
MSG_MIN_GAP = "There must be at least {gap} minutes between start and end time"
MSG_START_IN_PAST = "Start time cannot be in the past for today's inspection"
MSG_OUTSIDE_INSPECTOR_SLOTS = "Selected times must be within inspector's available slots"
MSG_OUTSIDE_SELECTED_SLOT = "Selected times must be within the selected slot ({slot})"
MSG_LATE_FINISH = "Inspection ends after {closing}; please confirm the late finish"


@dataclass(frozen=True)
class FieldErrors:
    start: bool = False
    end: bool = False

    def __or__(self, other: "FieldErrors") -> "FieldErrors":
        return FieldErrors(start=self.start or other.start, end=self.end or other.end)


BOTH = FieldErrors(start=True, end=True)
START_ONLY = FieldErrors(start=True)
END_ONLY = FieldErrors(end=True)
NONE = FieldErrors()


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of validating a time selection.

    ``message`` comes from the first failing rule; ``field_errors`` collects
    every field blamed by any failing rule. A ``warning`` severity on a valid
    result means the caller must get an explicit acknowledgement first.
    """
    valid: bool
    field_errors: FieldErrors = NONE
    message: Optional[str] = None
    severity: Optional[Severity] = None

    @property
    def needs_confirmation(self) -> bool:
        return self.valid and self.severity == "warning"


@dataclass(frozen=True)
class ValidationContext:
    """
    Everything besides the two times that the rules depend on.

    Args:
        inspection_date: Date the inspection is scheduled for
        today: Current local date
        now_minutes: Current minute-of-day
        inspector_free_slots: Free slots of the selected inspector, None when none selected
        selected_slot: The raw slot the user picked, if any
        policy: Business-hours policy
    """
    inspection_date: date
    today: date
    now_minutes: int
    inspector_free_slots: Optional[Sequence[AvailabilitySlot]] = None
    selected_slot: Optional[AvailabilitySlot] = None
    policy: SchedulingPolicy = DEFAULT_POLICY

    @classmethod
    def at(
        cls,
        now: DateTime,
        inspection_date: date,
        *,
        inspector_free_slots: Optional[Sequence[AvailabilitySlot]] = None,
        selected_slot: Optional[AvailabilitySlot] = None,
        policy: SchedulingPolicy = DEFAULT_POLICY,
    ) -> "ValidationContext":
        """Build a context from a clock reading."""
        return cls(
            inspection_date=inspection_date,
            today=now.date(),
            now_minutes=now.hour * 60 + now.minute,
            inspector_free_slots=inspector_free_slots,
            selected_slot=selected_slot,
            policy=policy,
        )

    @property
    def is_today(self) -> bool:
        return self.inspection_date == self.today


class TimeSelectionValidator:
    """Evaluates the selection rules in order and reports which fields are at fault."""

    def validate(
        self,
        start: Optional[str],
        end: Optional[str],
        context: ValidationContext,
    ) -> ValidationResult:
        if not start or not end:
            return ValidationResult(valid=False, message=MSG_BOTH_REQUIRED, severity="error")

        try:
            start_minutes = to_minutes(start)
        except MalformedTimeError as exc:
            return ValidationResult(valid=False, field_errors=START_ONLY, message=str(exc), severity="error")
        try:
            end_minutes = to_minutes(end)
        except MalformedTimeError as exc:
            return ValidationResult(valid=False, field_errors=END_ONLY, message=str(exc), severity="error")

        policy = context.policy
        messages: List[str] = []
        blamed = NONE

        if end_minutes <= start_minutes:
            messages.append(MSG_END_BEFORE_START)
            blamed |= BOTH

        # Evaluated even when the ordering rule failed; both feed field errors.
        if end_minutes - start_minutes < policy.min_gap_minutes:
            messages.append(MSG_MIN_GAP.format(gap=policy.min_gap_minutes))
            blamed |= BOTH

        if context.is_today and start_minutes < context.now_minutes:
            messages.append(MSG_START_IN_PAST)
            blamed |= START_ONLY

        if context.inspector_free_slots is not None:
            if not any(slot.contains(start_minutes, end_minutes) for slot in context.inspector_free_slots):
                messages.append(MSG_OUTSIDE_INSPECTOR_SLOTS)
                blamed |= BOTH
        elif context.selected_slot is not None:
            if not context.selected_slot.contains(start_minutes, end_minutes):
                messages.append(MSG_OUTSIDE_SELECTED_SLOT.format(slot=context.selected_slot))
                blamed |= BOTH

        if messages:
            return ValidationResult(valid=False, field_errors=blamed, message=messages[0], severity="error")

        if end_minutes > policy.closing_minutes:
            return ValidationResult(
                valid=True,
                message=MSG_LATE_FINISH.format(closing=policy.closing),
                severity="warning",
            )

        return ValidationResult(valid=True)
