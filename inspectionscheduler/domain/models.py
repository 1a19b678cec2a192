"""
Domain models for inspector availability, time selections and assignments.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, Union

import pendulum

from .time_arithmetic import to_minutes, to_time_string

Priority = Literal["Low", "Medium", "High"]
PRIORITIES: Tuple[str, ...] = ("Low", "Medium", "High")


@dataclass(frozen=True)
class AvailabilitySlot:
    """
    A window of an inspector's day, stored as minute-of-day integers.

    Invariant: start must be before end.
    """
    start: int
    end: int
    duration_hours: Optional[float] = None

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(
                f"Slot start {to_time_string(self.start)} must be before end {to_time_string(self.end)}"
            )

    @classmethod
    def from_strings(cls, start: str, end: str) -> "AvailabilitySlot":
        """Build a slot from ``HH:MM`` strings, computing its duration."""
        start_minutes = to_minutes(start)
        end_minutes = to_minutes(end)
        return cls(
            start=start_minutes,
            end=end_minutes,
            duration_hours=(end_minutes - start_minutes) / 60,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AvailabilitySlot":
        """Parse the wire form ``{"start", "end", "duration_hours"?}``."""
        duration = data.get("duration_hours")
        return cls(
            start=to_minutes(data["start"]),
            end=to_minutes(data["end"]),
            duration_hours=float(duration) if duration is not None else None,
        )

    @property
    def start_time(self) -> str:
        return to_time_string(self.start)

    @property
    def end_time(self) -> str:
        return to_time_string(self.end)

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end - self.start

    def with_start(self, start: int) -> "AvailabilitySlot":
        """Return a copy starting at ``start`` with the duration recomputed."""
        return AvailabilitySlot(start=start, end=self.end, duration_hours=(self.end - start) / 60)

    def contains(self, start: int, end: int) -> bool:
        """Check whether ``[start, end)`` lies inside this slot."""
        return self.start <= start and end <= self.end

    def contains_minute(self, minute: int) -> bool:
        """Check whether a single instant falls inside ``[start, end)``."""
        return self.start <= minute < self.end

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"start": self.start_time, "end": self.end_time}
        if self.duration_hours is not None:
            data["duration_hours"] = self.duration_hours
        return data

    def __str__(self) -> str:
        return f"{self.start_time} - {self.end_time}"


@dataclass(frozen=True)
class InspectorAvailability:
    """
    One inspector's occupied and free windows for a single date.

    Values are replaced, never mutated, when the viewed date changes.
    """
    inspector_id: str
    display_name: str
    email: str
    date: date
    occupied_slots: Tuple[AvailabilitySlot, ...] = ()
    free_slots: Tuple[AvailabilitySlot, ...] = ()
    is_completely_free: bool = False
    total_occupied_hours: float = 0.0

    @classmethod
    def from_feed(cls, item: Mapping[str, Any]) -> "InspectorAvailability":
        """
        Parse one entry of the availability feed.

        Format:
        {
            "user_id": "...", "user_name": "...", "email": "...", "date": "YYYY-MM-DD",
            "availability": {
                "occupied_slots": [{"start": "HH:MM", "end": "HH:MM"}],
                "free_slots": [{"start": "HH:MM", "end": "HH:MM", "duration_hours": 1.0}],
                "is_completely_free": false,
                "total_occupied_hours": 2.0
            }
        }
        """
        availability = item.get("availability") or {}
        return cls(
            inspector_id=item.get("user_id") or item.get("email", ""),
            display_name=item.get("user_name") or item.get("email", ""),
            email=item.get("email", ""),
            date=pendulum.parse(item["date"]).date(),
            occupied_slots=tuple(
                AvailabilitySlot.from_dict(slot) for slot in availability.get("occupied_slots", [])
            ),
            free_slots=tuple(
                AvailabilitySlot.from_dict(slot) for slot in availability.get("free_slots", [])
            ),
            is_completely_free=bool(availability.get("is_completely_free", False)),
            total_occupied_hours=float(availability.get("total_occupied_hours") or 0.0),
        )

    def with_free_slots(self, slots: Sequence[AvailabilitySlot]) -> "InspectorAvailability":
        return replace(self, free_slots=tuple(slots))


@dataclass(frozen=True)
class TimeSelection:
    """A user's chosen window on a date; times are ``HH:MM`` strings."""
    date: date
    start: str
    end: str


@dataclass(frozen=True)
class AssignmentRequest:
    """
    Everything the assignment saga needs, captured at confirmation time.

    ``lead_fields`` holds the locally edited lead fields; ``None`` values are
    treated as "not edited" and never overwrite the remote record.
    """
    lead_id: Optional[str]
    inspector_email: str
    date: date
    start: str
    end: str
    priority: Priority = "Medium"
    description: str = ""
    lead_fields: Mapping[str, Any] = field(default_factory=dict)
    work_title: Optional[str] = None
    work_description: Optional[str] = None
    assigned_by: Optional[str] = None

    def __post_init__(self):
        if self.priority not in PRIORITIES:
            raise ValueError(f"Priority must be one of {', '.join(PRIORITIES)}, got {self.priority!r}")
        if not self.inspector_email:
            raise ValueError("An inspector email is required")
        if to_minutes(self.end) <= to_minutes(self.start):
            raise ValueError(f"End time {self.end} must be after start time {self.start}")
        object.__setattr__(self, "lead_fields", MappingProxyType(dict(self.lead_fields)))


class SagaStep(str, Enum):
    """The ordered steps of an assignment."""
    LEAD_UPSERT = "lead-upsert"
    ASSIGNMENT_CREATE = "assignment-create"
    STAFF_LOOKUP = "staff-lookup"
    WORK_ALLOCATION_CREATE = "work-allocation-create"

    @classmethod
    def ordered(cls) -> List["SagaStep"]:
        return [cls.LEAD_UPSERT, cls.ASSIGNMENT_CREATE, cls.STAFF_LOOKUP, cls.WORK_ALLOCATION_CREATE]


STEP_LABELS: Dict[SagaStep, str] = {
    SagaStep.LEAD_UPSERT: "inquiry was saved",
    SagaStep.ASSIGNMENT_CREATE: "inspection was assigned",
    SagaStep.STAFF_LOOKUP: "staff record was found",
    SagaStep.WORK_ALLOCATION_CREATE: "work allocation was created",
}


@dataclass(frozen=True)
class SagaCheckpoint:
    """Identifiers produced so far; enough to resume after a failure."""
    lead_id: Optional[str] = None
    assignment_record_id: Optional[str] = None
    staff_id: Optional[str] = None
    work_allocation_id: Optional[str] = None
    last_completed_step: Optional[SagaStep] = None

    def completed(self, step: SagaStep) -> bool:
        """Return True when ``step`` is at or before the last completed step."""
        if self.last_completed_step is None:
            return False
        order = SagaStep.ordered()
        return order.index(step) <= order.index(self.last_completed_step)

    def advance(self, step: SagaStep, **identifiers: Optional[str]) -> "SagaCheckpoint":
        return replace(self, last_completed_step=step, **identifiers)


@dataclass(frozen=True)
class AssignmentResult:
    """Successful outcome of an assignment saga."""
    lead_id: str
    assignment_record_id: str
    work_allocation_id: str
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class AssignmentFailure:
    """
    Failed outcome of an assignment saga.

    Effects of the steps before ``failed_step`` stay committed remotely; the
    checkpoint lets a caller resume from the step that failed.
    """
    failed_step: SagaStep
    cause: str
    transient: bool
    checkpoint: SagaCheckpoint
    ok: bool = field(default=False, init=False)

    @property
    def last_completed_step(self) -> Optional[SagaStep]:
        return self.checkpoint.last_completed_step

    @property
    def lead_id(self) -> Optional[str]:
        return self.checkpoint.lead_id

    @property
    def resumable(self) -> bool:
        """A retry is safe once the lead identifier is known."""
        return self.checkpoint.lead_id is not None

    def summary(self) -> str:
        """Human-readable message naming what was committed and what failed."""
        done = [
            STEP_LABELS[step] for step in SagaStep.ordered()
            if self.checkpoint.completed(step) and step is not SagaStep.STAFF_LOOKUP
        ]
        failure = f"{self.failed_step.value} failed: {self.cause}"
        if self.transient:
            failure += " (the server is unavailable, try again shortly)"
        if not done:
            return failure[0].upper() + failure[1:]
        committed = " and ".join(done)
        return f"{committed[0].upper()}{committed[1:]}, but {failure}"


AssignmentOutcome = Union[AssignmentResult, AssignmentFailure]


@dataclass(frozen=True)
class SchedulingPolicy:
    """
    Business-hours policy for inspections.

    ``closing`` is a soft limit: selections ending after it raise a warning
    the user must acknowledge, not an error.
    """
    opening: str = "09:00"
    closing: str = "18:00"
    min_gap_minutes: int = 15
    slot_step_minutes: int = 15

    def __post_init__(self):
        if to_minutes(self.closing) <= to_minutes(self.opening):
            raise ValueError(f"Closing {self.closing} must be later than opening {self.opening}")
        if self.min_gap_minutes <= 0 or self.slot_step_minutes <= 0:
            raise ValueError("min_gap_minutes and slot_step_minutes must be greater than zero")

    @property
    def opening_minutes(self) -> int:
        return to_minutes(self.opening)

    @property
    def closing_minutes(self) -> int:
        return to_minutes(self.closing)


DEFAULT_POLICY = SchedulingPolicy()
