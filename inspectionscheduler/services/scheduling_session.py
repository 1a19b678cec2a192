"""
Transient state of one scheduling dialog.

The session stores only what the user chose (date, inspector, slot, times,
priority, description). Validation, durations and picker bounds are
recomputed from those fields on every call; nothing derived is cached.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from ..domain.clock import Clock
from ..domain.duration import (
    EndTimeConstraints,
    adjust_end_for_start,
    compute_end_time_constraints,
    default_end_time,
    default_start_time,
    duration,
)
from ..domain.exceptions import (
    ConfirmationRequiredError,
    InvalidSelectionError,
    SchedulerError,
    StaleResponseError,
)
from ..domain.models import (
    DEFAULT_POLICY,
    AssignmentRequest,
    AvailabilitySlot,
    InspectorAvailability,
    SchedulingPolicy,
    TimeSelection,
)
from ..domain.validator import TimeSelectionValidator, ValidationContext, ValidationResult
from .availability import AvailabilityService

logger = logging.getLogger(__name__)


class SchedulingSession:
    """
    Builds a ``TimeSelection`` incrementally and turns it into an
    ``AssignmentRequest`` on explicit confirmation.
    """

    def __init__(
        self,
        availability: AvailabilityService,
        clock: Clock,
        policy: SchedulingPolicy = DEFAULT_POLICY,
        validator: Optional[TimeSelectionValidator] = None,
    ) -> None:
        self._availability = availability
        self._clock = clock
        self._policy = policy
        self._validator = validator or TimeSelectionValidator()
        self._reset_all()

    def _reset_all(self) -> None:
        self.date: Optional[date] = None
        self.priority: str = "Medium"
        self.description: str = ""
        self.lead_id: Optional[str] = None
        self.lead_fields: Dict[str, Any] = {}
        self.work_title: Optional[str] = None
        self.work_description: Optional[str] = None
        self._reset_selection()

    def _reset_selection(self) -> None:
        self.inspector: Optional[InspectorAvailability] = None
        self.selected_slot: Optional[AvailabilitySlot] = None
        self.start: Optional[str] = None
        self.end: Optional[str] = None

    async def select_date(self, day: date) -> Optional[List[InspectorAvailability]]:
        """
        Switch to ``day`` and load its availability.

        Inspector, slot and times are discarded. Returns None when a newer
        date selection superseded this one while it was loading.
        """
        self.date = day
        self._reset_selection()

        try:
            return await self._availability.load(day)
        except StaleResponseError:
            logger.debug("Availability load for %s superseded", day)
            return None

    @property
    def inspectors(self) -> List[InspectorAvailability]:
        if self.date is None or self._availability.current_date != self.date:
            return []
        return self._availability.current

    def select_inspector(self, email: str) -> InspectorAvailability:
        """
        Select an inspector from the loaded availability and pre-select
        their first selectable slot, if any.

        Raises:
            SchedulerError: If the inspector is not in the loaded availability
        """
        inspector = self._availability.find_inspector(email) if self.inspectors else None
        if inspector is None:
            raise SchedulerError(f"No availability loaded for inspector {email}")

        self._reset_selection()
        self.inspector = inspector

        if inspector.free_slots:
            self.select_slot(inspector.free_slots[0])

        return inspector

    def select_slot(self, slot: AvailabilitySlot) -> None:
        """Pick a slot and apply the default start and end times."""
        if self.date is None:
            raise SchedulerError("Select an inspection date first")

        self.selected_slot = slot
        self.start = default_start_time(self.date, self._clock, slot, self._policy)
        self.end = default_end_time(self.start, slot, self._policy)

    def set_start(self, start: str) -> None:
        """Change the start; the end follows when it no longer leaves the minimum gap."""
        self.start = start
        self.end = adjust_end_for_start(
            start,
            self.end,
            self.inspector.free_slots if self.inspector else None,
            self.selected_slot,
            self._policy,
        )

    def set_end(self, end: str) -> None:
        self.end = end

    def selection(self) -> Optional[TimeSelection]:
        if self.date is None or not self.start or not self.end:
            return None
        return TimeSelection(date=self.date, start=self.start, end=self.end)

    def validate(self) -> ValidationResult:
        """Validate the current start/end against the current context."""
        if self.date is None:
            return ValidationResult(valid=False, message="Please select an inspection date", severity="error")

        context = ValidationContext.at(
            self._clock(),
            self.date,
            inspector_free_slots=self.inspector.free_slots if self.inspector else None,
            selected_slot=self.selected_slot,
            policy=self._policy,
        )
        return self._validator.validate(self.start, self.end, context)

    def duration_hours(self) -> float:
        return duration(self.start, self.end)

    def end_time_constraints(self) -> EndTimeConstraints:
        return compute_end_time_constraints(self.selected_slot, self.start, self._policy)

    def confirm(
        self,
        acknowledge_late_finish: bool = False,
        assigned_by: Optional[str] = None,
        lead_fields: Optional[Mapping[str, Any]] = None,
    ) -> AssignmentRequest:
        """
        Freeze the session into an ``AssignmentRequest``.

        Raises:
            InvalidSelectionError: If no inspector is selected or the times have hard errors
            ConfirmationRequiredError: If the selection ends after business close and
                ``acknowledge_late_finish`` is False
        """
        result = self.validate()

        if result.valid and self.inspector is None:
            result = ValidationResult(valid=False, message="Please select an inspector", severity="error")

        if not result.valid:
            raise InvalidSelectionError(result)

        if result.needs_confirmation and not acknowledge_late_finish:
            raise ConfirmationRequiredError(result)

        fields = dict(self.lead_fields)
        if lead_fields:
            fields.update(lead_fields)

        return AssignmentRequest(
            lead_id=self.lead_id,
            inspector_email=self.inspector.email,
            date=self.date,
            start=self.start,
            end=self.end,
            priority=self.priority,
            description=self.description,
            lead_fields=fields,
            work_title=self.work_title,
            work_description=self.work_description,
            assigned_by=assigned_by,
        )

    def cancel(self) -> None:
        """Discard all local state; nothing is written remotely."""
        self._availability.discard()
        self._reset_all()
