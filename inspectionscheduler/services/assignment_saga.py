"""
The assignment saga: the ordered remote writes that finalize an inspector assignment.

Steps run strictly in sequence because each needs the previous step's
output:

1. lead-upsert             -> lead identifier
2. assignment-create       -> ToDo record for the inspector
3. staff-lookup            -> Employee record for the inspector's email
4. work-allocation-create  -> Daily Work Allocation for that employee

There are no compensating writes. When a step fails, everything before it
stays committed and the caller receives a failure carrying a checkpoint it
can pass back to ``run`` to resume at the failed step.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from ..domain.duration import duration
from ..domain.exceptions import RecordStoreError, SchedulerError, StaffNotFoundError
from ..domain.models import (
    AssignmentFailure,
    AssignmentOutcome,
    AssignmentRequest,
    AssignmentResult,
    SagaCheckpoint,
    SagaStep,
)
from ..domain.time_arithmetic import combine_date_time, format_date, to_minutes, to_time_string

logger = logging.getLogger(__name__)


class RecordStoreProtocol(Protocol):
    """Protocol describing the record store operations the saga needs."""

    async def get_lead(self, lead_id: str) -> Dict[str, Any]:
        """Return the current remote lead."""

    async def create_lead(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Create a lead and return it, including its ``name``."""

    async def update_lead(self, lead_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Write a lead back."""

    async def create_assignment(
        self,
        *,
        lead_id: str,
        inspector_email: str,
        description: str,
        priority: str,
        preferred_date: str,
        start_datetime: str,
        end_datetime: str,
        assigned_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create the assignment (ToDo) record."""

    async def find_staff_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Return the staff record for an email, or None."""

    async def create_work_allocation(
        self,
        *,
        staff_id: str,
        date: str,
        work_title: str,
        work_description: str,
        start_time: str,
        duration_hours: float,
        end_time: str,
    ) -> Dict[str, Any]:
        """Create the work-allocation record."""


StepAction = Callable[[AssignmentRequest, SagaCheckpoint], Awaitable[SagaCheckpoint]]


def merge_lead_fields(remote: Mapping[str, Any], local: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Overlay locally edited fields on the remote lead.

    Local values win for every key they share with the remote record; keys
    whose local value is None are dropped first so they never clobber a
    remote value.
    """
    edits = {key: value for key, value in local.items() if value is not None}
    return {**remote, **edits}


class AssignmentSaga:
    """
    Executes an ``AssignmentRequest`` against the record store.

    ``run`` never raises: every failure becomes an ``AssignmentFailure``
    naming the step that failed and the furthest step that completed.
    """

    def __init__(
        self,
        record_store: RecordStoreProtocol,
        *,
        step_timeout: Optional[float] = None,
        default_work_title: str = "Site Inspection",
        assigned_by: Optional[str] = None,
    ) -> None:
        """
        Args:
            record_store: Remote store adapter
            step_timeout: Seconds each step may take; expiry fails the step
            default_work_title: Work title used when the request has none
            assigned_by: Assigning user written on the ToDo when the request has none
        """
        self._store = record_store
        self._step_timeout = step_timeout
        self._default_work_title = default_work_title
        self._assigned_by = assigned_by

    def _steps(self) -> List[Tuple[SagaStep, StepAction]]:
        return [
            (SagaStep.LEAD_UPSERT, self._upsert_lead),
            (SagaStep.ASSIGNMENT_CREATE, self._create_assignment),
            (SagaStep.STAFF_LOOKUP, self._resolve_staff),
            (SagaStep.WORK_ALLOCATION_CREATE, self._create_work_allocation),
        ]

    async def run(
        self,
        request: AssignmentRequest,
        resume_from: Optional[SagaCheckpoint] = None,
    ) -> AssignmentOutcome:
        """
        Execute the remaining steps for ``request``.

        Args:
            request: The confirmed assignment
            resume_from: Checkpoint of an earlier failed run; completed steps are skipped

        Returns:
            AssignmentResult on success, AssignmentFailure otherwise
        """
        checkpoint = resume_from or SagaCheckpoint()

        for step, action in self._steps():
            if checkpoint.completed(step):
                logger.debug("Skipping completed step %s", step.value)
                continue

            logger.info("Assignment step %s started", step.value)
            try:
                checkpoint = await self._bounded(action(request, checkpoint))
            except asyncio.TimeoutError:
                return self._fail(step, f"timed out after {self._step_timeout}s", True, checkpoint)
            except RecordStoreError as exc:
                return self._fail(step, str(exc), exc.transient, checkpoint)
            except SchedulerError as exc:
                return self._fail(step, str(exc), False, checkpoint)
            except Exception as exc:
                logger.exception("Unexpected error in assignment step %s", step.value)
                return self._fail(step, f"unexpected error: {exc}", False, checkpoint)

            logger.info("Assignment step %s completed", step.value)

        return AssignmentResult(
            lead_id=checkpoint.lead_id,
            assignment_record_id=checkpoint.assignment_record_id,
            work_allocation_id=checkpoint.work_allocation_id,
        )

    async def _bounded(self, awaitable: Awaitable[SagaCheckpoint]) -> SagaCheckpoint:
        if self._step_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self._step_timeout)

    @staticmethod
    def _fail(
        step: SagaStep,
        cause: str,
        transient: bool,
        checkpoint: SagaCheckpoint,
    ) -> AssignmentFailure:
        logger.warning(
            "Assignment step %s failed (last completed: %s): %s",
            step.value,
            checkpoint.last_completed_step.value if checkpoint.last_completed_step else "none",
            cause,
        )
        return AssignmentFailure(failed_step=step, cause=cause, transient=transient, checkpoint=checkpoint)

    async def _upsert_lead(self, request: AssignmentRequest, checkpoint: SagaCheckpoint) -> SagaCheckpoint:
        local: Dict[str, Any] = dict(request.lead_fields)
        local["custom_preferred_inspection_date"] = format_date(request.date)
        local["custom_preferred_inspection_time"] = combine_date_time(request.date, request.start)

        if request.lead_id:
            remote = await self._store.get_lead(request.lead_id)
            await self._store.update_lead(request.lead_id, merge_lead_fields(remote, local))
            lead_id = request.lead_id
        else:
            created = await self._store.create_lead(merge_lead_fields({}, local))
            lead_id = created.get("name")
            if not lead_id:
                raise RecordStoreError("Lead creation returned no identifier")

        return checkpoint.advance(SagaStep.LEAD_UPSERT, lead_id=lead_id)

    async def _create_assignment(self, request: AssignmentRequest, checkpoint: SagaCheckpoint) -> SagaCheckpoint:
        record = await self._store.create_assignment(
            lead_id=checkpoint.lead_id,
            inspector_email=request.inspector_email,
            description=request.description,
            priority=request.priority,
            preferred_date=format_date(request.date),
            start_datetime=combine_date_time(request.date, request.start),
            end_datetime=combine_date_time(request.date, request.end),
            assigned_by=request.assigned_by or self._assigned_by,
        )
        return checkpoint.advance(SagaStep.ASSIGNMENT_CREATE, assignment_record_id=record["name"])

    async def _resolve_staff(self, request: AssignmentRequest, checkpoint: SagaCheckpoint) -> SagaCheckpoint:
        record = await self._store.find_staff_by_email(request.inspector_email)
        if not record or not record.get("name"):
            raise StaffNotFoundError(request.inspector_email)
        return checkpoint.advance(SagaStep.STAFF_LOOKUP, staff_id=record["name"])

    async def _create_work_allocation(self, request: AssignmentRequest, checkpoint: SagaCheckpoint) -> SagaCheckpoint:
        record = await self._store.create_work_allocation(
            staff_id=checkpoint.staff_id,
            date=format_date(request.date),
            work_title=request.work_title or self._default_work_title,
            work_description=request.work_description or request.description,
            start_time=to_time_string(to_minutes(request.start)),
            duration_hours=duration(request.start, request.end),
            end_time=to_time_string(to_minutes(request.end)),
        )
        return checkpoint.advance(SagaStep.WORK_ALLOCATION_CREATE, work_allocation_id=record["name"])
