"""
Tests for the assignment saga.
"""

import asyncio

import pendulum

from inspectionscheduler.adapters.mock_frappe_client import MockFrappeClient
from inspectionscheduler.domain.exceptions import RecordStoreError, TransientRecordStoreError
from inspectionscheduler.domain.models import (
    AssignmentFailure,
    AssignmentRequest,
    AssignmentResult,
    SagaStep,
)
from inspectionscheduler.services.assignment_saga import AssignmentSaga, merge_lead_fields

DAY = pendulum.date(2025, 3, 4)


def _request(**overrides):
    values = dict(
        lead_id=None,
        inspector_email="amal.inspector@example.com",
        date=DAY,
        start="10:00",
        end="11:30",
        priority="High",
        description="Check balcony waterproofing",
        lead_fields={"lead_name": "Villa 12", "mobile_no": "0501234567"},
    )
    values.update(overrides)
    return AssignmentRequest(**values)


class TestMergeLeadFields:
    """Tests for merge_lead_fields."""

    def test_local_wins_and_none_is_ignored(self):
        """Test local wins and none is ignored."""
        remote = {"name": "CRM-LEAD-0001", "lead_name": "Old", "city": "Dubai", "source": "Web"}
        local = {"lead_name": "New", "city": None, "notes": "gate code 12"}

        merged = merge_lead_fields(remote, local)

        assert merged == {
            "name": "CRM-LEAD-0001",
            "lead_name": "New",
            "city": "Dubai",
            "source": "Web",
            "notes": "gate code 12",
        }


class TestAssignmentSaga:
    """Tests for AssignmentSaga."""

    def test_full_success_creates_all_records(self):
        """Test full success creates all records."""
        client = MockFrappeClient()
        saga = AssignmentSaga(client, assigned_by="desk@example.com")

        outcome = asyncio.run(saga.run(_request()))

        assert isinstance(outcome, AssignmentResult)
        assert outcome.ok
        assert outcome.lead_id == "CRM-LEAD-0001"
        assert outcome.assignment_record_id == "TODO-0001"
        assert outcome.work_allocation_id == "DWA-0001"
        assert client.calls == [
            "create_lead", "create_assignment", "find_staff_by_email", "create_work_allocation",
        ]

    def test_payloads_carry_times_and_duration(self):
        """Test payloads carry times and duration."""
        client = MockFrappeClient()
        saga = AssignmentSaga(client, assigned_by="desk@example.com")

        asyncio.run(saga.run(_request()))

        lead = client.leads["CRM-LEAD-0001"]
        assert lead["lead_name"] == "Villa 12"
        assert lead["custom_preferred_inspection_date"] == "2025-03-04"
        assert lead["custom_preferred_inspection_time"] == "2025-03-04 10:00:00"

        todo = client.assignments["TODO-0001"]
        assert todo["lead_id"] == "CRM-LEAD-0001"
        assert todo["inspector_email"] == "amal.inspector@example.com"
        assert todo["priority"] == "High"
        assert todo["preferred_date"] == "2025-03-04"
        assert todo["start_datetime"] == "2025-03-04 10:00:00"
        assert todo["end_datetime"] == "2025-03-04 11:30:00"
        assert todo["assigned_by"] == "desk@example.com"

        allocation = client.work_allocations["DWA-0001"]
        assert allocation["staff_id"] == "HR-EMP-00001"
        assert allocation["work_title"] == "Site Inspection"
        assert allocation["work_description"] == "Check balcony waterproofing"
        assert allocation["start_time"] == "10:00"
        assert allocation["end_time"] == "11:30"
        assert allocation["duration_hours"] == 1.5

    def test_existing_lead_is_merged_not_created(self):
        """Test existing lead is merged not created."""
        client = MockFrappeClient(leads={
            "CRM-LEAD-0042": {"name": "CRM-LEAD-0042", "lead_name": "Old name", "city": "Sharjah"},
        })
        saga = AssignmentSaga(client)

        outcome = asyncio.run(saga.run(_request(lead_id="CRM-LEAD-0042", lead_fields={"lead_name": "Villa 12", "city": None})))

        assert outcome.ok
        assert outcome.lead_id == "CRM-LEAD-0042"
        assert client.calls[:2] == ["get_lead", "update_lead"]
        lead = client.leads["CRM-LEAD-0042"]
        assert lead["lead_name"] == "Villa 12"
        assert lead["city"] == "Sharjah"
        assert lead["custom_preferred_inspection_date"] == "2025-03-04"

    def test_missing_staff_record_keeps_earlier_steps(self):
        """The lead and the ToDo stay committed; no work allocation is written."""
        client = MockFrappeClient(staff_emails=[])
        saga = AssignmentSaga(client)

        outcome = asyncio.run(saga.run(_request()))

        assert isinstance(outcome, AssignmentFailure)
        assert not outcome.ok
        assert outcome.failed_step is SagaStep.STAFF_LOOKUP
        assert outcome.last_completed_step is SagaStep.ASSIGNMENT_CREATE
        assert not outcome.transient
        assert "amal.inspector@example.com" in outcome.cause
        assert list(client.leads) == ["CRM-LEAD-0001"]
        assert list(client.assignments) == ["TODO-0001"]
        assert client.work_allocations == {}
        assert "create_work_allocation" not in client.calls
        assert outcome.summary().startswith("Inquiry was saved and inspection was assigned, but staff-lookup failed")

    def test_transient_failure_is_flagged(self):
        """Test transient failure is flagged."""
        client = MockFrappeClient()
        client.fail_on("create_assignment", TransientRecordStoreError("gateway timeout", status_code=504))
        saga = AssignmentSaga(client)

        outcome = asyncio.run(saga.run(_request()))

        assert outcome.failed_step is SagaStep.ASSIGNMENT_CREATE
        assert outcome.last_completed_step is SagaStep.LEAD_UPSERT
        assert outcome.transient
        assert outcome.lead_id == "CRM-LEAD-0001"

    def test_permanent_failure_on_first_step(self):
        """Test permanent failure on first step."""
        client = MockFrappeClient()
        client.fail_on("create_lead", RecordStoreError("mandatory field missing", status_code=417))
        saga = AssignmentSaga(client)

        outcome = asyncio.run(saga.run(_request()))

        assert outcome.failed_step is SagaStep.LEAD_UPSERT
        assert outcome.last_completed_step is None
        assert not outcome.transient
        assert not outcome.resumable
        assert client.calls == ["create_lead"]

    def test_unknown_lead_fails_first_step(self):
        """Test unknown lead fails first step."""
        client = MockFrappeClient()
        saga = AssignmentSaga(client)

        outcome = asyncio.run(saga.run(_request(lead_id="CRM-LEAD-9999")))

        assert outcome.failed_step is SagaStep.LEAD_UPSERT
        assert client.calls == ["get_lead"]

    def test_step_timeout_fails_the_step(self):
        """Test step timeout fails the step."""
        client = MockFrappeClient()
        client.delay("find_staff_by_email", 0.5)
        saga = AssignmentSaga(client, step_timeout=0.01)

        outcome = asyncio.run(saga.run(_request()))

        assert outcome.failed_step is SagaStep.STAFF_LOOKUP
        assert outcome.transient
        assert "timed out" in outcome.cause
        assert client.work_allocations == {}

    def test_unexpected_error_becomes_failure(self):
        """Test unexpected error becomes failure."""
        client = MockFrappeClient()
        client.fail_on("create_work_allocation", KeyError("name"))
        saga = AssignmentSaga(client)

        outcome = asyncio.run(saga.run(_request()))

        assert outcome.failed_step is SagaStep.WORK_ALLOCATION_CREATE
        assert outcome.last_completed_step is SagaStep.STAFF_LOOKUP
        assert not outcome.transient

    def test_resume_skips_completed_steps(self):
        """Test resume skips completed steps."""
        client = MockFrappeClient(staff_emails=[])
        saga = AssignmentSaga(client)
        request = _request()

        failure = asyncio.run(saga.run(request))
        client.staff["amal.inspector@example.com"] = {"name": "HR-EMP-00007", "user_id": "amal.inspector@example.com"}
        client.calls.clear()

        outcome = asyncio.run(saga.run(request, resume_from=failure.checkpoint))

        assert outcome.ok
        assert outcome.lead_id == "CRM-LEAD-0001"
        assert outcome.assignment_record_id == "TODO-0001"
        assert client.calls == ["find_staff_by_email", "create_work_allocation"]
        assert len(client.leads) == 1
        assert len(client.assignments) == 1
        assert client.work_allocations["DWA-0001"]["staff_id"] == "HR-EMP-00007"

    def test_request_work_title_overrides_default(self):
        """Test request work title overrides default."""
        client = MockFrappeClient()
        saga = AssignmentSaga(client, default_work_title="Inspection")

        asyncio.run(saga.run(_request(work_title="Snagging", work_description="Final walkthrough")))

        allocation = client.work_allocations["DWA-0001"]
        assert allocation["work_title"] == "Snagging"
        assert allocation["work_description"] == "Final walkthrough"
