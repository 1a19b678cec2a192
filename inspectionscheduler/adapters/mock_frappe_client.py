"""
In-memory record store for running without a Frappe site.
"""

import asyncio
import itertools
import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..domain.exceptions import RecordStoreError
from ..domain.models import InspectorAvailability
from ..domain.time_arithmetic import format_date


class MockFrappeClient:
    """
    Mock client that keeps leads, ToDos and work allocations in memory.

    Availability is loaded from mock_availability_data.json and served for
    any requested date. Every call is appended to ``calls`` so tests can
    assert on ordering, and failures or delays can be injected per method.
    """

    def __init__(
        self,
        availability: Optional[List[Dict[str, Any]]] = None,
        staff_emails: Optional[Iterable[str]] = None,
        leads: Optional[Mapping[str, Dict[str, Any]]] = None,
    ):
        """
        Initialize the mock client.

        Args:
            availability: Feed entries (without ``date``); defaults to the bundled JSON data
            staff_emails: Emails that have an Employee record; defaults to every inspector in the feed
            leads: Pre-existing leads keyed by name
        """
        self.availability_feed = availability if availability is not None else self._load_availability_data()
        if staff_emails is None:
            staff_emails = [entry["email"] for entry in self.availability_feed]

        self.staff: Dict[str, Dict[str, Any]] = {}
        for number, email in enumerate(staff_emails, 1):
            self.staff[email.lower()] = {"name": f"HR-EMP-{number:05d}", "user_id": email}

        self.leads: Dict[str, Dict[str, Any]] = {name: dict(lead) for name, lead in (leads or {}).items()}
        self.assignments: Dict[str, Dict[str, Any]] = {}
        self.work_allocations: Dict[str, Dict[str, Any]] = {}

        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.delays: Dict[str, float] = {}

        self._lead_numbers = itertools.count(len(self.leads) + 1)
        self._todo_numbers = itertools.count(1)
        self._dwa_numbers = itertools.count(1)

    @staticmethod
    def _load_availability_data() -> List[Dict[str, Any]]:
        """Load mock availability from the bundled JSON file."""
        data_file = Path(__file__).parent / "mock_availability_data.json"

        if data_file.exists():
            with open(data_file, "r", encoding="utf-8") as f:
                return json.load(f)

        return []

    def fail_on(self, operation: str, error: Exception) -> None:
        """Make every later call to ``operation`` raise ``error``."""
        self.failures[operation] = error

    def delay(self, operation: str, seconds: float) -> None:
        self.delays[operation] = seconds

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.delays:
            await asyncio.sleep(self.delays[operation])
        if operation in self.failures:
            raise self.failures[operation]

    async def get_availability(self, day: date) -> List[InspectorAvailability]:
        await self._enter("get_availability")
        return [
            InspectorAvailability.from_feed({**entry, "date": format_date(day)})
            for entry in self.availability_feed
        ]

    async def get_lead(self, lead_id: str) -> Dict[str, Any]:
        await self._enter("get_lead")
        if lead_id not in self.leads:
            raise RecordStoreError(f"Lead {lead_id} not found", status_code=404)
        return dict(self.leads[lead_id])

    async def create_lead(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        await self._enter("create_lead")
        name = f"CRM-LEAD-{next(self._lead_numbers):04d}"
        self.leads[name] = {**fields, "name": name}
        return dict(self.leads[name])

    async def update_lead(self, lead_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        await self._enter("update_lead")
        if lead_id not in self.leads:
            raise RecordStoreError(f"Lead {lead_id} not found", status_code=404)
        self.leads[lead_id] = {**fields, "name": lead_id}
        return dict(self.leads[lead_id])

    async def create_assignment(self, **fields: Any) -> Dict[str, Any]:
        await self._enter("create_assignment")
        name = f"TODO-{next(self._todo_numbers):04d}"
        self.assignments[name] = {**fields, "name": name}
        return dict(self.assignments[name])

    async def find_staff_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        await self._enter("find_staff_by_email")
        record = self.staff.get(email.lower())
        return dict(record) if record else None

    async def create_work_allocation(self, **fields: Any) -> Dict[str, Any]:
        await self._enter("create_work_allocation")
        name = f"DWA-{next(self._dwa_numbers):04d}"
        self.work_allocations[name] = {**fields, "name": name}
        return dict(self.work_allocations[name])

    async def ping(self) -> Dict[str, Any]:
        await self._enter("ping")
        return {"message": "mock.user@example.com"}
