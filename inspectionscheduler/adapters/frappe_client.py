"""
Frappe REST client for the lead, assignment and work-allocation records.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import requests

from ..domain.exceptions import AuthenticationError, RecordStoreError, TransientRecordStoreError
from ..domain.models import InspectorAvailability
from ..domain.time_arithmetic import format_date

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({502, 503, 504})
AUTH_STATUS_CODES = frozenset({401, 403})


class FrappeClient:
    """
    Client for a Frappe site's REST API.

    Each public method performs one blocking ``requests`` call in a worker
    thread, so callers can ``await`` the remote steps one after another.
    """

    AVAILABILITY_METHOD = "eits_app.inspector_availability.get_employee_availability"
    LEAD_DOCTYPE = "Lead"
    ASSIGNMENT_DOCTYPE = "ToDo"
    STAFF_DOCTYPE = "Employee"
    WORK_ALLOCATION_DOCTYPE = "Daily Work Allocation"

    def __init__(
        self,
        site_url: str,
        api_key: str,
        api_secret: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Frappe client.

        Args:
            site_url: Base URL of the Frappe site
            api_key: API key of the integration user
            api_secret: API secret matching the key
            timeout: Timeout in seconds applied to every request
            session: Optional pre-configured session
        """
        self.site_url = site_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"token {api_key}:{api_secret}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def _resource_path(self, doctype: str, name: Optional[str] = None) -> str:
        path = f"/api/resource/{quote(doctype)}"
        if name is not None:
            path += f"/{quote(name, safe='')}"
        return path

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Perform a request and decode the JSON body.

        Raises:
            TransientRecordStoreError: On gateway errors, timeouts and connection failures
            AuthenticationError: On 401/403 responses
            RecordStoreError: On any other failed or undecodable response
        """
        url = f"{self.site_url}{path}"

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=payload,
                timeout=self.timeout,
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransientRecordStoreError(
                f"Record store is not reachable: {exc}", endpoint=path
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise RecordStoreError(f"Request to {path} failed: {exc}", endpoint=path) from exc

        status = response.status_code
        if status >= 400:
            message = self._error_message(response)
            if status in TRANSIENT_STATUS_CODES:
                logger.warning("%s %s returned %s", method, path, status)
                raise TransientRecordStoreError(
                    f"Record store unavailable ({status}): {message}",
                    status_code=status,
                    endpoint=path,
                )
            if status in AUTH_STATUS_CODES:
                raise AuthenticationError(
                    f"Not authorized ({status}): {message}", status_code=status, endpoint=path
                )
            raise RecordStoreError(
                f"Record store rejected the request ({status}): {message}",
                status_code=status,
                endpoint=path,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise RecordStoreError(
                f"Invalid JSON from {path}", status_code=status, endpoint=path
            ) from exc

        if not isinstance(body, dict):
            raise RecordStoreError(f"Unexpected response from {path}", status_code=status, endpoint=path)

        return body

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Extract the most useful message from a Frappe error response."""
        try:
            body = response.json()
        except ValueError:
            return response.reason or "unknown error"

        if not isinstance(body, dict):
            return str(body)

        server_messages = body.get("_server_messages")
        if server_messages:
            try:
                messages = [json.loads(m).get("message", m) for m in json.loads(server_messages)]
                return "; ".join(str(m) for m in messages)
            except (ValueError, AttributeError, TypeError):
                return str(server_messages)

        return str(body.get("exception") or body.get("message") or body.get("exc_type") or "unknown error")

    async def _call(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        return await asyncio.to_thread(self._request, method, path, **kwargs)

    async def get_availability(self, day: date) -> List[InspectorAvailability]:
        """
        Fetch per-inspector availability for a date.

        Response format:
        {"message": {"status": "success", "data": [ {user_id, user_name, email, date, availability}, ... ]}}
        """
        path = f"/api/method/{self.AVAILABILITY_METHOD}"
        body = await self._call("GET", path, params={"date": format_date(day)})

        message = body.get("message") or {}
        if not isinstance(message, dict) or message.get("status") != "success":
            raise RecordStoreError("Failed to fetch availability data", endpoint=path)

        inspectors: List[InspectorAvailability] = []
        for item in message.get("data") or []:
            try:
                inspectors.append(InspectorAvailability.from_feed(item))
            except (KeyError, ValueError) as e:
                logger.warning("Skipping unparseable availability entry: %s", e)
                continue

        return inspectors

    async def get_lead(self, lead_id: str) -> Dict[str, Any]:
        body = await self._call("GET", self._resource_path(self.LEAD_DOCTYPE, lead_id))
        return body.get("data") or {}

    async def create_lead(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        body = await self._call("POST", self._resource_path(self.LEAD_DOCTYPE), payload=dict(fields))
        return self._require_named(body, "Lead creation")

    async def update_lead(self, lead_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        body = await self._call(
            "PUT", self._resource_path(self.LEAD_DOCTYPE, lead_id), payload=dict(fields)
        )
        return self._require_named(body, "Lead update")

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
        """Create the ToDo that assigns the inspector to the lead."""
        payload: Dict[str, Any] = {
            "doctype": self.ASSIGNMENT_DOCTYPE,
            "status": "Open",
            "priority": priority,
            "date": preferred_date,
            "allocated_to": inspector_email,
            "description": description or f"Inspection for {lead_id}",
            "reference_type": self.LEAD_DOCTYPE,
            "reference_name": lead_id,
            "custom_start_time": start_datetime,
            "custom_end_time": end_datetime,
        }
        if assigned_by:
            payload["assigned_by"] = assigned_by

        body = await self._call("POST", self._resource_path(self.ASSIGNMENT_DOCTYPE), payload=payload)
        return self._require_named(body, "ToDo creation")

    async def find_staff_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Return the Employee linked to a user email, or None."""
        params = {
            "filters": json.dumps([["user_id", "=", email]]),
            "fields": json.dumps(["name", "employee_name", "user_id"]),
        }
        body = await self._call("GET", self._resource_path(self.STAFF_DOCTYPE), params=params)
        records = body.get("data") or []
        return records[0] if records else None

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
        """Create a Daily Work Allocation with a single allocation row."""
        payload = {
            "employee_name": staff_id,
            "date": date,
            "custom_work_allocation": [
                {
                    "work_title": work_title,
                    "work_description": work_description,
                    "expected_start_date": start_time,
                    "expected_time_in_hours": duration_hours,
                    "end_time": end_time,
                }
            ],
        }
        body = await self._call("POST", self._resource_path(self.WORK_ALLOCATION_DOCTYPE), payload=payload)
        return self._require_named(body, "Work allocation creation")

    async def ping(self) -> Dict[str, Any]:
        """Test the connection and the credentials."""
        await self._call("GET", "/api/method/ping")
        return await self._call("GET", "/api/method/frappe.auth.get_logged_user")

    @staticmethod
    def _require_named(body: Mapping[str, Any], operation: str) -> Dict[str, Any]:
        data = body.get("data")
        if not isinstance(data, dict) or not data.get("name"):
            raise RecordStoreError(f"Invalid response from {operation}")
        return data
