"""
Availability retrieval for the currently viewed date.

Fetches the per-inspector feed through an availability source and hands it
to the domain-level ``SlotComputer``. Only the most recent request may
publish results: a response that arrives after a newer date was requested
is discarded, never merged.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Protocol, Sequence

from ..domain.clock import Clock, minute_of_day
from ..domain.exceptions import StaleResponseError
from ..domain.models import InspectorAvailability
from ..domain.slot_computer import SlotComputer
from ..domain.time_arithmetic import MINUTES_PER_DAY

logger = logging.getLogger(__name__)


class AvailabilitySourceProtocol(Protocol):
    """Protocol describing the availability feed needed by the service."""

    async def get_availability(self, day: date) -> List[InspectorAvailability]:
        """Return raw per-inspector availability for ``day``."""


class AvailabilityService:
    """
    Loads selectable availability, last request wins.

    Each ``load`` takes a ticket; when its response arrives after a newer
    ticket was issued it raises ``StaleResponseError`` and leaves the
    current availability untouched.
    """

    def __init__(
        self,
        source: AvailabilitySourceProtocol,
        slot_computer: SlotComputer,
        clock: Clock,
        derive_from_occupied: bool = False,
    ) -> None:
        self._source = source
        self._slot_computer = slot_computer
        self._clock = clock
        self._derive_from_occupied = derive_from_occupied
        self._ticket = 0
        self._current_date: Optional[date] = None
        self._current: List[InspectorAvailability] = []

    @property
    def current_date(self) -> Optional[date]:
        return self._current_date

    @property
    def current(self) -> List[InspectorAvailability]:
        return list(self._current)

    async def load(self, day: date) -> List[InspectorAvailability]:
        """
        Fetch availability for ``day`` and make it current.

        Raises:
            StaleResponseError: If another load or a discard happened while this one was in flight
        """
        self._ticket += 1
        ticket = self._ticket

        raw = await self._source.get_availability(day)

        if ticket != self._ticket:
            logger.debug("Discarding stale availability for %s", day)
            raise StaleResponseError(f"Availability for {day} was superseded by a newer request")

        self._current_date = day
        self._current = self.selectable(day, raw)
        return list(self._current)

    def selectable(self, day: date, raw: Sequence[InspectorAvailability]) -> List[InspectorAvailability]:
        """Filter raw availability against the clock."""
        return self._slot_computer.selectable_for(
            raw,
            self.now_if_today(day),
            derive_from_occupied=self._derive_from_occupied,
        )

    def now_if_today(self, day: date) -> Optional[int]:
        """
        Current minute-of-day when ``day`` is today, None for future dates.

        A past date counts as fully elapsed.
        """
        now = self._clock()
        today = now.date()
        if day > today:
            return None
        if day < today:
            return MINUTES_PER_DAY
        return minute_of_day(now)

    def discard(self) -> None:
        """Forget the current availability and invalidate in-flight loads."""
        self._ticket += 1
        self._current_date = None
        self._current = []

    def find_inspector(self, email: str) -> Optional[InspectorAvailability]:
        for inspector in self._current:
            if inspector.email.lower() == email.lower():
                return inspector
        return None
