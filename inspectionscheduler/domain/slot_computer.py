"""
Turns a day's raw availability feed into the windows a user may pick right now.

Pure domain logic: the current time is always passed in, never read here.
"""

from typing import List, Optional, Sequence

from .models import DEFAULT_POLICY, AvailabilitySlot, InspectorAvailability, SchedulingPolicy


class SlotComputer:
    """
    Derives selectable free windows from per-inspector availability.

    Algorithm:
    1. Optionally rebuild free windows as the gaps between occupied slots
    2. Drop windows that already ended
    3. Truncate the window in progress so it starts now
    4. Keep future windows untouched, in feed order
    """

    def __init__(self, policy: SchedulingPolicy = DEFAULT_POLICY):
        self.policy = policy

    def filter_selectable_slots(
        self,
        free_slots: Sequence[AvailabilitySlot],
        now_if_today: Optional[int],
    ) -> List[AvailabilitySlot]:
        """
        Filter free slots down to those still selectable.

        Args:
            free_slots: Free slots for one inspector-day, sorted and non-overlapping
            now_if_today: Current minute-of-day when the date is today, None for future dates

        Returns:
            Selectable slots in input order; a slot in progress starts at ``now``
        """
        if now_if_today is None:
            return list(free_slots)

        now = now_if_today
        selectable: List[AvailabilitySlot] = []

        for slot in free_slots:
            if slot.end <= now:
                continue

            if slot.start > now:
                selectable.append(slot)
                continue

            selectable.append(slot.with_start(now))

        return selectable

    def derive_free_slots(self, occupied_slots: Sequence[AvailabilitySlot]) -> List[AvailabilitySlot]:
        """
        Rebuild free windows as the gaps between occupied slots in business hours.

        Example:
        Hours: 09:00 - 18:00
        Occupied: [10:00-11:00, 14:00-15:00]
        Result: [09:00-10:00, 11:00-14:00, 15:00-18:00]
        """
        opening = self.policy.opening_minutes
        closing = self.policy.closing_minutes

        free: List[AvailabilitySlot] = []
        current_start = opening

        for busy in sorted(occupied_slots, key=lambda s: s.start):
            gap_end = min(busy.start, closing)
            if current_start < gap_end:
                free.append(AvailabilitySlot(
                    start=current_start,
                    end=gap_end,
                    duration_hours=(gap_end - current_start) / 60,
                ))
            current_start = max(current_start, busy.end)

        if current_start < closing:
            free.append(AvailabilitySlot(
                start=current_start,
                end=closing,
                duration_hours=(closing - current_start) / 60,
            ))

        return free

    def normalize(self, inspector: InspectorAvailability) -> InspectorAvailability:
        """
        Recompute free windows from occupied ones.

        An inspector with no occupied slots keeps the feed's free slots.
        """
        if not inspector.occupied_slots:
            return inspector
        return inspector.with_free_slots(self.derive_free_slots(inspector.occupied_slots))

    def selectable_for(
        self,
        availabilities: Sequence[InspectorAvailability],
        now_if_today: Optional[int],
        derive_from_occupied: bool = False,
    ) -> List[InspectorAvailability]:
        """Apply ``filter_selectable_slots`` to every inspector, returning new values."""
        result: List[InspectorAvailability] = []

        for inspector in availabilities:
            if derive_from_occupied:
                inspector = self.normalize(inspector)
            result.append(
                inspector.with_free_slots(
                    self.filter_selectable_slots(inspector.free_slots, now_if_today)
                )
            )

        return result
