"""
Tests for slot computer.
"""

import pendulum

from inspectionscheduler.domain.models import AvailabilitySlot, InspectorAvailability, SchedulingPolicy
from inspectionscheduler.domain.slot_computer import SlotComputer
from inspectionscheduler.domain.time_arithmetic import to_minutes


def _slots(*pairs):
    return [AvailabilitySlot.from_strings(start, end) for start, end in pairs]


def _inspector(free, occupied=()):
    return InspectorAvailability(
        inspector_id="amal",
        display_name="Amal Haddad",
        email="amal.inspector@example.com",
        date=pendulum.date(2025, 3, 4),
        occupied_slots=tuple(_slots(*occupied)),
        free_slots=tuple(_slots(*free)),
    )


class TestFilterSelectableSlots:
    """Tests for SlotComputer.filter_selectable_slots."""

    def test_future_date_keeps_slots_unchanged(self):
        """Test future date keeps slots unchanged."""
        computer = SlotComputer()
        free = _slots(("09:00", "12:00"), ("14:00", "18:00"))

        assert computer.filter_selectable_slots(free, None) == free

    def test_slot_in_progress_is_truncated(self):
        """At 09:30 the morning slot starts now and the afternoon slot is untouched."""
        computer = SlotComputer()
        free = _slots(("09:00", "12:00"), ("14:00", "18:00"))

        result = computer.filter_selectable_slots(free, to_minutes("09:30"))

        assert [str(s) for s in result] == ["09:30 - 12:00", "14:00 - 18:00"]
        assert result[0].duration_hours == 2.5
        assert result[1] == free[1]

    def test_ended_slot_is_dropped(self):
        """Test ended slot is dropped."""
        computer = SlotComputer()
        free = _slots(("09:00", "10:00"), ("10:30", "11:00"))

        result = computer.filter_selectable_slots(free, to_minutes("10:00"))

        assert [str(s) for s in result] == ["10:30 - 11:00"]

    def test_slot_starting_now_is_truncated_to_itself(self):
        """Test slot starting now is truncated to itself."""
        computer = SlotComputer()
        free = _slots(("10:00", "11:00"))

        result = computer.filter_selectable_slots(free, to_minutes("10:00"))

        assert [str(s) for s in result] == ["10:00 - 11:00"]

    def test_before_opening_nothing_changes(self):
        """Test before opening nothing changes."""
        computer = SlotComputer()
        free = _slots(("09:00", "12:00"))

        assert computer.filter_selectable_slots(free, to_minutes("08:00")) == free

    def test_after_every_slot_nothing_is_left(self):
        """Test after every slot nothing is left."""
        computer = SlotComputer()
        free = _slots(("09:00", "12:00"), ("14:00", "18:00"))

        assert computer.filter_selectable_slots(free, to_minutes("18:00")) == []

    def test_every_result_lies_after_now(self):
        """Test every result lies after now."""
        computer = SlotComputer()
        free = _slots(("09:00", "09:45"), ("10:00", "12:00"), ("13:15", "17:30"))

        for now in range(to_minutes("08:00"), to_minutes("19:00"), 7):
            for slot in computer.filter_selectable_slots(free, now):
                assert slot.end > now
                assert slot.start >= now


class TestDeriveFreeSlots:
    """Tests for rebuilding free slots from occupied ones."""

    def test_gaps_between_occupied_slots(self):
        """Test gaps between occupied slots."""
        computer = SlotComputer()

        result = computer.derive_free_slots(_slots(("14:00", "15:00"), ("10:00", "11:00")))

        assert [str(s) for s in result] == ["09:00 - 10:00", "11:00 - 14:00", "15:00 - 18:00"]

    def test_overlapping_and_out_of_hours_occupied_slots(self):
        """Test overlapping and out of hours occupied slots."""
        computer = SlotComputer(SchedulingPolicy(opening="08:00", closing="17:00"))

        result = computer.derive_free_slots(
            _slots(("07:00", "09:00"), ("12:00", "13:30"), ("13:00", "14:00"), ("16:30", "19:00"))
        )

        assert [str(s) for s in result] == ["09:00 - 12:00", "14:00 - 16:30"]

    def test_fully_booked_day(self):
        """Test fully booked day."""
        computer = SlotComputer()

        assert computer.derive_free_slots(_slots(("09:00", "18:00"))) == []


class TestSelectableFor:
    """Tests for applying the filter to a whole feed."""

    def test_applies_filter_per_inspector(self):
        """Test applies filter per inspector."""
        computer = SlotComputer()
        inspectors = [
            _inspector([("09:00", "12:00"), ("14:00", "18:00")]),
            _inspector([("09:00", "10:00")]),
        ]

        result = computer.selectable_for(inspectors, to_minutes("11:00"))

        assert [str(s) for s in result[0].free_slots] == ["11:00 - 12:00", "14:00 - 18:00"]
        assert result[1].free_slots == ()
        assert len(inspectors[1].free_slots) == 1

    def test_derives_from_occupied_when_asked(self):
        """Test derives from occupied when asked."""
        computer = SlotComputer()
        inspector = _inspector([("09:00", "18:00")], occupied=[("12:00", "13:00")])

        result = computer.selectable_for([inspector], None, derive_from_occupied=True)

        assert [str(s) for s in result[0].free_slots] == ["09:00 - 12:00", "13:00 - 18:00"]

    def test_keeps_feed_slots_without_occupied_ranges(self):
        """Test keeps feed slots without occupied ranges."""
        computer = SlotComputer()
        inspector = _inspector([("10:30", "15:00")])

        result = computer.selectable_for([inspector], None, derive_from_occupied=True)

        assert [str(s) for s in result[0].free_slots] == ["10:30 - 15:00"]
