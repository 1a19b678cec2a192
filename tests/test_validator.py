"""
Tests for the time selection validator.
"""

import pendulum

from inspectionscheduler.domain.models import AvailabilitySlot, SchedulingPolicy
from inspectionscheduler.domain.validator import (
    MSG_BOTH_REQUIRED,
    MSG_END_BEFORE_START,
    MSG_OUTSIDE_INSPECTOR_SLOTS,
    MSG_START_IN_PAST,
    FieldErrors,
    TimeSelectionValidator,
    ValidationContext,
)

TODAY = pendulum.date(2025, 3, 4)
TOMORROW = pendulum.date(2025, 3, 5)


def _context(inspection_date=TOMORROW, now="2025-03-04 09:07", **kwargs):
    return ValidationContext.at(pendulum.parse(now, tz="Asia/Dubai"), inspection_date, **kwargs)


class TestTimeSelectionValidator:
    """Tests for TimeSelectionValidator."""

    def setup_method(self):
        self.validator = TimeSelectionValidator()

    def test_valid_selection(self):
        """Test valid selection."""
        result = self.validator.validate("10:00", "11:30", _context())

        assert result.valid
        assert result.severity is None
        assert result.field_errors == FieldErrors()

    def test_missing_time_blames_no_field(self):
        """Test missing time blames no field."""
        result = self.validator.validate("10:00", None, _context())

        assert not result.valid
        assert result.message == MSG_BOTH_REQUIRED
        assert result.field_errors == FieldErrors()

    def test_malformed_time_blames_its_field(self):
        """Test malformed time blames its field."""
        result = self.validator.validate("10:00", "25:00", _context())

        assert not result.valid
        assert result.field_errors == FieldErrors(end=True)

    def test_end_before_start(self):
        """Test end before start."""
        result = self.validator.validate("11:00", "10:00", _context())

        assert not result.valid
        assert result.message == MSG_END_BEFORE_START
        assert result.field_errors == FieldErrors(start=True, end=True)

    def test_gap_below_minimum(self):
        """Test gap below minimum."""
        result = self.validator.validate("10:00", "10:10", _context())

        assert not result.valid
        assert "at least 15 minutes" in result.message
        assert result.field_errors == FieldErrors(start=True, end=True)

    def test_gap_uses_policy(self):
        """Test gap uses policy."""
        policy = SchedulingPolicy(min_gap_minutes=30)

        result = self.validator.validate("10:00", "10:20", _context(policy=policy))

        assert "at least 30 minutes" in result.message

    def test_exact_minimum_gap_is_valid(self):
        """Test exact minimum gap is valid."""
        assert self.validator.validate("10:00", "10:15", _context()).valid

    def test_start_in_the_past_today(self):
        """Test start in the past today."""
        result = self.validator.validate("09:00", "10:00", _context(inspection_date=TODAY))

        assert not result.valid
        assert result.message == MSG_START_IN_PAST
        assert result.field_errors == FieldErrors(start=True)

    def test_past_start_only_matters_today(self):
        """Test past start only matters today."""
        assert self.validator.validate("09:00", "10:00", _context(inspection_date=TOMORROW)).valid

    def test_must_fit_inspector_free_slot(self):
        """Test must fit inspector free slot."""
        free = [AvailabilitySlot.from_strings("09:00", "12:00"), AvailabilitySlot.from_strings("14:00", "18:00")]

        inside = self.validator.validate("14:30", "16:00", _context(inspector_free_slots=free))
        spanning = self.validator.validate("11:30", "14:30", _context(inspector_free_slots=free))

        assert inside.valid
        assert not spanning.valid
        assert spanning.message == MSG_OUTSIDE_INSPECTOR_SLOTS
        assert spanning.field_errors == FieldErrors(start=True, end=True)

    def test_without_inspector_must_fit_selected_slot(self):
        """Test without inspector must fit selected slot."""
        slot = AvailabilitySlot.from_strings("09:00", "12:00")

        result = self.validator.validate("11:00", "12:30", _context(selected_slot=slot))

        assert not result.valid
        assert "09:00 - 12:00" in result.message

    def test_first_message_wins_and_field_errors_accumulate(self):
        """Past start today plus a short gap: gap message first, both fields blamed."""
        result = self.validator.validate("09:00", "09:05", _context(inspection_date=TODAY))

        assert "at least 15 minutes" in result.message
        assert result.field_errors == FieldErrors(start=True, end=True)

    def test_late_finish_is_a_warning(self):
        """Test late finish is a warning."""
        free = [AvailabilitySlot.from_strings("17:00", "19:00")]

        result = self.validator.validate("17:50", "18:10", _context(inspector_free_slots=free))

        assert result.valid
        assert result.severity == "warning"
        assert result.needs_confirmation
        assert "18:00" in result.message

    def test_ending_at_close_needs_no_confirmation(self):
        """Test ending at close needs no confirmation."""
        result = self.validator.validate("17:00", "18:00", _context())

        assert result.valid
        assert not result.needs_confirmation

    def test_hard_error_takes_precedence_over_warning(self):
        """Test hard error takes precedence over warning."""
        result = self.validator.validate("18:10", "18:15", _context())

        assert not result.valid
        assert result.severity == "error"
