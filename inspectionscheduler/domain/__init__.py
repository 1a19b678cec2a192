"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .models import (
    AssignmentFailure,
    AssignmentRequest,
    AssignmentResult,
    AvailabilitySlot,
    InspectorAvailability,
    SagaCheckpoint,
    SagaStep,
    SchedulingPolicy,
    TimeSelection,
)
from .slot_computer import SlotComputer
from .validator import TimeSelectionValidator, ValidationContext, ValidationResult

__all__ = [
    "AssignmentFailure",
    "AssignmentRequest",
    "AssignmentResult",
    "AvailabilitySlot",
    "InspectorAvailability",
    "SagaCheckpoint",
    "SagaStep",
    "SchedulingPolicy",
    "SlotComputer",
    "TimeSelection",
    "TimeSelectionValidator",
    "ValidationContext",
    "ValidationResult",
]
