"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .assignment_saga import AssignmentSaga, RecordStoreProtocol, merge_lead_fields
from .availability import AvailabilityService, AvailabilitySourceProtocol
from .scheduling_session import SchedulingSession

__all__ = [
    "AssignmentSaga",
    "AvailabilityService",
    "AvailabilitySourceProtocol",
    "RecordStoreProtocol",
    "SchedulingSession",
    "merge_lead_fields",
]
