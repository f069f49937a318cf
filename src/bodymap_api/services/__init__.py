"""Service layer for BodyMap API."""

from bodymap_api.services.body_assignment import BodyAssignmentService

__all__ = [
    "BodyAssignmentService",
]
