"""Database models for BodyMap API."""

from bodymap_api.models.body_assignment import BodyAssignment

__all__ = [
    "BodyAssignment",
]
