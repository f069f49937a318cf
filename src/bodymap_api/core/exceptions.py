"""Custom exceptions for the BodyMap API."""

from typing import Any


class BodyMapException(Exception):
    """Base exception for BodyMap API."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(BodyMapException):
    """Authentication failed."""

    def __init__(self, message: str = "Authentication failed", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "AUTH_ERROR", details)


class NotFoundError(BodyMapException):
    """Resource not found.

    ``resource`` names the tree level that failed to resolve, so callers can
    tell a missing assignment from a missing main color or sub-feeling.
    """

    def __init__(self, resource: str, identifier: str | None = None) -> None:
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(message, "NOT_FOUND", {"resource": resource, "identifier": identifier})

    @property
    def resource(self) -> str:
        return self.details["resource"]


class ValidationError(BodyMapException):
    """Validation failed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class DuplicateError(BodyMapException):
    """A hex color already exists at the given tree level."""

    def __init__(self, message: str, level: str, hex_value: str) -> None:
        super().__init__(message, "DUPLICATE", {"level": level, "hex": hex_value})


class LimitExceededError(BodyMapException):
    """A bounded list is already full."""

    def __init__(self, message: str, limit: int) -> None:
        super().__init__(message, "LIMIT_EXCEEDED", {"limit": limit})


class ConflictError(BodyMapException):
    """The stored aggregate changed since the caller last read it."""

    def __init__(self, expected_version: int | None = None, actual_version: int | None = None) -> None:
        super().__init__(
            "Body Assignment was modified by another request",
            "CONFLICT",
            {"expectedVersion": expected_version, "actualVersion": actual_version},
        )


class PersistenceError(BodyMapException):
    """Document store call failed."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Failed to persist body assignment during '{operation}'",
            "PERSISTENCE_ERROR",
            {"operation": operation},
        )
