"""Dependency injection for FastAPI."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from bodymap_api.core.exceptions import AuthenticationError
from bodymap_api.core.security import verify_token
from bodymap_api.db.session import get_db
from bodymap_api.services import BodyAssignmentService


async def get_current_admin_id(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Get the admin reference (``sub`` claim) from the bearer token."""
    if not authorization:
        raise AuthenticationError("Not authenticated")

    # Extract token from "Bearer <token>" format
    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError("Invalid authorization header")
    if scheme.lower() != "bearer":
        raise AuthenticationError("Invalid authentication scheme")

    payload = verify_token(token)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    admin_id = payload.get("sub")
    if not admin_id:
        raise AuthenticationError("Invalid token payload")

    return str(admin_id)


def get_expected_version(
    if_match: Annotated[str | None, Header()] = None,
) -> int | None:
    """Read the aggregate version a client expects from ``If-Match``."""
    if if_match is None:
        return None
    try:
        return int(if_match.strip().removeprefix("W/").strip('"'))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="If-Match must carry the assignment version",
        )


# Type aliases for dependency injection
CurrentAdminId = Annotated[str, Depends(get_current_admin_id)]
ExpectedVersion = Annotated[int | None, Depends(get_expected_version)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


# Service dependencies
def get_body_assignment_service(db: DbSession) -> BodyAssignmentService:
    """Get BodyAssignmentService instance."""
    return BodyAssignmentService(db)


# Service type aliases
BodyAssignmentServiceDep = Annotated[BodyAssignmentService, Depends(get_body_assignment_service)]
