"""Admin bearer token verification.

Tokens are issued by the admin identity provider; this service only reads the
``sub`` claim as an opaque admin reference.
"""

from typing import Any

from jose import JWTError, jwt

from bodymap_api.config import get_settings

settings = get_settings()


def verify_token(token: str) -> dict[str, Any] | None:
    """Verify a JWT token and return the payload."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return payload
    except JWTError:
        return None
