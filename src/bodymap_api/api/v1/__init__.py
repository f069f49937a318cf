"""API version 1."""

from bodymap_api.api.v1.router import router

__all__ = ["router"]
