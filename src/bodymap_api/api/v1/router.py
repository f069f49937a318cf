"""API v1 router - combines all endpoint routers."""

from fastapi import APIRouter

from bodymap_api.api.v1.body_assignment import router as body_assignment_router

router = APIRouter()

# Include all routers
router.include_router(body_assignment_router)
