"""API v1 module.

Contains all v1 API routes.
"""

from fastapi import APIRouter

from coach.api.v1.coach import router as coach_router

router = APIRouter(prefix="/api/v1")
router.include_router(coach_router)

__all__ = ["router"]
