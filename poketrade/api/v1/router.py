"""
Main API v1 router.

Aggregates all v1 endpoint routers.
"""

from fastapi import APIRouter

from .catalog import router as catalog_router
from .lists import router as lists_router
from .matches import router as matches_router
from .profile import router as profile_router

api_router = APIRouter()

# Public routes
api_router.include_router(
    catalog_router,
    prefix="/catalog",
    tags=["Card Catalog"],
)

# Authenticated routes
api_router.include_router(
    profile_router,
    prefix="/profile",
    tags=["Profile"],
)

api_router.include_router(
    lists_router,
    prefix="/lists",
    tags=["Lists"],
)

api_router.include_router(
    matches_router,
    prefix="/matches",
    tags=["Matches"],
)
