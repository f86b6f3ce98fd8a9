"""API endpoint modules for version 1."""

from .courses import router as courses_router
from .ratings import router as ratings_router
from .users import router as users_router

__all__ = [
    "courses_router",
    "ratings_router",
    "users_router",
]
