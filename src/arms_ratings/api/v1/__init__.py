"""Version 1 API endpoints."""

from .endpoints import courses_router, ratings_router, users_router

__all__ = [
    "courses_router",
    "ratings_router",
    "users_router",
]
