"""Shared API dependencies and error translation for the rating routes."""

from typing import Annotated, NoReturn

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from arms_ratings.db.session import SessionLocal, get_db
from arms_ratings.services.errors import (
    InvalidRatingError,
    MaterialNotFoundError,
    RatingConflictError,
    RatingError,
    RatingUnavailableError,
)
from arms_ratings.services.rating_engine import RatingEngine
from arms_ratings.services.rating_queries import RatingQueryService

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_rating_engine() -> RatingEngine:
    """Return a rating engine bound to the application session factory."""
    return RatingEngine(SessionLocal)


def get_query_service(db: SessionDep) -> RatingQueryService:
    """Return a query service reading through the request session."""
    return RatingQueryService(db)


RatingEngineDep = Annotated[RatingEngine, Depends(get_rating_engine)]
QueryServiceDep = Annotated[RatingQueryService, Depends(get_query_service)]

_STATUS_BY_ERROR: tuple[tuple[type[RatingError], int], ...] = (
    (InvalidRatingError, 422),
    (MaterialNotFoundError, status.HTTP_404_NOT_FOUND),
    (RatingConflictError, status.HTTP_409_CONFLICT),
    (RatingUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def raise_http_error(exc: RatingError) -> NoReturn:
    """Translate a rating service error into an ``HTTPException``.

    Args:
        exc: Error raised by the rating engine or query service

    Raises:
        HTTPException: Always; unmapped errors become 500 responses
    """
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Rating state is inconsistent",
    ) from exc
