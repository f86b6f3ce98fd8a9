"""Business logic services for the ARMS rating service."""

from .errors import (
    InvalidRatingError,
    MaterialNotFoundError,
    RatingConflictError,
    RatingError,
    RatingIntegrityError,
    RatingUnavailableError,
)
from .rating_engine import ErasureReport, RatingEngine
from .rating_queries import CourseAnalytics, RatedMaterial, RatingQueryService
from .transitions import RatingOutcome, RatingSnapshot

__all__ = [
    "RatingEngine",
    "RatingQueryService",
    "ErasureReport",
    "CourseAnalytics",
    "RatedMaterial",
    "RatingOutcome",
    "RatingSnapshot",
    "RatingError",
    "InvalidRatingError",
    "MaterialNotFoundError",
    "RatingConflictError",
    "RatingIntegrityError",
    "RatingUnavailableError",
]
