"""Pydantic schemas for the ARMS rating API."""

from .rating import (
    CourseAnalyticsResponse,
    ErasureReportResponse,
    RatedMaterialResponse,
    RatingAggregateResponse,
    RatingCreate,
    RatingResult,
    UserVoteResponse,
    VoteHistoryItem,
)

__all__ = [
    "CourseAnalyticsResponse",
    "ErasureReportResponse",
    "RatedMaterialResponse",
    "RatingAggregateResponse",
    "RatingCreate",
    "RatingResult",
    "UserVoteResponse",
    "VoteHistoryItem",
]
