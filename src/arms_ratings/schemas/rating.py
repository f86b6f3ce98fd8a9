"""Rating-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from arms_ratings.models import VoteValue


class RatingCreate(BaseModel):
    """Schema for casting, switching or withdrawing a vote."""

    material_id: int = Field(..., ge=1)
    user_id: str = Field(..., min_length=1, max_length=128)
    value: VoteValue = Field(..., description='"up" or "down"; repeating a vote removes it')


class RatingAggregateResponse(BaseModel):
    """Vote totals and score for one material."""

    material_id: int
    up_votes: int
    down_votes: int
    total_ratings: int
    rating_score: float
    last_rated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class RatingResult(RatingAggregateResponse):
    """Aggregate after a vote plus the caller's resulting vote."""

    user_vote: VoteValue | None

    @model_validator(mode="before")
    @classmethod
    def _flatten_outcome(cls, data: object) -> object:
        aggregate = getattr(data, "aggregate", None)
        if aggregate is None:
            return data
        return {
            "material_id": aggregate.material_id,
            "up_votes": aggregate.up_votes,
            "down_votes": aggregate.down_votes,
            "total_ratings": aggregate.total_ratings,
            "rating_score": aggregate.rating_score,
            "last_rated_at": aggregate.last_rated_at,
            "user_vote": getattr(data, "user_vote", None),
        }


class UserVoteResponse(BaseModel):
    """A user's current vote on a material; ``value`` is null when none."""

    material_id: int
    user_id: str
    value: VoteValue | None


class RatedMaterialResponse(BaseModel):
    """Material listing entry carrying its rating."""

    material_id: int
    course_id: int
    title: str
    uploaded_at: datetime
    rating: RatingAggregateResponse

    model_config = ConfigDict(from_attributes=True)


class CourseAnalyticsResponse(BaseModel):
    """Rating summary across a course."""

    course_id: int
    total_materials: int
    rated_materials: int
    total_ratings: int
    total_up_votes: int
    total_down_votes: int
    average_rating_score: float
    top_rated: list[RatedMaterialResponse]
    lowest_rated: list[RatedMaterialResponse]

    model_config = ConfigDict(from_attributes=True)


class VoteHistoryItem(BaseModel):
    """One exported vote."""

    material_id: int
    material_title: str
    course_id: int
    value: VoteValue
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ErasureReportResponse(BaseModel):
    """Result of erasing a user's votes."""

    user_id: str
    processed: list[int]
    failed: dict[int, str]
    complete: bool

    model_config = ConfigDict(from_attributes=True)
