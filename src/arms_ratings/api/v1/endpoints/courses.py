"""Course-level leaderboards and rating analytics."""

from typing import Annotated

from fastapi import APIRouter, Query

from arms_ratings.api.v1.dependencies import QueryServiceDep, raise_http_error
from arms_ratings.schemas.rating import CourseAnalyticsResponse, RatedMaterialResponse
from arms_ratings.services.errors import RatingError
from arms_ratings.services.rating_queries import SORT_RECENT

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("/{course_id}/top-rated", response_model=list[RatedMaterialResponse])
def get_top_rated(
    course_id: int,
    queries: QueryServiceDep,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> list[RatedMaterialResponse]:
    """Return the course's rated materials, best first."""
    return [
        RatedMaterialResponse.model_validate(item)
        for item in queries.top_rated(course_id, limit)
    ]


@router.get("/{course_id}/analytics", response_model=CourseAnalyticsResponse)
def get_course_analytics(course_id: int, queries: QueryServiceDep) -> CourseAnalyticsResponse:
    """Return rating analytics for a course."""
    return CourseAnalyticsResponse.model_validate(queries.course_analytics(course_id))


@router.get("/{course_id}/materials", response_model=list[RatedMaterialResponse])
def list_course_materials(
    course_id: int,
    queries: QueryServiceDep,
    sort_by: str = SORT_RECENT,
) -> list[RatedMaterialResponse]:
    """List every material in a course with its rating.

    Args:
        course_id: Course to list
        queries: Rating query service
        sort_by: ``recent``, ``rating`` or ``popular``
    """
    try:
        items = queries.materials_with_ratings(course_id, sort_by)
    except RatingError as exc:
        raise_http_error(exc)
    return [RatedMaterialResponse.model_validate(item) for item in items]
