"""Rating endpoints for course materials."""

from fastapi import APIRouter

from arms_ratings.api.v1.dependencies import QueryServiceDep, RatingEngineDep, raise_http_error
from arms_ratings.schemas.rating import (
    RatingAggregateResponse,
    RatingCreate,
    RatingResult,
    UserVoteResponse,
)
from arms_ratings.services.errors import RatingError

router = APIRouter(prefix="/ratings", tags=["ratings"])


# Sync handlers: the engine blocks on its transaction and backoff sleeps, so
# FastAPI runs these in its worker thread pool.
@router.post("/", response_model=RatingResult)
def rate_material(rating_data: RatingCreate, engine: RatingEngineDep) -> RatingResult:
    """Cast, switch or withdraw a vote and return the committed aggregate."""
    try:
        outcome = engine.rate(rating_data.material_id, rating_data.user_id, rating_data.value)
    except RatingError as exc:
        raise_http_error(exc)
    return RatingResult.model_validate(outcome)


@router.get("/{material_id}", response_model=RatingAggregateResponse)
def get_material_rating(material_id: int, queries: QueryServiceDep) -> RatingAggregateResponse:
    """Return the aggregate for a material, zero-valued if it is unrated."""
    return RatingAggregateResponse.model_validate(queries.get_aggregate(material_id))


@router.get("/{material_id}/stats", response_model=RatingAggregateResponse)
def get_material_stats(material_id: int, queries: QueryServiceDep) -> RatingAggregateResponse:
    """Return the aggregate for an existing material; 404 when it does not exist."""
    try:
        snapshot = queries.material_stats(material_id)
    except RatingError as exc:
        raise_http_error(exc)
    return RatingAggregateResponse.model_validate(snapshot)


@router.get("/{material_id}/users/{user_id}", response_model=UserVoteResponse)
def get_user_vote(material_id: int, user_id: str, queries: QueryServiceDep) -> UserVoteResponse:
    """Get a user's current vote on a material."""
    return UserVoteResponse(
        material_id=material_id,
        user_id=user_id,
        value=queries.get_user_vote(material_id, user_id),
    )
