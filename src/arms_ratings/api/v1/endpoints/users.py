"""Per-user rating history export and erasure."""

from typing import Annotated

from fastapi import APIRouter, Query, Response, status

from arms_ratings.api.v1.dependencies import QueryServiceDep, RatingEngineDep, raise_http_error
from arms_ratings.schemas.rating import ErasureReportResponse, VoteHistoryItem
from arms_ratings.services.errors import RatingError

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}/ratings", response_model=list[VoteHistoryItem])
def export_rating_history(
    user_id: str,
    queries: QueryServiceDep,
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> list[VoteHistoryItem]:
    """Export the user's votes, most recently changed first."""
    return [
        VoteHistoryItem.model_validate(entry)
        for entry in queries.user_rating_history(user_id, limit)
    ]


@router.delete("/{user_id}/ratings", response_model=ErasureReportResponse)
def erase_rating_history(
    user_id: str,
    engine: RatingEngineDep,
    response: Response,
) -> ErasureReportResponse:
    """Withdraw every vote the user holds.

    Responds 207 when some materials could not be processed; the report lists
    them so the erasure can be retried.
    """
    try:
        report = engine.clear_user_votes(user_id)
    except RatingError as exc:
        raise_http_error(exc)
    if not report.complete:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return ErasureReportResponse.model_validate(report)
