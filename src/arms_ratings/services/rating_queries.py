"""Read-only rating projections used by material, course and profile views."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Final

from sqlalchemy.orm import Session

from arms_ratings.core.settings import settings
from arms_ratings.models import Material, MaterialRating, VoteValue
from arms_ratings.repositories.rating_repo import (
    AggregateRepository,
    MaterialRepository,
    VoteRepository,
)
from arms_ratings.services.errors import InvalidRatingError, MaterialNotFoundError
from arms_ratings.services.transitions import RatingSnapshot

ANALYTICS_LIST_SIZE: Final[int] = 5
SORT_RECENT: Final[str] = "recent"
SORT_RATING: Final[str] = "rating"
SORT_POPULAR: Final[str] = "popular"
SORT_OPTIONS: Final[tuple[str, ...]] = (SORT_RECENT, SORT_RATING, SORT_POPULAR)


@dataclass(frozen=True)
class RatedMaterial:
    """A material paired with its rating aggregate."""

    material_id: int
    course_id: int
    title: str
    uploaded_at: datetime
    rating: RatingSnapshot

    @classmethod
    def build(cls, material: Material, rating: MaterialRating | None) -> RatedMaterial:
        return cls(
            material_id=material.id,
            course_id=material.course_id,
            title=material.title,
            uploaded_at=material.uploaded_at,
            rating=(
                RatingSnapshot.from_row(rating)
                if rating is not None
                else RatingSnapshot.empty(material.id)
            ),
        )


@dataclass(frozen=True)
class CourseAnalytics:
    """Rating summary across every material of one course."""

    course_id: int
    total_materials: int = 0
    rated_materials: int = 0
    total_ratings: int = 0
    total_up_votes: int = 0
    total_down_votes: int = 0
    average_rating_score: float = 0.0
    top_rated: list[RatedMaterial] = field(default_factory=list)
    lowest_rated: list[RatedMaterial] = field(default_factory=list)


@dataclass(frozen=True)
class VoteHistoryEntry:
    """One vote from a user's rating history."""

    material_id: int
    material_title: str
    course_id: int
    value: VoteValue
    created_at: datetime
    updated_at: datetime


def _ranking_key(item: RatedMaterial) -> tuple[float, int, float, int]:
    """Sort key placing the best-rated material first."""
    rating = item.rating
    rated_at = rating.last_rated_at.timestamp() if rating.last_rated_at else 0.0
    return (-rating.rating_score, -rating.total_ratings, -rated_at, item.material_id)


def _popularity_key(item: RatedMaterial) -> tuple[int, float, int]:
    rating = item.rating
    return (-rating.total_ratings, -rating.rating_score, item.material_id)


def _lowest_key(item: RatedMaterial) -> tuple[float, int, int]:
    rating = item.rating
    return (rating.rating_score, -rating.total_ratings, item.material_id)


class RatingQueryService:
    """Lock-free reads over votes and rating aggregates."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.votes = VoteRepository(session)
        self.aggregates = AggregateRepository(session)
        self.materials = MaterialRepository(session)

    def get_user_vote(self, material_id: int, user_id: str) -> VoteValue | None:
        """Return the user's current vote on a material, or None."""
        vote = self.votes.get(material_id, user_id)
        return vote.value if vote is not None else None

    def get_aggregate(self, material_id: int) -> RatingSnapshot:
        """Return the material's aggregate, zero-valued if nobody has rated it."""
        row = self.aggregates.get(material_id)
        if row is None:
            return RatingSnapshot.empty(material_id)
        return RatingSnapshot.from_row(row)

    def material_stats(self, material_id: int) -> RatingSnapshot:
        """Return the aggregate of an existing material.

        Raises:
            MaterialNotFoundError: If the material does not exist.
        """
        if not self.materials.exists(material_id):
            raise MaterialNotFoundError(material_id)
        return self.get_aggregate(material_id)

    def top_rated(self, course_id: int, limit: int | None = None) -> list[RatedMaterial]:
        """Return the course's rated materials ranked best first.

        Ordering is score, then number of ratings, then most recent rating,
        all descending. Materials nobody has rated are left out.
        """
        limit = settings.top_rated_default_limit if limit is None else limit
        if limit < 1:
            raise InvalidRatingError("limit must be a positive integer")
        return [
            RatedMaterial.build(material, rating)
            for material, rating in self.aggregates.top_rated(course_id, limit)
        ]

    def materials_with_ratings(
        self, course_id: int, sort_by: str = SORT_RECENT
    ) -> list[RatedMaterial]:
        """Return every material in the course with its rating.

        ``sort_by`` is one of ``recent`` (newest upload first), ``rating``
        (best score first) or ``popular`` (most ratings first).
        """
        if sort_by not in SORT_OPTIONS:
            raise InvalidRatingError(
                f"Unknown sort {sort_by!r}; expected one of {', '.join(SORT_OPTIONS)}"
            )
        items = [
            RatedMaterial.build(material, rating)
            for material, rating in self.aggregates.for_course(course_id)
        ]
        if sort_by == SORT_RATING:
            items.sort(key=_ranking_key)
        elif sort_by == SORT_POPULAR:
            items.sort(key=_popularity_key)
        else:
            items.sort(key=lambda item: (item.uploaded_at, item.material_id), reverse=True)
        return items

    def course_analytics(self, course_id: int) -> CourseAnalytics:
        """Summarize ratings across a course.

        The average score only covers rated materials, so materials nobody has
        voted on do not pull it down.
        """
        items = [
            RatedMaterial.build(material, rating)
            for material, rating in self.aggregates.for_course(course_id)
        ]
        rated = [item for item in items if item.rating.total_ratings > 0]

        average = 0.0
        if rated:
            average = round(sum(item.rating.rating_score for item in rated) / len(rated), 2)

        return CourseAnalytics(
            course_id=course_id,
            total_materials=len(items),
            rated_materials=len(rated),
            total_ratings=sum(item.rating.total_ratings for item in items),
            total_up_votes=sum(item.rating.up_votes for item in items),
            total_down_votes=sum(item.rating.down_votes for item in items),
            average_rating_score=average,
            top_rated=sorted(rated, key=_ranking_key)[:ANALYTICS_LIST_SIZE],
            lowest_rated=sorted(rated, key=_lowest_key)[:ANALYTICS_LIST_SIZE],
        )

    def user_rating_history(
        self, user_id: str, limit: int | None = None
    ) -> list[VoteHistoryEntry]:
        """Export the user's votes, most recently changed first."""
        limit = settings.rating_history_default_limit if limit is None else limit
        if limit < 1:
            raise InvalidRatingError("limit must be a positive integer")
        return [
            VoteHistoryEntry(
                material_id=vote.material_id,
                material_title=material.title,
                course_id=material.course_id,
                value=vote.value,
                created_at=vote.created_at,
                updated_at=vote.updated_at,
            )
            for vote, material in self.votes.history_for_user(user_id, limit)
        ]
