"""Data access helpers for votes, rating aggregates and materials."""
from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from arms_ratings.models import Material, MaterialRating, MaterialVote, VoteValue

__all__ = ["AggregateRepository", "MaterialRepository", "VoteRepository"]


class VoteRepository:
    """Per-pair vote records keyed by ``(material_id, user_id)``."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, material_id: int, user_id: str) -> MaterialVote | None:
        """Return the live vote for the pair, if any."""
        return self.session.get(MaterialVote, (material_id, user_id))

    def add(
        self,
        *,
        material_id: int,
        user_id: str,
        value: VoteValue,
        now: datetime,
    ) -> MaterialVote:
        """Stage a new vote row."""
        vote = MaterialVote(
            material_id=material_id,
            user_id=user_id,
            value=value,
            created_at=now,
            updated_at=now,
        )
        self.session.add(vote)
        return vote

    def delete(self, vote: MaterialVote) -> None:
        """Stage removal of a vote row."""
        self.session.delete(vote)

    def material_ids_for_user(self, user_id: str) -> list[int]:
        """Return ids of every material the user currently holds a vote on."""
        result = self.session.execute(
            select(MaterialVote.material_id)
            .where(MaterialVote.user_id == user_id)
            .order_by(MaterialVote.material_id)
        )
        return list(result.scalars())

    def history_for_user(
        self, user_id: str, limit: int
    ) -> Sequence[tuple[MaterialVote, Material]]:
        """Return the user's votes joined to their materials, newest first."""
        result = self.session.execute(
            select(MaterialVote, Material)
            .join(Material, Material.id == MaterialVote.material_id)
            .where(MaterialVote.user_id == user_id)
            .order_by(MaterialVote.updated_at.desc(), MaterialVote.material_id)
            .limit(limit)
        )
        return [(vote, material) for vote, material in result.all()]


class AggregateRepository:
    """Per-material rating aggregates."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, material_id: int) -> MaterialRating | None:
        """Return the stored aggregate for a material."""
        return self.session.get(MaterialRating, material_id)

    def get_or_create(self, material_id: int) -> MaterialRating:
        """Return the aggregate row, staging a zero-valued one if absent.

        A staged row is inserted on flush; a concurrent first vote on the same
        material surfaces as an ``IntegrityError`` on the primary key.
        """
        aggregate = self.get(material_id)
        if aggregate is None:
            aggregate = MaterialRating(
                material_id=material_id,
                up_votes=0,
                down_votes=0,
                total_ratings=0,
                rating_score=0.0,
                last_rated_at=None,
            )
            self.session.add(aggregate)
        return aggregate

    def top_rated(self, course_id: int, limit: int) -> list[tuple[Material, MaterialRating]]:
        """Return rated materials in a course ranked best first."""
        result = self.session.execute(
            select(Material, MaterialRating)
            .join(MaterialRating, MaterialRating.material_id == Material.id)
            .where(
                Material.course_id == course_id,
                MaterialRating.total_ratings >= 1,
            )
            .order_by(
                MaterialRating.rating_score.desc(),
                MaterialRating.total_ratings.desc(),
                MaterialRating.last_rated_at.desc(),
                Material.id,
            )
            .limit(limit)
        )
        return [(material, rating) for material, rating in result.all()]

    def for_course(self, course_id: int) -> list[tuple[Material, MaterialRating | None]]:
        """Return every material in a course with its aggregate, if rated yet."""
        result = self.session.execute(
            select(Material, MaterialRating)
            .outerjoin(MaterialRating, MaterialRating.material_id == Material.id)
            .where(Material.course_id == course_id)
            .order_by(Material.id)
        )
        return [(material, rating) for material, rating in result.all()]


class MaterialRepository:
    """Read-only view onto materials owned by the materials subsystem."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def exists(self, material_id: int) -> bool:
        """Return True if the material exists."""
        return bool(
            self.session.scalar(select(exists().where(Material.id == material_id)))
        )
