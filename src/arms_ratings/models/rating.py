"""Materialized rating aggregate kept per material."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from arms_ratings.db.session import Base


class MaterialRating(Base):
    """Vote totals and derived score for one material.

    The row is created zero-valued on the first vote and rewritten by every
    accepted vote change. ``version`` is the optimistic concurrency stamp:
    SQLAlchemy conditions each UPDATE on the value that was read, so a writer
    working from a stale read fails instead of overwriting a newer total.
    """

    __tablename__ = "material_rating"
    __table_args__ = (
        CheckConstraint("up_votes >= 0", name="ck_material_rating_up_votes"),
        CheckConstraint("down_votes >= 0", name="ck_material_rating_down_votes"),
        CheckConstraint(
            "total_ratings = up_votes + down_votes",
            name="ck_material_rating_total",
        ),
        CheckConstraint(
            "rating_score >= 0 AND rating_score <= 100",
            name="ck_material_rating_score",
        ),
    )

    material_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("material.id", ondelete="CASCADE"),
        primary_key=True,
    )
    up_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    down_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_ratings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_rated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
