"""Models capturing per-user votes on course materials."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from arms_ratings.db.session import Base
from arms_ratings.db.time import utcnow


class VoteValue(str, enum.Enum):
    """Direction of a single user's vote on a material."""

    UP = "up"
    DOWN = "down"


class MaterialVote(Base):
    """Per-user vote on a material.

    Row presence is the "already voted" fact: no row means the user holds no
    vote on the material. Only the rating engine writes this table.
    """

    __tablename__ = "material_vote"
    __table_args__ = (Index("ix_material_vote_user_id", "user_id"),)

    material_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("material.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(Text, primary_key=True)

    # Composite primary key prevents duplicate votes from the same user.

    value: Mapped[VoteValue] = mapped_column(
        Enum(
            VoteValue,
            name="vote_value",
            native_enum=False,
            create_constraint=True,
            length=8,
            values_callable=lambda members: [member.value for member in members],
        ),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
