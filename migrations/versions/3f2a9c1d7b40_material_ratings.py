"""material ratings

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2026-10-19 10:12:41.518204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create course, material, vote and aggregate tables."""
    op.create_table(
        "course",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_table(
        "material",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["course_id"], ["course.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_material_course_id", "material", ["course_id"])

    op.create_table(
        "material_rating",
        sa.Column("material_id", sa.Integer(), nullable=False),
        sa.Column("up_votes", sa.Integer(), nullable=False),
        sa.Column("down_votes", sa.Integer(), nullable=False),
        sa.Column("total_ratings", sa.Integer(), nullable=False),
        sa.Column("rating_score", sa.Float(), nullable=False),
        sa.Column("last_rated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint("up_votes >= 0", name="ck_material_rating_up_votes"),
        sa.CheckConstraint("down_votes >= 0", name="ck_material_rating_down_votes"),
        sa.CheckConstraint(
            "total_ratings = up_votes + down_votes",
            name="ck_material_rating_total",
        ),
        sa.CheckConstraint(
            "rating_score >= 0 AND rating_score <= 100",
            name="ck_material_rating_score",
        ),
        sa.ForeignKeyConstraint(["material_id"], ["material.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("material_id"),
    )

    op.create_table(
        "material_vote",
        sa.Column("material_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column(
            "value",
            sa.Enum("up", "down", name="vote_value", native_enum=False, create_constraint=True, length=8),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["material_id"], ["material.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("material_id", "user_id"),
    )
    op.create_index("ix_material_vote_user_id", "material_vote", ["user_id"])


def downgrade() -> None:
    """Drop the rating tables."""
    op.drop_index("ix_material_vote_user_id", table_name="material_vote")
    op.drop_table("material_vote")
    op.drop_table("material_rating")
    op.drop_index("ix_material_course_id", table_name="material")
    op.drop_table("material")
    op.drop_table("course")
