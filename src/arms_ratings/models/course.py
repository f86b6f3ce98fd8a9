"""SQLAlchemy models for courses and their shared materials.

These rows are owned by the materials subsystem. The rating service reads
them to resolve material existence and course membership only.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from arms_ratings.db.session import Base
from arms_ratings.db.time import utcnow


class Course(Base):
    """Course grouping a set of shared materials."""

    __tablename__ = "course"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)


class Material(Base):
    """A piece of shared content (notes, slides, past papers) in a course."""

    __tablename__ = "material"
    __table_args__ = (Index("ix_material_course_id", "course_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("course.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
