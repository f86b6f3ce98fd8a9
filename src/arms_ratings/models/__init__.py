"""SQLAlchemy models for the ARMS rating service."""

from .course import Course, Material
from .rating import MaterialRating
from .vote import MaterialVote, VoteValue

__all__ = [
    "Course", "Material",
    "MaterialRating",
    "MaterialVote", "VoteValue",
]
