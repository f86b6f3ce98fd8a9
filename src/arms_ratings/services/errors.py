"""Exceptions raised by the rating services."""

from __future__ import annotations


class RatingError(RuntimeError):
    """Base exception for rating failures.

    The API layer maps each subclass to a single HTTP status code.
    """


class InvalidRatingError(RatingError, ValueError):
    """Raised when a vote value or query argument is malformed."""


class MaterialNotFoundError(RatingError, LookupError):
    """Raised when the referenced material does not exist."""

    def __init__(self, material_id: int) -> None:
        super().__init__(f"Material {material_id} not found")
        self.material_id = material_id


class RatingConflictError(RatingError):
    """Raised when the optimistic retry budget is exhausted.

    Nothing was written; the caller may retry the whole operation.
    """

    def __init__(self, material_id: int, attempts: int) -> None:
        super().__init__(
            f"Rating for material {material_id} did not commit after {attempts} attempts"
        )
        self.material_id = material_id
        self.attempts = attempts


class RatingUnavailableError(RatingError):
    """Raised when the rating store cannot be reached."""


class RatingIntegrityError(RatingError):
    """Raised when a transition would drive a stored counter negative."""
