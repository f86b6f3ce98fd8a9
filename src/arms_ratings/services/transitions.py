"""Vote state machine and aggregate arithmetic.

Each ``(material, user)`` pair is in one of three states: no vote, voted up,
or voted down. ``None`` stands for "no vote" throughout. Rating a pair with
the direction it already holds toggles the vote off.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Final

from arms_ratings.models import MaterialRating, VoteValue
from arms_ratings.services.errors import InvalidRatingError, RatingIntegrityError

__all__ = [
    "RatingOutcome",
    "RatingSnapshot",
    "Transition",
    "apply_transition",
    "compute_score",
    "parse_vote_value",
    "transition_for",
]


@dataclass(frozen=True)
class Transition:
    """Next state and counter deltas for one state-machine edge."""

    next_value: VoteValue | None
    up_delta: int
    down_delta: int

    @property
    def total_delta(self) -> int:
        return self.up_delta + self.down_delta


_TRANSITIONS: Final[dict[tuple[VoteValue | None, VoteValue], Transition]] = {
    (None, VoteValue.UP): Transition(VoteValue.UP, 1, 0),
    (None, VoteValue.DOWN): Transition(VoteValue.DOWN, 0, 1),
    (VoteValue.UP, VoteValue.UP): Transition(None, -1, 0),
    (VoteValue.UP, VoteValue.DOWN): Transition(VoteValue.DOWN, -1, 1),
    (VoteValue.DOWN, VoteValue.DOWN): Transition(None, 0, -1),
    (VoteValue.DOWN, VoteValue.UP): Transition(VoteValue.UP, 1, -1),
}


@dataclass(frozen=True)
class RatingSnapshot:
    """Immutable copy of a material's rating aggregate."""

    material_id: int
    up_votes: int = 0
    down_votes: int = 0
    total_ratings: int = 0
    rating_score: float = 0.0
    last_rated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: MaterialRating) -> RatingSnapshot:
        return cls(
            material_id=row.material_id,
            up_votes=row.up_votes,
            down_votes=row.down_votes,
            total_ratings=row.total_ratings,
            rating_score=row.rating_score,
            last_rated_at=row.last_rated_at,
        )

    @classmethod
    def empty(cls, material_id: int) -> RatingSnapshot:
        """Return the zero-valued aggregate of a material nobody has rated."""
        return cls(material_id=material_id)


@dataclass(frozen=True)
class RatingOutcome:
    """Result of a ``rate()`` call: the new aggregate and the caller's vote."""

    aggregate: RatingSnapshot
    user_vote: VoteValue | None


def parse_vote_value(value: object) -> VoteValue:
    """Coerce ``value`` to a :class:`VoteValue`.

    Accepts enum members and their case-insensitive string forms.

    Raises:
        InvalidRatingError: If ``value`` is not exactly "up" or "down".
    """
    if isinstance(value, VoteValue):
        return value
    if isinstance(value, str):
        try:
            return VoteValue(value.strip().lower())
        except ValueError:
            pass
    raise InvalidRatingError(f"Invalid rating {value!r}; use 'up' or 'down'")


def transition_for(current: VoteValue | None, requested: VoteValue) -> Transition:
    """Look up the state-machine edge for ``current`` receiving ``requested``."""
    return _TRANSITIONS[(current, requested)]


def compute_score(up_votes: int, total_ratings: int) -> float:
    """Return the percentage of up votes rounded to two places, 0 when unrated."""
    if total_ratings == 0:
        return 0.0
    return round(100 * up_votes / total_ratings, 2)


def apply_transition(
    aggregate: MaterialRating,
    transition: Transition,
    now: datetime,
) -> None:
    """Apply ``transition`` deltas to ``aggregate`` in place.

    Raises:
        RatingIntegrityError: If a counter would become negative, which means
            the stored votes and aggregate disagree.
    """
    up_votes = aggregate.up_votes + transition.up_delta
    down_votes = aggregate.down_votes + transition.down_delta
    if up_votes < 0 or down_votes < 0:
        raise RatingIntegrityError(
            f"Aggregate for material {aggregate.material_id} would go negative "
            f"(up={up_votes}, down={down_votes})"
        )
    total_ratings = up_votes + down_votes

    aggregate.up_votes = up_votes
    aggregate.down_votes = down_votes
    aggregate.total_ratings = total_ratings
    aggregate.rating_score = compute_score(up_votes, total_ratings)
    aggregate.last_rated_at = now
