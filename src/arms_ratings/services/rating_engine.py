"""Rating engine: atomic vote transitions and aggregate maintenance.

Every accepted vote change touches exactly one ``material_vote`` row and one
``material_rating`` row inside a single transaction. The aggregate row carries
a version stamp; a writer whose read went stale fails its conditional UPDATE
and retries from a fresh read, so concurrent votes on one material are
applied one after another and none is lost.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from arms_ratings.core.settings import settings
from arms_ratings.db.session import IMMEDIATE_WRITE_OPTION
from arms_ratings.db.time import utcnow
from arms_ratings.models import VoteValue
from arms_ratings.repositories.rating_repo import (
    AggregateRepository,
    MaterialRepository,
    VoteRepository,
)
from arms_ratings.services.errors import (
    InvalidRatingError,
    MaterialNotFoundError,
    RatingConflictError,
    RatingError,
    RatingUnavailableError,
)
from arms_ratings.services.transitions import (
    RatingOutcome,
    RatingSnapshot,
    apply_transition,
    parse_vote_value,
    transition_for,
)

# Configure logger for this module
logger = logging.getLogger(__name__)

T = TypeVar("T")

SessionFactory = Callable[[], Session]


@dataclass
class ErasureReport:
    """Outcome of removing every vote a user holds.

    ``failed`` maps material ids that were left untouched to the name of the
    error that stopped them; those materials can be retried independently.
    """

    user_id: str
    processed: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failed


def _validate_user_id(user_id: object) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidRatingError("user_id must be a non-empty string")
    return user_id


class RatingEngine:
    """Owns all writes to votes and rating aggregates."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        material_exists: Callable[[int], bool] | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the engine.

        Args:
            session_factory: Callable returning a new SQLAlchemy session; one
                session is opened per transaction attempt.
            material_exists: Existence check supplied by the materials
                subsystem. Defaults to a lookup in the ``material`` table.
            max_attempts: Optimistic attempts per material before giving up.
            base_delay: First backoff delay in seconds; doubles per retry.
            max_delay: Upper bound for a single backoff delay.
            clock: Source of timestamps for vote and aggregate rows.
            sleep: Blocking sleep used between retries.
        """
        self._session_factory = session_factory
        self._material_exists = material_exists or self._material_in_store
        self.max_attempts = max_attempts or settings.rating_max_attempts
        self.base_delay = (
            settings.rating_retry_base_delay_seconds if base_delay is None else base_delay
        )
        self.max_delay = (
            settings.rating_retry_max_delay_seconds if max_delay is None else max_delay
        )
        self._clock = clock
        self._sleep = sleep

    def rate(self, material_id: int, user_id: str, value: VoteValue | str) -> RatingOutcome:
        """Cast, switch or withdraw ``user_id``'s vote on a material.

        Args:
            material_id: Material being rated.
            user_id: Identifier of the voting user.
            value: ``"up"`` or ``"down"``. Repeating the held direction
                removes the vote.

        Returns:
            The committed aggregate and the caller's resulting vote (``None``
            when the vote was toggled off).

        Raises:
            InvalidRatingError: If ``value`` or ``user_id`` is malformed.
            MaterialNotFoundError: If the material does not exist.
            RatingConflictError: If the retry budget ran out under contention.
            RatingUnavailableError: If the store could not be reached.
        """
        requested = parse_vote_value(value)
        user_id = _validate_user_id(user_id)
        if not self._check_material(material_id):
            raise MaterialNotFoundError(material_id)

        return self._run_atomic(
            material_id,
            partial(self._rate_once, material_id=material_id, user_id=user_id, requested=requested),
        )

    def clear_user_votes(self, user_id: str) -> ErasureReport:
        """Withdraw every vote held by ``user_id`` and reverse its contribution.

        Each material is reversed in its own transaction. A failure on one
        material is recorded in the report and the remaining materials are
        still processed.
        """
        user_id = _validate_user_id(user_id)
        try:
            with self._session_factory() as session:
                material_ids = VoteRepository(session).material_ids_for_user(user_id)
        except (OperationalError, InterfaceError) as exc:
            raise RatingUnavailableError(str(exc)) from exc

        report = ErasureReport(user_id=user_id)
        for material_id in material_ids:
            try:
                self._run_atomic(
                    material_id,
                    partial(self._erase_once, material_id=material_id, user_id=user_id),
                )
            except RatingError as exc:
                logger.warning(
                    "Vote erasure for user %s failed on material %s: %s",
                    user_id,
                    material_id,
                    exc,
                )
                report.failed[material_id] = type(exc).__name__
            else:
                report.processed.append(material_id)

        logger.info(
            "Erased votes for user %s: %d processed, %d failed",
            user_id,
            len(report.processed),
            len(report.failed),
        )
        return report

    def _rate_once(
        self,
        session: Session,
        *,
        material_id: int,
        user_id: str,
        requested: VoteValue,
    ) -> RatingOutcome:
        votes = VoteRepository(session)
        aggregate = AggregateRepository(session).get_or_create(material_id)
        vote = votes.get(material_id, user_id)

        transition = transition_for(vote.value if vote else None, requested)
        now = self._clock()
        if vote is None:
            votes.add(material_id=material_id, user_id=user_id, value=requested, now=now)
        elif transition.next_value is None:
            votes.delete(vote)
        else:
            vote.value = transition.next_value
            vote.updated_at = now

        apply_transition(aggregate, transition, now)
        session.flush()
        return RatingOutcome(
            aggregate=RatingSnapshot.from_row(aggregate),
            user_vote=transition.next_value,
        )

    def _erase_once(self, session: Session, *, material_id: int, user_id: str) -> None:
        votes = VoteRepository(session)
        vote = votes.get(material_id, user_id)
        if vote is None:
            # Withdrawn since the listing was taken.
            return

        aggregate = AggregateRepository(session).get_or_create(material_id)
        apply_transition(aggregate, transition_for(vote.value, vote.value), self._clock())
        votes.delete(vote)
        session.flush()

    def _run_atomic(self, material_id: int, unit: Callable[[Session], T]) -> T:
        """Run ``unit`` in a fresh transaction, retrying on lost races."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                with self._session_factory() as session, session.begin():
                    session.connection(execution_options={IMMEDIATE_WRITE_OPTION: True})
                    return unit(session)
            except (StaleDataError, IntegrityError) as exc:
                if isinstance(exc, IntegrityError) and not self._material_still_stored(material_id):
                    # Foreign key violation: the material was removed underneath us.
                    raise MaterialNotFoundError(material_id) from exc
                logger.debug(
                    "Optimistic write on material %s lost a race (attempt %d/%d): %s",
                    material_id,
                    attempt,
                    self.max_attempts,
                    exc,
                )
                if attempt < self.max_attempts:
                    self._sleep(self._backoff_delay(attempt))
            except (OperationalError, InterfaceError) as exc:
                raise RatingUnavailableError(str(exc)) from exc

        logger.warning(
            "Giving up on material %s after %d optimistic attempts",
            material_id,
            self.max_attempts,
        )
        raise RatingConflictError(material_id, self.max_attempts)

    def _backoff_delay(self, attempt: int) -> float:
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return delay * random.uniform(0.5, 1.5)

    def _check_material(self, material_id: int) -> bool:
        try:
            return self._material_exists(material_id)
        except (OperationalError, InterfaceError) as exc:
            raise RatingUnavailableError(str(exc)) from exc

    def _material_still_stored(self, material_id: int) -> bool:
        try:
            return self._material_in_store(material_id)
        except (OperationalError, InterfaceError) as exc:
            raise RatingUnavailableError(str(exc)) from exc

    def _material_in_store(self, material_id: int) -> bool:
        with self._session_factory() as session:
            return MaterialRepository(session).exists(material_id)
