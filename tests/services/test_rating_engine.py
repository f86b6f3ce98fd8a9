"""Tests for the rating engine write path."""

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from arms_ratings.models import MaterialRating, MaterialVote, VoteValue
from arms_ratings.services.errors import (
    InvalidRatingError,
    MaterialNotFoundError,
    RatingConflictError,
    RatingUnavailableError,
)
from arms_ratings.services.rating_engine import RatingEngine


def _counts(outcome) -> tuple[int, int, int, float]:
    aggregate = outcome.aggregate
    return (
        aggregate.up_votes,
        aggregate.down_votes,
        aggregate.total_ratings,
        aggregate.rating_score,
    )


def _assert_invariants(snapshot) -> None:
    assert snapshot.total_ratings == snapshot.up_votes + snapshot.down_votes
    if snapshot.total_ratings == 0:
        assert snapshot.rating_score == 0
    else:
        assert snapshot.rating_score == round(100 * snapshot.up_votes / snapshot.total_ratings, 2)


def test_walkthrough_two_users(rating_engine, material, queries) -> None:
    """Up, down, toggle-off and switch produce the documented totals."""
    first = rating_engine.rate(material.id, "A", "up")
    assert _counts(first) == (1, 0, 1, 100.0)
    assert first.user_vote is VoteValue.UP

    second = rating_engine.rate(material.id, "B", "down")
    assert _counts(second) == (1, 1, 2, 50.0)
    assert second.user_vote is VoteValue.DOWN

    third = rating_engine.rate(material.id, "A", "up")
    assert _counts(third) == (0, 1, 1, 0.0)
    assert third.user_vote is None

    fourth = rating_engine.rate(material.id, "A", "down")
    assert _counts(fourth) == (0, 2, 2, 0.0)
    assert fourth.user_vote is VoteValue.DOWN

    stored = queries().get_aggregate(material.id)
    assert (stored.up_votes, stored.down_votes, stored.total_ratings) == (0, 2, 2)
    assert stored.last_rated_at is not None
    _assert_invariants(stored)


def test_same_vote_twice_restores_baseline(rating_engine, material, queries) -> None:
    rating_engine.rate(material.id, "someone-else", VoteValue.DOWN)
    baseline = queries().get_aggregate(material.id)

    rating_engine.rate(material.id, "A", VoteValue.UP)
    outcome = rating_engine.rate(material.id, "A", VoteValue.UP)

    assert outcome.user_vote is None
    assert _counts(outcome) == (
        baseline.up_votes,
        baseline.down_votes,
        baseline.total_ratings,
        baseline.rating_score,
    )
    assert queries().get_user_vote(material.id, "A") is None


def test_switch_from_up_to_down(rating_engine, material) -> None:
    rating_engine.rate(material.id, "B", "up")
    before = rating_engine.rate(material.id, "A", "up").aggregate

    after = rating_engine.rate(material.id, "A", "down")

    assert after.aggregate.up_votes == before.up_votes - 1
    assert after.aggregate.down_votes == before.down_votes + 1
    assert after.aggregate.total_ratings == before.total_ratings
    assert after.user_vote is VoteValue.DOWN


def test_switch_updates_vote_row_in_place(rating_engine, material, db_session) -> None:
    rating_engine.rate(material.id, "A", "down")
    rating_engine.rate(material.id, "A", "up")

    rows = db_session.query(MaterialVote).filter(MaterialVote.material_id == material.id).all()
    assert len(rows) == 1
    assert rows[0].value is VoteValue.UP
    assert rows[0].updated_at >= rows[0].created_at


def test_aggregate_version_advances_on_every_write(rating_engine, material, session_factory) -> None:
    rating_engine.rate(material.id, "A", "up")
    rating_engine.rate(material.id, "A", "up")

    with session_factory() as session:
        aggregate = session.get(MaterialRating, material.id)
        assert aggregate.version == 2
        assert aggregate.total_ratings == 0


def test_invalid_value_is_rejected_without_writing(rating_engine, material, queries) -> None:
    with pytest.raises(InvalidRatingError):
        rating_engine.rate(material.id, "A", "meh")

    assert queries().get_aggregate(material.id).total_ratings == 0
    assert queries().get_user_vote(material.id, "A") is None


def test_blank_user_is_rejected(rating_engine, material) -> None:
    with pytest.raises(InvalidRatingError):
        rating_engine.rate(material.id, "   ", "up")


def test_unknown_material_is_not_found(rating_engine) -> None:
    with pytest.raises(MaterialNotFoundError) as excinfo:
        rating_engine.rate(424242, "A", "up")
    assert excinfo.value.material_id == 424242


def test_custom_existence_check_is_consulted(session_factory, material) -> None:
    checked: list[int] = []

    def material_exists(material_id: int) -> bool:
        checked.append(material_id)
        return False

    engine = RatingEngine(session_factory, material_exists=material_exists)
    with pytest.raises(MaterialNotFoundError):
        engine.rate(material.id, "A", "up")
    assert checked == [material.id]


def test_store_outage_surfaces_as_unavailable() -> None:
    def broken_factory():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    engine = RatingEngine(broken_factory, material_exists=lambda _: True)
    with pytest.raises(RatingUnavailableError):
        engine.rate(1, "A", "up")


def test_existence_check_outage_surfaces_as_unavailable() -> None:
    def broken_factory():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    with pytest.raises(RatingUnavailableError):
        RatingEngine(broken_factory).rate(1, "A", "up")


@pytest.fixture()
def deferred_session_factory(engine):
    """Sessions on a plain pysqlite engine whose writers only lock at flush.

    Lets a competing writer commit between an attempt's reads and its writes.
    """
    plain = create_engine(engine.url, connect_args={"check_same_thread": False})
    try:
        yield sessionmaker(bind=plain, autoflush=False, expire_on_commit=False)
    finally:
        plain.dispose()


def _racing_factory(session_factory, competitor, races: int):
    """Wrap ``session_factory`` so a rival vote commits before each flush."""
    remaining = {"races": races, "rival": 0}

    def _factory():
        session = session_factory()

        @event.listens_for(session, "before_flush")
        def _race(sess, flush_context, instances) -> None:
            if remaining["races"] <= 0 or sess.info.get("raced"):
                return
            sess.info["raced"] = True
            remaining["races"] -= 1
            remaining["rival"] += 1
            competitor(f"rival-{remaining['rival']}")

        return session

    return _factory


def test_stale_read_is_retried(deferred_session_factory, material, queries) -> None:
    plain_engine = RatingEngine(deferred_session_factory, sleep=lambda _: None)
    plain_engine.rate(material.id, "seed", "up")

    delays: list[float] = []
    racing = RatingEngine(
        _racing_factory(
            deferred_session_factory,
            lambda rival: plain_engine.rate(material.id, rival, "down"),
            races=1,
        ),
        material_exists=lambda _: True,
        sleep=delays.append,
    )

    outcome = racing.rate(material.id, "alice", "up")

    # seed up + rival down + alice up, with alice applied to the rival's total
    assert _counts(outcome) == (2, 1, 3, 66.67)
    assert len(delays) == 1
    stored = queries().get_aggregate(material.id)
    assert (stored.up_votes, stored.down_votes, stored.total_ratings) == (2, 1, 3)
    assert queries().get_user_vote(material.id, "rival-1") is VoteValue.DOWN


def test_exhausted_retries_raise_conflict(deferred_session_factory, material, queries) -> None:
    plain_engine = RatingEngine(deferred_session_factory, sleep=lambda _: None)
    plain_engine.rate(material.id, "seed", "up")

    delays: list[float] = []
    racing = RatingEngine(
        _racing_factory(
            deferred_session_factory,
            lambda rival: plain_engine.rate(material.id, rival, "up"),
            races=100,
        ),
        material_exists=lambda _: True,
        max_attempts=3,
        sleep=delays.append,
    )

    with pytest.raises(RatingConflictError) as excinfo:
        racing.rate(material.id, "alice", "down")

    assert excinfo.value.attempts == 3
    assert len(delays) == 2
    # Nothing from the losing call was written; every rival vote was.
    assert queries().get_user_vote(material.id, "alice") is None
    stored = queries().get_aggregate(material.id)
    assert (stored.up_votes, stored.down_votes, stored.total_ratings) == (4, 0, 4)


def test_backoff_is_bounded(session_factory) -> None:
    engine = RatingEngine(session_factory, base_delay=0.1, max_delay=0.3)
    for attempt in range(1, 8):
        delay = engine._backoff_delay(attempt)
        assert 0 <= delay <= 0.3 * 1.5


def test_first_vote_insert_race_is_retried(deferred_session_factory, material, queries) -> None:
    plain_engine = RatingEngine(deferred_session_factory, sleep=lambda _: None)

    delays: list[float] = []
    racing = RatingEngine(
        _racing_factory(
            deferred_session_factory,
            lambda rival: plain_engine.rate(material.id, rival, "up"),
            races=1,
        ),
        material_exists=lambda _: True,
        sleep=delays.append,
    )

    # Both writers stage the first aggregate row; the rival's insert wins.
    outcome = racing.rate(material.id, "alice", "up")

    assert _counts(outcome) == (2, 0, 2, 100.0)
    assert len(delays) == 1
    stored = queries().get_aggregate(material.id)
    assert stored.total_ratings == 2
    assert stored.version == 2


@pytest.fixture()
def foreign_key_session_factory(engine):
    """Sessions on an engine that enforces SQLite foreign keys."""
    enforcing = create_engine(engine.url, connect_args={"check_same_thread": False})

    @event.listens_for(enforcing, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    try:
        yield sessionmaker(bind=enforcing, autoflush=False, expire_on_commit=False)
    finally:
        enforcing.dispose()


def test_missing_material_behind_stale_existence_check_is_not_found(
    foreign_key_session_factory,
) -> None:
    delays: list[float] = []
    engine = RatingEngine(
        foreign_key_session_factory,
        material_exists=lambda _: True,
        sleep=delays.append,
    )

    with pytest.raises(MaterialNotFoundError) as excinfo:
        engine.rate(999, "A", "up")

    assert excinfo.value.material_id == 999
    assert delays == []
