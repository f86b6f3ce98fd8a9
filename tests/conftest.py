# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("PYTEST_RUNNING", "true")

from arms_ratings.api.v1.dependencies import get_rating_engine
from arms_ratings.db.session import Base, build_engine
from arms_ratings.db.session import get_db as app_get_session
from arms_ratings.main import app as fastapi_app
from arms_ratings.models import Course, Material
from arms_ratings.services.rating_engine import RatingEngine
from arms_ratings.services.rating_queries import RatingQueryService

_COURSE_CODE_COUNTER = count(1)


def _no_sleep(_: float) -> None:
    return None


@pytest.fixture()
def engine(tmp_path) -> Generator[Engine, None, None]:
    """File-backed SQLite database so separate sessions and threads share state."""
    engine = build_engine(f"sqlite:///{tmp_path / 'ratings.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Session used by tests to seed collaborator rows."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def rating_engine(session_factory: sessionmaker[Session]) -> RatingEngine:
    return RatingEngine(session_factory, sleep=_no_sleep)


@pytest.fixture()
def queries(session_factory: sessionmaker[Session]) -> Iterator[Callable[[], RatingQueryService]]:
    """Return a factory building query services over fresh sessions.

    A fresh session per read keeps the identity map from serving rows that the
    engine has since rewritten in its own sessions.
    """
    sessions: list[Session] = []

    def _build() -> RatingQueryService:
        session = session_factory()
        sessions.append(session)
        return RatingQueryService(session)

    try:
        yield _build
    finally:
        for session in sessions:
            session.close()


@pytest.fixture()
def make_course(db_session: Session) -> Callable[..., Course]:
    def _make(title: str = "Object Oriented Programming") -> Course:
        course = Course(code=f"CS{next(_COURSE_CODE_COUNTER):04d}", title=title)
        db_session.add(course)
        db_session.commit()
        return course

    return _make


@pytest.fixture()
def course(make_course: Callable[..., Course]) -> Course:
    return make_course()


@pytest.fixture()
def make_material(db_session: Session, course: Course) -> Callable[..., Material]:
    def _make(title: str = "Lecture notes", course_id: int | None = None) -> Material:
        material = Material(course_id=course_id or course.id, title=title)
        db_session.add(material)
        db_session.commit()
        return material

    return _make


@pytest.fixture()
def material(make_material: Callable[..., Material]) -> Material:
    return make_material("Week 1 slides")


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    session_factory: sessionmaker[Session],
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _get_rating_engine_override() -> RatingEngine:
        return RatingEngine(session_factory, sleep=_no_sleep)

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_rating_engine] = _get_rating_engine_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_rating_engine, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
