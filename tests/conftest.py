from __future__ import annotations

import logging
from collections.abc import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from tests.fixtures.models import Base, Comment, Company, Post, Tag, User, Video


@pytest.fixture(autouse=True, scope="session")
def configure_logging() -> None:
    """Configure logging levels to suppress verbose database output."""
    logging.getLogger().setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine with the test schema created."""
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine: Engine) -> Generator[Session, None, None]:
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture()
def seeded_session(session: Session) -> Session:
    """Session over a small blog dataset.

    - Acme employs Ada; Globex employs Grace; Linus has no company.
    - Ada wrote "Hello World" (published, 120 views, tagged python) and "abc" (draft, 5 views).
    - Grace wrote "ABC" (draft, 5 views, tagged sqlalchemy).
    - Linus wrote "Kernel notes" (published, 40 views, tagged python and sqlalchemy).
    - Comments: two on "Hello World", one on "ABC", two on videos, one on a video without matches.
    """
    acme = Company(id=1, name="Acme", country="US")
    globex = Company(id=2, name="Globex", country="DE")
    ada = User(id=1, name="Ada", email="ada@acme.test", company=acme)
    grace = User(id=2, name="Grace", email="grace@globex.test", company=globex)
    linus = User(id=3, name="Linus", email="linus@example.test")
    python = Tag(id=1, name="python")
    sqlalchemy = Tag(id=2, name="sqlalchemy")
    posts = [
        Post(id=1, title="Hello World", body="First post", views=120, status="published", author=ada, tags=[python]),
        Post(id=2, title="abc", body=None, views=5, status="draft", author=ada, tags=[]),
        Post(id=3, title="ABC", body=None, views=5, status="draft", author=grace, tags=[sqlalchemy]),
        Post(
            id=4, title="Kernel notes", body="Patches", views=40, status="published", author=linus, tags=[python, sqlalchemy]
        ),
    ]
    videos = [
        Video(id=1, url="https://videos.test/intro", duration=90),
        Video(id=2, url="https://videos.test/deep-dive", duration=3600),
    ]
    comments = [
        Comment(id=1, body="Nice intro", commentable_type="post", commentable_id=1),
        Comment(id=2, body="Thanks", commentable_type="post", commentable_id=1),
        Comment(id=3, body="Upper case", commentable_type="post", commentable_id=3),
        Comment(id=4, body="Great video", commentable_type="video", commentable_id=1),
        Comment(id=5, body="Too long", commentable_type="video", commentable_id=2),
        Comment(id=6, body="Orphan", commentable_type="podcast", commentable_id=1),
    ]
    session.add_all([acme, globex, ada, grace, linus, python, sqlalchemy, *posts, *videos, *comments])
    session.commit()
    return session
