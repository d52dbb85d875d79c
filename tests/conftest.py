"""Test configuration and fixtures."""

from datetime import datetime
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wp_orm.db.base import init_database
from wp_orm.db.models import PostMeta, User
from wp_orm.db.post_models import Post


@pytest.fixture
def engine():
    """Fresh in-memory WordPress schema for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session, None, None]:
    """Get a test database session."""
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(autouse=True)
def clear_shortcodes():
    """Shortcode handlers live on the Post class; drop them between tests."""
    yield
    Post.shortcodes.clear()


@pytest.fixture
def make_post(db_session):
    """Create and commit a post, returning its ID."""

    def _make_post(
        title: str = "Hello world",
        post_type: str = "post",
        status: str = "publish",
        slug: str = None,
        meta: dict = None,
        taxonomies: list = None,
        **columns,
    ) -> int:
        post = Post(
            post_title=title,
            post_type=post_type,
            post_status=status,
            post_name=slug or title.lower().replace(" ", "-"),
            **columns,
        )
        for key, value in (meta or {}).items():
            post.meta.append(PostMeta(meta_key=key, meta_value=value))
        post.taxonomies.extend(taxonomies or [])
        db_session.add(post)
        db_session.commit()
        return post.ID

    return _make_post


@pytest.fixture
def author(db_session) -> User:
    user = User(
        user_login="jdoe",
        user_nicename="jdoe",
        user_email="jdoe@example.com",
        display_name="J. Doe",
        user_registered=datetime(2024, 1, 1, 9, 0),
    )
    db_session.add(user)
    db_session.commit()
    return user
