# tests/conftest.py
import os

# Keep the module-level engine off the filesystem
os.environ.setdefault("NV_DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from newsvote.config import Settings
from newsvote.database import Base, NewsItem, configure_sqlite, get_db
from newsvote.models import VoteResult
from newsvote.vote_service import VoteService


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def settings():
    return Settings(
        min_votes=5,
        fake_threshold=0.6,
        not_fake_threshold=0.4,
        allow_revote_after_invalidation=True,
    )


@pytest.fixture()
def service(db, settings):
    return VoteService(db, settings=settings)


@pytest.fixture()
def make_news(db):
    def _make(title="Moon landing was staged", author_id="author-1"):
        news = NewsItem(
            title=title,
            content="Some content that is long enough.",
            author_id=author_id,
        )
        db.add(news)
        db.commit()
        db.refresh(news)
        return news
    return _make


@pytest.fixture()
def cast_votes(service):
    """Cast ``fake`` Fake votes and ``not_fake`` Not Fake votes from distinct users."""
    def _cast(news_id, fake=0, not_fake=0, prefix="u"):
        votes = []
        for i in range(fake):
            votes.append(service.submit_vote(f"{prefix}-f{i}", news_id, VoteResult.FAKE).vote)
        for i in range(not_fake):
            votes.append(service.submit_vote(f"{prefix}-n{i}", news_id, VoteResult.NOT_FAKE).vote)
        return votes
    return _cast


@pytest.fixture()
def app(session_factory):
    from newsvote.app import app as fastapi_app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
