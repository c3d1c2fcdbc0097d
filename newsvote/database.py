"""
Database models and session management for the News Vote service.

Uses SQLAlchemy with SQLite for the standalone service.
Can be configured for PostgreSQL in production.
"""

from datetime import datetime, UTC
from typing import Optional, List

from sqlalchemy import (
    Integer, String, Text, DateTime, Boolean, ForeignKey, Index,
    create_engine, event, text
)
from sqlalchemy.orm import (
    DeclarativeBase, relationship, sessionmaker, Mapped, mapped_column
)

from newsvote.config import get_settings
from newsvote.models import NewsStatus


# =============================================================================
# Database Setup
# =============================================================================


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def get_engine():
    """Create database engine."""
    settings = get_settings()
    engine = create_engine(
        settings.database_url,
        connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {},
        echo=settings.debug
    )
    if engine.dialect.name == "sqlite":
        configure_sqlite(engine)
    return engine


def configure_sqlite(engine):
    """
    Hand transaction control from pysqlite to SQLAlchemy.

    pysqlite defers BEGIN until the first write, so a SAVEPOINT issued
    earlier opens its own transaction and RELEASE commits it.
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = get_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)


def _utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Database Models
# =============================================================================


class NewsItem(Base):
    """
    A news item submitted for community review.

    The vote counts are a cache of the aggregator's output over valid
    votes; they are overwritten on every recalculation.
    """

    __tablename__ = "news"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=NewsStatus.PENDING.value,
        index=True,
        nullable=False
    )

    # Cached aggregation results
    fake_vote_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    not_fake_vote_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
    status_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    votes: Mapped[List["Vote"]] = relationship(
        "Vote", back_populates="news", passive_deletes=True
    )
    comments: Mapped[List["Comment"]] = relationship(
        "Comment", back_populates="news", passive_deletes=True
    )


class Vote(Base):
    """
    A single user's Fake / Not Fake judgment on a news item.

    Invalidation is a reversible admin flag that excludes the vote from
    aggregation; retraction and account removal delete the row.
    """

    __tablename__ = "votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    news_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("news.id", ondelete="CASCADE"), index=True, nullable=False
    )

    result: Mapped[str] = mapped_column(String(20), nullable=False)
    is_invalid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, index=True, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )

    news: Mapped["NewsItem"] = relationship("NewsItem", back_populates="votes")

    __table_args__ = (
        # One valid vote per user per news item; invalidated votes don't count
        Index(
            'uq_votes_user_news_valid', 'user_id', 'news_id',
            unique=True,
            sqlite_where=text('is_invalid = 0'),
            postgresql_where=text('is_invalid = false'),
        ),
        Index('ix_votes_news_invalid', 'news_id', 'is_invalid'),
    )


class Comment(Base):
    """
    A user's comment on a news item.

    Deletion by the author or an administrator is soft; the row is kept
    with ``is_deleted`` set so an administrator can restore it.
    """

    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    news_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("news.id", ondelete="CASCADE"), index=True, nullable=False
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Soft deletion
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, index=True, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )

    news: Mapped["NewsItem"] = relationship("NewsItem", back_populates="comments")

    __table_args__ = (
        Index('ix_comments_news_deleted', 'news_id', 'is_deleted'),
    )
