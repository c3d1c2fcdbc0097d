"""
News item submission, lookup, editing and removal.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from newsvote.config import get_settings
from newsvote.database import Comment, NewsItem, Vote
from newsvote.errors import InvalidArgument, NotFound, PermissionDenied
from newsvote.models import NewsStatus, Pagination


logger = logging.getLogger(__name__)


class NewsService:
    """Create and query news items."""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    def create_news(self, author_id: str, title: str, content: str) -> NewsItem:
        news = NewsItem(
            author_id=author_id,
            title=title,
            content=content,
            status=NewsStatus.PENDING.value,
            fake_vote_count=0,
            not_fake_vote_count=0,
        )
        self.db.add(news)
        self.db.commit()
        self.db.refresh(news)
        logger.info(f"News {news.id} submitted by {author_id}")
        return news

    def get_news(self, news_id: int) -> NewsItem:
        news = self.db.get(NewsItem, news_id)
        if news is None:
            raise NotFound("News not found")
        return news

    def update_news(
        self,
        news_id: int,
        user_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None
    ) -> NewsItem:
        """
        Edit the title and/or content of a news item.

        Only the author may edit; votes and status are left as they are.
        """
        news = self.get_news(news_id)
        if news.author_id != user_id:
            raise PermissionDenied("Only the author can modify this news")

        if title is not None:
            news.title = title
        if content is not None:
            news.content = content
        self.db.commit()
        self.db.refresh(news)
        logger.info(f"News {news_id} updated by {user_id}")
        return news

    def delete_news(self, news_id: int) -> Tuple[int, int]:
        """
        Delete a news item with all of its votes and comments.

        Returns the number of deleted votes and comments.
        """
        news = self.get_news(news_id)
        deleted_votes = self.db.execute(
            delete(Vote).where(Vote.news_id == news_id)
        ).rowcount
        deleted_comments = self.db.execute(
            delete(Comment).where(Comment.news_id == news_id)
        ).rowcount
        self.db.delete(news)
        self.db.commit()

        logger.info(
            f"News {news_id} deleted with {deleted_votes} votes "
            f"and {deleted_comments} comments"
        )
        return deleted_votes, deleted_comments

    def list_news(
        self,
        status: Optional[NewsStatus] = None,
        author_id: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Tuple[List[NewsItem], Pagination]:
        """
        List news items, newest first.

        Args:
            status: Only items currently in this status
            author_id: Only items submitted by this user
            search: Case-insensitive substring of title or content
            page: 1-based page number
            page_size: Items per page (default from settings)
        """
        page_size = page_size or self.settings.default_page_size
        if page < 1:
            raise InvalidArgument("page must be at least 1")
        if not 1 <= page_size <= self.settings.max_page_size:
            raise InvalidArgument(
                f"page_size must be between 1 and {self.settings.max_page_size}"
            )

        conditions = []
        if status is not None:
            conditions.append(NewsItem.status == NewsStatus(status).value)
        if author_id:
            conditions.append(NewsItem.author_id == author_id)
        if search:
            pattern = f"%{_escape_like(search)}%"
            conditions.append(or_(
                NewsItem.title.ilike(pattern, escape="\\"),
                NewsItem.content.ilike(pattern, escape="\\"),
            ))

        total = self.db.execute(
            select(func.count(NewsItem.id)).where(*conditions)
        ).scalar() or 0

        items = self.db.execute(
            select(NewsItem)
            .where(*conditions)
            .order_by(NewsItem.created_at.desc(), NewsItem.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()

        return list(items), Pagination.build(total, page, page_size)


def _escape_like(value: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
