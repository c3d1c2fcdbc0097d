"""
Comment threads on news items.

Comments are soft-deleted: the author or an administrator can hide a
comment, and only an administrator can bring it back.
"""

import logging
from datetime import datetime, UTC
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from newsvote.auth import Principal
from newsvote.config import get_settings
from newsvote.database import Comment, NewsItem
from newsvote.errors import InvalidArgument, NotFound, PermissionDenied
from newsvote.models import Pagination


logger = logging.getLogger(__name__)


class CommentService:
    """Create, edit, hide and list comments."""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    def create_comment(self, user_id: str, news_id: int, content: str) -> Comment:
        if self.db.get(NewsItem, news_id) is None:
            raise NotFound("News not found")

        comment = Comment(user_id=user_id, news_id=news_id, content=content, is_deleted=False)
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        logger.info(f"Comment {comment.id} by {user_id} on news {news_id}")
        return comment

    def get_comment(self, comment_id: int) -> Comment:
        comment = self.db.get(Comment, comment_id)
        if comment is None:
            raise NotFound("Comment not found")
        return comment

    def update_comment(self, comment_id: int, user_id: str, content: str) -> Comment:
        """Edit a comment. Only its author may, and only while it is visible."""
        comment = self.get_comment(comment_id)
        if comment.user_id != user_id:
            raise PermissionDenied("Only the author can modify this comment")
        if comment.is_deleted:
            raise InvalidArgument("Deleted comments cannot be modified")

        comment.content = content
        self.db.commit()
        self.db.refresh(comment)
        return comment

    def delete_comment(self, comment_id: int, principal: Principal) -> Comment:
        """Hide a comment; allowed for its author and for administrators."""
        comment = self.get_comment(comment_id)
        if comment.user_id != principal.user_id and not principal.is_admin:
            raise PermissionDenied("You can only delete your own comments")
        if comment.is_deleted:
            raise InvalidArgument("Comment is already deleted")

        comment.is_deleted = True
        comment.deleted_by = principal.user_id
        comment.deleted_at = datetime.now(UTC)
        self.db.commit()
        self.db.refresh(comment)
        logger.info(f"Comment {comment_id} deleted by {principal.user_id}")
        return comment

    def restore_comment(self, comment_id: int) -> Comment:
        comment = self.get_comment(comment_id)
        if not comment.is_deleted:
            raise InvalidArgument("Comment is not deleted")

        comment.is_deleted = False
        comment.deleted_by = None
        comment.deleted_at = None
        self.db.commit()
        self.db.refresh(comment)
        logger.info(f"Comment {comment_id} restored")
        return comment

    def list_news_comments(
        self,
        news_id: int,
        include_deleted: bool = False,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Tuple[List[Comment], Pagination]:
        """Comments on a news item, newest first."""
        if self.db.get(NewsItem, news_id) is None:
            raise NotFound("News not found")
        return self._list(Comment.news_id == news_id, include_deleted, page, page_size)

    def list_user_comments(
        self,
        user_id: str,
        include_deleted: bool = False,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> Tuple[List[Comment], Pagination]:
        return self._list(Comment.user_id == user_id, include_deleted, page, page_size)

    def _list(self, condition, include_deleted, page, page_size):
        page_size = page_size or self.settings.default_page_size
        if page < 1:
            raise InvalidArgument("page must be at least 1")
        if not 1 <= page_size <= self.settings.max_page_size:
            raise InvalidArgument(
                f"page_size must be between 1 and {self.settings.max_page_size}"
            )

        conditions = [condition]
        if not include_deleted:
            conditions.append(Comment.is_deleted.is_(False))

        total = self.db.execute(
            select(func.count(Comment.id)).where(*conditions)
        ).scalar() or 0
        comments = self.db.execute(
            select(Comment)
            .where(*conditions)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()
        return list(comments), Pagination.build(total, page, page_size)
