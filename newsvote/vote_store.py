"""
Persistence of vote records.

The store owns the one-vote-per-user-per-news rule. The partial unique
index on ``votes`` is the final arbiter under concurrent submissions: the
losing insert surfaces here as ``DuplicateVote``.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Set, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from newsvote.database import Vote
from newsvote.errors import DuplicateVote, NotFound
from newsvote.models import VoteResult


logger = logging.getLogger(__name__)


class VoteStore:
    """CRUD operations on ``Vote`` rows bound to one session."""

    def __init__(self, db: Session, allow_revote_after_invalidation: bool = True):
        self.db = db
        self.allow_revote_after_invalidation = allow_revote_after_invalidation

    # -------------------------------------------------------------------------
    # Create / read
    # -------------------------------------------------------------------------

    def create(self, user_id: str, news_id: int, result: VoteResult) -> Vote:
        """
        Create a vote for ``(user_id, news_id)``.

        Raises:
            DuplicateVote: a blocking vote for the pair already exists, or
                a concurrent insert won the unique index.
        """
        existing = self._blocking_vote(user_id, news_id)
        if existing is not None:
            raise DuplicateVote("You have already voted for this news")

        vote = Vote(
            user_id=user_id,
            news_id=news_id,
            result=VoteResult(result).value,
            is_invalid=False,
        )
        self.db.add(vote)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"Concurrent vote rejected for user {user_id} on news {news_id}")
            raise DuplicateVote("You have already voted for this news")
        return vote

    def find(self, user_id: str, news_id: int) -> Optional[Vote]:
        """Return the user's valid vote, else their latest invalidated one."""
        return self.db.execute(
            select(Vote)
            .where(Vote.user_id == user_id, Vote.news_id == news_id)
            .order_by(Vote.is_invalid.asc(), Vote.created_at.desc(), Vote.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def get(self, vote_id: int) -> Vote:
        vote = self.db.get(Vote, vote_id)
        if vote is None:
            raise NotFound("Vote record not found")
        return vote

    def _blocking_vote(self, user_id: str, news_id: int) -> Optional[Vote]:
        query = select(Vote).where(Vote.user_id == user_id, Vote.news_id == news_id)
        if self.allow_revote_after_invalidation:
            query = query.where(Vote.is_invalid.is_(False))
        return self.db.execute(query.limit(1)).scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def set_invalid(self, vote_id: int, invalid: bool) -> Vote:
        """
        Flip the invalid flag of one vote.

        Restoring a vote fails with ``DuplicateVote`` when the user has
        voted again on the same news item since it was invalidated. The
        flip runs in a savepoint, so a failure leaves earlier changes in
        the session untouched.
        """
        vote = self.get(vote_id)
        if vote.is_invalid == invalid:
            return vote

        if not invalid and self._has_other_valid_vote(vote):
            raise DuplicateVote(
                "User already holds a valid vote for this news; cannot restore"
            )

        try:
            with self.db.begin_nested():
                vote.is_invalid = invalid
        except IntegrityError:
            raise DuplicateVote(
                "User already holds a valid vote for this news; cannot restore"
            )
        return vote

    def _has_other_valid_vote(self, vote: Vote) -> bool:
        other = self.db.execute(
            select(Vote.id).where(
                Vote.user_id == vote.user_id,
                Vote.news_id == vote.news_id,
                Vote.is_invalid.is_(False),
                Vote.id != vote.id,
            ).limit(1)
        ).scalar_one_or_none()
        return other is not None

    def set_invalid_many(
        self, vote_ids: Sequence[int], invalid: bool
    ) -> Tuple[List[Vote], List[int], List[int]]:
        """
        Flip the invalid flag on every existing vote in ``vote_ids``.

        Returns the updated votes, the ids that were not found, and the
        ids left unchanged because restoring them would collide with a
        newer valid vote of the same user.
        """
        wanted = list(dict.fromkeys(vote_ids))
        votes = self.db.execute(
            select(Vote).where(Vote.id.in_(wanted))
        ).scalars().all()
        found = {v.id for v in votes}
        missing = [vid for vid in wanted if vid not in found]

        updated, conflicts = [], []
        for vote in votes:
            vote_id = vote.id
            try:
                updated.append(self.set_invalid(vote_id, invalid))
            except DuplicateVote:
                logger.warning(f"Skipping restore of vote {vote_id}: newer valid vote exists")
                conflicts.append(vote_id)
        return updated, missing, conflicts

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    def delete(self, vote_id: int) -> Vote:
        """Physically remove a vote (user retraction)."""
        vote = self.get(vote_id)
        self.db.delete(vote)
        self.db.flush()
        return vote

    def delete_by_user(self, user_id: str) -> Tuple[int, Set[int]]:
        """
        Remove every vote cast by ``user_id``.

        Returns the number of deleted rows and the distinct news ids they
        referenced.
        """
        votes = self.db.execute(
            select(Vote).where(Vote.user_id == user_id)
        ).scalars().all()
        news_ids = {v.news_id for v in votes}
        for vote in votes:
            self.db.delete(vote)
        self.db.flush()
        return len(votes), news_ids

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    def list_by_news(
        self,
        news_id: int,
        include_invalid: bool = False,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> List[Vote]:
        query = select(Vote).where(Vote.news_id == news_id)
        if not include_invalid:
            query = query.where(Vote.is_invalid.is_(False))
        query = query.order_by(Vote.created_at.desc(), Vote.id.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return list(self.db.execute(query).scalars().all())

    def count_by_news(self, news_id: int, include_invalid: bool = False) -> int:
        query = select(func.count(Vote.id)).where(Vote.news_id == news_id)
        if not include_invalid:
            query = query.where(Vote.is_invalid.is_(False))
        return self.db.execute(query).scalar() or 0

    def list_by_user(
        self,
        user_id: str,
        include_invalid: bool = True,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> List[Vote]:
        query = select(Vote).where(Vote.user_id == user_id)
        if not include_invalid:
            query = query.where(Vote.is_invalid.is_(False))
        query = query.order_by(Vote.created_at.desc(), Vote.id.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return list(self.db.execute(query).scalars().all())

    def count_by_user(self, user_id: str, include_invalid: bool = True) -> int:
        query = select(func.count(Vote.id)).where(Vote.user_id == user_id)
        if not include_invalid:
            query = query.where(Vote.is_invalid.is_(False))
        return self.db.execute(query).scalar() or 0

    def list_created_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Vote]:
        query = select(Vote)
        if start is not None:
            query = query.where(Vote.created_at >= start)
        if end is not None:
            query = query.where(Vote.created_at <= end)
        return list(self.db.execute(query).scalars().all())
