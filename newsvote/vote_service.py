"""
Vote orchestration: submission, invalidation, retraction and recalculation.

Every operation that changes votes ends by re-running the aggregator over
the stored votes and resolving the news status from scratch; cached counts
on ``NewsItem`` are never adjusted incrementally.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, make_transient

from newsvote.aggregation import Thresholds, VoteAggregator, VoteStats, resolve_status
from newsvote.config import Settings, get_settings
from newsvote.database import NewsItem, Vote
from newsvote.errors import (
    DuplicateVote, InvalidArgument, NotFound, PermissionDenied, VoteServiceError
)
from newsvote.models import NewsStatus, Pagination, VoteResult
from newsvote.vote_store import VoteStore


logger = logging.getLogger(__name__)


@dataclass
class RecalculationResult:
    news_id: int
    stats: VoteStats
    previous_status: NewsStatus
    status: NewsStatus

    @property
    def changed(self) -> bool:
        return self.previous_status != self.status


@dataclass
class SubmitVoteResult:
    vote: Vote
    stats: VoteStats
    status: NewsStatus


@dataclass
class VoteChangeResult:
    vote: Vote
    recalculation: RecalculationResult


@dataclass
class BatchItemResult:
    news_id: int
    recalculation: Optional[RecalculationResult] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    updated_count: int
    missing_ids: List[int] = field(default_factory=list)
    conflict_ids: List[int] = field(default_factory=list)
    results: List[BatchItemResult] = field(default_factory=list)


class VoteService:
    """
    Coordinates the vote store, aggregator and status resolver.

    Collaborators are injected so tests can swap any of them; by default
    they are built around the given session and the cached settings.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        store: Optional[VoteStore] = None,
        aggregator: Optional[VoteAggregator] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.store = store or VoteStore(
            db, allow_revote_after_invalidation=self.settings.allow_revote_after_invalidation
        )
        self.aggregator = aggregator or VoteAggregator(db)
        self.thresholds = Thresholds.from_settings(self.settings)

    # =========================================================================
    # Vote events
    # =========================================================================

    def submit_vote(self, user_id: str, news_id: int, result) -> SubmitVoteResult:
        """
        Record a user's vote and refresh the news status.

        Raises:
            NotFound: the news item does not exist
            InvalidArgument: ``result`` is not a legal vote result
            DuplicateVote: the user already holds a vote for this news
        """
        news = self._get_news(news_id)

        try:
            result = VoteResult(result)
        except ValueError:
            raise InvalidArgument(f"Invalid vote result: {result!r}")

        vote = self.store.create(user_id, news_id, result)
        recalculation = self._recalculate(news, self.thresholds)
        self.db.commit()
        self.db.refresh(vote)

        logger.info(
            f"Vote {vote.id} ({result.value}) by {user_id} on news {news_id}; "
            f"status {recalculation.status.value}"
        )
        return SubmitVoteResult(
            vote=vote, stats=recalculation.stats, status=recalculation.status
        )

    def invalidate_vote(self, vote_id: int, invalid: bool = True) -> VoteChangeResult:
        """Mark a vote invalid (or valid again) and recalculate its news item."""
        vote = self.store.set_invalid(vote_id, invalid)
        news = self._get_news(vote.news_id)
        recalculation = self._recalculate(news, self.thresholds)
        self.db.commit()
        self.db.refresh(vote)

        logger.info(
            f"Vote {vote_id} marked {'invalid' if invalid else 'valid'}; "
            f"news {news.id} status {recalculation.status.value}"
        )
        return VoteChangeResult(vote=vote, recalculation=recalculation)

    def retract_vote(self, vote_id: int, user_id: str) -> VoteChangeResult:
        """Delete the caller's own vote and recalculate its news item."""
        vote = self.store.get(vote_id)
        if vote.user_id != user_id:
            raise PermissionDenied("Only the voter can retract this vote")

        self.store.delete(vote_id)
        # Keep the loaded values readable once the row is gone
        make_transient(vote)
        recalculation = self._recalculate(self._get_news(vote.news_id), self.thresholds)
        self.db.commit()

        logger.info(f"Vote {vote_id} retracted by {user_id}")
        return VoteChangeResult(vote=vote, recalculation=recalculation)

    def recalculate_news(
        self,
        news_id: int,
        min_votes: Optional[int] = None,
        fake_threshold: Optional[float] = None,
        not_fake_threshold: Optional[float] = None
    ) -> RecalculationResult:
        """
        Force aggregation and status resolution for one news item.

        Threshold overrides apply to this call only.
        """
        thresholds = Thresholds.from_settings(
            self.settings,
            min_votes=min_votes,
            fake_threshold=fake_threshold,
            not_fake_threshold=not_fake_threshold,
        )
        news = self._get_news(news_id)
        recalculation = self._recalculate(news, thresholds)
        self.db.commit()
        return recalculation

    def batch_invalidate(self, vote_ids: Sequence[int], invalid: bool = True) -> BatchResult:
        """
        Invalidate many votes, then recalculate each touched news item once.

        A failure recalculating one news item is reported in its result
        entry and does not abort the rest of the batch.
        """
        if not vote_ids:
            raise InvalidArgument("vote_ids must not be empty")

        updated, missing, conflicts = self.store.set_invalid_many(vote_ids, invalid)
        if not updated:
            self.db.rollback()
            if conflicts:
                raise DuplicateVote(
                    "Every vote to restore collides with a newer valid vote of the same user"
                )
            raise NotFound("No votes found to update")
        self.db.commit()

        news_ids = list(dict.fromkeys(v.news_id for v in updated))
        results = self._recalculate_each(news_ids)

        logger.info(
            f"Batch {'invalidated' if invalid else 'restored'} {len(updated)} votes "
            f"across {len(news_ids)} news items "
            f"({len(missing)} missing, {len(conflicts)} conflicting)"
        )
        return BatchResult(
            updated_count=len(updated),
            missing_ids=missing,
            conflict_ids=conflicts,
            results=results,
        )

    def delete_user_votes(self, user_id: str) -> Tuple[int, List[BatchItemResult]]:
        """Remove every vote cast by a user whose account is being deleted."""
        deleted, news_ids = self.store.delete_by_user(user_id)
        self.db.commit()
        results = self._recalculate_each(sorted(news_ids))
        logger.info(f"Deleted {deleted} votes of user {user_id}")
        return deleted, results

    # =========================================================================
    # Queries
    # =========================================================================

    def get_user_vote(self, user_id: str, news_id: int) -> Optional[Vote]:
        return self.store.find(user_id, news_id)

    def get_news_stats(self, news_id: int) -> Tuple[VoteStats, NewsStatus]:
        """Live valid-vote counts plus the currently stored status."""
        news = self._get_news(news_id)
        return self.aggregator.compute_stats(news_id), NewsStatus(news.status)

    def list_news_votes(
        self,
        news_id: int,
        include_invalid: bool = False,
        page: int = 1,
        page_size: int = 50
    ) -> Tuple[List[Vote], Pagination]:
        self._get_news(news_id)
        self._check_page(page, page_size)
        total = self.store.count_by_news(news_id, include_invalid)
        votes = self.store.list_by_news(
            news_id, include_invalid, offset=(page - 1) * page_size, limit=page_size
        )
        return votes, Pagination.build(total, page, page_size)

    def get_user_vote_history(
        self,
        user_id: str,
        include_invalid: bool = True,
        page: int = 1,
        page_size: int = 10
    ) -> Tuple[List[Vote], Pagination]:
        self._check_page(page, page_size)
        total = self.store.count_by_user(user_id, include_invalid)
        votes = self.store.list_by_user(
            user_id, include_invalid, offset=(page - 1) * page_size, limit=page_size
        )
        return votes, Pagination.build(total, page, page_size)

    def get_vote_summary(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Dict:
        """
        Totals of all votes created within ``[start, end]``.

        Naive bounds are read as UTC; the returned bounds are timezone-aware.
        """
        start = _as_utc(start)
        end = _as_utc(end)
        if start and end and start > end:
            raise InvalidArgument("start must not be after end")

        # Stored timestamps are naive UTC
        votes = self.store.list_created_between(_naive(start), _naive(end))
        summary = {
            "total_votes": 0,
            "valid_votes": 0,
            "invalid_votes": 0,
            "fake_votes": 0,
            "not_fake_votes": 0,
            "news_count": 0,
            "start": start,
            "end": end,
        }
        if not votes:
            return summary

        votes_df = self._votes_to_dataframe(votes)
        valid_df = votes_df[~votes_df['isInvalid']]
        result_counts = valid_df['result'].value_counts()

        summary.update({
            "total_votes": len(votes_df),
            "valid_votes": len(valid_df),
            "invalid_votes": int(votes_df['isInvalid'].sum()),
            "fake_votes": int(result_counts.get(VoteResult.FAKE.value, 0)),
            "not_fake_votes": int(result_counts.get(VoteResult.NOT_FAKE.value, 0)),
            "news_count": int(votes_df['newsId'].nunique()),
        })
        return summary

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_news(self, news_id: int) -> NewsItem:
        news = self.db.get(NewsItem, news_id)
        if news is None:
            raise NotFound("News not found")
        return news

    def _recalculate(self, news: NewsItem, thresholds: Thresholds) -> RecalculationResult:
        """Refresh cached counts and status on ``news`` without committing."""
        stats = self.aggregator.compute_stats(news.id)
        previous = NewsStatus(news.status)
        status = resolve_status(stats, thresholds)

        news.fake_vote_count = stats.fake_count
        news.not_fake_vote_count = stats.not_fake_count
        news.status = status.value
        if status != previous:
            news.status_updated_at = datetime.now(UTC)
            logger.info(f"News {news.id} status {previous.value} -> {status.value}")

        return RecalculationResult(
            news_id=news.id, stats=stats, previous_status=previous, status=status
        )

    def _recalculate_each(self, news_ids: Sequence[int]) -> List[BatchItemResult]:
        results = []
        for news_id in news_ids:
            try:
                news = self._get_news(news_id)
                recalculation = self._recalculate(news, self.thresholds)
                self.db.commit()
                results.append(BatchItemResult(news_id=news_id, recalculation=recalculation))
            except (VoteServiceError, SQLAlchemyError) as e:
                self.db.rollback()
                logger.exception(f"Recalculation failed for news {news_id}")
                results.append(BatchItemResult(news_id=news_id, error=str(e)))
        return results

    def _check_page(self, page: int, page_size: int):
        if page < 1:
            raise InvalidArgument("page must be at least 1")
        if not 1 <= page_size <= self.settings.max_page_size:
            raise InvalidArgument(
                f"page_size must be between 1 and {self.settings.max_page_size}"
            )

    def _votes_to_dataframe(self, votes: List[Vote]) -> pd.DataFrame:
        return pd.DataFrame([
            {
                'voteId': v.id,
                'newsId': v.news_id,
                'userId': v.user_id,
                'result': v.result,
                'isInvalid': bool(v.is_invalid),
            }
            for v in votes
        ])


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    return value.replace(tzinfo=None) if value is not None else None
