"""
Vote aggregation and status resolution.

``VoteAggregator`` counts the valid votes of a news item and
``resolve_status`` maps those counts onto a news status with a two-sided
threshold:

    total < min_votes                   -> Pending
    fake / total >= fake_threshold      -> Fake
    fake / total <= not_fake_threshold  -> Not Fake
    otherwise                           -> Pending

Only the counts matter, never the order in which votes arrived, so
recomputing over unchanged votes always yields the same status.
"""

from dataclasses import dataclass
from fractions import Fraction
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from newsvote.config import Settings, get_settings
from newsvote.database import Vote
from newsvote.errors import InvalidArgument
from newsvote.models import NewsStatus, VoteResult


@dataclass(frozen=True)
class VoteStats:
    """Valid-vote counts for one news item."""

    fake_count: int = 0
    not_fake_count: int = 0

    @property
    def total_count(self) -> int:
        return self.fake_count + self.not_fake_count

    @property
    def fake_ratio(self) -> Fraction:
        if self.total_count == 0:
            return Fraction(0)
        return Fraction(self.fake_count, self.total_count)

    @property
    def fake_percentage(self) -> float:
        if self.total_count == 0:
            return 0.0
        return round(self.fake_count * 100 / self.total_count, 1)

    @property
    def not_fake_percentage(self) -> float:
        if self.total_count == 0:
            return 0.0
        return round(self.not_fake_count * 100 / self.total_count, 1)


@dataclass(frozen=True)
class Thresholds:
    """Parameters of the status rule."""

    min_votes: int = 5
    fake_threshold: float = 0.6
    not_fake_threshold: float = 0.4

    def __post_init__(self):
        if isinstance(self.min_votes, bool) or not isinstance(self.min_votes, int):
            raise InvalidArgument("min_votes must be an integer")
        if self.min_votes < 1:
            raise InvalidArgument("min_votes must be at least 1")
        for name in ("fake_threshold", "not_fake_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise InvalidArgument(f"{name} must be between 0 and 1")
        if self.not_fake_threshold > self.fake_threshold:
            raise InvalidArgument("not_fake_threshold cannot exceed fake_threshold")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides) -> "Thresholds":
        """Build thresholds from settings, replacing any non-None override."""
        settings = settings or get_settings()
        values = {
            "min_votes": settings.min_votes,
            "fake_threshold": settings.fake_threshold,
            "not_fake_threshold": settings.not_fake_threshold,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def resolve_status(stats: VoteStats, thresholds: Thresholds = Thresholds()) -> NewsStatus:
    """Map aggregate vote counts onto a news status."""
    if stats.total_count < thresholds.min_votes:
        return NewsStatus.PENDING

    # Exact comparison: 3/5 must equal a 0.6 threshold
    fake_ratio = stats.fake_ratio
    if fake_ratio >= Fraction(str(thresholds.fake_threshold)):
        return NewsStatus.FAKE
    if fake_ratio <= Fraction(str(thresholds.not_fake_threshold)):
        return NewsStatus.NOT_FAKE
    return NewsStatus.PENDING


class VoteAggregator:
    """Computes valid-vote counts straight from stored votes."""

    def __init__(self, db: Session):
        self.db = db

    def compute_stats(self, news_id: int) -> VoteStats:
        rows = self.db.execute(
            select(Vote.result, func.count(Vote.id))
            .where(Vote.news_id == news_id, Vote.is_invalid.is_(False))
            .group_by(Vote.result)
        ).all()
        counts = {result: count for result, count in rows}
        return VoteStats(
            fake_count=counts.get(VoteResult.FAKE.value, 0),
            not_fake_count=counts.get(VoteResult.NOT_FAKE.value, 0),
        )
