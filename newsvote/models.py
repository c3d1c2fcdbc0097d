"""
Pydantic models for News Vote API requests and responses.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class VoteResult(str, Enum):
    """A single user's judgment on a news item."""
    FAKE = "Fake"
    NOT_FAKE = "Not Fake"


class NewsStatus(str, Enum):
    """Authoritative status of a news item derived from valid votes."""
    PENDING = "Pending"
    FAKE = "Fake"
    NOT_FAKE = "Not Fake"


class UserRole(str, Enum):
    """Roles supplied by the authentication gateway."""
    USER = "User"
    ADMINISTRATOR = "Administrator"


# =============================================================================
# Request Models
# =============================================================================


class CreateNewsRequest(BaseModel):
    """Request to submit a news item for community review."""

    title: str = Field(..., min_length=5, max_length=200)
    content: str = Field(..., min_length=10)

    @field_validator('title', 'content')
    @classmethod
    def strip_whitespace(cls, v):
        """Reject values that are only whitespace."""
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v


class UpdateNewsRequest(BaseModel):
    """Request to edit a news item (author only). Omitted fields are kept."""

    title: Optional[str] = Field(default=None, min_length=5, max_length=200)
    content: Optional[str] = Field(default=None, min_length=10)

    @field_validator('title', 'content')
    @classmethod
    def strip_whitespace(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v


class CreateCommentRequest(BaseModel):
    """Request to comment on a news item."""

    news_id: int
    content: str = Field(..., min_length=1, max_length=1000)

    @field_validator('content')
    @classmethod
    def strip_whitespace(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v


class UpdateCommentRequest(BaseModel):
    """Request to edit a comment (author only)."""

    content: str = Field(..., min_length=1, max_length=1000)

    @field_validator('content')
    @classmethod
    def strip_whitespace(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('must not be blank')
        return v


class SubmitVoteRequest(BaseModel):
    """Request to vote on a news item."""

    news_id: int = Field(..., description="ID of the news item being judged")
    result: VoteResult = Field(..., description="Fake or Not Fake")


class InvalidateVoteRequest(BaseModel):
    """Request to mark a vote invalid, or restore it (admin only)."""

    invalid: bool = Field(default=True)


class BatchInvalidateRequest(BaseModel):
    """Request to invalidate many votes at once (admin only)."""

    vote_ids: List[int] = Field(..., min_length=1, max_length=1000)
    invalid: bool = Field(default=True)


class RecalculateRequest(BaseModel):
    """
    One-off threshold overrides for a forced recalculation.

    Overrides apply to this call only and are never persisted.
    """

    min_votes: Optional[int] = Field(default=None, ge=1)
    fake_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    not_fake_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)


# =============================================================================
# Response Models
# =============================================================================


class NewsResponse(BaseModel):
    """Response containing a single news item."""

    id: int
    title: str
    content: str
    author_id: str
    status: NewsStatus

    fake_vote_count: int = 0
    not_fake_vote_count: int = 0

    created_at: datetime
    updated_at: datetime
    status_updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VoteResponse(BaseModel):
    """Response containing a single vote."""

    id: int
    user_id: str
    news_id: int
    result: VoteResult
    is_invalid: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VoteStatsResponse(BaseModel):
    """Aggregated valid-vote counts for a news item."""

    news_id: int
    fake_count: int
    not_fake_count: int
    total_count: int
    fake_percentage: float
    not_fake_percentage: float
    news_status: NewsStatus


class SubmitVoteResponse(BaseModel):
    """Result of a successful vote submission."""

    vote: VoteResponse
    vote_stats: VoteStatsResponse
    news_status: NewsStatus


class RecalculationResponse(BaseModel):
    """Outcome of re-running aggregation and status resolution."""

    news_id: int
    fake_count: int
    not_fake_count: int
    total_count: int
    previous_status: NewsStatus
    status: NewsStatus
    changed: bool


class VoteChangeResponse(BaseModel):
    """A changed vote together with the recalculation it triggered."""

    vote: VoteResponse
    recalculation: RecalculationResponse


class BatchItemResult(BaseModel):
    """Per-news outcome of a batch operation."""

    news_id: int
    success: bool
    recalculation: Optional[RecalculationResponse] = None
    error: Optional[str] = None


class BatchInvalidateResponse(BaseModel):
    """Result of a batch invalidation."""

    updated_count: int
    missing_ids: List[int] = Field(default_factory=list)
    conflict_ids: List[int] = Field(default_factory=list)
    results: List[BatchItemResult] = Field(default_factory=list)


class UserVotesDeletedResponse(BaseModel):
    """Result of removing every vote cast by a user."""

    user_id: str
    deleted_count: int
    results: List[BatchItemResult] = Field(default_factory=list)


class Pagination(BaseModel):
    """Pagination metadata for list endpoints."""

    total: int
    page: int
    page_size: int
    page_count: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, total: int, page: int, page_size: int) -> "Pagination":
        page_count = (total + page_size - 1) // page_size if page_size else 0
        return cls(
            total=total,
            page=page,
            page_size=page_size,
            page_count=page_count,
            has_next=page < page_count,
            has_prev=page > 1,
        )


class NewsListResponse(BaseModel):
    """Paginated list of news items."""

    items: List[NewsResponse]
    pagination: Pagination


class VoteListResponse(BaseModel):
    """Paginated list of votes."""

    items: List[VoteResponse]
    pagination: Pagination


class VoteSummaryResponse(BaseModel):
    """Vote totals over an optional creation-time window (admin only)."""

    total_votes: int = 0
    valid_votes: int = 0
    invalid_votes: int = 0
    fake_votes: int = 0
    not_fake_votes: int = 0
    news_count: int = 0
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class NewsDeletedResponse(BaseModel):
    """Result of deleting a news item together with its votes and comments."""

    news_id: int
    deleted_votes: int
    deleted_comments: int


class CommentResponse(BaseModel):
    """Response containing a single comment."""

    id: int
    news_id: int
    user_id: str
    content: str
    is_deleted: bool
    deleted_by: Optional[str] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CommentListResponse(BaseModel):
    """Paginated list of comments."""

    items: List[CommentResponse]
    pagination: Pagination


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed request."""

    success: bool = False
    message: str
    statusCode: int
