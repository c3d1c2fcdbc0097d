"""
API routes for casting, inspecting and moderating votes.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from newsvote.auth import Principal, get_principal, require_admin
from newsvote.database import get_db
from newsvote.models import (
    BatchInvalidateRequest, BatchInvalidateResponse, InvalidateVoteRequest,
    SubmitVoteRequest, SubmitVoteResponse, VoteChangeResponse, VoteListResponse,
    VoteResponse, VoteStatsResponse, VoteSummaryResponse
)
from newsvote.routes.responses import (
    batch_items_to_response, change_to_response, stats_to_response, vote_to_response
)
from newsvote.vote_service import VoteService


router = APIRouter(prefix="/votes", tags=["Votes"])


# =============================================================================
# Cast / Retract
# =============================================================================


@router.post("", response_model=SubmitVoteResponse, status_code=201)
def submit_vote(
    request: SubmitVoteRequest,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
) -> SubmitVoteResponse:
    """
    Vote Fake or Not Fake on a news item.

    Each user holds at most one valid vote per news item. The news status
    is re-resolved from all valid votes after every submission.
    """
    result = VoteService(db).submit_vote(principal.user_id, request.news_id, request.result)
    return SubmitVoteResponse(
        vote=vote_to_response(result.vote),
        vote_stats=stats_to_response(request.news_id, result.stats, result.status),
        news_status=result.status,
    )


@router.delete("/{vote_id}", response_model=VoteChangeResponse)
def retract_vote(
    vote_id: int,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
) -> VoteChangeResponse:
    """Retract your own vote. The vote is deleted, not invalidated."""
    return change_to_response(VoteService(db).retract_vote(vote_id, principal.user_id))


# =============================================================================
# Read
# =============================================================================


@router.get("/stats/{news_id}", response_model=VoteStatsResponse)
def get_vote_stats(news_id: int, db: Session = Depends(get_db)) -> VoteStatsResponse:
    """Live counts of valid votes for a news item."""
    stats, status = VoteService(db).get_news_stats(news_id)
    return stats_to_response(news_id, stats, status)


@router.get("/user/{news_id}", response_model=Optional[VoteResponse])
def get_my_vote(
    news_id: int,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
) -> Optional[VoteResponse]:
    """The caller's vote on a news item, or null if they have not voted."""
    vote = VoteService(db).get_user_vote(principal.user_id, news_id)
    return vote_to_response(vote) if vote else None


@router.get("/history", response_model=VoteListResponse)
def get_my_vote_history(
    include_invalid: bool = True,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
) -> VoteListResponse:
    votes, pagination = VoteService(db).get_user_vote_history(
        principal.user_id, include_invalid=include_invalid, page=page, page_size=page_size
    )
    return VoteListResponse(items=[vote_to_response(v) for v in votes], pagination=pagination)


# =============================================================================
# Admin
# =============================================================================


@router.get("/news/{news_id}", response_model=VoteListResponse)
def list_votes_for_news(
    news_id: int,
    include_invalid: bool = False,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1),
    _admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
) -> VoteListResponse:
    """All votes on a news item (admin only)."""
    votes, pagination = VoteService(db).list_news_votes(
        news_id, include_invalid=include_invalid, page=page, page_size=page_size
    )
    return VoteListResponse(items=[vote_to_response(v) for v in votes], pagination=pagination)


@router.put("/{vote_id}/invalidate", response_model=VoteChangeResponse)
def invalidate_vote(
    vote_id: int,
    request: Optional[InvalidateVoteRequest] = None,
    _admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
) -> VoteChangeResponse:
    """
    Exclude a vote from aggregation, or restore it with ``{"invalid": false}``
    (admin only).
    """
    request = request or InvalidateVoteRequest()
    return change_to_response(VoteService(db).invalidate_vote(vote_id, request.invalid))


@router.post("/batch-invalidate", response_model=BatchInvalidateResponse)
def batch_invalidate(
    request: BatchInvalidateRequest,
    _admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BatchInvalidateResponse:
    """
    Invalidate many votes; each affected news item is recalculated once
    (admin only).
    """
    result = VoteService(db).batch_invalidate(request.vote_ids, request.invalid)
    return BatchInvalidateResponse(
        updated_count=result.updated_count,
        missing_ids=result.missing_ids,
        conflict_ids=result.conflict_ids,
        results=batch_items_to_response(result.results),
    )


@router.get("/summary", response_model=VoteSummaryResponse)
def get_vote_summary(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    _admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
) -> VoteSummaryResponse:
    """Vote totals over an optional creation-time window (admin only)."""
    return VoteSummaryResponse(**VoteService(db).get_vote_summary(start, end))
