"""
API routes for submitting and browsing news items.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from newsvote.auth import Principal, get_principal, require_admin
from newsvote.database import get_db
from newsvote.models import (
    CreateNewsRequest, NewsDeletedResponse, NewsListResponse, NewsResponse, NewsStatus,
    RecalculateRequest, RecalculationResponse, UpdateNewsRequest
)
from newsvote.news_service import NewsService
from newsvote.routes.responses import recalculation_to_response
from newsvote.vote_service import VoteService


router = APIRouter(prefix="/news", tags=["News"])


@router.post("", response_model=NewsResponse, status_code=201)
def create_news(
    request: CreateNewsRequest,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
) -> NewsResponse:
    """Submit a news item; it starts Pending with no votes."""
    news = NewsService(db).create_news(
        author_id=principal.user_id,
        title=request.title,
        content=request.content,
    )
    return NewsResponse.model_validate(news)


@router.get("", response_model=NewsListResponse)
def list_news(
    status: Optional[NewsStatus] = None,
    author_id: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db)
) -> NewsListResponse:
    """List news items, newest first, with optional filters."""
    items, pagination = NewsService(db).list_news(
        status=status,
        author_id=author_id,
        search=search,
        page=page,
        page_size=page_size,
    )
    return NewsListResponse(
        items=[NewsResponse.model_validate(n) for n in items],
        pagination=pagination,
    )


@router.get("/{news_id}", response_model=NewsResponse)
def get_news(news_id: int, db: Session = Depends(get_db)) -> NewsResponse:
    return NewsResponse.model_validate(NewsService(db).get_news(news_id))


@router.put("/{news_id}", response_model=NewsResponse)
def update_news(
    news_id: int,
    request: UpdateNewsRequest,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
) -> NewsResponse:
    """Edit the title or content of your own news item."""
    news = NewsService(db).update_news(
        news_id,
        principal.user_id,
        title=request.title,
        content=request.content,
    )
    return NewsResponse.model_validate(news)


@router.delete("/{news_id}", response_model=NewsDeletedResponse)
def delete_news(
    news_id: int,
    _admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
) -> NewsDeletedResponse:
    """Delete a news item together with its votes and comments (admin only)."""
    deleted_votes, deleted_comments = NewsService(db).delete_news(news_id)
    return NewsDeletedResponse(
        news_id=news_id,
        deleted_votes=deleted_votes,
        deleted_comments=deleted_comments,
    )


@router.post("/{news_id}/recalculate", response_model=RecalculationResponse)
def recalculate_news(
    news_id: int,
    request: Optional[RecalculateRequest] = None,
    _admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
) -> RecalculationResponse:
    """
    Force a recount of valid votes and re-resolve the status (admin only).

    Threshold overrides in the body apply to this call only.
    """
    request = request or RecalculateRequest()
    result = VoteService(db).recalculate_news(
        news_id,
        min_votes=request.min_votes,
        fake_threshold=request.fake_threshold,
        not_fake_threshold=request.not_fake_threshold,
    )
    return recalculation_to_response(result)
