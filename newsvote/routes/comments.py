"""
API routes for comment threads on news items.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from newsvote.auth import Principal, get_optional_principal, get_principal, require_admin
from newsvote.comment_service import CommentService
from newsvote.database import get_db
from newsvote.errors import PermissionDenied
from newsvote.models import (
    CommentListResponse, CommentResponse, CreateCommentRequest, UpdateCommentRequest
)


router = APIRouter(prefix="/comments", tags=["Comments"])


@router.post("", response_model=CommentResponse, status_code=201)
def create_comment(
    request: CreateCommentRequest,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
) -> CommentResponse:
    comment = CommentService(db).create_comment(
        principal.user_id, request.news_id, request.content
    )
    return CommentResponse.model_validate(comment)


@router.get("/news/{news_id}", response_model=CommentListResponse)
def list_news_comments(
    news_id: int,
    include_deleted: bool = False,
    page: int = Query(default=1, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1),
    principal: Optional[Principal] = Depends(get_optional_principal),
    db: Session = Depends(get_db)
) -> CommentListResponse:
    """
    List comments on a news item, newest first.

    Deleted comments are only listed for administrators.
    """
    if include_deleted and not (principal and principal.is_admin):
        raise PermissionDenied("Insufficient permissions, administrator role required")

    comments, pagination = CommentService(db).list_news_comments(
        news_id, include_deleted=include_deleted, page=page, page_size=page_size
    )
    return CommentListResponse(
        items=[CommentResponse.model_validate(c) for c in comments],
        pagination=pagination,
    )


@router.get("/mine", response_model=CommentListResponse)
def list_my_comments(
    page: int = Query(default=1, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
) -> CommentListResponse:
    comments, pagination = CommentService(db).list_user_comments(
        principal.user_id, page=page, page_size=page_size
    )
    return CommentListResponse(
        items=[CommentResponse.model_validate(c) for c in comments],
        pagination=pagination,
    )


@router.get("/{comment_id}", response_model=CommentResponse)
def get_comment(comment_id: int, db: Session = Depends(get_db)) -> CommentResponse:
    return CommentResponse.model_validate(CommentService(db).get_comment(comment_id))


@router.put("/{comment_id}", response_model=CommentResponse)
def update_comment(
    comment_id: int,
    request: UpdateCommentRequest,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
) -> CommentResponse:
    """Edit your own comment."""
    comment = CommentService(db).update_comment(
        comment_id, principal.user_id, request.content
    )
    return CommentResponse.model_validate(comment)


@router.delete("/{comment_id}", response_model=CommentResponse)
def delete_comment(
    comment_id: int,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db)
) -> CommentResponse:
    """Hide a comment; authors may hide their own, administrators any."""
    comment = CommentService(db).delete_comment(comment_id, principal)
    return CommentResponse.model_validate(comment)


@router.post("/{comment_id}/restore", response_model=CommentResponse)
def restore_comment(
    comment_id: int,
    _admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
) -> CommentResponse:
    return CommentResponse.model_validate(CommentService(db).restore_comment(comment_id))
