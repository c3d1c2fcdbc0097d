"""
API routes for user-level vote maintenance.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from newsvote.auth import Principal, require_admin
from newsvote.database import get_db
from newsvote.models import UserVotesDeletedResponse
from newsvote.routes.responses import batch_items_to_response
from newsvote.vote_service import VoteService


router = APIRouter(prefix="/users", tags=["Users"])


@router.delete("/{user_id}/votes", response_model=UserVotesDeletedResponse)
def delete_user_votes(
    user_id: str,
    _admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db)
) -> UserVotesDeletedResponse:
    """
    Remove every vote of a user whose account is being deleted (admin only).

    News items the user voted on are recalculated without those votes.
    """
    deleted, results = VoteService(db).delete_user_votes(user_id)
    return UserVotesDeletedResponse(
        user_id=user_id,
        deleted_count=deleted,
        results=batch_items_to_response(results),
    )
