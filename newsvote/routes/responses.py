"""
Conversions from service results to response models.
"""

from typing import List

from newsvote.aggregation import VoteStats
from newsvote.database import Vote
from newsvote.models import (
    BatchItemResult, NewsStatus, RecalculationResponse, VoteChangeResponse,
    VoteResponse, VoteStatsResponse
)
from newsvote import vote_service


def vote_to_response(vote: Vote) -> VoteResponse:
    return VoteResponse.model_validate(vote)


def stats_to_response(news_id: int, stats: VoteStats, status: NewsStatus) -> VoteStatsResponse:
    return VoteStatsResponse(
        news_id=news_id,
        fake_count=stats.fake_count,
        not_fake_count=stats.not_fake_count,
        total_count=stats.total_count,
        fake_percentage=stats.fake_percentage,
        not_fake_percentage=stats.not_fake_percentage,
        news_status=status,
    )


def recalculation_to_response(
    result: vote_service.RecalculationResult
) -> RecalculationResponse:
    return RecalculationResponse(
        news_id=result.news_id,
        fake_count=result.stats.fake_count,
        not_fake_count=result.stats.not_fake_count,
        total_count=result.stats.total_count,
        previous_status=result.previous_status,
        status=result.status,
        changed=result.changed,
    )


def change_to_response(result: vote_service.VoteChangeResult) -> VoteChangeResponse:
    return VoteChangeResponse(
        vote=vote_to_response(result.vote),
        recalculation=recalculation_to_response(result.recalculation),
    )


def batch_items_to_response(
    items: List[vote_service.BatchItemResult]
) -> List[BatchItemResult]:
    return [
        BatchItemResult(
            news_id=item.news_id,
            success=item.success,
            recalculation=(
                recalculation_to_response(item.recalculation)
                if item.recalculation else None
            ),
            error=item.error,
        )
        for item in items
    ]
