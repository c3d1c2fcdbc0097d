"""
Tests for vote orchestration: submit, invalidate, retract, recalculate, batch.
"""
from datetime import datetime, timedelta, timezone, UTC

import pytest
from sqlalchemy import inspect

from newsvote.config import Settings
from newsvote.database import NewsItem, Vote
from newsvote.errors import DuplicateVote, InvalidArgument, NotFound, PermissionDenied
from newsvote.models import NewsStatus, VoteResult
from newsvote.vote_service import VoteService


class TestSubmitVote:

    def test_submit_updates_counts_and_status(self, db, service, make_news):
        news = make_news()
        result = service.submit_vote("alice", news.id, VoteResult.FAKE)

        assert result.vote.id is not None
        assert result.stats.fake_count == 1
        assert result.status == NewsStatus.PENDING

        db.refresh(news)
        assert news.fake_vote_count == 1
        assert news.not_fake_vote_count == 0

    def test_fifth_vote_resolves_status(self, db, service, make_news, cast_votes):
        news = make_news()
        cast_votes(news.id, fake=3, not_fake=1)
        db.refresh(news)
        assert news.status == NewsStatus.PENDING.value

        result = service.submit_vote("last", news.id, VoteResult.NOT_FAKE)

        assert result.status == NewsStatus.FAKE
        db.refresh(news)
        assert news.status == NewsStatus.FAKE.value
        assert news.status_updated_at is not None

    def test_accepts_plain_string_result(self, service, make_news):
        news = make_news()
        result = service.submit_vote("alice", news.id, "Not Fake")
        assert result.vote.result == VoteResult.NOT_FAKE.value

    def test_unknown_news_creates_nothing(self, db, service):
        with pytest.raises(NotFound):
            service.submit_vote("alice", 12345, VoteResult.FAKE)
        assert db.query(Vote).count() == 0

    def test_invalid_result_rejected(self, db, service, make_news):
        news = make_news()
        with pytest.raises(InvalidArgument):
            service.submit_vote("alice", news.id, "Maybe")
        assert db.query(Vote).count() == 0

    def test_second_vote_rejected_and_first_unchanged(self, db, service, make_news):
        news = make_news()
        first = service.submit_vote("alice", news.id, VoteResult.FAKE).vote
        first_id, first_created = first.id, first.created_at

        with pytest.raises(DuplicateVote):
            service.submit_vote("alice", news.id, VoteResult.NOT_FAKE)

        db.expire_all()
        votes = db.query(Vote).all()
        assert len(votes) == 1
        assert votes[0].id == first_id
        assert votes[0].result == VoteResult.FAKE.value
        assert votes[0].created_at == first_created
        assert db.get(NewsItem, news.id).fake_vote_count == 1


class TestInvalidateVote:

    def test_invalidation_excludes_vote_and_reresolves(self, db, service, make_news, cast_votes):
        news = make_news()
        votes = cast_votes(news.id, fake=3, not_fake=2)
        db.refresh(news)
        assert news.status == NewsStatus.FAKE.value

        result = service.invalidate_vote(votes[0].id)

        assert result.vote.is_invalid is True
        assert result.recalculation.stats.fake_count == 2
        assert result.recalculation.previous_status == NewsStatus.FAKE
        assert result.recalculation.status == NewsStatus.PENDING
        assert result.recalculation.changed

    def test_restore_vote(self, db, service, make_news, cast_votes):
        news = make_news()
        votes = cast_votes(news.id, fake=3, not_fake=2)
        service.invalidate_vote(votes[0].id)

        result = service.invalidate_vote(votes[0].id, invalid=False)

        assert result.vote.is_invalid is False
        assert result.recalculation.status == NewsStatus.FAKE

    def test_missing_vote(self, service):
        with pytest.raises(NotFound):
            service.invalidate_vote(404)

    def test_user_can_vote_again_after_invalidation(self, service, make_news):
        news = make_news()
        old = service.submit_vote("alice", news.id, VoteResult.FAKE).vote
        service.invalidate_vote(old.id)

        result = service.submit_vote("alice", news.id, VoteResult.NOT_FAKE)

        assert result.stats.fake_count == 0
        assert result.stats.not_fake_count == 1

    def test_revote_blocked_when_disabled(self, db, make_news):
        service = VoteService(db, settings=Settings(allow_revote_after_invalidation=False))
        news = make_news()
        old = service.submit_vote("alice", news.id, VoteResult.FAKE).vote
        service.invalidate_vote(old.id)

        with pytest.raises(DuplicateVote):
            service.submit_vote("alice", news.id, VoteResult.NOT_FAKE)


class TestRetractVote:

    def test_retract_deletes_and_recalculates(self, db, service, make_news, cast_votes):
        news = make_news()
        vote = cast_votes(news.id, fake=3, not_fake=2)[0]
        vote_id, user_id = vote.id, vote.user_id

        result = service.retract_vote(vote_id, user_id)

        assert result.vote.id == vote_id
        assert result.vote.result == VoteResult.FAKE.value
        assert inspect(result.vote).transient
        assert result.recalculation.stats.total_count == 4
        assert result.recalculation.status == NewsStatus.PENDING
        assert db.get(Vote, vote_id) is None

    def test_cannot_retract_someone_elses_vote(self, service, make_news):
        news = make_news()
        vote = service.submit_vote("alice", news.id, VoteResult.FAKE).vote
        with pytest.raises(PermissionDenied):
            service.retract_vote(vote.id, "mallory")

    def test_user_may_vote_again_after_retraction(self, service, make_news):
        news = make_news()
        vote = service.submit_vote("alice", news.id, VoteResult.FAKE).vote
        service.retract_vote(vote.id, "alice")

        assert service.submit_vote("alice", news.id, VoteResult.NOT_FAKE).stats.total_count == 1


class TestRecalculateNews:

    def test_recalculation_is_idempotent(self, service, make_news, cast_votes):
        news = make_news()
        cast_votes(news.id, fake=2, not_fake=4)

        first = service.recalculate_news(news.id)
        second = service.recalculate_news(news.id)

        assert first.stats == second.stats
        assert first.status == second.status == NewsStatus.NOT_FAKE
        assert not second.changed

    def test_recalculation_repairs_stale_cache(self, db, service, make_news, cast_votes):
        news = make_news()
        cast_votes(news.id, fake=5)
        news.fake_vote_count = 99
        news.status = NewsStatus.NOT_FAKE.value
        db.commit()

        result = service.recalculate_news(news.id)

        assert result.previous_status == NewsStatus.NOT_FAKE
        assert result.status == NewsStatus.FAKE
        db.refresh(news)
        assert news.fake_vote_count == 5

    def test_overrides_apply_to_this_call_only(self, db, service, make_news, cast_votes):
        news = make_news()
        cast_votes(news.id, fake=2, not_fake=1)

        overridden = service.recalculate_news(news.id, min_votes=3)
        assert overridden.status == NewsStatus.FAKE

        assert service.thresholds.min_votes == 5
        assert service.recalculate_news(news.id).status == NewsStatus.PENDING

    def test_invalid_override_rejected(self, service, make_news):
        news = make_news()
        with pytest.raises(InvalidArgument):
            service.recalculate_news(news.id, fake_threshold=0.2)

    def test_missing_news(self, service):
        with pytest.raises(NotFound):
            service.recalculate_news(404)


class TestBatchInvalidate:

    def test_recalculates_each_news_once(self, db, service, make_news, cast_votes, monkeypatch):
        first, second = make_news(), make_news(title="Second headline")
        first_votes = cast_votes(first.id, fake=3, not_fake=2, prefix="a")
        second_votes = cast_votes(second.id, fake=1, not_fake=4, prefix="b")

        calls = []
        original = service._recalculate

        def counting(news, thresholds):
            calls.append(news.id)
            return original(news, thresholds)

        monkeypatch.setattr(service, "_recalculate", counting)

        result = service.batch_invalidate(
            [first_votes[0].id, first_votes[1].id, second_votes[0].id, 9999]
        )

        assert result.updated_count == 3
        assert result.missing_ids == [9999]
        assert sorted(calls) == sorted([first.id, second.id])
        by_news = {item.news_id: item for item in result.results}
        assert by_news[first.id].recalculation.status == NewsStatus.PENDING
        assert by_news[second.id].recalculation.stats.not_fake_count == 4

    def test_failure_on_one_news_does_not_abort_batch(self, db, service, make_news, cast_votes):
        first_id, second_id = make_news().id, make_news(title="Second headline").id
        first_vote_id = cast_votes(first_id, fake=1, prefix="a")[0].id
        second_vote_id = cast_votes(second_id, fake=5, prefix="b")[0].id

        # Orphan the first item's votes
        db.delete(db.get(NewsItem, first_id))
        db.commit()

        result = service.batch_invalidate([first_vote_id, second_vote_id])

        by_news = {item.news_id: item for item in result.results}
        assert by_news[first_id].success is False
        assert "not found" in by_news[first_id].error.lower()
        assert by_news[second_id].success is True
        assert by_news[second_id].recalculation.stats.fake_count == 4

    def test_empty_batch_rejected(self, service):
        with pytest.raises(InvalidArgument):
            service.batch_invalidate([])

    def test_all_unknown_ids(self, service):
        with pytest.raises(NotFound):
            service.batch_invalidate([1, 2, 3])

    def test_restore_collision_is_reported_as_conflict(self, service, make_news):
        news = make_news()
        old_id = service.submit_vote("alice", news.id, VoteResult.FAKE).vote.id
        service.invalidate_vote(old_id)
        service.submit_vote("alice", news.id, VoteResult.NOT_FAKE)

        with pytest.raises(DuplicateVote):
            service.batch_invalidate([old_id], invalid=False)

    def test_mixed_batch_lists_conflicts_and_missing(self, service, make_news):
        news = make_news()
        old_id = service.submit_vote("alice", news.id, VoteResult.FAKE).vote.id
        bob_id = service.submit_vote("bob", news.id, VoteResult.FAKE).vote.id
        service.batch_invalidate([old_id, bob_id])
        service.submit_vote("alice", news.id, VoteResult.NOT_FAKE)

        result = service.batch_invalidate([old_id, bob_id, 9999], invalid=False)

        assert result.updated_count == 1
        assert result.missing_ids == [9999]
        assert result.conflict_ids == [old_id]
        assert result.results[0].recalculation.stats.total_count == 2


class TestQueries:

    def test_delete_user_votes_recalculates_touched_news(self, db, service, make_news, cast_votes):
        first, second = make_news(), make_news(title="Second headline")
        cast_votes(first.id, fake=3, not_fake=2)
        service.submit_vote("u-f0", second.id, VoteResult.FAKE)

        deleted, results = service.delete_user_votes("u-f0")

        assert deleted == 2
        assert {r.news_id for r in results} == {first.id, second.id}
        db.refresh(first)
        assert first.fake_vote_count == 2
        assert first.status == NewsStatus.PENDING.value

    def test_news_stats(self, service, make_news, cast_votes):
        news = make_news()
        cast_votes(news.id, fake=1, not_fake=3)

        stats, status = service.get_news_stats(news.id)

        assert stats.fake_percentage == 25.0
        assert stats.not_fake_percentage == 75.0
        assert status == NewsStatus.PENDING

    def test_history_and_news_listing(self, service, make_news, cast_votes):
        news = make_news()
        votes = cast_votes(news.id, fake=2, not_fake=1)
        service.invalidate_vote(votes[0].id)

        valid, pagination = service.list_news_votes(news.id)
        assert len(valid) == 2
        assert pagination.total == 2

        everything, pagination = service.list_news_votes(news.id, include_invalid=True, page_size=2)
        assert len(everything) == 2
        assert pagination.total == 3
        assert pagination.page_count == 2
        assert pagination.has_next

        history, _ = service.get_user_vote_history(votes[0].user_id)
        assert [v.id for v in history] == [votes[0].id]

    def test_vote_summary(self, service, make_news, cast_votes):
        first, second = make_news(), make_news(title="Second headline")
        votes = cast_votes(first.id, fake=2, not_fake=1)
        cast_votes(second.id, not_fake=1, prefix="b")
        service.invalidate_vote(votes[0].id)

        summary = service.get_vote_summary()

        assert summary["total_votes"] == 4
        assert summary["valid_votes"] == 3
        assert summary["invalid_votes"] == 1
        assert summary["fake_votes"] == 1
        assert summary["not_fake_votes"] == 2
        assert summary["news_count"] == 2

    def test_vote_summary_window(self, service, make_news, cast_votes):
        news = make_news()
        cast_votes(news.id, fake=1)

        future = datetime.now(UTC) + timedelta(days=1)
        assert service.get_vote_summary(start=future)["total_votes"] == 0
        with pytest.raises(InvalidArgument):
            service.get_vote_summary(start=future, end=future - timedelta(days=2))

    def test_vote_summary_accepts_mixed_naive_and_aware_bounds(self, service, make_news, cast_votes):
        news = make_news()
        cast_votes(news.id, fake=1, not_fake=1)

        start = datetime.now(UTC) - timedelta(days=1)
        end = (datetime.now(UTC) + timedelta(days=1)).replace(tzinfo=None)

        summary = service.get_vote_summary(start=start, end=end)

        assert summary["total_votes"] == 2
        assert summary["start"] == start
        assert summary["end"].tzinfo is not None
        assert summary["end"].replace(tzinfo=None) == end

    def test_vote_summary_compares_mixed_bounds_in_utc(self, service):
        aware = datetime(2024, 6, 1, 12, 0, tzinfo=timezone(timedelta(hours=5)))
        # 07:00 UTC naive is the same instant as 12:00+05:00
        naive = datetime(2024, 6, 1, 7, 0)

        assert service.get_vote_summary(start=naive, end=aware)["total_votes"] == 0
        with pytest.raises(InvalidArgument):
            service.get_vote_summary(start=aware, end=naive - timedelta(minutes=1))
