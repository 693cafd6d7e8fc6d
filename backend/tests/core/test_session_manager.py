"""
Tests for SessionManager: session state, start/resume, answers, finalize,
history and the expiry sweep, over in-memory collaborators.
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest

from app.core.attempts import (
    AnswerPayload,
    AttemptAccessDenied,
    AttemptNotActive,
    AttemptNotFound,
    EffectiveStatus,
    FinalizeTrigger,
    FixedClock,
    InvalidAnswer,
    NotEnrolled,
    QuotaExhausted,
    StoreConflict,
    WindowClosed,
    WindowState,
)
from app.core.attempts import errors
from app.models.models import AttemptStatus

from helpers import (
    HOUR,
    NOW,
    OTHER_STUDENT_ID,
    STUDENT_ID,
    flexible_definition,
    live_definition,
)


def mcq(option, write_seq=1):
    return AnswerPayload(
        selected_option_id=option, time_spent_delta_seconds=10, write_seq=write_seq
    )


class TestWorkedExample:
    """Flexible test, one attempt of 1800s, abandoned and swept."""

    def test_abandoned_attempt_is_swept_and_quota_exhausted(self, make_manager):
        test = flexible_definition(attempts_allowed=1, allowance=1800)
        manager = make_manager(test)
        t0 = NOW

        handle = manager.start_or_resume(test.id, STUDENT_ID, now=t0)
        attempt = handle.attempt
        assert not handle.resumed
        assert attempt.end_time == t0 + 1800
        assert handle.remaining_seconds == 1800

        manager.record_answer(attempt.id, "q1", mcq("a"), now=t0 + 60)
        manager.record_answer(attempt.id, "q2", mcq("b"), now=t0 + 120)
        manager.record_answer(
            attempt.id, "q3", AnswerPayload(content="two words", write_seq=1), now=t0 + 300
        )

        report = manager.sweep_expired(now=t0 + 1801)
        assert report.examined == 1
        assert report.finalized == 1
        assert report.finalized_ids == [attempt.id]

        stored = manager.store.get_attempt(attempt.id)
        assert stored.status == AttemptStatus.AUTO_SUBMITTED
        assert stored.submitted_at == t0 + 1801

        with pytest.raises(QuotaExhausted):
            manager.start_or_resume(test.id, STUDENT_ID, now=t0 + 1802)


class TestGetSessionState:
    def test_fresh_pair_can_start(self, make_manager):
        test = flexible_definition(attempts_allowed=2)
        manager = make_manager(test)

        state = manager.get_session_state(test.id, STUDENT_ID, now=NOW)

        assert state.window_state == WindowState.OPEN
        assert state.attempts_consumed == 0
        assert state.attempts_allowed == 2
        assert state.active_attempt_id is None
        assert state.remaining_seconds is None
        assert state.can_start_new_attempt is True

    def test_reports_active_attempt_and_remaining_time(self, make_manager):
        test = flexible_definition(allowance=1800)
        manager = make_manager(test)
        handle = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        state = manager.get_session_state(test.id, STUDENT_ID, now=NOW + 300)

        assert state.active_attempt_id == handle.attempt.id
        assert state.remaining_seconds == 1500
        assert state.can_start_new_attempt is False

    def test_is_a_pure_read(self, make_manager):
        """An expired attempt is reported as consumed but not finalized."""
        test = flexible_definition(allowance=60)
        manager = make_manager(test)
        handle = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        state = manager.get_session_state(test.id, STUDENT_ID, now=NOW + 61)

        assert state.attempts_consumed == 1
        assert state.active_attempt_id is None
        stored = manager.store.get_attempt(handle.attempt.id)
        assert stored.status == AttemptStatus.IN_PROGRESS

    def test_closed_window_cannot_start(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)

        state = manager.get_session_state(test.id, STUDENT_ID, now=NOW + 2 * HOUR)

        assert state.window_state == WindowState.CLOSED
        assert state.can_start_new_attempt is False

    def test_unknown_test(self, make_manager):
        manager = make_manager()
        with pytest.raises(errors.TestNotFound):
            manager.get_session_state("missing", STUDENT_ID, now=NOW)

    def test_not_enrolled_before_any_session_logic(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        manager.store = MagicMock(wraps=manager.store)

        with pytest.raises(NotEnrolled):
            manager.get_session_state(test.id, "stranger", now=NOW)
        manager.store.list_attempts.assert_not_called()

    def test_uses_clock_when_now_omitted(self, make_manager):
        clock = FixedClock(NOW + 42)
        test = flexible_definition()
        manager = make_manager(test, clock=clock)

        assert manager.get_session_state(test.id, STUDENT_ID).now == NOW + 42


class TestStartOrResume:
    def test_window_not_yet_open(self, make_manager):
        test = flexible_definition(opens_at=NOW + 10, closes_at=NOW + HOUR)
        manager = make_manager(test)

        with pytest.raises(WindowClosed) as exc_info:
            manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        assert exc_info.value.window_state == WindowState.NOT_YET_OPEN
        assert exc_info.value.retryable is False

    def test_window_closed(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)

        with pytest.raises(WindowClosed):
            manager.start_or_resume(test.id, STUDENT_ID, now=NOW + HOUR + 1)

    def test_last_second_start_is_admitted(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)

        handle = manager.start_or_resume(test.id, STUDENT_ID, now=NOW + HOUR)

        assert not handle.resumed

    def test_closed_window_wins_over_resume(self, make_manager):
        """An attempt still running after closes_at is not resumable through start."""
        test = flexible_definition(allowance=2 * HOUR)
        manager = make_manager(test)
        manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        with pytest.raises(WindowClosed):
            manager.start_or_resume(test.id, STUDENT_ID, now=NOW + HOUR + 1)

    def test_resume_returns_same_attempt(self, make_manager):
        test = flexible_definition(allowance=1800)
        manager = make_manager(test)
        first = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        second = manager.start_or_resume(test.id, STUDENT_ID, now=NOW + 100)

        assert second.resumed is True
        assert second.attempt.id == first.attempt.id
        assert second.attempt.end_time == first.attempt.end_time
        assert second.remaining_seconds == 1700
        assert second.server_time == NOW + 100

    def test_resume_does_not_extend_deadline(self, make_manager):
        test = flexible_definition(allowance=600)
        manager = make_manager(test)
        first = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)
        manager.record_answer(first.attempt.id, "q1", mcq("a"), now=NOW + 500)

        again = manager.start_or_resume(test.id, STUDENT_ID, now=NOW + 550)

        assert again.attempt.end_time == NOW + 600
        assert again.remaining_seconds == 50

    def test_pairs_are_independent(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)

        mine = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)
        theirs = manager.start_or_resume(test.id, OTHER_STUDENT_ID, now=NOW)

        assert mine.attempt.id != theirs.attempt.id
        assert theirs.attempt.attempt_number == 1

    def test_flexible_quota_after_two_completed(self, make_manager):
        test = flexible_definition(attempts_allowed=2)
        manager = make_manager(test)

        for offset in (0, 100):
            handle = manager.start_or_resume(test.id, STUDENT_ID, now=NOW + offset)
            manager.finalize(
                handle.attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + offset + 50
            )

        with pytest.raises(QuotaExhausted) as exc_info:
            manager.start_or_resume(test.id, STUDENT_ID, now=NOW + 300)
        assert exc_info.value.retryable is False

    def test_one_completed_one_abandoned_resumes_abandoned(self, make_manager):
        test = flexible_definition(attempts_allowed=2, allowance=1800)
        manager = make_manager(test)
        first = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)
        manager.finalize(first.attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 10)
        abandoned = manager.start_or_resume(test.id, STUDENT_ID, now=NOW + 20)

        handle = manager.start_or_resume(test.id, STUDENT_ID, now=NOW + 900)

        assert handle.resumed is True
        assert handle.attempt.id == abandoned.attempt.id
        assert handle.attempt.attempt_number == 2

    def test_expired_attempt_is_finalized_before_next_start(self, make_manager):
        test = flexible_definition(attempts_allowed=2, allowance=60)
        manager = make_manager(test)
        first = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        second = manager.start_or_resume(test.id, STUDENT_ID, now=NOW + 61)

        assert second.attempt.id != first.attempt.id
        assert second.attempt.attempt_number == 2
        expired = manager.store.get_attempt(first.attempt.id)
        assert expired.status == AttemptStatus.AUTO_SUBMITTED
        assert expired.submitted_at == NOW + 61

    def test_expired_attempts_count_against_quota(self, make_manager):
        test = flexible_definition(attempts_allowed=1, allowance=60)
        manager = make_manager(test)
        manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        with pytest.raises(QuotaExhausted):
            manager.start_or_resume(test.id, STUDENT_ID, now=NOW + 61)

    def test_live_end_time_capped_at_test_end(self, make_manager):
        """A student joining late does not get extra time."""
        test = live_definition(allowance=3600, join_time=NOW - 300, end_time=NOW + 2400)
        manager = make_manager(test)

        handle = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        assert handle.attempt.end_time == NOW + 2400
        assert handle.remaining_seconds == 2400
        assert handle.attempt.total_time_allowed_seconds == 3600

    def test_live_full_allowance_when_it_fits(self, make_manager):
        test = live_definition(allowance=600, join_time=NOW, end_time=NOW + 3600)
        manager = make_manager(test)

        handle = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        assert handle.attempt.end_time == NOW + 600

    def test_live_allows_one_attempt(self, make_manager):
        test = live_definition(allowance=600, join_time=NOW, end_time=NOW + 3600)
        manager = make_manager(test)
        handle = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)
        manager.finalize(handle.attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 60)

        with pytest.raises(QuotaExhausted):
            manager.start_or_resume(test.id, STUDENT_ID, now=NOW + 120)

    def test_test_edits_do_not_move_running_deadline(self, make_manager):
        test = flexible_definition(allowance=1800)
        manager = make_manager(test)
        handle = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        manager.catalog.add(flexible_definition(allowance=60))

        state = manager.get_session_state(test.id, STUDENT_ID, now=NOW + 600)
        assert state.active_attempt_id == handle.attempt.id
        assert state.remaining_seconds == 1200


class TestConcurrentStart:
    """Concurrent start requests for one pair converge on a single attempt."""

    def test_ten_concurrent_starts_create_one_attempt(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        barrier = threading.Barrier(10)

        def start():
            barrier.wait()
            return manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        with ThreadPoolExecutor(max_workers=10) as pool:
            handles = list(pool.map(lambda _: start(), range(10)))

        attempt_ids = {h.attempt.id for h in handles}
        assert len(attempt_ids) == 1
        assert len(manager.store.list_attempts(test.id, STUDENT_ID)) == 1
        assert sum(1 for h in handles if not h.resumed) == 1

    def test_lost_race_resumes_winner(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        store = manager.store
        real_create = store.create_in_progress

        def create_after_rival(**kwargs):
            # A concurrent request inserts first; this insert then conflicts
            real_create(**kwargs)
            return real_create(**kwargs)

        with patch.object(store, "create_in_progress", side_effect=create_after_rival):
            handle = manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        assert handle.resumed is True
        assert len(store.list_attempts(test.id, STUDENT_ID)) == 1

    def test_lost_race_without_active_winner_raises_conflict(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)

        with patch.object(
            manager.store, "create_in_progress", side_effect=StoreConflict()
        ):
            with pytest.raises(StoreConflict) as exc_info:
                manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        assert exc_info.value.retryable is True


class TestRecordAnswer:
    def test_records_answer_without_changing_status(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        answer = manager.record_answer(attempt.id, "q1", mcq("a"), now=NOW + 5)

        assert answer.selected_option_id == "a"
        assert answer.time_spent_seconds == 10
        stored = manager.store.get_attempt(attempt.id)
        assert stored.status == AttemptStatus.IN_PROGRESS
        assert stored.last_active_at == NOW + 5

    def test_answer_after_deadline_is_rejected(self, make_manager):
        test = flexible_definition(allowance=60)
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        with pytest.raises(AttemptNotActive) as exc_info:
            manager.record_answer(attempt.id, "q1", mcq("a"), now=NOW + 61)
        assert exc_info.value.retryable is True

    def test_answer_at_deadline_is_accepted(self, make_manager):
        test = flexible_definition(allowance=60)
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        answer = manager.record_answer(attempt.id, "q1", mcq("a"), now=NOW + 60)
        assert answer.updated_at == NOW + 60

    def test_answer_after_submit_is_rejected(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt
        manager.finalize(attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 10)

        with pytest.raises(AttemptNotActive):
            manager.record_answer(attempt.id, "q1", mcq("b"), now=NOW + 11)

    def test_unknown_question(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        with pytest.raises(InvalidAnswer):
            manager.record_answer(attempt.id, "nope", mcq("a"), now=NOW)

    @pytest.mark.parametrize("submit", [True, False])
    def test_inactive_attempt_reported_before_unknown_question(
        self, make_manager, submit
    ):
        test = flexible_definition(allowance=60)
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt
        if submit:
            manager.finalize(attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 10)

        with pytest.raises(AttemptNotActive):
            manager.record_answer(attempt.id, "nope", mcq("a"), now=NOW + 61)

    def test_review_mark_round_trip(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        manager.record_answer(
            attempt.id,
            "q1",
            AnswerPayload(is_marked_for_review=True, write_seq=1),
            now=NOW + 5,
        )
        manager.record_answer(attempt.id, "q1", mcq("a", write_seq=2), now=NOW + 6)

        [answer] = manager.list_answers(attempt.id, student_id=STUDENT_ID)
        assert answer.is_marked_for_review is True
        assert answer.selected_option_id == "a"

    def test_unknown_attempt(self, make_manager):
        manager = make_manager(flexible_definition())
        with pytest.raises(AttemptNotFound):
            manager.record_answer(999, "q1", mcq("a"), now=NOW)

    def test_other_students_attempt(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        with pytest.raises(AttemptAccessDenied):
            manager.record_answer(
                attempt.id, "q1", mcq("a"), now=NOW, student_id=OTHER_STUDENT_ID
            )


class TestFinalize:
    def test_user_submit_before_deadline(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        result = manager.finalize(attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 100)

        assert result.already_finalized is False
        assert result.attempt.status == AttemptStatus.SUBMITTED
        assert result.attempt.submitted_at == NOW + 100

    def test_user_submit_at_deadline_is_submitted(self, make_manager):
        test = flexible_definition(allowance=60)
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        result = manager.finalize(attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 60)

        assert result.attempt.status == AttemptStatus.SUBMITTED

    def test_late_user_submit_is_auto_submitted(self, make_manager):
        test = flexible_definition(allowance=60)
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        result = manager.finalize(attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 61)

        assert result.attempt.status == AttemptStatus.AUTO_SUBMITTED

    def test_auto_expire_is_always_auto_submitted(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        result = manager.finalize(attempt.id, FinalizeTrigger.AUTO_EXPIRE, now=NOW + 5)

        assert result.attempt.status == AttemptStatus.AUTO_SUBMITTED

    @pytest.mark.parametrize(
        "first,second",
        [
            (FinalizeTrigger.USER_SUBMIT, FinalizeTrigger.AUTO_EXPIRE),
            (FinalizeTrigger.AUTO_EXPIRE, FinalizeTrigger.USER_SUBMIT),
            (FinalizeTrigger.USER_SUBMIT, FinalizeTrigger.USER_SUBMIT),
        ],
    )
    def test_idempotent_across_triggers(self, make_manager, first, second):
        test = flexible_definition()
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        once = manager.finalize(attempt.id, first, now=NOW + 100)
        twice = manager.finalize(attempt.id, second, now=NOW + 5000)

        assert twice.already_finalized is True
        assert twice.scored is False
        assert twice.attempt.status == once.attempt.status
        assert twice.attempt.submitted_at == NOW + 100
        assert twice.attempt.score == once.attempt.score

    def test_scores_once(self, make_manager):
        scorer = MagicMock(wraps=make_manager().scorer)
        test = flexible_definition()
        manager = make_manager(test, scorer=scorer)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        manager.finalize(attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 1)
        manager.finalize(attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 2)

        assert scorer.score.call_count == 1

    def test_score_written_back(self, make_manager):
        test = flexible_definition(passing_score=50)
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt
        manager.record_answer(attempt.id, "q1", mcq("a"), now=NOW + 1)
        manager.record_answer(attempt.id, "q2", mcq("x"), now=NOW + 2)

        result = manager.finalize(attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 3)

        assert result.scored is True
        assert result.attempt.score == 1.0
        assert result.attempt.max_score == 7.0
        # The essay keeps the result pending
        assert result.attempt.pass_status == "pending"

    def test_scoring_failure_keeps_attempt_finalized(self, make_manager):
        scorer = MagicMock()
        scorer.score.side_effect = RuntimeError("grader down")
        test = flexible_definition()
        manager = make_manager(test, scorer=scorer)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        result = manager.finalize(attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 1)

        assert result.scored is False
        assert result.attempt.status == AttemptStatus.SUBMITTED
        assert result.attempt.score is None

    def test_lost_finalize_race_reports_existing_result(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt
        store = manager.store
        real_mark = store.mark_finalized

        def rival_then_mine(attempt_id, status, submitted_at):
            real_mark(attempt_id, AttemptStatus.AUTO_SUBMITTED, NOW + 1)
            return real_mark(attempt_id, status, submitted_at)

        with patch.object(store, "mark_finalized", side_effect=rival_then_mine):
            result = manager.finalize(
                attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 2
            )

        assert result.already_finalized is True
        assert result.attempt.status == AttemptStatus.AUTO_SUBMITTED
        assert result.attempt.submitted_at == NOW + 1

    def test_other_student_cannot_submit(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        with pytest.raises(AttemptAccessDenied):
            manager.finalize(
                attempt.id,
                FinalizeTrigger.USER_SUBMIT,
                now=NOW,
                student_id=OTHER_STUDENT_ID,
            )


class TestAttemptSummaries:
    def test_history_reports_best_and_last(self, make_manager):
        test = flexible_definition(attempts_allowed=3, allowance=600)
        manager = make_manager(test)

        first = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt
        manager.record_answer(first.id, "q1", mcq("a"), now=NOW + 1)
        manager.record_answer(first.id, "q2", mcq("c"), now=NOW + 2)
        manager.finalize(first.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 3)

        second = manager.start_or_resume(test.id, STUDENT_ID, now=NOW + 10).attempt
        manager.finalize(second.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 11)

        third = manager.start_or_resume(test.id, STUDENT_ID, now=NOW + 20).attempt

        history = manager.list_attempt_summaries(test.id, STUDENT_ID, now=NOW + 30)

        assert history.attempt_count == 3
        assert history.best_score == 2.0
        assert history.best_percentage == round(2.0 / 7.0 * 100, 2)
        assert history.last_status == EffectiveStatus.ACTIVE
        assert [row.attempt.id for row in history.rows] == [first.id, second.id, third.id]
        assert history.rows[-1].remaining_seconds == 590

    def test_history_classifies_expired_without_writing(self, make_manager):
        test = flexible_definition(allowance=60)
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt

        history = manager.list_attempt_summaries(test.id, STUDENT_ID, now=NOW + 61)

        assert history.last_status == EffectiveStatus.EXPIRED
        assert history.rows[0].remaining_seconds == 0
        stored = manager.store.get_attempt(attempt.id)
        assert stored.status == AttemptStatus.IN_PROGRESS

    def test_empty_history(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)

        history = manager.list_attempt_summaries(test.id, STUDENT_ID, now=NOW)

        assert history.attempt_count == 0
        assert history.best_score is None
        assert history.last_status is None
        assert history.rows == []

    def test_test_attempts_lists_every_student(self, make_manager):
        test = flexible_definition()
        manager = make_manager(test)
        manager.start_or_resume(test.id, STUDENT_ID, now=NOW)
        manager.start_or_resume(test.id, OTHER_STUDENT_ID, now=NOW)

        rows = manager.list_test_attempts(test.id, now=NOW)

        assert {row.attempt.student_id for row in rows} == {STUDENT_ID, OTHER_STUDENT_ID}


class TestSweepExpired:
    def test_only_expired_attempts_are_finalized(self, make_manager):
        test = flexible_definition(allowance=60)
        long_test = flexible_definition(test_id="flex-long", allowance=1800)
        manager = make_manager(test, long_test)
        short = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt
        running = manager.start_or_resume(long_test.id, STUDENT_ID, now=NOW).attempt

        report = manager.sweep_expired(now=NOW + 61)

        assert report.finalized_ids == [short.id]
        assert manager.store.get_attempt(running.id).status == AttemptStatus.IN_PROGRESS

    def test_sweep_is_idempotent(self, make_manager):
        test = flexible_definition(allowance=60)
        manager = make_manager(test)
        manager.start_or_resume(test.id, STUDENT_ID, now=NOW)

        manager.sweep_expired(now=NOW + 61)
        second = manager.sweep_expired(now=NOW + 62)

        assert second.examined == 0
        assert second.finalized == 0

    def test_sweep_respects_limit(self, make_manager):
        test = flexible_definition(allowance=60)
        manager = make_manager(test)
        manager.start_or_resume(test.id, STUDENT_ID, now=NOW)
        manager.start_or_resume(test.id, OTHER_STUDENT_ID, now=NOW)

        report = manager.sweep_expired(now=NOW + 61, limit=1)

        assert report.examined == 1

    def test_failure_on_one_attempt_does_not_stop_the_pass(self, make_manager):
        test = flexible_definition(allowance=60)
        manager = make_manager(test)
        a = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt
        b = manager.start_or_resume(test.id, OTHER_STUDENT_ID, now=NOW).attempt
        store = manager.store
        real_mark = store.mark_finalized

        def fail_first(attempt_id, status, submitted_at):
            if attempt_id == a.id:
                raise StoreConflict()
            return real_mark(attempt_id, status, submitted_at)

        with patch.object(store, "mark_finalized", side_effect=fail_first):
            report = manager.sweep_expired(now=NOW + 61)

        assert report.examined == 2
        assert report.failed == 1
        assert report.finalized_ids == [b.id]

    def test_sweep_racing_user_submit(self, make_manager):
        """A submit that lands first is kept; the sweep counts it as done."""
        test = flexible_definition(allowance=60)
        manager = make_manager(test)
        attempt = manager.start_or_resume(test.id, STUDENT_ID, now=NOW).attempt
        store = manager.store
        real_list = store.list_expired_in_progress

        def submit_during_listing(now, limit):
            candidates = real_list(now, limit)
            manager.finalize(attempt.id, FinalizeTrigger.USER_SUBMIT, now=NOW + 30)
            return candidates

        with patch.object(
            store, "list_expired_in_progress", side_effect=submit_during_listing
        ):
            report = manager.sweep_expired(now=NOW + 61)

        assert report.already_completed == 1
        assert report.finalized == 0
        assert store.get_attempt(attempt.id).status == AttemptStatus.SUBMITTED
