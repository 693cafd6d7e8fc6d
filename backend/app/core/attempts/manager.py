"""
SessionManager: orchestrates start, resume, answer, submit and expiry for
timed test attempts.

Decisions are made from server time (the injected Clock) and the attempt's
stored end_time, classified by ``classify`` at every call site. The only
contended write, creating a new attempt, is a conditional create in the
store; everything else is a read, an idempotent upsert or a conditional
update.
"""
import logging
from typing import List, Optional

from app.core.attempts.availability import window_state
from app.core.attempts.classifier import classify, is_consumed, remaining_seconds
from app.core.attempts.clock import Clock, SystemClock
from app.core.attempts.collaborators import EnrollmentDirectory, TestCatalog
from app.core.attempts.domain import (
    AnswerPayload,
    AnswerRecord,
    AttemptHandle,
    AttemptHistory,
    AttemptRecord,
    AttemptSummaryRow,
    EffectiveStatus,
    FinalizeResult,
    FinalizeTrigger,
    SessionState,
    SweepReport,
    TestDefinition,
    WindowState,
)
from app.core.attempts.errors import (
    AttemptAccessDenied,
    AttemptNotActive,
    AttemptNotFound,
    AttemptSessionError,
    InvalidAnswer,
    NotEnrolled,
    QuotaExhausted,
    StoreConflict,
    TestNotFound,
    WindowClosed,
)
from app.core.attempts.journal import AnswerJournal
from app.core.attempts.scoring import Scorer
from app.core.attempts.store import AttemptStore
from app.core.graceful_failure import graceful_failure
from app.models.models import AttemptStatus, TestMode
from app.observability import metrics

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Entry point for attempt session operations.

    Manages:
    - Session state snapshots for polling and dashboards
    - Start or resume with window, quota and single-active-attempt rules
    - Answer writes through the AnswerJournal
    - Idempotent finalize for user submits and expiry
    - Attempt history and the expiry sweep

    Every operation accepts an explicit ``now`` (epoch seconds); when omitted
    the injected clock is read. Request payloads never supply it.
    """

    DEFAULT_SWEEP_LIMIT = 200

    def __init__(
        self,
        catalog: TestCatalog,
        enrollment: EnrollmentDirectory,
        store: AttemptStore,
        scorer: Optional[Scorer] = None,
        clock: Optional[Clock] = None,
    ):
        self.catalog = catalog
        self.enrollment = enrollment
        self.store = store
        self.scorer = scorer
        self.clock = clock or SystemClock()
        self.journal = AnswerJournal(store)

    def _resolve_now(self, now: Optional[int]) -> int:
        return self.clock.now() if now is None else int(now)

    def _load_test(self, test_id: str) -> TestDefinition:
        test = self.catalog.get_test(test_id)
        if test is None:
            raise TestNotFound(f"Test {test_id} not found.")
        return test

    def _authorize(self, test_id: str, student_id: str) -> TestDefinition:
        """Load the test and check enrollment before any session logic runs."""
        test = self._load_test(test_id)
        if not self.enrollment.is_enrolled(student_id, test_id):
            logger.info(
                f"Student {student_id} is not enrolled for test {test_id}",
                extra={"test_id": test_id, "student_id": student_id},
            )
            raise NotEnrolled()
        return test

    def _load_attempt(
        self, attempt_id: int, student_id: Optional[str] = None
    ) -> AttemptRecord:
        attempt = self.store.get_attempt(attempt_id)
        if attempt is None:
            raise AttemptNotFound(f"Attempt {attempt_id} not found.")
        if student_id is not None and attempt.student_id != student_id:
            logger.warning(
                f"Student {student_id} tried to access attempt {attempt_id} "
                f"owned by {attempt.student_id}",
                extra={"attempt_id": attempt_id, "student_id": student_id},
            )
            raise AttemptAccessDenied()
        return attempt

    @staticmethod
    def _state_from_attempts(
        test: TestDefinition,
        student_id: str,
        attempts: List[AttemptRecord],
        now: int,
    ) -> SessionState:
        window = window_state(test, now)
        active = [a for a in attempts if classify(a, now) == EffectiveStatus.ACTIVE]
        consumed = sum(1 for a in attempts if is_consumed(a, now))
        quota = test.max_attempts

        if len(active) > 1:
            # The store's uniqueness guard should make this unreachable.
            logger.error(
                f"{len(active)} active attempts for test {test.id}, "
                f"student {student_id}",
                extra={"test_id": test.id, "student_id": student_id},
            )
        current = active[-1] if active else None

        return SessionState(
            test_id=test.id,
            student_id=student_id,
            now=now,
            window_state=window,
            attempts_consumed=consumed,
            attempts_allowed=quota,
            active_attempt_id=current.id if current else None,
            remaining_seconds=remaining_seconds(current, now) if current else None,
            can_start_new_attempt=(
                window == WindowState.OPEN and current is None and consumed < quota
            ),
        )

    def get_session_state(
        self, test_id: str, student_id: str, now: Optional[int] = None
    ) -> SessionState:
        """
        Snapshot of the (test, student) pair.

        Pure read: classifies every stored attempt at ``now`` and writes
        nothing, so expired attempts are reported as consumed without being
        finalized here.

        Raises:
            TestNotFound: If the test does not exist
            NotEnrolled: If the student is not enrolled for the test
        """
        now = self._resolve_now(now)
        test = self._authorize(test_id, student_id)
        attempts = self.store.list_attempts(test_id, student_id)
        return self._state_from_attempts(test, student_id, attempts, now)

    def start_or_resume(
        self, test_id: str, student_id: str, now: Optional[int] = None
    ) -> AttemptHandle:
        """
        Resume the student's active attempt or start a new one.

        Steps:
        1. Window not open -> WindowClosed
        2. Active attempt exists -> resume it
        3. Attempts consumed >= quota -> QuotaExhausted
        4. Create a new in_progress attempt with end_time = now + allowance,
           capped at the test's end_time for Live tests

        A concurrent request that wins the create race is resumed rather than
        reported, so every caller converges on the same attempt.

        Returns:
            AttemptHandle with remaining_seconds = end_time - now

        Raises:
            TestNotFound, NotEnrolled, WindowClosed, QuotaExhausted,
            StoreConflict (race lost and the winner is no longer active),
            Unavailable
        """
        now = self._resolve_now(now)
        test = self._authorize(test_id, student_id)
        attempts = self.store.list_attempts(test_id, student_id)
        state = self._state_from_attempts(test, student_id, attempts, now)

        if state.window_state != WindowState.OPEN:
            raise WindowClosed(
                f"Test {test_id} is {state.window_state.value.replace('_', ' ')}.",
                window_state=state.window_state,
            )

        if state.active_attempt_id is not None:
            return self._resume(test, attempts, state.active_attempt_id, now)

        if state.attempts_consumed >= state.attempts_allowed:
            raise QuotaExhausted(
                f"All {state.attempts_allowed} allowed attempt(s) used for test "
                f"{test_id}."
            )

        # Expired attempts still stored as in_progress would block the
        # in-progress uniqueness guard; close them out first.
        for attempt in attempts:
            if classify(attempt, now) == EffectiveStatus.EXPIRED:
                self.finalize(attempt.id, FinalizeTrigger.AUTO_EXPIRE, now=now)

        end_time = now + test.total_time_allowed_seconds
        if test.mode == TestMode.LIVE:
            end_time = min(end_time, test.end_time)

        try:
            created = self.store.create_in_progress(
                test_id=test_id,
                student_id=student_id,
                started_at=now,
                total_time_allowed_seconds=test.total_time_allowed_seconds,
                end_time=end_time,
            )
        except StoreConflict:
            metrics.record_store_conflict()
            winner = self._find_active(test_id, student_id, now)
            if winner is None:
                raise
            logger.info(
                f"Concurrent start for test {test_id}, student {student_id} "
                f"converged on attempt {winner.id}",
                extra={
                    "attempt_id": winner.id,
                    "test_id": test_id,
                    "student_id": student_id,
                },
            )
            return self._resume(test, [winner], winner.id, now)

        metrics.record_attempt_started(mode=test.mode.value)
        logger.info(
            f"Started attempt {created.id} (#{created.attempt_number}) for test "
            f"{test_id}, student {student_id}; ends at {created.end_time}",
            extra={
                "attempt_id": created.id,
                "test_id": test_id,
                "student_id": student_id,
            },
        )
        return AttemptHandle(
            attempt=created,
            remaining_seconds=remaining_seconds(created, now),
            resumed=False,
            server_time=now,
        )

    def _find_active(
        self, test_id: str, student_id: str, now: int
    ) -> Optional[AttemptRecord]:
        for attempt in self.store.list_attempts(test_id, student_id):
            if classify(attempt, now) == EffectiveStatus.ACTIVE:
                return attempt
        return None

    def _resume(
        self,
        test: TestDefinition,
        attempts: List[AttemptRecord],
        attempt_id: int,
        now: int,
    ) -> AttemptHandle:
        attempt = next(a for a in attempts if a.id == attempt_id)
        metrics.record_attempt_resumed(mode=test.mode.value)
        logger.info(
            f"Resumed attempt {attempt.id} for test {test.id}, "
            f"student {attempt.student_id}",
            extra={
                "attempt_id": attempt.id,
                "test_id": test.id,
                "student_id": attempt.student_id,
            },
        )
        return AttemptHandle(
            attempt=attempt,
            remaining_seconds=remaining_seconds(attempt, now),
            resumed=True,
            server_time=now,
        )

    def record_answer(
        self,
        attempt_id: int,
        question_id: str,
        payload: AnswerPayload,
        now: Optional[int] = None,
        student_id: Optional[str] = None,
    ) -> AnswerRecord:
        """
        Save the student's answer for one question of an active attempt.

        Does not change the attempt's status.

        Args:
            attempt_id: Attempt being answered
            question_id: Question within the attempt's test
            payload: Answer value, time-spent delta, review mark and write_seq
            now: Server time (defaults to the clock)
            student_id: When given, the attempt must belong to this student

        Raises:
            AttemptNotFound, AttemptAccessDenied, InvalidAnswer,
            AttemptNotActive (completed or past end_time), Unavailable
        """
        now = self._resolve_now(now)
        attempt = self._load_attempt(attempt_id, student_id)

        status = classify(attempt, now)
        if status != EffectiveStatus.ACTIVE:
            raise AttemptNotActive(
                f"Attempt {attempt_id} is {status.value}; answers are closed."
            )

        test = self._load_test(attempt.test_id)
        question = test.get_question(question_id)
        if question is None:
            raise InvalidAnswer(
                f"Question {question_id} is not part of test {attempt.test_id}."
            )

        return self.journal.upsert(attempt_id, question, payload, now)

    def list_answers(
        self, attempt_id: int, student_id: Optional[str] = None
    ) -> List[AnswerRecord]:
        self._load_attempt(attempt_id, student_id)
        return self.journal.list(attempt_id)

    def finalize(
        self,
        attempt_id: int,
        trigger: FinalizeTrigger,
        now: Optional[int] = None,
        student_id: Optional[str] = None,
    ) -> FinalizeResult:
        """
        Close an attempt. Idempotent.

        An attempt already completed is returned unchanged, whatever the
        trigger. Otherwise the stored status becomes SUBMITTED when a user
        submits on or before end_time and AUTO_SUBMITTED in every other case,
        with submitted_at = now. The status change is a conditional update,
        so concurrent or repeated calls leave one result.

        Scoring runs after the status change and cannot undo it; a scoring
        failure is logged and recorded as an error metric.

        Raises:
            AttemptNotFound, AttemptAccessDenied, Unavailable
        """
        now = self._resolve_now(now)
        attempt = self._load_attempt(attempt_id, student_id)

        if classify(attempt, now) == EffectiveStatus.COMPLETED:
            return FinalizeResult(attempt=attempt, already_finalized=True)

        if trigger == FinalizeTrigger.USER_SUBMIT and now <= attempt.end_time:
            status = AttemptStatus.SUBMITTED
        else:
            status = AttemptStatus.AUTO_SUBMITTED

        updated = self.store.mark_finalized(attempt_id, status, now)
        current = self.store.get_attempt(attempt_id)
        if not updated:
            logger.info(
                f"Attempt {attempt_id} was finalized concurrently; "
                f"keeping status {current.status.value}",
                extra={"attempt_id": attempt_id},
            )
            return FinalizeResult(attempt=current, already_finalized=True)

        metrics.record_attempt_finalized(trigger=trigger.value, status=status.value)
        logger.info(
            f"Finalized attempt {attempt_id} as {status.value} "
            f"(trigger={trigger.value})",
            extra={
                "attempt_id": attempt_id,
                "test_id": attempt.test_id,
                "student_id": attempt.student_id,
            },
        )

        scored = self._score(current, now)
        if scored:
            current = self.store.get_attempt(attempt_id)
        return FinalizeResult(attempt=current, already_finalized=False, scored=scored)

    def _score(self, attempt: AttemptRecord, now: int) -> bool:
        if self.scorer is None:
            return False

        scored = False
        with graceful_failure(
            "score attempt",
            logger,
            log_level=logging.ERROR,
            exc_info=True,
            context={"attempt_id": attempt.id},
        ):
            test = self._load_test(attempt.test_id)
            answers = self.store.list_answers(attempt.id)
            result = self.scorer.score(test, attempt, answers)
            self.store.save_score(attempt.id, result, now)
            scored = True
        return scored

    def list_attempt_summaries(
        self, test_id: str, student_id: str, now: Optional[int] = None
    ) -> AttemptHistory:
        """
        Read-only history for a (test, student) pair: attempt count, best
        score, last effective status and one classified row per attempt.
        """
        now = self._resolve_now(now)
        self._authorize(test_id, student_id)
        attempts = self.store.list_attempts(test_id, student_id)
        rows = [self._summary_row(a, now) for a in attempts]

        scores = [a.score for a in attempts if a.score is not None]
        percentages = [a.percentage for a in attempts if a.percentage is not None]

        return AttemptHistory(
            test_id=test_id,
            student_id=student_id,
            attempt_count=len(attempts),
            best_score=max(scores) if scores else None,
            best_percentage=max(percentages) if percentages else None,
            last_status=rows[-1].effective_status if rows else None,
            rows=rows,
        )

    def list_test_attempts(
        self, test_id: str, now: Optional[int] = None
    ) -> List[AttemptSummaryRow]:
        """Every attempt of a test with its effective status, for instructors."""
        now = self._resolve_now(now)
        self._load_test(test_id)
        return [
            self._summary_row(a, now) for a in self.store.list_attempts_for_test(test_id)
        ]

    @staticmethod
    def _summary_row(attempt: AttemptRecord, now: int) -> AttemptSummaryRow:
        return AttemptSummaryRow(
            attempt=attempt,
            effective_status=classify(attempt, now),
            remaining_seconds=remaining_seconds(attempt, now),
        )

    def sweep_expired(
        self, now: Optional[int] = None, limit: Optional[int] = None
    ) -> SweepReport:
        """
        Finalize stored in_progress attempts whose end_time has passed.

        Safe to run redundantly or concurrently with user submits: each
        candidate goes through the idempotent ``finalize``. A failure on one
        attempt is logged and counted, and the pass continues.

        Args:
            now: Server time (defaults to the clock)
            limit: Maximum attempts examined in this pass

        Returns:
            SweepReport with examined, finalized, already_completed and failed
        """
        now = self._resolve_now(now)
        limit = limit or self.DEFAULT_SWEEP_LIMIT
        report = SweepReport()

        for candidate in self.store.list_expired_in_progress(now, limit):
            report.examined += 1
            try:
                result = self.finalize(
                    candidate.id, FinalizeTrigger.AUTO_EXPIRE, now=now
                )
            except AttemptSessionError as e:
                report.failed += 1
                logger.error(
                    f"Expiry sweep could not finalize attempt {candidate.id}: {e}",
                    extra={"attempt_id": candidate.id, "test_id": candidate.test_id},
                )
                continue

            if result.already_finalized:
                report.already_completed += 1
            else:
                report.finalized += 1
                report.finalized_ids.append(candidate.id)

        metrics.record_sweep(finalized=report.finalized, failed=report.failed)
        if report.examined:
            logger.info(
                f"Expiry sweep at {now}: examined={report.examined}, "
                f"finalized={report.finalized}, "
                f"already_completed={report.already_completed}, "
                f"failed={report.failed}"
            )
        return report
