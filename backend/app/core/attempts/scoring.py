"""
Scoring handoff after an attempt is finalized.

The session manager calls a ``Scorer`` once, right after an attempt becomes
submitted or auto_submitted. The default ``McqAutoScorer`` grades multiple
choice answers against the test's correct options and leaves essays for an
instructor, so a test with essays stays ``pending``.

The architecture is pluggable: any object implementing ``Scorer`` can be
passed to ``SessionManager``.
"""
import logging
from typing import Dict, List, Protocol

from app.core.attempts.domain import (
    AnswerRecord,
    AttemptRecord,
    PassStatus,
    ScoreResult,
    TestDefinition,
)
from app.models.models import QuestionKind

logger = logging.getLogger(__name__)


class Scorer(Protocol):
    """
    Protocol for scoring callbacks.

    Invoked with the finalized attempt and its answers; returns the result to
    persist.
    """

    def score(
        self,
        test: TestDefinition,
        attempt: AttemptRecord,
        answers: List[AnswerRecord],
    ) -> ScoreResult:
        ...


class McqAutoScorer:
    """
    Multiple choice auto-grading.

    - A correct MCQ answer earns the question's points.
    - An answered but incorrect MCQ counts as wrong; unanswered counts as neither.
    - Essays contribute nothing until graded elsewhere.
    - max_score is the sum of all question points.

    pass_status is PENDING when the test has essays or no passing score,
    otherwise PASSED when percentage >= passing_score and FAILED below it.
    """

    def score(
        self,
        test: TestDefinition,
        attempt: AttemptRecord,
        answers: List[AnswerRecord],
    ) -> ScoreResult:
        by_question: Dict[str, AnswerRecord] = {a.question_id: a for a in answers}

        score = 0.0
        max_score = 0.0
        mcq_correct = 0
        mcq_wrong = 0

        for question in test.questions:
            max_score += question.points
            if question.kind != QuestionKind.MCQ:
                continue
            answer = by_question.get(question.question_id)
            if answer is None or answer.selected_option_id is None:
                continue
            if (
                question.correct_option_id is not None
                and answer.selected_option_id == question.correct_option_id
            ):
                mcq_correct += 1
                score += question.points
            else:
                mcq_wrong += 1

        percentage = (score / max_score) * 100 if max_score > 0 else 0.0

        if test.passing_score is None or test.has_essays:
            pass_status = PassStatus.PENDING
        elif percentage >= test.passing_score:
            pass_status = PassStatus.PASSED
        else:
            pass_status = PassStatus.FAILED

        logger.info(
            f"Scored attempt {attempt.id}: {score}/{max_score} "
            f"({percentage:.1f}%), {mcq_correct} correct, {mcq_wrong} wrong, "
            f"{pass_status.value}",
            extra={"attempt_id": attempt.id, "test_id": test.id},
        )

        return ScoreResult(
            score=score,
            max_score=max_score,
            percentage=round(percentage, 2),
            pass_status=pass_status,
            mcq_correct=mcq_correct,
            mcq_wrong=mcq_wrong,
        )
