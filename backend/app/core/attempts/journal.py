"""
Answer journal: incremental per-question persistence during an attempt.

Writes are keyed by (attempt_id, question_id). The response value is
replaced, time spent accumulates, and the review mark persists until changed.
Each write carries a ``write_seq`` that must exceed the last applied one;
retries and overtaken writes change nothing. Writes to different questions
are independent.
"""
import logging
import re
from typing import List

from app.core.attempts.domain import (
    AnswerPayload,
    AnswerRecord,
    QuestionRef,
)
from app.core.attempts.errors import AttemptNotActive, InvalidAnswer
from app.core.attempts.store import AttemptStore
from app.models.models import QuestionKind

logger = logging.getLogger(__name__)

_WORD_PATTERN = re.compile(r"\S+")

# Largest time delta accepted from a single write
MAX_TIME_DELTA_SECONDS = 6 * 60 * 60


def count_words(content: str) -> int:
    """Whitespace-delimited word count of an essay answer."""
    return len(_WORD_PATTERN.findall(content))


def validate_payload(question: QuestionRef, payload: AnswerPayload) -> None:
    """
    Check that the payload fits the question kind.

    Raises:
        InvalidAnswer: If the payload shape does not match the question
    """
    if payload.write_seq < 1:
        raise InvalidAnswer("write_seq must be a positive integer.")
    if payload.time_spent_delta_seconds < 0:
        raise InvalidAnswer("time_spent_delta_seconds cannot be negative.")
    if payload.time_spent_delta_seconds > MAX_TIME_DELTA_SECONDS:
        raise InvalidAnswer(
            f"time_spent_delta_seconds cannot exceed {MAX_TIME_DELTA_SECONDS}."
        )

    if question.kind == QuestionKind.MCQ:
        if payload.content is not None:
            raise InvalidAnswer(
                f"Question {question.question_id} is multiple choice; "
                "send selected_option_id, not content."
            )
    elif payload.selected_option_id is not None:
        raise InvalidAnswer(
            f"Question {question.question_id} is an essay; "
            "send content, not selected_option_id."
        )


class AnswerJournal:
    """Applies answer writes to an AttemptStore."""

    def __init__(self, store: AttemptStore):
        self.store = store

    def upsert(
        self,
        attempt_id: int,
        question: QuestionRef,
        payload: AnswerPayload,
        now: int,
    ) -> AnswerRecord:
        """
        Record a student's answer for one question.

        Args:
            attempt_id: The attempt being answered
            question: The question definition (kind decides payload shape)
            payload: New value, time-spent delta, review mark and write_seq
            now: Server time in epoch seconds

        Returns:
            The stored answer after the write

        Raises:
            InvalidAnswer: If the payload does not fit the question
            AttemptNotActive: If the attempt left in_progress or passed its
                end_time before the write landed
        """
        validate_payload(question, payload)

        def merge(current):
            return merge_answer(current, attempt_id, question, payload, now)

        stored = self.store.write_answer(
            attempt_id, question.question_id, now, merge
        )
        if stored is None:
            raise AttemptNotActive()
        return stored

    def list(self, attempt_id: int) -> List[AnswerRecord]:
        return self.store.list_answers(attempt_id)


def merge_answer(
    current,
    attempt_id: int,
    question: QuestionRef,
    payload: AnswerPayload,
    now: int,
) -> AnswerRecord:
    """
    Combine the stored answer with a new write.

    A write whose write_seq is not above the stored last_write_seq is a
    retry or a write overtaken by a newer one; the stored answer is returned
    unchanged. A write carrying neither selected_option_id nor content keeps
    the stored response, and a write without is_marked_for_review keeps the
    stored mark.
    """
    if current is not None and payload.write_seq <= current.last_write_seq:
        logger.debug(
            f"Ignoring write {payload.write_seq} for attempt {attempt_id}, "
            f"question {question.question_id} (last applied "
            f"{current.last_write_seq})"
        )
        return current

    previous_time = current.time_spent_seconds if current else 0

    if (
        current is not None
        and payload.selected_option_id is None
        and payload.content is None
    ):
        # Time-only or mark-only write keeps the stored response
        selected = current.selected_option_id
        content = current.content
        word_count = current.word_count
    elif question.kind == QuestionKind.ESSAY:
        content = payload.content
        selected = None
        word_count = count_words(content) if content is not None else None
    else:
        content = None
        selected = payload.selected_option_id
        word_count = None

    if payload.is_marked_for_review is not None:
        marked = payload.is_marked_for_review
    else:
        marked = current.is_marked_for_review if current else False

    return AnswerRecord(
        attempt_id=attempt_id,
        question_id=question.question_id,
        selected_option_id=selected,
        content=content,
        word_count=word_count,
        time_spent_seconds=previous_time + payload.time_spent_delta_seconds,
        is_marked_for_review=marked,
        last_write_seq=payload.write_seq,
        updated_at=now,
    )
