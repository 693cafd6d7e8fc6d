"""
Shared constants and builders for attempt session tests.
"""
from app.core.attempts import QuestionRef, TestDefinition
from app.models.models import QuestionKind, TestMode

# 2026-01-05T09:00:00Z
NOW = 1767603600
HOUR = 3600
CLASS_ID = "class-7b"
STUDENT_ID = "student-1"
OTHER_STUDENT_ID = "student-2"

QUESTIONS = [
    {"question_id": "q1", "kind": "mcq", "points": 1.0, "correct_option_id": "a"},
    {"question_id": "q2", "kind": "mcq", "points": 1.0, "correct_option_id": "c"},
    {"question_id": "q3", "kind": "mcq", "points": 2.0, "correct_option_id": "b"},
]


def flexible_definition(
    test_id="flex-mem",
    attempts_allowed=1,
    allowance=1800,
    passing_score=None,
    questions=None,
    opens_at=NOW - HOUR,
    closes_at=NOW + HOUR,
) -> TestDefinition:
    """Flexible test assigned to CLASS_ID with two MCQs and one essay by default."""
    if questions is None:
        questions = [
            QuestionRef("q1", QuestionKind.MCQ, 1.0, "a"),
            QuestionRef("q2", QuestionKind.MCQ, 1.0, "c"),
            QuestionRef("q3", QuestionKind.ESSAY, 5.0),
        ]
    return TestDefinition(
        id=test_id,
        mode=TestMode.FLEXIBLE,
        total_time_allowed_seconds=allowance,
        opens_at=opens_at,
        closes_at=closes_at,
        attempts_allowed=attempts_allowed,
        passing_score=passing_score,
        class_ids=[CLASS_ID],
        questions=questions,
    )


def live_definition(
    test_id="live-mem",
    allowance=3600,
    join_time=NOW - 300,
    end_time=NOW + 2400,
    questions=None,
) -> TestDefinition:
    """Live test assigned to CLASS_ID; by default the hard end comes before join + allowance."""
    return TestDefinition(
        id=test_id,
        mode=TestMode.LIVE,
        total_time_allowed_seconds=allowance,
        join_time=join_time,
        end_time=end_time,
        class_ids=[CLASS_ID],
        questions=questions or [QuestionRef("q1", QuestionKind.MCQ, 1.0, "a")],
    )
