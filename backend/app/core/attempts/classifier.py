"""
Attempt classifier.

The only place that decides whether an attempt is still running. Start,
resume, answer writes, finalize, history views and the expiry sweep all call
``classify`` rather than comparing timestamps themselves.
"""
from app.core.attempts.domain import (
    COMPLETED_STATUSES,
    AttemptRecord,
    EffectiveStatus,
)


def classify(attempt: AttemptRecord, now: int) -> EffectiveStatus:
    """
    Derive the effective status of an attempt at ``now``.

    A stored submitted or auto_submitted status is always COMPLETED. Anything
    else is EXPIRED once ``now`` passes the stored end_time, whether or not a
    client ever called finalize, and ACTIVE before that.
    """
    if attempt.status in COMPLETED_STATUSES:
        return EffectiveStatus.COMPLETED
    if now > attempt.end_time:
        return EffectiveStatus.EXPIRED
    return EffectiveStatus.ACTIVE


def remaining_seconds(attempt: AttemptRecord, now: int) -> int:
    """Seconds until the attempt's deadline, never negative."""
    return max(0, attempt.end_time - now)


def is_consumed(attempt: AttemptRecord, now: int) -> bool:
    """
    Whether the attempt counts against the quota.

    Expired attempts count: they are finalized as auto_submitted the next time
    anything touches them.
    """
    return classify(attempt, now) != EffectiveStatus.ACTIVE
