"""Retry / backoff policy for failed notifications.

Schedule: after the N-th failed attempt (retry_count == N) the next attempt
becomes eligible ``base_minutes * 2^N`` minutes after that failure.

With the default base of 1 minute:

    retry_count 1 -> 2 min
    retry_count 2 -> 4 min
    retry_count >= max_retries -> never (routed to the dead-letter queue)
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from notify_service.core.config import settings


def backoff_delay(retry_count: int, base_minutes: Optional[int] = None) -> timedelta:
    """Wait time after the most recent failure before the next attempt."""
    base = settings.BACKOFF_BASE_MINUTES if base_minutes is None else base_minutes
    return timedelta(minutes=base * (2 ** max(retry_count, 0)))


def next_retry_at(
    retry_count: int,
    last_attempt_at: Optional[datetime],
    base_minutes: Optional[int] = None,
) -> Optional[datetime]:
    if last_attempt_at is None:
        return None
    return last_attempt_at + backoff_delay(retry_count, base_minutes)


def is_retry_eligible(
    retry_count: int,
    max_retries: int,
    last_attempt_at: Optional[datetime],
    now: datetime,
    base_minutes: Optional[int] = None,
) -> bool:
    """Whether a FAILED notification may be attempted again at ``now``.

    A missing ``last_attempt_at`` (rows written before the column existed)
    makes the row eligible immediately.
    """
    if retry_count >= max_retries:
        return False
    due_at = next_retry_at(retry_count, last_attempt_at, base_minutes)
    return due_at is None or now >= due_at
