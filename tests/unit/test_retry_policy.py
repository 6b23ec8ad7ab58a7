from datetime import datetime, timedelta

from notify_service.services.retry_policy import backoff_delay, is_retry_eligible, next_retry_at


def test_backoff_doubles_with_retry_count():
    assert backoff_delay(1, base_minutes=1) == timedelta(minutes=2)
    assert backoff_delay(2, base_minutes=1) == timedelta(minutes=4)
    assert backoff_delay(3, base_minutes=1) == timedelta(minutes=8)


def test_backoff_is_strictly_increasing():
    delays = [backoff_delay(n, base_minutes=1) for n in range(0, 8)]
    assert all(a < b for a, b in zip(delays, delays[1:]))


def test_not_eligible_before_backoff_elapsed():
    failed_at = datetime(2026, 1, 1, 12, 0, 0)
    assert not is_retry_eligible(1, 3, failed_at, failed_at + timedelta(minutes=1), base_minutes=1)
    assert is_retry_eligible(1, 3, failed_at, failed_at + timedelta(minutes=2), base_minutes=1)


def test_second_retry_waits_longer():
    failed_at = datetime(2026, 1, 1, 12, 0, 0)
    now = failed_at + timedelta(minutes=3)
    assert is_retry_eligible(1, 3, failed_at, now, base_minutes=1)
    assert not is_retry_eligible(2, 3, failed_at, now, base_minutes=1)


def test_exhausted_budget_is_never_eligible():
    failed_at = datetime(2026, 1, 1, 12, 0, 0)
    far_future = failed_at + timedelta(days=30)
    assert not is_retry_eligible(3, 3, failed_at, far_future, base_minutes=1)
    assert not is_retry_eligible(5, 3, None, far_future, base_minutes=1)


def test_missing_last_attempt_is_eligible_now():
    assert next_retry_at(1, None) is None
    assert is_retry_eligible(1, 3, None, datetime(2026, 1, 1), base_minutes=1)
