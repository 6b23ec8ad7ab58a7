from datetime import timedelta

import pytest
from sqlalchemy import update

from notify_service.core.exceptions import NotificationNotFound, NotificationValidationError
from notify_service.core.timeutils import utcnow
from notify_service.models.notification import Notification, NotificationStatus, NotificationType
from notify_service.services.notification_service import NotificationService


async def _create(session, user_id="u1", **kwargs):
    return await NotificationService(session).create(
        user_id=user_id,
        type=kwargs.pop("type", NotificationType.SYSTEM_ALERT),
        title=kwargs.pop("title", "Notice"),
        message=kwargs.pop("message", "Course closed tomorrow"),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_create_starts_pending(session):
    n = await _create(session, data={"courseId": 3})
    assert n.id is not None
    assert n.status == NotificationStatus.PENDING.value
    assert n.retry_count == 0
    assert n.max_retries == 3
    assert n.data == {"courseId": 3}
    assert n.created_at is not None


@pytest.mark.asyncio
async def test_find_page_filters_and_paginates(session):
    svc = NotificationService(session)
    for i in range(5):
        await _create(session, title=f"n{i}")
    await _create(session, type=NotificationType.PROMOTIONAL)
    await _create(session, user_id="someone-else")

    page = await svc.find_page("u1", page=1, limit=4)
    assert page["total"] == 6
    assert page["total_pages"] == 2
    assert len(page["items"]) == 4

    promos = await svc.find_page("u1", type=NotificationType.PROMOTIONAL)
    assert promos["total"] == 1

    first = page["items"][0]
    await svc.mark_read(first.id, "u1")
    unread = await svc.find_page("u1", unread_only=True)
    assert unread["total"] == 5


@pytest.mark.asyncio
async def test_scoped_get_does_not_leak_other_users(session):
    svc = NotificationService(session)
    n = await _create(session, user_id="owner")
    assert (await svc.get(n.id, "owner")).id == n.id
    with pytest.raises(NotificationNotFound):
        await svc.get(n.id, "intruder")
    with pytest.raises(NotificationNotFound):
        await svc.delete(n.id, "intruder")


@pytest.mark.asyncio
async def test_mark_all_read_counts_once(session):
    svc = NotificationService(session)
    for _ in range(5):
        await _create(session)

    assert await svc.unread_count("u1") == 5
    assert await svc.mark_all_read("u1") == 5
    assert await svc.unread_count("u1") == 0
    assert await svc.mark_all_read("u1") == 0

    page = await svc.find_page("u1")
    assert {n.status for n in page["items"]} == {NotificationStatus.READ.value}


@pytest.mark.asyncio
async def test_update_only_allows_read_status(session):
    svc = NotificationService(session)
    n = await _create(session)
    with pytest.raises(NotificationValidationError):
        await svc.update(n.id, "u1", {"status": NotificationStatus.SENT})

    updated = await svc.update(n.id, "u1", {"title": "Updated", "status": NotificationStatus.READ})
    assert updated.title == "Updated"
    assert updated.status == NotificationStatus.READ.value
    assert updated.read_at is not None


@pytest.mark.asyncio
async def test_send_to_users_fans_out_and_dedupes(session):
    svc = NotificationService(session)
    created = await svc.send_to_users(["a", "b", "a", "c"], NotificationType.PROMOTIONAL, "Sale", "20% off green fees")
    assert sorted(n.user_id for n in created) == ["a", "b", "c"]
    with pytest.raises(NotificationValidationError):
        await svc.send_to_users([], NotificationType.PROMOTIONAL, "Sale", "x")


@pytest.mark.asyncio
async def test_mark_failed_increments_and_sent_is_terminal(session):
    svc = NotificationService(session)
    n = await _create(session)

    assert await svc.mark_failed(n.id)
    assert await svc.mark_failed(n.id)
    failed = await svc.get_by_id(n.id)
    assert failed.status == NotificationStatus.FAILED.value
    assert failed.retry_count == 2
    assert failed.last_attempt_at is not None

    assert await svc.mark_sent(n.id)
    # SENT is frozen: later transitions are refused
    assert not await svc.mark_failed(n.id)
    assert not await svc.mark_sent(n.id)
    sent = await svc.get_by_id(n.id)
    assert sent.status == NotificationStatus.SENT.value
    assert sent.retry_count == 2
    assert sent.sent_at is not None


@pytest.mark.asyncio
async def test_due_scheduled_selection(session):
    svc = NotificationService(session)
    now = utcnow()
    due = await _create(session, scheduled_at=now - timedelta(minutes=1))
    await _create(session, scheduled_at=now + timedelta(hours=1))
    fresh = await _create(session)
    stale = await _create(session)
    await session.execute(
        update(Notification).where(Notification.id == stale.id).values(created_at=now - timedelta(hours=1))
    )
    await session.commit()

    ids = {n.id for n in await svc.due_scheduled(now)}
    assert ids == {due.id, stale.id}
    assert fresh.id not in ids


@pytest.mark.asyncio
async def test_retry_and_dead_letter_selection(session):
    svc = NotificationService(session)
    now = utcnow()
    recent = await _create(session)
    old = await _create(session)
    exhausted = await _create(session, max_retries=1)
    for n in (recent, old, exhausted):
        await svc.mark_failed(n.id)
    await session.execute(
        update(Notification)
        .where(Notification.id.in_([old.id, exhausted.id]))
        .values(last_attempt_at=now - timedelta(minutes=10))
    )
    await session.commit()

    assert [n.id for n in await svc.eligible_for_retry(now)] == [old.id]
    assert [n.id for n in await svc.permanently_failed(now)] == [exhausted.id]


@pytest.mark.asyncio
async def test_retry_batch_is_filled_with_due_rows(session):
    svc = NotificationService(session)
    now = utcnow()
    waiting = [await _create(session) for _ in range(2)]
    due = await _create(session)
    for n in waiting:
        await svc.mark_failed(n.id)
        await svc.mark_failed(n.id)
    await svc.mark_failed(due.id)
    # retry_count 2 needs 4 minutes, retry_count 1 needs 2
    await session.execute(
        update(Notification)
        .where(Notification.id.in_([n.id for n in waiting]))
        .values(last_attempt_at=now - timedelta(minutes=3))
    )
    await session.execute(
        update(Notification).where(Notification.id == due.id).values(last_attempt_at=now - timedelta(minutes=2, seconds=30))
    )
    await session.commit()

    assert [n.id for n in await svc.eligible_for_retry(now, limit=2)] == [due.id]


@pytest.mark.asyncio
async def test_claim_is_exclusive_until_lease_expires(session):
    svc = NotificationService(session)
    now = utcnow()
    n = await _create(session, scheduled_at=now - timedelta(minutes=1))

    assert await svc.claim(n.id, NotificationStatus.PENDING, now=now, lease_seconds=60)
    assert not await svc.claim(n.id, NotificationStatus.PENDING, now=now, lease_seconds=60)
    assert not await svc.claim(n.id, NotificationStatus.FAILED, now=now + timedelta(minutes=5))
    # claimed rows are hidden from the selection queries
    assert await svc.due_scheduled(now) == []

    assert await svc.claim(n.id, NotificationStatus.PENDING, now=now + timedelta(minutes=2), lease_seconds=60)

    await svc.mark_sent(n.id)
    assert (await svc.get_by_id(n.id)).claimed_until is None
