from datetime import timedelta

import pytest

from notify_service.core.timeutils import utcnow
from notify_service.models.notification import DeliveryChannel, NotificationStatus, NotificationType
from notify_service.push.models import PushResult
from notify_service.services.delivery_service import DeliveryService
from notify_service.services.notification_service import NotificationService
from notify_service.services.preference_service import PreferenceService


async def _create(session, channel=None, user_id="u1"):
    return await NotificationService(session).create(
        user_id=user_id,
        type=NotificationType.BOOKING_CONFIRMED,
        title="Booking confirmed",
        message="Seoul CC, 2026-05-01 07:30",
        data={"bookingId": 11},
        delivery_channel=channel,
    )


async def _reload(session, notification_id):
    return await NotificationService(session).get_by_id(notification_id)


@pytest.mark.asyncio
async def test_successful_push_marks_sent(session, senders):
    n = await _create(session)
    assert await DeliveryService(session, senders).deliver(n)

    stored = await _reload(session, n.id)
    assert stored.status == NotificationStatus.SENT.value
    assert stored.sent_at is not None
    user_id, payload = senders.push.calls[0]
    assert user_id == "u1"
    assert payload.title == "Booking confirmed"
    assert payload.data == {"bookingId": 11}


@pytest.mark.asyncio
async def test_opted_out_channel_is_sent_without_sending(session, senders):
    await PreferenceService(session).update_settings("u1", {"push": False})
    n = await _create(session)

    assert await DeliveryService(session, senders).deliver(n)
    assert senders.push.calls == []
    assert (await _reload(session, n.id)).status == NotificationStatus.SENT.value


@pytest.mark.asyncio
async def test_sms_is_off_by_default(session, senders):
    n = await _create(session, channel=DeliveryChannel.SMS)
    assert await DeliveryService(session, senders).deliver(n)
    assert senders.sms.calls == []


@pytest.mark.asyncio
async def test_zero_devices_counts_as_delivered(session, senders):
    senders.push.result = PushResult(success_count=0, failure_count=0)
    n = await _create(session)
    assert await DeliveryService(session, senders).deliver(n)
    assert (await _reload(session, n.id)).status == NotificationStatus.SENT.value


@pytest.mark.asyncio
async def test_all_devices_failing_marks_failed(session, senders):
    senders.push.result = PushResult(success_count=0, failure_count=2, failed_tokens=["a", "b"])
    n = await _create(session)
    assert not await DeliveryService(session, senders).deliver(n)

    stored = await _reload(session, n.id)
    assert stored.status == NotificationStatus.FAILED.value
    assert stored.retry_count == 1


@pytest.mark.asyncio
async def test_sender_exception_is_absorbed(session, senders):
    senders.push.exc = RuntimeError("provider exploded")
    n = await _create(session)
    assert not await DeliveryService(session, senders).deliver(n)
    assert (await _reload(session, n.id)).status == NotificationStatus.FAILED.value


@pytest.mark.asyncio
async def test_slow_sender_times_out_as_failure(session, senders):
    senders.push.delay = 1.0
    n = await _create(session)
    assert not await DeliveryService(session, senders, timeout=0.05).deliver(n)

    stored = await _reload(session, n.id)
    assert stored.status == NotificationStatus.FAILED.value
    assert stored.retry_count == 1


@pytest.mark.asyncio
async def test_email_channel_uses_email_sender(session, senders):
    await PreferenceService(session).update_settings("u1", {"email": True})
    n = await _create(session, channel=DeliveryChannel.EMAIL)
    assert await DeliveryService(session, senders).deliver(n)
    assert senders.email.calls == [("u1", "Booking confirmed", "Seoul CC, 2026-05-01 07:30", {"bookingId": 11})]
    assert senders.push.calls == []


@pytest.mark.asyncio
async def test_sent_notification_is_not_redelivered(session, senders):
    n = await _create(session)
    svc = DeliveryService(session, senders)
    assert await svc.deliver(n)

    senders.push.result = PushResult(success_count=0, failure_count=1, failed_tokens=["x"])
    await svc.deliver_by_id(n.id)

    stored = await _reload(session, n.id)
    assert stored.status == NotificationStatus.SENT.value
    assert stored.retry_count == 0
    assert len(senders.push.calls) == 1


@pytest.mark.asyncio
async def test_deliver_now_skips_future_schedule(session, senders):
    later = await NotificationService(session).create(
        user_id="u1",
        type=NotificationType.BOOKING_REMINDER,
        title="Tee time tomorrow",
        message="07:30 at Seoul CC",
        scheduled_at=utcnow() + timedelta(hours=12),
    )
    immediate = await _create(session)

    delivered = await DeliveryService(session, senders).deliver_now([later, immediate])
    assert delivered == 1
    assert (await _reload(session, later.id)).status == NotificationStatus.PENDING.value
    assert (await _reload(session, immediate.id)).status == NotificationStatus.SENT.value
