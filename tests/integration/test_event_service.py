import pytest

from notify_service.models.notification import DeliveryChannel, NotificationStatus, NotificationType
from notify_service.services.event_service import EventService
from notify_service.services.notification_service import NotificationService
from notify_service.services.template_service import TemplateService

BOOKING = {
    "bookingId": 501,
    "bookingNumber": "BK-20260501-0001",
    "userId": 42,
    "gameId": 7,
    "gameName": "Seoul CC Morning Round",
    "bookingDate": "2026-05-01",
    "timeSlot": "07:30",
}


@pytest.mark.asyncio
async def test_booking_confirmed_uses_fallback_text(session, senders):
    result = await EventService(session, senders).handle("booking.confirmed", BOOKING)
    assert result["success"] is True

    n = await NotificationService(session).get(result["notification_id"], "42")
    assert n.type == NotificationType.BOOKING_CONFIRMED.value
    assert n.delivery_channel == DeliveryChannel.PUSH.value
    assert n.status == NotificationStatus.SENT.value
    assert "Seoul CC Morning Round" in n.message
    assert n.data["bookingNumber"] == "BK-20260501-0001"
    assert "reason" not in n.data
    assert senders.push.calls[0][0] == "42"


@pytest.mark.asyncio
async def test_active_template_wins_over_fallback(session, senders):
    await TemplateService(session).create_template({
        "type": NotificationType.BOOKING_CANCELLED,
        "title": "Cancelled: {{courseName}}",
        "content": "{{bookingDate}} {{bookingTime}} was cancelled ({{reason}})",
        "variables": {"courseName": "course", "reason": "why"},
    })

    result = await EventService(session, senders).handle("booking.cancelled", dict(BOOKING, reason="rain"))
    n = await NotificationService(session).get(result["notification_id"], "42")
    assert n.title == "Cancelled: Seoul CC Morning Round"
    assert n.message == "2026-05-01 07:30 was cancelled (rain)"


@pytest.mark.asyncio
async def test_recipients_per_event(session, senders):
    svc = EventService(session, senders)
    await svc.handle("friend.request", {"requestId": 1, "fromUserId": 1, "toUserId": 2, "fromUserName": "Lee"})
    await svc.handle(
        "friend.accepted",
        {"requestId": 1, "fromUserId": 1, "toUserId": 2, "fromUserName": "Lee", "toUserName": "Park"},
    )
    await svc.handle(
        "chat.message",
        {"chatRoomId": "room-9", "senderId": 2, "senderName": "Park", "recipientId": 3, "messagePreview": "see you at 7"},
    )
    await svc.handle("payment.failed", {"paymentId": "pay_9", "bookingId": 5, "userId": 4, "amount": 55000})

    assert [c[0] for c in senders.push.calls] == ["2", "1", "3", "4"]

    notifications = NotificationService(session)
    chat = (await notifications.find_page("3"))["items"][0]
    assert chat.title == "New message from Park"
    assert chat.message == "see you at 7"
    payment = (await notifications.find_page("4"))["items"][0]
    assert payment.type == NotificationType.PAYMENT_FAILED.value
    assert "55,000" in payment.message


@pytest.mark.asyncio
async def test_invalid_payload_is_reported_not_raised(session, senders):
    result = await EventService(session, senders).handle("payment.success", {"paymentId": "p1"})
    assert result["success"] is False
    assert result["error"]
    assert senders.push.calls == []


@pytest.mark.asyncio
async def test_supported_events(session, senders):
    svc = EventService(session, senders)
    for name in (
        "booking.confirmed", "booking.cancelled", "payment.success", "payment.failed",
        "friend.request", "friend.accepted", "chat.message",
    ):
        assert svc.supports(name)
    assert not svc.supports("booking.exploded")
