"""Platform event handlers.

Each event becomes one PUSH notification: the active template for the type is
rendered when present, otherwise a literal fallback text is used. The
notification is then delivered immediately.

Handled events:
- booking.confirmed / booking.cancelled
- payment.success / payment.failed
- friend.request / friend.accepted
- chat.message
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.models.notification import DeliveryChannel, NotificationType
from notify_service.schemas.events import (
    BookingEvent,
    ChatMessageEvent,
    FriendAcceptedEvent,
    FriendRequestEvent,
    PaymentEvent,
)
from notify_service.services.delivery_service import ChannelSenders, DeliveryService
from notify_service.services.notification_service import NotificationService
from notify_service.services.template_service import TemplateService

logger = logging.getLogger(__name__)


def _amount(value: float) -> str:
    return f"{int(value):,}" if float(value).is_integer() else f"{value:,.2f}"


class EventService:
    def __init__(self, session: AsyncSession, senders: ChannelSenders):
        self.session = session
        self.notifications = NotificationService(session)
        self.templates = TemplateService(session)
        self.delivery = DeliveryService(session, senders)
        self._handlers: dict[str, tuple[type[BaseModel], Callable[[Any], Awaitable[dict]]]] = {
            "booking.confirmed": (BookingEvent, self._booking_confirmed),
            "booking.cancelled": (BookingEvent, self._booking_cancelled),
            "payment.success": (PaymentEvent, self._payment_success),
            "payment.failed": (PaymentEvent, self._payment_failed),
            "friend.request": (FriendRequestEvent, self._friend_request),
            "friend.accepted": (FriendAcceptedEvent, self._friend_accepted),
            "chat.message": (ChatMessageEvent, self._chat_message),
        }

    def supports(self, event_name: str) -> bool:
        return event_name in self._handlers

    async def handle(self, event_name: str, payload: dict) -> dict:
        """Turn an event into a delivered notification; failures are reported, not raised."""
        logger.info(f"Event: {event_name}")
        schema, handler = self._handlers[event_name]
        try:
            event = schema.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Invalid {event_name} payload: {e.error_count()} errors")
            return {"success": False, "error": f"invalid payload: {e.errors()[0]['msg']}"}

        try:
            draft = await handler(event)
            notification = await self._create_and_deliver(**draft)
        except Exception as e:
            logger.error(f"Failed to handle {event_name} event: {e}", exc_info=True)
            await self.session.rollback()
            return {"success": False, "error": str(e)}
        return {"success": True, "notification_id": notification.id}

    async def _create_and_deliver(self, user_id, type, variables, fallback_title, fallback_message, data):
        rendered = await self.templates.generate_from_template(type, variables)
        notification = await self.notifications.create(
            user_id=str(user_id),
            type=type,
            title=(rendered or {}).get("title") or fallback_title,
            message=(rendered or {}).get("message") or fallback_message,
            data={k: v for k, v in data.items() if v is not None},
            delivery_channel=DeliveryChannel.PUSH,
        )
        await self.delivery.deliver_now([notification])
        return notification

    # ------------------------------------------------------------------
    async def _booking_confirmed(self, e: BookingEvent) -> dict:
        return {
            "user_id": e.userId,
            "type": NotificationType.BOOKING_CONFIRMED,
            "variables": {
                "courseName": e.display_name,
                "bookingDate": e.bookingDate,
                "bookingTime": e.display_time,
                "bookingId": e.reference,
            },
            "fallback_title": "Your booking is confirmed",
            "fallback_message": f"Your booking at {e.display_name} on {e.bookingDate} {e.display_time} is confirmed.",
            "data": {
                "bookingId": e.bookingId,
                "bookingNumber": e.bookingNumber,
                "gameId": e.gameId,
                "gameName": e.display_name,
                "bookingDate": e.bookingDate,
                "timeSlot": e.display_time,
            },
        }

    async def _booking_cancelled(self, e: BookingEvent) -> dict:
        draft = await self._booking_confirmed(e)
        draft["type"] = NotificationType.BOOKING_CANCELLED
        draft["variables"]["reason"] = e.reason or ""
        draft["fallback_title"] = "Your booking was cancelled"
        draft["fallback_message"] = f"Your booking at {e.display_name} on {e.bookingDate} {e.display_time} was cancelled."
        draft["data"]["reason"] = e.reason
        return draft

    async def _payment_success(self, e: PaymentEvent) -> dict:
        return {
            "user_id": e.userId,
            "type": NotificationType.PAYMENT_SUCCESS,
            "variables": {"amount": _amount(e.amount), "paymentId": e.paymentId, "bookingId": e.bookingId},
            "fallback_title": "Payment completed",
            "fallback_message": f"Your payment of {_amount(e.amount)} KRW was completed.",
            "data": {"paymentId": e.paymentId, "bookingId": e.bookingId, "amount": e.amount},
        }

    async def _payment_failed(self, e: PaymentEvent) -> dict:
        reason = e.failureReason or "unknown error"
        return {
            "user_id": e.userId,
            "type": NotificationType.PAYMENT_FAILED,
            "variables": {
                "amount": _amount(e.amount),
                "paymentId": e.paymentId,
                "bookingId": e.bookingId,
                "failureReason": reason,
            },
            "fallback_title": "Payment failed",
            "fallback_message": f"Your payment of {_amount(e.amount)} KRW failed. Please try again.",
            "data": {
                "paymentId": e.paymentId,
                "bookingId": e.bookingId,
                "amount": e.amount,
                "failureReason": e.failureReason,
            },
        }

    async def _friend_request(self, e: FriendRequestEvent) -> dict:
        return {
            "user_id": e.toUserId,
            "type": NotificationType.FRIEND_REQUEST,
            "variables": {"fromUserName": e.fromUserName, "message": e.message or ""},
            "fallback_title": f"{e.fromUserName} sent you a friend request",
            "fallback_message": e.message or "Check your friend requests.",
            "data": {"requestId": e.requestId, "fromUserId": e.fromUserId, "fromUserName": e.fromUserName},
        }

    async def _friend_accepted(self, e: FriendAcceptedEvent) -> dict:
        # the requester gets told
        return {
            "user_id": e.fromUserId,
            "type": NotificationType.FRIEND_ACCEPTED,
            "variables": {"toUserName": e.toUserName},
            "fallback_title": "Friend request accepted",
            "fallback_message": f"You and {e.toUserName} are now friends.",
            "data": {"requestId": e.requestId, "friendId": e.toUserId, "friendName": e.toUserName},
        }

    async def _chat_message(self, e: ChatMessageEvent) -> dict:
        return {
            "user_id": e.recipientId,
            "type": NotificationType.CHAT_MESSAGE,
            "variables": {"senderName": e.senderName, "messagePreview": e.messagePreview},
            "fallback_title": f"New message from {e.senderName}",
            "fallback_message": e.messagePreview,
            "data": {"chatRoomId": e.chatRoomId, "senderId": e.senderId, "senderName": e.senderName},
        }
