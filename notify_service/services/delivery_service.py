"""Delivery coordinator.

Given a stored notification:
1. resolve the channel (NULL -> PUSH)
2. honour the user's opt-in for that channel (opted out -> SENT without sending)
3. dispatch to the channel sender under a timeout
4. record the outcome: SENT on success, FAILED (+1 retry) otherwise

Sender errors never escape ``deliver``; one bad notification cannot abort a
scheduler batch.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.core.config import settings
from notify_service.core.timeutils import utcnow
from notify_service.models.notification import DeliveryChannel, Notification, NotificationStatus
from notify_service.push.device_registry import DeviceRegistryClient
from notify_service.push.factory import make_push_provider
from notify_service.push.models import PushPayload
from notify_service.services.email_service import EmailService
from notify_service.services.notification_service import RETRYABLE_STATUSES, NotificationService
from notify_service.services.preference_service import PreferenceService
from notify_service.services.push_service import PushService
from notify_service.services.sms_service import SmsService

logger = logging.getLogger(__name__)


@dataclass
class ChannelSenders:
    push: PushService
    email: EmailService
    sms: SmsService


def build_channel_senders(cfg=settings) -> ChannelSenders:
    """Wire the channel senders once at startup (credential resolution included)."""
    return ChannelSenders(
        push=PushService(make_push_provider(cfg), DeviceRegistryClient()),
        email=EmailService(),
        sms=SmsService(),
    )


class DeliveryService:
    def __init__(self, session: AsyncSession, senders: ChannelSenders, timeout: Optional[float] = None):
        self.session = session
        self.senders = senders
        self.timeout = settings.DELIVERY_TIMEOUT_SECONDS if timeout is None else timeout
        self.notifications = NotificationService(session)
        self.preferences = PreferenceService(session)

    async def deliver(self, notification: Notification) -> bool:
        notification_id = notification.id
        user_id = notification.user_id
        channel = notification.delivery_channel or DeliveryChannel.PUSH.value

        if notification.status not in RETRYABLE_STATUSES:
            logger.info(f"Notification {notification_id} is {notification.status}, not delivered again")
            return False

        try:
            enabled = await self.preferences.is_channel_enabled(user_id, channel)
            if not enabled:
                logger.info(f"User {user_id} disabled {channel}, notification {notification_id} marked sent without delivery")
                await self.notifications.mark_sent(notification_id)
                return True

            try:
                ok = await asyncio.wait_for(self._dispatch(notification, channel), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Notification {notification_id} {channel} send timed out after {self.timeout}s")
                ok = False
            except Exception as e:
                logger.error(f"Notification {notification_id} {channel} send raised: {e}", exc_info=True)
                ok = False

            if ok:
                await self.notifications.mark_sent(notification_id)
                logger.info(f"Notification {notification_id} delivered via {channel}")
            else:
                await self.notifications.mark_failed(notification_id)
                logger.warning(f"Notification {notification_id} delivery via {channel} failed")
            return ok
        except SQLAlchemyError as e:
            # state was not advanced; the claim lease expires and a later tick picks it up
            logger.error(f"Store error while delivering notification {notification_id}: {e}")
            await self.session.rollback()
            return False

    async def deliver_by_id(self, notification_id: int) -> bool:
        notification = await self.notifications.get_by_id(notification_id)
        if not notification:
            logger.info(f"Notification {notification_id} no longer exists, skipped")
            return False
        return await self.deliver(notification)

    async def deliver_now(self, notifications: Iterable[Notification]) -> int:
        """Immediate delivery after create; future-scheduled rows are left to the due tick.

        Each row is claimed first, the same way the due tick claims it, so a
        tick running alongside the request cannot send it a second time.
        """
        now = utcnow()
        delivered = 0
        for n in notifications:
            if n.scheduled_at is not None and n.scheduled_at > now:
                continue
            if not await self.notifications.claim(n.id, NotificationStatus.PENDING.value, now=now):
                logger.info(f"Notification {n.id} already claimed by a tick, immediate delivery skipped")
                continue
            if await self.deliver(n):
                delivered += 1
        return delivered

    async def _dispatch(self, notification: Notification, channel: str) -> bool:
        if channel == DeliveryChannel.PUSH.value:
            result = await self.senders.push.send(
                notification.user_id,
                PushPayload(title=notification.title, body=notification.message, data=notification.data),
            )
            # "no devices" is not a failure; "every device failed" is
            return result.delivered
        if channel == DeliveryChannel.EMAIL.value:
            return await self.senders.email.send(
                notification.user_id, notification.title, notification.message, notification.data,
            )
        if channel == DeliveryChannel.SMS.value:
            return await self.senders.sms.send(notification.user_id, notification.title, notification.message)

        logger.error(f"Unknown delivery channel {channel} for notification {notification.id}")
        return False
