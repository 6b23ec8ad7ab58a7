"""Notification store: lifecycle state of every outbound notification"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update, func, and_, or_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.core.config import settings
from notify_service.core.exceptions import NotificationNotFound, NotificationValidationError
from notify_service.core.timeutils import utcnow, to_naive_utc
from notify_service.models.notification import Notification, NotificationStatus
from notify_service.services.retry_policy import backoff_delay, is_retry_eligible

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (NotificationStatus.PENDING.value, NotificationStatus.FAILED.value)


def _enum_value(value):
    return getattr(value, "value", value)


class NotificationService:
    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # user-facing operations
    # ------------------------------------------------------------------
    async def create(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: Optional[dict] = None,
        delivery_channel: Optional[str] = None,
        scheduled_at: Optional[datetime] = None,
        max_retries: Optional[int] = None,
    ) -> Notification:
        """Create a notification; always starts PENDING with retry_count 0."""
        logger.info(f"Creating notification for user: {user_id}")
        notification = self._build(user_id, type, title, message, data, delivery_channel, scheduled_at, max_retries)
        self.session.add(notification)
        await self.session.commit()
        await self.session.refresh(notification)
        return notification

    async def send_to_users(
        self,
        user_ids: list[str],
        type: str,
        title: str,
        message: str,
        data: Optional[dict] = None,
        delivery_channel: Optional[str] = None,
        scheduled_at: Optional[datetime] = None,
    ) -> list[Notification]:
        """Fan-out create: one notification per recipient, committed together."""
        recipients = [uid for uid in dict.fromkeys(user_ids) if uid]
        if not recipients:
            raise NotificationValidationError("user_ids must contain at least one user")

        logger.info(f"Sending notification to {len(recipients)} users")
        notifications = [
            self._build(uid, type, title, message, data, delivery_channel, scheduled_at, None)
            for uid in recipients
        ]
        self.session.add_all(notifications)
        await self.session.commit()
        for n in notifications:
            await self.session.refresh(n)
        return notifications

    async def find_page(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        type: Optional[str] = None,
        status: Optional[str] = None,
        unread_only: bool = False,
    ) -> dict:
        page = max(page, 1)
        limit = max(limit, 1)
        conditions = [Notification.user_id == user_id]
        if type:
            conditions.append(Notification.type == _enum_value(type))
        if status:
            conditions.append(Notification.status == _enum_value(status))
        if unread_only:
            conditions.append(Notification.read_at.is_(None))

        count_stmt = select(func.count(Notification.id)).where(*conditions)
        total_result = await self.session.execute(count_stmt)
        total = total_result.scalar() or 0

        stmt = (
            select(Notification)
            .where(*conditions)
            .order_by(desc(Notification.created_at), desc(Notification.id))
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return {
            "items": list(result.scalars().all()),
            "total": total,
            "page": page,
            "total_pages": math.ceil(total / limit),
        }

    async def get(self, notification_id: int, user_id: str) -> Notification:
        """Scoped lookup; another user's notification is reported as missing."""
        stmt = select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        notification = result.scalars().first()
        if not notification:
            raise NotificationNotFound(notification_id)
        return notification

    async def update(self, notification_id: int, user_id: str, payload: dict) -> Notification:
        notification = await self.get(notification_id, user_id)

        status = _enum_value(payload.pop("status", None))
        if status is not None:
            if status != NotificationStatus.READ.value:
                raise NotificationValidationError("status can only be changed to READ")
            if notification.status != NotificationStatus.READ.value:
                notification.status = NotificationStatus.READ.value
                notification.read_at = utcnow()

        for key, value in payload.items():
            if value is not None and key in ("title", "message", "data"):
                setattr(notification, key, value)

        await self.session.commit()
        await self.session.refresh(notification)
        return notification

    async def mark_read(self, notification_id: int, user_id: str) -> Notification:
        return await self.update(notification_id, user_id, {"status": NotificationStatus.READ})

    async def mark_all_read(self, user_id: str) -> int:
        now = utcnow()
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read_at.is_(None))
            .values(status=NotificationStatus.READ.value, read_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount or 0

    async def delete(self, notification_id: int, user_id: str) -> None:
        notification = await self.get(notification_id, user_id)
        await self.session.delete(notification)
        await self.session.commit()

    async def unread_count(self, user_id: str) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.read_at.is_(None),
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    # ------------------------------------------------------------------
    # pipeline operations (delivery coordinator / scheduler)
    # ------------------------------------------------------------------
    async def get_by_id(self, notification_id: int) -> Optional[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.id == notification_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def mark_sent(self, notification_id: int) -> bool:
        """PENDING/FAILED -> SENT. SENT and READ rows are left untouched."""
        now = utcnow()
        return await self._transition(
            notification_id,
            status=NotificationStatus.SENT.value,
            sent_at=now,
            last_attempt_at=now,
            claimed_until=None,
            updated_at=now,
        )

    async def mark_failed(self, notification_id: int) -> bool:
        """PENDING/FAILED -> FAILED with retry_count incremented in the same statement."""
        now = utcnow()
        return await self._transition(
            notification_id,
            status=NotificationStatus.FAILED.value,
            retry_count=Notification.retry_count + 1,
            last_attempt_at=now,
            claimed_until=None,
            updated_at=now,
        )

    async def claim(
        self,
        notification_id: int,
        expected_status: str,
        now: Optional[datetime] = None,
        lease_seconds: Optional[int] = None,
    ) -> bool:
        """Take a time-boxed lease on a row before processing it.

        Succeeds only when the row is still in ``expected_status`` and nobody
        else holds an unexpired lease, so concurrent scheduler instances never
        process the same notification in the same cycle.
        """
        now = now or utcnow()
        lease = settings.CLAIM_LEASE_SECONDS if lease_seconds is None else lease_seconds
        stmt = (
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.status == _enum_value(expected_status),
                or_(Notification.claimed_until.is_(None), Notification.claimed_until < now),
            )
            .values(claimed_until=now + timedelta(seconds=lease))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount == 1

    async def due_scheduled(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> list[Notification]:
        """PENDING rows whose scheduled time has passed.

        Unscheduled PENDING rows older than the pickup grace period are included
        as well; their immediate delivery never completed.
        """
        now = now or utcnow()
        grace_cutoff = now - timedelta(seconds=settings.PENDING_PICKUP_GRACE_SECONDS)
        stmt = (
            select(Notification)
            .where(
                Notification.status == NotificationStatus.PENDING.value,
                or_(
                    and_(Notification.scheduled_at.isnot(None), Notification.scheduled_at <= now),
                    and_(Notification.scheduled_at.is_(None), Notification.created_at <= grace_cutoff),
                ),
                self._unclaimed(now),
            )
            .order_by(Notification.scheduled_at, Notification.id)
            .limit(limit or settings.TICK_BATCH_SIZE)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def eligible_for_retry(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> list[Notification]:
        """FAILED rows under their retry budget whose backoff window has elapsed."""
        now = now or utcnow()
        budget_left = and_(
            Notification.status == NotificationStatus.FAILED.value,
            Notification.retry_count < Notification.max_retries,
        )
        # one backoff window per retry_count, so LIMIT only sees rows that are due
        counts = await self.session.execute(select(Notification.retry_count).where(budget_left).distinct())
        windows = [
            and_(Notification.retry_count == count, Notification.last_attempt_at <= now - backoff_delay(count))
            for count in counts.scalars().all()
        ]
        stmt = (
            select(Notification)
            .where(
                budget_left,
                or_(Notification.last_attempt_at.is_(None), *windows),
                self._unclaimed(now),
            )
            .order_by(Notification.last_attempt_at, Notification.id)
            .limit(limit or settings.TICK_BATCH_SIZE)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return [
            n for n in result.scalars().all()
            if is_retry_eligible(n.retry_count, n.max_retries, n.last_attempt_at, now)
        ]

    async def permanently_failed(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> list[Notification]:
        """FAILED rows that exhausted their retry budget (dead-letter candidates)."""
        now = now or utcnow()
        stmt = (
            select(Notification)
            .where(
                Notification.status == NotificationStatus.FAILED.value,
                Notification.retry_count >= Notification.max_retries,
                self._unclaimed(now),
            )
            .order_by(Notification.id)
            .limit(limit or settings.TICK_BATCH_SIZE)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    def _build(self, user_id, type, title, message, data, delivery_channel, scheduled_at, max_retries) -> Notification:
        return Notification(
            user_id=str(user_id),
            type=_enum_value(type),
            title=title,
            message=message,
            data=data,
            delivery_channel=_enum_value(delivery_channel),
            status=NotificationStatus.PENDING.value,
            retry_count=0,
            max_retries=settings.DEFAULT_MAX_RETRIES if max_retries is None else max_retries,
            scheduled_at=to_naive_utc(scheduled_at),
        )

    @staticmethod
    def _unclaimed(now: datetime):
        return or_(Notification.claimed_until.is_(None), Notification.claimed_until < now)

    async def _transition(self, notification_id: int, **values) -> bool:
        stmt = (
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.status.in_(RETRYABLE_STATUSES),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        if result.rowcount != 1:
            logger.warning(f"Notification {notification_id} not in a deliverable state, transition skipped")
            return False
        return True
