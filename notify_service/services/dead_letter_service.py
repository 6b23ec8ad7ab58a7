"""Dead-letter queue for notifications that exhausted their retry budget"""
from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, delete, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.core.config import settings
from notify_service.core.exceptions import DeadLetterNotFound
from notify_service.core.timeutils import utcnow
from notify_service.models.notification import (
    DeadLetterNotification,
    Notification,
    NotificationStatus,
)

logger = logging.getLogger(__name__)

MAX_RETRIES_EXCEEDED = "max retries exceeded"
TOP_REASONS = 10


class DeadLetterService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def move_to_dead_letter(self, notification: Notification, reason: str) -> bool:
        """Insert the snapshot and delete the source row in one transaction.

        Returns False when the source row was already gone (moved by another
        sweep); nothing is written in that case. Any other error rolls back and
        is re-raised with the source row untouched.
        """
        notification_id = notification.id
        logger.warning(f"Moving notification {notification_id} to dead letter queue. Reason: {reason}")
        try:
            self.session.add(DeadLetterNotification(
                original_id=notification_id,
                user_id=notification.user_id,
                type=notification.type,
                title=notification.title,
                message=notification.message,
                data=notification.data,
                delivery_channel=notification.delivery_channel,
                failure_reason=reason,
                retry_count=notification.retry_count,
                moved_at=utcnow(),
            ))
            result = await self.session.execute(
                delete(Notification)
                .where(Notification.id == notification_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                logger.info(f"Notification {notification_id} already removed, dead letter move skipped")
                return False
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Failed to move notification {notification_id} to dead letter: {e}")
            raise

        logger.info(f"Notification {notification_id} moved to dead letter queue")
        return True

    async def find_all(
        self,
        user_id: Optional[str] = None,
        type: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        page = max(page, 1)
        limit = max(limit, 1)
        conditions = []
        if user_id:
            conditions.append(DeadLetterNotification.user_id == user_id)
        if type:
            conditions.append(DeadLetterNotification.type == getattr(type, "value", type))

        total_result = await self.session.execute(
            select(func.count(DeadLetterNotification.id)).where(*conditions)
        )
        total = total_result.scalar() or 0

        stmt = (
            select(DeadLetterNotification)
            .where(*conditions)
            .order_by(desc(DeadLetterNotification.moved_at), desc(DeadLetterNotification.id))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return {
            "items": list(result.scalars().all()),
            "total": total,
            "page": page,
            "total_pages": math.ceil(total / limit),
        }

    async def get_stats(self) -> dict:
        now = utcnow()
        one_day_ago = now - timedelta(days=1)
        one_week_ago = now - timedelta(days=7)

        async def _count(*conditions) -> int:
            result = await self.session.execute(
                select(func.count(DeadLetterNotification.id)).where(*conditions)
            )
            return result.scalar() or 0

        total = await _count()
        last_day = await _count(DeadLetterNotification.moved_at >= one_day_ago)
        last_week = await _count(DeadLetterNotification.moved_at >= one_week_ago)

        type_rows = await self.session.execute(
            select(DeadLetterNotification.type, func.count(DeadLetterNotification.id))
            .group_by(DeadLetterNotification.type)
        )
        count_col = func.count(DeadLetterNotification.id)
        reason_rows = await self.session.execute(
            select(DeadLetterNotification.failure_reason, count_col)
            .group_by(DeadLetterNotification.failure_reason)
            .order_by(desc(count_col))
            .limit(TOP_REASONS)
        )

        return {
            "total": total,
            "by_type": {t: c for t, c in type_rows.all()},
            "by_reason": {r: c for r, c in reason_rows.all()},
            "last_day": last_day,
            "last_week": last_week,
        }

    async def retry(self, dead_letter_id: int) -> Notification:
        """Manual restore: new PENDING notification (retry_count 0) + DLQ row removed, atomically."""
        dead_letter = await self.session.get(DeadLetterNotification, dead_letter_id)
        if not dead_letter:
            raise DeadLetterNotFound(dead_letter_id)

        now = utcnow()
        notification = Notification(
            user_id=dead_letter.user_id,
            type=dead_letter.type,
            title=dead_letter.title,
            message=dead_letter.message,
            data=dead_letter.data,
            delivery_channel=dead_letter.delivery_channel,
            status=NotificationStatus.PENDING.value,
            retry_count=0,
            max_retries=settings.DEFAULT_MAX_RETRIES,
            scheduled_at=now,  # picked up by the next due tick
        )
        try:
            self.session.add(notification)
            await self.session.delete(dead_letter)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(notification)

        logger.info(f"Dead letter {dead_letter_id} restored as notification {notification.id}")
        return notification

    async def cleanup(self, retention_days: Optional[int] = None) -> int:
        days = settings.DEAD_LETTER_RETENTION_DAYS if retention_days is None else retention_days
        threshold = utcnow() - timedelta(days=days)
        result = await self.session.execute(
            delete(DeadLetterNotification)
            .where(DeadLetterNotification.moved_at < threshold)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        count = result.rowcount or 0
        logger.info(f"Cleaned up {count} old dead letter notifications")
        return count
