"""Per-user channel opt-in settings"""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.models.notification import DeliveryChannel, NotificationSettings

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "email": True,
    "push": True,
    "sms": False,
    "marketing": False,
}

CHANNEL_FLAGS = {
    DeliveryChannel.PUSH.value: "push",
    DeliveryChannel.EMAIL.value: "email",
    DeliveryChannel.SMS.value: "sms",
}


class PreferenceService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_settings(self, user_id: str) -> NotificationSettings:
        """Return the user's settings, creating the default row on first read."""
        existing = await self._find(user_id)
        if existing:
            return existing

        row = NotificationSettings(user_id=user_id, **DEFAULT_SETTINGS)
        self.session.add(row)
        try:
            await self.session.commit()
        except IntegrityError:
            # created concurrently by another request
            await self.session.rollback()
            return await self._find(user_id)
        await self.session.refresh(row)
        logger.info(f"Created default notification settings for user {user_id}")
        return row

    async def update_settings(self, user_id: str, payload: dict) -> NotificationSettings:
        """Upsert: unspecified flags keep their current (or default) value."""
        row = await self.get_settings(user_id)
        for key in DEFAULT_SETTINGS:
            value = payload.get(key)
            if value is not None:
                setattr(row, key, bool(value))
        await self.session.commit()
        await self.session.refresh(row)
        return row

    async def is_channel_enabled(self, user_id: str, channel: str) -> bool:
        row = await self.get_settings(user_id)
        flag = CHANNEL_FLAGS.get(getattr(channel, "value", channel), "push")
        return bool(getattr(row, flag))

    async def _find(self, user_id: str):
        stmt = select(NotificationSettings).where(NotificationSettings.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()
