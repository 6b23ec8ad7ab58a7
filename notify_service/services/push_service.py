"""Push channel: fan-out to every registered device of the user"""
from __future__ import annotations

import logging
from typing import Optional

from notify_service.push.device_registry import DeviceRegistryClient
from notify_service.push.models import PushPayload, PushResult
from notify_service.push.provider_base import PushProvider

logger = logging.getLogger(__name__)


class PushService:
    def __init__(self, provider: PushProvider, registry: Optional[DeviceRegistryClient] = None):
        self.provider = provider
        self.registry = registry or DeviceRegistryClient()

    async def send(self, user_id: str, payload: PushPayload) -> PushResult:
        tokens = await self.registry.get_device_tokens(user_id)

        if not tokens:
            logger.info(f"No device tokens found for user {user_id}")
            return PushResult(success_count=0, failure_count=0, failed_tokens=[])

        logger.info(f"Sending push notification to user {user_id} ({len(tokens)} devices)")
        return await self.provider.send_multicast([t.token for t in tokens], payload)

    async def validate_token(self, token: str) -> bool:
        return await self.provider.validate_token(token)
