"""Device token lookup against the iam-service device registry"""
from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from notify_service.core.config import settings
from .models import DeviceToken

logger = logging.getLogger(__name__)


class DeviceRegistryClient:
    """Never raises: any failure is logged and reported as "no devices"."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.IAM_SERVICE_URL
        self.timeout = timeout if timeout is not None else settings.DEVICE_LOOKUP_TIMEOUT_SECONDS
        self._transport = transport

    async def get_device_tokens(self, user_id: str) -> List[DeviceToken]:
        if not self.base_url:
            logger.warning("IAM_SERVICE_URL not configured, no device tokens available")
            return []

        url = f"{self.base_url.rstrip('/')}/internal/users/{user_id}/devices/tokens"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(url)
            if resp.status_code != 200:
                logger.error(f"Failed to get device tokens for user {user_id}: HTTP {resp.status_code}")
                return []
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching device tokens for user {user_id}: {e}")
            return []

        if not (isinstance(body, dict) and body.get("success") and isinstance(body.get("data"), list)):
            return []

        tokens = []
        for item in body["data"]:
            if isinstance(item, dict) and item.get("token"):
                tokens.append(DeviceToken(platform=str(item.get("platform") or "UNKNOWN"), token=str(item["token"])))
        return tokens
