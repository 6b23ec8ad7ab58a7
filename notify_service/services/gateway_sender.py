"""HTTP gateway transport shared by the email and SMS channels"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from notify_service.core.config import settings

logger = logging.getLogger(__name__)


class GatewaySender:
    channel = "GATEWAY"

    def __init__(
        self,
        url: Optional[str],
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS
        self._transport = transport

    async def _post(self, body: dict) -> bool:
        """POST to the gateway; True on 2xx. Transport errors are returned as False."""
        if not self.url:
            logger.info(f"[SIMULATED] {self.channel} to user {body.get('userId')}: {body.get('subject') or body.get('text', '')[:40]}")
            return True

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"[{self.channel}] gateway request failed: {e}")
            return False

        if resp.is_success:
            return True
        logger.warning(f"[{self.channel}] gateway rejected message: HTTP {resp.status_code} {resp.text[:200]}")
        return False
