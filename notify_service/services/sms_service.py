from typing import Optional

from notify_service.core.config import settings
from notify_service.services.gateway_sender import GatewaySender


class SmsService(GatewaySender):
    """SMS channel; title and message are joined into one text body"""

    channel = "SMS"

    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None, **kwargs):
        super().__init__(
            url if url is not None else settings.SMS_GATEWAY_URL,
            api_key if api_key is not None else settings.GATEWAY_API_KEY,
            **kwargs,
        )

    async def send(self, user_id: str, title: str, message: str) -> bool:
        text = f"[{title}] {message}" if title else message
        return await self._post({"userId": user_id, "text": text})
