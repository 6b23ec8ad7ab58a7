from typing import Optional

from notify_service.core.config import settings
from notify_service.services.gateway_sender import GatewaySender


class EmailService(GatewaySender):
    """Email channel; the gateway resolves the user's address from the user id"""

    channel = "EMAIL"

    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None, **kwargs):
        super().__init__(
            url if url is not None else settings.EMAIL_GATEWAY_URL,
            api_key if api_key is not None else settings.GATEWAY_API_KEY,
            **kwargs,
        )

    async def send(self, user_id: str, subject: str, body: str, data: Optional[dict] = None) -> bool:
        return await self._post({
            "userId": user_id,
            "subject": subject,
            "text": body,
            "data": data or {},
        })
