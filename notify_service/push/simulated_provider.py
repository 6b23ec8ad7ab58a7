import logging
from typing import List

from .provider_base import PushProvider
from .models import PushPayload, PushResult

logger = logging.getLogger(__name__)


class SimulatedPushProvider(PushProvider):
    """Placeholder used when no push credentials are configured: every token succeeds"""

    async def send_multicast(self, tokens: List[str], payload: PushPayload) -> PushResult:
        logger.info(f"[SIMULATED] Push sent to {len(tokens)} devices: {payload.title}")
        return PushResult(success_count=len(tokens), failure_count=0, failed_tokens=[])

    async def validate_token(self, token: str) -> bool:
        return True
