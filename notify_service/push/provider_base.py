from typing import List, Protocol
from .models import PushPayload, PushResult


class PushProvider(Protocol):
    """Unified interface of a push delivery backend (used by PushService)"""

    async def send_multicast(self, tokens: List[str], payload: PushPayload) -> PushResult:
        """Send one payload to many device tokens, reporting per-token outcome"""
        ...

    async def validate_token(self, token: str) -> bool:
        """Dry-run check that a token is still deliverable"""
        ...
