import logging

from notify_service.core.config import settings
from .provider_base import PushProvider
from .simulated_provider import SimulatedPushProvider
from .fcm_provider import FcmPushProvider
from .credentials import resolve_credentials

logger = logging.getLogger(__name__)


def make_push_provider(cfg=settings) -> PushProvider:
    """Return the FCM provider when credentials resolve, otherwise the simulated one.

    - credentials are looked up through the ordered strategies in credentials.py;
    - with none configured pushes are simulated and the system keeps running.
    """
    credentials = resolve_credentials(cfg)
    if credentials:
        logger.info(f"Push provider: FCM (project {credentials.project_id})")
        return FcmPushProvider(credentials, timeout=cfg.PUSH_TIMEOUT_SECONDS)
    logger.warning("Push credentials not configured. Push notifications will be simulated.")
    return SimulatedPushProvider()
