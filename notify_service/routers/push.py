"""Admin: push device token checks"""
from fastapi import APIRouter, Depends

from notify_service.routers.deps import get_channel_senders
from notify_service.schemas.push import TokenValidationRequest, TokenValidationResponse
from notify_service.services.delivery_service import ChannelSenders

router = APIRouter(prefix="/admin/push", tags=["Admin-Push"])


@router.post("/validate-token", response_model=TokenValidationResponse)
async def validate_token(payload: TokenValidationRequest, senders: ChannelSenders = Depends(get_channel_senders)):
    """Dry-run send to one device token; nothing reaches the device."""
    return TokenValidationResponse(valid=await senders.push.validate_token(payload.token))
