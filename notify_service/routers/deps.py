"""Shared router dependencies"""
from typing import Optional

from fastapi import Header, HTTPException, Request

from notify_service.core.exceptions import InvalidNotificationType
from notify_service.models.notification import NotificationType
from notify_service.services.delivery_service import ChannelSenders


async def get_user_id(x_user_id: str = Header(..., alias="X-User-Id", min_length=1, max_length=64)) -> str:
    """Caller identity, set by the gateway in front of this service."""
    return x_user_id


def get_channel_senders(request: Request) -> ChannelSenders:
    return request.app.state.channel_senders


def get_scheduler(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler is disabled")
    return scheduler


def parse_type(value: Optional[str]) -> Optional[NotificationType]:
    if value is None or value == "":
        return None
    try:
        return NotificationType(value.upper())
    except ValueError:
        raise InvalidNotificationType(f"Unknown notification type: {value}")
