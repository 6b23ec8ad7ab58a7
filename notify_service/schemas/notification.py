"""Notification request/response schemas"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from notify_service.models.notification import DeliveryChannel, NotificationStatus, NotificationType

_PRIMITIVES = (str, int, float, bool, type(None))
MAX_DATA_DEPTH = 5


def validate_payload_data(value: Optional[dict], depth: int = 0) -> Optional[dict]:
    """Check that a notification payload is a map of primitives / nested maps.

    Lists and other containers are rejected; the payload is forwarded to push
    providers as a flat string map so it must stay serializable.
    """
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError("data must be an object")
    if depth > MAX_DATA_DEPTH:
        raise ValueError(f"data nesting deeper than {MAX_DATA_DEPTH} levels")
    for key, item in value.items():
        if not isinstance(key, str):
            raise ValueError("data keys must be strings")
        if isinstance(item, dict):
            validate_payload_data(item, depth + 1)
        elif not isinstance(item, _PRIMITIVES):
            raise ValueError(f"data['{key}'] must be a string, number, boolean, null or object")
    return value


class NotificationCreateRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    data: Optional[dict[str, Any]] = None
    delivery_channel: Optional[DeliveryChannel] = None
    scheduled_at: Optional[datetime] = None

    @field_validator("data")
    @classmethod
    def check_data(cls, value):
        return validate_payload_data(value)


class SendToUsersRequest(BaseModel):
    user_ids: list[str] = Field(..., min_length=1)
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    data: Optional[dict[str, Any]] = None
    delivery_channel: Optional[DeliveryChannel] = None
    scheduled_at: Optional[datetime] = None

    @field_validator("data")
    @classmethod
    def check_data(cls, value):
        return validate_payload_data(value)


class NotificationUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    message: Optional[str] = Field(None, min_length=1)
    data: Optional[dict[str, Any]] = None
    status: Optional[NotificationStatus] = None

    @field_validator("data")
    @classmethod
    def check_data(cls, value):
        return validate_payload_data(value)


class NotificationView(BaseModel):
    id: int
    user_id: str
    type: str
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    delivery_channel: Optional[str] = None
    status: str
    retry_count: int
    max_retries: int
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class NotificationListResponse(BaseModel):
    items: list[NotificationView] = []
    total: int = 0
    page: int = 1
    total_pages: int = 0


class MarkAllReadResponse(BaseModel):
    count: int


class UnreadCountResponse(BaseModel):
    count: int
