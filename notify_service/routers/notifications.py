from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.models.db import get_session
from notify_service.models.notification import NotificationStatus
from notify_service.routers.deps import get_channel_senders, get_user_id, parse_type
from notify_service.schemas.notification import (
    MarkAllReadResponse,
    NotificationCreateRequest,
    NotificationListResponse,
    NotificationUpdateRequest,
    NotificationView,
    SendToUsersRequest,
    UnreadCountResponse,
)
from notify_service.services.delivery_service import ChannelSenders, DeliveryService
from notify_service.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post("", response_model=NotificationView, status_code=201)
async def create_notification(
    payload: NotificationCreateRequest,
    session: AsyncSession = Depends(get_session),
    senders: ChannelSenders = Depends(get_channel_senders),
):
    """Create a notification; delivered right away unless scheduled for later."""
    svc = NotificationService(session)
    notification = await svc.create(**payload.model_dump())
    await DeliveryService(session, senders).deliver_now([notification])
    notification = await svc.get_by_id(notification.id)
    return NotificationView.model_validate(notification, from_attributes=True)


@router.post("/send-to-users", response_model=list[NotificationView], status_code=201)
async def send_to_users(
    payload: SendToUsersRequest,
    session: AsyncSession = Depends(get_session),
    senders: ChannelSenders = Depends(get_channel_senders),
):
    svc = NotificationService(session)
    notifications = await svc.send_to_users(**payload.model_dump())
    await DeliveryService(session, senders).deliver_now(notifications)
    refreshed = [await svc.get_by_id(n.id) for n in notifications]
    return [NotificationView.model_validate(n, from_attributes=True) for n in refreshed]


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[str] = None,
    status: Optional[NotificationStatus] = None,
    unread_only: bool = False,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
):
    svc = NotificationService(session)
    result = await svc.find_page(user_id, page, limit, parse_type(type), status, unread_only)
    items = [NotificationView.model_validate(n, from_attributes=True) for n in result["items"]]
    return NotificationListResponse(
        items=items, total=result["total"], page=result["page"], total_pages=result["total_pages"],
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
):
    count = await NotificationService(session).unread_count(user_id)
    return UnreadCountResponse(count=count)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
):
    count = await NotificationService(session).mark_all_read(user_id)
    return MarkAllReadResponse(count=count)


@router.get("/{notification_id}", response_model=NotificationView)
async def get_notification(
    notification_id: int,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
):
    notification = await NotificationService(session).get(notification_id, user_id)
    return NotificationView.model_validate(notification, from_attributes=True)


@router.patch("/{notification_id}", response_model=NotificationView)
async def update_notification(
    notification_id: int,
    payload: NotificationUpdateRequest,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
):
    svc = NotificationService(session)
    notification = await svc.update(notification_id, user_id, payload.model_dump(exclude_none=True))
    return NotificationView.model_validate(notification, from_attributes=True)


@router.post("/{notification_id}/read", response_model=NotificationView)
async def mark_read(
    notification_id: int,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
):
    notification = await NotificationService(session).mark_read(notification_id, user_id)
    return NotificationView.model_validate(notification, from_attributes=True)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
):
    await NotificationService(session).delete(notification_id, user_id)
    return {"status": "ok"}
