"""Platform event ingestion (booking / payment / social / chat)"""
from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.models.db import get_session
from notify_service.routers.deps import get_channel_senders
from notify_service.schemas.events import EventResult
from notify_service.services.delivery_service import ChannelSenders
from notify_service.services.event_service import EventService

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/{event_name}", response_model=EventResult)
async def handle_event(
    event_name: str,
    payload: dict = Body(...),
    session: AsyncSession = Depends(get_session),
    senders: ChannelSenders = Depends(get_channel_senders),
):
    svc = EventService(session, senders)
    if not svc.supports(event_name):
        raise HTTPException(status_code=404, detail=f"Unknown event: {event_name}")
    result = await svc.handle(event_name, payload)
    return EventResult(**result)
