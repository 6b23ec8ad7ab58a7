"""Admin: dead-letter queue inspection, restore and cleanup"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.models.db import get_session
from notify_service.routers.deps import parse_type
from notify_service.schemas.dead_letter import (
    DeadLetterCleanupRequest,
    DeadLetterCleanupResponse,
    DeadLetterListResponse,
    DeadLetterStatsView,
    DeadLetterView,
)
from notify_service.schemas.notification import NotificationView
from notify_service.services.dead_letter_service import DeadLetterService

router = APIRouter(prefix="/admin/dead-letter", tags=["Admin-DeadLetter"])


@router.get("", response_model=DeadLetterListResponse)
async def list_dead_letters(
    user_id: Optional[str] = None,
    type: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    result = await DeadLetterService(session).find_all(user_id, parse_type(type), page, limit)
    items = [DeadLetterView.model_validate(d, from_attributes=True) for d in result["items"]]
    return DeadLetterListResponse(
        items=items, total=result["total"], page=result["page"], total_pages=result["total_pages"],
    )


@router.get("/stats", response_model=DeadLetterStatsView)
async def dead_letter_stats(session: AsyncSession = Depends(get_session)):
    stats = await DeadLetterService(session).get_stats()
    return DeadLetterStatsView(**stats)


@router.post("/{dead_letter_id}/retry", response_model=NotificationView)
async def retry_dead_letter(
    dead_letter_id: int,
    session: AsyncSession = Depends(get_session),
):
    """Restore a dead letter as a fresh PENDING notification (picked up by the next due tick)."""
    notification = await DeadLetterService(session).retry(dead_letter_id)
    return NotificationView.model_validate(notification, from_attributes=True)


@router.post("/cleanup", response_model=DeadLetterCleanupResponse)
async def cleanup_dead_letters(
    payload: DeadLetterCleanupRequest,
    session: AsyncSession = Depends(get_session),
):
    count = await DeadLetterService(session).cleanup(payload.retention_days)
    return DeadLetterCleanupResponse(count=count)
