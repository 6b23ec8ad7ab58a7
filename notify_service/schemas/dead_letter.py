"""Dead-letter queue schemas"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class DeadLetterView(BaseModel):
    id: int
    original_id: int
    user_id: str
    type: str
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    delivery_channel: Optional[str] = None
    failure_reason: str
    retry_count: int
    moved_at: datetime


class DeadLetterListResponse(BaseModel):
    items: list[DeadLetterView] = []
    total: int = 0
    page: int = 1
    total_pages: int = 0


class DeadLetterStatsView(BaseModel):
    total: int = 0
    by_type: dict[str, int] = {}
    by_reason: dict[str, int] = {}
    last_day: int = 0
    last_week: int = 0


class DeadLetterCleanupRequest(BaseModel):
    retention_days: int = Field(30, ge=1, le=3650)


class DeadLetterCleanupResponse(BaseModel):
    count: int
