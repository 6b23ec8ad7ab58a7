from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from notify_service.models.notification import NotificationType


class TemplateCreateRequest(BaseModel):
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    variables: Optional[dict[str, Any]] = None  # variable name -> description
    is_active: bool = True


class TemplateUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    variables: Optional[dict[str, Any]] = None
    is_active: Optional[bool] = None


class TemplateView(BaseModel):
    id: int
    type: str
    title: str
    content: str
    variables: Optional[dict[str, Any]] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TemplateListResponse(BaseModel):
    items: list[TemplateView] = []
    total: int = 0


class TemplatePreviewRequest(BaseModel):
    type: NotificationType
    variables: dict[str, Any] = {}


class TemplatePreviewResponse(BaseModel):
    title: str
    message: str
