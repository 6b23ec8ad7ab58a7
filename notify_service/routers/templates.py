from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.core.exceptions import TemplateNotFound
from notify_service.models.db import get_session
from notify_service.routers.deps import parse_type
from notify_service.schemas.template import (
    TemplateCreateRequest,
    TemplateListResponse,
    TemplatePreviewRequest,
    TemplatePreviewResponse,
    TemplateUpdateRequest,
    TemplateView,
)
from notify_service.services.template_service import TemplateService

router = APIRouter(prefix="/admin/templates", tags=["Admin-Templates"])


@router.post("", response_model=TemplateView, status_code=201)
async def create_template(
    payload: TemplateCreateRequest,
    session: AsyncSession = Depends(get_session),
):
    template = await TemplateService(session).create_template(payload.model_dump())
    return TemplateView.model_validate(template, from_attributes=True)


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    type: Optional[str] = None,
    active_only: bool = False,
    session: AsyncSession = Depends(get_session),
):
    templates = await TemplateService(session).list_templates(parse_type(type), active_only)
    items = [TemplateView.model_validate(t, from_attributes=True) for t in templates]
    return TemplateListResponse(items=items, total=len(items))


@router.put("/{template_id}", response_model=TemplateView)
async def update_template(
    template_id: int,
    payload: TemplateUpdateRequest,
    session: AsyncSession = Depends(get_session),
):
    template = await TemplateService(session).update_template(template_id, payload.model_dump(exclude_none=True))
    return TemplateView.model_validate(template, from_attributes=True)


@router.post("/preview", response_model=TemplatePreviewResponse)
async def preview_template(
    payload: TemplatePreviewRequest,
    session: AsyncSession = Depends(get_session),
):
    """Render the active template for a type without creating a notification."""
    rendered = await TemplateService(session).generate_from_template(payload.type, payload.variables)
    if rendered is None:
        raise TemplateNotFound(f"No active template for type {payload.type.value}")
    return TemplatePreviewResponse(**rendered)
