"""Notification templates: {{var}} substitution only, no control flow"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.core.exceptions import TemplateNotFound
from notify_service.models.notification import NotificationTemplate

logger = logging.getLogger(__name__)


@dataclass
class RenderedTemplate:
    title: str
    content: str


def render_text(text: str, variables: dict[str, Any]) -> str:
    for key, value in variables.items():
        text = text.replace("{{" + str(key) + "}}", "" if value is None else str(value))
    return text


def render(template, variables: dict[str, Any]) -> RenderedTemplate:
    """Replace every ``{{key}}`` in title and content; unknown placeholders stay literal."""
    return RenderedTemplate(
        title=render_text(template.title, variables or {}),
        content=render_text(template.content, variables or {}),
    )


class TemplateService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_active(self, type: str) -> Optional[NotificationTemplate]:
        """Most recently updated active template for the type."""
        stmt = (
            select(NotificationTemplate)
            .where(
                NotificationTemplate.type == getattr(type, "value", type),
                NotificationTemplate.is_active.is_(True),
            )
            .order_by(desc(NotificationTemplate.updated_at), desc(NotificationTemplate.id))
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def generate_from_template(self, type: str, variables: dict[str, Any]) -> Optional[dict]:
        """Render title/message from the active template; None when no template exists."""
        template = await self.find_active(type)
        if not template:
            logger.debug(f"No active template for type {getattr(type, 'value', type)}")
            return None
        rendered = render(template, variables)
        return {"title": rendered.title, "message": rendered.content}

    async def create_template(self, payload: dict) -> NotificationTemplate:
        payload = dict(payload)
        payload["type"] = getattr(payload["type"], "value", payload["type"])
        template = NotificationTemplate(**payload)
        self.session.add(template)
        await self.session.commit()
        await self.session.refresh(template)
        logger.info(f"Template {template.id} created for type {template.type}")
        return template

    async def update_template(self, template_id: int, payload: dict) -> NotificationTemplate:
        template = await self.session.get(NotificationTemplate, template_id)
        if not template:
            raise TemplateNotFound(f"Template {template_id} not found")
        for key, value in payload.items():
            if value is not None and hasattr(template, key):
                setattr(template, key, value)
        await self.session.commit()
        await self.session.refresh(template)
        return template

    async def list_templates(self, type: Optional[str] = None, active_only: bool = False) -> list[NotificationTemplate]:
        stmt = select(NotificationTemplate)
        if type:
            stmt = stmt.where(NotificationTemplate.type == getattr(type, "value", type))
        if active_only:
            stmt = stmt.where(NotificationTemplate.is_active.is_(True))
        stmt = stmt.order_by(NotificationTemplate.type, desc(NotificationTemplate.updated_at))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
