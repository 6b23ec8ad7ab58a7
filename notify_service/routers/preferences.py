from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notify_service.models.db import get_session
from notify_service.routers.deps import get_user_id
from notify_service.schemas.preferences import NotificationSettingsUpdate, NotificationSettingsView
from notify_service.services.preference_service import PreferenceService

router = APIRouter(prefix="/notification-settings", tags=["Preferences"])


@router.get("", response_model=NotificationSettingsView)
async def get_preferences(
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Channel opt-in flags; defaults are created on first read."""
    settings_row = await PreferenceService(session).get_settings(user_id)
    return NotificationSettingsView.model_validate(settings_row, from_attributes=True)


@router.put("", response_model=NotificationSettingsView)
async def update_preferences(
    payload: NotificationSettingsUpdate,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
):
    settings_row = await PreferenceService(session).update_settings(user_id, payload.model_dump(exclude_none=True))
    return NotificationSettingsView.model_validate(settings_row, from_attributes=True)
