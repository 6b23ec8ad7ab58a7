from typing import Optional

from pydantic import BaseModel


class NotificationSettingsView(BaseModel):
    user_id: str
    email: bool
    sms: bool
    push: bool
    marketing: bool


class NotificationSettingsUpdate(BaseModel):
    email: Optional[bool] = None
    sms: Optional[bool] = None
    push: Optional[bool] = None
    marketing: Optional[bool] = None
