"""Notification service error taxonomy.

Codes follow the platform error catalog (NOTI_xxx / VAL_xxx).
"""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import ORJSONResponse


class NotifyServiceError(Exception):
    code = "SYS_001"
    message = "Internal server error"
    http_status = 500

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class NotificationNotFound(NotifyServiceError):
    code = "NOTI_001"
    message = "Notification not found"
    http_status = 404

    def __init__(self, notification_id: int):
        super().__init__(f"Notification with ID {notification_id} not found")
        self.notification_id = notification_id


class DeadLetterNotFound(NotifyServiceError):
    code = "NOTI_001"
    message = "Dead letter notification not found"
    http_status = 404

    def __init__(self, dead_letter_id: int):
        super().__init__(f"Dead letter notification {dead_letter_id} not found")
        self.dead_letter_id = dead_letter_id


class TemplateNotFound(NotifyServiceError):
    code = "NOTI_003"
    message = "Notification template not found"
    http_status = 404


class InvalidNotificationType(NotifyServiceError):
    code = "NOTI_004"
    message = "Invalid notification type"
    http_status = 400


class NotificationValidationError(NotifyServiceError):
    code = "VAL_001"
    message = "Invalid request"
    http_status = 400


async def notify_service_error_handler(request: Request, exc: NotifyServiceError) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=exc.http_status,
        content={"code": exc.code, "message": exc.message},
    )
