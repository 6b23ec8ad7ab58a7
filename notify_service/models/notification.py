"""Notification persistence models"""
from enum import Enum

from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Text, Boolean, JSON, Index

from notify_service.core.timeutils import utcnow
from notify_service.models.db import Base


class NotificationType(str, Enum):
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    BOOKING_REMINDER = "BOOKING_REMINDER"
    PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    FRIEND_REQUEST = "FRIEND_REQUEST"
    FRIEND_ACCEPTED = "FRIEND_ACCEPTED"
    CHAT_MESSAGE = "CHAT_MESSAGE"
    SYSTEM_ALERT = "SYSTEM_ALERT"
    PROMOTIONAL = "PROMOTIONAL"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    READ = "READ"


class DeliveryChannel(str, Enum):
    PUSH = "PUSH"
    EMAIL = "EMAIL"
    SMS = "SMS"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    type = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    delivery_channel = Column(String(16), nullable=True)  # NULL -> PUSH
    status = Column(String(16), nullable=False, default=NotificationStatus.PENDING.value)
    retry_count = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=3)
    scheduled_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    read_at = Column(DateTime, nullable=True)
    last_attempt_at = Column(DateTime, nullable=True)
    claimed_until = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_notif_user_created", "user_id", "created_at"),
        Index("idx_notif_status_scheduled", "status", "scheduled_at"),
        Index("idx_notif_status_retry", "status", "retry_count"),
        {"sqlite_autoincrement": True},
    )


class NotificationSettings(Base):
    __tablename__ = "notification_settings"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, unique=True)
    email = Column(Boolean, nullable=False, default=True)
    sms = Column(Boolean, nullable=False, default=False)
    push = Column(Boolean, nullable=False, default=True)
    marketing = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = ({"sqlite_autoincrement": True},)


class DeadLetterNotification(Base):
    __tablename__ = "dead_letter_notifications"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    original_id = Column(BigInteger, nullable=False)
    user_id = Column(String(64), nullable=False)
    type = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    delivery_channel = Column(String(16), nullable=True)
    failure_reason = Column(String(255), nullable=False)
    retry_count = Column(Integer, nullable=False, default=0)
    moved_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_dlq_user_type", "user_id", "type"),
        Index("idx_dlq_moved_at", "moved_at"),
        {"sqlite_autoincrement": True},
    )


class NotificationTemplate(Base):
    __tablename__ = "notification_templates"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    type = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    variables = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_template_type_active", "type", "is_active"),
        {"sqlite_autoincrement": True},
    )
