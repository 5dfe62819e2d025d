from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from wooffy_api.core.time import utcnow
from wooffy_api.db.base import Base


class NotificationType(str, Enum):
    MEMBERSHIP_EXPIRY = "membership_expiry"
    MEMBERSHIP_EXPIRED = "membership_expired"
    BUSINESS_BIRTHDAY_REMINDER = "business_birthday_reminder"
    PET_BIRTHDAY = "pet_birthday"
    ANNIVERSARY = "anniversary"
    REDEMPTION = "redemption"


class Notification(Base):
    """In-app notification; the authoritative record of a reminder."""

    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(48), nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    is_read = Column(Boolean, nullable=False, default=False, server_default="false")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class NotificationDispatchKey(Base):
    """Idempotency key claimed before a reminder is emitted."""

    __tablename__ = "notification_dispatch_keys"
    __table_args__ = (
        UniqueConstraint("entity_id", "notification_type", "period", name="uq_notification_dispatch_keys"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    entity_id = Column(String(128), nullable=False)
    notification_type = Column(String(48), nullable=False)
    period = Column(String(32), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class ProactiveAlert(Base):
    __tablename__ = "ai_proactive_alerts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    alert_type = Column(String(32), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(String(16), nullable=False, default="normal")
    data = Column(JSON, nullable=False, default=dict)
    is_dismissed = Column(Boolean, nullable=False, default=False, server_default="false")
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
