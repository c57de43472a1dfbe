"""Notification preference and delivery audit models."""
import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import StringList
from app.utils.time import utcnow


class NotificationEventType(str, enum.Enum):
    """Events a device can opt into."""

    ACTIVITY_CREATED = "ACTIVITY_CREATED"
    FEED_TIMER_EXPIRED = "FEED_TIMER_EXPIRED"
    DIAPER_TIMER_EXPIRED = "DIAPER_TIMER_EXPIRED"


TIMER_EVENT_TYPES = (
    NotificationEventType.FEED_TIMER_EXPIRED,
    NotificationEventType.DIAPER_TIMER_EXPIRED,
)


class NotificationPreference(Base):
    """One device's opt-in to one event type for one baby."""

    __tablename__ = "notification_preferences"
    __table_args__ = (
        UniqueConstraint(
            "subscription_id", "baby_id", "event_type", name="uq_preference_subscription_baby_event"
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    subscription_id = Column(
        UUID(as_uuid=True),
        ForeignKey("push_subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    baby_id = Column(
        UUID(as_uuid=True), ForeignKey("babies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type = Column(
        Enum(NotificationEventType, name="notification_event_type", native_enum=False),
        nullable=False,
        index=True,
    )
    activity_types = Column(StringList())  # None means every activity type
    timer_interval_minutes = Column(Integer)  # None means once per expiration
    last_timer_notified_at = Column(DateTime(timezone=True))
    enabled = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    subscription = relationship("PushSubscription", back_populates="preferences")
    baby = relationship("Baby")


class NotificationLog(Base):
    """Append-only record of a single delivery attempt."""

    __tablename__ = "notification_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Not a foreign key: audit rows outlive the subscription they describe
    subscription_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    event_type = Column(
        Enum(NotificationEventType, name="notification_event_type", native_enum=False),
        nullable=False,
    )
    activity_type = Column(String(50))
    baby_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    success = Column(Boolean, nullable=False, index=True)
    error_message = Column(Text)
    http_status = Column(Integer)
    payload = Column(Text)
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True
    )
