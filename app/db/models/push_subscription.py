"""Push Notification Subscription model."""
import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class PushSubscription(Base):
    """Stores Web Push API subscription details and delivery health for one device."""

    __tablename__ = "push_subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    family_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    account_id = Column(UUID(as_uuid=True), index=True)
    caretaker_id = Column(UUID(as_uuid=True), index=True)

    endpoint = Column(Text, nullable=False, unique=True)
    p256dh = Column(Text, nullable=False)
    auth = Column(Text, nullable=False)

    device_label = Column(String(255))
    user_agent = Column(String(512))

    # Health
    failure_count = Column(Integer, nullable=False, default=0, index=True)
    last_failure_at = Column(DateTime(timezone=True))
    last_success_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    preferences = relationship(
        "NotificationPreference",
        back_populates="subscription",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def subscription_info(self) -> dict:
        """Return the structure expected by the Web Push transport."""

        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}
