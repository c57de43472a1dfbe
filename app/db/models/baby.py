"""Read-only views of the activity-tracking tables the notification engine consults."""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from app.db.base import Base


class Baby(Base):
    """A child tracked by a family, with its configured warning thresholds."""

    __tablename__ = "babies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    family_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")

    # "HH:MM" durations
    feed_warning_time = Column(String(5), nullable=False, default="03:00")
    diaper_warning_time = Column(String(5), nullable=False, default="02:00")

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()


class FeedLog(Base):
    """A logged feed. Only ``time`` and the soft-delete marker are read here."""

    __tablename__ = "feed_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    baby_id = Column(UUID(as_uuid=True), ForeignKey("babies.id", ondelete="CASCADE"), nullable=False, index=True)
    time = Column(DateTime(timezone=True), nullable=False, index=True)
    deleted_at = Column(DateTime(timezone=True))


class DiaperLog(Base):
    """A logged diaper change. Only ``time`` and the soft-delete marker are read here."""

    __tablename__ = "diaper_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    baby_id = Column(UUID(as_uuid=True), ForeignKey("babies.id", ondelete="CASCADE"), nullable=False, index=True)
    time = Column(DateTime(timezone=True), nullable=False, index=True)
    deleted_at = Column(DateTime(timezone=True))
