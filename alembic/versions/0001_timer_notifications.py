"""Create activity and push notification tables"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_timer_notifications"
down_revision = None
branch_labels = None
depends_on = None

EVENT_TYPES = ("ACTIVITY_CREATED", "FEED_TIMER_EXPIRED", "DIAPER_TIMER_EXPIRED")


def upgrade() -> None:
    op.create_table(
        "babies",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("family_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), server_default=sa.text("''"), nullable=False),
        sa.Column("feed_warning_time", sa.String(length=5), server_default=sa.text("'03:00'"), nullable=False),
        sa.Column("diaper_warning_time", sa.String(length=5), server_default=sa.text("'02:00'"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=True),
    )
    op.create_index("ix_babies_family_id", "babies", ["family_id"], unique=False)

    for table in ("feed_logs", "diaper_logs"):
        op.create_table(
            table,
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("baby_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("babies.id", ondelete="CASCADE"), nullable=False),
            sa.Column("time", sa.DateTime(timezone=True), nullable=False),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index(f"ix_{table}_baby_id", table, ["baby_id"], unique=False)
        op.create_index(f"ix_{table}_time", table, ["time"], unique=False)

    op.create_table(
        "push_subscriptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("family_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("caretaker_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("endpoint", sa.Text(), nullable=False),
        sa.Column("p256dh", sa.Text(), nullable=False),
        sa.Column("auth", sa.Text(), nullable=False),
        sa.Column("device_label", sa.String(length=255), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("failure_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_failure_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_success_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=True),
        sa.UniqueConstraint("endpoint", name="uq_push_subscriptions_endpoint"),
    )
    op.create_index("ix_push_subscriptions_family_id", "push_subscriptions", ["family_id"], unique=False)
    op.create_index("ix_push_subscriptions_account_id", "push_subscriptions", ["account_id"], unique=False)
    op.create_index("ix_push_subscriptions_caretaker_id", "push_subscriptions", ["caretaker_id"], unique=False)
    op.create_index("ix_push_subscriptions_failure_count", "push_subscriptions", ["failure_count"], unique=False)

    op.create_table(
        "notification_preferences",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "subscription_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("push_subscriptions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("baby_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("babies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_type", sa.Enum(*EVENT_TYPES, name="notification_event_type", native_enum=False), nullable=False),
        sa.Column("activity_types", postgresql.ARRAY(sa.Text()), nullable=True),
        sa.Column("timer_interval_minutes", sa.Integer(), nullable=True),
        sa.Column("last_timer_notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("enabled", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=True),
        sa.UniqueConstraint(
            "subscription_id", "baby_id", "event_type", name="uq_preference_subscription_baby_event"
        ),
    )
    op.create_index("ix_notification_preferences_subscription_id", "notification_preferences", ["subscription_id"], unique=False)
    op.create_index("ix_notification_preferences_baby_id", "notification_preferences", ["baby_id"], unique=False)
    op.create_index("ix_notification_preferences_event_type", "notification_preferences", ["event_type"], unique=False)
    op.create_index("ix_notification_preferences_enabled", "notification_preferences", ["enabled"], unique=False)

    op.create_table(
        "notification_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("subscription_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_type", sa.Enum(*EVENT_TYPES, name="notification_event_type", native_enum=False), nullable=False),
        sa.Column("activity_type", sa.String(length=50), nullable=True),
        sa.Column("baby_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("http_status", sa.Integer(), nullable=True),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=False),
    )
    op.create_index("ix_notification_logs_subscription_id", "notification_logs", ["subscription_id"], unique=False)
    op.create_index("ix_notification_logs_baby_id", "notification_logs", ["baby_id"], unique=False)
    op.create_index("ix_notification_logs_success", "notification_logs", ["success"], unique=False)
    op.create_index("ix_notification_logs_created_at", "notification_logs", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_table("notification_logs")
    op.drop_table("notification_preferences")
    op.drop_table("push_subscriptions")
    op.drop_table("diaper_logs")
    op.drop_table("feed_logs")
    op.drop_table("babies")
