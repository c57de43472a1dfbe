"""Service layer for push subscriptions and notification preferences."""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, joinedload

from app.db.models.baby import Baby
from app.db.models.notification import TIMER_EVENT_TYPES, NotificationEventType, NotificationPreference
from app.db.models.push_subscription import PushSubscription
from app.schemas.notification import PreferenceUpsert, SubscriptionCreate
from app.utils.exceptions import AccessDeniedError, SubscriptionNotFoundError, ValidationError
from app.utils.time import utcnow


@dataclass(frozen=True)
class AuthContext:
    """Tenant and owner identity resolved by the authentication layer."""

    family_id: uuid.UUID
    account_id: Optional[uuid.UUID] = None
    caretaker_id: Optional[uuid.UUID] = None


class SubscriptionService:
    """Registration handshake and preference management for one tenant."""

    def __init__(self, db: Session, auth: AuthContext):
        self.db = db
        self.auth = auth

    def register(self, payload: SubscriptionCreate) -> PushSubscription:
        """Create or refresh the subscription for ``payload.endpoint``."""

        existing = self.db.scalars(
            select(PushSubscription).where(PushSubscription.endpoint == payload.endpoint)
        ).first()

        if existing is not None:
            subscription = existing
            # Re-subscribing proves the endpoint is alive again
            subscription.failure_count = 0
            subscription.last_success_at = utcnow()
        else:
            subscription = PushSubscription(endpoint=payload.endpoint, failure_count=0)
            self.db.add(subscription)

        subscription.family_id = self.auth.family_id
        subscription.account_id = self.auth.account_id
        subscription.caretaker_id = self.auth.caretaker_id
        subscription.p256dh = payload.keys.p256dh
        subscription.auth = payload.keys.auth
        subscription.device_label = payload.device_label
        subscription.user_agent = payload.user_agent

        self.db.commit()
        self.db.refresh(subscription)
        logger.info(
            "Push subscription registered",
            subscription_id=str(subscription.id),
            refreshed=existing is not None,
        )
        return subscription

    def unregister(self, endpoint: str) -> None:
        subscription = self.db.scalars(
            select(PushSubscription).where(PushSubscription.endpoint == endpoint)
        ).first()
        self._delete(subscription)

    def delete(self, subscription_id: uuid.UUID) -> None:
        self._delete(self.db.get(PushSubscription, subscription_id))

    def _delete(self, subscription: Optional[PushSubscription]) -> None:
        owned = self._ensure_owned(subscription)
        self.db.delete(owned)
        self.db.commit()
        logger.info("Push subscription removed", subscription_id=str(owned.id))

    def _ensure_owned(self, subscription: Optional[PushSubscription]) -> PushSubscription:
        if subscription is None:
            raise SubscriptionNotFoundError("Subscription not found")
        if subscription.family_id != self.auth.family_id:
            raise AccessDeniedError("Access denied")
        return subscription

    def _owner_filter(self):
        owners = []
        if self.auth.account_id is not None:
            owners.append(PushSubscription.account_id == self.auth.account_id)
        if self.auth.caretaker_id is not None:
            owners.append(PushSubscription.caretaker_id == self.auth.caretaker_id)
        return or_(*owners) if owners else None

    def list_subscriptions(self) -> list[PushSubscription]:
        stmt = select(PushSubscription).where(PushSubscription.family_id == self.auth.family_id)
        owner_filter = self._owner_filter()
        if owner_filter is not None:
            stmt = stmt.where(owner_filter)
        return list(self.db.scalars(stmt.order_by(PushSubscription.created_at.desc())))

    def list_preferences(self) -> list[NotificationPreference]:
        subscription_ids = [subscription.id for subscription in self.list_subscriptions()]
        if not subscription_ids:
            return []
        stmt = (
            select(NotificationPreference)
            .options(joinedload(NotificationPreference.baby))
            .where(NotificationPreference.subscription_id.in_(subscription_ids))
        )
        return list(self.db.scalars(stmt))

    def upsert_preference(self, payload: PreferenceUpsert) -> NotificationPreference:
        """Create or update the preference keyed by subscription, baby and event."""

        self._ensure_owned(self.db.get(PushSubscription, payload.subscription_id))

        baby = self.db.get(Baby, payload.baby_id)
        if baby is None:
            raise SubscriptionNotFoundError("Baby not found")
        if baby.family_id != self.auth.family_id:
            raise AccessDeniedError("Access denied")

        preference = self.db.scalars(
            select(NotificationPreference)
            .where(NotificationPreference.subscription_id == payload.subscription_id)
            .where(NotificationPreference.baby_id == payload.baby_id)
            .where(NotificationPreference.event_type == payload.event_type)
        ).first()

        changes = payload.model_dump(
            exclude_unset=True,
            include={"activity_types", "timer_interval_minutes", "enabled"},
        )
        _check_fields_for_event(payload.event_type, changes)
        if preference is None:
            preference = NotificationPreference(
                subscription_id=payload.subscription_id,
                baby_id=payload.baby_id,
                event_type=payload.event_type,
                enabled=True,
            )
            self.db.add(preference)

        for field, value in changes.items():
            if field == "enabled" and value is None:
                continue
            setattr(preference, field, value)

        self.db.commit()
        self.db.refresh(preference)
        return preference


def _check_fields_for_event(event_type: NotificationEventType, changes: dict) -> None:
    if changes.get("activity_types") is not None and event_type in TIMER_EVENT_TYPES:
        raise ValidationError("activityTypes only applies to ACTIVITY_CREATED preferences")
    if (
        changes.get("timer_interval_minutes") is not None
        and event_type == NotificationEventType.ACTIVITY_CREATED
    ):
        raise ValidationError("timerIntervalMinutes only applies to timer preferences")


__all__ = ["AuthContext", "SubscriptionService"]
