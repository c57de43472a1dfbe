"""Timer expiration check: the per-tick notification cycle."""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload

from app.config import Settings, settings as default_settings
from app.db.models.baby import DiaperLog, FeedLog
from app.db.models.notification import (
    TIMER_EVENT_TYPES,
    NotificationEventType,
    NotificationPreference,
)
from app.services.composer import compose_timer_notification
from app.services.delivery import DeliveryService
from app.services.eligibility import is_notification_eligible, parse_warning_time
from app.utils.time import as_utc, minutes_between, utcnow

_ACTIVITY_MODELS = {
    NotificationEventType.FEED_TIMER_EXPIRED: FeedLog,
    NotificationEventType.DIAPER_TIMER_EXPIRED: DiaperLog,
}


@dataclass
class TimerCandidate:
    """One device's timer preference, detached from the ORM session."""

    preference_id: uuid.UUID
    subscription_id: uuid.UUID
    subscription_info: Dict[str, Any]
    last_notified_at: Optional[datetime]
    interval_minutes: Optional[int]


@dataclass
class BabyTimers:
    baby_id: uuid.UUID
    display_name: str
    warning_times: Dict[NotificationEventType, Optional[str]]
    candidates: Dict[NotificationEventType, List[TimerCandidate]] = field(default_factory=dict)


class TimerCheckService:
    """Find expired timers and notify every subscribed device that is due.

    Each candidate is claimed with a conditional update on
    ``last_timer_notified_at`` before sending, so two overlapping runs cannot
    both notify it. A failed send releases the claim, leaving the column set
    only for successful deliveries.
    """

    def __init__(
        self,
        db: Session,
        delivery: DeliveryService,
        settings: Settings = default_settings,
    ) -> None:
        self.db = db
        self.delivery = delivery
        self.settings = settings

    def check_timer_expirations(self, now: Optional[datetime] = None) -> int:
        """Run one pass and return the number of notifications sent. Never raises."""

        if not self.settings.ENABLE_NOTIFICATIONS:
            logger.info("Notifications disabled, skipping timer check")
            return 0

        started = time.monotonic()
        sent = 0
        try:
            babies = self._load_baby_timers()
            if not babies:
                logger.info("No enabled timer preferences found")
                return 0

            logger.info("Timer check started", babies=len(babies))
            for baby in babies:
                for event_type, candidates in baby.candidates.items():
                    sent += self._process_timer(baby, event_type, candidates, now)
        except Exception as exc:
            self.db.rollback()
            logger.error("Error in timer expiration check", error=str(exc))
            return sent

        logger.info(
            "Timer check completed",
            notifications_sent=sent,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return sent

    def _load_baby_timers(self) -> List[BabyTimers]:
        stmt = (
            select(NotificationPreference)
            .options(
                joinedload(NotificationPreference.subscription),
                joinedload(NotificationPreference.baby),
            )
            .where(NotificationPreference.event_type.in_(TIMER_EVENT_TYPES))
            .where(NotificationPreference.enabled.is_(True))
            .execution_options(populate_existing=True)
        )
        preferences = self.db.scalars(stmt).unique().all()

        grouped: Dict[uuid.UUID, BabyTimers] = {}
        for preference in preferences:
            baby, subscription = preference.baby, preference.subscription
            if baby is None or subscription is None:
                continue
            if baby.id not in grouped:
                grouped[baby.id] = BabyTimers(
                    baby_id=baby.id,
                    display_name=baby.display_name,
                    warning_times={
                        NotificationEventType.FEED_TIMER_EXPIRED: baby.feed_warning_time,
                        NotificationEventType.DIAPER_TIMER_EXPIRED: baby.diaper_warning_time,
                    },
                )
            grouped[baby.id].candidates.setdefault(preference.event_type, []).append(
                TimerCandidate(
                    preference_id=preference.id,
                    subscription_id=subscription.id,
                    subscription_info=subscription.subscription_info(),
                    last_notified_at=as_utc(preference.last_timer_notified_at),
                    interval_minutes=preference.timer_interval_minutes,
                )
            )
        return list(grouped.values())

    def last_activity_time(self, baby_id: uuid.UUID, event_type: NotificationEventType) -> Optional[datetime]:
        """Most recent non-deleted activity time relevant to ``event_type``."""

        model = _ACTIVITY_MODELS[event_type]
        stmt = (
            select(model.time)
            .where(model.baby_id == baby_id)
            .where(model.deleted_at.is_(None))
            .order_by(model.time.desc())
            .limit(1)
        )
        return as_utc(self.db.scalar(stmt))

    def _process_timer(
        self,
        baby: BabyTimers,
        event_type: NotificationEventType,
        candidates: List[TimerCandidate],
        now: Optional[datetime],
    ) -> int:
        try:
            threshold_minutes = parse_warning_time(baby.warning_times.get(event_type))
            last_activity = self.last_activity_time(baby.baby_id, event_type)
        except Exception as exc:
            self.db.rollback()
            logger.error(
                "Failed to read timer state",
                baby_id=str(baby.baby_id),
                event_type=event_type.value,
                error=str(exc),
            )
            return 0

        if last_activity is None:
            logger.debug("No activity recorded, skipping timer", baby_id=str(baby.baby_id), event_type=event_type.value)
            return 0

        sent = 0
        for candidate in candidates:
            try:
                check_time = now or utcnow()
                eligible = is_notification_eligible(
                    last_activity,
                    threshold_minutes,
                    candidate.last_notified_at,
                    candidate.interval_minutes,
                    now=check_time,
                )
                logger.debug(
                    "Timer preference evaluated",
                    preference_id=str(candidate.preference_id),
                    eligible=eligible,
                    interval=candidate.interval_minutes,
                )
                if eligible and self._dispatch(candidate, baby, event_type, last_activity, check_time):
                    sent += 1
            except Exception as exc:
                self.db.rollback()
                logger.error(
                    "Error sending timer notification",
                    preference_id=str(candidate.preference_id),
                    event_type=event_type.value,
                    error=str(exc),
                )
        return sent

    def _dispatch(
        self,
        candidate: TimerCandidate,
        baby: BabyTimers,
        event_type: NotificationEventType,
        last_activity: datetime,
        now: datetime,
    ) -> bool:
        previous = candidate.last_notified_at
        if not self._claim(candidate.preference_id, previous, now):
            logger.info(
                "Timer notification already claimed by another run",
                preference_id=str(candidate.preference_id),
            )
            return False

        payload = compose_timer_notification(
            baby.baby_id,
            baby.display_name,
            event_type,
            minutes_between(last_activity, now),
        )
        try:
            result = self.delivery.send_with_logging(
                candidate.subscription_id,
                candidate.subscription_info,
                payload,
                event_type,
                baby.baby_id,
            )
        except Exception:
            self._release(candidate.preference_id, now, previous)
            raise

        if not result.success:
            self._release(candidate.preference_id, now, previous)
            return False

        candidate.last_notified_at = now
        return True

    def _claim(self, preference_id: uuid.UUID, expected: Optional[datetime], now: datetime) -> bool:
        """Set ``last_timer_notified_at`` only if it still holds ``expected``."""

        stmt = update(NotificationPreference).where(NotificationPreference.id == preference_id)
        if expected is None:
            stmt = stmt.where(NotificationPreference.last_timer_notified_at.is_(None))
        else:
            stmt = stmt.where(NotificationPreference.last_timer_notified_at == expected)
        result = self.db.execute(
            stmt.values(last_timer_notified_at=now).execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def _release(self, preference_id: uuid.UUID, claimed: datetime, previous: Optional[datetime]) -> None:
        try:
            self.db.execute(
                update(NotificationPreference)
                .where(NotificationPreference.id == preference_id)
                .where(NotificationPreference.last_timer_notified_at == claimed)
                .values(last_timer_notified_at=previous)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.error("Failed to release timer claim", preference_id=str(preference_id), error=str(exc))


__all__ = ["BabyTimers", "TimerCandidate", "TimerCheckService"]
