"""Tests for the timer expiration cycle."""
from __future__ import annotations

from datetime import timedelta

import pytest

from app.db.models import DiaperLog, NotificationEventType, NotificationPreference, PushSubscription
from app.services.push import SendResult
from app.services.timer_check import TimerCandidate, TimerCheckService
from app.utils.time import as_utc


@pytest.fixture()
def service(db_session, delivery, notification_settings) -> TimerCheckService:
    return TimerCheckService(db_session, delivery, notification_settings)


def _reload(db_session, preference) -> NotificationPreference:
    db_session.expire_all()
    return db_session.get(NotificationPreference, preference.id)


def test_disabled_engine_sends_nothing(db_session, delivery, disabled_settings, baby, make_subscription, make_preference, log_feed, now) -> None:
    make_preference(make_subscription(), baby)
    log_feed(baby, now - timedelta(hours=5))

    sent = TimerCheckService(db_session, delivery, disabled_settings).check_timer_expirations(now=now)

    assert sent == 0
    assert delivery.push_client.sent == []


def test_expired_feed_timer_notifies_once(db_session, service, push_client, baby, make_subscription, make_preference, log_feed, now) -> None:
    preference = make_preference(make_subscription(), baby)
    log_feed(baby, now - timedelta(hours=3, minutes=5))

    assert service.check_timer_expirations(now=now) == 1
    assert as_utc(_reload(db_session, preference).last_timer_notified_at) == now

    _, payload = push_client.sent[0]
    assert payload["title"] == "Feed Timer Expired"
    assert payload["body"] == "Ada Lovelace hasn't had a feed in 3h 5m"
    assert payload["tag"] == f"timer-{baby.id}-FEED_TIMER_EXPIRED"

    assert service.check_timer_expirations(now=now + timedelta(hours=2)) == 0
    assert len(push_client.sent) == 1


def test_new_activity_opens_new_episode(db_session, service, push_client, baby, make_subscription, make_preference, log_feed, now) -> None:
    make_preference(make_subscription(), baby)
    log_feed(baby, now - timedelta(hours=4))
    assert service.check_timer_expirations(now=now) == 1

    log_feed(baby, now + timedelta(minutes=10))
    assert service.check_timer_expirations(now=now + timedelta(hours=3)) == 0
    assert service.check_timer_expirations(now=now + timedelta(hours=3, minutes=10)) == 1
    assert len(push_client.sent) == 2


def test_repeat_interval(service, push_client, baby, make_subscription, make_preference, log_feed, now) -> None:
    make_preference(make_subscription(), baby, timer_interval_minutes=60)
    log_feed(baby, now - timedelta(hours=4))

    assert service.check_timer_expirations(now=now) == 1
    assert service.check_timer_expirations(now=now + timedelta(minutes=59)) == 0
    assert service.check_timer_expirations(now=now + timedelta(minutes=60)) == 1


def test_timer_not_expired(service, push_client, baby, make_subscription, make_preference, log_feed, now) -> None:
    make_preference(make_subscription(), baby)
    log_feed(baby, now - timedelta(hours=2))

    assert service.check_timer_expirations(now=now) == 0
    assert push_client.sent == []


def test_deleted_activity_is_ignored(db_session, service, baby, make_subscription, make_preference, log_feed, now) -> None:
    make_preference(make_subscription(), baby)
    log_feed(baby, now - timedelta(hours=5))
    recent = log_feed(baby, now - timedelta(minutes=30))
    recent.deleted_at = now
    db_session.commit()

    assert service.check_timer_expirations(now=now) == 1


def test_no_activity_skips_timer(service, baby, make_subscription, make_preference, now) -> None:
    make_preference(make_subscription(), baby)

    assert service.check_timer_expirations(now=now) == 0


def test_diaper_timer_uses_diaper_threshold(db_session, service, push_client, baby, make_subscription, make_preference, now) -> None:
    make_preference(make_subscription(), baby, NotificationEventType.DIAPER_TIMER_EXPIRED)
    db_session.add(DiaperLog(baby_id=baby.id, time=now - timedelta(hours=2, minutes=1)))
    db_session.commit()

    assert service.check_timer_expirations(now=now) == 1
    assert push_client.sent[0][1]["title"] == "Diaper Timer Expired"


def test_disabled_preference_is_skipped(service, baby, make_subscription, make_preference, log_feed, now) -> None:
    make_preference(make_subscription(), baby, enabled=False)
    log_feed(baby, now - timedelta(hours=5))

    assert service.check_timer_expirations(now=now) == 0


def test_failed_send_leaves_timer_unclaimed(db_session, service, push_client, baby, make_subscription, make_preference, log_feed, now) -> None:
    subscription = make_subscription()
    preference = make_preference(subscription, baby)
    log_feed(baby, now - timedelta(hours=5))
    push_client.results[subscription.endpoint] = SendResult(success=False, http_status=503, error="unavailable")

    assert service.check_timer_expirations(now=now) == 0
    assert _reload(db_session, preference).last_timer_notified_at is None
    assert db_session.get(PushSubscription, subscription.id).failure_count == 1


def test_gone_subscription_does_not_stop_batch(db_session, service, push_client, baby, make_subscription, make_preference, log_feed, now) -> None:
    gone = make_subscription("https://push.example.com/gone")
    healthy = make_subscription("https://push.example.com/healthy")
    gone_id, healthy_id = gone.id, healthy.id
    make_preference(gone, baby)
    make_preference(healthy, baby)
    log_feed(baby, now - timedelta(hours=5))
    push_client.results["https://push.example.com/gone"] = SendResult(success=False, http_status=410, error="Gone")

    assert service.check_timer_expirations(now=now) == 1
    db_session.expunge_all()
    assert db_session.get(PushSubscription, gone_id) is None
    assert db_session.get(PushSubscription, healthy_id) is not None


def test_unexpected_send_error_is_contained(db_session, service, push_client, baby, make_subscription, make_preference, log_feed, now) -> None:
    first = make_subscription("https://push.example.com/first")
    second = make_subscription("https://push.example.com/second")
    broken = make_preference(first, baby)
    make_preference(second, baby)
    log_feed(baby, now - timedelta(hours=5))

    original_send = push_client.send

    def flaky_send(subscription_info, payload):
        if subscription_info["endpoint"] == first.endpoint:
            raise RuntimeError("transport exploded")
        return original_send(subscription_info, payload)

    push_client.send = flaky_send

    assert service.check_timer_expirations(now=now) == 1
    assert _reload(db_session, broken).last_timer_notified_at is None


def test_claim_prevents_duplicate_sends(db_session, service, push_client, baby, make_subscription, make_preference, log_feed, now) -> None:
    subscription = make_subscription()
    preference = make_preference(subscription, baby)
    log_feed(baby, now - timedelta(hours=5))

    # Snapshot taken by an overlapping run before this one commits
    stale = TimerCandidate(
        preference_id=preference.id,
        subscription_id=subscription.id,
        subscription_info=subscription.subscription_info(),
        last_notified_at=None,
        interval_minutes=None,
    )
    baby_timers = service._load_baby_timers()[0]

    assert service.check_timer_expirations(now=now) == 1
    assert not service._dispatch(
        stale, baby_timers, NotificationEventType.FEED_TIMER_EXPIRED, now - timedelta(hours=5), now
    )
    assert len(push_client.sent) == 1


def test_claim_is_conditional(service, baby, make_subscription, make_preference, now) -> None:
    preference = make_preference(make_subscription(), baby)

    assert service._claim(preference.id, None, now)
    assert not service._claim(preference.id, None, now + timedelta(minutes=1))
    assert service._claim(preference.id, now, now + timedelta(minutes=1))
