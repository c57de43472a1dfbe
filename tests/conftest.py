"""Pytest fixtures for notification engine tests."""

import uuid
from collections.abc import Callable, Generator
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api import deps
from app.config import Settings
from app.db.base import Base
from app.db.models import (
    Baby,
    DiaperLog,
    FeedLog,
    NotificationEventType,
    NotificationLog,
    NotificationPreference,
    PushSubscription,
)
from app.main import create_app
from app.services.delivery import DeliveryService
from app.services.push import SendResult

TABLES = [
    Baby.__table__,
    FeedLog.__table__,
    DiaperLog.__table__,
    PushSubscription.__table__,
    NotificationPreference.__table__,
    NotificationLog.__table__,
]

CRON_SECRET = "test-cron-secret"
FAMILY_ID = uuid.UUID("f4a1c2d3-5b6e-4f70-8a9b-0c1d2e3f4a5b")
OTHER_FAMILY_ID = uuid.UUID("0b7e9d5c-3a2f-4e1d-9c8b-7a6f5e4d3c2b")
ACCOUNT_ID = uuid.UUID("c9d8e7f6-a5b4-4c3d-8e2f-1a0b9c8d7e6f")


class FakePushClient:
    """Stands in for ``WebPushClient``; results are chosen per endpoint."""

    def __init__(self) -> None:
        self.sent: list[tuple[dict, dict]] = []
        self.results: dict[str, SendResult] = {}
        self.default_result = SendResult(success=True, http_status=201)
        self.initialized = False
        self.public_key = "test-public-key"

    def initialize(self) -> None:
        self.initialized = True

    def send(self, subscription_info: dict, payload: dict) -> SendResult:
        self.sent.append((subscription_info, payload))
        return self.results.get(subscription_info["endpoint"], self.default_result)


class RecordingLogWriter:
    """Synchronous stand-in for ``NotificationLogWriter``."""

    def __init__(self) -> None:
        self.entries: list = []

    def start(self) -> None:
        pass

    def submit(self, entry) -> bool:
        self.entries.append(entry)
        return True

    def flush(self) -> None:
        pass

    def stop(self, timeout: float = 5.0) -> None:
        pass


@pytest.fixture(scope="session")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=TABLES)


@pytest.fixture()
def db_session(db_engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        for table in reversed(TABLES):
            db.execute(delete(table))
        db.commit()
        db.close()


@pytest.fixture()
def notification_settings() -> Settings:
    return Settings(
        _env_file=None,
        ENABLE_NOTIFICATIONS=True,
        VAPID_PUBLIC_KEY="BTestPublicKey",
        VAPID_PRIVATE_KEY="test-private-key",
        VAPID_SUBJECT="mailto:test@example.com",
        NOTIFICATION_CRON_SECRET=CRON_SECRET,
    )


@pytest.fixture()
def disabled_settings() -> Settings:
    return Settings(_env_file=None, ENABLE_NOTIFICATIONS=False, NOTIFICATION_CRON_SECRET=CRON_SECRET)


@pytest.fixture()
def push_client() -> FakePushClient:
    return FakePushClient()


@pytest.fixture()
def log_writer() -> RecordingLogWriter:
    return RecordingLogWriter()


@pytest.fixture()
def delivery(db_session, push_client, log_writer) -> DeliveryService:
    return DeliveryService(db_session, push_client, log_writer)


@pytest.fixture()
def make_client(db_session, push_client, log_writer) -> Callable[[Settings], TestClient]:
    clients: list[TestClient] = []

    def factory(settings: Settings) -> TestClient:
        app = create_app()

        def override_get_db() -> Generator[Session, None, None]:
            yield db_session

        app.dependency_overrides[deps.get_db] = override_get_db
        app.dependency_overrides[deps.get_app_settings] = lambda: settings
        app.dependency_overrides[deps.get_web_push_client] = lambda: push_client
        app.dependency_overrides[deps.get_notification_log_writer] = lambda: log_writer
        test_client = TestClient(app)
        clients.append(test_client)
        return test_client

    try:
        yield factory
    finally:
        for test_client in clients:
            test_client.close()


@pytest.fixture()
def client(make_client, notification_settings) -> TestClient:
    return make_client(notification_settings)


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {"X-Family-Id": str(FAMILY_ID), "X-Account-Id": str(ACCOUNT_ID)}


@pytest.fixture()
def now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def baby(db_session) -> Baby:
    record = Baby(
        family_id=FAMILY_ID,
        first_name="Ada",
        last_name="Lovelace",
        feed_warning_time="03:00",
        diaper_warning_time="02:00",
    )
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture()
def make_subscription(db_session) -> Callable[..., PushSubscription]:
    def factory(endpoint: str = "https://push.example.com/device-1", **overrides) -> PushSubscription:
        values = {
            "family_id": FAMILY_ID,
            "account_id": ACCOUNT_ID,
            "endpoint": endpoint,
            "p256dh": "client-public-key",
            "auth": "client-auth-secret",
            "failure_count": 0,
        }
        values.update(overrides)
        subscription = PushSubscription(**values)
        db_session.add(subscription)
        db_session.commit()
        return subscription

    return factory


@pytest.fixture()
def make_preference(db_session) -> Callable[..., NotificationPreference]:
    def factory(
        subscription: PushSubscription,
        baby: Baby,
        event_type: NotificationEventType = NotificationEventType.FEED_TIMER_EXPIRED,
        **overrides,
    ) -> NotificationPreference:
        values = {
            "subscription_id": subscription.id,
            "baby_id": baby.id,
            "event_type": event_type,
            "enabled": True,
        }
        values.update(overrides)
        preference = NotificationPreference(**values)
        db_session.add(preference)
        db_session.commit()
        return preference

    return factory


@pytest.fixture()
def log_feed(db_session) -> Callable[[Baby, datetime], FeedLog]:
    def factory(baby: Baby, at: datetime) -> FeedLog:
        record = FeedLog(baby_id=baby.id, time=at)
        db_session.add(record)
        db_session.commit()
        return record

    return factory


@pytest.fixture()
def cron_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture()
def other_family_id() -> uuid.UUID:
    return OTHER_FAMILY_ID
