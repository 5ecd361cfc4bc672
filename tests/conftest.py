"""
Pytest configuration and fixtures for testing
"""
from datetime import datetime, timezone
from typing import List

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from core.repositories.subscription_repository import SubscriptionRepository, StoreError
from core.services.notification_provider import (
    NotificationProvider, MessageReceipt, NotificationDispatchError, CHANNEL_SMS,
)
from infrastructure.db.sqlite import (
    init_db, connect, SQLiteUserRepository, SQLiteSubscriptionRepository,
)
from infrastructure.identity.local_provider import LocalIdentityProvider

ADMIN_EMAIL = "admin@example.com"
TEST_SECRET = "test-secret"

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeNotificationProvider(NotificationProvider):
    """In-memory messaging provider that records every message it is asked to send."""

    def __init__(self, configured: bool = True, channels: List[str] = (CHANNEL_SMS,), fail: bool = False):
        self.configured = configured
        self.enabled = list(channels)
        self.fail = fail
        self.sent = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def channels(self) -> List[str]:
        return list(self.enabled)

    async def send(self, channel: str, to: str, body: str) -> MessageReceipt:
        if self.fail:
            raise NotificationDispatchError("provider down")
        self.sent.append((channel, to, body))
        return MessageReceipt(channel=channel, to=to, message_id=f"SM{len(self.sent)}", status="queued")


class FailingSubscriptionRepository(SubscriptionRepository):
    """Repository whose backing store is unreachable."""

    def get_by_user_id(self, user_id):
        raise StoreError("database is locked")

    def create(self, user_id, plan_type, status, payment_date, expiry_date, amount, now):
        raise StoreError("database is locked")

    def update_status(self, user_id, status, now):
        raise StoreError("database is locked")

    def renew(self, user_id, plan_type, payment_date, expiry_date, amount, now):
        raise StoreError("database is locked")

    def list_all(self):
        raise StoreError("database is locked")

    def expire_overdue(self, now):
        raise StoreError("database is locked")


@pytest.fixture
def db_path(tmp_path):
    """
    Fresh SQLite database file with the full schema for each test.
    """
    path = str(tmp_path / "test.db")
    init_db(path)
    return path


@pytest.fixture
def conn(db_path):
    connection = connect(db_path)
    yield connection
    connection.close()


@pytest.fixture
def user_repo(conn):
    return SQLiteUserRepository(conn)


@pytest.fixture
def sub_repo(conn):
    return SQLiteSubscriptionRepository(conn)


@pytest.fixture
def identity(user_repo):
    return LocalIdentityProvider(user_repo, secret_key=TEST_SECRET, admin_emails=[ADMIN_EMAIL])


@pytest.fixture
def notification_provider():
    return FakeNotificationProvider()


@pytest.fixture
def client(db_path, notification_provider):
    """
    FastAPI TestClient wired to the temporary database and the fake messaging provider.
    The lifespan is not started, so no periodic sweep runs during tests.
    """
    from main import app
    from infrastructure.web import dependencies

    def override_get_db():
        connection = connect(db_path)
        try:
            yield connection
        finally:
            connection.close()

    def override_get_identity_provider(repo=Depends(dependencies.get_user_repo)):
        return LocalIdentityProvider(repo, secret_key=TEST_SECRET, admin_emails=[ADMIN_EMAIL])

    app.dependency_overrides[dependencies.get_db] = override_get_db
    app.dependency_overrides[dependencies.get_identity_provider] = override_get_identity_provider
    app.dependency_overrides[dependencies.get_notification_provider] = lambda: notification_provider

    yield TestClient(app)

    app.dependency_overrides.clear()
