"""Pytest configuration and fixtures."""
from datetime import timedelta

import pytest

from api import create_app
from services.email import OutboxEmailSender
from utils.tokens import TokenCodec

ACCESS_SECRET = "unit-access-secret-0123456789abcdef"
REFRESH_SECRET = "unit-refresh-secret-0123456789abcdef"


@pytest.fixture
def outbox():
    return OutboxEmailSender()


@pytest.fixture
def app(outbox):
    """Fresh app per test, backed by its own in-memory SQLite database."""
    app = create_app("test", email_sender=outbox)
    yield app
    app.extensions["auth"].close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def components(app):
    return app.extensions["auth"]


@pytest.fixture
def store(components):
    return components.store


@pytest.fixture
def sessions(components):
    return components.sessions


@pytest.fixture
def resets(components):
    return components.resets


@pytest.fixture
def codec():
    return TokenCodec(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7),
    )


@pytest.fixture
def user(store):
    return store.create_user("alice@example.com", "secret1", "Alice")
