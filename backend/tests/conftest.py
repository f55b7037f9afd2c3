"""
TrustNet Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   A real SQLite database per test (aiosqlite, file under tmp_path) so the
       store's ON CONFLICT statements run for real; SNS is a mock; tokens are
       HS256 JWTs signed with a test secret.

Fixture Hierarchy (all function-scoped):
    engine ─┬─ subscription_store ─┐
            │                      ├─ manager ─┐
            │        fake_topic ───┘           ├─ test_client
            │        user_directory ───────────┘
            └─ make_token (no dependencies)
"""

import os
import time
from unittest.mock import AsyncMock, MagicMock

# Override settings BEFORE any trustnet imports: `settings` is built at import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["JWT_SECRET"] = "test-secret-not-real-0123456789abcdef"
os.environ["AWS_SNS_TOPIC_ARN"] = "arn:aws:sns:ap-southeast-1:000000000000:trustnet-test"
os.environ["APP_BASE_URL"] = "https://trustnet.test"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["LOG_LEVEL"] = "WARNING"

import jwt
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from trustnet.database import Base, create_engine
from trustnet.services.subscription_manager import SubscriptionManager
from trustnet.services.subscription_store import SubscriptionStore
from trustnet.services.user_directory import UserDirectory

TEST_JWT_SECRET = os.environ["JWT_SECRET"]
TEST_SUBSCRIPTION_ARN = (
    "arn:aws:sns:ap-southeast-1:000000000000:trustnet-test:"
    "8a21d249-4329-4871-acc6-7be709c6ea7f"
)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite database file with the schema created from the models."""
    db_engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'trustnet.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def subscription_store(engine):
    return SubscriptionStore(engine)


@pytest.fixture
def fake_topic():
    """
    Stand-in for NotificationTopic.

    register() returns a fixed subscription ARN, publish() a fixed MessageId.
    Tests override side_effect to simulate SNS failures.
    """
    topic = MagicMock()
    topic.is_configured = True
    topic.register = AsyncMock(return_value=TEST_SUBSCRIPTION_ARN)
    topic.publish = AsyncMock(return_value="msg-0001")
    return topic


@pytest.fixture
def manager(subscription_store, fake_topic):
    return SubscriptionManager(
        subscription_store, fake_topic, app_base_url="https://trustnet.test"
    )


@pytest.fixture
def user_directory():
    return UserDirectory(secret=TEST_JWT_SECRET)


@pytest.fixture
def make_token():
    """
    Factory for signed test tokens.

    Usage:
        token = make_token("user-1", "alice@example.com")
        token = make_token("user-1", None)            # no email claim
        token = make_token("user-1", expires_in=-60)  # already expired
    """

    def _make(user_id="user-1", email="alice@example.com", expires_in=3600, secret=TEST_JWT_SECRET):
        claims = {"exp": int(time.time()) + expires_in}
        if user_id is not None:
            claims["sub"] = user_id
        if email is not None:
            claims["email"] = email
        return jwt.encode(claims, secret, algorithm="HS256")

    return _make


@pytest_asyncio.fixture
async def test_client(engine, subscription_store, fake_topic, user_directory, manager):
    """
    HTTPX AsyncClient wired to a fresh app.

    ASGITransport does not run the lifespan handler, so the collaborators it
    would build are attached to app.state here.
    """
    from trustnet.main import create_app

    app = create_app()
    app.state.engine = engine
    app.state.subscription_store = subscription_store
    app.state.notification_topic = fake_topic
    app.state.user_directory = user_directory
    app.state.subscription_manager = manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
