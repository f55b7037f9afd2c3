"""
TrustNet Backend — Subscription Store Tests
=============================================

What:  The conditional writes against a real SQLite database.
Why:   The store's guarantees come from the SQL (ON CONFLICT, UPDATE ... WHERE),
       so they are tested against a database rather than a mocked session.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from trustnet.exceptions import DependencyError
from trustnet.services.subscription_store import SubscriptionStore


T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _same_instant(a: datetime, b: datetime) -> bool:
    # SQLite hands DateTime(timezone=True) values back naive
    return a.replace(tzinfo=None) == b.replace(tzinfo=None)


class TestPutIfAbsent:

    @pytest.mark.asyncio
    async def test_inserts_new_record(self, subscription_store):
        created = await subscription_store.put_if_absent(
            "user-1", "alice@example.com", subscription_arn="arn:1", now=T0
        )

        assert created is True
        record = await subscription_store.get("user-1")
        assert record.email == "alice@example.com"
        assert record.subscribed is True
        assert record.subscription_arn == "arn:1"
        assert record.unsubscribe_token
        assert _same_instant(record.created_at, T0)
        assert _same_instant(record.updated_at, T0)

    @pytest.mark.asyncio
    async def test_leaves_existing_record_untouched(self, subscription_store):
        await subscription_store.put_if_absent("user-1", "alice@example.com", subscribed=False, now=T0)
        before = await subscription_store.get("user-1")

        created = await subscription_store.put_if_absent(
            "user-1", "other@example.com", subscribed=True, now=T0 + timedelta(days=1)
        )

        after = await subscription_store.get("user-1")
        assert created is False
        assert after.subscribed is False
        assert after.email == "alice@example.com"
        assert after.unsubscribe_token == before.unsubscribe_token
        assert _same_instant(after.updated_at, T0)


class TestPutAlways:

    @pytest.mark.asyncio
    async def test_inserts_when_absent(self, subscription_store):
        await subscription_store.put_always("user-1", "alice@example.com", now=T0)

        record = await subscription_store.get("user-1")
        assert record.subscribed is True

    @pytest.mark.asyncio
    async def test_overwrites_but_keeps_creation_fields(self, subscription_store):
        await subscription_store.put_if_absent(
            "user-1", "alice@example.com", subscribed=False, subscription_arn="arn:1", now=T0
        )
        before = await subscription_store.get("user-1")
        later = T0 + timedelta(hours=5)

        await subscription_store.put_always("user-1", "alice@new.example.com", subscribed=True, now=later)

        after = await subscription_store.get("user-1")
        assert after.subscribed is True
        assert after.email == "alice@new.example.com"
        assert after.subscription_arn == "arn:1"
        assert after.unsubscribe_token == before.unsubscribe_token
        assert _same_instant(after.created_at, T0)
        assert _same_instant(after.updated_at, later)

    @pytest.mark.asyncio
    async def test_replaces_subscription_arn_when_given(self, subscription_store):
        await subscription_store.put_always("user-1", "alice@example.com", subscription_arn="arn:1")
        await subscription_store.put_always("user-1", "alice@example.com", subscription_arn="arn:2")

        record = await subscription_store.get("user-1")
        assert record.subscription_arn == "arn:2"


class TestUpdateIfPresent:

    @pytest.mark.asyncio
    async def test_updates_existing(self, subscription_store):
        await subscription_store.put_if_absent("user-1", "alice@example.com", now=T0)
        later = T0 + timedelta(minutes=1)

        present = await subscription_store.update_if_present("user-1", subscribed=False, now=later)

        record = await subscription_store.get("user-1")
        assert present is True
        assert record.subscribed is False
        assert _same_instant(record.updated_at, later)
        assert _same_instant(record.created_at, T0)

    @pytest.mark.asyncio
    async def test_missing_record_is_not_created(self, subscription_store):
        present = await subscription_store.update_if_present("user-1", subscribed=True)

        assert present is False
        assert await subscription_store.get("user-1") is None


class TestUnsubscribeIfTokenMatches:

    @pytest.mark.asyncio
    async def test_matching_token_switches_off(self, subscription_store):
        await subscription_store.put_if_absent("user-1", "alice@example.com", now=T0)
        token = (await subscription_store.get("user-1")).unsubscribe_token
        later = T0 + timedelta(minutes=3)

        matched = await subscription_store.unsubscribe_if_token_matches("user-1", token, now=later)

        record = await subscription_store.get("user-1")
        assert matched is True
        assert record.subscribed is False
        assert _same_instant(record.updated_at, later)

    @pytest.mark.asyncio
    async def test_wrong_token_changes_nothing(self, subscription_store):
        await subscription_store.put_if_absent("user-1", "alice@example.com", now=T0)

        matched = await subscription_store.unsubscribe_if_token_matches("user-1", "wrong")

        record = await subscription_store.get("user-1")
        assert matched is False
        assert record.subscribed is True
        assert _same_instant(record.updated_at, T0)

    @pytest.mark.asyncio
    async def test_already_unsubscribed_does_not_match(self, subscription_store):
        await subscription_store.put_if_absent("user-1", "alice@example.com", subscribed=False)
        token = (await subscription_store.get("user-1")).unsubscribe_token

        assert await subscription_store.unsubscribe_if_token_matches("user-1", token) is False

    @pytest.mark.asyncio
    async def test_missing_record_is_not_created(self, subscription_store):
        assert await subscription_store.unsubscribe_if_token_matches("user-1", "any") is False
        assert await subscription_store.get("user-1") is None


class TestStoreErrors:

    def test_rejects_unsupported_dialect(self):
        engine = MagicMock()
        engine.dialect.name = "mysql"

        with pytest.raises(ValueError, match="Unsupported database dialect"):
            SubscriptionStore(engine)

    @pytest.mark.asyncio
    async def test_database_failure_becomes_dependency_error(self, tmp_path):
        from trustnet.database import create_engine

        # Schema never created: every statement fails with "no such table"
        engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        store = SubscriptionStore(engine)
        try:
            with pytest.raises(DependencyError) as exc_info:
                await store.get("user-1")
        finally:
            await engine.dispose()

        assert exc_info.value.context["service"] == "database"
        assert exc_info.value.context["operation"] == "get"
        assert isinstance(exc_info.value.__cause__, OperationalError)
