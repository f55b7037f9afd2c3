"""
TrustNet Backend — Subscription Store
=======================================

What:  Key-value access to subscription records, keyed by user id, with the
       write precondition made explicit in the method name.
How:   Every write is a single SQL statement whose precondition the database
       evaluates atomically:

           put_if_absent      INSERT ... ON CONFLICT (user_id) DO NOTHING
           put_always         INSERT ... ON CONFLICT (user_id) DO UPDATE
           update_if_present  UPDATE ... WHERE user_id = :user_id
           unsubscribe_if_token_matches
                              UPDATE ... WHERE user_id AND subscribed AND token

       The affected row count tells the caller whether the precondition held.
       No method reads before writing, so concurrent requests for the same user
       cannot interleave between a check and a write.
Who:   Constructed once at startup with the engine; used by SubscriptionManager.

Dialects:
    PostgreSQL and SQLite both implement INSERT ... ON CONFLICT; each ships its
    own `insert()` construct in SQLAlchemy, selected from the engine dialect.
"""

import logging
import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from trustnet.database import create_session_factory
from trustnet.exceptions import DependencyError
from trustnet.models.subscription import Subscription, utcnow

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def new_unsubscribe_token() -> str:
    return secrets.token_urlsafe(24)


class SubscriptionStore:
    """
    Conditional-write store for Subscription rows.

    Each public method runs in its own short transaction and commits before
    returning. SQLAlchemy errors are wrapped in DependencyError; precondition
    outcomes are reported as booleans, never as exceptions.
    """

    def __init__(self, engine: AsyncEngine):
        dialect = engine.dialect.name
        if dialect not in _INSERT_BY_DIALECT:
            raise ValueError(
                f"Unsupported database dialect '{dialect}'. "
                f"Supported: {sorted(_INSERT_BY_DIALECT)}"
            )
        self._insert = _INSERT_BY_DIALECT[dialect]
        self._sessions = create_session_factory(engine)

    async def get(self, user_id: str) -> Optional[Subscription]:
        """Primary-key lookup. Returns None when the user has no record."""
        try:
            async with self._sessions() as session:
                result = await session.execute(
                    select(Subscription).where(Subscription.user_id == user_id)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._wrap("get", user_id, e) from e

    async def put_if_absent(
        self,
        user_id: str,
        email: str,
        subscribed: bool = True,
        subscription_arn: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Create the record unless one already exists.

        Returns:
            True if a row was inserted, False if the user already had a record
            (which is left exactly as it was).
        """
        now = now or utcnow()
        stmt = (
            self._insert(Subscription)
            .values(
                user_id=user_id,
                email=email,
                subscribed=subscribed,
                subscription_arn=subscription_arn,
                unsubscribe_token=new_unsubscribe_token(),
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=[Subscription.user_id])
        )
        try:
            async with self._sessions() as session:
                result = await session.execute(stmt)
                created = result.rowcount == 1
                await session.commit()
        except SQLAlchemyError as e:
            raise self._wrap("put_if_absent", user_id, e) from e
        return created

    async def put_always(
        self,
        user_id: str,
        email: str,
        subscribed: bool = True,
        subscription_arn: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Create or overwrite the record.

        On conflict only subscribed, email, updated_at (and subscription_arn,
        when a new one is given) change; created_at and unsubscribe_token keep
        the values from the first insert.
        """
        now = now or utcnow()
        stmt = self._insert(Subscription).values(
            user_id=user_id,
            email=email,
            subscribed=subscribed,
            subscription_arn=subscription_arn,
            unsubscribe_token=new_unsubscribe_token(),
            created_at=now,
            updated_at=now,
        )
        changes = {
            "email": stmt.excluded.email,
            "subscribed": stmt.excluded.subscribed,
            "updated_at": stmt.excluded.updated_at,
        }
        if subscription_arn is not None:
            changes["subscription_arn"] = stmt.excluded.subscription_arn
        stmt = stmt.on_conflict_do_update(
            index_elements=[Subscription.user_id],
            set_=changes,
        )
        try:
            async with self._sessions() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise self._wrap("put_always", user_id, e) from e

    async def update_if_present(
        self,
        user_id: str,
        subscribed: bool,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Set `subscribed` and refresh `updated_at` on an existing record.

        Returns:
            True if the record existed and was updated, False if there was no
            record (nothing is created).
        """
        stmt = (
            update(Subscription)
            .where(Subscription.user_id == user_id)
            .values(subscribed=subscribed, updated_at=now or utcnow())
        )
        try:
            async with self._sessions() as session:
                result = await session.execute(stmt)
                present = result.rowcount == 1
                await session.commit()
        except SQLAlchemyError as e:
            raise self._wrap("update_if_present", user_id, e) from e
        return present

    async def unsubscribe_if_token_matches(
        self,
        user_id: str,
        token: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Opt out a subscribed record whose unsubscribe token equals `token`.

        Returns:
            True if the record was switched off, False if there is no record,
            it is already unsubscribed, or the token does not match.
        """
        stmt = (
            update(Subscription)
            .where(
                Subscription.user_id == user_id,
                Subscription.subscribed.is_(True),
                Subscription.unsubscribe_token == token,
            )
            .values(subscribed=False, updated_at=now or utcnow())
        )
        try:
            async with self._sessions() as session:
                result = await session.execute(stmt)
                matched = result.rowcount == 1
                await session.commit()
        except SQLAlchemyError as e:
            raise self._wrap("unsubscribe_if_token_matches", user_id, e) from e
        return matched

    @staticmethod
    def _wrap(operation: str, user_id: str, error: SQLAlchemyError) -> DependencyError:
        logger.error(
            "Subscription store %s failed for user %s: %s",
            operation, user_id, error, exc_info=True,
        )
        return DependencyError(
            service="database",
            context={
                "operation": operation,
                "user_id": user_id,
                "error_type": type(error).__name__,
            },
        )
