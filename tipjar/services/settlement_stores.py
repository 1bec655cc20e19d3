from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tipjar.core.errors import AnalyticsWriteFailure
from tipjar.core.logging import get_logger
from tipjar.models.analytics_event import EVENT_TIP_RECEIVED, AnalyticsEvent
from tipjar.models.profile import Profile
from tipjar.models.support_message import SupportMessage

logger = get_logger(__name__)


@dataclass(frozen=True)
class SupportRecord:
    user_id: str
    amount: int
    currency: str
    message: str | None
    is_anonymous: bool
    supporter_name: str | None
    stripe_session_id: str


@dataclass(frozen=True)
class TipAnalyticsEvent:
    user_id: str
    amount: int
    metadata: dict[str, Any] = field(default_factory=dict)
    event_type: str = EVENT_TIP_RECEIVED


class LedgerStore(Protocol):
    async def insert_if_absent(self, session_id: str, record: SupportRecord) -> bool:
        """Insert unless a record for session_id exists. True if inserted."""
        ...


class BalanceStore(Protocol):
    async def increment_earnings(self, user_id: str, amount_cents: int) -> None:
        """Atomically add amount_cents to the creator's total_earnings."""
        ...


class AnalyticsStore(Protocol):
    async def append(self, event: TipAnalyticsEvent) -> None:
        ...


class DeadletterStore(Protocol):
    async def record(
        self,
        *,
        stripe_event_id: str,
        stripe_session_id: str | None,
        event_type: str,
        error: str,
        payload: str,
    ) -> None:
        ...


def _upsert_insert(db: AsyncSession):
    """Dialect insert() that supports ON CONFLICT DO NOTHING."""
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert
    return postgresql.insert


class SqlLedgerStore:
    """
    support_messages ledger.

    The conditional write relies on the UNIQUE index on stripe_session_id, so
    concurrent deliveries on different processes serialize in the database.
    Does not commit: the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self._db = db

    async def insert_if_absent(self, session_id: str, record: SupportRecord) -> bool:
        insert = _upsert_insert(self._db)
        stmt = (
            insert(SupportMessage)
            .values(
                user_id=record.user_id,
                amount=record.amount,
                currency=record.currency,
                message=record.message,
                is_anonymous=record.is_anonymous,
                supporter_name=record.supporter_name,
                stripe_session_id=session_id,
            )
            .on_conflict_do_nothing(index_elements=["stripe_session_id"])
            .returning(SupportMessage.id)
        )
        res = await self._db.execute(stmt)
        return res.scalar_one_or_none() is not None


class SqlBalanceStore:
    """profiles.total_earnings. Does not commit."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def increment_earnings(self, user_id: str, amount_cents: int) -> None:
        # Single UPDATE ... SET total_earnings = total_earnings + :amount
        res = await self._db.execute(
            update(Profile)
            .where(Profile.user_id == user_id)
            .values(total_earnings=Profile.total_earnings + amount_cents)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            # Ledger entry still stands (the profile may have been deleted after
            # checkout), so total_earnings no longer matches the ledger
            logger.error(
                "No profile for user_id=%s; %s cents not credited, needs manual reconciliation",
                user_id,
                amount_cents,
            )


class SqlAnalyticsStore:
    def __init__(self, db: AsyncSession):
        self._db = db

    async def append(self, event: TipAnalyticsEvent) -> None:
        self._db.add(
            AnalyticsEvent(
                user_id=event.user_id,
                event_type=event.event_type,
                amount=event.amount,
                event_metadata=event.metadata,
            )
        )
        try:
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            raise AnalyticsWriteFailure(f"analytics insert failed for user_id={event.user_id}") from e
