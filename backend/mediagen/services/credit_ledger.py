from __future__ import annotations
"""Credit ledger — append-only signed entries; balance is their sum.

``consume`` checks the balance and appends the charge as one step per user:
an in-process lock serializes callers of this ledger, and the balance read
locks the user's ledger rows (``SELECT ... FOR UPDATE`` on MySQL) until the
charge is committed, so other processes wait as well.
"""

import asyncio
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediagen.database import async_session_factory
from mediagen.models.credit import CreditTransaction, CreditTransactionType
from mediagen.services.errors import InsufficientCreditsError

logger = logging.getLogger(__name__)


class CreditLedger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or async_session_factory
        self._user_locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        return self._user_locks.setdefault(user_id, asyncio.Lock())

    async def get_balance(self, user_id: str) -> int:
        stmt = select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(
            CreditTransaction.user_id == user_id
        )
        async with self._session_factory() as session:
            return int((await session.execute(stmt)).scalar_one())

    async def grant(self, user_id: str, amount: int, description: str | None = None) -> CreditTransaction:
        if amount <= 0:
            raise ValueError("grant amount must be positive")
        return await self._append(user_id, CreditTransactionType.GRANT, amount, description)

    async def consume(
        self,
        user_id: str,
        amount: int,
        description: str | None = None,
        task_id: str | None = None,
    ) -> CreditTransaction:
        """Charge ``amount`` credits, failing if the balance does not cover it."""
        # FOR UPDATE locks rows, not an aggregate; sum the locked amounts
        locked_amounts = (
            select(CreditTransaction.amount)
            .where(CreditTransaction.user_id == user_id)
            .with_for_update()
        )
        async with self._lock_for(user_id):
            async with self._session_factory() as session:
                balance = sum((await session.execute(locked_amounts)).scalars())
                if balance < amount:
                    logger.info("User %s has %d credits, %d required", user_id, balance, amount)
                    raise InsufficientCreditsError()
                entry = _entry(user_id, CreditTransactionType.CONSUME, -amount, description, task_id)
                session.add(entry)
                await session.commit()
                await session.refresh(entry)
        _log_entry(entry)
        return entry

    async def refund(self, consumption: CreditTransaction, description: str | None = None) -> CreditTransaction:
        """Compensate a consume entry with an equal positive entry."""
        return await self._append(
            consumption.user_id,
            CreditTransactionType.REFUND,
            -consumption.amount,
            description or f"refund for {consumption.id}",
            consumption.task_id,
        )

    async def _append(
        self,
        user_id: str,
        transaction_type: CreditTransactionType,
        amount: int,
        description: str | None = None,
        task_id: str | None = None,
    ) -> CreditTransaction:
        entry = _entry(user_id, transaction_type, amount, description, task_id)
        async with self._session_factory() as session:
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
        _log_entry(entry)
        return entry


def _entry(
    user_id: str,
    transaction_type: CreditTransactionType,
    amount: int,
    description: str | None,
    task_id: str | None,
) -> CreditTransaction:
    return CreditTransaction(
        user_id=user_id,
        transaction_type=transaction_type.value,
        amount=amount,
        description=description,
        task_id=task_id,
    )


def _log_entry(entry: CreditTransaction) -> None:
    logger.info("Credits %s %+d for user %s", entry.transaction_type, entry.amount, entry.user_id)
