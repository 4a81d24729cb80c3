# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Volatile in-memory persistence gateway.

Committed state lives in a ``_Tables`` snapshot. A transaction works on a
private copy of it; commit swaps the copy in, rollback throws it away. Other
tasks therefore only ever read committed rows, and live query streams are
refreshed once per commit inside a single ``stream_batch()``.

Suitable for tests, demos and single-process hosts. Data is lost when the
process exits; ``FileGateway`` adds a durable snapshot on top.
"""

from __future__ import annotations

import asyncio
import logging
from contextvars import ContextVar
from typing import Awaitable, Callable, TypeVar
from uuid import uuid4

from budget_cycle.gateway.interface import GatewayIntegrityError, PersistenceGateway
from budget_cycle.streams import MutableStateStream, StateStream, stream_batch
from budget_cycle.types import BudgetPeriod, Expense, NewBudgetPeriod, NewExpense

logger = logging.getLogger("budget_cycle.gateway")

T = TypeVar("T")

# Working tables of the transaction the current task is running inside, if any.
# Tasks spawned inside a transaction inherit a stale value once it ends.
_current_transaction: ContextVar[object | None] = ContextVar(
    "budget_cycle_current_transaction", default=None
)


class _Tables:
    """One consistent copy of every row plus insertion order."""

    __slots__ = ("periods", "expenses", "order", "sequence")

    def __init__(
        self,
        periods: dict[str, BudgetPeriod] | None = None,
        expenses: dict[str, Expense] | None = None,
        order: dict[str, int] | None = None,
        sequence: int = 0,
    ) -> None:
        self.periods: dict[str, BudgetPeriod] = periods or {}
        self.expenses: dict[str, Expense] = expenses or {}
        self.order: dict[str, int] = order or {}
        self.sequence = sequence

    def copy(self) -> _Tables:
        return _Tables(dict(self.periods), dict(self.expenses), dict(self.order), self.sequence)

    def next_id(self) -> str:
        record_id = str(uuid4())
        self.sequence += 1
        self.order[record_id] = self.sequence
        return record_id

    def newest_first(self, records: list) -> list:
        return sorted(
            records,
            key=lambda record: (record.created_at, self.order.get(record.id, 0)),
            reverse=True,
        )

    def active_period(self) -> BudgetPeriod | None:
        active = [period for period in self.periods.values() if period.is_active]
        if not active:
            return None
        return self.newest_first(active)[0]

    def expenses_of(self, period_id: str) -> list[Expense]:
        owned = [expense for expense in self.expenses.values() if expense.period_id == period_id]
        return self.newest_first(owned)


class MemoryGateway(PersistenceGateway):
    """In-memory, non-persistent PersistenceGateway implementation."""

    def __init__(self) -> None:
        self._committed = _Tables()
        self._working: _Tables | None = None
        self._dirty = False
        self._lock = asyncio.Lock()
        self._version = 0
        self._active_stream: MutableStateStream[BudgetPeriod | None] = MutableStateStream(
            None, name="active_period"
        )
        self._expense_streams: dict[str, MutableStateStream[tuple[Expense, ...]]] = {}

    @property
    def version(self) -> int:
        """Number of committed transactions that changed data."""
        return self._version

    # ─── Live queries ─────────────────────────────────────────────────────────

    def get_active_period(self) -> StateStream[BudgetPeriod | None]:
        return self._active_stream

    def get_expenses(self, period_id: str) -> StateStream[tuple[Expense, ...]]:
        stream = self._expense_streams.get(period_id)
        if stream is None:
            stream = MutableStateStream(
                tuple(self._committed.expenses_of(period_id)),
                name=f"expenses[{period_id}]",
            )
            self._expense_streams[period_id] = stream
        return stream

    # ─── Periods ──────────────────────────────────────────────────────────────

    async def find_active_period(self) -> BudgetPeriod | None:
        return self._read().active_period()

    async def get_period(self, period_id: str) -> BudgetPeriod | None:
        return self._read().periods.get(period_id)

    async def list_periods(self) -> list[BudgetPeriod]:
        tables = self._read()
        return tables.newest_first(list(tables.periods.values()))

    async def insert_period(self, period: NewBudgetPeriod) -> str:
        def write(tables: _Tables) -> str:
            period_id = tables.next_id()
            tables.periods[period_id] = BudgetPeriod(id=period_id, **period.model_dump(exclude={"id"}))
            return period_id

        return await self._write(write)

    async def deactivate_all_periods(self) -> int:
        def write(tables: _Tables) -> int:
            changed = 0
            for period_id, period in list(tables.periods.items()):
                if period.is_active:
                    tables.periods[period_id] = period.model_copy(update={"is_active": False})
                    changed += 1
            return changed

        return await self._write(write)

    async def delete_period(self, period_id: str) -> int:
        def write(tables: _Tables) -> int:
            if tables.periods.pop(period_id, None) is None:
                return 0
            tables.order.pop(period_id, None)
            for expense in tables.expenses_of(period_id):
                del tables.expenses[expense.id]
                tables.order.pop(expense.id, None)
            return 1

        return await self._write(write)

    # ─── Expenses ─────────────────────────────────────────────────────────────

    async def get_expense(self, expense_id: str) -> Expense | None:
        return self._read().expenses.get(expense_id)

    async def list_expenses(self, period_id: str) -> list[Expense]:
        return self._read().expenses_of(period_id)

    async def insert_expense(self, expense: NewExpense) -> str:
        def write(tables: _Tables) -> str:
            if expense.period_id not in tables.periods:
                raise GatewayIntegrityError(
                    f"Expense references unknown budget period '{expense.period_id}'."
                )
            expense_id = tables.next_id()
            tables.expenses[expense_id] = Expense(id=expense_id, **expense.model_dump(exclude={"id"}))
            return expense_id

        return await self._write(write)

    async def delete_expense(self, expense_id: str) -> int:
        def write(tables: _Tables) -> int:
            if tables.expenses.pop(expense_id, None) is None:
                return 0
            tables.order.pop(expense_id, None)
            return 1

        return await self._write(write)

    async def delete_expenses_for_period(self, period_id: str) -> int:
        def write(tables: _Tables) -> int:
            owned = tables.expenses_of(period_id)
            for expense in owned:
                del tables.expenses[expense.id]
                tables.order.pop(expense.id, None)
            return len(owned)

        return await self._write(write)

    # ─── Transactions ─────────────────────────────────────────────────────────

    async def run_atomically(self, block: Callable[[], Awaitable[T]]) -> T:
        if self._in_transaction():
            return await block()

        committed = False
        async with self._lock:
            working = self._working = self._committed.copy()
            self._dirty = False
            token = _current_transaction.set(working)
            try:
                result = await block()
                if self._dirty:
                    await self._persist(working)
            except BaseException:
                logger.debug("transaction_rolled_back")
                raise
            else:
                if self._dirty:
                    self._committed = working
                    self._version += 1
                    committed = True
            finally:
                _current_transaction.reset(token)
                self._working = None
                self._dirty = False

        # Subscribers may start new transactions, so publish outside the lock.
        if committed:
            self._publish()
        return result

    async def _persist(self, tables: _Tables) -> None:
        """Hook for durable subclasses; called with the state about to commit."""

    # ─── Private helpers ──────────────────────────────────────────────────────

    def _in_transaction(self) -> bool:
        return self._working is not None and _current_transaction.get() is self._working

    def _read(self) -> _Tables:
        if self._in_transaction():
            assert self._working is not None
            return self._working
        return self._committed

    async def _write(self, mutate: Callable[[_Tables], T]) -> T:
        async def block() -> T:
            working = self._working
            if working is None or not self._in_transaction():
                raise RuntimeError("Gateway write attempted outside its transaction.")
            result = mutate(working)
            self._dirty = True
            return result

        return await self.run_atomically(block)

    def _publish(self) -> None:
        tables = self._committed
        with stream_batch():
            self._active_stream.emit(tables.active_period())
            for period_id, stream in list(self._expense_streams.items()):
                stream.emit(tuple(tables.expenses_of(period_id)))
                if period_id not in tables.periods and stream.subscriber_count == 0:
                    del self._expense_streams[period_id]
        logger.debug("transaction_committed", extra={"version": self._version})
