# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Abstract base class every persistence gateway must implement.

The engine depends on this contract only. A gateway provides durable CRUD
for periods and expenses, live query streams that re-emit after every
committed change, and an atomic scope for multi-step writes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, TypeVar

from budget_cycle.streams import StateStream
from budget_cycle.types import BudgetPeriod, Expense, NewBudgetPeriod, NewExpense

T = TypeVar("T")


class GatewayIntegrityError(Exception):
    """A write would break a storage constraint, e.g. a dangling period reference."""


class PersistenceGateway(ABC):
    """
    Contract for budget persistence backends.

    Implementations must guarantee:

    - Deleting a period deletes every expense that references it.
    - Inserting an expense whose ``period_id`` does not exist fails with
      GatewayIntegrityError.
    - Streams returned by ``get_active_period`` and ``get_expenses`` emit
      once per committed transaction that changes their result, never for
      uncommitted or rolled-back writes.
    - ``run_atomically`` applies all of a block's writes or none of them,
      including when the block is cancelled.
    """

    # ─── Live queries ─────────────────────────────────────────────────────────

    @abstractmethod
    def get_active_period(self) -> StateStream[BudgetPeriod | None]:
        """Stream of the active period, or None when there is none."""
        ...

    @abstractmethod
    def get_expenses(self, period_id: str) -> StateStream[tuple[Expense, ...]]:
        """Stream of the expenses of ``period_id``, newest first."""
        ...

    # ─── Periods ──────────────────────────────────────────────────────────────

    @abstractmethod
    async def find_active_period(self) -> BudgetPeriod | None:
        """One-shot read of the active period."""
        ...

    @abstractmethod
    async def get_period(self, period_id: str) -> BudgetPeriod | None:
        ...

    @abstractmethod
    async def list_periods(self) -> list[BudgetPeriod]:
        """All periods, newest first."""
        ...

    @abstractmethod
    async def insert_period(self, period: NewBudgetPeriod) -> str:
        """Persist a period and return its assigned id."""
        ...

    @abstractmethod
    async def deactivate_all_periods(self) -> int:
        """Clear ``is_active`` on every period; return how many changed."""
        ...

    @abstractmethod
    async def delete_period(self, period_id: str) -> int:
        """Delete a period and its expenses; return rows affected (0 or 1)."""
        ...

    # ─── Expenses ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_expense(self, expense_id: str) -> Expense | None:
        ...

    @abstractmethod
    async def list_expenses(self, period_id: str) -> list[Expense]:
        """One-shot read of a period's expenses, newest first."""
        ...

    @abstractmethod
    async def insert_expense(self, expense: NewExpense) -> str:
        """Persist an expense and return its assigned id."""
        ...

    @abstractmethod
    async def delete_expense(self, expense_id: str) -> int:
        """Delete one expense; return rows affected (0 or 1)."""
        ...

    @abstractmethod
    async def delete_expenses_for_period(self, period_id: str) -> int:
        """Delete every expense of a period; return how many were removed."""
        ...

    # ─── Transactions ─────────────────────────────────────────────────────────

    @abstractmethod
    async def run_atomically(self, block: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``block`` so that its writes are applied all-or-nothing.

        Calls nested inside an open block join the outer transaction.
        """
        ...
