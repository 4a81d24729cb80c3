# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Shared fixtures for budget-cycle tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from budget_cycle.engine import BudgetEngine
from budget_cycle.gateway.memory import MemoryGateway
from budget_cycle.types import BudgetPeriod, Expense

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> MemoryGateway:
    return MemoryGateway()


@pytest.fixture
def engine(gateway: MemoryGateway, clock: FakeClock) -> BudgetEngine:
    """An engine over an empty in-memory gateway with a frozen clock."""
    return BudgetEngine(gateway=gateway, clock=clock)


def make_period(
    disposable_amount: str = "1000.00",
    days: int = 30,
    period_id: str = "period-1",
    created_at: datetime = START,
    is_active: bool = True,
) -> BudgetPeriod:
    return BudgetPeriod(
        id=period_id,
        disposable_amount=Decimal(disposable_amount),
        created_at=created_at,
        renewal_at=created_at + timedelta(days=days),
        is_active=is_active,
    )


def make_expense(
    amount: str,
    period_id: str = "period-1",
    expense_id: str = "expense-1",
    description: str = "Groceries",
    created_at: datetime = START,
) -> Expense:
    return Expense(
        id=expense_id,
        period_id=period_id,
        description=description,
        amount=Decimal(amount),
        created_at=created_at,
    )
