# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
BudgetReadModel — the continuously updated view the UI observes.

Composition::

    gateway.get_active_period() ──┬──────────────────────────┐
                                  │                          ▼
                                  └─ switch_map ─► expenses ─► combine_latest(compute_aggregate)

``expenses`` follows ``gateway.get_expenses(active.id)`` and switches when
the active period changes. Gateway commits are published inside a stream
batch, so by the time any subscriber runs both inputs of the fold hold their
post-commit values: one commit yields at most one aggregate emission and
never a transient zero state.
"""

from __future__ import annotations

from datetime import datetime

from budget_cycle.aggregation import compute_aggregate
from budget_cycle.clock import Clock, utc_now
from budget_cycle.config import DEFAULT_CONFIG, EngineConfig
from budget_cycle.gateway.interface import PersistenceGateway
from budget_cycle.streams import (
    MutableStateStream,
    StateStream,
    combine_latest,
    constant,
    stream_batch,
    switch_map,
)
from budget_cycle.types import BudgetAggregate, BudgetPeriod, Expense

_NO_EXPENSES: StateStream[tuple[Expense, ...]] = constant((), name="no_expenses")


class BudgetReadModel:
    """
    Read-only projection of the active period, its expenses and the aggregate.

    Parameters
    ----------
    gateway:
        Source of the live period and expense streams.
    clock:
        Returns "now" for ``days_until_renewal``. Defaults to UTC wall time.
    config:
        Thresholds used by the aggregate.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self._gateway = gateway
        self._clock: Clock = clock or utc_now
        self._config = config or DEFAULT_CONFIG
        # Bumped by refresh() so the fold re-reads the clock.
        self._tick: MutableStateStream[int] = MutableStateStream(0, name="tick")

        self._active_period = gateway.get_active_period()
        self._expenses = switch_map(self._active_period, self._expenses_for, name="expenses")
        inputs = combine_latest(
            self._active_period,
            self._expenses,
            lambda period, expenses: (period, expenses),
            name="period+expenses",
        )
        self._aggregate = combine_latest(
            inputs,
            self._tick,
            lambda pair, _tick: self._fold(*pair),
            name="aggregate",
        )

    @property
    def active_period(self) -> StateStream[BudgetPeriod | None]:
        return self._active_period

    @property
    def expenses(self) -> StateStream[tuple[Expense, ...]]:
        """Expenses of the active period, newest first; empty with no period."""
        return self._expenses

    @property
    def aggregate(self) -> StateStream[BudgetAggregate]:
        return self._aggregate

    def now(self) -> datetime:
        return self._clock()

    def refresh(self) -> BudgetAggregate:
        """
        Recompute the aggregate against the current clock.

        Data changes recompute automatically; call this on a timer so
        ``days_until_renewal`` advances while nothing is being edited.
        """
        with stream_batch():
            self._tick.emit(self._tick.value + 1)
        return self._aggregate.value

    def _expenses_for(self, period: BudgetPeriod | None) -> StateStream[tuple[Expense, ...]]:
        if period is None:
            return _NO_EXPENSES
        return self._gateway.get_expenses(period.id)

    def _fold(
        self,
        period: BudgetPeriod | None,
        expenses: tuple[Expense, ...],
    ) -> BudgetAggregate:
        return compute_aggregate(period, expenses, now=self._clock(), config=self._config)
