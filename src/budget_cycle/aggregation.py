# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Derived-value computation for a budget period.

``compute_aggregate`` is the fold the read model applies to the latest
(period, expenses) pair. It is a pure function of its arguments: the same
inputs always give an equal ``BudgetAggregate``, and the order of the
expenses never matters because amounts are summed as integer cents.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from budget_cycle.clock import as_utc, days_between, utc_now
from budget_cycle.config import DEFAULT_CONFIG, EngineConfig
from budget_cycle.money import from_cents, quantize, to_cents
from budget_cycle.types import BudgetAggregate, BudgetPeriod, Expense, RenewalDetails

_ONE_DAY = timedelta(days=1)
_ONE_HOUR = timedelta(hours=1)
_ONE_MINUTE = timedelta(minutes=1)

EMPTY_AGGREGATE = BudgetAggregate()


def days_until(renewal_at: datetime, now: datetime) -> int:
    """``max(0, floor((renewal_at - now) / 1 day))``."""
    return days_between(now, renewal_at)


def total_cents(expenses: Iterable[Expense]) -> int:
    """Sum expense amounts as integer cents."""
    return sum(to_cents(expense.amount) for expense in expenses)


def compute_aggregate(
    period: BudgetPeriod | None,
    expenses: Iterable[Expense],
    now: datetime | None = None,
    config: EngineConfig | None = None,
) -> BudgetAggregate:
    """
    Fold a period and its expenses into a BudgetAggregate.

    Expenses belonging to other periods are ignored, so a stale expense list
    can never leak into the figures of a newly activated period.
    With no period the zero aggregate is returned.
    """
    if period is None:
        return EMPTY_AGGREGATE
    config = config or DEFAULT_CONFIG
    now = as_utc(now or utc_now())

    owned = [expense for expense in expenses if expense.period_id == period.id]
    disposable_cents = to_cents(period.disposable_amount)
    spent_cents = total_cents(owned)
    remaining_cents = disposable_cents - spent_cents

    if disposable_cents > 0:
        percentage = quantize(Decimal(spent_cents) * 100 / Decimal(disposable_cents))
    else:
        percentage = Decimal("0.00")

    is_over_budget = remaining_cents < 0
    near_threshold = Decimal(disposable_cents) * config.near_overspend_ratio
    is_near_overspending = not is_over_budget and Decimal(remaining_cents) < near_threshold

    return BudgetAggregate(
        period_id=period.id,
        disposable_amount=from_cents(disposable_cents),
        total_expenses=from_cents(spent_cents),
        remaining_amount=from_cents(remaining_cents),
        is_over_budget=is_over_budget,
        overspend_amount=from_cents(max(0, -remaining_cents)),
        days_until_renewal=days_until(period.renewal_at, now),
        expense_count=len(owned),
        expense_percentage=percentage,
        is_near_overspending=is_near_overspending,
    )


def overspend_precheck(
    aggregate: BudgetAggregate,
    amount: Decimal,
) -> tuple[bool, Decimal, Decimal]:
    """
    Evaluate adding ``amount`` against an aggregate taken before the insert.

    Returns ``(will_overspend, overspend_amount, remaining_amount_after)``.
    ``overspend_amount`` is the total overspend once the expense is in, which
    matches the aggregate's ``overspend_amount`` after the insert.
    """
    remaining_cents = to_cents(aggregate.remaining_amount)
    amount_cents = to_cents(amount)
    after_cents = remaining_cents - amount_cents
    will_overspend = after_cents < 0
    overspend_cents = -after_cents if will_overspend else 0
    return will_overspend, from_cents(overspend_cents), from_cents(after_cents)


def renewal_details(
    period: BudgetPeriod,
    now: datetime | None = None,
    config: EngineConfig | None = None,
) -> RenewalDetails:
    """Break down the time left in ``period`` for countdowns and reminders."""
    config = config or DEFAULT_CONFIG
    now = as_utc(now or utc_now())
    remaining = period.renewal_at - now
    total_days = (period.renewal_at - period.created_at) // _ONE_DAY

    if remaining <= timedelta(0):
        return RenewalDetails(
            period_id=period.id,
            renewal_at=period.renewal_at,
            days_until_renewal=0,
            hours_until_renewal=0,
            minutes_until_renewal=0,
            is_renewal_reached=True,
            is_near_renewal=False,
            total_period_days=total_days,
            elapsed_days=total_days,
        )

    days = remaining // _ONE_DAY
    hours = (remaining % _ONE_DAY) // _ONE_HOUR
    minutes = (remaining % _ONE_HOUR) // _ONE_MINUTE
    elapsed = max(timedelta(0), now - period.created_at) // _ONE_DAY

    return RenewalDetails(
        period_id=period.id,
        renewal_at=period.renewal_at,
        days_until_renewal=days,
        hours_until_renewal=hours,
        minutes_until_renewal=minutes,
        is_renewal_reached=False,
        is_near_renewal=days < config.near_renewal_days,
        total_period_days=total_days,
        elapsed_days=elapsed,
    )
