# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from budget_cycle.clock import as_utc, days_between, utc_now
from budget_cycle.config import DEFAULT_CONFIG
from budget_cycle.money import format_amount, quantize


class _Record(BaseModel):
    """Shared config: frozen, amounts in cents precision, timestamps in UTC."""

    model_config = ConfigDict(frozen=True)

    @field_validator("*", mode="after")
    @classmethod
    def _normalise(cls, value: object) -> object:
        if isinstance(value, Decimal) and value.is_finite():
            return quantize(value)
        if isinstance(value, datetime):
            return as_utc(value)
        return value


# ─── Budget period ────────────────────────────────────────────────────────────


class NewBudgetPeriod(_Record):
    """Insert draft for a budget period. The gateway assigns the id."""

    disposable_amount: Decimal = Field(..., ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    renewal_at: datetime
    is_active: bool = True

    @model_validator(mode="after")
    def _renewal_after_creation(self) -> "NewBudgetPeriod":
        if self.renewal_at <= self.created_at:
            raise ValueError("renewal_at must be strictly after created_at")
        return self


class BudgetPeriod(NewBudgetPeriod):
    """One allowance cycle as stored by the gateway."""

    id: str

    def is_valid(self) -> bool:
        return self.disposable_amount >= 0 and self.renewal_at > self.created_at

    def days_until_renewal(self, now: datetime | None = None) -> int:
        """Whole days left until renewal; 0 once the renewal date is reached."""
        return days_between(now or utc_now(), self.renewal_at)

    def is_renewal_reached(self, now: datetime | None = None) -> bool:
        return as_utc(now or utc_now()) >= self.renewal_at

    def is_near_renewal(
        self,
        now: datetime | None = None,
        threshold_days: int | None = None,
    ) -> bool:
        """
        True when fewer than ``threshold_days`` whole days remain.

        ``threshold_days`` defaults to ``EngineConfig.near_renewal_days``.
        """
        if threshold_days is None:
            threshold_days = DEFAULT_CONFIG.near_renewal_days
        return self.days_until_renewal(now) < threshold_days


# ─── Expense ──────────────────────────────────────────────────────────────────


class NewExpense(_Record):
    """Insert draft for an expense. The gateway assigns the id."""

    period_id: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    created_at: datetime = Field(default_factory=utc_now)


class Expense(NewExpense):
    """A planned or realised outflow against one budget period."""

    id: str

    def is_valid(self) -> bool:
        return bool(self.description.strip()) and self.amount > 0 and bool(self.period_id)

    def is_large_expense(self, threshold: Decimal | None = None) -> bool:
        """At or above ``threshold``, by default ``EngineConfig.large_expense_threshold``."""
        if threshold is None:
            threshold = DEFAULT_CONFIG.large_expense_threshold
        return self.amount >= threshold

    def formatted_description(self, max_length: int = 50) -> str:
        """The description, cut to ``max_length`` characters with an ellipsis."""
        if len(self.description) <= max_length:
            return self.description
        return self.description[: max_length - 3] + "..."

    def age_in_days(self, now: datetime | None = None) -> int:
        return days_between(self.created_at, now or utc_now())

    def is_created_today(self, now: datetime | None = None) -> bool:
        return self.created_at.date() == as_utc(now or utc_now()).date()


# ─── Aggregate ────────────────────────────────────────────────────────────────


class BudgetAggregate(_Record):
    """
    Derived summary of the active period. Never persisted.

    With no active period every amount is zero, every flag is False and
    ``period_id`` is None.
    """

    period_id: Optional[str] = None
    disposable_amount: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    remaining_amount: Decimal = Decimal("0.00")
    is_over_budget: bool = False
    overspend_amount: Decimal = Decimal("0.00")
    days_until_renewal: int = 0
    expense_count: int = 0
    expense_percentage: Decimal = Decimal("0.00")
    is_near_overspending: bool = False


# ─── Renewal details ──────────────────────────────────────────────────────────


class ReminderLevel(str, Enum):
    """How urgently the host should remind the user about renewal."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RenewalDetails(_Record):
    """Time-remaining breakdown for a single budget period."""

    period_id: str
    renewal_at: datetime
    days_until_renewal: int
    hours_until_renewal: int
    minutes_until_renewal: int
    is_renewal_reached: bool
    is_near_renewal: bool
    total_period_days: int
    elapsed_days: int

    @property
    def progress_percentage(self) -> float:
        if self.total_period_days <= 0:
            return 0.0
        return min(100.0, (self.elapsed_days / self.total_period_days) * 100.0)

    @property
    def reminder_level(self) -> ReminderLevel:
        if self.is_renewal_reached:
            return ReminderLevel.URGENT
        if self.days_until_renewal <= 1:
            return ReminderLevel.HIGH
        if self.days_until_renewal <= 3:
            return ReminderLevel.MEDIUM
        if self.days_until_renewal <= 7:
            return ReminderLevel.LOW
        return ReminderLevel.NONE

    def countdown(self) -> str:
        if self.is_renewal_reached:
            return "Renewal date reached"
        if self.days_until_renewal > 0:
            return f"{self.days_until_renewal} day(s)"
        if self.hours_until_renewal > 0:
            return f"{self.hours_until_renewal} hour(s)"
        if self.minutes_until_renewal > 0:
            return f"{self.minutes_until_renewal} minute(s)"
        return "Less than a minute"


# ─── Command outcomes ─────────────────────────────────────────────────────────


class AddExpenseOutcome(_Record):
    """
    Result payload of ``add_expense``.

    The overspend figures come from the aggregate *before* the insert. The
    expense is stored whether or not it overspends.
    """

    expense_id: str
    will_overspend: bool
    overspend_amount: Decimal
    remaining_amount_after: Decimal
    low_balance_threshold: Decimal = Decimal("100")
    is_large_expense: bool = False

    @property
    def is_near_overspending(self) -> bool:
        return not self.will_overspend and self.remaining_amount_after < self.low_balance_threshold

    def overspend_warning(self) -> str | None:
        if not self.will_overspend:
            return None
        return f"Warning: this expense overspends the budget by {format_amount(self.overspend_amount)}"


class DeleteExpenseOutcome(_Record):
    """Result payload of ``delete_expense``; carries the removed record."""

    deleted_expense: Expense
    affected_rows: int

    @property
    def was_successful(self) -> bool:
        return self.affected_rows > 0

    def success_message(self) -> str:
        return (
            f"Deleted expense: {self.deleted_expense.formatted_description()} "
            f"({format_amount(self.deleted_expense.amount)})"
        )


class BatchDeleteSummary(_Record):
    """Per-id outcome of ``delete_expenses_batch``."""

    deleted: tuple[Expense, ...] = ()
    failed_ids: tuple[str, ...] = ()
    total_amount_deleted: Decimal = Decimal("0.00")

    @property
    def success_count(self) -> int:
        return len(self.deleted)

    @property
    def failure_count(self) -> int:
        return len(self.failed_ids)

    @property
    def is_all_successful(self) -> bool:
        return self.failure_count == 0

    @property
    def is_partially_successful(self) -> bool:
        return self.success_count > 0 and self.failure_count > 0

    def result_message(self) -> str:
        if self.is_all_successful:
            return (
                f"Deleted {self.success_count} expense(s) totalling "
                f"{format_amount(self.total_amount_deleted)}"
            )
        if self.is_partially_successful:
            return f"Deleted {self.success_count} expense(s); {self.failure_count} failed"
        return f"Delete failed for all {self.failure_count} expense(s)"


class ExpenseInput(BaseModel):
    """One item of ``add_expenses_batch``."""

    description: str
    amount: Decimal | float | int | str
