# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Pure input validation for budget periods and expenses.

Nothing here touches the gateway, the clock (unless ``now`` is omitted) or
any shared state. Rules are checked in a fixed order and the first violation
wins, so a given input always produces the same reason.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from budget_cycle.clock import as_utc, utc_now
from budget_cycle.config import DEFAULT_CONFIG, EngineConfig
from budget_cycle.errors import ValidationError
from budget_cycle.money import AmountInput, format_amount, parse_amount, quantize


class ValidationReason(str, Enum):
    EMPTY_DESCRIPTION = "empty_description"
    DESCRIPTION_TOO_LONG = "description_too_long"
    MALFORMED_AMOUNT = "malformed_amount"
    NON_FINITE_AMOUNT = "non_finite_amount"
    NON_POSITIVE_AMOUNT = "non_positive_amount"
    NEGATIVE_AMOUNT = "negative_amount"
    AMOUNT_TOO_LARGE = "amount_too_large"
    RENEWAL_NOT_IN_FUTURE = "renewal_not_in_future"
    RENEWAL_TOO_FAR_OUT = "renewal_too_far_out"
    EMPTY_BATCH = "empty_batch"


class ValidationResult(BaseModel):
    """
    Outcome of a validation call.

    On success ``reason`` is None and the normalised inputs are populated:
    ``description`` trimmed and ``amount`` rounded to cents.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    reason: Optional[ValidationReason] = None
    message: str = ""
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    renewal_at: Optional[datetime] = None

    @classmethod
    def fail(cls, reason: ValidationReason, message: str) -> "ValidationResult":
        return cls(valid=False, reason=reason, message=message)

    def to_error(self) -> ValidationError:
        """Build the ValidationError for a failed result."""
        if self.valid or self.reason is None:
            raise ValueError("to_error() called on a successful ValidationResult")
        return ValidationError(self.reason, self.message)


# Amounts this large are rejected unrounded; rounding them to cents would
# overflow the default decimal precision.
_MAGNITUDE_LIMIT = Decimal("1e15")


def _check_amount(raw: AmountInput) -> Decimal | ValidationResult:
    try:
        amount = parse_amount(raw)
    except ValueError:
        return ValidationResult.fail(
            ValidationReason.MALFORMED_AMOUNT, f"Amount {raw!r} is not a number."
        )
    if not amount.is_finite():
        return ValidationResult.fail(
            ValidationReason.NON_FINITE_AMOUNT, "Amount must be a finite number."
        )
    if amount.copy_abs() >= _MAGNITUDE_LIMIT:
        return amount
    return quantize(amount)


def validate_expense_input(
    description: str,
    amount: AmountInput,
    config: EngineConfig | None = None,
) -> ValidationResult:
    """
    Validate the inputs of an expense.

    Fails with EMPTY_DESCRIPTION, DESCRIPTION_TOO_LONG, MALFORMED_AMOUNT,
    NON_FINITE_AMOUNT, NON_POSITIVE_AMOUNT or AMOUNT_TOO_LARGE, checked in
    that order.
    """
    config = config or DEFAULT_CONFIG

    trimmed = (description or "").strip()
    if not trimmed:
        return ValidationResult.fail(
            ValidationReason.EMPTY_DESCRIPTION, "Expense description must not be empty."
        )
    if len(trimmed) > config.max_description_length:
        return ValidationResult.fail(
            ValidationReason.DESCRIPTION_TOO_LONG,
            f"Expense description must be at most {config.max_description_length} "
            f"characters; got {len(trimmed)}.",
        )

    amount_result = validate_expense_amount(amount, config)
    if not amount_result.valid:
        return amount_result
    return ValidationResult(valid=True, description=trimmed, amount=amount_result.amount)


def validate_expense_amount(
    amount: AmountInput,
    config: EngineConfig | None = None,
) -> ValidationResult:
    """The amount rules of ``validate_expense_input`` on their own."""
    config = config or DEFAULT_CONFIG

    checked = _check_amount(amount)
    if isinstance(checked, ValidationResult):
        return checked
    if checked <= 0:
        return ValidationResult.fail(
            ValidationReason.NON_POSITIVE_AMOUNT, "Expense amount must be greater than 0."
        )
    if checked > config.max_expense_amount:
        return ValidationResult.fail(
            ValidationReason.AMOUNT_TOO_LARGE,
            f"Expense amount must not exceed {format_amount(config.max_expense_amount)}.",
        )
    return ValidationResult(valid=True, amount=checked)


def validate_period_input(
    disposable_amount: AmountInput,
    renewal_at: datetime | None,
    now: datetime | None = None,
    config: EngineConfig | None = None,
) -> ValidationResult:
    """
    Validate the inputs of a new budget period.

    ``renewal_at=None`` means "use the default period length" and is resolved
    to ``now + config.default_period_days`` before the date rules run.

    Fails with MALFORMED_AMOUNT, NON_FINITE_AMOUNT, NEGATIVE_AMOUNT,
    AMOUNT_TOO_LARGE, RENEWAL_NOT_IN_FUTURE or RENEWAL_TOO_FAR_OUT.
    """
    config = config or DEFAULT_CONFIG
    now = as_utc(now or utc_now())

    checked = _check_amount(disposable_amount)
    if isinstance(checked, ValidationResult):
        return checked
    if checked < 0:
        return ValidationResult.fail(
            ValidationReason.NEGATIVE_AMOUNT, "Disposable amount must not be negative."
        )
    if checked > config.max_disposable_amount:
        return ValidationResult.fail(
            ValidationReason.AMOUNT_TOO_LARGE,
            f"Disposable amount must not exceed {format_amount(config.max_disposable_amount)}.",
        )

    if renewal_at is None:
        resolved = now + timedelta(days=config.default_period_days)
    else:
        resolved = as_utc(renewal_at)
    if resolved <= now:
        return ValidationResult.fail(
            ValidationReason.RENEWAL_NOT_IN_FUTURE, "Renewal date must be in the future."
        )
    if resolved > now + timedelta(days=config.max_renewal_days):
        return ValidationResult.fail(
            ValidationReason.RENEWAL_TOO_FAR_OUT,
            f"Renewal date must be within {config.max_renewal_days} days.",
        )

    return ValidationResult(valid=True, amount=checked, renewal_at=resolved)
