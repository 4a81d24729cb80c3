# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field


class EngineConfig(BaseModel, frozen=True):
    """
    Limits and thresholds for a BudgetEngine.

    All fields have defaults, so ``EngineConfig()`` is a valid configuration.

    Attributes:
        max_expense_amount: Largest amount a single expense may carry.
            Must be below 1e15.
        max_disposable_amount: Largest allowance a budget period may carry.
            Must be below 1e15.
        max_description_length: Maximum expense description length after
            surrounding whitespace is trimmed.
        default_period_days: Period length used when no renewal date is given.
        max_renewal_days: How far in the future a renewal date may be set.
        near_renewal_days: A period with fewer days than this left is
            reported as near renewal.
        large_expense_threshold: Expenses at or above this amount are
            reported as large.
        low_balance_threshold: An add that leaves less than this amount
            (without overspending) is reported as near overspending.
        near_overspend_ratio: An aggregate whose remaining amount is below
            this fraction of the allowance is reported as near overspending.

    Example::

        config = EngineConfig(max_expense_amount=Decimal("5000"), default_period_days=14)
        engine = BudgetEngine(config=config)
    """

    max_expense_amount: Annotated[Decimal, Field(gt=0, lt=Decimal("1e15"))] = Decimal("999999.99")
    max_disposable_amount: Annotated[Decimal, Field(gt=0, lt=Decimal("1e15"))] = Decimal("9999999.99")
    max_description_length: Annotated[int, Field(gt=0)] = 50
    default_period_days: Annotated[int, Field(gt=0)] = 30
    max_renewal_days: Annotated[int, Field(gt=0)] = 365
    near_renewal_days: Annotated[int, Field(ge=0)] = 7
    large_expense_threshold: Annotated[Decimal, Field(gt=0)] = Decimal("1000")
    low_balance_threshold: Annotated[Decimal, Field(ge=0)] = Decimal("100")
    near_overspend_ratio: Annotated[Decimal, Field(ge=0, le=1)] = Decimal("0.1")


DEFAULT_CONFIG = EngineConfig()
