# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Fixed-point money helpers.

Amounts cross the public API as ``Decimal`` values with two fractional
digits. Anything that sums amounts converts to integer cents first and only
converts back at the boundary, so totals never drift no matter how many
small expenses are added.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")

AmountInput = Decimal | float | int | str


def parse_amount(value: AmountInput) -> Decimal:
    """
    Convert caller input to a ``Decimal`` without rounding.

    Floats go through ``repr`` so ``0.1`` becomes ``Decimal("0.1")`` rather
    than its binary expansion. NaN and infinities are returned as the
    corresponding non-finite ``Decimal``; callers decide what to do with them.

    Raises ValueError if the value cannot be read as a number.
    """
    if isinstance(value, bool):
        raise ValueError(f"Amount must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        if math.isnan(value):
            return Decimal("NaN")
        if math.isinf(value):
            return Decimal("Infinity") if value > 0 else Decimal("-Infinity")
        return Decimal(repr(value))
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Amount must be numeric, got {value!r}") from exc
    raise ValueError(f"Amount must be numeric, got {type(value).__name__}")


def quantize(amount: Decimal) -> Decimal:
    """Round a finite amount to whole cents (half-up)."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    """Convert a finite amount to an integer number of cents."""
    return int(quantize(amount) * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-place ``Decimal``."""
    return (Decimal(cents) / 100).quantize(CENT)


def format_amount(amount: Decimal) -> str:
    """Render an amount for messages, e.g. ``1,234.50``."""
    return f"{quantize(amount):,.2f}"
