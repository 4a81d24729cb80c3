# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Result type returned by every BudgetEngine command.

A command either succeeds with a payload or fails with one of the
``BudgetEngineError`` kinds. Callers branch on the variant instead of
catching exceptions::

    result = await engine.add_expense("Groceries", "150.00")
    if result.is_success:
        print(result.value.remaining_amount_after)
    else:
        print(result.error.code, result.error.message)

Structural pattern matching works as well::

    match result:
        case Success(value=outcome):
            ...
        case Failure(error=NoActivePeriodError()):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, NoReturn, TypeVar, Union

from budget_cycle.errors import BudgetEngineError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def is_success(self) -> bool:
        return True

    @property
    def is_failure(self) -> bool:
        return False

    def value_or_none(self) -> T | None:
        return self.value

    def error_or_none(self) -> BudgetEngineError | None:
        return None

    def unwrap(self) -> T:
        return self.value

    def map(self, transform: Callable[[T], U]) -> Result[U]:
        return Success(transform(self.value))

    def flat_map(self, transform: Callable[[T], Result[U]]) -> Result[U]:
        return transform(self.value)

    def get_or_default(self, default: T) -> T:
        return self.value

    def get_or_else(self, fallback: Callable[[BudgetEngineError], T]) -> T:
        return self.value

    def on_success(self, action: Callable[[T], object]) -> Result[T]:
        action(self.value)
        return self

    def on_failure(self, action: Callable[[BudgetEngineError], object]) -> Result[T]:
        return self


@dataclass(frozen=True)
class Failure:
    error: BudgetEngineError

    @property
    def is_success(self) -> bool:
        return False

    @property
    def is_failure(self) -> bool:
        return True

    def value_or_none(self) -> None:
        return None

    def error_or_none(self) -> BudgetEngineError:
        return self.error

    def unwrap(self) -> NoReturn:
        """Raise the carried error."""
        raise self.error

    def map(self, transform: Callable[[object], object]) -> Failure:
        return self

    def flat_map(self, transform: Callable[[object], object]) -> Failure:
        return self

    def get_or_default(self, default: T) -> T:
        return default

    def get_or_else(self, fallback: Callable[[BudgetEngineError], T]) -> T:
        return fallback(self.error)

    def on_success(self, action: Callable[[object], object]) -> Failure:
        return self

    def on_failure(self, action: Callable[[BudgetEngineError], object]) -> Failure:
        action(self.error)
        return self


Result = Union[Success[T], Failure]
