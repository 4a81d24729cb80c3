# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Tests for the Success / Failure result variants and the error taxonomy."""

from __future__ import annotations

import pytest

from budget_cycle.errors import BudgetEngineError, NotFoundError, PersistenceError
from budget_cycle.result import Failure, Success


# ---------------------------------------------------------------------------
# TestSuccess
# ---------------------------------------------------------------------------


class TestSuccess:
    def test_accessors(self) -> None:
        result = Success(3)
        assert result.is_success is True
        assert result.is_failure is False
        assert result.value_or_none() == 3
        assert result.error_or_none() is None
        assert result.unwrap() == 3

    def test_map_and_flat_map(self) -> None:
        assert Success(3).map(lambda value: value * 2) == Success(6)
        assert Success(3).flat_map(lambda value: Failure(NotFoundError("Expense", "x"))).is_failure

    def test_on_success_runs_action(self) -> None:
        seen: list[int] = []
        Success(1).on_success(seen.append).on_failure(lambda error: seen.append(-1))
        assert seen == [1]


# ---------------------------------------------------------------------------
# TestFailure
# ---------------------------------------------------------------------------


class TestFailure:
    def test_unwrap_raises_carried_error(self) -> None:
        error = NotFoundError("Expense", "e-1")
        with pytest.raises(NotFoundError, match="e-1"):
            Failure(error).unwrap()

    def test_defaults(self) -> None:
        failure = Failure(NotFoundError("Expense", "e-1"))
        assert failure.get_or_default(7) == 7
        assert failure.get_or_else(lambda error: error.code) == "NOT_FOUND"
        assert failure.map(lambda value: value) is failure

    def test_pattern_matching(self) -> None:
        failure = Failure(NotFoundError("BudgetPeriod", "p-1"))
        match failure:
            case Failure(error=NotFoundError(entity=entity)):
                assert entity == "BudgetPeriod"
            case _:
                pytest.fail("expected NotFoundError failure")


# ---------------------------------------------------------------------------
# TestErrors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_persistence_error_wraps_cause(self) -> None:
        cause = OSError("disk full")
        error = PersistenceError(cause, "add_expense")
        assert isinstance(error, BudgetEngineError)
        assert error.cause is cause
        assert "during add_expense" in error.message
        assert error.code == "PERSISTENCE_FAILED"

    def test_repr_includes_code(self) -> None:
        assert "NOT_FOUND" in repr(NotFoundError("Expense", "e-1"))
