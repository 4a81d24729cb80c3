# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from budget_cycle.types import BatchDeleteSummary, Expense
    from budget_cycle.validation import ValidationReason


class BudgetEngineError(Exception):
    """Base class for every error the budget engine reports."""

    def __init__(self, message: str, code: str = "BUDGET_ENGINE_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(BudgetEngineError):
    """
    Raised or returned when caller input is malformed.

    Never retried. The message is safe to show to the caller verbatim.

    Attributes:
        reason: The first rule the input violated.
    """

    def __init__(self, reason: ValidationReason, message: str) -> None:
        super().__init__(message, code="VALIDATION_FAILED")
        self.reason = reason


class NotFoundError(BudgetEngineError):
    """
    A referenced budget period or expense does not exist.

    Attributes:
        entity: ``"BudgetPeriod"`` or ``"Expense"``.
        entity_id: The identifier that failed to resolve.
    """

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(
            f"{entity} '{entity_id}' does not exist.",
            code="NOT_FOUND",
        )
        self.entity = entity
        self.entity_id = entity_id


class NoActivePeriodError(BudgetEngineError):
    """A mutation needed the active period but none exists."""

    def __init__(self) -> None:
        super().__init__(
            "There is no active budget period. Create one with create_period() first.",
            code="NO_ACTIVE_PERIOD",
        )


class PersistenceError(BudgetEngineError):
    """
    The persistence gateway failed.

    The engine does not retry; callers may retry at their own discretion.

    Attributes:
        cause: The exception raised by the gateway.
    """

    def __init__(self, cause: BaseException, operation: str | None = None) -> None:
        operation_text = f" during {operation}" if operation else ""
        super().__init__(
            f"Persistence gateway failed{operation_text}: {cause}",
            code="PERSISTENCE_FAILED",
        )
        self.cause = cause
        self.operation = operation


class PartialFailure(BudgetEngineError):
    """
    A batch operation completed for some items and failed for others.

    Attributes:
        summary: The full batch summary.
        succeeded: Records that were processed successfully.
        failed: Identifiers that could not be processed.
    """

    def __init__(self, summary: BatchDeleteSummary) -> None:
        super().__init__(
            f"{summary.success_count} item(s) succeeded, "
            f"{summary.failure_count} item(s) failed.",
            code="PARTIAL_FAILURE",
        )
        self.summary = summary

    @property
    def succeeded(self) -> list[Expense]:
        return list(self.summary.deleted)

    @property
    def failed(self) -> list[str]:
        return list(self.summary.failed_ids)
