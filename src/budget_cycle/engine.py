# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, Awaitable, Callable, Iterable, Sequence, TypeVar

from budget_cycle.aggregation import compute_aggregate, overspend_precheck, renewal_details
from budget_cycle.clock import Clock, utc_now
from budget_cycle.config import DEFAULT_CONFIG, EngineConfig
from budget_cycle.errors import (
    BudgetEngineError,
    NoActivePeriodError,
    NotFoundError,
    PartialFailure,
    PersistenceError,
    ValidationError,
)
from budget_cycle.gateway.interface import PersistenceGateway
from budget_cycle.gateway.memory import MemoryGateway
from budget_cycle.money import AmountInput, quantize
from budget_cycle.read_model import BudgetReadModel
from budget_cycle.result import Failure, Result, Success
from budget_cycle.streams import StateStream
from budget_cycle.types import (
    AddExpenseOutcome,
    BatchDeleteSummary,
    BudgetAggregate,
    BudgetPeriod,
    DeleteExpenseOutcome,
    Expense,
    ExpenseInput,
    NewBudgetPeriod,
    NewExpense,
    RenewalDetails,
)
from budget_cycle.validation import (
    ValidationReason,
    validate_expense_amount,
    validate_expense_input,
    validate_period_input,
)

logger = logging.getLogger("budget_cycle.engine")

T = TypeVar("T")


class BudgetEngine:
    """
    Command handlers and read model for one household budget.

    Design contract
    ---------------
    - Every command validates its input before touching the gateway. Invalid
      input never reaches ``insert_*``.
    - Every command returns a ``Result``. Taxonomy errors and gateway
      failures come back as ``Failure``; only cancellation propagates.
    - Multi-step writes run inside ``gateway.run_atomically`` so subscribers
      never observe zero or two active periods.
    - Mutations of one period are serialised. Period lifecycle changes take
      an engine-wide lock first, then the per-period lock, always in that
      order.
    - ``add_expense`` reports overspend but never blocks it.

    Usage
    -----
    ::

        engine = BudgetEngine()
        await engine.create_period("1000.00")

        result = await engine.add_expense("Groceries", "150.00")
        if result.is_success and result.value.will_overspend:
            warn(result.value.overspend_warning())

        engine.aggregate.subscribe(render)
    """

    def __init__(
        self,
        gateway: PersistenceGateway | None = None,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._gateway: PersistenceGateway = gateway if gateway is not None else MemoryGateway()
        self._config = config or DEFAULT_CONFIG
        self._clock: Clock = clock or utc_now
        self._read_model = BudgetReadModel(self._gateway, clock=self._clock, config=self._config)

        self._lifecycle_lock = asyncio.Lock()
        self._period_locks: dict[str, asyncio.Lock] = {}

    # ─── Read model ───────────────────────────────────────────────────────────

    @property
    def gateway(self) -> PersistenceGateway:
        return self._gateway

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def read_model(self) -> BudgetReadModel:
        return self._read_model

    @property
    def active_period(self) -> StateStream[BudgetPeriod | None]:
        return self._read_model.active_period

    @property
    def expenses(self) -> StateStream[tuple[Expense, ...]]:
        return self._read_model.expenses

    @property
    def aggregate(self) -> StateStream[BudgetAggregate]:
        return self._read_model.aggregate

    def refresh(self) -> BudgetAggregate:
        """Recompute the aggregate against the current clock."""
        return self._read_model.refresh()

    # ─── Period commands ──────────────────────────────────────────────────────

    async def create_period(
        self,
        disposable_amount: AmountInput,
        renewal_at: datetime | None = None,
    ) -> Result[str]:
        """
        Start a new active budget period and return its id.

        Any currently active period is deactivated in the same transaction.
        ``renewal_at`` defaults to ``config.default_period_days`` from now.
        """
        return await self._start_period("create_period", disposable_amount, renewal_at)

    async def renew_period(
        self,
        new_disposable_amount: AmountInput,
        renewal_at: datetime | None = None,
    ) -> Result[str]:
        """
        Start the next cycle. Same effect as ``create_period``.

        Expenses of the previous period are kept under that (now inactive)
        period. Use ``reset_period`` to discard them instead.
        """
        return await self._start_period("renew_period", new_disposable_amount, renewal_at)

    async def reset_period(
        self,
        new_disposable_amount: AmountInput,
        renewal_at: datetime | None = None,
    ) -> Result[str]:
        """
        Start the next cycle and delete the previous active period's expenses.

        Deactivation, expense deletion and insertion commit together.
        """
        return await self._start_period(
            "reset_period", new_disposable_amount, renewal_at, clear_previous=True
        )

    async def delete_period(self, period_id: str) -> Result[BudgetPeriod]:
        """Delete a period and, by cascade, all of its expenses."""

        async def apply() -> BudgetPeriod:
            async with self._locked_periods([period_id]):
                async def block() -> BudgetPeriod:
                    period = await self._gateway.get_period(period_id)
                    if period is None or await self._gateway.delete_period(period_id) == 0:
                        raise NotFoundError("BudgetPeriod", period_id)
                    return period

                period = await self._gateway.run_atomically(block)
            self._period_locks.pop(period_id, None)
            logger.info(
                "period_deleted",
                extra={"period_id": period_id, "was_active": period.is_active},
            )
            return period

        return await self._guard("delete_period", apply)

    # ─── Expense commands ─────────────────────────────────────────────────────

    async def add_expense(
        self,
        description: str,
        amount: AmountInput,
        period_id: str | None = None,
    ) -> Result[AddExpenseOutcome]:
        """
        Record an expense against ``period_id`` or, by default, the active period.

        The returned outcome reports whether the expense overspends, judged
        against the aggregate before the insert. Overspending expenses are
        still recorded.
        """
        validation = validate_expense_input(description, amount, self._config)
        if not validation.valid:
            return self._rejected("add_expense", validation.to_error())
        clean_description = validation.description
        clean_amount = validation.amount
        assert clean_description is not None and clean_amount is not None

        async def apply() -> AddExpenseOutcome:
            async with self._locked_period(period_id) as period:
                async def block() -> AddExpenseOutcome:
                    before = compute_aggregate(
                        period,
                        await self._gateway.list_expenses(period.id),
                        now=self._clock(),
                        config=self._config,
                    )
                    will_overspend, overspend, remaining_after = overspend_precheck(
                        before, clean_amount
                    )
                    expense_id = await self._gateway.insert_expense(
                        NewExpense(
                            period_id=period.id,
                            description=clean_description,
                            amount=clean_amount,
                            created_at=self._clock(),
                        )
                    )
                    return AddExpenseOutcome(
                        expense_id=expense_id,
                        will_overspend=will_overspend,
                        overspend_amount=overspend,
                        remaining_amount_after=remaining_after,
                        low_balance_threshold=self._config.low_balance_threshold,
                        is_large_expense=clean_amount >= self._config.large_expense_threshold,
                    )

                outcome = await self._gateway.run_atomically(block)

            logger.info(
                "expense_added",
                extra={
                    "period_id": period.id,
                    "expense_id": outcome.expense_id,
                    "amount": str(clean_amount),
                },
            )
            if outcome.will_overspend:
                logger.warning(
                    "budget_overspent",
                    extra={
                        "period_id": period.id,
                        "overspend_amount": str(outcome.overspend_amount),
                    },
                )
            return outcome

        return await self._guard("add_expense", apply)

    async def add_expenses_batch(
        self,
        items: Sequence[ExpenseInput],
        period_id: str | None = None,
    ) -> Result[list[str]]:
        """
        Record several expenses in one transaction.

        Every item is validated first; if any is invalid nothing is stored.
        """
        if not items:
            return self._rejected(
                "add_expenses_batch",
                ValidationError(ValidationReason.EMPTY_BATCH, "Expense list must not be empty."),
            )

        drafts: list[tuple[str, Decimal]] = []
        for index, item in enumerate(items):
            validation = validate_expense_input(item.description, item.amount, self._config)
            if not validation.valid:
                assert validation.reason is not None
                return self._rejected(
                    "add_expenses_batch",
                    ValidationError(
                        validation.reason,
                        f"Item {index} ({item.description!r}): {validation.message}",
                    ),
                )
            assert validation.description is not None and validation.amount is not None
            drafts.append((validation.description, validation.amount))

        async def apply() -> list[str]:
            async with self._locked_period(period_id) as period:
                async def block() -> list[str]:
                    created_at = self._clock()
                    return [
                        await self._gateway.insert_expense(
                            NewExpense(
                                period_id=period.id,
                                description=description,
                                amount=amount,
                                created_at=created_at,
                            )
                        )
                        for description, amount in drafts
                    ]

                expense_ids = await self._gateway.run_atomically(block)
            logger.info(
                "expenses_added",
                extra={"period_id": period.id, "count": len(expense_ids)},
            )
            return expense_ids

        return await self._guard("add_expenses_batch", apply)

    async def delete_expense(self, expense_id: str) -> Result[DeleteExpenseOutcome]:
        """Delete one expense and return the removed record."""

        async def apply() -> DeleteExpenseOutcome:
            expense = await self._gateway.get_expense(expense_id)
            if expense is None:
                raise NotFoundError("Expense", expense_id)

            async with self._locked_periods([expense.period_id]):
                async def block() -> DeleteExpenseOutcome:
                    current = await self._gateway.get_expense(expense_id)
                    if current is None:
                        raise NotFoundError("Expense", expense_id)
                    rows = await self._gateway.delete_expense(expense_id)
                    if rows == 0:
                        raise NotFoundError("Expense", expense_id)
                    return DeleteExpenseOutcome(deleted_expense=current, affected_rows=rows)

                outcome = await self._gateway.run_atomically(block)
            logger.info(
                "expense_deleted",
                extra={"period_id": expense.period_id, "expense_id": expense_id},
            )
            return outcome

        return await self._guard("delete_expense", apply)

    async def delete_expenses_batch(
        self,
        expense_ids: Sequence[str],
    ) -> Result[BatchDeleteSummary]:
        """
        Delete several expenses, best effort.

        Each id is attempted independently inside one transaction: a missing
        id or a failed delete is recorded and the remaining ids still run.
        Returns ``Success(summary)`` when every id was deleted and
        ``Failure(PartialFailure)`` carrying the same summary otherwise.
        """
        if not expense_ids:
            return self._rejected(
                "delete_expenses_batch",
                ValidationError(ValidationReason.EMPTY_BATCH, "Expense id list must not be empty."),
            )

        async def apply() -> BatchDeleteSummary:
            known: list[Expense] = []
            for expense_id in expense_ids:
                expense = await self._gateway.get_expense(expense_id)
                if expense is not None:
                    known.append(expense)

            async with self._locked_periods(expense.period_id for expense in known):
                async def block() -> BatchDeleteSummary:
                    deleted: list[Expense] = []
                    failed: list[str] = []
                    for expense_id in expense_ids:
                        try:
                            expense = await self._gateway.get_expense(expense_id)
                            if expense is None or await self._gateway.delete_expense(expense_id) == 0:
                                failed.append(expense_id)
                                continue
                        except Exception:
                            logger.exception(
                                "batch_delete_item_failed", extra={"expense_id": expense_id}
                            )
                            failed.append(expense_id)
                            continue
                        deleted.append(expense)
                    total = sum((expense.amount for expense in deleted), Decimal("0"))
                    return BatchDeleteSummary(
                        deleted=tuple(deleted),
                        failed_ids=tuple(failed),
                        total_amount_deleted=quantize(total),
                    )

                summary = await self._gateway.run_atomically(block)

            logger.info(
                "expenses_deleted",
                extra={
                    "success_count": summary.success_count,
                    "failure_count": summary.failure_count,
                },
            )
            if not summary.is_all_successful:
                raise PartialFailure(summary)
            return summary

        return await self._guard("delete_expenses_batch", apply)

    # ─── Queries ──────────────────────────────────────────────────────────────

    async def has_active_period(self) -> Result[bool]:
        async def apply() -> bool:
            return await self._gateway.find_active_period() is not None

        return await self._guard("has_active_period", apply)

    async def get_period(self, period_id: str) -> Result[BudgetPeriod]:
        return await self._guard("get_period", lambda: self._require_period(period_id))

    async def list_periods(self) -> Result[list[BudgetPeriod]]:
        return await self._guard("list_periods", self._gateway.list_periods)

    async def get_expense(self, expense_id: str) -> Result[Expense]:
        async def apply() -> Expense:
            expense = await self._gateway.get_expense(expense_id)
            if expense is None:
                raise NotFoundError("Expense", expense_id)
            return expense

        return await self._guard("get_expense", apply)

    async def remaining_for_period(self, period_id: str | None = None) -> Result[BudgetAggregate]:
        """One-shot aggregate for any period, active or not."""

        async def apply() -> BudgetAggregate:
            period = await self._resolve_period(period_id)
            expenses = await self._gateway.list_expenses(period.id)
            return compute_aggregate(period, expenses, now=self._clock(), config=self._config)

        return await self._guard("remaining_for_period", apply)

    async def would_overspend(
        self,
        amount: AmountInput,
        period_id: str | None = None,
    ) -> Result[bool]:
        """
        Whether adding ``amount`` now would leave the period overspent.

        The amount must pass the same rules as an ``add_expense`` amount.
        """
        validation = validate_expense_amount(amount, self._config)
        if not validation.valid:
            return self._rejected("would_overspend", validation.to_error())
        parsed = validation.amount
        assert parsed is not None

        async def apply() -> bool:
            period = await self._resolve_period(period_id)
            expenses = await self._gateway.list_expenses(period.id)
            before = compute_aggregate(period, expenses, now=self._clock(), config=self._config)
            will_overspend, _, _ = overspend_precheck(before, parsed)
            return will_overspend

        return await self._guard("would_overspend", apply)

    async def renewal_details(self, period_id: str | None = None) -> Result[RenewalDetails]:
        async def apply() -> RenewalDetails:
            period = await self._resolve_period(period_id)
            return renewal_details(period, now=self._clock(), config=self._config)

        return await self._guard("renewal_details", apply)

    async def can_delete(self, expense_id: str) -> Result[bool]:
        """True when ``expense_id`` resolves to a valid stored expense."""

        async def apply() -> bool:
            expense = await self._gateway.get_expense(expense_id)
            return expense is not None and expense.is_valid()

        return await self._guard("can_delete", apply)

    # ─── Private helpers ──────────────────────────────────────────────────────

    async def _start_period(
        self,
        operation: str,
        disposable_amount: AmountInput,
        renewal_at: datetime | None,
        clear_previous: bool = False,
    ) -> Result[str]:
        now = self._clock()
        validation = validate_period_input(disposable_amount, renewal_at, now=now, config=self._config)
        if not validation.valid:
            return self._rejected(operation, validation.to_error())
        assert validation.amount is not None and validation.renewal_at is not None
        draft = NewBudgetPeriod(
            disposable_amount=validation.amount,
            created_at=now,
            renewal_at=validation.renewal_at,
            is_active=True,
        )

        async def apply() -> str:
            async with self._lifecycle_lock:
                previous = await self._gateway.find_active_period()
                previous_lock = (
                    self._lock_for(previous.id) if clear_previous and previous else None
                )
                if previous_lock is not None:
                    await previous_lock.acquire()
                try:
                    async def block() -> str:
                        if previous_lock is not None and previous is not None:
                            await self._gateway.delete_expenses_for_period(previous.id)
                        await self._gateway.deactivate_all_periods()
                        return await self._gateway.insert_period(draft)

                    period_id = await self._gateway.run_atomically(block)
                finally:
                    if previous_lock is not None:
                        previous_lock.release()

            logger.info(
                "period_started",
                extra={
                    "operation": operation,
                    "period_id": period_id,
                    "previous_period_id": previous.id if previous else None,
                    "disposable_amount": str(draft.disposable_amount),
                },
            )
            return period_id

        return await self._guard(operation, apply)

    async def _require_period(self, period_id: str) -> BudgetPeriod:
        period = await self._gateway.get_period(period_id)
        if period is None:
            raise NotFoundError("BudgetPeriod", period_id)
        return period

    async def _resolve_period(self, period_id: str | None) -> BudgetPeriod:
        if period_id is not None:
            return await self._require_period(period_id)
        period = await self._gateway.find_active_period()
        if period is None:
            raise NoActivePeriodError()
        return period

    def _lock_for(self, period_id: str) -> asyncio.Lock:
        lock = self._period_locks.get(period_id)
        if lock is None:
            lock = self._period_locks[period_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def _locked_period(self, period_id: str | None) -> AsyncIterator[BudgetPeriod]:
        """
        Resolve a period and hold its mutation lock.

        Resolution and lock acquisition happen under the lifecycle lock, so
        the period cannot be replaced between the two.
        """
        async with self._lifecycle_lock:
            period = await self._resolve_period(period_id)
            lock = self._lock_for(period.id)
            await lock.acquire()
        try:
            yield period
        finally:
            lock.release()

    @asynccontextmanager
    async def _locked_periods(self, period_ids: Iterable[str]) -> AsyncIterator[None]:
        """Hold the mutation locks of several periods, acquired in id order."""
        locks: list[asyncio.Lock] = []
        async with self._lifecycle_lock:
            try:
                for period_id in sorted(set(period_ids)):
                    lock = self._lock_for(period_id)
                    await lock.acquire()
                    locks.append(lock)
            except BaseException:
                for lock in reversed(locks):
                    lock.release()
                raise
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    def _rejected(self, operation: str, error: ValidationError) -> Failure:
        logger.warning(
            "input_rejected",
            extra={"operation": operation, "reason": error.reason.value, "detail": error.message},
        )
        return Failure(error)

    async def _guard(self, operation: str, call: Callable[[], Awaitable[T]]) -> Result[T]:
        """
        Run ``call`` and fold its outcome into a Result.

        Engine errors become ``Failure`` as they are. Anything else came from
        the gateway and is wrapped in PersistenceError. Cancellation is not an
        ``Exception`` and propagates untouched.
        """
        try:
            return Success(await call())
        except PartialFailure as error:
            logger.warning(
                "batch_partially_failed",
                extra={"operation": operation, "failed_ids": list(error.failed)},
            )
            return Failure(error)
        except BudgetEngineError as error:
            logger.warning(
                "command_failed",
                extra={"operation": operation, "code": error.code, "detail": error.message},
            )
            return Failure(error)
        except Exception as exc:
            logger.exception("gateway_failed", extra={"operation": operation})
            return Failure(PersistenceError(exc, operation))
