# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
budget-cycle — household budget periods, expenses and a live spending view.

Quick start::

    import asyncio
    from budget_cycle import BudgetEngine

    async def main() -> None:
        engine = BudgetEngine()
        await engine.create_period("1000.00")

        engine.aggregate.subscribe(lambda aggregate: print(aggregate.remaining_amount))

        result = await engine.add_expense("Groceries", "150.00")
        if result.is_success and result.value.will_overspend:
            print(result.value.overspend_warning())

    asyncio.run(main())
"""

from budget_cycle.aggregation import (
    EMPTY_AGGREGATE,
    compute_aggregate,
    days_until,
    overspend_precheck,
    renewal_details,
)
from budget_cycle.config import DEFAULT_CONFIG, EngineConfig
from budget_cycle.engine import BudgetEngine
from budget_cycle.errors import (
    BudgetEngineError,
    NoActivePeriodError,
    NotFoundError,
    PartialFailure,
    PersistenceError,
    ValidationError,
)
from budget_cycle.gateway import FileGateway, GatewayIntegrityError, MemoryGateway, PersistenceGateway
from budget_cycle.read_model import BudgetReadModel
from budget_cycle.result import Failure, Result, Success
from budget_cycle.streams import (
    MutableStateStream,
    StateStream,
    Subscription,
    combine_latest,
    constant,
    map_stream,
    stream_batch,
    switch_map,
)
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
    ReminderLevel,
    RenewalDetails,
)
from budget_cycle.validation import (
    ValidationReason,
    ValidationResult,
    validate_expense_amount,
    validate_expense_input,
    validate_period_input,
)

__all__ = [
    # Core class
    "BudgetEngine",
    "BudgetReadModel",
    # Types
    "BudgetPeriod",
    "NewBudgetPeriod",
    "Expense",
    "NewExpense",
    "ExpenseInput",
    "BudgetAggregate",
    "RenewalDetails",
    "ReminderLevel",
    "AddExpenseOutcome",
    "DeleteExpenseOutcome",
    "BatchDeleteSummary",
    "EngineConfig",
    "DEFAULT_CONFIG",
    # Results and errors
    "Result",
    "Success",
    "Failure",
    "BudgetEngineError",
    "ValidationError",
    "NotFoundError",
    "NoActivePeriodError",
    "PersistenceError",
    "PartialFailure",
    # Validation
    "ValidationReason",
    "ValidationResult",
    "validate_expense_amount",
    "validate_expense_input",
    "validate_period_input",
    # Aggregation
    "EMPTY_AGGREGATE",
    "compute_aggregate",
    "days_until",
    "overspend_precheck",
    "renewal_details",
    # Streams
    "StateStream",
    "MutableStateStream",
    "Subscription",
    "stream_batch",
    "map_stream",
    "switch_map",
    "combine_latest",
    "constant",
    # Persistence
    "PersistenceGateway",
    "GatewayIntegrityError",
    "MemoryGateway",
    "FileGateway",
]
