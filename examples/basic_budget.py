# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
basic_budget.py

Demonstrates one budget cycle end to end:
  1. Start a period with a monthly allowance.
  2. Watch the live aggregate while expenses are added.
  3. Delete a batch of expenses.
  4. Renew into the next cycle.

Run with:  python examples/basic_budget.py
(from the repository root with budget-cycle installed)
"""

import asyncio

from budget_cycle import BudgetAggregate, BudgetEngine, ExpenseInput, PartialFailure


def render(aggregate: BudgetAggregate) -> None:
    if aggregate.period_id is None:
        print("  [live] no active period")
        return
    print(
        f"  [live] spent={aggregate.total_expenses}  remaining={aggregate.remaining_amount}  "
        f"over_budget={aggregate.is_over_budget}  days_left={aggregate.days_until_renewal}"
    )


async def main() -> None:
    # ─── Setup ────────────────────────────────────────────────────────────────

    engine = BudgetEngine()
    engine.aggregate.subscribe(render)
    (await engine.create_period("1000.00")).unwrap()

    # ─── Record a month of spending ───────────────────────────────────────────

    planned = [("Groceries", "150.00"), ("Rent share", "600.00"), ("Concert", "280.00")]
    expense_ids = []
    for description, amount in planned:
        result = await engine.add_expense(description, amount)
        if result.is_failure:
            print(f"REJECTED {description}: {result.error.message}")
            continue
        outcome = result.value
        expense_ids.append(outcome.expense_id)
        warning = outcome.overspend_warning()
        if warning:
            print(f"  {warning}")

    await engine.add_expenses_batch(
        [ExpenseInput(description="Bus pass", amount="45"), ExpenseInput(description="Coffee", amount="3.20")]
    )

    # ─── Undo some of it ──────────────────────────────────────────────────────

    result = await engine.delete_expenses_batch([expense_ids[-1], "not-an-id"])
    if isinstance(result.error_or_none(), PartialFailure):
        print(f"  {result.error.summary.result_message()}")

    # ─── Renewal ──────────────────────────────────────────────────────────────

    details = (await engine.renewal_details()).unwrap()
    print(f"\nRenewal in {details.countdown()} (reminder: {details.reminder_level.value})")

    (await engine.renew_period("1100.00")).unwrap()

    print("\n── Periods ───────────────────────────────────────────")
    for period in (await engine.list_periods()).unwrap():
        summary = (await engine.remaining_for_period(period.id)).unwrap()
        print(
            f"  [{period.id[:8]}] active={period.is_active}  "
            f"allowance={period.disposable_amount}  remaining={summary.remaining_amount}"
        )
    print("──────────────────────────────────────────────────────")


if __name__ == "__main__":
    asyncio.run(main())
