# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""Tests for MemoryGateway and FileGateway."""

from __future__ import annotations

import asyncio
import json
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from budget_cycle.gateway import FileGateway, GatewayIntegrityError, MemoryGateway
from budget_cycle.types import Expense, NewBudgetPeriod, NewExpense
from tests.conftest import START


def new_period(amount: str = "500", offset_minutes: int = 0) -> NewBudgetPeriod:
    created_at = START + timedelta(minutes=offset_minutes)
    return NewBudgetPeriod(
        disposable_amount=Decimal(amount),
        created_at=created_at,
        renewal_at=created_at + timedelta(days=30),
    )


def new_expense(period_id: str, amount: str = "10", offset_minutes: int = 0) -> NewExpense:
    return NewExpense(
        period_id=period_id,
        description="Coffee",
        amount=Decimal(amount),
        created_at=START + timedelta(minutes=offset_minutes),
    )


# ---------------------------------------------------------------------------
# TestMemoryGateway
# ---------------------------------------------------------------------------


class TestMemoryGateway:
    def test_insert_and_read_back(self, gateway: MemoryGateway) -> None:
        async def scenario() -> None:
            period_id = await gateway.insert_period(new_period())
            expense_id = await gateway.insert_expense(new_expense(period_id))

            period = await gateway.get_period(period_id)
            expense = await gateway.get_expense(expense_id)
            assert period is not None and period.id == period_id
            assert expense is not None and expense.period_id == period_id
            assert await gateway.find_active_period() == period

        asyncio.run(scenario())

    def test_expenses_are_listed_newest_first(self, gateway: MemoryGateway) -> None:
        async def scenario() -> list[Decimal]:
            period_id = await gateway.insert_period(new_period())
            await gateway.insert_expense(new_expense(period_id, "1", offset_minutes=1))
            await gateway.insert_expense(new_expense(period_id, "3", offset_minutes=3))
            await gateway.insert_expense(new_expense(period_id, "2", offset_minutes=2))
            return [expense.amount for expense in await gateway.list_expenses(period_id)]

        assert asyncio.run(scenario()) == [Decimal("3.00"), Decimal("2.00"), Decimal("1.00")]

    def test_expense_for_unknown_period_is_rejected(self, gateway: MemoryGateway) -> None:
        with pytest.raises(GatewayIntegrityError):
            asyncio.run(gateway.insert_expense(new_expense("nope")))
        assert gateway.version == 0

    def test_delete_counts(self, gateway: MemoryGateway) -> None:
        async def scenario() -> tuple[int, int]:
            period_id = await gateway.insert_period(new_period())
            expense_id = await gateway.insert_expense(new_expense(period_id))
            return await gateway.delete_expense(expense_id), await gateway.delete_expense(expense_id)

        assert asyncio.run(scenario()) == (1, 0)

    def test_delete_period_cascades(self, gateway: MemoryGateway) -> None:
        async def scenario() -> None:
            period_id = await gateway.insert_period(new_period())
            expense_id = await gateway.insert_expense(new_expense(period_id))
            assert await gateway.delete_period(period_id) == 1
            assert await gateway.get_expense(expense_id) is None
            assert await gateway.find_active_period() is None

        asyncio.run(scenario())

    def test_deactivate_all_periods(self, gateway: MemoryGateway) -> None:
        async def scenario() -> int:
            await gateway.insert_period(new_period())
            await gateway.insert_period(new_period(offset_minutes=1))
            changed = await gateway.deactivate_all_periods()
            assert await gateway.find_active_period() is None
            return changed

        assert asyncio.run(scenario()) == 2

    def test_transaction_commits_once(self, gateway: MemoryGateway) -> None:
        seen: list[object] = []
        gateway.get_active_period().subscribe(seen.append)

        async def scenario() -> None:
            async def block() -> None:
                first = await gateway.insert_period(new_period())
                await gateway.deactivate_all_periods()
                await gateway.insert_period(new_period(offset_minutes=1))
                assert first in {period.id for period in await gateway.list_periods()}

            await gateway.run_atomically(block)

        asyncio.run(scenario())
        assert gateway.version == 1
        assert len(seen) == 2
        assert seen[0] is None

    def test_reads_outside_transaction_see_committed_state(self, gateway: MemoryGateway) -> None:
        async def scenario() -> None:
            inside = asyncio.Event()
            release = asyncio.Event()

            async def block() -> None:
                await gateway.insert_period(new_period())
                inside.set()
                await release.wait()

            task = asyncio.create_task(gateway.run_atomically(block))
            await inside.wait()
            assert await gateway.find_active_period() is None
            release.set()
            await task
            assert await gateway.find_active_period() is not None

        asyncio.run(scenario())

    def test_task_spawned_in_transaction_commits_on_its_own(
        self, gateway: MemoryGateway
    ) -> None:
        async def scenario() -> None:
            spawned: list[asyncio.Task] = []

            async def block() -> None:
                await gateway.insert_period(new_period())
                spawned.append(
                    asyncio.create_task(gateway.insert_period(new_period(offset_minutes=1)))
                )

            await gateway.run_atomically(block)
            await spawned[0]
            assert len(await gateway.list_periods()) == 2

        asyncio.run(scenario())
        assert gateway.version == 2

    def test_subscriber_sees_no_open_transaction(self, gateway: MemoryGateway) -> None:
        spawned: list[asyncio.Task] = []

        def on_period(period) -> None:
            if period is not None and not spawned:
                insert = gateway.insert_period(new_period(offset_minutes=1))
                spawned.append(asyncio.create_task(insert))

        gateway.get_active_period().subscribe(on_period)

        async def scenario() -> None:
            await gateway.insert_period(new_period())
            await spawned[0]

        asyncio.run(scenario())
        assert gateway.version == 2

    def test_exception_rolls_back(self, gateway: MemoryGateway) -> None:
        async def scenario() -> None:
            async def block() -> None:
                await gateway.insert_period(new_period())
                raise RuntimeError("abort")

            with pytest.raises(RuntimeError):
                await gateway.run_atomically(block)
            assert await gateway.list_periods() == []

        asyncio.run(scenario())
        assert gateway.version == 0

    def test_expense_stream_tracks_commits(self, gateway: MemoryGateway) -> None:
        async def scenario() -> list[tuple[Expense, ...]]:
            period_id = await gateway.insert_period(new_period())
            seen: list[tuple[Expense, ...]] = []
            gateway.get_expenses(period_id).subscribe(seen.append)
            expense_id = await gateway.insert_expense(new_expense(period_id))
            await gateway.delete_expense(expense_id)
            return seen

        seen = asyncio.run(scenario())
        assert [len(snapshot) for snapshot in seen] == [0, 1, 0]


# ---------------------------------------------------------------------------
# TestFileGateway
# ---------------------------------------------------------------------------


class TestFileGateway:
    def test_snapshot_survives_reopen(self, tmp_path: Path) -> None:
        path = tmp_path / "budget.json"

        async def scenario() -> None:
            gateway = FileGateway(path)
            period_id = await gateway.insert_period(new_period("750.50"))
            expense_id = await gateway.insert_expense(new_expense(period_id, "12.34"))

            reopened = await FileGateway.open(path)
            period = await reopened.find_active_period()
            expenses = await reopened.list_expenses(period_id)
            assert period == await gateway.get_period(period_id)
            assert [expense.id for expense in expenses] == [expense_id]
            assert expenses[0].amount == Decimal("12.34")
            assert reopened.get_active_period().value == period

        asyncio.run(scenario())

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["periods"][0]["disposable_amount"] == "750.50"
        assert not (tmp_path / "budget.json.tmp").exists()

    def test_open_missing_file_starts_empty(self, tmp_path: Path) -> None:
        async def scenario() -> None:
            gateway = await FileGateway.open(tmp_path / "absent.json")
            assert await gateway.list_periods() == []

        asyncio.run(scenario())

    def test_unsupported_snapshot_version_is_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "budget.json"
        path.write_text(json.dumps({"version": 99}), encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported snapshot version"):
            asyncio.run(FileGateway.open(path))

    def test_failed_write_rolls_back(self, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        gateway = FileGateway(blocker / "budget.json")

        with pytest.raises(OSError):
            asyncio.run(gateway.insert_period(new_period()))
        assert gateway.version == 0
        assert gateway.get_active_period().value is None
