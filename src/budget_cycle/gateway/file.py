# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
JSON snapshot file gateway.

Behaves exactly like MemoryGateway, but every committed transaction first
writes the complete state to disk. The snapshot is written to a sibling
temporary file and then moved over the target, so a crash mid-write leaves
the previous snapshot intact. If the write fails the transaction rolls back
and nothing is published.
"""

from __future__ import annotations

import json
from pathlib import Path

import aiofiles
import aiofiles.os

from budget_cycle.gateway.memory import MemoryGateway, _Tables
from budget_cycle.types import BudgetPeriod, Expense

SNAPSHOT_VERSION = 1


def _encode(tables: _Tables) -> str:
    payload = {
        "version": SNAPSHOT_VERSION,
        "sequence": tables.sequence,
        "order": tables.order,
        "periods": [period.model_dump(mode="json") for period in tables.periods.values()],
        "expenses": [expense.model_dump(mode="json") for expense in tables.expenses.values()],
    }
    return json.dumps(payload, indent=2, sort_keys=True)


def _decode(text: str) -> _Tables:
    data = json.loads(text)
    if data.get("version") != SNAPSHOT_VERSION:
        raise ValueError(f"Unsupported snapshot version: {data.get('version')!r}")
    periods = [BudgetPeriod.model_validate(item) for item in data.get("periods", [])]
    expenses = [Expense.model_validate(item) for item in data.get("expenses", [])]
    return _Tables(
        periods={period.id: period for period in periods},
        expenses={expense.id: expense for expense in expenses},
        order={key: int(value) for key, value in data.get("order", {}).items()},
        sequence=int(data.get("sequence", 0)),
    )


class FileGateway(MemoryGateway):
    """
    Durable PersistenceGateway backed by a single JSON file.

    Parameters
    ----------
    file_path:
        Path to the snapshot file. Use ``FileGateway.open`` to load an
        existing snapshot; the constructor alone starts empty.
    """

    def __init__(self, file_path: str | Path) -> None:
        super().__init__()
        self._file_path = Path(file_path)

    @property
    def file_path(self) -> Path:
        return self._file_path

    @classmethod
    async def open(cls, file_path: str | Path) -> FileGateway:
        """Create a gateway and load the snapshot at ``file_path`` if it exists."""
        gateway = cls(file_path)
        await gateway.reload()
        return gateway

    async def reload(self) -> None:
        """Replace in-memory state with the snapshot on disk and republish."""
        if not self._file_path.exists():
            return
        async with aiofiles.open(self._file_path, mode="r", encoding="utf-8") as file_handle:
            text = await file_handle.read()
        if not text.strip():
            return
        self._committed = _decode(text)
        self._publish()

    async def _persist(self, tables: _Tables) -> None:
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        temporary = self._file_path.with_name(self._file_path.name + ".tmp")
        async with aiofiles.open(temporary, mode="w", encoding="utf-8") as file_handle:
            await file_handle.write(_encode(tables))
        await aiofiles.os.replace(temporary, self._file_path)
