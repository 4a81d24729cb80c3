# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from budget_cycle.gateway.file import FileGateway
from budget_cycle.gateway.interface import GatewayIntegrityError, PersistenceGateway
from budget_cycle.gateway.memory import MemoryGateway

__all__ = ["PersistenceGateway", "GatewayIntegrityError", "MemoryGateway", "FileGateway"]
