"""
deadline_batch.domain.types -- Frozen result dataclasses for generation runs.

Frozen dataclasses with enum status fields and tuples for immutable
collections, like the kernel DTOs.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class ClientRunStatus(str, Enum):
    """Outcome of one client's reconciliation within a run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Run-level outcome."""

    COMPLETED = "completed"  # Every client succeeded (or there were none)
    PARTIALLY_COMPLETED = "partially_completed"  # Some clients failed
    FAILED = "failed"  # No client succeeded


@dataclass(frozen=True)
class ClientRunResult:
    client_id: str
    status: ClientRunStatus
    inserted: int = 0
    updated: int = 0
    soft_deleted: int = 0
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == ClientRunStatus.SUCCEEDED


@dataclass(frozen=True)
class GenerationRunResult:
    """Returned by ``GenerationRunner.run()``."""

    run_id: UUID
    status: RunStatus
    rule_set_version: str
    rule_set_checksum: str
    client_results: tuple[ClientRunResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def total_clients(self) -> int:
        return len(self.client_results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.client_results if r.succeeded)

    @property
    def failed(self) -> int:
        return self.total_clients - self.succeeded

    def for_client(self, client_id: str) -> ClientRunResult | None:
        for result in self.client_results:
            if result.client_id == client_id:
                return result
        return None

    @staticmethod
    def status_for(results: tuple[ClientRunResult, ...]) -> RunStatus:
        failed = sum(1 for r in results if not r.succeeded)
        if failed == 0:
            return RunStatus.COMPLETED
        if failed == len(results):
            return RunStatus.FAILED
        return RunStatus.PARTIALLY_COMPLETED
