"""
deadline_batch.domain -- Pure result types for batch runs.

ZERO I/O.  All types are frozen dataclasses.
"""

from deadline_batch.domain.types import (
    ClientRunResult,
    ClientRunStatus,
    GenerationRunResult,
    RunStatus,
)

__all__ = [
    "ClientRunResult",
    "ClientRunStatus",
    "GenerationRunResult",
    "RunStatus",
]
