"""Session-bound services (imperative shell around the pure domain)."""

from deadline_kernel.services.completion_service import CompletionService
from deadline_kernel.services.interfaces import (
    ClientDirectory,
    ProfileChangeFeed,
    StaticClientDirectory,
    TaskStore,
)
from deadline_kernel.services.profile_change_processor import (
    ProfileChangeProcessor,
    ProfileChangeResult,
)
from deadline_kernel.services.profile_feed import SqlProfileChangeFeed
from deadline_kernel.services.reconciliation_service import ReconciliationService
from deadline_kernel.services.task_store import SYSTEM_ACTOR_ID, SqlTaskStore

__all__ = [
    "TaskStore",
    "ProfileChangeFeed",
    "ClientDirectory",
    "StaticClientDirectory",
    "SqlTaskStore",
    "SqlProfileChangeFeed",
    "ReconciliationService",
    "CompletionService",
    "ProfileChangeProcessor",
    "ProfileChangeResult",
    "SYSTEM_ACTOR_ID",
]
