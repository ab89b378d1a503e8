"""
ProfileChangeProcessor -- consumes the profile-change feed.

Contract:
    ``process_pending()`` collapses unprocessed changes per client to the
    earliest effective date, re-derives each client's tasks from that date
    and marks every collapsed change processed.

Guarantees:
    - At-least-once safe: re-processing a change is a no-op given the
      id-based reconciliation diff and the idempotent ``mark_processed``.
    - A change for an unknown client is logged as ``stale_profile_change``
      and marked processed.
    - A client's invalidation and its acknowledgements share one savepoint;
      if the caller rolls back, the changes stay pending.
    - Per-client isolation: any other error rolls back that client's
      savepoint, is logged as ``client_reconciliation_failed`` and leaves
      its changes pending; the remaining clients are still processed.

Failure modes:
    - StoreUnavailableError propagates; the remaining clients are left for
      the next cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from deadline_kernel.domain.reconciliation import (
    ClientInvalidation,
    collapse_profile_changes,
)
from deadline_kernel.exceptions import StaleReconciliationError, StoreUnavailableError
from deadline_kernel.logging_config import LogContext, get_logger
from deadline_kernel.services.interfaces import ClientDirectory, ProfileChangeFeed
from deadline_kernel.services.reconciliation_service import ReconciliationService

logger = get_logger("services.profile_changes")


@dataclass
class ProfileChangeResult:
    processed_change_ids: list = field(default_factory=list)
    reconciled_clients: list[str] = field(default_factory=list)
    stale_clients: list[str] = field(default_factory=list)
    failed_clients: list[str] = field(default_factory=list)


class ProfileChangeProcessor:
    def __init__(
        self,
        feed: ProfileChangeFeed,
        directory: ClientDirectory,
        reconciliation: ReconciliationService,
    ):
        self._feed = feed
        self._directory = directory
        self._reconciliation = reconciliation

    def process_pending(self) -> ProfileChangeResult:
        result = ProfileChangeResult()
        pending = self._feed.list_unprocessed()
        invalidations = collapse_profile_changes(pending)
        if len(invalidations) < len(pending):
            logger.info(
                "profile_changes_collapsed",
                extra={"changes": len(pending), "clients": len(invalidations)},
            )

        for invalidation in invalidations:
            client_id = invalidation.client_id
            with LogContext.bind(client_id=client_id):
                try:
                    with self._reconciliation.store.atomic():
                        reconciled = self._process_client(invalidation)
                        for change_id in invalidation.change_ids:
                            self._feed.mark_processed(change_id)
                except StoreUnavailableError:
                    raise
                except Exception as exc:
                    logger.exception(
                        "client_reconciliation_failed",
                        extra={"error_code": getattr(exc, "code", type(exc).__name__)},
                    )
                    result.failed_clients.append(client_id)
                    continue

                if reconciled:
                    result.reconciled_clients.append(client_id)
                else:
                    result.stale_clients.append(client_id)
                result.processed_change_ids.extend(invalidation.change_ids)
                logger.info(
                    "profile_change_processed",
                    extra={
                        "effective_date": invalidation.effective_date,
                        "change_count": len(invalidation.change_ids),
                    },
                )
        return result

    def _process_client(self, invalidation: ClientInvalidation) -> bool:
        """False when the client no longer exists (stale change)."""
        profile = self._directory.get_profile(invalidation.client_id)
        if profile is None:
            exc = StaleReconciliationError(
                str(invalidation.change_ids[0]), invalidation.client_id
            )
            logger.warning(
                "stale_profile_change",
                extra={"change_id": exc.change_id, "error_code": exc.code},
            )
            return False
        self._reconciliation.invalidate_from(profile, invalidation.effective_date)
        return True
