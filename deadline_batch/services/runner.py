"""
GenerationRunner -- per-client concurrent reconciliation over a worker pool.

Contract:
    ``run()`` loads the rule catalog once, fans the clients out over a
    bounded ``ThreadPoolExecutor`` and reconciles each client in its own
    session, committing per client.  ``process_profile_changes()`` drains
    the profile-change feed in one session.

Architecture: deadline_batch/services.  Composes kernel services; owns the
    transaction boundaries the kernel services leave to their caller.

Invariants enforced:
    - Failure isolation: a client whose reconciliation raises is rolled
      back, logged as ``client_reconciliation_failed`` and reported as
      FAILED; the other clients are unaffected.
    - One catalog per run: every client in a run sees the same rule set.
    - Clock injection: all timestamps come from the injected Clock.
    - Re-running after a failure is safe; the per-client diff is
      idempotent.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from deadline_batch.domain.types import (
    ClientRunResult,
    ClientRunStatus,
    GenerationRunResult,
)
from deadline_kernel.domain.clock import Clock, SystemClock
from deadline_kernel.domain.generator import TaskGenerator
from deadline_kernel.domain.periods import PeriodRange
from deadline_kernel.domain.rules import RuleCatalog
from deadline_kernel.domain.types import ClientProfile
from deadline_kernel.logging_config import LogContext, get_logger
from deadline_kernel.services.interfaces import ClientDirectory
from deadline_kernel.services.profile_change_processor import (
    ProfileChangeProcessor,
    ProfileChangeResult,
)
from deadline_kernel.services.profile_feed import SqlProfileChangeFeed
from deadline_kernel.services.reconciliation_service import ReconciliationService
from deadline_kernel.services.task_store import SYSTEM_ACTOR_ID, SqlTaskStore

logger = get_logger("batch.runner")

ServiceFactory = Callable[[Session, RuleCatalog], ReconciliationService]


class GenerationRunner:
    """Runs reconciliation for many clients.

    Contract:
        - ``run(clients=None)`` reconciles the given profiles (default: every
          client in the directory) and returns a ``GenerationRunResult``.
        - ``process_profile_changes()`` handles pending profile changes and
          commits once.

    Non-goals:
        - NOT a scheduler; the host decides when to call ``run``.
        - Does NOT retry failed clients within a run.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        catalog_loader: Callable[[], RuleCatalog],
        generator: TaskGenerator,
        directory: ClientDirectory,
        clock: Clock | None = None,
        years_back: int = 0,
        years_forward: int = 3,
        max_workers: int = 4,
        actor_id: UUID = SYSTEM_ACTOR_ID,
        service_factory: ServiceFactory | None = None,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._session_factory = session_factory
        self._catalog_loader = catalog_loader
        self._generator = generator
        self._directory = directory
        self._clock = clock or SystemClock()
        self._years_back = years_back
        self._years_forward = years_forward
        self._max_workers = max_workers
        self._actor_id = actor_id
        self._service_factory = service_factory or self._default_service

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def run(
        self,
        clients: Iterable[ClientProfile] | None = None,
        window: PeriodRange | None = None,
    ) -> GenerationRunResult:
        run_id = uuid4()
        started_at = self._clock.now()
        start = time.monotonic()

        catalog = self._catalog_loader()
        profiles = list(clients) if clients is not None else self._directory.list_clients()

        with LogContext.bind(run_id=str(run_id)):
            logger.info(
                "generation_run_started",
                extra={
                    "client_count": len(profiles),
                    "rule_set_version": catalog.version,
                    "max_workers": self._max_workers,
                },
            )
            with ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="deadline-generation",
            ) as pool:
                results = tuple(
                    pool.map(
                        lambda profile: self._run_client(run_id, profile, catalog, window),
                        profiles,
                    )
                )

            result = GenerationRunResult(
                run_id=run_id,
                status=GenerationRunResult.status_for(results),
                rule_set_version=catalog.version,
                rule_set_checksum=catalog.checksum,
                client_results=results,
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            logger.info(
                "generation_run_completed",
                extra={
                    "status": result.status.value,
                    "total_clients": result.total_clients,
                    "succeeded": result.succeeded,
                    "failed": result.failed,
                    "duration_ms": result.duration_ms,
                },
            )
        return result

    def process_profile_changes(self) -> ProfileChangeResult:
        """Drain the profile-change feed; rolls back and re-raises on failure."""
        catalog = self._catalog_loader()
        session = self._session_factory()
        try:
            processor = ProfileChangeProcessor(
                feed=SqlProfileChangeFeed(session, self._clock, self._actor_id),
                directory=self._directory,
                reconciliation=self._service_factory(session, catalog),
            )
            result = processor.process_pending()
            session.commit()
            return result
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _default_service(self, session: Session, catalog: RuleCatalog) -> ReconciliationService:
        return ReconciliationService(
            store=SqlTaskStore(session, self._clock, self._actor_id),
            generator=self._generator,
            catalog=catalog,
            clock=self._clock,
            years_back=self._years_back,
            years_forward=self._years_forward,
        )

    def _run_client(
        self,
        run_id: UUID,
        profile: ClientProfile,
        catalog: RuleCatalog,
        window: PeriodRange | None,
    ) -> ClientRunResult:
        # Worker threads do not inherit the caller's context
        with LogContext.bind(run_id=str(run_id), client_id=profile.client_id):
            start = time.monotonic()
            session = self._session_factory()
            try:
                service = self._service_factory(session, catalog)
                plan = service.plan_client(profile, window)
                applied = service.apply_plan(plan)
                session.commit()
                return ClientRunResult(
                    client_id=profile.client_id,
                    status=ClientRunStatus.SUCCEEDED,
                    inserted=applied["inserted"],
                    updated=applied["updated"],
                    soft_deleted=applied["soft_deleted"],
                    duration_ms=int((time.monotonic() - start) * 1000),
                )
            except Exception as exc:
                session.rollback()
                logger.exception(
                    "client_reconciliation_failed",
                    extra={"error_code": getattr(exc, "code", type(exc).__name__)},
                )
                return ClientRunResult(
                    client_id=profile.client_id,
                    status=ClientRunStatus.FAILED,
                    error_code=getattr(exc, "code", type(exc).__name__),
                    error_message=str(exc),
                    duration_ms=int((time.monotonic() - start) * 1000),
                )
            finally:
                session.close()
