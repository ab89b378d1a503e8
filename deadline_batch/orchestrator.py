"""
DeadlineOrchestrator -- DI container for the deadline engine's batch side.

Contract:
    Builds the calendar resolver, date resolver, task generator and
    lifecycle policy from a tenant's configuration, then hands out wired
    runners, refreshers and session-bound services.  Single place where
    all engine dependencies are composed.

Architecture: deadline_batch (top-level).  This is the canonical entry point
    for hosts that run generation and status refresh.

Invariants enforced:
    - Clock injection: every component receives the same Clock.
    - The rule catalog is re-read from configuration once per runner call,
      never cached across cycles.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from deadline_batch.services.runner import GenerationRunner
from deadline_batch.services.status_refresher import StatusListener, StatusRefresher
from deadline_config import get_engine_settings, list_active_rules, load_holiday_source
from deadline_config.schema import EngineSettings
from deadline_kernel.domain.calendar import CalendarResolver
from deadline_kernel.domain.clock import Clock, SystemClock
from deadline_kernel.domain.dates import DateResolver
from deadline_kernel.domain.generator import TaskGenerator
from deadline_kernel.domain.lifecycle import LifecyclePolicy
from deadline_kernel.domain.rules import RuleCatalog
from deadline_kernel.domain.types import StoredTask
from deadline_kernel.logging_config import get_logger
from deadline_kernel.services.completion_service import CompletionService
from deadline_kernel.services.interfaces import ClientDirectory
from deadline_kernel.services.profile_feed import SqlProfileChangeFeed
from deadline_kernel.services.reconciliation_service import ReconciliationService
from deadline_kernel.services.task_store import SYSTEM_ACTOR_ID, SqlTaskStore

logger = get_logger("batch.orchestrator")


class DeadlineOrchestrator:
    """DI container for generation, refresh and completion.

    Contract:
        - ``from_settings()`` builds a fully wired orchestrator for a tenant.
        - ``create_runner()`` returns a GenerationRunner.
        - ``create_refresher()`` returns a StatusRefresher (not started).
        - ``create_completion_service(session)`` and friends return
          session-bound kernel services.

    Non-goals:
        - Does NOT start the refresher automatically; caller decides.
        - Does NOT manage session lifecycle for the services it hands out.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        directory: ClientDirectory,
        catalog_loader: Callable[[], RuleCatalog],
        generator: TaskGenerator,
        settings: EngineSettings,
        clock: Clock | None = None,
        calendar: CalendarResolver | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> None:
        self._session_factory = session_factory
        self._directory = directory
        self._catalog_loader = catalog_loader
        self._generator = generator
        self._settings = settings
        self._clock = clock or SystemClock()
        self._calendar = calendar
        self._actor_id = actor_id
        self._policy = LifecyclePolicy(
            default_lead_days=settings.lifecycle.completion_lead_days,
            prior_year_amnesty=settings.lifecycle.prior_year_amnesty,
        )

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_settings(
        cls,
        tenant: str,
        session_factory: Callable[[], Session],
        directory: ClientDirectory,
        clock: Clock | None = None,
        config_dir: Path | None = None,
        calendar_dir: Path | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> DeadlineOrchestrator:
        """Create a fully wired orchestrator from the tenant's YAML set.

        Raises:
            FileNotFoundError: No set for the tenant, or no calendar file.
            ValueError: The tenant's settings fail validation.
        """
        settings = get_engine_settings(tenant, config_dir)
        effective_clock = clock or SystemClock(ZoneInfo(settings.calendar.timezone))
        source = load_holiday_source(
            settings.calendar.jurisdiction,
            calendar_dir,
            settings.calendar.weekend_days,
        )
        calendar = CalendarResolver(
            source,
            clock=effective_clock,
            years_back=settings.calendar.years_back,
            years_forward=settings.calendar.years_forward,
            weekend_days=settings.calendar.weekend_days,
        )
        calendar.load()
        generator = TaskGenerator(DateResolver(calendar), locale=settings.generation.locale)

        logger.info(
            "orchestrator_configured",
            extra={
                "tenant": tenant,
                "settings_version": settings.version,
                "jurisdiction": settings.calendar.jurisdiction,
                "degraded_years": sorted(calendar.degraded_years),
            },
        )

        return cls(
            session_factory=session_factory,
            directory=directory,
            catalog_loader=lambda: list_active_rules(tenant, config_dir),
            generator=generator,
            settings=settings,
            clock=effective_clock,
            calendar=calendar,
            actor_id=actor_id,
        )

    # -------------------------------------------------------------------------
    # Batch components
    # -------------------------------------------------------------------------

    def create_runner(self, max_workers: int | None = None) -> GenerationRunner:
        generation = self._settings.generation
        return GenerationRunner(
            session_factory=self._session_factory,
            catalog_loader=self._catalog_loader,
            generator=self._generator,
            directory=self._directory,
            clock=self._clock,
            years_back=generation.years_back,
            years_forward=generation.years_forward,
            max_workers=max_workers or generation.max_workers,
            actor_id=self._actor_id,
        )

    def create_refresher(
        self,
        listener: StatusListener | None = None,
        interval_seconds: float | None = None,
    ) -> StatusRefresher:
        return StatusRefresher(
            task_loader=self._load_visible_tasks,
            clock=self._clock,
            policy=self._policy,
            interval_seconds=interval_seconds or self._settings.lifecycle.refresh_interval_seconds,
            listener=listener,
        )

    # -------------------------------------------------------------------------
    # Session-bound services
    # -------------------------------------------------------------------------

    def create_task_store(self, session: Session) -> SqlTaskStore:
        return SqlTaskStore(session, self._clock, self._actor_id)

    def create_completion_service(self, session: Session) -> CompletionService:
        return CompletionService(self.create_task_store(session), self._clock, self._policy)

    def create_reconciliation_service(
        self,
        session: Session,
        catalog: RuleCatalog | None = None,
    ) -> ReconciliationService:
        generation = self._settings.generation
        return ReconciliationService(
            store=self.create_task_store(session),
            generator=self._generator,
            catalog=catalog if catalog is not None else self._catalog_loader(),
            clock=self._clock,
            years_back=generation.years_back,
            years_forward=generation.years_forward,
        )

    def create_profile_feed(self, session: Session) -> SqlProfileChangeFeed:
        return SqlProfileChangeFeed(session, self._clock, self._actor_id)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def policy(self) -> LifecyclePolicy:
        return self._policy

    @property
    def calendar(self) -> CalendarResolver | None:
        return self._calendar

    @property
    def generator(self) -> TaskGenerator:
        return self._generator

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _load_visible_tasks(self) -> list[StoredTask]:
        session = self._session_factory()
        try:
            return self.create_task_store(session).list_visible()
        finally:
            session.close()
