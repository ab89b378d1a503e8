"""
ReconciliationService -- keeps a client's stored tasks in step with the rules.

Responsibility:
    Loads the client's stored tasks, runs the generator, computes the pure
    ``ReconciliationPlan`` and applies it through the TaskStore as one unit.

Architecture position:
    Kernel > Services -- imperative shell around
    ``deadline_kernel.domain.reconciliation``.

Invariants enforced:
    - A plan is applied inside ``store.atomic()``: readers see all of it or
      none of it.
    - Re-running after a successful apply produces an empty plan.
    - Profile-change invalidation only touches tasks due on or after the
      effective date; history before it is never rewritten.

Failure modes:
    - StoreUnavailableError propagates; the pass is safe to retry.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date

from deadline_kernel.domain.clock import Clock, SystemClock
from deadline_kernel.domain.generator import TaskGenerator
from deadline_kernel.domain.periods import PeriodRange
from deadline_kernel.domain.reconciliation import ReconciliationPlan, reconcile
from deadline_kernel.domain.rules import RuleCatalog
from deadline_kernel.domain.types import ClientProfile, DeletionReason
from deadline_kernel.logging_config import get_logger
from deadline_kernel.services.interfaces import TaskStore

logger = get_logger("services.reconciliation")


class ReconciliationService:
    """
    Per-client reconcile and profile-change invalidation.

    The generation window defaults to 1 January of ``today.year - years_back``
    through 31 December of ``today.year + years_forward``.
    """

    def __init__(
        self,
        store: TaskStore,
        generator: TaskGenerator,
        catalog: RuleCatalog,
        clock: Clock | None = None,
        years_back: int = 0,
        years_forward: int = 3,
    ):
        self._store = store
        self._generator = generator
        self._catalog = catalog
        self._clock = clock or SystemClock()
        self._years_back = years_back
        self._years_forward = years_forward

    @property
    def catalog(self) -> RuleCatalog:
        return self._catalog

    @property
    def store(self) -> TaskStore:
        return self._store

    def default_window(self) -> PeriodRange:
        year = self._clock.today().year
        return PeriodRange.for_years(year - self._years_back, year + self._years_forward)

    def plan_client(
        self,
        profile: ClientProfile,
        window: PeriodRange | None = None,
    ) -> ReconciliationPlan:
        """Compute the plan without writing anything."""
        window = window or self.default_window()
        stored = self._store.get_tasks_by_client(profile.client_id, include_deleted=True)
        generated = self._generator.generate(profile, self._catalog, window)
        plan = reconcile(profile, stored, generated, window)
        logger.info(
            "reconciliation_planned",
            extra={
                "client_id": profile.client_id,
                "window_start": window.start,
                "window_end": window.end,
                **plan.counts(),
            },
        )
        return plan

    def apply_plan(self, plan: ReconciliationPlan) -> dict[str, int]:
        """Apply a plan as one unit; returns rows actually written per kind."""
        applied = {"inserted": 0, "updated": 0, "soft_deleted": 0}
        if plan.is_empty:
            return applied

        with self._store.atomic():
            applied["inserted"] = self._store.insert_many(plan.to_insert)
            for correction in plan.to_update_due_date:
                if self._store.update_due_date(
                    correction.task_id,
                    correction.new_due_date,
                    correction.original_due_date,
                ):
                    applied["updated"] += 1
            for task_id in plan.to_soft_delete:
                if self._store.soft_delete(task_id, DeletionReason.RECONCILIATION):
                    applied["soft_deleted"] += 1

        logger.info(
            "reconciliation_applied",
            extra={"client_id": plan.client_id, **applied},
        )
        return applied

    def reconcile_client(
        self,
        profile: ClientProfile,
        window: PeriodRange | None = None,
    ) -> ReconciliationPlan:
        plan = self.plan_client(profile, window)
        self.apply_plan(plan)
        return plan

    def invalidate_from(
        self,
        profile: ClientProfile,
        effective_date: date,
    ) -> ReconciliationPlan:
        """Re-derive a client's tasks from ``effective_date`` onward.

        Open automatic tasks due on or after the date are soft-deleted, then
        the window [effective_date, horizon end] is reconciled; tasks whose
        rules still apply are revived with fresh data.
        """
        profile = replace(profile, effective_date=effective_date)
        horizon = self.default_window()
        window = PeriodRange(effective_date, max(effective_date, horizon.end))

        with self._store.atomic():
            invalidated = self._store.soft_delete_open_automatic_from(
                profile.client_id, effective_date, DeletionReason.PROFILE_CHANGE,
            )
            logger.info(
                "profile_tasks_invalidated",
                extra={
                    "client_id": profile.client_id,
                    "effective_date": effective_date,
                    "invalidated": len(invalidated),
                },
            )
            plan = self.reconcile_client(profile, window)
        return plan
