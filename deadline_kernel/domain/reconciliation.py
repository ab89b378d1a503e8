"""
Reconciliation diff -- stored tasks vs. a fresh generation pass.

Contract:
    ``reconcile(profile, stored, generated, window)`` returns a
    ``ReconciliationPlan`` with three disjoint lists:

        to_insert            GeneratedTask with no live stored counterpart
        to_update_due_date   DueDateCorrection for open automatic tasks whose
                             current due date differs from the fresh one
        to_soft_delete       ids of open automatic tasks no longer generated

Guarantees:
    - PURE and idempotent: applying the plan and re-running with the same
      inputs yields an empty plan.
    - Manual tasks are never in any list.
    - Completed and archived tasks are never in to_update_due_date or
      to_soft_delete.
    - A task soft-deleted by reconciliation or a profile change is queued
      for insert again when its rule applies again; a task the user deleted
      is left alone.
    - Only stored tasks whose original or current due date lies in
      ``window`` are candidates for soft-delete.
    - When the profile carries an ``effective_date``, nothing due before it
      is inserted or soft-deleted: the stored tasks are authoritative for
      the time before the change.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable
from uuid import UUID

from deadline_kernel.domain.periods import PeriodRange
from deadline_kernel.domain.types import (
    ClientProfile,
    DeletionReason,
    GeneratedTask,
    ProfileChange,
    StoredTask,
)


@dataclass(frozen=True)
class DueDateCorrection:
    task_id: str
    previous_due_date: date
    new_due_date: date
    original_due_date: date


@dataclass(frozen=True)
class ReconciliationPlan:
    client_id: str
    to_insert: tuple[GeneratedTask, ...] = ()
    to_update_due_date: tuple[DueDateCorrection, ...] = ()
    to_soft_delete: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.to_insert or self.to_update_due_date or self.to_soft_delete)

    def counts(self) -> dict[str, int]:
        return {
            "inserted": len(self.to_insert),
            "updated": len(self.to_update_due_date),
            "soft_deleted": len(self.to_soft_delete),
        }


def _revivable(task: StoredTask) -> bool:
    return task.soft_deleted and task.deletion_reason != DeletionReason.USER


def reconcile(
    profile: ClientProfile,
    stored: Iterable[StoredTask],
    generated: Iterable[GeneratedTask],
    window: PeriodRange | None = None,
) -> ReconciliationPlan:
    stored_by_id = {
        task.task_id: task
        for task in stored
        if task.is_automatic and task.client_id == profile.client_id
    }
    generated_ids: set[str] = set()
    cutoff = profile.effective_date

    to_insert: list[GeneratedTask] = []
    to_update: list[DueDateCorrection] = []

    for task in generated:
        generated_ids.add(task.task_id)
        existing = stored_by_id.get(task.task_id)
        if existing is None or existing.soft_deleted:
            if cutoff is not None and task.effective_date < cutoff:
                continue
            if existing is None or _revivable(existing):
                to_insert.append(task)
            continue
        if existing.is_completed or existing.archived or existing.is_floating:
            continue
        if existing.current_due_date != task.effective_date:
            to_update.append(
                DueDateCorrection(
                    task_id=task.task_id,
                    previous_due_date=existing.current_due_date,
                    new_due_date=task.effective_date,
                    original_due_date=task.nominal_date,
                )
            )

    to_delete: list[str] = []
    for task_id, existing in stored_by_id.items():
        if task_id in generated_ids or not existing.is_open:
            continue
        if cutoff is not None and existing.current_due_date < cutoff:
            continue
        if window is not None and not (
            window.contains(existing.original_due_date)
            or window.contains(existing.current_due_date)
        ):
            continue
        to_delete.append(task_id)

    return ReconciliationPlan(
        client_id=profile.client_id,
        to_insert=tuple(to_insert),
        to_update_due_date=tuple(to_update),
        to_soft_delete=tuple(sorted(to_delete)),
    )


def tasks_to_invalidate(
    stored: Iterable[StoredTask],
    effective_date: date,
) -> list[str]:
    """Open automatic tasks due on or after ``effective_date``."""
    return sorted(
        task.task_id
        for task in stored
        if task.is_automatic and task.is_open and task.current_due_date >= effective_date
    )


@dataclass(frozen=True)
class ClientInvalidation:
    """Pending profile changes for one client collapsed to one date."""

    client_id: str
    effective_date: date
    change_ids: tuple[UUID, ...] = field(default=())


def collapse_profile_changes(
    changes: Iterable[ProfileChange],
) -> list[ClientInvalidation]:
    """Collapse unprocessed changes per client to the earliest effective date.

    Already-processed changes are ignored.  Output is ordered by client id.
    """
    grouped: dict[str, list[ProfileChange]] = defaultdict(list)
    for change in changes:
        if not change.is_processed:
            grouped[change.client_id].append(change)

    return [
        ClientInvalidation(
            client_id=client_id,
            effective_date=min(c.effective_date for c in client_changes),
            change_ids=tuple(c.change_id for c in client_changes),
        )
        for client_id, client_changes in sorted(grouped.items())
    ]
