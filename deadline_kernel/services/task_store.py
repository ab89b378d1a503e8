"""
SqlTaskStore -- SQLAlchemy implementation of the TaskStore protocol.

Responsibility:
    Reads and writes ``deadline_tasks`` rows and returns immutable
    ``StoredTask`` DTOs.

Architecture position:
    Kernel > Services -- imperative shell.  Used by ReconciliationService,
    CompletionService and the batch runner.

Invariants enforced:
    - Flush-only: never commits or rolls back the session.
    - Per-id upsert: ``insert_many`` inserts unknown ids, revives tasks
      soft-deleted by reconciliation or a profile change, and leaves every
      other existing row untouched.  Replaying the same insert is a no-op.
    - Reconciliation writes are conditional: due-date updates and
      non-user soft-deletes only touch rows that are still OPEN, visible and
      not archived, so a task completed between planning and applying is
      never altered.
    - Manual tasks are never locked and never revived.

Failure modes:
    - TaskNotFoundError for unknown ids on single-task operations.
    - TaskAlreadyCompletedError / TaskNotCompletedError on invalid
      complete/reopen transitions.
    - StoreUnavailableError when the database cannot be reached.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Iterable, Iterator
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from deadline_kernel.domain.clock import Clock, SystemClock
from deadline_kernel.domain.types import (
    CompletionState,
    DeletionReason,
    GeneratedTask,
    StoredTask,
    TaskSource,
)
from deadline_kernel.exceptions import (
    TaskAlreadyCompletedError,
    TaskNotCompletedError,
    TaskNotFoundError,
)
from deadline_kernel.logging_config import get_logger
from deadline_kernel.models.task import TaskModel
from deadline_kernel.services.base import BaseService, translate_store_errors

logger = get_logger("services.task_store")

SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


class SqlTaskStore(BaseService[TaskModel]):
    """
    Task store backed by the ``deadline_tasks`` table.

    Non-goals:
        - Does NOT evaluate lifecycle rules (locks, blocking); the
          CompletionService does that before calling ``complete``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._actor_id = actor_id

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @translate_store_errors("get_tasks_by_client")
    def get_tasks_by_client(
        self, client_id: str, include_deleted: bool = False
    ) -> list[StoredTask]:
        stmt = select(TaskModel).where(TaskModel.client_id == client_id)
        if not include_deleted:
            stmt = stmt.where(TaskModel.soft_deleted.is_(False))
        stmt = stmt.order_by(TaskModel.current_due_date, TaskModel.task_id)
        return [row.to_dto() for row in self.session.scalars(stmt)]

    @translate_store_errors("list_visible")
    def list_visible(self, client_ids: Iterable[str] | None = None) -> list[StoredTask]:
        """Every task that is neither soft-deleted nor archived."""
        stmt = select(TaskModel).where(
            TaskModel.soft_deleted.is_(False),
            TaskModel.archived.is_(False),
        )
        if client_ids is not None:
            stmt = stmt.where(TaskModel.client_id.in_(list(client_ids)))
        stmt = stmt.order_by(
            TaskModel.client_id, TaskModel.current_due_date, TaskModel.task_id
        )
        return [row.to_dto() for row in self.session.scalars(stmt)]

    @translate_store_errors("get_task")
    def get_task(self, task_id: str) -> StoredTask:
        return self._load(task_id).to_dto()

    def _load(self, task_id: str) -> TaskModel:
        model = self.session.get(TaskModel, task_id)
        if model is None:
            raise TaskNotFoundError(task_id)
        return model

    # -------------------------------------------------------------------------
    # Reconciliation writes
    # -------------------------------------------------------------------------

    @translate_store_errors("insert_many")
    def insert_many(self, tasks: Iterable[GeneratedTask]) -> int:
        """Insert or revive generated tasks.  Returns rows written."""
        written = 0
        for task in tasks:
            existing = self.session.get(TaskModel, task.task_id)
            if existing is None:
                self.session.add(TaskModel.from_generated(task, self._actor_id))
                written += 1
            elif (
                existing.soft_deleted
                and existing.source == TaskSource.AUTOMATIC.value
                and existing.deletion_reason != DeletionReason.USER.value
            ):
                existing.apply_generated(task)
                existing.updated_by_id = self._actor_id
                written += 1
        self.session.flush()
        return written

    @translate_store_errors("update_due_date")
    def update_due_date(
        self,
        task_id: str,
        new_due_date: date,
        original_due_date: date | None = None,
    ) -> bool:
        """Move an open task's current due date.  False if the row no longer qualifies."""
        values: dict = {
            "current_due_date": new_due_date,
            "updated_by_id": self._actor_id,
        }
        if original_due_date is not None:
            values["original_due_date"] = original_due_date
        result = self.session.execute(
            update(TaskModel)
            .where(
                TaskModel.task_id == task_id,
                TaskModel.completion_state == CompletionState.OPEN.value,
                TaskModel.soft_deleted.is_(False),
                TaskModel.archived.is_(False),
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        self.session.flush()
        return result.rowcount > 0

    @translate_store_errors("soft_delete")
    def soft_delete(
        self,
        task_id: str,
        reason: DeletionReason = DeletionReason.USER,
    ) -> bool:
        """Hide a task.

        A user may delete any task.  Engine deletions only apply to open,
        visible, unarchived automatic tasks.
        """
        conditions = [TaskModel.task_id == task_id, TaskModel.soft_deleted.is_(False)]
        if reason != DeletionReason.USER:
            conditions += [
                TaskModel.source == TaskSource.AUTOMATIC.value,
                TaskModel.completion_state == CompletionState.OPEN.value,
                TaskModel.archived.is_(False),
            ]
        result = self.session.execute(
            update(TaskModel)
            .where(*conditions)
            .values(
                soft_deleted=True,
                deleted_at=self._clock.now(),
                deletion_reason=reason.value,
                updated_by_id=self._actor_id,
            )
            .execution_options(synchronize_session="fetch")
        )
        self.session.flush()
        return result.rowcount > 0

    @translate_store_errors("soft_delete_open_automatic_from")
    def soft_delete_open_automatic_from(
        self,
        client_id: str,
        effective_date: date,
        reason: DeletionReason = DeletionReason.PROFILE_CHANGE,
    ) -> list[str]:
        """Soft-delete open automatic tasks due on or after ``effective_date``."""
        ids = list(
            self.session.scalars(
                select(TaskModel.task_id)
                .where(
                    TaskModel.client_id == client_id,
                    TaskModel.source == TaskSource.AUTOMATIC.value,
                    TaskModel.completion_state == CompletionState.OPEN.value,
                    TaskModel.soft_deleted.is_(False),
                    TaskModel.archived.is_(False),
                    TaskModel.current_due_date >= effective_date,
                )
                .order_by(TaskModel.task_id)
            )
        )
        if ids:
            self.session.execute(
                update(TaskModel)
                .where(TaskModel.task_id.in_(ids))
                .values(
                    soft_deleted=True,
                    deleted_at=self._clock.now(),
                    deletion_reason=reason.value,
                    updated_by_id=self._actor_id,
                )
                .execution_options(synchronize_session="fetch")
            )
            self.session.flush()
        return ids

    # -------------------------------------------------------------------------
    # User actions
    # -------------------------------------------------------------------------

    @translate_store_errors("create_manual")
    def create_manual(
        self,
        client_id: str,
        title: str,
        due_date: date,
        is_floating: bool = False,
        description: str = "",
    ) -> StoredTask:
        model = TaskModel(
            task_id=str(uuid4()),
            client_id=client_id,
            title=title,
            source=TaskSource.MANUAL.value,
            original_due_date=due_date,
            current_due_date=due_date,
            completion_state=CompletionState.OPEN.value,
            is_floating=is_floating,
            description=description,
            law_reference="",
            created_by_id=self._actor_id,
        )
        self.session.add(model)
        self.session.flush()
        logger.info(
            "manual_task_created",
            extra={"task_id": model.task_id, "client_id": client_id, "is_floating": is_floating},
        )
        return model.to_dto()

    @translate_store_errors("complete")
    def complete(self, task_id: str, actor: str) -> StoredTask:
        model = self._load(task_id)
        if model.is_completed:
            raise TaskAlreadyCompletedError(task_id)
        model.completion_state = CompletionState.COMPLETED.value
        model.completed_at = self._clock.now()
        model.completed_by = actor
        model.updated_by_id = self._actor_id
        self.session.flush()
        return model.to_dto()

    @translate_store_errors("reopen")
    def reopen(self, task_id: str) -> StoredTask:
        model = self._load(task_id)
        if not model.is_completed:
            raise TaskNotCompletedError(task_id)
        model.completion_state = CompletionState.OPEN.value
        model.completed_at = None
        model.completed_by = None
        model.updated_by_id = self._actor_id
        self.session.flush()
        return model.to_dto()

    @translate_store_errors("archive")
    def archive(self, task_id: str) -> StoredTask:
        model = self._load(task_id)
        if not model.archived:
            model.archived = True
            model.archived_at = self._clock.now()
            model.updated_by_id = self._actor_id
            self.session.flush()
        return model.to_dto()

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Apply a group of writes as one unit (SAVEPOINT).

        On exception the savepoint is rolled back and the exception
        propagates; the outer transaction stays usable.
        """
        with self.session.begin_nested():
            yield
