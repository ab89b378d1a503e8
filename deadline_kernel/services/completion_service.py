"""
CompletionService -- the only sanctioned path to complete or reopen a task.

Responsibility:
    Enforces the lifecycle rules at the service boundary: a task cannot be
    completed while locked or while a predecessor blocks it.  Once the lock
    lifts it may be filed early.  The check runs against the client's
    current stored tasks and the injected clock.

Failure modes:
    - TaskNotFoundError for unknown ids.
    - TaskAlreadyCompletedError, TaskLockedError, BlockedError when
      completion is refused.
      Refusals are logged as ``task_completion_refused`` and re-raised;
      nothing is retried.
    - TaskNotCompletedError when reopening an open task.
"""

from __future__ import annotations

from deadline_kernel.domain.clock import Clock, SystemClock
from deadline_kernel.domain.lifecycle import (
    DEFAULT_POLICY,
    LifecyclePolicy,
    check_can_complete,
)
from deadline_kernel.domain.types import StoredTask
from deadline_kernel.exceptions import LifecycleError
from deadline_kernel.logging_config import LogContext, get_logger
from deadline_kernel.services.interfaces import TaskStore

logger = get_logger("services.completion")


class CompletionService:
    def __init__(
        self,
        store: TaskStore,
        clock: Clock | None = None,
        policy: LifecyclePolicy = DEFAULT_POLICY,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._policy = policy

    def complete(self, task_id: str, actor: str) -> StoredTask:
        with LogContext.bind(task_id=task_id, actor_id=actor):
            task = self._store.get_task(task_id)
            siblings = self._store.get_tasks_by_client(task.client_id)
            today = self._clock.today()
            try:
                check_can_complete(task, siblings, today, self._policy)
            except LifecycleError as exc:
                logger.warning(
                    "task_completion_refused",
                    extra={
                        "client_id": task.client_id,
                        "error_code": exc.code,
                        "reason": str(exc),
                    },
                )
                raise

            completed = self._store.complete(task_id, actor)
            logger.info(
                "task_completed",
                extra={"client_id": task.client_id, "due_date": task.current_due_date},
            )
            return completed

    def reopen(self, task_id: str) -> StoredTask:
        reopened = self._store.reopen(task_id)
        logger.info(
            "task_reopened",
            extra={"task_id": task_id, "client_id": reopened.client_id},
        )
        return reopened
