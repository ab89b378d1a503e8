"""
Lifecycle/Status Engine -- derived display status, locking and blocking.

Contract:
    Every function here is PURE: it takes the task(s) and ``today`` and
    returns a value.  Nothing is cached or persisted; status is always
    recomputed against the current date at read time.

Status precedence:
    1. COMPLETED  completion_state is COMPLETED
    2. LOCKED     today < locked_until (period/month not yet started)
    3. OVERDUE    due < today
    4. DUE_TODAY  due == today
    5. DUE_SOON   due - today <= lead days
    6. UPCOMING   otherwise

Blocking:
    A task is blocked by an OPEN predecessor whose own completion window has
    opened (not locked and today >= its due - lead days).  Predecessors are
    (a) earlier-due tasks of the same series for the same client and
    (b) the explicit ``predecessor_id``.  With prior-year amnesty a task due
    in a year before today's is never blocked.

Invariants:
    - Manual tasks are never locked.
    - Floating open tasks are due "today".
    - Completed, soft-deleted and archived tasks never block.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable

from deadline_kernel.domain.types import StoredTask
from deadline_kernel.exceptions import (
    BlockedError,
    TaskAlreadyCompletedError,
    TaskLockedError,
)

DEFAULT_COMPLETION_LEAD_DAYS = 3


class DisplayStatus(str, Enum):
    """Read-time status; never persisted."""

    UPCOMING = "upcoming"
    DUE_SOON = "due_soon"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"
    COMPLETED = "completed"
    LOCKED = "locked"


@dataclass(frozen=True)
class LifecyclePolicy:
    default_lead_days: int = DEFAULT_COMPLETION_LEAD_DAYS
    prior_year_amnesty: bool = True

    def __post_init__(self) -> None:
        if self.default_lead_days < 0:
            raise ValueError(
                f"default_lead_days must be >= 0, got {self.default_lead_days}"
            )


DEFAULT_POLICY = LifecyclePolicy()


def effective_due_date(task: StoredTask, today: date) -> date:
    if task.is_floating and not task.is_completed:
        return today
    return task.current_due_date


def lead_days(task: StoredTask, policy: LifecyclePolicy = DEFAULT_POLICY) -> int:
    if task.completion_lead_days is not None:
        return task.completion_lead_days
    return policy.default_lead_days


def is_locked(task: StoredTask, today: date) -> bool:
    if not task.is_automatic or task.locked_until is None:
        return False
    return today < task.locked_until


def completion_window_opens(
    task: StoredTask,
    today: date,
    policy: LifecyclePolicy = DEFAULT_POLICY,
) -> date:
    """First day the task may be completed, ignoring locks and blocking."""
    return effective_due_date(task, today) - timedelta(days=lead_days(task, policy))


def is_window_open(
    task: StoredTask,
    today: date,
    policy: LifecyclePolicy = DEFAULT_POLICY,
) -> bool:
    return not is_locked(task, today) and today >= completion_window_opens(
        task, today, policy
    )


def compute_status(
    task: StoredTask,
    today: date,
    policy: LifecyclePolicy = DEFAULT_POLICY,
) -> DisplayStatus:
    if task.is_completed:
        return DisplayStatus.COMPLETED
    if is_locked(task, today):
        return DisplayStatus.LOCKED

    due = effective_due_date(task, today)
    if due < today:
        return DisplayStatus.OVERDUE
    if due == today:
        return DisplayStatus.DUE_TODAY
    if (due - today).days <= lead_days(task, policy):
        return DisplayStatus.DUE_SOON
    return DisplayStatus.UPCOMING


def compute_statuses(
    tasks: Iterable[StoredTask],
    today: date,
    policy: LifecyclePolicy = DEFAULT_POLICY,
) -> dict[str, DisplayStatus]:
    """Status for every visible task, keyed by task id."""
    return {
        task.task_id: compute_status(task, today, policy)
        for task in tasks
        if not task.soft_deleted and not task.archived
    }


def _blocks(
    candidate: StoredTask,
    today: date,
    policy: LifecyclePolicy,
) -> bool:
    return candidate.is_open and is_window_open(candidate, today, policy)


def get_blocking_predecessor(
    task: StoredTask,
    all_tasks: Iterable[StoredTask],
    today: date,
    policy: LifecyclePolicy = DEFAULT_POLICY,
) -> StoredTask | None:
    """Return the earliest-due task blocking ``task``, or None."""
    if task.is_completed:
        return None
    due = effective_due_date(task, today)
    if policy.prior_year_amnesty and due.year < today.year:
        return None

    blocking: list[StoredTask] = []
    for other in all_tasks:
        if other.task_id == task.task_id or other.client_id != task.client_id:
            continue
        explicit = task.predecessor_id is not None and other.task_id == task.predecessor_id
        same_series = (
            task.series_id is not None
            and other.series_id == task.series_id
            and effective_due_date(other, today) < due
        )
        if (explicit or same_series) and _blocks(other, today, policy):
            blocking.append(other)

    if not blocking:
        return None
    return min(blocking, key=lambda t: (effective_due_date(t, today), t.task_id))


def can_complete(
    task: StoredTask,
    all_tasks: Iterable[StoredTask],
    today: date,
    policy: LifecyclePolicy = DEFAULT_POLICY,
) -> bool:
    """True when no predecessor blocks the task."""
    return get_blocking_predecessor(task, all_tasks, today, policy) is None


def check_can_complete(
    task: StoredTask,
    all_tasks: Iterable[StoredTask],
    today: date,
    policy: LifecyclePolicy = DEFAULT_POLICY,
) -> None:
    """Raise the first LifecycleError preventing completion.

    Order: already completed, locked, blocked.  A task may be completed
    any time after its lock lifts; the lead window only decides whether an
    open predecessor counts as blocking.
    """
    if task.is_completed:
        raise TaskAlreadyCompletedError(task.task_id)
    if is_locked(task, today):
        raise TaskLockedError(task.task_id, task.locked_until)
    blocker = get_blocking_predecessor(task, all_tasks, today, policy)
    if blocker is not None:
        raise BlockedError(
            task.task_id,
            blocker.task_id,
            effective_due_date(blocker, today),
        )
