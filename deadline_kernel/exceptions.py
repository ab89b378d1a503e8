"""
Typed exception hierarchy for the deadline kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the deadline engine (application services, batch runners, API
layers) need to react to failures by kind, not by message text:

    try:
        completion.complete(task_id, actor="alice")
    except BlockedError as e:
        show_banner(f"Finish {e.blocking_task_id} first")
        api_response(code=e.code, blocking=e.blocking_task_id)

Every exception therefore has:
  1. A TYPED class (catch by type, not by message)
  2. A class-level CODE attribute (machine-readable, API-safe)
  3. Structured DATA stored as attributes (survives logging/serialization)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    DeadlineKernelError (base)
    |
    +-- RuleError
    |   +-- InvalidRuleDefinitionError
    |   +-- UnknownConditionFieldError
    |
    +-- CalendarError
    |   +-- CalendarDataUnavailableError
    |   +-- NoWorkdayFoundError
    |
    +-- LifecycleError
    |   +-- BlockedError
    |   +-- TaskLockedError
    |   +-- TaskAlreadyCompletedError
    |   +-- TaskNotCompletedError
    |
    +-- ReconciliationError
    |   +-- StaleReconciliationError
    |
    +-- StoreError
        +-- StoreUnavailableError
        +-- TaskNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Rule            | INVALID_RULE_DEFINITION     | Malformed rule or date expression
                | UNKNOWN_CONDITION_FIELD     | Applicability names an unknown field
----------------|-----------------------------|-----------------------------------------
Calendar        | CALENDAR_DATA_UNAVAILABLE   | Holiday data missing for a year
                | NO_WORKDAY_FOUND            | Transfer scan exhausted its bound
----------------|-----------------------------|-----------------------------------------
Lifecycle       | BLOCKED                     | Predecessor in chain still open
                | TASK_LOCKED                 | Statutory period not yet begun
                | TASK_ALREADY_COMPLETED      | Completing a completed task
                | TASK_NOT_COMPLETED          | Reopening an open task
----------------|-----------------------------|-----------------------------------------
Reconciliation  | STALE_RECONCILIATION        | Change references unknown client
----------------|-----------------------------|-----------------------------------------
Store           | STORE_UNAVAILABLE           | Database unreachable
                | TASK_NOT_FOUND              | Task id does not exist

===============================================================================
HANDLING PATTERNS
===============================================================================

1. PER-RULE ISOLATION: InvalidRuleDefinitionError is caught by the catalog
   and the generator; the rule is skipped and logged, generation continues.

2. GRACEFUL DEGRADATION: CalendarDataUnavailableError is caught by the
   calendar resolver, which falls back to weekend-only determination.

3. SERVICE BOUNDARY: LifecycleError subclasses are raised by the
   completion service and surfaced to the caller unchanged.

4. RETRYABLE: StoreUnavailableError propagates; generation and the diff are
   pure, so the whole pass can be retried once the store is back.
"""

from datetime import date


class DeadlineKernelError(Exception):
    """
    Base exception for all deadline kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "DEADLINE_KERNEL_ERROR"


# Rule exceptions


class RuleError(DeadlineKernelError):
    """Base exception for rule definition errors."""

    code: str = "RULE_ERROR"


class InvalidRuleDefinitionError(RuleError):
    """A rule (usually its date expression) cannot be evaluated."""

    code: str = "INVALID_RULE_DEFINITION"

    def __init__(self, rule_id: str, reason: str):
        self.rule_id = rule_id
        self.reason = reason
        super().__init__(f"Invalid rule definition {rule_id}: {reason}")


class UnknownConditionFieldError(RuleError):
    """An applicability condition references a profile field that does not exist."""

    code: str = "UNKNOWN_CONDITION_FIELD"

    def __init__(self, field: str, allowed: tuple[str, ...]):
        self.field = field
        self.allowed = allowed
        super().__init__(
            f"Unknown condition field '{field}'. Allowed: {', '.join(allowed)}"
        )


# Calendar exceptions


class CalendarError(DeadlineKernelError):
    """Base exception for calendar errors."""

    code: str = "CALENDAR_ERROR"


class CalendarDataUnavailableError(CalendarError):
    """Holiday data for a jurisdiction/year could not be obtained."""

    code: str = "CALENDAR_DATA_UNAVAILABLE"

    def __init__(self, jurisdiction: str, year: int, reason: str = "no data"):
        self.jurisdiction = jurisdiction
        self.year = year
        self.reason = reason
        super().__init__(
            f"Calendar data unavailable for {jurisdiction} {year}: {reason}"
        )


class NoWorkdayFoundError(CalendarError):
    """A business-day transfer scan did not reach a workday within its bound."""

    code: str = "NO_WORKDAY_FOUND"

    def __init__(self, start: date, direction: str, max_days: int):
        self.start = start
        self.direction = direction
        self.max_days = max_days
        super().__init__(
            f"No workday found {direction} of {start.isoformat()} "
            f"within {max_days} days"
        )


# Lifecycle exceptions


class LifecycleError(DeadlineKernelError):
    """Base exception for task lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class BlockedError(LifecycleError):
    """Task cannot be completed while an earlier task in its chain is open."""

    code: str = "BLOCKED"

    def __init__(
        self,
        task_id: str,
        blocking_task_id: str,
        blocking_due_date: date | None = None,
    ):
        self.task_id = task_id
        self.blocking_task_id = blocking_task_id
        self.blocking_due_date = blocking_due_date
        super().__init__(
            f"Task {task_id} is blocked by {blocking_task_id}"
        )


class TaskLockedError(LifecycleError):
    """Task's statutory period has not begun yet."""

    code: str = "TASK_LOCKED"

    def __init__(self, task_id: str, locked_until: date):
        self.task_id = task_id
        self.locked_until = locked_until
        super().__init__(
            f"Task {task_id} is locked until {locked_until.isoformat()}"
        )


class TaskAlreadyCompletedError(LifecycleError):
    """Task is already completed."""

    code: str = "TASK_ALREADY_COMPLETED"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task already completed: {task_id}")


class TaskNotCompletedError(LifecycleError):
    """Reopen requested for a task that is not completed."""

    code: str = "TASK_NOT_COMPLETED"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task is not completed: {task_id}")


# Reconciliation exceptions


class ReconciliationError(DeadlineKernelError):
    """Base exception for reconciliation errors."""

    code: str = "RECONCILIATION_ERROR"


class StaleReconciliationError(ReconciliationError):
    """A profile change references a client that no longer exists."""

    code: str = "STALE_RECONCILIATION"

    def __init__(self, change_id: str, client_id: str):
        self.change_id = change_id
        self.client_id = client_id
        super().__init__(
            f"Profile change {change_id} references unknown client {client_id}"
        )


# Store exceptions


class StoreError(DeadlineKernelError):
    """Base exception for task store errors."""

    code: str = "STORE_ERROR"


class StoreUnavailableError(StoreError):
    """The task store could not be reached."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Task store unavailable during {operation}: {reason}")


class TaskNotFoundError(StoreError):
    """Task with given id was not found."""

    code: str = "TASK_NOT_FOUND"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")
