"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

"Today" is always passed in explicitly or read from an injected Clock.
"""

from deadline_kernel.domain.applicability import (
    ALWAYS,
    Condition,
    ConditionOperator,
    Junction,
    JunctionMode,
    all_of,
    any_of,
    predicate_from_dict,
)
from deadline_kernel.domain.calendar import (
    CalendarResolver,
    DateProperties,
    HolidayYear,
    HolidaySource,
)
from deadline_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from deadline_kernel.domain.dates import DateResolver
from deadline_kernel.domain.generator import TaskGenerator
from deadline_kernel.domain.lifecycle import (
    DisplayStatus,
    LifecyclePolicy,
    can_complete,
    check_can_complete,
    compute_status,
    compute_statuses,
    get_blocking_predecessor,
)
from deadline_kernel.domain.periods import Period, PeriodRange
from deadline_kernel.domain.reconciliation import (
    ClientInvalidation,
    DueDateCorrection,
    ReconciliationPlan,
    collapse_profile_changes,
    reconcile,
    tasks_to_invalidate,
)
from deadline_kernel.domain.rules import DateExpression, Rule, RuleCatalog
from deadline_kernel.domain.types import (
    AdvancePeriodicity,
    ClientProfile,
    CompletionState,
    DeletionReason,
    GeneratedTask,
    LegalForm,
    LockPolicy,
    Patent,
    Periodicity,
    ProfileChange,
    RuleCategory,
    SpecialRule,
    StoredTask,
    TaskKind,
    TaskSource,
    TaxRegime,
    TransferPolicy,
    make_task_id,
)

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Types
    "AdvancePeriodicity",
    "ClientProfile",
    "CompletionState",
    "DeletionReason",
    "GeneratedTask",
    "LegalForm",
    "LockPolicy",
    "Patent",
    "Periodicity",
    "ProfileChange",
    "RuleCategory",
    "SpecialRule",
    "StoredTask",
    "TaskKind",
    "TaskSource",
    "TaxRegime",
    "TransferPolicy",
    "make_task_id",
    # Calendar
    "CalendarResolver",
    "DateProperties",
    "HolidayYear",
    "HolidaySource",
    # Rules
    "ALWAYS",
    "Condition",
    "ConditionOperator",
    "Junction",
    "JunctionMode",
    "all_of",
    "any_of",
    "predicate_from_dict",
    "DateExpression",
    "Rule",
    "RuleCatalog",
    # Generation
    "Period",
    "PeriodRange",
    "DateResolver",
    "TaskGenerator",
    # Lifecycle
    "DisplayStatus",
    "LifecyclePolicy",
    "compute_status",
    "compute_statuses",
    "get_blocking_predecessor",
    "can_complete",
    "check_can_complete",
    # Reconciliation
    "ClientInvalidation",
    "DueDateCorrection",
    "ReconciliationPlan",
    "reconcile",
    "tasks_to_invalidate",
    "collapse_profile_changes",
]
