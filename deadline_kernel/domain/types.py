"""
deadline_kernel.domain.types -- Pure frozen dataclasses for the deadline engine.

ZERO I/O.  Frozen dataclasses with ``str, Enum`` fields and tuples for
immutable collections.

Invariants enforced:
    - All DTOs are immutable; a generation pass never mutates its inputs.
    - GeneratedTask identity is ``{rule_id}_{client_id}_{period_key}``.
    - Display status is NOT a field of StoredTask: it is derived on read
      (see ``deadline_kernel.domain.lifecycle``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID


# =============================================================================
# Rule enums
# =============================================================================


class TaskKind(str, Enum):
    """What the deadline asks the accountant to do."""

    NOTIFICATION = "notification"
    PAYMENT = "payment"
    REPORT = "report"


class Periodicity(str, Enum):
    """Generation granularity of a rule."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    NONE = "none"  # Manual one-off tasks only


class TransferPolicy(str, Enum):
    """How a nominal date landing on a non-workday is moved."""

    NEXT_BUSINESS_DAY = "next_business_day"
    PREVIOUS_BUSINESS_DAY = "previous_business_day"
    NO_TRANSFER = "no_transfer"


class SpecialRule(str, Enum):
    """Date expressions that cannot be written as day + month."""

    LAST_WORKING_DAY_OF_YEAR = "last_working_day_of_year"


class RuleCategory(str, Enum):
    TAX = "tax"
    FINANCIAL = "financial"
    ORGANIZATIONAL = "organizational"


class LockPolicy(str, Enum):
    """When a generated task becomes completable."""

    DUE_MONTH = "due_month"  # From the first day of the nominal due month
    PERIOD_START = "period_start"  # From the first day of the reporting period
    NONE = "none"  # Never locked


# =============================================================================
# Client profile
# =============================================================================


class LegalForm(str, Enum):
    OOO = "OOO"  # Limited liability company
    AO = "AO"  # Joint-stock company
    PAO = "PAO"
    ZAO = "ZAO"
    IP = "IP"  # Sole proprietor


class TaxRegime(str, Enum):
    OSNO = "OSNO"  # General regime
    USN6 = "USN6"  # Simplified, 6% of income
    USN15 = "USN15"  # Simplified, 15% of income minus expenses
    PATENT = "PATENT"
    ESHN = "ESHN"  # Unified agricultural tax


class AdvancePeriodicity(str, Enum):
    """How often a profit-tax payer makes advance payments."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


@dataclass(frozen=True)
class Patent:
    """A patent held by a sole proprietor; drives patent payment tasks."""

    patent_id: str
    name: str
    start_date: date
    end_date: date
    auto_renew: bool = False


@dataclass(frozen=True)
class ClientProfile:
    """Snapshot of the client attributes rules are evaluated against.

    Owned by the CRUD layer; read-only here.
    """

    client_id: str
    legal_form: LegalForm
    tax_regime: TaxRegime
    client_name: str = ""
    is_vat_payer: bool = False
    has_employees: bool = False
    profit_advance_periodicity: AdvancePeriodicity | None = None
    onboarded_on: date | None = None
    patents: tuple[Patent, ...] = ()
    effective_date: date | None = None  # Most recent unreconciled change


# =============================================================================
# Task DTOs
# =============================================================================


class TaskSource(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class CompletionState(str, Enum):
    OPEN = "open"
    COMPLETED = "completed"


class DeletionReason(str, Enum):
    RECONCILIATION = "reconciliation"  # Rule no longer applies
    PROFILE_CHANGE = "profile_change"  # Invalidated from an effective date
    USER = "user"  # Explicit user action; never revived


@dataclass(frozen=True)
class GeneratedTask:
    """Ephemeral task instance produced by one generation pass.

    Two passes over the same rules, calendar and profile produce equal
    instances (dataclass equality), which is what the reconciliation diff
    relies on.
    """

    task_id: str
    rule_id: str
    client_id: str
    period_key: str
    title: str
    nominal_date: date
    effective_date: date
    series_id: str
    task_kind: TaskKind
    periodicity: Periodicity
    transfer_policy: TransferPolicy
    predecessor_id: str | None = None
    locked_until: date | None = None
    completion_lead_days: int | None = None
    description: str = ""
    law_reference: str = ""

    @property
    def is_automatic(self) -> bool:
        return True

    @property
    def source(self) -> TaskSource:
        return TaskSource.AUTOMATIC


@dataclass(frozen=True)
class StoredTask:
    """Persisted task as seen by the engine.

    ``original_due_date`` is the nominal (pre-transfer) date and
    ``current_due_date`` the effective one; both are kept so the transfer can
    be recomputed when the calendar changes.
    """

    task_id: str
    client_id: str
    title: str
    source: TaskSource
    original_due_date: date
    current_due_date: date
    completion_state: CompletionState = CompletionState.OPEN
    rule_id: str | None = None
    series_id: str | None = None
    predecessor_id: str | None = None
    period_key: str | None = None
    task_kind: TaskKind | None = None
    periodicity: Periodicity = Periodicity.NONE
    transfer_policy: TransferPolicy | None = None
    locked_until: date | None = None
    completion_lead_days: int | None = None
    is_floating: bool = False
    description: str = ""
    law_reference: str = ""
    completed_at: datetime | None = None
    completed_by: str | None = None
    soft_deleted: bool = False
    deleted_at: datetime | None = None
    deletion_reason: DeletionReason | None = None
    archived: bool = False
    archived_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_automatic(self) -> bool:
        return self.source == TaskSource.AUTOMATIC

    @property
    def is_completed(self) -> bool:
        return self.completion_state == CompletionState.COMPLETED

    @property
    def is_open(self) -> bool:
        """Open, visible and not archived."""
        return (
            self.completion_state == CompletionState.OPEN
            and not self.soft_deleted
            and not self.archived
        )


# =============================================================================
# Profile-change feed
# =============================================================================


@dataclass(frozen=True)
class ProfileChange:
    """One entry of the profile-change feed."""

    change_id: UUID
    client_id: str
    effective_date: date
    recorded_at: datetime | None = None
    processed_at: datetime | None = None

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None


def make_task_id(rule_id: str, client_id: str, period_key: str) -> str:
    """Deterministic task identity shared by generation and the store."""
    return f"{rule_id}_{client_id}_{period_key}"
