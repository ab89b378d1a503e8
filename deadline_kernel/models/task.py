"""
Module: deadline_kernel.models.task
Responsibility: ORM persistence for stored deadline tasks (automatic and
    manual).
Architecture position: Kernel > Models.  May import from db/ and the pure
    domain types only.

Invariants enforced:
    - task_id is the primary key; for automatic tasks it is the
      deterministic ``{rule_id}_{client_id}_{period_key}`` identity, so a
      re-insert of the same deadline collides instead of duplicating.
    - original_due_date (nominal) and current_due_date (effective) are
      stored separately.
    - Rows are never hard-deleted by the engine; soft_deleted/archived flags
      hide them.

Failure modes:
    - IntegrityError on a duplicate task_id insert that bypasses the store's
      upsert path.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from deadline_kernel.db.base import TrackedBase, UUIDString
from deadline_kernel.db.types import ClientId, LongText, ShortCode, TaskId, Title
from deadline_kernel.domain.types import (
    CompletionState,
    DeletionReason,
    GeneratedTask,
    Periodicity,
    StoredTask,
    TaskKind,
    TaskSource,
    TransferPolicy,
)


def _enum(enum_cls, value):
    if value is None:
        return None
    return enum_cls(value)


class TaskModel(TrackedBase):
    """
    Persisted deadline task.

    Guarantees:
        - to_dto() returns an immutable StoredTask detached from the session.
        - apply_generated() refreshes every rule-derived column and resets
          the row to OPEN, visible; used when a soft-deleted task is revived.

    Non-goals:
        - Display status is NOT stored; see deadline_kernel.domain.lifecycle.
    """

    __tablename__ = "deadline_tasks"

    __table_args__ = (
        Index("idx_task_client", "client_id"),
        Index("idx_task_client_due", "client_id", "current_due_date"),
        Index("idx_task_series", "series_id"),
    )

    task_id: Mapped[TaskId] = mapped_column(primary_key=True)
    client_id: Mapped[ClientId] = mapped_column(nullable=False)
    title: Mapped[Title] = mapped_column(nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False)

    original_due_date: Mapped[date] = mapped_column(Date, nullable=False)
    current_due_date: Mapped[date] = mapped_column(Date, nullable=False)

    completion_state: Mapped[str] = mapped_column(
        String(20),
        default=CompletionState.OPEN.value,
        nullable=False,
    )

    # Rule-derived columns (NULL for manual tasks)
    rule_id: Mapped[ShortCode | None] = mapped_column(nullable=True)
    series_id: Mapped[ShortCode | None] = mapped_column(nullable=True)
    predecessor_id: Mapped[TaskId | None] = mapped_column(nullable=True)
    period_key: Mapped[str | None] = mapped_column(String(10), nullable=True)
    task_kind: Mapped[str | None] = mapped_column(String(20), nullable=True)
    periodicity: Mapped[str] = mapped_column(
        String(20),
        default=Periodicity.NONE.value,
        nullable=False,
    )
    transfer_policy: Mapped[str | None] = mapped_column(String(30), nullable=True)
    locked_until: Mapped[date | None] = mapped_column(Date, nullable=True)
    completion_lead_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_floating: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    description: Mapped[LongText] = mapped_column(default="", nullable=False)
    law_reference: Mapped[Title] = mapped_column(default="", nullable=False)

    # Completion
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Soft delete / archive
    soft_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    deletion_reason: Mapped[str | None] = mapped_column(String(20), nullable=True)
    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    archived_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<TaskModel {self.task_id}: {self.completion_state} due {self.current_due_date}>"

    @property
    def is_completed(self) -> bool:
        return self.completion_state == CompletionState.COMPLETED.value

    @classmethod
    def from_generated(cls, task: GeneratedTask, created_by_id: UUID) -> "TaskModel":
        model = cls(
            task_id=task.task_id,
            client_id=task.client_id,
            source=TaskSource.AUTOMATIC.value,
            created_by_id=created_by_id,
        )
        model.apply_generated(task)
        return model

    def apply_generated(self, task: GeneratedTask) -> None:
        self.title = task.title
        self.original_due_date = task.nominal_date
        self.current_due_date = task.effective_date
        self.completion_state = CompletionState.OPEN.value
        self.rule_id = task.rule_id
        self.series_id = task.series_id
        self.predecessor_id = task.predecessor_id
        self.period_key = task.period_key
        self.task_kind = task.task_kind.value
        self.periodicity = task.periodicity.value
        self.transfer_policy = task.transfer_policy.value
        self.locked_until = task.locked_until
        self.completion_lead_days = task.completion_lead_days
        self.is_floating = False
        self.description = task.description
        self.law_reference = task.law_reference
        self.completed_at = None
        self.completed_by = None
        self.soft_deleted = False
        self.deleted_at = None
        self.deletion_reason = None

    def to_dto(self) -> StoredTask:
        return StoredTask(
            task_id=self.task_id,
            client_id=self.client_id,
            title=self.title,
            source=TaskSource(self.source),
            original_due_date=self.original_due_date,
            current_due_date=self.current_due_date,
            completion_state=CompletionState(self.completion_state),
            rule_id=self.rule_id,
            series_id=self.series_id,
            predecessor_id=self.predecessor_id,
            period_key=self.period_key,
            task_kind=_enum(TaskKind, self.task_kind),
            periodicity=Periodicity(self.periodicity),
            transfer_policy=_enum(TransferPolicy, self.transfer_policy),
            locked_until=self.locked_until,
            completion_lead_days=self.completion_lead_days,
            is_floating=self.is_floating,
            description=self.description,
            law_reference=self.law_reference,
            completed_at=self.completed_at,
            completed_by=self.completed_by,
            soft_deleted=self.soft_deleted,
            deleted_at=self.deleted_at,
            deletion_reason=_enum(DeletionReason, self.deletion_reason),
            archived=self.archived,
            archived_at=self.archived_at,
            created_at=self.created_at,
        )
