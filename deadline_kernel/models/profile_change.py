"""
Module: deadline_kernel.models.profile_change
Responsibility: ORM persistence for the profile-change feed.
Architecture position: Kernel > Models.  May import from db/ and the pure
    domain types only.

Invariants enforced:
    - processed_at is written once; marking an already-processed change
      again leaves the row unchanged (at-least-once consumers are safe).
"""

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from deadline_kernel.db.base import TrackedBase, UUIDString
from deadline_kernel.db.types import ClientId
from deadline_kernel.domain.types import ProfileChange


class ProfileChangeModel(TrackedBase):
    """One change to a client profile, effective from a given date."""

    __tablename__ = "profile_changes"

    __table_args__ = (
        Index("idx_profile_change_pending", "processed_at", "client_id"),
    )

    change_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )
    client_id: Mapped[ClientId] = mapped_column(nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ProfileChangeModel {self.change_id}: {self.client_id} from {self.effective_date}>"

    def to_dto(self) -> ProfileChange:
        return ProfileChange(
            change_id=self.change_id,
            client_id=self.client_id,
            effective_date=self.effective_date,
            recorded_at=self.recorded_at,
            processed_at=self.processed_at,
        )
