"""
SqlProfileChangeFeed -- the profile-change log backed by ``profile_changes``.

Invariants enforced:
    - Consumers are at-least-once: ``mark_processed`` on an already
      processed change is a no-op returning False.
    - Flush-only: never commits or rolls back the session.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from deadline_kernel.domain.clock import Clock, SystemClock
from deadline_kernel.domain.types import ProfileChange
from deadline_kernel.logging_config import get_logger
from deadline_kernel.models.profile_change import ProfileChangeModel
from deadline_kernel.services.base import BaseService, translate_store_errors
from deadline_kernel.services.task_store import SYSTEM_ACTOR_ID

logger = get_logger("services.profile_feed")


class SqlProfileChangeFeed(BaseService[ProfileChangeModel]):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._actor_id = actor_id

    @translate_store_errors("record_change")
    def record_change(self, client_id: str, effective_date: date) -> ProfileChange:
        model = ProfileChangeModel(
            client_id=client_id,
            effective_date=effective_date,
            recorded_at=self._clock.now(),
            created_by_id=self._actor_id,
        )
        self.session.add(model)
        self.session.flush()
        logger.info(
            "profile_change_recorded",
            extra={
                "change_id": model.change_id,
                "client_id": client_id,
                "effective_date": effective_date,
            },
        )
        return model.to_dto()

    @translate_store_errors("list_unprocessed")
    def list_unprocessed(self) -> list[ProfileChange]:
        stmt = (
            select(ProfileChangeModel)
            .where(ProfileChangeModel.processed_at.is_(None))
            .order_by(ProfileChangeModel.recorded_at, ProfileChangeModel.change_id)
        )
        return [row.to_dto() for row in self.session.scalars(stmt)]

    @translate_store_errors("mark_processed")
    def mark_processed(self, change_id: UUID) -> bool:
        result = self.session.execute(
            update(ProfileChangeModel)
            .where(
                ProfileChangeModel.change_id == change_id,
                ProfileChangeModel.processed_at.is_(None),
            )
            .values(processed_at=self._clock.now(), updated_by_id=self._actor_id)
            .execution_options(synchronize_session="fetch")
        )
        self.session.flush()
        return result.rowcount > 0

    @translate_store_errors("unprocessed_stats")
    def unprocessed_stats(self) -> tuple[int, list[str]]:
        """Return (pending change count, sorted distinct client ids)."""
        count = self.session.scalar(
            select(func.count())
            .select_from(ProfileChangeModel)
            .where(ProfileChangeModel.processed_at.is_(None))
        )
        clients = self.session.scalars(
            select(ProfileChangeModel.client_id)
            .where(ProfileChangeModel.processed_at.is_(None))
            .distinct()
            .order_by(ProfileChangeModel.client_id)
        )
        return int(count or 0), list(clients)
