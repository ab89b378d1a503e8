"""
Collaborator protocols consumed by the engine.

The task store, the profile-change feed and the client directory are owned
by the host application.  The SQL implementations in this package satisfy
these protocols; tests and other hosts may supply their own.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date
from typing import Iterable, Protocol, runtime_checkable
from uuid import UUID

from deadline_kernel.domain.types import (
    ClientProfile,
    DeletionReason,
    GeneratedTask,
    ProfileChange,
    StoredTask,
)


@runtime_checkable
class TaskStore(Protocol):
    def get_tasks_by_client(
        self, client_id: str, include_deleted: bool = False
    ) -> list[StoredTask]:
        ...

    def get_task(self, task_id: str) -> StoredTask:
        ...

    def insert_many(self, tasks: Iterable[GeneratedTask]) -> int:
        ...

    def update_due_date(
        self, task_id: str, new_due_date: date, original_due_date: date | None = None
    ) -> bool:
        ...

    def soft_delete(
        self, task_id: str, reason: DeletionReason = DeletionReason.USER
    ) -> bool:
        ...

    def soft_delete_open_automatic_from(
        self, client_id: str, effective_date: date, reason: DeletionReason
    ) -> list[str]:
        ...

    def complete(self, task_id: str, actor: str) -> StoredTask:
        ...

    def reopen(self, task_id: str) -> StoredTask:
        ...

    def atomic(self) -> AbstractContextManager:
        ...


@runtime_checkable
class ProfileChangeFeed(Protocol):
    def record_change(self, client_id: str, effective_date: date) -> ProfileChange:
        ...

    def list_unprocessed(self) -> list[ProfileChange]:
        ...

    def mark_processed(self, change_id: UUID) -> bool:
        ...


@runtime_checkable
class ClientDirectory(Protocol):
    def get_profile(self, client_id: str) -> ClientProfile | None:
        ...

    def list_clients(self) -> list[ClientProfile]:
        ...


class StaticClientDirectory:
    """ClientDirectory over a fixed set of profiles."""

    def __init__(self, profiles: Iterable[ClientProfile] = ()):
        self._profiles = {p.client_id: p for p in profiles}

    def get_profile(self, client_id: str) -> ClientProfile | None:
        return self._profiles.get(client_id)

    def list_clients(self) -> list[ClientProfile]:
        return [self._profiles[key] for key in sorted(self._profiles)]

    def put(self, profile: ClientProfile) -> None:
        self._profiles[profile.client_id] = profile

    def remove(self, client_id: str) -> None:
        self._profiles.pop(client_id, None)
