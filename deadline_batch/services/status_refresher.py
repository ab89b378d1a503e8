"""
StatusRefresher -- periodic, read-only display-status recomputation.

Contract:
    Every ``interval_seconds`` (default 60) loads the visible tasks,
    computes ``{task_id: DisplayStatus}`` against the injected clock and
    publishes it as the current snapshot.  An optional listener receives
    each new snapshot.

Architecture: deadline_batch/services.  Uses the pure
    ``deadline_kernel.domain.lifecycle.compute_statuses``.

Invariants enforced:
    - Read-only: never writes to the task store, so it cannot race with
      reconciliation writes.
    - A failed tick keeps the previous snapshot and is logged; the
      background loop never dies on an exception.
    - Graceful shutdown: ``stop()`` lets the current tick finish.
"""

from __future__ import annotations

import threading
from collections import Counter
from datetime import datetime
from typing import Callable, Iterable

from deadline_kernel.domain.clock import Clock, SystemClock
from deadline_kernel.domain.lifecycle import (
    DEFAULT_POLICY,
    DisplayStatus,
    LifecyclePolicy,
    compute_statuses,
)
from deadline_kernel.domain.types import StoredTask
from deadline_kernel.logging_config import get_logger

logger = get_logger("batch.status_refresher")

StatusListener = Callable[[dict[str, DisplayStatus]], None]


class StatusRefresher:
    """In-process polling loop keeping display statuses current.

    Contract:
        - ``tick()`` recomputes and returns the snapshot.
        - ``start()`` / ``stop()`` for background thread operation.
        - ``snapshot`` returns a copy of the latest statuses.

    Non-goals:
        - Does NOT persist statuses; status is derived, never stored.
    """

    def __init__(
        self,
        task_loader: Callable[[], Iterable[StoredTask]],
        clock: Clock | None = None,
        policy: LifecyclePolicy = DEFAULT_POLICY,
        interval_seconds: float = 60.0,
        listener: StatusListener | None = None,
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._task_loader = task_loader
        self._clock = clock or SystemClock()
        self._policy = policy
        self._interval = interval_seconds
        self._listener = listener
        self._snapshot: dict[str, DisplayStatus] = {}
        self._refreshed_at: datetime | None = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> dict[str, DisplayStatus]:
        """Recompute statuses now (public for testing)."""
        try:
            tasks = list(self._task_loader())
            today = self._clock.today()
            statuses = compute_statuses(tasks, today, self._policy)
        except Exception:
            logger.exception("status_refresh_failed")
            return self.snapshot

        with self._lock:
            self._snapshot = statuses
            self._refreshed_at = self._clock.now()

        counts = Counter(status.value for status in statuses.values())
        logger.info(
            "status_refresh_completed",
            extra={"task_count": len(statuses), "as_of": today, **counts},
        )

        if self._listener is not None:
            try:
                self._listener(dict(statuses))
            except Exception:
                logger.exception("status_listener_failed")
        return dict(statuses)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="deadline-status-refresher",
            daemon=True,
        )
        self._thread.start()
        logger.info("status_refresher_started", extra={"interval_seconds": self._interval})

    def stop(self, timeout: float = 30.0) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("status_refresher_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def snapshot(self) -> dict[str, DisplayStatus]:
        with self._lock:
            return dict(self._snapshot)

    @property
    def refreshed_at(self) -> datetime | None:
        with self._lock:
            return self._refreshed_at

    def status_of(self, task_id: str) -> DisplayStatus | None:
        with self._lock:
            return self._snapshot.get(task_id)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._interval)
