"""Tests for StatusRefresher -- read-only periodic status snapshots."""

import threading
from datetime import date

import pytest

from deadline_batch.services.status_refresher import StatusRefresher
from deadline_kernel.domain.lifecycle import DisplayStatus, LifecyclePolicy
from deadline_kernel.domain.types import CompletionState


@pytest.fixture
def tasks(make_task):
    # today is 15 March 2025
    return [
        make_task("overdue", date(2025, 3, 10)),
        make_task("today", date(2025, 3, 15)),
        make_task("soon", date(2025, 3, 17)),
        make_task("later", date(2025, 3, 28), series_id="OTHER"),
        make_task("done", date(2025, 3, 5), series_id=None, completion_state=CompletionState.COMPLETED),
        make_task("hidden", date(2025, 3, 12), series_id=None, soft_deleted=True),
    ]


class TestTick:
    def test_statuses_computed(self, tasks, clock):
        refresher = StatusRefresher(lambda: tasks, clock=clock)
        statuses = refresher.tick()

        assert statuses == {
            "overdue": DisplayStatus.OVERDUE,
            "today": DisplayStatus.DUE_TODAY,
            "soon": DisplayStatus.DUE_SOON,
            "later": DisplayStatus.UPCOMING,
            "done": DisplayStatus.COMPLETED,
        }
        assert refresher.snapshot == statuses
        assert refresher.status_of("soon") == DisplayStatus.DUE_SOON
        assert refresher.status_of("hidden") is None
        assert refresher.refreshed_at == clock.now()

    def test_follows_clock(self, tasks, clock):
        refresher = StatusRefresher(lambda: tasks, clock=clock)
        refresher.tick()
        clock.set_date(date(2025, 3, 29))
        assert refresher.tick()["later"] == DisplayStatus.OVERDUE

    def test_policy_lead_days(self, tasks, clock):
        refresher = StatusRefresher(
            lambda: tasks, clock=clock, policy=LifecyclePolicy(default_lead_days=0)
        )
        assert refresher.tick()["soon"] == DisplayStatus.UPCOMING

    def test_listener_receives_snapshot(self, tasks, clock):
        received = []
        StatusRefresher(lambda: tasks, clock=clock, listener=received.append).tick()
        assert received[0]["overdue"] == DisplayStatus.OVERDUE

    def test_summary_logged(self, tasks, clock, captured_logs):
        StatusRefresher(lambda: tasks, clock=clock).tick()
        completed = [r for r in captured_logs() if r["message"] == "status_refresh_completed"]
        assert completed[0]["task_count"] == 5
        assert completed[0]["overdue"] == 1
        assert completed[0]["as_of"] == "2025-03-15"


class TestFailures:
    def test_loader_failure_keeps_previous_snapshot(self, tasks, clock, captured_logs):
        calls = []

        def loader():
            calls.append(1)
            if len(calls) > 1:
                raise RuntimeError("store down")
            return tasks

        refresher = StatusRefresher(loader, clock=clock)
        first = refresher.tick()
        assert refresher.tick() == first
        assert any(r["message"] == "status_refresh_failed" for r in captured_logs())

    def test_listener_failure_does_not_lose_snapshot(self, tasks, clock, captured_logs):
        def listener(_):
            raise RuntimeError("websocket closed")

        refresher = StatusRefresher(lambda: tasks, clock=clock, listener=listener)
        refresher.tick()
        assert len(refresher.snapshot) == 5
        assert any(r["message"] == "status_listener_failed" for r in captured_logs())

    def test_interval_must_be_positive(self, clock):
        with pytest.raises(ValueError):
            StatusRefresher(list, clock=clock, interval_seconds=0)


class TestBackgroundLoop:
    def test_start_and_stop(self, tasks, clock):
        refreshed = threading.Event()
        refresher = StatusRefresher(
            lambda: tasks,
            clock=clock,
            interval_seconds=0.01,
            listener=lambda _: refreshed.set(),
        )
        refresher.start()
        try:
            assert refreshed.wait(timeout=5)
            assert refresher.is_running
        finally:
            refresher.stop(timeout=5)

        assert not refresher.is_running
        assert len(refresher.snapshot) == 5

    def test_start_twice_keeps_one_thread(self, tasks, clock):
        refresher = StatusRefresher(lambda: tasks, clock=clock, interval_seconds=10)
        refresher.start()
        try:
            thread = refresher._thread
            refresher.start()
            assert refresher._thread is thread
        finally:
            refresher.stop(timeout=5)
