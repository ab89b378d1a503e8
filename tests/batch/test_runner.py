"""
Tests for GenerationRunner -- per-client reconciliation with failure
isolation.

The in-memory engine uses a single StaticPool connection, so runs use
``max_workers=1``; each client still gets its own session and commit.
"""

from datetime import date

import pytest

from deadline_batch.domain.types import ClientRunStatus, RunStatus
from deadline_batch.services.runner import GenerationRunner
from deadline_kernel.domain.applicability import Condition, ConditionOperator
from deadline_kernel.domain.rules import DateExpression, RuleCatalog
from deadline_kernel.exceptions import StoreUnavailableError
from deadline_kernel.services.interfaces import StaticClientDirectory
from deadline_kernel.services.profile_feed import SqlProfileChangeFeed
from deadline_kernel.services.reconciliation_service import ReconciliationService
from deadline_kernel.services.task_store import SqlTaskStore


class FailingReconciliationService(ReconciliationService):
    """Raises for the clients it is told to fail."""

    def __init__(self, *args, failing=(), **kwargs):
        super().__init__(*args, **kwargs)
        self._failing = set(failing)

    def plan_client(self, profile, window=None):
        if profile.client_id in self._failing:
            raise StoreUnavailableError("get_tasks_by_client", "connection reset")
        return super().plan_client(profile, window)


@pytest.fixture
def catalog(make_rule):
    employer_only = make_rule(
        "EMP",
        date_expression=DateExpression(day=20, month_offset=0),
        applicability=Condition("has_employees", ConditionOperator.EQ, True),
    )
    return RuleCatalog.build([employer_only, make_rule("TAX")], version="v1", checksum="abc")


@pytest.fixture
def directory(make_profile):
    return StaticClientDirectory([make_profile("c1", has_employees=True), make_profile("c2")])


@pytest.fixture
def make_runner(session_factory, catalog, generator, directory, clock):
    def _make(**overrides):
        values = {
            "session_factory": session_factory,
            "catalog_loader": lambda: catalog,
            "generator": generator,
            "directory": directory,
            "clock": clock,
            "years_back": 0,
            "years_forward": 0,
            "max_workers": 1,
        }
        values.update(overrides)
        return GenerationRunner(**values)

    return _make


def _failing_factory(clock, generator, failing):
    def _factory(session, catalog):
        return FailingReconciliationService(
            SqlTaskStore(session, clock=clock),
            generator,
            catalog,
            clock=clock,
            years_back=0,
            years_forward=0,
            failing=failing,
        )

    return _factory


def _stored_ids(session_factory, client_id):
    session = session_factory()
    try:
        return {t.task_id for t in SqlTaskStore(session).get_tasks_by_client(client_id)}
    finally:
        session.close()


# =============================================================================
# Runs
# =============================================================================


class TestRun:
    def test_all_clients_reconciled(self, make_runner, session_factory):
        result = make_runner().run()

        assert result.status == RunStatus.COMPLETED
        assert result.total_clients == 2
        assert result.for_client("c1").inserted == 24
        assert result.for_client("c2").inserted == 12
        assert result.rule_set_version == "v1"
        assert result.rule_set_checksum == "abc"
        assert len(_stored_ids(session_factory, "c1")) == 24

    def test_rerun_writes_nothing(self, make_runner):
        runner = make_runner()
        runner.run()
        again = runner.run()
        assert all(r.inserted == r.updated == r.soft_deleted == 0 for r in again.client_results)

    def test_explicit_client_list(self, make_runner, make_profile, session_factory):
        result = make_runner().run(clients=[make_profile("c3")])
        assert [r.client_id for r in result.client_results] == ["c3"]
        assert _stored_ids(session_factory, "c1") == set()

    def test_no_clients(self, make_runner):
        result = make_runner(directory=StaticClientDirectory()).run()
        assert result.status == RunStatus.COMPLETED
        assert result.total_clients == 0

    def test_catalog_loaded_once_per_run(self, make_runner, catalog):
        calls = []

        def loader():
            calls.append(1)
            return catalog

        make_runner(catalog_loader=loader).run()
        assert len(calls) == 1

    def test_invalid_worker_count(self, make_runner):
        with pytest.raises(ValueError):
            make_runner(max_workers=0)

    def test_run_logged_with_run_id(self, make_runner, captured_logs):
        result = make_runner().run()
        completed = [r for r in captured_logs() if r["message"] == "generation_run_completed"]
        assert completed[0]["run_id"] == str(result.run_id)
        assert completed[0]["succeeded"] == 2


# =============================================================================
# Failure isolation
# =============================================================================


class TestFailureIsolation:
    def test_one_client_fails(self, make_runner, clock, generator, session_factory, captured_logs):
        runner = make_runner(service_factory=_failing_factory(clock, generator, {"c2"}))
        result = runner.run()

        assert result.status == RunStatus.PARTIALLY_COMPLETED
        failed = result.for_client("c2")
        assert failed.status == ClientRunStatus.FAILED
        assert failed.error_code == "STORE_UNAVAILABLE"
        assert "connection reset" in failed.error_message
        assert result.for_client("c1").succeeded
        assert len(_stored_ids(session_factory, "c1")) == 24
        assert _stored_ids(session_factory, "c2") == set()

        errors = [r for r in captured_logs() if r["message"] == "client_reconciliation_failed"]
        assert errors[0]["client_id"] == "c2"
        assert errors[0]["error_code"] == "STORE_UNAVAILABLE"

    def test_every_client_fails(self, make_runner, clock, generator):
        runner = make_runner(service_factory=_failing_factory(clock, generator, {"c1", "c2"}))
        result = runner.run()
        assert result.status == RunStatus.FAILED
        assert result.failed == 2

    def test_rerun_after_failure_heals(self, make_runner, clock, generator, session_factory):
        make_runner(service_factory=_failing_factory(clock, generator, {"c2"})).run()
        result = make_runner().run()

        assert result.for_client("c2").inserted == 12
        assert result.for_client("c1").inserted == 0


# =============================================================================
# Profile changes
# =============================================================================


class TestProcessProfileChanges:
    def test_changes_applied_and_committed(
        self, make_runner, directory, make_profile, session_factory, clock
    ):
        runner = make_runner()
        runner.run()

        session = session_factory()
        SqlProfileChangeFeed(session, clock=clock).record_change("c1", date(2025, 7, 1))
        session.commit()
        session.close()

        directory.put(make_profile("c1", has_employees=False))
        result = runner.process_profile_changes()

        assert result.reconciled_clients == ["c1"]
        employer = {i for i in _stored_ids(session_factory, "c1") if i.startswith("EMP_")}
        assert employer == {f"EMP_c1_2025-{m:02d}" for m in range(1, 7)}

        session = session_factory()
        try:
            assert SqlProfileChangeFeed(session, clock=clock).list_unprocessed() == []
        finally:
            session.close()

    def test_nothing_pending(self, make_runner):
        assert make_runner().process_profile_changes().processed_change_ids == []
