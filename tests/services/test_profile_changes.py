"""
Tests for the profile-change feed and its processor.

Changes are collapsed per client to the earliest effective date, applied
through ReconciliationService.invalidate_from and acknowledged in the same
transaction.
"""

from datetime import date

import pytest

from deadline_kernel.domain.applicability import Condition, ConditionOperator
from deadline_kernel.domain.rules import DateExpression, RuleCatalog
from deadline_kernel.exceptions import StoreUnavailableError
from deadline_kernel.services.interfaces import StaticClientDirectory
from deadline_kernel.services.profile_change_processor import ProfileChangeProcessor
from deadline_kernel.services.profile_feed import SqlProfileChangeFeed
from deadline_kernel.services.reconciliation_service import ReconciliationService
from deadline_kernel.services.task_store import SqlTaskStore


@pytest.fixture
def feed(session, clock):
    return SqlProfileChangeFeed(session, clock=clock)


@pytest.fixture
def store(session, clock):
    return SqlTaskStore(session, clock=clock)


@pytest.fixture
def reconciliation(store, generator, clock, make_rule):
    employer_only = make_rule(
        "EMP",
        date_expression=DateExpression(day=20, month_offset=0),
        applicability=Condition("has_employees", ConditionOperator.EQ, True),
    )
    return ReconciliationService(
        store,
        generator,
        RuleCatalog.build([employer_only]),
        clock=clock,
        years_back=0,
        years_forward=0,
    )


# =============================================================================
# Feed
# =============================================================================


class TestFeed:
    def test_record_and_list(self, feed):
        change = feed.record_change("c1", date(2025, 7, 1))
        pending = feed.list_unprocessed()
        assert [c.change_id for c in pending] == [change.change_id]
        assert pending[0].effective_date == date(2025, 7, 1)
        assert not pending[0].is_processed

    def test_mark_processed_once(self, feed):
        change = feed.record_change("c1", date(2025, 7, 1))
        assert feed.mark_processed(change.change_id)
        assert not feed.mark_processed(change.change_id)
        assert feed.list_unprocessed() == []

    def test_unprocessed_stats(self, feed):
        feed.record_change("c2", date(2025, 7, 1))
        feed.record_change("c1", date(2025, 8, 1))
        feed.record_change("c2", date(2025, 9, 1))
        assert feed.unprocessed_stats() == (3, ["c1", "c2"])


# =============================================================================
# Processor
# =============================================================================


class TestProcessor:
    def test_changes_collapsed_and_applied(
        self, feed, store, reconciliation, make_profile
    ):
        reconciliation.reconcile_client(make_profile(has_employees=True))
        feed.record_change("c1", date(2025, 9, 1))
        feed.record_change("c1", date(2025, 7, 1))

        directory = StaticClientDirectory([make_profile(has_employees=False)])
        result = ProfileChangeProcessor(feed, directory, reconciliation).process_pending()

        assert result.reconciled_clients == ["c1"]
        assert len(result.processed_change_ids) == 2
        assert feed.list_unprocessed() == []
        remaining = {t.period_key for t in store.get_tasks_by_client("c1")}
        assert remaining == {f"2025-{m:02d}" for m in range(1, 7)}

    def test_unknown_client_is_stale(self, feed, reconciliation, captured_logs):
        feed.record_change("ghost", date(2025, 7, 1))
        result = ProfileChangeProcessor(
            feed, StaticClientDirectory(), reconciliation
        ).process_pending()

        assert result.stale_clients == ["ghost"]
        assert result.reconciled_clients == []
        assert feed.list_unprocessed() == []
        stale = [r for r in captured_logs() if r["message"] == "stale_profile_change"]
        assert stale[0]["client_id"] == "ghost"
        assert stale[0]["error_code"] == "STALE_RECONCILIATION"

    def test_rollback_leaves_changes_pending(
        self, session, feed, reconciliation, make_profile
    ):
        feed.record_change("c1", date(2025, 7, 1))
        session.commit()

        directory = StaticClientDirectory([make_profile(has_employees=True)])
        ProfileChangeProcessor(feed, directory, reconciliation).process_pending()
        session.rollback()

        assert len(feed.list_unprocessed()) == 1

    def test_reprocessing_is_noop(self, feed, store, reconciliation, make_profile):
        directory = StaticClientDirectory([make_profile(has_employees=True)])
        processor = ProfileChangeProcessor(feed, directory, reconciliation)

        feed.record_change("c1", date(2025, 1, 1))
        processor.process_pending()
        first = store.get_tasks_by_client("c1")

        assert processor.process_pending().processed_change_ids == []
        assert store.get_tasks_by_client("c1") == first


class _BrokenDirectory(StaticClientDirectory):
    """Directory whose lookup fails for one client."""

    def __init__(self, broken_id, profiles):
        super().__init__(profiles)
        self._broken_id = broken_id

    def get_profile(self, client_id):
        if client_id == self._broken_id:
            raise RuntimeError("corrupt profile row")
        return super().get_profile(client_id)


class TestProcessorIsolation:
    def test_failing_client_does_not_block_others(
        self, feed, store, reconciliation, make_profile, captured_logs
    ):
        bad = feed.record_change("a-bad", date(2025, 7, 1))
        feed.record_change("c1", date(2025, 7, 1))
        directory = _BrokenDirectory("a-bad", [make_profile(has_employees=True)])

        result = ProfileChangeProcessor(feed, directory, reconciliation).process_pending()

        assert result.failed_clients == ["a-bad"]
        assert result.reconciled_clients == ["c1"]
        assert [c.change_id for c in feed.list_unprocessed()] == [bad.change_id]
        keys = {t.period_key for t in store.get_tasks_by_client("c1")}
        assert keys == {f"2025-{m:02d}" for m in range(7, 13)}

        failed = [r for r in captured_logs() if r["message"] == "client_reconciliation_failed"]
        assert failed[0]["client_id"] == "a-bad"
        assert failed[0]["error_code"] == "RuntimeError"

    def test_failed_client_writes_rolled_back(
        self, feed, store, reconciliation, make_profile, monkeypatch
    ):
        feed.record_change("c1", date(2025, 7, 1))
        directory = StaticClientDirectory([make_profile(has_employees=True)])

        def explode(*args, **kwargs):
            raise ValueError("mark failed")

        monkeypatch.setattr(feed, "mark_processed", explode)
        result = ProfileChangeProcessor(feed, directory, reconciliation).process_pending()

        assert result.failed_clients == ["c1"]
        assert store.get_tasks_by_client("c1") == []
        monkeypatch.undo()
        assert len(feed.list_unprocessed()) == 1

    def test_store_unavailable_propagates(self, feed, reconciliation, make_profile, monkeypatch):
        feed.record_change("c1", date(2025, 7, 1))
        directory = StaticClientDirectory([make_profile(has_employees=True)])

        def unavailable(*args, **kwargs):
            raise StoreUnavailableError("soft_delete_open_automatic_from", "connection reset")

        monkeypatch.setattr(reconciliation, "invalidate_from", unavailable)
        with pytest.raises(StoreUnavailableError):
            ProfileChangeProcessor(feed, directory, reconciliation).process_pending()
