"""
Tests for deadline_kernel.domain.generator -- rule expansion.

Validates deterministic identity, transfer of the Saturday deadline,
period exclusions, applicability, window and onboarding filters,
predecessor/lock propagation and per-rule failure isolation.
"""

from datetime import date

from deadline_kernel.domain.applicability import Condition, ConditionOperator
from deadline_kernel.domain.periods import PeriodRange
from deadline_kernel.domain.rules import DateExpression
from deadline_kernel.domain.types import LockPolicy, Periodicity

YEAR_2025 = PeriodRange.for_years(2025, 2025)


def _by_period(tasks):
    return {task.period_key: task for task in tasks}


# =============================================================================
# Expansion
# =============================================================================


class TestExpansion:
    def test_saturday_deadline_moves_to_monday(self, generator, make_profile, make_rule):
        tasks = _by_period(generator.generate(make_profile(), [make_rule()], YEAR_2025))
        january = tasks["2025-01"]
        assert january.task_id == "R1_c1_2025-01"
        assert january.nominal_date == date(2025, 1, 25)
        assert january.effective_date == date(2025, 1, 27)

    def test_one_task_per_month(self, generator, make_profile, make_rule):
        tasks = generator.generate(make_profile(), [make_rule()], YEAR_2025)
        assert len(tasks) == 12
        assert len({t.task_id for t in tasks}) == 12

    def test_deterministic(self, generator, make_profile, make_rule):
        rules = [make_rule("A"), make_rule("B", date_expression=DateExpression(day=3, month_offset=1))]
        first = generator.generate(make_profile(), rules, YEAR_2025)
        second = generator.generate(make_profile(), rules, YEAR_2025)
        assert first == second

    def test_sorted_by_effective_date(self, generator, make_profile, make_rule):
        rules = [make_rule("LATE", date_expression=DateExpression(day=28)), make_rule("EARLY", date_expression=DateExpression(day=5))]
        tasks = generator.generate(make_profile(), rules, YEAR_2025)
        dates = [t.effective_date for t in tasks]
        assert dates == sorted(dates)

    def test_excluded_period_skipped(self, generator, make_profile, make_rule):
        rule = make_rule(
            date_expression=DateExpression(day=3, month_offset=1),
            excluded_periods=frozenset({12}),
        )
        tasks = _by_period(generator.generate(make_profile(), [rule], PeriodRange.for_years(2025, 2026)))
        assert "2025-11" in tasks
        assert "2025-12" not in tasks

    def test_not_applicable_rule_generates_nothing(self, generator, make_profile, make_rule):
        rule = make_rule(applicability=Condition("has_employees", ConditionOperator.EQ, True))
        assert generator.generate(make_profile(has_employees=False), [rule], YEAR_2025) == ()
        assert generator.generate(make_profile(has_employees=True), [rule], YEAR_2025)

    def test_inactive_rule_ignored(self, generator, make_profile, make_rule):
        assert generator.generate(make_profile(), [make_rule(is_active=False)], YEAR_2025) == ()

    def test_title_rendered(self, generator, make_profile, make_rule):
        tasks = _by_period(generator.generate(make_profile(), [make_rule()], YEAR_2025))
        assert tasks["2025-03"].title == "R1 март"

    def test_metadata_copied(self, generator, make_profile, make_rule):
        rule = make_rule(description="desc", law_reference="НК РФ ст. 1", completion_lead_days=5)
        task = generator.generate(make_profile(), [rule], YEAR_2025)[0]
        assert task.description == "desc"
        assert task.law_reference == "НК РФ ст. 1"
        assert task.completion_lead_days == 5
        assert task.series_id == "R1"


# =============================================================================
# Window and onboarding
# =============================================================================


class TestWindow:
    def test_previous_year_period_due_in_window(self, generator, make_profile, make_rule):
        rule = make_rule(date_expression=DateExpression(day=28, month_offset=1))
        tasks = _by_period(generator.generate(make_profile(), [rule], YEAR_2025))
        assert tasks["2024-12"].nominal_date == date(2025, 1, 28)
        assert "2025-12" not in tasks  # due January 2026

    def test_included_when_only_effective_date_in_window(self, generator, make_profile, make_rule):
        window = PeriodRange(date(2025, 1, 27), date(2025, 2, 10))
        tasks = generator.generate(make_profile(), [make_rule()], window)
        assert [t.period_key for t in tasks] == ["2025-01"]

    def test_onboarding_cuts_earlier_tasks(self, generator, make_profile, make_rule):
        profile = make_profile(onboarded_on=date(2025, 3, 1))
        tasks = _by_period(generator.generate(profile, [make_rule()], YEAR_2025))
        assert min(tasks) == "2025-03"

    def test_onboarding_drops_task_due_before_it(self, generator, make_profile, make_rule):
        # February period is still running on 26 Feb but its deadline has passed
        rule = make_rule(date_expression=DateExpression(day=25, month_offset=0))
        profile = make_profile(onboarded_on=date(2025, 2, 26))
        tasks = _by_period(generator.generate(profile, [rule], YEAR_2025))
        assert "2025-02" not in tasks
        assert "2025-03" in tasks


# =============================================================================
# Predecessors and locks
# =============================================================================


class TestPredecessorsAndLocks:
    def test_predecessor_id_for_same_period(self, generator, make_profile, make_rule):
        notice = make_rule("NOTICE")
        payment = make_rule("PAY", date_expression=DateExpression(day=28), predecessor_rule_id="NOTICE")
        tasks = {t.task_id: t for t in generator.generate(make_profile(), [notice, payment], YEAR_2025)}
        assert tasks["PAY_c1_2025-04"].predecessor_id == "NOTICE_c1_2025-04"
        assert tasks["NOTICE_c1_2025-04"].predecessor_id is None

    def test_due_month_lock(self, generator, make_profile, make_rule):
        rule = make_rule(date_expression=DateExpression(day=25, month_offset=1))
        tasks = _by_period(generator.generate(make_profile(), [rule], YEAR_2025))
        assert tasks["2025-03"].locked_until == date(2025, 4, 1)

    def test_period_start_lock(self, generator, make_profile, make_rule):
        rule = make_rule(
            periodicity=Periodicity.QUARTERLY,
            date_expression=DateExpression(day=25, quarter_month_offset=1),
            lock_policy=LockPolicy.PERIOD_START,
        )
        tasks = _by_period(generator.generate(make_profile(), [rule], YEAR_2025))
        assert tasks["2025-Q2"].locked_until == date(2025, 4, 1)

    def test_no_lock(self, generator, make_profile, make_rule):
        rule = make_rule(lock_policy=LockPolicy.NONE)
        assert all(t.locked_until is None for t in generator.generate(make_profile(), [rule], YEAR_2025))


# =============================================================================
# Failure isolation and logging
# =============================================================================


class TestFailureIsolation:
    def test_malformed_rule_skipped(self, generator, make_profile, make_rule, captured_logs):
        broken = make_rule("BROKEN", date_expression=DateExpression(day=99, month_offset=0))
        tasks = generator.generate(make_profile(), [broken, make_rule("OK")], YEAR_2025)

        assert {t.rule_id for t in tasks} == {"OK"}
        skipped = [r for r in captured_logs() if r["message"] == "rule_skipped"]
        assert skipped[0]["rule_id"] == "BROKEN"
        assert skipped[0]["error_code"] == "INVALID_RULE_DEFINITION"

    def test_tasks_generated_logged(self, generator, make_profile, make_rule, captured_logs):
        generator.generate(make_profile(), [make_rule()], YEAR_2025)
        done = [r for r in captured_logs() if r["message"] == "tasks_generated"]
        assert done[0]["task_count"] == 12
        assert done[0]["client_id"] == "c1"
