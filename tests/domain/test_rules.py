"""
Tests for deadline_kernel.domain.rules -- rule validation and the catalog.

A malformed rule is rejected individually; the rest of the catalog loads.
"""

import pytest

from deadline_kernel.domain.rules import DateExpression, RuleCatalog
from deadline_kernel.domain.types import Periodicity, SpecialRule
from deadline_kernel.exceptions import InvalidRuleDefinitionError


# =============================================================================
# Date expression validation
# =============================================================================


class TestDateExpressionValidation:
    def test_two_month_selectors_rejected(self):
        expr = DateExpression(day=25, month=3, month_offset=1)
        with pytest.raises(InvalidRuleDefinitionError):
            expr.validate("R", Periodicity.YEARLY)

    def test_day_out_of_range(self):
        with pytest.raises(InvalidRuleDefinitionError):
            DateExpression(day=32, month_offset=0).validate("R", Periodicity.MONTHLY)

    def test_month_out_of_range(self):
        with pytest.raises(InvalidRuleDefinitionError):
            DateExpression(day=1, month=13).validate("R", Periodicity.YEARLY)

    def test_quarterly_needs_quarter_offset(self):
        with pytest.raises(InvalidRuleDefinitionError):
            DateExpression(day=25, month_offset=1).validate("R", Periodicity.QUARTERLY)

    def test_yearly_needs_absolute_month(self):
        with pytest.raises(InvalidRuleDefinitionError):
            DateExpression(day=25).validate("R", Periodicity.YEARLY)

    def test_special_rule_is_yearly_only(self):
        expr = DateExpression(special_rule=SpecialRule.LAST_WORKING_DAY_OF_YEAR)
        expr.validate("R", Periodicity.YEARLY)
        with pytest.raises(InvalidRuleDefinitionError):
            expr.validate("R", Periodicity.MONTHLY)

    def test_negative_offset_rejected(self):
        with pytest.raises(InvalidRuleDefinitionError):
            DateExpression(day=5, month_offset=-1).validate("R", Periodicity.MONTHLY)

    def test_to_dict(self):
        assert DateExpression(day=28, quarter_month_offset=2).to_dict() == {
            "day": 28,
            "quarter_month_offset": 2,
        }


# =============================================================================
# Rule validation
# =============================================================================


class TestRuleValidation:
    def test_valid_rule_passes(self, make_rule):
        make_rule().validate()

    def test_id_with_space_rejected(self, make_rule):
        with pytest.raises(InvalidRuleDefinitionError):
            make_rule("BAD ID").validate()

    def test_none_periodicity_reserved(self, make_rule):
        with pytest.raises(InvalidRuleDefinitionError):
            make_rule(periodicity=Periodicity.NONE).validate()

    def test_excluded_periods_checked_against_periodicity(self, make_rule):
        with pytest.raises(InvalidRuleDefinitionError):
            make_rule(excluded_periods=frozenset({13})).validate()

    def test_yearly_rules_cannot_exclude(self, make_rule):
        rule = make_rule(
            periodicity=Periodicity.YEARLY,
            date_expression=DateExpression(day=25, month=3),
            excluded_periods=frozenset({1}),
        )
        with pytest.raises(InvalidRuleDefinitionError):
            rule.validate()

    def test_self_predecessor_rejected(self, make_rule):
        with pytest.raises(InvalidRuleDefinitionError):
            make_rule("R1", predecessor_rule_id="R1").validate()


# =============================================================================
# Catalog
# =============================================================================


class TestRuleCatalog:
    def test_invalid_rule_rejected_others_kept(self, make_rule, captured_logs):
        good = make_rule("GOOD")
        bad = make_rule("BAD", date_expression=DateExpression(day=40, month_offset=0))
        catalog = RuleCatalog.build([bad, good], tenant="t1")

        assert catalog.rule_ids == ("GOOD",)
        assert [r.rule_id for r in catalog.rejected] == ["BAD"]
        rejected_logs = [r for r in captured_logs() if r["message"] == "rule_rejected"]
        assert rejected_logs[0]["rule_id"] == "BAD"
        assert rejected_logs[0]["level"] == "WARNING"

    def test_definition_order_preserved(self, make_rule):
        catalog = RuleCatalog.build([make_rule("B"), make_rule("A"), make_rule("C")])
        assert catalog.rule_ids == ("B", "A", "C")

    def test_duplicate_id_first_wins(self, make_rule):
        first = make_rule("DUP", title_template="first")
        second = make_rule("DUP", title_template="second")
        catalog = RuleCatalog.build([first, second])
        assert len(catalog) == 1
        assert catalog.get("DUP").title_template == "first"
        assert catalog.rejected[0].reason == "duplicate rule id"

    def test_inactive_rules_skipped(self, make_rule):
        catalog = RuleCatalog.build([make_rule("A", is_active=False), make_rule("B")])
        assert "A" not in catalog
        assert "B" in catalog
        assert catalog.rejected == ()

    def test_missing_predecessor_rejected(self, make_rule):
        catalog = RuleCatalog.build([make_rule("PAY", predecessor_rule_id="NOTICE")])
        assert len(catalog) == 0
        assert catalog.rejected[0].rule_id == "PAY"

    def test_predecessor_with_other_periodicity_rejected(self, make_rule):
        notice = make_rule(
            "NOTICE",
            periodicity=Periodicity.YEARLY,
            date_expression=DateExpression(day=25, month=3),
        )
        payment = make_rule("PAY", predecessor_rule_id="NOTICE")
        catalog = RuleCatalog.build([notice, payment])
        assert catalog.rule_ids == ("NOTICE",)

    def test_metadata_carried(self, make_rule):
        catalog = RuleCatalog.build([make_rule()], tenant="t", version="v1", checksum="abc")
        assert (catalog.tenant, catalog.version, catalog.checksum) == ("t", "v1", "abc")
