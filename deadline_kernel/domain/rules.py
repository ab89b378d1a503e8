"""
Rule Catalog data model -- declarative deadline definitions.

Contract:
    ``Rule`` is an immutable definition of one deadline class.
    ``Rule.validate()`` raises ``InvalidRuleDefinitionError`` for malformed
    definitions.  ``RuleCatalog.build()`` validates every rule, rejects the
    bad ones individually (logged as ``rule_rejected``) and keeps the rest in
    their original order.

Invariants enforced:
    - At most one of ``month``, ``month_offset``, ``quarter_month_offset``.
    - ``special_rule`` overrides ``day``/``month`` and is yearly-only.
    - The month/offset form matches the periodicity.
    - Rule ids are unique within a catalog; the first definition wins.
    - A predecessor must exist in the catalog with the same periodicity.
    - Rules are frozen: a catalog is never mutated after it is built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from deadline_kernel.domain.applicability import ALWAYS, Predicate
from deadline_kernel.domain.types import (
    LockPolicy,
    Periodicity,
    RuleCategory,
    SpecialRule,
    TaskKind,
    TransferPolicy,
)
from deadline_kernel.exceptions import InvalidRuleDefinitionError
from deadline_kernel.logging_config import get_logger

logger = get_logger("domain.rules")

_PERIOD_INDEX_BOUNDS = {
    Periodicity.MONTHLY: (1, 12),
    Periodicity.QUARTERLY: (1, 4),
}


@dataclass(frozen=True)
class DateExpression:
    """Abstract statutory date relative to a reference period.

    Months are 1-based.  ``month_offset`` counts months after the period
    month; ``quarter_month_offset`` counts months after the quarter's last
    month (1 = the month following the quarter).
    """

    day: int = 0
    month: int | None = None
    month_offset: int | None = None
    quarter_month_offset: int | None = None
    special_rule: SpecialRule | None = None

    def validate(self, rule_id: str, periodicity: Periodicity) -> None:
        if self.special_rule is not None:
            if periodicity != Periodicity.YEARLY:
                raise InvalidRuleDefinitionError(
                    rule_id, f"special rule {self.special_rule.value} requires yearly periodicity"
                )
            return

        if not 1 <= self.day <= 31:
            raise InvalidRuleDefinitionError(rule_id, f"day {self.day} outside 1..31")

        selectors = [
            name
            for name in ("month", "month_offset", "quarter_month_offset")
            if getattr(self, name) is not None
        ]
        if len(selectors) > 1:
            raise InvalidRuleDefinitionError(
                rule_id, f"only one of {', '.join(selectors)} may be set"
            )

        if self.month is not None and not 1 <= self.month <= 12:
            raise InvalidRuleDefinitionError(rule_id, f"month {self.month} outside 1..12")

        if periodicity == Periodicity.MONTHLY and selectors not in ([], ["month_offset"]):
            raise InvalidRuleDefinitionError(
                rule_id, "monthly rules take month_offset only"
            )
        if periodicity == Periodicity.QUARTERLY and selectors != ["quarter_month_offset"]:
            raise InvalidRuleDefinitionError(
                rule_id, "quarterly rules require quarter_month_offset"
            )
        if periodicity == Periodicity.YEARLY and selectors != ["month"]:
            raise InvalidRuleDefinitionError(
                rule_id, "yearly rules require an absolute month or a special rule"
            )
        if (self.month_offset or 0) < 0 or (self.quarter_month_offset or 0) < 0:
            raise InvalidRuleDefinitionError(rule_id, "offsets must not be negative")

    def to_dict(self) -> dict:
        data: dict = {}
        if self.special_rule is not None:
            data["special_rule"] = self.special_rule.value
        else:
            data["day"] = self.day
        for name in ("month", "month_offset", "quarter_month_offset"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


@dataclass(frozen=True)
class Rule:
    """Immutable definition of one deadline class."""

    rule_id: str
    title_template: str
    task_kind: TaskKind
    periodicity: Periodicity
    date_expression: DateExpression
    transfer_policy: TransferPolicy = TransferPolicy.NEXT_BUSINESS_DAY
    applicability: Predicate = ALWAYS
    excluded_periods: frozenset[int] = field(default_factory=frozenset)
    predecessor_rule_id: str | None = None
    lock_policy: LockPolicy = LockPolicy.DUE_MONTH
    completion_lead_days: int | None = None
    category: RuleCategory = RuleCategory.TAX
    short_title: str = ""
    description: str = ""
    law_reference: str = ""
    is_active: bool = True
    version: int = 1

    def validate(self) -> None:
        """Raise InvalidRuleDefinitionError if the rule cannot be expanded."""
        if not self.rule_id or any(ch.isspace() for ch in self.rule_id):
            raise InvalidRuleDefinitionError(self.rule_id, "rule id must be non-empty without spaces")
        if not self.title_template:
            raise InvalidRuleDefinitionError(self.rule_id, "title template is empty")
        if self.periodicity == Periodicity.NONE:
            raise InvalidRuleDefinitionError(
                self.rule_id, "periodicity 'none' is reserved for manual tasks"
            )

        self.date_expression.validate(self.rule_id, self.periodicity)

        if self.excluded_periods:
            bounds = _PERIOD_INDEX_BOUNDS.get(self.periodicity)
            if bounds is None:
                raise InvalidRuleDefinitionError(
                    self.rule_id, "yearly rules cannot exclude periods"
                )
            low, high = bounds
            bad = sorted(p for p in self.excluded_periods if not low <= p <= high)
            if bad:
                raise InvalidRuleDefinitionError(
                    self.rule_id, f"excluded periods {bad} outside {low}..{high}"
                )

        if self.completion_lead_days is not None and self.completion_lead_days < 0:
            raise InvalidRuleDefinitionError(self.rule_id, "completion_lead_days must be >= 0")
        if self.predecessor_rule_id == self.rule_id:
            raise InvalidRuleDefinitionError(self.rule_id, "rule cannot precede itself")


@dataclass(frozen=True)
class RejectedRule:
    rule_id: str
    reason: str


class RuleCatalog:
    """Ordered, validated, read-only collection of active rules.

    Contract:
        - Iteration yields rules in definition order.
        - ``rejected`` lists rules dropped during ``build()`` with reasons.

    Non-goals:
        - Does NOT load rules from storage; see ``deadline_config``.
    """

    def __init__(
        self,
        rules: Iterable[Rule],
        tenant: str = "default",
        version: str = "",
        checksum: str = "",
        rejected: Iterable[RejectedRule] = (),
    ):
        self._rules = tuple(rules)
        self._by_id = {rule.rule_id: rule for rule in self._rules}
        self.tenant = tenant
        self.version = version
        self.checksum = checksum
        self.rejected = tuple(rejected)

    @classmethod
    def build(
        cls,
        rules: Iterable[Rule],
        tenant: str = "default",
        version: str = "",
        checksum: str = "",
        rejected: Iterable[RejectedRule] = (),
    ) -> RuleCatalog:
        """Validate rules one by one, keeping the valid active ones."""
        accepted: list[Rule] = []
        dropped: list[RejectedRule] = list(rejected)
        seen: set[str] = set()

        for rule in rules:
            if not rule.is_active:
                continue
            try:
                rule.validate()
                if rule.rule_id in seen:
                    raise InvalidRuleDefinitionError(rule.rule_id, "duplicate rule id")
            except InvalidRuleDefinitionError as exc:
                dropped.append(RejectedRule(exc.rule_id, exc.reason))
                logger.warning(
                    "rule_rejected",
                    extra={"rule_id": exc.rule_id, "reason": exc.reason, "tenant": tenant},
                )
                continue
            seen.add(rule.rule_id)
            accepted.append(rule)

        # Predecessors must survive validation themselves
        by_id = {rule.rule_id: rule for rule in accepted}
        final: list[Rule] = []
        for rule in accepted:
            predecessor = by_id.get(rule.predecessor_rule_id) if rule.predecessor_rule_id else None
            if rule.predecessor_rule_id and (
                predecessor is None or predecessor.periodicity != rule.periodicity
            ):
                reason = f"predecessor {rule.predecessor_rule_id} missing or of different periodicity"
                dropped.append(RejectedRule(rule.rule_id, reason))
                logger.warning(
                    "rule_rejected",
                    extra={"rule_id": rule.rule_id, "reason": reason, "tenant": tenant},
                )
                continue
            final.append(rule)

        return cls(final, tenant=tenant, version=version, checksum=checksum, rejected=dropped)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def rule_ids(self) -> tuple[str, ...]:
        return tuple(rule.rule_id for rule in self._rules)

    def get(self, rule_id: str) -> Rule | None:
        return self._by_id.get(rule_id)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id
