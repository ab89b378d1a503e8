"""
Task Generator -- expands rules into dated task instances for one client.

Contract:
    ``TaskGenerator.generate(profile, rules, period_range)`` returns the
    tuple of ``GeneratedTask`` for every (applicable rule, period) pair whose
    nominal or effective date falls in ``period_range``, plus the client's
    patent tasks.

Guarantees:
    - PURE: output depends only on rules, calendar, profile and range.
      Two calls with equal inputs return equal tuples in the same order.
    - Task ids are ``{rule_id}_{client_id}_{period_key}``; duplicates are
      collapsed (first wins).
    - Excluded periods are dropped before any date is resolved.

Failure modes:
    - A rule raising InvalidRuleDefinitionError or NoWorkdayFoundError is
      skipped with a WARNING ``rule_skipped``; the remaining rules proceed.
"""

from __future__ import annotations

from typing import Iterable

from deadline_kernel.domain.dates import DateResolver
from deadline_kernel.domain.patents import generate_patent_tasks
from deadline_kernel.domain.periods import Period, PeriodRange
from deadline_kernel.domain.rules import Rule
from deadline_kernel.domain.titles import month_names, render_title
from deadline_kernel.domain.types import (
    ClientProfile,
    GeneratedTask,
    LockPolicy,
    make_task_id,
)
from deadline_kernel.exceptions import InvalidRuleDefinitionError, NoWorkdayFoundError
from deadline_kernel.logging_config import get_logger

logger = get_logger("domain.generator")


class TaskGenerator:
    """Pure expansion of rules into GeneratedTask instances.

    Non-goals:
        - Does NOT read or write the task store.
        - Does NOT decide which stored tasks become obsolete; see
          ``deadline_kernel.domain.reconciliation``.
    """

    def __init__(self, date_resolver: DateResolver, locale: str = "ru"):
        self._dates = date_resolver
        self._locale = locale
        self._names = month_names(locale)

    @property
    def date_resolver(self) -> DateResolver:
        return self._dates

    def generate(
        self,
        profile: ClientProfile,
        rules: Iterable[Rule],
        period_range: PeriodRange,
    ) -> tuple[GeneratedTask, ...]:
        tasks: dict[str, GeneratedTask] = {}
        skipped_rules = 0

        for rule in rules:
            if not rule.is_active or not rule.applicability.evaluate(profile):
                continue
            try:
                rule.validate()
                for task in self._expand_rule(profile, rule, period_range):
                    tasks.setdefault(task.task_id, task)
            except (InvalidRuleDefinitionError, NoWorkdayFoundError) as exc:
                skipped_rules += 1
                logger.warning(
                    "rule_skipped",
                    extra={
                        "rule_id": rule.rule_id,
                        "client_id": profile.client_id,
                        "error_code": exc.code,
                        "reason": str(exc),
                    },
                )

        try:
            for task in generate_patent_tasks(
                profile, period_range, self._dates, self._locale,
            ):
                tasks.setdefault(task.task_id, task)
        except NoWorkdayFoundError as exc:
            logger.warning(
                "rule_skipped",
                extra={
                    "rule_id": "PATENT",
                    "client_id": profile.client_id,
                    "error_code": exc.code,
                    "reason": str(exc),
                },
            )

        result = tuple(
            sorted(tasks.values(), key=lambda t: (t.effective_date, t.task_id))
        )
        logger.info(
            "tasks_generated",
            extra={
                "client_id": profile.client_id,
                "task_count": len(result),
                "skipped_rules": skipped_rules,
                "range_start": period_range.start,
                "range_end": period_range.end,
            },
        )
        return result

    def _expand_rule(
        self,
        profile: ClientProfile,
        rule: Rule,
        period_range: PeriodRange,
    ) -> list[GeneratedTask]:
        expanded: list[GeneratedTask] = []
        for period in period_range.candidate_periods(rule.periodicity):
            if period.index in rule.excluded_periods:
                continue
            if profile.onboarded_on is not None and period.end < profile.onboarded_on:
                continue

            nominal, effective = self._dates.resolve(
                rule.date_expression, period, rule.transfer_policy, rule.rule_id,
            )
            if not (period_range.contains(nominal) or period_range.contains(effective)):
                continue
            if profile.onboarded_on is not None and effective < profile.onboarded_on:
                continue

            expanded.append(self._build_task(profile, rule, period, nominal, effective))
        return expanded

    def _build_task(self, profile, rule, period: Period, nominal, effective) -> GeneratedTask:
        if rule.lock_policy == LockPolicy.DUE_MONTH:
            locked_until = nominal.replace(day=1)
        elif rule.lock_policy == LockPolicy.PERIOD_START:
            locked_until = period.start
        else:
            locked_until = None

        predecessor_id = (
            make_task_id(rule.predecessor_rule_id, profile.client_id, period.key)
            if rule.predecessor_rule_id
            else None
        )

        return GeneratedTask(
            task_id=make_task_id(rule.rule_id, profile.client_id, period.key),
            rule_id=rule.rule_id,
            client_id=profile.client_id,
            period_key=period.key,
            title=render_title(rule.title_template, period, nominal, self._names),
            nominal_date=nominal,
            effective_date=effective,
            series_id=rule.rule_id,
            task_kind=rule.task_kind,
            periodicity=rule.periodicity,
            transfer_policy=rule.transfer_policy,
            predecessor_id=predecessor_id,
            locked_until=locked_until,
            completion_lead_days=rule.completion_lead_days,
            description=rule.description,
            law_reference=rule.law_reference,
        )
