"""
Date Resolver -- statutory date expressions to concrete due dates.

Contract:
    ``resolve_nominal(expression, period)`` computes the statutory (nominal)
    date; ``apply_transfer(nominal, policy)`` moves it off non-workdays
    according to the rule's transfer policy.

Algorithm (nominal):
    - special rule LAST_WORKING_DAY_OF_YEAR: scan back from 31 December of
      the period year to the first workday.
    - month_offset: period month + offset (may cross into the next year).
    - quarter_month_offset: quarter's last month + offset.
    - otherwise: the absolute month within the period year.
    The day is clamped to the month's last day (day 31 in April -> 30 April).

Failure modes:
    - Malformed expression -> InvalidRuleDefinitionError (caller skips rule).
    - Transfer scan exceeding MAX_TRANSFER_DAYS -> NoWorkdayFoundError.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Protocol

from deadline_kernel.domain.periods import Period, clamped_date, shift_month
from deadline_kernel.domain.rules import DateExpression
from deadline_kernel.domain.types import Periodicity, SpecialRule, TransferPolicy
from deadline_kernel.exceptions import InvalidRuleDefinitionError, NoWorkdayFoundError

MAX_TRANSFER_DAYS = 60


class WorkdayCalendar(Protocol):
    def is_workday(self, day: date) -> bool:
        ...


class DateResolver:
    """Resolves nominal and effective dates against a workday calendar."""

    def __init__(self, calendar: WorkdayCalendar):
        self._calendar = calendar

    @property
    def calendar(self) -> WorkdayCalendar:
        return self._calendar

    def resolve_nominal(
        self,
        expression: DateExpression,
        period: Period,
        rule_id: str = "<anonymous>",
    ) -> date:
        if expression.special_rule == SpecialRule.LAST_WORKING_DAY_OF_YEAR:
            return self.last_working_day_of_year(period.year)
        if expression.special_rule is not None:
            raise InvalidRuleDefinitionError(
                rule_id, f"unsupported special rule {expression.special_rule!r}"
            )

        if expression.quarter_month_offset is not None:
            year, month = shift_month(
                period.year, period.last_month, expression.quarter_month_offset
            )
        elif expression.month is not None:
            year, month = period.year, expression.month
        elif expression.month_offset is not None or period.periodicity == Periodicity.MONTHLY:
            year, month = shift_month(
                period.year, period.first_month, expression.month_offset or 0
            )
        else:
            raise InvalidRuleDefinitionError(
                rule_id, "date expression selects no month"
            )

        if not 1 <= expression.day <= 31:
            raise InvalidRuleDefinitionError(rule_id, f"day {expression.day} outside 1..31")
        return clamped_date(year, month, expression.day)

    def apply_transfer(self, nominal: date, policy: TransferPolicy) -> date:
        if policy == TransferPolicy.NO_TRANSFER:
            return nominal
        if policy == TransferPolicy.NEXT_BUSINESS_DAY:
            return self._scan(nominal, step=1, direction="after")
        return self._scan(nominal, step=-1, direction="before")

    def resolve(
        self,
        expression: DateExpression,
        period: Period,
        policy: TransferPolicy,
        rule_id: str = "<anonymous>",
    ) -> tuple[date, date]:
        """Return (nominal, effective)."""
        nominal = self.resolve_nominal(expression, period, rule_id)
        return nominal, self.apply_transfer(nominal, policy)

    def last_working_day_of_year(self, year: int) -> date:
        return self._scan(date(year, 12, 31), step=-1, direction="before")

    def next_workday(self, day: date) -> date:
        return self._scan(day, step=1, direction="after")

    def previous_workday(self, day: date) -> date:
        return self._scan(day, step=-1, direction="before")

    def _scan(self, start: date, step: int, direction: str) -> date:
        day = start
        for _ in range(MAX_TRANSFER_DAYS + 1):
            if self._calendar.is_workday(day):
                return day
            day += timedelta(days=step)
        raise NoWorkdayFoundError(start, direction, MAX_TRANSFER_DAYS)
