"""
Reporting periods and generation windows.

Pure helpers: period enumeration per periodicity, period keys used in task
identity (``YYYY``, ``YYYY-Q{n}``, ``YYYY-MM``), and month arithmetic that
crosses year boundaries.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Iterator

from deadline_kernel.domain.types import Periodicity


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    """Move (year, month) by ``offset`` months; month is 1-based."""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def clamped_date(year: int, month: int, day: int) -> date:
    """Build a date, clamping ``day`` to the last day of the month."""
    return date(year, month, min(day, last_day_of_month(year, month)))


@dataclass(frozen=True, order=True)
class Period:
    """One month, quarter or year instance a rule is expanded for.

    ``index`` is the month (1-12) for monthly periods, the quarter (1-4) for
    quarterly periods and 0 for yearly periods.
    """

    year: int
    periodicity: Periodicity
    index: int = 0

    def __post_init__(self) -> None:
        bounds = {
            Periodicity.MONTHLY: (1, 12),
            Periodicity.QUARTERLY: (1, 4),
            Periodicity.YEARLY: (0, 0),
        }
        if self.periodicity not in bounds:
            raise ValueError(f"No periods for periodicity {self.periodicity.value}")
        low, high = bounds[self.periodicity]
        if not low <= self.index <= high:
            raise ValueError(
                f"Period index {self.index} out of range for {self.periodicity.value}"
            )

    @property
    def key(self) -> str:
        if self.periodicity == Periodicity.MONTHLY:
            return f"{self.year:04d}-{self.index:02d}"
        if self.periodicity == Periodicity.QUARTERLY:
            return f"{self.year:04d}-Q{self.index}"
        return f"{self.year:04d}"

    @property
    def first_month(self) -> int:
        if self.periodicity == Periodicity.MONTHLY:
            return self.index
        if self.periodicity == Periodicity.QUARTERLY:
            return (self.index - 1) * 3 + 1
        return 1

    @property
    def last_month(self) -> int:
        if self.periodicity == Periodicity.MONTHLY:
            return self.index
        if self.periodicity == Periodicity.QUARTERLY:
            return self.index * 3
        return 12

    @property
    def start(self) -> date:
        return date(self.year, self.first_month, 1)

    @property
    def end(self) -> date:
        return date(
            self.year,
            self.last_month,
            last_day_of_month(self.year, self.last_month),
        )

    @property
    def quarter(self) -> int:
        return (self.last_month - 1) // 3 + 1


def periods_for_year(periodicity: Periodicity, year: int) -> tuple[Period, ...]:
    if periodicity == Periodicity.MONTHLY:
        return tuple(Period(year, periodicity, m) for m in range(1, 13))
    if periodicity == Periodicity.QUARTERLY:
        return tuple(Period(year, periodicity, q) for q in range(1, 5))
    if periodicity == Periodicity.YEARLY:
        return (Period(year, periodicity),)
    return ()


@dataclass(frozen=True)
class PeriodRange:
    """Inclusive date window a generation pass covers (``asOfPeriodRange``)."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(
                f"PeriodRange end {self.end} precedes start {self.start}"
            )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def candidate_periods(self, periodicity: Periodicity) -> Iterator[Period]:
        """Periods whose deadlines can fall in the window.

        Starts one year early: a December period is typically due in January
        of the following year.
        """
        for year in range(self.start.year - 1, self.end.year + 1):
            yield from periods_for_year(periodicity, year)

    @classmethod
    def for_years(cls, first_year: int, last_year: int) -> PeriodRange:
        return cls(date(first_year, 1, 1), date(last_year, 12, 31))
