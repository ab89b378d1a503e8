"""
Calendar/Holiday Resolver -- authoritative "is this a working day".

Contract:
    ``CalendarResolver.is_workday(d)`` and ``date_properties(d)`` answer for
    any date.  Each year's per-date property table is built once from the
    injected ``HolidaySource`` and cached for the resolver's lifetime.

Lifecycle:
    ``load()`` pre-builds every year in the supported range
    [current_year - years_back, current_year + years_forward].  ``refresh()``
    drops cached years and rebuilds them on demand (for example after a newly
    gazetted holiday).  Years outside the range are built lazily on first use.

Failure modes:
    - Source raises ``CalendarDataUnavailableError`` or returns None for a
      year: a WARNING ``calendar_data_unavailable`` is logged and the year is
      served weekend-only.  The year is listed in ``degraded_years`` and is
      retried on the next ``refresh()``.

Thread safety:
    Table construction is guarded by a lock; lookups on built years are
    lock-free reads of immutable mappings.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Mapping, Protocol

from deadline_kernel.domain.clock import Clock, SystemClock
from deadline_kernel.exceptions import CalendarDataUnavailableError
from deadline_kernel.logging_config import get_logger

logger = get_logger("domain.calendar")

SATURDAY = 5
SUNDAY = 6
DEFAULT_WEEKEND_DAYS: frozenset[int] = frozenset({SATURDAY, SUNDAY})


@dataclass(frozen=True)
class DateProperties:
    """Derived properties of one calendar date."""

    is_weekend: bool
    is_holiday: bool
    is_workday: bool
    is_shortened: bool = False


@dataclass(frozen=True)
class HolidayYear:
    """Holiday data for one jurisdiction-year.

    ``working_weekends`` are weekend dates declared working days by a
    holiday transfer.  ``shortened_days`` are pre-holiday working days.
    """

    year: int
    holidays: frozenset[date] = field(default_factory=frozenset)
    working_weekends: frozenset[date] = field(default_factory=frozenset)
    shortened_days: frozenset[date] = field(default_factory=frozenset)
    source: str = ""


class HolidaySource(Protocol):
    """Per-year holiday data provider."""

    @property
    def jurisdiction(self) -> str:
        ...

    def load_year(self, year: int) -> HolidayYear | None:
        """Return the year's data, None if unknown.

        May raise CalendarDataUnavailableError.
        """
        ...


class CalendarResolver:
    """Injectable, explicitly constructed working-day calendar.

    Contract:
        - ``is_workday(d)`` / ``date_properties(d)`` for any date.
        - ``load()`` on start, ``refresh()`` on demand.
        - ``degraded_years`` lists years served weekend-only.

    Non-goals:
        - Does NOT fetch remote data itself; that is the source's concern.
    """

    def __init__(
        self,
        source: HolidaySource,
        clock: Clock | None = None,
        years_back: int = 1,
        years_forward: int = 10,
        weekend_days: frozenset[int] = DEFAULT_WEEKEND_DAYS,
    ):
        self._source = source
        self._clock = clock or SystemClock()
        self._years_back = years_back
        self._years_forward = years_forward
        self._weekend_days = frozenset(weekend_days)
        self._tables: dict[int, Mapping[date, DateProperties]] = {}
        self._degraded: set[int] = set()
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def jurisdiction(self) -> str:
        return self._source.jurisdiction

    @property
    def supported_years(self) -> range:
        current = self._clock.today().year
        return range(current - self._years_back, current + self._years_forward + 1)

    def load(self) -> None:
        """Build the property table for every year in the supported range."""
        for year in self.supported_years:
            self._table_for(year)
        logger.info(
            "calendar_loaded",
            extra={
                "jurisdiction": self.jurisdiction,
                "first_year": self.supported_years.start,
                "last_year": self.supported_years.stop - 1,
                "degraded_years": sorted(self._degraded),
            },
        )

    def refresh(self, year: int | None = None) -> None:
        """Drop cached tables (one year or all) so they are rebuilt on use."""
        with self._lock:
            if year is None:
                self._tables.clear()
                self._degraded.clear()
            else:
                self._tables.pop(year, None)
                self._degraded.discard(year)
        logger.info(
            "calendar_refreshed",
            extra={"jurisdiction": self.jurisdiction, "year": year},
        )

    @property
    def degraded_years(self) -> frozenset[int]:
        return frozenset(self._degraded)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def date_properties(self, day: date) -> DateProperties:
        return self._table_for(day.year)[day]

    def is_workday(self, day: date) -> bool:
        return self.date_properties(day).is_workday

    def is_weekend(self, day: date) -> bool:
        return day.weekday() in self._weekend_days

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _table_for(self, year: int) -> Mapping[date, DateProperties]:
        table = self._tables.get(year)
        if table is not None:
            return table

        with self._lock:
            table = self._tables.get(year)
            if table is None:
                table = self._build_year(year)
                self._tables[year] = table
            return table

    def _build_year(self, year: int) -> Mapping[date, DateProperties]:
        holiday_year = self._fetch(year)
        if holiday_year is None:
            self._degraded.add(year)
            holiday_year = HolidayYear(year=year)

        table: dict[date, DateProperties] = {}
        day = date(year, 1, 1)
        days_in_year = (date(year + 1, 1, 1) - day).days
        for _ in range(days_in_year):
            weekend = day.weekday() in self._weekend_days
            holiday = day in holiday_year.holidays
            if holiday:
                workday = False
            elif weekend:
                workday = day in holiday_year.working_weekends
            else:
                workday = True
            table[day] = DateProperties(
                is_weekend=weekend,
                is_holiday=holiday,
                is_workday=workday,
                is_shortened=workday and day in holiday_year.shortened_days,
            )
            day += timedelta(days=1)

        logger.debug(
            "calendar_year_loaded",
            extra={
                "jurisdiction": self.jurisdiction,
                "year": year,
                "holiday_count": len(holiday_year.holidays),
                "degraded": year in self._degraded,
            },
        )
        return table

    def _fetch(self, year: int) -> HolidayYear | None:
        try:
            data = self._source.load_year(year)
        except CalendarDataUnavailableError as exc:
            logger.warning(
                "calendar_data_unavailable",
                extra={
                    "jurisdiction": self.jurisdiction,
                    "year": year,
                    "reason": exc.reason,
                },
            )
            return None

        if data is None:
            logger.warning(
                "calendar_data_unavailable",
                extra={
                    "jurisdiction": self.jurisdiction,
                    "year": year,
                    "reason": "no data",
                },
            )
        return data
