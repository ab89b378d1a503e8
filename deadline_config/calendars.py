"""
YAML-backed holiday source (``deadline_config.calendars``).

File layout (``calendars/<JURISDICTION>.yaml``)::

    jurisdiction: RU
    source: "Production calendar"
    years:
      2025:
        holidays: [2025-01-01, ...]
        working_weekends: [2025-11-01]
        shortened_days: [2025-03-07]
      2027:
        day_codes: "1111111100000..."   # one digit per day

The file is read once on first use.  A missing file or an unknown year is
reported as ``CalendarDataUnavailableError`` so the resolver can degrade to
weekend-only for that year.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from deadline_config.loader import load_yaml_file, parse_holiday_year
from deadline_kernel.domain.calendar import DEFAULT_WEEKEND_DAYS, HolidayYear
from deadline_kernel.exceptions import CalendarDataUnavailableError


class YamlHolidaySource:
    def __init__(
        self,
        jurisdiction: str,
        path: Path,
        weekend_days: frozenset[int] = DEFAULT_WEEKEND_DAYS,
    ):
        self._jurisdiction = jurisdiction
        self._path = path
        self._weekend_days = frozenset(weekend_days)
        self._years: dict[int, Any] | None = None
        self._source = ""
        self._lock = threading.Lock()

    @property
    def jurisdiction(self) -> str:
        return self._jurisdiction

    @property
    def path(self) -> Path:
        return self._path

    def available_years(self) -> list[int]:
        return sorted(self._raw_years())

    def load_year(self, year: int) -> HolidayYear:
        years = self._raw_years()
        if year not in years:
            raise CalendarDataUnavailableError(
                self._jurisdiction, year, f"year not present in {self._path.name}"
            )
        try:
            return parse_holiday_year(
                year, years[year] or {}, self._weekend_days, self._source
            )
        except ValueError as exc:
            raise CalendarDataUnavailableError(self._jurisdiction, year, str(exc)) from exc

    def _raw_years(self) -> dict[int, Any]:
        with self._lock:
            if self._years is None:
                if not self._path.exists():
                    raise CalendarDataUnavailableError(
                        self._jurisdiction, 0, f"calendar file not found: {self._path}"
                    )
                data = load_yaml_file(self._path)
                self._source = data.get("source", self._path.name)
                self._years = {int(k): v for k, v in (data.get("years") or {}).items()}
            return self._years
