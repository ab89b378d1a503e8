"""
Title template rendering.

Placeholders:
    {year}               period year
    {year-1}             period year minus one (backward-looking annual filings)
    {quarter}            quarter number (1-4)
    {monthName}          month name, nominative
    {monthNameGenitive}  month name, genitive
    {lastDayOfMonth}     last day of the month

For monthly periods the month is the period month; for quarterly periods the
quarter's last month; for yearly periods the month of the nominal date.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from deadline_kernel.domain.periods import Period, last_day_of_month
from deadline_kernel.domain.types import Periodicity


@dataclass(frozen=True)
class MonthNames:
    nominative: tuple[str, ...]
    genitive: tuple[str, ...]


MONTH_NAMES: dict[str, MonthNames] = {
    "ru": MonthNames(
        nominative=(
            "январь", "февраль", "март", "апрель", "май", "июнь",
            "июль", "август", "сентябрь", "октябрь", "ноябрь", "декабрь",
        ),
        genitive=(
            "января", "февраля", "марта", "апреля", "мая", "июня",
            "июля", "августа", "сентября", "октября", "ноября", "декабря",
        ),
    ),
    "en": MonthNames(
        nominative=(
            "January", "February", "March", "April", "May", "June",
            "July", "August", "September", "October", "November", "December",
        ),
        genitive=(
            "January", "February", "March", "April", "May", "June",
            "July", "August", "September", "October", "November", "December",
        ),
    ),
}


def month_names(locale: str) -> MonthNames:
    try:
        return MONTH_NAMES[locale]
    except KeyError:
        raise ValueError(
            f"No month names for locale '{locale}'. Known: {sorted(MONTH_NAMES)}"
        ) from None


def render_title(
    template: str,
    period: Period,
    nominal_date: date,
    names: MonthNames,
) -> str:
    if period.periodicity == Periodicity.YEARLY:
        year, month = period.year, nominal_date.month
    else:
        year, month = period.year, period.last_month

    values = {
        "{year-1}": str(year - 1),
        "{year}": str(year),
        "{quarter}": str((month - 1) // 3 + 1),
        "{monthNameGenitive}": names.genitive[month - 1],
        "{monthName}": names.nominative[month - 1],
        "{lastDayOfMonth}": str(last_day_of_month(year, month)),
    }
    title = template
    for placeholder, value in values.items():
        title = title.replace(placeholder, value)
    return title
