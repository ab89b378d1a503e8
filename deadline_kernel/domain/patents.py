"""
Patent payment tasks.

A patent's payment schedule depends on its own start/end dates rather than
on a calendar period, so it is expanded here instead of through a Rule.

Per patent and year (the first year, later years only with auto-renew):
    - duration <= 6 months: full payment on the end date, plus a tax-reduction
      notice 22 days earlier;
    - 6 < duration <= 12 months: first payment 90 days after the start
      (next business day) and second payment on the end date, each with its
      own tax-reduction notice 22 days earlier;
    - auto-renew: a renewal reminder one month before the end date.
End-date payments and notices move to the previous business day.  Payments
are locked until 1 January of the patent year.
"""

from __future__ import annotations

from datetime import date, timedelta

from deadline_kernel.domain.dates import DateResolver
from deadline_kernel.domain.periods import PeriodRange, clamped_date, shift_month
from deadline_kernel.domain.types import (
    ClientProfile,
    GeneratedTask,
    Patent,
    Periodicity,
    TaskKind,
    TransferPolicy,
    make_task_id,
)

FIRST_PAYMENT_AFTER_DAYS = 90
REDUCTION_NOTICE_DAYS_BEFORE = 22
SHORT_PATENT_MAX_MONTHS = 6
LONG_PATENT_MAX_MONTHS = 12

PATENT_TITLES: dict[str, dict[str, str]] = {
    "ru": {
        "PAYMENT_FULL": "Оплата патента «{name}» за {year}г.",
        "PAYMENT_1": "Оплата 1/3 патента «{name}» за {year}г.",
        "PAYMENT_2": "Оплата 2/3 патента «{name}» за {year}г.",
        "TAX_REDUCTION": (
            "Напоминание: через 2 дня подать уведомление на уменьшение налога "
            "«{name}» за {year}г."
        ),
        "RENEWAL": "Продление патента «{name}» за {year}г.",
    },
    "en": {
        "PAYMENT_FULL": "Patent payment \"{name}\" for {year}",
        "PAYMENT_1": "Patent payment 1/3 \"{name}\" for {year}",
        "PAYMENT_2": "Patent payment 2/3 \"{name}\" for {year}",
        "TAX_REDUCTION": "Reminder: file the tax reduction notice \"{name}\" for {year}",
        "RENEWAL": "Patent renewal \"{name}\" for {year}",
    },
}

PATENT_LAW_REFERENCE = "НК РФ ст. 346.51"


def _add_years(day: date, years: int) -> date:
    return clamped_date(day.year + years, day.month, day.day)


def _months_spanned(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month) + 1


def patent_rule_id(kind: str, patent_id: str) -> str:
    return f"PATENT_{kind}_{patent_id}"


def generate_patent_tasks(
    profile: ClientProfile,
    period_range: PeriodRange,
    dates: DateResolver,
    locale: str = "ru",
) -> list[GeneratedTask]:
    titles = PATENT_TITLES.get(locale, PATENT_TITLES["en"])
    tasks: list[GeneratedTask] = []
    for patent in profile.patents:
        # A patent taken out the year before can still be payable in range.
        for year in range(period_range.start.year - 1, period_range.end.year + 1):
            tasks.extend(
                _patent_year_tasks(profile, patent, year, period_range, dates, titles)
            )
    return tasks


def _patent_year_tasks(
    profile: ClientProfile,
    patent: Patent,
    year: int,
    period_range: PeriodRange,
    dates: DateResolver,
    titles: dict[str, str],
) -> list[GeneratedTask]:
    first_year = patent.start_date.year
    if year < first_year or (year > first_year and not patent.auto_renew):
        return []

    offset = year - first_year
    start = _add_years(patent.start_date, offset)
    end = _add_years(patent.end_date, offset)
    if end < period_range.start:
        return []

    def build(kind, title_key, nominal, policy, task_kind, locked, predecessor_kind=None):
        rule_id = patent_rule_id(kind, patent.patent_id)
        effective = dates.apply_transfer(nominal, policy)
        in_range = period_range.contains(nominal) or period_range.contains(effective)
        if not in_range:
            return None
        if profile.onboarded_on is not None and effective < profile.onboarded_on:
            return None
        return GeneratedTask(
            task_id=make_task_id(rule_id, profile.client_id, str(year)),
            rule_id=rule_id,
            client_id=profile.client_id,
            period_key=str(year),
            title=titles[title_key].format(name=patent.name, year=year),
            nominal_date=nominal,
            effective_date=effective,
            series_id=rule_id,
            task_kind=task_kind,
            periodicity=Periodicity.YEARLY,
            transfer_policy=policy,
            predecessor_id=(
                make_task_id(
                    patent_rule_id(predecessor_kind, patent.patent_id),
                    profile.client_id,
                    str(year),
                )
                if predecessor_kind
                else None
            ),
            locked_until=date(year, 1, 1) if locked else None,
            law_reference=PATENT_LAW_REFERENCE,
        )

    prev = TransferPolicy.PREVIOUS_BUSINESS_DAY
    notice_gap = timedelta(days=REDUCTION_NOTICE_DAYS_BEFORE)
    candidates = []

    duration = _months_spanned(start, end)
    if duration <= SHORT_PATENT_MAX_MONTHS:
        candidates += [
            build("TAX_REDUCTION_FULL", "TAX_REDUCTION", end - notice_gap, prev,
                  TaskKind.NOTIFICATION, locked=False),
            build("PAYMENT_FULL", "PAYMENT_FULL", end, prev,
                  TaskKind.PAYMENT, locked=True, predecessor_kind="TAX_REDUCTION_FULL"),
        ]
    elif duration <= LONG_PATENT_MAX_MONTHS:
        first_payment = start + timedelta(days=FIRST_PAYMENT_AFTER_DAYS)
        candidates += [
            build("TAX_REDUCTION_1", "TAX_REDUCTION", first_payment - notice_gap, prev,
                  TaskKind.NOTIFICATION, locked=False),
            build("PAYMENT_1", "PAYMENT_1", first_payment,
                  TransferPolicy.NEXT_BUSINESS_DAY, TaskKind.PAYMENT, locked=True,
                  predecessor_kind="TAX_REDUCTION_1"),
            build("TAX_REDUCTION_2", "TAX_REDUCTION", end - notice_gap, prev,
                  TaskKind.NOTIFICATION, locked=False),
            build("PAYMENT_2", "PAYMENT_2", end, prev,
                  TaskKind.PAYMENT, locked=True, predecessor_kind="TAX_REDUCTION_2"),
        ]

    if patent.auto_renew:
        renewal_year, renewal_month = shift_month(end.year, end.month, -1)
        renewal = clamped_date(renewal_year, renewal_month, end.day)
        candidates.append(
            build("RENEWAL", "RENEWAL", renewal, prev, TaskKind.NOTIFICATION, locked=False)
        )

    return [task for task in candidates if task is not None]
