"""
Pytest fixtures for the deadline engine test suite.

Provides:
- Structured-logging setup and ``captured_logs``
- A deterministic clock and a fixed in-memory RU holiday source
- Calendar, date resolver and generator wired against that source
- In-memory SQLite engines and sessions (``Base.metadata.create_all``)
- Factory fixtures for profiles, rules and stored tasks
"""

import json
import logging
from datetime import date, datetime, timedelta, timezone
from io import StringIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import deadline_kernel.models  # noqa: F401  (registers tables)
from deadline_kernel.db.base import Base
from deadline_kernel.db.engine import enable_sqlite_savepoints
from deadline_kernel.domain.calendar import CalendarResolver, HolidayYear
from deadline_kernel.domain.clock import DeterministicClock
from deadline_kernel.domain.dates import DateResolver
from deadline_kernel.domain.generator import TaskGenerator
from deadline_kernel.domain.rules import DateExpression, Rule
from deadline_kernel.domain.types import (
    ClientProfile,
    CompletionState,
    LegalForm,
    Periodicity,
    StoredTask,
    TaskKind,
    TaskSource,
    TaxRegime,
    TransferPolicy,
)
from deadline_kernel.exceptions import CalendarDataUnavailableError
from deadline_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture deadline_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, generator):
            generator.generate(...)
            logs = captured_logs()
            assert any(r["message"] == "tasks_generated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("deadline_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and calendar
# =============================================================================


def _days(start: date, end: date) -> frozenset[date]:
    return frozenset(start + timedelta(days=n) for n in range((end - start).days + 1))


RU_2025 = HolidayYear(
    year=2025,
    holidays=(
        _days(date(2025, 1, 1), date(2025, 1, 8))
        | {date(2025, 2, 23), date(2025, 3, 8)}
        | _days(date(2025, 5, 1), date(2025, 5, 4))
        | _days(date(2025, 5, 8), date(2025, 5, 11))
        | _days(date(2025, 6, 12), date(2025, 6, 15))
        | _days(date(2025, 11, 2), date(2025, 11, 4))
        | {date(2025, 12, 31)}
    ),
    working_weekends=frozenset({date(2025, 11, 1)}),
    shortened_days=frozenset({date(2025, 3, 7), date(2025, 4, 30), date(2025, 11, 1)}),
    source="test",
)

RU_2026 = HolidayYear(
    year=2026,
    holidays=(
        _days(date(2026, 1, 1), date(2026, 1, 11))
        | {
            date(2026, 2, 23),
            date(2026, 3, 9),
            date(2026, 5, 1),
            date(2026, 5, 11),
            date(2026, 6, 12),
            date(2026, 11, 4),
            date(2026, 12, 31),
        }
    ),
    source="test",
)


class FixedHolidaySource:
    """In-memory HolidaySource; unknown years raise CalendarDataUnavailableError."""

    def __init__(self, years: dict[int, HolidayYear] | None = None, jurisdiction: str = "RU"):
        self._years = dict(years if years is not None else {2025: RU_2025, 2026: RU_2026})
        self._jurisdiction = jurisdiction
        self.calls: list[int] = []

    @property
    def jurisdiction(self) -> str:
        return self._jurisdiction

    def load_year(self, year: int) -> HolidayYear:
        self.calls.append(year)
        if year not in self._years:
            raise CalendarDataUnavailableError(self._jurisdiction, year, "not in fixture")
        return self._years[year]

    def put(self, holiday_year: HolidayYear) -> None:
        self._years[holiday_year.year] = holiday_year


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2025, 3, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def holiday_source() -> FixedHolidaySource:
    return FixedHolidaySource()


@pytest.fixture
def make_holiday_source():
    """Factory for sources with custom years (``{year: HolidayYear}``)."""
    return FixedHolidaySource


@pytest.fixture
def calendar(holiday_source, clock) -> CalendarResolver:
    return CalendarResolver(holiday_source, clock=clock, years_back=0, years_forward=1)


@pytest.fixture
def date_resolver(calendar) -> DateResolver:
    return DateResolver(calendar)


@pytest.fixture
def generator(date_resolver) -> TaskGenerator:
    return TaskGenerator(date_resolver, locale="ru")


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(eng)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_profile():
    """Build a ClientProfile; defaults to an OOO on USN6 without staff."""

    def _make(client_id: str = "c1", **overrides) -> ClientProfile:
        values = {
            "client_id": client_id,
            "legal_form": LegalForm.OOO,
            "tax_regime": TaxRegime.USN6,
        }
        values.update(overrides)
        return ClientProfile(**values)

    return _make


@pytest.fixture
def make_rule():
    """Build a monthly day-25 notification rule unless overridden."""

    def _make(rule_id: str = "R1", **overrides) -> Rule:
        values = {
            "rule_id": rule_id,
            "title_template": f"{rule_id} {{monthName}}",
            "task_kind": TaskKind.NOTIFICATION,
            "periodicity": Periodicity.MONTHLY,
            "date_expression": DateExpression(day=25, month_offset=0),
            "transfer_policy": TransferPolicy.NEXT_BUSINESS_DAY,
        }
        values.update(overrides)
        return Rule(**values)

    return _make


@pytest.fixture
def make_task():
    """Build an open automatic StoredTask due on ``due``."""

    def _make(
        task_id: str,
        due: date,
        client_id: str = "c1",
        series_id: str | None = "SERIES",
        **overrides,
    ) -> StoredTask:
        values = {
            "task_id": task_id,
            "client_id": client_id,
            "title": task_id,
            "source": TaskSource.AUTOMATIC,
            "original_due_date": due,
            "current_due_date": due,
            "completion_state": CompletionState.OPEN,
            "rule_id": series_id,
            "series_id": series_id,
        }
        values.update(overrides)
        return StoredTask(**values)

    return _make
