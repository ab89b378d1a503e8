"""
Clock -- injectable source of "now" and of the business date.

Responsibility:
    Services, batch runners and the status refresher take a Clock instead
    of calling ``datetime.now()`` or ``date.today()``.  Pure domain
    functions take ``today`` as an explicit argument.

Deadlines are calendar dates in the jurisdiction's local time: a task due on
25 March is overdue from 00:00 on 26 March in Moscow, which is still
25 March in UTC.  Each clock therefore carries a business timezone and
``today()`` is the date in that zone, while ``now()`` stays in UTC for
audit timestamps.

Architecture position:
    Kernel > Domain.  SystemClock is the one sanctioned I/O boundary for time.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo

DEFAULT_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """
    Contract:
        - ``now()`` is timezone-aware UTC.
        - ``today()`` is the business date in ``business_tz``.
    """

    def __init__(self, business_tz: tzinfo = timezone.utc):
        self._business_tz = business_tz

    @property
    def business_tz(self) -> tzinfo:
        return self._business_tz

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        return self.now().astimezone(self._business_tz).date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock.  ``now()`` only moves through ``set_time``, ``set_date``,
    ``advance`` and ``tick``.
    """

    def __init__(
        self,
        fixed_time: datetime | None = None,
        business_tz: tzinfo = timezone.utc,
    ):
        super().__init__(business_tz)
        self._current = fixed_time or DEFAULT_TIME

    def now(self) -> datetime:
        return self._current.astimezone(timezone.utc)

    def set_time(self, time: datetime) -> None:
        if time.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware datetime")
        self._current = time

    def set_date(self, day: date) -> None:
        """Noon of ``day`` in the business timezone."""
        self.set_time(datetime(day.year, day.month, day.day, 12, tzinfo=self._business_tz))

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        self.advance(days * 86400)

    def tick(self) -> datetime:
        self.advance(1)
        return self.now()
