"""
Janelas de tempo canônicas usadas por todas as métricas.

Tudo é calculado em granularidade de dia de calendário no fuso do negócio
(``settings.BUSINESS_TIMEZONE``). Datetimes ingênuos são considerados já
estarem nesse fuso.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Literal, Optional

from retail_dashboard.domain.errors import InvalidFilterError

Period = Literal["today", "week", "month", "year"]
PERIODS: tuple[str, ...] = ("today", "week", "month", "year")

DELIVERY_SLA_DAYS = 2
NEW_PRODUCT_DAYS = 21


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


@dataclass(frozen=True)
class TimeWindow:
    """Reference instant plus the calendar helpers derived from it."""

    now: datetime

    def __post_init__(self):
        if self.now.tzinfo is None:
            raise ValueError("TimeWindow.now precisa ter fuso horário.")

    @classmethod
    def current(cls, tz: tzinfo) -> "TimeWindow":
        return cls(now=datetime.now(tz))

    @property
    def tz(self) -> tzinfo:
        return self.now.tzinfo  # type: ignore[return-value]

    @property
    def today(self) -> date:
        return self.now.date()

    # ------------------------------------------------------------------
    # Conversões
    # ------------------------------------------------------------------

    def localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def local_day(self, value: datetime) -> date:
        return self.localize(value).date()

    def _midnight(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.tz)

    # ------------------------------------------------------------------
    # Limites
    # ------------------------------------------------------------------

    def start_of_today(self) -> datetime:
        return self._midnight(self.today)

    def start_of_month(self, offset_months: int = 0) -> datetime:
        year, month = _shift_month(self.today.year, self.today.month, offset_months)
        return self._midnight(date(year, month, 1))

    def end_of_month(self, offset_months: int = 0) -> datetime:
        """Last representable instant of the month (inclusive bound)."""
        return self.start_of_month(offset_months + 1) - timedelta(microseconds=1)

    def month_range(self, offset_months: int = 0) -> tuple[datetime, datetime]:
        """Half-open ``[start, end)`` range of a calendar month."""
        return self.start_of_month(offset_months), self.start_of_month(offset_months + 1)

    def trailing(self, days: int) -> datetime:
        """Instant exactly ``days`` days before now."""
        return self.now - timedelta(days=days)

    def last_n_days(self, n: int) -> list[date]:
        """Calendar days ending today, oldest first."""
        if n <= 0:
            return []
        return [self.today - timedelta(days=offset) for offset in range(n - 1, -1, -1)]

    @staticmethod
    def days_between(start: datetime | date, end: datetime | date) -> int:
        """Whole days from ``start`` to ``end``, floored (negative if end precedes start)."""
        if isinstance(start, datetime) and isinstance(end, datetime):
            if (start.tzinfo is None) != (end.tzinfo is None):
                raise ValueError("Não é possível comparar datetimes com e sem fuso.")
            return (end - start) // timedelta(days=1)
        if isinstance(start, datetime):
            start = start.date()
        if isinstance(end, datetime):
            end = end.date()
        return (end - start).days

    def within(self, value: datetime, start: datetime, end: Optional[datetime] = None) -> bool:
        moment = self.localize(value)
        if moment < start:
            return False
        return end is None or moment < end

    # ------------------------------------------------------------------
    # Regras derivadas
    # ------------------------------------------------------------------

    def is_overdue(self, created_at: datetime) -> bool:
        """Older than the delivery SLA window."""
        return self.localize(created_at) < self.trailing(DELIVERY_SLA_DAYS)

    def is_new_product(self, created_at: Optional[datetime]) -> bool:
        if created_at is None:
            return False
        return self.localize(created_at) >= self.trailing(NEW_PRODUCT_DAYS)

    def period_range(self, period: str) -> tuple[datetime, datetime]:
        """Half-open range covered by a dashboard period filter."""
        tomorrow = self._midnight(self.today + timedelta(days=1))
        if period == "today":
            return self.start_of_today(), tomorrow
        if period == "week":
            return self._midnight(self.today - timedelta(days=6)), tomorrow
        if period == "month":
            return self.month_range(0)
        if period == "year":
            return (
                self._midnight(date(self.today.year, 1, 1)),
                self._midnight(date(self.today.year + 1, 1, 1)),
            )
        raise InvalidFilterError(f"Período inválido: {period}")

    def period_days(self, period: str) -> list[date]:
        """Calendar days of the period up to and including today."""
        start, _ = self.period_range(period)
        return self.last_n_days((self.today - start.date()).days + 1)
