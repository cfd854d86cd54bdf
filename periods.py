from dataclasses import dataclass
from datetime import date

from formatting import MONTH_ABBR

TREND_MONTHS = 6


@dataclass(frozen=True)
class MonthRef:
    year: int
    month: int

    @property
    def label(self) -> str:
        return MONTH_ABBR[self.month - 1]

    @property
    def date_prefix(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def start(self) -> date:
        return month_start(self.year, self.month)

    @property
    def end(self) -> date:
        return month_end(self.year, self.month)


def month_start(year: int, month: int) -> date:
    return date(year, month, 1)


def month_end(year: int, month: int) -> date:
    # Day before the first of the following month.
    if month == 12:
        return date(year + 1, 1, 1) - date.resolution
    return date(year, month + 1, 1) - date.resolution


def shift_month(year: int, month: int, delta: int) -> MonthRef:
    total = year * 12 + (month - 1) + delta
    return MonthRef(total // 12, total % 12 + 1)


def trailing_months(today: date, count: int = TREND_MONTHS) -> list[MonthRef]:
    """The ``count`` calendar months ending with today's month, oldest first."""
    return [
        shift_month(today.year, today.month, -offset)
        for offset in range(count - 1, -1, -1)
    ]
