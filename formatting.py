"""
Formatting helpers shared by the services and the JSON views.

Everything here is pure: "today" is always passed in by the caller so that
labels are deterministic in tests and independent of the server clock.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings

MONTH_ABBR = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)
WEEKDAY_ABBR = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

MAX_AMOUNT = Decimal("99999999")


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def parse_amount(value: Union[str, int, float, Decimal, None]) -> Decimal:
    """Parse a user supplied amount into a positive two-place decimal."""
    if value is None or isinstance(value, bool):
        raise ValueError("Enter a valid amount")
    if isinstance(value, str):
        clean = value.strip().replace("₹", "").replace(" ", "").replace(",", "")
        if not clean:
            raise ValueError("Enter a valid amount")
    else:
        clean = str(value)
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError("Enter a valid amount") from exc
    if not amount.is_finite():
        raise ValueError("Enter a valid amount")
    if amount <= 0:
        raise ValueError("Amount must be greater than 0")
    if amount > MAX_AMOUNT:
        raise ValueError("Amount is too large")
    if amount != amount.quantize(Decimal("0.01")):
        raise ValueError("Amount can have at most 2 decimal places")
    return amount.quantize(Decimal("0.01"))


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1")))


def _group_indian(whole: int) -> str:
    # Lakh/crore grouping: 12,34,567
    digits = str(whole)
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(cents: int, include_cents: bool = True) -> str:
    sign = "-" if cents < 0 else ""
    whole, fraction = divmod(abs(cents), 100)
    if include_cents:
        return f"{sign}₹{_group_indian(whole)}.{fraction:02d}"
    if fraction >= 50:
        whole += 1
    return f"{sign}₹{_group_indian(whole)}"


def _as_date(value: Union[date, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def format_date_short(value: Union[date, str]) -> str:
    d = _as_date(value)
    return f"{d.day} {MONTH_ABBR[d.month - 1]}"


def format_date_header(value: Union[date, str], today: Optional[date] = None) -> str:
    """Group header for transaction lists: Today, Yesterday, Mon, 19 Jan."""
    d = _as_date(value)
    today = today or local_today()
    delta = (today - d).days
    if delta == 0:
        return "Today"
    if delta == 1:
        return "Yesterday"
    label = f"{WEEKDAY_ABBR[d.weekday()]}, {format_date_short(d)}"
    if d.year != today.year:
        label = f"{label} {d.year}"
    return label


class DueStatus(str, Enum):
    overdue = "overdue"
    today = "today"
    soon = "soon"
    upcoming = "upcoming"


@dataclass(frozen=True)
class DueInfo:
    status: DueStatus
    label: str
    days_until: int


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def format_next_due_date(
    due: Union[date, str], today: Optional[date] = None
) -> DueInfo:
    due_date = _as_date(due)
    today = today or local_today()
    days = (due_date - today).days

    if days < 0:
        return DueInfo(
            DueStatus.overdue, f"Overdue · {_plural(abs(days), 'day')}", days
        )
    if days == 0:
        return DueInfo(DueStatus.today, "Due today", days)
    if days == 1:
        return DueInfo(DueStatus.soon, "Due tomorrow", days)
    if days <= 7:
        return DueInfo(DueStatus.soon, f"Due in {days} days", days)

    label = format_date_short(due_date)
    if due_date.year != today.year:
        label = f"{label} {due_date.year}"
    return DueInfo(DueStatus.upcoming, label, days)
