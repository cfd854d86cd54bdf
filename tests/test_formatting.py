from datetime import date, timedelta
from decimal import Decimal

import pytest

from formatting import (
    DueStatus,
    format_currency,
    format_date_header,
    format_next_due_date,
    parse_amount,
    to_cents,
)

TODAY = date(2026, 3, 10)


def test_due_today_then_tomorrow():
    today = format_next_due_date(TODAY, TODAY)
    assert today.status == DueStatus.today
    assert today.label == "Due today"

    tomorrow = format_next_due_date(TODAY + timedelta(days=1), TODAY)
    assert tomorrow.status == DueStatus.soon
    assert tomorrow.label == "Due tomorrow"


def test_seventh_day_is_soon_eighth_is_upcoming():
    seventh = format_next_due_date(TODAY + timedelta(days=7), TODAY)
    assert seventh.status == DueStatus.soon
    assert seventh.label == "Due in 7 days"

    eighth = format_next_due_date(TODAY + timedelta(days=8), TODAY)
    assert eighth.status == DueStatus.upcoming
    assert eighth.label == "18 Mar"


def test_overdue_label_counts_days():
    info = format_next_due_date("2026-03-07", TODAY)
    assert info.status == DueStatus.overdue
    assert info.label == "Overdue · 3 days"
    assert info.days_until == -3

    assert format_next_due_date("2026-03-09", TODAY).label == "Overdue · 1 day"


def test_upcoming_shows_year_only_when_different():
    assert format_next_due_date(date(2027, 1, 5), TODAY).label == "5 Jan 2027"
    assert format_next_due_date(date(2026, 12, 25), TODAY).label == "25 Dec"


def test_date_header_labels():
    assert format_date_header(TODAY, TODAY) == "Today"
    assert format_date_header("2026-03-09", TODAY) == "Yesterday"
    assert format_date_header(date(2026, 1, 19), TODAY) == "Mon, 19 Jan"
    assert format_date_header(date(2025, 1, 15), TODAY) == "Wed, 15 Jan 2025"


@pytest.mark.parametrize(
    "raw, message",
    [
        ("", "Enter a valid amount"),
        ("abc", "Enter a valid amount"),
        ("0", "Amount must be greater than 0"),
        ("-5", "Amount must be greater than 0"),
        ("100000000", "Amount is too large"),
        ("1.234", "Amount can have at most 2 decimal places"),
    ],
)
def test_parse_amount_rejects_bad_input(raw, message):
    with pytest.raises(ValueError) as exc:
        parse_amount(raw)
    assert str(exc.value) == message


def test_parse_amount_accepts_grouped_numbers():
    amount = parse_amount("₹1,250.5")
    assert amount == Decimal("1250.50")
    assert to_cents(amount) == 125050


def test_format_currency():
    assert format_currency(125050) == "₹1,250.50"
    assert format_currency(125050, include_cents=False) == "₹1,251"
    assert format_currency(12_345_678_900) == "₹12,34,56,789.00"
    assert format_currency(-4500) == "-₹45.00"
    assert format_currency(0) == "₹0.00"
