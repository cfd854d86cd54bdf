from datetime import date

from periods import month_end, month_start, shift_month, trailing_months


def test_month_end_handles_february():
    assert month_end(2024, 2) == date(2024, 2, 29)
    assert month_end(2023, 2) == date(2023, 2, 28)


def test_month_end_december_and_thirty_day_months():
    assert month_end(2025, 12) == date(2025, 12, 31)
    assert month_end(2025, 4) == date(2025, 4, 30)
    assert month_start(2025, 4) == date(2025, 4, 1)


def test_trailing_months_cross_year_boundary():
    months = trailing_months(date(2026, 2, 10))
    assert [(m.year, m.month) for m in months] == [
        (2025, 9),
        (2025, 10),
        (2025, 11),
        (2025, 12),
        (2026, 1),
        (2026, 2),
    ]
    assert [m.label for m in months] == ["Sep", "Oct", "Nov", "Dec", "Jan", "Feb"]
    assert months[0].date_prefix == "2025-09"
    assert months[-1].end == date(2026, 2, 28)


def test_shift_month_forward():
    ref = shift_month(2025, 11, 3)
    assert (ref.year, ref.month) == (2026, 2)
