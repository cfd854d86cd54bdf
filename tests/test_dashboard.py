from datetime import date

import pytest
from sqlalchemy.orm import Session, sessionmaker

from database import Base, build_engine, build_session_factory
from models import (
    Category,
    IncomeSource,
    IncomeSourceType,
    PaymentMethod,
    RecurringExpense,
    RecurringFrequency,
    Transaction,
    TransactionType,
)
from periods import trailing_months
from schemas import CategoryRef, RecurringExpenseOut
from services import (
    CategorisedAmount,
    DashboardService,
    ExpenseRow,
    IncomeRow,
    build_category_breakdown,
    build_trend,
    recurring_monthly_total,
)

TODAY = date(2026, 3, 15)
OWNER = "user-1"


def _ref(cat_id: int, name: str) -> CategoryRef:
    return CategoryRef(
        id=cat_id, name=name, icon=None, color="#112233", type=TransactionType.expense
    )


def _recurring_out(amount_cents: int, frequency, is_active: bool = True):
    return RecurringExpenseOut(
        id=1,
        category_id=None,
        name="x",
        description=None,
        amount_cents=amount_cents,
        frequency=frequency,
        payment_method=PaymentMethod.upi,
        start_date=date(2026, 1, 1),
        end_date=None,
        next_due_date=date(2026, 4, 1),
        is_active=is_active,
    )


def test_category_breakdown_groups_and_ranks():
    a, b = _ref(1, "A"), _ref(2, "B")
    stats = build_category_breakdown(
        [
            CategorisedAmount(10000, a),
            CategorisedAmount(5000, a),
            CategorisedAmount(3000, b),
            CategorisedAmount(2000, None),
        ]
    )
    assert [(s.name, s.amount_cents, s.percentage) for s in stats] == [
        ("A", 15000, 75.0),
        ("B", 3000, 15.0),
        ("Uncategorized", 2000, 10.0),
    ]
    assert stats[-1].color == "#6b7280"
    assert stats[-1].category_id is None


def test_category_breakdown_keeps_top_six():
    rows = [CategorisedAmount(100 * (i + 1), _ref(i, f"C{i}")) for i in range(8)]
    stats = build_category_breakdown(rows)
    assert len(stats) == 6
    assert stats[0].name == "C7"


def test_recurring_monthly_total_ignores_paused():
    total = recurring_monthly_total(
        [
            _recurring_out(100000, RecurringFrequency.monthly),
            _recurring_out(120000, RecurringFrequency.yearly),
            _recurring_out(999999, RecurringFrequency.weekly, is_active=False),
        ]
    )
    assert total == 110000


def test_build_trend_matches_month_prefix_and_received_income():
    months = trailing_months(TODAY)
    points = build_trend(
        months,
        [
            ExpenseRow(date(2026, 3, 1), 500),
            ExpenseRow(date(2026, 2, 28), 700),
        ],
        [
            IncomeRow(3, 2026, 1000, True),
            IncomeRow(3, 2026, 9000, False),
            IncomeRow(3, 2025, 4000, True),
        ],
    )
    assert [p.label for p in points] == ["Oct", "Nov", "Dec", "Jan", "Feb", "Mar"]
    assert [p.expenses_cents for p in points] == [0, 0, 0, 0, 700, 500]
    assert [p.income_cents for p in points] == [0, 0, 0, 0, 0, 1000]


def test_anonymous_summary_is_empty():
    factory = sessionmaker()
    summary = DashboardService(factory, None).summary(TODAY)
    assert summary.monthly_expenses_cents == 0
    assert summary.recurring_monthly_total_cents == 0
    assert summary.active_recurring_count == 0
    assert len(summary.trend) == 6
    assert all(p.expenses_cents == 0 and p.income_cents == 0 for p in summary.trend)
    assert summary.categories == []
    assert summary.upcoming_recurring == []


@pytest.fixture()
def seeded_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'dashboard.db'}")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        food = Category(
            user_id=OWNER, name="Food", color="#f97316", type=TransactionType.expense
        )
        rent = Category(
            user_id=OWNER, name="Rent", color="#8b5cf6", type=TransactionType.expense
        )
        session.add_all([food, rent])
        session.flush()

        def txn(day, cents, category=None, **extra):
            values = dict(
                user_id=OWNER,
                category_id=category.id if category else None,
                type=TransactionType.expense,
                amount_cents=cents,
                description=f"txn {day.isoformat()}",
                date=day,
                payment_method=PaymentMethod.upi,
            )
            values.update(extra)
            return Transaction(**values)

        session.add_all(
            [
                txn(date(2026, 3, 2), 10000, food),
                txn(date(2026, 3, 5), 5000, food),
                txn(date(2026, 3, 10), 2000),
                txn(date(2026, 2, 1), 30000, rent),
                txn(date(2026, 3, 3), 99900, food, is_deleted=True),
                txn(date(2025, 8, 1), 7000, food),
                txn(date(2026, 3, 1), 50000, type=TransactionType.income),
                txn(date(2026, 3, 4), 4400, user_id="someone-else"),
            ]
        )

        def income(month, year, cents, received):
            return IncomeSource(
                user_id=OWNER,
                name=f"Income {month}/{year}",
                source_type=IncomeSourceType.salary,
                amount_cents=cents,
                month=month,
                year=year,
                is_received=received,
            )

        session.add_all(
            [
                income(3, 2026, 500000, True),
                income(3, 2026, 100000, False),
                income(2, 2026, 400000, True),
                income(12, 2025, 300000, True),
            ]
        )

        def recurring(name, cents, frequency, due, active=True):
            return RecurringExpense(
                user_id=OWNER,
                name=name,
                amount_cents=cents,
                frequency=frequency,
                payment_method=PaymentMethod.credit_card,
                start_date=date(2025, 1, due.day),
                next_due_date=due,
                is_active=active,
            )

        session.add_all(
            [
                recurring("Netflix", 50000, RecurringFrequency.monthly, date(2026, 3, 20)),
                recurring(
                    "Insurance", 120000, RecurringFrequency.yearly, date(2026, 3, 16)
                ),
                recurring(
                    "Gym", 99900, RecurringFrequency.monthly, date(2026, 3, 1), False
                ),
            ]
        )
        session.commit()
    return build_session_factory(engine)


def test_summary_aggregates_owner_data(seeded_factory):
    summary = DashboardService(seeded_factory, OWNER, max_workers=3).summary(TODAY)

    assert summary.monthly_expenses_cents == 17000
    assert [(c.name, c.amount_cents, c.percentage) for c in summary.categories] == [
        ("Food", 15000, 88.2),
        ("Uncategorized", 2000, 11.8),
    ]
    assert [p.expenses_cents for p in summary.trend] == [0, 0, 0, 0, 30000, 17000]
    assert [p.income_cents for p in summary.trend] == [0, 0, 300000, 0, 400000, 500000]
    assert summary.monthly_income_expected_cents == 600000
    assert summary.monthly_income_received_cents == 500000

    assert summary.recurring_monthly_total_cents == 60000
    assert summary.active_recurring_count == 2
    assert [(u.name, u.due_label) for u in summary.upcoming_recurring] == [
        ("Insurance", "Due tomorrow"),
        ("Netflix", "Due in 5 days"),
    ]

    assert len(summary.recent_expenses) == 5
    assert summary.recent_expenses[0].date == date(2026, 3, 10)
    assert all(t.type == TransactionType.expense for t in summary.recent_expenses)


def test_failing_slice_degrades_to_empty(seeded_factory, monkeypatch):
    def boom(self, session):
        raise RuntimeError("backend unavailable")

    monkeypatch.setattr(DashboardService, "_recurring", boom)

    summary = DashboardService(seeded_factory, OWNER).summary(TODAY)

    assert summary.recurring_monthly_total_cents == 0
    assert summary.active_recurring_count == 0
    assert summary.upcoming_recurring == []
    assert summary.monthly_expenses_cents == 17000
