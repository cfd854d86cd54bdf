from datetime import date
from fractions import Fraction

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import (
    PaymentMethod,
    RecurringExpense,
    RecurringFrequency,
    Transaction,
    TransactionType,
)
from recurrence import (
    RecurringEngine,
    calculate_next_due_date,
    monthly_equivalent_cents,
    monthly_multiplier,
)
from schemas import RecurringExpenseIn
from services import RecurringExpenseService


def _expense(**overrides) -> RecurringExpense:
    values = dict(
        user_id="user-1",
        name="Rent",
        amount_cents=1_000_000,
        frequency=RecurringFrequency.monthly,
        payment_method=PaymentMethod.bank_transfer,
        start_date=date(2024, 1, 1),
        next_due_date=date(2024, 1, 1),
        is_active=True,
    )
    values.update(overrides)
    return RecurringExpense(**values)


def _engine():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine


def test_yearly_occurrences_from_monthly_multiplier():
    expected = {
        RecurringFrequency.daily: 360,
        RecurringFrequency.weekly: 52,
        RecurringFrequency.biweekly: 26,
        RecurringFrequency.monthly: 12,
        RecurringFrequency.quarterly: 4,
        RecurringFrequency.yearly: 1,
    }
    for frequency, per_year in expected.items():
        assert monthly_multiplier(frequency) * 12 == per_year


def test_monthly_multiplier_accepts_raw_values():
    assert monthly_multiplier("weekly") == Fraction(52, 12)


def test_monthly_equivalent_of_yearly_amount():
    assert monthly_equivalent_cents(120_000, RecurringFrequency.yearly) == 10_000


def test_next_due_date_day_based_frequencies():
    start = date(2024, 2, 27)
    assert calculate_next_due_date(RecurringFrequency.daily, start) == date(2024, 2, 28)
    assert calculate_next_due_date(RecurringFrequency.weekly, start) == date(2024, 3, 5)
    assert calculate_next_due_date(RecurringFrequency.biweekly, start) == date(
        2024, 3, 12
    )


def test_next_due_date_snaps_to_month_end_and_recovers_anchor():
    feb = calculate_next_due_date(RecurringFrequency.monthly, date(2024, 1, 31), 31)
    assert feb == date(2024, 2, 29)
    mar = calculate_next_due_date(RecurringFrequency.monthly, feb, 31)
    assert mar == date(2024, 3, 31)


def test_next_due_date_quarterly_and_yearly():
    assert calculate_next_due_date(
        RecurringFrequency.quarterly, date(2024, 11, 30), 30
    ) == date(2025, 2, 28)
    assert calculate_next_due_date(
        RecurringFrequency.yearly, date(2024, 2, 29), 29
    ) == date(2025, 2, 28)


def test_catch_up_posts_each_occurrence_once():
    engine = _engine()
    with Session(engine) as session:
        session.add(_expense())
        session.commit()

    with Session(engine) as session:
        expense = session.query(RecurringExpense).first()
        posted = RecurringEngine(session).catch_up(expense, today=date(2024, 3, 1))
        session.commit()
        assert posted == 3

    with Session(engine) as session:
        expense = session.query(RecurringExpense).first()
        assert expense.next_due_date == date(2024, 4, 1)
        assert RecurringEngine(session).catch_up(expense, today=date(2024, 3, 1)) == 0
        session.commit()

        txns = (
            session.query(Transaction)
            .filter(Transaction.recurring_expense_id == expense.id)
            .order_by(Transaction.date)
            .all()
        )
        assert [t.date for t in txns] == [
            date(2024, 1, 1),
            date(2024, 2, 1),
            date(2024, 3, 1),
        ]
        assert all(t.type == TransactionType.expense for t in txns)
        assert txns[0].description == "Rent"
        assert txns[0].payment_method == PaymentMethod.bank_transfer


def test_catch_up_deactivates_past_end_date():
    engine = _engine()
    with Session(engine) as session:
        expense = _expense(end_date=date(2024, 2, 15))
        session.add(expense)
        session.flush()

        RecurringEngine(session).catch_up(expense, today=date(2024, 3, 10))
        session.commit()

        assert expense.is_active is False
        assert expense.next_due_date == date(2024, 3, 1)
        assert session.query(Transaction).count() == 2


def test_advance_due_skips_paused_and_future_records():
    engine = _engine()
    with Session(engine) as session:
        session.add_all(
            [
                _expense(user_id="a", name="Due"),
                _expense(user_id="b", name="Paused", is_active=False),
                _expense(
                    user_id="c",
                    name="Future",
                    start_date=date(2024, 6, 1),
                    next_due_date=date(2024, 6, 1),
                ),
            ]
        )
        session.commit()

        count = RecurringEngine(session).advance_due(today=date(2024, 1, 15))
        session.commit()

        assert count == 1
        names = [t.description for t in session.query(Transaction).all()]
        assert names == ["Due"]
        paused = (
            session.query(RecurringExpense)
            .filter(RecurringExpense.name == "Paused")
            .one()
        )
        assert paused.next_due_date == date(2024, 1, 1)


def test_resumed_record_does_not_post_occurrences_from_the_pause():
    engine = _engine()
    with Session(engine) as session:
        session.add(
            _expense(
                name="Coffee",
                amount_cents=15_000,
                frequency=RecurringFrequency.daily,
                start_date=date(2026, 1, 1),
                next_due_date=date(2026, 1, 1),
                is_active=False,
            )
        )
        session.commit()
        expense_id = session.query(RecurringExpense).one().id

        service = RecurringExpenseService(session, "user-1")
        resumed = service.toggle_active(expense_id, True, today=date(2026, 6, 29))
        assert resumed.resumed_on == date(2026, 6, 29)
        assert resumed.next_due_date == date(2026, 1, 1)

        RecurringEngine(session).advance_due(today=date(2026, 7, 1))
        session.commit()

        dates = [
            t.date for t in session.query(Transaction).order_by(Transaction.date).all()
        ]
        assert dates == [date(2026, 6, 29), date(2026, 6, 30), date(2026, 7, 1)]
        assert session.get(RecurringExpense, expense_id).next_due_date == date(
            2026, 7, 2
        )


def test_pausing_keeps_resume_date_and_update_can_resume():
    engine = _engine()
    with Session(engine) as session:
        session.add(_expense(is_active=False))
        session.commit()
        expense = session.query(RecurringExpense).one()

        service = RecurringExpenseService(session, "user-1")
        service.toggle_active(expense.id, False, today=date(2024, 2, 10))
        assert expense.resumed_on is None

        service.update(
            expense.id,
            RecurringExpenseIn(
                name="Rent",
                amount="10000",
                frequency=RecurringFrequency.monthly,
                payment_method=PaymentMethod.bank_transfer,
                start_date=date(2024, 1, 1),
                is_active=True,
            ),
            today=date(2024, 2, 10),
        )
        assert expense.resumed_on == date(2024, 2, 10)
        assert expense.next_due_date == date(2024, 1, 1)

        RecurringEngine(session).catch_up(expense, today=date(2024, 3, 1))
        session.commit()
        assert [t.date for t in session.query(Transaction).all()] == [date(2024, 3, 1)]
        assert expense.next_due_date == date(2024, 4, 1)
