import logging
from datetime import date, timedelta
from fractions import Fraction
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from formatting import local_today
from models import RecurringExpense, RecurringFrequency, Transaction, TransactionType

logger = logging.getLogger(__name__)

# Average number of occurrences per month for each frequency.
MONTHLY_MULTIPLIERS: dict[RecurringFrequency, Fraction] = {
    RecurringFrequency.daily: Fraction(30),
    RecurringFrequency.weekly: Fraction(52, 12),
    RecurringFrequency.biweekly: Fraction(26, 12),
    RecurringFrequency.monthly: Fraction(1),
    RecurringFrequency.quarterly: Fraction(1, 3),
    RecurringFrequency.yearly: Fraction(1, 12),
}

_MONTH_STEPS = {
    RecurringFrequency.monthly: 1,
    RecurringFrequency.quarterly: 3,
    RecurringFrequency.yearly: 12,
}

_DAY_STEPS = {
    RecurringFrequency.daily: 1,
    RecurringFrequency.weekly: 7,
    RecurringFrequency.biweekly: 14,
}


def monthly_multiplier(frequency: RecurringFrequency) -> Fraction:
    return MONTHLY_MULTIPLIERS[RecurringFrequency(frequency)]


def monthly_equivalent_cents(
    amount_cents: int, frequency: RecurringFrequency
) -> Fraction:
    return amount_cents * monthly_multiplier(frequency)


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def _add_months(base: date, months: int, *, desired_day: int) -> date:
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    return date(year, month, min(desired_day, days_in_month(year, month)))


def calculate_next_due_date(
    frequency: RecurringFrequency,
    from_date: date,
    anchor_day: Optional[int] = None,
) -> date:
    """Date of the occurrence following ``from_date``.

    Month based frequencies keep the anchor day (normally the start date's
    day) and snap to the last day of shorter months, so a schedule starting
    on the 31st runs 31 Jan, 29 Feb, 31 Mar.
    """
    frequency = RecurringFrequency(frequency)
    if frequency in _DAY_STEPS:
        return from_date + timedelta(days=_DAY_STEPS[frequency])
    return _add_months(
        from_date,
        _MONTH_STEPS[frequency],
        desired_day=anchor_day or from_date.day,
    )


class RecurringEngine:
    """Posts due occurrences and moves ``next_due_date`` forward."""

    max_iterations = 400

    def __init__(self, session: Session) -> None:
        self.session = session

    def catch_up(self, expense: RecurringExpense, today: Optional[date] = None) -> int:
        """Post every occurrence due on or before ``today``.

        Occurrences that fell before ``resumed_on`` happened while the record
        was paused: the due date moves past them but nothing is posted.
        """
        today = today or local_today()
        posted_count = 0
        skipped_count = 0
        iterations = 0
        while (
            expense.is_active
            and expense.next_due_date <= today
            and iterations < self.max_iterations
        ):
            if expense.end_date and expense.next_due_date > expense.end_date:
                expense.is_active = False
                break
            occurrence_date = expense.next_due_date
            if expense.resumed_on and occurrence_date < expense.resumed_on:
                skipped_count += 1
            elif self._post_occurrence(expense, occurrence_date):
                posted_count += 1
            next_date = calculate_next_due_date(
                expense.frequency, occurrence_date, expense.start_date.day
            )
            expense.next_due_date = next_date
            if expense.end_date and next_date > expense.end_date:
                expense.is_active = False
                logger.info(
                    "recurring_finished: id=%s end_date=%s",
                    expense.id,
                    expense.end_date.isoformat(),
                )
            iterations += 1
        if skipped_count:
            logger.info(
                "recurring_paused_skipped: id=%s skipped=%d resumed_on=%s",
                expense.id,
                skipped_count,
                expense.resumed_on.isoformat(),
            )
        self.session.flush()
        return posted_count

    def advance_due(self, today: Optional[date] = None) -> int:
        today = today or local_today()
        stmt = (
            select(RecurringExpense)
            .where(
                RecurringExpense.is_active.is_(True),
                RecurringExpense.next_due_date <= today,
            )
            .order_by(RecurringExpense.next_due_date, RecurringExpense.id)
        )
        expenses = self.session.scalars(stmt).all()
        count = 0
        for expense in expenses:
            prev = expense.next_due_date
            self.catch_up(expense, today)
            if expense.next_due_date != prev or not expense.is_active:
                count += 1
        return count

    def _post_occurrence(self, expense: RecurringExpense, occurrence_date: date) -> bool:
        exists_stmt = (
            select(Transaction.id)
            .where(
                Transaction.user_id == expense.user_id,
                Transaction.recurring_expense_id == expense.id,
                Transaction.date == occurrence_date,
            )
            .limit(1)
        )
        if self.session.execute(exists_stmt).scalar_one_or_none():
            return False

        txn = Transaction(
            user_id=expense.user_id,
            category_id=expense.category_id,
            recurring_expense_id=expense.id,
            type=TransactionType.expense,
            amount_cents=expense.amount_cents,
            description=expense.name,
            date=occurrence_date,
            payment_method=expense.payment_method,
            note=expense.description,
        )
        self.session.add(txn)
        self.session.flush()
        return True
