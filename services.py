from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from fractions import Fraction
from typing import Callable, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, sessionmaker

from formatting import (
    format_currency,
    format_date_header,
    format_next_due_date,
    local_today,
)
from models import (
    Category,
    IncomeSource,
    RecurringExpense,
    Transaction,
    TransactionType,
)
from periods import MonthRef, month_end, month_start, trailing_months
from recurrence import monthly_equivalent_cents
from schemas import (
    UNCATEGORIZED_COLOR,
    UNCATEGORIZED_NAME,
    CategoryIn,
    CategoryRef,
    CategoryStat,
    DashboardSummary,
    IncomeSourceIn,
    RecurringExpenseIn,
    RecurringExpenseOut,
    TransactionDayGroup,
    TransactionFiltersIn,
    TransactionIn,
    TransactionOut,
    TrendPoint,
    UpcomingRecurring,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
TOP_CATEGORY_LIMIT = 6
RECENT_EXPENSE_LIMIT = 5
UPCOMING_RECURRING_LIMIT = 5


class ErrorKind(str, Enum):
    unauthorized = "unauthorized"
    validation = "validation"
    conflict = "conflict"
    referential = "referential"
    not_found = "not_found"
    unknown = "unknown"


class ServiceError(ValueError):
    kind = ErrorKind.unknown


class UnauthorizedError(ServiceError):
    kind = ErrorKind.unauthorized

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class InvalidInputError(ServiceError):
    kind = ErrorKind.validation


class ConflictError(ServiceError):
    kind = ErrorKind.conflict


class ReferentialError(ServiceError):
    kind = ErrorKind.referential


class NotFoundError(ServiceError):
    kind = ErrorKind.not_found


DEFAULT_CATEGORIES: tuple[tuple[str, str, str, TransactionType], ...] = (
    ("Food & Dining", "🍔", "#f97316", TransactionType.expense),
    ("Groceries", "🛒", "#22c55e", TransactionType.expense),
    ("Transport", "🚗", "#3b82f6", TransactionType.expense),
    ("Rent", "🏠", "#8b5cf6", TransactionType.expense),
    ("Utilities", "💡", "#eab308", TransactionType.expense),
    ("Shopping", "🛍️", "#ec4899", TransactionType.expense),
    ("Health", "💊", "#ef4444", TransactionType.expense),
    ("Entertainment", "🎬", "#14b8a6", TransactionType.expense),
    ("Salary", "💼", "#3b82f6", TransactionType.income),
    ("Freelance", "💻", "#8b5cf6", TransactionType.income),
    ("Other Income", "💰", "#10b981", TransactionType.income),
)


def _require_owner(user_id: Optional[str]) -> str:
    if not user_id:
        raise UnauthorizedError()
    return user_id


def _pluralize(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


class CategoryService:
    def __init__(self, session: Session, user_id: Optional[str]) -> None:
        self.session = session
        self.user_id = _require_owner(user_id)

    def list_all(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.is_default.desc(), Category.name.asc())
        )
        return self.session.scalars(stmt).all()

    def list_grouped(self) -> dict[str, list[Category]]:
        categories = self.list_all()
        return {
            TransactionType.expense.value: [
                c for c in categories if c.type == TransactionType.expense
            ],
            TransactionType.income.value: [
                c for c in categories if c.type == TransactionType.income
            ],
        }

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        return category

    def require_for(
        self, category_id: Optional[int], txn_type: TransactionType
    ) -> Optional[Category]:
        """Resolve an optional category reference for a record of ``txn_type``."""
        if category_id is None:
            return None
        category = self.get(category_id)
        if category.type != txn_type:
            raise InvalidInputError("Category type mismatch")
        return category

    def _duplicate_message(self, data: CategoryIn) -> str:
        return f'A {data.type.value} category named "{data.name}" already exists.'

    def _ensure_unique(self, data: CategoryIn, exclude_id: Optional[int] = None) -> None:
        stmt = select(Category.id).where(
            Category.user_id == self.user_id,
            Category.type == data.type,
            Category.name == data.name,
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        if self.session.scalar(stmt.limit(1)):
            raise ConflictError(self._duplicate_message(data))

    def _commit_unique(self, data: CategoryIn) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(self._duplicate_message(data)) from exc

    def create(self, data: CategoryIn) -> Category:
        self._ensure_unique(data)
        category = Category(
            user_id=self.user_id,
            name=data.name,
            icon=data.icon,
            color=data.color,
            type=data.type,
            is_default=False,
        )
        self.session.add(category)
        self._commit_unique(data)
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: CategoryIn) -> Category:
        category = self.get(category_id)
        self._ensure_unique(data, exclude_id=category.id)
        category.name = data.name
        category.icon = data.icon
        category.color = data.color
        category.type = data.type
        self._commit_unique(data)
        self.session.refresh(category)
        return category

    def transaction_count(self, category_id: int) -> int:
        stmt = select(func.count(Transaction.id)).where(
            Transaction.user_id == self.user_id,
            Transaction.category_id == category_id,
            Transaction.is_deleted.is_(False),
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        count = self.transaction_count(category.id)
        if count > 0:
            raise ReferentialError(
                f"This category has {count} {_pluralize(count, 'transaction')}. "
                "Reassign or delete them first."
            )
        # Soft-deleted transactions and recurring expenses fall back to
        # uncategorised.
        self.session.execute(
            update(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.category_id == category.id,
            )
            .values(category_id=None)
        )
        self.session.execute(
            update(RecurringExpense)
            .where(
                RecurringExpense.user_id == self.user_id,
                RecurringExpense.category_id == category.id,
            )
            .values(category_id=None)
        )
        self.session.delete(category)
        self.session.commit()

    def seed_defaults(self) -> list[Category]:
        existing = self.session.scalar(
            select(func.count(Category.id)).where(Category.user_id == self.user_id)
        )
        if existing:
            return []
        created = [
            Category(
                user_id=self.user_id,
                name=name,
                icon=icon,
                color=color,
                type=txn_type,
                is_default=True,
            )
            for name, icon, color, txn_type in DEFAULT_CATEGORIES
        ]
        self.session.add_all(created)
        self.session.commit()
        logger.info(
            "default_categories_seeded: user=%s count=%d", self.user_id, len(created)
        )
        return created


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[str]) -> None:
        self.session = session
        self.user_id = _require_owner(user_id)

    def _base_query(self):
        return (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id,
                Transaction.is_deleted.is_(False),
            )
        )

    def list(
        self, filters: Optional[TransactionFiltersIn] = None, page: int = 1
    ) -> tuple[list[Transaction], int]:
        filters = filters or TransactionFiltersIn()
        page = max(1, page)
        conditions = [
            Transaction.user_id == self.user_id,
            Transaction.is_deleted.is_(False),
        ]
        if filters.search:
            like = f"%{filters.search.strip().lower()}%"
            conditions.append(func.lower(Transaction.description).like(like))
        if filters.type:
            conditions.append(Transaction.type == filters.type)
        if filters.category_id:
            conditions.append(Transaction.category_id == filters.category_id)
        if filters.payment_method:
            conditions.append(Transaction.payment_method == filters.payment_method)
        if filters.date_from:
            conditions.append(Transaction.date >= filters.date_from)
        if filters.date_to:
            conditions.append(Transaction.date <= filters.date_to)

        total = int(
            self.session.execute(
                select(func.count(Transaction.id)).where(*conditions)
            ).scalar_one()
            or 0
        )
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(*conditions)
            .order_by(
                Transaction.date.desc(),
                Transaction.created_at.desc(),
                Transaction.id.desc(),
            )
            .offset((page - 1) * PAGE_SIZE)
            .limit(PAGE_SIZE)
        )
        return self.session.scalars(stmt).all(), total

    def get(self, transaction_id: int) -> Transaction:
        stmt = self._base_query().where(Transaction.id == transaction_id)
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def recent_expenses(self, limit: int = RECENT_EXPENSE_LIMIT) -> list[Transaction]:
        stmt = (
            self._base_query()
            .where(Transaction.type == TransactionType.expense)
            .order_by(
                Transaction.date.desc(),
                Transaction.created_at.desc(),
                Transaction.id.desc(),
            )
            .limit(limit)
        )
        return self.session.scalars(stmt).all()

    def create(self, data: TransactionIn) -> Transaction:
        CategoryService(self.session, self.user_id).require_for(
            data.category_id, data.type
        )
        txn = Transaction(
            user_id=self.user_id,
            category_id=data.category_id,
            type=data.type,
            amount_cents=data.amount_cents,
            description=data.description,
            date=data.date,
            payment_method=data.payment_method,
            note=data.note,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        CategoryService(self.session, self.user_id).require_for(
            data.category_id, data.type
        )
        txn.category_id = data.category_id
        txn.type = data.type
        txn.amount_cents = data.amount_cents
        txn.description = data.description
        txn.date = data.date
        txn.payment_method = data.payment_method
        txn.note = data.note
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def soft_delete(self, transaction_id: int) -> None:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise NotFoundError("Transaction not found")
        if txn.is_deleted:
            return
        txn.is_deleted = True
        self.session.commit()


def group_by_date(
    transactions: Sequence[TransactionOut], today: Optional[date] = None
) -> list[TransactionDayGroup]:
    """Split an already ordered listing into per-day groups with a signed net."""
    today = today or local_today()
    groups: list[TransactionDayGroup] = []
    for txn in transactions:
        if not groups or groups[-1].date != txn.date:
            groups.append(
                TransactionDayGroup(
                    date=txn.date,
                    label=format_date_header(txn.date, today),
                    net_cents=0,
                    net_display="",
                    items=[],
                )
            )
        group = groups[-1]
        group.items.append(txn)
        if txn.type == TransactionType.income:
            group.net_cents += txn.amount_cents
        else:
            group.net_cents -= txn.amount_cents
    for group in groups:
        sign = "+" if group.net_cents >= 0 else ""
        group.net_display = f"{sign}{format_currency(group.net_cents)}"
    return groups


class IncomeSourceService:
    def __init__(self, session: Session, user_id: Optional[str]) -> None:
        self.session = session
        self.user_id = _require_owner(user_id)

    def list(self, month: int, year: int) -> list[IncomeSource]:
        stmt = (
            select(IncomeSource)
            .where(
                IncomeSource.user_id == self.user_id,
                IncomeSource.month == month,
                IncomeSource.year == year,
            )
            .order_by(IncomeSource.created_at.desc(), IncomeSource.id.desc())
        )
        return self.session.scalars(stmt).all()

    def get(self, source_id: int) -> IncomeSource:
        source = self.session.get(IncomeSource, source_id)
        if not source or source.user_id != self.user_id:
            raise NotFoundError("Income source not found")
        return source

    @staticmethod
    def _set_received(source: IncomeSource, is_received: bool) -> None:
        if is_received and source.received_at is None:
            source.received_at = datetime.utcnow()
        elif not is_received:
            source.received_at = None
        source.is_received = is_received

    def create(self, data: IncomeSourceIn) -> IncomeSource:
        source = IncomeSource(
            user_id=self.user_id,
            name=data.name,
            source_type=data.source_type,
            amount_cents=data.amount_cents,
            month=data.month,
            year=data.year,
            note=data.note,
        )
        self._set_received(source, data.is_received)
        self.session.add(source)
        self.session.commit()
        self.session.refresh(source)
        return source

    def update(self, source_id: int, data: IncomeSourceIn) -> IncomeSource:
        source = self.get(source_id)
        source.name = data.name
        source.source_type = data.source_type
        source.amount_cents = data.amount_cents
        source.month = data.month
        source.year = data.year
        source.note = data.note
        self._set_received(source, data.is_received)
        self.session.commit()
        self.session.refresh(source)
        return source

    def toggle_received(self, source_id: int, is_received: bool) -> IncomeSource:
        source = self.get(source_id)
        self._set_received(source, is_received)
        self.session.commit()
        self.session.refresh(source)
        return source

    def delete(self, source_id: int) -> None:
        source = self.get(source_id)
        self.session.delete(source)
        self.session.commit()


class RecurringExpenseService:
    def __init__(self, session: Session, user_id: Optional[str]) -> None:
        self.session = session
        self.user_id = _require_owner(user_id)

    def list(self) -> list[RecurringExpense]:
        stmt = (
            select(RecurringExpense)
            .options(joinedload(RecurringExpense.category))
            .where(RecurringExpense.user_id == self.user_id)
            .order_by(
                RecurringExpense.is_active.desc(),
                RecurringExpense.next_due_date.asc(),
                RecurringExpense.id.asc(),
            )
        )
        return self.session.scalars(stmt).all()

    def get(self, expense_id: int) -> RecurringExpense:
        expense = self.session.get(RecurringExpense, expense_id)
        if not expense or expense.user_id != self.user_id:
            raise NotFoundError("Recurring expense not found")
        return expense

    def create(self, data: RecurringExpenseIn) -> RecurringExpense:
        CategoryService(self.session, self.user_id).require_for(
            data.category_id, TransactionType.expense
        )
        expense = RecurringExpense(
            user_id=self.user_id,
            category_id=data.category_id,
            name=data.name,
            description=data.description,
            amount_cents=data.amount_cents,
            frequency=data.frequency,
            payment_method=data.payment_method,
            start_date=data.start_date,
            end_date=data.end_date,
            next_due_date=data.start_date,
            is_active=data.is_active,
        )
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def update(
        self,
        expense_id: int,
        data: RecurringExpenseIn,
        today: Optional[date] = None,
    ) -> RecurringExpense:
        expense = self.get(expense_id)
        if data.category_id != expense.category_id:
            CategoryService(self.session, self.user_id).require_for(
                data.category_id, TransactionType.expense
            )
        expense.category_id = data.category_id
        expense.name = data.name
        expense.description = data.description
        expense.amount_cents = data.amount_cents
        expense.frequency = data.frequency
        expense.payment_method = data.payment_method
        expense.start_date = data.start_date
        expense.end_date = data.end_date
        self._set_active(expense, data.is_active, today)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    @staticmethod
    def _set_active(
        expense: RecurringExpense, is_active: bool, today: Optional[date]
    ) -> None:
        if is_active and not expense.is_active:
            expense.resumed_on = today or local_today()
        expense.is_active = is_active

    def toggle_active(
        self, expense_id: int, is_active: bool, today: Optional[date] = None
    ) -> RecurringExpense:
        expense = self.get(expense_id)
        self._set_active(expense, is_active, today)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def delete(self, expense_id: int) -> None:
        expense = self.get(expense_id)
        # Posted occurrences stay in the ledger.
        self.session.execute(
            update(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.recurring_expense_id == expense.id,
            )
            .values(recurring_expense_id=None)
        )
        self.session.delete(expense)
        self.session.commit()


# Dashboard reduction. Kept as plain functions over already fetched rows so
# each step can be exercised without a database.


@dataclass(frozen=True)
class ExpenseRow:
    date: date
    amount_cents: int


@dataclass(frozen=True)
class IncomeRow:
    month: int
    year: int
    amount_cents: int
    is_received: bool


@dataclass(frozen=True)
class CategorisedAmount:
    amount_cents: int
    category: Optional[CategoryRef]


def build_trend(
    months: Sequence[MonthRef],
    expenses: Sequence[ExpenseRow],
    incomes: Sequence[IncomeRow],
) -> list[TrendPoint]:
    points: list[TrendPoint] = []
    for ref in months:
        prefix = ref.date_prefix
        points.append(
            TrendPoint(
                month=ref.month,
                year=ref.year,
                label=ref.label,
                expenses_cents=sum(
                    row.amount_cents
                    for row in expenses
                    if row.date.isoformat().startswith(prefix)
                ),
                income_cents=sum(
                    row.amount_cents
                    for row in incomes
                    if row.month == ref.month
                    and row.year == ref.year
                    and row.is_received
                ),
            )
        )
    return points


def build_category_breakdown(
    rows: Sequence[CategorisedAmount], limit: int = TOP_CATEGORY_LIMIT
) -> list[CategoryStat]:
    buckets: dict[Optional[int], CategoryStat] = {}
    for row in rows:
        cat = row.category
        key = cat.id if cat else None
        stat = buckets.get(key)
        if stat is None:
            buckets[key] = CategoryStat(
                category_id=key,
                name=cat.name if cat else UNCATEGORIZED_NAME,
                icon=cat.icon if cat else None,
                color=cat.color if cat else UNCATEGORIZED_COLOR,
                amount_cents=row.amount_cents,
            )
        else:
            stat.amount_cents += row.amount_cents

    total = sum(row.amount_cents for row in rows)
    stats = sorted(buckets.values(), key=lambda s: s.amount_cents, reverse=True)
    for stat in stats:
        stat.percentage = round(stat.amount_cents / total * 100, 1) if total else 0.0
    return stats[:limit]


def recurring_monthly_total(expenses: Sequence[RecurringExpenseOut]) -> Fraction:
    return sum(
        (
            monthly_equivalent_cents(e.amount_cents, e.frequency)
            for e in expenses
            if e.is_active
        ),
        Fraction(0),
    )


def build_upcoming(
    expenses: Sequence[RecurringExpenseOut],
    today: date,
    limit: int = UPCOMING_RECURRING_LIMIT,
) -> list[UpcomingRecurring]:
    upcoming: list[UpcomingRecurring] = []
    for expense in [e for e in expenses if e.is_active][:limit]:
        due = format_next_due_date(expense.next_due_date, today)
        upcoming.append(
            UpcomingRecurring(
                **expense.model_dump(),
                due_status=due.status,
                due_label=due.label,
                monthly_equivalent_cents=round(
                    monthly_equivalent_cents(expense.amount_cents, expense.frequency)
                ),
            )
        )
    return upcoming


class DashboardService:
    """Builds the dashboard summary from six independent reads.

    Each read runs in its own session on a worker thread. A read that fails
    is logged and contributes its empty value instead of failing the page.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        user_id: Optional[str],
        max_workers: int = 6,
    ) -> None:
        self.session_factory = session_factory
        self.user_id = user_id
        self.max_workers = max(1, max_workers)

    def summary(self, today: Optional[date] = None) -> DashboardSummary:
        today = today or local_today()
        if not self.user_id:
            return DashboardSummary.empty(today)

        months = trailing_months(today)
        earliest = months[0].start
        years = sorted({m.year for m in months})
        start = month_start(today.year, today.month)
        end = month_end(today.year, today.month)

        slices: dict[str, tuple[Callable[..., list], tuple]] = {
            "trend_expenses": (self._trend_expenses, (earliest,)),
            "trend_income": (self._trend_income, (years,)),
            "month_expenses": (self._month_expenses, (start, end)),
            "recent_expenses": (self._recent_expenses, ()),
            "recurring": (self._recurring, ()),
            "month_income": (self._month_income, (today.month, today.year)),
        }
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                name: pool.submit(self._run_slice, name, fn, args)
                for name, (fn, args) in slices.items()
            }
            results = {name: future.result() for name, future in futures.items()}

        month_rows: list[CategorisedAmount] = results["month_expenses"]
        month_income: list[IncomeRow] = results["month_income"]
        recurring: list[RecurringExpenseOut] = results["recurring"]
        active = [e for e in recurring if e.is_active]

        return DashboardSummary(
            monthly_expenses_cents=sum(r.amount_cents for r in month_rows),
            monthly_income_expected_cents=sum(r.amount_cents for r in month_income),
            monthly_income_received_cents=sum(
                r.amount_cents for r in month_income if r.is_received
            ),
            recurring_monthly_total_cents=round(recurring_monthly_total(active)),
            active_recurring_count=len(active),
            trend=build_trend(
                months, results["trend_expenses"], results["trend_income"]
            ),
            categories=build_category_breakdown(month_rows),
            recent_expenses=results["recent_expenses"],
            upcoming_recurring=build_upcoming(recurring, today),
        )

    def _run_slice(self, name: str, fn: Callable[..., list], args: tuple) -> list:
        try:
            with self.session_factory() as session:
                return fn(session, *args)
        except Exception:
            logger.warning(
                "dashboard_slice_failed: user=%s slice=%s",
                self.user_id,
                name,
                exc_info=True,
            )
            return []

    def _trend_expenses(self, session: Session, earliest: date) -> list[ExpenseRow]:
        rows = session.execute(
            select(Transaction.date, Transaction.amount_cents).where(
                Transaction.user_id == self.user_id,
                Transaction.type == TransactionType.expense,
                Transaction.is_deleted.is_(False),
                Transaction.date >= earliest,
            )
        ).all()
        return [ExpenseRow(date=r.date, amount_cents=r.amount_cents) for r in rows]

    def _trend_income(self, session: Session, years: list[int]) -> list[IncomeRow]:
        rows = session.execute(
            select(
                IncomeSource.month,
                IncomeSource.year,
                IncomeSource.amount_cents,
                IncomeSource.is_received,
            ).where(
                IncomeSource.user_id == self.user_id,
                IncomeSource.year.in_(years),
            )
        ).all()
        return [
            IncomeRow(
                month=r.month,
                year=r.year,
                amount_cents=r.amount_cents,
                is_received=r.is_received,
            )
            for r in rows
        ]

    def _month_expenses(
        self, session: Session, start: date, end: date
    ) -> list[CategorisedAmount]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id,
                Transaction.type == TransactionType.expense,
                Transaction.is_deleted.is_(False),
                Transaction.date.between(start, end),
            )
        )
        return [
            CategorisedAmount(
                amount_cents=txn.amount_cents,
                category=CategoryRef.model_validate(txn.category)
                if txn.category
                else None,
            )
            for txn in session.scalars(stmt).all()
        ]

    def _recent_expenses(self, session: Session) -> list[TransactionOut]:
        rows = TransactionService(session, self.user_id).recent_expenses()
        return [TransactionOut.model_validate(txn) for txn in rows]

    def _recurring(self, session: Session) -> list[RecurringExpenseOut]:
        rows = RecurringExpenseService(session, self.user_id).list()
        return [RecurringExpenseOut.model_validate(e) for e in rows]

    def _month_income(self, session: Session, month: int, year: int) -> list[IncomeRow]:
        rows = session.execute(
            select(IncomeSource.amount_cents, IncomeSource.is_received).where(
                IncomeSource.user_id == self.user_id,
                IncomeSource.month == month,
                IncomeSource.year == year,
            )
        ).all()
        return [
            IncomeRow(
                month=month,
                year=year,
                amount_cents=r.amount_cents,
                is_received=r.is_received,
            )
            for r in rows
        ]
