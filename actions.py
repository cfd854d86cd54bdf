"""
Server actions.

Every action takes the request's ``OwnerContext`` explicitly and returns an
``ActionResult`` instead of raising: the caller shows ``message`` to the user.
Checks run in a fixed order: owner, then input schema, then the service.
"""

import logging
from datetime import date
from typing import Any, Callable, Literal, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from auth import OwnerContext
from schemas import (
    CategoryIn,
    CategoryOut,
    DashboardSummary,
    IncomeSourceIn,
    IncomeSourceOut,
    RecurringExpenseIn,
    RecurringExpenseOut,
    TransactionFiltersIn,
    TransactionIn,
    TransactionOut,
    first_error_message,
)
from services import (
    PAGE_SIZE,
    CategoryService,
    DashboardService,
    ErrorKind,
    IncomeSourceService,
    InvalidInputError,
    RecurringExpenseService,
    ServiceError,
    TransactionService,
    UnauthorizedError,
    group_by_date,
)

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class ActionResult(BaseModel):
    status: Literal["success", "error"]
    message: str
    data: Optional[Any] = None
    error: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, message: str, data: Any = None) -> "ActionResult":
        return cls(status="success", message=message, data=data)

    @classmethod
    def failure(cls, exc: ServiceError, data: Any = None) -> "ActionResult":
        return cls(status="error", message=str(exc), data=data, error=exc.kind)


def parse_form(schema: Type[SchemaT], form: Mapping[str, Any]) -> SchemaT:
    try:
        return schema.model_validate(dict(form))
    except ValidationError as exc:
        raise InvalidInputError(first_error_message(exc)) from exc


def _run(
    session: Session,
    owner: OwnerContext,
    action: Callable[[str], ActionResult],
    empty: Any = None,
) -> ActionResult:
    if not owner.is_authenticated:
        return ActionResult.failure(UnauthorizedError(), data=empty)
    try:
        return action(owner.user_id)
    except ServiceError as exc:
        session.rollback()
        return ActionResult.failure(exc, data=empty)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("action_failed: user=%s", owner.user_id)
        message = str(getattr(exc, "orig", None) or exc)
        return ActionResult(
            status="error", message=message, data=empty, error=ErrorKind.unknown
        )


# Categories


def list_categories(session: Session, owner: OwnerContext) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        grouped = CategoryService(session, user_id).list_grouped()
        return ActionResult.success(
            "OK",
            {
                key: [CategoryOut.model_validate(c) for c in rows]
                for key, rows in grouped.items()
            },
        )

    return _run(session, owner, action, empty={"expense": [], "income": []})


def create_category(
    session: Session, owner: OwnerContext, form: Mapping[str, Any]
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        data = parse_form(CategoryIn, form)
        category = CategoryService(session, user_id).create(data)
        return ActionResult.success(
            f'"{category.name}" category created.', CategoryOut.model_validate(category)
        )

    return _run(session, owner, action)


def update_category(
    session: Session, owner: OwnerContext, category_id: int, form: Mapping[str, Any]
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        data = parse_form(CategoryIn, form)
        category = CategoryService(session, user_id).update(category_id, data)
        return ActionResult.success(
            f'"{category.name}" updated.', CategoryOut.model_validate(category)
        )

    return _run(session, owner, action)


def delete_category(
    session: Session, owner: OwnerContext, category_id: int
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        CategoryService(session, user_id).delete(category_id)
        return ActionResult.success("Category deleted.")

    return _run(session, owner, action)


def seed_default_categories(session: Session, owner: OwnerContext) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        created = CategoryService(session, user_id).seed_defaults()
        if not created:
            return ActionResult.success("Categories already set up.", [])
        return ActionResult.success(
            f"{len(created)} default categories added.",
            [CategoryOut.model_validate(c) for c in created],
        )

    return _run(session, owner, action)


# Transactions


def list_transactions(
    session: Session,
    owner: OwnerContext,
    filters: Optional[Mapping[str, Any]] = None,
    page: int = 1,
    today: Optional[date] = None,
) -> ActionResult:
    empty = {
        "items": [],
        "groups": [],
        "total": 0,
        "page": page,
        "page_size": PAGE_SIZE,
    }

    def action(user_id: str) -> ActionResult:
        parsed = parse_form(TransactionFiltersIn, filters or {})
        rows, total = TransactionService(session, user_id).list(parsed, page)
        items = [TransactionOut.model_validate(t) for t in rows]
        return ActionResult.success(
            "OK",
            {
                "items": items,
                "groups": group_by_date(items, today),
                "total": total,
                "page": page,
                "page_size": PAGE_SIZE,
            },
        )

    return _run(session, owner, action, empty=empty)


def create_transaction(
    session: Session, owner: OwnerContext, form: Mapping[str, Any]
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        data = parse_form(TransactionIn, form)
        txn = TransactionService(session, user_id).create(data)
        return ActionResult.success(
            "Transaction added.", TransactionOut.model_validate(txn)
        )

    return _run(session, owner, action)


def update_transaction(
    session: Session,
    owner: OwnerContext,
    transaction_id: int,
    form: Mapping[str, Any],
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        data = parse_form(TransactionIn, form)
        txn = TransactionService(session, user_id).update(transaction_id, data)
        return ActionResult.success(
            "Transaction updated.", TransactionOut.model_validate(txn)
        )

    return _run(session, owner, action)


def soft_delete_transaction(
    session: Session, owner: OwnerContext, transaction_id: int
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        TransactionService(session, user_id).soft_delete(transaction_id)
        return ActionResult.success("Transaction deleted.")

    return _run(session, owner, action)


# Income sources


def list_income_sources(
    session: Session, owner: OwnerContext, month: int, year: int
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        rows = IncomeSourceService(session, user_id).list(month, year)
        return ActionResult.success(
            "OK", [IncomeSourceOut.model_validate(s) for s in rows]
        )

    return _run(session, owner, action, empty=[])


def create_income_source(
    session: Session, owner: OwnerContext, form: Mapping[str, Any]
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        data = parse_form(IncomeSourceIn, form)
        source = IncomeSourceService(session, user_id).create(data)
        return ActionResult.success(
            f'"{source.name}" added.', IncomeSourceOut.model_validate(source)
        )

    return _run(session, owner, action)


def update_income_source(
    session: Session, owner: OwnerContext, source_id: int, form: Mapping[str, Any]
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        data = parse_form(IncomeSourceIn, form)
        source = IncomeSourceService(session, user_id).update(source_id, data)
        return ActionResult.success(
            f'"{source.name}" updated.', IncomeSourceOut.model_validate(source)
        )

    return _run(session, owner, action)


def toggle_income_received(
    session: Session, owner: OwnerContext, source_id: int, is_received: bool
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        source = IncomeSourceService(session, user_id).toggle_received(
            source_id, is_received
        )
        return ActionResult.success(
            "Marked as received." if is_received else "Marked as pending.",
            IncomeSourceOut.model_validate(source),
        )

    return _run(session, owner, action)


def delete_income_source(
    session: Session, owner: OwnerContext, source_id: int
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        IncomeSourceService(session, user_id).delete(source_id)
        return ActionResult.success("Income source deleted.")

    return _run(session, owner, action)


# Recurring expenses


def list_recurring_expenses(session: Session, owner: OwnerContext) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        rows = RecurringExpenseService(session, user_id).list()
        return ActionResult.success(
            "OK", [RecurringExpenseOut.model_validate(e) for e in rows]
        )

    return _run(session, owner, action, empty=[])


def create_recurring_expense(
    session: Session, owner: OwnerContext, form: Mapping[str, Any]
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        data = parse_form(RecurringExpenseIn, form)
        expense = RecurringExpenseService(session, user_id).create(data)
        return ActionResult.success(
            f'"{expense.name}" added.', RecurringExpenseOut.model_validate(expense)
        )

    return _run(session, owner, action)


def update_recurring_expense(
    session: Session, owner: OwnerContext, expense_id: int, form: Mapping[str, Any]
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        data = parse_form(RecurringExpenseIn, form)
        expense = RecurringExpenseService(session, user_id).update(expense_id, data)
        return ActionResult.success(
            f'"{expense.name}" updated.', RecurringExpenseOut.model_validate(expense)
        )

    return _run(session, owner, action)


def toggle_recurring_active(
    session: Session, owner: OwnerContext, expense_id: int, is_active: bool
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        expense = RecurringExpenseService(session, user_id).toggle_active(
            expense_id, is_active
        )
        return ActionResult.success(
            "Activated." if is_active else "Paused.",
            RecurringExpenseOut.model_validate(expense),
        )

    return _run(session, owner, action)


def delete_recurring_expense(
    session: Session, owner: OwnerContext, expense_id: int
) -> ActionResult:
    def action(user_id: str) -> ActionResult:
        RecurringExpenseService(session, user_id).delete(expense_id)
        return ActionResult.success("Recurring expense deleted.")

    return _run(session, owner, action)


# Dashboard


def get_dashboard(
    session_factory: sessionmaker,
    owner: OwnerContext,
    today: Optional[date] = None,
    max_workers: int = 6,
) -> DashboardSummary:
    """Never fails: an anonymous owner gets the all-zero summary."""
    service = DashboardService(session_factory, owner.user_id, max_workers)
    return service.summary(today)
