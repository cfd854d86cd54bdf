import datetime as dt
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    ValidationError,
    field_validator,
    model_validator,
)

from formatting import DueStatus, format_currency, parse_amount, to_cents
from models import (
    IncomeSourceType,
    PaymentMethod,
    RecurringFrequency,
    TransactionType,
)
from periods import trailing_months

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
UNCATEGORIZED_NAME = "Uncategorized"
UNCATEGORIZED_COLOR = "#6b7280"


def first_error_message(exc: ValidationError) -> str:
    error = exc.errors()[0]
    msg = error["msg"]
    if error["type"] == "value_error":
        return msg.removeprefix("Value error, ")
    field = ".".join(str(part) for part in error.get("loc", ()))
    return f"{field}: {msg}" if field else msg


def _clean_text(
    value: object,
    *,
    max_length: int,
    too_long: str,
    required: Optional[str] = None,
) -> Optional[str]:
    text = "" if value is None else str(value).strip()
    if not text:
        if required:
            raise ValueError(required)
        return None
    if len(text) > max_length:
        raise ValueError(too_long)
    return text


def _optional_id(value: object) -> object:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return value


class _AmountMixin(BaseModel):
    # Subclasses declare ``amount`` themselves so it validates in form order.

    @field_validator("amount", mode="before", check_fields=False)
    @classmethod
    def _parse_amount(cls, value: object) -> Decimal:
        return parse_amount(value)

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount)


class CategoryIn(BaseModel):
    name: str
    icon: str
    color: str
    type: TransactionType

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: object) -> str:
        return _clean_text(
            value,
            max_length=50,
            too_long="Name must be 50 characters or less",
            required="Name is required",
        )

    @field_validator("icon", mode="before")
    @classmethod
    def _icon(cls, value: object) -> str:
        return _clean_text(
            value,
            max_length=10,
            too_long="Icon is too long",
            required="Please select an icon",
        )

    @field_validator("color", mode="before")
    @classmethod
    def _color(cls, value: object) -> str:
        text = "" if value is None else str(value).strip()
        if not HEX_COLOR_RE.match(text):
            raise ValueError("Must be a valid hex color")
        return text.lower()


class TransactionIn(_AmountMixin):
    type: TransactionType
    amount: Decimal
    description: str
    category_id: Optional[int] = None
    date: dt.date
    payment_method: PaymentMethod
    note: Optional[str] = None

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: object) -> str:
        return _clean_text(
            value,
            max_length=200,
            too_long="Must be 200 characters or less",
            required="Description is required",
        )

    @field_validator("category_id", mode="before")
    @classmethod
    def _category(cls, value: object) -> object:
        return _optional_id(value)

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Date is required")
        return value

    @field_validator("note", mode="before")
    @classmethod
    def _note(cls, value: object) -> Optional[str]:
        return _clean_text(
            value, max_length=500, too_long="Note must be 500 characters or less"
        )


class RecurringExpenseIn(_AmountMixin):
    name: str
    description: Optional[str] = None
    category_id: Optional[int] = None
    amount: Decimal
    frequency: RecurringFrequency
    payment_method: PaymentMethod
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: object) -> str:
        return _clean_text(
            value,
            max_length=200,
            too_long="Name must be 200 characters or less",
            required="Name is required",
        )

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: object) -> Optional[str]:
        return _clean_text(
            value,
            max_length=500,
            too_long="Description must be 500 characters or less",
        )

    @field_validator("category_id", mode="before")
    @classmethod
    def _category(cls, value: object) -> object:
        return _optional_id(value)

    @field_validator("start_date", mode="before")
    @classmethod
    def _start_date(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Start date is required")
        return value

    @field_validator("end_date", mode="before")
    @classmethod
    def _end_date(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _end_after_start(self) -> "RecurringExpenseIn":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date must be on or after the start date")
        return self


class IncomeSourceIn(_AmountMixin):
    name: str
    source_type: IncomeSourceType
    amount: Decimal
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    is_received: bool = False
    note: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, value: object) -> str:
        return _clean_text(
            value,
            max_length=100,
            too_long="Name must be 100 characters or less",
            required="Name is required",
        )

    @field_validator("note", mode="before")
    @classmethod
    def _note(cls, value: object) -> Optional[str]:
        return _clean_text(
            value, max_length=500, too_long="Note must be 500 characters or less"
        )


class TransactionFiltersIn(BaseModel):
    search: Optional[str] = None
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CategoryRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    icon: Optional[str]
    color: str
    type: TransactionType


class CategoryOut(CategoryRef):
    is_default: bool


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: Optional[int]
    recurring_expense_id: Optional[int]
    type: TransactionType
    amount_cents: int
    description: str
    date: date
    payment_method: PaymentMethod
    note: Optional[str]
    created_at: datetime
    category: Optional[CategoryRef] = None

    @computed_field
    @property
    def amount_display(self) -> str:
        return format_currency(self.amount_cents)


class TransactionDayGroup(BaseModel):
    """Transactions sharing a date, headed by "Today", "Yesterday" or the date."""

    date: date
    label: str
    net_cents: int
    net_display: str
    items: list[TransactionOut]


class RecurringExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: Optional[int]
    name: str
    description: Optional[str]
    amount_cents: int
    frequency: RecurringFrequency
    payment_method: PaymentMethod
    start_date: date
    end_date: Optional[date]
    next_due_date: date
    is_active: bool
    category: Optional[CategoryRef] = None

    @computed_field
    @property
    def amount_display(self) -> str:
        return format_currency(self.amount_cents)


class IncomeSourceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    source_type: IncomeSourceType
    amount_cents: int
    month: int
    year: int
    note: Optional[str]
    is_received: bool
    received_at: Optional[datetime]


class TrendPoint(BaseModel):
    month: int
    year: int
    label: str
    expenses_cents: int = 0
    income_cents: int = 0


class CategoryStat(BaseModel):
    category_id: Optional[int] = None
    name: str
    icon: Optional[str] = None
    color: str
    amount_cents: int
    percentage: float = 0.0


class UpcomingRecurring(RecurringExpenseOut):
    due_status: DueStatus
    due_label: str
    monthly_equivalent_cents: int


class DashboardSummary(BaseModel):
    monthly_expenses_cents: int = 0
    monthly_income_expected_cents: int = 0
    monthly_income_received_cents: int = 0
    recurring_monthly_total_cents: int = 0
    active_recurring_count: int = 0
    trend: list[TrendPoint] = Field(default_factory=list)
    categories: list[CategoryStat] = Field(default_factory=list)
    recent_expenses: list[TransactionOut] = Field(default_factory=list)
    upcoming_recurring: list[UpcomingRecurring] = Field(default_factory=list)

    @classmethod
    def empty(cls, today: date) -> "DashboardSummary":
        return cls(
            trend=[
                TrendPoint(month=m.month, year=m.year, label=m.label)
                for m in trailing_months(today)
            ]
        )
