import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from balances import to_money
from models import TransactionType


def _blank_to_none(value: object) -> object:
    # form clients send "" for "not set"
    if isinstance(value, str) and not value.strip():
        return None
    return value


# digit checks run before the value is padded to cents
Money = Annotated[
    Decimal,
    Field(max_digits=12, decimal_places=2, allow_inf_nan=False),
    AfterValidator(to_money),
]


class CategoryIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    description: Annotated[Optional[str], BeforeValidator(_blank_to_none)] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Category name must not be empty")
        return value


class FinanceRecordIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str = Field(..., min_length=1, max_length=255)
    amount: Money = Field(..., gt=0)
    type: TransactionType
    transaction_date: dt.date = Field(
        ..., validation_alias=AliasChoices("transaction_date", "date")
    )
    category_id: int


class BatchRecordsIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    records: list[FinanceRecordIn] = Field(default_factory=list)


class SettledIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    settled: bool


class ReportIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=120)
    start_date: date
    end_date: date
    starting_amount: Money = Decimal("0.00")

    @model_validator(mode="after")
    def _check_range(self) -> "ReportIn":
        if self.start_date > self.end_date:
            raise ValueError("Start date must be before end date")
        return self


class RecurringTransactionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str = Field(..., min_length=1, max_length=255)
    amount: Money = Field(..., gt=0)
    type: TransactionType
    category_id: int
    day_of_the_month: Annotated[
        Optional[int], BeforeValidator(_blank_to_none)
    ] = Field(default=None, ge=1, le=31)


class ApplyRecurringIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    template_ids: list[int] = Field(..., min_length=1)


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    created_at: datetime


class FinanceRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    amount: Decimal
    type: TransactionType
    transaction_date: date
    category_id: int
    category_name: Optional[str] = None
    settled: bool
    created_at: datetime


class ReportLineOut(FinanceRecordOut):
    running_balance: Decimal


class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    start_date: date
    end_date: date
    starting_amount: Decimal
    created_at: datetime
    updated_at: datetime


class ReportSummaryOut(ReportOut):
    total_income: Decimal
    total_expense: Decimal
    net_amount: Decimal
    total_balance: Decimal


class ReportViewOut(ReportSummaryOut):
    records: list[ReportLineOut]


class RecurringTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    amount: Decimal
    type: TransactionType
    category_id: int
    category_name: Optional[str] = None
    day_of_the_month: Optional[int]
    created_at: datetime


class ProjectionOut(BaseModel):
    template_id: int
    description: str
    amount: Decimal
    type: TransactionType
    category_id: int
    transaction_date: date


class MonthTotalsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str
    display_label: str
    income: Decimal
    expense: Decimal
    net: Decimal


class MonthBucketOut(MonthTotalsOut):
    categories: dict[str, Decimal]


class DashboardOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    months: list[MonthBucketOut]
    categories: list[str]
    current_month: MonthTotalsOut
    previous_month: MonthTotalsOut
    income_change_pct: Decimal
    expense_change_pct: Decimal
