from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


AMOUNT = Numeric(12, 2, asdecimal=True)


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )


class TimestampMixin(CreatedAtMixin):
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


report_records = Table(
    "report_records",
    Base.metadata,
    Column(
        "report_id",
        Integer,
        ForeignKey("reports.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "finance_record_id",
        Integer,
        ForeignKey("finance_records.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Index("ix_report_records_record", "finance_record_id"),
)


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text)

    records: Mapped[list["FinanceRecord"]] = relationship(
        "FinanceRecord", back_populates="category"
    )
    recurring_transactions: Mapped[list["RecurringTransaction"]] = relationship(
        "RecurringTransaction", back_populates="category"
    )


class FinanceRecord(Base, CreatedAtMixin):
    __tablename__ = "finance_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id"), nullable=False
    )
    settled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    category: Mapped["Category"] = relationship("Category", back_populates="records")
    reports: Mapped[list["Report"]] = relationship(
        "Report", secondary=report_records, back_populates="records"
    )

    __table_args__ = (
        Index("ix_finance_records_date", "transaction_date"),
        CheckConstraint("amount >= 0", name="ck_finance_records_amount_positive"),
    )

    @property
    def category_name(self) -> Optional[str]:
        return self.category.name if self.category else None


class Report(Base, TimestampMixin):
    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    starting_amount: Mapped[Decimal] = mapped_column(
        AMOUNT, nullable=False, default=Decimal("0")
    )

    # Membership is exactly the link rows; start/end dates never filter it.
    records: Mapped[list["FinanceRecord"]] = relationship(
        "FinanceRecord", secondary=report_records, back_populates="reports"
    )


class RecurringTransaction(Base, TimestampMixin):
    __tablename__ = "recurring_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id"), nullable=False
    )
    day_of_the_month: Mapped[Optional[int]] = mapped_column(Integer)

    category: Mapped["Category"] = relationship(
        "Category", back_populates="recurring_transactions"
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_recurring_amount_positive"),
        CheckConstraint(
            "day_of_the_month IS NULL OR day_of_the_month BETWEEN 1 AND 31",
            name="ck_recurring_day_of_month",
        ),
    )

    @property
    def category_name(self) -> Optional[str]:
        return self.category.name if self.category else None
