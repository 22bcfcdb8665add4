"""Running balances and totals for the records of a single report."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from models import FinanceRecord, TransactionType


CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def signed_amount(record: FinanceRecord) -> Decimal:
    amount = Decimal(record.amount)
    if record.type == TransactionType.income:
        return amount
    return -amount


def canonical_order(records: Iterable[FinanceRecord]) -> list[FinanceRecord]:
    # id breaks ties between same-day records so the sequence is reproducible
    return sorted(records, key=lambda r: (r.transaction_date, r.id))


@dataclass(frozen=True)
class LedgerLine:
    record: FinanceRecord
    running_balance: Decimal


@dataclass(frozen=True)
class ReportTotals:
    total_income: Decimal
    total_expense: Decimal
    net_amount: Decimal
    total_balance: Decimal


def running_balances(
    starting_amount: Decimal, records: Iterable[FinanceRecord]
) -> list[LedgerLine]:
    """Inclusive prefix sums of signed amounts, in (transaction_date, id) order.

    Accumulation is exact; only the emitted values are rounded to cents.
    """
    balance = Decimal(starting_amount)
    lines: list[LedgerLine] = []
    for record in canonical_order(records):
        balance += signed_amount(record)
        lines.append(LedgerLine(record=record, running_balance=to_money(balance)))
    return lines


def report_totals(
    starting_amount: Decimal, records: Sequence[FinanceRecord]
) -> ReportTotals:
    income = ZERO
    expense = ZERO
    for record in records:
        if record.type == TransactionType.income:
            income += Decimal(record.amount)
        else:
            expense += Decimal(record.amount)
    net = income - expense
    return ReportTotals(
        total_income=to_money(income),
        total_expense=to_money(expense),
        net_amount=to_money(net),
        total_balance=to_money(Decimal(starting_amount) + net),
    )
