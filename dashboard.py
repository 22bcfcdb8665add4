from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from balances import ZERO, signed_amount, to_money
from models import Report, TransactionType
from periods import MonthKey, trailing_months


HUNDRED = Decimal("100")


def pct_change(current: Decimal, previous: Decimal) -> Decimal:
    if previous == 0:
        change = HUNDRED if current > 0 else ZERO
    else:
        change = (Decimal(current) - Decimal(previous)) / abs(Decimal(previous)) * HUNDRED
    return change.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


@dataclass
class MonthTotals:
    key: MonthKey
    income: Decimal = ZERO
    expense: Decimal = ZERO
    categories: dict[str, Decimal] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.key.label

    @property
    def display_label(self) -> str:
        return self.key.display_label

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


@dataclass
class DashboardView:
    months: list[MonthTotals]
    categories: list[str]
    current_month: MonthTotals
    previous_month: MonthTotals
    income_change_pct: Decimal
    expense_change_pct: Decimal


def _bucket_reports(reports: Iterable[Report]) -> tuple[dict[MonthKey, MonthTotals], set[str]]:
    buckets: dict[MonthKey, MonthTotals] = {}
    names: set[str] = set()
    for report in reports:
        # records land in the month their report starts, not the month they occurred
        key = MonthKey.of(report.start_date)
        bucket = buckets.setdefault(key, MonthTotals(key))
        for record in report.records:
            if record.type == TransactionType.income:
                bucket.income += record.amount
            else:
                bucket.expense += record.amount
            name = record.category_name
            if name is None:
                continue
            names.add(name)
            bucket.categories[name] = (
                bucket.categories.get(name, ZERO) + signed_amount(record)
            )
    return buckets, names


def _finalize(bucket: MonthTotals, categories: list[str]) -> MonthTotals:
    return MonthTotals(
        key=bucket.key,
        income=to_money(bucket.income),
        expense=to_money(bucket.expense),
        categories={
            name: to_money(bucket.categories.get(name, ZERO)) for name in categories
        },
    )


def build_dashboard(
    reports: Iterable[Report], *, today: date, months: int = 6
) -> DashboardView:
    """Monthly rollups of every report's records over the trailing ``months``.

    ``reports`` must have their ``records`` (and each record's category)
    loaded. The category axis spans every category seen in any report, so
    each bucket carries an explicit zero for categories it does not use.
    """
    buckets, names = _bucket_reports(reports)
    categories = sorted(names)

    def month(key: MonthKey) -> MonthTotals:
        return _finalize(buckets.get(key, MonthTotals(key)), categories)

    window = [month(key) for key in trailing_months(today, months)]
    current_key = MonthKey.of(today)
    current = month(current_key)
    previous = month(current_key.shift(-1))
    return DashboardView(
        months=window,
        categories=categories,
        current_month=current,
        previous_month=previous,
        income_change_pct=pct_change(current.income, previous.income),
        expense_change_pct=pct_change(current.expense, previous.expense),
    )
