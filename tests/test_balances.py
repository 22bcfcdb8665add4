import random
from datetime import date
from decimal import Decimal

from balances import canonical_order, report_totals, running_balances, signed_amount
from models import FinanceRecord, TransactionType


def _record(
    record_id: int, day: date, amount: str, txn_type: TransactionType
) -> FinanceRecord:
    return FinanceRecord(
        id=record_id,
        description=f"record {record_id}",
        amount=Decimal(amount),
        type=txn_type,
        transaction_date=day,
        category_id=1,
    )


def _sample() -> list[FinanceRecord]:
    return [
        _record(4, date(2024, 3, 2), "20.00", TransactionType.expense),
        _record(1, date(2024, 3, 1), "1000.00", TransactionType.income),
        _record(3, date(2024, 3, 2), "15.50", TransactionType.expense),
        _record(2, date(2024, 3, 5), "4.25", TransactionType.expense),
    ]


def test_signed_amount_uses_type_for_sign():
    assert signed_amount(_record(1, date(2024, 1, 1), "5.00", TransactionType.income)) == Decimal("5.00")
    assert signed_amount(_record(1, date(2024, 1, 1), "5.00", TransactionType.expense)) == Decimal("-5.00")


def test_same_day_records_are_ordered_by_id():
    ordered = canonical_order(_sample())
    assert [r.id for r in ordered] == [1, 3, 4, 2]


def test_running_balance_is_inclusive_prefix_sum():
    lines = running_balances(Decimal("100.00"), _sample())

    assert [line.running_balance for line in lines] == [
        Decimal("1100.00"),
        Decimal("1084.50"),
        Decimal("1064.50"),
        Decimal("1060.25"),
    ]
    previous = Decimal("100.00")
    for line in lines:
        assert line.running_balance == previous + signed_amount(line.record)
        previous = line.running_balance


def test_running_balance_does_not_depend_on_input_order():
    records = _sample()
    expected = [
        (line.record.id, line.running_balance)
        for line in running_balances(Decimal("0"), records)
    ]
    rng = random.Random(7)
    for _ in range(5):
        shuffled = records[:]
        rng.shuffle(shuffled)
        assert [
            (line.record.id, line.running_balance)
            for line in running_balances(Decimal("0"), shuffled)
        ] == expected


def test_totals_balance_identity():
    totals = report_totals(Decimal("250.00"), _sample())

    assert totals.total_income == Decimal("1000.00")
    assert totals.total_expense == Decimal("39.75")
    assert totals.net_amount == Decimal("960.25")
    assert totals.total_balance == Decimal("1210.25")
    assert totals.total_balance == Decimal("250.00") + totals.total_income - totals.total_expense


def test_empty_membership_yields_starting_amount():
    totals = report_totals(Decimal("-12.30"), [])
    assert totals.total_income == Decimal("0.00")
    assert totals.total_expense == Decimal("0.00")
    assert totals.net_amount == Decimal("0.00")
    assert totals.total_balance == Decimal("-12.30")
    assert running_balances(Decimal("-12.30"), []) == []


def test_long_sequences_do_not_drift():
    records = [
        _record(i, date(2024, 1, 1), "0.10", TransactionType.income)
        for i in range(1, 1001)
    ]
    lines = running_balances(Decimal("0"), records)
    assert lines[-1].running_balance == Decimal("100.00")
    assert str(lines[0].running_balance) == "0.10"
