from datetime import date
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from dashboard import build_dashboard, pct_change
from database import Base, create_db_engine
from models import Category, FinanceRecord, Report, TransactionType
from periods import MonthKey, trailing_months
from services import DashboardService


FOOD = Category(id=1, name="Food")
SALARY = Category(id=2, name="Salary")
RENT = Category(id=3, name="Rent")


def _record(record_id, amount, txn_type, category, day=date(2024, 1, 15)):
    return FinanceRecord(
        id=record_id,
        description="x",
        amount=Decimal(amount),
        type=txn_type,
        transaction_date=day,
        category_id=category.id,
        category=category,
    )


def _report(start: date, records) -> Report:
    return Report(
        name=start.isoformat(),
        start_date=start,
        end_date=start,
        starting_amount=Decimal("0"),
        records=records,
    )


def test_pct_change_rules():
    assert pct_change(Decimal("50"), Decimal("0")) == Decimal("100.0")
    assert pct_change(Decimal("0"), Decimal("0")) == Decimal("0.0")
    assert pct_change(Decimal("-5"), Decimal("0")) == Decimal("0.0")
    assert pct_change(Decimal("150"), Decimal("100")) == Decimal("50.0")
    assert pct_change(Decimal("50"), Decimal("-100")) == Decimal("150.0")
    assert pct_change(Decimal("1"), Decimal("3")) == Decimal("-66.7")


def test_trailing_months_cross_year_boundary():
    months = trailing_months(date(2024, 2, 10), 6)
    assert [m.label for m in months] == [
        "2023-09",
        "2023-10",
        "2023-11",
        "2023-12",
        "2024-01",
        "2024-02",
    ]
    assert MonthKey(2024, 1).display_label == "Jan 24"


def test_records_are_bucketed_by_report_start_month():
    report = _report(
        date(2024, 1, 1),
        [_record(1, "80.00", TransactionType.expense, FOOD, day=date(2024, 3, 5))],
    )

    view = build_dashboard([report], today=date(2024, 3, 20), months=3)

    by_label = {m.label: m for m in view.months}
    assert by_label["2024-01"].expense == Decimal("80.00")
    assert by_label["2024-03"].expense == Decimal("0.00")
    assert by_label["2024-01"].categories == {"Food": Decimal("-80.00")}


def test_category_matrix_is_zero_filled_and_signed():
    january = _report(
        date(2024, 1, 1),
        [
            _record(1, "3000.00", TransactionType.income, SALARY),
            _record(2, "120.40", TransactionType.expense, FOOD),
            _record(3, "30.00", TransactionType.expense, FOOD),
        ],
    )
    february = _report(
        date(2024, 2, 1),
        [_record(4, "900.00", TransactionType.expense, RENT)],
    )

    view = build_dashboard([january, february], today=date(2024, 2, 14), months=6)

    assert view.categories == ["Food", "Rent", "Salary"]
    assert [m.label for m in view.months][-2:] == ["2024-01", "2024-02"]
    jan = view.months[-2]
    feb = view.months[-1]
    assert jan.categories == {
        "Food": Decimal("-150.40"),
        "Rent": Decimal("0.00"),
        "Salary": Decimal("3000.00"),
    }
    assert feb.categories["Food"] == Decimal("0.00")
    assert feb.categories["Rent"] == Decimal("-900.00")
    assert view.months[0].categories == {
        "Food": Decimal("0.00"),
        "Rent": Decimal("0.00"),
        "Salary": Decimal("0.00"),
    }


def test_current_and_previous_month_helpers():
    january = _report(
        date(2024, 1, 10),
        [
            _record(1, "2000.00", TransactionType.income, SALARY),
            _record(2, "500.00", TransactionType.expense, RENT),
        ],
    )
    february = _report(
        date(2024, 2, 1),
        [
            _record(3, "3000.00", TransactionType.income, SALARY),
            _record(4, "250.00", TransactionType.expense, RENT),
        ],
    )

    view = build_dashboard([january, february], today=date(2024, 2, 29), months=6)

    assert view.current_month.income == Decimal("3000.00")
    assert view.current_month.expense == Decimal("250.00")
    assert view.current_month.net == Decimal("2750.00")
    assert view.previous_month.net == Decimal("1500.00")
    assert view.income_change_pct == Decimal("50.0")
    assert view.expense_change_pct == Decimal("-50.0")


def test_reports_starting_in_same_month_share_a_bucket():
    first = _report(date(2024, 5, 1), [_record(1, "10.00", TransactionType.expense, FOOD)])
    second = _report(date(2024, 5, 16), [_record(2, "15.00", TransactionType.expense, FOOD)])

    view = build_dashboard([first, second], today=date(2024, 5, 31), months=1)

    assert len(view.months) == 1
    assert view.months[0].expense == Decimal("25.00")


def test_dashboard_service_reads_reports_from_store():
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, expire_on_commit=False)()

    food = Category(name="Groceries")
    session.add(food)
    session.flush()
    session.add(
        Report(
            name="June",
            start_date=date(2024, 6, 1),
            end_date=date(2024, 6, 30),
            starting_amount=Decimal("0"),
            records=[
                FinanceRecord(
                    description="Market",
                    amount=Decimal("42.10"),
                    type=TransactionType.expense,
                    transaction_date=date(2024, 7, 2),
                    category_id=food.id,
                )
            ],
        )
    )
    session.commit()

    view = DashboardService(session, months=2).build(today=date(2024, 7, 3))

    assert [m.label for m in view.months] == ["2024-06", "2024-07"]
    assert view.months[0].categories == {"Groceries": Decimal("-42.10")}
    assert view.current_month.expense == Decimal("0.00")
    assert view.previous_month.expense == Decimal("42.10")
    assert view.expense_change_pct == Decimal("-100.0")
