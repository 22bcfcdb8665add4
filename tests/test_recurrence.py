from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from database import Base, create_db_engine
from models import (
    Category,
    FinanceRecord,
    RecurringTransaction,
    Report,
    TransactionType,
    report_records,
)
from recurrence import RecurringEngine, days_in_month, project
from services import NotFoundError


def _template(day_of_the_month=None) -> RecurringTransaction:
    return RecurringTransaction(
        id=1,
        description="Rent",
        amount=Decimal("950.00"),
        type=TransactionType.expense,
        category_id=3,
        day_of_the_month=day_of_the_month,
    )


def test_days_in_month_handles_leap_years_and_december():
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2023, 2) == 28
    assert days_in_month(2024, 4) == 30
    assert days_in_month(2024, 12) == 31


def test_project_clamps_to_short_month():
    spec = project(_template(31), date(2024, 4, 1))
    assert spec.transaction_date == date(2024, 4, 30)


def test_project_keeps_day_that_fits():
    spec = project(_template(15), date(2024, 4, 1))
    assert spec.transaction_date == date(2024, 4, 15)


def test_project_uses_month_of_report_start_not_its_day():
    spec = project(_template(3), date(2024, 2, 20))
    assert spec.transaction_date == date(2024, 2, 3)


def test_project_clamps_february():
    assert project(_template(30), date(2024, 2, 1)).transaction_date == date(2024, 2, 29)
    assert project(_template(29), date(2023, 2, 1)).transaction_date == date(2023, 2, 28)


def test_project_out_of_range_day_clamps_to_month_end():
    assert project(_template(45), date(2024, 6, 1)).transaction_date == date(2024, 6, 30)


def test_project_without_day_uses_today():
    spec = project(_template(None), date(2020, 1, 1), today=date(2024, 7, 9))
    assert spec.transaction_date == date(2024, 7, 9)


def test_project_without_day_defaults_to_local_today(monkeypatch):
    monkeypatch.setattr("recurrence.local_today", lambda: date(2031, 5, 6))
    spec = project(_template(None), date(2020, 1, 1))
    assert spec.transaction_date == date(2031, 5, 6)


def test_project_copies_template_fields_and_leaves_template_alone():
    template = _template(10)
    spec = project(template, date(2024, 5, 1))

    assert spec.description == "Rent"
    assert spec.amount == Decimal("950.00")
    assert spec.type == TransactionType.expense
    assert spec.category_id == 3
    assert template.day_of_the_month == 10
    assert "settled" not in spec.model_dump()


def _seed(session: Session) -> tuple[Report, list[RecurringTransaction]]:
    category = Category(name="Housing")
    session.add(category)
    session.flush()
    report = Report(
        name="April",
        start_date=date(2024, 4, 1),
        end_date=date(2024, 4, 30),
        starting_amount=Decimal("0"),
    )
    templates = [
        RecurringTransaction(
            description="Rent",
            amount=Decimal("950.00"),
            type=TransactionType.expense,
            category_id=category.id,
            day_of_the_month=31,
        ),
        RecurringTransaction(
            description="Salary",
            amount=Decimal("3000.00"),
            type=TransactionType.income,
            category_id=category.id,
            day_of_the_month=None,
        ),
    ]
    session.add(report)
    session.add_all(templates)
    session.commit()
    return report, templates


def test_recurring_engine_applies_templates_to_report():
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        report, templates = _seed(session)
        records = RecurringEngine(session).apply_to_report(
            report.id, [t.id for t in templates], today=date(2024, 4, 12)
        )

        assert [r.transaction_date for r in records] == [
            date(2024, 4, 30),
            date(2024, 4, 12),
        ]
        links = session.scalar(
            select(func.count()).select_from(report_records).where(
                report_records.c.report_id == report.id
            )
        )
        assert links == 2
        assert session.scalar(select(func.count(RecurringTransaction.id))) == 2


def test_recurring_engine_preview_does_not_persist():
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        report, _templates = _seed(session)
        pairs = RecurringEngine(session).preview(report.id, today=date(2024, 4, 12))

        assert [spec.description for _t, spec in pairs] == ["Rent", "Salary"]
        assert session.scalar(select(func.count(FinanceRecord.id))) == 0


def test_recurring_engine_rejects_unknown_template():
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        report, templates = _seed(session)
        with pytest.raises(NotFoundError):
            RecurringEngine(session).apply_to_report(report.id, [templates[0].id, 999])
        assert session.scalar(select(func.count(FinanceRecord.id))) == 0
