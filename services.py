from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from balances import LedgerLine, ReportTotals, report_totals, running_balances
from config import get_settings
from dashboard import DashboardView, build_dashboard
from database import atomic
from models import (
    Category,
    FinanceRecord,
    RecurringTransaction,
    Report,
    report_records,
)
from recurrence import RecurringEngine, local_today
from schemas import (
    CategoryIn,
    FinanceRecordIn,
    RecurringTransactionIn,
    ReportIn,
)


logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    pass


class ValidationFailure(ValueError):
    pass


class StoreFailure(RuntimeError):
    pass


class BatchCommitError(StoreFailure):
    pass


def _commit(session: Session, action: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(f"store_failure: action={action} error={exc.__class__.__name__}")
        raise StoreFailure(f"Error {action}") from exc


def _require_category(session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if not category:
        raise ValidationFailure(f"Category not found: {category_id}")
    return category


def _record_from_spec(session: Session, data: FinanceRecordIn) -> FinanceRecord:
    _require_category(session, data.category_id)
    return FinanceRecord(
        description=data.description,
        amount=data.amount,
        type=data.type,
        transaction_date=data.transaction_date,
        category_id=data.category_id,
        settled=False,
    )


class CategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Category]:
        stmt = select(Category).order_by(Category.name)
        return self.session.scalars(stmt).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category:
            raise NotFoundError("Category not found")
        return category

    def _ensure_unique(self, name: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(Category.id).where(Category.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        if self.session.scalar(stmt) is not None:
            raise ValidationFailure("Category with this name already exists")

    def create(self, data: CategoryIn) -> Category:
        self._ensure_unique(data.name)
        category = Category(name=data.name, description=data.description)
        self.session.add(category)
        _commit(self.session, "creating category")
        logger.info(f"category_created: id={category.id}")
        return category

    def update(self, category_id: int, data: CategoryIn) -> Category:
        category = self.get(category_id)
        self._ensure_unique(data.name, exclude_id=category_id)
        category.name = data.name
        category.description = data.description
        _commit(self.session, "updating category")
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        in_use = self.session.scalar(
            select(func.count(FinanceRecord.id)).where(
                FinanceRecord.category_id == category_id
            )
        ) or self.session.scalar(
            select(func.count(RecurringTransaction.id)).where(
                RecurringTransaction.category_id == category_id
            )
        )
        if in_use:
            logger.warning(f"category_delete_refused: id={category_id}")
            raise ValidationFailure("Category is still in use")
        self.session.delete(category)
        _commit(self.session, "deleting category")


class FinanceRecordService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[FinanceRecord]:
        stmt = (
            select(FinanceRecord)
            .options(joinedload(FinanceRecord.category))
            .order_by(FinanceRecord.transaction_date.desc(), FinanceRecord.id.desc())
        )
        return self.session.scalars(stmt).all()

    def get(self, record_id: int) -> FinanceRecord:
        stmt = (
            select(FinanceRecord)
            .options(joinedload(FinanceRecord.category))
            .where(FinanceRecord.id == record_id)
        )
        record = self.session.scalar(stmt)
        if not record:
            raise NotFoundError("Record not found")
        return record

    def create(self, data: FinanceRecordIn) -> FinanceRecord:
        record = _record_from_spec(self.session, data)
        self.session.add(record)
        _commit(self.session, "creating record")
        logger.info(f"record_created: id={record.id}")
        return self.get(record.id)

    def update(self, record_id: int, data: FinanceRecordIn) -> FinanceRecord:
        record = self.get(record_id)
        if data.category_id != record.category_id:
            _require_category(self.session, data.category_id)
        for field, value in data.model_dump().items():
            setattr(record, field, value)
        _commit(self.session, "updating record")
        self.session.refresh(record)
        return record

    def set_settled(self, record_id: int, settled: bool) -> FinanceRecord:
        record = self.get(record_id)
        record.settled = settled
        _commit(self.session, "updating record")
        return record

    def delete(self, record_id: int) -> None:
        record = self.get(record_id)
        # the secondary relationship drops this record's report links as well
        self.session.delete(record)
        _commit(self.session, "deleting record")
        logger.info(f"record_deleted: id={record_id}")


@dataclass
class ReportSummary:
    report: Report
    totals: ReportTotals


@dataclass
class ReportView(ReportSummary):
    lines: list[LedgerLine]


class ReportService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, report_id: int) -> Report:
        report = self.session.get(Report, report_id)
        if not report:
            raise NotFoundError("Report not found")
        return report

    def members(self, report_id: int) -> list[FinanceRecord]:
        # re-derived from the link rows on every call
        stmt = (
            select(FinanceRecord)
            .join(report_records, report_records.c.finance_record_id == FinanceRecord.id)
            .options(joinedload(FinanceRecord.category))
            .where(report_records.c.report_id == report_id)
        )
        return self.session.scalars(stmt).all()

    def view(self, report_id: int) -> ReportView:
        report = self.get(report_id)
        records = self.members(report_id)
        return ReportView(
            report=report,
            totals=report_totals(report.starting_amount, records),
            lines=running_balances(report.starting_amount, records),
        )

    def list_with_totals(self) -> list[ReportSummary]:
        stmt = (
            select(Report)
            .options(selectinload(Report.records))
            .order_by(Report.created_at.desc(), Report.id.desc())
            .execution_options(populate_existing=True)
        )
        return [
            ReportSummary(
                report=report,
                totals=report_totals(report.starting_amount, report.records),
            )
            for report in self.session.scalars(stmt).all()
        ]

    def create(self, data: ReportIn) -> Report:
        report = Report(
            name=data.name,
            start_date=data.start_date,
            end_date=data.end_date,
            starting_amount=data.starting_amount,
        )
        self.session.add(report)
        _commit(self.session, "creating report")
        logger.info(f"report_created: id={report.id}")
        return report

    def update(self, report_id: int, data: ReportIn) -> Report:
        report = self.get(report_id)
        for field, value in data.model_dump().items():
            setattr(report, field, value)
        _commit(self.session, "updating report")
        self.session.refresh(report)
        return report

    def delete(self, report_id: int) -> None:
        report = self.get(report_id)
        # links go with the report, the records themselves stay
        self.session.delete(report)
        _commit(self.session, "deleting report")
        logger.info(f"report_deleted: id={report_id}")

    def add_record(self, report_id: int, data: FinanceRecordIn) -> FinanceRecord:
        report = self.get(report_id)
        record = _record_from_spec(self.session, data)
        try:
            with atomic(self.session):
                self.session.add(record)
                self.session.flush()
                report.records.append(record)
        except SQLAlchemyError as exc:
            logger.error(f"store_failure: action=add_record report_id={report_id}")
            raise StoreFailure("Error creating record") from exc
        logger.info(f"report_record_added: report_id={report.id} record_id={record.id}")
        return FinanceRecordService(self.session).get(record.id)

    def add_records_batch(
        self, report_id: int, specs: Sequence[FinanceRecordIn]
    ) -> list[FinanceRecord]:
        return BatchCommitter(self.session).commit(report_id, specs)


class BatchCommitter:
    """Creates many records and their report links as one unit.

    Either every record and link of the batch is committed, or the session is
    rolled back and a single BatchCommitError is raised.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def commit(
        self, report_id: int, specs: Sequence[FinanceRecordIn]
    ) -> list[FinanceRecord]:
        report = self.session.get(Report, report_id)
        if not report:
            raise NotFoundError("Report not found")
        if not specs:
            return []

        created: list[FinanceRecord] = []
        position = 0
        try:
            with atomic(self.session):
                for position, spec in enumerate(specs, start=1):
                    record = _record_from_spec(self.session, spec)
                    self.session.add(record)
                    report.records.append(record)
                    self.session.flush()
                    created.append(record)
        except (ValidationFailure, SQLAlchemyError) as exc:
            logger.warning(
                f"batch_rolled_back: report_id={report_id} "
                f"size={len(specs)} failed_at={position} error={exc}"
            )
            raise BatchCommitError(
                f"Batch rejected at record {position} of {len(specs)}: {exc}"
            ) from exc

        logger.info(f"batch_committed: report_id={report_id} size={len(created)}")
        return created


class RecurringTransactionService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, template_id: int) -> RecurringTransaction:
        template = self.session.get(RecurringTransaction, template_id)
        if not template:
            raise NotFoundError("Recurring transaction not found")
        return template

    def list(self) -> list[RecurringTransaction]:
        stmt = (
            select(RecurringTransaction)
            .options(joinedload(RecurringTransaction.category))
            .order_by(RecurringTransaction.description)
        )
        return self.session.scalars(stmt).all()

    def create(self, data: RecurringTransactionIn) -> RecurringTransaction:
        _require_category(self.session, data.category_id)
        template = RecurringTransaction(**data.model_dump())
        self.session.add(template)
        _commit(self.session, "creating recurring transaction")
        self.session.refresh(template)
        return template

    def update(
        self, template_id: int, data: RecurringTransactionIn
    ) -> RecurringTransaction:
        template = self.get(template_id)
        if data.category_id != template.category_id:
            _require_category(self.session, data.category_id)
        for field, value in data.model_dump().items():
            setattr(template, field, value)
        _commit(self.session, "updating recurring transaction")
        self.session.refresh(template)
        return template

    def delete(self, template_id: int) -> None:
        template = self.get(template_id)
        self.session.delete(template)
        _commit(self.session, "deleting recurring transaction")

    def preview_for_report(self, report_id: int, today: Optional[date] = None):
        return RecurringEngine(self.session).preview(report_id, today)

    def apply_to_report(
        self,
        report_id: int,
        template_ids: Sequence[int],
        today: Optional[date] = None,
    ) -> list[FinanceRecord]:
        return RecurringEngine(self.session).apply_to_report(
            report_id, template_ids, today
        )


class DashboardService:
    def __init__(self, session: Session, months: Optional[int] = None) -> None:
        self.session = session
        self.months = months or get_settings().dashboard_months

    def build(self, today: Optional[date] = None) -> DashboardView:
        stmt = (
            select(Report)
            .options(selectinload(Report.records).joinedload(FinanceRecord.category))
            .execution_options(populate_existing=True)
        )
        reports = self.session.scalars(stmt).all()
        return build_dashboard(
            reports, today=today or local_today(), months=self.months
        )
