import logging
from datetime import date, datetime
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from models import FinanceRecord, RecurringTransaction, Report
from schemas import FinanceRecordIn


logger = logging.getLogger(__name__)


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def projected_date(
    day_of_the_month: Optional[int], report_start_date: date, today: date
) -> date:
    if not day_of_the_month:
        return today
    dim = days_in_month(report_start_date.year, report_start_date.month)
    day = min(max(day_of_the_month, 1), dim)
    return date(report_start_date.year, report_start_date.month, day)


def project(
    template: RecurringTransaction,
    report_start_date: date,
    *,
    today: Optional[date] = None,
) -> FinanceRecordIn:
    """Materialize a recurring template into a record spec for one report.

    Templates without a day of the month are not tied to the calendar and land
    on ``today``; the rest land in the month of ``report_start_date``, snapped
    to the last day when the month is too short. The template is not touched.
    """
    when = projected_date(
        template.day_of_the_month, report_start_date, today or local_today()
    )
    return FinanceRecordIn(
        description=template.description,
        amount=template.amount,
        type=template.type,
        category_id=template.category_id,
        transaction_date=when,
    )


class RecurringEngine:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _report(self, report_id: int) -> Report:
        from services import NotFoundError

        report = self.session.get(Report, report_id)
        if not report:
            raise NotFoundError("Report not found")
        return report

    def preview(
        self, report_id: int, today: Optional[date] = None
    ) -> list[tuple[RecurringTransaction, FinanceRecordIn]]:
        report = self._report(report_id)
        today = today or local_today()
        templates = self.session.scalars(
            select(RecurringTransaction).order_by(RecurringTransaction.description)
        ).all()
        return [(t, project(t, report.start_date, today=today)) for t in templates]

    def apply_to_report(
        self,
        report_id: int,
        template_ids: Sequence[int],
        today: Optional[date] = None,
    ) -> list[FinanceRecord]:
        from services import BatchCommitter, NotFoundError

        report = self._report(report_id)
        today = today or local_today()
        templates = {
            t.id: t
            for t in self.session.scalars(
                select(RecurringTransaction).where(
                    RecurringTransaction.id.in_(template_ids)
                )
            )
        }
        missing = [tid for tid in template_ids if tid not in templates]
        if missing:
            raise NotFoundError(f"Recurring transaction not found: {missing[0]}")

        specs = [
            project(templates[tid], report.start_date, today=today)
            for tid in template_ids
        ]
        records = BatchCommitter(self.session).commit(report.id, specs)
        logger.info(
            f"recurring_applied: report_id={report.id} templates={len(template_ids)}"
        )
        return records
