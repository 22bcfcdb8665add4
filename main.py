import logging

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Response
from sqlalchemy.orm import Session

from auth import RequestContext, require_api_key
from config import get_settings
from database import SessionLocal
from schemas import (
    ApplyRecurringIn,
    BatchRecordsIn,
    CategoryIn,
    CategoryOut,
    DashboardOut,
    FinanceRecordIn,
    FinanceRecordOut,
    ProjectionOut,
    RecurringTransactionIn,
    RecurringTransactionOut,
    ReportIn,
    ReportLineOut,
    ReportOut,
    ReportSummaryOut,
    ReportViewOut,
    SettledIn,
)
from services import (
    BatchCommitError,
    CategoryService,
    DashboardService,
    FinanceRecordService,
    NotFoundError,
    RecurringTransactionService,
    ReportService,
    ReportSummary,
    ReportView,
    StoreFailure,
    ValidationFailure,
)


logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Ledger Reports")
api = APIRouter(prefix="/api", dependencies=[Depends(require_api_key)])


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _store_error(exc: StoreFailure) -> HTTPException:
    logger.error(f"request_failed: error={exc}")
    return HTTPException(status_code=500, detail=str(exc))


def _summary_out(summary: ReportSummary) -> ReportSummaryOut:
    totals = summary.totals
    return ReportSummaryOut(
        **ReportOut.model_validate(summary.report).model_dump(),
        total_income=totals.total_income,
        total_expense=totals.total_expense,
        net_amount=totals.net_amount,
        total_balance=totals.total_balance,
    )


def _view_out(view: ReportView) -> ReportViewOut:
    records = [
        ReportLineOut(
            **FinanceRecordOut.model_validate(line.record).model_dump(),
            running_balance=line.running_balance,
        )
        for line in view.lines
    ]
    return ReportViewOut(**_summary_out(view).model_dump(), records=records)


@app.get("/health")
def health():
    return {"status": "ok"}


# Categories


@api.get("/categories", response_model=list[CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return CategoryService(db).list_all()


@api.post("/categories", response_model=CategoryOut, status_code=201)
def create_category(data: CategoryIn, db: Session = Depends(get_db)):
    try:
        return CategoryService(db).create(data)
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc


@api.put("/categories/{category_id}", response_model=CategoryOut)
def update_category(category_id: int, data: CategoryIn, db: Session = Depends(get_db)):
    try:
        return CategoryService(db).update(category_id, data)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc


@api.delete("/categories/{category_id}", status_code=204)
def delete_category(category_id: int, db: Session = Depends(get_db)):
    try:
        CategoryService(db).delete(category_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc
    return Response(status_code=204)


# Finance records


@api.get("/finances", response_model=list[FinanceRecordOut])
def list_finances(db: Session = Depends(get_db)):
    return FinanceRecordService(db).list_all()


@api.get("/finances/{record_id}", response_model=FinanceRecordOut)
def get_finance(record_id: int, db: Session = Depends(get_db)):
    try:
        return FinanceRecordService(db).get(record_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@api.post("/finances", response_model=FinanceRecordOut, status_code=201)
def create_finance(data: FinanceRecordIn, db: Session = Depends(get_db)):
    try:
        return FinanceRecordService(db).create(data)
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc


@api.put("/finances/{record_id}", response_model=FinanceRecordOut)
def update_finance(
    record_id: int, data: FinanceRecordIn, db: Session = Depends(get_db)
):
    try:
        return FinanceRecordService(db).update(record_id, data)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc


@api.patch("/finances/{record_id}/settled", response_model=FinanceRecordOut)
def set_finance_settled(
    record_id: int, data: SettledIn, db: Session = Depends(get_db)
):
    try:
        return FinanceRecordService(db).set_settled(record_id, data.settled)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc


@api.delete("/finances/{record_id}", status_code=204)
def delete_finance(
    record_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_api_key),
):
    try:
        FinanceRecordService(db).delete(record_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc
    logger.info(f"record_delete_requested: id={record_id} key={ctx.key_fingerprint}")
    return Response(status_code=204)


# Reports


@api.get("/reports", response_model=list[ReportSummaryOut])
def list_reports(db: Session = Depends(get_db)):
    return [_summary_out(s) for s in ReportService(db).list_with_totals()]


@api.post("/reports", response_model=ReportOut, status_code=201)
def create_report(data: ReportIn, db: Session = Depends(get_db)):
    try:
        return ReportService(db).create(data)
    except StoreFailure as exc:
        raise _store_error(exc) from exc


@api.get("/reports/{report_id}", response_model=ReportViewOut)
def get_report(report_id: int, db: Session = Depends(get_db)):
    try:
        view = ReportService(db).view(report_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _view_out(view)


@api.put("/reports/{report_id}", response_model=ReportOut)
def update_report(report_id: int, data: ReportIn, db: Session = Depends(get_db)):
    try:
        return ReportService(db).update(report_id, data)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc


@api.delete("/reports/{report_id}", status_code=204)
def delete_report(
    report_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_api_key),
):
    try:
        ReportService(db).delete(report_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc
    logger.info(f"report_delete_requested: id={report_id} key={ctx.key_fingerprint}")
    return Response(status_code=204)


@api.post(
    "/reports/{report_id}/records", response_model=FinanceRecordOut, status_code=201
)
def add_report_record(
    report_id: int, data: FinanceRecordIn, db: Session = Depends(get_db)
):
    try:
        return ReportService(db).add_record(report_id, data)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc


@api.post(
    "/reports/{report_id}/records/batch",
    response_model=list[FinanceRecordOut],
    status_code=201,
)
def add_report_records_batch(
    report_id: int,
    data: BatchRecordsIn,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_api_key),
):
    try:
        records = ReportService(db).add_records_batch(report_id, data.records)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except BatchCommitError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info(
        f"batch_requested: report_id={report_id} size={len(records)} "
        f"key={ctx.key_fingerprint}"
    )
    return records


@api.get("/reports/{report_id}/recurring", response_model=list[ProjectionOut])
def preview_report_recurring(report_id: int, db: Session = Depends(get_db)):
    try:
        pairs = RecurringTransactionService(db).preview_for_report(report_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [
        ProjectionOut(template_id=template.id, **spec.model_dump())
        for template, spec in pairs
    ]


@api.post(
    "/reports/{report_id}/recurring",
    response_model=list[FinanceRecordOut],
    status_code=201,
)
def apply_report_recurring(
    report_id: int, data: ApplyRecurringIn, db: Session = Depends(get_db)
):
    try:
        return RecurringTransactionService(db).apply_to_report(
            report_id, data.template_ids
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except BatchCommitError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# Recurring templates


@api.get("/recurring", response_model=list[RecurringTransactionOut])
def list_recurring(db: Session = Depends(get_db)):
    return RecurringTransactionService(db).list()


@api.post("/recurring", response_model=RecurringTransactionOut, status_code=201)
def create_recurring(data: RecurringTransactionIn, db: Session = Depends(get_db)):
    try:
        return RecurringTransactionService(db).create(data)
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc


@api.put("/recurring/{template_id}", response_model=RecurringTransactionOut)
def update_recurring(
    template_id: int, data: RecurringTransactionIn, db: Session = Depends(get_db)
):
    try:
        return RecurringTransactionService(db).update(template_id, data)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc


@api.delete("/recurring/{template_id}", status_code=204)
def delete_recurring(template_id: int, db: Session = Depends(get_db)):
    try:
        RecurringTransactionService(db).delete(template_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreFailure as exc:
        raise _store_error(exc) from exc
    return Response(status_code=204)


@api.get("/dashboard", response_model=DashboardOut)
def dashboard(db: Session = Depends(get_db)):
    return DashboardOut.model_validate(DashboardService(db).build())


app.include_router(api)
