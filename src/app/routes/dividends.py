from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from src.app.db import db_session
from src.app.deps import get_ingest_service
from src.app.uploads import job_payload, queue_csv_upload, read_text, require_account, require_file
from src.app.utils import jsonable
from src.core import ledger_reports
from src.core.ledger_ingest import LedgerIngestService
from src.db.models import ImportJob
from src.importers.schemas import DividendCheckDuplicatesRequest

router = APIRouter(prefix="/api/dividends", tags=["dividends"])


@router.post("/upload/{account_id}")
def dividend_upload(
    account_id: int,
    background_tasks: BackgroundTasks,
    session: Session = Depends(db_session),
    service: LedgerIngestService = Depends(get_ingest_service),
    file: Optional[UploadFile] = File(default=None),
    skip_duplicates: bool = Form(default=False),
):
    job = queue_csv_upload(
        session,
        service,
        background_tasks,
        account_id=account_id,
        file=file,
        kind="dividend",
        skip_duplicates=skip_duplicates,
    )
    return {"message": "Dividend file uploaded successfully", "status": "processing", "job_id": job.id}


@router.get("/uploads/{account_id}")
def dividend_uploads(account_id: int, session: Session = Depends(db_session)):
    jobs = ledger_reports.import_jobs(session, account_id=account_id, kind="dividend")
    return jsonable([job_payload(j) for j in jobs])


@router.post("/parse-and-check-duplicates/{account_id}")
def dividend_parse_and_check_duplicates(
    account_id: int,
    session: Session = Depends(db_session),
    service: LedgerIngestService = Depends(get_ingest_service),
    file: Optional[UploadFile] = File(default=None),
):
    file = require_file(file)
    require_account(service, session, account_id)
    preview = service.preview(session, account_id=account_id, content=read_text(file), kind="dividend")
    return jsonable(preview)


@router.post("/check-duplicates/{account_id}")
def dividend_check_duplicates(
    account_id: int,
    body: DividendCheckDuplicatesRequest,
    session: Session = Depends(db_session),
    service: LedgerIngestService = Depends(get_ingest_service),
):
    require_account(service, session, account_id)
    records = [r.to_parsed() for r in body.records]
    _, dupes = service.check_duplicates(session, account_id=account_id, kind="dividend", records=records)
    return jsonable({"total_records": len(records), "duplicate_count": len(dupes), "duplicates": dupes})


@router.get("/account/{account_id}/records")
def dividend_account_records(account_id: int, session: Session = Depends(db_session)):
    return jsonable(ledger_reports.dividend_records(session, account_id=account_id))


@router.delete("/upload/{job_id}")
def dividend_delete_upload(job_id: int, session: Session = Depends(db_session)):
    if session.get(ImportJob, job_id) is None:
        raise HTTPException(status_code=404, detail="Upload not found")
    deleted = ledger_reports.delete_dividends_for_job(session, job_id=job_id)
    return {"message": "Dividend upload deleted successfully", "deleted_count": deleted}


@router.delete("/cleanup-empty-records")
def dividend_cleanup_empty_records(session: Session = Depends(db_session)):
    deleted = ledger_reports.cleanup_empty_dividends(session)
    return {"message": f"Cleaned up {deleted} empty dividend records", "deleted_count": deleted}
