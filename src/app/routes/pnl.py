from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from src.app.db import db_session
from src.app.deps import get_ingest_service
from src.app.uploads import (
    queue_csv_upload,
    queue_job,
    read_text,
    require_account,
    require_account_id,
    require_file,
    safe_name,
)
from src.app.utils import jsonable
from src.core import ledger_reports
from src.core.ledger_ingest import LedgerIngestService, count_by_instrument_type
from src.importers.excel import extract_excel_sheets
from src.importers.schemas import PnLCheckDuplicatesRequest, UploadFromTempRequest

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pnl", tags=["pnl"])


@router.post("/upload")
def pnl_upload(
    background_tasks: BackgroundTasks,
    session: Session = Depends(db_session),
    service: LedgerIngestService = Depends(get_ingest_service),
    file: Optional[UploadFile] = File(default=None),
    account_id: Optional[int] = Form(default=None),
    skip_duplicates: bool = Form(default=False),
):
    job = queue_csv_upload(
        session,
        service,
        background_tasks,
        account_id=account_id,
        file=file,
        kind="pnl",
        skip_duplicates=skip_duplicates,
    )
    return {"message": "File uploaded successfully", "status": "processing", "job_id": job.id}


@router.post("/parse-and-check-duplicates/{account_id}")
def pnl_parse_and_check_duplicates(
    account_id: int,
    session: Session = Depends(db_session),
    service: LedgerIngestService = Depends(get_ingest_service),
    file: Optional[UploadFile] = File(default=None),
):
    file = require_file(file)
    require_account(service, session, account_id)
    preview = service.preview(session, account_id=account_id, content=read_text(file), kind="pnl")
    return jsonable(preview)


@router.post("/check-duplicates/{account_id}")
def pnl_check_duplicates(
    account_id: int,
    body: PnLCheckDuplicatesRequest,
    session: Session = Depends(db_session),
    service: LedgerIngestService = Depends(get_ingest_service),
):
    require_account(service, session, account_id)
    records = [r.to_parsed() for r in body.records]
    _, dupes = service.check_duplicates(session, account_id=account_id, kind="pnl", records=records)
    return jsonable(
        {
            "total_records": len(records),
            "duplicate_count": len(dupes),
            "duplicates": dupes,
            "by_instrument_type": count_by_instrument_type(records, dupes),
        }
    )


@router.get("/account/{account_id}/records")
def pnl_account_records(account_id: int, session: Session = Depends(db_session)):
    return jsonable(ledger_reports.pnl_records(session, account_id=account_id))


@router.get("/records/{account_id}/{instrument_type}")
def pnl_records_by_type(account_id: int, instrument_type: str, session: Session = Depends(db_session)):
    return jsonable(ledger_reports.pnl_records(session, account_id=account_id, instrument_type=instrument_type))


@router.get("/summary/{account_id}")
def pnl_summary(account_id: int, session: Session = Depends(db_session)):
    return jsonable(ledger_reports.pnl_summary(session, account_id=account_id))


@router.get("/family/records")
def pnl_family_records(
    session: Session = Depends(db_session),
    family_name: Optional[str] = Query(default=None),
):
    return jsonable(ledger_reports.family_pnl_records(session, family=family_name))


@router.get("/family/summary")
def pnl_family_summary(
    session: Session = Depends(db_session),
    family_name: Optional[str] = Query(default=None),
):
    return jsonable(ledger_reports.pnl_summary(session, family=family_name))


@router.get("/uploads/{account_id}")
def pnl_uploads(account_id: int, session: Session = Depends(db_session)):
    return jsonable(ledger_reports.pnl_uploads(session, account_id=account_id))


@router.delete("/upload/{date}")
def pnl_delete_upload(
    date: str,
    session: Session = Depends(db_session),
    account_id: Optional[int] = Query(default=None),
):
    account_id = require_account_id(account_id)
    try:
        day = dt.date.fromisoformat(date)
    except ValueError:
        raise HTTPException(status_code=400, detail="Date must be YYYY-MM-DD")
    deleted = ledger_reports.delete_pnl_created_on(session, account_id=account_id, day=day)
    return {"message": "Records deleted successfully", "deleted_count": deleted}


@router.post("/extract-excel")
def pnl_extract_excel(
    service: LedgerIngestService = Depends(get_ingest_service),
    file: Optional[UploadFile] = File(default=None),
):
    file = require_file(file)
    name = safe_name(file.filename or "")
    if not service.config.is_excel(name):
        raise HTTPException(status_code=400, detail="Only Excel files (.xlsx, .xls, .xlsm) are allowed")
    temp_dir = service.config.temp_path
    workbook = service.store_upload(name, file.file.read())
    try:
        sheets = extract_excel_sheets(workbook, temp_dir, stem=Path(name).stem)
    except Exception:
        log.exception("Failed to extract workbook %s", name)
        raise HTTPException(status_code=400, detail="Failed to read Excel file")
    return {
        "message": "Excel file extracted successfully",
        "extracted_files": [{"name": s.name, "sheet_name": s.sheet_name} for s in sheets],
    }


@router.post("/upload-csv-from-temp")
def pnl_upload_csv_from_temp(
    body: UploadFromTempRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(db_session),
    service: LedgerIngestService = Depends(get_ingest_service),
):
    path = service.config.temp_path / body.file_name
    if not path.is_file():
        raise HTTPException(status_code=404, detail="CSV file not found in temp directory")
    require_account(service, session, body.account_id)
    job = queue_job(
        session,
        service,
        background_tasks,
        account_id=body.account_id,
        file_name=body.file_name,
        stored_path=path,
        kind=None,
        skip_duplicates=body.skip_duplicates,
    )
    return {
        "message": "CSV file uploaded successfully",
        "account_id": body.account_id,
        "status": "processing",
        "job_id": job.id,
    }
