from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from src.app.db import db_session
from src.app.deps import get_ingest_service
from src.app.uploads import job_payload, queue_job, require_account, require_account_id, safe_name
from src.app.utils import jsonable
from src.core import ledger_reports
from src.core.ledger_ingest import LedgerIngestService
from src.db.models import ImportJob
from src.importers.excel import extract_excel_sheets

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/imports", tags=["imports"])


@router.post("/ledger")
def imports_ledger(
    background_tasks: BackgroundTasks,
    session: Session = Depends(db_session),
    service: LedgerIngestService = Depends(get_ingest_service),
    account_id: Optional[int] = Form(default=None),
    skip_duplicates: bool = Form(default=False),
    files: Optional[list[UploadFile]] = File(default=None),
):
    """
    Upload one or more ledger exports; each is classified and imported as its own job.

    Excel workbooks are split into one CSV per worksheet first.
    """
    uploads = [f for f in (files or []) if (f.filename or "").strip()]
    if not uploads:
        raise HTTPException(status_code=400, detail="No file uploaded")
    account_id = require_account_id(account_id)
    require_account(service, session, account_id)

    jobs: list[ImportJob] = []
    skipped: list[dict[str, Any]] = []
    for up in uploads:
        name = safe_name(up.filename or "")
        if service.config.is_csv(name):
            stored = service.store_upload(name, up.file.read())
            targets = [(name, stored)]
        elif service.config.is_excel(name):
            workbook = service.store_upload(name, up.file.read())
            try:
                sheets = extract_excel_sheets(workbook, service.config.temp_path, stem=Path(name).stem)
            except Exception as e:
                log.exception("Failed to extract workbook %s", name)
                skipped.append({"file_name": name, "error": f"{type(e).__name__}: {e}"})
                continue
            targets = [(s.name, s.path) for s in sheets]
        else:
            skipped.append({"file_name": name, "error": "Unsupported file type"})
            continue

        for file_name, path in targets:
            jobs.append(
                queue_job(
                    session,
                    service,
                    background_tasks,
                    account_id=account_id,
                    file_name=file_name,
                    stored_path=path,
                    kind=None,
                    skip_duplicates=skip_duplicates,
                )
            )

    return jsonable(
        {
            "status": "processing" if jobs else "nothing_to_import",
            "jobs": [job_payload(j) for j in jobs],
            "skipped": skipped,
        }
    )


@router.get("/jobs/{job_id}")
def imports_job(job_id: int, session: Session = Depends(db_session)):
    job = session.get(ImportJob, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Import job not found")
    return jsonable(job_payload(job))


@router.get("/jobs")
def imports_jobs(
    session: Session = Depends(db_session),
    account_id: Optional[int] = Query(default=None),
    kind: Optional[str] = Query(default=None),
):
    jobs = ledger_reports.import_jobs(session, account_id=account_id, kind=kind)
    return jsonable([job_payload(j) for j in jobs])
