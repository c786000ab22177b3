from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from fastapi import BackgroundTasks, HTTPException, UploadFile
from sqlalchemy.orm import Session

from src.core.ledger_ingest import LedgerIngestService, UnknownAccountError
from src.db.models import ImportJob


def safe_name(name: str) -> str:
    orig = Path(name or "upload.csv").name
    safe = "".join(ch for ch in orig if ch.isalnum() or ch in {".", "_", "-", " "}).strip("._ ")
    return safe or "upload.csv"


def require_file(file: Optional[UploadFile]) -> UploadFile:
    if file is None or not (file.filename or "").strip():
        raise HTTPException(status_code=400, detail="No file uploaded")
    return file


def require_account_id(account_id: Optional[int]) -> int:
    if not account_id:
        raise HTTPException(status_code=400, detail="Account ID is required")
    return int(account_id)


def require_account(service: LedgerIngestService, session: Session, account_id: int) -> None:
    try:
        service.require_account(session, account_id)
    except UnknownAccountError:
        raise HTTPException(status_code=404, detail="Account not found")


def read_text(file: UploadFile) -> str:
    return file.file.read().decode("utf-8-sig", errors="replace")


def job_payload(job: ImportJob) -> dict[str, Any]:
    return {
        "job_id": job.id,
        "account_id": job.account_id,
        "kind": job.kind,
        "file_name": job.file_name,
        "status": job.status,
        "skip_duplicates": job.skip_duplicates,
        "parsed_count": job.parsed_count,
        "inserted_count": job.inserted_count,
        "duplicate_count": job.duplicate_count,
        "skipped_count": job.skipped_count,
        "warning_count": job.warning_count,
        "error_text": job.error_text,
        "created_at": job.created_at,
        "started_at": job.started_at,
        "finished_at": job.finished_at,
    }


def queue_job(
    session: Session,
    service: LedgerIngestService,
    background_tasks: BackgroundTasks,
    *,
    account_id: int,
    file_name: str,
    stored_path: Path,
    kind: Optional[str],
    skip_duplicates: bool,
) -> ImportJob:
    job = service.submit(
        session,
        account_id=account_id,
        file_name=file_name,
        stored_path=stored_path,
        kind=kind,
        skip_duplicates=skip_duplicates,
    )
    background_tasks.add_task(service.run_job, job.id)
    return job


def queue_csv_upload(
    session: Session,
    service: LedgerIngestService,
    background_tasks: BackgroundTasks,
    *,
    account_id: Optional[int],
    file: Optional[UploadFile],
    kind: Optional[str],
    skip_duplicates: bool,
) -> ImportJob:
    """Validate, store and queue one CSV upload. All 4xx checks run before anything touches disk."""
    file = require_file(file)
    account_id = require_account_id(account_id)
    require_account(service, session, account_id)
    name = safe_name(file.filename or "")
    if not service.config.is_csv(name):
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {Path(name).suffix or name}")
    stored = service.store_upload(name, file.file.read())
    return queue_job(
        session,
        service,
        background_tasks,
        account_id=account_id,
        file_name=name,
        stored_path=stored,
        kind=kind,
        skip_duplicates=skip_duplicates,
    )
