from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from src.core.dedupe import DEDUPE_KEYS, split_duplicates
from src.core.ledger_config import LedgerConfig
from src.core.ledger_writer import write_records
from src.db.models import RECORD_MODELS, Account, ImportJob
from src.importers import classify_ledger, importer_for
from src.importers.models import ParsedRecord
from src.utils.time import utcnow

log = logging.getLogger(__name__)


class LedgerImportError(Exception):
    pass


class UnknownAccountError(LedgerImportError):
    def __init__(self, account_id: int):
        super().__init__(f"Account not found: {account_id}")
        self.account_id = account_id


@dataclass
class LedgerPreview:
    kind: str
    account_id: int
    records: list[ParsedRecord]
    duplicates: list[ParsedRecord]
    by_instrument_type: dict[str, dict[str, int]]
    rows_skipped: int = 0
    warning_count: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return len(self.records)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)

    @property
    def new_count(self) -> int:
        return self.total_records - self.duplicate_count

    def as_dict(self) -> dict:
        return {
            "kind": self.kind,
            "account_id": self.account_id,
            "total_records": self.total_records,
            "duplicate_count": self.duplicate_count,
            "new_count": self.new_count,
            "duplicates": [r.as_dict() for r in self.duplicates],
            "by_instrument_type": self.by_instrument_type,
            "records": [r.as_dict() for r in self.records],
            "rows_skipped": self.rows_skipped,
            "warning_count": self.warning_count,
            "warnings": self.warnings,
        }


def count_by_instrument_type(
    records: Sequence[ParsedRecord], duplicates: Sequence[ParsedRecord]
) -> dict[str, dict[str, int]]:
    totals = Counter(r.instrument_type for r in records)
    dupes = Counter(r.instrument_type for r in duplicates)
    return {
        t: {"total": n, "duplicates": dupes.get(t, 0), "new": n - dupes.get(t, 0)}
        for t, n in sorted(totals.items())
    }


def read_ledger_text(path: Path) -> str:
    # Broker exports are UTF-8, often with a BOM.
    return Path(path).read_text(encoding="utf-8-sig", errors="replace")


class LedgerIngestService:
    """
    Parse, filter and persist ledger exports for one account.

    Uploads become ImportJob rows; `run_job` does the work outside the request
    and always leaves the job SUCCEEDED or FAILED with its stored file removed.
    """

    def __init__(self, session_factory: sessionmaker[Session], config: Optional[LedgerConfig] = None):
        self.session_factory = session_factory
        self.config = config or LedgerConfig()

    def require_account(self, session: Session, account_id: int) -> Account:
        acct = session.get(Account, account_id)
        if acct is None:
            raise UnknownAccountError(account_id)
        return acct

    def existing_records(self, session: Session, *, account_id: int, kind: str) -> list:
        model = RECORD_MODELS[kind]
        return list(session.execute(select(model).where(model.account_id == account_id)).scalars())

    def classify(self, content: str) -> str:
        return classify_ledger(content, max_lines=self.config.classify_lines)

    def check_duplicates(
        self, session: Session, *, account_id: int, kind: str, records: Sequence[ParsedRecord]
    ) -> tuple[list[ParsedRecord], list[ParsedRecord]]:
        self.require_account(session, account_id)
        existing = self.existing_records(session, account_id=account_id, kind=kind)
        return split_duplicates(records, existing, DEDUPE_KEYS[kind], tolerance=self.config.dedupe.tolerance)

    def preview(self, session: Session, *, account_id: int, content: str, kind: Optional[str] = None) -> LedgerPreview:
        """Parse and compare against stored records without writing anything."""
        kind = kind or self.classify(content)
        parsed = importer_for(kind).parse(content)
        _, dupes = self.check_duplicates(session, account_id=account_id, kind=kind, records=parsed.records)
        log.info(
            "Preview %s for account %s: %d records, %d duplicates",
            kind,
            account_id,
            len(parsed.records),
            len(dupes),
        )
        return LedgerPreview(
            kind=kind,
            account_id=account_id,
            records=list(parsed.records),
            duplicates=dupes,
            by_instrument_type=count_by_instrument_type(parsed.records, dupes),
            rows_skipped=parsed.rows_skipped,
            warning_count=parsed.warning_count,
            warnings=list(parsed.warnings),
        )

    def store_upload(self, file_name: str, data: bytes) -> Path:
        out_dir = self.config.upload_path
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / f"{uuid.uuid4().hex}-{Path(file_name).name}"
        path.write_bytes(data)
        return path

    def submit(
        self,
        session: Session,
        *,
        account_id: int,
        file_name: str,
        stored_path: Path,
        kind: Optional[str] = None,
        skip_duplicates: bool = False,
    ) -> ImportJob:
        self.require_account(session, account_id)
        job = ImportJob(
            account_id=account_id,
            kind=kind,
            file_name=file_name,
            stored_path=str(stored_path),
            skip_duplicates=skip_duplicates,
            status="PENDING",
        )
        session.add(job)
        session.commit()
        log.info("Queued import job %s (%s) for account %s: %s", job.id, kind or "auto", account_id, file_name)
        return job

    def run_job(self, job_id: int) -> None:
        with self.session_factory() as session:
            job = session.get(ImportJob, job_id)
            if job is None:
                log.error("Import job %s not found", job_id)
                return
            path = Path(job.stored_path) if job.stored_path else None
            job.status = "RUNNING"
            job.started_at = utcnow()
            session.commit()
            try:
                self._process(session, job, path)
            except Exception as e:
                session.rollback()
                log.exception("Import job %s failed", job_id)
                job = session.get(ImportJob, job_id)
                job.status = "FAILED"
                job.error_text = f"{type(e).__name__}: {e}"
                job.finished_at = utcnow()
                session.commit()
            finally:
                if path is not None:
                    try:
                        path.unlink(missing_ok=True)
                    except OSError:
                        log.warning("Could not remove uploaded file %s", path, exc_info=True)

    def _process(self, session: Session, job: ImportJob, path: Optional[Path]) -> None:
        if path is None:
            raise LedgerImportError("Import job has no stored file")
        content = read_ledger_text(path)
        kind = job.kind or self.classify(content)
        job.kind = kind
        parsed = importer_for(kind).parse(content)

        records: Sequence[ParsedRecord] = parsed.records
        dupes: list[ParsedRecord] = []
        if job.skip_duplicates:
            existing = self.existing_records(session, account_id=job.account_id, kind=kind)
            records, dupes = split_duplicates(
                records, existing, DEDUPE_KEYS[kind], tolerance=self.config.dedupe.tolerance
            )

        written = write_records(
            session,
            kind=kind,
            account_id=job.account_id,
            records=records,
            import_job_id=job.id,
            progress_every=self.config.progress_every,
        )
        job.parsed_count = len(parsed.records)
        job.inserted_count = written.inserted
        job.duplicate_count = len(dupes)
        job.skipped_count = written.skipped
        job.warning_count = parsed.warning_count
        job.status = "SUCCEEDED"
        job.finished_at = utcnow()
        session.commit()
        log.info(
            "Import job %s (%s) done: parsed=%d inserted=%d duplicates=%d skipped=%d warnings=%d",
            job.id,
            kind,
            job.parsed_count,
            job.inserted_count,
            job.duplicate_count,
            job.skipped_count,
            job.warning_count,
        )

    def import_file(
        self,
        path: Path,
        *,
        account_id: int,
        kind: Optional[str] = None,
        skip_duplicates: bool = False,
        keep_source: bool = True,
    ) -> ImportJob:
        """Run an import synchronously (CLI). The source file is copied so the job can delete its own copy."""
        path = Path(path)
        with self.session_factory() as session:
            self.require_account(session, account_id)
            stored = self.store_upload(path.name, path.read_bytes()) if keep_source else path
            job = self.submit(
                session,
                account_id=account_id,
                file_name=path.name,
                stored_path=stored,
                kind=kind,
                skip_duplicates=skip_duplicates,
            )
            job_id = job.id
        self.run_job(job_id)
        with self.session_factory() as session:
            job = session.get(ImportJob, job_id)
            session.expunge(job)
            return job
