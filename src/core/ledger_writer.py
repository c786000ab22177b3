from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.db.models import RECORD_MODELS
from src.importers.models import ParsedRecord

log = logging.getLogger(__name__)


@dataclass
class WriteResult:
    inserted: int = 0
    conflicts: int = 0  # rejected by the unique constraint
    errors: int = 0  # any other storage error

    @property
    def skipped(self) -> int:
        return self.conflicts + self.errors


def write_records(
    session: Session,
    *,
    kind: str,
    account_id: int,
    records: Sequence[ParsedRecord],
    import_job_id: Optional[int] = None,
    progress_every: int = 50,
) -> WriteResult:
    """
    Insert parsed records one at a time, each inside its own savepoint.

    A failing record only rolls back its savepoint; the run continues and the
    record is counted as skipped. Never raises for per-record storage errors.
    """
    model = RECORD_MODELS[kind]
    out = WriteResult()
    total = len(records)
    for i, rec in enumerate(records, start=1):
        try:
            with session.begin_nested():
                session.add(model(account_id=account_id, import_job_id=import_job_id, **rec.as_dict()))
                session.flush()
            out.inserted += 1
        except IntegrityError:
            out.conflicts += 1
        except SQLAlchemyError:
            log.exception("Failed to insert %s record %d (%s) for account %s", kind, i, rec.symbol, account_id)
            out.errors += 1
        if progress_every and i % progress_every == 0:
            log.info("Processed %d/%d %s records for account %s", i, total, kind, account_id)

    session.commit()
    log.info(
        "Finished %s write for account %s: inserted=%d skipped=%d (conflicts=%d errors=%d)",
        kind,
        account_id,
        out.inserted,
        out.skipped,
        out.conflicts,
        out.errors,
    )
    return out
