from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.orm import Session, joinedload

from src.db.models import Account, DividendRecord, ImportJob, PnLRecord
from src.utils.time import day_bounds_utc

log = logging.getLogger(__name__)

# Numeric P&L columns summed in summaries and family rollups.
PNL_SUM_FIELDS = (
    "quantity",
    "buy_value",
    "sell_value",
    "profit",
    "fair_market_value",
    "taxable_profit",
    "turnover",
    "brokerage",
    "exchange_transaction_charges",
    "ipft",
    "sebi_charges",
    "cgst",
    "sgst",
    "igst",
    "stamp_duty",
    "stt",
)


def pnl_records(session: Session, *, account_id: int, instrument_type: Optional[str] = None) -> list[PnLRecord]:
    q = select(PnLRecord).where(PnLRecord.account_id == account_id)
    if instrument_type:
        q = q.where(PnLRecord.instrument_type == instrument_type)
    q = q.order_by(PnLRecord.entry_date.desc(), PnLRecord.symbol.asc(), PnLRecord.id.asc())
    return list(session.execute(q).scalars())


def dividend_records(session: Session, *, account_id: int) -> list[DividendRecord]:
    q = (
        select(DividendRecord)
        .where(DividendRecord.account_id == account_id)
        .order_by(DividendRecord.ex_date.desc(), DividendRecord.symbol.asc(), DividendRecord.id.asc())
    )
    return list(session.execute(q).scalars())


def _family_filter(family: Optional[str]):
    if family:
        return Account.family == family
    return Account.family.is_not(None)


def pnl_summary(
    session: Session,
    *,
    account_id: Optional[int] = None,
    family: Optional[str] = None,
) -> list[dict]:
    """
    Per-instrument-type sums and record counts.

    Scoped to one account when `account_id` is given, otherwise to one family
    (or every account that has a family).
    """
    cols = [func.coalesce(func.sum(getattr(PnLRecord, f)), 0.0).label(f) for f in PNL_SUM_FIELDS]
    q = select(PnLRecord.instrument_type, func.count(PnLRecord.id).label("count"), *cols)
    if account_id is not None:
        q = q.where(PnLRecord.account_id == account_id)
    else:
        q = q.join(Account, Account.id == PnLRecord.account_id).where(_family_filter(family))
    q = q.group_by(PnLRecord.instrument_type).order_by(PnLRecord.instrument_type)

    out: list[dict] = []
    for row in session.execute(q).mappings():
        out.append(
            {
                "instrument_type": row["instrument_type"],
                "count": int(row["count"]),
                "sums": {f: float(row[f] or 0.0) for f in PNL_SUM_FIELDS},
            }
        )
    return out


@dataclass
class FamilyPnLRow:
    family: str
    symbol: str
    instrument_type: str
    isin: Optional[str] = None
    entry_date: Optional[dt.date] = None
    exit_date: Optional[dt.date] = None
    period_of_holding: Optional[str] = None
    totals: dict[str, float] = field(default_factory=lambda: {f: 0.0 for f in PNL_SUM_FIELDS})
    accounts: list[dict] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.family}-{self.symbol}-{self.instrument_type}"

    def as_dict(self) -> dict:
        return {
            "id": self.key,
            "family": self.family,
            "symbol": self.symbol,
            "isin": self.isin,
            "instrument_type": self.instrument_type,
            "entry_date": self.entry_date,
            "exit_date": self.exit_date,
            "period_of_holding": self.period_of_holding,
            **self.totals,
            "account_ids": [a["id"] for a in self.accounts],
            "accounts": self.accounts,
        }


def family_pnl_records(session: Session, *, family: Optional[str] = None) -> list[FamilyPnLRow]:
    """Roll P&L records up to (family, symbol-or-ISIN, instrument type) across member accounts."""
    q = (
        select(PnLRecord)
        .join(Account, Account.id == PnLRecord.account_id)
        .where(_family_filter(family))
        .options(joinedload(PnLRecord.account))
        .order_by(PnLRecord.entry_date.desc(), PnLRecord.symbol.asc(), PnLRecord.id.asc())
    )
    rows: dict[str, FamilyPnLRow] = {}
    for r in session.execute(q).scalars():
        acct = r.account
        fam = acct.family or "Unknown"
        symbol = r.symbol or r.isin or "Unknown"
        key = f"{fam}-{symbol}-{r.instrument_type}"
        row = rows.get(key)
        if row is None:
            row = FamilyPnLRow(
                family=fam,
                symbol=symbol,
                instrument_type=r.instrument_type,
                isin=r.isin,
                entry_date=r.entry_date,
                exit_date=r.exit_date,
                period_of_holding=r.period_of_holding,
            )
            rows[key] = row
        for f in PNL_SUM_FIELDS:
            row.totals[f] += getattr(r, f) or 0.0
        if all(a["id"] != acct.id for a in row.accounts):
            row.accounts.append({"id": acct.id, "name": acct.name, "family": acct.family})
    return list(rows.values())


def pnl_uploads(session: Session, *, account_id: int) -> list[dict]:
    """P&L records grouped by the UTC day they were stored, newest first."""
    q = (
        select(PnLRecord.created_at, PnLRecord.instrument_type)
        .where(PnLRecord.account_id == account_id)
        .order_by(PnLRecord.created_at.desc())
    )
    counts: dict[dt.date, int] = defaultdict(int)
    types: dict[dt.date, set[str]] = defaultdict(set)
    for created_at, instrument_type in session.execute(q):
        day = created_at.date()
        counts[day] += 1
        types[day].add(instrument_type)
    return [
        {
            "id": day.isoformat(),
            "account_id": account_id,
            "file_name": f"PnL Records - {day.isoformat()}",
            "upload_date": day,
            "status": "completed",
            "record_count": counts[day],
            "instrument_types": sorted(types[day]),
        }
        for day in sorted(counts, reverse=True)
    ]


def delete_pnl_created_on(session: Session, *, account_id: int, day: dt.date) -> int:
    start, end = day_bounds_utc(day)
    res = session.execute(
        delete(PnLRecord).where(
            PnLRecord.account_id == account_id,
            PnLRecord.created_at >= start,
            PnLRecord.created_at < end,
        )
    )
    session.commit()
    log.info("Deleted %d P&L records created on %s for account %s", res.rowcount, day, account_id)
    return int(res.rowcount or 0)


def delete_dividends_created_on(session: Session, *, account_id: int, day: dt.date) -> int:
    start, end = day_bounds_utc(day)
    res = session.execute(
        delete(DividendRecord).where(
            DividendRecord.account_id == account_id,
            DividendRecord.created_at >= start,
            DividendRecord.created_at < end,
        )
    )
    session.commit()
    log.info("Deleted %d dividend records created on %s for account %s", res.rowcount, day, account_id)
    return int(res.rowcount or 0)


def delete_dividends_for_job(session: Session, *, job_id: int) -> int:
    res = session.execute(delete(DividendRecord).where(DividendRecord.import_job_id == job_id))
    session.commit()
    log.info("Deleted %d dividend records from import job %s", res.rowcount, job_id)
    return int(res.rowcount or 0)


def _null_or_zero(col):
    return or_(col.is_(None), col == 0)


def cleanup_empty_dividends(session: Session) -> int:
    """Remove dividend rows with no symbol or with no quantity, DPS or net amount."""
    res = session.execute(
        delete(DividendRecord).where(
            or_(
                DividendRecord.symbol.is_(None),
                DividendRecord.symbol == "",
                and_(
                    _null_or_zero(DividendRecord.quantity),
                    _null_or_zero(DividendRecord.dividend_per_share),
                    _null_or_zero(DividendRecord.net_dividend_amount),
                ),
            )
        )
    )
    session.commit()
    log.info("Deleted %d empty dividend records", res.rowcount)
    return int(res.rowcount or 0)


def import_jobs(
    session: Session,
    *,
    account_id: Optional[int] = None,
    kind: Optional[str] = None,
    limit: int = 100,
) -> list[ImportJob]:
    q = select(ImportJob)
    if account_id is not None:
        q = q.where(ImportJob.account_id == account_id)
    if kind:
        q = q.where(ImportJob.kind == kind)
    q = q.order_by(ImportJob.created_at.desc(), ImportJob.id.desc()).limit(limit)
    return list(session.execute(q).scalars())
