from __future__ import annotations

import datetime as dt

import pytest

from src.core import ledger_reports
from src.db.models import Account, DividendRecord, ImportJob, PnLRecord
from src.utils.time import UTC


def _pnl(account_id: int, symbol: str, instrument_type: str = "Equity - Short Term", **kw) -> PnLRecord:
    return PnLRecord(account_id=account_id, symbol=symbol, instrument_type=instrument_type, **kw)


def test_family_rollup_merges_accounts(session):
    a = Account(name="Ravi", family="Sharma")
    b = Account(name="Meera", family="Sharma")
    c = Account(name="Solo")
    session.add_all([a, b, c])
    session.flush()
    session.add_all(
        [
            _pnl(a.id, "TCS", quantity=5, profit=100.0, brokerage=1.0),
            _pnl(b.id, "TCS", quantity=3, profit=-20.0),
            _pnl(a.id, None, isin="INE009A01021", quantity=1, profit=5.0),
            _pnl(c.id, "TCS", quantity=100, profit=1000.0),
        ]
    )
    session.commit()

    rows = {r.symbol: r for r in ledger_reports.family_pnl_records(session)}
    assert set(rows) == {"TCS", "INE009A01021"}
    tcs = rows["TCS"]
    assert tcs.totals["quantity"] == 8
    assert tcs.totals["profit"] == pytest.approx(80.0)
    assert tcs.totals["brokerage"] == pytest.approx(1.0)
    assert [acct["name"] for acct in tcs.accounts] == ["Ravi", "Meera"]
    assert tcs.as_dict()["id"] == "Sharma-TCS-Equity - Short Term"

    assert ledger_reports.family_pnl_records(session, family="Nobody") == []

    summary = ledger_reports.pnl_summary(session, family="Sharma")
    assert summary == [
        {
            "instrument_type": "Equity - Short Term",
            "count": 3,
            "sums": {**{f: 0.0 for f in ledger_reports.PNL_SUM_FIELDS}, "quantity": 9.0, "profit": 85.0, "brokerage": 1.0},
        }
    ]


def test_delete_by_creation_day(session, account):
    today = dt.datetime(2024, 3, 10, 9, 0, tzinfo=UTC)
    yesterday = today - dt.timedelta(days=1)
    session.add_all(
        [
            _pnl(account.id, "TCS", created_at=today),
            _pnl(account.id, "ITC", created_at=yesterday),
            DividendRecord(account_id=account.id, symbol="ITC", quantity=1, created_at=today),
            DividendRecord(account_id=account.id, symbol="INFY", quantity=1, created_at=yesterday),
        ]
    )
    session.commit()

    uploads = ledger_reports.pnl_uploads(session, account_id=account.id)
    assert [u["id"] for u in uploads] == ["2024-03-10", "2024-03-09"]

    assert ledger_reports.delete_pnl_created_on(session, account_id=account.id, day=today.date()) == 1
    assert ledger_reports.delete_dividends_created_on(session, account_id=account.id, day=yesterday.date()) == 1
    assert [r.symbol for r in ledger_reports.pnl_records(session, account_id=account.id)] == ["ITC"]
    assert [r.symbol for r in ledger_reports.dividend_records(session, account_id=account.id)] == ["ITC"]


def test_cleanup_empty_dividends(session, account):
    session.add_all(
        [
            DividendRecord(account_id=account.id, symbol="", quantity=5),
            DividendRecord(account_id=account.id, symbol=None, net_dividend_amount=1),
            DividendRecord(account_id=account.id, symbol="ZERO", quantity=0, dividend_per_share=0, net_dividend_amount=0),
            DividendRecord(account_id=account.id, symbol="NULLS"),
            DividendRecord(account_id=account.id, symbol="KEEP", net_dividend_amount=12.5),
        ]
    )
    session.commit()
    assert ledger_reports.cleanup_empty_dividends(session) == 4
    assert [r.symbol for r in ledger_reports.dividend_records(session, account_id=account.id)] == ["KEEP"]


def test_import_jobs_filter_and_order(session, account):
    session.add_all(
        [
            ImportJob(account_id=account.id, file_name="a.csv", kind="pnl"),
            ImportJob(account_id=account.id, file_name="b.csv", kind="dividend"),
        ]
    )
    session.commit()
    assert [j.file_name for j in ledger_reports.import_jobs(session, account_id=account.id)] == ["b.csv", "a.csv"]
    assert [j.file_name for j in ledger_reports.import_jobs(session, kind="pnl")] == ["a.csv"]
