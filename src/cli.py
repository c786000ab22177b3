from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

app = typer.Typer(help="Portfolio ledger CLI")


def _setup() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _service():
    from src.core.ledger_config import load_ledger_config
    from src.core.ledger_ingest import LedgerIngestService
    from src.db.init_db import init_db
    from src.db.session import get_session_factory

    init_db()
    cfg, cfg_path = load_ledger_config()
    if cfg_path:
        typer.echo(f"Using config {cfg_path}", err=True)
    return LedgerIngestService(get_session_factory(), cfg)


def _echo_json(payload) -> None:
    from src.app.utils import jsonable

    typer.echo(json.dumps(jsonable(payload), indent=2))


@app.command("init-db")
def init_db_cmd(reset: bool = typer.Option(False, help="Drop all ledger tables first")):
    _setup()
    from src.db.init_db import init_db
    from src.db.session import get_database_url

    if reset:
        typer.confirm(f"Drop every ledger table in {get_database_url()}?", abort=True)
    init_db(reset=reset)
    typer.echo("Database ready.")


@app.command("create-account")
def create_account_cmd(
    name: str = typer.Option(...),
    family: Optional[str] = typer.Option(None, help="Family grouping for rollups"),
    broker: str = typer.Option("ZERODHA"),
    description: Optional[str] = typer.Option(None),
):
    _setup()
    from sqlalchemy.exc import IntegrityError

    from src.db.models import Account

    svc = _service()
    with svc.session_factory() as session:
        acct = Account(name=name.strip(), family=(family or "").strip() or None, broker=broker.upper(), description=description)
        session.add(acct)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            typer.echo(f"Account already exists: {name}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Created account id={acct.id} name={acct.name}")


@app.command("accounts")
def accounts_cmd():
    _setup()
    from sqlalchemy import select

    from src.db.models import Account

    svc = _service()
    with svc.session_factory() as session:
        for acct in session.execute(select(Account).order_by(Account.id)).scalars():
            typer.echo(f"{acct.id}\t{acct.name}\t{acct.family or '-'}\t{acct.broker}")


@app.command("classify")
def classify_cmd(path: Path = typer.Argument(..., exists=True, dir_okay=False)):
    _setup()
    from src.core.ledger_config import load_ledger_config
    from src.core.ledger_ingest import read_ledger_text
    from src.importers import classify_ledger

    cfg, _ = load_ledger_config()
    typer.echo(classify_ledger(read_ledger_text(path), max_lines=cfg.classify_lines))


@app.command("parse")
def parse_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False),
    kind: Optional[str] = typer.Option(None, help="pnl|dividend (default: classify)"),
    show_records: bool = typer.Option(False, help="Print every parsed record"),
):
    _setup()
    from src.core.ledger_ingest import read_ledger_text
    from src.importers import parse_ledger

    result = parse_ledger(read_ledger_text(path), kind=kind)
    payload = {
        "kind": result.kind,
        "records": len(result.records),
        "rows_seen": result.rows_seen,
        "rows_skipped": result.rows_skipped,
        "warning_count": result.warning_count,
        "warnings": result.warnings,
    }
    if show_records:
        payload["parsed"] = result.records
    _echo_json(payload)


@app.command("check-duplicates")
def check_duplicates_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False),
    account_id: int = typer.Option(...),
    kind: Optional[str] = typer.Option(None, help="pnl|dividend (default: classify)"),
):
    _setup()
    from src.core.ledger_ingest import UnknownAccountError, read_ledger_text

    svc = _service()
    with svc.session_factory() as session:
        try:
            preview = svc.preview(session, account_id=account_id, content=read_ledger_text(path), kind=kind)
        except UnknownAccountError as e:
            typer.echo(str(e), err=True)
            raise typer.Exit(code=2)
    payload = preview.as_dict()
    payload.pop("records")
    _echo_json(payload)


@app.command("import-ledger")
def import_ledger_cmd(
    paths: list[Path] = typer.Argument(..., exists=True, dir_okay=False),
    account_id: int = typer.Option(...),
    kind: Optional[str] = typer.Option(None, help="pnl|dividend (default: classify)"),
    skip_duplicates: bool = typer.Option(False, help="Skip rows already stored for the account"),
):
    """Import CSV exports (or Excel workbooks, one job per sheet) synchronously."""
    _setup()
    from src.core.ledger_ingest import UnknownAccountError
    from src.importers.excel import extract_excel_sheets

    svc = _service()
    failed = False
    for path in paths:
        if svc.config.is_excel(path.name):
            # Copy first; extraction removes the workbook it reads.
            copy = svc.store_upload(path.name, path.read_bytes())
            targets = [s.path for s in extract_excel_sheets(copy, svc.config.temp_path, stem=path.stem)]
            keep_source = False
        else:
            targets = [path]
            keep_source = True
        for target in targets:
            try:
                job = svc.import_file(
                    target,
                    account_id=account_id,
                    kind=kind,
                    skip_duplicates=skip_duplicates,
                    keep_source=keep_source,
                )
            except UnknownAccountError as e:
                typer.echo(str(e), err=True)
                raise typer.Exit(code=2)
            typer.echo(
                f"{job.file_name}: {job.status} kind={job.kind} parsed={job.parsed_count} "
                f"inserted={job.inserted_count} duplicates={job.duplicate_count} skipped={job.skipped_count}"
            )
            if job.status != "SUCCEEDED":
                failed = True
                typer.echo(f"  error: {job.error_text}", err=True)
    if failed:
        raise typer.Exit(code=1)


@app.command("extract-excel")
def extract_excel_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False),
    out: Optional[Path] = typer.Option(None, help="Output directory (default: next to the workbook)"),
):
    _setup()
    from src.importers.excel import extract_excel_sheets

    sheets = extract_excel_sheets(path, out or path.parent, delete_source=False)
    for s in sheets:
        typer.echo(f"Wrote {s.path} ({s.sheet_name})")


@app.command("jobs")
def jobs_cmd(
    account_id: Optional[int] = typer.Option(None),
    limit: int = typer.Option(20),
):
    _setup()
    from src.core.ledger_reports import import_jobs

    svc = _service()
    with svc.session_factory() as session:
        for job in import_jobs(session, account_id=account_id, limit=limit):
            typer.echo(
                f"{job.id}\t{job.status}\t{job.kind or '-'}\t{job.file_name}\t"
                f"inserted={job.inserted_count} duplicates={job.duplicate_count} skipped={job.skipped_count}"
            )


@app.command("delete-day")
def delete_day_cmd(
    account_id: int = typer.Option(...),
    day: str = typer.Option(..., help="YYYY-MM-DD the records were stored (UTC)"),
    kind: str = typer.Option("pnl", help="pnl|dividend"),
    yes: bool = typer.Option(False, "--yes", help="Skip confirmation"),
):
    """Delete the records an account stored on one day."""
    _setup()
    import datetime as dt

    from src.core.ledger_reports import delete_dividends_created_on, delete_pnl_created_on

    try:
        d = dt.date.fromisoformat(day)
    except ValueError:
        typer.echo("--day must be YYYY-MM-DD", err=True)
        raise typer.Exit(code=2)
    if kind not in {"pnl", "dividend"}:
        typer.echo("--kind must be pnl or dividend", err=True)
        raise typer.Exit(code=2)
    if not yes:
        typer.confirm(f"Delete {kind} records stored on {d} for account {account_id}?", abort=True)

    svc = _service()
    with svc.session_factory() as session:
        fn = delete_pnl_created_on if kind == "pnl" else delete_dividends_created_on
        deleted = fn(session, account_id=account_id, day=d)
    typer.echo(f"Deleted {deleted} {kind} records.")


@app.command("summary")
def summary_cmd(account_id: int = typer.Option(...)):
    _setup()
    from src.core.ledger_reports import pnl_summary
    from src.utils.money import format_inr

    svc = _service()
    with svc.session_factory() as session:
        rows = pnl_summary(session, account_id=account_id)
    if not rows:
        typer.echo("No P&L records.")
        return
    for row in rows:
        sums = row["sums"]
        typer.echo(
            f"{row['instrument_type']:<22} n={row['count']:<5} profit={format_inr(sums['profit'])} "
            f"buy={format_inr(sums['buy_value'])} sell={format_inr(sums['sell_value'])}"
        )


if __name__ == "__main__":
    app()
