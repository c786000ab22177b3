from __future__ import annotations

import csv
import io
from pathlib import Path

import pandas as pd
from fastapi import BackgroundTasks, UploadFile

from src.app.routes import imports as import_routes
from src.app.routes import pnl as pnl_routes
from src.importers import classify_ledger, parse_ledger
from src.importers.excel import extract_excel_sheets, safe_sheet_file_name, used_range


def _rows(content: str) -> list[list[str]]:
    return [row for row in csv.reader(io.StringIO(content))]


def _workbook(path: Path, sheets: dict[str, str]) -> Path:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, content in sheets.items():
            pd.DataFrame(_rows(content)).to_excel(writer, sheet_name=name, header=False, index=False)
    return path


def test_safe_sheet_file_name():
    assert safe_sheet_file_name("taxpnl-ZH5597", "Equity/Dividends: FY24") == "taxpnl-ZH5597-Equity_Dividends_ FY24.csv"


def test_extract_each_sheet_to_csv(tmp_path, pnl_csv, dividend_csv):
    book = _workbook(tmp_path / "taxpnl.xlsx", {"Equity": pnl_csv, "Equity Dividends": dividend_csv})
    out_dir = tmp_path / "temp"

    sheets = extract_excel_sheets(book, out_dir)

    assert [s.name for s in sheets] == ["taxpnl-Equity.csv", "taxpnl-Equity Dividends.csv"]
    assert not book.exists()
    assert classify_ledger(sheets[0].path.read_text()) == "pnl"
    assert classify_ledger(sheets[1].path.read_text()) == "dividend"


def test_extract_can_keep_workbook(tmp_path, pnl_csv):
    book = _workbook(tmp_path / "book.xlsx", {"Equity": pnl_csv})
    sheets = extract_excel_sheets(book, tmp_path, delete_source=False)
    assert book.exists()
    assert len(sheets) == 1


def test_extract_excel_route(tmp_path, ingest_service, ledger_config, pnl_csv):
    book = _workbook(tmp_path / "taxpnl.xlsx", {"Equity": pnl_csv})
    up = UploadFile(io.BytesIO(book.read_bytes()), filename="taxpnl.xlsx")

    resp = pnl_routes.pnl_extract_excel(service=ingest_service, file=up)

    assert resp["extracted_files"] == [{"name": "taxpnl-Equity.csv", "sheet_name": "Equity"}]
    assert (ledger_config.temp_path / "taxpnl-Equity.csv").exists()


def test_import_ledger_splits_workbooks(tmp_path, session, ingest_service, account, pnl_csv, dividend_csv):
    book = _workbook(tmp_path / "taxpnl.xlsx", {"Equity": pnl_csv, "Equity Dividends": dividend_csv})
    tasks = BackgroundTasks()

    resp = import_routes.imports_ledger(
        background_tasks=tasks,
        session=session,
        service=ingest_service,
        account_id=account.id,
        skip_duplicates=True,
        files=[UploadFile(io.BytesIO(book.read_bytes()), filename="taxpnl.xlsx")],
    )
    for task in tasks.tasks:
        task.func(*task.args, **task.kwargs)

    assert [j["file_name"] for j in resp["jobs"]] == ["taxpnl-Equity.csv", "taxpnl-Equity Dividends.csv"]
    jobs = {j["file_name"]: j for j in import_routes.imports_jobs(session=session, account_id=account.id, kind=None)}
    assert jobs["taxpnl-Equity.csv"]["kind"] == "pnl"
    assert jobs["taxpnl-Equity.csv"]["inserted_count"] == 4
    assert jobs["taxpnl-Equity Dividends.csv"]["kind"] == "dividend"
    assert jobs["taxpnl-Equity Dividends.csv"]["inserted_count"] == 2


def test_extract_trims_blank_leading_rows_and_columns(tmp_path, pnl_csv):
    book = tmp_path / "offset.xlsx"
    with pd.ExcelWriter(book, engine="openpyxl") as writer:
        pd.DataFrame(_rows(pnl_csv)).to_excel(writer, sheet_name="Equity", header=False, index=False, startrow=1, startcol=1)

    sheets = extract_excel_sheets(book, tmp_path / "temp")
    lines = sheets[0].path.read_text().splitlines()

    assert any(line.startswith("Equity - Intraday") for line in lines)
    result = parse_ledger(sheets[0].path.read_text())
    assert result.kind == "pnl"
    assert len(result.records) == 4


def test_used_range_keeps_inner_blank_columns():
    df = pd.DataFrame([["", "", "", ""], ["", "a", "", "b"], ["", "", "", ""]])
    trimmed = used_range(df)
    assert trimmed.values.tolist() == [["a", "", "b"]]
    assert used_range(pd.DataFrame([["", " "]])).empty
