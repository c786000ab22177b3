from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

log = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*]')


@dataclass(frozen=True)
class ExtractedSheet:
    name: str
    path: Path
    sheet_name: str


def safe_sheet_file_name(workbook_stem: str, sheet_name: str) -> str:
    return f"{workbook_stem}-{_UNSAFE_CHARS.sub('_', sheet_name).strip()}.csv"


def used_range(df: pd.DataFrame) -> pd.DataFrame:
    """Drop the blank rows and columns around the data, like a worksheet's used range."""
    if df.empty:
        return df
    filled = df.apply(lambda col: col.str.strip().ne(""))
    rows = filled.any(axis=1).to_numpy()
    cols = filled.any(axis=0).to_numpy()
    if not rows.any():
        return df.iloc[0:0, 0:0]
    first_row, last_row = rows.argmax(), len(rows) - rows[::-1].argmax()
    first_col, last_col = cols.argmax(), len(cols) - cols[::-1].argmax()
    return df.iloc[first_row:last_row, first_col:last_col]


def extract_excel_sheets(
    path: Path,
    out_dir: Path,
    *,
    stem: str | None = None,
    delete_source: bool = True,
) -> list[ExtractedSheet]:
    """
    Write each worksheet of an Excel workbook to its own CSV file in `out_dir`.

    Cells are read as text so the CSV mirrors what the broker export shows,
    trimmed to the used range so section titles start each line. A sheet that
    fails to convert is logged and skipped; the workbook file is removed
    afterwards when `delete_source` is set.
    """
    path = Path(path)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    base = stem or path.stem

    extracted: list[ExtractedSheet] = []
    try:
        with pd.ExcelFile(path) as xls:
            sheet_names = [str(s) for s in xls.sheet_names]
            log.info("Extracting %d worksheet(s) from %s", len(sheet_names), path.name)
            for sheet_name in sheet_names:
                try:
                    df = pd.read_excel(xls, sheet_name=sheet_name, header=None, dtype=str).fillna("")
                    df = used_range(df)
                    file_name = safe_sheet_file_name(base, sheet_name)
                    csv_path = out_dir / file_name
                    df.to_csv(csv_path, index=False, header=False)
                except Exception:
                    log.exception("Failed to extract sheet %r from %s", sheet_name, path.name)
                    continue
                extracted.append(ExtractedSheet(name=file_name, path=csv_path, sheet_name=sheet_name))
    finally:
        if delete_source:
            path.unlink(missing_ok=True)
    return extracted
