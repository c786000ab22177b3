from __future__ import annotations

import csv
import datetime as dt
from abc import ABC, abstractmethod
from typing import Any, Optional

from src.importers.models import LedgerParseResult
from src.utils.money import parse_amount

_DATE_FORMATS = ("%d-%m-%Y", "%d/%m/%Y", "%d-%b-%Y", "%d %b %Y", "%Y/%m/%d")


def ledger_lines(content: str) -> list[str]:
    """Stripped, non-empty lines of a ledger export."""
    out: list[str] = []
    for raw in (content or "").splitlines():
        line = raw.strip()
        if line:
            out.append(line)
    return out


def split_row(line: str) -> list[str]:
    try:
        cells = next(csv.reader([line], skipinitialspace=True))
    except (csv.Error, StopIteration):
        cells = line.split(",")
    return [c.strip() for c in cells]


def parse_ledger_date(value: str) -> Optional[dt.date]:
    s = (value or "").strip()
    if not s:
        return None
    try:
        return dt.date.fromisoformat(s[:10])
    except ValueError:
        pass
    # Excel round-trips sometimes append a time part: "01-04-2023 00:00:00".
    candidates = [s, s.split()[0]] if " " in s else [s]
    for candidate in candidates:
        for fmt in _DATE_FORMATS:
            try:
                return dt.datetime.strptime(candidate, fmt).date()
            except ValueError:
                continue
    raise ValueError(f"Invalid date: {value!r}")


def is_blank_or_zero(value: str) -> bool:
    s = (value or "").strip()
    if not s:
        return True
    try:
        return parse_amount(s) == 0
    except ValueError:
        return False


class ColumnMap:
    """
    Header label -> record field, with the field's cell type.

    Unknown headers are ignored; blank cells map to None. A cell that doesn't
    parse as its type is recorded as a warning and also maps to None.
    """

    def __init__(self, columns: dict[str, tuple[str, str]]):
        self.columns = columns

    def map_row(
        self,
        headers: list[str],
        cells: list[str],
        *,
        result: LedgerParseResult,
        line_no: int,
    ) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for idx, header in enumerate(headers):
            column = self.columns.get(header)
            if column is None:
                continue
            name, kind = column
            raw = cells[idx] if idx < len(cells) else ""
            if not raw:
                continue
            try:
                if kind == "date":
                    out[name] = parse_ledger_date(raw)
                elif kind == "number":
                    out[name] = parse_amount(raw)
                else:
                    out[name] = raw
            except ValueError as e:
                result.warn(f"line {line_no}: {header}: {e}")
        return out


class LedgerImporter(ABC):
    format_name: str
    kind: str  # pnl|dividend

    @abstractmethod
    def detect(self, lines: list[str]) -> bool: ...

    @abstractmethod
    def parse_lines(self, lines: list[str]) -> LedgerParseResult: ...

    def parse(self, content: str) -> LedgerParseResult:
        return self.parse_lines(ledger_lines(content))
