from __future__ import annotations

from typing import Optional

from src.importers.base import ColumnMap, LedgerImporter, is_blank_or_zero, split_row
from src.importers.models import LedgerParseResult, ParsedDividendRecord

SECTION_TITLE = "Equity Dividends from"

DIVIDEND_COLUMNS = ColumnMap(
    {
        "Symbol": ("symbol", "text"),
        "ISIN": ("isin", "text"),
        "Ex-date": ("ex_date", "date"),
        "Quantity": ("quantity", "number"),
        "Dividend Per Share": ("dividend_per_share", "number"),
        "Net Dividend Amount": ("net_dividend_amount", "number"),
    }
)


def is_dividend_header(line: str) -> bool:
    return "Symbol" in line and "Dividend Per Share" in line


def _opens_section(line: str) -> bool:
    if SECTION_TITLE in line:
        return True
    return "Dividend" in line and "Symbol" not in line


def _is_summary_row(first_cell: str) -> bool:
    s = first_cell.strip()
    if not s or s == "Total Dividend Amount":
        return True
    low = s.lower()
    return "total" in low or "dividends are credited" in low


class ZerodhaDividendCSVImporter(LedgerImporter):
    """
    Zerodha dividend statement export.

    A title row ("Equity Dividends from ...") opens the section, a header row with
    Symbol and Dividend Per Share names the columns. Summary rows, footnotes and
    rows with no non-zero value are skipped.
    """

    format_name = "zerodha_dividend_csv"
    kind = "dividend"

    def detect(self, lines: list[str]) -> bool:
        return any(SECTION_TITLE in line or is_dividend_header(line) for line in lines)

    def parse_lines(self, lines: list[str]) -> LedgerParseResult:
        result = LedgerParseResult(kind=self.kind)
        in_section = False
        headers: Optional[list[str]] = None
        symbol_idx = 0

        for line_no, line in enumerate(lines, start=1):
            if is_dividend_header(line):
                # Some exports drop the title row; the header alone opens the section.
                in_section = True
                headers = split_row(line)
                symbol_idx = headers.index("Symbol") if "Symbol" in headers else 0
                continue
            if _opens_section(line):
                in_section = True
                continue
            if not in_section or "," not in line:
                continue

            cells = split_row(line)
            if len(cells) > 1 and cells[0] == "Symbol":
                headers = cells
                symbol_idx = 0
                continue
            if headers is None:
                continue

            result.rows_seen += 1
            first = cells[symbol_idx] if symbol_idx < len(cells) else ""
            if _is_summary_row(first):
                result.rows_skipped += 1
                continue
            if all(is_blank_or_zero(c) for i, c in enumerate(cells) if i != symbol_idx):
                result.rows_skipped += 1
                continue

            values = DIVIDEND_COLUMNS.map_row(headers, cells, result=result, line_no=line_no)
            symbol = values.pop("symbol", None)
            amounts = (values.get("quantity"), values.get("dividend_per_share"), values.get("net_dividend_amount"))
            if not symbol or not any(amounts):
                result.rows_skipped += 1
                continue
            result.records.append(ParsedDividendRecord(symbol=symbol, **values))

        return result
