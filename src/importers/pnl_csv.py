from __future__ import annotations

from typing import Optional

from src.importers.base import ColumnMap, LedgerImporter, split_row
from src.importers.models import LedgerParseResult, ParsedPnLRecord

# Section title rows in the Tax P&L export; a row starting with one opens a new instrument type.
INSTRUMENT_TYPES = (
    "Equity - Intraday",
    "Equity - Short Term",
    "Equity - Long Term",
    "Equity - Buyback",
    "Non Equity",
    "Mutual Funds",
    "F&O",
    "Currency",
    "Commodity",
)

PNL_COLUMNS = ColumnMap(
    {
        "Symbol": ("symbol", "text"),
        "ISIN": ("isin", "text"),
        "Entry Date": ("entry_date", "date"),
        "Exit Date": ("exit_date", "date"),
        "Quantity": ("quantity", "number"),
        "Buy Value": ("buy_value", "number"),
        "Sell Value": ("sell_value", "number"),
        "Profit": ("profit", "number"),
        "Period of Holding": ("period_of_holding", "text"),
        "Fair Market Value": ("fair_market_value", "number"),
        "Taxable Profit": ("taxable_profit", "number"),
        "Turnover": ("turnover", "number"),
        "Brokerage": ("brokerage", "number"),
        "Exchange Transaction Charges": ("exchange_transaction_charges", "number"),
        "IPFT": ("ipft", "number"),
        "SEBI Charges": ("sebi_charges", "number"),
        "CGST": ("cgst", "number"),
        "SGST": ("sgst", "number"),
        "IGST": ("igst", "number"),
        "Stamp Duty": ("stamp_duty", "number"),
        "STT": ("stt", "number"),
    }
)


def section_marker(line: str) -> Optional[str]:
    for marker in INSTRUMENT_TYPES:
        if line.startswith(marker):
            return marker
    return None


def _is_header(cells: list[str]) -> bool:
    return len(cells) > 1 and cells[0] == "Symbol"


class ZerodhaPnLCSVImporter(LedgerImporter):
    """
    Zerodha Tax P&L export.

    The file is a sequence of sections. Each opens with an instrument-type title
    row, followed by a column header row (the first row whose first cell is
    "Symbol") and then trade rows until the next title. Rows outside a section,
    rows before the section's header and rows with a blank symbol are skipped.
    """

    format_name = "zerodha_pnl_csv"
    kind = "pnl"

    def detect(self, lines: list[str]) -> bool:
        return any(section_marker(line) for line in lines)

    def parse_lines(self, lines: list[str]) -> LedgerParseResult:
        result = LedgerParseResult(kind=self.kind)
        section: Optional[str] = None
        headers: Optional[list[str]] = None

        for line_no, line in enumerate(lines, start=1):
            marker = section_marker(line)
            if marker is not None:
                section = marker
                headers = None
                continue
            if section is None or "," not in line:
                continue

            cells = split_row(line)
            if headers is None:
                if _is_header(cells):
                    headers = cells
                continue

            result.rows_seen += 1
            values = PNL_COLUMNS.map_row(headers, cells, result=result, line_no=line_no)
            symbol = values.pop("symbol", None)
            if not symbol:
                result.rows_skipped += 1
                continue
            result.records.append(ParsedPnLRecord(instrument_type=section, symbol=symbol, **values))

        return result
