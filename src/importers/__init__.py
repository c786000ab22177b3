from __future__ import annotations

from src.importers.base import LedgerImporter, ledger_lines
from src.importers.dividend_csv import ZerodhaDividendCSVImporter
from src.importers.models import LedgerParseResult
from src.importers.pnl_csv import ZerodhaPnLCSVImporter

DEFAULT_CLASSIFY_LINES = 50


def default_importers() -> list[LedgerImporter]:
    # Dividend first: a P&L export never carries dividend markers, the reverse isn't guaranteed.
    return [ZerodhaDividendCSVImporter(), ZerodhaPnLCSVImporter()]


def importer_for(kind: str) -> LedgerImporter:
    for imp in default_importers():
        if imp.kind == kind:
            return imp
    raise ValueError(f"Unknown ledger kind: {kind}")


def classify_ledger(content: str, *, max_lines: int = DEFAULT_CLASSIFY_LINES) -> str:
    """Return "dividend" or "pnl"; anything without dividend markers is treated as P&L."""
    head = ledger_lines(content)[:max_lines]
    for imp in default_importers():
        if imp.detect(head):
            return imp.kind
    return "pnl"


def parse_ledger(content: str, *, kind: str | None = None, max_lines: int = DEFAULT_CLASSIFY_LINES) -> LedgerParseResult:
    return importer_for(kind or classify_ledger(content, max_lines=max_lines)).parse(content)
