from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Union


@dataclass(frozen=True)
class ParsedPnLRecord:
    instrument_type: str
    symbol: str
    isin: Optional[str] = None
    entry_date: Optional[dt.date] = None
    exit_date: Optional[dt.date] = None
    quantity: Optional[float] = None
    buy_value: Optional[float] = None
    sell_value: Optional[float] = None
    profit: Optional[float] = None
    period_of_holding: Optional[str] = None
    fair_market_value: Optional[float] = None
    taxable_profit: Optional[float] = None
    turnover: Optional[float] = None
    brokerage: Optional[float] = None
    exchange_transaction_charges: Optional[float] = None
    ipft: Optional[float] = None
    sebi_charges: Optional[float] = None
    cgst: Optional[float] = None
    sgst: Optional[float] = None
    igst: Optional[float] = None
    stamp_duty: Optional[float] = None
    stt: Optional[float] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ParsedDividendRecord:
    symbol: str
    isin: Optional[str] = None
    ex_date: Optional[dt.date] = None
    quantity: Optional[float] = None
    dividend_per_share: Optional[float] = None
    net_dividend_amount: Optional[float] = None

    @property
    def instrument_type(self) -> str:
        # Dividend exports have a single section; reports group them under one label.
        return "Dividend"

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


ParsedRecord = Union[ParsedPnLRecord, ParsedDividendRecord]


@dataclass
class LedgerParseResult:
    kind: str  # pnl|dividend
    records: list[ParsedRecord] = field(default_factory=list)
    rows_seen: int = 0
    rows_skipped: int = 0
    warning_count: int = 0
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str, *, keep: int = 20) -> None:
        self.warning_count += 1
        if len(self.warnings) < keep:
            self.warnings.append(message)
