from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, field_validator

from src.importers.base import parse_ledger_date
from src.importers.models import ParsedDividendRecord, ParsedPnLRecord
from src.utils.money import parse_amount


def _none_if_blank(v):
    if v is None:
        return None
    if isinstance(v, str) and v.strip() == "":
        return None
    return v


def _date_or_none(v):
    v = _none_if_blank(v)
    if isinstance(v, str):
        return parse_ledger_date(v)
    return v


def _amount_or_none(v):
    v = _none_if_blank(v)
    if isinstance(v, str):
        return parse_amount(v)
    return v


class PnLRecordIn(BaseModel):
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

    @field_validator("symbol", "instrument_type")
    @classmethod
    def _strip(cls, v: str) -> str:
        vv = v.strip()
        if not vv:
            raise ValueError("must not be blank")
        return vv

    @field_validator("isin", "period_of_holding", mode="before")
    @classmethod
    def _text_blank_to_none(cls, v):
        return _none_if_blank(v)

    @field_validator("entry_date", "exit_date", mode="before")
    @classmethod
    def _dates(cls, v):
        return _date_or_none(v)

    @field_validator(
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
        mode="before",
    )
    @classmethod
    def _amounts(cls, v):
        return _amount_or_none(v)

    def to_parsed(self) -> ParsedPnLRecord:
        return ParsedPnLRecord(**self.model_dump())


class DividendRecordIn(BaseModel):
    symbol: str
    isin: Optional[str] = None
    ex_date: Optional[dt.date] = None
    quantity: Optional[float] = None
    dividend_per_share: Optional[float] = None
    net_dividend_amount: Optional[float] = None

    @field_validator("symbol")
    @classmethod
    def _symbol(cls, v: str) -> str:
        vv = v.strip()
        if not vv:
            raise ValueError("must not be blank")
        return vv

    @field_validator("isin", mode="before")
    @classmethod
    def _isin_blank_to_none(cls, v):
        return _none_if_blank(v)

    @field_validator("ex_date", mode="before")
    @classmethod
    def _ex_date(cls, v):
        return _date_or_none(v)

    @field_validator("quantity", "dividend_per_share", "net_dividend_amount", mode="before")
    @classmethod
    def _amounts(cls, v):
        return _amount_or_none(v)

    def to_parsed(self) -> ParsedDividendRecord:
        return ParsedDividendRecord(**self.model_dump())


class PnLCheckDuplicatesRequest(BaseModel):
    records: list[PnLRecordIn]


class DividendCheckDuplicatesRequest(BaseModel):
    records: list[DividendRecordIn]


class UploadFromTempRequest(BaseModel):
    file_name: str
    account_id: int
    skip_duplicates: bool = False

    @field_validator("file_name")
    @classmethod
    def _plain_name(cls, v: str) -> str:
        vv = v.strip()
        if not vv or "/" in vv or "\\" in vv or vv in {".", ".."}:
            raise ValueError("file_name must be a plain file name")
        return vv
