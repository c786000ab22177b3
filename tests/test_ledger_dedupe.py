from __future__ import annotations

import datetime as dt
import random

from src.core.dedupe import DIVIDEND_DEDUPE_KEY, PNL_DEDUPE_KEY, find_duplicates, split_duplicates
from src.importers.models import ParsedDividendRecord, ParsedPnLRecord


def _pnl(symbol: str, qty: float = 10, profit: float = 100.0, **kw) -> ParsedPnLRecord:
    base = dict(
        instrument_type="Equity - Short Term",
        symbol=symbol,
        entry_date=dt.date(2023, 5, 2),
        exit_date=dt.date(2023, 9, 18),
        quantity=qty,
        buy_value=1000.0,
        sell_value=1000.0 + profit,
        profit=profit,
    )
    base.update(kw)
    return ParsedPnLRecord(**base)


def test_exact_match_is_duplicate():
    existing = [_pnl("TCS")]
    fresh, dupes = split_duplicates([_pnl("TCS"), _pnl("INFY")], existing, PNL_DEDUPE_KEY)
    assert [r.symbol for r in dupes] == ["TCS"]
    assert [r.symbol for r in fresh] == ["INFY"]


def test_numeric_tolerance():
    existing = [_pnl("TCS", profit=100.0)]
    assert find_duplicates([_pnl("TCS", profit=100.004)], existing, PNL_DEDUPE_KEY) != []
    assert find_duplicates([_pnl("TCS", profit=100.02)], existing, PNL_DEDUPE_KEY) == []
    assert find_duplicates([_pnl("TCS", profit=100.02)], existing, PNL_DEDUPE_KEY, tolerance=0.05) != []


def test_exact_fields_must_match():
    existing = [_pnl("TCS")]
    assert find_duplicates([_pnl("TCS", instrument_type="Equity - Intraday")], existing, PNL_DEDUPE_KEY) == []
    assert find_duplicates([_pnl("TCS", exit_date=dt.date(2023, 9, 19))], existing, PNL_DEDUPE_KEY) == []


def test_missing_values_only_match_missing():
    existing = [_pnl("TCS", quantity=None)]
    assert find_duplicates([_pnl("TCS", quantity=None)], existing, PNL_DEDUPE_KEY) != []
    assert find_duplicates([_pnl("TCS", quantity=0)], existing, PNL_DEDUPE_KEY) == []


def test_flags_do_not_depend_on_candidate_order():
    existing = [_pnl("TCS"), _pnl("ITC", qty=100), _pnl("SBIN", profit=-50.0)]
    candidates = [
        _pnl("TCS"),
        _pnl("ITC", qty=100),
        _pnl("ITC", qty=101),
        _pnl("SBIN", profit=-50.0),
        _pnl("HDFCBANK"),
        _pnl("TCS"),
    ]
    baseline = {id(c) for c in find_duplicates(candidates, existing, PNL_DEDUPE_KEY)}
    rng = random.Random(7)
    for _ in range(10):
        shuffled = list(candidates)
        rng.shuffle(shuffled)
        assert {id(c) for c in find_duplicates(shuffled, existing, PNL_DEDUPE_KEY)} == baseline
    assert len(baseline) == 4


def test_dividend_key_uses_isin_and_ex_date():
    a = ParsedDividendRecord(symbol="ITC", isin="INE154A01025", ex_date=dt.date(2023, 5, 31), quantity=100, dividend_per_share=6.75, net_dividend_amount=675)
    b = ParsedDividendRecord(symbol="ITC", isin="INE154A01025", ex_date=dt.date(2023, 5, 31), quantity=100, dividend_per_share=6.75, net_dividend_amount=675.001)
    c = ParsedDividendRecord(symbol="ITC", isin=None, ex_date=dt.date(2023, 5, 31), quantity=100, dividend_per_share=6.75, net_dividend_amount=675)
    assert DIVIDEND_DEDUPE_KEY.matches(a, b)
    assert not DIVIDEND_DEDUPE_KEY.matches(a, c)


def test_datetime_and_date_compare_by_calendar_day():
    class Row:
        symbol = "TCS"
        instrument_type = "Equity - Short Term"
        entry_date = dt.datetime(2023, 5, 2, 0, 0)
        exit_date = dt.date(2023, 9, 18)
        quantity = 10
        buy_value = 1000.0
        sell_value = 1100.0
        profit = 100.0

    assert find_duplicates([_pnl("TCS")], [Row()], PNL_DEDUPE_KEY) != []
