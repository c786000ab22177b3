from __future__ import annotations

import datetime as dt
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, TypeVar

T = TypeVar("T")

DEFAULT_TOLERANCE = 0.005


def _exact(value: Any) -> Any:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, str):
        return value.strip()
    return value


def _numbers_equal(a: Optional[float], b: Optional[float], tolerance: float) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return abs(float(a) - float(b)) <= tolerance + 1e-9


@dataclass(frozen=True)
class DedupeKey:
    """
    Equality projection for ledger records.

    Two records are duplicates when every `exact` field matches and every
    `numeric` field is within the tolerance. Works on anything with those
    attributes: parsed records, request models and ORM rows alike.
    """

    exact: tuple[str, ...]
    numeric: tuple[str, ...]

    def bucket(self, obj: Any) -> tuple:
        return tuple(_exact(getattr(obj, f, None)) for f in self.exact)

    def matches(self, a: Any, b: Any, *, tolerance: float = DEFAULT_TOLERANCE) -> bool:
        if self.bucket(a) != self.bucket(b):
            return False
        return all(_numbers_equal(getattr(a, f, None), getattr(b, f, None), tolerance) for f in self.numeric)


PNL_DEDUPE_KEY = DedupeKey(
    exact=("symbol", "instrument_type", "entry_date", "exit_date"),
    numeric=("quantity", "buy_value", "sell_value", "profit"),
)

DIVIDEND_DEDUPE_KEY = DedupeKey(
    exact=("symbol", "isin", "ex_date"),
    numeric=("quantity", "dividend_per_share", "net_dividend_amount"),
)

DEDUPE_KEYS = {"pnl": PNL_DEDUPE_KEY, "dividend": DIVIDEND_DEDUPE_KEY}


class DuplicateIndex:
    def __init__(self, existing: Iterable[Any], key: DedupeKey, *, tolerance: float = DEFAULT_TOLERANCE):
        self.key = key
        self.tolerance = tolerance
        self._buckets: dict[tuple, list[Any]] = defaultdict(list)
        for row in existing:
            self._buckets[key.bucket(row)].append(row)

    def contains(self, candidate: Any) -> bool:
        rows = self._buckets.get(self.key.bucket(candidate), ())
        return any(self.key.matches(candidate, row, tolerance=self.tolerance) for row in rows)


def split_duplicates(
    candidates: Sequence[T],
    existing: Iterable[Any],
    key: DedupeKey,
    *,
    tolerance: float = DEFAULT_TOLERANCE,
) -> tuple[list[T], list[T]]:
    """Partition candidates into (fresh, duplicates) against the existing rows, preserving input order."""
    index = DuplicateIndex(existing, key, tolerance=tolerance)
    fresh: list[T] = []
    dupes: list[T] = []
    for c in candidates:
        (dupes if index.contains(c) else fresh).append(c)
    return fresh, dupes


def find_duplicates(
    candidates: Sequence[T],
    existing: Iterable[Any],
    key: DedupeKey,
    *,
    tolerance: float = DEFAULT_TOLERANCE,
) -> list[T]:
    return split_duplicates(candidates, existing, key, tolerance=tolerance)[1]
