from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


def parse_amount(value: Any) -> float | None:
    """
    Ledger cell -> float.

    - blank / None -> None
    - "1,234.50" -> 1234.5 (thousands separators and a leading rupee sign are ignored)
    - anything else non-numeric -> ValueError
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return float(int(value))
    if isinstance(value, (int, float)):
        f = float(value)
        if math.isnan(f):
            return None
        return f
    s = str(value).strip()
    if not s:
        return None
    s = s.replace(",", "").replace("₹", "").strip()
    try:
        f = float(Decimal(s))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if math.isnan(f) or math.isinf(f):
        raise ValueError(f"Invalid amount: {value!r}")
    return f


def format_inr(value: Any, digits: int = 2, dash: str = "-") -> str:
    """
    CLI-friendly INR formatter.

    - `None` -> dash
    - numeric -> "₹1,234.56" (western grouping)
    """
    if value is None:
        return dash
    try:
        d = Decimal(str(value))
    except InvalidOperation:
        s = str(value).strip()
        return s if s else dash

    digits = max(0, int(digits))
    q = Decimal(1) if digits == 0 else Decimal("1").scaleb(-digits)
    d = d.quantize(q, rounding=ROUND_HALF_UP)

    sign = "-" if d < 0 else ""
    d_abs = -d if d < 0 else d
    return f"{sign}₹{d_abs:,.{digits}f}"
