from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from services.calculation.engine import Ratio, RatioMarker

Number = Union[int, float, Decimal]


def _dec(v: Number) -> Decimal:
    return v if isinstance(v, Decimal) else Decimal(str(v))


def _plain(v: Number) -> str:
    # 0.1700 -> "0.17", 100.0 -> "100"
    d = _dec(v).normalize()
    return format(d, "f")


def format_currency(amount: Number) -> str:
    """US dollars, no cents: 34100.4 -> '$34,100', -1250 -> '-$1,250'."""
    d = _dec(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if d < 0 else ""
    return f"{sign}${abs(int(d)):,}"


def format_count(n: int) -> str:
    return f"{int(n):,}"


def format_percentage(v: Number) -> str:
    d = _dec(v).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{d}%"


def format_rate(v: Number) -> str:
    return f"{_plain(v)}%"


def format_hours(v: Number) -> str:
    return f"{_plain(v)} hours"


def format_months(n: int) -> str:
    return f"{int(n)} months"


def format_payback(v: Ratio) -> str:
    if v is RatioMarker.UNDEFINED:
        return "n/a"
    d = _dec(v).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{d} months"


def format_roi(v: Ratio) -> str:
    if v is RatioMarker.UNDEFINED:
        return "n/a"
    if v is RatioMarker.UNBOUNDED:
        return "Unbounded"
    if v is RatioMarker.NEGATIVE_UNBOUNDED:
        return "Unbounded loss"
    return format_percentage(v)
