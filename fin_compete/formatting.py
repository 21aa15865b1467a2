# fin_compete/formatting.py
"""Display helpers for the loosely formatted strings the model returns."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

_CURRENCY_SYMBOLS = ("$", "€", "£", "¥")
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]+")
# Leading number, the way a lenient float parser reads "12.5abc" as 12.5
_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")
_CENTS = Decimal("0.01")


def _leading_decimal(text: str) -> Optional[Decimal]:
    m = _LEADING_NUMBER_RE.match(text)
    if not m:
        return None
    try:
        return Decimal(m.group(1))
    except InvalidOperation:
        return None


def _round_cents(num: Decimal) -> Optional[Decimal]:
    try:
        return num.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None


def format_currency(value: Union[str, float, int, None]) -> str:
    """'1234.5' → '$1,234.50'; already-symbolled values pass through; '' → '-'."""
    if not value:
        return "-"
    s = str(value)
    if any(sym in s for sym in _CURRENCY_SYMBOLS):
        return s

    num = _leading_decimal(_NON_NUMERIC_RE.sub("", s))
    if num is None:
        return s

    num = _round_cents(num)
    if num is None:
        return s
    sign = "-" if num < 0 else ""
    return f"{sign}${abs(num):,.2f}"


def clean_percentage(value: Union[str, float, int, None]) -> str:
    """'12.345' → '12.35%'; values with '%' pass through; unparseable → unchanged."""
    if not value:
        return "-"
    s = str(value)
    if "%" in s:
        return s

    num = _leading_decimal(s)
    if num is not None:
        num = _round_cents(num)
    if num is None:
        return s
    return f"{num}%"
