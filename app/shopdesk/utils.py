from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

# Leading number of a string, the way a lenient float parse reads it ("12.5kg" -> 12.5).
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

ZERO = Decimal("0")
CENTS = Decimal("0.01")

# Amounts of 10**15 or more count as zero. Keeps any realistic sum
# of loans inside the default 28-digit context when quantized to cents.
MAX_AMOUNT_DIGITS = 15


def utcnow() -> datetime:
    """Naive UTC now, matching the DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _bounded(amount: Decimal) -> Decimal:
    # adjusted() is context-free; abs() would overflow on "1e1000000".
    if not amount.is_finite() or amount.adjusted() >= MAX_AMOUNT_DIGITS:
        return ZERO
    return amount


def parse_amount(value: Any) -> Decimal:
    """
    Parse a loosely typed amount. Anything that does not start with a finite
    number (None, "", "abc", NaN, booleans) counts as zero, and so does a
    number too large to be a real amount ("1e30").
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return _bounded(value)
    if isinstance(value, int):
        return _bounded(Decimal(value))
    if isinstance(value, float):
        return _bounded(Decimal(repr(value))) if math.isfinite(value) else ZERO
    m = _LEADING_NUMBER.match(str(value).lstrip())
    if not m:
        return ZERO
    try:
        parsed = Decimal(m.group(0))
    except InvalidOperation:
        return ZERO
    return _bounded(parsed)


def quantize_money(amount: Decimal) -> Decimal:
    """Two decimals, half-up, for both the screen and the API."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal, label: str = "RS") -> str:
    return f"{label} {quantize_money(amount)}"


def parse_timestamp(value: Any) -> datetime | None:
    """
    Accepts a datetime, an ISO-8601 string, or epoch milliseconds.
    Returns a naive UTC datetime, or None when the value can't be read.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return parse_timestamp(datetime.fromisoformat(text))
    except ValueError:
        return None
