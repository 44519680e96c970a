from __future__ import annotations

import math
from datetime import datetime, date, timezone
from typing import Any, Optional


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def round_half_up(v: float) -> int:
    # Python's round() is banker's rounding; crate counts expect 2.5 -> 3.
    return int(math.floor(float(v) + 0.5))


def to_float_or_none(v: Any) -> Optional[float]:
    if v is None:
        return None
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        raise ValueError(f"'{v}' is not a number.")
    if math.isnan(f):
        return None
    return f


def blank_to_none(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s if s else None


def iso_date(v: Any) -> Optional[str]:
    """Accepts a date, datetime or ISO string and returns YYYY-MM-DD (None for blanks)."""
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date().isoformat()
    if isinstance(v, date):
        return v.isoformat()
    s = str(v).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10]).isoformat()
    except ValueError:
        raise ValueError(f"'{s}' is not a valid date (YYYY-MM-DD).")
