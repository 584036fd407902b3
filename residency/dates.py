# residency/dates.py

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional


_ISO_DATE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")


def _safe_date(y: int, m: int, d: int) -> Optional[date]:
    """Return None instead of raising ValueError for invalid dates (e.g., 2023-02-31)."""
    try:
        return date(y, m, d)
    except ValueError:
        return None


def parse_iso_date(text: Optional[str]) -> Optional[date]:
    """
    Parse a "YYYY-MM-DD" calendar date.

    Design decisions:
      - Dates are plain calendar dates (no time, no timezone), so interval
        arithmetic cannot drift by a day across UTC offsets
      - Invalid or unrecognized input NEVER crashes; it returns None
      - Year 0 and month/day 0 are rejected
    """
    if text is None:
        return None

    s = text.strip()
    if not s:
        return None

    m = _ISO_DATE.fullmatch(s)
    if not m:
        return None

    y, mo, d = map(int, m.groups())
    if y == 0:
        return None
    return _safe_date(y, mo, d)


def format_iso_date(d: date) -> str:
    return d.isoformat()


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def last_day_of_month(y: int, m: int) -> date:
    if m == 12:
        return date(y, 12, 31)
    return date(y, m + 1, 1) - timedelta(days=1)


def subtract_years(d: date, years: int) -> date:
    """
    Calendar-exact year subtraction.
    Month and day are preserved; a day that does not exist in the target
    month (Feb 29 -> non-leap year) clamps to that month's last day.
    """
    y = d.year - years
    clamped = _safe_date(y, d.month, d.day)
    if clamped is not None:
        return clamped
    return last_day_of_month(y, d.month)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
