# residency/gaps.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Tuple

from .dates import add_days, parse_iso_date, subtract_years, utc_today
from .exceptions import InvalidRangeError
from .logging import get_logger
from .models import Address

logger = get_logger(__name__)

RECENT_YEARS = 3


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar-date range."""
    start: date
    end: date

    @classmethod
    def from_strings(cls, start: str, end: str) -> "DateRange":
        start_value = parse_iso_date(start)
        end_value = parse_iso_date(end)
        if start_value is None or end_value is None:
            raise InvalidRangeError(f"Invalid date range: {start!r} to {end!r}")
        return cls(start_value, end_value)

    @property
    def is_valid(self) -> bool:
        return self.start <= self.end


@dataclass(frozen=True)
class Gap:
    start: date
    end: date
    is_leading: bool = False
    is_trailing: bool = False

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


def default_recent_range(today: Optional[date] = None, years: int = RECENT_YEARS) -> DateRange:
    """
    The "last three years" window ending today (UTC).
    Uses calendar-exact year subtraction, so Feb 29 clamps to Feb 28.
    """
    end = today or utc_today()
    return DateRange(subtract_years(end, years), end)


def _interval(address: Address, range_end: date) -> Optional[Tuple[date, date]]:
    """
    Parse an address into (start, effective_end).
    end_date=None means "Present", which we treat as covering through range_end.
    Returns None for malformed intervals.
    """
    start = parse_iso_date(address.start_date)
    end = parse_iso_date(address.end_date) if address.end_date is not None else range_end
    if start is None or end is None or end < start:
        return None
    return start, end


def _clamp(d: date, lo: date, hi: date) -> date:
    return min(max(d, lo), hi)


def address_overlaps_range(address: Address, date_range: DateRange) -> bool:
    interval = _interval(address, date_range.end)
    if interval is None:
        return False
    start, end = interval
    return start <= date_range.end and end >= date_range.start


def sort_addresses(addresses: Iterable[Address]) -> List[Address]:
    """Canonical order: start date ascending, ties by creation time."""
    return sorted(addresses, key=lambda a: (a.start_date, a.created_at))


def compute_coverage_gaps(addresses: Iterable[Address], date_range: DateRange) -> List[Gap]:
    """
    Gap detection for residential address history.

    Each address covers [start_date, end_date] clamped to the range, so an
    address entirely before (after) the range still covers its first (last) day.
    Malformed intervals (unparseable or inverted dates) are skipped, never raised.
    Two intervals are contiguous if:
      next_start <= prev_end + 1 day
    Returns gaps in date order; an inverted range yields no gaps.
    """
    window_start, window_end = date_range.start, date_range.end
    if not date_range.is_valid:
        logger.warning("Inverted gap range %s to %s; no gaps computed", window_start, window_end)
        return []

    ranges: List[Tuple[date, date]] = []
    for address in addresses:
        interval = _interval(address, window_end)
        if interval is None:
            logger.debug("Skipping malformed interval for address %s", address.id)
            continue

        start, end = interval
        # Clamp to window; an entry fully outside it lands on the nearest boundary day
        ranges.append((_clamp(start, window_start, window_end), _clamp(end, window_start, window_end)))

    if not ranges:
        return [Gap(window_start, window_end, is_leading=True, is_trailing=True)]

    ranges.sort(key=lambda x: x[0])

    merged: List[List[date]] = []
    for start, end in ranges:
        if merged and start <= add_days(merged[-1][1], 1):
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])

    gaps: List[Gap] = []

    # Start gap
    if merged[0][0] > window_start:
        gaps.append(Gap(window_start, add_days(merged[0][0], -1), is_leading=True))

    # Middle gaps
    for (_, prev_end), (next_start, _) in zip(merged, merged[1:]):
        gap_from = add_days(prev_end, 1)
        gap_to = add_days(next_start, -1)
        if gap_from <= gap_to:
            gaps.append(Gap(gap_from, gap_to))

    # End gap
    if merged[-1][1] < window_end:
        gaps.append(Gap(add_days(merged[-1][1], 1), window_end, is_trailing=True))

    return gaps


def last_three_year_gaps(
    addresses: Iterable[Address],
    today: Optional[date] = None,
    years: int = RECENT_YEARS,
) -> List[Gap]:
    """Gaps over the recent window; years overrides the default three."""
    return compute_coverage_gaps(addresses, default_recent_range(today, years))
