# residency/pipeline.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from .gaps import (
    RECENT_YEARS,
    DateRange,
    Gap,
    compute_coverage_gaps,
    default_recent_range,
    sort_addresses,
)
from .issues import Issue, gaps_to_issues, tag_issues
from .models import Address, DocumentMeta
from .store import RecordStore


@dataclass(frozen=True)
class HistoryReport:
    addresses: List[Address]
    documents: List[DocumentMeta]
    date_range: DateRange
    gaps: List[Gap]
    issues: List[Issue]


def build_history_report(
    store: RecordStore,
    *,
    today: Optional[date] = None,
    date_range: Optional[DateRange] = None,
    years: int = RECENT_YEARS,
) -> HistoryReport:
    """
    End-to-end view of the address history:
      - Read the snapshot
      - Order addresses canonically (same order exports use)
      - Compute coverage gaps for the range (default: last `years` years to today)
      - Turn gaps into reviewable issues
    """
    snapshot = store.read_snapshot()
    window = date_range or default_recent_range(today, years)

    addresses = sort_addresses(snapshot.addresses)
    gaps = compute_coverage_gaps(addresses, window)
    issues = tag_issues(gaps_to_issues(gaps), "coverage")

    return HistoryReport(
        addresses=addresses,
        documents=snapshot.documents,
        date_range=window,
        gaps=gaps,
        issues=issues,
    )
