"""Residential address history: record store and coverage-gap engine."""

from .gaps import (
    DateRange,
    Gap,
    compute_coverage_gaps,
    default_recent_range,
    last_three_year_gaps,
    sort_addresses,
)
from .models import Address, AddressInput, AddressUpdate, DocumentMeta, Snapshot
from .store import CascadeResult, RecordStore

__all__ = [
    "Address",
    "AddressInput",
    "AddressUpdate",
    "CascadeResult",
    "DateRange",
    "DocumentMeta",
    "Gap",
    "RecordStore",
    "Snapshot",
    "compute_coverage_gaps",
    "default_recent_range",
    "last_three_year_gaps",
    "sort_addresses",
]
