"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

from residency.models import Address, AddressInput
from residency.store import RecordStore


class TickingClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + timedelta(seconds=1)
        return value


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(tmp_path, clock) -> RecordStore:
    """Store rooted in a per-test temporary directory."""
    return RecordStore(tmp_path / "data", clock=clock)


@pytest.fixture
def address_input() -> Callable[..., AddressInput]:
    def make(start: str = "2021-01-01", end: Optional[str] = None, line1: str = "1 High Street") -> AddressInput:
        return AddressInput(
            line1=line1,
            town="Leeds",
            county="West Yorkshire",
            postcode="LS1 1AA",
            country="United Kingdom",
            start_date=start,
            end_date=end,
        )

    return make


@pytest.fixture
def make_address() -> Callable[..., Address]:
    """Address built in memory, without a store."""
    counter = {"n": 0}

    def make(
        start: str,
        end: Optional[str] = None,
        created_at: Optional[datetime] = None,
        address_id: Optional[str] = None,
    ) -> Address:
        counter["n"] += 1
        created = created_at or datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=counter["n"])
        return Address(
            id=address_id or f"addr-{counter['n']}",
            line1=f"{counter['n']} Mill Lane",
            town="York",
            postcode="YO1 7HH",
            country="United Kingdom",
            start_date=start,
            end_date=end,
            created_at=created,
            updated_at=created,
        )

    return make
