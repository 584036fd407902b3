"""Configuration management for residency."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .store import RecordStore


@dataclass
class ResidencyConfig:
    """Main configuration for residency."""

    data_dir: Path = field(default_factory=lambda: Path("data"))
    log_level: str = "INFO"
    log_format: str = "standard"
    recent_years: int = 3

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        if self.recent_years < 1:
            raise ConfigurationError(f"recent_years must be at least 1, got {self.recent_years}")
        if self.log_format not in ("standard", "json"):
            raise ConfigurationError(f"Unknown log format: {self.log_format!r}")

    @classmethod
    def from_env(cls) -> "ResidencyConfig":
        """Create config from environment variables."""
        import os

        years_raw = os.getenv("RESIDENCY_RECENT_YEARS", "3")
        try:
            recent_years = int(years_raw)
        except ValueError as exc:
            raise ConfigurationError(
                f"RESIDENCY_RECENT_YEARS must be an integer, got {years_raw!r}"
            ) from exc

        return cls(
            data_dir=Path(os.getenv("RESIDENCY_DATA_DIR", "data")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
            recent_years=recent_years,
        )

    def create_store(self) -> "RecordStore":
        """Build a RecordStore rooted at data_dir."""
        from .store import RecordStore

        return RecordStore(self.data_dir)
