# residency/cli.py

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config import ResidencyConfig
from .dates import parse_iso_date
from .exceptions import InvalidRangeError, ResidencyError
from .export import format_address, format_period, select_export, write_archive
from .gaps import DateRange
from .logging import get_logger, setup_logging
from .pipeline import build_history_report

logger = get_logger(__name__)


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Show address coverage gaps and optionally export an archive"
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory holding store.json and uploads (default: RESIDENCY_DATA_DIR or ./data)",
    )
    parser.add_argument("--today", type=str, default=None, help="Reference date YYYY-MM-DD (default: today, UTC)")
    parser.add_argument("--start", type=str, default=None, help="Range start YYYY-MM-DD")
    parser.add_argument("--end", type=str, default=None, help="Range end YYYY-MM-DD")
    parser.add_argument("--export", type=Path, default=None, help="Write a ZIP archive for the range to this path")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    try:
        config = ResidencyConfig.from_env()
        if args.data_dir is not None:
            config.data_dir = args.data_dir
        setup_logging(config.log_level, config.log_format)

        today = None
        if args.today is not None:
            today = parse_iso_date(args.today)
            if today is None:
                raise InvalidRangeError(f"Invalid --today date: {args.today!r}")

        date_range = None
        if args.start is not None or args.end is not None:
            if args.start is None or args.end is None:
                raise InvalidRangeError("--start and --end must be given together")
            date_range = DateRange.from_strings(args.start, args.end)

        store = config.create_store()
        report = build_history_report(
            store, today=today, date_range=date_range, years=config.recent_years
        )

        print(f"Range: {report.date_range.start} to {report.date_range.end}")
        print(f"\nAddresses ({len(report.addresses)}):")
        for address in report.addresses:
            print(f"- {format_address(address)} ({format_period(address)})")

        print(f"\nGaps ({len(report.gaps)}):")
        for issue in report.issues:
            print(f"[{issue.severity}] {issue.message}")

        if args.export is not None:
            selection = select_export(store.read_snapshot(), report.date_range)
            write_archive(selection, store, args.export)
            print(f"\nArchive written to: {args.export}")
    except ResidencyError as exc:
        logger.error("%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
