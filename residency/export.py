# residency/export.py

from __future__ import annotations

import json
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Union

from .dates import format_iso_date
from .gaps import DateRange, address_overlaps_range, sort_addresses
from .logging import get_logger
from .models import Address, DocumentMeta, Snapshot
from .store import RecordStore

logger = get_logger(__name__)

MANIFEST_NAME = "addresses.json"
DOCUMENTS_FOLDER = "documents"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


@dataclass(frozen=True)
class ExportSelection:
    date_range: DateRange
    addresses: List[Address]
    documents: List[DocumentMeta]


def select_export(snapshot: Snapshot, date_range: DateRange) -> ExportSelection:
    """
    Addresses overlapping the range (canonical order) plus their documents.
    Uses the same effective-end rule as gap detection: no end date means
    the residence runs through the end of the range.
    """
    addresses = sort_addresses(
        a for a in snapshot.addresses if address_overlaps_range(a, date_range)
    )
    address_ids = {a.id for a in addresses}
    documents = [d for d in snapshot.documents if d.address_id in address_ids]
    return ExportSelection(date_range=date_range, addresses=addresses, documents=documents)


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name)


def format_address(address: Address) -> str:
    parts = [
        address.line1,
        address.line2,
        address.town,
        address.county,
        address.postcode,
        address.country,
    ]
    return ", ".join(p for p in parts if p)


def format_period(address: Address) -> str:
    return f"{address.start_date} to {address.end_date or 'Present'}"


def build_export_manifest(selection: ExportSelection) -> Dict[str, Any]:
    """
    JSON-ready manifest of the selection, keyed the way the snapshot is
    persisted (camelCase). No I/O is performed here.
    """
    return {
        "range": {
            "start": format_iso_date(selection.date_range.start),
            "end": format_iso_date(selection.date_range.end),
        },
        "addresses": [a.model_dump(mode="json", by_alias=True) for a in selection.addresses],
        "documents": [d.model_dump(mode="json", by_alias=True) for d in selection.documents],
    }


def archive_member_name(document: DocumentMeta) -> str:
    return f"{DOCUMENTS_FOLDER}/{document.id}-{sanitize_filename(document.original_name)}"


def write_archive(
    selection: ExportSelection,
    store: RecordStore,
    destination: Union[str, Path, BinaryIO],
) -> None:
    """
    Write a ZIP holding the manifest and every selected document.
    Raises DocumentFileMissingError if a selected document's file is gone.
    """
    manifest = build_export_manifest(selection)

    with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(MANIFEST_NAME, json.dumps(manifest, indent=2, ensure_ascii=False))
        for document in selection.documents:
            zf.writestr(archive_member_name(document), store.read_document_bytes(document))

    logger.info(
        "Exported %d address(es) and %d document(s) for %s to %s",
        len(selection.addresses),
        len(selection.documents),
        format_iso_date(selection.date_range.start),
        format_iso_date(selection.date_range.end),
    )
