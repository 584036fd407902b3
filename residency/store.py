"""File-backed record store for addresses and their proof documents.

The whole aggregate (addresses + documents) lives in one JSON snapshot,
``<data_dir>/store.json``. Uploaded files live flat in ``<data_dir>/uploads``
named by document id plus extension. Every mutation is a full
read-modify-write of the snapshot, published with an atomic rename.
Concurrent mutations can still lose updates; callers that need
serialization must put a single writer in front of the store.
"""

from __future__ import annotations

import os
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from pydantic import ValidationError

from .dates import utc_now
from .exceptions import (
    CascadeDeleteError,
    DocumentFileMissingError,
    SnapshotCorruptError,
    StorageError,
)
from .gaps import sort_addresses
from .logging import get_logger
from .models import Address, AddressInput, AddressUpdate, DocumentMeta, Snapshot

logger = get_logger(__name__)

STORE_FILENAME = "store.json"
UPLOADS_DIRNAME = "uploads"

MIME_EXTENSIONS = {
    "application/pdf": ".pdf",
    "image/png": ".png",
    "image/jpeg": ".jpg",
}


def resolve_extension(original_name: str, mime_type: str) -> str:
    """Extension of the original file name, else one inferred from the MIME type."""
    suffix = Path(original_name).suffix
    if suffix:
        return suffix
    return MIME_EXTENSIONS.get(mime_type, "")


def _fresh_id(existing_ids: Iterable[str]) -> str:
    """A uuid4 string not already used by any of existing_ids."""
    taken = set(existing_ids)
    while True:
        candidate = str(uuid.uuid4())
        if candidate not in taken:
            return candidate


@dataclass
class CascadeResult:
    """Outcome of deleting an address together with its documents."""

    address: Optional[Address]
    removed_documents: List[DocumentMeta] = field(default_factory=list)
    failed_files: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed_files


class RecordStore:
    """CRUD with cascade over the address/document aggregate."""

    def __init__(
        self,
        data_dir: str | Path,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the store.

        Parameters
        ----------
        data_dir : str | Path
            Directory holding ``store.json`` and the ``uploads`` directory.
        clock : callable, optional
            Returns the current aware UTC datetime; defaults to the system clock.
        """
        self.data_dir = Path(data_dir)
        self.store_path = self.data_dir / STORE_FILENAME
        self.uploads_dir = self.data_dir / UPLOADS_DIRNAME
        self._clock = clock or utc_now

    # --------------------------------------------------
    # Snapshot I/O
    # --------------------------------------------------

    def ensure_dirs(self) -> None:
        try:
            self.uploads_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not create data directories under {self.data_dir}") from exc

    def read_snapshot(self) -> Snapshot:
        """Return the current snapshot, persisting an empty one on first use."""
        self.ensure_dirs()
        try:
            raw = self.store_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            snapshot = Snapshot()
            self.write_snapshot(snapshot)
            logger.info("Initialized empty snapshot at %s", self.store_path)
            return snapshot
        except OSError as exc:
            raise StorageError(f"Could not read snapshot {self.store_path}") from exc

        try:
            return Snapshot.model_validate_json(raw)
        except ValidationError as exc:
            raise SnapshotCorruptError(f"Snapshot {self.store_path} is corrupt") from exc

    def write_snapshot(self, snapshot: Snapshot) -> None:
        """Write to a temp file beside store.json, fsync, then rename over it."""
        self.ensure_dirs()
        payload = snapshot.model_dump_json(by_alias=True, indent=2)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{STORE_FILENAME}.", suffix=".tmp", dir=self.data_dir
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.store_path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Could not write snapshot {self.store_path}") from exc

    # --------------------------------------------------
    # Addresses
    # --------------------------------------------------

    def list_addresses(self) -> List[Address]:
        return sort_addresses(self.read_snapshot().addresses)

    def create_address(self, fields: AddressInput) -> Address:
        snapshot = self.read_snapshot()
        now = self._clock()

        address_id = _fresh_id(a.id for a in snapshot.addresses)

        address = Address(
            id=address_id,
            created_at=now,
            updated_at=now,
            **fields.model_dump(),
        )
        snapshot.addresses.append(address)
        self.write_snapshot(snapshot)

        logger.info("Created address %s", address.id)
        return address

    def update_address(self, address_id: str, changes: AddressUpdate) -> Optional[Address]:
        """
        Merge the explicitly set fields over the record; None if it does not exist.
        The merged record is re-validated before anything is written, so an
        update can never persist a record the snapshot cannot load back.
        """
        snapshot = self.read_snapshot()
        for index, existing in enumerate(snapshot.addresses):
            if existing.id == address_id:
                break
        else:
            logger.info("Update skipped; address %s not found", address_id)
            return None

        updated = Address.model_validate(
            {**existing.model_dump(), **changes.changes(), "updated_at": self._clock()}
        )
        snapshot.addresses[index] = updated
        self.write_snapshot(snapshot)

        logger.info("Updated address %s", address_id)
        return updated

    def delete_address(self, address_id: str) -> CascadeResult:
        """
        Remove an address and every document attached to it.

        Runs in three phases: pick the dependent documents, delete their
        files (already-missing files count as deleted, other failures are
        collected per document), then persist the trimmed aggregate.
        Raises CascadeDeleteError after persisting if any file failed.
        """
        snapshot = self.read_snapshot()
        address = snapshot.find_address(address_id)
        removed = snapshot.documents_for(address_id)

        result = CascadeResult(address=address, removed_documents=removed)
        for document in removed:
            try:
                self._delete_upload_file(document)
            except OSError as exc:
                logger.error("Could not delete file for document %s: %s", document.id, exc)
                result.failed_files[document.id] = str(exc)

        if address is None and not removed:
            return result

        removed_ids = {d.id for d in removed}
        snapshot.addresses = [a for a in snapshot.addresses if a.id != address_id]
        snapshot.documents = [d for d in snapshot.documents if d.id not in removed_ids]
        self.write_snapshot(snapshot)

        logger.info("Deleted address %s with %d document(s)", address_id, len(removed))
        if not result.ok:
            raise CascadeDeleteError(result)
        return result

    # --------------------------------------------------
    # Documents
    # --------------------------------------------------

    def resolve_upload_path(self, document: DocumentMeta) -> Path:
        return self.uploads_dir / document.stored_name

    def create_document(
        self,
        address_id: str,
        original_name: str,
        mime_type: str,
        size: int,
        data: bytes,
    ) -> DocumentMeta:
        """
        Store the file, then append its metadata.
        The caller must already have checked that address_id exists.
        A crash between the two writes leaves an orphan file, never a
        record without a file.
        """
        snapshot = self.read_snapshot()

        document_id = _fresh_id(d.id for d in snapshot.documents)
        stored_name = f"{document_id}{resolve_extension(original_name, mime_type)}"
        path = self.uploads_dir / stored_name
        try:
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Could not write upload {path}") from exc

        document = DocumentMeta(
            id=document_id,
            address_id=address_id,
            original_name=original_name,
            stored_name=stored_name,
            mime_type=mime_type,
            size=size,
            uploaded_at=self._clock(),
        )
        snapshot.documents.append(document)
        self.write_snapshot(snapshot)

        logger.info("Stored document %s for address %s", document.id, address_id)
        return document

    def get_document_by_id(self, document_id: str) -> Optional[DocumentMeta]:
        return self.read_snapshot().find_document(document_id)

    def read_document_bytes(self, document: DocumentMeta) -> bytes:
        path = self.resolve_upload_path(document)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise DocumentFileMissingError(document.id, str(path)) from exc
        except OSError as exc:
            raise StorageError(f"Could not read upload {path}") from exc

    def delete_document(self, document_id: str) -> Optional[DocumentMeta]:
        """Delete the file and its record; None if there is no such record."""
        snapshot = self.read_snapshot()
        document = snapshot.find_document(document_id)
        if document is None:
            return None

        try:
            self._delete_upload_file(document)
        except OSError as exc:
            raise StorageError(f"Could not delete file for document {document_id}") from exc

        snapshot.documents = [d for d in snapshot.documents if d.id != document_id]
        self.write_snapshot(snapshot)

        logger.info("Deleted document %s", document_id)
        return document

    def _delete_upload_file(self, document: DocumentMeta) -> None:
        self.resolve_upload_path(document).unlink(missing_ok=True)
