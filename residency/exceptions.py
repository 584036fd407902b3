"""Custom exception hierarchy for residency."""


class ResidencyError(Exception):
    """Base exception for all residency errors."""


class StorageError(ResidencyError):
    """Raised when the snapshot or an uploaded file cannot be read or written."""


class SnapshotCorruptError(StorageError):
    """Raised when the persisted snapshot cannot be decoded."""


class DocumentFileMissingError(StorageError):
    """Raised when a document record exists but its backing file does not."""

    def __init__(self, document_id: str, path: str) -> None:
        super().__init__(f"Backing file for document {document_id} is missing: {path}")
        self.document_id = document_id
        self.path = path


class CascadeDeleteError(StorageError):
    """Raised after an address delete when one or more document files could not be removed."""

    def __init__(self, result) -> None:
        failed = ", ".join(sorted(result.failed_files))
        super().__init__(f"Could not delete files for documents: {failed}")
        self.result = result


class InvalidRangeError(ResidencyError):
    """Raised when a query date range cannot be parsed."""


class ConfigurationError(ResidencyError):
    """Raised when configuration is invalid or missing."""
