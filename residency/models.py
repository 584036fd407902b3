# residency/models.py

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ======================================================
# Shared config (persisted JSON uses camelCase keys)
# ======================================================

class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ======================================================
# Address timeline (where a person lived)
# ======================================================

class AddressInput(_Record):
    """
    Client-suppliable address fields.
    Dates are kept as the YYYY-MM-DD text the caller sent; the store does not
    validate them. end_date=None means "Present".
    """
    line1: str
    line2: Optional[str] = None
    town: str
    county: Optional[str] = None
    postcode: str
    country: str

    start_date: str
    end_date: Optional[str] = None


class AddressUpdate(_Record):
    """
    Partial update. Only fields explicitly set are merged, so end_date=None
    clears the end date while an omitted end_date is left alone.
    """
    line1: Optional[str] = None
    line2: Optional[str] = None
    town: Optional[str] = None
    county: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None

    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @field_validator("line1", "town", "postcode", "country", "start_date")
    @classmethod
    def _required_not_cleared(cls, value: Optional[str]) -> str:
        # Runs only for explicitly supplied values; omitted fields keep their default.
        if value is None:
            raise ValueError("required field cannot be cleared")
        return value

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class Address(AddressInput):
    id: str
    created_at: datetime
    updated_at: datetime


# ======================================================
# Proof documents
# ======================================================

class DocumentMeta(_Record):
    """
    Metadata for one uploaded proof file.
    stored_name is the file name under the uploads directory (id + extension).
    """
    id: str
    address_id: str
    original_name: str
    stored_name: str
    mime_type: str
    size: int
    uploaded_at: datetime


# ======================================================
# Aggregate root
# ======================================================

class Snapshot(_Record):
    addresses: List[Address] = Field(default_factory=list)
    documents: List[DocumentMeta] = Field(default_factory=list)

    def find_address(self, address_id: str) -> Optional[Address]:
        return next((a for a in self.addresses if a.id == address_id), None)

    def find_document(self, document_id: str) -> Optional[DocumentMeta]:
        return next((d for d in self.documents if d.id == document_id), None)

    def documents_for(self, address_id: str) -> List[DocumentMeta]:
        return [d for d in self.documents if d.address_id == address_id]
