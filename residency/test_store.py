"""Tests for the file-backed record store."""

import json
import uuid
from pathlib import Path

import pytest
from pydantic import ValidationError

from residency.exceptions import (
    CascadeDeleteError,
    DocumentFileMissingError,
    SnapshotCorruptError,
    StorageError,
)
from residency.models import AddressUpdate, Snapshot
from residency.store import RecordStore, resolve_extension


class TestReadSnapshot:
    """Tests for snapshot bootstrap and decoding."""

    def test_bootstraps_empty_snapshot(self, store: RecordStore) -> None:
        snapshot = store.read_snapshot()

        assert snapshot == Snapshot()
        assert store.store_path.exists()
        assert json.loads(store.store_path.read_text()) == {"addresses": [], "documents": []}
        assert store.uploads_dir.is_dir()

    def test_bootstrap_is_idempotent(self, store: RecordStore, address_input) -> None:
        store.create_address(address_input())

        assert len(store.read_snapshot().addresses) == 1
        assert len(store.read_snapshot().addresses) == 1

    def test_missing_collections_default_to_empty(self, store: RecordStore) -> None:
        store.data_dir.mkdir(parents=True)
        store.store_path.write_text("{}")

        assert store.read_snapshot() == Snapshot()

    def test_corrupt_snapshot_raises(self, store: RecordStore) -> None:
        store.data_dir.mkdir(parents=True)
        store.store_path.write_text("{not json")

        with pytest.raises(SnapshotCorruptError):
            store.read_snapshot()

        assert store.store_path.read_text() == "{not json"

    def test_persisted_keys_are_camel_case(self, store: RecordStore, address_input) -> None:
        store.create_address(address_input(start="2021-01-01", end="2022-01-01"))

        raw = json.loads(store.store_path.read_text())
        record = raw["addresses"][0]

        assert record["startDate"] == "2021-01-01"
        assert record["endDate"] == "2022-01-01"
        assert "createdAt" in record and "updatedAt" in record

    def test_write_leaves_no_temp_files(self, store: RecordStore, address_input) -> None:
        store.create_address(address_input())
        store.create_address(address_input())

        leftovers = [p.name for p in store.data_dir.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_failed_write_keeps_previous_snapshot(
        self, store: RecordStore, address_input, monkeypatch
    ) -> None:
        existing = store.create_address(address_input())
        before = store.store_path.read_text()

        def failing_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("residency.store.os.replace", failing_replace)

        with pytest.raises(StorageError):
            store.create_address(address_input(line1="2 Low Road"))

        assert store.store_path.read_text() == before
        assert [p.name for p in store.data_dir.iterdir() if p.name.endswith(".tmp")] == []
        monkeypatch.undo()
        assert store.read_snapshot().addresses == [existing]


class TestAddresses:
    """Tests for address create/update/delete."""

    def test_create_assigns_id_and_timestamps(self, store: RecordStore, address_input) -> None:
        first = store.create_address(address_input())
        second = store.create_address(address_input(line1="2 Low Road"))

        snapshot = store.read_snapshot()

        assert [a.id for a in snapshot.addresses] == [first.id, second.id]
        assert first.id != second.id
        assert first.created_at == first.updated_at
        assert snapshot.addresses[0] == first

    def test_colliding_ids_are_redrawn(self, store: RecordStore, address_input, monkeypatch) -> None:
        first_id = uuid.UUID(int=1)
        second_id = uuid.UUID(int=2)
        draws = iter([first_id, first_id, second_id, first_id, first_id, second_id])
        monkeypatch.setattr("residency.store.uuid.uuid4", lambda: next(draws))

        first = store.create_address(address_input())
        second = store.create_address(address_input(line1="2 Low Road"))
        doc_one = store.create_document(first.id, "a.pdf", "application/pdf", 1, b"a")
        doc_two = store.create_document(first.id, "b.pdf", "application/pdf", 1, b"b")

        assert (first.id, second.id) == (str(first_id), str(second_id))
        assert (doc_one.id, doc_two.id) == (str(first_id), str(second_id))
        assert store.read_document_bytes(doc_one) == b"a"
        assert store.read_document_bytes(doc_two) == b"b"

    def test_update_merges_supplied_fields(self, store: RecordStore, address_input) -> None:
        created = store.create_address(address_input(start="2021-01-01"))

        updated = store.update_address(created.id, AddressUpdate(town="Bradford"))

        assert updated is not None
        assert updated.town == "Bradford"
        assert updated.line1 == created.line1
        assert updated.start_date == "2021-01-01"
        assert updated.id == created.id
        assert updated.created_at == created.created_at
        assert updated.updated_at > created.updated_at
        assert store.read_snapshot().addresses == [updated]

    def test_update_can_clear_end_date(self, store: RecordStore, address_input) -> None:
        created = store.create_address(address_input(end="2022-06-30"))

        updated = store.update_address(created.id, AddressUpdate(end_date=None))

        assert updated is not None
        assert updated.end_date is None

    @pytest.mark.parametrize("field", ["line1", "town", "postcode", "country", "start_date"])
    def test_update_cannot_clear_required_field(self, field: str) -> None:
        with pytest.raises(ValidationError):
            AddressUpdate(**{field: None})

    def test_update_never_persists_an_invalid_record(self, store: RecordStore, address_input) -> None:
        created = store.create_address(address_input())
        before = store.store_path.read_text()
        unchecked = AddressUpdate.model_construct(_fields_set={"line1"}, line1=None)

        with pytest.raises(ValidationError):
            store.update_address(created.id, unchecked)

        assert store.store_path.read_text() == before
        assert store.read_snapshot().addresses == [created]

    def test_update_missing_address_changes_nothing(self, store: RecordStore, address_input) -> None:
        store.create_address(address_input())
        before = store.store_path.read_text()

        assert store.update_address("no-such-id", AddressUpdate(town="Hull")) is None

        assert store.store_path.read_text() == before

    def test_list_addresses_uses_canonical_order(self, store: RecordStore, address_input) -> None:
        late = store.create_address(address_input(start="2023-01-01"))
        tie_first = store.create_address(address_input(start="2020-01-01"))
        tie_second = store.create_address(address_input(start="2020-01-01"))

        assert [a.id for a in store.list_addresses()] == [tie_first.id, tie_second.id, late.id]

    def test_delete_missing_address_is_noop(self, store: RecordStore, address_input) -> None:
        store.create_address(address_input())

        result = store.delete_address("no-such-id")

        assert result.address is None
        assert result.removed_documents == []
        assert len(store.read_snapshot().addresses) == 1

    def test_delete_cascades_documents_and_files(self, store: RecordStore, address_input) -> None:
        doomed = store.create_address(address_input())
        kept = store.create_address(address_input(line1="9 Other Way"))
        doomed_docs = [
            store.create_document(doomed.id, f"bill-{n}.pdf", "application/pdf", 3, b"abc")
            for n in range(3)
        ]
        kept_doc = store.create_document(kept.id, "lease.png", "image/png", 2, b"xy")

        result = store.delete_address(doomed.id)

        assert result.ok
        assert result.address == doomed
        assert {d.id for d in result.removed_documents} == {d.id for d in doomed_docs}
        for document in doomed_docs:
            assert store.get_document_by_id(document.id) is None
            assert not store.resolve_upload_path(document).exists()

        snapshot = store.read_snapshot()
        assert [a.id for a in snapshot.addresses] == [kept.id]
        assert snapshot.documents == [kept_doc]
        assert sorted(p.name for p in store.uploads_dir.iterdir()) == [kept_doc.stored_name]

    def test_delete_tolerates_already_missing_files(self, store: RecordStore, address_input) -> None:
        address = store.create_address(address_input())
        document = store.create_document(address.id, "bill.pdf", "application/pdf", 1, b"x")
        store.resolve_upload_path(document).unlink()

        result = store.delete_address(address.id)

        assert result.ok
        assert store.read_snapshot() == Snapshot()

    def test_delete_continues_past_file_failures(
        self, store: RecordStore, address_input, monkeypatch
    ) -> None:
        address = store.create_address(address_input())
        bad = store.create_document(address.id, "bad.pdf", "application/pdf", 1, b"x")
        good = store.create_document(address.id, "good.pdf", "application/pdf", 1, b"y")

        real_unlink = Path.unlink

        def flaky_unlink(self, missing_ok=False):
            if self.name == bad.stored_name:
                raise PermissionError("read-only")
            return real_unlink(self, missing_ok=missing_ok)

        monkeypatch.setattr(Path, "unlink", flaky_unlink)

        with pytest.raises(CascadeDeleteError) as excinfo:
            store.delete_address(address.id)

        result = excinfo.value.result
        assert list(result.failed_files) == [bad.id]
        assert not store.resolve_upload_path(good).exists()
        assert store.read_snapshot() == Snapshot()


class TestDocuments:
    """Tests for document storage and lookup."""

    def test_round_trip_bytes(self, store: RecordStore, address_input) -> None:
        address = store.create_address(address_input())
        payload = b"%PDF-1.7\n\x00\x01binary"

        document = store.create_document(address.id, "council-tax.pdf", "application/pdf", len(payload), payload)

        assert store.resolve_upload_path(document).read_bytes() == payload
        assert store.read_document_bytes(document) == payload
        assert document.stored_name == f"{document.id}.pdf"
        assert store.get_document_by_id(document.id) == document

    def test_stored_name_falls_back_to_mime_type(self, store: RecordStore, address_input) -> None:
        address = store.create_address(address_input())

        document = store.create_document(address.id, "scan", "image/jpeg", 1, b"j")

        assert document.stored_name == f"{document.id}.jpg"

    def test_get_missing_document(self, store: RecordStore) -> None:
        assert store.get_document_by_id("nope") is None

    def test_missing_file_is_distinct_from_missing_record(self, store: RecordStore, address_input) -> None:
        address = store.create_address(address_input())
        document = store.create_document(address.id, "bill.pdf", "application/pdf", 1, b"x")
        store.resolve_upload_path(document).unlink()

        assert store.get_document_by_id(document.id) == document
        with pytest.raises(DocumentFileMissingError) as excinfo:
            store.read_document_bytes(document)
        assert excinfo.value.document_id == document.id

    def test_delete_document(self, store: RecordStore, address_input) -> None:
        address = store.create_address(address_input())
        document = store.create_document(address.id, "bill.pdf", "application/pdf", 1, b"x")

        removed = store.delete_document(document.id)

        assert removed == document
        assert store.get_document_by_id(document.id) is None
        assert not store.resolve_upload_path(document).exists()
        assert store.read_snapshot().addresses == [address]

    def test_delete_document_with_missing_file(self, store: RecordStore, address_input) -> None:
        address = store.create_address(address_input())
        document = store.create_document(address.id, "bill.pdf", "application/pdf", 1, b"x")
        store.resolve_upload_path(document).unlink()

        assert store.delete_document(document.id) == document
        assert store.read_snapshot().documents == []

    def test_delete_document_file_failure_keeps_record(
        self, store: RecordStore, address_input, monkeypatch
    ) -> None:
        address = store.create_address(address_input())
        document = store.create_document(address.id, "bill.pdf", "application/pdf", 1, b"x")

        def locked_unlink(self, missing_ok=False):
            raise PermissionError("file is locked")

        monkeypatch.setattr(Path, "unlink", locked_unlink)

        with pytest.raises(StorageError):
            store.delete_document(document.id)

        assert store.get_document_by_id(document.id) == document
        assert store.resolve_upload_path(document).exists()

    def test_delete_missing_document(self, store: RecordStore) -> None:
        assert store.delete_document("nope") is None


class TestResolveExtension:
    """Tests for stored-name extension inference."""

    @pytest.mark.parametrize(
        "name,mime,expected",
        [
            ("bill.PDF", "application/pdf", ".PDF"),
            ("photo.jpeg", "image/jpeg", ".jpeg"),
            ("scan", "application/pdf", ".pdf"),
            ("scan", "image/png", ".png"),
            ("scan", "image/jpeg", ".jpg"),
            ("scan", "text/plain", ""),
        ],
    )
    def test_resolve_extension(self, name: str, mime: str, expected: str) -> None:
        assert resolve_extension(name, mime) == expected
