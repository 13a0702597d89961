from pathlib import Path

import pytest
from conftest import BrokenCipher, PasswordCipher

from address_book.exceptions import (
    CapacityExceededError,
    DecryptionError,
    DuplicateRecordError,
    EncryptionError,
    InvalidIdentifierError,
    NotFoundError,
    StorageReadError,
    StorageWriteError,
)
from address_book.models.record import ContactRecord
from address_book.storage.record_store import MAX_RECORDS, RecordStore


def _lines(count: int, start: int = 0) -> str:
    return "\n".join(f"r{i};name=P{i}" for i in range(start, start + count))


def _stored_text(store: RecordStore, user_id: str, cipher: PasswordCipher) -> str:
    return cipher.decrypt(store.get_file_path(user_id).read_text(encoding="ascii"))


def _spy_reads(monkeypatch, store: RecordStore) -> list[str]:
    reads: list[str] = []
    original = store._read_file

    def spy(user_id):
        reads.append(user_id)
        return original(user_id)

    monkeypatch.setattr(store, "_read_file", spy)
    return reads


class TestAliceScenario:
    def test_set_get_delete(self, store, cipher, bob, data_dir):
        assert not (data_dir / "u_alice").exists()

        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        assert (data_dir / "u_alice").is_file()
        assert _stored_text(store, "alice", cipher) == "r1;name=Bob"
        assert store.get("alice", "r1", cipher.decrypt) == bob

        store.delete("alice", "r1", cipher.decrypt, cipher.encrypt)
        assert store.get("alice", "r1", cipher.decrypt) is None
        assert _stored_text(store, "alice", cipher) == ""

    def test_missing_file_means_no_records(self, store, cipher):
        assert store.get("alice", "r1", cipher.decrypt) is None
        assert store.list_records("alice", cipher.decrypt) == []
        assert store.count("alice", cipher.decrypt) == 0


class TestCapacity:
    def test_new_record_rejected_when_full(self, store, cipher):
        store.import_all("alice", cipher.decrypt, cipher.encrypt, _lines(MAX_RECORDS))
        assert store.is_full("alice", cipher.decrypt)

        with pytest.raises(CapacityExceededError):
            store.set(
                "alice",
                ContactRecord(record_id="r256"),
                cipher.decrypt,
                cipher.encrypt,
            )
        assert store.count("alice", cipher.decrypt) == MAX_RECORDS

    def test_update_allowed_when_full(self, store, cipher):
        store.import_all("alice", cipher.decrypt, cipher.encrypt, _lines(MAX_RECORDS))
        updated = ContactRecord(record_id="r0", fields={"name": "Changed"})
        store.set("alice", updated, cipher.decrypt, cipher.encrypt)
        assert store.get("alice", "r0", cipher.decrypt) == updated

    def test_is_full_below_limit(self, store, cipher, bob):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        assert not store.is_full("alice", cipher.decrypt)


class TestCacheCoherence:
    def test_mutations_are_served_from_cache(self, store, cipher, bob, monkeypatch):
        reads = _spy_reads(monkeypatch, store)
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        assert store.get("alice", "r1", cipher.decrypt) == bob
        store.delete("alice", "r1", cipher.decrypt, cipher.encrypt)
        assert store.get("alice", "r1", cipher.decrypt) is None
        assert reads == ["alice"]

    def test_switching_users_reloads_persisted_state(
        self, store, cipher, bob, monkeypatch
    ):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        reads = _spy_reads(monkeypatch, store)

        assert store.get("bob", "r1", cipher.decrypt) is None
        assert store.cached_user == "bob"
        assert store.get("alice", "r1", cipher.decrypt) == bob
        assert reads == ["bob", "alice"]

    def test_new_store_sees_persisted_records(self, store, cipher, bob, data_dir):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        assert RecordStore(data_dir).get("alice", "r1", cipher.decrypt) == bob

    def test_invalidate_forces_reload(self, store, cipher, bob, monkeypatch):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        reads = _spy_reads(monkeypatch, store)
        store.invalidate()
        assert store.cached_user is None
        assert store.get("alice", "r1", cipher.decrypt) == bob
        assert reads == ["alice"]

    def test_failed_encrypt_leaves_cache_untouched(self, store, cipher, bob):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        carol = ContactRecord(record_id="r2", fields={"name": "Carol"})
        with pytest.raises(EncryptionError):
            store.set("alice", carol, cipher.decrypt, BrokenCipher().encrypt)
        assert store.get("alice", "r2", cipher.decrypt) is None
        assert _stored_text(store, "alice", cipher) == "r1;name=Bob"

    def test_failed_write_leaves_cache_untouched(self, tmp_path, cipher, bob):
        blocked = tmp_path / "not-a-dir"
        blocked.write_text("occupied")
        store = RecordStore(blocked)
        with pytest.raises(StorageWriteError):
            store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        assert store.get("alice", "r1", cipher.decrypt) is None

    def test_returned_record_cannot_alter_cache(self, store, cipher, bob):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        cached = store.get("alice", "r1", cipher.decrypt)
        with pytest.raises(TypeError):
            cached.fields["name"] = "Mallory"
        assert store.get("alice", "r1", cipher.decrypt).fields == {"name": "Bob"}
        assert store.export_all("alice", cipher.decrypt) == "r1;name=Bob"


class TestDelete:
    def test_delete_missing_leaves_storage_unchanged(self, store, cipher, bob):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        path = store.get_file_path("alice")
        before = path.read_bytes()
        with pytest.raises(NotFoundError):
            store.delete("alice", "nope", cipher.decrypt, cipher.encrypt)
        assert path.read_bytes() == before

    def test_delete_missing_without_file_creates_nothing(self, store, cipher):
        with pytest.raises(NotFoundError):
            store.delete("alice", "r1", cipher.decrypt, cipher.encrypt)
        assert not store.get_file_path("alice").exists()


class TestReadFailures:
    def test_unreadable_file(self, store, cipher, data_dir):
        (data_dir / "u_alice").mkdir(parents=True)
        with pytest.raises(StorageReadError):
            store.get("alice", "r1", cipher.decrypt)

    def test_non_ascii_file(self, store, cipher, data_dir):
        data_dir.mkdir(parents=True)
        (data_dir / "u_alice").write_bytes(b"\xff\xfe")
        with pytest.raises(StorageReadError):
            store.get("alice", "r1", cipher.decrypt)

    def test_wrong_password(self, store, cipher, bob):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        store.invalidate()
        with pytest.raises(DecryptionError):
            store.get("alice", "r1", PasswordCipher("guess").decrypt)

    def test_generic_security_error_becomes_decryption_error(
        self, store, cipher, bob
    ):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        store.invalidate()
        with pytest.raises(DecryptionError, match="decrypt failed"):
            store.get("alice", "r1", BrokenCipher().decrypt)

    def test_duplicate_lines_in_file(self, store, cipher, data_dir):
        data_dir.mkdir(parents=True)
        (data_dir / "u_alice").write_text(cipher.encrypt("r1\nr1"), encoding="ascii")
        with pytest.raises(DuplicateRecordError):
            store.get("alice", "r1", cipher.decrypt)

    def test_user_id_must_be_a_file_name(self, store, cipher):
        with pytest.raises(InvalidIdentifierError):
            store.get("../escape", "r1", cipher.decrypt)


class TestExists:
    # exists() looks the *user* id up among the record ids of that user.
    def test_checks_user_id_in_record_keyspace(self, store, cipher, bob):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        assert not store.exists("alice", cipher.decrypt)

        store.set(
            "alice", ContactRecord(record_id="alice"), cipher.decrypt, cipher.encrypt
        )
        assert store.exists("alice", cipher.decrypt)


class TestExport:
    def test_export_reads_file_directly(self, store, cipher, bob):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        store.set(
            "alice",
            ContactRecord(record_id="r2", fields={"name": "Carol"}),
            cipher.decrypt,
            cipher.encrypt,
        )
        assert store.export_all("alice", cipher.decrypt) == (
            "r1;name=Bob\nr2;name=Carol"
        )

    def test_export_without_file(self, store, cipher):
        with pytest.raises(StorageReadError):
            store.export_all("alice", cipher.decrypt)

    def test_export_with_wrong_password(self, store, cipher, bob):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        with pytest.raises(DecryptionError):
            store.export_all("alice", PasswordCipher("guess").decrypt)


class TestImport:
    def test_import_merges_and_persists(self, store, cipher, bob, data_dir):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        imported = store.import_all(
            "alice", cipher.decrypt, cipher.encrypt, "r2;name=Carol\nr3;name=Dan\n"
        )
        assert imported == 2
        fresh = RecordStore(data_dir)
        assert [r.record_id for r in fresh.list_records("alice", cipher.decrypt)] == [
            "r1",
            "r2",
            "r3",
        ]

    def test_duplicate_keeps_records_merged_before_it(
        self, store, cipher, bob, data_dir
    ):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        with pytest.raises(DuplicateRecordError):
            store.import_all(
                "alice", cipher.decrypt, cipher.encrypt, "r2;name=Carol\nr1;name=Other"
            )

        assert store.get("alice", "r2", cipher.decrypt) is not None
        assert store.get("alice", "r1", cipher.decrypt) == bob
        fresh = RecordStore(data_dir)
        assert fresh.get("alice", "r2", cipher.decrypt) is not None
        assert fresh.get("alice", "r1", cipher.decrypt) == bob

    def test_duplicate_inside_import_text_merges_nothing(self, store, cipher, bob):
        store.set("alice", bob, cipher.decrypt, cipher.encrypt)
        with pytest.raises(DuplicateRecordError):
            store.import_all(
                "alice", cipher.decrypt, cipher.encrypt, "r5;name=A\nr5;name=B"
            )
        assert store.count("alice", cipher.decrypt) == 1

    def test_import_does_not_enforce_record_limit(self, data_dir, cipher):
        store = RecordStore(data_dir, max_records=2)
        assert store.import_all("alice", cipher.decrypt, cipher.encrypt, _lines(3)) == 3
        assert store.count("alice", cipher.decrypt) == 3
        assert store.is_full("alice", cipher.decrypt)


def test_default_location_is_relative_addresses_folder():
    assert RecordStore().get_file_path("alice") == Path(".addresses") / "u_alice"
