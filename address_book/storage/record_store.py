"""
Per-user encrypted record files with a single-slot in-memory cache.

Each user's records live in one file named ``<file_prefix><user_id>`` inside the
data directory. The file holds the encrypted text of the whole collection and
is rewritten completely on every change. Only the most recently accessed
user's collection is kept in memory.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from pathvalidate import ValidationError, validate_filename

from address_book.exceptions import (
    CapacityExceededError,
    DecryptionError,
    DuplicateRecordError,
    InvalidIdentifierError,
    NotFoundError,
    SecurityError,
    StorageReadError,
    StorageWriteError,
)
from address_book.models.record import ContactRecord

from .codec import RecordCollection, parse_collection, serialize_collection

log = logging.getLogger(__name__)

Encrypter = Callable[[str], str]
Decrypter = Callable[[str], str]

MAX_RECORDS = 256
DEFAULT_FOLDER_NAME = ".addresses"
DEFAULT_FILE_PREFIX = "u_"
FILE_ENCODING = "ascii"


@dataclass
class CacheSlot:
    """The collection of the last user that was loaded."""

    user_id: str
    records: RecordCollection


class RecordStore:
    """
    Loads, caches, mutates and persists per-user record collections.

    Every operation receives the caller's decrypt capability; mutating operations
    also receive the encrypt capability. The store never selects or manages keys.
    The cached collection always matches what was last written successfully:
    changes are applied to a copy that replaces the cache only once the file
    write went through.
    """

    def __init__(
        self,
        data_dir: Path = Path(DEFAULT_FOLDER_NAME),
        file_prefix: str = DEFAULT_FILE_PREFIX,
        max_records: int = MAX_RECORDS,
    ):
        self.data_dir = data_dir
        self.file_prefix = file_prefix
        self.max_records = max_records
        self._slot: CacheSlot | None = None

    @property
    def cached_user(self) -> str | None:
        """The user whose collection is currently resident, if any."""
        return self._slot.user_id if self._slot else None

    def get_file_path(self, user_id: str) -> Path:
        """Returns the backing file path for a user."""
        filename = f"{self.file_prefix}{user_id}"
        try:
            validate_filename(filename)
        except ValidationError as e:
            raise InvalidIdentifierError(
                f"User ID '{user_id}' cannot be used as a file name: {e}"
            ) from e
        return self.data_dir / filename

    # --- File access ---

    def _read_file(self, user_id: str) -> str | None:
        """Reads the raw encrypted contents, or None if the user has no file yet."""
        path = self.get_file_path(user_id)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding=FILE_ENCODING)
        except (OSError, UnicodeDecodeError) as e:
            log.error(f"Failed to read record file '{path}': {e}")
            raise StorageReadError(
                f"Record file for user '{user_id}' exists but could not be read."
            ) from e

    def _write_file(self, user_id: str, data: str) -> None:
        """Overwrites the user's file with ``data``."""
        path = self.get_file_path(user_id)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(data, encoding=FILE_ENCODING)
        except (OSError, UnicodeEncodeError) as e:
            log.error(f"Failed to write record file '{path}': {e}")
            raise StorageWriteError(
                f"Record file for user '{user_id}' could not be written."
            ) from e

    @staticmethod
    def _decrypt(decrypt: Decrypter, cipher_text: str) -> str:
        try:
            return decrypt(cipher_text)
        except DecryptionError:
            raise
        except SecurityError as e:
            raise DecryptionError(str(e)) from e

    # --- Cache management ---

    def _load_collection(self, user_id: str, decrypt: Decrypter) -> RecordCollection:
        cipher_text = self._read_file(user_id)
        if cipher_text is None:
            log.debug(f"No record file for user '{user_id}', starting empty.")
            return {}
        return parse_collection(self._decrypt(decrypt, cipher_text))

    def _ensure_loaded(self, user_id: str, decrypt: Decrypter) -> RecordCollection:
        """Returns the user's cached collection, loading it from disk if needed."""
        if self._slot is None or self._slot.user_id != user_id:
            records = self._load_collection(user_id, decrypt)
            if self._slot is not None:
                log.debug(f"Evicting cached records of user '{self._slot.user_id}'.")
            self._slot = CacheSlot(user_id=user_id, records=records)
            log.debug(f"Loaded {len(records)} records for user '{user_id}'.")
        return self._slot.records

    def _persist(
        self, user_id: str, records: RecordCollection, encrypt: Encrypter
    ) -> None:
        """Encrypts and writes the full collection, then caches it."""
        cipher_text = encrypt(serialize_collection(records))
        self._write_file(user_id, cipher_text)
        self._slot = CacheSlot(user_id=user_id, records=records)
        log.debug(f"Persisted {len(records)} records for user '{user_id}'.")

    def invalidate(self) -> None:
        """Drops the cached collection so the next access reloads from disk."""
        self._slot = None

    # --- Public operations ---

    def get(
        self, user_id: str, record_id: str, decrypt: Decrypter
    ) -> ContactRecord | None:
        """Returns the record with ``record_id`` or None if absent."""
        return self._ensure_loaded(user_id, decrypt).get(record_id)

    def list_records(self, user_id: str, decrypt: Decrypter) -> list[ContactRecord]:
        """Returns all of the user's records."""
        return list(self._ensure_loaded(user_id, decrypt).values())

    def count(self, user_id: str, decrypt: Decrypter) -> int:
        """Returns the number of records the user has."""
        return len(self._ensure_loaded(user_id, decrypt))

    def delete(
        self, user_id: str, record_id: str, decrypt: Decrypter, encrypt: Encrypter
    ) -> None:
        """
        Removes a record and persists the remaining collection.

        Raises:
            NotFoundError: If the record does not exist. Storage is left untouched.
        """
        records = self._ensure_loaded(user_id, decrypt)
        if record_id not in records:
            raise NotFoundError(f"Record '{record_id}' not found.")
        updated = {k: v for k, v in records.items() if k != record_id}
        self._persist(user_id, updated, encrypt)

    def set(
        self,
        user_id: str,
        record: ContactRecord,
        decrypt: Decrypter,
        encrypt: Encrypter,
    ) -> None:
        """
        Adds or replaces a record and persists the collection.

        Replacing an existing record always succeeds; adding a new one requires
        room below the record limit.

        Raises:
            CapacityExceededError: If the record is new and the collection is full.
        """
        records = self._ensure_loaded(user_id, decrypt)
        if record.record_id not in records and len(records) >= self.max_records:
            log.warning(f"User '{user_id}' reached the limit of {self.max_records}.")
            raise CapacityExceededError(
                f"Number of records exceeds maximum ({self.max_records})."
            )
        updated = dict(records)
        updated[record.record_id] = record
        self._persist(user_id, updated, encrypt)

    def exists(self, user_id: str, decrypt: Decrypter) -> bool:
        """
        Reports whether a record keyed by ``user_id`` is present.

        The user identifier is looked up among the record identifiers, not the
        users. Callers that need a record check should use :meth:`get`.
        """
        return user_id in self._ensure_loaded(user_id, decrypt)

    def is_full(self, user_id: str, decrypt: Decrypter) -> bool:
        """Reports whether the user has reached the record limit."""
        return len(self._ensure_loaded(user_id, decrypt)) >= self.max_records

    def export_all(self, user_id: str, decrypt: Decrypter) -> str:
        """
        Returns the decrypted collection text straight from the backing file.

        Raises:
            StorageReadError: If the user has no file or it cannot be read.
        """
        cipher_text = self._read_file(user_id)
        if cipher_text is None:
            raise StorageReadError(f"No record file exists for user '{user_id}'.")
        return self._decrypt(decrypt, cipher_text)

    def import_all(
        self, user_id: str, decrypt: Decrypter, encrypt: Encrypter, text: str
    ) -> int:
        """
        Merges the records in ``text`` into the user's collection and persists it.

        Records are merged in text order. On the first identifier that already
        exists, the records merged before it are persisted and kept, then
        DuplicateRecordError is raised. The record limit is not enforced here.

        Returns:
            The number of records imported.
        """
        records = self._ensure_loaded(user_id, decrypt)
        incoming = parse_collection(text)
        merged = dict(records)
        for record_id, record in incoming.items():
            if record_id in merged:
                imported = len(merged) - len(records)
                if imported:
                    self._persist(user_id, merged, encrypt)
                log.warning(
                    f"Import for user '{user_id}' stopped at duplicate '{record_id}'"
                    f" after {imported} records."
                )
                raise DuplicateRecordError(f"Duplicate record ID '{record_id}'.")
            merged[record_id] = record
        self._persist(user_id, merged, encrypt)
        log.info(f"Imported {len(incoming)} records for user '{user_id}'.")
        return len(incoming)
