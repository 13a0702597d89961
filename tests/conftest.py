"""Pytest configuration and fixtures for address book tests."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from address_book.exceptions import DecryptionError, EncryptionError, SecurityError
from address_book.models.record import ContactRecord
from address_book.storage.config_manager import ConfigManager
from address_book.storage.record_store import RecordStore


class PasswordCipher:
    """Reversible stand-in for a real cipher; decrypting with another password fails."""

    def __init__(self, password: str = "secret") -> None:
        self.password = password

    def encrypt(self, plain_text: str) -> str:
        encoded = base64.b64encode(plain_text.encode("utf-8")).decode("ascii")
        return f"{self.password}:{encoded}"

    def decrypt(self, cipher_text: str) -> str:
        prefix = f"{self.password}:"
        if not cipher_text.startswith(prefix):
            raise DecryptionError("wrong password")
        return base64.b64decode(cipher_text[len(prefix) :]).decode("utf-8")


class BrokenCipher:
    """Cipher whose every call fails with a generic security error."""

    def encrypt(self, plain_text: str) -> str:
        raise EncryptionError("encrypt failed")

    def decrypt(self, cipher_text: str) -> str:
        raise SecurityError("decrypt failed")


@pytest.fixture
def cipher() -> PasswordCipher:
    return PasswordCipher()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / ".addresses"


@pytest.fixture
def store(data_dir: Path) -> RecordStore:
    return RecordStore(data_dir)


@pytest.fixture
def bob() -> ContactRecord:
    return ContactRecord(record_id="r1", fields={"name": "Bob"})


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A config file with a cheap key derivation for fast CLI tests."""
    path = tmp_path / "config" / "config.ini"
    ConfigManager(path).save_new_config(
        {
            "salt": "00112233445566778899aabbccddeeff",
            "data_dir": str(tmp_path / "data"),
            "kdf_iterations": 10_000,
        }
    )
    return path
