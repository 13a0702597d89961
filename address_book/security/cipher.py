"""
Password-based encryption for record files.

The record store only needs two callables, ``encrypt`` and ``decrypt``. This
module provides them through :class:`FernetCipher`, whose key is derived from
the user's password with PBKDF2.
"""

import base64
import logging
import secrets
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from address_book.exceptions import DecryptionError, EncryptionError, SecurityError

log = logging.getLogger(__name__)

SALT_BYTES = 16


class Cipher(Protocol):
    """Encrypts and decrypts text. Implementations raise SecurityError subclasses."""

    def encrypt(self, plain_text: str) -> str: ...

    def decrypt(self, cipher_text: str) -> str: ...


def generate_salt() -> str:
    """Returns a new random salt, hex encoded."""
    return secrets.token_hex(SALT_BYTES)


def derive_key(password: str, salt: bytes, iterations: int) -> bytes:
    """Derives a Fernet key from a password with PBKDF2-HMAC-SHA256."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))


class FernetCipher:
    """Authenticated symmetric encryption producing ASCII tokens."""

    def __init__(self, key: bytes):
        try:
            self._fernet = Fernet(key)
        except (TypeError, ValueError) as e:
            raise SecurityError(f"Invalid encryption key: {e}") from e

    @classmethod
    def from_password(
        cls, password: str, salt: bytes, iterations: int
    ) -> "FernetCipher":
        """
        Builds a cipher whose key is derived from ``password``.

        Args:
            password: The user's password.
            salt: Per-installation salt from the configuration.
            iterations: PBKDF2 iteration count.
        """
        log.debug(f"Deriving encryption key ({iterations} iterations).")
        return cls(derive_key(password, salt, iterations))

    def encrypt(self, plain_text: str) -> str:
        try:
            return self._fernet.encrypt(plain_text.encode("utf-8")).decode("ascii")
        except UnicodeError as e:
            raise EncryptionError(f"Could not encrypt data: {e}") from e

    def decrypt(self, cipher_text: str) -> str:
        try:
            return self._fernet.decrypt(cipher_text.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise DecryptionError(
                "Could not decrypt records. The password may be wrong or the "
                "file may be corrupt."
            ) from e
