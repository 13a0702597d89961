"""
Security Layer.

Provides the encrypt/decrypt capability consumed by the record store.
"""

from .cipher import Cipher, FernetCipher, generate_salt

__all__ = ["Cipher", "FernetCipher", "generate_salt"]
