"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class AddressBookError(Exception):
    """Base exception for all application-specific errors."""


class StorageError(AddressBookError):
    """Base class for failures touching a user's backing file."""


class StorageReadError(StorageError):
    """Raised when a backing file exists but cannot be read."""


class StorageWriteError(StorageError):
    """Raised when a backing file cannot be written."""


class SecurityError(AddressBookError):
    """Raised when the encrypt or decrypt capability fails."""


class DecryptionError(SecurityError):
    """Raised when stored data cannot be decrypted (wrong key or corrupt data)."""


class EncryptionError(SecurityError):
    """Raised when plain text cannot be encrypted."""


class NotFoundError(AddressBookError):
    """Raised when deleting a record that does not exist."""


class CapacityExceededError(AddressBookError):
    """Raised when adding a new record to a collection that is already full."""


class DuplicateRecordError(AddressBookError):
    """
    Raised when two records share an identifier, either inside one collection
    text or while merging an import into existing records.
    """


class RecordFormatError(AddressBookError):
    """Raised when a record line cannot be decoded."""


class InvalidIdentifierError(AddressBookError):
    """Raised when a user identifier cannot be used to name a backing file."""


class ConfigurationError(AddressBookError):
    """Raised for issues related to configuration loading or validation."""


class CommandError(AddressBookError):
    """Raised when an interpreter command line is malformed."""
