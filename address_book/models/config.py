"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_DATA_DIR = "~/.local/share/address-book/.addresses"
DEFAULT_FILE_PREFIX = "u_"
DEFAULT_KDF_ITERATIONS = 390_000
MIN_SALT_BYTES = 16


class AddressBookConfig(BaseModel):
    """A validated configuration model for the application."""

    # Storage
    data_dir: str = DEFAULT_DATA_DIR
    file_prefix: str = DEFAULT_FILE_PREFIX

    # Key derivation
    salt: str
    kdf_iterations: int = DEFAULT_KDF_ITERATIONS

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("data_dir")
    @classmethod
    def validate_data_dir(cls, v: str) -> str:
        if not v:
            raise ValueError("Data directory cannot be empty.")
        return v

    @field_validator("file_prefix")
    @classmethod
    def validate_file_prefix(cls, v: str) -> str:
        """Ensures the prefix cannot escape the data directory."""
        if not v:
            raise ValueError("File prefix cannot be empty.")
        if any(sep in v for sep in ("/", "\\")) or ".." in v:
            raise ValueError("File prefix cannot contain path separators or '..'.")
        return v

    @field_validator("salt")
    @classmethod
    def validate_salt(cls, v: str) -> str:
        """Ensures the salt is hex encoded and long enough."""
        try:
            raw = bytes.fromhex(v)
        except ValueError as e:
            raise ValueError("Salt must be a hex encoded string.") from e
        if len(raw) < MIN_SALT_BYTES:
            raise ValueError(f"Salt must be at least {MIN_SALT_BYTES} bytes long.")
        return v

    @field_validator("kdf_iterations")
    @classmethod
    def validate_iterations(cls, v: int) -> int:
        if v < 10_000 or v > 10_000_000:
            raise ValueError("KDF iterations must be between 10000 and 10000000.")
        return v

    @property
    def data_path(self) -> Path:
        """The expanded storage directory."""
        return Path(self.data_dir).expanduser()

    @property
    def salt_bytes(self) -> bytes:
        return bytes.fromhex(self.salt)

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
