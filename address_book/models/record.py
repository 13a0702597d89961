"""
Pydantic model for a single contact record and its one-line text encoding.
"""

import re
from collections.abc import Mapping
from types import MappingProxyType
from urllib.parse import quote, unquote

from pydantic import BaseModel, Field, ValidationError, field_validator

from address_book.exceptions import RecordFormatError

RECORD_ID_PATTERN = re.compile(r"[0-9A-Za-z.@\-()]+")
FIELD_NAME_PATTERN = re.compile(r"[A-Za-z][A-Za-z0-9_]*")
MAX_RECORD_ID_LENGTH = 64

TOKEN_SEPARATOR = ";"
VALUE_SEPARATOR = "="

# Characters left readable in encoded lines; everything else is percent-encoded
_SAFE_CHARS = " @()"


def _encode(text: str) -> str:
    return quote(text, safe=_SAFE_CHARS)


class ContactRecord(BaseModel):
    """An immutable contact entry keyed by its record identifier."""

    record_id: str
    fields: dict[str, str] = Field(default_factory=dict, validate_default=True)

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @field_validator("record_id")
    @classmethod
    def validate_record_id(cls, v: str) -> str:
        """Ensures the identifier uses the command grammar's character set."""
        if not RECORD_ID_PATTERN.fullmatch(v):
            raise ValueError(
                f"Record ID '{v}' may only contain letters, digits and '.@-()'."
            )
        if len(v) > MAX_RECORD_ID_LENGTH:
            raise ValueError(
                f"Record ID cannot be longer than {MAX_RECORD_ID_LENGTH} characters."
            )
        return v

    @field_validator("fields")
    @classmethod
    def validate_field_names(cls, v: dict[str, str]) -> Mapping[str, str]:
        """Checks field names and stores the fields as a read-only mapping."""
        for name in v:
            if not FIELD_NAME_PATTERN.fullmatch(name):
                raise ValueError(f"Invalid field name '{name}'.")
        return MappingProxyType(dict(v))

    def to_line(self) -> str:
        """
        Encodes the record as a single ASCII line, e.g. ``r1;name=Bob;city=Paris``.
        """
        tokens = [_encode(self.record_id)]
        tokens.extend(
            f"{_encode(name)}{VALUE_SEPARATOR}{_encode(value)}"
            for name, value in self.fields.items()
        )
        return TOKEN_SEPARATOR.join(tokens)

    @classmethod
    def from_line(cls, line: str) -> "ContactRecord":
        """
        Decodes a line produced by :meth:`to_line`.

        Raises:
            RecordFormatError: If the line is malformed or holds invalid values.
        """
        tokens = line.rstrip("\r").split(TOKEN_SEPARATOR)
        record_id = unquote(tokens[0])
        if not record_id:
            raise RecordFormatError("Record line has an empty record ID.")

        fields: dict[str, str] = {}
        for token in tokens[1:]:
            name, sep, value = token.partition(VALUE_SEPARATOR)
            if not sep:
                raise RecordFormatError(
                    f"Malformed field '{token}' in record '{record_id}'."
                )
            name = unquote(name)
            if name in fields:
                raise RecordFormatError(
                    f"Field '{name}' appears twice in record '{record_id}'."
                )
            fields[name] = unquote(value)

        try:
            return cls(record_id=record_id, fields=fields)
        except ValidationError as e:
            raise RecordFormatError(f"Invalid record '{record_id}': {e}") from e

    def with_fields(self, updates: dict[str, str]) -> "ContactRecord":
        """Returns a new record with ``updates`` applied; empty values drop a field."""
        merged = dict(self.fields)
        for name, value in updates.items():
            if value:
                merged[name] = value
            else:
                merged.pop(name, None)
        return ContactRecord(record_id=self.record_id, fields=merged)

    def project(self, names: list[str] | None = None) -> dict[str, str]:
        """Returns the requested fields (all when ``names`` is empty)."""
        if not names:
            return dict(self.fields)
        return {name: self.fields.get(name, "") for name in names}
