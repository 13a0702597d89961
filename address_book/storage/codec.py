"""
Converts a whole record collection to and from its plain-text form.

The text form is one encoded record per line, joined by newlines with no
trailing newline. It is what gets encrypted into a user's backing file and
what import/export files contain.
"""

import logging

from address_book.exceptions import DuplicateRecordError
from address_book.models.record import ContactRecord

log = logging.getLogger(__name__)

RecordCollection = dict[str, ContactRecord]

LINE_SEPARATOR = "\n"


def serialize_collection(collection: RecordCollection) -> str:
    """Encodes every record of the collection, in iteration order."""
    return LINE_SEPARATOR.join(record.to_line() for record in collection.values())


def parse_collection(text: str) -> RecordCollection:
    """
    Decodes collection text into a new mapping.

    Blank lines are ignored so hand-edited import files with a trailing newline
    are accepted.

    Raises:
        DuplicateRecordError: If two lines share a record identifier.
        RecordFormatError: If a line cannot be decoded.
    """
    collection: RecordCollection = {}
    for line_number, line in enumerate(text.split(LINE_SEPARATOR), 1):
        if not line.strip():
            continue
        record = ContactRecord.from_line(line)
        if record.record_id in collection:
            raise DuplicateRecordError(
                f"Duplicate record '{record.record_id}' on line {line_number}."
            )
        collection[record.record_id] = record
    log.debug(f"Parsed {len(collection)} records.")
    return collection
