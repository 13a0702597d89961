"""
Line-oriented command interpreter for the address book.

Each input line is one command: a three letter name followed by
whitespace-separated arguments. Commands map onto RecordStore operations for
the logged-in user.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from address_book.exceptions import (
    AddressBookError,
    CommandError,
    DuplicateRecordError,
    NotFoundError,
    StorageReadError,
    StorageWriteError,
)
from address_book.models.record import ContactRecord
from address_book.security.cipher import Cipher
from address_book.storage.record_store import RecordStore

log = logging.getLogger(__name__)

# (user_id, password) -> cipher for that user's session
CipherFactory = Callable[[str, str], Cipher]

COMMAND_HELP = {
    "LIN": "LIN <userID> <password>  Log in and unlock the user's records.",
    "LOU": "LOU  Log out the current user.",
    "CHP": "CHP <old password>  Change the current user's password.",
    "ADU": "ADU <userID>  Add a user account.",
    "DEU": "DEU <userID>  Delete a user account.",
    "DAL": "DAL [<userID>]  Display the audit log.",
    "ADR": "ADR <recordID> [<field1=value1> <field2=value2> ...]  Add a record.",
    "DER": "DER <recordID>  Delete a record.",
    "EDR": "EDR <recordID> <field1=value1> [<field2=value2> ...]  Edit a record; "
    "an empty value removes the field.",
    "RER": "RER [<recordID>] [<fieldname> ...]  Read one or all records.",
    "IMD": "IMD <Input_File>  Import records from a file.",
    "EXD": "EXD <Output_file>  Export all records to a file.",
    "HLP": "HLP [<command name>]  Show help.",
}

UNSUPPORTED_COMMANDS = {"ADU", "DEU", "DAL", "CHP"}

COMMAND_NAME_LENGTH = 3

# Commands whose argument is a file path, exempt from the token character set
FILE_ARGUMENT_COMMANDS = {"IMD", "EXD"}

TOKEN_PATTERN = re.compile(r"[0-9A-Za-z.@\-()]+")
ARGUMENT_PATTERN = re.compile(r"[0-9A-Za-z.@\-()]+(=[0-9A-Za-z.@\-()]*)?")


@dataclass
class CommandResult:
    """Outcome of a single command line."""

    ok: bool
    message: str = ""
    records: list[ContactRecord] = field(default_factory=list)
    fields: list[str] = field(default_factory=list)
    error: AddressBookError | None = None


@dataclass
class Session:
    user_id: str
    cipher: Cipher


class CommandInterpreter:
    """Parses command lines and runs them against a RecordStore."""

    def __init__(self, store: RecordStore, cipher_factory: CipherFactory):
        self.store = store
        self._cipher_factory = cipher_factory
        self._session: Session | None = None
        self._handlers: dict[str, Callable[[list[str]], CommandResult]] = {
            "LIN": self._login,
            "LOU": self._logout,
            "ADR": self._add_record,
            "DER": self._delete_record,
            "EDR": self._edit_record,
            "RER": self._read_records,
            "IMD": self._import_records,
            "EXD": self._export_records,
            "HLP": self._help,
        }

    @property
    def current_user(self) -> str | None:
        return self._session.user_id if self._session else None

    def execute(self, line: str) -> CommandResult:
        """
        Runs one command line. Errors are reported in the result, not raised.

        The command name is the first three characters of the line and must be
        followed by whitespace or the end of the line.
        """
        stripped = line.strip()
        if not stripped:
            return CommandResult(ok=True)

        name, rest = stripped[:COMMAND_NAME_LENGTH], stripped[COMMAND_NAME_LENGTH:]
        if rest and not rest[0].isspace():
            return CommandResult(
                ok=False,
                message=f"Unknown command '{stripped.split()[0]}'. Type HLP for help.",
            )
        if name in UNSUPPORTED_COMMANDS:
            return CommandResult(
                ok=False, message=f"{name} is not supported by this address book."
            )
        handler = self._handlers.get(name)
        if handler is None:
            return CommandResult(
                ok=False, message=f"Unknown command '{name}'. Type HLP for help."
            )

        args = rest.split()
        try:
            if name not in FILE_ARGUMENT_COMMANDS:
                self._check_tokens(args)
            return handler(args)
        except AddressBookError as e:
            log.debug(f"{name} failed: {type(e).__name__}: {e}")
            return CommandResult(ok=False, message=str(e), error=e)

    # --- Helpers ---

    @staticmethod
    def _check_tokens(tokens: list[str]) -> None:
        """Rejects arguments outside the grammar's character set."""
        for token in tokens:
            if not ARGUMENT_PATTERN.fullmatch(token):
                raise CommandError(
                    f"Invalid argument '{token}'. Use letters, digits and '.@-()'"
                    " with at most one '=' between a field and its value."
                )

    def _require_session(self) -> Session:
        if self._session is None:
            raise CommandError("No active login session. Use LIN first.")
        return self._session

    @staticmethod
    def _parse_fields(tokens: list[str]) -> dict[str, str]:
        fields: dict[str, str] = {}
        for token in tokens:
            name, sep, value = token.partition("=")
            if not sep or not name:
                raise CommandError(f"Expected <field=value>, got '{token}'.")
            if name in fields:
                raise CommandError(f"Field '{name}' given more than once.")
            fields[name] = value
        return fields

    @staticmethod
    def _build_record(record_id: str, fields: dict[str, str]) -> ContactRecord:
        try:
            return ContactRecord(record_id=record_id, fields=fields)
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise CommandError(f"Invalid record: {messages}") from e

    # --- Session commands ---

    def _login(self, args: list[str]) -> CommandResult:
        if len(args) != 2:
            raise CommandError("Usage: LIN <userID> <password>")
        if self._session is not None:
            raise CommandError(
                f"User '{self._session.user_id}' is already logged in. Use LOU first."
            )

        user_id, password = args
        if not (TOKEN_PATTERN.fullmatch(user_id) and TOKEN_PATTERN.fullmatch(password)):
            raise CommandError(
                "User ID and password may only use letters, digits and '.@-()'."
            )
        cipher = self._cipher_factory(user_id, password)
        # Loading the collection proves the password can decrypt it
        count = self.store.count(user_id, cipher.decrypt)
        self._session = Session(user_id=user_id, cipher=cipher)
        log.info(f"User '{user_id}' logged in.")
        return CommandResult(ok=True, message=f"OK. {count} records loaded.")

    def _logout(self, args: list[str]) -> CommandResult:
        session = self._require_session()
        self.store.invalidate()
        self._session = None
        log.info(f"User '{session.user_id}' logged out.")
        return CommandResult(ok=True, message="OK")

    # --- Record commands ---

    def _add_record(self, args: list[str]) -> CommandResult:
        session = self._require_session()
        if not args:
            raise CommandError("Usage: " + COMMAND_HELP["ADR"])
        record = self._build_record(args[0], self._parse_fields(args[1:]))
        decrypt = session.cipher.decrypt
        if self.store.get(session.user_id, record.record_id, decrypt) is not None:
            raise DuplicateRecordError(f"Duplicate record ID '{record.record_id}'.")
        self.store.set(session.user_id, record, decrypt, session.cipher.encrypt)
        return CommandResult(ok=True, message="OK")

    def _delete_record(self, args: list[str]) -> CommandResult:
        session = self._require_session()
        if len(args) != 1:
            raise CommandError("Usage: " + COMMAND_HELP["DER"])
        self.store.delete(
            session.user_id, args[0], session.cipher.decrypt, session.cipher.encrypt
        )
        return CommandResult(ok=True, message="OK")

    def _edit_record(self, args: list[str]) -> CommandResult:
        session = self._require_session()
        if len(args) < 2:
            raise CommandError("Usage: " + COMMAND_HELP["EDR"])
        record_id, updates = args[0], self._parse_fields(args[1:])
        existing = self.store.get(session.user_id, record_id, session.cipher.decrypt)
        if existing is None:
            raise NotFoundError(f"Record '{record_id}' not found.")
        try:
            updated = existing.with_fields(updates)
        except ValidationError as e:
            raise CommandError(f"Invalid field: {e.errors()[0]['msg']}") from e
        self.store.set(
            session.user_id, updated, session.cipher.decrypt, session.cipher.encrypt
        )
        return CommandResult(ok=True, message="OK")

    def _read_records(self, args: list[str]) -> CommandResult:
        """
        RER with a leading argument naming an existing record shows that record;
        otherwise every argument is taken as a field name and all records are shown.
        """
        session = self._require_session()
        decrypt = session.cipher.decrypt
        if args:
            record = self.store.get(session.user_id, args[0], decrypt)
            if record is not None:
                return CommandResult(
                    ok=True, message="OK", records=[record], fields=args[1:]
                )
        records = self.store.list_records(session.user_id, decrypt)
        return CommandResult(
            ok=True, message=f"{len(records)} records.", records=records, fields=args
        )

    def _import_records(self, args: list[str]) -> CommandResult:
        session = self._require_session()
        if len(args) != 1:
            raise CommandError("Usage: " + COMMAND_HELP["IMD"])
        path = Path(args[0])
        try:
            text = path.read_text(encoding="ascii")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageReadError(f"Could not read import file '{path}': {e}") from e
        imported = self.store.import_all(
            session.user_id, session.cipher.decrypt, session.cipher.encrypt, text
        )
        return CommandResult(ok=True, message=f"OK. Imported {imported} records.")

    def _export_records(self, args: list[str]) -> CommandResult:
        session = self._require_session()
        if len(args) != 1:
            raise CommandError("Usage: " + COMMAND_HELP["EXD"])
        path = Path(args[0])
        text = self.store.export_all(session.user_id, session.cipher.decrypt)
        try:
            path.write_text(text, encoding="ascii")
        except (OSError, UnicodeEncodeError) as e:
            raise StorageWriteError(f"Could not write export file '{path}': {e}") from e
        return CommandResult(ok=True, message=f"OK. Exported to '{path}'.")

    def _help(self, args: list[str]) -> CommandResult:
        if not args:
            return CommandResult(ok=True, message="\n".join(COMMAND_HELP.values()))
        if len(args) == 1 and args[0] in COMMAND_HELP:
            return CommandResult(ok=True, message=COMMAND_HELP[args[0]])
        raise CommandError("Usage: " + COMMAND_HELP["HLP"])
