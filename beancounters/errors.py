import enum


@enum.unique
class ErrorKind(enum.Enum):
    IO = "io"
    PARSE = "parse"
    NOT_FOUND = "not_found"
    INVALID_IDENTIFIER = "invalid_identifier"
    INVALID_DATE = "invalid_date"


class LedgerError(Exception):
    """Base class for ledger errors.

    Every subclass carries a `kind` so callers can tell "not found" apart from
    an internal failure without matching on message text.
    """

    kind: ErrorKind


class LedgerIOError(LedgerError):
    """A ledger file is missing, unreadable or unwritable."""

    kind = ErrorKind.IO


class LedgerParseError(LedgerError):
    """The grammar adapter rejected a file's content."""

    kind = ErrorKind.PARSE

    def __init__(self, message: str, diagnostics: list | None = None):
        super().__init__(message)
        self.diagnostics = diagnostics or []


class NotFoundError(LedgerError):
    """No directive matches the requested identifier or name."""

    kind = ErrorKind.NOT_FOUND


class InvalidIdentifierError(LedgerError):
    kind = ErrorKind.INVALID_IDENTIFIER


class InvalidDateError(LedgerError):
    kind = ErrorKind.INVALID_DATE
