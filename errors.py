class LedgerError(Exception):
    """Base class for errors that abort a ledger run."""


class InputFileError(LedgerError):
    """The transaction log could not be opened or read."""


class MalformedHeaderError(LedgerError):
    """The header row is missing a required column."""


class OutputFileError(LedgerError):
    """The account report could not be written."""
