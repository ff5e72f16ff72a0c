"""Exception hierarchy for the archiver.

Every failure is fatal for the run.  Components raise one of these and
the entry point turns it into a non-zero exit status.
"""

from __future__ import annotations


class ArchiverError(Exception):
    """Base exception for all archiver failures."""


class ConfigurationError(ArchiverError):
    """Raised when settings or persisted state cannot be loaded."""


class LedgerError(ConfigurationError):
    """Raised when the processed-UID ledger is unreadable or corrupt."""


class SessionError(ArchiverError):
    """Raised when connecting, logging in, selecting or logging out fails."""


class FetchError(ArchiverError):
    """Raised when a FETCH command fails at the protocol level."""


class MissingBodyError(FetchError):
    """Raised when the server answers a body fetch without any body."""


class ParseError(ArchiverError):
    """Raised when a message cannot be split into parts."""


class StorageError(ArchiverError):
    """Raised when an attachment cannot be written to disk."""
