"""Attachment Archiver — save IMAP attachments to disk with a resumable UID ledger."""

from .archiver import AttachmentArchiver, RunSummary, iter_batches
from .config import ArchiverConfig, ImapConfig
from .errors import (
    ArchiverError,
    ConfigurationError,
    FetchError,
    LedgerError,
    MissingBodyError,
    ParseError,
    SessionError,
    StorageError,
)
from .imap_client import AsyncImapClient, MessageSummary
from .ledger import ProcessedLedger, append_processed_uid, load_processed_uids
from .logging import setup_logging
from .parser import MimeParser, ParsedAttachment
from .storage import AttachmentStore, sanitize_filename

__all__ = [
    "ArchiverConfig",
    "ArchiverError",
    "AsyncImapClient",
    "AttachmentArchiver",
    "AttachmentStore",
    "ConfigurationError",
    "FetchError",
    "ImapConfig",
    "LedgerError",
    "MessageSummary",
    "MimeParser",
    "MissingBodyError",
    "ParseError",
    "ParsedAttachment",
    "ProcessedLedger",
    "RunSummary",
    "SessionError",
    "StorageError",
    "append_processed_uid",
    "iter_batches",
    "load_processed_uids",
    "sanitize_filename",
    "setup_logging",
]
