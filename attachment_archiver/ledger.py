"""Append-only ledger of IMAP UIDs whose attachments are already on disk.

The ledger is a text file with one decimal UID per line.  It is loaded
fully into memory at startup and appended to, one line per message, the
moment a message has been archived.  Each append is its own
open/write/close cycle so a crash never loses earlier progress.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import structlog

from .errors import LedgerError

logger = structlog.get_logger()

MAX_UID = 2**32 - 1


def load_processed_uids(path: Path) -> set[int]:
    """Read every UID recorded in *path*.

    A missing file is an empty ledger.  A line that is not exactly an
    unsigned 32-bit decimal integer (blank lines and stray whitespace
    included), or any other read failure, raises
    :class:`LedgerError`: a corrupt ledger is never partially trusted.
    """
    uids: set[int] = set()
    try:
        with open(path, encoding="ascii") as fh:
            for lineno, line in enumerate(fh, start=1):
                uids.add(_parse_uid(line.removesuffix("\n"), path, lineno))
    except FileNotFoundError:
        return uids
    except (OSError, UnicodeDecodeError) as exc:
        raise LedgerError(f"cannot read ledger {path}: {exc}") from exc
    return uids


def append_processed_uid(path: Path, uid: int) -> None:
    """Append *uid* to the ledger at *path*, creating the file if needed."""
    try:
        with open(path, "a", encoding="ascii") as fh:
            fh.write(f"{uid}\n")
    except OSError as exc:
        raise LedgerError(f"cannot append UID {uid} to ledger {path}: {exc}") from exc


def _parse_uid(text: str, path: Path, lineno: int) -> int:
    if not text.isdigit():
        raise LedgerError(f"{path}:{lineno}: not a message UID: {text!r}")
    uid = int(text)
    if uid > MAX_UID:
        raise LedgerError(f"{path}:{lineno}: UID out of range: {text!r}")
    return uid


class ProcessedLedger:
    """In-memory view of the ledger file plus its append side."""

    def __init__(self, path: Path, uids: set[int] | None = None) -> None:
        self._path = path
        self._uids: set[int] = set(uids or ())

    @classmethod
    def load(cls, path: Path) -> ProcessedLedger:
        uids = load_processed_uids(path)
        logger.info("ledger_loaded", path=str(path), processed=len(uids))
        return cls(path, uids)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def uids(self) -> frozenset[int]:
        return frozenset(self._uids)

    def __contains__(self, uid: object) -> bool:
        return uid in self._uids

    def __len__(self) -> int:
        return len(self._uids)

    def __iter__(self) -> Iterator[int]:
        return iter(self._uids)

    def record(self, uid: int) -> None:
        """Persist *uid*, then remember it in memory.

        The in-memory set only grows after the file append succeeded, so
        it never claims more than the file does.
        """
        append_processed_uid(self._path, uid)
        self._uids.add(uid)
        logger.debug("ledger_recorded", uid=uid)
