"""Async IMAP session wrapping stdlib imaplib with asyncio.to_thread."""

from __future__ import annotations

import asyncio
import base64
import imaplib
import re
from dataclasses import dataclass

import structlog

from .config import ImapConfig
from .errors import FetchError, MissingBodyError, SessionError

logger = structlog.get_logger()

SUMMARY_ITEMS = "(UID ENVELOPE BODYSTRUCTURE)"
BODY_ITEMS = "(BODY.PEEK[])"

_MESSAGE_START = re.compile(rb"^(\d+) \(")
_UID_ITEM = re.compile(rb"UID (\d+)", re.IGNORECASE)
_DQUOTE, _BACKSLASH, _LPAREN, _RPAREN = b'"\\()'
_ITEM_BOUNDARY = b" ("


@dataclass(frozen=True)
class MessageSummary:
    """Metadata the batch FETCH yields for one message."""

    seq: int
    uid: int


class AsyncImapClient:
    """Async-friendly IMAP session bound to one folder.

    All blocking ``imaplib`` operations are wrapped with
    ``asyncio.to_thread()`` to avoid blocking the event loop.
    """

    def __init__(self, config: ImapConfig) -> None:
        self._config = config
        self._conn: imaplib.IMAP4_SSL | imaplib.IMAP4 | None = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection and log in."""
        try:
            await asyncio.to_thread(self._connect_sync)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise SessionError(f"cannot log in to {self._config.server}: {exc}") from exc
        logger.info("imap_connected", server=self._config.server)

    def _connect_sync(self) -> None:
        conn: imaplib.IMAP4
        if self._config.use_ssl:
            conn = imaplib.IMAP4_SSL(self._config.host, self._config.port)
        else:
            conn = imaplib.IMAP4(self._config.host, self._config.port)
        try:
            conn.login(self._config.username, self._config.password.get_secret_value())
        except imaplib.IMAP4.error:
            conn.shutdown()
            raise
        self._conn = conn

    async def select_folder(self) -> int:
        """Select the configured folder read-only.  Returns its message count."""
        conn = self._require_conn()
        folder = self._config.folder
        try:
            mailbox = _quote(encode_mailbox(folder))
            status, data = await asyncio.to_thread(conn.select, mailbox, True)
        except (imaplib.IMAP4.error, OSError, UnicodeError) as exc:
            raise SessionError(f"cannot select folder {folder!r}: {exc}") from exc
        if status != "OK":
            raise SessionError(f"cannot select folder {folder!r}: {_describe(data)}")
        try:
            count = int(data[0])
        except (TypeError, ValueError, IndexError) as exc:
            raise SessionError(f"unexpected SELECT response for {folder!r}: {data!r}") from exc
        logger.info("folder_selected", folder=folder, messages=count)
        return count

    async def logout(self) -> None:
        """Log out, raising :class:`SessionError` if the server refuses."""
        conn = self._require_conn()
        self._conn = None
        try:
            await asyncio.to_thread(conn.logout)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise SessionError(f"logout from {self._config.server} failed: {exc}") from exc
        logger.info("imap_logged_out")

    async def disconnect(self) -> None:
        """Best-effort close and logout for error paths."""
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await asyncio.to_thread(_disconnect_sync, conn)
            logger.info("imap_disconnected")

    # ------------------------------------------------------------------
    # Message retrieval
    # ------------------------------------------------------------------

    async def fetch_summaries(
        self,
        start: int,
        end: int,
        queue: asyncio.Queue[MessageSummary | None],
    ) -> None:
        """Producer for one batch: put a summary per message, then ``None``.

        The channel is closed with ``None`` whether the FETCH succeeded or
        not; a protocol failure is raised as :class:`FetchError` only after
        that, so the consumer sees it once it has drained the queue and
        awaits this coroutine.
        """
        conn = self._require_conn()
        try:
            summaries = await asyncio.to_thread(_fetch_summaries_sync, conn, start, end)
        except Exception:
            await queue.put(None)
            raise
        for summary in summaries:
            await queue.put(summary)
        await queue.put(None)

    async def fetch_body(self, uid: int) -> bytes:
        """Fetch the full RFC 822 body of *uid* without setting ``\\Seen``."""
        conn = self._require_conn()
        try:
            status, data = await asyncio.to_thread(conn.uid, "FETCH", str(uid), BODY_ITEMS)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise FetchError(f"body fetch for UID {uid} failed: {exc}") from exc
        if status != "OK":
            raise FetchError(f"body fetch for UID {uid} failed: {_describe(data)}")

        for item in data:
            if isinstance(item, tuple) and len(item) == 2 and isinstance(item[1], bytes):
                return item[1]
        raise MissingBodyError(f"server returned no body for UID {uid}")

    def _require_conn(self) -> imaplib.IMAP4:
        if self._conn is None:
            raise SessionError("IMAP session is not connected")
        return self._conn


# ------------------------------------------------------------------
# Synchronous helpers (run in thread)
# ------------------------------------------------------------------


def _fetch_summaries_sync(conn: imaplib.IMAP4, start: int, end: int) -> list[MessageSummary]:
    try:
        status, data = conn.fetch(f"{start}:{end}", SUMMARY_ITEMS)
    except (imaplib.IMAP4.error, OSError) as exc:
        raise FetchError(f"FETCH {start}:{end} failed: {exc}") from exc
    if status != "OK":
        raise FetchError(f"FETCH {start}:{end} failed: {_describe(data)}")
    return parse_summaries(data)


def _disconnect_sync(conn: imaplib.IMAP4) -> None:
    try:
        conn.close()
    except (imaplib.IMAP4.error, OSError):
        pass
    try:
        conn.logout()
    except (imaplib.IMAP4.error, OSError):
        pass


def parse_summaries(data: list) -> list[MessageSummary]:
    """Turn an imaplib FETCH response into summaries, in server order.

    imaplib returns one entry per response line: plain ``bytes`` or a
    ``(prefix, literal)`` tuple when the line carries a literal (an
    ENVELOPE subject, say).  Only the non-literal text is scanned for the
    ``UID`` item.
    """
    messages: list[tuple[int, bytes]] = []
    for item in data:
        if item is None:
            continue
        text = item[0] if isinstance(item, tuple) else item
        match = _MESSAGE_START.match(text)
        if match:
            messages.append((int(match.group(1)), text))
        elif messages:
            seq, head = messages[-1]
            messages[-1] = (seq, head + b" " + text)

    summaries: list[MessageSummary] = []
    for seq, text in messages:
        uid = _top_level_uid(text)
        if uid is None:
            raise FetchError(f"FETCH response for message {seq} carries no UID")
        summaries.append(MessageSummary(seq=seq, uid=uid))
    return summaries


def _top_level_uid(text: bytes) -> int | None:
    """Find the ``UID`` data item directly inside the FETCH attribute list.

    Quoted strings are skipped and nested lists (ENVELOPE, BODYSTRUCTURE)
    are not searched, so a subject reading ``UID 5`` is never mistaken
    for the item.
    """
    depth = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == _DQUOTE:
            i += 1
            while i < len(text) and text[i] != _DQUOTE:
                i += 2 if text[i] == _BACKSLASH else 1
        elif ch == _LPAREN:
            depth += 1
        elif ch == _RPAREN:
            depth -= 1
        elif depth == 1 and text[i - 1] in _ITEM_BOUNDARY:
            match = _UID_ITEM.match(text, i)
            if match:
                return int(match.group(1))
        i += 1
    return None


def encode_mailbox(name: str) -> str:
    """Encode a mailbox name as IMAP modified UTF-7 (RFC 3501 §5.1.3)."""
    out: list[str] = []
    pending: list[str] = []

    def flush() -> None:
        if pending:
            raw = "".join(pending).encode("utf-16-be")
            chunk = base64.b64encode(raw).decode("ascii").rstrip("=").replace("/", ",")
            out.append(f"&{chunk}-")
            pending.clear()

    for ch in name:
        if 0x20 <= ord(ch) <= 0x7E:
            flush()
            out.append("&-" if ch == "&" else ch)
        else:
            pending.append(ch)
    flush()
    return "".join(out)


def _quote(mailbox: str) -> str:
    if mailbox.startswith('"') or not re.search(r'[\s"\\()]', mailbox):
        return mailbox
    escaped = mailbox.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _describe(data: list) -> str:
    parts = [d.decode(errors="replace") if isinstance(d, bytes) else str(d) for d in data or []]
    return " ".join(parts) or "no response text"
