"""Shared test fixtures for the attachment archiver test suite."""

from __future__ import annotations

import asyncio
from datetime import datetime
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path

import pytest

from attachment_archiver.config import ArchiverConfig, ImapConfig
from attachment_archiver.errors import FetchError
from attachment_archiver.imap_client import MessageSummary
from attachment_archiver.storage import AttachmentStore

FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0)


@pytest.fixture
def imap_config() -> ImapConfig:
    return ImapConfig(
        server="imap.test.com:993",
        use_ssl=True,
        username="testuser",
        password="testpass",
        folder="INBOX",
    )


@pytest.fixture
def destination_dir(tmp_path: Path) -> Path:
    return tmp_path / "attachments"


@pytest.fixture
def archiver_config(imap_config: ImapConfig, destination_dir: Path) -> ArchiverConfig:
    return ArchiverConfig(
        destination_dir=destination_dir,
        batch_size=2,
        imap=imap_config,
    )


@pytest.fixture
def store(destination_dir: Path) -> AttachmentStore:
    return AttachmentStore(destination_dir, clock=lambda: FIXED_NOW)


# ------------------------------------------------------------------
# Sample EML builders
# ------------------------------------------------------------------


def _build_plain_email(
    *,
    subject: str = "Test Subject",
    body: str = "Hello, World!",
    message_id: str = "<test-001@example.com>",
) -> bytes:
    """Build a simple plain-text email as raw bytes."""
    msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = "sender@example.com"
    msg["To"] = "recipient@example.com"
    msg["Message-ID"] = message_id
    msg["Date"] = "Mon, 01 Jun 2025 12:00:00 +0000"
    return msg.as_bytes()


def _build_multipart_email(
    *,
    body_text: str = "Plain body",
    body_html: str = "<p>HTML body</p>",
    attachments: list[tuple[str, str, bytes]] | None = None,
) -> bytes:
    """Build a multipart email with text, HTML, and optional attachments."""
    msg = MIMEMultipart("mixed")
    msg["Subject"] = "Multipart Email"
    msg["From"] = "sender@example.com"
    msg["To"] = "recipient@example.com"
    msg["Message-ID"] = "<multi-001@example.com>"
    msg["Date"] = "Mon, 01 Jun 2025 12:00:00 +0000"

    alt = MIMEMultipart("alternative")
    alt.attach(MIMEText(body_text, "plain"))
    alt.attach(MIMEText(body_html, "html"))
    msg.attach(alt)

    for filename, content_type, payload in attachments or []:
        maintype, subtype = content_type.split("/", 1)
        part = MIMEBase(maintype, subtype)
        part.set_payload(payload)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)

    return msg.as_bytes()


@pytest.fixture
def plain_eml_bytes() -> bytes:
    return _build_plain_email()


@pytest.fixture
def multipart_eml_bytes() -> bytes:
    return _build_multipart_email(
        attachments=[
            ("report.pdf", "application/pdf", b"%PDF-1.4 fake pdf content"),
            ("data.csv", "text/csv", b"col1,col2\na,b\n"),
        ],
    )


# ------------------------------------------------------------------
# In-memory IMAP session
# ------------------------------------------------------------------


class FakeImapClient:
    """Stands in for AsyncImapClient with a fixed list of (uid, raw) messages."""

    def __init__(
        self,
        messages: list[tuple[int, bytes]],
        *,
        fail_range: tuple[int, int] | None = None,
    ) -> None:
        self.messages = messages
        self.fail_range = fail_range
        self.connect_calls = 0
        self.logged_out = False
        self.disconnected = False
        self.fetch_ranges: list[tuple[int, int]] = []
        self.body_uids: list[int] = []

    async def connect(self) -> None:
        self.connect_calls += 1

    async def select_folder(self) -> int:
        return len(self.messages)

    async def fetch_summaries(
        self,
        start: int,
        end: int,
        queue: asyncio.Queue[MessageSummary | None],
    ) -> None:
        self.fetch_ranges.append((start, end))
        for seq in range(start, end + 1):
            uid, _ = self.messages[seq - 1]
            await queue.put(MessageSummary(seq=seq, uid=uid))
        await queue.put(None)
        if self.fail_range == (start, end):
            raise FetchError(f"FETCH {start}:{end} failed: BAD")

    async def fetch_body(self, uid: int) -> bytes:
        self.body_uids.append(uid)
        for known_uid, raw in self.messages:
            if known_uid == uid:
                return raw
        raise FetchError(f"unknown UID {uid}")

    async def logout(self) -> None:
        self.logged_out = True

    async def disconnect(self) -> None:
        self.disconnected = True
