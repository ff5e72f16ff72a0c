"""AttachmentArchiver: walk one IMAP folder in batches and save every
attachment of every message not yet recorded in the ledger.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import structlog

from .config import ArchiverConfig
from .imap_client import AsyncImapClient, MessageSummary
from .ledger import ProcessedLedger
from .parser import MimeParser
from .storage import AttachmentStore

logger = structlog.get_logger()


def iter_batches(total: int, batch_size: int) -> Iterator[tuple[int, int]]:
    """Yield inclusive ``(start, end)`` ranges that partition ``[1, total]``."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    for start in range(1, total + 1, batch_size):
        yield start, min(start + batch_size - 1, total)


@dataclass
class RunSummary:
    """Counters for one archiver run."""

    total_messages: int = 0
    batches: int = 0
    processed: int = 0
    skipped: int = 0
    attachments_saved: int = 0


class AttachmentArchiver:
    """Archive attachments from the configured IMAP folder to disk.

    One run loads the ledger, opens the session, and then for every batch
    of sequence numbers starts a producer task that streams message
    summaries into a bounded queue while :meth:`_process_batch` consumes
    them.  Every error propagates and ends the run; the ledger makes the
    next run resume where this one stopped.
    """

    def __init__(
        self,
        config: ArchiverConfig,
        *,
        imap: AsyncImapClient | None = None,
        parser: MimeParser | None = None,
        store: AttachmentStore | None = None,
    ) -> None:
        self._config = config
        self._imap = imap or AsyncImapClient(config.imap)
        self._parser = parser or MimeParser()
        self._store = store or AttachmentStore(config.destination_dir)
        self._ledger: ProcessedLedger | None = None
        self._summary = RunSummary()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self) -> RunSummary:
        """Archive the whole folder once and return the run counters."""
        self._summary = RunSummary()
        # A corrupt ledger must fail the run before any network traffic.
        self._ledger = await asyncio.to_thread(ProcessedLedger.load, self._config.ledger_path)

        await self._imap.connect()
        try:
            total = await self._imap.select_folder()
            self._summary.total_messages = total

            if total == 0:
                logger.info("mailbox_empty", folder=self._config.imap.folder)
            else:
                await asyncio.to_thread(self._store.ensure_directory)
                for start, end in iter_batches(total, self._config.batch_size):
                    await self._process_batch(start, end)

            await self._imap.logout()
        finally:
            await self._imap.disconnect()

        logger.info(
            "run_complete",
            total_messages=self._summary.total_messages,
            batches=self._summary.batches,
            processed=self._summary.processed,
            skipped=self._summary.skipped,
            attachments_saved=self._summary.attachments_saved,
        )
        return self._summary

    # ------------------------------------------------------------------
    # Batch loop
    # ------------------------------------------------------------------

    async def _process_batch(self, start: int, end: int) -> None:
        """Drain one batch, then check how its FETCH completed.

        The producer's result is only awaited after the ``None`` close
        marker has been received.  Awaiting it earlier could block forever
        on a full queue whose producer is waiting to put.
        """
        assert self._ledger is not None
        logger.info("batch_fetching", start=start, end=end)

        queue: asyncio.Queue[MessageSummary | None] = asyncio.Queue(
            maxsize=self._config.batch_size
        )
        producer = asyncio.create_task(self._imap.fetch_summaries(start, end, queue))

        try:
            while (summary := await queue.get()) is not None:
                if summary.uid in self._ledger:
                    self._summary.skipped += 1
                    logger.debug("message_skipped", uid=summary.uid, seq=summary.seq)
                    continue

                logger.info("message_processing", uid=summary.uid, seq=summary.seq)
                saved = await self.process_message(summary.uid)
                await asyncio.to_thread(self._ledger.record, summary.uid)
                self._summary.processed += 1
                self._summary.attachments_saved += len(saved)
        except BaseException:
            producer.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await producer
            raise

        await producer
        self._summary.batches += 1
        logger.info("batch_processed", start=start, end=end)

    # ------------------------------------------------------------------
    # Single message
    # ------------------------------------------------------------------

    async def process_message(self, uid: int) -> list[Path]:
        """Fetch, parse and store the attachments of *uid*.

        Returns the paths written.  Each file is closed before the next
        part is read.
        """
        raw_bytes = await self._imap.fetch_body(uid)
        saved: list[Path] = []
        for attachment in self._parser.iter_attachments(raw_bytes):
            path = await asyncio.to_thread(self._store.save, attachment)
            saved.append(path)
        if not saved:
            logger.debug("message_has_no_attachments", uid=uid)
        return saved
