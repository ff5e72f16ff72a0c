"""Entry point for the attachment archiver.

Usage::

    python -m attachment_archiver

Settings come from the environment (or a ``.env`` file): ``IMAP_SERVER``,
``IMAP_USERNAME``, ``IMAP_PASSWORD``, ``IMAP_FOLDER`` and
``DESTINATION_DIR``.
"""

from __future__ import annotations

import asyncio
import sys

import structlog
from pydantic import ValidationError

from .archiver import AttachmentArchiver
from .config import ArchiverConfig
from .errors import ArchiverError
from .logging import setup_logging

logger = structlog.get_logger()


def main() -> None:
    try:
        config = ArchiverConfig()
    except ValidationError as exc:
        setup_logging()
        logger.error("configuration_invalid", errors=exc.errors(include_url=False))
        sys.exit(1)

    setup_logging(json=config.log_json, level=config.log_level)
    archiver = AttachmentArchiver(config)

    try:
        asyncio.run(archiver.run())
    except ArchiverError as exc:
        logger.error("archive_failed", error=str(exc), error_type=type(exc).__name__)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("archive_interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
