"""Local filesystem store for extracted attachments.

A name that is already taken is never overwritten: the new file gets a
``YYYYMMDD_HHMMSS_`` prefix, and a counter after the timestamp when the
prefixed name is taken too.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path

import structlog

from .errors import StorageError
from .parser import UNNAMED, ParsedAttachment

logger = structlog.get_logger()

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class AttachmentStore:
    """Write attachments under one destination directory."""

    def __init__(
        self,
        destination_dir: Path,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._destination_dir = destination_dir
        self._clock = clock

    @property
    def destination_dir(self) -> Path:
        return self._destination_dir

    def ensure_directory(self) -> None:
        """Create the destination directory if it does not exist yet."""
        try:
            self._destination_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                f"cannot create destination directory {self._destination_dir}: {exc}"
            ) from exc

    def save(self, attachment: ParsedAttachment) -> Path:
        """Write *attachment* to a fresh file and return its path.

        The file is created exclusively and closed as soon as the payload
        is written.
        """
        candidates = self._candidates(sanitize_filename(attachment.filename))
        while True:
            path = next(candidates)
            try:
                with open(path, "xb") as fh:
                    fh.write(attachment.payload)
            except FileExistsError:
                continue
            except OSError as exc:
                raise StorageError(f"cannot write attachment {path}: {exc}") from exc
            logger.info(
                "attachment_saved",
                path=str(path),
                content_type=attachment.content_type,
                size=len(attachment.payload),
            )
            return path

    def _candidates(self, name: str) -> Iterator[Path]:
        yield self._destination_dir / name
        stamp = self._clock().strftime(TIMESTAMP_FORMAT)
        yield self._destination_dir / f"{stamp}_{name}"
        counter = 1
        while True:
            yield self._destination_dir / f"{stamp}_{counter}_{name}"
            counter += 1


def sanitize_filename(name: str) -> str:
    """Reduce a declared attachment name to a single safe path component."""
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    base = base.replace("\x00", "").strip()
    if base in ("", ".", ".."):
        return UNNAMED
    return base
