"""MIME walker that picks the attachment parts out of a raw message."""

from __future__ import annotations

import email
import email.errors
import email.message
import email.policy
import mimetypes
from collections.abc import Iterator
from dataclasses import dataclass

from .errors import ParseError

UNNAMED = "unnamed"


@dataclass
class ParsedAttachment:
    """A single attachment extracted from a MIME email."""

    filename: str
    content_type: str
    payload: bytes


class MimeParser:
    """Stateless parser: raw RFC 822 bytes → attachment parts."""

    def iter_attachments(self, raw_bytes: bytes) -> Iterator[ParsedAttachment]:
        """Yield every attachment part of the message, in message order.

        Only ``multipart/*`` containers are descended into.  An embedded
        ``message/*`` part is a leaf like any other, so a forwarded email
        is saved whole.  A leaf counts as inline body (and is skipped) when
        its disposition is ``inline``, or when it has no disposition and a
        ``text/*`` type.  Everything else is an attachment.
        """
        try:
            msg = email.message_from_bytes(raw_bytes, policy=email.policy.default)
        except (email.errors.MessageError, ValueError) as exc:
            raise ParseError(f"cannot parse message: {exc}") from exc

        for part in _iter_leaves(msg):
            if _is_attachment(part):
                yield self._extract(part)

    def _extract(self, part: email.message.Message) -> ParsedAttachment:
        content_type = part.get_content_type()
        try:
            filename = part.get_filename()
            if part.get_content_maintype() == "message":
                payload = _embedded_bytes(part)
            else:
                payload = part.get_payload(decode=True)
        except (email.errors.MessageError, LookupError, ValueError) as exc:
            raise ParseError(f"cannot decode {content_type} part: {exc}") from exc

        return ParsedAttachment(
            filename=filename or _fallback_name(content_type),
            content_type=content_type,
            payload=payload or b"",
        )


def _iter_leaves(part: email.message.Message) -> Iterator[email.message.Message]:
    payload = part.get_payload()
    if part.get_content_maintype() == "multipart" and isinstance(payload, list):
        for sub in payload:
            yield from _iter_leaves(sub)
    else:
        yield part


def _embedded_bytes(part: email.message.Message) -> bytes:
    payload = part.get_payload()
    if isinstance(payload, list):
        return b"".join(sub.as_bytes() for sub in payload)
    if isinstance(payload, str):
        return part.get_payload(decode=True) or b""
    return b""


def _is_attachment(part: email.message.Message) -> bool:
    disposition = part.get_content_disposition()
    if disposition == "inline":
        return False
    if disposition is None and part.get_content_maintype() == "text":
        return False
    return True


def _fallback_name(content_type: str) -> str:
    return UNNAMED + (mimetypes.guess_extension(content_type) or ".bin")
