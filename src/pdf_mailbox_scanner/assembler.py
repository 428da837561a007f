"""Shape fetched messages into the external response models.

Body extraction here is shallow: it pulls the first text/plain
and text/html sections out of the raw source with regular expressions and
undoes quoted-printable escapes. It is meant for previews, not for
faithful MIME decoding.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from pdf_mailbox_scanner.mime.walker import walk
from pdf_mailbox_scanner.models import (
    Address,
    FetchedMessage,
    MessageDetail,
    MessageSummary,
    PdfAttachmentDescriptor,
    TextSearchHit,
)

DEFAULT_PDF_FILENAME = "document.pdf"
DEFAULT_SNIPPET_LENGTH = 200

_SOFT_LINE_BREAK = re.compile(r"=\r?\n")
_HEX_ESCAPE = re.compile(r"=([0-9A-Fa-f]{2})")


def _body_pattern(subtype: str) -> re.Pattern[str]:
    # Header line, optional further header lines, blank line, then the body
    # up to the next boundary line (or the end of a single-part message).
    return re.compile(
        rf"Content-Type:\s*text/{subtype}[^\r\n]*\r?\n"
        r"(?:[^\r\n]+\r?\n)*?"
        r"\r?\n"
        r"(.*?)(?=\r?\n--|\Z)",
        re.IGNORECASE | re.DOTALL,
    )


_TEXT_BODY = _body_pattern("plain")
_HTML_BODY = _body_pattern("html")


def format_address(address: Address | None) -> str:
    """Render an envelope address as ``Name <user@host>`` or ``user@host``."""
    if address is None:
        return ""
    email = f"{address.mailbox}@{address.host}"
    return f"{address.name} <{email}>" if address.name else email


def present_attachments(
    attachments: Iterable[PdfAttachmentDescriptor],
) -> tuple[PdfAttachmentDescriptor, ...]:
    """Fill in a synthetic filename for PDF parts that carry none."""
    return tuple(
        a if a.filename else a.model_copy(update={"filename": DEFAULT_PDF_FILENAME})
        for a in attachments
    )


def _header_fields(message: FetchedMessage) -> dict:
    envelope = message.envelope
    if envelope is None:
        return {"uid": message.uid}
    return {
        "uid": message.uid,
        "subject": envelope.subject,
        "from_": format_address(envelope.from_[0] if envelope.from_ else None),
        "date": envelope.date.isoformat() if envelope.date else None,
    }


def summarize(
    message: FetchedMessage,
    attachments: Iterable[PdfAttachmentDescriptor],
) -> MessageSummary:
    return MessageSummary(**_header_fields(message), attachments=present_attachments(attachments))


def search_hit(message: FetchedMessage) -> TextSearchHit:
    attachments = walk(message.structure)
    return TextSearchHit(
        **_header_fields(message),
        attachments=present_attachments(attachments),
        has_pdf=bool(attachments),
    )


def decode_quoted_printable(text: str) -> str:
    """Undo quoted-printable soft line breaks and ``=XX`` escapes."""
    if "=" not in text:
        return text
    text = _SOFT_LINE_BREAK.sub("", text)
    decoded = _HEX_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), text)
    # Escaped octets are usually UTF-8 sequences.
    try:
        return decoded.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return decoded


def parse_body(source: bytes | None) -> tuple[str, str]:
    """Extract ``(text_body, html_body)`` from a raw RFC 822 source."""
    if not source:
        return "", ""
    content = source.decode("utf-8", errors="replace")

    text_body = ""
    html_body = ""
    if match := _TEXT_BODY.search(content):
        text_body = decode_quoted_printable(match.group(1).strip())
    if match := _HTML_BODY.search(content):
        html_body = decode_quoted_printable(match.group(1).strip())
    return text_body, html_body


def message_detail(
    message: FetchedMessage,
    snippet_length: int = DEFAULT_SNIPPET_LENGTH,
) -> MessageDetail:
    text_body, html_body = parse_body(message.source)
    return MessageDetail(
        **_header_fields(message),
        attachments=present_attachments(walk(message.structure)),
        text_body=text_body,
        html_body=html_body,
        snippet=text_body[:snippet_length],
    )
