"""Convert IMAP BODYSTRUCTURE responses into ``MimeNode`` trees.

IMAPClient returns BODYSTRUCTURE as nested tuples (``BodyData``). A
multipart body starts with its list of parts followed by the subtype; a
single-part body is the flat field list of RFC 3501 section 7.4.2:

    type, subtype, params, id, description, encoding, size, ...

``text/*`` parts carry one extra field (line count) and
``message/rfc822`` parts three (envelope, body, line count) before the
extension data (md5, disposition, language, location).
"""

from __future__ import annotations

from typing import Any

from pdf_mailbox_scanner.mime.headers import parse_params, to_text
from pdf_mailbox_scanner.models import MimeNode

_BASIC_EXTENSION_OFFSET = 7
_TEXT_EXTENSION_OFFSET = 8
_MESSAGE_EXTENSION_OFFSET = 10


def parse_bodystructure(raw: Any) -> MimeNode | None:
    """Build a ``MimeNode`` tree from a BODYSTRUCTURE response.

    Returns None when the response is missing or unreadable, which callers
    treat as "no attachments".
    """
    if not raw or not isinstance(raw, (list, tuple)):
        return None
    try:
        return _parse(raw)
    except (IndexError, TypeError, ValueError):
        return None


def _is_multipart(raw: Any) -> bool:
    return isinstance(raw[0], (list, tuple))


def _parse(raw: Any) -> MimeNode:
    if _is_multipart(raw):
        return _parse_multipart(raw)
    return _parse_single(raw)


def _split_multipart(raw: Any) -> tuple[list[Any], list[Any]]:
    """Return (parts, remaining fields) for either tuple layout."""
    if isinstance(raw[0], list):
        return list(raw[0]), list(raw[1:])
    # Raw nested structures (inside message/rfc822) keep the parts inline.
    parts = []
    index = 0
    while index < len(raw) and isinstance(raw[index], (list, tuple)):
        parts.append(raw[index])
        index += 1
    return parts, list(raw[index:])


def _parse_multipart(raw: Any) -> MimeNode:
    parts, rest = _split_multipart(raw)
    subtype = to_text(rest[0]) if rest else "mixed"
    return MimeNode(
        kind=f"multipart/{subtype}".lower(),
        children=tuple(_parse(part) for part in parts if part),
    )


def _parse_single(raw: Any) -> MimeNode:
    main_type = to_text(raw[0]).lower()
    subtype = to_text(raw[1]).lower()
    kind = f"{main_type}/{subtype}"

    params = parse_params(raw[2] if len(raw) > 2 else None)
    encoding = to_text(raw[5]).lower() if len(raw) > 5 and raw[5] else None
    size = _to_int(raw[6]) if len(raw) > 6 else 0

    if main_type == "text":
        offset = _TEXT_EXTENSION_OFFSET
    elif kind == "message/rfc822":
        offset = _MESSAGE_EXTENSION_OFFSET
    else:
        offset = _BASIC_EXTENSION_OFFSET

    disposition_params = _disposition_params(raw[offset + 1] if len(raw) > offset + 1 else None)
    filename = disposition_params.get("filename") or params.get("name") or ""

    return MimeNode(
        kind=kind,
        filename=filename,
        size_bytes=size,
        transfer_encoding=encoding,
        children=_encapsulated_children(raw) if kind == "message/rfc822" else (),
    )


def _encapsulated_children(raw: Any) -> tuple[MimeNode, ...]:
    """Children of a message/rfc822 part, numbered the way IMAP numbers them.

    A multipart encapsulated body contributes its parts directly (2.1, 2.2),
    a single-part one contributes itself as 2.1.
    """
    body = raw[8] if len(raw) > 8 else None
    if not body or not isinstance(body, (list, tuple)):
        return ()
    node = _parse(body)
    return node.children if node.is_multipart else (node,)


def _disposition_params(raw: Any) -> dict[str, str]:
    if not raw or not isinstance(raw, (list, tuple)) or len(raw) < 2:
        return {}
    return parse_params(raw[1])


def _to_int(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0
