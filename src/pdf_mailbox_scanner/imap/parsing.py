"""Helpers for parsing IMAPClient FETCH responses into internal models."""

from __future__ import annotations

import base64
import binascii
import quopri
from collections.abc import Collection
from datetime import datetime
from typing import Any

from pdf_mailbox_scanner.mime.bodystructure import parse_bodystructure
from pdf_mailbox_scanner.mime.headers import decode_header_value, to_text
from pdf_mailbox_scanner.models import Address, Envelope, FetchedMessage, FetchField

FETCH_ITEMS = {
    FetchField.ENVELOPE: "ENVELOPE",
    FetchField.STRUCTURE: "BODYSTRUCTURE",
    FetchField.SOURCE: "BODY.PEEK[]",
}

# Keys as they come back in the response; BODY.PEEK[] is answered as BODY[].
RESPONSE_KEYS = {
    FetchField.ENVELOPE: b"ENVELOPE",
    FetchField.STRUCTURE: b"BODYSTRUCTURE",
    FetchField.SOURCE: b"BODY[]",
}


def fetch_items(fields: Collection[FetchField]) -> list[str]:
    return [FETCH_ITEMS[field] for field in FetchField if field in fields]


def _get(data: dict[Any, Any], key: bytes) -> Any:
    # Some servers/IMAPClient versions key by str.
    value = data.get(key)
    if value is None:
        value = data.get(key.decode())
    return value


def _address(raw: Any) -> Address:
    return Address(
        name=decode_header_value(getattr(raw, "name", None)),
        mailbox=to_text(getattr(raw, "mailbox", None)),
        host=to_text(getattr(raw, "host", None)),
    )


def parse_envelope(raw: Any) -> Envelope | None:
    """Convert an IMAPClient ``Envelope`` into ``Envelope``."""
    if raw is None:
        return None
    date = getattr(raw, "date", None)
    return Envelope(
        subject=decode_header_value(getattr(raw, "subject", None)),
        from_=tuple(_address(a) for a in (getattr(raw, "from_", None) or ())),
        date=date if isinstance(date, datetime) else None,
    )


def parse_fetched_message(
    uid: int,
    data: dict[Any, Any],
    fields: Collection[FetchField],
) -> FetchedMessage:
    """Convert one entry of ``IMAPClient.fetch`` output into ``FetchedMessage``."""
    envelope = None
    structure = None
    source = None

    if FetchField.ENVELOPE in fields:
        envelope = parse_envelope(_get(data, RESPONSE_KEYS[FetchField.ENVELOPE]))
    if FetchField.STRUCTURE in fields:
        structure = parse_bodystructure(_get(data, RESPONSE_KEYS[FetchField.STRUCTURE]))
    if FetchField.SOURCE in fields:
        raw_source = _get(data, RESPONSE_KEYS[FetchField.SOURCE])
        source = bytes(raw_source) if isinstance(raw_source, (bytes, bytearray)) else None

    return FetchedMessage(uid=int(uid), envelope=envelope, structure=structure, source=source)


def part_payload(data: dict[Any, Any], part_path: str) -> bytes | None:
    """Return the raw ``BODY[<part_path>]`` section of a FETCH response."""
    value = _get(data, f"BODY[{part_path}]".encode())
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return None


def decode_transfer_encoding(payload: bytes, encoding: str | None) -> bytes:
    """Undo the Content-Transfer-Encoding of a part's raw section.

    Raises:
        ValueError: If a base64 payload is corrupt.
    """
    encoding = (encoding or "").lower()
    if encoding == "base64":
        try:
            return base64.b64decode(payload)
        except binascii.Error as exc:
            raise ValueError(f"corrupt base64 payload: {exc}") from exc
    if encoding == "quoted-printable":
        return quopri.decodestring(payload)
    return payload
