"""Decoding helpers for header words and MIME parameters."""

from __future__ import annotations

from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.utils import collapse_rfc2231_value, decode_params, unquote
from typing import Any


def to_text(value: Any) -> str:
    """Return ``value`` as text; IMAP atoms arrive as bytes, NIL as None."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def decode_header_value(value: Any) -> str:
    """Decode RFC 2047 encoded words (``=?utf-8?b?...?=``) into text."""
    text = to_text(value)
    if "=?" not in text:
        return text
    try:
        return str(make_header(decode_header(text)))
    except (HeaderParseError, LookupError, UnicodeDecodeError):
        return text


def parse_params(raw: Any) -> dict[str, str]:
    """Turn an IMAP parameter list into a dict with lowercase keys.

    ``raw`` is the flat ``(name, value, name, value, ...)`` sequence from a
    BODYSTRUCTURE response. RFC 2231 continuations and charset-tagged values
    (``filename*=utf-8''...``) are merged and decoded.
    """
    if not raw or not isinstance(raw, (list, tuple)):
        return {}

    items = list(raw)
    pairs = [
        (to_text(items[i]).lower(), to_text(items[i + 1])) for i in range(0, len(items) - 1, 2)
    ]

    params: dict[str, str] = {}
    # decode_params passes its first pair through untouched.
    for name, value in decode_params([("", "")] + pairs)[1:]:
        if isinstance(value, tuple):
            charset, language, raw_text = value
            text = collapse_rfc2231_value((charset, language, unquote(raw_text)))
        else:
            text = unquote(value)
        params[name.lower()] = decode_header_value(text)
    return params
