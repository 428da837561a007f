"""Candidate part paths for a PDF whose remembered path did not work."""

from __future__ import annotations

from pdf_mailbox_scanner.exceptions import NotFoundError
from pdf_mailbox_scanner.mime.walker import walk
from pdf_mailbox_scanner.models import MimeNode


def locate(structure: MimeNode | None) -> list[str]:
    """Return PDF part paths of ``structure`` in the order they should be tried.

    Raises:
        NotFoundError: If the message has no PDF parts.
    """
    candidates = [descriptor.part_path for descriptor in walk(structure)]
    if not candidates:
        raise NotFoundError("No PDF attachments found in message")
    return candidates
