"""Locate PDF parts in a MIME structure tree.

Part numbering follows IMAP BODYSTRUCTURE addressing:

- a single-part message has one addressable part, "1";
- the children of a multipart node are numbered "1", "2", ... below the
  parent's number ("2.1", "2.2", ...);
- the top-level multipart container itself has no number.
"""

from __future__ import annotations

import re

from pdf_mailbox_scanner.models import MimeNode, PdfAttachmentDescriptor

PDF_MIME_TYPE = "application/pdf"
ROOT_PART_PATH = "1"

PART_PATH_RE = re.compile(r"^[1-9][0-9]*(\.[1-9][0-9]*)*$")


def child_path(parent: str, index: int) -> str:
    """Return the part path of the ``index``-th (1-based) child of ``parent``."""
    return f"{parent}.{index}" if parent else str(index)


def is_valid_part_path(value: str) -> bool:
    return bool(PART_PATH_RE.match(value or ""))


def is_pdf(node: MimeNode) -> bool:
    """Return True if a leaf node looks like a PDF attachment.

    Either the MIME type or the filename extension is enough: some senders
    label PDFs as application/octet-stream but keep the .pdf name.
    """
    if node.is_multipart:
        return False
    return node.kind == PDF_MIME_TYPE or node.filename.lower().endswith(".pdf")


def walk(tree: MimeNode | None) -> list[PdfAttachmentDescriptor]:
    """Return every PDF part of ``tree`` in document order.

    Args:
        tree: Root of the message structure. ``None`` means the server sent
            no usable structure and yields no attachments.

    Returns:
        A new list of descriptors; the tree is left untouched.
    """
    if tree is None:
        return []
    return _walk(tree, "")


def _walk(node: MimeNode, path: str) -> list[PdfAttachmentDescriptor]:
    found: list[PdfAttachmentDescriptor] = []
    if is_pdf(node):
        found.append(_describe(node, path or ROOT_PART_PATH))
    for index, child in enumerate(node.children, start=1):
        found.extend(_walk(child, child_path(path, index)))
    return found


def _describe(node: MimeNode, part_path: str) -> PdfAttachmentDescriptor:
    return PdfAttachmentDescriptor(
        filename=node.filename,
        mime_type=node.kind,
        size_bytes=node.size_bytes,
        part_path=part_path,
        transfer_encoding=node.transfer_encoding,
    )


def find_node(tree: MimeNode | None, part_path: str) -> MimeNode | None:
    """Resolve ``part_path`` back to its node, using the numbering of ``walk``."""
    if tree is None or not is_valid_part_path(part_path):
        return None

    if not tree.is_multipart:
        return tree if part_path == ROOT_PART_PATH else None

    node = tree
    for index in (int(i) for i in part_path.split(".")):
        if index > len(node.children):
            return None
        node = node.children[index - 1]
    return node
