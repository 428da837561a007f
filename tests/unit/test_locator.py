"""Unit tests for fallback candidate discovery."""

import pytest

from pdf_mailbox_scanner.exceptions import NotFoundError
from pdf_mailbox_scanner.mime.locator import locate
from pdf_mailbox_scanner.models import MimeNode
from tests.helpers import pdf_part, text_part


def test_locate_returns_paths_in_document_order() -> None:
    """Candidates come back in the order they appear in the message."""
    tree = MimeNode(
        kind="multipart/mixed",
        children=(
            pdf_part("first.pdf"),
            MimeNode(kind="multipart/mixed", children=(text_part(), pdf_part("second.pdf"))),
        ),
    )

    assert locate(tree) == ["1", "2.2"]


def test_locate_without_pdf_raises_not_found() -> None:
    """A message without PDF parts has nothing to fall back to."""
    tree = MimeNode(kind="multipart/alternative", children=(text_part(), text_part("text/html")))

    with pytest.raises(NotFoundError, match="No PDF attachments"):
        locate(tree)


def test_locate_missing_structure_raises_not_found() -> None:
    with pytest.raises(NotFoundError):
        locate(None)
