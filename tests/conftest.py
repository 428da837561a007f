"""Pytest configuration and shared fixtures."""

import pytest

from pdf_mailbox_scanner.config import Settings
from pdf_mailbox_scanner.models import Credentials, MimeNode
from tests.helpers import pdf_part, text_part


@pytest.fixture
def settings() -> Settings:
    """Provide default settings isolated from the environment."""
    return Settings(_env_file=None)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(user="user@example.com", password="app-password")


@pytest.fixture
def invoice_tree() -> MimeNode:
    """multipart/mixed[ text/plain, application/pdf(inv.pdf) ]"""
    return MimeNode(
        kind="multipart/mixed",
        children=(text_part(), pdf_part("inv.pdf")),
    )


@pytest.fixture
def sample_source() -> bytes:
    """A multipart/alternative message with quoted-printable bodies."""
    return (
        b"From: Billing <billing@example.com>\r\n"
        b"Subject: Your invoice\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/alternative; boundary="b1"\r\n'
        b"\r\n"
        b"--b1\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"Content-Transfer-Encoding: quoted-printable\r\n"
        b"\r\n"
        b"Total due: 42 =E2=82=AC, paid by =\r\ncard.\r\n"
        b"--b1\r\n"
        b"Content-Type: text/html; charset=utf-8\r\n"
        b"\r\n"
        b"<p>Total due: 42 EUR</p>\r\n"
        b"--b1--\r\n"
    )
