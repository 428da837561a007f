"""PDF Mailbox Scanner - find PDF attachments in large IMAP mailboxes.

This package scans an IMAP mailbox for messages carrying PDF attachments,
streams progress while it goes, supports resuming interrupted scans and
downloads individual attachments with fallback and retry.
"""

__version__ = "0.1.0"
__author__ = "Trickl"

from pdf_mailbox_scanner.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__", "__author__"]
