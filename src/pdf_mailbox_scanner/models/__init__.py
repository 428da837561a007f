"""Data models for PDF Mailbox Scanner.

This package contains Pydantic models for data validation and serialization.
"""

from pdf_mailbox_scanner.models.events import (
    TERMINAL_EVENTS,
    CompleteEvent,
    ErrorEvent,
    PdfBatchEvent,
    ProgressEvent,
    ScanEvent,
    StartEvent,
)
from pdf_mailbox_scanner.models.messages import (
    Address,
    Credentials,
    Envelope,
    FetchedMessage,
    FetchField,
    MailboxStats,
    MessageDetail,
    MessageSummary,
    SearchCriteria,
    TextSearchHit,
)
from pdf_mailbox_scanner.models.mime import MimeNode, PdfAttachmentDescriptor
from pdf_mailbox_scanner.models.scan import ScanCursor, ScanRequest, ScanResult, TextSearchRequest

__all__ = [
    "Address",
    "CompleteEvent",
    "Credentials",
    "Envelope",
    "ErrorEvent",
    "FetchField",
    "FetchedMessage",
    "MailboxStats",
    "MessageDetail",
    "MessageSummary",
    "MimeNode",
    "PdfAttachmentDescriptor",
    "PdfBatchEvent",
    "ProgressEvent",
    "ScanCursor",
    "ScanEvent",
    "ScanRequest",
    "ScanResult",
    "StartEvent",
    "TERMINAL_EVENTS",
    "TextSearchHit",
    "TextSearchRequest",
]
