"""Scan events.

A streaming scan yields these in a fixed order: one ``StartEvent``, any mix
of ``ProgressEvent`` and ``PdfBatchEvent``, then exactly one terminal
``CompleteEvent`` or ``ErrorEvent``. The ``type`` field tags the variant on
the wire.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import Field

from pdf_mailbox_scanner.models.base import WireModel
from pdf_mailbox_scanner.models.messages import MessageSummary
from pdf_mailbox_scanner.models.scan import ScanCursor


class StartEvent(WireModel):
    type: Literal["start"] = "start"
    total_in_mailbox: int
    estimated_pdfs: int
    resuming: bool = False
    incremental: bool = False
    since_uid: int | None = None
    previous_scanned: int = 0
    previous_with_pdf: int = 0


class ProgressEvent(WireModel):
    type: Literal["progress"] = "progress"
    scanned: int
    total_in_mailbox: int
    with_pdf: int
    percent_complete: int
    last_uid: int | None = None
    eta_seconds: int | None = None
    emails_per_second: int = 0

    @property
    def cursor(self) -> ScanCursor:
        return ScanCursor(
            last_processed_uid=self.last_uid,
            scanned_count=self.scanned,
            with_pdf_count=self.with_pdf,
        )


class PdfBatchEvent(WireModel):
    type: Literal["pdf_batch"] = "pdf_batch"
    messages: tuple[MessageSummary, ...]
    total_with_pdf_so_far: int


class CompleteEvent(WireModel):
    type: Literal["complete"] = "complete"
    total_emails_scanned: int
    total_with_pdf: int
    days_back: int | None = None
    last_uid: int | None = None
    highest_uid: int | None = None

    @property
    def cursor(self) -> ScanCursor:
        return ScanCursor(
            last_processed_uid=self.last_uid,
            scanned_count=self.total_emails_scanned,
            with_pdf_count=self.total_with_pdf,
        )


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    error: str
    category: str = "internal"


ScanEvent = Annotated[
    Union[StartEvent, ProgressEvent, PdfBatchEvent, CompleteEvent, ErrorEvent],
    Field(discriminator="type"),
]

TERMINAL_EVENTS = (CompleteEvent, ErrorEvent)
