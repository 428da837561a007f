"""Scan request and result models."""

from __future__ import annotations

from pydantic import Field

from pdf_mailbox_scanner.models.base import WireModel
from pdf_mailbox_scanner.models.messages import MessageSummary


class ScanCursor(WireModel):
    """Minimal state a caller persists to resume an interrupted scan."""

    last_processed_uid: int | None = None
    scanned_count: int = 0
    with_pdf_count: int = 0


class ScanRequest(WireModel):
    """Parameters of a full or incremental scan.

    A request with ``since_uid`` is incremental and ignores ``days_back``.
    ``None`` values fall back to the configured defaults.
    """

    days_back: int | None = Field(default=None, ge=0, description="Date window in days")
    since_uid: int | None = Field(default=None, ge=0, description="Only UIDs above this value")
    max_results: int | None = Field(default=None, ge=1, description="Cap on returned messages")
    resume_after_uid: int | None = Field(
        default=None, ge=1, description="Skip UIDs at or above this value"
    )
    previous_scanned: int = Field(default=0, ge=0, description="Scanned count of prior runs")
    previous_with_pdf: int = Field(default=0, ge=0, description="PDF count of prior runs")

    @property
    def incremental(self) -> bool:
        return self.since_uid is not None

    @property
    def resuming(self) -> bool:
        return self.resume_after_uid is not None

    @classmethod
    def resume(cls, cursor: ScanCursor, **overrides) -> ScanRequest:
        """Build the continuation of an interrupted newest-first scan."""
        return cls(
            resume_after_uid=cursor.last_processed_uid,
            previous_scanned=cursor.scanned_count,
            previous_with_pdf=cursor.with_pdf_count,
            **overrides,
        )


class ScanResult(WireModel):
    """Aggregate result of a non-streaming scan."""

    messages: tuple[MessageSummary, ...] = ()
    total_emails_scanned: int = 0
    total_with_pdf: int = 0
    days_back: int | None = None


class TextSearchRequest(WireModel):
    """Sender/subject search over a recent date window."""

    from_filter: str | None = None
    subject_filter: str | None = None
    days_back: int | None = Field(default=None, ge=1)
    max_results: int | None = Field(default=None, ge=1)
