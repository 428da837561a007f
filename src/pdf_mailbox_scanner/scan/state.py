"""Running counters of one scan invocation.

``ScanState`` is immutable; every step of the scan returns a new state. The
values are scoped to one request and never outlive it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from pdf_mailbox_scanner.models import MessageSummary, ScanRequest


@dataclass(frozen=True)
class ScanState:
    candidates: int
    scanned: int = 0
    with_pdf: int = 0
    returned: int = 0
    session_scanned: int = 0
    consumed: int = 0
    last_uid: int | None = None
    highest_uid: int | None = None
    pending: tuple[MessageSummary, ...] = ()

    @classmethod
    def initial(cls, request: ScanRequest, candidates: int) -> ScanState:
        """Start from the totals a previous partial run reported."""
        return cls(
            candidates=candidates,
            scanned=request.previous_scanned,
            with_pdf=request.previous_with_pdf,
        )

    def skip(self) -> ScanState:
        """Pass over a candidate processed by an earlier run."""
        return replace(self, consumed=self.consumed + 1)

    def record(self, uid: int, has_pdf: bool, summary: MessageSummary | None = None) -> ScanState:
        """Count one scanned message; ``summary`` is queued for the next batch."""
        pending = self.pending + (summary,) if summary is not None else self.pending
        return replace(
            self,
            scanned=self.scanned + 1,
            session_scanned=self.session_scanned + 1,
            consumed=self.consumed + 1,
            with_pdf=self.with_pdf + (1 if has_pdf else 0),
            returned=self.returned + (1 if summary is not None else 0),
            last_uid=uid,
            highest_uid=uid if self.highest_uid is None else max(self.highest_uid, uid),
            pending=pending,
        )

    def flush(self) -> tuple[ScanState, tuple[MessageSummary, ...]]:
        """Hand over the queued summaries and clear the queue."""
        return replace(self, pending=()), self.pending

    @property
    def remaining(self) -> int:
        return max(self.candidates - self.consumed, 0)

    def percent_complete(self) -> int:
        """Progress percentage, held at 99 until the scan has completed."""
        if self.candidates <= 0:
            return 0
        return min(99, round(self.scanned / self.candidates * 100))
