"""Mailbox scan orchestration.

A scan searches the mailbox once, orders the candidate UIDs newest first,
fetches envelopes and structures in fixed-size chunks and classifies every
message. ``stream`` reports as it goes; ``run`` returns one aggregate result.
Both share the search, ordering, resume filter and classification code
below.

Resuming: because messages are processed newest first, a scan interrupted
after UID ``U`` continues with ``resume_after_uid=U`` and skips every UID at
or above it. Incremental polling instead passes ``since_uid`` (usually the
``highest_uid`` of the previous run) and only searches newer messages.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Callable, Sequence
from datetime import date, timedelta

import structlog

from pdf_mailbox_scanner.assembler import summarize
from pdf_mailbox_scanner.config import Settings
from pdf_mailbox_scanner.exceptions import ScannerError
from pdf_mailbox_scanner.imap.session import MailSession, SessionOpener, close_quietly, session_scope
from pdf_mailbox_scanner.mime.walker import walk
from pdf_mailbox_scanner.models import (
    CompleteEvent,
    ErrorEvent,
    FetchedMessage,
    FetchField,
    MailboxStats,
    MessageSummary,
    PdfBatchEvent,
    ProgressEvent,
    ScanEvent,
    ScanRequest,
    ScanResult,
    SearchCriteria,
    StartEvent,
)
from pdf_mailbox_scanner.scan.state import ScanState
from pdf_mailbox_scanner.utils import chunked

logger = structlog.get_logger()

SCAN_FIELDS = frozenset({FetchField.ENVELOPE, FetchField.STRUCTURE})

# Rough share of messages carrying a PDF, used for the start estimate.
PDF_RATIO_ESTIMATE = 0.05
INCREMENTAL_PDF_ESTIMATE = 10


class ScanOrchestrator:
    """Drive full and incremental scans over one mail session per call."""

    def __init__(
        self,
        open_session: SessionOpener,
        settings: Settings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = date.today,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            open_session: Coroutine factory returning a fresh, logged-in session.
            settings: Application settings. If None, uses default settings.
            clock: Monotonic clock used for rate and ETA estimates.
            today: Returns the current date for date-bounded searches.
        """
        from pdf_mailbox_scanner.config import get_settings

        self.settings = settings or get_settings()
        self._open_session = open_session
        self._clock = clock
        self._today = today

    # ------------------------------------------------------------------
    # Search and ordering

    def effective_days_back(self, request: ScanRequest) -> int:
        """Date window of a full scan; oversized windows clamp to the maximum."""
        days = request.days_back or self.settings.default_days_back
        return min(days, self.settings.max_days_back)

    def build_criteria(self, request: ScanRequest) -> SearchCriteria:
        if request.incremental:
            return SearchCriteria(uid_greater_than=request.since_uid)
        since = self._today() - timedelta(days=self.effective_days_back(request))
        return SearchCriteria(since_date=since)

    async def _candidate_uids(self, session: MailSession, request: ScanRequest) -> list[int]:
        criteria = self.build_criteria(request)
        uids = await session.search(criteria)
        # Newest first: recent messages are the ones users act on.
        ordered = sorted(set(uids), reverse=True)
        logger.info(
            "scan_candidates_found",
            candidates=len(ordered),
            incremental=request.incremental,
            since_uid=request.since_uid,
            since_date=criteria.since_date.isoformat() if criteria.since_date else None,
        )
        return ordered

    async def _iter_messages(
        self,
        session: MailSession,
        uids: Sequence[int],
    ) -> AsyncIterator[tuple[int, FetchedMessage | None]]:
        """Fetch ``uids`` chunk by chunk and yield them in the given order.

        UIDs the server left out of the response (expunged meanwhile) are
        yielded with ``None``.
        """
        for chunk in chunked(uids, self.settings.fetch_batch_size):
            fetched = {m.uid: m async for m in session.fetch_batch(chunk, SCAN_FIELDS)}
            for uid in chunk:
                yield uid, fetched.get(uid)

    # ------------------------------------------------------------------
    # Classification

    @staticmethod
    def _passed_over(request: ScanRequest, uid: int, message: FetchedMessage | None) -> bool:
        if message is None:
            return True
        return request.resume_after_uid is not None and uid >= request.resume_after_uid

    def _classify(self, state: ScanState, message: FetchedMessage, max_results: int) -> ScanState:
        attachments = walk(message.structure)
        if not attachments:
            return state.record(message.uid, has_pdf=False)
        summary = summarize(message, attachments) if state.returned < max_results else None
        return state.record(message.uid, has_pdf=True, summary=summary)

    def _max_results(self, request: ScanRequest) -> int:
        return request.max_results or self.settings.default_max_results

    # ------------------------------------------------------------------
    # Events

    def _start_event(self, request: ScanRequest, stats: MailboxStats) -> StartEvent:
        if request.incremental:
            estimated = INCREMENTAL_PDF_ESTIMATE
        else:
            estimated = round(stats.total_messages * PDF_RATIO_ESTIMATE)
        return StartEvent(
            total_in_mailbox=stats.total_messages,
            estimated_pdfs=estimated,
            resuming=request.resuming,
            incremental=request.incremental,
            since_uid=request.since_uid,
            previous_scanned=request.previous_scanned,
            previous_with_pdf=request.previous_with_pdf,
        )

    def _progress_event(self, state: ScanState, started_at: float) -> ProgressEvent:
        elapsed = self._clock() - started_at
        rate = state.session_scanned / elapsed if elapsed > 0 else 0.0
        eta = round(state.remaining / rate) if rate > 0 else None
        return ProgressEvent(
            scanned=state.scanned,
            total_in_mailbox=state.candidates,
            with_pdf=state.with_pdf,
            percent_complete=state.percent_complete(),
            last_uid=state.last_uid,
            eta_seconds=eta,
            emails_per_second=round(rate),
        )

    def _complete_event(self, request: ScanRequest, state: ScanState) -> CompleteEvent:
        return CompleteEvent(
            total_emails_scanned=state.scanned,
            total_with_pdf=state.with_pdf,
            days_back=None if request.incremental else self.effective_days_back(request),
            last_uid=state.last_uid if state.last_uid is not None else request.resume_after_uid,
            highest_uid=state.highest_uid,
        )

    # ------------------------------------------------------------------
    # Entry points

    async def stream(self, request: ScanRequest) -> AsyncIterator[ScanEvent]:
        """Scan the mailbox, yielding events as the scan progresses.

        The first event is a ``StartEvent``; the last is a ``CompleteEvent``
        or, on any failure, a single ``ErrorEvent``. The session is released
        on every exit path, including when the consumer stops iterating.
        """
        mailbox = self.settings.imap_mailbox
        max_results = self._max_results(request)
        batch_size = self.settings.pdf_batch_size
        interval = self.settings.progress_interval

        session: MailSession | None = None
        try:
            session = await self._open_session()
            stats = await session.status(mailbox)
            await session.open_mailbox(mailbox)
            yield self._start_event(request, stats)

            uids = await self._candidate_uids(session, request)
            logger.info(
                "scan_started",
                candidates=len(uids),
                resume_after_uid=request.resume_after_uid,
                previous_scanned=request.previous_scanned,
            )

            state = ScanState.initial(request, len(uids))
            started_at = self._clock()
            async for uid, message in self._iter_messages(session, uids):
                if self._passed_over(request, uid, message):
                    state = state.skip()
                    continue

                state = self._classify(state, message, max_results)
                if len(state.pending) >= batch_size:
                    state, batch = state.flush()
                    yield PdfBatchEvent(messages=batch, total_with_pdf_so_far=state.with_pdf)
                if state.session_scanned % interval == 0:
                    yield self._progress_event(state, started_at)

            if state.pending:
                state, batch = state.flush()
                yield PdfBatchEvent(messages=batch, total_with_pdf_so_far=state.with_pdf)

            logger.info(
                "scan_completed",
                scanned=state.scanned,
                with_pdf=state.with_pdf,
                returned=state.returned,
                skipped=state.consumed - state.session_scanned,
            )
            yield self._complete_event(request, state)
        except Exception as exc:  # noqa: BLE001
            category = exc.category if isinstance(exc, ScannerError) else "internal"
            logger.error("scan_failed", category=category, error=str(exc), exc_info=True)
            yield ErrorEvent(error=str(exc) or "Search failed", category=category)
        finally:
            if session is not None:
                await close_quietly(session)

    async def run(self, request: ScanRequest) -> ScanResult:
        """Scan the mailbox and return the aggregate result.

        Raises:
            ScannerError: Any session failure, unchanged.
        """
        mailbox = self.settings.imap_mailbox
        max_results = self._max_results(request)
        kept: list[MessageSummary] = []

        async with session_scope(self._open_session) as session:
            await session.open_mailbox(mailbox)
            uids = await self._candidate_uids(session, request)

            state = ScanState.initial(request, len(uids))
            async for uid, message in self._iter_messages(session, uids):
                if self._passed_over(request, uid, message):
                    state = state.skip()
                    continue
                state, batch = self._classify(state, message, max_results).flush()
                kept.extend(batch)

        logger.info(
            "scan_completed",
            scanned=state.scanned,
            with_pdf=state.with_pdf,
            returned=len(kept),
        )
        return ScanResult(
            messages=tuple(kept),
            total_emails_scanned=state.scanned,
            total_with_pdf=state.with_pdf,
            days_back=None if request.incremental else self.effective_days_back(request),
        )
