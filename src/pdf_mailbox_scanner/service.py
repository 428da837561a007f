"""Mailbox operations exposed to callers.

``MailboxService`` validates requests, opens one mail session per operation
(per attempt, for downloads) and hands the work to the scan orchestrator,
the attachment retriever or the result assembler. Credentials are only held
for the duration of a call.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import date, timedelta
from functools import partial

import structlog

from pdf_mailbox_scanner.assembler import message_detail, search_hit
from pdf_mailbox_scanner.config import Settings
from pdf_mailbox_scanner.exceptions import InvalidRequestError, NotFoundError
from pdf_mailbox_scanner.imap.session import ImapSession, MailSession, SessionOpener, session_scope
from pdf_mailbox_scanner.mime.walker import is_valid_part_path
from pdf_mailbox_scanner.models import (
    Credentials,
    FetchField,
    MailboxStats,
    MessageDetail,
    ScanEvent,
    ScanRequest,
    ScanResult,
    SearchCriteria,
    TextSearchHit,
    TextSearchRequest,
)
from pdf_mailbox_scanner.retrieval.retriever import AttachmentRetriever
from pdf_mailbox_scanner.scan.orchestrator import SCAN_FIELDS, ScanOrchestrator

logger = structlog.get_logger()

Connector = Callable[[Settings, Credentials], Awaitable[MailSession]]

DETAIL_FIELDS = frozenset({FetchField.ENVELOPE, FetchField.STRUCTURE, FetchField.SOURCE})


def validate_credentials(credentials: Credentials | None) -> Credentials:
    if credentials is None or not credentials.user or not credentials.password.get_secret_value():
        raise InvalidRequestError("Email and password required")
    return credentials


def validate_uid(uid: int | None) -> int:
    if uid is None or isinstance(uid, bool) or not isinstance(uid, int) or uid < 1:
        raise InvalidRequestError("A positive message UID is required")
    return uid


class MailboxService:
    """Entry point for every mailbox operation."""

    def __init__(
        self,
        settings: Settings | None = None,
        connector: Connector | None = None,
        *,
        orchestrator_factory: Callable[[SessionOpener], ScanOrchestrator] | None = None,
        retriever_factory: Callable[[SessionOpener], AttachmentRetriever] | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        """Initialize the service.

        Args:
            settings: Application settings. If None, uses default settings.
            connector: Coroutine opening a logged-in session. Defaults to IMAP.
            orchestrator_factory: Builds the scan orchestrator for a session opener.
            retriever_factory: Builds the attachment retriever for a session opener.
            today: Returns the current date for date-bounded searches.
        """
        from pdf_mailbox_scanner.config import get_settings

        self.settings = settings or get_settings()
        self._connector = connector or ImapSession.connect
        self._orchestrator_factory = orchestrator_factory or partial(
            ScanOrchestrator, settings=self.settings, today=today
        )
        self._retriever_factory = retriever_factory or partial(
            AttachmentRetriever, settings=self.settings
        )
        self._today = today

    def _opener(self, credentials: Credentials) -> SessionOpener:
        credentials = validate_credentials(credentials)
        return partial(self._connector, self.settings, credentials)

    async def test_connection(self, credentials: Credentials) -> None:
        """Log in and out again.

        Raises:
            AuthError: If the credentials are rejected.
            ConnectError: If the server cannot be reached.
        """
        async with session_scope(self._opener(credentials)):
            logger.info("connection_test_succeeded")

    async def mailbox_stats(self, credentials: Credentials) -> MailboxStats:
        async with session_scope(self._opener(credentials)) as session:
            return await session.status(self.settings.imap_mailbox)

    async def scan(self, credentials: Credentials, request: ScanRequest) -> ScanResult:
        """Scan the mailbox and return every PDF-bearing message at once."""
        orchestrator = self._orchestrator_factory(self._opener(credentials))
        return await orchestrator.run(request)

    def scan_stream(self, credentials: Credentials, request: ScanRequest) -> AsyncIterator[ScanEvent]:
        """Scan the mailbox, yielding progress and result events.

        Invalid requests raise ``InvalidRequestError`` here, before any
        session is opened; later failures arrive as a terminal error event.
        Callers that stop early should close the iterator (``aclose``) so the
        session is released promptly.
        """
        orchestrator = self._orchestrator_factory(self._opener(credentials))
        return orchestrator.stream(request)

    async def search_text(
        self,
        credentials: Credentials,
        request: TextSearchRequest,
    ) -> list[TextSearchHit]:
        """Find recent messages by sender and/or subject, flagging PDFs."""
        days_back = request.days_back or self.settings.text_search_days_back
        max_results = request.max_results or self.settings.text_search_max_results
        criteria = SearchCriteria(
            since_date=self._today() - timedelta(days=days_back),
            from_contains=request.from_filter or None,
            subject_contains=request.subject_filter or None,
        )

        hits: list[TextSearchHit] = []
        async with session_scope(self._opener(credentials)) as session:
            await session.open_mailbox(self.settings.imap_mailbox)
            uids = sorted(await session.search(criteria), reverse=True)[:max_results]
            if uids:
                fetched = {m.uid: m async for m in session.fetch_batch(uids, SCAN_FIELDS)}
                hits = [search_hit(fetched[uid]) for uid in uids if uid in fetched]

        logger.info("text_search_completed", days_back=days_back, results=len(hits))
        return hits

    async def get_message(self, credentials: Credentials, uid: int) -> MessageDetail:
        """Return one message with its PDF parts and decoded bodies.

        Raises:
            NotFoundError: If no message has this UID.
        """
        uid = validate_uid(uid)
        async with session_scope(self._opener(credentials)) as session:
            await session.open_mailbox(self.settings.imap_mailbox)
            message = None
            async for fetched in session.fetch_batch([uid], DETAIL_FIELDS):
                if fetched.uid == uid:
                    message = fetched

        if message is None:
            raise NotFoundError("Message not found")
        return message_detail(message, snippet_length=self.settings.snippet_length)

    async def download_attachment(self, credentials: Credentials, uid: int, part_path: str) -> bytes:
        """Return the bytes of a PDF previously located by a scan.

        Raises:
            NotFoundError: If the message has no PDF parts.
            DownloadFailedError: If all attempts failed.
        """
        uid = validate_uid(uid)
        if not is_valid_part_path(part_path):
            raise InvalidRequestError(f"Invalid part path: {part_path!r}")
        retriever = self._retriever_factory(self._opener(credentials))
        return await retriever.retrieve(uid, part_path)
