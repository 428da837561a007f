"""IMAP mail session.

This module provides the mail-session collaborator used by the scanner:
connection, mailbox status, search, batched fetch and part download.

Notes:
    IMAPClient is synchronous. Every call is wrapped in `asyncio.to_thread`
    so the scan loop stays async-friendly; a session is only ever driven by
    one task, so calls never overlap on the same connection. A call whose
    task was cancelled keeps running in its thread; closing the session
    then drops the socket instead of logging out.
"""

from __future__ import annotations

import asyncio
import socket
import threading
from collections.abc import AsyncIterator, Awaitable, Callable, Collection, Sequence
from contextlib import asynccontextmanager
from typing import Any, Protocol

import structlog
from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError, LoginError
from imapclient.imapclient import SocketTimeout

from pdf_mailbox_scanner.config import Settings
from pdf_mailbox_scanner.exceptions import (
    AuthError,
    ConnectError,
    FetchError,
    NotFoundError,
    ScannerError,
    SearchError,
)
from pdf_mailbox_scanner.imap.parsing import (
    decode_transfer_encoding,
    fetch_items,
    parse_fetched_message,
    part_payload,
)
from pdf_mailbox_scanner.mime.bodystructure import parse_bodystructure
from pdf_mailbox_scanner.mime.walker import find_node
from pdf_mailbox_scanner.models import (
    Credentials,
    FetchedMessage,
    FetchField,
    MailboxStats,
    SearchCriteria,
)

logger = structlog.get_logger()

# Server responses that mean the password itself was rejected.
AUTH_FAILURE_MARKERS = (
    "AUTHENTICATIONFAILED",
    "Invalid credentials",
    "LOGIN failed",
    "Authentication failed",
)
# Server responses that mean an app password (or a browser sign-in) is required.
APP_PASSWORD_MARKERS = (
    "Please log in via your web browser",
    "Application-specific password required",
    "WEBALERT",
)


class MailSession(Protocol):
    """Operations the scanner needs from a mail server session."""

    async def status(self, mailbox: str) -> MailboxStats: ...

    async def open_mailbox(self, name: str) -> None: ...

    async def search(self, criteria: SearchCriteria) -> list[int]: ...

    def fetch_batch(
        self,
        uids: Sequence[int],
        fields: Collection[FetchField],
    ) -> AsyncIterator[FetchedMessage]: ...

    async def download_part(self, uid: int, part_path: str) -> bytes: ...

    async def close(self) -> None: ...


SessionOpener = Callable[[], Awaitable[MailSession]]


def classify_login_error(exc: BaseException) -> ScannerError:
    """Map a failure raised while connecting or logging in to a typed error."""
    text = str(exc)
    lowered = text.lower()

    if any(marker.lower() in lowered for marker in APP_PASSWORD_MARKERS):
        return AuthError("Please use an App Password (2FA required)")
    if isinstance(exc, LoginError) or any(m.lower() in lowered for m in AUTH_FAILURE_MARKERS):
        return AuthError("Invalid email or app password")
    if isinstance(exc, (socket.timeout, TimeoutError)):
        return ConnectError("Timed out connecting to mail server")
    return ConnectError(text or "Connection failed")


class ImapSession:
    """IMAPClient-backed implementation of ``MailSession``."""

    def __init__(self, client: IMAPClient) -> None:
        self._client: IMAPClient | None = client
        # Worker-thread calls still running, including ones whose awaiting
        # task was cancelled.
        self._in_flight = 0
        self._in_flight_lock = threading.Lock()

    @classmethod
    async def connect(cls, settings: Settings, credentials: Credentials) -> ImapSession:
        """Open a connection and log in.

        Raises:
            AuthError: If the server rejects the credentials.
            ConnectError: If the server cannot be reached.
        """
        logger.info(
            "imap_connect_started",
            host=settings.imap_host,
            port=settings.imap_port,
            secure=settings.imap_secure,
        )
        try:
            client = await asyncio.to_thread(cls._login, settings, credentials)
        except (IMAPClientError, OSError) as exc:
            error = classify_login_error(exc)
            logger.warning("imap_connect_failed", category=error.category, error=error.message)
            raise error from exc

        logger.info("imap_connect_completed", host=settings.imap_host)
        return cls(client)

    @staticmethod
    def _login(settings: Settings, credentials: Credentials) -> IMAPClient:
        client = IMAPClient(
            settings.imap_host,
            port=settings.imap_port,
            ssl=settings.imap_secure,
            timeout=SocketTimeout(connect=settings.greeting_timeout, read=settings.socket_timeout),
        )
        try:
            client.login(credentials.user, credentials.password.get_secret_value())
        except BaseException:
            client.shutdown()
            raise
        return client

    async def _call(self, func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
        """Run a blocking IMAPClient call in a worker thread."""

        def tracked() -> Any:
            try:
                return func(*args, **kwargs)
            finally:
                with self._in_flight_lock:
                    self._in_flight -= 1

        with self._in_flight_lock:
            self._in_flight += 1
        return await asyncio.to_thread(tracked)

    @property
    def client(self) -> IMAPClient:
        if self._client is None:
            raise ConnectError("Mail session is closed")
        return self._client

    async def status(self, mailbox: str) -> MailboxStats:
        try:
            response = await self._call(
                self.client.folder_status, mailbox, [b"MESSAGES", b"RECENT"]
            )
        except (IMAPClientError, OSError) as exc:
            raise FetchError(f"Failed to get mailbox status: {exc}") from exc

        return MailboxStats(
            total_messages=int(response.get(b"MESSAGES") or 0),
            recent_messages=int(response.get(b"RECENT") or 0),
        )

    async def open_mailbox(self, name: str) -> None:
        try:
            await self._call(self.client.select_folder, name, readonly=True)
        except (IMAPClientError, OSError) as exc:
            raise FetchError(f"Failed to open mailbox {name}: {exc}") from exc

    async def search(self, criteria: SearchCriteria) -> list[int]:
        terms = _search_terms(criteria)
        charset = None if all(str(t).isascii() for t in terms) else "UTF-8"
        logger.debug("imap_search", criteria=[str(t) for t in terms])

        try:
            uids = await self._call(self.client.search, terms, charset)
        except (IMAPClientError, OSError) as exc:
            raise SearchError(f"Search failed: {exc}") from exc

        result = [int(uid) for uid in uids]
        if criteria.uid_greater_than is not None:
            # "n:*" always matches the highest UID, even when it is below n.
            result = [uid for uid in result if uid > criteria.uid_greater_than]
        return result

    async def fetch_batch(
        self,
        uids: Sequence[int],
        fields: Collection[FetchField],
    ) -> AsyncIterator[FetchedMessage]:
        if not uids:
            return
        try:
            response = await self._call(self.client.fetch, list(uids), fetch_items(fields))
        except (IMAPClientError, OSError) as exc:
            raise FetchError(f"Fetch failed: {exc}") from exc

        for uid, data in response.items():
            yield parse_fetched_message(uid, data, fields)

    async def download_part(self, uid: int, part_path: str) -> bytes:
        """Download one body part and undo its transfer encoding.

        Raises:
            NotFoundError: If the message does not exist.
            FetchError: If the server returns no content for the part.
        """
        items = [f"BODY.PEEK[{part_path}]", "BODYSTRUCTURE"]
        try:
            response = await self._call(self.client.fetch, [uid], items)
        except (IMAPClientError, OSError) as exc:
            raise FetchError(f"Download of part {part_path} failed: {exc}") from exc

        data = response.get(uid)
        if not data:
            raise NotFoundError(f"Message {uid} not found")

        payload = part_payload(data, part_path)
        if payload is None:
            raise FetchError(f"No content returned for part {part_path}")

        node = find_node(parse_bodystructure(data.get(b"BODYSTRUCTURE")), part_path)
        try:
            return decode_transfer_encoding(payload, node.transfer_encoding if node else None)
        except ValueError as exc:
            raise FetchError(f"Part {part_path} could not be decoded: {exc}") from exc

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        with self._in_flight_lock:
            busy = self._in_flight > 0
        if busy:
            # A cancelled call still owns the socket: close it without LOGOUT.
            logger.debug("imap_session_aborted", in_flight=True)
            await asyncio.to_thread(client.shutdown)
            return
        try:
            await asyncio.to_thread(client.logout)
        except (IMAPClientError, OSError):
            await asyncio.to_thread(client.shutdown)
            raise


def _search_terms(criteria: SearchCriteria) -> list[Any]:
    terms: list[Any] = []
    if criteria.uid_greater_than is not None:
        terms += ["UID", f"{criteria.uid_greater_than + 1}:*"]
    if criteria.since_date is not None:
        terms += ["SINCE", criteria.since_date]
    if criteria.from_contains:
        terms += ["FROM", criteria.from_contains]
    if criteria.subject_contains:
        terms += ["SUBJECT", criteria.subject_contains]
    return terms or ["ALL"]


async def close_quietly(session: MailSession) -> None:
    """Release a session; failures while closing are logged and dropped."""
    try:
        await session.close()
    except Exception as exc:  # noqa: BLE001
        logger.debug("mail_session_close_failed", error=str(exc))


@asynccontextmanager
async def session_scope(open_session: SessionOpener) -> AsyncIterator[MailSession]:
    """Open a session and release it exactly once on every exit path."""
    session = await open_session()
    try:
        yield session
    finally:
        await close_quietly(session)
