"""Test doubles and builders shared by the test suite.

``FakeMailbox`` stands in for an IMAP server: it hands out ``FakeSession``
objects implementing the mail-session contract and records what they were
asked to do.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Collection, Sequence
from datetime import datetime, timezone

from pdf_mailbox_scanner.config import Settings
from pdf_mailbox_scanner.exceptions import FetchError, NotFoundError, SearchError
from pdf_mailbox_scanner.models import (
    Address,
    Credentials,
    Envelope,
    FetchedMessage,
    FetchField,
    MailboxStats,
    MimeNode,
    SearchCriteria,
)

PDF_BYTES = b"%PDF-1.7\n1 0 obj\n<<>>\nendobj\n%%EOF"
HTML_BYTES = b"<html><body>Error</body></html>"


def text_part(kind: str = "text/plain") -> MimeNode:
    return MimeNode(kind=kind, size_bytes=120, transfer_encoding="7bit")


def pdf_part(filename: str = "invoice.pdf", kind: str = "application/pdf") -> MimeNode:
    return MimeNode(kind=kind, filename=filename, size_bytes=2048, transfer_encoding="base64")


def make_message(uid: int, *parts: MimeNode, subject: str | None = None) -> FetchedMessage:
    """A multipart/mixed message whose children are ``parts``."""
    structure = MimeNode(kind="multipart/mixed", children=(text_part(),) + parts)
    envelope = Envelope(
        subject=subject if subject is not None else f"Message {uid}",
        from_=(Address(name="Billing", mailbox="billing", host="example.com"),),
        date=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    )
    return FetchedMessage(uid=uid, envelope=envelope, structure=structure)


def build_messages(count: int, pdf_uids: Collection[int] = (), start: int = 1) -> list[FetchedMessage]:
    messages = []
    for uid in range(start, start + count):
        parts = (pdf_part(f"invoice-{uid}.pdf"),) if uid in pdf_uids else ()
        messages.append(make_message(uid, *parts))
    return messages


class FakeSession:
    """In-memory implementation of the mail-session contract."""

    def __init__(self, mailbox: FakeMailbox) -> None:
        self.mailbox = mailbox
        self.close_calls = 0
        self.opened: list[str] = []

    async def status(self, mailbox: str) -> MailboxStats:
        if "status" in self.mailbox.fail_on:
            raise FetchError("status unavailable")
        return MailboxStats(total_messages=self.mailbox.total_messages, recent_messages=0)

    async def open_mailbox(self, name: str) -> None:
        self.opened.append(name)

    async def search(self, criteria: SearchCriteria) -> list[int]:
        self.mailbox.searches.append(criteria)
        if "search" in self.mailbox.fail_on:
            raise SearchError("search refused")
        uids = sorted(set(self.mailbox.messages) | self.mailbox.expunged)
        if criteria.uid_greater_than is not None:
            uids = [uid for uid in uids if uid > criteria.uid_greater_than]
        return uids

    async def fetch_batch(
        self,
        uids: Sequence[int],
        fields: Collection[FetchField],
    ) -> AsyncIterator[FetchedMessage]:
        self.mailbox.fetches.append(list(uids))
        if "fetch" in self.mailbox.fail_on and len(self.mailbox.fetches) > self.mailbox.fail_after_fetches:
            raise FetchError("connection reset during fetch")
        # Servers answer in ascending UID order whatever order was asked for.
        for uid in sorted(uids):
            message = self.mailbox.messages.get(uid)
            if message is None:
                continue
            if FetchField.SOURCE in fields and uid in self.mailbox.sources:
                message = message.model_copy(update={"source": self.mailbox.sources[uid]})
            yield message

    async def download_part(self, uid: int, part_path: str) -> bytes:
        self.mailbox.downloads.append((uid, part_path))
        if uid not in self.mailbox.messages:
            raise NotFoundError(f"Message {uid} not found")
        outcome = self.mailbox.parts.get((uid, part_path))
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if outcome else None
        if outcome is None:
            raise FetchError(f"No content returned for part {part_path}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.close_calls += 1
        if self.mailbox.fail_on_close:
            raise OSError("socket already closed")


class FakeMailbox:
    """A fake IMAP server holding messages keyed by UID."""

    def __init__(self, messages: Sequence[FetchedMessage] = (), total_messages: int | None = None) -> None:
        self.messages = {m.uid: m for m in messages}
        self.total_messages = total_messages if total_messages is not None else len(self.messages)
        self.sources: dict[int, bytes] = {}
        # Found by search, gone by the time they are fetched.
        self.expunged: set[int] = set()
        self.parts: dict[tuple[int, str], object] = {}
        self.fail_on: set[str] = set()
        self.fail_after_fetches = 0
        self.fail_on_close = False
        self.connect_error: Exception | None = None
        self.sessions: list[FakeSession] = []
        self.searches: list[SearchCriteria] = []
        self.fetches: list[list[int]] = []
        self.downloads: list[tuple[int, str]] = []

    async def open(self) -> FakeSession:
        if self.connect_error is not None:
            raise self.connect_error
        session = FakeSession(self)
        self.sessions.append(session)
        return session

    async def connect(self, settings: Settings, credentials: Credentials) -> FakeSession:
        return await self.open()

