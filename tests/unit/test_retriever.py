"""Unit tests for attachment retrieval."""

import pytest

from pdf_mailbox_scanner.config import Settings
from pdf_mailbox_scanner.exceptions import (
    AuthError,
    ConnectError,
    DownloadFailedError,
    FetchError,
    NotFoundError,
)
from pdf_mailbox_scanner.retrieval import AttachmentRetriever
from pdf_mailbox_scanner.retrieval.retriever import validate_pdf
from tests.helpers import HTML_BYTES, PDF_BYTES, FakeMailbox, make_message, pdf_part


class RecordingSleep:
    """Stand-in for asyncio.sleep that only records the delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


def make_retriever(mailbox: FakeMailbox, settings: Settings, sleep: RecordingSleep) -> AttachmentRetriever:
    return AttachmentRetriever(mailbox.open, settings, sleep=sleep)


class TestValidatePdf:
    """Test suite for the PDF signature check."""

    def test_accepts_pdf(self) -> None:
        assert validate_pdf(PDF_BYTES) is None

    def test_rejects_html(self) -> None:
        """Test that an HTML error page is not accepted as a PDF."""
        problem = validate_pdf(HTML_BYTES)

        assert problem is not None
        assert "not a valid PDF" in problem

    def test_rejects_empty(self) -> None:
        assert validate_pdf(b"") == "Downloaded attachment is empty"


class TestRetrieve:
    """Test suite for AttachmentRetriever.retrieve()."""

    @pytest.mark.asyncio
    async def test_direct_download(self, settings: Settings, sleep: RecordingSleep) -> None:
        """Test that the remembered part path is used when it works."""
        mailbox = FakeMailbox([make_message(7, pdf_part())])
        mailbox.parts[(7, "2")] = PDF_BYTES

        content = await make_retriever(mailbox, settings, sleep).retrieve(7, "2")

        assert content == PDF_BYTES
        assert mailbox.downloads == [(7, "2")]
        assert sleep.delays == []
        assert [s.close_calls for s in mailbox.sessions] == [1]
        assert mailbox.sessions[0].opened == ["INBOX"]

    @pytest.mark.asyncio
    async def test_falls_back_to_other_pdf_parts(self, settings: Settings, sleep: RecordingSleep) -> None:
        """Test rediscovery after the remembered part returns an HTML page."""
        mailbox = FakeMailbox([make_message(7, pdf_part("a.pdf"), pdf_part("b.pdf"))])
        mailbox.parts[(7, "2")] = HTML_BYTES
        mailbox.parts[(7, "3")] = PDF_BYTES

        content = await make_retriever(mailbox, settings, sleep).retrieve(7, "2")

        assert content == PDF_BYTES
        assert mailbox.downloads == [(7, "2"), (7, "3")]
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_stale_part_path(self, settings: Settings, sleep: RecordingSleep) -> None:
        """Test a remembered path that no longer exists in the message."""
        mailbox = FakeMailbox([make_message(7, pdf_part())])
        mailbox.parts[(7, "2")] = PDF_BYTES

        content = await make_retriever(mailbox, settings, sleep).retrieve(7, "4")

        assert content == PDF_BYTES
        assert mailbox.downloads == [(7, "4"), (7, "2")]

    @pytest.mark.asyncio
    async def test_retries_with_backoff_then_gives_up(self, settings: Settings, sleep: RecordingSleep) -> None:
        """Test three attempts, 1s and 2s apart, when only HTML comes back."""
        mailbox = FakeMailbox([make_message(7, pdf_part())])
        mailbox.parts[(7, "2")] = HTML_BYTES

        with pytest.raises(DownloadFailedError) as exc_info:
            await make_retriever(mailbox, settings, sleep).retrieve(7, "2")

        assert "not a valid PDF" in exc_info.value.last_error
        assert exc_info.value.category == "download_failed"
        assert sleep.delays == [1.0, 2.0]
        assert len(mailbox.sessions) == 3
        assert all(s.close_calls == 1 for s in mailbox.sessions)

    @pytest.mark.asyncio
    async def test_transient_failure_recovers(self, settings: Settings, sleep: RecordingSleep) -> None:
        """Test that a second attempt on a fresh session can succeed."""
        mailbox = FakeMailbox([make_message(7, pdf_part())])
        mailbox.parts[(7, "2")] = [FetchError("read timed out"), PDF_BYTES]

        content = await make_retriever(mailbox, settings, sleep).retrieve(7, "2")

        assert content == PDF_BYTES
        assert sleep.delays == [1.0]
        assert len(mailbox.sessions) == 2

    @pytest.mark.asyncio
    async def test_empty_payload_is_a_failure(self, settings: Settings, sleep: RecordingSleep) -> None:
        """Test that a zero-length part is never returned."""
        mailbox = FakeMailbox([make_message(7, pdf_part())])
        mailbox.parts[(7, "2")] = b""

        with pytest.raises(DownloadFailedError) as exc_info:
            await make_retriever(mailbox, settings, sleep).retrieve(7, "2")

        assert exc_info.value.last_error == "Downloaded attachment is empty"

    @pytest.mark.asyncio
    async def test_message_without_pdf(self, settings: Settings, sleep: RecordingSleep) -> None:
        """Test that a message with no PDF parts fails at once."""
        mailbox = FakeMailbox([make_message(7)])

        with pytest.raises(NotFoundError):
            await make_retriever(mailbox, settings, sleep).retrieve(7, "2")

        assert sleep.delays == []
        assert len(mailbox.sessions) == 1

    @pytest.mark.asyncio
    async def test_unknown_message(self, settings: Settings, sleep: RecordingSleep) -> None:
        mailbox = FakeMailbox([make_message(7, pdf_part())])

        with pytest.raises(NotFoundError):
            await make_retriever(mailbox, settings, sleep).retrieve(99, "2")

        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_auth_failure_is_not_retried(self, settings: Settings, sleep: RecordingSleep) -> None:
        mailbox = FakeMailbox([make_message(7, pdf_part())])
        mailbox.connect_error = AuthError("Invalid email or app password")

        with pytest.raises(AuthError):
            await make_retriever(mailbox, settings, sleep).retrieve(7, "2")

        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_connect_failure_is_retried(self, settings: Settings, sleep: RecordingSleep) -> None:
        """Test that connection failures count as failed attempts."""
        mailbox = FakeMailbox([make_message(7, pdf_part())])
        mailbox.connect_error = ConnectError("Connection refused")

        with pytest.raises(DownloadFailedError) as exc_info:
            await make_retriever(mailbox, settings, sleep).retrieve(7, "2")

        assert exc_info.value.last_error == "Connection refused"
        assert sleep.delays == [1.0, 2.0]
