"""Integration tests against a real IMAP mailbox.

Set PDF_SCANNER_IT_USER and PDF_SCANNER_IT_PASSWORD (and PDF_SCANNER_IMAP_HOST
for servers other than Gmail) to run them. The mailbox is only read.
"""

import os

import pytest

from pdf_mailbox_scanner.config import Settings
from pdf_mailbox_scanner.exceptions import AuthError
from pdf_mailbox_scanner.models import CompleteEvent, Credentials, ScanRequest, StartEvent
from pdf_mailbox_scanner.service import MailboxService

IT_USER = os.environ.get("PDF_SCANNER_IT_USER")
IT_PASSWORD = os.environ.get("PDF_SCANNER_IT_PASSWORD")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not (IT_USER and IT_PASSWORD), reason="PDF_SCANNER_IT_* not set"),
]


@pytest.fixture
def service() -> MailboxService:
    return MailboxService(Settings())


@pytest.fixture
def live_credentials() -> Credentials:
    return Credentials(user=IT_USER or "", password=IT_PASSWORD or "")


class TestImapIntegration:
    """Integration tests for the IMAP-backed service."""

    @pytest.mark.asyncio
    async def test_connection(self, service: MailboxService, live_credentials: Credentials) -> None:
        await service.test_connection(live_credentials)

    @pytest.mark.asyncio
    async def test_wrong_password(self, service: MailboxService) -> None:
        with pytest.raises(AuthError):
            await service.test_connection(Credentials(user=IT_USER or "", password="not-the-password"))

    @pytest.mark.asyncio
    async def test_stream_recent_mail(self, service: MailboxService, live_credentials: Credentials) -> None:
        """Test a short scan and the download of the first PDF it finds."""
        events = [e async for e in service.scan_stream(live_credentials, ScanRequest(days_back=7, max_results=1))]

        assert isinstance(events[0], StartEvent)
        assert isinstance(events[-1], CompleteEvent)

        found = [m for e in events if e.type == "pdf_batch" for m in e.messages]
        if found:
            message = found[0]
            content = await service.download_attachment(
                live_credentials, message.uid, message.attachments[0].part_path
            )
            assert content.startswith(b"%PDF")
