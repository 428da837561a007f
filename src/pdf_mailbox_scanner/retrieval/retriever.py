"""Attachment download with fallback rediscovery and bounded retry.

The part path remembered from a scan is tried first. When it does not
produce a PDF, the message structure is fetched again and every PDF part
found in it is tried in document order. The whole sequence is one attempt;
failed attempts are retried on a fresh session after an exponential
backoff.

Some servers answer a bad part reference with an HTML error page through a
successful fetch, so every payload is checked for the ``%PDF`` signature.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from pdf_mailbox_scanner.config import Settings
from pdf_mailbox_scanner.exceptions import AuthError, DownloadFailedError, NotFoundError, ScannerError
from pdf_mailbox_scanner.imap.session import MailSession, SessionOpener, session_scope
from pdf_mailbox_scanner.mime.locator import locate
from pdf_mailbox_scanner.models import FetchField
from pdf_mailbox_scanner.utils import backoff_delays

logger = structlog.get_logger()

PDF_SIGNATURE = b"%PDF"


@dataclass(frozen=True)
class PartAttempt:
    """Outcome of trying one part path."""

    part_path: str
    content: bytes | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.content is not None


def validate_pdf(content: bytes) -> str | None:
    """Return why ``content`` is not a PDF, or None if it looks like one."""
    if not content:
        return "Downloaded attachment is empty"
    if content[:4] != PDF_SIGNATURE:
        return f"Downloaded content is not a valid PDF (got {len(content)} bytes)"
    return None


class AttachmentRetriever:
    """Fetch one PDF attachment by UID and part path."""

    def __init__(
        self,
        open_session: SessionOpener,
        settings: Settings | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the retriever.

        Args:
            open_session: Coroutine factory returning a fresh, logged-in session.
            settings: Application settings. If None, uses default settings.
            sleep: Awaitable used for the backoff wait.
        """
        from pdf_mailbox_scanner.config import get_settings

        self.settings = settings or get_settings()
        self._open_session = open_session
        self._sleep = sleep

    async def retrieve(self, uid: int, part_path: str) -> bytes:
        """Return the content of the PDF at ``part_path`` of message ``uid``.

        Raises:
            AuthError: If the server rejects the credentials.
            NotFoundError: If the message has no PDF parts at all.
            DownloadFailedError: If every attempt failed.
        """
        attempts = self.settings.download_max_attempts
        delays = backoff_delays(
            attempts,
            delay=self.settings.download_backoff_base,
            backoff=self.settings.download_backoff_factor,
        )

        last_error = "Download failed after retries"
        for attempt in range(1, attempts + 1):
            logger.info("attachment_download_attempt", uid=uid, part_path=part_path, attempt=attempt)
            try:
                result = await self._attempt(uid, part_path)
            except (AuthError, NotFoundError):
                raise
            except ScannerError as exc:
                result = PartAttempt(part_path, error=exc.message)

            if result.ok:
                logger.info(
                    "attachment_downloaded",
                    uid=uid,
                    part_path=result.part_path,
                    size=len(result.content),
                    attempt=attempt,
                )
                return result.content

            last_error = result.error or last_error
            logger.warning(
                "attachment_download_failed",
                uid=uid,
                part_path=part_path,
                attempt=attempt,
                error=last_error,
            )
            wait = next(delays, None)
            if wait is not None:
                logger.info("attachment_download_backoff", uid=uid, wait_seconds=wait)
                await self._sleep(wait)

        logger.error("attachment_download_exhausted", uid=uid, part_path=part_path, error=last_error)
        raise DownloadFailedError(last_error, last_error=last_error)

    async def _attempt(self, uid: int, part_path: str) -> PartAttempt:
        async with session_scope(self._open_session) as session:
            await session.open_mailbox(self.settings.imap_mailbox)

            direct = await self._try_part(session, uid, part_path)
            if direct.ok:
                return direct
            logger.info(
                "attachment_direct_download_failed",
                uid=uid,
                part_path=part_path,
                error=direct.error,
            )

            candidates = [p for p in await self._rediscover(session, uid) if p != part_path]
            last = direct
            for candidate in candidates:
                last = await self._try_part(session, uid, candidate)
                if last.ok:
                    return last
                logger.info(
                    "attachment_candidate_failed",
                    uid=uid,
                    part_path=candidate,
                    error=last.error,
                )
            return PartAttempt(part_path, error=last.error or "Could not download any PDF attachment")

    async def _rediscover(self, session: MailSession, uid: int) -> list[str]:
        structure = None
        async for message in session.fetch_batch([uid], {FetchField.STRUCTURE}):
            if message.uid == uid:
                structure = message.structure
        if structure is None:
            raise NotFoundError(f"Could not get structure of message {uid}")
        candidates = locate(structure)
        logger.info("attachment_candidates_found", uid=uid, candidates=candidates)
        return candidates

    @staticmethod
    async def _try_part(session: MailSession, uid: int, part_path: str) -> PartAttempt:
        try:
            content = await session.download_part(uid, part_path)
        except NotFoundError:
            raise
        except ScannerError as exc:
            return PartAttempt(part_path, error=exc.message)

        problem = validate_pdf(content)
        if problem is not None:
            return PartAttempt(part_path, error=problem)
        return PartAttempt(part_path, content=content)
