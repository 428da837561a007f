"""Command-line interface for PDF Mailbox Scanner.

This module provides the main entry point for the CLI application. Results
are written to stdout as JSON; a streaming scan writes one event per line.
The password is read from PDF_SCANNER_PASSWORD or prompted for, and is
never stored.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import os
import sys
from contextlib import aclosing
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from pdf_mailbox_scanner import __version__
from pdf_mailbox_scanner.config import get_settings
from pdf_mailbox_scanner.exceptions import InvalidRequestError, ScannerError
from pdf_mailbox_scanner.models import (
    TERMINAL_EVENTS,
    Credentials,
    ErrorEvent,
    ScanRequest,
    TextSearchRequest,
)
from pdf_mailbox_scanner.service import MailboxService
from pdf_mailbox_scanner.utils import configure_logging

logger = structlog.get_logger()

PASSWORD_ENV = "PDF_SCANNER_PASSWORD"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pdf-scanner", description="PDF Mailbox Scanner")
    parser.add_argument(
        "--user",
        required=True,
        help="Mailbox login (email address). The password is read from "
        f"{PASSWORD_ENV} or prompted for.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("test", help="Check that the credentials are accepted")
    subparsers.add_parser("stats", help="Show message counts of the mailbox")

    scan_parser = subparsers.add_parser("scan", help="Find messages with PDF attachments")
    scan_parser.add_argument(
        "--days-back",
        type=int,
        default=None,
        help="Date window in days (3650 or more scans all mail)",
    )
    scan_parser.add_argument(
        "--since-uid",
        type=int,
        default=None,
        help="Incremental scan: only messages with a UID above this value",
    )
    scan_parser.add_argument(
        "--max-results",
        type=int,
        default=None,
        help="Maximum number of messages to return",
    )
    scan_parser.add_argument(
        "--resume-after-uid",
        type=int,
        default=None,
        help="Resume an interrupted scan below this UID",
    )
    scan_parser.add_argument(
        "--previous-scanned",
        type=int,
        default=0,
        help="Scanned count reported by the interrupted scan",
    )
    scan_parser.add_argument(
        "--previous-with-pdf",
        type=int,
        default=0,
        help="PDF count reported by the interrupted scan",
    )
    scan_parser.add_argument(
        "--stream",
        action="store_true",
        help="Write progress and result events as JSON lines",
    )

    text_parser = subparsers.add_parser("search-text", help="Search messages by sender/subject")
    text_parser.add_argument("--from", dest="from_filter", default=None, help="Sender contains")
    text_parser.add_argument("--subject", dest="subject_filter", default=None, help="Subject contains")
    text_parser.add_argument("--days-back", type=int, default=None, help="Date window in days")
    text_parser.add_argument("--max-results", type=int, default=None, help="Max results")

    message_parser = subparsers.add_parser("message", help="Show one message")
    message_parser.add_argument("uid", type=int, help="Message UID")

    attachment_parser = subparsers.add_parser("attachment", help="Download one PDF attachment")
    attachment_parser.add_argument("uid", type=int, help="Message UID")
    attachment_parser.add_argument("part", help="Part path reported by a scan (e.g. 2 or 1.2)")
    attachment_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Destination file (default: <uid>-<part>.pdf)",
    )

    return parser


def _read_credentials(user: str) -> Credentials:
    password = os.environ.get(PASSWORD_ENV) or getpass.getpass("Password: ")
    return Credentials(user=user, password=password)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False), flush=True)


def _emit_error(error: str, category: str) -> None:
    print(json.dumps({"error": error, "category": category}), file=sys.stderr, flush=True)


async def _cmd_test(service: MailboxService, credentials: Credentials, args: argparse.Namespace) -> int:
    await service.test_connection(credentials)
    _emit({"success": True})
    return 0


async def _cmd_stats(service: MailboxService, credentials: Credentials, args: argparse.Namespace) -> int:
    stats = await service.mailbox_stats(credentials)
    _emit(stats.to_wire())
    return 0


async def _cmd_scan(service: MailboxService, credentials: Credentials, args: argparse.Namespace) -> int:
    request = ScanRequest(
        days_back=args.days_back,
        since_uid=args.since_uid,
        max_results=args.max_results,
        resume_after_uid=args.resume_after_uid,
        previous_scanned=args.previous_scanned,
        previous_with_pdf=args.previous_with_pdf,
    )

    if not args.stream:
        result = await service.scan(credentials, request)
        _emit(result.to_wire())
        return 0

    exit_code = 0
    async with aclosing(service.scan_stream(credentials, request)) as events:
        async for event in events:
            _emit(event.to_wire())
            if isinstance(event, TERMINAL_EVENTS):
                exit_code = 1 if isinstance(event, ErrorEvent) else 0
                break
    return exit_code


async def _cmd_search_text(
    service: MailboxService, credentials: Credentials, args: argparse.Namespace
) -> int:
    request = TextSearchRequest(
        from_filter=args.from_filter,
        subject_filter=args.subject_filter,
        days_back=args.days_back,
        max_results=args.max_results,
    )
    hits = await service.search_text(credentials, request)
    _emit({"messages": [hit.to_wire() for hit in hits]})
    return 0


async def _cmd_message(service: MailboxService, credentials: Credentials, args: argparse.Namespace) -> int:
    detail = await service.get_message(credentials, args.uid)
    _emit(detail.to_wire())
    return 0


async def _cmd_attachment(
    service: MailboxService, credentials: Credentials, args: argparse.Namespace
) -> int:
    content = await service.download_attachment(credentials, args.uid, args.part)
    output: Path = args.output or Path(f"{args.uid}-{args.part}.pdf")
    output.write_bytes(content)
    _emit({"uid": args.uid, "partId": args.part, "size": len(content), "output": str(output)})
    return 0


COMMANDS = {
    "test": _cmd_test,
    "stats": _cmd_stats,
    "scan": _cmd_scan,
    "search-text": _cmd_search_text,
    "message": _cmd_message,
    "attachment": _cmd_attachment,
}


async def _run(parsed: argparse.Namespace, service: MailboxService | None = None) -> int:
    service = service or MailboxService(get_settings())
    credentials = _read_credentials(parsed.user)
    return await COMMANDS[parsed.command](service, credentials, parsed)


def main(args: list[str] | None = None, service: MailboxService | None = None) -> int:
    """Main entry point for the PDF Mailbox Scanner CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.
        service: Service to run commands against. If None, an IMAP-backed
            service is built from the settings.

    Returns:
        Exit code (0 for success, 1 for failures, 2 for invalid requests).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()
    configure_logging(settings)

    logger.info("pdf_scanner_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    try:
        return asyncio.run(_run(parsed, service))
    except (InvalidRequestError, ValidationError) as exc:
        message = exc.message if isinstance(exc, ScannerError) else _validation_message(exc)
        _emit_error(message, InvalidRequestError.category)
        return 2
    except ScannerError as exc:
        logger.error("command_failed", command=parsed.command, category=exc.category, error=exc.message)
        _emit_error(exc.message, exc.category)
        return 1


def _validation_message(exc: ValidationError) -> str:
    problems = [
        f"{'.'.join(str(p) for p in error['loc']) or 'request'}: {error['msg']}"
        for error in exc.errors()
    ]
    return "; ".join(problems)


if __name__ == "__main__":
    sys.exit(main())
