"""Custom exceptions for PDF Mailbox Scanner.

Every exception carries a stable ``category`` string so callers (and the
CLI) can report the failure class without parsing messages.
"""

from __future__ import annotations


class ScannerError(Exception):
    """Base exception for all PDF Mailbox Scanner errors."""

    category = "internal"

    @property
    def message(self) -> str:
        return str(self) or self.__class__.__name__


class InvalidRequestError(ScannerError):
    """Exception raised when a request is missing or has malformed fields."""

    category = "invalid_request"


class AuthError(ScannerError):
    """Exception raised when the mail server rejects the credentials."""

    category = "auth"


class ConnectError(ScannerError):
    """Exception raised when a mail session cannot be established."""

    category = "connect"


class SearchError(ScannerError):
    """Exception raised when a mailbox search fails."""

    category = "search"


class FetchError(ScannerError):
    """Exception raised when fetching status, structure or content fails."""

    category = "fetch"


class NotFoundError(ScannerError):
    """Exception raised when a message or a PDF part cannot be found."""

    category = "not_found"


class DownloadFailedError(ScannerError):
    """Exception raised when attachment retrieval exhausts its attempts."""

    category = "download_failed"

    def __init__(self, message: str, last_error: str | None = None) -> None:
        super().__init__(message)
        self.last_error = last_error
