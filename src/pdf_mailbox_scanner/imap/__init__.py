"""IMAP mail session collaborator."""

from pdf_mailbox_scanner.imap.session import (
    ImapSession,
    MailSession,
    SessionOpener,
    close_quietly,
    session_scope,
)

__all__ = ["ImapSession", "MailSession", "SessionOpener", "close_quietly", "session_scope"]
