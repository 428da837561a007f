"""Message-level models.

Two groups live here: the records the mail session hands back
(``Address``, ``Envelope``, ``FetchedMessage``, ``MailboxStats``) and the
shapes returned to callers (``MessageSummary`` and friends).
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

from pdf_mailbox_scanner.models.base import WireModel
from pdf_mailbox_scanner.models.mime import MimeNode, PdfAttachmentDescriptor


class FetchField(str, Enum):
    """Data items requested from the server for each message."""

    ENVELOPE = "envelope"
    STRUCTURE = "structure"
    SOURCE = "source"


class Credentials(BaseModel):
    """Per-call mailbox credentials. Never persisted, never logged."""

    model_config = ConfigDict(frozen=True)

    user: str = Field(description="Mailbox login, usually the email address")
    password: SecretStr = Field(description="Password or app password")


class Address(BaseModel):
    """An envelope address split the way IMAP reports it."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    mailbox: str = ""
    host: str = ""


class Envelope(BaseModel):
    """Summary header fields of a message."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject: str = ""
    from_: tuple[Address, ...] = Field(default=(), alias="from")
    date: datetime | None = None


class FetchedMessage(BaseModel):
    """One message as returned by a batch fetch."""

    model_config = ConfigDict(frozen=True)

    uid: int
    envelope: Envelope | None = None
    structure: MimeNode | None = None
    source: bytes | None = None


class SearchCriteria(BaseModel):
    """Search predicate understood by the mail session.

    ``since_date`` and ``uid_greater_than`` are mutually exclusive; the
    sender and subject filters combine with either.
    """

    model_config = ConfigDict(frozen=True)

    since_date: date | None = None
    uid_greater_than: int | None = Field(default=None, ge=0)
    from_contains: str | None = None
    subject_contains: str | None = None

    @model_validator(mode="after")
    def _one_bound(self) -> SearchCriteria:
        if self.since_date is not None and self.uid_greater_than is not None:
            raise ValueError("since_date and uid_greater_than are mutually exclusive")
        return self


class MailboxStats(WireModel):
    """Message counts for a mailbox."""

    total_messages: int = 0
    recent_messages: int = 0


class MessageSummary(WireModel):
    """A message with its PDF attachments, as returned to callers."""

    uid: int
    subject: str = ""
    from_: str = Field(default="", alias="from")
    date: str | None = None
    attachments: tuple[PdfAttachmentDescriptor, ...] = ()


class TextSearchHit(MessageSummary):
    """A text-search result; carries a flag even when no PDF is attached."""

    has_pdf: bool = False


class MessageDetail(MessageSummary):
    """A single message with its decoded bodies."""

    text_body: str = ""
    html_body: str = ""
    snippet: str = ""
