"""MIME structure models.

``MimeNode`` mirrors one node of an IMAP ``BODYSTRUCTURE`` response. Nodes
are frozen: a structure tree is built once per fetched message and only read
afterwards.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from pdf_mailbox_scanner.models.base import WireModel


class MimeNode(BaseModel):
    """A node in a message's MIME structure tree."""

    model_config = ConfigDict(frozen=True)

    kind: str = Field(default="", description="Lowercase type/subtype, e.g. application/pdf")
    filename: str = Field(default="", description="Disposition filename or content name")
    size_bytes: int = Field(default=0, ge=0, description="Encoded size reported by the server")
    transfer_encoding: str | None = Field(default=None, description="Content-Transfer-Encoding")
    children: tuple[MimeNode, ...] = Field(default=(), description="Child parts in document order")

    @property
    def is_multipart(self) -> bool:
        return self.kind.startswith("multipart/")


class PdfAttachmentDescriptor(WireModel):
    """A PDF part located inside a message."""

    filename: str = Field(description="Resolved filename, may be empty")
    mime_type: str = Field(description="MIME type as reported by the server")
    size_bytes: int = Field(default=0, alias="size", description="Encoded size in bytes")
    part_path: str = Field(alias="partId", description="Dotted IMAP part number")
    transfer_encoding: str | None = Field(
        default=None, alias="encoding", description="Content-Transfer-Encoding"
    )
