"""Attachment retrieval."""

from pdf_mailbox_scanner.retrieval.retriever import AttachmentRetriever, validate_pdf

__all__ = ["AttachmentRetriever", "validate_pdf"]
