"""Configuration management for PDF Mailbox Scanner.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
Mailbox credentials are never part of the settings: they are passed per
call and dropped once the call completes.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the PDF_SCANNER_ prefix (e.g., PDF_SCANNER_IMAP_HOST).
    """

    model_config = SettingsConfigDict(
        env_prefix="PDF_SCANNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # IMAP Configuration
    imap_host: str = Field(
        default="imap.gmail.com",
        description="IMAP server host name",
    )
    imap_port: int = Field(
        default=993,
        description="IMAP server port",
    )
    imap_secure: bool = Field(
        default=True,
        description="Use implicit TLS when connecting",
    )
    imap_mailbox: str = Field(
        default="INBOX",
        description="Mailbox scanned and searched by every operation",
    )
    socket_timeout: float = Field(
        default=30.0,
        description="Read timeout for IMAP socket operations in seconds",
    )
    greeting_timeout: float = Field(
        default=15.0,
        description="Timeout for establishing the connection and server greeting in seconds",
    )

    # Scan Configuration
    fetch_batch_size: int = Field(
        default=100,
        ge=1,
        description="Number of UIDs fetched per FETCH round-trip",
    )
    pdf_batch_size: int = Field(
        default=10,
        ge=1,
        description="Number of PDF-bearing messages grouped into one pdf_batch event",
    )
    progress_interval: int = Field(
        default=50,
        ge=1,
        description="Emit a progress event every N newly scanned messages",
    )
    default_days_back: int = Field(
        default=365,
        ge=1,
        description="Date window used when a full scan does not specify one",
    )
    max_days_back: int = Field(
        default=3650,
        ge=1,
        description="Upper bound for the date window; larger requests are clamped",
    )
    default_max_results: int = Field(
        default=5000,
        ge=1,
        description="Maximum number of messages returned by a scan",
    )
    text_search_days_back: int = Field(
        default=30,
        ge=1,
        description="Default date window for text searches",
    )
    text_search_max_results: int = Field(
        default=50,
        ge=1,
        description="Default result limit for text searches",
    )
    snippet_length: int = Field(
        default=200,
        ge=0,
        description="Length of the plain-text snippet in message details",
    )

    # Attachment download Configuration
    download_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum number of attempts for one attachment download",
    )
    download_backoff_base: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay before the second attempt in seconds",
    )
    download_backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the delay after each failed attempt",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_json: bool = Field(
        default=False,
        description="Render log lines as JSON instead of console output",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
