"""Archiver configuration loaded from environment variables.

Values come from the process environment first and from a ``.env`` file
in the working directory second.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

DEFAULT_IMAP_PORT = 993
LEDGER_FILENAME = "processed_uids.txt"


class ImapConfig(BaseSettings):
    """IMAP server connection settings."""

    model_config = {"env_prefix": "IMAP_", "env_file": ".env", "extra": "ignore"}

    server: str = Field(description="IMAP server as host:port")
    use_ssl: bool = Field(default=True, description="Use SSL/TLS connection")
    username: str = Field(description="IMAP login username")
    password: SecretStr = Field(description="IMAP login password")
    folder: str = Field(default="INBOX", description="IMAP mailbox/folder to archive")

    @field_validator("server")
    @classmethod
    def _check_server(cls, value: str) -> str:
        host, sep, port = value.rpartition(":")
        if sep and not port.isdigit():
            raise ValueError(f"invalid port in IMAP server address: {value!r}")
        if sep and not host:
            raise ValueError(f"missing host in IMAP server address: {value!r}")
        return value

    @property
    def host(self) -> str:
        host, sep, _ = self.server.rpartition(":")
        return host if sep else self.server

    @property
    def port(self) -> int:
        _, sep, port = self.server.rpartition(":")
        return int(port) if sep else DEFAULT_IMAP_PORT


class ArchiverConfig(BaseSettings):
    """Root configuration for one archiver run."""

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    destination_dir: Path = Field(description="Directory attachments are written to")
    batch_size: int = Field(
        default=100,
        ge=1,
        description="Number of messages requested per metadata FETCH",
    )
    log_level: str = Field(default="INFO", description="Root log level name")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    imap: ImapConfig = Field(default_factory=ImapConfig)

    @property
    def ledger_path(self) -> Path:
        """Location of the processed-UID ledger inside the destination dir."""
        return self.destination_dir / LEDGER_FILENAME
