"""Connection configuration."""

from __future__ import annotations

import os
import ssl
from dataclasses import dataclass
from typing import Optional

POP3_PORT = 110
POP3_TLS_PORT = 995

# RFC 1939 caps a reply line at 512 octets; real servers exceed that for
# message bodies, so the guard only stops runaway lines.
MAX_LINE_LENGTH = 64 * 1024


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ConnectionConfig:
    """Where and how to reach a POP3 server.

    ``tls`` wraps the socket before the greeting (implicit TLS, port 995);
    ``starttls`` upgrades a plain connection with STLS right after it.
    """

    host: str
    port: Optional[int] = None
    tls: bool = False
    starttls: bool = False
    timeout: Optional[float] = None
    max_line_length: int = MAX_LINE_LENGTH
    ssl_context: Optional[ssl.SSLContext] = None

    @property
    def resolved_port(self) -> int:
        if self.port is not None:
            return self.port
        return POP3_TLS_PORT if self.tls else POP3_PORT

    def make_ssl_context(self) -> ssl.SSLContext:
        """Return the configured TLS context or the system default one."""
        return self.ssl_context or ssl.create_default_context()

    @classmethod
    def from_env(cls) -> "ConnectionConfig":
        """Create config from ``POP3_*`` environment variables."""
        port = os.getenv("POP3_PORT")
        timeout = os.getenv("POP3_TIMEOUT")
        return cls(
            host=os.getenv("POP3_HOST", ""),
            port=int(port) if port else None,
            tls=_env_flag("POP3_TLS"),
            starttls=_env_flag("POP3_STARTTLS"),
            timeout=float(timeout) if timeout else None,
            max_line_length=int(os.getenv("POP3_MAX_LINE", str(MAX_LINE_LENGTH))),
        )

    def validate(self) -> None:
        """Validate configuration.

        Raises:
            ValueError: On an unusable combination of settings.
        """
        if not self.host:
            raise ValueError("POP3 host is required")

        if not 0 < self.resolved_port <= 65535:
            raise ValueError(f"Port must be 1-65535, got {self.resolved_port}")

        if self.tls and self.starttls:
            raise ValueError("tls and starttls are mutually exclusive")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("Timeout must be positive")

        if self.max_line_length < 512:
            raise ValueError(
                f"max_line_length must be at least 512, got {self.max_line_length}"
            )
