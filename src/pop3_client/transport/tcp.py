"""Blocking TCP/TLS stream for POP3.

Wraps a connected socket with a buffered binary reader so the protocol
layer can read CRLF-terminated lines and write raw bytes::

    stream = open_connection(ConnectionConfig("pop.example.com", tls=True))
    stream.write(b"NOOP\\r\\n")
    line = stream.readline()
    stream.close()
"""

from __future__ import annotations

import errno
import logging
import socket
import ssl
from typing import Optional

from ..config import MAX_LINE_LENGTH, ConnectionConfig
from ..errors import InvalidResponseError

logger = logging.getLogger(__name__)


class SocketStream:
    """Line-readable, byte-writable view over a socket."""

    def __init__(
        self,
        sock: socket.socket,
        host: str = "",
        max_line_length: int = MAX_LINE_LENGTH,
    ) -> None:
        self._sock: Optional[socket.socket] = sock
        self._file = sock.makefile("rb")
        self._host = host
        self._max_line_length = max_line_length

    @property
    def host(self) -> str:
        return self._host

    @property
    def encrypted(self) -> bool:
        return isinstance(self._sock, ssl.SSLSocket)

    def readline(self) -> bytes:
        """Read up to and including the next LF; ``b""`` at end of stream.

        Raises:
            InvalidResponseError: If the line exceeds ``max_line_length``.
        """
        if self._sock is None:
            raise ConnectionError("Stream is closed")
        line = self._file.readline(self._max_line_length + 1)
        if len(line) > self._max_line_length:
            raise InvalidResponseError(f"Line exceeds {self._max_line_length} bytes")
        return line

    def write(self, data: bytes) -> None:
        if self._sock is None:
            raise ConnectionError("Stream is closed")
        self._sock.sendall(data)

    def starttls(self, context: ssl.SSLContext) -> None:
        """Upgrade the connection to TLS in place (after a ``+OK`` to STLS)."""
        if self._sock is None:
            raise ConnectionError("Stream is closed")
        self._file.close()
        self._sock = context.wrap_socket(self._sock, server_hostname=self._host)
        self._file = self._sock.makefile("rb")
        logger.info("TLS established with %s (%s)", self._host, self._sock.version())

    def close(self) -> None:
        """Close the stream; safe to call more than once."""
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            self._file.close()
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            if e.errno != errno.ENOTCONN:
                logger.warning("Error closing connection to %s: %s", self._host, e)
        finally:
            sock.close()
            logger.info("Disconnected from %s", self._host)


def open_connection(config: ConnectionConfig) -> SocketStream:
    """Connect to the configured server, wrapping in TLS when asked.

    Raises:
        OSError: If the connection or TLS handshake fails.
    """
    port = config.resolved_port
    logger.info("Connecting to %s:%d%s", config.host, port, " (TLS)" if config.tls else "")
    sock = socket.create_connection((config.host, port), config.timeout)
    if config.tls:
        try:
            sock = config.make_ssl_context().wrap_socket(sock, server_hostname=config.host)
        except OSError:
            sock.close()
            raise
    return SocketStream(sock, host=config.host, max_line_length=config.max_line_length)
