"""asyncio stream for POP3, the cooperative counterpart of :mod:`.tcp`."""

from __future__ import annotations

import asyncio
import logging
import ssl

from ..config import MAX_LINE_LENGTH, ConnectionConfig
from ..errors import InvalidResponseError

logger = logging.getLogger(__name__)


class AsyncStream:
    """Line-readable, byte-writable view over an asyncio reader/writer pair.

    The reader's own buffer limit bounds line length, so it must be
    created with ``limit=max_line_length`` (see :func:`open_async_connection`).
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        host: str = "",
        max_line_length: int = MAX_LINE_LENGTH,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._host = host
        self._max_line_length = max_line_length
        self._closed = False

    @property
    def host(self) -> str:
        return self._host

    @property
    def encrypted(self) -> bool:
        return self._writer.get_extra_info("ssl_object") is not None

    async def readline(self) -> bytes:
        """Read up to and including the next LF; ``b""`` at end of stream.

        Raises:
            InvalidResponseError: If the line exceeds ``max_line_length``.
        """
        try:
            line = await self._reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            # End of stream: whatever arrived without a newline.
            line = e.partial
        except asyncio.LimitOverrunError:
            raise InvalidResponseError(
                f"Line exceeds {self._max_line_length} bytes"
            ) from None
        if len(line) > self._max_line_length:
            raise InvalidResponseError(f"Line exceeds {self._max_line_length} bytes")
        return line

    async def write(self, data: bytes) -> None:
        self._writer.write(data)
        await self._writer.drain()

    async def starttls(self, context: ssl.SSLContext) -> None:
        """Upgrade the connection to TLS in place (after a ``+OK`` to STLS)."""
        await self._writer.start_tls(context, server_hostname=self._host)
        logger.info("TLS established with %s", self._host)

    async def close(self) -> None:
        """Close the stream; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as e:
            logger.warning("Error closing connection to %s: %s", self._host, e)
        logger.info("Disconnected from %s", self._host)


async def open_async_connection(config: ConnectionConfig) -> AsyncStream:
    """Connect to the configured server, wrapping in TLS when asked.

    Raises:
        OSError: If the connection or TLS handshake fails.
    """
    port = config.resolved_port
    logger.info("Connecting to %s:%d%s", config.host, port, " (TLS)" if config.tls else "")
    reader, writer = await asyncio.wait_for(
        asyncio.open_connection(
            config.host,
            port,
            ssl=config.make_ssl_context() if config.tls else None,
            limit=config.max_line_length,
        ),
        timeout=config.timeout,
    )
    return AsyncStream(
        reader, writer, host=config.host, max_line_length=config.max_line_length
    )
