"""asyncio POP3 client.

Runs the same protocol operations as :class:`~.blocking.Pop3Client`, but
each call suspends only the awaiting task. Usage::

    async with await AsyncPop3Client.connect(ConnectionConfig("pop.example.com", tls=True)) as client:
        await client.login("user", "secret")
        count, octets = await client.stat()

A call cancelled mid-flight leaves the stream at an unknown framing
position; the client then refuses further calls with
:class:`~pop3_client.errors.ConnectionClosedError`.
"""

from __future__ import annotations

import logging
import ssl
from typing import Optional, Protocol, TypeVar

from ..config import ConnectionConfig
from ..errors import (
    ConnectionClosedError,
    InvalidResponseError,
    Pop3Error,
    TransportError,
)
from ..protocol.framing import Response, Send, Step
from ..protocol.parser import MailboxStat, apop_digest
from ..protocol.session import Operation, Session
from ..transport.aio import open_async_connection

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncLineStream(Protocol):
    """What the client needs from an asyncio transport."""

    async def readline(self) -> bytes: ...

    async def write(self, data: bytes) -> None: ...

    async def starttls(self, context: ssl.SSLContext) -> None: ...

    async def close(self) -> None: ...


class AsyncPop3Client:
    """A POP3 session over an asyncio stream."""

    def __init__(self, stream: AsyncLineStream) -> None:
        self._stream = stream
        self._session = Session()
        self._session.encrypted = bool(getattr(stream, "encrypted", False))

    @classmethod
    async def connect(cls, config: ConnectionConfig) -> "AsyncPop3Client":
        """Open a connection, consume the greeting, and STLS if configured.

        Raises:
            ValueError: If ``config`` is invalid.
            TransportError: If the connection cannot be established.
            ServerError: If the server greets with ``-ERR``.
        """
        config.validate()
        try:
            stream = await open_async_connection(config)
        except (OSError, TimeoutError) as e:
            raise TransportError(
                f"Could not connect to {config.host}:{config.resolved_port}: {e}"
            ) from e

        client = cls(stream)
        try:
            await client.greet()
            if config.starttls:
                await client.starttls(config.make_ssl_context())
        except BaseException:
            await stream.close()
            raise
        return client

    @classmethod
    async def from_stream(cls, stream: AsyncLineStream) -> "AsyncPop3Client":
        """Wrap an already connected stream and consume the greeting."""
        client = cls(stream)
        await client.greet()
        return client

    @property
    def authorized(self) -> bool:
        return self._session.authorized

    @property
    def closed(self) -> bool:
        return self._session.closed

    @property
    def greeting(self) -> bytes:
        return self._session.greeting

    @property
    def apop_timestamp(self) -> Optional[str]:
        return self._session.apop_timestamp

    # ── driver ────────────────────────────────────────────────────────

    async def _perform(self, step: Step) -> Optional[bytes]:
        # Failure or cancellation here leaves the stream mid-frame.
        try:
            if isinstance(step, Send):
                await self._stream.write(step.data)
                return None
            return await self._stream.readline()
        except OSError as e:
            self._session.poison()
            raise TransportError(f"I/O error: {e}") from e
        except BaseException:
            self._session.poison()
            raise

    async def _run(self, operation: Operation[T]) -> T:
        session = self._session
        session.begin()
        try:
            reply = None
            while True:
                try:
                    step = operation.send(reply)
                except StopIteration as stop:
                    return stop.value
                except ConnectionClosedError:
                    session.poison()
                    raise
                reply = await self._perform(step)
        finally:
            session.end()

    # ── operations ────────────────────────────────────────────────────

    async def greet(self) -> Response:
        response = await self._run(self._session.greet())
        logger.info("Connected: %s", response.data.decode("utf-8", "replace"))
        return response

    async def login(self, username: str, password: str) -> None:
        """Authenticate with USER/PASS; PASS is only sent when USER succeeded."""
        await self._run(self._session.login(username, password))

    async def apop(self, username: str, digest: str) -> Response:
        return await self._run(self._session.apop(username, digest))

    async def apop_login(self, username: str, secret: str) -> Response:
        if self.apop_timestamp is None:
            raise InvalidResponseError("Server greeting has no APOP timestamp")
        return await self.apop(username, apop_digest(self.apop_timestamp, secret))

    async def starttls(self, context: Optional[ssl.SSLContext] = None) -> None:
        await self._run(self._session.stls())
        try:
            await self._stream.starttls(context or ssl.create_default_context())
        except OSError as e:
            self._session.poison()
            raise TransportError(f"TLS negotiation failed: {e}") from e
        self._session.encrypted = True

    async def quit(self) -> None:
        try:
            await self._run(self._session.quit())
            logger.info("Session ended")
        finally:
            await self.close()

    async def close(self) -> None:
        self._session.close()
        await self._stream.close()

    async def stat(self) -> MailboxStat:
        return await self._run(self._session.stat())

    async def list(self, msg_id: Optional[int] = None) -> Response:
        return await self._run(self._session.list(msg_id))

    async def uidl(self, msg_id: Optional[int] = None) -> Response:
        return await self._run(self._session.uidl(msg_id))

    async def retr(self, msg_id: int) -> bytes:
        return await self._run(self._session.retr(msg_id))

    async def dele(self, msg_id: int) -> Response:
        return await self._run(self._session.dele(msg_id))

    async def noop(self) -> None:
        await self._run(self._session.noop())

    async def rset(self) -> Response:
        return await self._run(self._session.rset())

    async def top(self, msg_id: int, lines: int) -> Response:
        return await self._run(self._session.top(msg_id, lines))

    async def capa(self) -> dict[str, list[str]]:
        return await self._run(self._session.capa())

    async def __aenter__(self) -> "AsyncPop3Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self._session.usable:
            await self.close()
            return
        try:
            await self.quit()
        except Pop3Error as e:
            logger.warning("QUIT failed while leaving context: %s", e)
