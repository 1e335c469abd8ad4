"""Blocking POP3 client.

Every call runs on the calling thread and blocks for the full round trip.
Usage::

    with Pop3Client.connect(ConnectionConfig("pop.example.com", tls=True)) as client:
        client.login("user", "secret")
        count, octets = client.stat()
        body = client.retr(1)
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
from ..transport.tcp import open_connection

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LineStream(Protocol):
    """What the client needs from a transport."""

    def readline(self) -> bytes: ...

    def write(self, data: bytes) -> None: ...

    def starttls(self, context: ssl.SSLContext) -> None: ...

    def close(self) -> None: ...


class Pop3Client:
    """A POP3 session over a blocking stream.

    Errors are raised from :mod:`pop3_client.errors`. After a
    :class:`~pop3_client.errors.TransportError` or
    :class:`~pop3_client.errors.ConnectionClosedError` the client refuses
    further calls; reconnect instead.
    """

    def __init__(self, stream: LineStream) -> None:
        self._stream = stream
        self._session = Session()
        self._session.encrypted = bool(getattr(stream, "encrypted", False))

    @classmethod
    def connect(cls, config: ConnectionConfig) -> "Pop3Client":
        """Open a connection, consume the greeting, and STLS if configured.

        Raises:
            ValueError: If ``config`` is invalid.
            TransportError: If the connection cannot be established.
            ServerError: If the server greets with ``-ERR``.
        """
        config.validate()
        try:
            stream = open_connection(config)
        except OSError as e:
            raise TransportError(
                f"Could not connect to {config.host}:{config.resolved_port}: {e}"
            ) from e

        client = cls(stream)
        try:
            client.greet()
            if config.starttls:
                client.starttls(config.make_ssl_context())
        except BaseException:
            stream.close()
            raise
        return client

    @classmethod
    def from_stream(cls, stream: LineStream) -> "Pop3Client":
        """Wrap an already connected stream and consume the greeting."""
        client = cls(stream)
        client.greet()
        return client

    # ── state ─────────────────────────────────────────────────────────

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

    def _perform(self, step: Step) -> Optional[bytes]:
        # Any failure here leaves the stream at an unknown framing position.
        try:
            if isinstance(step, Send):
                self._stream.write(step.data)
                return None
            return self._stream.readline()
        except OSError as e:
            self._session.poison()
            raise TransportError(f"I/O error: {e}") from e
        except BaseException:
            self._session.poison()
            raise

    def _run(self, operation: Operation[T]) -> T:
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
                reply = self._perform(step)
        finally:
            session.end()

    # ── operations ────────────────────────────────────────────────────

    def greet(self) -> Response:
        """Read the server greeting. Called by :meth:`connect`."""
        response = self._run(self._session.greet())
        logger.info("Connected: %s", response.data.decode("utf-8", "replace"))
        return response

    def login(self, username: str, password: str) -> None:
        """Authenticate with USER/PASS.

        PASS is only sent when USER succeeded.

        Raises:
            AlreadyAuthenticatedError: If already authorized; nothing is sent.
            ServerError: If the server rejects the user or the password.
        """
        self._run(self._session.login(username, password))

    def apop(self, username: str, digest: str) -> Response:
        """Authenticate with APOP using a precomputed digest."""
        return self._run(self._session.apop(username, digest))

    def apop_login(self, username: str, secret: str) -> Response:
        """Authenticate with APOP, deriving the digest from the greeting.

        Raises:
            InvalidResponseError: If the greeting carried no APOP timestamp.
        """
        if self.apop_timestamp is None:
            raise InvalidResponseError("Server greeting has no APOP timestamp")
        return self.apop(username, apop_digest(self.apop_timestamp, secret))

    def starttls(self, context: Optional[ssl.SSLContext] = None) -> None:
        """Send STLS and upgrade the stream to TLS.

        Raises:
            RuntimeError: If the stream is already encrypted; nothing is sent.
        """
        self._run(self._session.stls())
        try:
            self._stream.starttls(context or ssl.create_default_context())
        except OSError as e:
            self._session.poison()
            raise TransportError(f"TLS negotiation failed: {e}") from e
        self._session.encrypted = True

    def quit(self) -> None:
        """End the session and close the stream, whatever the server replies."""
        try:
            self._run(self._session.quit())
            logger.info("Session ended")
        finally:
            self.close()

    def close(self) -> None:
        """Drop the connection without QUIT. Pending deletions are discarded."""
        self._session.close()
        self._stream.close()

    def stat(self) -> MailboxStat:
        """Return ``(message count, mailbox size in octets)``."""
        return self._run(self._session.stat())

    def list(self, msg_id: Optional[int] = None) -> Response:
        """Scan listing for one message, or for all when ``msg_id`` is None."""
        return self._run(self._session.list(msg_id))

    def uidl(self, msg_id: Optional[int] = None) -> Response:
        """Unique-id listing for one message, or for all when ``msg_id`` is None."""
        return self._run(self._session.uidl(msg_id))

    def retr(self, msg_id: int) -> bytes:
        """Retrieve a message; its first line is dropped, lines joined by LF."""
        return self._run(self._session.retr(msg_id))

    def dele(self, msg_id: int) -> Response:
        return self._run(self._session.dele(msg_id))

    def noop(self) -> None:
        self._run(self._session.noop())

    def rset(self) -> Response:
        return self._run(self._session.rset())

    def top(self, msg_id: int, lines: int) -> Response:
        """Headers plus the first ``lines`` body lines of a message."""
        return self._run(self._session.top(msg_id, lines))

    def capa(self) -> dict[str, list[str]]:
        """Server capabilities (RFC 2449)."""
        return self._run(self._session.capa())

    # ── context manager ───────────────────────────────────────────────

    def __enter__(self) -> "Pop3Client":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._session.usable:
            self.close()
            return
        try:
            self.quit()
        except Pop3Error as e:
            logger.warning("QUIT failed while leaving context: %s", e)
