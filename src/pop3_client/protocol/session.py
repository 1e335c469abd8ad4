"""POP3 session state machine.

:class:`Session` holds the authorization state and implements every
operation once, as a generator of :class:`~.framing.Send` /
:class:`~.framing.Receive` steps. It never touches a stream; the blocking
and asyncio clients run the generators against their own I/O.

States::

    UNAUTHENTICATED --login/apop--> AUTHENTICATED
           |                            |
           +------------quit------------+--> CLOSED

A session whose stream failed mid-frame (I/O error, end of stream,
cancelled call) is *poisoned*: every later call raises
:class:`~pop3_client.errors.ConnectionClosedError` without touching the
stream.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Generator, Optional, TypeVar

from ..errors import (
    AlreadyAuthenticatedError,
    ConnectionClosedError,
    SessionClosedError,
)
from . import commands
from .framing import Exchange, Response, Step, exchange, read_response
from .parser import (
    MailboxStat,
    message_body,
    parse_apop_timestamp,
    parse_capabilities,
    parse_stat,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
Operation = Generator[Step, bytes, T]


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class Session:
    """Protocol state for one POP3 connection."""

    def __init__(self) -> None:
        self.state = SessionState.UNAUTHENTICATED
        self.greeting: bytes = b""
        self.apop_timestamp: Optional[str] = None
        self.encrypted = False
        self._poisoned = False
        self._busy = False

    @property
    def authorized(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    @property
    def usable(self) -> bool:
        return not (self.closed or self._poisoned)

    def close(self) -> None:
        """End the session without sending QUIT (transport torn down)."""
        self.state = SessionState.CLOSED

    def poison(self) -> None:
        """Mark the stream as desynchronized; all later calls fail."""
        if not self._poisoned:
            logger.debug("Session poisoned; stream framing is no longer trusted")
        self._poisoned = True

    # ── call bracketing (used by the drivers) ─────────────────────────

    def begin(self) -> None:
        """Check that a new call may start and mark the session busy."""
        if self.closed:
            raise SessionClosedError()
        if self._poisoned:
            raise ConnectionClosedError("Stream left mid-frame by an earlier failure")
        if self._busy:
            raise RuntimeError("Another request is already in flight on this session")
        self._busy = True

    def end(self) -> None:
        self._busy = False

    # ── operations ────────────────────────────────────────────────────

    def _request(self, command: commands.Command) -> Exchange:
        logger.debug("C: %s", command.redacted())
        response = yield from exchange(command.encode(), command.multiline)
        logger.debug("S: +OK %s", response.status.decode("utf-8", "replace"))
        return response

    def greet(self) -> Operation[Response]:
        """Consume the server greeting (single line, no command sent)."""
        response = yield from read_response(multiline=False)
        self.greeting = response.data
        self.apop_timestamp = parse_apop_timestamp(response.data)
        logger.debug("S: +OK %s", response.data.decode("utf-8", "replace"))
        return response

    def login(self, username: str, password: str) -> Operation[None]:
        if self.authorized:
            raise AlreadyAuthenticatedError()
        yield from self._request(commands.User(username))
        yield from self._request(commands.Pass(password))
        self.state = SessionState.AUTHENTICATED
        logger.info("Authenticated as %s", username)

    def apop(self, username: str, digest: str) -> Operation[Response]:
        if self.authorized:
            raise AlreadyAuthenticatedError()
        response = yield from self._request(commands.Apop(username, digest))
        self.state = SessionState.AUTHENTICATED
        logger.info("Authenticated as %s (APOP)", username)
        return response

    def quit(self) -> Operation[None]:
        # The session is finished whatever the server answers.
        self.state = SessionState.CLOSED
        yield from self._request(commands.Quit())

    def stat(self) -> Operation[MailboxStat]:
        response = yield from self._request(commands.Stat())
        return parse_stat(response)

    def list(self, msg_id: Optional[int] = None) -> Operation[Response]:
        return (yield from self._request(commands.List(msg_id)))

    def uidl(self, msg_id: Optional[int] = None) -> Operation[Response]:
        return (yield from self._request(commands.Uidl(msg_id)))

    def retr(self, msg_id: int) -> Operation[bytes]:
        response = yield from self._request(commands.Retr(msg_id))
        return message_body(response.data)

    def dele(self, msg_id: int) -> Operation[Response]:
        return (yield from self._request(commands.Dele(msg_id)))

    def noop(self) -> Operation[None]:
        yield from self._request(commands.Noop())

    def rset(self) -> Operation[Response]:
        return (yield from self._request(commands.Rset()))

    def top(self, msg_id: int, lines: int) -> Operation[Response]:
        return (yield from self._request(commands.Top(msg_id, lines)))

    def capa(self) -> Operation[dict[str, list[str]]]:
        response = yield from self._request(commands.Capa())
        return parse_capabilities(response)

    def stls(self) -> Operation[Response]:
        """Ask the server to start TLS; the caller upgrades the stream."""
        if self.authorized:
            raise AlreadyAuthenticatedError()
        if self.encrypted:
            raise RuntimeError("TLS is already active on this connection")
        return (yield from self._request(commands.Stls()))
