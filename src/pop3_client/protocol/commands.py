"""Command verbs and their wire encoding.

Each command is a small immutable value carrying only the parameters its
verb needs. Encoding is a single ASCII line terminated by CRLF with the
parameters interpolated verbatim; POP3 has no escaping for these fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional

CRLF = b"\r\n"


class Verb(str, Enum):
    """POP3 command keywords (RFC 1939, RFC 2449, RFC 2595)."""

    USER = "USER"
    PASS = "PASS"
    APOP = "APOP"
    STAT = "STAT"
    LIST = "LIST"
    RETR = "RETR"
    DELE = "DELE"
    NOOP = "NOOP"
    RSET = "RSET"
    TOP = "TOP"
    UIDL = "UIDL"
    QUIT = "QUIT"
    CAPA = "CAPA"
    STLS = "STLS"


@dataclass(frozen=True)
class Command:
    """Base class for all command variants."""

    verb: ClassVar[Verb]

    def arguments(self) -> tuple:
        return ()

    @property
    def multiline(self) -> bool:
        """Whether the server answers with a dot-terminated body."""
        return False

    def encode(self) -> bytes:
        """Serialize to the exact wire line, CRLF included.

        Parameters are sent verbatim; ASCII input yields a pure ASCII line.
        """
        parts = [self.verb.value, *(str(arg) for arg in self.arguments())]
        return " ".join(parts).encode("utf-8") + CRLF

    def redacted(self) -> str:
        """Render the command for logs with any secret masked."""
        return self.encode().decode("utf-8").rstrip("\r\n")


@dataclass(frozen=True)
class User(Command):
    verb: ClassVar[Verb] = Verb.USER

    name: str

    def arguments(self) -> tuple:
        return (self.name,)


@dataclass(frozen=True)
class Pass(Command):
    verb: ClassVar[Verb] = Verb.PASS

    secret: str

    def arguments(self) -> tuple:
        return (self.secret,)

    def redacted(self) -> str:
        return "PASS ****"


@dataclass(frozen=True)
class Apop(Command):
    verb: ClassVar[Verb] = Verb.APOP

    name: str
    digest: str

    def arguments(self) -> tuple:
        return (self.name, self.digest)

    def redacted(self) -> str:
        return f"APOP {self.name} ****"


@dataclass(frozen=True)
class Stat(Command):
    verb: ClassVar[Verb] = Verb.STAT


@dataclass(frozen=True)
class List(Command):
    """LIST, for one message or (``msg_id=None``) the whole mailbox."""

    verb: ClassVar[Verb] = Verb.LIST

    msg_id: Optional[int] = None

    def arguments(self) -> tuple:
        return () if self.msg_id is None else (self.msg_id,)

    @property
    def multiline(self) -> bool:
        return self.msg_id is None


@dataclass(frozen=True)
class Retr(Command):
    verb: ClassVar[Verb] = Verb.RETR

    msg_id: int

    def arguments(self) -> tuple:
        return (self.msg_id,)

    @property
    def multiline(self) -> bool:
        return True


@dataclass(frozen=True)
class Dele(Command):
    verb: ClassVar[Verb] = Verb.DELE

    msg_id: int

    def arguments(self) -> tuple:
        return (self.msg_id,)


@dataclass(frozen=True)
class Noop(Command):
    verb: ClassVar[Verb] = Verb.NOOP


@dataclass(frozen=True)
class Rset(Command):
    verb: ClassVar[Verb] = Verb.RSET


@dataclass(frozen=True)
class Top(Command):
    """TOP: headers plus the first ``lines`` body lines of a message."""

    verb: ClassVar[Verb] = Verb.TOP

    msg_id: int
    lines: int

    def arguments(self) -> tuple:
        return (self.msg_id, self.lines)

    @property
    def multiline(self) -> bool:
        return True


@dataclass(frozen=True)
class Uidl(Command):
    """UIDL, for one message or (``msg_id=None``) the whole mailbox."""

    verb: ClassVar[Verb] = Verb.UIDL

    msg_id: Optional[int] = None

    def arguments(self) -> tuple:
        return () if self.msg_id is None else (self.msg_id,)

    @property
    def multiline(self) -> bool:
        return self.msg_id is None


@dataclass(frozen=True)
class Quit(Command):
    verb: ClassVar[Verb] = Verb.QUIT


@dataclass(frozen=True)
class Capa(Command):
    verb: ClassVar[Verb] = Verb.CAPA

    @property
    def multiline(self) -> bool:
        return True


@dataclass(frozen=True)
class Stls(Command):
    verb: ClassVar[Verb] = Verb.STLS


def serialize(command: Command) -> bytes:
    """Return the wire bytes for ``command``."""
    return command.encode()


def expects_multiline(command: Command) -> bool:
    """Return True when ``command`` is answered with a multi-line reply."""
    return command.multiline
