"""Reply framing for POP3.

Reply layout::

    +OK[ text]CRLF                  single-line positive
    -ERR[ text]CRLF                 negative
    +OK[ text]CRLF                  multi-line positive
    body line CRLF                  zero or more, delivered verbatim
    .CRLF                           terminator, never delivered

The protocol gives no length prefix for multi-line bodies, so framing is
purely lexical: lines are consumed until the lone terminator line. Framing
is written as generators that yield :class:`Send` / :class:`Receive` steps
and never touch a stream themselves; the blocking and asyncio clients feed
them lines.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generator, Union

from ..errors import ConnectionClosedError, InvalidTextError, ServerError

POSITIVE = b"+OK"
NEGATIVE = b"-ERR"
TERMINATOR = b".\r\n"


@dataclass(frozen=True)
class Send:
    """Step: write ``data`` to the stream."""

    data: bytes


@dataclass(frozen=True)
class Receive:
    """Step: read one line (terminator included, ``b""`` at end of stream)."""


Step = Union[Send, Receive]
Exchange = Generator[Step, bytes, "Response"]


@dataclass(frozen=True)
class Response:
    """A framed positive reply.

    ``data`` is the text after ``+OK`` for single-line replies, or the
    concatenated body lines for multi-line replies. ``status`` holds the
    status line's own text in both cases.
    """

    data: bytes = b""
    status: bytes = field(default=b"", compare=False)

    def __bytes__(self) -> bytes:
        return self.data

    def __repr__(self) -> str:
        preview = self.data[:40]
        suffix = "..." if len(self.data) > 40 else ""
        return f"Response(data={preview!r}{suffix}, len={len(self.data)})"

    def text(self) -> str:
        """Decode the payload as UTF-8.

        Raises:
            InvalidTextError: If the payload is not valid UTF-8.
        """
        return decode_text(self.data)


def decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidTextError(e) from e


def strip_line_ending(line: bytes) -> bytes:
    """Remove a trailing CRLF, LF or CR."""
    if line.endswith(b"\r\n"):
        return line[:-2]
    if line.endswith((b"\n", b"\r")):
        return line[:-1]
    return line


def is_positive(line: bytes) -> bool:
    return line[:3] == POSITIVE


def parse_status_line(line: bytes) -> bytes:
    """Classify a status line and return its inline text.

    Args:
        line: The raw first line of a reply, terminator included.

    Returns:
        The text following ``+OK`` and its separator, without terminator.

    Raises:
        ConnectionClosedError: If ``line`` is empty (end of stream).
        ServerError: If the reply is negative; carries the server's text.
        InvalidTextError: If a negative reply's text is not UTF-8.
    """
    if not line:
        raise ConnectionClosedError()

    content = strip_line_ending(line)
    if is_positive(content):
        return content[len(POSITIVE) + 1 :]

    # Anything that is not +OK is a refusal, -ERR or not.
    marker_and_separator = len(NEGATIVE) + 1
    if len(content) < marker_and_separator:
        message = content
    else:
        message = content[marker_and_separator:]
    raise ServerError(decode_text(message))


def read_response(multiline: bool) -> Exchange:
    """Frame one reply from lines sent into this generator.

    Yields :class:`Receive` for every line it needs and returns the framed
    :class:`Response`. A zero-byte line at any point raises
    :class:`ConnectionClosedError`; a partial body is never returned.

    Body lines are appended verbatim: dot-stuffed lines keep their leading
    dot and only an exact ``.\\r\\n`` line ends the body.
    """
    status = parse_status_line((yield Receive()))
    if not multiline:
        return Response(data=status, status=status)

    body = bytearray()
    while True:
        line = yield Receive()
        if not line:
            raise ConnectionClosedError()
        if line == TERMINATOR:
            break
        body += line

    return Response(data=bytes(body), status=status)


def exchange(request: bytes, multiline: bool) -> Exchange:
    """Send ``request`` and frame its reply."""
    yield Send(request)
    return (yield from read_response(multiline))
