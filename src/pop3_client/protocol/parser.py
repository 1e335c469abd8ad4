"""Typed views over framed POP3 replies."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import NamedTuple, Optional

from ..errors import InvalidNumberError, InvalidResponseError
from .framing import Response, decode_text

_APOP_TIMESTAMP = re.compile(rb"<[^<>\s]*>")


class MailboxStat(NamedTuple):
    """Parsed STAT reply: ``(count, octets)``."""

    count: int
    octets: int


@dataclass(frozen=True)
class ListingEntry:
    """One ``<msg-id> <value>`` line of a LIST or UIDL reply.

    For LIST the value is the message size in octets, for UIDL it is the
    server's unique-id string.
    """

    msg_id: int
    value: str

    @property
    def octets(self) -> int:
        return parse_unsigned(self.value)


def parse_unsigned(token: str) -> int:
    """Parse a non-negative decimal integer.

    Raises:
        InvalidNumberError: If ``token`` has anything but ASCII digits.
    """
    if not (token.isascii() and token.isdigit()):
        raise InvalidNumberError(token)
    return int(token)


def parse_stat(response: Response) -> MailboxStat:
    """Parse a STAT reply such as ``2 340``.

    Raises:
        InvalidTextError: If the reply is not UTF-8.
        InvalidNumberError: If a field is not an unsigned integer.
        InvalidResponseError: If fewer than two fields are present.
    """
    tokens = iter(response.text().split())
    values = []
    for name in ("message count", "octet count"):
        token = next(tokens, None)
        if token is None:
            raise InvalidResponseError(f"STAT reply is missing the {name}")
        values.append(parse_unsigned(token))
    return MailboxStat(*values)


def parse_listing_line(text: str) -> ListingEntry:
    """Parse ``<msg-id> <value>``; extra fields after the value are ignored."""
    fields = text.split()
    if len(fields) < 2:
        raise InvalidResponseError(f"Malformed listing line: {text!r}")
    return ListingEntry(msg_id=parse_unsigned(fields[0]), value=fields[1])


def parse_listing(response: Response) -> list[ListingEntry]:
    """Parse a multi-line LIST or UIDL reply, or a single-line one."""
    text = response.text()
    return [parse_listing_line(line) for line in text.splitlines() if line.strip()]


def parse_capabilities(response: Response) -> dict[str, list[str]]:
    """Parse a CAPA reply into ``{NAME: [arguments...]}``."""
    capabilities: dict[str, list[str]] = {}
    for line in response.text().splitlines():
        fields = line.split()
        if fields:
            capabilities[fields[0].upper()] = fields[1:]
    return capabilities


def message_body(payload: bytes) -> bytes:
    """Drop the first line of a RETR payload and rejoin the rest with LF.

    ``b"Header: x\\r\\nline1\\r\\nline2\\r\\n"`` becomes ``b"line1\\nline2"``.
    """
    lines = payload.split(b"\n")
    if lines and not lines[-1]:
        lines.pop()
    # Only CRLF or LF end a line; a lone CR is message data.
    lines = [line[:-1] if line.endswith(b"\r") else line for line in lines]
    return b"\n".join(lines[1:])


def parse_apop_timestamp(greeting: bytes) -> Optional[str]:
    """Extract the ``<...>`` timestamp an APOP-capable server greets with."""
    match = _APOP_TIMESTAMP.search(greeting)
    if match is None:
        return None
    return decode_text(match.group(0))


def apop_digest(timestamp: str, secret: str) -> str:
    """Compute the APOP digest: MD5 hex of timestamp followed by secret."""
    return hashlib.md5((timestamp + secret).encode("utf-8")).hexdigest()
