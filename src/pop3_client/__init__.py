"""POP3 client library with blocking and asyncio front-ends."""

from .client import AsyncPop3Client, Pop3Client
from .config import ConnectionConfig
from .errors import (
    AlreadyAuthenticatedError,
    ConnectionClosedError,
    InvalidNumberError,
    InvalidResponseError,
    InvalidTextError,
    Pop3Error,
    ServerError,
    SessionClosedError,
    TransportError,
)
from .protocol.framing import Response
from .protocol.parser import ListingEntry, MailboxStat, parse_listing

__version__ = "0.3.0"
__all__ = [
    "AlreadyAuthenticatedError",
    "AsyncPop3Client",
    "ConnectionClosedError",
    "ConnectionConfig",
    "InvalidNumberError",
    "InvalidResponseError",
    "InvalidTextError",
    "ListingEntry",
    "MailboxStat",
    "Pop3Client",
    "Pop3Error",
    "Response",
    "ServerError",
    "SessionClosedError",
    "TransportError",
    "parse_listing",
]
