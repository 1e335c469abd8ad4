"""Exception taxonomy for POP3 sessions.

Every failure a session can report is one of the classes below, so callers
can tell a refused command (the session is still usable) apart from a
broken stream (the session must be re-established)::

    Pop3Error
    ├── TransportError             underlying socket / TLS fault
    ├── ConnectionClosedError      peer closed mid-frame
    ├── ServerError                -ERR reply, carries the server's text
    ├── InvalidResponseError       reply shape did not match the command
    ├── InvalidNumberError         numeric field failed to parse
    ├── InvalidTextError           bytes were not valid UTF-8
    ├── AlreadyAuthenticatedError  client-side, nothing was sent
    └── SessionClosedError         client-side, session already quit
"""

from __future__ import annotations


class Pop3Error(Exception):
    """Base class for all POP3 client errors."""

    #: True when the stream's framing position can no longer be trusted.
    fatal: bool = False


class TransportError(Pop3Error):
    """The underlying stream raised an I/O error."""

    fatal = True


class ConnectionClosedError(Pop3Error):
    """The stream ended (zero-byte read) before a reply was complete."""

    fatal = True

    def __init__(self, message: str = "Stream connection closed") -> None:
        super().__init__(message)


class ServerError(Pop3Error):
    """The server answered ``-ERR``."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"Server error: {self.message}"


class InvalidResponseError(Pop3Error):
    """A positive reply did not have the shape the command expects."""

    def __init__(self, message: str = "Invalid response") -> None:
        super().__init__(message)


class InvalidNumberError(Pop3Error):
    """A reply field that must be an unsigned integer was not one."""

    def __init__(self, token: str) -> None:
        super().__init__(f"Number parsing error: {token!r}")
        self.token = token


class InvalidTextError(Pop3Error):
    """Reply bytes could not be decoded as UTF-8."""

    def __init__(self, cause: UnicodeDecodeError) -> None:
        super().__init__(f"String parsing error: {cause}")
        self.cause = cause


class AlreadyAuthenticatedError(Pop3Error):
    """An authentication command was issued on an authorized session."""

    def __init__(self) -> None:
        super().__init__("Already authenticated")


class SessionClosedError(Pop3Error):
    """The session has already been ended with QUIT."""

    def __init__(self) -> None:
        super().__init__("Session already closed")
