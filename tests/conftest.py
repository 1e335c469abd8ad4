"""Shared fixtures: in-memory streams that replay scripted server replies."""

from __future__ import annotations

import io

import pytest

from pop3_client.client import AsyncPop3Client, Pop3Client

GREETING = b"+OK POP3 server ready <1896.697170952@dbc.mtview.ca.us>\r\n"


class FakeStream:
    """Blocking stream: reads come from ``replies``, writes are recorded."""

    def __init__(self, replies: bytes = b"") -> None:
        self._reader = io.BytesIO(replies)
        self.written = bytearray()
        self.closed = False
        self.tls_context = None

    def readline(self) -> bytes:
        return self._reader.readline()

    def write(self, data: bytes) -> None:
        self.written += data

    def starttls(self, context) -> None:
        self.tls_context = context

    def close(self) -> None:
        self.closed = True


class AsyncFakeStream(FakeStream):
    """asyncio flavour of :class:`FakeStream`."""

    async def readline(self) -> bytes:
        return self._reader.readline()

    async def write(self, data: bytes) -> None:
        self.written += data

    async def starttls(self, context) -> None:
        self.tls_context = context

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_client():
    """Build a greeted blocking client whose server answers with ``replies``."""

    def _make(replies: bytes = b"", greeting: bytes = GREETING):
        stream = FakeStream(greeting + replies)
        return Pop3Client.from_stream(stream), stream

    return _make


@pytest.fixture
def make_async_client():
    """Build a greeted asyncio client whose server answers with ``replies``."""

    async def _make(replies: bytes = b"", greeting: bytes = GREETING):
        stream = AsyncFakeStream(greeting + replies)
        return await AsyncPop3Client.from_stream(stream), stream

    return _make
