"""Byte-stream transports: blocking sockets and asyncio streams."""

from .tcp import SocketStream, open_connection
from .aio import AsyncStream, open_async_connection
