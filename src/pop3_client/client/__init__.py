"""Blocking and asyncio clients driving the shared protocol session."""

from .blocking import LineStream, Pop3Client
from .aio import AsyncLineStream, AsyncPop3Client
