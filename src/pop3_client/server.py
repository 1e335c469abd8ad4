"""MCP server entry point for POP3 mailboxes.

Exposes a single POP3 session as tools via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from .client.blocking import Pop3Client
from .config import ConnectionConfig
from .errors import Pop3Error
from .protocol.framing import Response, decode_text
from .protocol.parser import ListingEntry, parse_listing, parse_listing_line

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "pop3-client",
    instructions="Read and manage a POP3 mailbox: connect, log in, list, read and delete messages.",
)

# Global session state
_client: Pop3Client | None = None


def _get_client() -> Pop3Client:
    """Get the active POP3 client, raising if not connected."""
    if _client is None or _client.closed:
        raise RuntimeError(
            "Not connected to a POP3 server. Use the 'connect' tool first."
        )
    return _client


def _error(e: Pop3Error) -> dict[str, Any]:
    global _client
    if e.fatal and _client is not None:
        _client.close()
        _client = None
    return {"error": str(e), "fatal": e.fatal}


def _entries(response: Response, msg_id: Optional[int]) -> list[ListingEntry]:
    if msg_id is None:
        return parse_listing(response)
    return [parse_listing_line(response.text())]


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    host: str = "",
    port: int | None = None,
    tls: bool | None = None,
    starttls: bool | None = None,
) -> dict[str, Any]:
    """Connect to a POP3 server and read its greeting.

    Unset arguments fall back to the POP3_HOST, POP3_PORT, POP3_TLS and
    POP3_STARTTLS environment variables.

    Args:
        host: Server hostname.
        port: Server port (default 110, or 995 with tls).
        tls: Use implicit TLS.
        starttls: Upgrade a plain connection with STLS.
    """
    global _client
    if _client is not None and not _client.closed:
        return {"connected": True, "message": "Already connected"}

    try:
        env = ConnectionConfig.from_env()
        config = ConnectionConfig(
            host=host or env.host,
            port=port if port is not None else env.port,
            tls=env.tls if tls is None else tls,
            starttls=env.starttls if starttls is None else starttls,
            timeout=env.timeout,
            max_line_length=env.max_line_length,
        )
        config.validate()
    except ValueError as e:
        return {"error": str(e)}

    try:
        _client = Pop3Client.connect(config)
    except Pop3Error as e:
        return _error(e)

    return {
        "connected": True,
        "host": config.host,
        "port": config.resolved_port,
        "greeting": _client.greeting.decode("utf-8", "replace"),
        "apop": _client.apop_timestamp is not None,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """End the POP3 session with QUIT, committing any deletions."""
    global _client
    if _client is None:
        return {"disconnected": True}
    try:
        _client.quit()
    except Pop3Error as e:
        logger.warning("QUIT failed: %s", e)
    finally:
        _client = None
    return {"disconnected": True}


@mcp.tool()
def login(username: str = "", password: str = "") -> dict[str, Any]:
    """Authenticate with USER/PASS.

    Args:
        username: Mailbox user (default: POP3_USERNAME).
        password: Mailbox password (default: POP3_PASSWORD).
    """
    client = _get_client()
    username = username or os.getenv("POP3_USERNAME", "")
    try:
        client.login(username, password or os.getenv("POP3_PASSWORD", ""))
    except Pop3Error as e:
        return _error(e)
    return {"authenticated": True, "username": username}


@mcp.tool()
def apop(username: str, secret: str) -> dict[str, Any]:
    """Authenticate with APOP, without sending the secret in clear.

    Args:
        username: Mailbox user.
        secret: Shared secret; hashed with the greeting timestamp.
    """
    client = _get_client()
    try:
        client.apop_login(username, secret)
    except Pop3Error as e:
        return _error(e)
    return {"authenticated": True, "username": username}


# ─── MAILBOX TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def mailbox_status() -> dict[str, Any]:
    """Return the number of messages and total mailbox size (STAT)."""
    try:
        count, octets = _get_client().stat()
    except Pop3Error as e:
        return _error(e)
    return {"messages": count, "octets": octets}


@mcp.tool()
def list_messages(msg_id: int | None = None) -> dict[str, Any]:
    """List message sizes (LIST).

    Args:
        msg_id: Only this message; all messages when omitted.
    """
    try:
        entries = _entries(_get_client().list(msg_id), msg_id)
        messages = [{"id": entry.msg_id, "octets": entry.octets} for entry in entries]
    except Pop3Error as e:
        return _error(e)
    return {"messages": messages}


@mcp.tool()
def list_unique_ids(msg_id: int | None = None) -> dict[str, Any]:
    """List persistent unique ids (UIDL).

    Args:
        msg_id: Only this message; all messages when omitted.
    """
    try:
        entries = _entries(_get_client().uidl(msg_id), msg_id)
    except Pop3Error as e:
        return _error(e)
    return {"messages": [{"id": entry.msg_id, "uid": entry.value} for entry in entries]}


@mcp.tool()
def read_message(msg_id: int) -> dict[str, Any]:
    """Retrieve a message (RETR).

    The first line of the message is omitted and the remaining lines are
    joined with LF.

    Args:
        msg_id: Message number from list_messages.
    """
    try:
        body = _get_client().retr(msg_id)
        text = decode_text(body)
    except Pop3Error as e:
        return _error(e)
    return {"id": msg_id, "content": text}


@mcp.tool()
def read_headers(msg_id: int, lines: int = 0) -> dict[str, Any]:
    """Retrieve a message's headers and first body lines (TOP).

    Args:
        msg_id: Message number from list_messages.
        lines: Number of body lines to include after the headers.
    """
    try:
        text = _get_client().top(msg_id, lines).text()
    except Pop3Error as e:
        return _error(e)
    return {"id": msg_id, "content": text}


@mcp.tool()
def delete_message(msg_id: int) -> dict[str, Any]:
    """Mark a message for deletion (DELE); committed on disconnect.

    Args:
        msg_id: Message number from list_messages.
    """
    try:
        _get_client().dele(msg_id)
    except Pop3Error as e:
        return _error(e)
    return {"deleted": True, "id": msg_id}


@mcp.tool()
def reset_deletions() -> dict[str, Any]:
    """Unmark all messages marked for deletion in this session (RSET)."""
    try:
        _get_client().rset()
    except Pop3Error as e:
        return _error(e)
    return {"reset": True}


@mcp.tool()
def keep_alive() -> dict[str, Any]:
    """Send NOOP so an idle session is not dropped by the server."""
    try:
        _get_client().noop()
    except Pop3Error as e:
        return _error(e)
    return {"alive": True}


@mcp.tool()
def capabilities() -> dict[str, Any]:
    """Return the server's advertised capabilities (CAPA)."""
    try:
        caps = _get_client().capa()
    except Pop3Error as e:
        return _error(e)
    return {"capabilities": caps}


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=os.getenv("POP3_LOG_LEVEL", "INFO").upper())
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
