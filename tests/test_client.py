"""Tests for the blocking client against scripted server replies."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from pop3_client.client import Pop3Client
from pop3_client.config import ConnectionConfig
from pop3_client.errors import (
    AlreadyAuthenticatedError,
    ConnectionClosedError,
    InvalidNumberError,
    InvalidResponseError,
    ServerError,
    SessionClosedError,
    TransportError,
)

from conftest import GREETING, FakeStream


# ─── greeting ─────────────────────────────────────────────────────────

def test_greeting_is_consumed(make_client):
    client, stream = make_client()
    assert client.greeting.startswith(b"POP3 server ready")
    assert client.apop_timestamp == "<1896.697170952@dbc.mtview.ca.us>"
    assert not client.authorized
    assert stream.written == b""


def test_negative_greeting():
    """A server that refuses the connection up front raises ServerError."""
    with pytest.raises(ServerError) as exc:
        Pop3Client.from_stream(FakeStream(b"-ERR too many connections\r\n"))
    assert exc.value.message == "too many connections"


def test_no_greeting():
    with pytest.raises(ConnectionClosedError):
        Pop3Client.from_stream(FakeStream(b""))


# ─── authentication ───────────────────────────────────────────────────

def test_login(make_client):
    client, stream = make_client(b"+OK\r\n+OK maildrop has 2 messages\r\n")
    client.login("alice", "secret")
    assert client.authorized
    assert stream.written == b"USER alice\r\nPASS secret\r\n"


def test_login_twice_sends_nothing(make_client):
    """The second login fails client-side without a round trip."""
    client, stream = make_client(b"+OK\r\n+OK\r\n")
    client.login("alice", "secret")
    sent = bytes(stream.written)

    with pytest.raises(AlreadyAuthenticatedError):
        client.login("alice", "secret")
    assert stream.written == sent


def test_login_bad_user_skips_password(make_client):
    """A USER failure short-circuits before PASS is sent."""
    client, stream = make_client(b"-ERR unknown user\r\n")
    with pytest.raises(ServerError) as exc:
        client.login("mallory", "secret")
    assert exc.value.message == "unknown user"
    assert stream.written == b"USER mallory\r\n"
    assert not client.authorized


def test_login_bad_password(make_client):
    client, stream = make_client(b"+OK\r\n-ERR [AUTH] invalid password\r\n+OK\r\n+OK\r\n")
    with pytest.raises(ServerError):
        client.login("alice", "wrong")
    assert not client.authorized

    # The session is still usable after a refused command.
    client.login("alice", "right")
    assert client.authorized


def test_apop(make_client):
    client, stream = make_client(b"+OK maildrop locked\r\n")
    response = client.apop("mrose", "c4c9334bac560ecc979e58001b3e22fb")
    assert response.data == b"maildrop locked"
    assert client.authorized
    assert stream.written == b"APOP mrose c4c9334bac560ecc979e58001b3e22fb\r\n"


def test_apop_after_login_is_rejected(make_client):
    client, stream = make_client(b"+OK\r\n+OK\r\n")
    client.login("alice", "secret")
    with pytest.raises(AlreadyAuthenticatedError):
        client.apop("alice", "digest")


def test_apop_login_computes_digest(make_client):
    client, stream = make_client(b"+OK\r\n")
    client.apop_login("mrose", "tanstaaf")
    assert stream.written == b"APOP mrose c4c9334bac560ecc979e58001b3e22fb\r\n"


def test_apop_login_without_timestamp(make_client):
    client, stream = make_client(greeting=b"+OK ready\r\n")
    with pytest.raises(InvalidResponseError):
        client.apop_login("mrose", "tanstaaf")
    assert stream.written == b""


def test_apop_refused(make_client):
    client, _ = make_client(b"-ERR permission denied\r\n")
    with pytest.raises(ServerError):
        client.apop("mrose", "bad")
    assert not client.authorized


# ─── transaction commands ─────────────────────────────────────────────

def test_stat(make_client):
    client, stream = make_client(b"+OK 2 340\r\n")
    assert client.stat() == (2, 340)
    assert stream.written == b"STAT\r\n"


def test_stat_missing_field(make_client):
    client, _ = make_client(b"+OK 2\r\n")
    with pytest.raises(InvalidResponseError):
        client.stat()


def test_stat_bad_number(make_client):
    client, _ = make_client(b"+OK x 340\r\n+OK\r\n")
    with pytest.raises(InvalidNumberError):
        client.stat()
    # Parse failures do not break framing.
    client.noop()


def test_list_all(make_client):
    client, stream = make_client(b"+OK 2 messages\r\n1 120\r\n2 200\r\n.\r\n")
    assert client.list().data == b"1 120\r\n2 200\r\n"
    assert stream.written == b"LIST\r\n"


def test_list_one(make_client):
    client, stream = make_client(b"+OK 2 200\r\n")
    assert client.list(2).data == b"2 200"
    assert stream.written == b"LIST 2\r\n"


def test_list_unknown_message(make_client):
    client, _ = make_client(b"-ERR no such message\r\n")
    with pytest.raises(ServerError) as exc:
        client.list(9)
    assert exc.value.message == "no such message"


def test_uidl_all_and_one(make_client):
    client, stream = make_client(b"+OK\r\n1 abc\r\n2 def\r\n.\r\n+OK 2 def\r\n")
    assert client.uidl().data == b"1 abc\r\n2 def\r\n"
    assert client.uidl(2).data == b"2 def"
    assert stream.written == b"UIDL\r\nUIDL 2\r\n"


def test_retr(make_client):
    """The first body line is dropped and the rest joined with LF."""
    client, stream = make_client(b"+OK\r\nHeader: x\r\nline1\r\nline2\r\n.\r\n")
    assert client.retr(1) == b"line1\nline2"
    assert stream.written == b"RETR 1\r\n"


def test_retr_keeps_lone_carriage_return(make_client):
    client, _ = make_client(b"+OK\r\nHeader: x\r\na\rb\r\nline2\r\n.\r\n")
    assert client.retr(1) == b"a\rb\nline2"


def test_retr_not_found(make_client):
    client, _ = make_client(b"-ERR no such message\r\n")
    with pytest.raises(ServerError):
        client.retr(8)


def test_dele_noop_rset(make_client):
    client, stream = make_client(
        b"+OK message 1 deleted\r\n+OK\r\n+OK maildrop has 2 messages\r\n"
    )
    assert client.dele(1).data == b"message 1 deleted"
    assert client.noop() is None
    assert client.rset().data == b"maildrop has 2 messages"
    assert stream.written == b"DELE 1\r\nNOOP\r\nRSET\r\n"


def test_top(make_client):
    client, stream = make_client(b"+OK\r\nSubject: hi\r\n\r\nfirst\r\n.\r\n")
    assert client.top(1, 1).data == b"Subject: hi\r\n\r\nfirst\r\n"
    assert stream.written == b"TOP 1 1\r\n"


def test_capa(make_client):
    client, stream = make_client(b"+OK Capability list follows\r\nTOP\r\nUIDL\r\nSTLS\r\n.\r\n")
    assert client.capa() == {"TOP": [], "UIDL": [], "STLS": []}
    assert stream.written == b"CAPA\r\n"


def test_starttls_upgrades_stream(make_client):
    client, stream = make_client(b"+OK Begin TLS negotiation\r\n")
    context = MagicMock()
    client.starttls(context)
    assert stream.written == b"STLS\r\n"
    assert stream.tls_context is context


def test_starttls_twice_is_refused(make_client):
    client, stream = make_client(b"+OK Begin TLS negotiation\r\n")
    client.starttls(MagicMock())
    with pytest.raises(RuntimeError):
        client.starttls(MagicMock())
    assert stream.written == b"STLS\r\n"


def test_starttls_on_implicit_tls_is_refused():
    stream = FakeStream(GREETING)
    stream.encrypted = True
    client = Pop3Client.from_stream(stream)
    with pytest.raises(RuntimeError):
        client.starttls(MagicMock())
    assert stream.written == b""
    assert stream.tls_context is None


def test_starttls_refused(make_client):
    client, stream = make_client(b"-ERR TLS not available\r\n")
    with pytest.raises(ServerError):
        client.starttls(MagicMock())
    assert stream.tls_context is None


# ─── quit and session end ─────────────────────────────────────────────

def test_quit_closes_session(make_client):
    client, stream = make_client(b"+OK bye\r\n")
    client.quit()
    assert client.closed
    assert stream.closed
    assert stream.written == b"QUIT\r\n"


def test_calls_after_quit_are_rejected(make_client):
    client, stream = make_client(b"+OK bye\r\n")
    client.quit()
    with pytest.raises(SessionClosedError):
        client.noop()
    with pytest.raises(SessionClosedError):
        client.login("a", "b")
    assert stream.written == b"QUIT\r\n"


def test_quit_refused_still_closes(make_client):
    """QUIT ends the session even when the server answers -ERR."""
    client, stream = make_client(b"-ERR some deleted messages not removed\r\n")
    with pytest.raises(ServerError):
        client.quit()
    assert client.closed
    assert stream.closed


def test_context_manager_sends_quit(make_client):
    client, stream = make_client(b"+OK bye\r\n")
    with client:
        pass
    assert stream.written == b"QUIT\r\n"
    assert stream.closed


def test_context_manager_after_failure_skips_quit(make_client):
    client, stream = make_client(b"+OK\r\npartial\r\n")
    with pytest.raises(ConnectionClosedError):
        with client:
            client.retr(1)
    assert stream.written == b"RETR 1\r\n"
    assert stream.closed


# ─── fatal failures ───────────────────────────────────────────────────

def test_stream_closed_mid_body_poisons_session(make_client):
    """After the stream ends mid-frame no further command is sent."""
    client, stream = make_client(b"+OK\r\nline one\r\n")
    with pytest.raises(ConnectionClosedError):
        client.retr(1)
    with pytest.raises(ConnectionClosedError):
        client.noop()
    assert stream.written == b"RETR 1\r\n"


def test_transport_error_on_write(make_client):
    client, stream = make_client()
    stream.write = MagicMock(side_effect=BrokenPipeError("broken pipe"))

    with pytest.raises(TransportError) as exc:
        client.noop()
    assert isinstance(exc.value.__cause__, BrokenPipeError)
    assert exc.value.fatal

    with pytest.raises(ConnectionClosedError):
        client.stat()


def test_transport_error_on_read(make_client):
    client, stream = make_client()
    stream.readline = MagicMock(side_effect=ConnectionResetError("reset"))
    with pytest.raises(TransportError):
        client.stat()


def test_server_error_is_not_fatal(make_client):
    client, _ = make_client(b"-ERR nope\r\n+OK 0 0\r\n")
    with pytest.raises(ServerError) as exc:
        client.dele(1)
    assert not exc.value.fatal
    assert client.stat() == (0, 0)


# ─── connect ──────────────────────────────────────────────────────────

def test_connect_reads_greeting():
    stream = FakeStream(GREETING)
    with patch("pop3_client.client.blocking.open_connection", return_value=stream) as opener:
        client = Pop3Client.connect(ConnectionConfig("pop.example.com"))
    opener.assert_called_once()
    assert client.greeting.startswith(b"POP3 server ready")


def test_connect_with_starttls():
    stream = FakeStream(GREETING + b"+OK go ahead\r\n")
    config = ConnectionConfig("pop.example.com", starttls=True, ssl_context=MagicMock())
    with patch("pop3_client.client.blocking.open_connection", return_value=stream):
        Pop3Client.connect(config)
    assert stream.written == b"STLS\r\n"
    assert stream.tls_context is config.ssl_context


def test_connect_failure_is_transport_error():
    with patch(
        "pop3_client.client.blocking.open_connection",
        side_effect=ConnectionRefusedError("refused"),
    ):
        with pytest.raises(TransportError):
            Pop3Client.connect(ConnectionConfig("pop.example.com"))


def test_connect_bad_greeting_closes_stream():
    stream = FakeStream(b"-ERR go away\r\n")
    with patch("pop3_client.client.blocking.open_connection", return_value=stream):
        with pytest.raises(ServerError):
            Pop3Client.connect(ConnectionConfig("pop.example.com"))
    assert stream.closed


def test_connect_validates_config():
    with pytest.raises(ValueError):
        Pop3Client.connect(ConnectionConfig(""))
