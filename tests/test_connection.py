"""Connection and ConnectionPool tests."""

import pytest

from ircts.framework.config import ServerConfig
from ircts.framework.connection import ConnectionPool
from ircts.framework.transport import ConnectError, DisconnectedError
from ircts.framework.wire import EncodeError


def echo(peer):
    """Script: answer every client line with a NOTICE quoting it."""
    while True:
        line = peer.readline()
        if line is None:
            return
        peer.send(f":srv NOTICE * :{line}")


@pytest.mark.timeout(10)
def test_traffic_follows_call_order(irc_server):
    def script(peer):
        peer.readline()
        peer.readline()
        peer.send(":srv NOTICE * :first")
        peer.readline()
        peer.send(":srv NOTICE * :second")
        peer.readline()

    server = irc_server(script)
    pool = ConnectionPool()
    c = pool.new_connection(ServerConfig(address=server.address))
    try:
        c.send_line("CAP LS 302")
        c.send_simple_message("NICK", "tester")
        assert c.get_line() == ":srv NOTICE * :first"
        c.send_simple_message("USER", "t", "0", "*", "real name")
        assert c.get_line() == ":srv NOTICE * :second"

        assert c.traffic == (
            " -> CAP LS 302\n"
            " -> NICK tester\n"
            "<-  :srv NOTICE * :first\n"
            " -> USER t 0 * :real name\n"
            "<-  :srv NOTICE * :second\n"
        )
    finally:
        pool.destroy_connection(c)


@pytest.mark.timeout(10)
def test_send_message_with_tags_is_logged(irc_server):
    server = irc_server()
    pool = ConnectionPool()
    c = pool.new_connection(ServerConfig(address=server.address))
    try:
        c.send_message({"label": "1"}, None, "PING", "abc")
        assert c.traffic == " -> @label=1 PING abc\n"
    finally:
        pool.destroy_connection(c)

    assert server.wait_for_peers(1)
    assert server.peers[0].received == ["@label=1 PING abc"]


@pytest.mark.timeout(10)
def test_encode_error_sends_nothing(irc_server):
    server = irc_server()
    pool = ConnectionPool()
    c = pool.new_connection(ServerConfig(address=server.address))
    try:
        with pytest.raises(EncodeError):
            c.send_simple_message("PRIVMSG", "#bad channel", "hi")
        assert c.traffic == ""
    finally:
        pool.destroy_connection(c)


@pytest.mark.timeout(10)
def test_nick_tracking(irc_server):
    server = irc_server()
    pool = ConnectionPool()
    c = pool.new_connection(ServerConfig(address=server.address))
    try:
        assert c.nick == ""
        c.set_nick("tAbCdEfGh")
        assert c.nick == "tAbCdEfGh"
    finally:
        pool.destroy_connection(c)


@pytest.mark.timeout(10)
def test_pool_registers_and_destroys(irc_server):
    server = irc_server()
    pool = ConnectionPool()
    c = pool.new_connection(ServerConfig(address=server.address))

    assert c in pool
    assert len(pool) == 1
    assert c.connected

    pool.destroy_connection(c)
    assert c not in pool
    assert len(pool) == 0
    assert not c.connected
    with pytest.raises(DisconnectedError):
        c.get_line()

    # Destroying again is harmless
    pool.destroy_connection(c)
    assert len(pool) == 0


@pytest.mark.timeout(10)
def test_destroying_one_connection_leaves_others_usable(irc_server):
    server = irc_server(echo)
    pool = ConnectionPool()
    first = pool.new_connection(ServerConfig(address=server.address))
    second = pool.new_connection(ServerConfig(address=server.address))

    pool.destroy_connection(first)

    assert first not in pool
    assert second in pool
    second.send_line("PING still-here")
    assert second.get_line() == ":srv NOTICE * :PING still-here"

    pool.destroy_connection(second)
    assert len(pool) == 0


@pytest.mark.timeout(10)
def test_destroy_all(irc_server):
    server = irc_server()
    pool = ConnectionPool()
    connections = [pool.new_connection(ServerConfig(address=server.address)) for _ in range(3)]

    pool.destroy_all()

    assert len(pool) == 0
    assert not any(c.connected for c in connections)
    assert server.wait_for_peers(3)


def test_new_connection_failure_is_wrapped(unused_address):
    pool = ConnectionPool()
    with pytest.raises(ConnectError, match="^Failed to connect to server: "):
        pool.new_connection(ServerConfig(address=unused_address))
    assert len(pool) == 0
