"""Pytest fixtures: a scripted fake IRC server and ready-made configs."""

from __future__ import annotations

import socket
import threading
from typing import Callable, List, Optional

import pytest

from ircts.framework.config import AccountConfig, Config, ServerConfig
from ircts.framework.connection import ConnectionPool
from ircts.scenarios.base import RunManager


class ScriptedPeer:
    """Server side of one accepted client connection."""

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self._reader = sock.makefile("rb")
        self.received: List[str] = []

    def readline(self) -> Optional[str]:
        """Next line from the client, or None once it hangs up."""
        raw = self._reader.readline()
        if not raw:
            return None
        line = raw.decode("utf-8").rstrip("\r\n")
        self.received.append(line)
        return line

    def read_until(self, line: str) -> bool:
        """Consume client lines until the given one arrives."""
        while True:
            got = self.readline()
            if got is None:
                return False
            if got == line:
                return True

    def send(self, *lines: str) -> None:
        for line in lines:
            self.sock.sendall((line + "\r\n").encode("utf-8"))

    def close(self):
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._reader.close()
        self.sock.close()


class ScriptedServer:
    """Listens on localhost and runs a script for every accepted connection."""

    def __init__(self, script: Callable[[ScriptedPeer], None]):
        self.script = script
        self.peers: List[ScriptedPeer] = []
        self._finished = threading.Semaphore(0)
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(16)
        self.address = "127.0.0.1:%d" % self._listener.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        while True:
            try:
                client, _ = self._listener.accept()
            except OSError:
                return
            peer = ScriptedPeer(client)
            self.peers.append(peer)
            threading.Thread(target=self._handle, args=(peer,), daemon=True).start()

    def _handle(self, peer: ScriptedPeer):
        try:
            self.script(peer)
        except OSError:
            pass
        finally:
            peer.close()
            self._finished.release()

    def wait_for_peers(self, count: int, timeout: float = 5.0) -> bool:
        """Wait until ``count`` connections have finished their scripts."""
        for _ in range(count):
            if not self._finished.acquire(timeout=timeout):
                return False
        return True

    def stop(self):
        self._listener.close()


def hold_open(peer: ScriptedPeer) -> None:
    """Script: record everything the client sends until it hangs up."""
    while peer.readline() is not None:
        pass


@pytest.fixture
def irc_server():
    """Factory for scripted servers; every server is stopped after the test."""
    servers = []

    def _make(script: Callable[[ScriptedPeer], None] = hold_open) -> ScriptedServer:
        server = ScriptedServer(script)
        servers.append(server)
        return server

    yield _make
    for server in servers:
        server.stop()


@pytest.fixture
def unused_address():
    """An address nothing is listening on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"127.0.0.1:{port}"


def _make_config(address: str, accounts=None, **server_options) -> Config:
    return Config(
        server=ServerConfig(address=address, **server_options),
        accounts=[AccountConfig(**a) for a in (accounts or [])],
    )


@pytest.fixture
def make_config():
    """Build a Config for the given address."""
    return _make_config


@pytest.fixture
def make_run_manager():
    """Build a RunManager against the given address with its own pool."""
    managers = []

    def _make(address: str, groups=(), accounts=None, **server_options) -> RunManager:
        rm = RunManager(_make_config(address, accounts, **server_options), ConnectionPool(), groups)
        managers.append(rm)
        return rm

    yield _make
    for rm in managers:
        rm.pool.destroy_all()


def sasl_script(replies, caps="sasl=PLAIN multi-prefix"):
    """Script for a server that advertises ``caps`` to the probe connection
    and sends ``replies`` to any other connection once it sends CAP END."""

    def script(peer: ScriptedPeer) -> None:
        first = peer.readline()
        if first == "CAP LS 302":
            peer.send(f":irc.example.org CAP * LS :{caps}")
        elif first == "CAP END" or peer.read_until("CAP END"):
            peer.send(*replies)
        hold_open(peer)

    return script


@pytest.fixture
def sasl_server(irc_server):
    """Scripted server that answers a SASL login with the given replies."""

    def _make(*replies: str, caps: str = "sasl=PLAIN multi-prefix") -> ScriptedServer:
        return irc_server(sasl_script(replies, caps))

    return _make
