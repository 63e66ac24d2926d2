"""Buffered line transport over a plain or TLS-wrapped TCP socket.

A Transport owns one socket. Reads and writes are guarded by independent
locks so a reader blocked waiting for the server does not stall a writer on
the same socket. The connected flag has its own lock, which is only ever held
for the flag check or flip, never across blocking I/O.
"""

import logging
import socket
import ssl
import threading
from typing import Optional, Tuple

from .. import LINE_DELIMITER

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """I/O failure on a transport."""
    pass


class ConnectError(TransportError):
    """Could not dial or complete the TLS handshake."""
    pass


class DisconnectedError(TransportError):
    """Operation attempted on a transport that has been closed."""

    def __init__(self, message: str = "Socket is disconnected"):
        super().__init__(message)


def parse_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``[v6addr]:port``) into host and port.

    Raises:
        ValueError: If the address has no usable port
    """
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"Address {address!r} is not in host:port form")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_num = int(port)
    except ValueError:
        raise ValueError(f"Address {address!r} has an invalid port {port!r}")
    if not 0 < port_num < 65536:
        raise ValueError(f"Address {address!r} has an out of range port {port_num}")
    return host, port_num


def insecure_tls_context() -> ssl.SSLContext:
    """TLS context with verification disabled.

    Target servers are routinely self-signed test instances, so every
    connection the harness makes skips certificate checks.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class Transport:
    """Thread-safe line reader/writer over a connected socket."""

    def __init__(self, sock: socket.socket):
        self._sock = sock

        self._state_lock = threading.Lock()
        self._connected = True

        self._read_lock = threading.Lock()
        self._reader = sock.makefile("rb")

        self._write_lock = threading.Lock()
        self._writer = sock.makefile("wb")

    @classmethod
    def connect(
        cls,
        address: str,
        use_tls: bool = False,
        timeout: Optional[float] = None,
    ) -> "Transport":
        """Dial the given address and return a connected transport.

        Args:
            address: Server address as host:port
            use_tls: Wrap the stream in TLS (no certificate verification)
            timeout: Optional deadline in seconds for every read and write.
                None blocks indefinitely.

        Raises:
            ConnectError: On a malformed address, DNS, dial or TLS handshake failure
        """
        try:
            host, port = parse_address(address)
        except ValueError as e:
            raise ConnectError(str(e)) from e

        logger.debug("Dialing %s:%d (tls=%s)", host, port, use_tls)
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            raise ConnectError(f"Could not connect to {address}: {e}") from e

        if use_tls:
            try:
                sock = insecure_tls_context().wrap_socket(sock, server_hostname=host)
            except OSError as e:
                sock.close()
                raise ConnectError(f"TLS handshake with {address} failed: {e}") from e

        # create_connection leaves the timeout on the socket; None means blocking
        sock.settimeout(timeout)
        return cls(sock)

    @classmethod
    def from_socket(cls, sock: socket.socket) -> "Transport":
        """Wrap an already connected socket."""
        return cls(sock)

    @property
    def connected(self) -> bool:
        with self._state_lock:
            return self._connected

    def read_line(self) -> str:
        """Block until a full line arrives and return it without the delimiter.

        Raises:
            DisconnectedError: If the transport was closed, including by
                another thread while this read was waiting
            TransportError: On EOF or a stream failure
        """
        if not self.connected:
            raise DisconnectedError()

        with self._read_lock:
            if not self.connected:
                raise DisconnectedError()
            try:
                raw = self._reader.readline()
            except (OSError, ValueError) as e:
                # close() from another thread tears the stream down under us
                if not self.connected:
                    raise DisconnectedError() from e
                raise TransportError(f"Read failed: {e}") from e

        if not raw.endswith(b"\n"):
            if not self.connected:
                raise DisconnectedError()
            raise TransportError("Connection closed by server")

        return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    def write_line(self, line: str) -> None:
        """Write one line plus the delimiter and flush it.

        Raises:
            DisconnectedError: If the transport was closed (no I/O is attempted)
            TransportError: On a stream failure
        """
        if not self.connected:
            raise DisconnectedError()

        data = (line + LINE_DELIMITER).encode("utf-8")
        with self._write_lock:
            try:
                self._writer.write(data)
                self._writer.flush()
            except (OSError, ValueError) as e:
                raise TransportError(f"Write failed: {e}") from e

    def close(self) -> None:
        """Close the socket on the first call; later calls do nothing."""
        with self._state_lock:
            if not self._connected:
                return
            self._connected = False

        # Shut down first so a reader blocked in another thread wakes up
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # peer already went away

        try:
            self._writer.close()
        except OSError as e:
            logger.debug("Discarding unflushed output on close: %s", e)
        self._reader.close()
        self._sock.close()
