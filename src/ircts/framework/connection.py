"""IRC connections and the pool that creates and destroys them."""

import itertools
import logging
import threading
from typing import Dict, List, Optional, TYPE_CHECKING

from .transport import ConnectError, Transport
from .wire import encode_message

if TYPE_CHECKING:
    from .config import ServerConfig

logger = logging.getLogger(__name__)

_connection_ids = itertools.count(1)


class Connection:
    """One IRC session on top of a Transport.

    Every line sent or received through the connection is appended to its
    traffic log, which is what failed tests report for diagnosis. Lines are
    logged in the order the calls complete, not in network arrival order.
    """

    def __init__(self, transport: Transport):
        self.id = next(_connection_ids)
        self._transport = transport
        self._state_lock = threading.Lock()
        self._nick = ""
        self._traffic: List[str] = []

    def __repr__(self) -> str:
        return f"<Connection #{self.id} nick={self.nick!r} connected={self.connected}>"

    @property
    def nick(self) -> str:
        """Current nickname of the connection."""
        with self._state_lock:
            return self._nick

    def set_nick(self, nick: str) -> None:
        with self._state_lock:
            self._nick = nick

    @property
    def traffic(self) -> str:
        """All traffic that has gone past on this connection."""
        with self._state_lock:
            return "".join(self._traffic)

    @property
    def connected(self) -> bool:
        return self._transport.connected

    def send_line(self, line: str) -> None:
        """Send a raw line to the server.

        The state lock is held across the write so that concurrent senders on
        one connection are logged and delivered in the same order.
        """
        with self._state_lock:
            self._traffic.append(f" -> {line}\n")
            self._transport.write_line(line)

    def send_message(
        self,
        tags: Optional[Dict[str, str]],
        prefix: Optional[str],
        command: str,
        *params: str,
    ) -> None:
        """Encode and send an IRC message."""
        self.send_line(encode_message(tags, prefix, command, *params))

    def send_simple_message(self, command: str, *params: str) -> None:
        """Send a message with no tags and no prefix."""
        self.send_message(None, None, command, *params)

    def get_line(self) -> str:
        """Read a single line from the server."""
        line = self._transport.read_line()
        with self._state_lock:
            self._traffic.append(f"<-  {line}\n")
        return line

    def close(self) -> None:
        self._transport.close()


class ConnectionPool:
    """Creates connections and keeps track of which ones are live.

    The registry lock guards the bookkeeping only; it is never held while
    dialing or closing, and the pool never touches a connection's data path.
    """

    def __init__(self):
        # connection -> in use
        self._connections: Dict[Connection, bool] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection: Connection) -> bool:
        with self._lock:
            return connection in self._connections

    def connections(self) -> List[Connection]:
        """Snapshot of the registered connections."""
        with self._lock:
            return list(self._connections)

    def new_connection(self, server: "ServerConfig") -> Connection:
        """Open an entirely new connection to the given server.

        Raises:
            ConnectError: If the server cannot be reached
        """
        try:
            transport = Transport.connect(server.address, server.tls, server.timeout)
        except ConnectError as e:
            raise ConnectError(f"Failed to connect to server: {e}") from e

        connection = Connection(transport)
        with self._lock:
            self._connections[connection] = True

        logger.debug("Opened connection #%d to %s", connection.id, server.address)
        return connection

    def destroy_connection(self, connection: Connection) -> None:
        """Disconnect the given connection and forget about it."""
        connection.close()

        with self._lock:
            self._connections.pop(connection, None)

        logger.debug("Destroyed connection #%d", connection.id)

    def destroy_all(self) -> None:
        """Destroy every connection still registered."""
        for connection in self.connections():
            self.destroy_connection(connection)
