"""Capability discovery (``CAP LS 302``) run once against the server.

The server may advertise its capabilities on a single line or paginate them
over several; a continuation line carries ``*`` before the capability list:

    :server CAP * LS * :sasl account-notify
    :server CAP * LS :extended-join
"""

import logging
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from .connection import Connection
from .transport import TransportError
from .wire import WireError, parse_line

logger = logging.getLogger(__name__)

PAGINATION_MARKER = "*"


class NegotiationState(Enum):
    """Where the negotiator is in the CAP LS exchange."""

    AWAITING_CAP = "awaiting_cap"
    PAGINATED = "paginated"
    DONE = "done"


class CapabilitySet:
    """Capabilities a server advertised, with their values.

    A capability advertised without a value maps to the empty string, which
    is distinct from it not being present at all.
    """

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(values or {})

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __eq__(self, other) -> bool:
        if isinstance(other, CapabilitySet):
            return self._values == other._values
        if isinstance(other, dict):
            return self._values == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"CapabilitySet({self._values!r})"

    def value(self, name: str) -> str:
        """Return the advertised value of a capability.

        Raises:
            KeyError: If the capability was not advertised
        """
        return self._values[name]

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def missing(self, names: Iterable[str]) -> List[str]:
        """Names from the given list that were not advertised."""
        return [name for name in names if name not in self._values]

    def supports_all(self, names: Iterable[str]) -> bool:
        return not self.missing(names)

    def update_from_tokens(self, advertisement: str) -> None:
        """Record every ``name`` or ``name=value`` token in an advertisement."""
        for token in advertisement.split():
            name, _, value = token.partition("=")
            self._values[name] = value


class CapabilityNegotiator:
    """Runs CAP LS on a connection and collects what the server advertises.

    Discovery is best effort: a read or parse error ends negotiation and
    whatever was seen so far is kept.
    """

    def __init__(self, connection: Connection):
        self.connection = connection
        self.capabilities = CapabilitySet()
        self.state = NegotiationState.AWAITING_CAP

    def negotiate(self) -> CapabilitySet:
        try:
            self.connection.send_simple_message("CAP", "LS", "302")
            while self.state != NegotiationState.DONE:
                self.feed(self.connection.get_line())
        except (TransportError, WireError) as e:
            logger.info("Capability negotiation ended early: %s", e)

        logger.debug("Server advertised %d capabilities: %s",
                     len(self.capabilities), ", ".join(self.capabilities))
        return self.capabilities

    def feed(self, line: str) -> NegotiationState:
        """Process one line from the server and return the new state.

        Raises:
            ParseError: If the line cannot be tokenised
        """
        msg = parse_line(line)
        if msg.command != "CAP" or len(msg.params) < 3 or msg.params[1].upper() != "LS":
            return self.state

        if msg.params[2] == PAGINATION_MARKER:
            if len(msg.params) > 3:
                self.capabilities.update_from_tokens(msg.params[3])
            self.state = NegotiationState.PAGINATED
        else:
            self.capabilities.update_from_tokens(msg.params[2])
            self.connection.send_simple_message("QUIT")
            self.state = NegotiationState.DONE

        return self.state
