"""Connection handling and run orchestration."""

from .transport import Transport, TransportError, ConnectError, DisconnectedError
from .wire import ParseError, EncodeError, parse_line, encode_message
from .connection import Connection, ConnectionPool
from .caps import CapabilitySet, CapabilityNegotiator, NegotiationState
from .config import Config, ServerConfig, AccountConfig, ConfigError, load_config

__all__ = [
    "Transport",
    "TransportError",
    "ConnectError",
    "DisconnectedError",
    "ParseError",
    "EncodeError",
    "parse_line",
    "encode_message",
    "Connection",
    "ConnectionPool",
    "CapabilitySet",
    "CapabilityNegotiator",
    "NegotiationState",
    "Config",
    "ServerConfig",
    "AccountConfig",
    "ConfigError",
    "load_config",
]
