"""IRC message parsing and encoding, delegated to irctokens."""

from typing import Dict, Optional

import irctokens


class WireError(Exception):
    """Malformed IRC protocol data."""
    pass


class ParseError(WireError):
    """A received line could not be tokenised."""
    pass


class EncodeError(WireError):
    """A message could not be turned into a valid line."""
    pass


def parse_line(line: str) -> irctokens.Line:
    """Tokenise one line. The command comes back upper-cased.

    Raises:
        ParseError: If the line is empty or has no command
    """
    if not line.strip():
        raise ParseError("Cannot parse an empty line")
    try:
        return irctokens.tokenise(line)
    except (ValueError, IndexError) as e:
        raise ParseError(f"Cannot parse line {line!r}: {e}") from e


def encode_message(
    tags: Optional[Dict[str, str]],
    prefix: Optional[str],
    command: str,
    *params: str,
) -> str:
    """Build a single IRC line (without delimiter).

    Raises:
        EncodeError: If the command is not a single token, or a parameter
            cannot be encoded (only the last one may be empty)
    """
    if not command:
        raise EncodeError("Cannot encode a message without a command")
    if command.startswith(":") or any(c in command for c in " \r\n\0"):
        raise EncodeError(f"Command {command!r} is not a single token")
    for param in params:
        if "\r" in param or "\n" in param or "\0" in param:
            raise EncodeError(f"Parameter {param!r} contains a forbidden character")
    # Only the trailing parameter may be empty
    if any(not param for param in params[:-1]):
        raise EncodeError(f"Cannot encode {command} message with an empty middle parameter")

    line = irctokens.build(command, list(params), source=prefix or None, tags=tags or None)
    try:
        return line.format()
    except ValueError as e:
        raise EncodeError(f"Cannot encode {command} message: {e}") from e
