"""FreeSWITCH event-socket framing: header blocks, authentication and api commands."""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from ..utils.errors import AuthError, FramingError
from .transport import Connection


AUTH_REQUEST = "auth/request"
COMMAND_REPLY = "command/reply"
AUTH_ACCEPTED = "+OK accepted"


def canonical_key(key: str) -> str:
    """Canonicalize a header field name, e.g. ``content-length`` -> ``Content-Length``."""
    return "-".join(part.capitalize() for part in key.split("-"))


class HeaderBlock:
    """
    Ordered, case-insensitive header fields of one event-socket message.

    A field seen more than once keeps all of its values; ``get`` returns the
    first one.
    """

    def __init__(self, fields: Optional[List[Tuple[str, str]]] = None):
        self._fields: Dict[str, List[str]] = {}
        for key, value in fields or []:
            self.add(key, value)

    def add(self, key: str, value: str) -> None:
        self._fields.setdefault(canonical_key(key), []).append(value)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        values = self._fields.get(canonical_key(key))
        return values[0] if values else default

    def __contains__(self, key: str) -> bool:
        return canonical_key(key) in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def items(self) -> List[Tuple[str, str]]:
        return [(key, values[0]) for key, values in self._fields.items()]

    def __repr__(self) -> str:
        return f"HeaderBlock({self.items()!r})"


def read_header_block(connection: Connection) -> HeaderBlock:
    """
    Read ``Field-Name: value`` lines up to and including the blank line.

    Lines starting with a space or tab continue the previous field.

    Args:
        connection: Open connection

    Returns:
        HeaderBlock: Parsed header fields

    Raises:
        FramingError: On a malformed line or if the stream ends mid-block
    """
    pending: List[Tuple[str, str]] = []

    while True:
        raw = connection.readline()
        if not raw:
            raise FramingError("connection closed while reading header block")
        if not raw.endswith(b"\n"):
            raise FramingError("connection closed in the middle of a header line")

        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if line == "":
            break

        if line[0] in " \t":
            if not pending:
                raise FramingError(f"malformed header line: {line!r}")
            key, value = pending[-1]
            pending[-1] = (key, f"{value} {line.strip()}")
            continue

        key, sep, value = line.partition(":")
        if not sep or not key or key != key.strip() or " " in key:
            raise FramingError(f"malformed header line: {line!r}")

        pending.append((key, value.strip(" \t")))

    return HeaderBlock(pending)


class EventSocketClient:
    """Authenticated request/response channel over one connection."""

    def __init__(self, connection: Connection, logger: logging.Logger):
        """
        Initialize event-socket client.

        Args:
            connection: Open connection, owned by the caller
            logger: Logger instance
        """
        self.connection = connection
        self.logger = logger

    def authenticate(self, password: str) -> None:
        """
        Perform the auth handshake that opens every session.

        Args:
            password: Event socket password, sent verbatim

        Raises:
            AuthError: If the server does not ask for auth or rejects the password
            FramingError: If a header block is malformed
        """
        challenge = read_header_block(self.connection)
        if challenge.get("Content-Type") != AUTH_REQUEST:
            raise AuthError("auth failed: unknown content-type")

        self.logger.debug("Sending auth")
        self.connection.write(f"auth {password}\n\n".encode("utf-8"))

        reply = read_header_block(self.connection)
        if reply.get("Content-Type") != COMMAND_REPLY:
            raise AuthError("auth failed: unknown reply")

        reply_text = reply.get("Reply-Text")
        if reply_text != AUTH_ACCEPTED:
            reason = reply_text or "unknown reply"
            raise AuthError(f"auth failed: {reason}", reply_text=reply_text)

        self.logger.debug("Auth accepted")

    def execute(self, command: str) -> bytes:
        """
        Send one command and return its raw reply body.

        Args:
            command: Command text, e.g. ``api uptime s``

        Returns:
            bytes: Exactly Content-Length bytes of body

        Raises:
            FramingError: If the reply envelope or body is malformed
        """
        self.logger.debug(f"Executing command: {command}")
        self.connection.write(f"{command}\n\n".encode("utf-8"))

        headers = read_header_block(self.connection)
        raw_length = headers.get("Content-Length")
        if raw_length is None:
            raise FramingError(f"reply to {command!r} has no Content-Length")

        if not (raw_length.isascii() and raw_length.isdigit()):
            raise FramingError(
                f"reply to {command!r} has invalid Content-Length {raw_length!r}"
            )
        length = int(raw_length)

        body = self.connection.read_exact(length)
        self.logger.debug(f"Command completed successfully ({len(body)} bytes)")
        return body
