"""Socket transport for event-socket sessions (TCP or Unix domain socket)."""

import logging
import socket
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlsplit

from ..utils.errors import (
    DialError,
    FramingError,
    ScrapeTimeoutError,
    TransportError,
    URIParseError,
)


MAX_LINE_BYTES = 64 * 1024
MAX_BODY_BYTES = 16 * 1024 * 1024


@dataclass(frozen=True)
class Endpoint:
    """Where the switch's event socket listens."""

    scheme: str
    host: Optional[str] = None
    port: Optional[int] = None
    path: Optional[str] = None

    @classmethod
    def parse(cls, uri: str) -> "Endpoint":
        """
        Parse a scrape URI.

        Args:
            uri: ``tcp://host:port`` or ``unix:///path/to/socket``

        Returns:
            Endpoint: Parsed endpoint

        Raises:
            URIParseError: If the URI is malformed or uses another scheme
        """
        try:
            parts = urlsplit(uri)
            port = parts.port
        except ValueError as e:
            raise URIParseError(f"cannot parse URI {uri!r}") from e

        if parts.scheme == "tcp":
            if not parts.hostname or port is None:
                raise URIParseError(f"cannot parse URI {uri!r}: tcp URIs need host and port")
            return cls(scheme="tcp", host=parts.hostname, port=port)

        if parts.scheme == "unix":
            if not parts.path:
                raise URIParseError(f"cannot parse URI {uri!r}: unix URIs need a socket path")
            return cls(scheme="unix", path=parts.path)

        raise URIParseError(f"cannot parse URI {uri!r}: unsupported scheme {parts.scheme!r}")

    @property
    def address(self):
        """Address in the form ``socket.connect`` expects."""
        if self.scheme == "unix":
            return self.path
        return (self.host, self.port)

    def __str__(self) -> str:
        if self.scheme == "unix":
            return f"unix://{self.path}"
        return f"tcp://{self.host}:{self.port}"


class Connection:
    """
    An open event-socket connection bound to an absolute deadline.

    Every read and write re-arms the socket timeout to whatever is left of
    the deadline, so the whole session (not each call) is bounded.
    Use as a context manager; the socket is closed on every exit path.
    """

    def __init__(
        self,
        sock: socket.socket,
        deadline: float,
        logger: logging.Logger,
        clock: Callable[[], float] = time.monotonic
    ):
        self._sock = sock
        self._reader = sock.makefile("rb")
        self._deadline = deadline
        self._clock = clock
        self.logger = logger
        self.closed = False

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _arm(self) -> None:
        remaining = self._deadline - self._clock()
        if remaining <= 0:
            raise ScrapeTimeoutError("scrape deadline exceeded")
        self._sock.settimeout(remaining)

    def write(self, data: bytes) -> None:
        """
        Write all of ``data``.

        Raises:
            ScrapeTimeoutError: If the deadline expires
            TransportError: On any other socket error
        """
        self._arm()
        try:
            self._sock.sendall(data)
        except socket.timeout as e:
            raise ScrapeTimeoutError("scrape deadline exceeded while writing") from e
        except OSError as e:
            raise TransportError("cannot write to event socket") from e

    def readline(self) -> bytes:
        """
        Read one line, including its terminator.

        Returns:
            bytes: The line, or ``b""`` at end of stream

        Raises:
            FramingError: If the line exceeds MAX_LINE_BYTES
            ScrapeTimeoutError: If the deadline expires
            TransportError: On any other socket error
        """
        self._arm()
        try:
            line = self._reader.readline(MAX_LINE_BYTES + 1)
        except socket.timeout as e:
            raise ScrapeTimeoutError("scrape deadline exceeded while reading") from e
        except OSError as e:
            raise TransportError("cannot read from event socket") from e

        if len(line) > MAX_LINE_BYTES:
            raise FramingError(f"header line longer than {MAX_LINE_BYTES} bytes")
        return line

    def read_exact(self, size: int) -> bytes:
        """
        Read exactly ``size`` bytes.

        Raises:
            FramingError: If the stream ends first, or size is out of range
            ScrapeTimeoutError: If the deadline expires
            TransportError: On any other socket error
        """
        if size < 0 or size > MAX_BODY_BYTES:
            raise FramingError(f"invalid body length {size}")

        chunks = []
        received = 0
        while received < size:
            self._arm()
            try:
                chunk = self._reader.read1(size - received)
            except socket.timeout as e:
                raise ScrapeTimeoutError("scrape deadline exceeded while reading") from e
            except OSError as e:
                raise TransportError("cannot read from event socket") from e
            if not chunk:
                raise FramingError(f"short body read: expected {size} bytes, got {received}")
            chunks.append(chunk)
            received += len(chunk)

        return b"".join(chunks)

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        try:
            self._reader.close()
            self._sock.close()
            self.logger.debug("Event socket connection closed")
        except OSError as e:
            self.logger.warning(f"Error closing event socket connection: {e}")


def open_connection(
    endpoint: Endpoint,
    timeout: float,
    logger: logging.Logger,
    clock: Callable[[], float] = time.monotonic
) -> Connection:
    """
    Dial the endpoint and return a connection bounded by ``timeout``.

    The deadline starts before dialing, so connecting counts against the
    same budget as every later read and write.

    Args:
        endpoint: Switch endpoint
        timeout: Scrape-wide budget in seconds
        logger: Logger instance
        clock: Monotonic clock, injectable for tests

    Returns:
        Connection: Open connection

    Raises:
        DialError: If the connection cannot be established in time
    """
    deadline = clock() + timeout
    logger.debug(f"Connecting to {endpoint}")

    try:
        if endpoint.scheme == "unix":
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            try:
                sock.settimeout(timeout)
                sock.connect(endpoint.address)
            except OSError:
                sock.close()
                raise
        else:
            sock = socket.create_connection(endpoint.address, timeout=timeout)
    except socket.timeout as e:
        raise DialError(f"timed out connecting to {endpoint}") from e
    except OSError as e:
        raise DialError(f"cannot connect to {endpoint}") from e

    logger.debug(f"Connected to {endpoint}")
    return Connection(sock, deadline, logger, clock=clock)
