"""Error taxonomy for scrapes and start-up configuration."""

from enum import Enum
from typing import Optional


class ScrapeStage(Enum):
    """Stage of the exporter an error originated from."""

    CONFIG = "config"
    TRANSPORT = "transport"
    AUTH = "auth"
    FRAMING = "framing"
    DECODE = "decode"
    STATUS = "status"


class ExporterError(Exception):
    """
    Base class for all exporter errors.

    Each subclass is tagged with the stage it belongs to. The underlying
    low-level exception, when there is one, is attached with
    ``raise ... from exc`` and exposed as ``cause``.
    """

    stage = ScrapeStage.TRANSPORT

    @property
    def cause(self) -> Optional[BaseException]:
        """Wrapped lower-level exception, if any."""
        return self.__cause__

    def cause_chain(self) -> str:
        """
        Render the error and its causes as a single line.

        Returns:
            str: e.g. "cannot connect to tcp://h:1: [Errno 111] Connection refused"
        """
        parts = [str(self)]
        current = self.__cause__
        while current is not None:
            text = str(current) or type(current).__name__
            parts.append(text)
            current = current.__cause__
        return ": ".join(parts)


class URIParseError(ExporterError, ValueError):
    """Malformed endpoint URI. Fatal at start-up."""

    stage = ScrapeStage.CONFIG


class TransportError(ExporterError):
    """Socket-level failure during a session."""

    stage = ScrapeStage.TRANSPORT


class DialError(TransportError):
    """Could not establish the connection."""


class ScrapeTimeoutError(TransportError):
    """The scrape-wide deadline expired."""


class AuthError(ExporterError):
    """The switch refused the handshake."""

    stage = ScrapeStage.AUTH

    def __init__(self, message: str, reply_text: Optional[str] = None):
        super().__init__(message)
        self.reply_text = reply_text


class FramingError(ExporterError):
    """Malformed header block or body."""

    stage = ScrapeStage.FRAMING


class DecodeError(ExporterError):
    """A response body could not be turned into a number."""

    stage = ScrapeStage.DECODE

    def __init__(self, metric_name: str, message: str):
        super().__init__(f"cannot decode {metric_name}: {message}")
        self.metric_name = metric_name


class StatusPatternMismatchError(ExporterError):
    """The status response did not match the status pattern exactly once."""

    stage = ScrapeStage.STATUS

    def __init__(self, match_count: int):
        super().__init__(
            f"error parsing status: expected exactly one match, got {match_count}"
        )
        self.match_count = match_count
