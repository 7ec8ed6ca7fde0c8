"""FreeSWITCH metrics collector over the event socket."""

import logging
import re
import time
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..config.models import FreeSwitchConfig
from ..utils.errors import DecodeError
from ..utils.metrics import MetricSample
from .base import BaseCollector, safe_scrape
from .catalog import MetricCatalog, MetricDefinition, default_catalog
from .event_socket import EventSocketClient
from .status_parser import StatusParser
from .transport import open_connection


_INTEGER = re.compile(r"[+-]?[0-9]+")


class CallCountReply(BaseModel):
    """Reply of ``api show calls count as json``."""

    model_config = ConfigDict(extra="ignore", strict=True)

    row_count: float = Field(default=0, allow_inf_nan=False)

    @field_validator('row_count', mode='before')
    @classmethod
    def null_is_zero(cls, v):
        """A JSON null leaves the count at zero, like a missing field."""
        return 0 if v is None else v


class FreeSwitchCollector(BaseCollector):
    """Collector for FreeSWITCH call, session and CPU metrics."""

    def __init__(
        self,
        config: FreeSwitchConfig,
        logger: Optional[logging.Logger] = None,
        catalog: Optional[MetricCatalog] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize FreeSWITCH collector.

        Args:
            config: Endpoint, password and scrape timeout
            logger: Logger instance
            catalog: Metric catalog (built once at start-up and shared)
            clock: Wall clock used for the time sync check
        """
        super().__init__(config, catalog or default_catalog(), logger or logging.getLogger(__name__))
        self.endpoint = config.endpoint
        self.status_parser = StatusParser(self.catalog.status_pattern)
        self._clock = clock
        self._decoders = {
            "current_calls": self._parse_call_count,
            "uptime_seconds": self._parse_uptime,
            "time_synced": self._parse_time_synced,
        }

        missing = [d.name for d in self.catalog.command_definitions if d.name not in self._decoders]
        if missing:
            raise ValueError(f"No decoder for command metric(s): {', '.join(missing)}")

    @safe_scrape
    def _scrape(self) -> List[MetricSample]:
        """
        Connect, authenticate, fetch command metrics then status metrics.

        Returns:
            List[MetricSample]: One sample per catalog definition
        """
        with open_connection(self.endpoint, self.config.timeout, self.logger) as connection:
            client = EventSocketClient(connection, self.logger)
            client.authenticate(self.config.password)

            samples = self._scrape_commands(client)
            samples.extend(self._scrape_status(client))

        self.logger.debug(f"Scraped {len(samples)} metric(s) from {self.endpoint}")
        return samples

    def _scrape_commands(self, client: EventSocketClient) -> List[MetricSample]:
        samples = []
        for definition in self.catalog.command_definitions:
            issued_at = self._clock()
            body = client.execute(definition.command)
            value = self._decoders[definition.name](definition, body, issued_at)
            samples.append(MetricSample(definition, value))
        return samples

    def _scrape_status(self, client: EventSocketClient) -> List[MetricSample]:
        body = client.execute(self.catalog.status_command)
        groups = self.status_parser.parse(body.decode("utf-8", errors="replace"))

        return [
            MetricSample(
                definition,
                self._parse_float(definition.name, groups[definition.status_group - 1])
            )
            for definition in self.catalog.status_definitions
        ]

    def _parse_call_count(self, definition: MetricDefinition, body: bytes, issued_at: float) -> float:
        """
        Parse the active call count.

        Example body:
            {"row_count":7}
        """
        try:
            reply = CallCountReply.model_validate_json(body)
        except ValidationError as e:
            raise DecodeError(definition.name, "cannot read JSON response") from e
        return float(reply.row_count)

    def _parse_uptime(self, definition: MetricDefinition, body: bytes, issued_at: float) -> float:
        """
        Parse uptime seconds.

        Only a single trailing newline is removed; anything else around the
        number is an error.
        """
        raw = self._decode_text(definition.name, body)
        if raw.endswith("\n"):
            raw = raw[:-1]
        return self._parse_float(definition.name, raw)

    def _parse_time_synced(self, definition: MetricDefinition, body: bytes, issued_at: float) -> float:
        """
        Compare the switch's epoch with ours at the time the command was sent.

        Returns:
            float: 1.0 when both agree to the second, 0.0 otherwise
        """
        raw = self._decode_text(definition.name, body)
        if not _INTEGER.fullmatch(raw):
            raise DecodeError(definition.name, f"cannot read FreeSWITCH time {raw!r}")

        switch_epoch = int(raw)
        local_epoch = int(issued_at)
        if switch_epoch == local_epoch:
            return 1.0

        self.logger.warning(
            f"Time not in sync between system ({local_epoch}) and FreeSWITCH ({switch_epoch})",
            extra={"system_epoch": local_epoch, "freeswitch_epoch": switch_epoch}
        )
        return 0.0

    @staticmethod
    def _decode_text(metric_name: str, body: bytes) -> str:
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(metric_name, "response is not valid UTF-8") from e

    @staticmethod
    def _parse_float(metric_name: str, text: str) -> float:
        """
        Parse a float without tolerating surrounding whitespace.

        Raises:
            DecodeError: If ``text`` is not a plain number
        """
        if not text or text != text.strip() or "_" in text:
            raise DecodeError(metric_name, f"invalid number {text!r}")
        try:
            return float(text)
        except ValueError as e:
            raise DecodeError(metric_name, f"invalid number {text!r}") from e
