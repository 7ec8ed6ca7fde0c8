"""Pydantic configuration models for the exporter."""

import re
from typing import Union

from pydantic import BaseModel, Field, field_validator

from ..collectors.transport import Endpoint


_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_duration(value: Union[str, int, float]) -> float:
    """
    Convert a duration to seconds.

    Args:
        value: Seconds as a number, or a duration string such as "5s",
            "250ms" or "1m30s"

    Returns:
        float: Duration in seconds

    Raises:
        ValueError: If the string is not a valid duration
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    parts = _DURATION_PART.findall(text)
    if not parts or "".join(n + u for n, u in parts) != text:
        raise ValueError(f"Invalid duration: {value!r} (expected e.g. 5s, 250ms, 1m30s)")
    return sum(float(number) * _DURATION_UNITS[unit] for number, unit in parts)


class FreeSwitchConfig(BaseModel):
    """Connection settings for the FreeSWITCH event socket."""
    scrape_uri: str = "tcp://localhost:8021"
    password: str = "ClueCon"
    timeout: float = Field(default=5.0, gt=0)  # Seconds, covers the whole scrape

    @field_validator('scrape_uri')
    @classmethod
    def validate_scrape_uri(cls, v: str) -> str:
        """Reject URIs that are not tcp://host:port or unix:///path."""
        Endpoint.parse(v)
        return v

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        """Line breaks would end the auth command early."""
        if "\r" in v or "\n" in v:
            raise ValueError('Password must not contain line breaks')
        return v

    @field_validator('timeout', mode='before')
    @classmethod
    def validate_timeout(cls, v):
        """Accept Go-style duration strings."""
        return parse_duration(v)

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint.parse(self.scrape_uri)


class WebConfig(BaseModel):
    """HTTP exposition settings."""
    listen_address: str = ":9282"
    telemetry_path: str = "/metrics"

    @field_validator('telemetry_path')
    @classmethod
    def validate_telemetry_path(cls, v: str) -> str:
        if not v.startswith('/'):
            raise ValueError('Telemetry path must start with /')
        return v


class LoggingConfig(BaseModel):
    """Logging settings."""
    level: str = "INFO"

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"Log level must be one of: {', '.join(LOG_LEVELS)}")
        return v


class ExporterConfig(BaseModel):
    """Root configuration model for the exporter."""
    freeswitch: FreeSwitchConfig = Field(default_factory=FreeSwitchConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
