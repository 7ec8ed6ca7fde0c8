"""Structured JSON logging configuration."""

import logging
import sys
from typing import Iterable, Optional, TextIO

from pythonjsonlogger import jsonlogger


REDACTED = "********"


class SecretFilter(logging.Filter):
    """Mask known secrets (the event socket password) in log messages."""

    def __init__(self, secrets: Iterable[str]):
        super().__init__()
        self.secrets = [s for s in secrets if s]

    def filter(self, record: logging.LogRecord) -> bool:
        if self.secrets:
            message = record.getMessage()
            for secret in self.secrets:
                message = message.replace(secret, REDACTED)
            record.msg = message
            record.args = ()
        return True


def setup_logger(
    name: str = "freeswitch_exporter",
    level: str = "INFO",
    secrets: Iterable[str] = (),
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Configure structured JSON logging.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        secrets: Strings that must never appear in log output
        stream: Output stream (default: stdout)

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    handler = logging.StreamHandler(stream or sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(message)s',
        timestamp=True
    )
    handler.setFormatter(formatter)
    handler.addFilter(SecretFilter(secrets))
    logger.addHandler(handler)

    # Child loggers of collectors propagate here; stop at this logger
    logger.propagate = False

    return logger
