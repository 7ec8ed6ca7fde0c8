"""Scrape outcome enumeration."""

from enum import Enum


class ScrapeOutcome(Enum):
    """Terminal state of one scrape."""

    SUCCESS = "success"
    FAILED = "failed"

    def to_gauge(self) -> float:
        """
        Convert outcome to the value of the ``up`` gauge.

        Returns:
            float: 1.0 for a successful scrape, 0.0 otherwise
        """
        return {
            ScrapeOutcome.SUCCESS: 1.0,
            ScrapeOutcome.FAILED: 0.0,
        }[self]
