"""Scrape data structures shared by collectors."""

from dataclasses import dataclass, field
from typing import List, Optional
import time

from .errors import ExporterError
from .status import ScrapeOutcome
from ..collectors.catalog import MetricDefinition


@dataclass(frozen=True)
class MetricSample:
    """One observed value for a catalog definition."""

    definition: MetricDefinition
    value: float


@dataclass
class ScrapeCounters:
    """Process-wide scrape bookkeeping. Only mutated under the scrape gate."""

    up: float = 0.0
    total_scrapes: int = 0
    failed_scrapes: int = 0

    def snapshot(self) -> "ScrapeCounters":
        """Return a copy safe to read outside the gate."""
        return ScrapeCounters(self.up, self.total_scrapes, self.failed_scrapes)


@dataclass
class ScrapeResult:
    """Outcome of one gated scrape."""

    outcome: ScrapeOutcome
    samples: List[MetricSample]
    counters: ScrapeCounters
    error: Optional[Exception] = None
    duration_seconds: float = 0.0
    timestamp: Optional[float] = field(default=None)

    def __post_init__(self):
        """Set timestamp if not provided."""
        if self.timestamp is None:
            self.timestamp = time.time()

    @property
    def stage(self) -> Optional[str]:
        """Stage name of the failure, if the scrape failed with a tagged error."""
        if isinstance(self.error, ExporterError):
            return self.error.stage.value
        return None
