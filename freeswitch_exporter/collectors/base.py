"""Base collector: scrape gate, scrape counters and Prometheus registry glue."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from functools import wraps
from typing import Any, Iterator, List, Optional

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from ..utils.errors import ExporterError
from ..utils.metrics import MetricSample, ScrapeCounters, ScrapeResult
from ..utils.status import ScrapeOutcome
from .catalog import MetricCatalog, MetricDefinition, MetricKind


class BaseCollector(ABC):
    """
    Abstract base class for scrape-on-pull collectors.

    Implements the ``prometheus_client`` custom collector protocol: every
    registry pull runs exactly one scrape. Scrapes are serialized by a gate
    held for the whole scrape, and the ``up``/total/failed counters are only
    touched while it is held.
    """

    def __init__(self, config: Any, catalog: MetricCatalog, logger: logging.Logger):
        """
        Initialize base collector.

        Args:
            config: Collector-specific configuration
            catalog: Metric catalog, shared by reference
            logger: Logger instance
        """
        self.config = config
        self.catalog = catalog
        self.logger = logger.getChild(self.__class__.__name__)
        self._gate = threading.Lock()
        self._counters = ScrapeCounters()

    @abstractmethod
    def _scrape(self):
        """
        Run one scrape against the target.

        Returns:
            tuple: ``(ScrapeOutcome, List[MetricSample], Optional[Exception])``

        Note:
            Implementations should use the @safe_scrape decorator, which
            produces that tuple and logs failures.
        """
        pass

    @property
    def counters(self) -> ScrapeCounters:
        """Current counters (a copy)."""
        with self._gate:
            return self._counters.snapshot()

    def scrape(self) -> ScrapeResult:
        """
        Run one gated scrape and update the scrape counters.

        A concurrent caller blocks until the running scrape has closed its
        connection.

        Returns:
            ScrapeResult: Samples (empty on failure) and a counters snapshot
        """
        with self._gate:
            self._counters.total_scrapes += 1
            start_time = time.monotonic()

            outcome, samples, error = self._scrape()

            if outcome is ScrapeOutcome.FAILED:
                self._counters.failed_scrapes += 1
                samples = []
            self._counters.up = outcome.to_gauge()

            return ScrapeResult(
                outcome=outcome,
                samples=samples,
                counters=self._counters.snapshot(),
                error=error,
                duration_seconds=time.monotonic() - start_time
            )

    def collect(self) -> Iterator[Metric]:
        """Scrape once and yield the results as metric families."""
        result = self.scrape()
        for sample in result.samples:
            yield self._metric_family(sample.definition, sample.value)
        yield from self._counter_families(result.counters)

    def describe(self) -> Iterator[Metric]:
        """Yield every family this collector exposes, without scraping."""
        for definition in self.catalog.definitions:
            yield self._metric_family(definition)
        yield from self._counter_families(None)

    def _metric_family(
        self,
        definition: MetricDefinition,
        value: Optional[float] = None
    ) -> Metric:
        name = self.catalog.full_name(definition)
        if definition.kind is MetricKind.COUNTER:
            return CounterMetricFamily(name, definition.help, value=value)
        return GaugeMetricFamily(name, definition.help, value=value)

    def _counter_families(self, counters: Optional[ScrapeCounters]) -> List[Metric]:
        namespace = self.catalog.namespace
        if counters is None:
            up = total = failed = None
        else:
            up, total, failed = counters.up, counters.total_scrapes, counters.failed_scrapes

        return [
            GaugeMetricFamily(
                f"{namespace}_up", "Was the last scrape successful.", value=up
            ),
            CounterMetricFamily(
                f"{namespace}_exporter_total_scrapes",
                f"Current total {namespace} scrapes.",
                value=total
            ),
            CounterMetricFamily(
                f"{namespace}_exporter_failed_scrapes",
                f"Number of failed {namespace} scrapes.",
                value=failed
            ),
        ]


def safe_scrape(func):
    """
    Decorator to turn scrape exceptions into a failed outcome.

    Tagged exporter errors are logged with their stage and cause chain;
    anything else is logged as unexpected. Either way the scrape is failed
    and no partial samples survive.

    Args:
        func: Collector method returning ``List[MetricSample]``

    Returns:
        Wrapped function returning ``(outcome, samples, error)``
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            samples: List[MetricSample] = func(self, *args, **kwargs)
            return ScrapeOutcome.SUCCESS, samples, None
        except ExporterError as e:
            self.logger.error(
                f"Scrape failed: {e.cause_chain()}",
                exc_info=e,
                extra={
                    "stage": e.stage.value,
                    "error_type": type(e).__name__,
                    "error_message": str(e)
                }
            )
            return ScrapeOutcome.FAILED, [], e
        except Exception as e:
            self.logger.error(
                f"Scrape failed with unexpected error: {e}",
                exc_info=True,
                extra={
                    "stage": "unknown",
                    "error_type": type(e).__name__,
                    "error_message": str(e)
                }
            )
            return ScrapeOutcome.FAILED, [], e
    return wrapper
