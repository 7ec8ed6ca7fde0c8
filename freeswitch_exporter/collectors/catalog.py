"""Metric catalog: what the exporter publishes and where each value comes from."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Pattern, Tuple


NAMESPACE = "freeswitch"
STATUS_COMMAND = "api status"

# Groups, in order: sessions since startup, current sessions, peak sessions,
# peak sessions last 5min, current sps, max sps, peak sps, peak sps last 5min,
# max sessions, min idle cpu, current idle cpu.
# Compiled with re.ASCII: digits and whitespace are ASCII only.
STATUS_PATTERN = (
    r"(\d+) session\(s\) since startup\s+"
    r"(\d+) session\(s\) - peak (\d+), last 5min (\d+)\s+"
    r"(\d+) session\(s\) per Sec out of max (\d+), peak (\d+), last 5min (\d+)\s+"
    r"(\d+) session\(s\) max\s+"
    r"min idle cpu (\d+\.\d+)/(\d+\.\d+)"
)


class MetricKind(Enum):
    """Prometheus value type of a metric."""

    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True)
class MetricDefinition:
    """
    A published metric.

    Exactly one of ``command`` (an event-socket command whose reply holds the
    value) or ``status_group`` (1-based capture group of the status pattern)
    must be set.
    """

    name: str
    help: str
    kind: MetricKind = MetricKind.GAUGE
    command: Optional[str] = None
    status_group: Optional[int] = None

    def __post_init__(self):
        if (self.command is None) == (self.status_group is None):
            raise ValueError(
                f"Metric {self.name} must define exactly one of command or status_group"
            )
        if self.status_group is not None and self.status_group < 1:
            raise ValueError(f"Metric {self.name}: status_group must be >= 1")

    @property
    def is_command(self) -> bool:
        return self.command is not None


@dataclass(frozen=True)
class MetricCatalog:
    """Immutable set of metric definitions plus the status query that feeds them."""

    definitions: Tuple[MetricDefinition, ...]
    status_pattern: Pattern
    status_command: str = STATUS_COMMAND
    namespace: str = NAMESPACE

    def __post_init__(self):
        names = [d.name for d in self.definitions]
        if len(names) != len(set(names)):
            raise ValueError("Metric names in a catalog must be unique")
        for definition in self.status_definitions:
            if definition.status_group > self.status_pattern.groups:
                raise ValueError(
                    f"Metric {definition.name} refers to group {definition.status_group}, "
                    f"pattern only has {self.status_pattern.groups}"
                )

    @property
    def command_definitions(self) -> Tuple[MetricDefinition, ...]:
        """Command-based definitions, in catalog order."""
        return tuple(d for d in self.definitions if d.is_command)

    @property
    def status_definitions(self) -> Tuple[MetricDefinition, ...]:
        """Status-group definitions, in catalog order."""
        return tuple(d for d in self.definitions if not d.is_command)

    def full_name(self, definition: MetricDefinition) -> str:
        return f"{self.namespace}_{definition.name}"


def default_catalog() -> MetricCatalog:
    """
    Build the FreeSWITCH metric catalog.

    Called once at start-up; the result is shared by reference.

    Returns:
        MetricCatalog: Catalog of command and status metrics
    """
    gauge, counter = MetricKind.GAUGE, MetricKind.COUNTER
    definitions = (
        MetricDefinition("current_calls", "Number of calls active", gauge,
                         command="api show calls count as json"),
        MetricDefinition("uptime_seconds", "Uptime in seconds", gauge,
                         command="api uptime s"),
        MetricDefinition("time_synced", "Is FreeSWITCH time in sync with exporter host time", gauge,
                         command="api strepoch"),
        MetricDefinition("sessions_total", "Number of sessions since startup", counter,
                         status_group=1),
        MetricDefinition("current_sessions", "Number of sessions active", gauge,
                         status_group=2),
        MetricDefinition("current_sessions_peak", "Peak sessions since startup", gauge,
                         status_group=3),
        MetricDefinition("current_sessions_peak_last_5min", "Peak sessions for the last 5 minutes", gauge,
                         status_group=4),
        MetricDefinition("current_sps", "Number of sessions per second", gauge,
                         status_group=5),
        MetricDefinition("current_sps_peak", "Peak sessions per second since startup", gauge,
                         status_group=7),
        MetricDefinition("current_sps_peak_last_5min", "Peak sessions per second for the last 5 minutes", gauge,
                         status_group=8),
        MetricDefinition("max_sps", "Max sessions per second allowed", gauge,
                         status_group=6),
        MetricDefinition("max_sessions", "Max sessions allowed", gauge,
                         status_group=9),
        MetricDefinition("current_idle_cpu", "CPU idle", gauge,
                         status_group=11),
        MetricDefinition("min_idle_cpu", "Minimum CPU idle", gauge,
                         status_group=10),
    )
    return MetricCatalog(definitions=definitions, status_pattern=re.compile(STATUS_PATTERN, re.ASCII))
