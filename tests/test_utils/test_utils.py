"""Tests for logging, errors, outcome and result types."""

import io
import json

import pytest

from freeswitch_exporter.collectors.catalog import default_catalog
from freeswitch_exporter.utils.errors import (
    AuthError,
    DecodeError,
    DialError,
    ExporterError,
    ScrapeStage,
    ScrapeTimeoutError,
    TransportError,
)
from freeswitch_exporter.utils.logger import setup_logger
from freeswitch_exporter.utils.metrics import MetricSample, ScrapeCounters, ScrapeResult
from freeswitch_exporter.utils.status import ScrapeOutcome


class TestSetupLogger:

    def test_json_output(self, capsys):
        logger = setup_logger("test_json_output", "DEBUG")

        logger.info("Scrape finished", extra={"stage": "status"})

        record = json.loads(capsys.readouterr().out.strip())
        assert record["message"] == "Scrape finished"
        assert record["levelname"] == "INFO"
        assert record["name"] == "test_json_output"
        assert record["stage"] == "status"
        assert "timestamp" in record

    def test_level_and_no_duplicates(self, capsys):
        setup_logger("test_level", "INFO")
        logger = setup_logger("test_level", "WARNING")

        logger.info("hidden")
        logger.warning("shown")

        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["message"] == "shown"
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_invalid_level(self):
        with pytest.raises(AttributeError):
            setup_logger("test_invalid", "LOUD")

    def test_secrets_are_masked(self):
        stream = io.StringIO()
        logger = setup_logger("test_secrets", "DEBUG", secrets=["ClueCon"], stream=stream)

        logger.getChild("FreeSwitchCollector").debug("Sending auth %s", "ClueCon")

        record = json.loads(stream.getvalue())
        assert record["message"] == "Sending auth ********"
        assert "ClueCon" not in stream.getvalue()

    def test_empty_secret_ignored(self):
        stream = io.StringIO()
        logger = setup_logger("test_empty_secret", "INFO", secrets=[""], stream=stream)

        logger.info("Listening on :9282")

        assert json.loads(stream.getvalue())["message"] == "Listening on :9282"


class TestErrors:

    def test_stages(self):
        assert DialError("x").stage == ScrapeStage.TRANSPORT
        assert ScrapeTimeoutError("x").stage == ScrapeStage.TRANSPORT
        assert AuthError("x").stage == ScrapeStage.AUTH
        assert DecodeError("uptime_seconds", "bad").stage == ScrapeStage.DECODE

    def test_hierarchy(self):
        assert issubclass(DialError, TransportError)
        assert issubclass(ScrapeTimeoutError, TransportError)
        assert issubclass(TransportError, ExporterError)

    def test_decode_error_message(self):
        error = DecodeError("current_calls", "not JSON")

        assert str(error) == "cannot decode current_calls: not JSON"
        assert error.metric_name == "current_calls"

    def test_cause_chain(self):
        try:
            try:
                raise ConnectionRefusedError(111, "Connection refused")
            except OSError as e:
                raise DialError("cannot connect to tcp://localhost:8021") from e
        except DialError as error:
            assert isinstance(error.cause, ConnectionRefusedError)
            assert error.cause_chain() == (
                "cannot connect to tcp://localhost:8021: [Errno 111] Connection refused"
            )

    def test_cause_chain_without_cause(self):
        error = AuthError("auth failed: -ERR invalid")

        assert error.cause is None
        assert error.cause_chain() == "auth failed: -ERR invalid"


class TestScrapeOutcome:

    def test_to_gauge(self):
        assert ScrapeOutcome.SUCCESS.to_gauge() == 1.0
        assert ScrapeOutcome.FAILED.to_gauge() == 0.0


class TestScrapeResult:

    def test_defaults(self):
        result = ScrapeResult(ScrapeOutcome.SUCCESS, [], ScrapeCounters(up=1.0, total_scrapes=1))

        assert isinstance(result.timestamp, float)
        assert result.error is None
        assert result.stage is None

    def test_stage_from_error(self):
        result = ScrapeResult(
            ScrapeOutcome.FAILED, [], ScrapeCounters(), error=AuthError("auth failed: x")
        )

        assert result.stage == "auth"

    def test_counters_snapshot_is_independent(self):
        counters = ScrapeCounters(up=1.0, total_scrapes=3, failed_scrapes=1)

        snapshot = counters.snapshot()
        counters.total_scrapes += 1

        assert snapshot.total_scrapes == 3
        assert snapshot == ScrapeCounters(up=1.0, total_scrapes=3, failed_scrapes=1)

    def test_metric_sample(self):
        definition = default_catalog().definitions[0]
        sample = MetricSample(definition, 7.0)

        assert sample.definition.name == "current_calls"
        assert sample.value == 7.0
