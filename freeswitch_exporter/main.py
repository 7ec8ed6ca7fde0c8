"""Main application entry point for the FreeSWITCH Prometheus exporter."""

import argparse
import logging
import signal
import socket
import sys
from socketserver import ThreadingMixIn
from typing import Any, Dict, Optional, Tuple
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

import yaml
from prometheus_client import (
    CollectorRegistry,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
    make_wsgi_app,
)
from pydantic import ValidationError

from .collectors.catalog import default_catalog
from .collectors.freeswitch_collector import FreeSwitchCollector
from .config.loader import ConfigLoader
from .config.models import LOG_LEVELS, ExporterConfig
from .config.settings import Settings
from .utils.logger import setup_logger


LANDING_PAGE = """<html>
<head><title>FreeSWITCH Exporter</title></head>
<body>
<h1>FreeSWITCH Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """One thread per request, so overlapping scrapes reach the collector gate."""

    daemon_threads = True


class _ThreadingWSGIServerV6(_ThreadingWSGIServer):
    address_family = socket.AF_INET6


class _SilentHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        """Suppress per-request access logs."""


def parse_listen_address(address: str) -> Tuple[str, int]:
    """
    Split a listen address into host and port.

    Args:
        address: ``host:port``, ``:port`` or ``[ipv6]:port``

    Returns:
        Tuple[str, int]: Host ("" for all interfaces) and port

    Raises:
        ValueError: If the address is malformed
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address: {address!r} (expected host:port)")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    port_number = int(port)
    if port_number > 65535:
        raise ValueError(f"Invalid listen address: {address!r} (port out of range)")
    return host, port_number


class ExporterApp:
    """
    Main exporter application.

    Builds the metric catalog and collector once, registers the collector
    and serves the registry over HTTP. Every request to the telemetry path
    triggers one scrape.
    """

    def __init__(self, config: ExporterConfig, logger: Optional[logging.Logger] = None):
        """
        Initialize exporter application.

        Args:
            config: Validated exporter configuration
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or setup_logger(
            "freeswitch_exporter",
            config.logging.level,
            secrets=[config.freeswitch.password]
        )
        self.server = None

        self.catalog = default_catalog()
        self.collector = FreeSwitchCollector(config.freeswitch, self.logger, catalog=self.catalog)
        self.registry = CollectorRegistry()
        # Same runtime metrics the default registry would expose
        ProcessCollector(registry=self.registry)
        PlatformCollector(registry=self.registry)
        GCCollector(registry=self.registry)
        self.registry.register(self.collector)

        self.logger.info(
            f"Exporter initialized for {self.collector.endpoint} "
            f"(timeout {config.freeswitch.timeout}s)"
        )

    def create_wsgi_app(self):
        """
        Build the WSGI application.

        Returns:
            callable: App serving metrics on the telemetry path, a landing
            page on ``/`` and 404 elsewhere
        """
        metrics_app = make_wsgi_app(self.registry)
        telemetry_path = self.config.web.telemetry_path
        landing_page = LANDING_PAGE.format(path=telemetry_path).encode("utf-8")

        def app(environ, start_response):
            path = environ.get("PATH_INFO") or "/"

            if path == telemetry_path:
                return metrics_app(environ, start_response)

            if path == "/":
                start_response("200 OK", [
                    ("Content-Type", "text/html; charset=utf-8"),
                    ("Content-Length", str(len(landing_page))),
                ])
                return [landing_page]

            start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
            return [b"Not Found\n"]

        return app

    def _signal_handler(self, signum, frame):
        """
        Handle shutdown signals.

        Args:
            signum: Signal number
            frame: Current stack frame
        """
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received {signal_name}, shutting down...")
        sys.exit(0)

    def serve_forever(self):
        """
        Serve metrics until SIGTERM/SIGINT.

        Raises:
            OSError: If the listen address cannot be bound
        """
        host, port = parse_listen_address(self.config.web.listen_address)
        server_class = _ThreadingWSGIServerV6 if ":" in host else _ThreadingWSGIServer

        self.server = make_server(
            host, port, self.create_wsgi_app(),
            server_class=server_class,
            handler_class=_SilentHandler
        )

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        self.logger.info(
            f"Listening on {self.config.web.listen_address}, "
            f"metrics at {self.config.web.telemetry_path}"
        )

        try:
            self.server.serve_forever()
        finally:
            self.server.server_close()
            self.logger.info("Server stopped")


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser. Flags default to None so unset ones don't override."""
    parser = argparse.ArgumentParser(
        description='Prometheus exporter for FreeSWITCH',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scrape a local FreeSWITCH with the default password
  freeswitch-exporter

  # Scrape over a Unix socket with a 2s budget per scrape
  freeswitch-exporter -u unix:///var/run/freeswitch/esl.sock -t 2s

  # Use a configuration file
  freeswitch-exporter --config /etc/freeswitch-exporter/config.yaml
        """
    )

    parser.add_argument(
        '-l', '--web.listen-address',
        dest='listen_address',
        help='Address to listen on for web interface and telemetry (default: :9282)'
    )

    parser.add_argument(
        '--web.telemetry-path',
        dest='telemetry_path',
        help='Path under which to expose metrics (default: /metrics)'
    )

    parser.add_argument(
        '-u', '--freeswitch.scrape-uri',
        dest='scrape_uri',
        help='URI on which to scrape freeswitch, e.g. "tcp://localhost:8021" (default)'
    )

    parser.add_argument(
        '-t', '--freeswitch.timeout',
        dest='timeout',
        help='Timeout for trying to get stats from freeswitch (default: 5s)'
    )

    parser.add_argument(
        '-P', '--freeswitch.password',
        dest='password',
        help='Password for freeswitch event socket (default: ClueCon)'
    )

    parser.add_argument(
        '--config',
        help='Optional YAML configuration file'
    )

    parser.add_argument(
        '--log-level',
        type=str.upper,
        choices=LOG_LEVELS,
        help='Logging level (default: INFO or LOG_LEVEL env var)'
    )

    return parser


def cli_overrides(args: argparse.Namespace) -> Dict[str, Dict[str, Any]]:
    """Map parsed flags onto the configuration shape."""
    return {
        "freeswitch": {
            "scrape_uri": args.scrape_uri,
            "password": args.password,
            "timeout": args.timeout,
        },
        "web": {
            "listen_address": args.listen_address,
            "telemetry_path": args.telemetry_path,
        },
        "logging": {
            "level": args.log_level,
        },
    }


def load_config(args: argparse.Namespace) -> ExporterConfig:
    """
    Resolve configuration: flags, then environment, then YAML file, then defaults.

    Raises:
        FileNotFoundError: If --config points to a missing file
        pydantic.ValidationError: If the result is invalid
    """
    overrides = ConfigLoader.merge(Settings.overrides(), cli_overrides(args))
    return ConfigLoader.build(args.config, overrides)


def main(argv=None):
    """
    CLI entry point.

    Parses command-line arguments and serves metrics.
    """
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except FileNotFoundError as e:
        logging.error(str(e))
        sys.exit(1)
    except ValidationError as e:
        logging.error(f"Invalid configuration: {e}")
        sys.exit(1)
    except (ValueError, yaml.YAMLError) as e:
        logging.error(f"Cannot load configuration: {e}")
        sys.exit(1)

    try:
        app = ExporterApp(config)
        app.serve_forever()
    except Exception as e:
        logging.error(f"Exporter failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
