"""Prometheus exporter for FreeSWITCH, scraping over the event socket."""

__version__ = "0.1.0"
