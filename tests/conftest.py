"""Shared pytest configuration and fixtures."""

import logging
import socket
import socketserver
import threading
import time

import pytest

from freeswitch_exporter.config.models import FreeSwitchConfig
from freeswitch_exporter.utils.logger import setup_logger


STATUS_TEXT = """UP 0 years, 0 days, 1 hour, 2 minutes, 3 seconds, 456 milliseconds, 789 microseconds
FreeSWITCH (Version 1.10.7 -release 64bit) is ready
15 session(s) since startup
2 session(s) - peak 5, last 5min 3
0 session(s) per Sec out of max 30, peak 4, last 5min 1
1000 session(s) max
min idle cpu 0.00/98.33
Current Stack Size/Max 240K/8192K
"""

# Wall clock handed to collectors so the strepoch reply below is "in sync".
FIXED_EPOCH = 1700000000

DEFAULT_RESPONSES = {
    "api show calls count as json": '{"row_count":7}',
    "api uptime s": "3723\n",
    "api strepoch": str(FIXED_EPOCH),
    "api status": STATUS_TEXT,
}


class FakeSwitch:
    """
    Minimal FreeSWITCH event socket for tests.

    Speaks the auth handshake and answers api commands with canned bodies
    framed by Content-Length. Behaviour can be changed between scrapes by
    mutating the public attributes.
    """

    def __init__(self, responses=None, password="ClueCon", unix_path=None):
        self.responses = dict(DEFAULT_RESPONSES if responses is None else responses)
        self.password = password
        self.challenge_type = "auth/request"
        self.auth_reply_type = "command/reply"
        self.raw_replies = {}   # command -> bytes written verbatim instead of a framed reply
        self.delays = {}        # command -> seconds to wait before replying
        self.drop_on = None     # command after which the connection is closed unanswered
        self.unix_path = unix_path

        self.lock = threading.Lock()
        self.connections = 0
        self.received = []      # (connection number, command) in arrival order

        self._server = None
        self._thread = None

    @property
    def uri(self) -> str:
        if self.unix_path:
            return f"unix://{self.unix_path}"
        host, port = self._server.server_address[:2]
        return f"tcp://{host}:{port}"

    def commands(self, connection=None):
        with self.lock:
            return [c for n, c in self.received if connection is None or n == connection]

    def record(self, connection, command):
        with self.lock:
            self.received.append((connection, command))

    def start(self):
        if self.unix_path:
            server_class = _QuietUnixServer
            address = self.unix_path
        else:
            server_class = _QuietTCPServer
            address = ("127.0.0.1", 0)

        self._server = server_class(address, _EventSocketHandler)
        self._server.switch = self
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        return self

    def stop(self):
        self._server.shutdown()
        self._server.server_close()


class _QuietTCPServer(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def handle_error(self, request, client_address):
        pass


if hasattr(socketserver, "ThreadingUnixStreamServer"):
    class _QuietUnixServer(socketserver.ThreadingUnixStreamServer):
        daemon_threads = True

        def handle_error(self, request, client_address):
            pass
else:
    _QuietUnixServer = None


class _EventSocketHandler(socketserver.StreamRequestHandler):

    def handle(self):
        switch = self.server.switch
        with switch.lock:
            switch.connections += 1
            number = switch.connections

        self.wfile.write(f"Content-Type: {switch.challenge_type}\n\n".encode())

        auth = self._read_command()
        if auth is None:
            return
        switch.record(number, auth)

        accepted = auth == f"auth {switch.password}"
        reply_text = "+OK accepted" if accepted else "-ERR invalid"
        self.wfile.write(
            f"Content-Type: {switch.auth_reply_type}\nReply-Text: {reply_text}\n\n".encode()
        )

        while True:
            command = self._read_command()
            if command is None:
                return
            switch.record(number, command)

            if not accepted:
                continue
            if command == switch.drop_on:
                return

            delay = switch.delays.get(command)
            if delay:
                time.sleep(delay)

            if command in switch.raw_replies:
                self.wfile.write(switch.raw_replies[command])
                continue

            body = switch.responses.get(command, "-ERR command not found\n")
            if isinstance(body, str):
                body = body.encode()
            self.wfile.write(
                f"Content-Type: api/response\nContent-Length: {len(body)}\n\n".encode() + body
            )

    def _read_command(self):
        lines = []
        while True:
            line = self.rfile.readline()
            if not line:
                return None
            if line in (b"\n", b"\r\n"):
                return "\n".join(lines)
            lines.append(line.decode().rstrip("\r\n"))


@pytest.fixture
def logger():
    """Create logger for tests."""
    return setup_logger("test")


@pytest.fixture
def caplog_logger():
    """Logger that propagates to the root logger, for caplog assertions."""
    return logging.getLogger("tests.freeswitch")


@pytest.fixture
def fake_switch():
    """Running fake event socket on a loopback TCP port."""
    switch = FakeSwitch().start()
    yield switch
    switch.stop()


@pytest.fixture
def switch_config(fake_switch):
    """FreeSWITCH config pointing at the fake switch."""
    return FreeSwitchConfig(scrape_uri=fake_switch.uri, password="ClueCon", timeout=2)


@pytest.fixture
def fixed_clock():
    """Wall clock pinned just after FIXED_EPOCH."""
    return lambda: FIXED_EPOCH + 0.25


@pytest.fixture
def closed_port():
    """A loopback port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
