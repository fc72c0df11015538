"""
Tests for StreamServerHandler.

Tests key features including:
- Serving socketserver request handlers on a pre-opened listener
- Graceful shutdown with in-flight requests
- Grace period expiry
"""

import socket
import socketserver
import threading
import time

import pytest

from handoff.exceptions import ServerShutdownError
from handoff.handler import Handler, StreamServerHandler


class EchoHandler(socketserver.StreamRequestHandler):
    def handle(self):
        self.wfile.write(self.rfile.readline())


def _request(address, payload: bytes = b"ping\n", timeout: float = 5.0) -> bytes:
    with socket.create_connection(address, timeout=timeout) as conn:
        conn.sendall(payload)
        return conn.makefile("rb").readline()


def _start(handler: StreamServerHandler, listener: socket.socket) -> threading.Thread:
    thread = threading.Thread(target=handler.serve, args=(listener,), daemon=True)
    thread.start()
    return thread


@pytest.mark.unit
def test_satisfies_handler_protocol():
    assert isinstance(StreamServerHandler(EchoHandler), Handler)


@pytest.mark.integration
class TestStreamServerHandler:
    """Test StreamServerHandler against real sockets."""

    @pytest.mark.parametrize("threaded", [True, False])
    def test_serve_and_shutdown(self, tcp_listener, threaded):
        handler = StreamServerHandler(EchoHandler, threaded=threaded)
        thread = _start(handler, tcp_listener)

        assert _request(tcp_listener.getsockname()) == b"ping\n"

        handler.shutdown(2.0)
        thread.join(2.0)
        assert not thread.is_alive()
        assert tcp_listener.fileno() == -1

    def test_shutdown_before_serve(self, tcp_listener):
        """A handler shut down before it started serving never serves."""
        handler = StreamServerHandler(EchoHandler)
        handler.shutdown(1.0)
        thread = _start(handler, tcp_listener)
        thread.join(2.0)
        assert not thread.is_alive()

    def test_serve_twice(self, tcp_listener):
        handler = StreamServerHandler(EchoHandler)
        thread = _start(handler, tcp_listener)
        deadline = time.monotonic() + 2
        while handler._server is None and time.monotonic() < deadline:
            time.sleep(0.01)
        try:
            with pytest.raises(RuntimeError, match="already serving"):
                handler.serve(tcp_listener)
        finally:
            handler.shutdown(2.0)
            thread.join(2.0)

    def test_in_flight_request_completes(self, tcp_listener):
        """Shutdown waits for a request in progress within the grace period."""
        started = threading.Event()

        class SlowHandler(socketserver.StreamRequestHandler):
            def handle(self):
                line = self.rfile.readline()
                started.set()
                time.sleep(0.3)
                self.wfile.write(line)

        handler = StreamServerHandler(SlowHandler)
        _start(handler, tcp_listener)
        address = tcp_listener.getsockname()

        result: list[bytes] = []
        client = threading.Thread(target=lambda: result.append(_request(address)))
        client.start()
        assert started.wait(5)

        assert handler.active_requests == 1
        handler.shutdown(5.0)
        client.join(5)

        assert result == [b"ping\n"]
        assert handler.active_requests == 0

    def test_grace_period_expires(self, tcp_listener):
        started = threading.Event()
        release = threading.Event()

        class StuckHandler(socketserver.StreamRequestHandler):
            def handle(self):
                started.set()
                release.wait(10)

        handler = StreamServerHandler(StuckHandler)
        thread = _start(handler, tcp_listener)
        conn = socket.create_connection(tcp_listener.getsockname(), timeout=5)
        try:
            assert started.wait(5)
            with pytest.raises(ServerShutdownError) as exc_info:
                handler.shutdown(0.2)
            assert exc_info.value.context["active"] == 1

            # the accept loop still stops and closes the listener
            thread.join(2.0)
            assert not thread.is_alive()
            assert tcp_listener.fileno() == -1
        finally:
            release.set()
            conn.close()

    def test_zero_timeout_on_idle_handler(self, tcp_listener):
        """No grace period is needed when nothing is in flight."""
        handler = StreamServerHandler(EchoHandler)
        thread = _start(handler, tcp_listener)
        assert _request(tcp_listener.getsockname()) == b"ping\n"

        handler.shutdown(0)

        # listener is closed only once the accept loop has returned
        thread.join(2.0)
        assert not thread.is_alive()
        assert tcp_listener.fileno() == -1

    def test_zero_timeout_with_request_in_flight(self, tcp_listener):
        started = threading.Event()
        release = threading.Event()

        class StuckHandler(socketserver.StreamRequestHandler):
            def handle(self):
                started.set()
                release.wait(10)

        handler = StreamServerHandler(StuckHandler)
        thread = _start(handler, tcp_listener)
        conn = socket.create_connection(tcp_listener.getsockname(), timeout=5)
        try:
            assert started.wait(5)
            with pytest.raises(ServerShutdownError, match="still active"):
                handler.shutdown(0)
        finally:
            release.set()
            conn.close()
        thread.join(2.0)
        assert not thread.is_alive()

    def test_no_new_connections_after_shutdown(self, tcp_listener):
        handler = StreamServerHandler(EchoHandler)
        thread = _start(handler, tcp_listener)
        address = tcp_listener.getsockname()
        assert _request(address) == b"ping\n"

        handler.shutdown(2.0)
        thread.join(2.0)
        with pytest.raises(OSError):
            _request(address, timeout=1.0)
