"""
Request handling services served on handed-off listeners.

handoff does not handle requests itself. It pairs every registered address
with a handler implementing two operations:

    serve(listener)    block, accepting and serving on an already listening
                       socket, until shutdown() is called
    shutdown(timeout)  stop accepting, let in-flight requests finish within
                       timeout seconds; raise ServerShutdownError if they
                       did not

StreamServerHandler adapts standard library ``socketserver`` request handler
classes to that contract:

    class Echo(socketserver.StreamRequestHandler):
        def handle(self):
            self.wfile.write(self.rfile.readline())

    server.register("127.0.0.1:9001", StreamServerHandler(Echo))
"""

import socket
import socketserver
import threading
import time
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .address import AddressSpec
from .exceptions import ServerShutdownError


@runtime_checkable
class Handler(Protocol):
    """Request-handling service that can serve on a pre-opened listener."""

    def serve(self, listener: socket.socket) -> None: ...

    def shutdown(self, timeout: float) -> None: ...


@dataclass(frozen=True)
class HandlerBinding:
    """An address paired with the handler serving it."""

    address: AddressSpec
    handler: Handler


class _RequestTracker:
    """Counts requests in progress and lets a caller wait for them to drain."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._active = 0

    @property
    def active(self) -> int:
        with self._cond:
            return self._active

    def __enter__(self) -> "_RequestTracker":
        with self._cond:
            self._active += 1
        return self

    def __exit__(self, *args: object) -> None:
        with self._cond:
            self._active -= 1
            if self._active == 0:
                self._cond.notify_all()

    def wait_idle(self, timeout: float) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._active == 0, timeout=timeout)


class _ListenerServer(socketserver.ThreadingMixIn, socketserver.BaseServer):
    """
    socketserver server running on a listener it did not bind.

    Request threads are daemon threads: a request that outlives the grace
    period is abandoned when the process exits.
    """

    daemon_threads = True
    block_on_close = False

    def __init__(
        self,
        listener: socket.socket,
        request_handler_class: Any,
        tracker: _RequestTracker,
        threaded: bool,
    ) -> None:
        super().__init__(listener.getsockname(), request_handler_class)
        self.socket = listener
        self._tracker = tracker
        self._threaded = threaded

    def fileno(self) -> int:
        return self.socket.fileno()

    def get_request(self) -> tuple[Any, Any]:
        return self.socket.accept()

    def process_request(self, request: Any, client_address: Any) -> None:
        if self._threaded:
            super().process_request(request, client_address)
        else:
            socketserver.BaseServer.process_request(self, request, client_address)

    def finish_request(self, request: Any, client_address: Any) -> None:
        with self._tracker:
            super().finish_request(request, client_address)

    def shutdown_request(self, request: Any) -> None:
        try:
            request.shutdown(socket.SHUT_WR)
        except OSError:
            pass
        self.close_request(request)

    def close_request(self, request: Any) -> None:
        request.close()

    def server_close(self) -> None:
        self.socket.close()


class StreamServerHandler:
    """
    Handler serving a ``socketserver.BaseRequestHandler`` subclass.

    Args:
        request_handler_class: Request handler class, instantiated per connection
        threaded: Handle each connection in its own thread (default: True)
        poll_interval: How often the accept loop checks for shutdown, in seconds
    """

    def __init__(
        self,
        request_handler_class: type[socketserver.BaseRequestHandler],
        threaded: bool = True,
        poll_interval: float = 0.1,
    ) -> None:
        self._request_handler_class = request_handler_class
        self._threaded = threaded
        self._poll_interval = poll_interval
        self._tracker = _RequestTracker()
        self._server: _ListenerServer | None = None
        self._closed = False
        self._lock = threading.Lock()

    @property
    def active_requests(self) -> int:
        return self._tracker.active

    def serve(self, listener: socket.socket) -> None:
        """Serve on the listener until shutdown() is called, then close it."""
        with self._lock:
            if self._server is not None:
                raise RuntimeError("handler is already serving")
            if self._closed:
                return
            self._server = _ListenerServer(
                listener, self._request_handler_class, self._tracker, self._threaded
            )
            server = self._server
        try:
            server.serve_forever(poll_interval=self._poll_interval)
        finally:
            # the accept loop has returned, nothing polls the listener anymore
            server.server_close()

    def shutdown(self, timeout: float) -> None:
        """
        Stop accepting and wait for in-flight requests.

        The accept loop is told to stop without waiting for it; it returns
        within one poll interval and serve() then closes the listener.

        Raises:
            ServerShutdownError: If requests are still active after timeout
        """
        with self._lock:
            self._closed = True
            server = self._server
        if server is None:
            return

        deadline = time.monotonic() + timeout
        stopper = threading.Thread(target=server.shutdown, daemon=True)
        stopper.start()
        stopper.join(timeout)
        remaining = max(0.0, deadline - time.monotonic())
        if not self._tracker.wait_idle(remaining):
            raise ServerShutdownError(
                "requests still active after grace period",
                active=self._tracker.active,
                timeout=timeout,
            )
