"""
Worker side of a handoff.

A worker is a process spawned by a master with listening sockets already open.
Its lifecycle:

    STARTING  rebuild one listener per registered handler from the inherited
              descriptors and start serving on each of them
    SERVING   tell the predecessor (if any) to retire, then wait for a stop
              signal while a watcher thread checks that the master is alive
    STOPPING  shut every handler down within the grace period
    STOPPED   terminal; the process is expected to exit

Stopping is triggered by whichever comes first: the stop signal or the
watcher noticing the master is gone. Both go through stop(), which runs the
shutdown sequence at most once per process.
"""

import os
import signal
import socket
import threading
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .address import AddressSpec
from .config import Config
from .exceptions import HandshakeError, NoServersError
from .handler import Handler, HandlerBinding
from .handshake import (
    ENV_FD_COUNT,
    LISTEN_FDS_START,
    RETIRE_SIGNAL,
    Handshake,
)
from .listener import describe_listener, inherit_listeners
from .signals import SignalRelay


class WorkerState(str, Enum):
    """Worker lifecycle states."""

    STARTING = "starting"
    SERVING = "serving"
    STOPPING = "stopping"
    STOPPED = "stopped"


class StopTrigger(str, Enum):
    """What caused a worker to stop."""

    SIGNAL = "signal"
    MASTER_GONE = "master-gone"
    MANUAL = "manual"


@dataclass(frozen=True)
class BoundServer:
    """A registered handler paired with the listener it serves."""

    binding: HandlerBinding
    listener: socket.socket

    @property
    def handler(self) -> Handler:
        return self.binding.handler

    @property
    def address(self) -> AddressSpec:
        return self.binding.address


def process_exists(pid: int, lg: Any | None = None) -> bool:
    """
    Check whether a process exists, without affecting it.

    Any error, permission denial included, counts as "does not exist": a
    worker would rather stop than outlive its master.
    """
    try:
        os.kill(pid, 0)
    except OSError as e:
        if lg is not None:
            lg.debug("process probe failed", extra={"pid": pid, "exception": e})
        return False
    return True


class WorkerRuntime:
    """
    Runs one worker process's servers from inherited listeners.

    Example:
        handshake = Handshake.consume()
        runtime = WorkerRuntime(lg, bindings, config, handshake)
        runtime.run()  # returns once every server has been stopped
    """

    def __init__(
        self,
        lg: Any,
        bindings: Sequence[HandlerBinding],
        config: Config,
        handshake: Handshake,
        fd_start: int = LISTEN_FDS_START,
        handle_signals: bool = True,
    ) -> None:
        """
        Initialize the worker runtime.

        Args:
            lg: Logger instance
            bindings: Registered handlers, in registration order
            config: Lifecycle settings
            handshake: Values received from the master
            fd_start: Descriptor of the first inherited listener
            handle_signals: Install the stop signal handler (main thread only)
        """
        self._lg = lg
        self._bindings = list(bindings)
        self._config = config
        self._handshake = handshake
        self._fd_start = fd_start
        self._handle_signals = handle_signals

        self._state = WorkerState.STARTING
        self._servers: list[BoundServer] = []
        self._serve_threads: list[threading.Thread] = []
        self._watcher: threading.Thread | None = None
        self._relay = SignalRelay([RETIRE_SIGNAL, signal.SIGINT])
        self._stop_lock = threading.Lock()
        self._stopped = False
        self._done = threading.Event()

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def servers(self) -> tuple[BoundServer, ...]:
        return tuple(self._servers)

    @property
    def handshake(self) -> Handshake:
        return self._handshake

    def run(self) -> StopTrigger:
        """
        Start serving, block until told to stop, then stop.

        Returns:
            What triggered the stop

        Raises:
            HandshakeError: If handlers and inherited descriptors do not match
            InheritError: If a descriptor cannot be turned into a listener
            NoServersError: If there is nothing to serve
        """
        self.start()
        try:
            trigger = self.wait()
            self.stop(trigger)
        finally:
            self._relay.restore()
        return trigger

    def start(self) -> None:
        """Move from STARTING to SERVING."""
        if self._state is not WorkerState.STARTING:
            raise RuntimeError(f"worker cannot start from state {self._state.value}")

        self._init_servers()
        try:
            if self._handle_signals:
                self._relay.install()
            self._start_servers()
        except Exception:
            self._relay.restore()
            self._close_listeners()
            raise
        self._state = WorkerState.SERVING
        self._lg.info(
            "worker serving",
            extra={
                "servers": len(self._servers),
                "master_pid": self._handshake.master_pid,
            },
        )

        self._retire_predecessor()
        self._start_watcher()

    def _init_servers(self) -> None:
        """Pair each registered handler with its inherited listener."""
        fd_count = self._handshake.fd_count
        if len(self._bindings) != fd_count:
            raise HandshakeError(
                "handler number does not match descriptor count",
                field=ENV_FD_COUNT,
                handlers=len(self._bindings),
                fd_count=fd_count,
            )
        if fd_count == 0:
            raise NoServersError("no servers")

        listeners = inherit_listeners(fd_count, start=self._fd_start)
        for binding, listener in zip(self._bindings, listeners):
            self._servers.append(BoundServer(binding, listener))
            self._lg.debug(
                "inherited listener",
                extra={
                    "address": str(binding.address),
                    "listener": describe_listener(listener),
                    "fd": listener.fileno(),
                },
            )

    def _close_listeners(self) -> None:
        """Close listeners inherited by a start that did not complete."""
        for server in self._servers:
            server.listener.close()
        self._servers.clear()

    def _start_servers(self) -> None:
        if not self._servers:
            raise NoServersError("no servers")
        for i, server in enumerate(self._servers):
            thread = threading.Thread(
                target=self._serve, args=(server,), name=f"serve-{i}", daemon=True
            )
            thread.start()
            self._serve_threads.append(thread)

    def _serve(self, server: BoundServer) -> None:
        try:
            server.handler.serve(server.listener)
        except Exception as e:
            self._lg.error(
                "serve error",
                extra={"address": str(server.address), "exception": e},
            )

    def _retire_predecessor(self) -> None:
        """Tell the worker being replaced that this one is serving."""
        if not self._handshake.has_predecessor:
            return
        pid = self._handshake.predecessor_pid
        try:
            os.kill(pid, RETIRE_SIGNAL)
        except OSError as e:
            # predecessor may already be gone
            self._lg.warning(
                "failed to signal predecessor",
                extra={"predecessor_pid": pid, "exception": e},
            )
            return
        self._lg.info("retire signal sent", extra={"predecessor_pid": pid})

    def _start_watcher(self) -> None:
        self._watcher = threading.Thread(
            target=self._watch_master, name="master-watcher", daemon=True
        )
        self._watcher.start()

    def _watch_master(self) -> None:
        """Stop the worker once the master process is gone."""
        pid = self._handshake.master_pid
        while not self._done.is_set():
            if not process_exists(pid, self._lg):
                self._lg.warning("master dead, stop worker", extra={"master_pid": pid})
                self.stop(StopTrigger.MASTER_GONE)
                return
            if self._done.wait(self._config.watch_interval):
                return

    def wait(self) -> StopTrigger:
        """Block until a stop signal arrives or stop() has run elsewhere."""
        item = self._relay.get()
        if isinstance(item, StopTrigger):
            return item
        name = item.name if isinstance(item, signal.Signals) else str(item)
        self._lg.info("worker received stop signal", extra={"signal": name})
        return StopTrigger.SIGNAL

    def stop(self, trigger: StopTrigger = StopTrigger.MANUAL) -> bool:
        """
        Run the shutdown sequence, at most once per worker.

        Concurrent callers block until the sequence that won has finished.

        Returns:
            True if this call ran the sequence, False if it had already run
        """
        with self._stop_lock:
            if self._stopped:
                return False
            self._stopped = True
            self._state = WorkerState.STOPPING

            self._lg.info(
                "stopping worker",
                extra={
                    "trigger": trigger.value,
                    "servers": len(self._servers),
                    "parallel": self._config.parallel_stop,
                },
            )
            if self._config.parallel_stop:
                failures = self._stop_parallel()
            else:
                failures = self._stop_sequential()

            self._state = WorkerState.STOPPED
            self._done.set()
            self._lg.info("worker stopped", extra={"failures": failures})

        # wake a main thread still waiting in wait()
        self._relay.put(trigger)
        return True

    def _stop_sequential(self) -> int:
        return sum(not self._stop_server(server) for server in self._servers)

    def _stop_parallel(self) -> int:
        if not self._servers:
            return 0
        with ThreadPoolExecutor(
            max_workers=len(self._servers), thread_name_prefix="stop"
        ) as executor:
            results = list(executor.map(self._stop_server, self._servers))
        return results.count(False)

    def _stop_server(self, server: BoundServer) -> bool:
        """Stop one server; failures are logged, never raised."""
        start = time.monotonic()
        try:
            server.handler.shutdown(self._config.stop_timeout)
        except Exception as e:
            self._lg.error(
                "shutdown server error",
                extra={"address": str(server.address), "exception": e},
            )
            return False
        self._lg.debug(
            "server stopped",
            extra={
                "address": str(server.address),
                "after": round(time.monotonic() - start, 3),
            },
        )
        return True
