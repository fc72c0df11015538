"""
Master side of a handoff.

The supervisor binds every registered address once and keeps the listeners
open for its whole life. It never accepts on them; it only passes them on to
worker processes, placed at consecutive descriptors from LISTEN_FDS_START.

Signals understood by the master:

    SIGHUP          spawn a replacement worker; the current worker keeps
                    serving until the replacement tells it to retire
    SIGTERM/SIGINT  forward SIGTERM to every worker, wait for them to exit,
                    close the listeners and return
    SIGCHLD         reap exited workers; replace the current worker if it
                    died on its own

Example:
    supervisor = Supervisor(lg, bindings, config)
    exit_code = supervisor.run()
"""

import fcntl
import os
import queue
import signal
import socket
import sys
import time
from collections.abc import Sequence
from typing import Any

from .config import Config
from .exceptions import NoServersError, SpawnError
from .handler import HandlerBinding
from .handshake import LISTEN_FDS_START, RETIRE_SIGNAL, Handshake
from .listener import bind_listener, close_listener, describe_listener
from .signals import SignalRelay

RESTART_SIGNAL = signal.SIGHUP
STOP_SIGNALS = (signal.SIGTERM, signal.SIGINT)

# A worker that served at least this long resets the respawn count
STABLE_UPTIME = 30.0


def default_command() -> list[str]:
    """Command line re-running the current program, interpreter flags included."""
    return [sys.executable, *sys.orig_argv[1:]]


def spawn_worker(
    command: Sequence[str],
    listeners: Sequence[socket.socket],
    env: dict[str, str],
    fd_start: int = LISTEN_FDS_START,
) -> int:
    """
    Start a worker process inheriting the listeners positionally.

    Listener i is available to the child as descriptor ``fd_start + i``.

    Returns:
        Pid of the child

    Raises:
        SpawnError: If the process could not be started
    """
    # Stage copies above the target range so no dup2 overwrites a source
    floor = fd_start + len(listeners)
    staged: list[int] = []
    try:
        for sock in listeners:
            staged.append(fcntl.fcntl(sock.fileno(), fcntl.F_DUPFD_CLOEXEC, floor))
        file_actions = [
            (os.POSIX_SPAWN_DUP2, fd, fd_start + i) for i, fd in enumerate(staged)
        ]
        return os.posix_spawnp(command[0], list(command), env, file_actions=file_actions)
    except OSError as e:
        raise SpawnError(
            f"failed to spawn worker: {e.strerror}", command=command[0]
        ) from e
    finally:
        for fd in staged:
            os.close(fd)


class Supervisor:
    """
    Owns the listeners and the worker processes serving on them.

    Args:
        lg: Logger instance
        bindings: Registered handlers, in registration order
        config: Settings, passed on to workers through their own registration
        command: Worker command line (default: re-run the current program)
        handle_signals: Install signal handlers (main thread only)
    """

    def __init__(
        self,
        lg: Any,
        bindings: Sequence[HandlerBinding],
        config: Config,
        command: Sequence[str] | None = None,
        handle_signals: bool = True,
    ) -> None:
        self._lg = lg
        self._bindings = list(bindings)
        self._config = config
        self._command = list(command) if command else default_command()
        self._handle_signals = handle_signals

        self._listeners: list[socket.socket] = []
        self._workers: dict[int, float] = {}  # pid -> spawn time
        self._current: int | None = None
        self._respawns = 0
        self._stopping = False
        self._exit_code = 0
        self._relay = SignalRelay([RESTART_SIGNAL, *STOP_SIGNALS, signal.SIGCHLD])

    @property
    def current_worker(self) -> int | None:
        """Pid of the newest worker, the one expected to be serving."""
        return self._current

    @property
    def workers(self) -> tuple[int, ...]:
        return tuple(self._workers)

    @property
    def listeners(self) -> tuple[socket.socket, ...]:
        return tuple(self._listeners)

    @property
    def exit_code(self) -> int:
        return self._exit_code

    def run(self) -> int:
        """
        Bind, spawn the first worker and supervise until stopped.

        Returns:
            0 after a requested stop, 1 if workers kept dying and the
            supervisor gave up

        Raises:
            NoServersError: If nothing is registered
            BindError: If an address cannot be bound (nothing is spawned)
            SpawnError: If the first worker cannot be spawned
        """
        if not self._bindings:
            raise NoServersError("no servers")

        self.bind()
        try:
            if self._handle_signals:
                self._relay.install()
            self.spawn()
            self._loop()
        finally:
            self._relay.restore()
            self.close()
        return self._exit_code

    def bind(self) -> None:
        """Bind every registered address; on failure close what was bound."""
        try:
            for binding in self._bindings:
                sock = bind_listener(binding.address)
                self._listeners.append(sock)
                self._lg.info(
                    "listening",
                    extra={
                        "address": str(binding.address),
                        "listener": describe_listener(sock),
                    },
                )
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        """Close the master's copies of the listeners."""
        for binding, sock in zip(self._bindings, self._listeners):
            close_listener(sock, binding.address)
        self._listeners.clear()

    def spawn(self) -> int:
        """
        Spawn a worker; the current worker, if any, becomes its predecessor.

        Raises:
            SpawnError: If the worker could not be spawned
        """
        handshake = Handshake(
            fd_count=len(self._listeners),
            master_pid=os.getpid(),
            predecessor_pid=self._current or 0,
        )
        env = {**os.environ, **handshake.to_environ()}
        pid = spawn_worker(self._command, self._listeners, env)

        self._workers[pid] = time.monotonic()
        self._current = pid
        self._lg.info(
            "worker spawned",
            extra={"pid": pid, "predecessor_pid": handshake.predecessor_pid},
        )
        return pid

    def restart(self) -> bool:
        """
        Spawn a replacement for the current worker.

        A failed spawn leaves the current worker serving.
        """
        if self._stopping:
            return False
        try:
            self.spawn()
        except SpawnError as e:
            self._lg.error(
                "restart failed, keeping current worker",
                extra={"pid": self._current, "exception": e},
            )
            return False
        self._respawns = 0
        return True

    def stop(self) -> None:
        """Ask every worker to stop; run() returns once they have exited."""
        self._stopping = True
        for pid in list(self._workers):
            self._signal_worker(pid, RETIRE_SIGNAL)

    def _signal_worker(self, pid: int, signum: signal.Signals) -> None:
        try:
            os.kill(pid, signum)
        except OSError as e:
            self._lg.warning(
                "failed to signal worker",
                extra={"pid": pid, "signal": signum.name, "exception": e},
            )

    def _loop(self) -> None:
        while self._workers:
            self._dispatch(self._relay.get())
        self._lg.info("all workers exited", extra={"exit_code": self._exit_code})

    def _dispatch(self, item: Any) -> None:
        if item == signal.SIGCHLD:
            self.reap()
        elif item == RESTART_SIGNAL:
            self._lg.info("restart requested")
            self.restart()
        elif item in STOP_SIGNALS:
            if not self._stopping:
                self._lg.info("master received stop signal", extra={"signal": item.name})
            self.stop()

    def reap(self) -> list[int]:
        """
        Collect exited workers and react to the current one exiting.

        Returns:
            Pids that were reaped
        """
        reaped = []
        for pid in list(self._workers):
            try:
                wpid, status = os.waitpid(pid, os.WNOHANG)
            except ChildProcessError:
                wpid, status = pid, 0
            if wpid == 0:
                continue

            spawned_at = self._workers.pop(pid)
            reaped.append(pid)
            self._lg.info(
                "worker exited",
                extra={"pid": pid, "code": os.waitstatus_to_exitcode(status)},
            )
            if pid == self._current:
                if time.monotonic() - spawned_at >= STABLE_UPTIME:
                    self._respawns = 0
                self._current = self._newest_worker()
                if self._current is not None:
                    self._lg.warning(
                        "replacement worker exited, previous worker still serving",
                        extra={"pid": self._current},
                    )

        if reaped and self._current is None and not self._stopping:
            self._respawn()
        return reaped

    def _newest_worker(self) -> int | None:
        if not self._workers:
            return None
        return max(self._workers, key=lambda pid: self._workers[pid])

    def _respawn(self) -> None:
        """Replace a worker that died without a successor."""
        limit = self._config.max_respawns
        if limit and self._respawns >= limit:
            self._lg.error("max respawns exceeded, giving up", extra={"respawns": limit})
            self._stopping = True
            self._exit_code = 1
            return

        self._respawns += 1
        self._lg.warning(
            "worker died, respawning",
            extra={"attempt": self._respawns, "delay": self._config.respawn_delay},
        )
        if not self._wait_respawn_delay():
            return
        try:
            self.spawn()
        except SpawnError as e:
            self._lg.error("respawn failed, giving up", extra={"exception": e})
            self._stopping = True
            self._exit_code = 1

    def _wait_respawn_delay(self) -> bool:
        """
        Keep handling signals until the respawn delay has passed.

        Returns:
            False if a signal made the respawn moot: the master is stopping
            or a restart already spawned a worker
        """
        deadline = time.monotonic() + self._config.respawn_delay
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return True
            try:
                item = self._relay.get(timeout=remaining)
            except queue.Empty:
                continue
            self._dispatch(item)
            if self._stopping:
                self._lg.info("respawn cancelled, master stopping")
                return False
            if self._current is not None:
                return False
