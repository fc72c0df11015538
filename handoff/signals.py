"""
Signal handling for masters and workers.

Signal handlers only enqueue the signal number; the main thread picks it up
from the queue and acts on it. The same queue carries internal triggers (for
example "master gone" from a worker's liveness watcher), so the main thread
has a single rendezvous to wait on whichever comes first.
"""

import queue
import signal
from collections.abc import Iterable
from types import FrameType
from typing import Any

# Upper bound on how long the main thread sleeps between checks. The OS may
# deliver a signal to any thread; the Python-level handler only runs once
# the main thread wakes up.
WAKEUP_INTERVAL = 0.2


class SignalRelay:
    """
    Relay signals and internal triggers to one waiting thread.

    Usage:
        with SignalRelay([signal.SIGTERM]) as relay:
            start_serving()
            item = relay.get()  # signal number or trigger put by another thread

    Original handlers are saved on install and put back on restore.
    """

    def __init__(self, signals: Iterable[signal.Signals]) -> None:
        self._signals = tuple(signals)
        self._queue: queue.SimpleQueue[Any] = queue.SimpleQueue()
        self._original_handlers: dict[signal.Signals, Any] = {}

    @property
    def signals(self) -> tuple[signal.Signals, ...]:
        return self._signals

    def install(self) -> None:
        """Register handlers for all relayed signals (main thread only)."""
        for signum in self._signals:
            self._original_handlers[signum] = signal.signal(signum, self._handle_signal)

    def restore(self) -> None:
        """Put back the handlers that were in place before install()."""
        while self._original_handlers:
            signum, handler = self._original_handlers.popitem()
            signal.signal(signum, handler)

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        # SimpleQueue.put is reentrant, safe to call from a signal handler
        self._queue.put(signal.Signals(signum))

    def put(self, item: Any) -> None:
        """Enqueue an internal trigger."""
        self._queue.put(item)

    def get(self, timeout: float | None = None) -> Any:
        """
        Wait for the next signal or trigger.

        Args:
            timeout: Seconds to wait, or None to wait forever

        Raises:
            queue.Empty: If nothing arrived within timeout
        """
        remaining = timeout
        while True:
            wait = WAKEUP_INTERVAL if remaining is None else min(WAKEUP_INTERVAL, remaining)
            try:
                return self._queue.get(timeout=wait)
            except queue.Empty:
                if remaining is not None:
                    remaining -= wait
                    if remaining <= 0:
                        raise

    def __enter__(self) -> "SignalRelay":
        self.install()
        return self

    def __exit__(self, *args: object) -> None:
        self.restore()
