"""
Master/worker handshake protocol.

A master hands its listening sockets to a worker as inherited descriptors
placed at consecutive positions starting at LISTEN_FDS_START, one per
registered handler, in registration order. Alongside, it writes three values
into the worker's environment:

    HANDOFF_FD_COUNT         number of inherited descriptors (required)
    HANDOFF_MASTER_PID       pid of the master, watched for liveness (required)
    HANDOFF_PREDECESSOR_PID  pid of the worker being replaced (optional)

The worker reads them exactly once at startup. A process is a worker if and
only if the handshake environment is present when it starts.
"""

import os
import signal
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from enum import Enum

from .exceptions import HandshakeError
from .support import is_supported

ENV_FD_COUNT = "HANDOFF_FD_COUNT"
ENV_MASTER_PID = "HANDOFF_MASTER_PID"
ENV_PREDECESSOR_PID = "HANDOFF_PREDECESSOR_PID"
HANDSHAKE_KEYS = (ENV_FD_COUNT, ENV_MASTER_PID, ENV_PREDECESSOR_PID)

# First inherited descriptor, right after stdin, stdout and stderr
LISTEN_FDS_START = 3

# Sent by a new worker to its predecessor, and by anyone to stop a worker
RETIRE_SIGNAL = signal.SIGTERM


class Role(str, Enum):
    """Part a process plays in a handoff."""

    MASTER = "master"
    WORKER = "worker"


def detect_role(
    environ: Mapping[str, str] | None = None, platform: str | None = None
) -> Role:
    """
    Determine whether the current process is a master or a worker.

    On unsupported platforms every process is a master.
    """
    if not is_supported(platform):
        return Role.MASTER
    env = os.environ if environ is None else environ
    return Role.WORKER if ENV_FD_COUNT in env else Role.MASTER


def _parse_int(environ: Mapping[str, str], key: str, required: bool) -> int | None:
    raw = environ.get(key)
    if raw is None or (not required and raw.strip() == ""):
        if required:
            raise HandshakeError(f"missing {key}", field=key)
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise HandshakeError(f"invalid {key} integer", field=key, value=raw) from e


@dataclass(frozen=True)
class Handshake:
    """
    Typed handshake values passed from a master to the worker it spawns.

    Attributes:
        fd_count: Number of inherited listening descriptors
        master_pid: Pid of the master process
        predecessor_pid: Pid of the worker to retire, 0 if none
    """

    fd_count: int
    master_pid: int
    predecessor_pid: int = 0

    def __post_init__(self) -> None:
        if self.fd_count < 0:
            raise HandshakeError(
                "descriptor count cannot be negative",
                field=ENV_FD_COUNT,
                value=self.fd_count,
            )
        if self.master_pid <= 0:
            raise HandshakeError(
                "master pid must be positive",
                field=ENV_MASTER_PID,
                value=self.master_pid,
            )
        if self.predecessor_pid < 0:
            object.__setattr__(self, "predecessor_pid", 0)

    @property
    def has_predecessor(self) -> bool:
        # pid 1 is init, never a worker
        return self.predecessor_pid > 1

    def to_environ(self) -> dict[str, str]:
        """Serialize into environment variables for the child process."""
        return {
            ENV_FD_COUNT: str(self.fd_count),
            ENV_MASTER_PID: str(self.master_pid),
            ENV_PREDECESSOR_PID: str(self.predecessor_pid),
        }

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "Handshake":
        """
        Parse and validate the handshake from an environment mapping.

        Raises:
            HandshakeError: Naming the missing or malformed variable
        """
        fd_count = _parse_int(environ, ENV_FD_COUNT, required=True)
        master_pid = _parse_int(environ, ENV_MASTER_PID, required=True)
        predecessor_pid = _parse_int(environ, ENV_PREDECESSOR_PID, required=False)
        return cls(
            fd_count=fd_count or 0,
            master_pid=master_pid or 0,
            predecessor_pid=predecessor_pid or 0,
        )

    @classmethod
    def consume(cls, environ: MutableMapping[str, str] | None = None) -> "Handshake":
        """
        Parse the handshake and remove it from the environment.

        Removing the variables keeps processes the worker spawns itself from
        mistaking themselves for workers.
        """
        env = os.environ if environ is None else environ
        try:
            return cls.from_environ(env)
        finally:
            for key in HANDSHAKE_KEYS:
                env.pop(key, None)
