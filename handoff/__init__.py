"""
handoff: zero-downtime restarts for socket servers.

A master process owns the listening sockets and hands them to worker
processes; a new worker retires its predecessor once it is serving, so a
restart never drops a connection.

Example:
    from handoff import Server, StreamServerHandler

    server = Server()
    server.register("0.0.0.0:8080", StreamServerHandler(MyRequestHandler))
    sys.exit(server.run())
"""

from importlib.metadata import PackageNotFoundError, version

from .address import AddressSpec, Network
from .config import Config, load_config
from .delta import InvalidDurationError, parse_duration
from .exceptions import (
    BindError,
    ConfigError,
    HandoffError,
    HandshakeError,
    InheritError,
    ListenerError,
    NoServersError,
    RegistrationError,
    ServerShutdownError,
    SpawnError,
    UnsupportedPlatformError,
)
from .handler import Handler, HandlerBinding, StreamServerHandler
from .handshake import Handshake, Role, detect_role
from .server import PROCESS_ROLE, Server, is_master, is_worker, listen_and_serve
from .supervisor import Supervisor
from .worker import StopTrigger, WorkerRuntime, WorkerState

# Version is read from package metadata (pyproject.toml)
try:
    __version__ = version("handoff")
except PackageNotFoundError:
    # Package not installed, use fallback (development mode)
    __version__ = "0.1.0-dev"

__all__ = [
    # Version
    "__version__",
    # Entry points
    "Server",
    "listen_and_serve",
    "is_master",
    "is_worker",
    "PROCESS_ROLE",
    # Addresses and handlers
    "AddressSpec",
    "Network",
    "Handler",
    "HandlerBinding",
    "StreamServerHandler",
    # Configuration
    "Config",
    "load_config",
    "parse_duration",
    "InvalidDurationError",
    # Protocol and runtimes
    "Handshake",
    "Role",
    "detect_role",
    "Supervisor",
    "WorkerRuntime",
    "WorkerState",
    "StopTrigger",
    # Exceptions
    "HandoffError",
    "ConfigError",
    "HandshakeError",
    "RegistrationError",
    "ListenerError",
    "BindError",
    "InheritError",
    "NoServersError",
    "SpawnError",
    "ServerShutdownError",
    "UnsupportedPlatformError",
]
