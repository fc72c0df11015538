"""
Zero-downtime server entry point.

The same program runs as master and as worker. Handlers are registered in the
same order in both; Server.run() then either supervises workers (master) or
serves on the inherited listeners (worker):

    server = Server(Config(stop_timeout=30))
    server.register("0.0.0.0:8080", StreamServerHandler(MyRequestHandler))
    server.register_unix("/run/app.sock", StreamServerHandler(MyRequestHandler))
    sys.exit(server.run())

Restart with ``kill -HUP <master pid>``; stop with ``kill <master pid>``.
"""

import os
from collections.abc import Sequence
from typing import Any

from .address import AddressSpec, Network
from .config import Config
from .exceptions import RegistrationError
from .handler import Handler, HandlerBinding
from .handshake import Handshake, Role, detect_role
from .log import Logger, create_root_lg, derive_lg
from .supervisor import Supervisor
from .support import require_supported
from .worker import WorkerRuntime

# Computed once at import; the handshake environment is consumed by the
# worker at startup, so later lookups would not see it.
PROCESS_ROLE: Role = detect_role()


def is_master() -> bool:
    """Check whether this process started as a master."""
    return PROCESS_ROLE is Role.MASTER


def is_worker() -> bool:
    """Check whether this process started as a worker."""
    return PROCESS_ROLE is Role.WORKER


class Server:
    """
    Registers handlers and runs them as a master or a worker.

    Args:
        config: Lifecycle settings (default: Config())
        lg: Logger instance (default: a new root logger at info level)
        role: Role override (default: the role detected at import)
        command: Worker command line (default: re-run the current program)
    """

    def __init__(
        self,
        config: Config | None = None,
        lg: Logger | None = None,
        role: Role | None = None,
        command: Sequence[str] | None = None,
    ) -> None:
        require_supported()
        self._config = config or Config()
        self._lg = lg or create_root_lg("info")
        self._role = PROCESS_ROLE if role is None else role
        self._command = command
        self._bindings: list[HandlerBinding] = []
        self._started = False

    @property
    def role(self) -> Role:
        return self._role

    @property
    def config(self) -> Config:
        return self._config

    @property
    def bindings(self) -> tuple[HandlerBinding, ...]:
        return tuple(self._bindings)

    def register(
        self,
        address: str | AddressSpec,
        handler: Handler,
        network: str | Network = Network.TCP,
    ) -> AddressSpec:
        """
        Register a handler for an address.

        Args:
            address: ``host:port`` / socket path, or an AddressSpec
            handler: Service serving connections accepted on the address
            network: Network kind when address is a string

        Returns:
            The registered AddressSpec

        Raises:
            RegistrationError: If the server has already started
            ConfigError: If the address is invalid
        """
        if self._started:
            raise RegistrationError(
                "cannot register after the server started", address=str(address)
            )
        if isinstance(address, AddressSpec):
            spec = address
        else:
            spec = AddressSpec(network, address)  # type: ignore[arg-type]
        self._bindings.append(HandlerBinding(spec, handler))
        self._lg.debug("registered handler", extra={"address": str(spec)})
        return spec

    def register_unix(self, path: str, handler: Handler) -> AddressSpec:
        """Register a handler for a unix socket path."""
        return self.register(path, handler, network=Network.UNIX)

    def run(self) -> int:
        """
        Run as master or worker, depending on the role, until stopped.

        Returns:
            Process exit code

        Raises:
            HandoffError: On startup failures (bind, spawn, handshake, ...)
        """
        require_supported()
        if self._started:
            raise RegistrationError("server already started")
        self._started = True

        if self._role is Role.WORKER:
            return self._run_worker()
        return self._run_master()

    def _run_master(self) -> int:
        lg = derive_lg(self._lg, "master")
        lg.info(
            "master starting",
            extra={"pid": os.getpid(), "servers": len(self._bindings)},
        )
        supervisor = Supervisor(lg, self._bindings, self._config, self._command)
        return supervisor.run()

    def _run_worker(self) -> int:
        lg = derive_lg(self._lg, "worker")
        handshake = Handshake.consume()
        runtime = WorkerRuntime(lg, self._bindings, self._config, handshake)
        runtime.run()
        return 0


def listen_and_serve(
    address: str | AddressSpec,
    handler: Handler,
    config: Config | None = None,
    lg: Any | None = None,
) -> int:
    """
    Serve a single handler with zero-downtime restarts until stopped.

    Args:
        address: ``host:port``, ``tcp://host:port``, ``unix:///path`` or an
            AddressSpec
        handler: Service to run
        config: Lifecycle settings
        lg: Logger instance

    Returns:
        Process exit code
    """
    require_supported()
    server = Server(config=config, lg=lg)
    spec = address if isinstance(address, AddressSpec) else AddressSpec.parse(address)
    server.register(spec, handler)
    return server.run()
