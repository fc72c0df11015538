"""
Bind targets for listening sockets.

An AddressSpec names one listening socket: a network kind (tcp or unix) and an
address string (``host:port`` for tcp, a filesystem path for unix). Specs are
immutable; the order in which they are registered is what pairs an inherited
descriptor with its handler in a worker, so both sides of a handoff must
register them identically.

Example:
    AddressSpec.tcp("127.0.0.1:9001")
    AddressSpec.unix("/tmp/app.sock")
    AddressSpec.parse("unix:///tmp/app.sock")
"""

import socket
from dataclasses import dataclass
from enum import Enum

from .exceptions import ConfigError


class Network(str, Enum):
    """Supported network kinds."""

    TCP = "tcp"
    UNIX = "unix"


def _split_host_port(address: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts."""
    host, sep, port_str = address.rpartition(":")
    if not sep:
        raise ConfigError("tcp address must be host:port", address=address)
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ConfigError("IPv6 hosts must be bracketed", address=address)

    try:
        port = int(port_str)
    except ValueError as e:
        raise ConfigError("invalid tcp port", address=address) from e
    if not 0 <= port <= 65535:
        raise ConfigError("tcp port out of range", address=address, port=port)
    return host, port


@dataclass(frozen=True)
class AddressSpec:
    """
    One bind target.

    Attributes:
        network: Network kind (tcp or unix)
        address: ``host:port`` for tcp; socket path for unix
    """

    network: Network
    address: str

    def __post_init__(self) -> None:
        try:
            network = Network(self.network)
        except ValueError as e:
            raise ConfigError(
                "unsupported network", network=self.network, address=self.address
            ) from e
        object.__setattr__(self, "network", network)

        if not isinstance(self.address, str) or not self.address:
            raise ConfigError("address cannot be empty", network=network.value)
        if network is Network.TCP:
            _split_host_port(self.address)

    @classmethod
    def tcp(cls, address: str) -> "AddressSpec":
        return cls(Network.TCP, address)

    @classmethod
    def unix(cls, path: str) -> "AddressSpec":
        return cls(Network.UNIX, path)

    @classmethod
    def parse(cls, value: str) -> "AddressSpec":
        """
        Parse an address string.

        Accepts ``tcp://host:port``, ``unix:///path``, ``unix:/path`` and a bare
        ``host:port`` (tcp).
        """
        if value.startswith("tcp://"):
            return cls.tcp(value[len("tcp://") :])
        if value.startswith("unix://"):
            return cls.unix(value[len("unix://") :])
        if value.startswith("unix:"):
            return cls.unix(value[len("unix:") :])
        return cls.tcp(value)

    @property
    def family(self) -> socket.AddressFamily:
        """Socket address family matching this spec."""
        if self.network is Network.UNIX:
            return socket.AF_UNIX
        host, _ = _split_host_port(self.address)
        return socket.AF_INET6 if ":" in host else socket.AF_INET

    @property
    def sockaddr(self) -> str | tuple[str, int]:
        """Address in the form socket.bind() expects."""
        if self.network is Network.UNIX:
            return self.address
        return _split_host_port(self.address)

    def __str__(self) -> str:
        return f"{self.network.value}://{self.address}"
