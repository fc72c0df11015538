"""
Listening socket creation on both sides of a handoff.

The master binds a fresh listener for every registered AddressSpec. A worker
never binds: it rebuilds its listeners from the descriptors it inherited, one
per registered handler, in registration order. A descriptor that cannot be
rebuilt is fatal to worker startup; the worker exits and leaves recovery to
whatever supervises it.
"""

import os
import socket
import stat

from .address import AddressSpec, Network
from .exceptions import BindError, InheritError
from .handshake import LISTEN_FDS_START

DEFAULT_BACKLOG = 128

_STREAM_FAMILIES = (socket.AF_INET, socket.AF_INET6, socket.AF_UNIX)


def bind_listener(spec: AddressSpec, backlog: int = DEFAULT_BACKLOG) -> socket.socket:
    """
    Bind and listen on the given address.

    Args:
        spec: Address to bind
        backlog: Listen queue length

    Returns:
        Listening stream socket

    Raises:
        BindError: If the socket cannot be created, bound, or put in listening
            state (address in use, permission denied, ...)
    """
    try:
        sock = socket.socket(spec.family, socket.SOCK_STREAM)
    except OSError as e:
        raise BindError(
            f"failed to create socket: {e.strerror}", address=str(spec)
        ) from e

    try:
        if spec.network is Network.TCP:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(spec.sockaddr)
        sock.listen(backlog)
    except OSError as e:
        sock.close()
        raise BindError(
            f"failed to bind: {e.strerror}", address=str(spec), errno=e.errno
        ) from e
    return sock


def inherit_listener(fd: int) -> socket.socket:
    """
    Rebuild a listening socket from an inherited descriptor.

    The returned socket owns the descriptor.

    Raises:
        InheritError: If the descriptor is not a listening stream socket
    """
    try:
        sock = socket.socket(fileno=fd)
    except OSError as e:
        raise InheritError(
            f"failed to inherit file descriptor: {e.strerror}", fd=fd
        ) from e

    try:
        if sock.type != socket.SOCK_STREAM or sock.family not in _STREAM_FAMILIES:
            raise InheritError("inherited descriptor is not a stream socket", fd=fd)
        if hasattr(socket, "SO_ACCEPTCONN") and not sock.getsockopt(
            socket.SOL_SOCKET, socket.SO_ACCEPTCONN
        ):
            raise InheritError("inherited socket is not listening", fd=fd)
    except OSError as e:
        sock.close()
        raise InheritError(
            f"failed to inspect inherited socket: {e.strerror}", fd=fd
        ) from e
    except InheritError:
        sock.close()
        raise
    return sock


def inherit_listeners(count: int, start: int = LISTEN_FDS_START) -> list[socket.socket]:
    """
    Rebuild ``count`` listeners from consecutive descriptors.

    On failure every listener rebuilt so far is closed before raising.

    Raises:
        InheritError: Naming the first descriptor that could not be rebuilt
    """
    listeners: list[socket.socket] = []
    try:
        for i in range(count):
            listeners.append(inherit_listener(start + i))
    except InheritError:
        for sock in listeners:
            sock.close()
        raise
    return listeners


def close_listener(sock: socket.socket, spec: AddressSpec | None = None) -> None:
    """
    Close a listener owned by the master.

    For unix listeners the socket file is removed as well.
    """
    sock.close()
    if spec is None or spec.network is not Network.UNIX:
        return
    try:
        if stat.S_ISSOCK(os.stat(spec.address).st_mode):
            os.unlink(spec.address)
    except FileNotFoundError:
        pass


def describe_listener(sock: socket.socket) -> str:
    """Human-readable local address of a listener, for logging."""
    try:
        name = sock.getsockname()
    except OSError:
        return "<closed>"
    if sock.family == socket.AF_UNIX:
        return f"unix://{name}"
    host, port = name[0], name[1]
    if sock.family == socket.AF_INET6:
        host = f"[{host}]"
    return f"tcp://{host}:{port}"
