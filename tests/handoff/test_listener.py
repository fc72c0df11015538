"""
Tests for listener creation.

Tests key features including:
- Binding tcp and unix listeners (master side)
- Rebuilding listeners from inherited descriptors (worker side)
- Cleanup on failure
"""

import errno
import os
import socket

import pytest

from handoff.address import AddressSpec
from handoff.exceptions import BindError, InheritError
from handoff.listener import (
    bind_listener,
    close_listener,
    describe_listener,
    inherit_listener,
    inherit_listeners,
)
from tests.fixtures.network import FD_BASE, close_fd


def _is_listening(sock: socket.socket) -> bool:
    return bool(sock.getsockopt(socket.SOL_SOCKET, socket.SO_ACCEPTCONN))


@pytest.mark.integration
class TestBindListener:
    """Test bind_listener()."""

    def test_tcp(self):
        sock = bind_listener(AddressSpec.tcp("127.0.0.1:0"))
        try:
            assert sock.type == socket.SOCK_STREAM
            assert sock.family == socket.AF_INET
            assert _is_listening(sock)
            assert sock.getsockname()[1] > 0
        finally:
            sock.close()

    def test_unix(self, temp_dir):
        path = str(temp_dir / "app.sock")
        spec = AddressSpec.unix(path)
        sock = bind_listener(spec)
        try:
            assert sock.family == socket.AF_UNIX
            assert _is_listening(sock)
            assert os.path.exists(path)
        finally:
            close_listener(sock, spec)
        assert not os.path.exists(path)

    def test_address_in_use(self, tcp_listener):
        port = tcp_listener.getsockname()[1]
        with pytest.raises(BindError) as exc_info:
            bind_listener(AddressSpec.tcp(f"127.0.0.1:{port}"))
        assert exc_info.value.context["address"] == f"tcp://127.0.0.1:{port}"
        assert exc_info.value.context["errno"] == errno.EADDRINUSE

    def test_unix_path_in_missing_directory(self, temp_dir):
        with pytest.raises(BindError):
            bind_listener(AddressSpec.unix(str(temp_dir / "missing" / "app.sock")))

    def test_existing_unix_path_not_replaced(self, temp_dir):
        path = temp_dir / "app.sock"
        path.write_text("not a socket")
        with pytest.raises(BindError):
            bind_listener(AddressSpec.unix(str(path)))
        assert path.read_text() == "not a socket"

    def test_close_listener_keeps_foreign_files(self, temp_dir):
        """Only socket files are removed on close."""
        path = temp_dir / "app.sock"
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        path.write_text("data")
        close_listener(sock, AddressSpec.unix(str(path)))
        assert path.exists()


@pytest.mark.integration
class TestInheritListener:
    """Test inherit_listener() and inherit_listeners()."""

    def test_inherit_tcp(self, tcp_listener, place_listeners):
        fd = place_listeners([tcp_listener], FD_BASE)
        sock = inherit_listener(fd)
        try:
            assert sock.fileno() == fd
            assert sock.getsockname() == tcp_listener.getsockname()
        finally:
            sock.close()

    def test_inherit_in_order(self, tcp_listener, temp_dir, place_listeners):
        from tests.fixtures.network import make_unix_listener

        unix = make_unix_listener(str(temp_dir / "a.sock"))
        try:
            start = place_listeners([tcp_listener, unix], FD_BASE)
            listeners = inherit_listeners(2, start=start)
            assert [s.family for s in listeners] == [socket.AF_INET, socket.AF_UNIX]
            assert listeners[0].getsockname() == tcp_listener.getsockname()
            assert listeners[1].getsockname() == str(temp_dir / "a.sock")
            for sock in listeners:
                sock.close()
        finally:
            unix.close()

    def test_zero_count(self):
        assert inherit_listeners(0, start=FD_BASE) == []

    def test_closed_descriptor(self):
        close_fd(FD_BASE + 50)
        with pytest.raises(InheritError) as exc_info:
            inherit_listener(FD_BASE + 50)
        assert exc_info.value.context["fd"] == FD_BASE + 50

    def test_not_listening(self, place_listeners):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        try:
            fd = place_listeners([sock], FD_BASE)
            with pytest.raises(InheritError, match="not listening"):
                inherit_listener(fd)
            with pytest.raises(OSError):
                os.fstat(fd)
        finally:
            sock.close()

    def test_datagram_socket(self, place_listeners):
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            fd = place_listeners([sock], FD_BASE)
            with pytest.raises(InheritError, match="not a stream socket"):
                inherit_listener(fd)
        finally:
            sock.close()

    def test_partial_failure_closes_inherited(self, tcp_listener, place_listeners):
        """Listeners rebuilt before the failing descriptor are closed."""
        start = place_listeners([tcp_listener], FD_BASE)
        close_fd(start + 1)
        with pytest.raises(InheritError) as exc_info:
            inherit_listeners(2, start=start)
        assert exc_info.value.context["fd"] == start + 1
        with pytest.raises(OSError):
            os.fstat(start)


@pytest.mark.unit
class TestDescribeListener:
    def test_tcp(self, tcp_listener):
        port = tcp_listener.getsockname()[1]
        assert describe_listener(tcp_listener) == f"tcp://127.0.0.1:{port}"

    def test_closed(self):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.close()
        assert describe_listener(sock) == "<closed>"
