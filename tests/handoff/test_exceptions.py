"""
Tests for the handoff exception hierarchy.

Tests key exception features including:
- Base HandoffError with context
- Field access on HandshakeError
- Exception inheritance
"""

import pytest

from handoff.exceptions import (
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


@pytest.mark.unit
class TestHandoffError:
    """Test HandoffError base class."""

    def test_message_only(self):
        """Test string form without context."""
        error = HandoffError("no servers")
        assert str(error) == "no servers"
        assert error.message == "no servers"
        assert error.context == {}

    def test_context_rendered(self):
        """Test context is kept and rendered in the string form."""
        error = HandoffError("failed to bind", address="tcp://:80", errno=13)
        assert error.context == {"address": "tcp://:80", "errno": 13}
        assert str(error) == "failed to bind (address=tcp://:80, errno=13)"


@pytest.mark.unit
class TestHierarchy:
    """Test every error derives from HandoffError."""

    @pytest.mark.parametrize(
        "cls",
        [
            ConfigError,
            HandshakeError,
            RegistrationError,
            ListenerError,
            BindError,
            InheritError,
            NoServersError,
            SpawnError,
            ServerShutdownError,
            UnsupportedPlatformError,
        ],
    )
    def test_derives_from_base(self, cls):
        with pytest.raises(HandoffError):
            raise cls("boom")

    def test_handshake_error_is_config_error(self):
        assert issubclass(HandshakeError, ConfigError)

    def test_listener_errors(self):
        assert issubclass(BindError, ListenerError)
        assert issubclass(InheritError, ListenerError)

    def test_handshake_error_field(self):
        """Test the offending env variable is exposed as field."""
        error = HandshakeError("invalid", field="HANDOFF_FD_COUNT", value="x")
        assert error.field == "HANDOFF_FD_COUNT"
        assert HandshakeError("count mismatch").field is None
