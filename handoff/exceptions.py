"""
Exception hierarchy for the handoff package.

All errors raised by the package derive from HandoffError, so callers can
catch every framework failure with a single except clause. Each error carries
optional keyword context (address, descriptor index, env field, ...) that is
rendered in its string form.
"""

from typing import Any


class HandoffError(Exception):
    """
    Base exception for all handoff errors.

    Example:
        try:
            server.run()
        except HandoffError as e:
            lg.error("server failed", extra={"exception": e})
    """

    def __init__(self, message: str, **context: Any) -> None:
        """
        Initialize the exception with a message and optional context.

        Args:
            message: Human-readable error message
            **context: Additional context information (stored in self.context)
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """String representation with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ConfigError(HandoffError):
    """
    Configuration-related errors.

    Examples:
        - Config file not found or too large
        - Invalid duration string
        - Value out of range (non-positive watch interval, ...)
    """

    pass


class HandshakeError(ConfigError):
    """
    Invalid or inconsistent handshake between master and worker.

    Raised at worker startup when the handshake environment is missing or
    malformed, or when the number of registered handlers does not match the
    number of inherited descriptors. The offending environment variable is
    available as ``context["field"]`` when one is to blame.
    """

    @property
    def field(self) -> str | None:
        """Name of the handshake field that failed validation."""
        return self.context.get("field")


class RegistrationError(HandoffError):
    """Raised when a handler is registered after the server started."""

    pass


class ListenerError(HandoffError):
    """Base exception for listener creation errors."""

    pass


class BindError(ListenerError):
    """Raised when the master cannot bind a listening socket."""

    pass


class InheritError(ListenerError):
    """Raised when a worker cannot rebuild a listener from an inherited descriptor."""

    pass


class NoServersError(HandoffError):
    """Raised when there is nothing to serve."""

    pass


class SpawnError(HandoffError):
    """Raised when a worker process cannot be spawned."""

    pass


class ServerShutdownError(HandoffError):
    """Raised by a handler that could not quiesce within its grace period."""

    pass


class UnsupportedPlatformError(HandoffError):
    """
    Raised on host platforms where descriptor handoff is not supported.

    This signals a deployment mistake rather than a runtime condition and is
    never recovered from.
    """

    pass
