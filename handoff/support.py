"""
Host platform support.

Descriptor handoff relies on POSIX descriptor inheritance, process signals and
``posix_spawn``. On Windows none of that is available, so every entry point
refuses to run there, and role probes always report a master.
"""

import sys

from .exceptions import UnsupportedPlatformError

UNSUPPORTED_PLATFORMS = ("win32", "cygwin")


def is_supported(platform: str | None = None) -> bool:
    """Check whether descriptor handoff is supported on the given platform."""
    return (platform or sys.platform) not in UNSUPPORTED_PLATFORMS


def require_supported(platform: str | None = None) -> None:
    """
    Abort when running on an unsupported platform.

    Raises:
        UnsupportedPlatformError: Always, on unsupported platforms
    """
    current = platform or sys.platform
    if not is_supported(current):
        raise UnsupportedPlatformError(
            "descriptor handoff is not supported on this platform", platform=current
        )
