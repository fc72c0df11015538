"""
Configuration for masters and workers.

Config is immutable and applied uniformly to every worker a master spawns.
It can be built directly, from a dictionary, or loaded from a YAML file with
environment variable overrides:

    # handoff.yaml
    handoff:
      watch_interval: 500ms
      stop_timeout: 30s
      parallel_stop: true

    config = load_config("handoff.yaml")

Environment Variable Override Format:
    HANDOFF_<FIELD>=value

Examples:
    HANDOFF_STOP_TIMEOUT=1m
    HANDOFF_PARALLEL_STOP=true
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .delta import parse_duration
from .exceptions import ConfigError

MAX_CONFIG_SIZE_BYTES = 10 * 1024 * 1024
DEFAULT_SECTION = "handoff"
DEFAULT_ENV_PREFIX = "HANDOFF_"


class Config(BaseModel):
    """
    Worker lifecycle and supervision settings.

    Attributes:
        watch_interval: Seconds between master liveness probes (must be > 0).
        stop_timeout: Grace period in seconds given to each handler when
            stopping (must be >= 0).
        parallel_stop: Stop all handlers concurrently instead of one after
            the other in registration order. Bounds total stop time by the
            largest grace period instead of their sum.
        respawn_delay: Seconds the master waits before replacing a worker
            that exited on its own.
        max_respawns: Consecutive respawns before the master gives up
            (0 for unlimited).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    watch_interval: float = Field(default=1.0, gt=0)
    stop_timeout: float = Field(default=10.0, ge=0)
    parallel_stop: bool = False
    respawn_delay: float = Field(default=1.0, ge=0)
    max_respawns: int = Field(default=5, ge=0)

    @field_validator("watch_interval", "stop_timeout", "respawn_delay", mode="before")
    @classmethod
    def parse_durations(cls, v: Any) -> Any:
        """Accept duration strings such as "250ms" or "1m30s"."""
        if isinstance(v, str):
            return parse_duration(v)
        return v

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Config":
        """
        Build a Config from a plain mapping.

        Raises:
            ConfigError: Naming the first invalid field
        """
        try:
            return cls.model_validate(dict(data or {}))
        except ValidationError as e:
            err = e.errors()[0]
            field = ".".join(str(part) for part in err.get("loc", ())) or None
            raise ConfigError(
                f"invalid config value: {err.get('msg')}", field=field
            ) from e


def _check_file_size(path: Path) -> None:
    """Reject oversized configuration files."""
    file_size = path.stat().st_size
    if file_size > MAX_CONFIG_SIZE_BYTES:
        raise ConfigError(
            "configuration file too large",
            path=str(path),
            size=file_size,
            limit=MAX_CONFIG_SIZE_BYTES,
        )


def _navigate_to_section(data: Any, section: str | None) -> dict[str, Any]:
    """Navigate to a dotted section of the loaded document."""
    current = data
    if section:
        for part in section.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return {}

    if current is None:
        return {}
    if not isinstance(current, dict):
        raise ConfigError("config section must be a mapping", section=section)
    return dict(current)


def _apply_env_overrides(
    data: dict[str, Any], env_prefix: str, environ: Mapping[str, str]
) -> dict[str, Any]:
    """Override known fields from <prefix><FIELD> environment variables."""
    for name in Config.model_fields:
        key = f"{env_prefix}{name.upper()}"
        if key in environ:
            data[name] = environ[key]
    return data


def load_config(
    fname: str | os.PathLike[str],
    section: str | None = DEFAULT_SECTION,
    env_prefix: str | None = DEFAULT_ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """
    Load a Config from a YAML file.

    Args:
        fname: Path to the YAML configuration file
        section: Dotted path of the section holding the settings, or None
            to use the whole document
        env_prefix: Prefix for environment overrides, or None to disable them
        environ: Environment to read overrides from (default: os.environ)

    Returns:
        Validated, immutable Config

    Raises:
        ConfigError: If the file is missing, malformed, or holds invalid values
    """
    path = Path(fname)
    if not path.is_file():
        raise ConfigError("configuration file not found", path=str(path))
    _check_file_size(path)

    try:
        with open(path) as f:
            document = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}", path=str(path)) from e

    data = _navigate_to_section(document, section)
    if env_prefix:
        data = _apply_env_overrides(
            data, env_prefix, os.environ if environ is None else environ
        )
    return Config.from_dict(data)
