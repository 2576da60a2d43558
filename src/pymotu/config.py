"""Client configuration for pymotu."""

from __future__ import annotations

import dataclasses
import os
import secrets
from typing import Any

from pymotu._constants import DATASTORE_PATH, DEFAULT_PORT, DEFAULT_UPDATE_BUFFER, HEALTH_PATH
from pymotu.exceptions import MotuConfigError
from pymotu.state.events import UpdateOrigin


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _random_client_id() -> int:
    return secrets.randbits(32)


@dataclasses.dataclass(frozen=True)
class MotuConfig:
    """Client configuration.

    Parameters
    ----------
    host : str
        Hostname or IP address of the interface.
    port : int
        HTTP port of the datastore API.
    client_id : int
        Identifier sent as ``?client=`` with every request.  The device
        uses it to avoid echoing our own writes back to us through the
        long poll.  Defaults to a random 32-bit integer.
    datastore_path : str
        Path of the datastore endpoint.
    health_path : str
        Path checked by ``connect()`` before polling starts.
    request_timeout : float or None
        Total timeout in seconds for a single HTTP request.  ``None``
        disables it; long polls may legitimately block for a while.
    update_buffer : int
        Per-subscriber buffer size of the update bus.  A subscriber that
        falls further behind loses updates and is told so.
    model_update_origins : frozenset[UpdateOrigin]
        Update origins applied to the bank/channel model after seeding.
        Defaults to both internal and external updates.
    """

    host: str
    port: int = DEFAULT_PORT
    client_id: int = dataclasses.field(default_factory=_random_client_id)
    datastore_path: str = DATASTORE_PATH
    health_path: str = HEALTH_PATH
    request_timeout: float | None = None
    update_buffer: int = DEFAULT_UPDATE_BUFFER
    model_update_origins: frozenset[UpdateOrigin] = frozenset({UpdateOrigin.INTERNAL, UpdateOrigin.EXTERNAL})

    def __post_init__(self) -> None:
        if not self.host or not self.host.strip():
            raise MotuConfigError("host must be non-empty")
        if not 0 < self.port < 65536:
            raise MotuConfigError(f"port must be between 1 and 65535, got {self.port}")
        if self.update_buffer < 1:
            raise MotuConfigError(f"update_buffer must be >= 1, got {self.update_buffer}")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise MotuConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if not self.model_update_origins:
            raise MotuConfigError("model_update_origins must name at least one origin")

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def datastore_url(self) -> str:
        return f"{self.base_url}{self.datastore_path}"

    @property
    def health_url(self) -> str:
        return f"{self.base_url}{self.health_path}"

    @classmethod
    def from_env(cls, **overrides: Any) -> MotuConfig:
        """Create configuration from environment variables.

        Reads ``MOTU_HOST`` and optional ``MOTU_*`` variables.  Explicit
        keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        MotuConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "MOTU_HOST": "host",
            "MOTU_DATASTORE_PATH": "datastore_path",
            "MOTU_HEALTH_PATH": "health_path",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # Numeric fields, handled separately
        _ENV_NUMERIC_MAP = {
            "MOTU_PORT": ("port", int),
            "MOTU_CLIENT_ID": ("client_id", int),
            "MOTU_UPDATE_BUFFER": ("update_buffer", int),
            "MOTU_REQUEST_TIMEOUT": ("request_timeout", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = cast(val)
            except ValueError as exc:
                raise MotuConfigError(f"{env_key} is not a valid number: {val!r}") from exc

        if "model_update_origins" not in overrides and _env_bool(env.get("MOTU_EXTERNAL_ONLY_MODEL"), False):
            config_kwargs["model_update_origins"] = frozenset({UpdateOrigin.EXTERNAL})

        config_kwargs.update(overrides)

        if "host" not in config_kwargs:
            raise MotuConfigError("MOTU_HOST is not set and no host was given")

        return cls(**config_kwargs)
