"""Mirror configuration for raumtree."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from raumtree.exceptions import RaumtreeConfigError
from raumtree.tree.paths import PathKey


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    value = env.get(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise RaumtreeConfigError(f"{key} must be a boolean, got {value!r}")


def _env_number(env: Mapping[str, str], key: str, cast: type) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise RaumtreeConfigError(f"{key} must be a {cast.__name__}, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Broker settings for the topology event source.

    The provider bridge publishes ``{"event": ..., "data": ...}`` JSON
    envelopes on *topic*.
    """

    host: str = "localhost"
    port: int = 1883
    topic: str = "raumfeld/events"
    client_id: str = "raumtree"
    username: str | None = None
    password: str | None = None
    tls: bool = False
    keepalive: int = 60


@dataclasses.dataclass(frozen=True)
class MirrorConfig:
    """Reconciliation configuration.

    Parameters
    ----------
    root : str
        Root path segment every room node lives under.
    path_key : PathKey
        Whether room paths are keyed by room name (legacy layout) or by
        UDN (falls back to the name for rooms without a UDN).
    ascii_paths : bool
        Percent-encode non-ASCII characters in path segments.
    delete_on_null : bool
        Remove a leaf (value and descriptor) when the snapshot carries
        ``null`` for it.
    prune_stale : bool
        Delete room nodes under *root* that are absent from the snapshot.
    coalesce : bool
        Drop queued snapshots that a newer queued snapshot supersedes.
    backend_url : str or None
        Base URL of the HTTP object-tree API. ``None`` selects the
        in-memory tree.
    backend_token : str or None
        Bearer token for the HTTP object-tree API.
    backend_timeout : float
        Total per-request timeout in seconds for the HTTP backend.
    mqtt : MqttSettings
        Topology event source settings.
    """

    root: str = "rooms"
    path_key: PathKey = PathKey.NAME
    ascii_paths: bool = False
    delete_on_null: bool = True
    prune_stale: bool = True
    coalesce: bool = False
    backend_url: str | None = None
    backend_token: str | None = None
    backend_timeout: float = 10.0
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        root = self.root.strip()
        if not root or root.startswith(".") or root.endswith("."):
            raise RaumtreeConfigError(f"Invalid root path: {self.root!r}")
        if root != self.root:
            object.__setattr__(self, "root", root)
        if not isinstance(self.path_key, PathKey):
            try:
                object.__setattr__(self, "path_key", PathKey(str(self.path_key).strip().lower()))
            except ValueError as exc:
                raise RaumtreeConfigError(f"Unknown path key: {self.path_key!r}") from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> MirrorConfig:
        """Create configuration from ``RAUMTREE_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP = {
            "RAUMTREE_MQTT_HOST": "host",
            "RAUMTREE_MQTT_TOPIC": "topic",
            "RAUMTREE_MQTT_CLIENT_ID": "client_id",
            "RAUMTREE_MQTT_USERNAME": "username",
            "RAUMTREE_MQTT_PASSWORD": "password",
        }
        for env_key, field_name in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = val
        port = _env_number(env, "RAUMTREE_MQTT_PORT", int)
        if port is not None:
            mqtt_kwargs["port"] = port
        keepalive = _env_number(env, "RAUMTREE_MQTT_KEEPALIVE", int)
        if keepalive is not None:
            mqtt_kwargs["keepalive"] = keepalive
        if "RAUMTREE_MQTT_TLS" in env:
            mqtt_kwargs["tls"] = _env_bool(env, "RAUMTREE_MQTT_TLS", False)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        config_kwargs: dict[str, Any] = {"mqtt": MqttSettings(**mqtt_kwargs)}

        _ENV_CONFIG_MAP = {
            "RAUMTREE_ROOT": "root",
            "RAUMTREE_PATH_KEY": "path_key",
            "RAUMTREE_BACKEND_URL": "backend_url",
            "RAUMTREE_BACKEND_TOKEN": "backend_token",
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_BOOL_MAP = {
            "RAUMTREE_ASCII_PATHS": ("ascii_paths", False),
            "RAUMTREE_DELETE_ON_NULL": ("delete_on_null", True),
            "RAUMTREE_PRUNE_STALE": ("prune_stale", True),
            "RAUMTREE_COALESCE": ("coalesce", False),
        }
        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env, env_key, default)

        timeout = _env_number(env, "RAUMTREE_BACKEND_TIMEOUT", float)
        if timeout is not None and "backend_timeout" not in overrides:
            config_kwargs["backend_timeout"] = timeout

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
