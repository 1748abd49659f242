"""Shared configuration loader for creditcoin-cli."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse, urlunparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".creditcoin-cli.yaml"
DEFAULT_ENDPOINT = "ws://127.0.0.1:9944"
DEFAULT_SURI = "//Alice"
DEFAULT_SS58_FORMAT = 42
DEFAULT_TIMEOUT = 30.0
_CONFIG_PATH_OVERRIDE: Path | None = None

_HTTP_SCHEME_FOR_WS = {"ws": "http", "wss": "https"}


@dataclass
class NodeConfig:
    """Connection and signing details for a Creditcoin node."""

    endpoint: str = DEFAULT_ENDPOINT
    rpc_url: str | None = None
    suri: str = DEFAULT_SURI
    sudo_suri: str = DEFAULT_SURI
    ss58_format: int = DEFAULT_SS58_FORMAT
    legacy_weights: bool = False
    timeout: float = DEFAULT_TIMEOUT

    @property
    def http_url(self) -> str:
        """HTTP JSON-RPC endpoint used for read-only queries.

        Substrate nodes serve HTTP and websocket RPC on the same port, so the
        websocket endpoint is reused with its scheme swapped unless an explicit
        ``rpc_url`` was configured.
        """

        if self.rpc_url:
            return self.rpc_url
        parsed = urlparse(self.endpoint)
        scheme = _HTTP_SCHEME_FOR_WS.get(parsed.scheme.lower(), parsed.scheme)
        return urlunparse(parsed._replace(scheme=scheme))


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with a 'node' section")
    return loaded


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None


def _coerce_int(raw: Any, *, source: str) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid integer in {source}: {raw}") from exc


def _coerce_float(raw: Any, *, source: str) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid number in {source}: {raw}") from exc
    if value <= 0:
        raise ConfigurationError(f"Timeout in {source} must be positive: {raw}")
    return value


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _validate_url(raw: str, *, schemes: set[str], label: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme.lower() not in schemes or not parsed.hostname:
        allowed = "/".join(sorted(schemes))
        raise ConfigurationError(f"Invalid {label} URL (expected {allowed}://host:port): {raw}")
    return raw


def load_node_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> NodeConfig:
    """Load node configuration from CLI overrides, environment and optional YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    node_section = file_config.get("node", {}) if isinstance(file_config, dict) else {}
    if node_section is None:
        node_section = {}
    if not isinstance(node_section, dict):
        raise ConfigurationError(f"Expected 'node' to be a mapping in {path}")

    override_map = {key: value for key, value in (overrides or {}).items() if value is not None}

    endpoint = _first_value(
        override_map.get("endpoint"),
        env_map.get("CTC_ENDPOINT"),
        node_section.get("endpoint"),
        DEFAULT_ENDPOINT,
    )
    rpc_url = _first_value(
        override_map.get("rpc_url"), env_map.get("CTC_RPC_URL"), node_section.get("rpc_url")
    )
    suri = _first_value(
        override_map.get("suri"), env_map.get("CTC_SURI"), node_section.get("suri"), DEFAULT_SURI
    )
    sudo_suri = _first_value(
        override_map.get("sudo_suri"),
        env_map.get("CTC_SUDO_SURI"),
        node_section.get("sudo_suri"),
        DEFAULT_SURI,
    )
    ss58_format = _first_value(
        _coerce_int(override_map.get("ss58_format"), source="overrides"),
        _coerce_int(env_map.get("CTC_SS58_FORMAT"), source="environment"),
        _coerce_int(node_section.get("ss58_format"), source=f"{path} node.ss58_format"),
        DEFAULT_SS58_FORMAT,
    )
    legacy_weights = _first_value(
        _coerce_bool(override_map.get("legacy_weights")),
        _coerce_bool(env_map.get("CTC_LEGACY_WEIGHTS")),
        _coerce_bool(node_section.get("legacy_weights")),
        False,
    )
    timeout = _first_value(
        _coerce_float(override_map.get("timeout"), source="overrides"),
        _coerce_float(env_map.get("CTC_RPC_TIMEOUT"), source="environment"),
        _coerce_float(node_section.get("timeout"), source=f"{path} node.timeout"),
        DEFAULT_TIMEOUT,
    )

    _validate_url(str(endpoint), schemes={"ws", "wss"}, label="node endpoint")
    if rpc_url is not None:
        _validate_url(str(rpc_url), schemes={"http", "https"}, label="RPC")

    return NodeConfig(
        endpoint=str(endpoint),
        rpc_url=str(rpc_url) if rpc_url is not None else None,
        suri=str(suri),
        sudo_suri=str(sudo_suri),
        ss58_format=ss58_format,
        legacy_weights=bool(legacy_weights),
        timeout=timeout,
    )
