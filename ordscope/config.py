"""Shared configuration loader for ordscope."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".ordscope.yaml"
DEFAULT_COOKIE_PATH = Path.home() / ".bitcoin" / ".cookie"
DEFAULT_RPC_PORT = 8332
_CONFIG_PATH_OVERRIDE: Path | None = None


@dataclass
class RPCConfig:
    """Configuration container for Bitcoin Core RPC connection details."""

    user: str
    password: str
    host: str = "127.0.0.1"
    port: int = DEFAULT_RPC_PORT
    use_https: bool = False

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host}:{self.port}"


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
        raise ConfigurationError(f"Expected {path} to contain a YAML object with an 'rpc' section")
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


def _coerce_port(raw: Any, *, source: str) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid port in {source}: {raw}") from exc


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _env(env_map: Mapping[str, str], *names: str) -> str | None:
    for name in names:
        value = env_map.get(name)
        if value:
            return value
    return None


def _parse_endpoint(raw: str | None) -> tuple[str | None, int | None, bool | None]:
    if not raw:
        return None, None, None
    has_scheme = "://" in raw
    parsed = urlparse(raw if has_scheme else f"http://{raw}")
    if not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL: {raw}")
    try:
        port = parsed.port
    except ValueError as exc:
        raise ConfigurationError(f"Invalid port in RPC endpoint URL: {raw}") from exc
    use_https = parsed.scheme.lower() == "https" if has_scheme else None
    return parsed.hostname, port, use_https


def read_cookie_file(path: str | Path) -> tuple[str, str]:
    """Read ``user:password`` credentials from a Bitcoin Core cookie file."""

    cookie_path = Path(path).expanduser()
    try:
        raw = cookie_path.read_text().strip()
    except OSError as exc:
        raise ConfigurationError(f"Cannot read RPC cookie file {cookie_path}: {exc}") from exc
    user, sep, password = raw.partition(":")
    if not sep or not user or not password:
        raise ConfigurationError(f"Malformed RPC cookie file {cookie_path}; expected user:password")
    return user, password


def load_rpc_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    default_cookie_path: Path | None = None,
) -> RPCConfig:
    """Load RPC configuration from overrides, environment variables and YAML.

    Credentials come from an explicit user/password pair or from a cookie
    file. When neither is configured, the node's default cookie file is tried
    before giving up.
    """

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    rpc_section = file_config.get("rpc", {}) if isinstance(file_config, dict) else {}
    if rpc_section and not isinstance(rpc_section, dict):
        raise ConfigurationError(f"Expected 'rpc' to be a mapping in {path}")
    rpc_section = rpc_section or {}

    override_map = dict(overrides or {})

    env_user = _env(env_map, "BITCOIN_RPC_USER", "BITCOIN_USER")
    env_password = _env(env_map, "BITCOIN_RPC_PASSWORD", "BITCOIN_PASS")
    env_cookie = _env(env_map, "BITCOIN_RPC_COOKIE", "BITCOIN_COOKIE")
    env_port = _coerce_port(_env(env_map, "BITCOIN_RPC_PORT"), source="environment")
    env_use_https = _coerce_bool(_env(env_map, "BITCOIN_RPC_USE_HTTPS"))
    env_endpoint = _env(env_map, "BITCOIN_RPC_URL", "BITCOIN_RPC_ENDPOINT")
    env_host = _env(env_map, "BITCOIN_RPC_HOST")
    legacy_host = _env(env_map, "BITCOIN_HOST")
    if legacy_host and not env_endpoint:
        # BITCOIN_HOST may hold a full URL or host[:port].
        env_endpoint = legacy_host

    endpoint_host, endpoint_port, endpoint_use_https = _parse_endpoint(
        _first_value(override_map.get("endpoint"), env_endpoint, rpc_section.get("endpoint"))
    )

    resolved_user = _first_value(override_map.get("user"), env_user, rpc_section.get("user"))
    resolved_password = _first_value(
        override_map.get("password"), env_password, rpc_section.get("password")
    )
    if not resolved_user or not resolved_password:
        cookie = _first_value(override_map.get("cookie"), env_cookie, rpc_section.get("cookie"))
        if cookie is None:
            fallback = default_cookie_path or DEFAULT_COOKIE_PATH
            if fallback.exists():
                cookie = fallback
        if cookie is None:
            raise ConfigurationError(
                "RPC credentials must be provided via BITCOIN_RPC_* environment variables, "
                "a cookie file, or the 'rpc' section of a config file"
            )
        resolved_user, resolved_password = read_cookie_file(cookie)

    resolved_host = _first_value(
        override_map.get("host"), endpoint_host, env_host, rpc_section.get("host"), "127.0.0.1"
    )
    resolved_port = _first_value(
        _coerce_port(override_map.get("port"), source="overrides"),
        endpoint_port,
        env_port,
        _coerce_port(rpc_section.get("port"), source=f"{path} rpc.port"),
        DEFAULT_RPC_PORT,
    )
    resolved_use_https = _first_value(
        _coerce_bool(override_map.get("use_https")),
        endpoint_use_https,
        env_use_https,
        _coerce_bool(rpc_section.get("use_https")),
        False,
    )

    return RPCConfig(
        user=str(resolved_user),
        password=str(resolved_password),
        host=resolved_host,
        port=resolved_port,
        use_https=bool(resolved_use_https),
    )
