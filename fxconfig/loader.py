"""Loading of fxconfig configuration from files, environment and overrides."""

from __future__ import annotations

import copy
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from fractions import Fraction
from pathlib import Path
from typing import Any, Callable, Iterator

import yaml

from fxconfig.config import (
    Config,
    ConfigError,
    LoggingConfig,
    MSPConfig,
    NotificationsConfig,
    OrdererConfig,
    QueriesConfig,
    TLSConfig,
)

ENV_PREFIX = "FXCONFIG"

_THIRTY_SECONDS = timedelta(seconds=30)

_DEFAULTS: dict[str, Any] = {
    "logging.level": "error",
    "logging.format": "",
    "msp.localmspid": "",
    "msp.configpath": "",
    "tls.enabled": False,
    "tls.clientkey": "",
    "tls.clientcert": "",
    "tls.rootcerts": [],
    "tls.servernameoverride": "",
    "orderer.address": "",
    "orderer.connectiontimeout": _THIRTY_SECONDS,
    "orderer.channel": "mychannel",
    "queries.address": "",
    "queries.connectiontimeout": _THIRTY_SECONDS,
    "notifications.address": "",
    "notifications.connectiontimeout": _THIRTY_SECONDS,
    "notifications.waitingtimeout": _THIRTY_SECONDS,
}

_UNIT_MICROSECONDS = {
    "ns": Fraction(1, 1000),
    "us": Fraction(1),
    "µs": Fraction(1),
    "μs": Fraction(1),
    "ms": Fraction(1000),
    "s": Fraction(10**6),
    "m": Fraction(60 * 10**6),
    "h": Fraction(3600 * 10**6),
}
_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be read or decoded."""


def parse_duration(value: Any) -> timedelta:
    """Turn a duration string such as "1h30m" or "250ms", or nanoseconds, into a timedelta."""
    if isinstance(value, timedelta):
        return value
    if value is None:
        return timedelta(0)
    if isinstance(value, bool):
        raise ConfigLoadError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(microseconds=round(Fraction(value) / 1000))
    text = str(value).strip()
    sign = -1 if text.startswith("-") else 1
    body = text[1:] if text[:1] in ("+", "-") else text
    if body == "0":
        return timedelta(0)
    if not body:
        raise ConfigLoadError(f'time: invalid duration "{text}"')
    total = Fraction(0)
    pos = 0
    while pos < len(body):
        match = _DURATION_PART.match(body, pos)
        if match is None:
            raise ConfigLoadError(f'time: invalid duration "{text}"')
        total += Fraction(match.group(1)) * _UNIT_MICROSECONDS[match.group(2)]
        pos = match.end()
    return timedelta(microseconds=round(sign * total))


@dataclass
class _Settings:
    config_file: str | None = None
    overrides: dict[str, Any] = field(default_factory=dict)


Option = Callable[[_Settings], None]


def with_config_file(path: str | os.PathLike) -> Option:
    """Load this file instead of the user and project configuration files."""

    def apply(settings: _Settings) -> None:
        settings.config_file = os.fspath(path)

    return apply


def with_override(key: str, value: Any) -> Option:
    """Set a value, by dotted key, that takes precedence over every other source."""

    def apply(settings: _Settings) -> None:
        settings.overrides[key.lower()] = value

    return apply


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(v) for v in value]
    return value


def _read_yaml(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        reason = exc.strerror.lower() if exc.strerror else str(exc)
        raise ConfigLoadError(f"open {path}: {reason}") from exc
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"while parsing config: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError("config file must hold a mapping")
    return _lower_keys(data)


def _merge(dst: dict, src: dict) -> None:
    for key, value in src.items():
        if isinstance(value, dict) and isinstance(dst.get(key), dict):
            _merge(dst[key], value)
        else:
            dst[key] = copy.deepcopy(value)


def _get(tree: dict, path: str) -> Any:
    node: Any = tree
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def _set(tree: dict, path: str, value: Any) -> None:
    *parents, last = path.split(".")
    node = tree
    for part in parents:
        if not isinstance(node.get(part), dict):
            node[part] = {}
        node = node[part]
    node[last] = value


def _leaf_paths(tree: dict, prefix: str = "") -> Iterator[str]:
    for key, value in tree.items():
        if isinstance(value, dict):
            yield from _leaf_paths(value, f"{prefix}{key}.")
        else:
            yield f"{prefix}{key}"


def _env_name(path: str) -> str:
    return f"{ENV_PREFIX}_{path.upper().replace('.', '_').replace('-', '_')}"


def _merge_optional(tree: dict, path: Path, what: str) -> None:
    if not path.is_file():
        return
    try:
        _merge(tree, _read_yaml(path))
    except ConfigLoadError as exc:
        raise ConfigLoadError(f"error loading {what} config: {exc}") from exc


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (dict, list)):
        raise ConfigLoadError(f"expected a string, got {type(value).__name__}")
    return str(value)


def _to_bool(value: Any) -> bool:
    if isinstance(value, (bool, int, float)):
        return bool(value)
    if value == "" or value in _FALSE:
        return False
    if value in _TRUE:
        return True
    raise ConfigLoadError(f"cannot parse {value!r} as bool")


def _to_list(value: Any) -> list[str]:
    if value is None:
        return []
    return [_to_str(v) for v in value] if isinstance(value, list) else [_to_str(value)]


def _section(tree: dict, key: str) -> dict:
    value = tree.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigLoadError(f"'{key}' expected a map, got '{type(value).__name__}'")
    return value


def _tls(section: dict) -> TLSConfig:
    enabled = section.get("enabled")
    return TLSConfig(
        enabled=None if enabled is None else _to_bool(enabled),
        client_key_path=_to_str(section.get("clientkey")),
        client_cert_path=_to_str(section.get("clientcert")),
        root_cert_paths=_to_list(section.get("rootcerts")),
        server_name_override=_to_str(section.get("servernameoverride")),
    )


def _endpoint(section: dict) -> dict[str, Any]:
    return {
        "address": _to_str(section.get("address")),
        "connection_timeout": parse_duration(section.get("connectiontimeout")),
        "tls": _tls(_section(section, "tls")) if section.get("tls") is not None else None,
    }


def _decode(tree: dict) -> Config:
    logging = _section(tree, "logging")
    msp = _section(tree, "msp")
    orderer = _section(tree, "orderer")
    notifications = _section(tree, "notifications")
    return Config(
        logging=LoggingConfig(level=_to_str(logging.get("level")), format=_to_str(logging.get("format"))),
        msp=MSPConfig(
            local_msp_id=_to_str(msp.get("localmspid")),
            config_path=_to_str(msp.get("configpath")),
        ),
        tls=_tls(_section(tree, "tls")),
        orderer=OrdererConfig(**_endpoint(orderer), channel=_to_str(orderer.get("channel"))),
        queries=QueriesConfig(**_endpoint(_section(tree, "queries"))),
        notifications=NotificationsConfig(
            **_endpoint(notifications),
            waiting_timeout=parse_duration(notifications.get("waitingtimeout")),
        ),
    )


def load(*args: Option) -> Config:
    """Load configuration with TLS settings resolved.

    Precedence, lowest first: defaults, user file (~/.fxconfig/config.yaml),
    project file (.fxconfig/config.yaml), or instead of both an explicit file,
    then FXCONFIG_ environment variables, then overrides.
    """
    settings = _Settings()
    for option in args:
        option(settings)

    tree: dict = {}
    try:
        _merge_optional(tree, Path.home() / ".fxconfig" / "config.yaml", "user")
    except (RuntimeError, KeyError):
        pass
    _merge_optional(tree, Path(".fxconfig") / "config.yaml", "project")

    if settings.config_file is not None:
        try:
            tree = _read_yaml(Path(settings.config_file))
        except ConfigLoadError as exc:
            raise ConfigLoadError(f"error reading config file {settings.config_file}: {exc}") from exc

    for path, default in _DEFAULTS.items():
        if _get(tree, path) is None:
            _set(tree, path, copy.copy(default))

    for path in set(_DEFAULTS) | set(_leaf_paths(tree)):
        value = os.environ.get(_env_name(path))
        if value is not None:
            _set(tree, path, value)

    for key, value in settings.overrides.items():
        _set(tree, key, value)

    try:
        cfg = _decode(tree)
    except (ValueError, TypeError) as exc:
        if isinstance(exc, ConfigLoadError):
            raise
        raise ConfigLoadError(str(exc)) from exc

    cfg.resolve_tls()
    return cfg