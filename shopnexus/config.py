"""Application configuration: file loading, merging, environment overrides and validation."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import Field, dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

log = logging.getLogger(__name__)

ENV_PREFIX = "APP"
DEFAULT_CONFIG_PATHS = ("config/config.default.yml",)
FALLBACK_CONFIG_PATHS = ("config/config.production.yml", "config/config.dev.yml")

_REQUIRED = "required"
_GTE_0 = "gte=0"
_GTE_1 = "gte=1"
_REQUIRED_WITHOUT_URL = "required_without=Url"
_REQUIRED_IF_FILE_ENABLED = "required_if=FileEnabled true"
_ENVIRONMENTS = "oneof=dev staging production"
_LOG_LEVELS = "oneof=debug info warn error dpanic panic fatal"

_TRUE_STRINGS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_STRINGS = {"0", "f", "F", "FALSE", "false", "False"}


class ConfigError(Exception):
    """Raised when configuration cannot be loaded, decoded or validated."""


def _field(kind: Any, *rules: str, name: str | None = None) -> Any:
    """Declare a config field of the given type; its file key is the camelCase of its name."""
    metadata = {"rules": rules, "name": name, "kind": kind}
    if is_dataclass(kind):
        return field(default_factory=kind, metadata=metadata)
    return field(default=kind(), metadata=metadata)


def _key(f: Field) -> str:
    head, *rest = f.name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _name(f: Field) -> str:
    explicit = f.metadata["name"]
    if explicit:
        return explicit
    key = _key(f)
    return key[0].upper() + key[1:]


@dataclass
class JWT:
    secret: str = _field(str, _REQUIRED)
    access_token_duration: int = _field(int, _REQUIRED, _GTE_1)


@dataclass
class App:
    name: str = _field(str, _REQUIRED)
    jwt: JWT = _field(JWT, name="JWT")


@dataclass
class Log:
    level: str = _field(str, _LOG_LEVELS)
    stacktrace_level: str = _field(str, _LOG_LEVELS)
    file_enabled: bool = _field(bool)
    file_size: int = _field(int, _GTE_1)
    file_path: str = _field(str, _REQUIRED_IF_FILE_ENABLED)
    file_compress: bool = _field(bool)
    max_age: int = _field(int, _GTE_0)
    max_backups: int = _field(int, _GTE_0)


@dataclass
class Postgres:
    url: str = _field(str)
    host: str = _field(str, _REQUIRED_WITHOUT_URL)
    port: int = _field(int, _REQUIRED_WITHOUT_URL)
    username: str = _field(str, _REQUIRED_WITHOUT_URL)
    password: str = _field(str, _REQUIRED_WITHOUT_URL)
    database: str = _field(str, _REQUIRED_WITHOUT_URL)
    max_connections: int = _field(int, _GTE_1)
    max_idle_connections: int = _field(int, _GTE_0)
    max_conn_idle_time: int = _field(int, _GTE_0)
    log_query: bool = _field(bool)


@dataclass
class Redis:
    host: str = _field(str, _REQUIRED)
    port: str = _field(str, _REQUIRED)
    password: str = _field(str)
    db: int = _field(int, _GTE_0, name="DB")


@dataclass
class Config:
    env: str = _field(str, _REQUIRED, _ENVIRONMENTS)
    log: Log = _field(Log)
    app: App = _field(App)
    postgres: Postgres = _field(Postgres)
    redis: Redis = _field(Redis)

    def is_development(self) -> bool:
        return self.env in ("development", "dev")

    def is_production(self) -> bool:
        return self.env in ("production", "prod")

    def is_test(self) -> bool:
        return self.env == "test"


# ---------------------------------------------------------------- decoding


def _decode_error(path: str, detail: str) -> ConfigError:
    return ConfigError(f"Unable to decode config into struct: '{path}' {detail}")


def _coerce(value: Any, target: Any, path: str) -> Any:
    if is_dataclass(target):
        return _build(target, value, path)
    if target is str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float, str)):
            return str(value)
        raise _decode_error(path, f"expected a string, got {type(value).__name__}")
    if target is int:
        if value is None:
            return 0
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return 0
            for base in (0, 10):
                try:
                    return int(text, base)
                except ValueError:
                    continue
        raise _decode_error(path, f"cannot parse {value!r} as int")
    if target is bool:
        if value is None:
            return False
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            if value == "" or value in _FALSE_STRINGS:
                return False
            if value in _TRUE_STRINGS:
                return True
        raise _decode_error(path, f"cannot parse {value!r} as bool")
    return value


def _build(cls: type, data: Any, path: str) -> Any:
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise _decode_error(path, f"expected a map, got {type(data).__name__}")
    lowered = {str(key).lower(): value for key, value in data.items()}
    kwargs = {}
    for f in fields(cls):
        key = _key(f).lower()
        if key in lowered:
            kwargs[f.name] = _coerce(lowered[key], f.metadata["kind"], f"{path}.{_name(f)}")
    return cls(**kwargs)


def config_from_mapping(data: Mapping[str, Any]) -> Config:
    """Build a Config from a nested mapping keyed by the configuration file's names."""
    return _build(Config, data, "Config")


# -------------------------------------------------------------- validation


def _sibling(obj: Any, name: str) -> Any:
    for f in fields(obj):
        if _name(f) == name:
            return getattr(obj, f.name)
    raise ConfigError(f"unknown field {name!r} in {type(obj).__name__}")


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _rule_passes(obj: Any, tag: str, param: str, value: Any) -> bool:
    if tag == "required":
        return bool(value)
    if tag == "oneof":
        return _as_text(value) in param.split()
    if tag == "gte":
        return value >= float(param)
    if tag == "required_if":
        other, _, expected = param.partition(" ")
        if _as_text(_sibling(obj, other)) == expected:
            return bool(value)
        return True
    if tag == "required_without":
        if not _sibling(obj, param):
            return bool(value)
        return True
    raise ConfigError(f"unknown validation rule {tag!r}")


def _collect_errors(obj: Any, namespace: str, errors: list[str]) -> None:
    for f in fields(obj):
        value = getattr(obj, f.name)
        name = _name(f)
        key = f"{namespace}.{name}"
        if is_dataclass(value):
            _collect_errors(value, key, errors)
            continue
        for rule in f.metadata["rules"]:
            tag, _, param = rule.partition("=")
            if not _rule_passes(obj, tag, param, value):
                errors.append(f"Key: '{key}' Error:Field validation for '{name}' failed on the '{tag}' tag")
                break


def validate_config(cfg: Config) -> None:
    """Check every field rule; raise ConfigError listing all failures."""
    errors: list[str] = []
    _collect_errors(cfg, type(cfg).__name__, errors)
    if errors:
        raise ConfigError("validation errors: " + "; ".join(errors))


# ----------------------------------------------------------------- loading


def _lower_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {
        str(key).lower(): _lower_keys(value) if isinstance(value, Mapping) else value
        for key, value in data.items()
    }


def _merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def apply_env_overrides(data: Mapping[str, Any], environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Return a copy of data where each leaf key may be replaced by APP_<PATH> from environ."""
    env = os.environ if environ is None else environ

    def walk(node: Mapping[str, Any], prefix: str) -> dict[str, Any]:
        result = {}
        for key, value in node.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            if isinstance(value, Mapping):
                result[key] = walk(value, path)
                continue
            override = env.get(f"{ENV_PREFIX}_{path.replace('.', '_').upper()}")
            result[key] = override if override else value
        return result

    return walk(data, "")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot parse {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, Mapping):
        raise ConfigError(f"{path} does not hold a mapping")
    return _lower_keys(loaded)


def _load_default(base: Path) -> dict[str, Any]:
    for relative in DEFAULT_CONFIG_PATHS:
        path = base / relative
        if path.is_file():
            try:
                data = _read_yaml(path)
            except ConfigError:
                continue
            log.info("Loaded default config from: %s", relative)
            return data
    raise ConfigError("no default config file found")


def _load_config_file(base: Path, environ: Mapping[str, str]) -> dict[str, Any]:
    for variable in ("CONFIG_FILE", "APP_CONFIG_FILE"):
        explicit = environ.get(variable)
        if explicit:
            return _read_yaml(base / explicit)

    env = environ.get("APP_ENV") or "development"
    candidates = list(FALLBACK_CONFIG_PATHS)
    if env != "production":
        candidates = [f"config/config.{env}.yml", f"configs/config.{env}.yml", *candidates]

    last_error: ConfigError | None = None
    for relative in candidates:
        path = base / relative
        if path.is_file():
            try:
                data = _read_yaml(path)
            except ConfigError as exc:
                last_error = exc
                continue
            log.info("Loaded config from: %s", relative)
            return data
    raise ConfigError(f"no valid config file found, last error: {last_error}")


def load_config(environ: Mapping[str, str] | None = None, base_dir: str | os.PathLike[str] | None = None) -> Config:
    """Load defaults, merge the selected config file, apply APP_* overrides and validate."""
    env = dict(os.environ) if environ is None else environ
    base = Path.cwd() if base_dir is None else Path(base_dir)

    data: dict[str, Any] = {}
    try:
        data = _load_default(base)
    except ConfigError as exc:
        log.warning("Could not load default config: %s", exc)
    try:
        data = _merge(data, _load_config_file(base, env))
    except ConfigError as exc:
        log.warning("Could not load config file: %s", exc)

    cfg = config_from_mapping(apply_env_overrides(data, env))
    try:
        validate_config(cfg)
    except ConfigError as exc:
        raise ConfigError(f"Configuration validation failed: {exc}") from exc
    return cfg


_lock = threading.Lock()
_current: Config | None = None


def get_config() -> Config:
    """Return the process-wide configuration, loading it on first use."""
    global _current
    with _lock:
        if _current is None:
            _current = load_config()
        return _current


def reload_config() -> Config:
    """Load the configuration again and replace the process-wide instance."""
    global _current
    cfg = load_config()
    with _lock:
        _current = cfg
    return cfg