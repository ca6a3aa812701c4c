"""
DAuth Configuration System

Configuration Sources (in order of precedence):
    1. Environment variables (DAUTH_*)
    2. Runtime overrides and YAML files (last write wins)
    3. Default values

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml

from dauth.hardening import ACCOUNT_NAME_PATTERN

T = TypeVar("T")


class ConfigError(Exception):
    """Configuration error."""
    pass


class ValidationError(ConfigError):
    """Configuration validation error."""
    pass


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding,
    validation, and change callbacks.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)
    _callbacks: List[Callable[[Optional[T], T], None]] = field(default_factory=list, repr=False)

    def get(self) -> T:
        if self.env_var and self.env_var in os.environ:
            value = self._coerce(os.environ[self.env_var])
            if self.validator and not self.validator(value):
                raise ValidationError(f"Invalid value for {self.env_var}: {value}")
            return value
        return self._value if self._value is not None else self.default

    def set(self, value: Any) -> None:
        if isinstance(value, str) and not isinstance(self.default, str):
            value = self._coerce(value)
        if self.validator and not self.validator(value):
            raise ValidationError(f"Invalid value for config: {value}")

        old_value = self._value
        self._value = value
        for callback in self._callbacks:
            callback(old_value, value)

    def reset(self) -> None:
        self._value = None

    def _coerce(self, value: str) -> T:
        """Coerce string value to the default's type."""
        target_type = type(self.default)
        try:
            if target_type == bool:
                return value.strip().lower() in ("true", "1", "yes", "on")  # type: ignore
            elif target_type == int:
                return int(value)  # type: ignore
            elif target_type == float:
                return float(value)  # type: ignore
            return value  # type: ignore
        except ValueError as e:
            raise ValidationError(f"Cannot coerce {value!r} to {target_type.__name__}") from e

    def on_change(self, callback: Callable[[Optional[T], T], None]) -> None:
        self._callbacks.append(callback)


@dataclass
class ContractConfig:
    """Identity of the contract itself."""
    account: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="dauth",
        env_var="DAUTH_CONTRACT_ACCOUNT",
        description="Account owning the global ork/user tables",
        validator=lambda x: isinstance(x, str) and bool(ACCOUNT_NAME_PATTERN.match(x)),
    ))


@dataclass
class StorageConfig:
    """Storage adapter selection."""
    backend: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="memory",
        env_var="DAUTH_STORAGE_BACKEND",
        description="Storage backend (memory, sqlite)",
        validator=lambda x: x in ("memory", "sqlite"),
    ))
    sqlite_path: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="./data/dauth.db",
        env_var="DAUTH_SQLITE_PATH",
        description="SQLite database file for the sqlite backend",
        validator=lambda x: isinstance(x, str) and len(x) > 0,
    ))


@dataclass
class SecurityConfig:
    """Input hardening."""
    strict_account_names: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=False,
        env_var="DAUTH_STRICT_ACCOUNT_NAMES",
        description="Require ledger account names (a-z, 1-5, '.', max 12 chars)",
    ))
    max_payload_length: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=65536,
        env_var="DAUTH_MAX_PAYLOAD_LENGTH",
        description="Maximum length of key, url and fragment strings",
        validator=lambda x: x > 0,
    ))


@dataclass
class AuditConfig:
    """Audit trail."""
    enabled: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="DAUTH_AUDIT_ENABLED",
        description="Record every action decision in the audit trail",
    ))
    max_events: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=10000,
        env_var="DAUTH_AUDIT_MAX_EVENTS",
        description="Maximum retained audit events",
        validator=lambda x: x > 0,
    ))


@dataclass
class ObservabilityConfig:
    """Logging."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="DAUTH_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="DAUTH_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))


@dataclass
class DAuthConfig:
    """Root configuration."""
    contract: ContractConfig = field(default_factory=ContractConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                return obj.get()
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Process-wide singleton; ``reset()`` restores defaults.
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ConfigManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._config = DAuthConfig()
        self._config_paths: List[Path] = []
        self._initialized = True

    @property
    def config(self) -> DAuthConfig:
        return self._config

    def reset(self) -> None:
        self._config = DAuthConfig()
        self._config_paths = []

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be a mapping: {path}")
        self._apply_dict(data)
        self._config_paths.append(path)

    def load_defaults(self) -> None:
        """Load ~/.dauth/config.yaml, then ./dauth.yaml, when present."""
        for path in (Path.home() / ".dauth" / "config.yaml", Path("dauth.yaml")):
            if path.exists():
                self.load_from_file(path)

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        def apply_to_config(config_obj: Any, values: Dict[str, Any], prefix: str) -> None:
            for key, value in values.items():
                path = f"{prefix}{key}"
                if not hasattr(config_obj, key):
                    raise ConfigError(f"Unknown config key: {path}")
                attr = getattr(config_obj, key)
                if isinstance(attr, ConfigValue):
                    attr.set(value)
                elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                    apply_to_config(attr, value, f"{path}.")
                else:
                    raise ConfigError(f"Invalid config section: {path}")

        apply_to_config(self._config, data, "")

    def _resolve(self, path: str) -> Any:
        obj: Any = self._config
        for part in path.split("."):
            if not hasattr(obj, part):
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def set(self, path: str, value: Any) -> None:
        """Set a value by dotted path, e.g. ``storage.backend``."""
        attr = self._resolve(path)
        if not isinstance(attr, ConfigValue):
            raise ConfigError(f"Invalid config path: {path}")
        attr.set(value)

    def get(self, path: str) -> Any:
        attr = self._resolve(path)
        if isinstance(attr, ConfigValue):
            return attr.get()
        raise ConfigError(f"Invalid config path: {path}")

    def validate(self) -> List[str]:
        """Returns a list of validation errors."""
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    value = obj.get()
                    if obj.validator and not obj.validator(value):
                        errors.append(f"{path}: validation failed for value {value}")
                except ConfigError as e:
                    errors.append(f"{path}: {e}")
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    field_path = f"{path}.{field_name}" if path else field_name
                    validate_config(getattr(obj, field_name), field_path)

        validate_config(self._config)
        return errors

    def export_schema(self) -> Dict[str, Any]:
        """Export configuration schema for documentation."""
        schema: Dict[str, Any] = {"properties": {}}

        def extract_schema(obj: Any, properties: Dict[str, Any]) -> None:
            if isinstance(obj, ConfigValue):
                properties["type"] = type(obj.default).__name__
                properties["default"] = str(obj.default)
                properties["description"] = obj.description
                if obj.env_var:
                    properties["env_var"] = obj.env_var
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    properties[field_name] = {}
                    extract_schema(getattr(obj, field_name), properties[field_name])

        extract_schema(self._config, schema["properties"])
        return schema


def get_config() -> DAuthConfig:
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    return ConfigManager()


def create_store(config: Optional[DAuthConfig] = None):
    """Build the storage adapter named by ``storage.backend``."""
    from dauth.storage import InMemoryStore, SqliteStore

    config = config or get_config()
    backend = config.storage.backend.get()
    if backend == "sqlite":
        return SqliteStore(config.storage.sqlite_path.get())
    if backend == "memory":
        return InMemoryStore()
    raise ConfigError(f"Unknown storage backend: {backend}")
