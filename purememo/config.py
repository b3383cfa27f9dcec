"""
PUREMEMO Configuration System

Configuration management with YAML files, environment variables,
validation, and runtime updates.

Configuration Sources (in order of precedence):
    1. Environment variables (PUREMEMO_*)
    2. Runtime overrides
    3. User config file (~/.purememo/config.yaml)
    4. Project config file (./purememo.yaml)
    5. Default values

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar, Union

import yaml
from jsonschema import Draft202012Validator

T = TypeVar("T")


class ConfigError(Exception):
    """Configuration error."""
    pass


class ConfigValidationError(ConfigError):
    """Configuration validation error."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        super().__init__(message)


_JSON_TYPES = {bool: "boolean", int: "integer", float: "number", str: "string", list: "array"}


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
    choices: Optional[Sequence[T]] = None
    _value: Optional[T] = field(default=None, repr=False)
    _callbacks: List[Callable[[T, T], None]] = field(default_factory=list, repr=False)

    def get(self) -> T:
        """
        Get the current value.

        An environment value that cannot be coerced or fails validation is
        ignored; validate() reports it.
        """
        if self.env_var:
            raw = os.environ.get(self.env_var)
            if raw is not None:
                value, problem = self._parse_env(raw)
                if problem is None:
                    return value

        return self._value if self._value is not None else self.default

    def env_error(self, raw: str) -> Optional[str]:
        """Why raw would be ignored as this value's environment setting."""
        return self._parse_env(raw)[1]

    def _parse_env(self, raw: str) -> Tuple[Optional[T], Optional[str]]:
        try:
            value = self._coerce(raw)
        except ValueError as e:
            return None, str(e)
        if not self.is_valid(value):
            return None, f"not an accepted value: {raw!r}"
        return value, None

    def set(self, value: T) -> None:
        """Set the value with validation."""
        if not self.is_valid(value):
            raise ConfigValidationError(f"Invalid value for config: {value!r}")

        old_value = self.get()
        self._value = value

        for callback in self._callbacks:
            callback(old_value, value)

    def reset(self) -> None:
        """Drop any runtime override."""
        self._value = None

    def is_valid(self, value: T) -> bool:
        if self.choices is not None and value not in self.choices:
            return False
        if self.validator and not self.validator(value):
            return False
        return True

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")  # type: ignore
        elif target_type == int:
            return int(value)  # type: ignore
        elif target_type == float:
            return float(value)  # type: ignore
        elif target_type == list:
            return value.split(",")  # type: ignore
        else:
            return value.lower() if self.choices is not None else value  # type: ignore

    def on_change(self, callback: Callable[[T, T], None]) -> None:
        """Register a change callback."""
        self._callbacks.append(callback)


@dataclass
class MemoConfig:
    """Configuration for memoized wrappers."""
    record_metrics: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="PUREMEMO_RECORD_METRICS",
        description="Count hits, misses, errors and invalidations on the registry",
    ))
    trace_calls: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=False,
        env_var="PUREMEMO_TRACE_CALLS",
        description="Log every hit and miss at debug level",
    ))


@dataclass
class ObservabilityConfig:
    """Configuration for Observability."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="warning",
        env_var="PUREMEMO_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        choices=("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="PUREMEMO_LOG_FORMAT",
        description="Log format (json, text)",
        choices=("json", "text"),
    ))


@dataclass
class PurememoConfig:
    """
    Root configuration for PUREMEMO.

    Aggregates all component configurations and provides
    loading/saving functionality.
    """
    memo: MemoConfig = field(default_factory=MemoConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                return obj.get()
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)

    def to_yaml(self) -> str:
        """Convert to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False)


def _walk_values(obj: Any, path: str = ""):
    if isinstance(obj, ConfigValue):
        yield path, obj
    elif hasattr(obj, "__dataclass_fields__"):
        for field_name in obj.__dataclass_fields__:
            field_path = f"{path}.{field_name}" if path else field_name
            yield from _walk_values(getattr(obj, field_name), field_path)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Thread-safe singleton that manages configuration lifecycle.
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ConfigManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._initialized = False
                    cls._instance = instance
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return
            self._config = PurememoConfig()
            self._config_paths: List[Path] = []
            self._watchers: List[Callable[[PurememoConfig], None]] = []
            self._initialized = True

    @property
    def config(self) -> PurememoConfig:
        """Get the current configuration."""
        return self._config

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

        if data:
            self.load_from_dict(data)
        if path not in self._config_paths:
            self._config_paths.append(path)

    def load_from_dict(self, data: Dict[str, Any]) -> None:
        """Validate a configuration document and apply it."""
        errors = self.validate_document(data)
        if errors:
            raise ConfigValidationError(
                "Configuration document failed validation: " + "; ".join(errors),
                errors,
            )
        self._apply_dict(data)

    def load_defaults(self) -> None:
        """Load default configuration files if they exist."""
        default_paths = [
            Path("purememo.yaml"),
            Path("config/purememo.yaml"),
            Path.home() / ".purememo" / "config.yaml",
        ]

        for path in default_paths:
            if path.exists():
                self.load_from_file(path)

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply dictionary values to configuration."""
        def apply_to_config(config_obj: Any, values: Dict[str, Any]) -> None:
            for key, value in values.items():
                if hasattr(config_obj, key):
                    attr = getattr(config_obj, key)
                    if isinstance(attr, ConfigValue):
                        attr.set(value)
                    elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                        apply_to_config(attr, value)

        apply_to_config(self._config, data)

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: config.set("memo.trace_calls", True)
        """
        attr = self._resolve(path)
        if isinstance(attr, ConfigValue):
            attr.set(value)
        else:
            raise ConfigError(f"Invalid config path: {path}")

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: config.get("observability.log_level")
        """
        obj = self._resolve(path)
        if isinstance(obj, ConfigValue):
            return obj.get()
        return obj

    def _resolve(self, path: str) -> Any:
        obj: Any = self._config
        for part in path.split("."):
            if not hasattr(obj, "__dataclass_fields__") or part not in obj.__dataclass_fields__:
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def watch(self, callback: Callable[[PurememoConfig], None]) -> None:
        """Register a callback for configuration changes."""
        self._watchers.append(callback)

    def reload(self) -> None:
        """Reload configuration from all loaded files."""
        for path in self._config_paths:
            if path.exists():
                self.load_from_file(path)

        for watcher in self._watchers:
            watcher(self._config)

    def reset(self) -> None:
        """Return every value to its default and forget loaded files."""
        for _, value in _walk_values(self._config):
            value.reset()
        self._config_paths.clear()

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        for path, obj in _walk_values(self._config):
            raw = os.environ.get(obj.env_var) if obj.env_var else None
            if raw is not None:
                problem = obj.env_error(raw)
                if problem is not None:
                    errors.append(f"{path}: {obj.env_var} ignored, {problem}")
            try:
                value = obj.get()
                if not obj.is_valid(value):
                    errors.append(f"{path}: validation failed for value {value}")
            except (TypeError, ValueError) as e:
                errors.append(f"{path}: {e}")

        return errors

    def validate_document(self, data: Any) -> List[str]:
        """Check a configuration document against the JSON schema."""
        validator = Draft202012Validator(self.export_json_schema())
        errors = []
        for err in sorted(validator.iter_errors(data), key=lambda e: list(e.path)):
            location = ".".join(str(p) for p in err.path) or "<root>"
            errors.append(f"{location}: {err.message}")
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

    def export_json_schema(self) -> Dict[str, Any]:
        """Export a JSON Schema (draft 2020-12) describing config documents."""
        def build(obj: Any) -> Dict[str, Any]:
            if isinstance(obj, ConfigValue):
                node: Dict[str, Any] = {
                    "type": _JSON_TYPES.get(type(obj.default), "string"),
                    "description": obj.description,
                }
                if obj.choices is not None:
                    node["enum"] = list(obj.choices)
                return node
            return {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    name: build(getattr(obj, name)) for name in obj.__dataclass_fields__
                },
            }

        schema = build(self._config)
        schema["$schema"] = "https://json-schema.org/draft/2020-12/schema"
        return schema


def get_config() -> PurememoConfig:
    """Get the current PUREMEMO configuration."""
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    """Get the configuration manager instance."""
    return ConfigManager()
