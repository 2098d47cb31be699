"""
Canvas Configuration System

Configuration management with YAML files, environment variables and
validation.

Configuration Sources (in order of precedence):
    1. Environment variables (COLOUR_*)
    2. Runtime overrides
    3. User config file (~/.colourcanvas/config.yaml)
    4. Project config file (./colourcanvas.yaml)
    5. Default values

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml

T = TypeVar("T")

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


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

    Supports default values, environment variable binding and validation.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)

    def get(self) -> T:
        """Get the current value."""
        if self.env_var and self.env_var in os.environ:
            return self._coerce(os.environ[self.env_var])
        return self._value if self._value is not None else self.default

    def set(self, value: Any) -> None:
        """Set the value with validation."""
        if isinstance(value, str) and not isinstance(self.default, str):
            value = self._coerce(value)
        if self.validator and not self.validator(value):
            raise ValidationError(f"Invalid value for config: {value}")
        self._value = value

    def reset(self) -> None:
        self._value = None

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")  # type: ignore
        elif target_type == int:
            try:
                return int(value)  # type: ignore
            except ValueError:
                raise ValidationError(f"Invalid integer for config: {value}") from None
        elif target_type == list:
            return value.split(",")  # type: ignore
        else:
            return value  # type: ignore


@dataclass
class ChannelConfig:
    """Where logs live and how they are named."""
    logs_dir: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="logs",
        env_var="COLOUR_LOGS_DIR",
        description="Directory holding <channel>.jsonl log files",
        validator=lambda x: bool(str(x).strip()),
    ))
    canvases_channel: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="Colour-Canvases",
        env_var="COLOUR_CANVASES_CHANNEL",
        description="Name of the canvases log",
        validator=lambda x: bool(str(x).strip()),
    ))
    vote_prefix: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="Colour-Vote-",
        env_var="COLOUR_VOTE_PREFIX",
        description="Prefix of per-canvas votes logs",
        validator=lambda x: bool(str(x).strip()),
    ))
    purchase_prefix: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="Colour-Purchase-",
        env_var="COLOUR_PURCHASE_PREFIX",
        description="Prefix of per-canvas purchases logs",
        validator=lambda x: bool(str(x).strip()),
    ))


@dataclass
class ObservabilityConfig:
    """Configuration for logging."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="warning",
        env_var="COLOUR_LOG_LEVEL",
        description="Log level (debug, info, warning, error, critical)",
        validator=lambda x: x in LOG_LEVELS,
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="COLOUR_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))


@dataclass
class CanvasConfig:
    """Root configuration."""
    channel: ChannelConfig = field(default_factory=ChannelConfig)
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
        return yaml.dump(self.to_dict(), default_flow_style=False)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Thread-safe singleton that manages configuration lifecycle.
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

        self._config = CanvasConfig()
        self._config_paths: List[Path] = []
        self._initialized = True

    @property
    def config(self) -> CanvasConfig:
        return self._config

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"Configuration file must hold a mapping: {path}")
        if data:
            self._apply_dict(data)
            self._config_paths.append(path)

    def load_defaults(self) -> None:
        """Load default configuration files if they exist."""
        default_paths = [
            Path("colourcanvas.yaml"),
            Path.home() / ".colourcanvas" / "config.yaml",
        ]

        for path in default_paths:
            if path.exists():
                self.load_from_file(path)

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        def apply_to_config(config_obj: Any, values: Dict[str, Any], prefix: str) -> None:
            for key, value in values.items():
                if not hasattr(config_obj, key):
                    raise ConfigError(f"Unknown config key: {prefix}{key}")
                attr = getattr(config_obj, key)
                if isinstance(attr, ConfigValue):
                    attr.set(value)
                elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                    apply_to_config(attr, value, f"{prefix}{key}.")

        apply_to_config(self._config, data, "")

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: config.set("channel.logs_dir", "/var/lib/colour")
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
            if not hasattr(obj, part):
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def reset(self) -> None:
        """Drop runtime overrides and forget loaded files."""
        self._config = CanvasConfig()
        self._config_paths = []

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
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


def get_config() -> CanvasConfig:
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    return ConfigManager()
