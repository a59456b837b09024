"""Application configuration.

``AppConfig`` holds every setting the engine reads. It can be built
directly, or merged from configuration sources in priority order:

    >>> config = AppConfig.load(
    ...     EnvironmentSource(),              # HOOKWIRE_ENV, HOOKWIRE_DEBUG, ...
    ...     YamlSource("hookwire.yaml"),
    ...     id="shop",
    ... )

Keyword overrides win over sources; earlier sources win over later ones.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from .errors import ConfigurationError
from .tokens import IdFactory

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


class ConfigSource(ABC):
    """Base class for configuration sources."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        pass


class DictSource(ConfigSource):
    """Configuration source from a mapping."""

    def __init__(self, data: dict[str, Any]):
        self._data = dict(data)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)


class EnvironmentSource(ConfigSource):
    """Configuration source from environment variables."""

    def __init__(self, prefix: str = "HOOKWIRE_", environ: dict[str, str] | None = None):
        self.prefix = prefix
        self._environ = os.environ if environ is None else environ

    def get(self, key: str, default: Any = None) -> Any:
        env_key = f"{self.prefix}{key.upper()}"
        return self._environ.get(env_key, default)


class YamlSource(ConfigSource):
    """Configuration source from YAML files.

    Keys are looked up at the top level, or under ``section`` when given.
    A missing file is an empty source.
    """

    def __init__(self, file_path: str | Path, section: str | None = None):
        self.file_path = Path(file_path)
        self.section = section
        self._data: dict[str, Any] = {}
        self._load()

    def _load(self):
        """Load configuration from file."""
        if not self.file_path.exists():
            return

        try:
            with open(self.file_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.file_path}: {e}") from e

        if self.section:
            data = data.get(self.section) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {self.file_path} must be a mapping")

        self._data = data

    def get(self, key: str, default: Any = None) -> Any:
        # Support nested keys like "constants.API_URL"
        value = self._data

        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value


@dataclass
class AppConfig:
    """Application settings.

    Attributes:
        id: Application id, used in event names and log context
        version: Application version; a cache built for another version is discarded
        env: Environment name
        debug: Log a lifecycle summary on shutdown
        cache: Use the definition cache. Defaults to ``env == "production"``.
        cache_dir: Directory holding the definition cache
        snapshot: Deterministic ids, for reproducible event names
        trace: Trace-log lifecycle decisions: True, False, or a list of
            class paths
        constants: Values for ``!const:`` parameter references
        shutdown_event: Event fired by ``App.shutdown``
        uuid: Application instance id
    """

    id: str = "hookwire"
    version: str = "0.0.0"
    env: str = "production"
    debug: bool = False
    cache: bool | None = None
    cache_dir: Path | None = None
    snapshot: bool = False
    trace: bool | list[str] = False
    constants: dict[str, Any] = field(default_factory=dict)
    shutdown_event: str = "shutdown"
    uuid: str = ""

    def __post_init__(self):
        if not self.id:
            raise ConfigurationError("Application id must not be empty")

        if self.cache is None:
            self.cache = self.env == "production"
        if self.cache_dir is None:
            self.cache_dir = Path(".cache") / self.id
        self.cache_dir = Path(self.cache_dir)

        if not self.uuid:
            self.uuid = IdFactory(self.snapshot).get(self.id)

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    def can_trace(self, classname: str, trace: bool = False) -> bool:
        """Check whether lifecycle decisions of ``classname`` are trace-logged."""
        if trace or self.trace is True:
            return True
        return isinstance(self.trace, list) and classname in self.trace

    @classmethod
    def load(cls, *sources: ConfigSource, **overrides: Any) -> AppConfig:
        """Build a configuration from sources and keyword overrides."""
        values: dict[str, Any] = {}

        for f in fields(cls):
            if f.name in overrides:
                values[f.name] = overrides[f.name]
                continue

            for source in sources:
                value = source.get(f.name)
                if value is not None:
                    values[f.name] = _coerce(f.name, value)
                    break

        logger.debug(f"Configuration loaded from {len(sources)} source(s)")
        return cls(**values)


def _coerce(name: str, value: Any) -> Any:
    """Convert string values read from the environment."""
    if not isinstance(value, str):
        return value

    if name in ("debug", "cache", "snapshot"):
        return _boolean(name, value)
    if name == "trace":
        if value.strip().lower() in _TRUTHY | _FALSY:
            return _boolean(name, value)
        return [item.strip() for item in value.split(",") if item.strip()]
    if name == "constants":
        loaded = yaml.safe_load(value)
        if not isinstance(loaded, dict):
            raise ConfigurationError("constants must be a mapping")
        return loaded
    return value


def _boolean(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigurationError(f"Invalid boolean for {name}: {value!r}")
