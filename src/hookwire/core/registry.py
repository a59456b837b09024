"""Binding metadata and registry for the dependency injection container.

This module implements the binding registry, the single source of truth for
every key the container knows how to provide. Module ``configure()`` methods
return plain mappings of keys to providers; the registry normalizes them into
``Binding`` records.

Classes:
    Scope: Binding lifecycle (singleton or transient)
    BindingKind: How a binding produces its value
    Definition: Explicit provider marker returned by the helper functions
    Binding: Complete metadata for a registered key
    BindingRegistry: Central registry of all bindings

Functions:
    value: Bind a literal, even when it is callable
    alias: Bind a key to another key
    factory: Bind a callable whose return value is the provided object
    autowire: Bind a class constructed with type-hint injection

Key Concepts:
    - Keys are strings; classes are normalized to their ``module:qualname`` path
    - Classes are autowired, plain callables are factories, anything else is a value
    - Bindings are singletons unless registered as transient

Example:
    >>> registry = BindingRegistry()
    >>> registry.register("app.debug", value(True))
    >>> registry.register(Mailer, SmtpMailer)
    >>> registry.register("mailer", alias(Mailer))
    >>> registry.get("mailer").kind
    <BindingKind.ALIAS: 'alias'>
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from .errors import ResolutionError
from .tokens import class_path


class Scope(Enum):
    """Binding lifecycle scopes."""

    SINGLETON = "singleton"  # One instance per container
    TRANSIENT = "transient"  # New instance for each resolution


class BindingKind(Enum):
    """How a binding produces its value."""

    VALUE = "value"
    CLASS = "class"
    FACTORY = "factory"
    ALIAS = "alias"


@dataclass(frozen=True)
class Definition:
    """Explicit provider marker."""

    kind: BindingKind
    target: Any


def value(target: Any) -> Definition:
    return Definition(BindingKind.VALUE, target)


def alias(target: str | type) -> Definition:
    return Definition(BindingKind.ALIAS, normalize_key(target))


def factory(target: Callable[..., Any]) -> Definition:
    return Definition(BindingKind.FACTORY, target)


def autowire(target: type) -> Definition:
    return Definition(BindingKind.CLASS, target)


def normalize_key(key: str | type) -> str:
    """Normalize a key to its string form."""
    if isinstance(key, str):
        return key
    if isinstance(key, type):
        return class_path(key)
    raise ResolutionError(f"Binding key must be a string or class, got {type(key).__name__}")


@dataclass
class Binding:
    """Complete metadata for a registered key.

    Attributes:
        key: Normalized string key
        kind: How the provider is turned into a value
        provider: The literal, class, factory or target key
        scope: Lifecycle of the provided value
    """

    key: str
    kind: BindingKind
    provider: Any
    scope: Scope = Scope.SINGLETON

    @classmethod
    def create(cls, key: str, provider: Any, **kwargs) -> Binding:
        """Create a binding, detecting the kind from the provider."""
        if isinstance(provider, Definition):
            return cls(key=key, kind=provider.kind, provider=provider.target, **kwargs)
        if inspect.isclass(provider):
            return cls(key=key, kind=BindingKind.CLASS, provider=provider, **kwargs)
        if callable(provider):
            return cls(key=key, kind=BindingKind.FACTORY, provider=provider, **kwargs)
        return cls(key=key, kind=BindingKind.VALUE, provider=provider, **kwargs)


class BindingRegistry:
    """Central registry for all bindings.

    Features:
        - String-based keys, classes normalized to their path
        - Later registrations override earlier ones, as module configuration
          is merged in import order
    """

    def __init__(self):
        self._bindings: dict[str, Binding] = {}

    def register(
        self,
        key: str | type,
        provider: Any,
        *,
        scope: Scope = Scope.SINGLETON,
    ) -> Binding:
        """Register a provider under ``key``.

        Args:
            key: Binding key (string) or class (converted to its path)
            provider: Literal, class, factory or ``Definition`` marker
            scope: Lifecycle of the provided value

        Returns:
            The created Binding
        """
        string_key = normalize_key(key)

        binding = Binding.create(string_key, provider, scope=scope)
        self._bindings[string_key] = binding
        return binding

    def get(self, key: str | type) -> Binding:
        """Get a binding by key.

        Raises:
            KeyError: If the key is not registered
        """
        string_key = normalize_key(key)

        if string_key not in self._bindings:
            raise KeyError(f"Binding '{string_key}' not registered")

        return self._bindings[string_key]

    def has(self, key: str | type) -> bool:
        return normalize_key(key) in self._bindings

    def remove(self, key: str | type) -> bool:
        string_key = normalize_key(key)

        if string_key not in self._bindings:
            return False

        del self._bindings[string_key]
        return True

    def keys(self) -> list[str]:
        return list(self._bindings)

    def list_all(self) -> list[Binding]:
        return list(self._bindings.values())

    def clear(self) -> None:
        self._bindings.clear()

    def __contains__(self, key: str | type) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        return len(self._bindings)
