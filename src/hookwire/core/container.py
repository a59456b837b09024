"""Dependency injection container with type-hint autowiring.

The container is the lookup table for everything the engine builds: module,
handler and callback descriptors are stored under their tokens, services
under their class paths, and configuration values under plain string keys.

Resolution rules:
    - Values are returned as registered
    - Classes are constructed with their constructor parameters injected
      from type hints; unregistered concrete classes are autowired
    - Factories are called with injection and their result returned
    - Aliases resolve the target key
    - ``Optional[X]`` parameters receive ``None`` when ``X`` is unavailable
    - Singletons (the default) are memoized on first resolution

A key that is requested again while it is still being built raises
``CircularDependencyError`` with the full chain.

Example:
    >>> container = Container()
    >>> container.set("app.id", "shop")
    >>> container.bind(Mailer, SmtpMailer)
    >>> container.get(Mailer) is container.get(Mailer)
    True
    >>> container.call(send_welcome, "jane@example.com")
"""

from __future__ import annotations

import builtins
import inspect
import typing
from contextlib import contextmanager
from types import UnionType
from typing import Any, Callable, Iterator, Union

from .errors import CircularDependencyError, HookwireError, InjectionError, ResolutionError
from .registry import Binding, BindingKind, BindingRegistry, Scope, normalize_key

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


class Container:
    """Dependency injection container.

    Provides dict-like access (``container[key]``) alongside the explicit
    ``has``/``get``/``set``/``make``/``call`` operations the hook engine uses.
    """

    def __init__(self):
        self.registry = BindingRegistry()
        self._instances: dict[str, Any] = {}
        self._resolving: list[str] = []

    # Dict-like interface

    def __setitem__(self, key: str | type, provider: Any) -> None:
        self.bind(key, provider)

    def __getitem__(self, key: str | type) -> Any:
        return self.get(key)

    def __contains__(self, key: str | type) -> bool:
        return self.has(key)

    def __delitem__(self, key: str | type) -> None:
        string_key = normalize_key(key)
        self._instances.pop(string_key, None)
        self.registry.remove(string_key)

    # Registration

    def bind(
        self,
        key: str | type,
        provider: Any = None,
        *,
        scope: Scope = Scope.SINGLETON,
    ) -> Binding:
        """Register a provider.

        Args:
            key: String key or class
            provider: Value, class, factory or definition marker. Defaults to
                the key itself when the key is a class.
            scope: Singleton (memoized) or transient
        """
        if provider is None and isinstance(key, type):
            provider = key

        binding = self.registry.register(key, provider, scope=scope)
        self._instances.pop(binding.key, None)
        return binding

    def singleton(self, key: str | type, provider: Any = None, **kwargs) -> Binding:
        return self.bind(key, provider, scope=Scope.SINGLETON, **kwargs)

    def transient(self, key: str | type, provider: Any = None, **kwargs) -> Binding:
        return self.bind(key, provider, scope=Scope.TRANSIENT, **kwargs)

    def define(self, definitions: typing.Mapping[Any, Any]) -> None:
        """Register every key/provider pair of ``definitions``."""
        for key, provider in definitions.items():
            self.bind(key, provider)

    def set(self, key: str | type, value: Any) -> None:
        """Store ``value`` as-is under ``key``."""
        string_key = normalize_key(key)
        self.registry.remove(string_key)
        self._instances[string_key] = value

    # Resolution

    def has(self, key: str | type) -> bool:
        """Check whether ``key`` is explicitly known to the container."""
        string_key = normalize_key(key)
        return string_key in self._instances or self.registry.has(string_key)

    def can_resolve(self, key: Any) -> bool:
        """Check whether ``key`` is known or can be autowired."""
        if isinstance(key, (str, type)) and self.has(key):
            return True
        return self._autowirable(key)

    def get(self, key: str | type) -> Any:
        """Resolve ``key``, memoizing singletons.

        Raises:
            ResolutionError: If the key is unknown and cannot be autowired
            CircularDependencyError: If the key is already being resolved
        """
        string_key = normalize_key(key)

        if string_key in self._instances:
            return self._instances[string_key]

        binding = self._binding_for(key, string_key)

        with self._resolving_key(string_key):
            instance = self._build(binding, (), {})

        if binding.scope == Scope.SINGLETON:
            self._instances[string_key] = instance

        return instance

    def make(self, key: str | type, *args, **overrides) -> Any:
        """Build a fresh instance of ``key``, bypassing the singleton cache.

        Positional ``args`` and keyword ``overrides`` take precedence over
        injected parameters.
        """
        string_key = normalize_key(key)
        binding = self._binding_for(key, string_key)

        with self._resolving_key(string_key):
            return self._build(binding, args, overrides)

    def call(self, target: Callable | tuple[Any, str], *args, **kwargs) -> Any:
        """Call ``target`` with its missing parameters injected.

        ``target`` may be a callable or a ``(key, method_name)`` pair, in
        which case the key is resolved first. Positional arguments beyond
        what the callable accepts are dropped.
        """
        if isinstance(target, tuple):
            owner, method = target
            instance = owner if not isinstance(owner, (str, type)) else self.get(owner)
            target = getattr(instance, method)

        call_args, call_kwargs = self._arguments(target, args, kwargs)
        return target(*call_args, **call_kwargs)

    def clear(self) -> None:
        self.registry.clear()
        self._instances.clear()
        self._resolving.clear()

    # Internals

    def _binding_for(self, key: str | type, string_key: str) -> Binding:
        if self.registry.has(string_key):
            return self.registry.get(string_key)

        if self._autowirable(key):
            return Binding(key=string_key, kind=BindingKind.CLASS, provider=key)

        raise ResolutionError(f"'{string_key}' is not registered and cannot be autowired", service_key=string_key)

    @contextmanager
    def _resolving_key(self, string_key: str) -> Iterator[None]:
        if string_key in self._resolving:
            start = self._resolving.index(string_key)
            raise CircularDependencyError(self._resolving[start:] + [string_key])

        self._resolving.append(string_key)
        try:
            yield
        finally:
            self._resolving.pop()

    def _build(self, binding: Binding, args: tuple, overrides: dict[str, Any]) -> Any:
        provider = binding.provider

        if binding.kind == BindingKind.VALUE:
            return provider
        if binding.kind == BindingKind.ALIAS:
            return self.make(provider, *args, **overrides) if args or overrides else self.get(provider)

        try:
            call_args, call_kwargs = self._arguments(provider, args, overrides)
            return provider(*call_args, **call_kwargs)
        except HookwireError:
            raise
        except Exception as e:
            raise ResolutionError(
                f"Failed to build '{binding.key}': {e}", service_key=binding.key, cause=e
            ) from e

    def _arguments(self, func: Callable, args: tuple, kwargs: dict[str, Any]) -> tuple[tuple, dict]:
        """Work out the final positional and keyword arguments for ``func``."""
        try:
            signature = inspect.signature(func)
        except (TypeError, ValueError):
            return args, kwargs

        params = list(signature.parameters.values())
        positional = [p for p in params if p.kind in _POSITIONAL]
        var_positional = any(p.kind == inspect.Parameter.VAR_POSITIONAL for p in params)
        var_keyword = any(p.kind == inspect.Parameter.VAR_KEYWORD for p in params)

        if not var_positional:
            args = args[: len(positional)]

        hints = _type_hints(func)
        final_kwargs: dict[str, Any] = {}

        for index, param in enumerate(params):
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue
            if param.kind in _POSITIONAL and index < len(args):
                continue

            if param.name in kwargs:
                final_kwargs[param.name] = kwargs[param.name]
                continue

            hint = hints.get(param.name, param.annotation)
            if self._inject(param, hint, final_kwargs):
                continue

            if param.default is inspect.Parameter.empty:
                raise InjectionError(
                    f"Cannot inject parameter '{param.name}' of {getattr(func, '__qualname__', func)}",
                    parameter_name=param.name,
                    type_hint=hint,
                )

        if var_keyword:
            final_kwargs.update({k: v for k, v in kwargs.items() if k not in final_kwargs})

        return args, final_kwargs

    def _inject(self, param: inspect.Parameter, hint: Any, out: dict[str, Any]) -> bool:
        if hint is inspect.Parameter.empty or hint is Any:
            return False

        inner = _optional_inner(hint)
        if inner is not None:
            if self.can_resolve(inner):
                out[param.name] = self.get(inner)
            elif param.default is inspect.Parameter.empty:
                out[param.name] = None
            return True

        if isinstance(hint, str):
            if self.has(hint):
                out[param.name] = self.get(hint)
                return True
            return False

        if isinstance(hint, type) and self.can_resolve(hint):
            out[param.name] = self.get(hint)
            return True

        return False

    def _autowirable(self, key: Any) -> bool:
        if not isinstance(key, type):
            return False
        if key.__module__ == builtins.__name__ or key.__module__ == "typing":
            return False
        if inspect.isabstract(key) or getattr(key, "_is_protocol", False):
            return False
        return True


def _type_hints(func: Callable) -> dict[str, Any]:
    target = func.__init__ if inspect.isclass(func) else func
    try:
        return typing.get_type_hints(target)
    except Exception:
        return {}


def _optional_inner(hint: Any) -> Any:
    """Get ``X`` from ``Optional[X]`` / ``X | None``, else None."""
    origin = typing.get_origin(hint)
    if origin is not Union and origin is not UnionType:
        return None

    members = [arg for arg in typing.get_args(hint) if arg is not type(None)]
    if len(members) == 1 and len(typing.get_args(hint)) == 2:
        return members[0]
    return None
