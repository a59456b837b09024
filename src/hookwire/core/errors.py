"""Exception hierarchy for clear error reporting in the hook engine.

Each exception type represents a specific failure mode with a clear message
and the contextual information needed to debug a misconfigured module graph.

Exception Hierarchy:
    HookwireError: Base exception for all hookwire errors
    ├── ResolutionError: Token or class resolution failures
    │   ├── CircularDependencyError: A token re-entered while still resolving
    │   └── InvalidDefinitionError: Missing class or malformed definition
    ├── InjectionError: A callable parameter could not be injected
    ├── LifecycleError: Illegal handler state transition
    ├── ConfigurationError: Invalid application configuration
    └── CacheError: Definition cache could not be read or written

Structural faults (circular dependencies, invalid definitions) are never
caught inside the engine. Context rejections are not errors at all, and
cache failures are logged and recovered from by the callers.

Example:
    >>> try:
    ...     app.boot()
    ... except CircularDependencyError as e:
    ...     print(" → ".join(e.cycle))
"""

from __future__ import annotations

from typing import Any


class HookwireError(Exception):
    """Base exception for all hookwire errors."""

    pass


class ResolutionError(HookwireError):
    """Raised when a token, class or binding cannot be resolved.

    This occurs when:
    - A key is not bound in the container and cannot be autowired
    - A hook token does not map to a decorated class
    - A dependency of a constructor cannot be satisfied
    """

    def __init__(self, message: str, service_key: str | None = None, cause: Exception | None = None):
        super().__init__(message)
        self.service_key = service_key
        self.cause = cause


class CircularDependencyError(ResolutionError):
    """Raised when a token is re-entered while still on the active stack.

    The ``cycle`` attribute holds the chain of tokens, starting at the first
    occurrence of the repeated token.
    """

    def __init__(self, cycle: list[Any]):
        self.cycle = [_name(item) for item in cycle]
        chain = list(self.cycle)
        if chain and chain[0] != chain[-1]:
            chain.append(chain[0])

        super().__init__(
            f"Circular dependency detected: {' → '.join(chain)}",
            service_key=self.cycle[0] if self.cycle else None,
        )


class InvalidDefinitionError(ResolutionError):
    """Raised when a referenced class or token does not exist.

    Also raised when a class is used as a module or handler but carries no
    hookwire declaration, or when a stored definition is malformed.
    """

    pass


class InjectionError(HookwireError):
    """Raised when a callable parameter cannot be injected."""

    def __init__(self, message: str, parameter_name: str | None = None, type_hint=None):
        super().__init__(message)
        self.parameter_name = parameter_name
        self.type_hint = type_hint


class LifecycleError(HookwireError):
    """Raised when a handler is driven through an illegal state transition."""

    pass


class ConfigurationError(HookwireError):
    """Raised when application configuration is invalid."""

    pass


class CacheError(HookwireError):
    """Raised when the definition cache cannot be read or written.

    Always recoverable: the compiler logs it and the application falls back
    to scanning the module graph.
    """

    def __init__(self, message: str, path: Any = None, cause: Exception | None = None):
        super().__init__(message)
        self.path = path
        self.cause = cause


def _name(item: Any) -> str:
    if isinstance(item, type):
        return item.__name__
    return str(item)
