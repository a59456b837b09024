"""hookwire - Declarative hook lifecycle engine for event-driven Python applications.

hookwire binds plain classes ("handlers") and their methods ("callbacks") to
a host event dispatcher, through a dependency injection container. Decorators
describe when a handler is constructed, which events its methods answer, in
what order, and in which execution contexts; no registration code is needed.

Key Features:
    - Modules importing modules, declaring handlers and container bindings
    - Handler strategies: immediate, early, deferred, lazy, just-in-time, user
    - Callback flags: proxied, once, loop-guarded, exception-safe
    - Dynamic callbacks hooked once per variable mixed into their event name
    - Context masks (frontend, admin, ajax, cron, rest, cli)
    - Cached definition maps that replay identically to live scans

Quick Start:
    >>> from hookwire import App, AppConfig, Invoke, filter, handler, module
    >>>
    >>> @handler(tag="init", priority=10)
    ... class Posts:
    ...     @filter("save_post", 20, invoke=Invoke.PROXIED | Invoke.SAFELY)
    ...     def on_save(self, post_id: int) -> int:
    ...         return post_id
    >>>
    >>> @module(handlers=[Posts])
    ... class Site:
    ...     pass
    >>>
    >>> app = App(Site, AppConfig(cache=False)).boot()
    >>> app.dispatcher.do_action("init")
    >>> app.dispatcher.apply_filters("save_post", 42)
    42
"""

__version__ = "0.1.0"

# Core exports
from hookwire.core.application import App, AppRegistry
from hookwire.core.config import AppConfig, EnvironmentSource, YamlSource
from hookwire.core.container import Container
from hookwire.core.context import Context, ContextEvaluator
from hookwire.core.decorators import action, dynamic_action, dynamic_filter, filter, handler, infuse, module
from hookwire.core.dispatcher import HookDispatcher
from hookwire.core.errors import (
    CircularDependencyError,
    HookwireError,
    InvalidDefinitionError,
    ResolutionError,
)
from hookwire.core.registry import alias, autowire, factory, value
from hookwire.core.types import Delegate, HandlerState, Invoke, Strategy

__all__ = [
    "App",
    "AppConfig",
    "AppRegistry",
    "CircularDependencyError",
    "Container",
    "Context",
    "ContextEvaluator",
    "Delegate",
    "EnvironmentSource",
    "HandlerState",
    "HookDispatcher",
    "HookwireError",
    "InvalidDefinitionError",
    "Invoke",
    "ResolutionError",
    "Strategy",
    "YamlSource",
    "__version__",
    "action",
    "alias",
    "autowire",
    "dynamic_action",
    "dynamic_filter",
    "factory",
    "filter",
    "handler",
    "infuse",
    "module",
    "value",
]
