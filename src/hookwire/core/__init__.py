"""Core components of the hookwire lifecycle engine.

Key Components:
    Decorators: @module, @handler, @action, @filter, @infuse
    App: Boots a module graph onto a container and dispatcher
    Container: Dependency injection container with type-hint autowiring
    HookDispatcher: Priority-ordered action/filter event dispatcher
    DependencyScanner / CacheCompiler: Build and cache definition maps
    HookFactory / Invoker: Resolve live hooks and drive their lifecycle
    ContextEvaluator: Gates hooks by execution context

Usage Example:
    >>> from hookwire.core import App, AppConfig, Strategy, filter, handler, module
    >>>
    >>> @handler(tag="init", strategy=Strategy.LAZY)
    ... class Titles:
    ...     @filter("the_title")
    ...     def shout(self, title: str) -> str:
    ...         return title.upper()
    >>>
    >>> @module(handlers=[Titles])
    ... class Site:
    ...     pass
    >>>
    >>> app = App(Site, AppConfig(cache=False)).boot()
"""

from hookwire.core.application import App, AppRegistry, CoreModule
from hookwire.core.compiler import CacheCompiler
from hookwire.core.config import AppConfig, ConfigSource, DictSource, EnvironmentSource, YamlSource
from hookwire.core.container import Container
from hookwire.core.context import Context, ContextEvaluator
from hookwire.core.decorators import action, filter, handler, infuse, module
from hookwire.core.definition import DefinitionMap
from hookwire.core.dispatcher import HookDispatcher
from hookwire.core.errors import (
    CacheError,
    CircularDependencyError,
    ConfigurationError,
    HookwireError,
    InjectionError,
    InvalidDefinitionError,
    LifecycleError,
    ResolutionError,
)
from hookwire.core.factory import HookFactory
from hookwire.core.hooks import Callback, Handler, Hook, Module
from hookwire.core.invoker import Invoker
from hookwire.core.metadata import CallbackSpec, HandlerSpec, ModuleSpec
from hookwire.core.registry import BindingRegistry, Scope, alias, autowire, factory, value
from hookwire.core.scanner import DependencyScanner
from hookwire.core.tokens import IdFactory
from hookwire.core.types import (
    AsyncConfigurable,
    CanInitialize,
    Delegate,
    HandlerState,
    Invoke,
    OnInitialize,
    Strategy,
)

__all__ = [
    # Application
    "App",
    "AppConfig",
    "AppRegistry",
    "AsyncConfigurable",
    "BindingRegistry",
    "CacheCompiler",
    # Errors
    "CacheError",
    "Callback",
    "CallbackSpec",
    "CanInitialize",
    "CircularDependencyError",
    "ConfigSource",
    "ConfigurationError",
    # Container
    "Container",
    "Context",
    "ContextEvaluator",
    "CoreModule",
    "DefinitionMap",
    "Delegate",
    "DependencyScanner",
    "DictSource",
    "EnvironmentSource",
    "Handler",
    "HandlerSpec",
    "HandlerState",
    "Hook",
    "HookDispatcher",
    "HookFactory",
    "HookwireError",
    "IdFactory",
    "InjectionError",
    "InvalidDefinitionError",
    "Invoke",
    "Invoker",
    "LifecycleError",
    "Module",
    "ModuleSpec",
    "OnInitialize",
    "ResolutionError",
    "Scope",
    "Strategy",
    "YamlSource",
    # Decorators
    "action",
    "alias",
    "autowire",
    "factory",
    "filter",
    "handler",
    "infuse",
    "module",
    "value",
]
