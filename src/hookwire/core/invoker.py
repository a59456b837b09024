"""Invoker: drives handlers through their lifecycle and hooks their callbacks.

Registration dispatches on the handler's strategy:

    IMMEDIATE  construct now, then register callbacks
    EARLY      at the triggering event: construct, register callbacks,
               then configure and initialize
    DEFERRED   at the triggering event: construct, configure, initialize,
               then register callbacks
    LAZY       at the triggering event: register callbacks (proxied);
               construct when ``{token}_on-demand_init`` fires
    JIT        as LAZY, with ``{token}_just-in-time_init`` fired by a
               callback about to execute
    USER       the instance already exists; register callbacks now
    NEVER      context mismatch; rejected

Construction runs ``can_initialize``/``conditional`` first. A falsy result
rejects the handler silently (trace-logged only); exceptions propagate.
Lazy handlers are checked at registration, before any callback is hooked.

Example:
    >>> invoker = container.get(Invoker)
    >>> invoker.register_module(Root)
    >>> dispatcher.do_action("init")
    >>> invoker.handlers
    {'hookwire.handler::app.admin:Notices': 'init', ...}
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from .config import AppConfig
from .container import Container
from .dispatcher import HookDispatcher
from .factory import HookFactory
from .hooks import Callback, Handler, Module
from .params import check_predicate
from .tokens import module_token
from .types import AsyncConfigurable, CanInitialize, Delegate, HandlerState, OnInitialize, Strategy


class Invoker:
    """Registers handlers and drives their initialization.

    Attributes:
        handlers: Handler token → event that initialized it, or False
        callbacks: Handler token → {"method:tag": event it was hooked at, or False}
        uncached: Handlers registered at runtime while the cache was active
    """

    def __init__(self, factory: HookFactory, container: Container, dispatcher: HookDispatcher, config: AppConfig):
        self.factory = factory
        self.container = container
        self.dispatcher = dispatcher
        self.config = config

        self.handlers: dict[str, str | bool | None] = {}
        self.callbacks: dict[str, dict[str, str | bool | None]] = {}
        self.uncached: dict[str, str] = {}
        self.modules: dict[str, Module] = {}

        self._log = logger.bind(app=config.id)

        if config.debug:
            dispatcher.add(config.shutdown_event, self.debug_output, 100_000, 0)

    @property
    def handler_initialized_event(self) -> str:
        return f"{self.config.id}_handler_initialized"

    @property
    def module_initialized_event(self) -> str:
        return f"{self.config.id}_module_initialized"

    # Registration

    def register_module(self, target: Any) -> Module:
        """Register a module; it initializes per its own handler declaration."""
        module = self.factory.get_module(target)
        if module.token not in self.modules:
            self.modules[module.token] = module
            self.register(self.factory.get_handler(module.classname))
        return module

    def register_handler(self, target: Any) -> Handler:
        return self.register(self.factory.get_handler(target))

    def register_handlers(self, *targets: Any) -> list[Handler]:
        return [self.register_handler(target) for target in targets]

    def register(self, handler: Handler) -> Handler:
        """Register ``handler`` once and process it per its strategy."""
        if handler.token in self.handlers:
            return handler

        self.callbacks[handler.token] = {}
        self.handlers[handler.token] = handler.init_hook if handler.is_loaded() else False
        self._process(handler)
        return handler

    def load_handler(self, instance: Any) -> Handler:
        """Register a caller-constructed object as a user-driven handler."""
        handler = self.factory.load_handler(instance)
        if not handler.is_enabled():
            self.callbacks.setdefault(handler.token, {})
            self.handlers[handler.token] = False
            self._trace(handler, f"Handler rejected: {handler.reason}")
            return handler

        if self.config.cache and not self.factory.definition.has(handler.token):
            self.uncached[handler.token] = handler.classname

        if handler.token in self.handlers:
            self.handlers[handler.token] = handler.init_hook
            self.register_methods(handler)
            return handler

        return self.register(handler)

    def _process(self, handler: Handler) -> None:
        strategy = handler.get_strategy()

        # Without a declared tag and outside any event there is nothing to wait for
        unbound = handler.get_tag() is None

        if strategy is Strategy.NEVER:
            self._reject(handler, "Invalid context")
        elif strategy is Strategy.USER:
            self.register_methods(handler)
        elif strategy.is_lazy:
            # Lazy handlers hook callbacks before construction, so the guard runs first
            if not self._can_load(handler, ()):
                self._reject(handler, "Conditions not met")
                return
            self._queue_lazy(handler)
            if unbound:
                self.register_methods(handler)
            else:
                self._queue_methods(handler)
        elif strategy is Strategy.IMMEDIATE or unbound:
            if self.init_handler(handler):
                self.register_methods(handler)
        elif strategy is Strategy.EARLY:
            self._queue(handler, early=True)
        else:
            self._queue(handler)

    def _queue(self, handler: Handler, early: bool = False) -> None:
        handler.queue()

        def initialize(*args: Any) -> None:
            if self.init_handler(handler, args, early=early):
                self.register_methods(handler)

        self.dispatcher.add(handler.get_tag(), initialize, handler.get_priority(), handler.hook_args_count)

    def _queue_lazy(self, handler: Handler) -> None:
        handler.queue()
        self.dispatcher.add(handler.lazy_tag, lambda *_: self.init_handler(handler), handler.get_priority(), 0)

    def _queue_methods(self, handler: Handler) -> None:
        if handler.is_hookable():
            self.dispatcher.add(
                handler.get_tag(), lambda *_: self.register_methods(handler), handler.get_priority(), 0
            )

    # Lifecycle

    def init_handler(self, handler: Handler, args: tuple = (), early: bool = False) -> bool:
        """Run a handler from its current state to READY.

        Returns:
            Whether the handler is loaded afterwards
        """
        if handler.is_loaded():
            return True
        if not handler.is_enabled() or handler.is_busy():
            return False

        if not self._can_load(handler, args):
            self._reject(handler, "Conditions not met")
            return False

        self._instantiate(handler, args)
        if early:
            self.register_methods(handler)
        self._configure(handler)
        self._initialize(handler)

        if handler.is_lazy():
            self.dispatcher.remove_all(handler.lazy_tag)

        self.handlers[handler.token] = handler.init_hook
        self._trace(handler, f"Handler initialized on {handler.init_hook or 'boot'}")

        module = self.modules.get(module_token(handler.classname))
        if module is not None:
            self._init_module(module)

        return True

    def _can_load(self, handler: Handler, args: tuple) -> bool:
        if not handler.check_context():
            return False

        pos, named = handler.resolve_action_args(args, Delegate.ON_CREATE)
        if not check_predicate(self.container, handler.spec.conditional, *pos, **named):
            return False

        if not isinstance(handler.target, CanInitialize):
            return True
        return check_predicate(self.container, handler.target.can_initialize, *pos, **named)

    def _instantiate(self, handler: Handler, args: tuple) -> None:
        handler.transition(HandlerState.INSTANTIATING)
        handler.init_hook = self.dispatcher.current()

        pos, named = handler.resolve_action_args(args, Delegate.ON_LOAD)
        if pos or named:
            instance = self.container.make(handler.target, *pos, **named)
            self.container.set(handler.target, instance)
        else:
            instance = self.container.get(handler.target)

        handler.instance = instance

    def _configure(self, handler: Handler) -> None:
        handler.transition(HandlerState.CONFIGURING)

        if not isinstance(handler.instance, AsyncConfigurable):
            return

        for key, value in (self.container.call(handler.instance.configure_async) or {}).items():
            self.container.set(key, value)

    def _initialize(self, handler: Handler) -> None:
        if isinstance(handler.instance, OnInitialize) and not handler.user:
            self.container.call(handler.instance.on_initialize, *handler.get_params("on_initialize"))

        handler.transition(HandlerState.READY)
        self.dispatcher.do_action(self.handler_initialized_event, handler)

    def _init_module(self, module: Module) -> None:
        self.dispatcher.do_action(self.module_initialized_event, module)

        for target in module.get_handlers():
            self.register_handler(target)

        for target in module.get_imports():
            self.register_module(target)

    def register_methods(self, handler: Handler) -> None:
        """Hook every loadable callback of ``handler``."""
        if not handler.is_hookable():
            return

        for callback in self.factory.get_callbacks(handler):
            callback.load()
            self._add_callback(handler, callback)

    def _add_callback(self, handler: Handler, callback: Callback) -> None:
        registry = self.callbacks.setdefault(handler.token, {})
        tags = callback.get_tags() if callback.loaded else [callback.get_tag()]
        for tag in tags:
            registry[f"{callback.method}:{tag}"] = callback.init_hook if callback.loaded else False

    def _reject(self, handler: Handler, reason: str) -> None:
        handler.reject(reason)
        self.handlers[handler.token] = False
        self._trace(handler, f"Handler rejected: {reason}")

    # Diagnostics

    def can_trace(self, classname: str, trace: bool = False) -> bool:
        return self.config.can_trace(classname, trace)

    def _trace(self, handler: Handler, message: str) -> None:
        if self.can_trace(handler.classname, handler.spec.trace):
            self._log.bind(hook=handler.token).info(message)

    def debug_output(self) -> None:
        """Log the lifecycle summary of the run."""
        self._log.debug("Shutting down application")

        if self.uncached:
            self._log.debug(f"Handlers loaded outside the definition cache: {self.uncached}")

        self._log.debug(f"Handlers: {self.handlers}")
        self._log.debug(f"Callbacks: {self.callbacks}")
        self._log.debug("Application shutdown complete")
