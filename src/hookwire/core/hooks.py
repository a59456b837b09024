"""Live descriptors: the runtime side of module, handler and callback declarations.

Each descriptor wraps its declaration record and the container. Descriptors
refer to each other by token only and dereference through the container, so
a handler and its callbacks never hold each other directly.

Classes:
    Hook: Protocol shared by every descriptor
    Module: A module's imports, handlers and services
    Handler: A handler's initialization state and instance
    Callback: One hookable method, registered with the dispatcher

Handler state machine:
    UNINITIALIZED → QUEUED → INSTANTIATING → CONFIGURING → READY
    UNINITIALIZED | QUEUED → READY (user-supplied instance)
    UNINITIALIZED | QUEUED → REJECTED
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from loguru import logger

from .config import AppConfig
from .container import Container
from .dispatcher import HookDispatcher
from .errors import LifecycleError
from .metadata import ACTION, CallbackSpec, HandlerSpec, ModuleSpec
from .params import check_context, resolve_params, resolve_priority, resolve_tag, resolve_vars
from .tokens import lazy_tag
from .types import Delegate, HandlerState, Invoke, Strategy

_TRANSITIONS = {
    HandlerState.UNINITIALIZED: {
        HandlerState.QUEUED,
        HandlerState.INSTANTIATING,
        HandlerState.READY,
        HandlerState.REJECTED,
    },
    HandlerState.QUEUED: {HandlerState.INSTANTIATING, HandlerState.READY, HandlerState.REJECTED},
    HandlerState.INSTANTIATING: {HandlerState.CONFIGURING},
    HandlerState.CONFIGURING: {HandlerState.READY},
    HandlerState.READY: set(),
    HandlerState.REJECTED: set(),
}


@runtime_checkable
class Hook(Protocol):
    """Interface shared by modules, handlers and callbacks."""

    token: str
    classname: str

    def check_context(self) -> bool: ...

    def can_trace(self) -> bool: ...


def _can_trace(container: Container, classname: str, trace: bool) -> bool:
    if not container.has(AppConfig):
        return trace
    return container.get(AppConfig).can_trace(classname, trace)


class Module:
    """Live module descriptor."""

    def __init__(self, spec: ModuleSpec, container: Container):
        self.spec = spec
        self.container = container
        self.token = spec.token
        self.classname = spec.classname

    def get_imports(self) -> list[str]:
        return list(self.spec.imports)

    def get_handlers(self) -> list[str]:
        return list(self.spec.handlers)

    def get_services(self) -> list[str]:
        return list(self.spec.services)

    def is_extendable(self) -> bool:
        return self.spec.extendable

    def check_context(self) -> bool:
        return check_context(self.container, self.spec.context)

    def can_trace(self) -> bool:
        return _can_trace(self.container, self.classname, self.spec.trace)

    def __repr__(self) -> str:
        return f"Module({self.classname})"


class Handler:
    """Live handler descriptor.

    Tracks the handler's state, its instance once constructed, and the
    event that was firing when construction started (``init_hook``).

    Args:
        spec: Handler declaration
        container: Container holding the descriptors
        target: The handler class
    """

    def __init__(self, spec: HandlerSpec, container: Container, target: type):
        self.spec = spec
        self.container = container
        self.target = target
        self.token = spec.token
        self.classname = spec.classname
        self.callbacks: list[str] | None = list(spec.callbacks) if spec.callbacks is not None else None

        self.state = HandlerState.UNINITIALIZED
        self.instance: Any = None
        self.init_hook: str | None = None
        self.user = False
        self.reason = ""

        self._tag: str | None = None
        self._priority: int | None = None

    # Accessors

    def get_tag(self) -> str | None:
        """Event that triggers initialization.

        An undeclared tag means the event firing when this is first asked.
        """
        if self._tag is None:
            if self.spec.tag:
                self._tag = resolve_tag(self.spec.tag, self.spec.modifiers, self.container, self._refs())
            else:
                self._tag = self.container.get(HookDispatcher).current()
        return self._tag

    def get_priority(self) -> int:
        if self._priority is None:
            if self.spec.priority is None and not self.spec.tag:
                current = self.container.get(HookDispatcher).current_priority()
                self._priority = (current or 0) + 1
            else:
                self._priority = resolve_priority(self.spec.priority, self.container, self.get_tag())
        return self._priority

    def get_strategy(self) -> Strategy:
        if not self.check_context():
            return Strategy.NEVER
        return Strategy(self.spec.strategy)

    def get_params(self, method: str) -> list[Any]:
        return resolve_params(self.spec.params.get(method, []), self.container, self._refs())

    @property
    def lazy_tag(self) -> str:
        return lazy_tag(self.token, self.spec.strategy)

    @property
    def hook_args_count(self) -> int:
        return len(self.spec.hook_args)

    # Predicates

    def check_context(self) -> bool:
        return check_context(self.container, self.spec.context)

    def can_trace(self) -> bool:
        return _can_trace(self.container, self.classname, self.spec.trace)

    def is_lazy(self) -> bool:
        return self.get_strategy().is_lazy

    def is_hookable(self) -> bool:
        return self.spec.hookable and self.check_context()

    def is_loaded(self) -> bool:
        return self.instance is not None and self.state != HandlerState.REJECTED

    def is_ready(self) -> bool:
        return self.state == HandlerState.READY

    def is_enabled(self) -> bool:
        return self.state != HandlerState.REJECTED

    def is_busy(self) -> bool:
        return self.state in (HandlerState.INSTANTIATING, HandlerState.CONFIGURING)

    # State

    def transition(self, state: HandlerState) -> Handler:
        if state not in _TRANSITIONS[self.state]:
            raise LifecycleError(f"{self.classname}: cannot go from {self.state.name} to {state.name}")

        self.state = state
        return self

    def queue(self) -> Handler:
        if self.state == HandlerState.UNINITIALIZED:
            self.transition(HandlerState.QUEUED)
        return self

    def reject(self, reason: str) -> Handler:
        self.transition(HandlerState.REJECTED)
        self.reason = reason
        return self

    def with_target(self, instance: Any, init_hook: str | None = None) -> Handler:
        """Adopt a user-supplied instance."""
        self.transition(HandlerState.READY)
        self.instance = instance
        self.init_hook = init_hook
        self.user = True
        return self

    def with_callbacks(self, tokens: list[str]) -> Handler:
        self.callbacks = list(tokens)
        return self

    def resolve_action_args(self, args: tuple, delegate: Delegate) -> tuple[tuple, dict[str, Any]]:
        """Split the event arguments forwarded to ``delegate``.

        Named ``hook_args`` become keyword arguments, unnamed ones stay
        positional.
        """
        if not self.spec.delegate & delegate:
            return (), {}

        positional: list[Any] = []
        named: dict[str, Any] = {}
        for name, value in zip(self.spec.hook_args, args):
            if name:
                named[name] = value
            else:
                positional.append(value)
        return tuple(positional), named

    def to_spec(self) -> HandlerSpec:
        return self.spec.copy(callbacks=self.callbacks)

    def _refs(self) -> dict[str, Any]:
        return {"!self.handler": self, "!self.hook": self}

    def __repr__(self) -> str:
        return f"Handler({self.classname}, {self.state.name})"


class Callback:
    """Live callback descriptor.

    Registers either the bound method (standard dispatch) or its own
    ``invoke`` with the dispatcher, and enforces the ``Invoke`` flags.

    Args:
        spec: Callback declaration
        container: Container holding the descriptors
    """

    def __init__(self, spec: CallbackSpec, container: Container):
        self.spec = spec
        self.container = container
        self.token = spec.token
        self.classname = spec.classname
        self.method = spec.method
        self.handler_token = spec.handler

        self.fired = 0
        self.firing = False
        self.loaded = False
        self.enabled = True
        self.init_hook: str | None = None
        self.reason = ""

        self._tag: str | None = None
        self._priority: int | None = None
        self._tags: dict[str, Any] | None = None

    @property
    def handler(self) -> Handler:
        return self.container.get(self.handler_token)

    @property
    def is_action(self) -> bool:
        return self.spec.type == ACTION

    @property
    def flags(self) -> Invoke:
        flags = Invoke(self.spec.invoke)
        if self.handler.is_lazy():
            flags = (flags | Invoke.PROXIED) & ~Invoke.STANDARD
        return flags

    def get_tag(self) -> str:
        if self._tag is None:
            self._tag = resolve_tag(self.spec.tag, self.spec.modifiers, self.container, self._refs())
        return self._tag

    def get_priority(self) -> int:
        if self._priority is None:
            self._priority = resolve_priority(self.spec.priority, self.container, self.get_tag())
        return self._priority

    def get_tags(self) -> dict[str, Any]:
        """Every event the callback hooks, mapped to the variable passed on it.

        A plain callback hooks its single tag. A dynamic one expands its tag
        once per variable.
        """
        if self._tags is None:
            if self.spec.is_dynamic:
                variables = resolve_vars(self.spec.vars, self.container)
                self._tags = {self.spec.tag.format(key): value for key, value in variables.items()}
            else:
                self._tags = {self.get_tag(): None}
        return self._tags

    def get_num_args(self) -> int:
        return self.spec.args or 0

    def check_context(self) -> bool:
        return check_context(self.container, self.spec.context)

    def can_trace(self) -> bool:
        return _can_trace(self.container, self.classname, self.spec.trace)

    def can_load(self) -> bool:
        if not self.enabled:
            return False

        if not self.check_context():
            self.enabled = False
            self.reason = "Invalid context"
            return False

        handler = self.handler
        return handler.is_enabled() and (handler.is_lazy() or handler.is_loaded())

    def load(self) -> bool:
        """Register with the dispatcher, once."""
        if self.loaded:
            return True
        if not self.can_load():
            return False

        dispatcher = self.container.get(HookDispatcher)
        for tag in self.get_tags():
            dispatcher.add(tag, self.get_target(), self.get_priority(), self.get_num_args())
        self.loaded = True
        self.init_hook = dispatcher.current()
        return True

    def get_target(self):
        """The callable registered with the dispatcher.

        Injected params need ``invoke`` to append them, so only a standard
        callback without params is registered as the bare bound method.
        """
        if not self.flags.is_guarded and not self.spec.params:
            return getattr(self.handler.instance, self.method)
        return self.invoke

    def invoke(self, *args: Any) -> Any:
        """Guarded entry point registered for non-standard callbacks."""
        value = args[0] if args else None
        passthrough = None if self.is_action else value
        handler = self.handler

        if not self._init_handler(handler, Strategy.LAZY):
            return passthrough

        flags = self.flags
        if not self.enabled or (Invoke.ONCE in flags and self.fired) or (Invoke.LOOPED in flags and self.firing):
            return passthrough

        if not self._init_handler(handler, Strategy.JIT):
            return passthrough

        try:
            result = self._fire(handler, args)
        except Exception as e:
            if Invoke.SAFELY not in flags:
                raise
            result = self._handle_exception(e, value)
        finally:
            self.firing = False
            self.fired += 1

        return None if self.is_action else result

    def _init_handler(self, handler: Handler, strategy: Strategy) -> bool:
        if handler.is_loaded():
            return True
        if handler.get_strategy() is not strategy:
            return handler.is_lazy() and handler.is_enabled()

        self.container.get(HookDispatcher).do_action(handler.lazy_tag, handler)
        return handler.is_loaded()

    def _fire(self, handler: Handler, args: tuple) -> Any:
        self.firing = True
        extra = resolve_params(self.spec.params, self.container, self._refs())
        if self.spec.is_dynamic:
            extra.append(self.get_tags().get(self.container.get(HookDispatcher).current()))
        return self.container.call(getattr(handler.instance, self.method), *args, *extra)

    def _handle_exception(self, error: Exception, value: Any) -> Any:
        logger.bind(hook=self.token, handler=self.classname).error(
            f'Error executing {self.spec.type} "{self.get_tag()}" in {self.classname}.{self.method}: {error}'
        )
        return value

    def _refs(self) -> dict[str, Any]:
        return {"!self.hook": self, "!self.handler": self.handler}

    def __repr__(self) -> str:
        return f"Callback({self.classname}.{self.method}, {self.spec.tag})"
