"""Declaration records for modules, handlers and callbacks.

These are passive data holders. Decorators attach them to classes, the
scanner copies them into the definition map, and the factory builds live
descriptors from them. The schema is the same whether a record came from
reflection or from the cache: ``from_data(spec.to_data()) == spec``.

Classes:
    HookSpec: Fields shared by every declaration
    ModuleSpec: A configuration unit importing modules and declaring handlers
    HandlerSpec: A class grouping callbacks, with an initialization strategy
    CallbackSpec: One hookable method bound to an event and priority

Values such as ``priority`` and ``conditional`` may be callables. They are
stored as ``module:qualname`` paths when importable; anything else stays a
live object and makes the definition unserializable.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, ClassVar

from .context import Context
from .errors import InvalidDefinitionError
from .tokens import callback_token, class_path, handler_token, is_importable, module_token
from .types import Delegate, Invoke, Strategy

ACTION = "action"
FILTER = "filter"


def _portable(value: Any) -> Any:
    """Replace importable callables with their path."""
    if callable(value) and not isinstance(value, type) and is_importable(value):
        return class_path(value)
    return value


@dataclass
class HookSpec:
    """Fields shared by every declaration."""

    kind: ClassVar[str] = ""

    classname: str = ""
    context: int = Context.GLOBAL
    debug: bool = False
    trace: bool = False

    @property
    def token(self) -> str:
        raise NotImplementedError

    def to_data(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (list, dict)):
                value = type(value)(value)
            data[f.name] = _portable(value)
        return data

    @classmethod
    def from_data(cls, data: dict[str, Any]):
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def copy(self, **changes):
        return replace(self, **changes)


@dataclass
class HandlerSpec(HookSpec):
    """Declaration of a handler class.

    Attributes:
        tag: Event that triggers initialization (None: the event firing when
            the handler is registered)
        priority: Int, ``"filter:default"`` string, or callable/path
        strategy: When the handler is constructed
        conditional: Predicate (callable or path) called through the container
        modifiers: Values substituted into ``tag`` placeholders
        hookable: Whether callbacks are registered at all
        hook_args: Names (or None for positional) of forwarded event args
        delegate: Where forwarded event args go
        params: Injected parameters per method, from ``@infuse``
        callbacks: Callback tokens, None until resolved
    """

    kind: ClassVar[str] = "handler"

    tag: str | None = None
    priority: Any = None
    strategy: str = Strategy.DEFERRED.value
    conditional: Any = None
    modifiers: list[Any] = field(default_factory=list)
    hookable: bool = True
    hook_args: list[str | None] = field(default_factory=list)
    delegate: int = Delegate.NEVER
    params: dict[str, list[str]] = field(default_factory=dict)
    callbacks: list[str] | None = None

    def __post_init__(self):
        self.strategy = Strategy(self.strategy).value
        self.context = int(self.context)
        self.delegate = int(self.delegate)

    @property
    def token(self) -> str:
        return handler_token(self.classname)


@dataclass
class ModuleSpec(HookSpec):
    """Declaration of a module class.

    Attributes:
        hook: Event at which the module initializes (None: at boot)
        priority: Priority on ``hook``
        imports: Imported module tokens, in declaration order
        handlers: Handler tokens, in declaration order
        services: Class paths of autowired services
        extendable: Whether extra imports may be appended at boot
    """

    kind: ClassVar[str] = "module"

    hook: str | None = None
    priority: Any = 10
    imports: list[str] = field(default_factory=list)
    handlers: list[str] = field(default_factory=list)
    services: list[str] = field(default_factory=list)
    extendable: bool = False

    def __post_init__(self):
        self.context = int(self.context)

    @property
    def token(self) -> str:
        return module_token(self.classname)


@dataclass
class CallbackSpec(HookSpec):
    """Declaration of one hookable method.

    Attributes:
        method: Method name on the handler class
        type: ``action`` or ``filter``
        tag: Event name, may contain ``{}`` placeholders
        priority: Int, ``"filter:default"`` string, or callable/path
        modifiers: Values substituted into ``tag`` placeholders
        invoke: ``Invoke`` flags
        args: Positional arguments delivered by the dispatcher
        params: Injected parameters appended after the dispatcher's
        vars: Dynamic callbacks only: a list, dict, callable/path or
            container key whose entries expand ``tag`` into one event each
    """

    kind: ClassVar[str] = "callback"

    method: str = ""
    type: str = FILTER
    tag: str = ""
    priority: Any = 10
    modifiers: list[Any] = field(default_factory=list)
    invoke: int = Invoke.STANDARD
    args: int | None = None
    params: list[str] = field(default_factory=list)
    vars: Any = None

    def __post_init__(self):
        self.context = int(self.context)
        self.invoke = int(self.invoke)

    @property
    def token(self) -> str:
        return callback_token(self.classname, self.method, self.tag, self.priority_label)

    @property
    def handler(self) -> str:
        return handler_token(self.classname)

    @property
    def is_dynamic(self) -> bool:
        return self.vars is not None

    @property
    def priority_label(self) -> str:
        value = _portable(self.priority)
        return value if isinstance(value, (str, int)) else getattr(value, "__name__", "dynamic")


def spec_from_data(data: dict[str, Any]) -> HookSpec:
    """Rebuild a spec from its stored data, dispatching on the ``kind`` key."""
    for cls in (ModuleSpec, HandlerSpec, CallbackSpec):
        if data.get("kind") == cls.kind:
            return cls.from_data(data)
    raise InvalidDefinitionError(f"Unknown declaration kind: {data.get('kind')!r}")
