"""Declaration decorators for modules, handlers and callbacks.

Decorators only attach metadata; nothing is registered until an ``App``
boots. The metadata is read back by the scanner (and by the factory for
classes registered at runtime) through the ``get_*_spec`` functions.

Decorators:
    @module: Declare a configuration unit with imports, handlers and services
    @handler: Declare a class grouping callbacks, with an initialization strategy
    @action: Bind a method to an event, ignoring its return value
    @filter: Bind a method to an event, threading a value through it
    @dynamic_action, @dynamic_filter: Bind a method to one event per variable
    @infuse: Inject extra parameters into ``on_initialize``

Functions:
    get_module_spec: Read a class's module declaration
    get_handler_spec: Read a class's handler declaration
    get_callback_specs: Read a class's callback declarations in order

Example:
    >>> @handler(tag="init", priority=10)
    ... class Notices:
    ...     @filter("the_title", 20, invoke=Invoke.PROXIED | Invoke.SAFELY)
    ...     def decorate(self, title: str) -> str:
    ...         return title.upper()
    >>>
    >>> @module(handlers=[Notices])
    ... class Admin:
    ...     pass
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Iterable, TypeVar

from .context import Context
from .metadata import ACTION, FILTER, CallbackSpec, HandlerSpec, ModuleSpec
from .tokens import class_path, handler_token, module_token, target_of
from .types import Delegate, Invoke, Strategy

T = TypeVar("T")

MODULE_ATTR = "_hookwire_module"
HANDLER_ATTR = "_hookwire_handler"
CALLBACKS_ATTR = "_hookwire_callbacks"
PARAMS_ATTR = "_hookwire_params"
REFS_ATTR = "_hookwire_refs"

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def module(
    cls: type[T] | None = None,
    *,
    imports: Iterable[type | str] = (),
    handlers: Iterable[type | str] = (),
    services: Iterable[type | str] = (),
    hook: str | None = None,
    priority: int | str = 10,
    context: int | str = Context.GLOBAL,
    extendable: bool = False,
    debug: bool = False,
    trace: bool = False,
) -> type[T] | Callable[[type[T]], type[T]]:
    """Declare a module.

    A module is also a handler: it is initialized at ``hook`` (or at boot
    when ``hook`` is None), after which its handlers and imports are
    registered. It may declare callbacks and ``on_initialize`` like any
    handler, and a static ``configure()`` returning container bindings.

    Args:
        imports: Modules to import, as classes or ``module:qualname`` paths
        handlers: Handler classes or paths, in registration order
        services: Classes bound into the container as autowired singletons
        hook: Event that initializes the module
        priority: Priority on ``hook``
        context: Contexts the module is active in
        extendable: Allow extra imports through the extension filter
        debug: Enable debug output for this module
        trace: Trace-log lifecycle decisions for this module

    Returns:
        The decorated class
    """
    imports, handlers, services = list(imports), list(handlers), list(services)

    def decorator(target: type[T]) -> type[T]:
        path = class_path(target)
        refs = _refs(target, imports, handlers, services)
        mask = Context.parse(context)

        setattr(
            target,
            MODULE_ATTR,
            ModuleSpec(
                classname=path,
                context=mask,
                debug=debug,
                trace=trace,
                hook=hook,
                priority=priority,
                imports=[module_token(item) for item in imports],
                handlers=[handler_token(item) for item in handlers],
                services=[target_of(item) for item in services],
                extendable=extendable,
            ),
        )
        setattr(
            target,
            HANDLER_ATTR,
            HandlerSpec(
                classname=path,
                context=mask,
                debug=debug,
                trace=trace,
                tag=hook,
                priority=priority if hook else None,
                strategy=Strategy.DEFERRED if hook else Strategy.IMMEDIATE,
            ),
        )
        setattr(target, REFS_ATTR, refs)
        return target

    return decorator(cls) if cls is not None else decorator


def handler(
    cls: type[T] | None = None,
    *,
    tag: str | None = None,
    priority: int | str | Callable | None = None,
    context: int | str = Context.GLOBAL,
    strategy: Strategy | str = Strategy.DEFERRED,
    conditional: Callable[..., bool] | str | None = None,
    modifiers: Iterable[Any] = (),
    hookable: bool = True,
    hook_args: int | Iterable[str | None] = 0,
    delegate: Delegate = Delegate.NEVER,
    debug: bool = False,
    trace: bool = False,
) -> type[T] | Callable[[type[T]], type[T]]:
    """Declare a handler.

    Args:
        tag: Event that initializes the handler. None means the event
            firing when the handler is registered.
        priority: Int, ``"filter_name:default"`` or a callable resolved
            through the container. Defaults to 10 when ``tag`` is given.
        context: Contexts the handler is active in
        strategy: When the handler is constructed
        conditional: Predicate called through the container before
            construction. A falsy result rejects the handler.
        modifiers: Values (or injected parameter references) substituted
            into ``{}`` placeholders of ``tag``
        hookable: Register the handler's callbacks
        hook_args: Number of event arguments to forward, or their names
        delegate: Forward event arguments to the constructor and/or
            ``can_initialize``
        debug: Enable debug output for this handler
        trace: Trace-log lifecycle decisions for this handler

    Returns:
        The decorated class
    """
    if isinstance(hook_args, int):
        names: list[str | None] = [None] * hook_args
    else:
        names = list(hook_args)

    def decorator(target: type[T]) -> type[T]:
        setattr(
            target,
            HANDLER_ATTR,
            HandlerSpec(
                classname=class_path(target),
                context=Context.parse(context),
                debug=debug,
                trace=trace,
                tag=tag,
                priority=priority if priority is not None or tag is None else 10,
                strategy=Strategy(strategy),
                conditional=conditional,
                modifiers=list(modifiers),
                hookable=hookable,
                hook_args=names,
                delegate=delegate,
            ),
        )
        return target

    return decorator(cls) if cls is not None else decorator


def _callback(
    kind: str,
    tag: str,
    priority: int | str | Callable,
    context: int | str,
    modifiers: Iterable[Any],
    invoke: Invoke,
    args: int | None,
    params: Iterable[str],
    debug: bool,
    trace: bool,
    vars: Any = None,
) -> Callable[[Callable], Callable]:
    def decorator(func: Callable) -> Callable:
        declared = list(getattr(func, CALLBACKS_ATTR, []))
        declared.append(
            CallbackSpec(
                context=Context.parse(context),
                debug=debug,
                trace=trace,
                type=kind,
                tag=tag,
                priority=priority,
                modifiers=list(modifiers),
                invoke=invoke,
                args=args,
                params=list(params),
                vars=vars,
            )
        )
        setattr(func, CALLBACKS_ATTR, declared)
        return func

    return decorator


def action(
    tag: str,
    priority: int | str | Callable = 10,
    *,
    context: int | str = Context.GLOBAL,
    modifiers: Iterable[Any] = (),
    invoke: Invoke = Invoke.STANDARD,
    args: int | None = None,
    params: Iterable[str] = (),
    debug: bool = False,
    trace: bool = False,
) -> Callable[[Callable], Callable]:
    """Bind a method to an event as an action.

    Decorators stack: one method may be bound to several events.

    Args:
        tag: Event name, may contain ``{}`` placeholders filled from ``modifiers``
        priority: Int, ``"filter_name:default"`` or a callable
        context: Contexts the callback is active in
        modifiers: Values substituted into ``tag``
        invoke: ``Invoke`` flags
        args: Event arguments to accept. Defaults to the method's positional
            parameters minus the injected ``params``.
        params: Injected parameters appended after the event arguments
    """
    return _callback(ACTION, tag, priority, context, modifiers, invoke, args, params, debug, trace)


def filter(
    tag: str,
    priority: int | str | Callable = 10,
    *,
    context: int | str = Context.GLOBAL,
    modifiers: Iterable[Any] = (),
    invoke: Invoke = Invoke.STANDARD,
    args: int | None = None,
    params: Iterable[str] = (),
    debug: bool = False,
    trace: bool = False,
) -> Callable[[Callable], Callable]:
    """Bind a method to an event as a filter. See ``action`` for arguments."""
    return _callback(FILTER, tag, priority, context, modifiers, invoke, args, params, debug, trace)


def dynamic_action(
    tag: str,
    vars: Any,
    priority: int | str | Callable = 10,
    *,
    context: int | str = Context.GLOBAL,
    args: int | None = None,
    params: Iterable[str] = (),
    debug: bool = False,
    trace: bool = False,
) -> Callable[[Callable], Callable]:
    """Bind a method to one event per variable as an action.

    ``tag`` holds a single ``{}`` placeholder. Each variable expands it into
    an event, and the method receives that variable's value as its last
    argument. Dynamic callbacks are always proxied.

    Args:
        tag: Event name with a ``{}`` placeholder
        vars: A list (each item fills the tag and is passed), a dict (keys
            fill the tag, values are passed), a callable returning either,
            or a container key holding either
        priority: Int, ``"filter_name:default"`` or a callable
        context: Contexts the callback is active in
        args: Event arguments to accept. Defaults to the method's positional
            parameters minus the injected ``params`` and the variable.
        params: Injected parameters appended after the event arguments

    Example:
        >>> @dynamic_action("save_post_{}", ["page", "product"])
        ... def on_save(self, post_id: int, post_type: str) -> None:
        ...     ...
    """
    return _callback(ACTION, tag, priority, context, (), Invoke.PROXIED, args, params, debug, trace, vars)


def dynamic_filter(
    tag: str,
    vars: Any,
    priority: int | str | Callable = 10,
    *,
    context: int | str = Context.GLOBAL,
    args: int | None = None,
    params: Iterable[str] = (),
    debug: bool = False,
    trace: bool = False,
) -> Callable[[Callable], Callable]:
    """Bind a method to one event per variable as a filter. See ``dynamic_action``."""
    return _callback(FILTER, tag, priority, context, (), Invoke.PROXIED, args, params, debug, trace, vars)


def infuse(*params: str) -> Callable[[Callable], Callable]:
    """Inject parameters into ``on_initialize``.

    Each parameter is a container key or a reference such as
    ``"!value:literal"``, ``"!const:NAME"``, ``"!global:pkg.mod.attr"`` or
    ``"!self.handler"``.
    """

    def decorator(func: Callable) -> Callable:
        setattr(func, PARAMS_ATTR, list(params))
        return func

    return decorator


# Reading declarations back


def get_module_spec(cls: type) -> ModuleSpec | None:
    spec = cls.__dict__.get(MODULE_ATTR)
    return spec.copy(imports=list(spec.imports), handlers=list(spec.handlers), services=list(spec.services)) if spec else None


def get_handler_spec(cls: type) -> HandlerSpec | None:
    """Get the handler declaration of ``cls``, including ``@infuse`` params."""
    spec = cls.__dict__.get(HANDLER_ATTR)
    if spec is None:
        return None

    params = {}
    for name in _method_names(cls):
        injected = getattr(inspect.getattr_static(cls, name), PARAMS_ATTR, None)
        if injected:
            params[name] = list(injected)

    return spec.copy(
        modifiers=list(spec.modifiers),
        hook_args=list(spec.hook_args),
        params=params,
        callbacks=None,
    )


def get_callback_specs(cls: type) -> list[CallbackSpec]:
    """Get the callback declarations of ``cls``.

    Methods are ordered by declaration, base classes first. An overriding
    method keeps its base's position but contributes its own declarations.
    """
    path = class_path(cls)
    specs = []

    for name in _method_names(cls):
        func = inspect.getattr_static(cls, name)
        for declared in getattr(func, CALLBACKS_ATTR, ()):
            specs.append(
                declared.copy(
                    classname=path,
                    method=name,
                    modifiers=list(declared.modifiers),
                    params=list(declared.params),
                    args=declared.args if declared.args is not None else _count_args(func, declared),
                )
            )

    return specs


def get_refs(cls: type) -> dict[str, type]:
    """Classes referenced by a module declaration, keyed by class path."""
    return dict(cls.__dict__.get(REFS_ATTR, {}))


def _method_names(cls: type) -> list[str]:
    names: list[str] = []
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, member in vars(klass).items():
            if inspect.isfunction(member) and name not in names:
                names.append(name)
    return names


def _count_args(func: Callable, spec: CallbackSpec) -> int:
    positional = [p for p in inspect.signature(func).parameters.values() if p.kind in _POSITIONAL]
    reserved = 1 + len(spec.params) + (1 if spec.is_dynamic else 0)
    return max(len(positional) - reserved, 0)


def _refs(target: type, *groups: Iterable[Any]) -> dict[str, type]:
    refs = {class_path(target): target}
    for group in groups:
        for item in group:
            if isinstance(item, type):
                refs[class_path(item)] = item
    return refs
