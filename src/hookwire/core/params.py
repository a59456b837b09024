"""Helpers shared by every hook kind.

Modules, handlers and callbacks resolve their event names, priorities and
injected parameters the same way. The functions here take the container and
look up the dispatcher, context evaluator and configuration through it.

Injected parameter references:
    ``!value:text``       the literal ``text``
    ``!const:NAME``       ``AppConfig.constants["NAME"]``, else the environment variable
    ``!global:pkg.attr``  the object at an importable path, or None
    ``!self.hook``        the hook being invoked
    ``!self.handler``     the handler owning it
    any container key     ``container.get(key)``
    anything else         passed through unchanged
"""

from __future__ import annotations

import os
import pkgutil
from typing import Any, Callable, Iterable, Mapping

from .config import AppConfig
from .container import Container
from .context import ContextEvaluator
from .dispatcher import HookDispatcher
from .tokens import import_path

VALUE_PREFIX = "!value:"
CONST_PREFIX = "!const:"
GLOBAL_PREFIX = "!global:"


def resolve_param(param: Any, container: Container, refs: Mapping[str, Any] | None = None) -> Any:
    """Resolve one injected parameter reference."""
    if not isinstance(param, str):
        return param
    if refs and param in refs:
        return refs[param]
    if param.startswith(VALUE_PREFIX):
        return param[len(VALUE_PREFIX) :]
    if param.startswith(CONST_PREFIX):
        return constant(param[len(CONST_PREFIX) :], container)
    if param.startswith(GLOBAL_PREFIX):
        try:
            return pkgutil.resolve_name(param[len(GLOBAL_PREFIX) :])
        except (ImportError, AttributeError, ValueError):
            return None
    if container.has(param):
        return container.get(param)
    return param


def resolve_params(params: Iterable[Any], container: Container, refs: Mapping[str, Any] | None = None) -> list[Any]:
    return [resolve_param(param, container, refs) for param in params]


def constant(name: str, container: Container) -> Any:
    if container.has(AppConfig):
        constants = container.get(AppConfig).constants
        if name in constants:
            return constants[name]
    return os.environ.get(name)


def resolve_tag(tag: str | None, modifiers: Iterable[Any], container: Container, refs=None) -> str | None:
    """Fill the ``{}`` placeholders of ``tag`` with the resolved modifiers."""
    modifiers = list(modifiers)
    if not tag or not modifiers:
        return tag
    return tag.format(*resolve_params(modifiers, container, refs))


def resolve_vars(variables: Any, container: Container) -> dict[Any, Any]:
    """Expand the variables of a dynamic callback into ``{tag substitution: value}``.

    ``variables`` is a list (each item is both), a dict, a callable (or its
    path) called through the container, or a container key holding any of
    these.
    """
    if isinstance(variables, str):
        variables = container.get(variables) if container.has(variables) else import_path(variables)
    if callable(variables):
        variables = container.call(variables)
    if isinstance(variables, Mapping):
        return dict(variables)
    return {item: item for item in variables or ()}


def resolve_priority(priority: Any, container: Container, tag: str | None = None) -> int:
    """Resolve a priority declaration to an int.

    Accepts an int, a numeric string, ``"filter_name:default"`` (the value
    of that filter applied to the default), ``"!const:NAME"``, or a callable
    (or its path) called through the container with the event name.
    """
    if priority is None:
        return 10
    if isinstance(priority, bool):
        raise TypeError("Priority must not be a boolean")
    if isinstance(priority, int):
        return priority

    if isinstance(priority, str):
        text = priority.strip()
        if _is_int(text):
            return int(text)
        if text.startswith(CONST_PREFIX):
            return int(constant(text[len(CONST_PREFIX) :], container) or 10)

        name, sep, default = text.rpartition(":")
        if sep and _is_int(default):
            return int(container.get(HookDispatcher).apply_filters(name, int(default), tag))

        priority = import_path(text)

    return int(container.call(priority, tag))


def check_context(container: Container, mask: int) -> bool:
    if not container.has(ContextEvaluator):
        return True
    return container.get(ContextEvaluator).validate(mask)


def check_predicate(container: Container, predicate: Callable[..., Any] | str | None, *args, **kwargs) -> bool:
    """Call an optional predicate (or its path) through the container."""
    if predicate is None:
        return True
    if isinstance(predicate, str):
        predicate = import_path(predicate)
    return bool(container.call(predicate, *args, **kwargs))


def _is_int(text: str) -> bool:
    return text.lstrip("-").isdigit()
