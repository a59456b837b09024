"""Hook factory: turns tokens and classes into live descriptors.

Every descriptor is built once and stored in the container under its token,
so repeated lookups return the same object. Declarations come from the
definition map; classes missing from it (handlers registered at runtime, for
instance) are reflected from their decorators.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from loguru import logger

from .container import Container
from .decorators import get_callback_specs, get_handler_spec, get_module_spec
from .definition import DefinitionMap
from .dispatcher import HookDispatcher
from .errors import CircularDependencyError, InvalidDefinitionError
from .hooks import Callback, Handler, Module
from .metadata import HandlerSpec
from .tokens import CALLBACK, class_path, handler_token, module_token, target_of, token_kind
from .types import Strategy


class HookFactory:
    """Resolves modules, handlers and callbacks.

    Args:
        container: Container the descriptors are stored in
        definition: Definition map of the running application
    """

    def __init__(self, container: Container, definition: DefinitionMap):
        self.container = container
        self.definition = definition
        self._resolving: list[str] = []

    def get_module(self, target: Any) -> Module:
        token = module_token(target)
        if self.container.has(token):
            return self.container.get(token)

        with self._guard(token):
            spec = self.definition.get_module(token)
            if spec is None:
                spec = get_module_spec(self._class(target))
            if spec is None:
                raise InvalidDefinitionError(f"{target_of(target)} is not a module", service_key=token)

            module = Module(spec, self.container)

        self.container.set(token, module)
        return module

    def get_handler(self, target: Any) -> Handler:
        token = handler_token(target)
        if self.container.has(token):
            return self.container.get(token)

        with self._guard(token):
            spec = self.definition.get_handler(token)
            if spec is None:
                spec = get_handler_spec(self._class(target))
            if spec is None:
                raise InvalidDefinitionError(f"{target_of(target)} is not a handler", service_key=token)

            handler = Handler(spec, self.container, self._class(spec.classname))

        self.container.set(token, handler)
        return handler

    def get_callback(self, token: str) -> Callback:
        if token_kind(token) != CALLBACK:
            raise InvalidDefinitionError(f"{token} is not a callback token", service_key=token)
        if self.container.has(token):
            return self.container.get(token)

        with self._guard(token):
            spec = self.definition.get_callback(token)
            if spec is None:
                owner = self.get_handler(target_of(token))
                matches = [s for s in get_callback_specs(owner.target) if s.token == token]
                if not matches:
                    raise InvalidDefinitionError(f"Callback {token} does not exist", service_key=token)
                spec = matches[0]

            callback = Callback(spec, self.container)

        self.container.set(token, callback)
        return callback

    def get_callbacks(self, handler: Handler) -> list[Callback]:
        """Get the callbacks of ``handler``, reflecting them if not yet known."""
        if handler.callbacks is None:
            return self.resolve_callbacks(handler)
        return [self.get_callback(token) for token in handler.callbacks]

    def resolve_callbacks(self, handler: Handler) -> list[Callback]:
        """Reflect the callbacks of ``handler`` and record their tokens on it."""
        callbacks = []
        with self._guard(handler.token):
            for spec in get_callback_specs(handler.target):
                if not self.container.has(spec.token):
                    self.container.set(spec.token, Callback(spec, self.container))
                callbacks.append(self.container.get(spec.token))

        handler.with_callbacks([callback.token for callback in callbacks])
        return callbacks

    def load_handler(self, instance: Any) -> Handler:
        """Wrap a caller-constructed object as a user-driven handler."""
        cls = type(instance)
        self.definition.register_class(cls)
        token = handler_token(cls)

        if self.container.has(token):
            handler = self.container.get(token)
        else:
            spec = get_handler_spec(cls) or HandlerSpec(classname=class_path(cls))
            handler = Handler(spec.copy(strategy=Strategy.USER.value, tag=None, priority=None), self.container, cls)
            self.container.set(token, handler)

        if handler.is_loaded() or not handler.is_enabled():
            return handler

        if not handler.check_context():
            handler.reject("Invalid context")
            logger.debug(f"Rejected user handler {handler.classname}: invalid context")
        else:
            handler.with_target(instance, self.container.get(HookDispatcher).current())
            logger.debug(f"Loaded user handler {handler.classname}")

        return handler

    @contextmanager
    def _guard(self, token: str) -> Iterator[None]:
        if token in self._resolving:
            start = self._resolving.index(token)
            raise CircularDependencyError(self._resolving[start:] + [token])

        self._resolving.append(token)
        try:
            yield
        finally:
            self._resolving.pop()

    def _class(self, target: Any) -> type:
        if isinstance(target, type):
            self.definition.register_class(target)
            return target
        return self.definition.get_class(target_of(target))
