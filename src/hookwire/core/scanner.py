"""Dependency scanner: walks a module graph into a ``DefinitionMap``.

The walk is depth-first from the entry module. Every module, handler and
callback is reflected from its decorators exactly once; a module found
again while it is still on the walk stack is a circular import.

Example:
    >>> definition = DependencyScanner().build(Root)
    >>> definition.tree()["imports"][0]["token"]
    'hookwire.module::app.admin:Admin'
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from .decorators import get_callback_specs, get_handler_spec, get_module_spec, get_refs
from .definition import DefinitionMap
from .dispatcher import HookDispatcher
from .errors import CircularDependencyError, InvalidDefinitionError
from .metadata import ModuleSpec
from .tokens import class_path, module_token, target_of, token_target


class DependencyScanner:
    """Builds definition maps from decorated classes.

    Args:
        dispatcher: Dispatcher used to collect extension imports
        app_id: Application id, naming the ``{app_id}_extend_imports`` filter
        core_module: Module implicitly imported by the entry module
    """

    def __init__(
        self,
        dispatcher: HookDispatcher | None = None,
        app_id: str = "hookwire",
        core_module: type | None = None,
    ):
        self.dispatcher = dispatcher
        self.app_id = app_id
        self.core_module = core_module

        self._definition = DefinitionMap()
        self._stack: list[str] = []
        self._modules: dict[str, ModuleSpec] = {}

    @property
    def extension_filter(self) -> str:
        return f"{self.app_id}_extend_imports"

    def build(self, entry: type | str) -> DefinitionMap:
        """Scan the module graph rooted at ``entry``.

        Raises:
            CircularDependencyError: If a module imports one of its ancestors
            InvalidDefinitionError: If a referenced class is missing or undecorated
        """
        self._definition = DefinitionMap()
        self._stack = []
        self._modules = {}

        entry_cls = self._resolve_class(entry)
        self._definition.entry = class_path(entry_cls)
        self._scan_module(entry_cls, is_entry=True)
        self._definition.aliases["hookwire.app"] = module_token(entry_cls)

        logger.debug(
            f"Scanned {len(self._modules)} module(s), {len(self._definition.hooks)} hook(s) from {self._definition.entry}"
        )
        return self._definition

    def _scan_module(self, cls: type, is_entry: bool = False) -> None:
        spec = get_module_spec(cls)
        if spec is None:
            raise InvalidDefinitionError(f"{class_path(cls)} is not a module", service_key=class_path(cls))

        token = spec.token
        if token in self._stack:
            start = self._stack.index(token)
            raise CircularDependencyError([token_target(t) for t in self._stack[start:]] + [spec.classname])
        if token in self._modules:
            return

        for path, ref in get_refs(cls).items():
            self._definition.classes.setdefault(path, ref)

        if is_entry:
            spec.imports.extend(self._entry_imports(spec))

        self._stack.append(token)
        self._modules[token] = spec
        self._definition.add(spec)
        self._definition.aliases[spec.classname] = token

        if hasattr(cls, "configure"):
            self._definition.add_def(spec.classname)

        self._scan_handler(cls)

        for child in spec.imports:
            self._scan_module(self._resolve_class(child))

        for service in spec.services:
            self._definition.add_service(service)

        for handler in spec.handlers:
            self._scan_handler(self._resolve_class(handler))

        self._stack.pop()

    def _scan_handler(self, cls: type) -> None:
        spec = get_handler_spec(cls)
        if spec is None:
            raise InvalidDefinitionError(f"{class_path(cls)} is not a handler", service_key=class_path(cls))
        if self._definition.has(spec.token):
            return

        callbacks = get_callback_specs(cls)
        spec.callbacks = [callback.token for callback in callbacks]

        self._definition.register_class(cls)
        self._definition.add(spec)
        self._definition.aliases.setdefault(spec.classname, spec.token)

        if hasattr(cls, "configure"):
            self._definition.add_def(spec.classname)

        for callback in callbacks:
            if self._definition.has(callback.token):
                raise InvalidDefinitionError(
                    f"Duplicate callback {callback.token}", service_key=callback.token
                )
            self._definition.add(callback)

    def _entry_imports(self, spec: ModuleSpec) -> list[str]:
        extra: list[Any] = []

        if spec.extendable and self.dispatcher is not None:
            extended = self.dispatcher.apply_filters(self.extension_filter, [])
            for item in extended or []:
                if isinstance(item, type):
                    self._definition.register_class(item)
                extra.append(module_token(item))

        if self.core_module is not None:
            self._definition.register_class(self.core_module)
            extra.append(module_token(self.core_module))

        return [token for token in extra if token not in spec.imports]

    def _resolve_class(self, ref: type | str) -> type:
        if isinstance(ref, type):
            self._definition.register_class(ref)
            return ref
        return self._definition.get_class(target_of(ref))
