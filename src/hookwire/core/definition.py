"""The definition map: a flat, serializable description of a module graph.

Layout:
    entry:    class path of the entry module
    aliases:  key → token indirections (class paths of modules and handlers)
    hooks:    token → parameter key (``"{token}[params]"``)
    values:   parameter key → declaration data
    defs:     class paths whose ``configure()`` bindings are replayed on load
    services: class paths bound as autowired singletons

Insertion order of ``hooks`` is the scan order: a module, then its own
callbacks, then its imports, then its handlers with their callbacks. The
tree and therefore event registration order are the same whether the map was
scanned or loaded from cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidDefinitionError
from .metadata import CallbackSpec, HandlerSpec, HookSpec, ModuleSpec, spec_from_data
from .tokens import class_path, handler_token, import_path, module_token

PARAMS_SUFFIX = "[params]"


@dataclass
class DefinitionMap:
    """Token-keyed declarations of a whole module graph."""

    entry: str = ""
    aliases: dict[str, str] = field(default_factory=dict)
    hooks: dict[str, str] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)
    defs: list[str] = field(default_factory=list)
    services: list[str] = field(default_factory=list)
    classes: dict[str, type] = field(default_factory=dict, compare=False, repr=False)

    # Building

    def add(self, spec: HookSpec) -> str:
        """Store ``spec`` under its token, keeping first-insertion order."""
        token = spec.token
        key = f"{token}{PARAMS_SUFFIX}"
        self.hooks[token] = key
        self.values[key] = spec.to_data()
        return token

    def add_def(self, path: str) -> None:
        if path not in self.defs:
            self.defs.append(path)

    def add_service(self, path: str) -> None:
        if path not in self.services:
            self.services.append(path)

    def register_class(self, cls: type) -> str:
        path = class_path(cls)
        self.classes[path] = cls
        return path

    # Reading

    def has(self, token: str) -> bool:
        return token in self.hooks

    def data(self, token: str) -> dict[str, Any] | None:
        key = self.hooks.get(token)
        return self.values.get(key) if key else None

    def get(self, token: str) -> HookSpec | None:
        data = self.data(token)
        return spec_from_data(data) if data is not None else None

    def get_module(self, token: str) -> ModuleSpec | None:
        return self._typed(token, ModuleSpec)

    def get_handler(self, token: str) -> HandlerSpec | None:
        return self._typed(token, HandlerSpec)

    def get_callback(self, token: str) -> CallbackSpec | None:
        return self._typed(token, CallbackSpec)

    def tokens(self, kind: str | None = None) -> list[str]:
        return [t for t, key in self.hooks.items() if kind is None or self.values[key].get("kind") == kind]

    def get_class(self, path: str) -> type:
        """Get the class at ``path``, importing it if it was not seen live."""
        if path not in self.classes:
            self.classes[path] = import_path(path)
        return self.classes[path]

    def tree(self) -> dict[str, Any]:
        """Module → handlers → callbacks, in registration order.

        Each module node maps ``"handlers"`` to ``{handler token: [callback
        tokens]}`` and ``"imports"`` to the child module nodes.
        """
        if not self.entry:
            return {}
        return self._node(module_token(self.entry), set())

    def bindings(self) -> dict[Any, Any]:
        """Replay the ``configure()`` bindings of every class in ``defs``."""
        merged: dict[Any, Any] = {}
        for path in self.defs:
            configure = getattr(self.get_class(path), "configure", None)
            if configure is None:
                raise InvalidDefinitionError(f"{path} has no configure()", service_key=path)
            merged.update(configure() or {})
        return merged

    # Serialization

    def to_data(self) -> dict[str, Any]:
        return {
            "entry": self.entry,
            "aliases": dict(self.aliases),
            "hooks": dict(self.hooks),
            "values": dict(self.values),
            "defs": list(self.defs),
            "services": list(self.services),
        }

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> DefinitionMap:
        try:
            return cls(
                entry=data["entry"],
                aliases=dict(data["aliases"]),
                hooks=dict(data["hooks"]),
                values=dict(data["values"]),
                defs=list(data["defs"]),
                services=list(data.get("services", [])),
            )
        except (KeyError, TypeError) as e:
            raise InvalidDefinitionError(f"Malformed definition map: {e}", cause=e) from e

    def _typed(self, token: str, kind: type) -> Any:
        spec = self.get(token)
        if spec is not None and not isinstance(spec, kind):
            raise InvalidDefinitionError(f"{token} is not a {kind.kind} definition", service_key=token)
        return spec

    def _node(self, token: str, seen: set[str]) -> dict[str, Any]:
        spec = self.get_module(token)
        if spec is None:
            return {}

        seen.add(token)
        handlers: dict[str, list[str]] = {}
        for handler in [handler_token(spec.classname), *spec.handlers]:
            handler_spec = self.get_handler(handler)
            if handler_spec is not None:
                handlers[handler] = list(handler_spec.callbacks or [])

        return {
            "token": token,
            "handlers": handlers,
            "imports": [self._node(child, seen) for child in spec.imports if child not in seen],
        }
