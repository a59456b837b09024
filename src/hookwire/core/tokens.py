"""Deterministic identity tokens for modules, handlers and callbacks.

Every hook is identified by a string token. The token is the container key
of the live descriptor and the dictionary key of the definition cache, so it
must be derivable from the class alone, identically in every run.

Token format::

    hookwire.module::package.module:Class
    hookwire.handler::package.module:Class
    hookwire.callback::package.module:Class::method[tag:priority]

Class paths use the ``module:qualname`` form understood by
``pkgutil.resolve_name``, which is how cached definitions find their classes
again without scanning.

Classes:
    IdFactory: Random or deterministic short ids (application uuids)
"""

from __future__ import annotations

import pkgutil
import secrets
import string
from typing import Any

from .errors import InvalidDefinitionError

PREFIX = "hookwire"

MODULE = "module"
HANDLER = "handler"
CALLBACK = "callback"

_KINDS = (MODULE, HANDLER, CALLBACK)


def class_path(obj: Any) -> str:
    """Get the ``module:qualname`` path of a class or function."""
    return f"{obj.__module__}:{obj.__qualname__}"


def is_importable(obj: Any) -> bool:
    """Check whether ``obj`` can be found again through its class path."""
    qualname = getattr(obj, "__qualname__", None)
    module = getattr(obj, "__module__", None)
    return bool(qualname and module) and "<" not in qualname


def import_path(path: str) -> Any:
    """Import the object at ``path``.

    Raises:
        InvalidDefinitionError: If the path does not resolve
    """
    try:
        return pkgutil.resolve_name(path)
    except (ImportError, AttributeError, ValueError) as e:
        raise InvalidDefinitionError(f"Class {path} does not exist", service_key=path, cause=e) from e


def target_of(hook: Any) -> str:
    """Get the class path a hook, class, instance or token refers to."""
    if isinstance(hook, str):
        return token_target(hook) if is_token(hook) else hook
    if isinstance(hook, type):
        return class_path(hook)

    classname = getattr(hook, "classname", None)
    if isinstance(classname, str):
        return classname

    return class_path(type(hook))


def make_token(kind: str, hook: Any) -> str:
    return f"{PREFIX}.{kind}::{target_of(hook)}"


def module_token(hook: Any) -> str:
    return make_token(MODULE, hook)


def handler_token(hook: Any) -> str:
    return make_token(HANDLER, hook)


def callback_token(hook: Any, method: str, tag: str, priority: Any) -> str:
    return f"{PREFIX}.{CALLBACK}::{target_of(hook)}::{method}[{tag}:{priority}]"


def is_token(value: str) -> bool:
    return token_kind(value) is not None


def token_kind(token: str) -> str | None:
    """Get the hook kind encoded in ``token``, or None for a plain key."""
    head, sep, _ = token.partition("::")
    if not sep or not head.startswith(f"{PREFIX}."):
        return None

    kind = head[len(PREFIX) + 1 :]
    return kind if kind in _KINDS else None


def token_target(token: str) -> str:
    """Get the class path encoded in ``token``."""
    return token.split("::")[1]


def lazy_tag(token: str, strategy: str) -> str:
    """Name of the internal event that initializes a lazy handler."""
    return f"{token}_{strategy}_init"


class IdFactory:
    """Generates short unique ids.

    In random mode every call returns a fresh id. In deterministic
    (snapshot) mode the id is a hash of the key, so repeated runs produce the
    same ids; colliding keys are disambiguated with a counter suffix.

    Args:
        snapshot: Use deterministic ids
    """

    _ALPHABET = string.ascii_lowercase + string.digits

    def __init__(self, snapshot: bool = False):
        self.deterministic = snapshot
        self._registry: set[str] = set()

    def get(self, key: str = "") -> str:
        return self._deterministic(key) if self.deterministic else self._random()

    def clear(self) -> IdFactory:
        self._registry.clear()
        return self

    def _random(self) -> str:
        return "".join(secrets.choice(self._ALPHABET) for _ in range(21))

    def _deterministic(self, key: str, inc: int = 0) -> str:
        ident = self.hash_code(f"{key}_{inc}" if inc else key)

        if ident in self._registry:
            return self._deterministic(key, inc + 1)

        self._registry.add(ident)
        return ident

    @staticmethod
    def hash_code(value: str) -> str:
        """Signed 32-bit polynomial string hash, rendered as decimal."""
        h = 0
        for char in value:
            h = (h * 31 + ord(char)) & 0xFFFFFFFF

        if h & 0x80000000:
            h -= 0x100000000

        return str(h)
