"""Execution context classification.

A request (or process run) executes in exactly one context. Handlers and
callbacks declare a bitmask of contexts they are eligible for, and every
load or invoke decision is gated by ``ContextEvaluator.validate``.

Classes:
    Context: Bitmask of execution contexts
    ContextEvaluator: Classifies the current run and matches masks

Classification precedence mirrors how a request is recognised: an admin
request that is also an async request counts as async, and anything that
is none of admin/async/background/api/cli is frontend.

Example:
    >>> evaluator = ContextEvaluator(admin=True)
    >>> evaluator.get()
    <Context.ADMIN: 2>
    >>> evaluator.validate(Context.ADMIN | Context.CLI)
    True
    >>> evaluator.validate(Context.FRONTEND)
    False
"""

from __future__ import annotations

import os
from enum import IntFlag
from typing import Mapping

_TRUTHY = {"1", "true", "yes", "on"}


class Context(IntFlag):
    """Execution contexts."""

    FRONTEND = 1
    ADMIN = 2
    AJAX = 4  # Async request
    CRON = 8  # Background job
    REST = 16  # Programmatic API
    CLI = 32
    GLOBAL = 63

    @classmethod
    def parse(cls, value: str | int | Context) -> Context:
        """Parse a context from its name, a ``|``-separated list, or an int."""
        if isinstance(value, int):
            return cls(value)

        mask = cls(0)
        for part in value.split("|"):
            name = part.strip().upper()
            if name:
                mask |= cls[name]
        return mask


class ContextEvaluator:
    """Determines the current execution context.

    The context is computed once and cached until ``reset`` is called, since
    it cannot change during a single run.

    Args:
        admin: The run serves the administration area
        ajax: The run serves an async request
        cron: The run is a background job
        cli: The run is a command-line invocation
        request_uri: Path of the current request, used for API detection
        rest_prefix: Path prefix identifying programmatic API requests
        current: Explicit context, bypassing detection
    """

    def __init__(
        self,
        *,
        admin: bool = False,
        ajax: bool = False,
        cron: bool = False,
        cli: bool = False,
        request_uri: str = "",
        rest_prefix: str = "/api/",
        current: Context | None = None,
    ):
        self._admin = admin
        self._ajax = ajax
        self._cron = cron
        self._cli = cli
        self._request_uri = request_uri
        self._rest_prefix = rest_prefix
        self._forced = current
        self._current: Context | None = current

    @classmethod
    def from_environ(
        cls, environ: Mapping[str, str] | None = None, prefix: str = "HOOKWIRE_"
    ) -> ContextEvaluator:
        """Build an evaluator from environment variables.

        ``{prefix}CONTEXT`` names the context outright. Otherwise the
        ``{prefix}ADMIN``, ``{prefix}AJAX``, ``{prefix}CRON`` and ``{prefix}CLI``
        flags and ``REQUEST_URI`` drive detection.
        """
        environ = os.environ if environ is None else environ

        def flag(name: str) -> bool:
            return environ.get(f"{prefix}{name}", "").strip().lower() in _TRUTHY

        explicit = environ.get(f"{prefix}CONTEXT")
        return cls(
            admin=flag("ADMIN"),
            ajax=flag("AJAX"),
            cron=flag("CRON"),
            cli=flag("CLI"),
            request_uri=environ.get("REQUEST_URI", ""),
            rest_prefix=environ.get(f"{prefix}REST_PREFIX", "/api/"),
            current=Context.parse(explicit) if explicit else None,
        )

    def get(self) -> Context:
        """Get the current context."""
        if self._current is None:
            if self.admin():
                self._current = Context.ADMIN
            elif self.ajax():
                self._current = Context.AJAX
            elif self.cron():
                self._current = Context.CRON
            elif self.rest():
                self._current = Context.REST
            elif self.cli():
                self._current = Context.CLI
            else:
                self._current = Context.FRONTEND
        return self._current

    def show(self) -> str:
        """Get the current context as a display name."""
        return {
            Context.ADMIN: "Admin",
            Context.AJAX: "Ajax",
            Context.CRON: "Cron",
            Context.REST: "REST",
            Context.CLI: "CLI",
        }.get(self.get(), "Frontend")

    def validate(self, mask: int) -> bool:
        """Check whether ``mask`` includes the current context."""
        return bool(self.get() & mask)

    def reset(self) -> None:
        """Forget the computed context."""
        self._current = self._forced

    def frontend(self) -> bool:
        return not self.admin() and not self.cron() and not self.rest() and not self.cli()

    def admin(self) -> bool:
        return self._admin and not self.ajax()

    def ajax(self) -> bool:
        return self._ajax

    def cron(self) -> bool:
        return self._cron

    def rest(self) -> bool:
        return bool(self._rest_prefix) and self._rest_prefix in self._request_uri

    def cli(self) -> bool:
        return self._cli
