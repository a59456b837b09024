"""Enumerations and lifecycle protocols shared by the hook engine.

Enums:
    Strategy: When a handler is constructed relative to host events
    Invoke: Bit flags controlling how a callback is dispatched
    Delegate: Where the triggering event's arguments are forwarded
    HandlerState: The per-handler initialization state machine

Protocols:
    Handler classes opt into lifecycle steps structurally, by defining the
    methods below. None of them require inheritance:

    1. ``can_initialize`` (CanInitialize):
       Static or class method, called through the container before the
       handler leaves ``UNINITIALIZED``. A falsy result rejects the handler.

    2. ``configure_async`` (AsyncConfigurable):
       Called once the instance exists; every returned key/value pair is
       set into the container.

    3. ``on_initialize`` (OnInitialize):
       Called last, with ``@infuse`` parameters appended.

Example:
    >>> @handler(tag="init", strategy=Strategy.LAZY)
    ... class Reports:
    ...     @staticmethod
    ...     def can_initialize(config: AppConfig) -> bool:
    ...         return config.env != "testing"
    ...
    ...     def on_initialize(self) -> None:
    ...         self.ready = True
"""

from __future__ import annotations

from enum import Enum, IntEnum, IntFlag
from typing import Any, Protocol, runtime_checkable


class Strategy(str, Enum):
    """Handler initialization strategies."""

    IMMEDIATE = "immediately"  # Construct while registering
    EARLY = "early"  # Construct and hook callbacks before on_initialize
    LAZY = "on-demand"  # Construct when the internal init event fires
    JIT = "just-in-time"  # Construct right before a callback executes
    DEFERRED = "deferred"  # Construct when the triggering event fires
    USER = "dynamically"  # Instance supplied by the caller
    NEVER = "never"  # Context mismatch, never constructed

    @property
    def is_lazy(self) -> bool:
        return self in (Strategy.LAZY, Strategy.JIT)


class Invoke(IntFlag):
    """Callback invocation strategy flags."""

    STANDARD = 1  # Hook the bound method directly
    PROXIED = 2  # Dispatch through Callback.invoke and the container
    ONCE = 4  # Execute at most once
    LOOPED = 8  # Guard against synchronous re-entry
    SAFELY = 16  # Log exceptions and pass the first argument through

    @property
    def is_guarded(self) -> bool:
        return bool(self & (Invoke.PROXIED | Invoke.ONCE | Invoke.LOOPED | Invoke.SAFELY))


class Delegate(IntFlag):
    """Where the triggering event's positional arguments are forwarded."""

    NEVER = 0
    ON_LOAD = 1  # Passed to the handler constructor
    ON_CREATE = 2  # Passed to can_initialize


class HandlerState(IntEnum):
    """Initialization states, ordered by progress."""

    UNINITIALIZED = 0
    QUEUED = 1
    INSTANTIATING = 2
    CONFIGURING = 3
    READY = 4
    REJECTED = -1


@runtime_checkable
class CanInitialize(Protocol):
    """Protocol for handlers with an initialization predicate."""

    @staticmethod
    def can_initialize() -> bool: ...


@runtime_checkable
class AsyncConfigurable(Protocol):
    """Protocol for handlers that contribute container bindings once alive."""

    def configure_async(self) -> dict[str, Any]: ...


@runtime_checkable
class OnInitialize(Protocol):
    """Protocol for handlers with an initialization callback."""

    def on_initialize(self) -> None: ...
