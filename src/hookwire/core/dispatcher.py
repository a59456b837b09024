"""Synchronous, priority-ordered host event dispatcher.

This is the event system handlers and callbacks attach to. It follows the
action/filter model: an *action* notifies listeners and ignores their return
values, a *filter* threads a value through every listener, each receiving the
previous listener's result.

Ordering:
    Listeners run in ascending priority; listeners sharing a priority run in
    registration order. A listener added to the event currently firing, at a
    priority not yet reached (or later in the current priority), still runs
    in that firing. This is what lets a handler initialized at ``init``
    priority 10 hook a callback onto ``init`` priority 20.

Example:
    >>> dispatcher = HookDispatcher()
    >>> dispatcher.add_filter("title", str.upper)
    >>> dispatcher.add_filter("title", lambda t: f"[{t}]", priority=20)
    >>> dispatcher.apply_filters("title", "hello")
    '[HELLO]'
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger


@dataclass
class Listener:
    """A registered listener."""

    target: Callable[..., Any]
    accepted_args: int = 1


class HookDispatcher:
    """Named events with prioritized listeners."""

    def __init__(self):
        self._hooks: dict[str, dict[int, list[Listener]]] = {}
        self._stack: list[list[Any]] = []
        self._fired: Counter[str] = Counter()

    # Registration

    def add(self, tag: str, target: Callable[..., Any], priority: int = 10, accepted_args: int = 1) -> bool:
        """Register ``target`` on ``tag``.

        Args:
            tag: Event name
            target: Listener callable
            priority: Lower runs first
            accepted_args: How many of the event's positional arguments are
                passed to the listener

        Returns:
            True once registered
        """
        self._hooks.setdefault(tag, {}).setdefault(int(priority), []).append(
            Listener(target, accepted_args)
        )
        logger.trace(f"Listener added to {tag} at priority {priority}")
        return True

    add_action = add
    add_filter = add

    def remove(self, tag: str, target: Callable[..., Any], priority: int = 10) -> bool:
        listeners = self._hooks.get(tag, {}).get(int(priority), [])
        for index, listener in enumerate(listeners):
            if listener.target == target:
                del listeners[index]
                return True
        return False

    def remove_all(self, tag: str, priority: int | None = None) -> None:
        """Remove every listener of ``tag``, or only those at ``priority``.

        Lists are emptied in place so that a firing in progress stops seeing
        the removed listeners.
        """
        hooks = self._hooks.get(tag)
        if not hooks:
            return

        for prio in list(hooks):
            if priority is None or prio == priority:
                hooks[prio].clear()
                del hooks[prio]

    def has(self, tag: str, target: Callable[..., Any] | None = None) -> bool | int:
        """Check for listeners on ``tag``.

        Returns:
            Without ``target``, whether any listener exists. With ``target``,
            its priority, or False if it is not registered.
        """
        hooks = self._hooks.get(tag, {})
        if target is None:
            return any(hooks.values())

        for priority, listeners in hooks.items():
            if any(listener.target == target for listener in listeners):
                return priority
        return False

    # Firing

    def apply_filters(self, tag: str, value: Any = None, *args: Any) -> Any:
        """Pass ``value`` through every listener of ``tag`` and return the result."""
        return self._run(tag, (value, *args), chain=True)

    def do_action(self, tag: str, *args: Any) -> None:
        """Notify every listener of ``tag``."""
        self._run(tag, args, chain=False)

    def fire(self, tag: str, *args: Any) -> Any:
        """Fire ``tag`` as a filter over its first argument."""
        return self._run(tag, args, chain=True)

    # State

    def current(self) -> str | None:
        """Name of the event currently firing."""
        return self._stack[-1][0] if self._stack else None

    def current_priority(self) -> int | None:
        """Priority being processed by the event currently firing."""
        return self._stack[-1][1] if self._stack else None

    def doing(self, tag: str | None = None) -> bool:
        if tag is None:
            return bool(self._stack)
        return any(frame[0] == tag for frame in self._stack)

    def did(self, tag: str) -> int:
        """Number of times ``tag`` has fired."""
        return self._fired[tag]

    def _run(self, tag: str, args: tuple, *, chain: bool) -> Any:
        value = args[0] if args else None
        self._fired[tag] += 1

        hooks = self._hooks.get(tag)
        if not hooks:
            return value

        frame: list[Any] = [tag, None]
        self._stack.append(frame)
        try:
            priority = None
            while True:
                pending = [p for p in hooks if priority is None or p > priority]
                if not pending:
                    break

                priority = min(pending)
                frame[1] = priority
                listeners = hooks[priority]

                index = 0
                while index < len(listeners):
                    listener = listeners[index]
                    index += 1

                    call_args = (value, *args[1:]) if chain and args else args
                    result = listener.target(*call_args[: max(listener.accepted_args, 0)])
                    if chain:
                        value = result
        finally:
            self._stack.pop()

        return value
