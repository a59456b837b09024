"""Definition cache: saves scanned definition maps and loads them back.

A cache hit skips scanning entirely. The file records the entry module and
application version it was built for, and is discarded when either differs
or when it cannot be read back. Cache failures are never fatal: they are
logged and the caller scans.

File layout (``hook-definition.json``)::

    {
        "version": 1,
        "entry": "app.main:Root",
        "app_version": "1.2.0",
        "definition": {"entry": ..., "aliases": ..., "hooks": ..., "values": ..., "defs": ..., "services": ...}
    }
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Callable

from loguru import logger

from .config import AppConfig
from .definition import DefinitionMap
from .dispatcher import HookDispatcher
from .errors import CacheError, InvalidDefinitionError
from .tokens import target_of

FILENAME = "hook-definition.json"
FORMAT_VERSION = 1


class CacheCompiler:
    """Reads and writes the definition cache.

    Args:
        config: Application configuration (cache policy, directory, version)
        dispatcher: Dispatcher whose shutdown event runs deferred decompilation
    """

    def __init__(self, config: AppConfig, dispatcher: HookDispatcher | None = None):
        self.config = config
        self.dispatcher = dispatcher
        self._log = logger.bind(app=config.id)

    @property
    def path(self) -> Path:
        return Path(self.config.cache_dir) / FILENAME

    @property
    def enabled(self) -> bool:
        return bool(self.config.cache)

    def compile(self, entry: type | str, build: Callable[[], DefinitionMap]) -> DefinitionMap:
        """Load the cached definition for ``entry``, or build and save one."""
        definition = self.load(entry)
        if definition is not None:
            return definition

        definition = build()
        self.save(definition)
        return definition

    def load(self, entry: type | str) -> DefinitionMap | None:
        """Load the cached definition map, or None on a miss."""
        if not self.enabled or not self.path.exists():
            return None

        try:
            payload = self._read()
        except CacheError as e:
            self._log.warning(f"Definition cache unreadable, rescanning: {e}")
            self._remove()
            return None

        if not self._matches(payload, target_of(entry)):
            self._log.debug(f"Definition cache at {self.path} is stale, discarding")
            self._remove()
            return None

        try:
            return DefinitionMap.from_data(payload["definition"])
        except InvalidDefinitionError as e:
            self._log.warning(f"Definition cache malformed, rescanning: {e}")
            self._remove()
            return None

    def save(self, definition: DefinitionMap) -> bool:
        """Write ``definition`` to the cache.

        Returns:
            False when caching is disabled, the map holds live objects that
            cannot be serialized, or the file cannot be written
        """
        if not self.enabled:
            return False

        payload = {
            "version": FORMAT_VERSION,
            "entry": definition.entry,
            "app_version": self.config.version,
            "definition": definition.to_data(),
        }

        try:
            text = json.dumps(payload, indent=2)
        except (TypeError, ValueError) as e:
            self._log.warning(f"Definition for {definition.entry} is not cacheable: {e}")
            return False

        try:
            self._write(text)
        except CacheError as e:
            self._log.error(f"Failed to write definition cache: {e}")
            return False

        self._log.debug(f"Definition cache written to {self.path}")
        return True

    def decompile(self, immediate: bool = False) -> None:
        """Discard the cache now, or when the shutdown event fires."""
        if immediate or self.dispatcher is None:
            self._remove()
            return

        self.dispatcher.add(self.config.shutdown_event, self._remove, 10_000, 0)

    def _matches(self, payload: dict, entry: str) -> bool:
        return (
            isinstance(payload, dict)
            and payload.get("version") == FORMAT_VERSION
            and payload.get("entry") == entry
            and payload.get("app_version") == self.config.version
            and isinstance(payload.get("definition"), dict)
        )

    def _read(self) -> dict:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CacheError(f"Cannot read {self.path}", path=self.path, cause=e) from e

    def _write(self, text: str) -> None:
        tmp = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise CacheError(f"Cannot write {self.path}", path=self.path, cause=e) from e

    def _remove(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            self._log.error(f"Failed to remove definition cache: {e}")
