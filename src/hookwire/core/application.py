"""Application bootstrap: wires the engine together around an entry module.

An ``App`` owns one container, one dispatcher and one definition map. Booting
loads the definition (from cache, or by scanning), binds the runtime services
and registers the entry module, which then cascades through its imports and
handlers as their events fire.

Classes:
    CoreModule: Runtime services implicitly imported by every entry module
    App: A booted module graph
    AppRegistry: Explicit registry of running applications, keyed by id

Example:
    >>> app = App(Root, AppConfig(id="shop", cache=False)).boot()
    >>> app.dispatcher.do_action("init")
    >>> app.get_handler(Notices).is_ready()
    True
    >>> app.shutdown()
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from .compiler import CacheCompiler
from .config import AppConfig
from .container import Container
from .context import ContextEvaluator
from .decorators import module
from .definition import DefinitionMap
from .dispatcher import HookDispatcher
from .errors import ConfigurationError
from .factory import HookFactory
from .hooks import Callback, Handler, Module
from .invoker import Invoker
from .registry import autowire
from .scanner import DependencyScanner


@module
class CoreModule:
    """Runtime services every application imports."""

    @staticmethod
    def configure() -> dict[Any, Any]:
        return {
            HookFactory: autowire(HookFactory),
            Invoker: autowire(Invoker),
        }


class App:
    """A module graph bound to a container and dispatcher.

    Args:
        entry: Entry module class (or its ``module:qualname`` path)
        config: Application configuration
        context: Context evaluator. Defaults to one read from the environment.
        dispatcher: Event dispatcher to ride on
        container: Container to populate
    """

    def __init__(
        self,
        entry: type | str,
        config: AppConfig | None = None,
        *,
        context: ContextEvaluator | None = None,
        dispatcher: HookDispatcher | None = None,
        container: Container | None = None,
    ):
        self.entry = entry
        self.config = config or AppConfig()
        self.context = context or ContextEvaluator.from_environ()
        self.dispatcher = dispatcher or HookDispatcher()
        self.container = container or Container()

        self.compiler = CacheCompiler(self.config, self.dispatcher)
        self.scanner = DependencyScanner(self.dispatcher, self.config.id, CoreModule)
        self.definition: DefinitionMap | None = None
        self.booted = False

        self._log = logger.bind(app=self.config.id)

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def start_event(self) -> str:
        return f"hookwire_{self.config.uuid}_app_start"

    @property
    def invoker(self) -> Invoker:
        return self.container.get(Invoker)

    @property
    def factory(self) -> HookFactory:
        return self.container.get(HookFactory)

    @property
    def module(self) -> Module:
        return self.factory.get_module(self.entry)

    # Lifecycle

    def boot(self) -> App:
        """Load the definition, bind services and register the entry module."""
        if self.booted:
            return self

        self.definition = self._load_definition()
        self._bind()

        self.dispatcher.do_action(self.start_event, self)
        self.invoker.register_module(self.entry)
        self.booted = True

        self._log.debug(f"Application booted in {self.context.show()} context")
        return self

    def shutdown(self) -> None:
        """Fire the shutdown event."""
        if not self.booted:
            return

        self.dispatcher.do_action(self.config.shutdown_event)
        self.booted = False
        self._log.debug("Application shut down")

    def decompile(self, immediate: bool = False) -> None:
        """Discard the definition cache, now or at shutdown."""
        self.compiler.decompile(immediate)

    def _load_definition(self) -> DefinitionMap:
        if self.config.cache:
            definition = self.compiler.compile(self.entry, lambda: self.scanner.build(self.entry))
        else:
            definition = self.scanner.build(self.entry)

        if isinstance(self.entry, type):
            definition.register_class(self.entry)
        return definition

    def _bind(self) -> None:
        container = self.container

        container.set(Container, container)
        container.set(App, self)
        container.set(AppConfig, self.config)
        container.set(HookDispatcher, self.dispatcher)
        container.set(ContextEvaluator, self.context)
        container.set(DefinitionMap, self.definition)

        container.set("app.id", self.config.id)
        container.set("app.uuid", self.config.uuid)
        container.set("app.version", self.config.version)
        container.set("app.env", self.config.env)
        container.set("app.debug", self.config.debug)

        container.define(self.definition.bindings())
        for path in self.definition.services:
            container.singleton(self.definition.get_class(path))

    # Lookups

    def get_module(self, target: Any) -> Module:
        return self.factory.get_module(target)

    def get_handler(self, target: Any) -> Handler:
        return self.factory.get_handler(target)

    def get_callback(self, token: str) -> Callback:
        return self.factory.get_callback(token)

    def load_handler(self, instance: Any) -> Handler:
        """Hook the callbacks of a caller-constructed object."""
        return self.invoker.load_handler(instance)

    def get(self, key: str | type) -> Any:
        return self.container.get(key)

    def __enter__(self) -> App:
        return self.boot()

    def __exit__(self, *args) -> None:
        self.shutdown()


class AppRegistry:
    """Running applications, keyed by id.

    Passed explicitly to whatever needs to look applications up; there is
    no process-wide instance.
    """

    def __init__(self):
        self._apps: dict[str, App] = {}

    def create(self, entry: type | str, config: AppConfig | None = None, **kwargs) -> App:
        """Create and boot an application, or return the one with the same id."""
        config = config or AppConfig()
        if config.id in self._apps:
            return self._apps[config.id]

        app = App(entry, config, **kwargs)
        self._apps[config.id] = app
        return app.boot()

    def get(self, app_id: str) -> App:
        if app_id not in self._apps:
            raise ConfigurationError(f"No application with id '{app_id}'")
        return self._apps[app_id]

    def has(self, app_id: str) -> bool:
        return app_id in self._apps

    def decompile(self, app_id: str, immediate: bool = False) -> None:
        self.get(app_id).decompile(immediate)

    def shutdown(self) -> None:
        """Shut every application down and forget them."""
        for app in list(self._apps.values()):
            app.shutdown()
        self._apps.clear()

    def __contains__(self, app_id: str) -> bool:
        return self.has(app_id)

    def __len__(self) -> int:
        return len(self._apps)
