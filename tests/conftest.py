"""Shared test fixtures and utilities."""

import pytest
from loguru import logger

from hookwire.core.application import App
from hookwire.core.config import AppConfig
from hookwire.core.container import Container
from hookwire.core.context import Context, ContextEvaluator
from hookwire.core.dispatcher import HookDispatcher


@pytest.fixture
def container():
    """Create a fresh container for testing."""
    container = Container()
    yield container
    container.clear()


@pytest.fixture
def dispatcher():
    """Create a fresh event dispatcher for testing."""
    return HookDispatcher()


@pytest.fixture
def context():
    """A frontend run."""
    return ContextEvaluator(current=Context.FRONTEND)


@pytest.fixture
def config(tmp_path):
    """Configuration with the definition cache off and deterministic ids."""
    return AppConfig(id="test", env="testing", cache=False, cache_dir=tmp_path / "cache", snapshot=True)


@pytest.fixture
def hook_container(container, dispatcher, context, config):
    """Container holding the runtime services live hooks look up."""
    container.set(HookDispatcher, dispatcher)
    container.set(ContextEvaluator, context)
    container.set(AppConfig, config)
    return container


@pytest.fixture
def make_app(config, context):
    """Build and boot applications sharing the test configuration."""
    apps = []

    def make(entry, **kwargs):
        app = App(
            entry,
            kwargs.pop("config", config),
            context=kwargs.pop("context", context),
            **kwargs,
        )
        apps.append(app)
        return app.boot()

    yield make

    for app in apps:
        app.shutdown()


@pytest.fixture
def log_messages():
    """Capture formatted loguru messages at DEBUG and above."""
    messages = []
    sink_id = logger.add(messages.append, level="DEBUG", format="{level}|{message}")
    yield messages
    logger.remove(sink_id)
