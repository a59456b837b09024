"""Tests for tag, priority and injected parameter resolution."""

import pytest

from hook_fixtures import is_debug, late_priority, shop_columns
from hookwire.core.container import Container
from hookwire.core.context import Context
from hookwire.core.errors import InvalidDefinitionError
from hookwire.core.params import (
    check_context,
    check_predicate,
    constant,
    resolve_param,
    resolve_params,
    resolve_priority,
    resolve_tag,
    resolve_vars,
)


@pytest.fixture
def services(hook_container, config):
    config.constants["PRIORITY"] = 42
    hook_container.set("app.id", "test")
    return hook_container


class TestResolveParam:
    """Test injected parameter references."""

    @pytest.mark.unit
    def test_literal_value(self, services):
        """Test !value: gives the text after the prefix."""
        assert resolve_param("!value:hello", services) == "hello"
        assert resolve_param("!value:", services) == ""

    @pytest.mark.unit
    def test_constant(self, services, monkeypatch):
        """Test !const: reads configuration constants, then the environment."""
        monkeypatch.setenv("HOOKWIRE_TEST_FLAG", "on")

        assert resolve_param("!const:PRIORITY", services) == 42
        assert resolve_param("!const:HOOKWIRE_TEST_FLAG", services) == "on"
        assert resolve_param("!const:HOOKWIRE_UNSET_CONSTANT", services) is None

    @pytest.mark.unit
    def test_global(self, services):
        """Test !global: imports objects, or gives None."""
        assert resolve_param("!global:hook_fixtures:is_debug", services) is is_debug
        assert resolve_param("!global:os.sep", services) is not None
        assert resolve_param("!global:hook_fixtures:nothing_here", services) is None

    @pytest.mark.unit
    def test_container_keys(self, services, dispatcher):
        """Test container keys resolve through the container."""
        assert resolve_param("app.id", services) == "test"
        assert resolve_param("hookwire.core.dispatcher:HookDispatcher", services) is dispatcher

    @pytest.mark.unit
    def test_refs(self, services):
        """Test self references come from the refs mapping."""
        hook = object()
        assert resolve_param("!self.hook", services, {"!self.hook": hook}) is hook

    @pytest.mark.unit
    def test_passthrough(self, services):
        """Test unknown strings and non-strings pass through."""
        assert resolve_param("plain text", services) == "plain text"
        assert resolve_param(42, services) == 42
        assert resolve_params(["!value:a", 1, "app.id"], services) == ["a", 1, "test"]

    @pytest.mark.unit
    def test_constant_without_config(self, container, monkeypatch):
        """Test constants fall back to the environment without configuration."""
        monkeypatch.setenv("HOOKWIRE_TEST_FLAG", "env")
        assert constant("HOOKWIRE_TEST_FLAG", container) == "env"


class TestResolveTag:
    """Test event name templating."""

    @pytest.mark.unit
    def test_no_modifiers(self, services):
        """Test tags without modifiers are unchanged."""
        assert resolve_tag("init", [], services) == "init"
        assert resolve_tag(None, ["x"], services) is None

    @pytest.mark.unit
    def test_placeholders(self, services):
        """Test placeholders are filled in order with resolved modifiers."""
        assert resolve_tag("save_{}_{}", ["!value:post", "app.id"], services) == "save_post_test"


class TestResolveVars:
    """Test dynamic callback variables."""

    @pytest.mark.unit
    def test_list(self, services):
        """Test each item is both the substitution and the value."""
        assert resolve_vars(["page", "product"], services) == {"page": "page", "product": "product"}

    @pytest.mark.unit
    def test_dict(self, services):
        """Test dicts are used as given."""
        assert resolve_vars({"page": "Page"}, services) == {"page": "Page"}

    @pytest.mark.unit
    def test_callable(self, services):
        """Test callables and their paths are called."""
        expected = {"price": "Price", "stock": "Stock"}

        assert resolve_vars(shop_columns, services) == expected
        assert resolve_vars("hook_fixtures:shop_columns", services) == expected

    @pytest.mark.unit
    def test_container_key(self, services):
        """Test container keys are looked up first."""
        services.set("post.types", ["book"])
        assert resolve_vars("post.types", services) == {"book": "book"}

    @pytest.mark.unit
    def test_unresolvable(self, services):
        """Test a string naming neither a key nor an object."""
        with pytest.raises(InvalidDefinitionError):
            resolve_vars("nowhere:types", services)


class TestResolvePriority:
    """Test priority declarations."""

    @pytest.mark.unit
    def test_ints(self, services):
        """Test ints and numeric strings."""
        assert resolve_priority(5, services) == 5
        assert resolve_priority("-3", services) == -3
        assert resolve_priority(None, services) == 10

    @pytest.mark.unit
    def test_constant(self, services):
        """Test !const: priorities."""
        assert resolve_priority("!const:PRIORITY", services) == 42
        assert resolve_priority("!const:HOOKWIRE_UNSET_CONSTANT", services) == 10

    @pytest.mark.unit
    def test_filtered_default(self, services, dispatcher):
        """Test filter:default applies the filter to the default."""
        assert resolve_priority("notices_priority:15", services, "init") == 15

        dispatcher.add_filter("notices_priority", lambda default, tag: default + 100 if tag == "init" else 0, 10, 2)
        assert resolve_priority("notices_priority:15", services, "init") == 115

    @pytest.mark.unit
    def test_callable(self, services):
        """Test callables and their paths are called with the event name."""
        assert resolve_priority(late_priority, services, "prio_event") == 99
        assert resolve_priority("hook_fixtures:late_priority", services, "other") == 1

    @pytest.mark.unit
    def test_invalid(self, services):
        """Test booleans and dangling paths are rejected."""
        with pytest.raises(TypeError):
            resolve_priority(True, services)
        with pytest.raises(InvalidDefinitionError):
            resolve_priority("hook_fixtures:no_priority", services)


class TestChecks:
    """Test context and predicate checks."""

    @pytest.mark.unit
    def test_check_context(self, services):
        """Test masks are validated against the current context."""
        assert check_context(services, Context.FRONTEND)
        assert not check_context(services, Context.ADMIN)

    @pytest.mark.unit
    def test_check_context_without_evaluator(self):
        """Test every mask passes without an evaluator."""
        assert check_context(Container(), Context.CRON)

    @pytest.mark.unit
    def test_check_predicate(self, services, config):
        """Test predicates are called through the container."""
        assert check_predicate(services, None)
        assert not check_predicate(services, is_debug)
        assert not check_predicate(services, "hook_fixtures:is_debug")

        config.debug = True
        assert check_predicate(services, is_debug)

    @pytest.mark.unit
    def test_check_predicate_arguments(self, services):
        """Test event arguments are forwarded."""
        assert check_predicate(services, lambda post_id: post_id > 0, 5)
        assert not check_predicate(services, lambda post_id: post_id > 0, post_id=-5)

