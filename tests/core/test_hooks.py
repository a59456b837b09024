"""Tests for live module, handler and callback descriptors."""

import pytest

from hook_fixtures import (
    AdminOnly,
    Counter,
    Greeter,
    LazyReports,
    Lifecycle,
    Mixed,
    Notices,
    PostView,
    Titles,
    Untagged,
)
from hookwire.core.definition import DefinitionMap
from hookwire.core.errors import LifecycleError
from hookwire.core.factory import HookFactory
from hookwire.core.hooks import Hook
from hookwire.core.scanner import DependencyScanner
from hookwire.core.tokens import callback_token
from hookwire.core.types import Delegate, HandlerState, Invoke, Strategy


@pytest.fixture
def factory(hook_container):
    definition = DependencyScanner().build(Lifecycle)
    hook_container.set(DefinitionMap, definition)
    hook_container.set("app.id", "test")
    return HookFactory(hook_container, definition)


def only_callback(factory, target):
    (callback,) = factory.get_callbacks(factory.get_handler(target))
    return callback


class TestModule:
    """Test module descriptors."""

    @pytest.mark.unit
    def test_accessors(self, factory):
        """Test the declaration is exposed."""
        module = factory.get_module(Lifecycle)

        assert module.classname == "hook_fixtures:Lifecycle"
        assert len(module.get_handlers()) == 15
        assert module.get_imports() == []
        assert module.get_services() == []
        assert not module.is_extendable()
        assert module.check_context()
        assert isinstance(module, Hook)


class TestHandlerState:
    """Test the handler state machine."""

    @pytest.mark.unit
    def test_initial_state(self, factory):
        """Test a fresh handler is uninitialized and enabled."""
        handler = factory.get_handler(Titles)

        assert handler.state == HandlerState.UNINITIALIZED
        assert handler.is_enabled()
        assert not handler.is_loaded()
        assert not handler.is_ready()
        assert not handler.is_busy()

    @pytest.mark.unit
    def test_queue_is_idempotent(self, factory):
        """Test queueing twice stays queued."""
        handler = factory.get_handler(Titles)
        handler.queue().queue()
        assert handler.state == HandlerState.QUEUED

    @pytest.mark.unit
    def test_illegal_transitions(self, factory):
        """Test skipping states raises LifecycleError."""
        handler = factory.get_handler(Titles)

        with pytest.raises(LifecycleError, match="UNINITIALIZED to CONFIGURING"):
            handler.transition(HandlerState.CONFIGURING)

        handler.transition(HandlerState.INSTANTIATING)
        assert handler.is_busy()
        with pytest.raises(LifecycleError):
            handler.transition(HandlerState.READY)

    @pytest.mark.unit
    def test_reject(self, factory):
        """Test rejection is terminal."""
        handler = factory.get_handler(Titles).queue().reject("Conditions not met")

        assert handler.state == HandlerState.REJECTED
        assert handler.reason == "Conditions not met"
        assert not handler.is_enabled()

        with pytest.raises(LifecycleError):
            handler.queue().transition(HandlerState.INSTANTIATING)

    @pytest.mark.unit
    def test_with_target(self, factory):
        """Test adopting an instance makes the handler ready."""
        handler = factory.get_handler(Titles)
        instance = Titles()
        handler.with_target(instance, "init")

        assert handler.is_ready()
        assert handler.is_loaded()
        assert handler.instance is instance
        assert handler.init_hook == "init"
        assert handler.user


class TestHandlerAccessors:
    """Test resolved handler properties."""

    @pytest.mark.unit
    def test_tag_and_priority(self, factory):
        """Test declared tag and priority."""
        handler = factory.get_handler(Titles)
        assert handler.get_tag() == "init"
        assert handler.get_priority() == 10

    @pytest.mark.unit
    def test_tag_modifiers(self, factory):
        """Test tag placeholders are filled."""
        assert factory.get_handler(PostView).get_tag() == "load_post"

    @pytest.mark.unit
    def test_untagged_binds_to_current_event(self, factory, dispatcher):
        """Test an untagged handler follows the event firing when asked."""
        handler = factory.get_handler(Untagged)
        assert handler.get_tag() is None

        seen = []
        dispatcher.add("boot", lambda: seen.append((handler.get_tag(), handler.get_priority())), 7, 0)
        dispatcher.do_action("boot")

        assert seen == [("boot", 8)]
        assert handler.get_tag() == "boot"

    @pytest.mark.unit
    def test_strategy(self, factory):
        """Test the declared strategy, or NEVER outside the handler's contexts."""
        assert factory.get_handler(Titles).get_strategy() is Strategy.DEFERRED
        assert factory.get_handler(LazyReports).get_strategy() is Strategy.LAZY
        assert factory.get_handler(LazyReports).is_lazy()
        assert factory.get_handler(AdminOnly).get_strategy() is Strategy.NEVER
        assert not factory.get_handler(AdminOnly).is_hookable()

    @pytest.mark.unit
    def test_lazy_tag(self, factory):
        """Test the internal init event of a lazy handler."""
        handler = factory.get_handler(LazyReports)
        assert handler.lazy_tag == "hookwire.handler::hook_fixtures:LazyReports_on-demand_init"

    @pytest.mark.unit
    def test_resolve_action_args(self, factory):
        """Test event arguments are split per delegate."""
        handler = factory.get_handler(PostView)

        assert handler.hook_args_count == 1
        assert handler.resolve_action_args((7,), Delegate.ON_LOAD) == ((), {"post_id": 7})
        assert handler.resolve_action_args((7,), Delegate.ON_CREATE) == ((), {"post_id": 7})
        assert factory.get_handler(Titles).resolve_action_args((7,), Delegate.ON_LOAD) == ((), {})

    @pytest.mark.unit
    def test_to_spec(self, factory):
        """Test the declaration carries the callback tokens."""
        handler = factory.get_handler(Counter)
        assert handler.to_spec().callbacks == [callback_token(Counter, "tick", "tick", 10)]


class TestCallback:
    """Test callback descriptors."""

    @pytest.mark.unit
    def test_accessors(self, factory):
        """Test resolved tag, priority and arguments."""
        handler = factory.get_handler(Titles)
        callback = factory.get_callback(callback_token(Titles, "viewed", "view_{}", 10))

        assert callback.get_tag() == "view_test"
        assert callback.get_priority() == 10
        assert callback.get_num_args() == 0
        assert callback.is_action
        assert callback.handler is handler

    @pytest.mark.unit
    def test_lazy_handler_forces_proxy(self, factory):
        """Test callbacks of lazy handlers are proxied, never standard."""
        callback = only_callback(factory, LazyReports)
        assert callback.flags == Invoke.PROXIED

    @pytest.mark.unit
    def test_standard_target_is_bound_method(self, factory):
        """Test standard callbacks hook the method itself."""
        handler = factory.get_handler(Titles)
        handler.with_target(Titles())

        upper, _ = factory.get_callbacks(handler)
        assert upper.get_target() == handler.instance.upper

    @pytest.mark.unit
    def test_params_need_proxy(self, factory):
        """Test a standard callback with injected params hooks invoke."""
        factory.get_handler(Greeter).with_target(Greeter())
        _, shout = factory.get_callbacks(factory.get_handler(Greeter))

        assert shout.flags == Invoke.STANDARD
        assert shout.get_target() == shout.invoke
        assert shout.invoke("hi") == "HI!"

    @pytest.mark.unit
    def test_context_mismatch_disables(self, factory):
        """Test a callback outside its contexts is disabled for good."""
        factory.get_handler(Mixed).with_target(Mixed())
        admin_only, everywhere = factory.get_callbacks(factory.get_handler(Mixed))

        assert not admin_only.can_load()
        assert not admin_only.enabled
        assert admin_only.reason == "Invalid context"
        assert everywhere.can_load()

    @pytest.mark.unit
    def test_not_loadable_before_instance(self, factory):
        """Test callbacks of non-lazy handlers wait for the instance."""
        callback = only_callback(factory, Counter)

        assert not callback.can_load()
        assert not callback.load()

        callback.handler.with_target(Counter())
        assert callback.load()
        assert callback.loaded

    @pytest.mark.unit
    def test_guarded_flags_need_proxy(self, factory):
        """Test once and looped callbacks hook invoke so their guards run."""
        callback = only_callback(factory, Counter)
        callback.handler.with_target(Counter())

        assert callback.flags.is_guarded
        assert callback.get_target() == callback.invoke

    @pytest.mark.unit
    def test_rejected_lazy_handler_not_loadable(self, factory):
        """Test callbacks of a rejected lazy handler are never hooked."""
        callback = only_callback(factory, LazyReports)
        callback.handler.queue().reject("Conditions not met")

        assert not callback.can_load()
        assert not callback.load()
        assert not callback.loaded


class TestInvoke:
    """Test the guarded entry point."""

    @pytest.mark.unit
    def test_filter_result(self, factory):
        """Test filters return the method's result."""
        handler = factory.get_handler(Notices)
        handler.with_target(Notices())
        callback = only_callback(factory, Notices)

        assert callback.invoke(42) == 43
        assert handler.instance.seen == [42]
        assert callback.fired == 1
        assert not callback.firing

    @pytest.mark.unit
    def test_safe_invoke_returns_first_argument(self, factory, log_messages):
        """Test an exception in a safe callback is logged and the value passed through."""
        handler = factory.get_handler(Notices)
        handler.with_target(Notices())
        handler.instance.fail = True
        callback = only_callback(factory, Notices)

        assert callback.invoke(42) == 42
        assert callback.fired == 1
        assert any(
            message.startswith("ERROR") and "save_post" in message and "database is gone" in message
            for message in log_messages
        )

    @pytest.mark.unit
    def test_unsafe_invoke_raises(self, factory):
        """Test exceptions propagate without the safe flag."""
        factory.get_handler(Titles).with_target(Titles())
        upper, _ = factory.get_callbacks(factory.get_handler(Titles))

        with pytest.raises(AttributeError):
            upper.invoke(None)

        assert upper.fired == 1
        assert not upper.firing

    @pytest.mark.unit
    def test_actions_return_none(self, factory):
        """Test actions never return a value."""
        factory.get_handler(Counter).with_target(Counter())
        callback = only_callback(factory, Counter)

        assert callback.invoke("ignored") is None
        assert callback.handler.instance.calls == 1

    @pytest.mark.unit
    def test_once(self, factory):
        """Test a once callback runs a single time."""
        factory.get_handler(Counter).with_target(Counter())
        callback = only_callback(factory, Counter)

        for _ in range(5):
            callback.invoke()

        assert callback.handler.instance.calls == 1
        assert callback.fired == 1

    @pytest.mark.unit
    def test_disabled_passes_through(self, factory):
        """Test a disabled callback returns the filtered value untouched."""
        factory.get_handler(Notices).with_target(Notices())
        callback = only_callback(factory, Notices)
        callback.enabled = False

        assert callback.invoke(42) == 42
        assert callback.handler.instance.seen == []

    @pytest.mark.unit
    def test_injected_params(self, factory):
        """Test injected params follow the event arguments."""
        factory.get_handler(Greeter).with_target(Greeter())
        greet, _ = factory.get_callbacks(factory.get_handler(Greeter))

        greet.invoke()
        assert greet.handler.instance.received == [("world", greet)]
