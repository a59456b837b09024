"""Tests for hook tokens and the id factory."""

import pytest

from hook_fixtures import Notices, Root
from hookwire.core.errors import InvalidDefinitionError
from hookwire.core.tokens import (
    IdFactory,
    callback_token,
    class_path,
    handler_token,
    import_path,
    is_importable,
    is_token,
    lazy_tag,
    module_token,
    target_of,
    token_kind,
    token_target,
)


class TestTokens:
    """Test token construction and parsing."""

    @pytest.mark.unit
    def test_class_path(self):
        """Test the module:qualname form."""
        assert class_path(Notices) == "hook_fixtures:Notices"

    @pytest.mark.unit
    def test_tokens(self):
        """Test each token kind."""
        assert module_token(Root) == "hookwire.module::hook_fixtures:Root"
        assert handler_token(Notices) == "hookwire.handler::hook_fixtures:Notices"
        assert (
            callback_token(Notices, "on_save", "save_post", 20)
            == "hookwire.callback::hook_fixtures:Notices::on_save[save_post:20]"
        )

    @pytest.mark.unit
    def test_tokens_from_any_reference(self):
        """Test classes, paths, instances and other tokens give the same token."""
        expected = handler_token(Notices)
        assert handler_token("hook_fixtures:Notices") == expected
        assert handler_token(Notices()) == expected
        assert handler_token(module_token(Notices)) == expected

    @pytest.mark.unit
    def test_token_kind(self):
        """Test kind detection."""
        assert token_kind(module_token(Root)) == "module"
        assert token_kind(handler_token(Root)) == "handler"
        assert token_kind(callback_token(Root, "m", "t", 1)) == "callback"
        assert token_kind("app.id") is None
        assert token_kind("hookwire.service::x:Y") is None
        assert token_kind("other.handler::x:Y") is None

    @pytest.mark.unit
    def test_is_token(self):
        """Test plain container keys are not tokens."""
        assert is_token(handler_token(Root))
        assert not is_token("hook_fixtures:Root")

    @pytest.mark.unit
    def test_token_target(self):
        """Test the class path is recovered from a token."""
        token = callback_token(Notices, "on_save", "save_post", 20)
        assert token_target(token) == "hook_fixtures:Notices"
        assert target_of(token) == "hook_fixtures:Notices"

    @pytest.mark.unit
    def test_lazy_tag(self):
        """Test the internal init event name."""
        token = handler_token(Notices)
        assert lazy_tag(token, "on-demand") == f"{token}_on-demand_init"


class TestImports:
    """Test importing by class path."""

    @pytest.mark.unit
    def test_import_path(self):
        """Test a class path resolves to the class."""
        assert import_path("hook_fixtures:Notices") is Notices

    @pytest.mark.unit
    def test_missing_path(self):
        """Test missing classes raise InvalidDefinitionError."""
        with pytest.raises(InvalidDefinitionError, match="does not exist") as exc_info:
            import_path("hook_fixtures:Missing")
        assert exc_info.value.service_key == "hook_fixtures:Missing"

    @pytest.mark.unit
    def test_is_importable(self):
        """Test lambdas and local classes are not importable."""

        class Local:
            pass

        assert is_importable(Notices)
        assert not is_importable(lambda: None)
        assert not is_importable(Local)


class TestIdFactory:
    """Test id generation."""

    @pytest.mark.unit
    def test_random_ids(self):
        """Test random ids are fresh every time."""
        ids = IdFactory()
        first, second = ids.get("app"), ids.get("app")
        assert first != second
        assert len(first) == 21

    @pytest.mark.unit
    def test_hash_code(self):
        """Test the signed 32-bit polynomial hash."""
        assert IdFactory.hash_code("") == "0"
        assert IdFactory.hash_code("hello") == "99162322"
        assert IdFactory.hash_code("polygenelubricants") == "-2147483648"

    @pytest.mark.unit
    def test_deterministic_ids(self):
        """Test snapshot ids repeat across factories."""
        assert IdFactory(snapshot=True).get("shop") == IdFactory(snapshot=True).get("shop")

    @pytest.mark.unit
    def test_deterministic_collisions(self):
        """Test a repeated key gets a new id within one factory."""
        ids = IdFactory(snapshot=True)
        first = ids.get("shop")
        second = ids.get("shop")

        assert first != second
        assert second == IdFactory.hash_code("shop_1")

    @pytest.mark.unit
    def test_clear(self):
        """Test clearing forgets issued ids."""
        ids = IdFactory(snapshot=True)
        first = ids.get("shop")
        assert ids.clear().get("shop") == first
