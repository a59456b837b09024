"""Tests for the definition cache."""

import json

import pytest

from hook_fixtures import LambdaModule, Root, SharedRoot
from hookwire.core.compiler import FILENAME, CacheCompiler
from hookwire.core.config import AppConfig
from hookwire.core.scanner import DependencyScanner


@pytest.fixture
def cache_config(tmp_path):
    return AppConfig(id="shop", version="1.0.0", cache=True, cache_dir=tmp_path / "cache")


@pytest.fixture
def compiler(cache_config, dispatcher):
    return CacheCompiler(cache_config, dispatcher)


class TestSave:
    """Test writing the cache."""

    @pytest.mark.unit
    def test_save_writes_payload(self, compiler, cache_config):
        """Test the file records format, entry and application version."""
        definition = DependencyScanner().build(Root)

        assert compiler.save(definition)
        assert compiler.path == cache_config.cache_dir / FILENAME

        payload = json.loads(compiler.path.read_text())
        assert payload["version"] == 1
        assert payload["entry"] == "hook_fixtures:Root"
        assert payload["app_version"] == "1.0.0"
        assert payload["definition"] == definition.to_data()

    @pytest.mark.unit
    def test_disabled(self, tmp_path):
        """Test nothing is written with the cache off."""
        compiler = CacheCompiler(AppConfig(cache=False, cache_dir=tmp_path))

        assert not compiler.enabled
        assert not compiler.save(DependencyScanner().build(Root))
        assert not compiler.path.exists()
        assert compiler.load(Root) is None

    @pytest.mark.unit
    def test_live_objects_not_cacheable(self, compiler, log_messages):
        """Test a definition holding a lambda is logged and skipped."""
        definition = DependencyScanner().build(LambdaModule)

        assert not compiler.save(definition)
        assert not compiler.path.exists()
        assert any("not cacheable" in message and message.startswith("WARNING") for message in log_messages)

    @pytest.mark.unit
    def test_unwritable_directory(self, tmp_path, log_messages):
        """Test a write failure is logged and reported."""
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        compiler = CacheCompiler(AppConfig(cache=True, cache_dir=blocker / "cache"))

        assert not compiler.save(DependencyScanner().build(Root))
        assert any(message.startswith("ERROR") for message in log_messages)


class TestLoad:
    """Test reading the cache."""

    @pytest.mark.unit
    def test_round_trip(self, compiler):
        """Test a saved definition loads back equal."""
        definition = DependencyScanner().build(Root)
        compiler.save(definition)

        loaded = compiler.load(Root)
        assert loaded == definition
        assert loaded.tree() == definition.tree()

    @pytest.mark.unit
    def test_entry_by_path(self, compiler):
        """Test the entry may be a class path."""
        compiler.save(DependencyScanner().build(Root))
        assert compiler.load("hook_fixtures:Root") is not None

    @pytest.mark.unit
    def test_miss(self, compiler):
        """Test a missing file is a miss."""
        assert compiler.load(Root) is None

    @pytest.mark.unit
    def test_other_entry_discards(self, compiler):
        """Test a cache built for another entry is removed."""
        compiler.save(DependencyScanner().build(SharedRoot))

        assert compiler.load(Root) is None
        assert not compiler.path.exists()

    @pytest.mark.unit
    def test_other_version_discards(self, compiler, tmp_path):
        """Test a cache built for another application version is removed."""
        compiler.save(DependencyScanner().build(Root))
        upgraded = CacheCompiler(AppConfig(id="shop", version="2.0.0", cache=True, cache_dir=tmp_path / "cache"))

        assert upgraded.load(Root) is None
        assert not upgraded.path.exists()

    @pytest.mark.unit
    def test_corrupt_file(self, compiler, log_messages):
        """Test unreadable JSON is logged, removed and treated as a miss."""
        compiler.path.parent.mkdir(parents=True)
        compiler.path.write_text("{not json")

        assert compiler.load(Root) is None
        assert any("unreadable" in message for message in log_messages)
        assert not compiler.path.exists()

    @pytest.mark.unit
    def test_malformed_definition(self, compiler, log_messages):
        """Test a payload with a broken definition is removed and treated as a miss."""
        compiler.path.parent.mkdir(parents=True)
        compiler.path.write_text(
            json.dumps({"version": 1, "entry": "hook_fixtures:Root", "app_version": "1.0.0", "definition": {}})
        )

        assert compiler.load(Root) is None
        assert any("malformed" in message for message in log_messages)
        assert not compiler.path.exists()


class TestCompile:
    """Test load-or-build."""

    @pytest.mark.unit
    def test_builds_once(self, compiler):
        """Test the builder runs on a miss only."""
        builds = []

        def build():
            builds.append(1)
            return DependencyScanner().build(Root)

        first = compiler.compile(Root, build)
        second = compiler.compile(Root, build)

        assert builds == [1]
        assert first == second


class TestDecompile:
    """Test discarding the cache."""

    @pytest.mark.unit
    def test_immediate(self, compiler):
        """Test immediate removal."""
        compiler.save(DependencyScanner().build(Root))
        compiler.decompile(immediate=True)

        assert not compiler.path.exists()

    @pytest.mark.unit
    def test_deferred_to_shutdown(self, compiler, dispatcher):
        """Test removal waits for the shutdown event."""
        compiler.save(DependencyScanner().build(Root))
        compiler.decompile()

        assert compiler.path.exists()
        dispatcher.do_action("shutdown")
        assert not compiler.path.exists()

    @pytest.mark.unit
    def test_without_dispatcher(self, cache_config):
        """Test removal is immediate without a dispatcher."""
        compiler = CacheCompiler(cache_config)
        compiler.save(DependencyScanner().build(Root))
        compiler.decompile()

        assert not compiler.path.exists()

    @pytest.mark.unit
    def test_nothing_to_remove(self, compiler):
        """Test decompiling without a cache file is harmless."""
        compiler.decompile(immediate=True)
        assert not compiler.path.exists()
