"""Tests for registry.py: module enumeration and policy application."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import yaml

from buildgate.config import CONFIG_FILE_NAME, load_config
from buildgate.models.module import Module
from buildgate.registry import PUBLISHING_PLUGIN, ModuleRegistry

if TYPE_CHECKING:
    from pathlib import Path


def _gradle_project(root: Path, modules: list[str], config: dict | None = None) -> None:
    includes = ", ".join(f'"{m}"' for m in modules)
    (root / "settings.gradle.kts").write_text(f"include({includes})\n", encoding="utf-8")
    for m in modules:
        (root / m.replace(":", "/")).mkdir(parents=True, exist_ok=True)
    if config is not None:
        (root / CONFIG_FILE_NAME).write_text(yaml.dump(config), encoding="utf-8")


class TestModuleRegistry:
    def test_empty_registry_is_valid(self) -> None:
        registry = ModuleRegistry()
        calls: list[str] = []
        registry.apply_to_all(lambda m: calls.append(m.name))
        assert len(registry) == 0
        assert calls == []

    def test_duplicate_names_rejected(self) -> None:
        with pytest.raises(ValueError, match="registered twice"):
            ModuleRegistry([Module(name="a"), Module(name="a")])

    def test_get_unknown_lists_available(self) -> None:
        registry = ModuleRegistry([Module(name="a"), Module(name="b")])
        with pytest.raises(KeyError, match="Available: a, b"):
            registry.get("c")

    def test_apply_to_all_visits_each_once_in_order(self) -> None:
        registry = ModuleRegistry([Module(name="a"), Module(name="b"), Module(name="c")])
        seen: list[str] = []
        registry.apply_to_all(lambda m: seen.append(m.name))
        assert seen == ["a", "b", "c"]

    def test_contains_and_iteration(self) -> None:
        registry = ModuleRegistry([Module(name="a")])
        assert "a" in registry
        assert "z" not in registry
        assert [m.name for m in registry] == ["a"]
        assert registry.all_modules()[0].name == "a"

    def test_with_plugin_fires_for_late_plugins(self) -> None:
        a = Module(name="a", plugins={"jacoco"})
        b = Module(name="b")
        registry = ModuleRegistry([a, b])
        seen: list[str] = []

        registry.with_plugin("jacoco", lambda m: seen.append(m.name))
        assert seen == ["a"]

        b.apply_plugin("jacoco")
        assert seen == ["a", "b"]


class TestDiscover:
    def test_applies_base_plugins(self, tmp_path: Path) -> None:
        _gradle_project(tmp_path, ["core", "api"], {"project": {"plugins": ["java", "jacoco"]}})
        registry = ModuleRegistry.discover(tmp_path, load_config(tmp_path))

        assert registry.tool == "gradle"
        assert [m.name for m in registry] == ["core", "api"]
        for module in registry:
            assert module.plugins == {"java", "jacoco"}

    def test_publishing_subset(self, tmp_path: Path) -> None:
        _gradle_project(tmp_path, ["core", "api", "samples"], {"project": {"publishing": ["core", "api"]}})
        registry = ModuleRegistry.discover(tmp_path, load_config(tmp_path))

        assert registry.get("core").has_plugin(PUBLISHING_PLUGIN)
        assert registry.get("api").has_plugin(PUBLISHING_PLUGIN)
        assert not registry.get("samples").has_plugin(PUBLISHING_PLUGIN)

    def test_publishing_wildcard(self, tmp_path: Path) -> None:
        _gradle_project(tmp_path, ["core", "api"], {"project": {"publishing": "*"}})
        registry = ModuleRegistry.discover(tmp_path, load_config(tmp_path))
        assert all(m.has_plugin(PUBLISHING_PLUGIN) for m in registry)

    def test_overrides_merged(self, tmp_path: Path) -> None:
        _gradle_project(tmp_path, ["core"], {"overrides": {"core": {"encoding": "ISO-8859-1"}}})
        registry = ModuleRegistry.discover(tmp_path, load_config(tmp_path))
        assert registry.get("core").overrides == {"encoding": "ISO-8859-1"}

    def test_single_module_project(self, tmp_path: Path) -> None:
        registry = ModuleRegistry.discover(tmp_path, load_config(tmp_path))
        assert len(registry) == 1
        assert registry.tool == "generic"
