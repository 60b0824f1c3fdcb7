"""Tests for detectors/workspace.py: module discovery for Gradle, Maven and config."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import yaml

from buildgate.config import CONFIG_FILE_NAME, load_config
from buildgate.detectors.workspace import _parse_gradle_includes, detect_workspace

if TYPE_CHECKING:
    from pathlib import Path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_file(root: Path, rel: str, content: str = "") -> None:
    """Write *content* to a file at *root/rel*."""
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")


def _make_dirs(root: Path, rel_paths: list[str]) -> None:
    for rel in rel_paths:
        (root / rel).mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# Generic fallback
# ---------------------------------------------------------------------------


class TestGenericSingleModule:
    def test_empty_directory(self, tmp_path: Path) -> None:
        profile = detect_workspace(tmp_path)
        assert profile.tool == "generic"
        assert len(profile.modules) == 1
        assert profile.modules[0].name == tmp_path.name
        assert profile.modules[0].path == "."
        assert not profile.is_multi_module

    def test_not_a_directory(self, tmp_path: Path) -> None:
        target = tmp_path / "file.txt"
        target.write_text("x", encoding="utf-8")
        with pytest.raises(ValueError, match="Not a directory"):
            detect_workspace(target)


# ---------------------------------------------------------------------------
# Gradle
# ---------------------------------------------------------------------------


class TestParseGradleIncludes:
    def test_kotlin_dsl_calls(self) -> None:
        text = 'include("core", ":api")\ninclude(":libs:util")\n'
        assert _parse_gradle_includes(text) == ["core", "api", "libs:util"]

    def test_groovy_bare_include(self) -> None:
        text = "include 'core', 'api'\n"
        assert _parse_gradle_includes(text) == ["core", "api"]

    def test_comments_ignored(self) -> None:
        text = '// include("old")\n/* include("older") */\ninclude("core")\n'
        assert _parse_gradle_includes(text) == ["core"]

    def test_duplicates_removed(self) -> None:
        assert _parse_gradle_includes('include("a")\ninclude(":a")') == ["a"]


class TestGradleDetection:
    def test_settings_kts(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "settings.gradle.kts", 'include("core", "libs:util")\n')
        _make_dirs(tmp_path, ["core", "libs/util"])

        profile = detect_workspace(tmp_path)

        assert profile.tool == "gradle"
        assert [(m.name, m.path) for m in profile.modules] == [
            ("core", "core"),
            ("libs:util", "libs/util"),
        ]
        assert profile.is_multi_module

    def test_include_without_directory_skipped(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "settings.gradle", "include 'core', 'ghost'\n")
        _make_dirs(tmp_path, ["core"])
        profile = detect_workspace(tmp_path)
        assert [m.name for m in profile.modules] == ["core"]

    def test_relocated_project_dir(self, tmp_path: Path) -> None:
        _write_file(
            tmp_path,
            "settings.gradle.kts",
            'include("api")\nproject(":api").projectDir = file("modules/api")\n',
        )
        _make_dirs(tmp_path, ["modules/api"])
        profile = detect_workspace(tmp_path)
        assert profile.modules[0].path == "modules/api"

    def test_project_dependencies(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "settings.gradle.kts", 'include("core", "api")\n')
        _write_file(tmp_path, "core/build.gradle.kts", "")
        _write_file(
            tmp_path,
            "api/build.gradle.kts",
            'dependencies {\n    implementation(project(":core"))\n    // project(":gone")\n}\n',
        )
        profile = detect_workspace(tmp_path)
        deps = {m.name: m.dependencies for m in profile.modules}
        assert deps == {"core": [], "api": ["core"]}

    def test_settings_without_includes_falls_through(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "settings.gradle.kts", 'rootProject.name = "solo"\n')
        profile = detect_workspace(tmp_path)
        assert profile.tool == "generic"


# ---------------------------------------------------------------------------
# Maven
# ---------------------------------------------------------------------------


class TestMavenDetection:
    def test_modules_and_dependencies(self, tmp_path: Path) -> None:
        _write_file(
            tmp_path,
            "pom.xml",
            "<project><modules><module>core</module><module>web</module>"
            "<module>missing</module></modules></project>",
        )
        _write_file(tmp_path, "core/pom.xml", "<project><artifactId>core</artifactId></project>")
        _write_file(
            tmp_path,
            "web/pom.xml",
            "<project><artifactId>web</artifactId><dependencies><dependency>"
            "<artifactId>core</artifactId></dependency></dependencies></project>",
        )

        profile = detect_workspace(tmp_path)

        assert profile.tool == "maven"
        assert [m.name for m in profile.modules] == ["core", "web"]
        assert profile.modules[1].dependencies == ["core"]

    def test_pom_without_modules(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "pom.xml", "<project><artifactId>solo</artifactId></project>")
        assert detect_workspace(tmp_path).tool == "generic"


# ---------------------------------------------------------------------------
# Config wins
# ---------------------------------------------------------------------------


class TestConfigModules:
    def test_explicit_modules_override_detection(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "settings.gradle.kts", 'include("core")\n')
        _make_dirs(tmp_path, ["core"])
        entry = {
            "name": "only",
            "path": "x",
            "plugins": ["jacoco"],
            "overrides": {"encoding": "ASCII"},
        }
        (tmp_path / CONFIG_FILE_NAME).write_text(
            yaml.dump({"project": {"modules": [entry]}}), encoding="utf-8"
        )

        profile = detect_workspace(tmp_path, load_config(tmp_path))

        assert profile.tool == "config"
        assert len(profile.modules) == 1
        module = profile.modules[0]
        assert module.name == "only"
        assert module.path == "x"
        assert module.plugins == {"jacoco"}
        assert module.overrides == {"encoding": "ASCII"}
