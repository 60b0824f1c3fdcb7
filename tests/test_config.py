"""Tests for config.py: .buildgate.yml parsing and validation."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
import yaml

from buildgate.config import (
    CONFIG_FILE_NAME,
    DEFAULT_PLUGINS,
    DEFAULT_TOOL_VERSIONS,
    ToolchainConfig,
    _resolve_env_vars,
    _resolve_value,
    load_config,
    parse_mode,
    validate_config,
)
from buildgate.errors import ConfigurationError

if TYPE_CHECKING:
    from buildgate.config import BuildGateConfig


def _write_config(root: Path, data: dict[str, Any]) -> None:
    """Write .buildgate.yml with given data."""
    (root / CONFIG_FILE_NAME).write_text(yaml.dump(data), encoding="utf-8")


def _load(root: Path, data: dict[str, Any]) -> BuildGateConfig:
    _write_config(root, data)
    return load_config(root)


# ── Environment variables ─────────────────────────────────────────


class TestResolveEnvVars:
    def test_resolves_existing_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_VAR", "hello")
        assert _resolve_env_vars("${MY_VAR}") == "hello"

    def test_missing_var_returns_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MISSING_VAR", raising=False)
        assert _resolve_env_vars("${MISSING_VAR}") == ""

    def test_nested_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ITEM", "x")
        assert _resolve_value({"a": ["${ITEM}", 3], "b": {"c": "${ITEM}"}}) == {
            "a": ["x", 3],
            "b": {"c": "x"},
        }


# ── parse_mode ────────────────────────────────────────────────────


class TestParseMode:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("775", 0o775), ("0664", 0o664), ("0o755", 0o755), (644, 0o644)],
    )
    def test_valid_modes(self, raw: object, expected: int) -> None:
        assert parse_mode(raw) == expected

    @pytest.mark.parametrize("raw", ["rwx", "999", "12", ""])
    def test_invalid_modes(self, raw: str) -> None:
        with pytest.raises(ConfigurationError, match="Invalid permission mode"):
            parse_mode(raw)


# ── load_config ───────────────────────────────────────────────────


class TestLoadConfigDefaults:
    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config.root_path == tmp_path.resolve()
        assert config.project.plugins == DEFAULT_PLUGINS
        assert config.toolchain.versions == DEFAULT_TOOL_VERSIONS
        assert config.coverage.exclude_classes == ["module-info.class"]
        assert config.archive.dir_mode == 0o775
        assert config.archive.file_mode == 0o664
        assert config.archive.meta_inf == ["LICENSE", "NOTICE"]
        assert config.features == {}

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text("", encoding="utf-8")
        config = load_config(tmp_path)
        assert config.settings.encoding == "UTF-8"

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text("project: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Failed to parse"):
            load_config(tmp_path)

    def test_non_mapping_raises(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(tmp_path)


class TestLoadConfigSections:
    def test_project_section(self, tmp_path: Path) -> None:
        config = _load(
            tmp_path,
            {
                "project": {
                    "group": "org.example",
                    "version": "1.2.0",
                    "plugins": ["java"],
                    "publishing": ["core"],
                    "modules": [
                        "core",
                        "libs:util",
                        {"name": "api", "path": "modules/api", "plugins": ["jacoco"]},
                    ],
                },
                "overrides": {"core": {"encoding": "ISO-8859-1"}},
            },
        )
        project = config.project
        assert project.group == "org.example"
        assert project.version == "1.2.0"
        assert project.plugins == ["java"]
        assert project.publishing == ["core"]
        assert [(m.name, m.path) for m in project.modules] == [
            ("core", "core"),
            ("libs:util", "libs/util"),
            ("api", "modules/api"),
        ]
        assert project.modules[2].plugins == ["jacoco"]
        assert project.overrides == {"core": {"encoding": "ISO-8859-1"}}

    def test_toolchain_section(self, tmp_path: Path) -> None:
        config = _load(
            tmp_path,
            {
                "toolchain": {
                    "versions": {"checkstyle": "8.29"},
                    "available": {"checkstyle": ["8.22", "8.29"]},
                }
            },
        )
        assert config.toolchain.versions["checkstyle"] == "8.29"
        assert config.toolchain.versions["jacoco"] == "0.8.4"
        assert config.toolchain.catalog()["checkstyle"] == ["8.22", "8.29"]

    def test_coverage_section(self, tmp_path: Path) -> None:
        config = _load(
            tmp_path,
            {
                "coverage": {
                    "execution_data": ["build/jacoco/test.exec", "build/jacoco/it.exec"],
                    "exclude_classes": [],
                    "jacoco_cli": "/opt/jacoco/jacococli.jar",
                    "timeout": 30,
                }
            },
        )
        assert config.coverage.execution_data == ["build/jacoco/test.exec", "build/jacoco/it.exec"]
        assert config.coverage.exclude_classes == []
        assert config.coverage.jacoco_cli == "/opt/jacoco/jacococli.jar"
        assert config.coverage.timeout == 30.0

    def test_jacoco_cli_from_environment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("JACOCO_CLI", "/env/jacococli.jar")
        assert load_config(tmp_path).coverage.jacoco_cli == "/env/jacococli.jar"

    def test_archive_modes_quoted(self, tmp_path: Path) -> None:
        config = _load(tmp_path, {"archive": {"dir_mode": "755", "file_mode": "644"}})
        assert config.archive.dir_mode == 0o755
        assert config.archive.file_mode == 0o644

    def test_archive_bad_mode_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            _load(tmp_path, {"archive": {"dir_mode": "abc"}})

    def test_non_numeric_timeout_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match=r"coverage\.timeout.*'soon'"):
            _load(tmp_path, {"coverage": {"timeout": "soon"}})

    @pytest.mark.parametrize("first_year", ["twenty-twelve", [2012]])
    def test_non_numeric_first_year_raises(self, tmp_path: Path, first_year: object) -> None:
        with pytest.raises(ConfigurationError, match=r"release\.first_year"):
            _load(tmp_path, {"release": {"first_year": first_year}})

    def test_numeric_strings_are_converted(self, tmp_path: Path) -> None:
        config = _load(
            tmp_path, {"coverage": {"timeout": "90"}, "release": {"first_year": "2012"}}
        )
        assert config.coverage.timeout == 90.0
        assert config.release.first_year == 2012

    def test_features_bool_and_mapping(self, tmp_path: Path) -> None:
        config = _load(
            tmp_path,
            {
                "features": {
                    "enableSpotBugs": True,
                    "strictJavadoc": {"env": ["STRICT_JAVADOC"], "aliases": ["strictDocs"]},
                    "broken": "maybe",
                }
            },
        )
        assert config.features["enableSpotBugs"].default is True
        assert config.features["strictJavadoc"].env == ["STRICT_JAVADOC"]
        assert config.features["strictJavadoc"].aliases == ["strictDocs"]
        assert "broken" not in config.features

    def test_signing_key_from_environment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("BUILDGATE_SIGNING_KEY", "ABCDEF12")
        assert load_config(tmp_path).signing.key_id == "ABCDEF12"

    def test_env_expansion_in_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("RELEASE_VERSION", "3.0.1")
        config = _load(tmp_path, {"project": {"version": "${RELEASE_VERSION}"}})
        assert config.project.version == "3.0.1"

    def test_non_mapping_section_ignored(self, tmp_path: Path) -> None:
        config = _load(tmp_path, {"coverage": "nope"})
        assert config.coverage.class_dirs == ["build/classes/java/main"]


# ── ToolchainConfig.catalog ───────────────────────────────────────


class TestToolchainCatalog:
    def test_selected_versions_are_available_by_default(self) -> None:
        catalog = ToolchainConfig().catalog()
        assert catalog == {tool: [v] for tool, v in DEFAULT_TOOL_VERSIONS.items()}

    def test_explicit_available_list_is_authoritative(self) -> None:
        toolchain = ToolchainConfig(
            versions={"checkstyle": "9.0"}, available={"checkstyle": ["8.22"]}
        )
        assert toolchain.catalog() == {"checkstyle": ["8.22"]}


# ── validate_config ───────────────────────────────────────────────


class TestValidateConfig:
    def test_defaults_are_valid(self, tmp_path: Path) -> None:
        assert validate_config(load_config(tmp_path)) == []

    def test_unavailable_toolchain_version(self, tmp_path: Path) -> None:
        config = _load(
            tmp_path,
            {
                "toolchain": {
                    "versions": {"spotbugs": "4.0.0"},
                    "available": {"spotbugs": ["3.1.12"]},
                }
            },
        )
        errors = validate_config(config)
        assert any("toolchain.versions.spotbugs" in e for e in errors)

    def test_empty_coverage_lists_and_bad_timeout(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        config.coverage.execution_data = []
        config.coverage.class_dirs = []
        config.coverage.timeout = 0
        errors = validate_config(config)
        assert len(errors) == 3

    def test_duplicate_modules(self, tmp_path: Path) -> None:
        config = _load(tmp_path, {"project": {"modules": ["core", "core"]}})
        assert validate_config(config) == ["project.modules: module 'core' is declared twice"]

    def test_first_year_must_have_four_digits(self, tmp_path: Path) -> None:
        config = _load(tmp_path, {"release": {"first_year": 98}})
        errors = validate_config(config)
        assert errors == ["release.first_year must be a four-digit year, got 98"]
