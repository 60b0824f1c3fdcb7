"""Configuration parsing from ``.buildgate.yml``."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from buildgate.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".buildgate.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")
_OCTAL_MODE_RE = re.compile(r"^0?o?[0-7]{3,4}$")

DEFAULT_TOOL_VERSIONS: dict[str, str] = {
    "checkstyle": "8.22",
    "spotbugs": "3.1.12",
    "jacoco": "0.8.4",
}

DEFAULT_PLUGINS: list[str] = ["java", "jacoco", "checkstyle", "signing", "spotbugs"]


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_value(value: Any) -> Any:
    if isinstance(value, str):
        return _resolve_env_vars(value)
    if isinstance(value, dict):
        return {key: _resolve_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve_value(item) for item in value]
    return value


def parse_mode(value: Any) -> int:
    """Parse a permission mode written as octal text (``"775"``) or an int.

    YAML reads an unquoted ``775`` as decimal, so ints are reinterpreted as
    octal digits.
    """
    text = str(value).strip().lower()
    if not _OCTAL_MODE_RE.match(text):
        raise ConfigurationError(f"Invalid permission mode '{value}' (expected octal like 775)")
    return int(text.lstrip("0").lstrip("o") or "0", 8)


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    if not isinstance(value, dict):
        logger.warning("Ignoring non-mapping '%s' section in %s", name, CONFIG_FILE_NAME)
        return {}
    return value


def _str_list(value: Any, default: list[str]) -> list[str]:
    if value is None:
        return list(default)
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value]
    return list(default)


def _as_number(value: Any, key: str, kind: type[int] | type[float]) -> Any:
    """Convert *value* with *kind*, reporting bad input as a config error."""
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key}: expected a number, got {value!r}") from exc


@dataclass
class ModuleEntry:
    """A module declared explicitly in config."""

    name: str
    path: str
    plugins: list[str] = field(default_factory=list)
    overrides: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProjectConfig:
    """Project-level configuration."""

    root: str
    """Project root directory."""

    group: str = ""
    """Group/namespace of every module (e.g. ``org.example``)."""

    version: str = ""
    """Project version stamped into manifest metadata."""

    plugins: list[str] = field(default_factory=lambda: list(DEFAULT_PLUGINS))
    """Plugins applied to every discovered module."""

    publishing: list[str] = field(default_factory=list)
    """Modules that publish artifacts (``"*"`` for all); they get ``publishing``."""

    modules: list[ModuleEntry] = field(default_factory=list)
    """Explicit module list; empty means auto-detect."""

    overrides: dict[str, dict[str, Any]] = field(default_factory=dict)
    """Per-module setting overrides keyed by module name."""


@dataclass
class ToolchainConfig:
    """Quality-gate toolchain selection."""

    versions: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_TOOL_VERSIONS))
    """Version selected for each tool."""

    available: dict[str, list[str]] = field(default_factory=dict)
    """Versions the project declares available per tool (defaults to the selection)."""

    def catalog(self) -> dict[str, list[str]]:
        """Return the available versions per tool, including the selected ones."""
        result: dict[str, list[str]] = {tool: list(vs) for tool, vs in self.available.items()}
        for tool, version in self.versions.items():
            known = result.setdefault(tool, [])
            if not self.available.get(tool) and version not in known:
                known.append(version)
        return result


@dataclass
class SettingsConfig:
    """Cross-cutting settings propagated to every module."""

    encoding: str = "UTF-8"
    manifest: dict[str, str] = field(default_factory=dict)
    coverage_includes: list[str] = field(default_factory=list)
    """Class name patterns collected by coverage (defaults to ``<group>.*``)."""


@dataclass
class CoverageConfig:
    """Per-module coverage conventions and aggregate report settings."""

    execution_data: list[str] = field(default_factory=lambda: ["build/jacoco/test.exec"])
    """Execution data locations relative to each module (one per test task)."""

    class_dirs: list[str] = field(default_factory=lambda: ["build/classes/java/main"])
    source_dirs: list[str] = field(default_factory=lambda: ["src/main/java"])

    exclude_classes: list[str] = field(default_factory=lambda: ["module-info.class"])
    """Class artifacts dropped before merging (empty list disables)."""

    output_dir: str = "build/reports/jacoco/aggregate"
    jacoco_cli: str = ""
    """Path to ``jacococli.jar`` (also read from ``JACOCO_CLI``)."""

    java: str = "java"
    timeout: float = 600.0


@dataclass
class ArchiveConfig:
    """Reproducible archive policy."""

    dir_mode: int = 0o775
    file_mode: int = 0o664
    meta_inf: list[str] = field(default_factory=lambda: ["LICENSE", "NOTICE"])
    """Root files copied into ``META-INF/`` of every archive when present."""


@dataclass
class FlagConfig:
    """Declaration of one feature flag."""

    default: bool = False
    env: list[str] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)


@dataclass
class ReleaseConfig:
    """Release metadata sources."""

    notice_file: str = "NOTICE"
    first_year: int | None = None
    copyright_holder: str = ""


@dataclass
class SigningConfig:
    """Signing service settings."""

    gpg: str = "gpg"
    key_id: str = ""


@dataclass
class BuildGateConfig:
    """Top-level configuration parsed from ``.buildgate.yml``."""

    project: ProjectConfig
    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    settings: SettingsConfig = field(default_factory=SettingsConfig)
    coverage: CoverageConfig = field(default_factory=CoverageConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    features: dict[str, FlagConfig] = field(default_factory=dict)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    signing: SigningConfig = field(default_factory=SigningConfig)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def root_path(self) -> Path:
        return Path(self.project.root)


def _parse_module_entries(value: Any) -> list[ModuleEntry]:
    entries: list[ModuleEntry] = []
    if not isinstance(value, list):
        return entries
    for item in value:
        if isinstance(item, str):
            entries.append(ModuleEntry(name=item, path=item.replace(":", "/")))
        elif isinstance(item, dict) and item.get("name"):
            name = str(item["name"])
            overrides = item.get("overrides", {})
            entries.append(
                ModuleEntry(
                    name=name,
                    path=str(item.get("path", name.replace(":", "/"))),
                    plugins=_str_list(item.get("plugins"), []),
                    overrides=dict(overrides) if isinstance(overrides, dict) else {},
                )
            )
        else:
            logger.warning("Ignoring malformed module entry: %r", item)
    return entries


def _parse_project_config(raw: dict[str, Any], root_path: Path) -> ProjectConfig:
    project_raw = _section(raw, "project")
    overrides_raw = raw.get("overrides", {})
    overrides: dict[str, dict[str, Any]] = {}
    if isinstance(overrides_raw, dict):
        for name, values in overrides_raw.items():
            if isinstance(values, dict):
                overrides[str(name)] = dict(values)
    return ProjectConfig(
        root=str(project_raw.get("root", root_path)),
        group=str(project_raw.get("group", "")),
        version=str(project_raw.get("version", "")),
        plugins=_str_list(project_raw.get("plugins"), DEFAULT_PLUGINS),
        publishing=_str_list(project_raw.get("publishing"), []),
        modules=_parse_module_entries(project_raw.get("modules")),
        overrides=overrides,
    )


def _parse_toolchain_config(raw: dict[str, Any]) -> ToolchainConfig:
    toolchain_raw = _section(raw, "toolchain")
    versions = dict(DEFAULT_TOOL_VERSIONS)
    versions_raw = toolchain_raw.get("versions", {})
    if isinstance(versions_raw, dict):
        versions.update({str(k): str(v) for k, v in versions_raw.items()})
    available: dict[str, list[str]] = {}
    available_raw = toolchain_raw.get("available", {})
    if isinstance(available_raw, dict):
        available = {str(k): _str_list(v, []) for k, v in available_raw.items()}
    return ToolchainConfig(versions=versions, available=available)


def _parse_settings_config(raw: dict[str, Any]) -> SettingsConfig:
    settings_raw = _section(raw, "settings")
    manifest_raw = settings_raw.get("manifest", {})
    return SettingsConfig(
        encoding=str(settings_raw.get("encoding", "UTF-8")),
        manifest=(
            {str(k): str(v) for k, v in manifest_raw.items()}
            if isinstance(manifest_raw, dict)
            else {}
        ),
        coverage_includes=_str_list(settings_raw.get("coverage_includes"), []),
    )


def _parse_coverage_config(raw: dict[str, Any]) -> CoverageConfig:
    coverage_raw = _section(raw, "coverage")
    defaults = CoverageConfig()
    return CoverageConfig(
        execution_data=_str_list(coverage_raw.get("execution_data"), defaults.execution_data),
        class_dirs=_str_list(coverage_raw.get("class_dirs"), defaults.class_dirs),
        source_dirs=_str_list(coverage_raw.get("source_dirs"), defaults.source_dirs),
        exclude_classes=_str_list(coverage_raw.get("exclude_classes"), defaults.exclude_classes),
        output_dir=str(coverage_raw.get("output_dir", defaults.output_dir)),
        jacoco_cli=str(coverage_raw.get("jacoco_cli", os.environ.get("JACOCO_CLI", ""))),
        java=str(coverage_raw.get("java", defaults.java)),
        timeout=_as_number(
            coverage_raw.get("timeout", defaults.timeout), "coverage.timeout", float
        ),
    )


def _parse_archive_config(raw: dict[str, Any]) -> ArchiveConfig:
    archive_raw = _section(raw, "archive")
    defaults = ArchiveConfig()
    return ArchiveConfig(
        dir_mode=parse_mode(archive_raw.get("dir_mode", "775")),
        file_mode=parse_mode(archive_raw.get("file_mode", "664")),
        meta_inf=_str_list(archive_raw.get("meta_inf"), defaults.meta_inf),
    )


def _parse_features_config(raw: dict[str, Any]) -> dict[str, FlagConfig]:
    features_raw = _section(raw, "features")
    flags: dict[str, FlagConfig] = {}
    for name, value in features_raw.items():
        if isinstance(value, bool):
            flags[str(name)] = FlagConfig(default=value)
        elif isinstance(value, dict):
            flags[str(name)] = FlagConfig(
                default=bool(value.get("default", False)),
                env=_str_list(value.get("env"), []),
                aliases=_str_list(value.get("aliases"), []),
            )
        else:
            logger.warning("Ignoring malformed feature flag %s: %r", name, value)
    return flags


def _parse_release_config(raw: dict[str, Any]) -> ReleaseConfig:
    release_raw = _section(raw, "release")
    first_year = release_raw.get("first_year")
    return ReleaseConfig(
        notice_file=str(release_raw.get("notice_file", "NOTICE")),
        first_year=(
            _as_number(first_year, "release.first_year", int) if first_year is not None else None
        ),
        copyright_holder=str(release_raw.get("copyright_holder", "")),
    )


def _parse_signing_config(raw: dict[str, Any]) -> SigningConfig:
    signing_raw = _section(raw, "signing")
    return SigningConfig(
        gpg=str(signing_raw.get("gpg", "gpg")),
        key_id=str(signing_raw.get("key_id", os.environ.get("BUILDGATE_SIGNING_KEY", ""))),
    )


def load_config(root: str | Path) -> BuildGateConfig:
    """Load and parse the complete ``.buildgate.yml`` configuration.

    Falls back to defaults when the file is missing or incomplete.

    Raises:
        ConfigurationError: the file is not valid YAML, is not a mapping, or
            holds a value that cannot be interpreted (e.g. a bad file mode).
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILE_NAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        try:
            parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Failed to parse '{config_file}': {exc}") from exc
        if parsed is not None and not isinstance(parsed, dict):
            raise ConfigurationError(f"'{config_file}' must be a YAML mapping at the top level.")
        raw = _resolve_value(parsed or {})
    else:
        logger.debug("No %s in %s, using defaults", CONFIG_FILE_NAME, root_path)

    return BuildGateConfig(
        project=_parse_project_config(raw, root_path),
        toolchain=_parse_toolchain_config(raw),
        settings=_parse_settings_config(raw),
        coverage=_parse_coverage_config(raw),
        archive=_parse_archive_config(raw),
        features=_parse_features_config(raw),
        release=_parse_release_config(raw),
        signing=_parse_signing_config(raw),
        raw=raw,
    )


def validate_config(config: BuildGateConfig) -> list[str]:
    """Validate a loaded configuration.

    Returns:
        List of error messages (empty if valid).
    """
    errors: list[str] = []

    catalog = config.toolchain.catalog()
    for tool, version in config.toolchain.versions.items():
        if version not in catalog.get(tool, []):
            errors.append(
                f"toolchain.versions.{tool}: '{version}' is not listed in toolchain.available.{tool}"
            )

    coverage = config.coverage
    if not coverage.execution_data:
        errors.append("coverage.execution_data must list at least one location")
    if not coverage.class_dirs:
        errors.append("coverage.class_dirs must list at least one directory")
    if coverage.timeout <= 0:
        errors.append(f"coverage.timeout must be positive, got {coverage.timeout}")

    for label, mode in (("dir_mode", config.archive.dir_mode), ("file_mode", config.archive.file_mode)):
        if mode > 0o7777:
            errors.append(f"archive.{label}: {oct(mode)} is not a permission mode")

    names = [entry.name for entry in config.project.modules]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    errors.extend(f"project.modules: module '{name}' is declared twice" for name in duplicates)

    if config.release.first_year is not None and not 1000 <= config.release.first_year <= 9999:
        errors.append(f"release.first_year must be a four-digit year, got {config.release.first_year}")

    return errors
