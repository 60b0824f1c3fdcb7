"""Configuration propagation: apply one settings bundle to every module."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from buildgate.errors import ToolchainVersionError
from buildgate.toggles import SPOTBUGS_FLAG

if TYPE_CHECKING:
    from buildgate.config import BuildGateConfig
    from buildgate.models.module import Module
    from buildgate.registry import ModuleRegistry
    from buildgate.toggles import FeatureToggleResolver

logger = logging.getLogger(__name__)

TOOLCHAIN_PREFIX = "toolchain."


@dataclass
class ToolchainCatalog:
    """Versions the project declares available for each quality-gate tool."""

    versions: dict[str, list[str]] = field(default_factory=dict)

    def check(self, tool: str, version: str) -> None:
        """Raise ``ToolchainVersionError`` unless *tool* offers *version*."""
        available = self.versions.get(tool)
        if available is None or version not in available:
            raise ToolchainVersionError(tool, version, available)


@dataclass(frozen=True)
class SettingsBundle:
    """Cross-cutting settings applied uniformly to every module."""

    tool_versions: dict[str, str] = field(default_factory=dict)
    encoding: str = "UTF-8"
    manifest: dict[str, str] = field(default_factory=dict)
    coverage_includes: tuple[str, ...] = ()
    gates: dict[str, bool] = field(default_factory=dict)
    """Whether each quality gate runs."""
    report_format: str = "html"
    """Report format of quality gates and coverage (``html`` or ``xml``)."""
    plugins: frozenset[str] = frozenset()

    @classmethod
    def from_config(cls, config: BuildGateConfig, toggles: FeatureToggleResolver) -> SettingsBundle:
        """Build the bundle for this build from config and resolved feature flags."""
        group = config.project.group
        includes = config.settings.coverage_includes or ([f"{group}.*"] if group else [])
        manifest = dict(config.settings.manifest)
        if config.project.version:
            manifest.setdefault("Implementation-Version", config.project.version)
        if config.release.copyright_holder:
            manifest.setdefault("Implementation-Vendor", config.release.copyright_holder)
        return cls(
            tool_versions=dict(config.toolchain.versions),
            encoding=config.settings.encoding,
            manifest=manifest,
            coverage_includes=tuple(includes),
            gates={
                "checkstyle": True,
                "spotbugs": toggles.resolve(SPOTBUGS_FLAG),
            },
            report_format="html" if toggles.reports_for_humans() else "xml",
        )

    def as_settings(self) -> dict[str, Any]:
        """Flatten the bundle into dotted setting keys."""
        settings: dict[str, Any] = {"encoding": self.encoding}
        for tool, version in sorted(self.tool_versions.items()):
            settings[f"{TOOLCHAIN_PREFIX}{tool}"] = version
        for key, value in sorted(self.manifest.items()):
            settings[f"manifest.{key}"] = value
        settings["coverage.includes"] = list(self.coverage_includes)
        for gate, enabled in sorted(self.gates.items()):
            settings[f"gate.{gate}.enabled"] = enabled
            settings[f"gate.{gate}.report_format"] = self.report_format
        return settings


class ConfigurationPropagator:
    """Apply a settings bundle to modules.

    Propagation is idempotent because it may be triggered once per plugin
    activation rather than exactly once.  Explicit module overrides always
    win and are never written over.
    """

    def __init__(self, catalog: ToolchainCatalog) -> None:
        self.catalog = catalog

    def validate(self, module: Module, settings: SettingsBundle) -> None:
        """Fail fast on any unknown toolchain version in *settings* or overrides."""
        for tool, version in settings.tool_versions.items():
            self.catalog.check(tool, version)
        for key, value in module.overrides.items():
            if key.startswith(TOOLCHAIN_PREFIX):
                self.catalog.check(key[len(TOOLCHAIN_PREFIX):], str(value))

    def propagate(self, module: Module, settings: SettingsBundle) -> None:
        """Apply *settings* to *module*.

        Raises:
            ToolchainVersionError: the bundle or a module override names a
                toolchain version missing from the catalog.
        """
        self.validate(module, settings)
        for plugin in sorted(settings.plugins):
            module.apply_plugin(plugin)

        effective = settings.as_settings()
        effective.update(module.overrides)
        if effective != module.settings:
            logger.debug("Propagated %d setting(s) to %s", len(effective), module.name)
        module.settings = effective

    def propagate_all(self, registry: ModuleRegistry, settings: SettingsBundle) -> None:
        """Propagate *settings* to every module of *registry*."""
        registry.apply_to_all(lambda module: self.propagate(module, settings))
