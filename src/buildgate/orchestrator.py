"""Build session: wire configuration, modules, toggles and components together."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from buildgate.archive.builder import ArchivePolicy, ReproducibleArchiveBuilder
from buildgate.config import load_config
from buildgate.coverage.aggregator import CoverageAggregator, CoverageLayout, ExclusionRule
from buildgate.coverage.jacoco import JaCoCoCliReportGenerator
from buildgate.models.archive import ArchiveSpec
from buildgate.propagation import ConfigurationPropagator, SettingsBundle, ToolchainCatalog
from buildgate.registry import ModuleRegistry
from buildgate.release import read_notice_year
from buildgate.signing import GpgSigner
from buildgate.toggles import FeatureToggleResolver

if TYPE_CHECKING:
    from collections.abc import Mapping

    from buildgate.archive.builder import BuiltArchive
    from buildgate.config import BuildGateConfig
    from buildgate.coverage.aggregator import AggregationPlan
    from buildgate.coverage.base import ReportGenerator, ReportResult
    from buildgate.models.module import Module

logger = logging.getLogger(__name__)

COVERAGE_PLUGIN = "jacoco"


@dataclass
class BuildSession:
    """One configured build of a project.

    Creating a session discovers the modules and propagates the settings
    bundle to each of them; toolchain errors therefore surface immediately.
    """

    config: BuildGateConfig
    registry: ModuleRegistry
    toggles: FeatureToggleResolver
    settings: SettingsBundle
    propagator: ConfigurationPropagator
    properties: dict[str, str] = field(default_factory=dict)

    @classmethod
    def open(
        cls,
        root: str | Path,
        properties: Mapping[str, str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> BuildSession:
        """Load config under *root*, discover modules and apply policy.

        Raises:
            ConfigurationError: the config is unreadable or a toolchain
                version is unknown.
        """
        config = load_config(root)
        props = dict(properties or {})
        toggles = FeatureToggleResolver.from_config(config.features, props, environ)
        registry = ModuleRegistry.discover(config.root_path, config)
        settings = SettingsBundle.from_config(config, toggles)
        propagator = ConfigurationPropagator(ToolchainCatalog(config.toolchain.catalog()))

        # Settings land on every module now; the coverage include patterns are
        # re-applied whenever a module gains the coverage plugin later on.
        propagator.propagate_all(registry, settings)
        registry.with_plugin(COVERAGE_PLUGIN, lambda module: propagator.propagate(module, settings))

        return cls(
            config=config,
            registry=registry,
            toggles=toggles,
            settings=settings,
            propagator=propagator,
            properties=props,
        )

    @property
    def root(self) -> Path:
        return self.config.root_path

    def coverage_modules(self) -> list[Module]:
        """Modules taking part in the aggregate coverage report."""
        return [m for m in self.registry if m.has_plugin(COVERAGE_PLUGIN)]

    def coverage_aggregator(
        self,
        generator: ReportGenerator | None = None,
        *,
        jacoco_cli: str | None = None,
    ) -> CoverageAggregator:
        coverage = self.config.coverage
        if generator is None:
            jar = jacoco_cli or coverage.jacoco_cli
            generator = JaCoCoCliReportGenerator(
                self.root / jar if jar else "",
                java=coverage.java,
                timeout=coverage.timeout,
            )
        title = self.config.project.group or self.root.name
        return CoverageAggregator(
            self.root,
            generator,
            self.toggles,
            layout=CoverageLayout.from_config(coverage),
            exclusions=ExclusionRule(tuple(coverage.exclude_classes)),
            output_dir=self.root / coverage.output_dir,
            encoding=self.settings.encoding,
            title=title,
        )

    def plan_coverage(self) -> AggregationPlan:
        return self.coverage_aggregator().plan(self.coverage_modules())

    def aggregate_coverage(
        self,
        generator: ReportGenerator | None = None,
        *,
        jacoco_cli: str | None = None,
    ) -> ReportResult:
        aggregator = self.coverage_aggregator(generator, jacoco_cli=jacoco_cli)
        return aggregator.aggregate(self.coverage_modules())

    def archive_builder(self) -> ReproducibleArchiveBuilder:
        archive = self.config.archive
        return ReproducibleArchiveBuilder(
            ArchivePolicy(dir_mode=archive.dir_mode, file_mode=archive.file_mode)
        )

    def meta_inf_entries(self, extra: list[Path] | None = None) -> dict[str, Path]:
        """``META-INF/`` entries for the configured root files that exist."""
        candidates = [self.root / name for name in self.config.archive.meta_inf]
        candidates.extend(extra or [])
        return {f"META-INF/{path.name}": path for path in candidates if path.is_file()}

    def build_archive(
        self,
        source_dir: Path,
        output: Path,
        *,
        prefix: str = "",
        extra_meta_inf: list[Path] | None = None,
    ) -> BuiltArchive:
        spec = ArchiveSpec.from_directory(
            source_dir,
            output,
            prefix=prefix,
            extra_entries=self.meta_inf_entries(extra_meta_inf),
        )
        return self.archive_builder().build(spec)

    def release_year(self, notice_file: Path | None = None) -> int:
        return read_notice_year(notice_file or self.root / self.config.release.notice_file)

    def signer(self) -> GpgSigner:
        return GpgSigner(gpg=self.config.signing.gpg, key_id=self.config.signing.key_id)
