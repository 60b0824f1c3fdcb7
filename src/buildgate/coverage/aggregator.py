"""Coverage aggregation across modules.

Builds one combined coverage report from per-module execution data:

1. every module's execution data locations are wrapped in a lazy filtered
   view, so modules without tests (or without samples) simply drop out;
2. class artifact trees are merged, dropping identities matched by the
   exclusion rules (``module-info.class`` by default, since every modular
   project compiles one) and failing on any other duplicate;
3. the report generator runs once, in exactly one format.
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from buildgate.coverage.base import ReportFormat, ReportRequest
from buildgate.errors import ArtifactMismatchError
from buildgate.models.coverage import (
    ClassArtifact,
    ClassArtifactSet,
    ClassArtifactTree,
    CoverageDataset,
    ExecutionDataFile,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from buildgate.config import CoverageConfig
    from buildgate.coverage.base import ReportGenerator, ReportResult
    from buildgate.models.module import Module
    from buildgate.toggles import FeatureToggleResolver

logger = logging.getLogger(__name__)

CLASS_SUFFIX = ".class"


@dataclass(frozen=True)
class ExclusionRule:
    """Class artifact identities left out of the merged set.

    A pattern without ``/`` matches the file name anywhere in a tree; a
    pattern with ``/`` matches the whole relative path.  An empty rule
    excludes nothing.
    """

    patterns: tuple[str, ...] = ("module-info.class",)

    def matches(self, identity: str) -> bool:
        name = identity.rsplit("/", maxsplit=1)[-1]
        for pattern in self.patterns:
            target = identity if "/" in pattern else name
            if fnmatch.fnmatchcase(target, pattern):
                return True
        return False


@dataclass
class CoverageLayout:
    """Where each module keeps its coverage inputs, relative to the module."""

    execution_data: list[str] = field(default_factory=lambda: ["build/jacoco/test.exec"])
    class_dirs: list[str] = field(default_factory=lambda: ["build/classes/java/main"])
    source_dirs: list[str] = field(default_factory=lambda: ["src/main/java"])

    @classmethod
    def from_config(cls, coverage: CoverageConfig) -> CoverageLayout:
        return cls(
            execution_data=list(coverage.execution_data),
            class_dirs=list(coverage.class_dirs),
            source_dirs=list(coverage.source_dirs),
        )


@dataclass
class ModuleCoverageInputs:
    """Coverage inputs of one module."""

    module: str
    execution_data: list[ExecutionDataFile] = field(default_factory=list)
    class_trees: list[ClassArtifactTree] = field(default_factory=list)
    source_dirs: list[Path] = field(default_factory=list)

    @property
    def has_execution_data(self) -> bool:
        return any(f.exists for f in self.execution_data)

    @property
    def has_class_artifacts(self) -> bool:
        return any(tree.exists for tree in self.class_trees)


@dataclass
class AggregationPlan:
    """Validated inputs for one aggregate report."""

    dataset: CoverageDataset
    class_artifacts: ClassArtifactSet
    source_dirs: list[Path]
    report_format: ReportFormat
    included_modules: list[str] = field(default_factory=list)
    """Modules contributing execution data or classes."""
    skipped_modules: list[str] = field(default_factory=list)
    """Modules with neither execution data nor classes."""


def _module_paths(module: Module, key: str, default: list[str]) -> list[str]:
    value: Any = module.effective(key, default)
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


class CoverageAggregator:
    """Merge per-module coverage execution data into one report."""

    def __init__(
        self,
        root: Path,
        generator: ReportGenerator,
        toggles: FeatureToggleResolver,
        *,
        layout: CoverageLayout | None = None,
        exclusions: ExclusionRule | None = None,
        output_dir: Path | None = None,
        encoding: str = "UTF-8",
        title: str = "Coverage",
    ) -> None:
        self.root = root
        self.generator = generator
        self.toggles = toggles
        self.layout = layout or CoverageLayout()
        self.exclusions = exclusions if exclusions is not None else ExclusionRule()
        self.output_dir = output_dir or root / "build" / "reports" / "jacoco" / "aggregate"
        self.encoding = encoding
        self.title = title

    # ── Inputs ────────────────────────────────────────────────────

    def inputs_for(self, module: Module) -> ModuleCoverageInputs:
        """Resolve the coverage input locations of *module*.

        Modules may override the layout with ``coverage.execution_data``,
        ``coverage.class_dirs`` and ``coverage.source_dirs`` settings.
        """
        base = self.root / module.path
        exec_paths = _module_paths(module, "coverage.execution_data", self.layout.execution_data)
        class_dirs = _module_paths(module, "coverage.class_dirs", self.layout.class_dirs)
        source_dirs = _module_paths(module, "coverage.source_dirs", self.layout.source_dirs)
        return ModuleCoverageInputs(
            module=module.name,
            execution_data=[ExecutionDataFile(module.name, base / p) for p in exec_paths],
            class_trees=[ClassArtifactTree(module.name, base / d) for d in class_dirs],
            source_dirs=[base / d for d in source_dirs],
        )

    @staticmethod
    def build_dataset(inputs: Iterable[ModuleCoverageInputs]) -> CoverageDataset:
        """Wrap every execution data location in a lazy existence-filtered view."""
        return CoverageDataset(f for module_inputs in inputs for f in module_inputs.execution_data)

    def collect_class_artifacts(self, inputs: Iterable[ModuleCoverageInputs]) -> ClassArtifactSet:
        """Merge the class trees of every module into one collision-free set.

        Raises:
            MergeCollisionError: two trees contribute the same non-excluded identity.
            OverlappingClassDirsError: one module lists nested class directories.
        """
        merged = ClassArtifactSet()
        for module_inputs in inputs:
            for tree in module_inputs.class_trees:
                if not tree.exists:
                    continue
                merged.add_tree(tree)
                for path in sorted(tree.root.rglob(f"*{CLASS_SUFFIX}")):
                    if not path.is_file():
                        continue
                    identity = path.relative_to(tree.root).as_posix()
                    artifact = ClassArtifact(identity=identity, module=tree.module, path=path)
                    if self.exclusions.matches(identity):
                        merged.excluded.append(artifact)
                        continue
                    merged.add(artifact)
        if merged.excluded:
            logger.debug("Excluded %d class artifact(s) from the merge", len(merged.excluded))
        return merged

    def select_format(self) -> ReportFormat:
        """HTML for people, XML for CI; never both."""
        return ReportFormat.HTML if self.toggles.reports_for_humans() else ReportFormat.XML

    # ── Aggregation ───────────────────────────────────────────────

    def plan(self, modules: Sequence[Module]) -> AggregationPlan:
        """Validate inputs and build the aggregation plan without generating.

        Raises:
            ArtifactMismatchError: a module produced execution data but none of
                its class directories exist.
            MergeCollisionError: see :meth:`collect_class_artifacts`.
        """
        contributing: list[ModuleCoverageInputs] = []
        skipped: list[str] = []
        for module in modules:
            module_inputs = self.inputs_for(module)
            has_data = module_inputs.has_execution_data
            has_classes = module_inputs.has_class_artifacts
            if has_data and not has_classes:
                raise ArtifactMismatchError(
                    module.name,
                    [str(f.path) for f in module_inputs.execution_data if f.exists],
                    [str(tree.root) for tree in module_inputs.class_trees],
                )
            if not has_data and not has_classes:
                logger.debug("Module %s produced no coverage inputs, skipping", module.name)
                skipped.append(module.name)
                continue
            if not has_data:
                logger.debug("Module %s has classes but no execution data", module.name)
            contributing.append(module_inputs)

        class_artifacts = self.collect_class_artifacts(contributing)
        source_dirs = [
            d for module_inputs in contributing for d in module_inputs.source_dirs if d.is_dir()
        ]
        return AggregationPlan(
            dataset=self.build_dataset(contributing),
            class_artifacts=class_artifacts,
            source_dirs=source_dirs,
            report_format=self.select_format(),
            included_modules=[module_inputs.module for module_inputs in contributing],
            skipped_modules=skipped,
        )

    def aggregate(self, modules: Sequence[Module]) -> ReportResult:
        """Plan, then invoke the report generator exactly once.

        Any fatal condition aborts before the generator runs, so no partial
        report is written.
        """
        plan = self.plan(modules)
        logger.info(
            "Aggregating coverage: %d execution data file(s), %d class file(s), %s report",
            len(plan.dataset),
            len(plan.class_artifacts),
            plan.report_format.value,
        )
        request = ReportRequest(
            dataset=plan.dataset,
            class_artifacts=plan.class_artifacts,
            source_dirs=plan.source_dirs,
            output_dir=self.output_dir,
            report_format=plan.report_format,
            title=self.title,
            encoding=self.encoding,
        )
        return self.generator.generate(request)
