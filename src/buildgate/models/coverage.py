"""Coverage aggregation models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from buildgate.errors import MergeCollisionError, OverlappingClassDirsError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

EXEC_SUFFIX = ".exec"


def is_execution_data(path: Path) -> bool:
    """Default filter for execution data: an existing ``.exec`` file."""
    return path.name.endswith(EXEC_SUFFIX) and path.is_file()


@dataclass(frozen=True)
class ExecutionDataFile:
    """Raw coverage samples written by one test task of a module."""

    module: str
    """Name of the owning module."""

    path: Path
    """Location the test runner writes to (it may not exist)."""

    @property
    def exists(self) -> bool:
        """Probe the filesystem; never cached."""
        return is_execution_data(self.path)


@dataclass(frozen=True)
class ClassArtifactTree:
    """Compiled output directory contributed by a module."""

    module: str
    root: Path

    @property
    def exists(self) -> bool:
        return self.root.is_dir()

    def overlaps(self, other: ClassArtifactTree) -> bool:
        """True when one root is the other or lies inside it."""
        mine, theirs = self.root.resolve(), other.root.resolve()
        return mine.is_relative_to(theirs) or theirs.is_relative_to(mine)


class CoverageDataset:
    """Lazy filtered view over execution data files.

    Every iteration re-applies *predicate*, so the view reflects what exists
    on disk at the moment it is consumed rather than when it was built.
    """

    def __init__(
        self,
        candidates: Iterable[ExecutionDataFile],
        predicate: Callable[[Path], bool] = is_execution_data,
    ) -> None:
        self._candidates = tuple(candidates)
        self._predicate = predicate

    def __iter__(self) -> Iterator[ExecutionDataFile]:
        return (f for f in self._candidates if self._predicate(f.path))

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return any(True for _ in self)

    @property
    def candidates(self) -> tuple[ExecutionDataFile, ...]:
        """All candidate files, existing or not."""
        return self._candidates

    @property
    def paths(self) -> list[Path]:
        """Paths of the files that exist right now."""
        return [f.path for f in self]

    def modules(self) -> list[str]:
        """Names of modules with at least one existing file, in order."""
        return list(dict.fromkeys(f.module for f in self))


@dataclass(frozen=True)
class ClassArtifact:
    """One compiled class file inside a module's class tree."""

    identity: str
    """Posix path relative to the tree root, e.g. ``org/example/Foo.class``."""
    module: str
    path: Path


@dataclass
class ClassArtifactSet:
    """Collision-free union of class artifacts from every module."""

    artifacts: dict[str, ClassArtifact] = field(default_factory=dict)
    excluded: list[ClassArtifact] = field(default_factory=list)
    """Artifacts dropped by an exclusion rule."""
    trees: list[ClassArtifactTree] = field(default_factory=list)

    def add_tree(self, tree: ClassArtifactTree) -> None:
        """Record *tree*, failing when it overlaps another tree of the same module."""
        for seen in self.trees:
            if seen.module == tree.module and seen.overlaps(tree):
                raise OverlappingClassDirsError(tree.module, str(seen.root), str(tree.root))
        self.trees.append(tree)

    def add(self, artifact: ClassArtifact) -> None:
        """Add *artifact*, failing on a duplicate identity from another module."""
        existing = self.artifacts.get(artifact.identity)
        if existing is not None:
            raise MergeCollisionError(artifact.identity, existing.module, artifact.module)
        self.artifacts[artifact.identity] = artifact

    def __len__(self) -> int:
        return len(self.artifacts)

    def __contains__(self, identity: object) -> bool:
        return identity in self.artifacts

    def contributors(self, identity: str) -> list[str]:
        """Modules contributing *identity* to the merged set (zero or one)."""
        artifact = self.artifacts.get(identity)
        return [artifact.module] if artifact else []

    def by_module(self) -> dict[str, list[ClassArtifact]]:
        result: dict[str, list[ClassArtifact]] = {}
        for artifact in self.artifacts.values():
            result.setdefault(artifact.module, []).append(artifact)
        return result


@dataclass
class CounterSummary:
    """Missed/covered totals for one counter type (LINE, BRANCH, ...)."""

    missed: int = 0
    covered: int = 0

    @property
    def total(self) -> int:
        return self.missed + self.covered

    @property
    def percentage(self) -> float:
        """Return coverage as a percentage (0.0-100.0)."""
        if self.total == 0:
            return 100.0
        return (self.covered / self.total) * 100.0


@dataclass
class CoverageSummary:
    """Top-level counters parsed from a machine-readable report."""

    counters: dict[str, CounterSummary] = field(default_factory=dict)

    @property
    def line_coverage(self) -> float:
        return self.counters.get("LINE", CounterSummary()).percentage

    @property
    def branch_coverage(self) -> float:
        return self.counters.get("BRANCH", CounterSummary()).percentage

    @property
    def method_coverage(self) -> float:
        return self.counters.get("METHOD", CounterSummary()).percentage
