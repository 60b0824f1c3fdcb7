"""Base classes and data models for coverage report generators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from buildgate.models.coverage import ClassArtifactSet, CoverageDataset, CoverageSummary


class ReportFormat(str, Enum):
    """Output format of the aggregate report; exactly one is generated."""

    HTML = "html"
    """Human-readable report for interactive runs."""

    XML = "xml"
    """Machine-readable report for continuous integration."""


@dataclass
class ReportRequest:
    """Everything the report generator needs for one aggregate report."""

    dataset: CoverageDataset
    """Execution data files that exist at aggregation time."""

    class_artifacts: ClassArtifactSet
    """Collision-free class artifacts with excluded identities removed."""

    source_dirs: list[Path]
    """Source directories of every module, for source-line mapping."""

    output_dir: Path
    report_format: ReportFormat
    title: str = "Coverage"
    encoding: str = "UTF-8"
    """Source file encoding used for source-line mapping."""


@dataclass
class ReportResult:
    """Outcome of a report generation run."""

    report_format: ReportFormat
    output: Path
    """Report directory (HTML) or file (XML)."""
    summary: CoverageSummary | None = None
    """Top-level counters when the format is machine-readable."""
    modules: list[str] = field(default_factory=list)
    """Modules whose execution data went into the report."""


class ReportGenerator(ABC):
    """Abstract base class for the external report generator.

    Concrete generators turn merged execution data plus class artifacts into
    a report.  They must not be handed a non-existent execution data path.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Report tool identifier (e.g. ``'jacoco'``)."""

    @abstractmethod
    def generate(self, request: ReportRequest) -> ReportResult:
        """Generate the aggregate report described by *request*.

        Raises:
            ReportGenerationError: the generator failed.
        """
