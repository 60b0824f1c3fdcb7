"""Data models shared across buildgate components."""

from buildgate.models.archive import ArchiveEntry, ArchiveSpec
from buildgate.models.coverage import (
    ClassArtifact,
    ClassArtifactSet,
    ClassArtifactTree,
    CounterSummary,
    CoverageDataset,
    CoverageSummary,
    ExecutionDataFile,
)
from buildgate.models.module import Module

__all__ = [
    "ArchiveEntry",
    "ArchiveSpec",
    "ClassArtifact",
    "ClassArtifactSet",
    "ClassArtifactTree",
    "CounterSummary",
    "CoverageDataset",
    "CoverageSummary",
    "ExecutionDataFile",
    "Module",
]
