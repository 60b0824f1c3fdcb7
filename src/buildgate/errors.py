"""Error taxonomy shared by every buildgate component.

All errors here are fatal for the step that raised them: nothing is retried,
because every input is either present or absent deterministically within a
single build invocation.
"""

from __future__ import annotations


class BuildGateError(Exception):
    """Base class for all buildgate errors."""


# ── Configuration ──────────────────────────────────────────────────


class ConfigurationError(BuildGateError):
    """The project setup is broken (bad config file, unknown values)."""


class ToolchainVersionError(ConfigurationError):
    """A settings bundle or override references an unknown toolchain version."""

    def __init__(self, tool: str, version: str, available: list[str] | None = None) -> None:
        self.tool = tool
        self.version = version
        self.available = list(available or [])
        if self.available:
            detail = f"available: {', '.join(self.available)}"
        else:
            detail = "tool is not in the toolchain catalog"
        super().__init__(f"Unknown {tool} toolchain version '{version}' ({detail})")


class ReleaseMetadataError(ConfigurationError):
    """Release metadata could not be extracted from its source text."""


# ── Coverage aggregation ───────────────────────────────────────────


class AggregationError(BuildGateError):
    """Coverage aggregation cannot produce a trustworthy combined report."""


class MergeCollisionError(AggregationError):
    """Two modules contribute class artifacts with the same identity."""

    def __init__(self, identity: str, first_module: str, second_module: str) -> None:
        self.identity = identity
        self.modules = (first_module, second_module)
        super().__init__(
            f"Class artifact '{identity}' is contributed by both "
            f"'{first_module}' and '{second_module}'; exclude it from one of them "
            "(coverage.exclude_classes) or fix the module graph"
        )


class OverlappingClassDirsError(AggregationError):
    """Two class directories of one module contain each other."""

    def __init__(self, module: str, first_dir: str, second_dir: str) -> None:
        self.module = module
        self.class_dirs = (first_dir, second_dir)
        super().__init__(
            f"Module '{module}' lists overlapping class directories "
            f"'{first_dir}' and '{second_dir}'; keep only one of them in coverage.class_dirs"
        )


class ArtifactMismatchError(AggregationError):
    """A module produced execution data but has no class artifacts to map it to."""

    def __init__(self, module: str, execution_data: list[str], class_dirs: list[str]) -> None:
        self.module = module
        self.execution_data = execution_data
        self.class_dirs = class_dirs
        super().__init__(
            f"Module '{module}' produced execution data ({', '.join(execution_data)}) "
            f"but none of its class directories exist ({', '.join(class_dirs) or 'none configured'})"
        )


class ReportGenerationError(AggregationError):
    """The external report generator failed."""


# ── Archives ───────────────────────────────────────────────────────


class ArchiveError(BuildGateError):
    """An archive cannot be built reproducibly."""


class ArchivePathError(ArchiveError):
    """A logical archive path is absolute, escapes the root or is empty."""


class DuplicateArchivePathError(ArchiveError):
    """Two entries of one archive resolve to the same logical path."""

    def __init__(self, path: str, reason: str = "appears more than once") -> None:
        self.path = path
        super().__init__(f"Archive entry '{path}' {reason}")


# ── Signing ────────────────────────────────────────────────────────


class SigningError(BuildGateError):
    """The signing service failed to sign an artifact."""
