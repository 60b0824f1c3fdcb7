"""Project layout detectors."""

from buildgate.detectors.workspace import WorkspaceProfile, detect_workspace

__all__ = [
    "WorkspaceProfile",
    "detect_workspace",
]
