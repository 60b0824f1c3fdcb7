"""Workspace detector: find the modules of a multi-module build."""

from __future__ import annotations

import contextlib
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from buildgate.models.module import Module

if TYPE_CHECKING:
    from buildgate.config import BuildGateConfig

logger = logging.getLogger(__name__)

_GRADLE_SETTINGS = ("settings.gradle.kts", "settings.gradle")
_GRADLE_INCLUDE_CALL_RE = re.compile(r"""include\s*\(([^)]*)\)""")
_GRADLE_INCLUDE_BARE_RE = re.compile(r"""^\s*include\s+(['"].*)$""", re.MULTILINE)
_QUOTED_RE = re.compile(r"""['"]([^'"]+)['"]""")
_GRADLE_PROJECT_DIR_RE = re.compile(
    r"""project\(\s*['"]:?([^'"]+)['"]\s*\)\.projectDir\s*=\s*file\(\s*['"]([^'"]+)['"]\s*\)"""
)


# ── Data models ────────────────────────────────────────────────────


@dataclass
class WorkspaceProfile:
    """Workspace detection result."""

    tool: str
    """Build tool that declared the modules (``"gradle"``, ``"maven"``, ``"config"``, ``"generic"``)."""
    root: str
    """Absolute path to the workspace root."""
    modules: list[Module] = field(default_factory=list)

    @property
    def is_multi_module(self) -> bool:
        return len(self.modules) > 1


# ── Gradle ─────────────────────────────────────────────────────────


def _strip_comments(text: str) -> str:
    text = re.sub(r"/\*.*?\*/", "", text, flags=re.DOTALL)
    return re.sub(r"//[^\n]*", "", text)


def _parse_gradle_includes(text: str) -> list[str]:
    """Extract project paths from ``include(...)`` and ``include '...'`` directives."""
    text = _strip_comments(text)
    includes: list[str] = []
    for call in _GRADLE_INCLUDE_CALL_RE.finditer(text):
        includes.extend(_QUOTED_RE.findall(call.group(1)))
    for bare in _GRADLE_INCLUDE_BARE_RE.finditer(text):
        includes.extend(_QUOTED_RE.findall(bare.group(1)))
    return list(dict.fromkeys(inc.lstrip(":") for inc in includes if inc.strip(":")))


def _detect_gradle(root: Path) -> WorkspaceProfile | None:
    """Detect a Gradle multi-project build via ``settings.gradle(.kts)``."""
    for name in _GRADLE_SETTINGS:
        settings = root / name
        if not settings.is_file():
            continue
        try:
            text = settings.read_text(encoding="utf-8")
        except OSError:
            continue

        includes = _parse_gradle_includes(text)
        if not includes:
            continue

        # ``project(":x").projectDir = file("some/dir")`` relocates a project.
        project_dirs = dict(_GRADLE_PROJECT_DIR_RE.findall(_strip_comments(text)))

        modules: list[Module] = []
        for project_path in includes:
            rel = project_dirs.get(project_path, project_path.replace(":", "/"))
            if not (root / rel).is_dir():
                logger.debug("Gradle project %s has no directory %s, skipping", project_path, rel)
                continue
            modules.append(Module(name=project_path, path=rel))
        return WorkspaceProfile(tool="gradle", root=str(root), modules=modules)
    return None


# ── Maven ──────────────────────────────────────────────────────────


def _detect_maven(root: Path) -> WorkspaceProfile | None:
    """Detect a Maven multi-module build via the parent ``pom.xml`` ``<modules>``."""
    pom = root / "pom.xml"
    if not pom.is_file():
        return None

    try:
        text = pom.read_text(encoding="utf-8")
    except OSError:
        return None

    m = re.search(r"<modules>(.*?)</modules>", text, re.DOTALL)
    if not m:
        return None

    declared = [mod.strip() for mod in re.findall(r"<module>([^<]+)</module>", m.group(1))]
    modules = [Module(name=mod, path=mod) for mod in declared if (root / mod).is_dir()]
    return WorkspaceProfile(tool="maven", root=str(root), modules=modules)


# ── Internal dependencies ──────────────────────────────────────────


def _collect_gradle_project_deps(module_dir: Path, known: set[str], self_name: str) -> list[str]:
    """Scan ``build.gradle(.kts)`` for ``project(":x")`` references."""
    deps: list[str] = []
    for name in ("build.gradle.kts", "build.gradle"):
        build_file = module_dir / name
        if not build_file.is_file():
            continue
        with contextlib.suppress(OSError):
            text = _strip_comments(build_file.read_text(encoding="utf-8"))
            for ref in re.findall(r"""project\(\s*['"]:?([^'"]+)['"]\s*\)""", text):
                if ref in known and ref != self_name:
                    deps.append(ref)
    return deps


def _collect_maven_module_deps(module_dir: Path, known: set[str], self_name: str) -> list[str]:
    """Scan ``pom.xml`` ``<artifactId>`` references that name sibling modules."""
    pom = module_dir / "pom.xml"
    if not pom.is_file():
        return []
    deps: list[str] = []
    with contextlib.suppress(OSError):
        text = pom.read_text(encoding="utf-8")
        deps.extend(
            art for art in re.findall(r"<artifactId>([^<]+)</artifactId>", text)
            if art in known and art != self_name
        )
    return deps


def _build_dependency_graph(root: Path, modules: list[Module]) -> None:
    known = {module.name for module in modules}
    for module in modules:
        module_dir = root / module.path
        deps = _collect_gradle_project_deps(module_dir, known, module.name)
        deps.extend(_collect_maven_module_deps(module_dir, known, module.name))
        module.dependencies = list(dict.fromkeys(deps))


# ── Orchestrator ───────────────────────────────────────────────────

# Detection functions in priority order.
_DETECTORS = [
    ("gradle", _detect_gradle),
    ("maven", _detect_maven),
]


def _from_config(root: Path, config: BuildGateConfig) -> WorkspaceProfile:
    modules = [
        Module(
            name=entry.name,
            path=entry.path,
            plugins=set(entry.plugins),
            overrides=dict(entry.overrides),
        )
        for entry in config.project.modules
    ]
    return WorkspaceProfile(tool="config", root=str(root), modules=modules)


def detect_workspace(root: str | Path, config: BuildGateConfig | None = None) -> WorkspaceProfile:
    """Detect the build tool and enumerate modules.

    An explicit ``project.modules`` list in *config* wins.  Otherwise
    detectors are tried in priority order and the first match wins.  If no
    multi-module build is found, the root directory is the single module.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        raise ValueError(f"Not a directory: {root_path}")

    if config is not None and config.project.modules:
        profile = _from_config(root_path, config)
    else:
        for _name, detector in _DETECTORS:
            result = detector(root_path)
            if result is not None:
                profile = result
                break
        else:
            profile = WorkspaceProfile(
                tool="generic",
                root=str(root_path),
                modules=[Module(name=root_path.name, path=".")],
            )

    _build_dependency_graph(root_path, profile.modules)
    logger.debug("Detected %d module(s) via %s", len(profile.modules), profile.tool)
    return profile
