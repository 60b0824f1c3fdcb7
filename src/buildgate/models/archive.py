"""Archive specification models."""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchiveEntry:
    """One file in an archive: a logical path and where its bytes come from."""

    path: str
    """Logical path inside the archive (posix separators)."""

    source: bytes | Path
    """Literal content, or a file whose bytes are read at build time."""

    def read(self) -> bytes:
        if isinstance(self.source, bytes):
            return self.source
        return self.source.read_bytes()


@dataclass
class ArchiveSpec:
    """Declarative description of one output archive.

    ``preserve_timestamps``, ``dir_mode`` and ``file_mode`` record what the
    caller asked for; the builder applies its own fixed policy regardless.
    """

    output: Path
    entries: list[ArchiveEntry] = field(default_factory=list)
    preserve_timestamps: bool = False
    dir_mode: int | None = None
    file_mode: int | None = None

    def add(self, path: str, source: bytes | Path) -> ArchiveSpec:
        """Append an entry and return ``self`` for chaining."""
        self.entries.append(ArchiveEntry(path=path, source=source))
        return self

    @classmethod
    def from_directory(
        cls,
        root: Path,
        output: Path,
        *,
        prefix: str = "",
        extra_entries: dict[str, Path] | None = None,
    ) -> ArchiveSpec:
        """Build a spec holding every regular file under *root*.

        Enumeration order does not matter: the builder sorts entries.  Symlinks
        are skipped, as are *output* itself and its in-progress temporary
        files when the archive is written inside *root*.  *extra_entries* maps
        logical paths to additional files (for example ``META-INF/NOTICE``).
        """
        spec = cls(output=output)
        base = prefix.strip("/")
        target = output.resolve()
        temp_pattern = f".{output.name}.*.tmp"
        for src in root.rglob("*"):
            if src.is_symlink():
                logger.warning("Skipping symlink in archive input: %s", src)
                continue
            if not src.is_file():
                continue
            if src.resolve() == target or (
                src.parent.resolve() == target.parent and fnmatch.fnmatchcase(src.name, temp_pattern)
            ):
                logger.debug("Skipping archive output in its own input: %s", src)
                continue
            rel = src.relative_to(root).as_posix()
            spec.add(f"{base}/{rel}" if base else rel, src)
        for logical, src in (extra_entries or {}).items():
            spec.add(logical, src)
        return spec
