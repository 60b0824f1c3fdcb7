"""Reproducible archive construction.

Two builds of the same entries produce the same bytes: entry timestamps are
pinned, entries are written in a canonical order and permission bits are
fixed.  None of this is negotiable per archive.
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from buildgate.archive.writers import open_writer
from buildgate.errors import ArchiveError, ArchivePathError, DuplicateArchivePathError

if TYPE_CHECKING:
    from buildgate.models.archive import ArchiveSpec

logger = logging.getLogger(__name__)

# Earliest date every supported format can represent in local DOS time.
CONSTANT_TIMESTAMP = datetime(1980, 2, 1, 0, 0, 0)

_HASH_CHUNK = 1 << 16


@dataclass(frozen=True)
class ArchivePolicy:
    """Fixed metadata applied to every entry."""

    dir_mode: int = 0o775
    file_mode: int = 0o664
    timestamp: datetime = CONSTANT_TIMESTAMP


@dataclass(frozen=True)
class CanonicalEntry:
    """An entry ready to be written: normalized path, content or directory marker."""

    path: str
    data: bytes | None = None
    """``None`` for directories."""

    @property
    def is_dir(self) -> bool:
        return self.data is None

    @property
    def sort_key(self) -> tuple[str, ...]:
        return tuple(self.path.split("/"))


@dataclass
class BuiltArchive:
    """Result of a successful build."""

    path: Path
    sha256: str
    entries: list[str] = field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return len(self.entries)


def normalize_path(path: str) -> str:
    """Normalize a logical archive path to ``a/b/c`` form.

    Raises:
        ArchivePathError: the path is empty, absolute, or contains ``..``.
    """
    text = path.replace("\\", "/")
    if text.startswith("/") or (len(text) > 1 and text[1] == ":"):
        raise ArchivePathError(f"Archive path must be relative: '{path}'")
    parts = [part for part in text.split("/") if part not in {"", "."}]
    if ".." in parts:
        raise ArchivePathError(f"Archive path must not contain '..': '{path}'")
    if not parts:
        raise ArchivePathError(f"Archive path is empty: '{path}'")
    return "/".join(parts)


def _sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(_HASH_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ReproducibleArchiveBuilder:
    """Build archives whose bytes depend only on entry paths and contents."""

    def __init__(self, policy: ArchivePolicy | None = None) -> None:
        self.policy = policy or ArchivePolicy()

    def canonical_entries(self, spec: ArchiveSpec) -> list[CanonicalEntry]:
        """Validate *spec* and return its entries in canonical order.

        Parent directories are synthesized for every file.

        Raises:
            DuplicateArchivePathError: two entries share a logical path, or a
                path is used both as a file and as a directory.
            ArchivePathError: an entry path is invalid.
        """
        files: dict[str, bytes] = {}
        for entry in spec.entries:
            path = normalize_path(entry.path)
            if path in files:
                raise DuplicateArchivePathError(path)
            try:
                files[path] = entry.read()
            except OSError as exc:
                raise ArchiveError(f"Cannot read content of archive entry '{path}': {exc}") from exc

        directories: set[str] = set()
        for path in files:
            parts = path.split("/")
            directories.update("/".join(parts[:i]) for i in range(1, len(parts)))

        for directory in sorted(directories):
            if directory in files:
                raise DuplicateArchivePathError(
                    directory, "is used as both a file and a directory"
                )

        entries = [CanonicalEntry(path=d) for d in directories]
        entries.extend(CanonicalEntry(path=p, data=data) for p, data in files.items())
        return sorted(entries, key=lambda e: e.sort_key)

    def _note_ignored_fields(self, spec: ArchiveSpec) -> None:
        if spec.preserve_timestamps:
            logger.info("Ignoring preserve_timestamps for %s: timestamps are always pinned", spec.output)
        for label, requested, enforced in (
            ("dir_mode", spec.dir_mode, self.policy.dir_mode),
            ("file_mode", spec.file_mode, self.policy.file_mode),
        ):
            if requested is not None and requested != enforced:
                logger.info(
                    "Ignoring %s %o for %s: using %o", label, requested, spec.output, enforced
                )

    def build(self, spec: ArchiveSpec) -> BuiltArchive:
        """Write the archive described by *spec*.

        Content is read and validated before the output is touched, and the
        archive is written to a temporary file that replaces the output only
        once complete, so a failure never leaves a partial archive behind.

        Raises:
            DuplicateArchivePathError: see :meth:`canonical_entries`.
            ArchivePathError: see :meth:`canonical_entries`.
            ArchiveError: content could not be read or the format is unsupported.
        """
        self._note_ignored_fields(spec)
        entries = self.canonical_entries(spec)

        output = spec.output
        output.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{output.name}.", suffix=".tmp", dir=output.parent)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                try:
                    writer = open_writer(output, fh)
                except ValueError as exc:
                    raise ArchiveError(str(exc)) from exc
                with writer:
                    for entry in entries:
                        if entry.data is None:
                            writer.add_directory(
                                entry.path, mode=self.policy.dir_mode, mtime=self.policy.timestamp
                            )
                        else:
                            writer.add_file(
                                entry.path,
                                entry.data,
                                mode=self.policy.file_mode,
                                mtime=self.policy.timestamp,
                            )
            tmp_path.chmod(0o644)
            os.replace(tmp_path, output)
        except BaseException:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise

        built = BuiltArchive(path=output, sha256=_sha256(output), entries=[e.path for e in entries])
        logger.info("Built %s (%d entries, sha256 %s)", output, built.entry_count, built.sha256)
        return built
