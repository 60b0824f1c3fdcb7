"""Reproducible archive construction."""

from buildgate.archive.builder import (
    CONSTANT_TIMESTAMP,
    ArchivePolicy,
    BuiltArchive,
    ReproducibleArchiveBuilder,
    normalize_path,
)
from buildgate.archive.writers import ArchiveWriter, TarArchiveWriter, ZipArchiveWriter

__all__ = [
    "CONSTANT_TIMESTAMP",
    "ArchivePolicy",
    "ArchiveWriter",
    "BuiltArchive",
    "ReproducibleArchiveBuilder",
    "TarArchiveWriter",
    "ZipArchiveWriter",
    "normalize_path",
]
