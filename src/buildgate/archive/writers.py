"""Archive writers accepting explicit per-entry timestamp and mode.

Nothing here reads the filesystem: the caller supplies every byte, every
mtime and every permission bit.
"""

from __future__ import annotations

import calendar
import gzip
import io
import stat
import tarfile
import zipfile
from abc import ABC, abstractmethod
from typing import IO, TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path
    from types import TracebackType

_ZIP_UNIX_SYSTEM = 3
_ZIP_DIRECTORY_FLAG = 0x10


class ArchiveWriter(ABC):
    """Write entries to an archive stream in the order they are added."""

    suffixes: tuple[str, ...] = ()

    def __init__(self, fileobj: IO[bytes]) -> None:
        self._fileobj = fileobj

    @abstractmethod
    def add_directory(self, name: str, *, mode: int, mtime: datetime) -> None:
        """Add a directory entry; *name* has no trailing slash."""

    @abstractmethod
    def add_file(self, name: str, data: bytes, *, mode: int, mtime: datetime) -> None:
        """Add a regular file entry."""

    @abstractmethod
    def close(self) -> None:
        """Finish the archive (the underlying stream stays open)."""

    def __enter__(self) -> ArchiveWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class ZipArchiveWriter(ArchiveWriter):
    """ZIP/JAR writer with fixed host system and deflate settings."""

    suffixes = (".zip", ".jar", ".war", ".ear")

    def __init__(self, fileobj: IO[bytes]) -> None:
        super().__init__(fileobj)
        self._zip = zipfile.ZipFile(fileobj, mode="w", compression=zipfile.ZIP_DEFLATED)

    @staticmethod
    def _info(name: str, mtime: datetime) -> zipfile.ZipInfo:
        info = zipfile.ZipInfo(
            filename=name,
            date_time=(mtime.year, mtime.month, mtime.day, mtime.hour, mtime.minute, mtime.second),
        )
        info.create_system = _ZIP_UNIX_SYSTEM
        return info

    def add_directory(self, name: str, *, mode: int, mtime: datetime) -> None:
        info = self._info(f"{name}/", mtime)
        info.compress_type = zipfile.ZIP_STORED
        info.external_attr = ((stat.S_IFDIR | mode) << 16) | _ZIP_DIRECTORY_FLAG
        self._zip.writestr(info, b"")

    def add_file(self, name: str, data: bytes, *, mode: int, mtime: datetime) -> None:
        info = self._info(name, mtime)
        info.compress_type = zipfile.ZIP_DEFLATED
        info.external_attr = (stat.S_IFREG | mode) << 16
        self._zip.writestr(info, data)

    def close(self) -> None:
        self._zip.close()


class TarArchiveWriter(ArchiveWriter):
    """Tar writer (optionally gzip-compressed) with anonymous ownership."""

    suffixes = (".tar", ".tar.gz", ".tgz")

    def __init__(self, fileobj: IO[bytes], *, compress: bool = False) -> None:
        super().__init__(fileobj)
        # The gzip header carries a filename and an mtime; pin both.
        self._gzip = (
            gzip.GzipFile(filename="", mode="wb", fileobj=fileobj, mtime=0) if compress else None
        )
        self._tar = tarfile.open(
            fileobj=self._gzip or fileobj, mode="w", format=tarfile.PAX_FORMAT
        )

    @staticmethod
    def _info(name: str, mode: int, mtime: datetime) -> tarfile.TarInfo:
        info = tarfile.TarInfo(name)
        info.mode = mode
        info.mtime = calendar.timegm(mtime.timetuple())
        info.uid = info.gid = 0
        info.uname = info.gname = ""
        return info

    def add_directory(self, name: str, *, mode: int, mtime: datetime) -> None:
        info = self._info(name, mode, mtime)
        info.type = tarfile.DIRTYPE
        self._tar.addfile(info)

    def add_file(self, name: str, data: bytes, *, mode: int, mtime: datetime) -> None:
        info = self._info(name, mode, mtime)
        info.size = len(data)
        self._tar.addfile(info, io.BytesIO(data))

    def close(self) -> None:
        self._tar.close()
        if self._gzip is not None:
            self._gzip.close()


def open_writer(output: Path, fileobj: IO[bytes]) -> ArchiveWriter:
    """Pick the writer for *output* from its file name.

    Raises:
        ValueError: the suffix is not a supported archive format.
    """
    name = output.name.lower()
    if name.endswith((".tar.gz", ".tgz")):
        return TarArchiveWriter(fileobj, compress=True)
    if name.endswith(".tar"):
        return TarArchiveWriter(fileobj)
    if name.endswith(ZipArchiveWriter.suffixes):
        return ZipArchiveWriter(fileobj)
    raise ValueError(
        f"Unsupported archive type: {output.name} "
        f"(expected one of {', '.join(ZipArchiveWriter.suffixes + TarArchiveWriter.suffixes)})"
    )
