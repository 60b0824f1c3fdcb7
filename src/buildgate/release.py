"""Release metadata extraction from the project NOTICE file."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from buildgate.errors import ReleaseMetadataError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

COPYRIGHT_MARKER = "Copyright"
_COPYRIGHT_RANGE_RE = re.compile(r"Copyright \d{4}-(\d{4})")


def extract_year(notice_text: str) -> int:
    """Return the end year of the copyright range in *notice_text*.

    The first line containing ``Copyright`` must carry a range such as
    ``Copyright 1998-2024 Example Org``; for that line this returns ``2024``.

    Raises:
        ReleaseMetadataError: no line contains the marker, or the first one
            that does has no ``YYYY-YYYY`` range.  Guessing a year here would
            print a wrong date into generated documentation.
    """
    line = next((ln for ln in notice_text.splitlines() if COPYRIGHT_MARKER in ln), None)
    if line is None:
        raise ReleaseMetadataError(f"No line containing '{COPYRIGHT_MARKER}' found")

    match = _COPYRIGHT_RANGE_RE.search(line)
    if match is None:
        raise ReleaseMetadataError(
            f"Unable to identify copyright year from line: {line.strip()!r} "
            "(expected 'Copyright YYYY-YYYY ...')"
        )
    return int(match.group(1))


def read_notice_year(notice_file: Path) -> int:
    """Read *notice_file* and extract its copyright end year."""
    try:
        text = notice_file.read_text(encoding="utf-8")
    except OSError as exc:
        raise ReleaseMetadataError(f"Cannot read {notice_file}: {exc}") from exc
    try:
        year = extract_year(text)
    except ReleaseMetadataError as exc:
        raise ReleaseMetadataError(f"{notice_file}: {exc}") from exc
    logger.debug("Copyright end year %d from %s", year, notice_file)
    return year


def copyright_notice(first_year: int, last_year: int, holder: str) -> str:
    """Format the documentation footer line for a copyright range."""
    years = str(last_year) if first_year == last_year else f"{first_year}-{last_year}"
    return f"Copyright © {years} {holder}. All Rights Reserved."
