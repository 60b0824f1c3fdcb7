"""JaCoCo report generator driven through ``jacococli.jar``.

The JaCoCo command line merges any number of ``.exec`` files and maps them
onto class files and sources.  It aborts on a missing execution data file and
on two class files sharing a name, which is why the aggregator filters and
de-duplicates its inputs before they get here.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from defusedxml import ElementTree
from defusedxml.ElementTree import ParseError as DefusedParseError

from buildgate.coverage.base import ReportFormat, ReportGenerator, ReportRequest, ReportResult
from buildgate.errors import ReportGenerationError
from buildgate.models.coverage import CounterSummary, CoverageSummary
from buildgate.utils.subprocess_runner import SubprocessError, run_subprocess

if TYPE_CHECKING:
    from collections.abc import Callable
    from xml.etree.ElementTree import Element as XmlElement

    from buildgate.models.coverage import ClassArtifactSet
    from buildgate.utils.subprocess_runner import SubprocessResult

logger = logging.getLogger(__name__)

XML_REPORT_NAME = "jacoco.xml"

_DEFAULT_TIMEOUT = 600.0
_MAX_STDERR_CHARS = 2000


def _int_attr(element: XmlElement, key: str, default: int = 0) -> int:
    value = element.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def parse_summary(report_file: Path) -> CoverageSummary | None:
    """Read the report-level counters from a JaCoCo XML report."""
    try:
        tree = ElementTree.parse(report_file)
    except (DefusedParseError, OSError) as e:
        logger.error("Failed to parse JaCoCo XML %s: %s", report_file, e)
        return None

    root = tree.getroot()
    if root.tag != "report":
        logger.warning("JaCoCo XML root is not <report>: %s", root.tag)
        return None

    counters: dict[str, CounterSummary] = {}
    for counter in root.findall("counter"):
        ctype = counter.get("type", "")
        if ctype:
            counters[ctype] = CounterSummary(
                missed=_int_attr(counter, "missed"),
                covered=_int_attr(counter, "covered"),
            )
    return CoverageSummary(counters=counters)


def stage_class_artifacts(artifacts: ClassArtifactSet, target: Path) -> int:
    """Copy the merged class artifacts into one tree under *target*.

    Identities are unique within the set, so no file is written twice.
    """
    for identity in sorted(artifacts.artifacts):
        artifact = artifacts.artifacts[identity]
        dest = target / identity
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(artifact.path, dest)
    return len(artifacts)


class JaCoCoCliReportGenerator(ReportGenerator):
    """Generate the aggregate report with ``java -jar jacococli.jar report``."""

    def __init__(
        self,
        jacoco_cli: str | Path,
        *,
        java: str = "java",
        timeout: float = _DEFAULT_TIMEOUT,
        runner: Callable[..., SubprocessResult] | None = None,
    ) -> None:
        self.jacoco_cli = Path(jacoco_cli) if jacoco_cli else None
        self.java = java
        self.timeout = timeout
        self._runner = runner or run_subprocess

    @property
    def name(self) -> str:
        return "jacoco"

    def build_command(self, request: ReportRequest, classfiles: Path) -> list[str]:
        """Assemble the ``jacococli report`` command line for *request*."""
        cmd = [self.java, "-jar", str(self.jacoco_cli), "report"]
        cmd.extend(str(path) for path in request.dataset.paths)
        cmd.extend(["--classfiles", str(classfiles)])
        for source_dir in request.source_dirs:
            cmd.extend(["--sourcefiles", str(source_dir)])
        cmd.extend(["--encoding", request.encoding, "--name", request.title])
        if request.report_format is ReportFormat.HTML:
            cmd.extend(["--html", str(request.output_dir)])
        else:
            cmd.extend(["--xml", str(request.output_dir / XML_REPORT_NAME)])
        return cmd

    def generate(self, request: ReportRequest) -> ReportResult:
        """Stage classes, run the JaCoCo CLI and collect the result."""
        if self.jacoco_cli is None:
            raise ReportGenerationError(
                "jacococli.jar is not configured (set coverage.jacoco_cli or JACOCO_CLI)"
            )
        if not self.jacoco_cli.is_file():
            raise ReportGenerationError(f"jacococli.jar not found: {self.jacoco_cli}")

        request.output_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="buildgate-classes-") as staging:
            staged = stage_class_artifacts(request.class_artifacts, Path(staging))
            logger.debug("Staged %d class file(s) for %s", staged, self.name)
            cmd = self.build_command(request, Path(staging))
            try:
                result = self._runner(cmd, timeout=self.timeout)
            except SubprocessError as exc:
                raise ReportGenerationError(f"JaCoCo report generation failed: {exc}") from exc

        if not result.success:
            detail = "timed out" if result.timed_out else f"exit code {result.returncode}"
            raise ReportGenerationError(
                f"JaCoCo report generation failed ({detail}): "
                f"{result.stderr.strip()[:_MAX_STDERR_CHARS]}"
            )

        modules = request.dataset.modules()
        if request.report_format is ReportFormat.HTML:
            return ReportResult(
                report_format=request.report_format, output=request.output_dir, modules=modules
            )

        xml_report = request.output_dir / XML_REPORT_NAME
        return ReportResult(
            report_format=request.report_format,
            output=xml_report,
            summary=parse_summary(xml_report),
            modules=modules,
        )
