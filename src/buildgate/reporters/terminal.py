"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from buildgate.archive.builder import BuiltArchive
    from buildgate.coverage.aggregator import AggregationPlan
    from buildgate.coverage.base import ReportResult
    from buildgate.models.coverage import CoverageSummary
    from buildgate.registry import ModuleRegistry
    from buildgate.signing import SignedArtifact

console = Console()


_GOOD_COVERAGE = 80.0
_FAIR_COVERAGE = 50.0


def _coverage_color(percentage: float) -> str:
    """Return a Rich color name for a coverage percentage."""
    if percentage >= _GOOD_COVERAGE:
        return "green"
    if percentage >= _FAIR_COVERAGE:
        return "yellow"
    return "red"


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[dim]no[/dim]"


class CLIReporter:
    """Rich terminal output for build policy, coverage and archives."""

    def __init__(self) -> None:
        self.console = console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[blue]i[/blue] {message}")

    # ── Modules & settings ─────────────────────────────────────────────

    def print_modules(self, registry: ModuleRegistry) -> None:
        """Print every registered module with its path and plugins."""
        table = Table(title=f"Modules ({registry.tool})", title_style="bold cyan")
        table.add_column("Module", style="bold")
        table.add_column("Path")
        table.add_column("Plugins")
        table.add_column("Depends on", style="dim")

        for module in registry:
            table.add_row(
                module.name,
                module.path,
                ", ".join(sorted(module.plugins)) or "[dim]-[/dim]",
                ", ".join(module.dependencies),
            )

        self.console.print(table)

    def print_settings(self, module_name: str, settings: dict[str, Any]) -> None:
        """Print the effective settings of one module."""
        table = Table(title=f"Settings: {module_name}", title_style="bold cyan")
        table.add_column("Key", style="bold")
        table.add_column("Value")

        for key, value in sorted(settings.items()):
            text = ", ".join(str(v) for v in value) if isinstance(value, list) else str(value)
            table.add_row(key, text)

        self.console.print(table)

    def print_flags(self, flags: list[tuple[str, bool, str]]) -> None:
        """Print resolved feature flags as (name, value, source) rows."""
        table = Table(title="Feature Flags", title_style="bold cyan")
        table.add_column("Flag", style="bold")
        table.add_column("Enabled", justify="center")
        table.add_column("Source", style="dim")

        for name, value, source in flags:
            table.add_row(name, _yes_no(value), source)

        self.console.print(table)

    # ── Coverage ───────────────────────────────────────────────────────

    def print_coverage_plan(self, plan: AggregationPlan) -> None:
        """Print what an aggregation run would feed the report generator."""
        table = Table(title="Coverage Inputs", title_style="bold cyan")
        table.add_column("Module", style="bold")
        table.add_column("Execution Data", justify="right")
        table.add_column("Class Files", justify="right")

        present: dict[str, int] = {}
        for data_file in plan.dataset:
            present[data_file.module] = present.get(data_file.module, 0) + 1
        declared: dict[str, int] = {}
        for data_file in plan.dataset.candidates:
            declared[data_file.module] = declared.get(data_file.module, 0) + 1
        class_counts = {m: len(a) for m, a in plan.class_artifacts.by_module().items()}

        for name in plan.included_modules:
            table.add_row(
                name,
                f"{present.get(name, 0)}/{declared.get(name, 0)}",
                str(class_counts.get(name, 0)),
            )
        for name in plan.skipped_modules:
            table.add_row(f"[dim]{name}[/dim]", "[dim]-[/dim]", "[dim]-[/dim]")

        self.console.print(table)
        self.console.print(
            f"[dim]Report format: {plan.report_format.value}; "
            f"{len(plan.class_artifacts.excluded)} class file(s) excluded[/dim]"
        )

    def print_coverage_summary(self, summary: CoverageSummary) -> None:
        """Print the aggregate coverage counters."""
        table = Table(title="Coverage Summary", title_style="bold cyan")
        table.add_column("Counter", style="bold")
        table.add_column("Covered", justify="right")
        table.add_column("Missed", justify="right")
        table.add_column("Coverage", justify="right")

        for name, counter in sorted(summary.counters.items()):
            pct = counter.percentage
            color = _coverage_color(pct)
            table.add_row(
                name.capitalize(),
                str(counter.covered),
                str(counter.missed),
                f"[{color}]{pct:.1f}%[/{color}]",
            )

        self.console.print(table)

    def print_coverage_result(self, result: ReportResult) -> None:
        """Print where the aggregate report went, plus counters if parsed."""
        self.print_success(f"Coverage report ({result.report_format.value}) written to {result.output}")
        if result.modules:
            self.print_info(f"Modules with execution data: {', '.join(result.modules)}")
        if result.summary is not None:
            self.print_coverage_summary(result.summary)

    # ── Archives & signing ─────────────────────────────────────────────

    def print_archive(self, built: BuiltArchive) -> None:
        self.print_success(f"Built {built.path} ({built.entry_count} entries)")
        self.console.print(f"  [dim]sha256[/dim] {built.sha256}")

    def print_signatures(self, signed: list[SignedArtifact]) -> None:
        if not signed:
            self.print_warning("Nothing was signed")
            return
        for item in signed:
            self.print_success(f"{item.artifact.name} -> {item.signature.name}")


reporter = CLIReporter()
