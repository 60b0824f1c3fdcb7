"""buildgate CLI: top-level command group."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from buildgate import __version__
from buildgate.config import CONFIG_FILE_NAME, load_config, validate_config
from buildgate.errors import BuildGateError
from buildgate.orchestrator import BuildSession
from buildgate.release import copyright_notice
from buildgate.reporters.terminal import reporter
from buildgate.signing import sign_published_artifacts

logger = logging.getLogger(__name__)
console = Console()

_PACKAGE_LOGGER = "buildgate"


def _configure_logging(*, verbose: bool) -> None:
    """Send ``buildgate.*`` records to stderr through rich."""
    root = logging.getLogger(_PACKAGE_LOGGER)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)


def _parse_properties(values: tuple[str, ...]) -> dict[str, str]:
    """Turn ``KEY=VALUE`` / ``KEY`` pairs into a property mapping."""
    properties: dict[str, str] = {}
    for item in values:
        key, _, value = item.partition("=")
        key = key.strip()
        if not key:
            raise click.BadParameter(f"Invalid property '{item}'", param_hint="-P/--property")
        properties[key] = value
    return properties


def _open_session(ctx: click.Context) -> BuildSession:
    try:
        return BuildSession.open(ctx.obj["path"], ctx.obj["properties"])
    except BuildGateError as e:
        reporter.print_error(str(e))
        raise click.Abort from e


def _config_to_dict(config: Any) -> dict[str, Any]:
    """Convert BuildGateConfig to a plain dictionary for display."""
    result = asdict(config)
    result.pop("raw", None)
    result["project"]["root"] = str(result["project"]["root"])
    for section in result.values():
        if isinstance(section, dict) and section.get("key_id"):
            section["key_id"] = "***"
    return result


@click.group()
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option(
    "-P",
    "--property",
    "properties",
    multiple=True,
    metavar="KEY[=VALUE]",
    help="Build property; a bare KEY counts as true. Repeatable.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="buildgate")
@click.pass_context
def cli(ctx: click.Context, path: str, properties: tuple[str, ...], *, verbose: bool) -> None:
    """buildgate: build policy for multi-module JVM projects."""
    ctx.ensure_object(dict)
    _configure_logging(verbose=verbose)
    ctx.obj["path"] = path
    ctx.obj["properties"] = _parse_properties(properties)


# ── Inspection ─────────────────────────────────────────────────────────


@cli.command("modules")
@click.option("--json-output", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def modules_cmd(ctx: click.Context, *, as_json: bool) -> None:
    """List the modules of the project and their plugins."""
    session = _open_session(ctx)
    if as_json:
        data = [
            {
                "name": m.name,
                "path": m.path,
                "plugins": sorted(m.plugins),
                "dependencies": m.dependencies,
            }
            for m in session.registry
        ]
        click.echo(json.dumps(data, indent=2))
        return
    reporter.print_modules(session.registry)


@cli.command("settings")
@click.argument("module", required=False)
@click.option("--json-output", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def settings_cmd(ctx: click.Context, module: str | None, *, as_json: bool) -> None:
    """Show the effective settings of MODULE (default: every module)."""
    session = _open_session(ctx)
    try:
        selected = [session.registry.get(module)] if module else session.registry.all_modules()
    except KeyError as e:
        reporter.print_error(str(e.args[0]))
        raise click.Abort from e

    if as_json:
        click.echo(json.dumps({m.name: m.settings for m in selected}, indent=2, sort_keys=True))
        return
    for m in selected:
        reporter.print_settings(m.name, m.settings)


@cli.command("flags")
@click.option("--json-output", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def flags_cmd(ctx: click.Context, *, as_json: bool) -> None:
    """Show every known feature flag and where its value comes from."""
    session = _open_session(ctx)
    rows = []
    for name in sorted(session.toggles.flags):
        value, source = session.toggles.explain(name)
        rows.append((name, value, source))

    if as_json:
        click.echo(json.dumps({n: {"enabled": v, "source": s} for n, v, s in rows}, indent=2))
        return
    reporter.print_flags(rows)


# ── Coverage ───────────────────────────────────────────────────────────


@cli.command("coverage")
@click.option("--dry-run", is_flag=True, help="Show the aggregation inputs without running JaCoCo.")
@click.option(
    "--jacoco-cli",
    type=click.Path(dir_okay=False, resolve_path=True),
    help="Path to jacococli.jar (overrides config and JACOCO_CLI).",
)
@click.pass_context
def coverage_cmd(ctx: click.Context, *, dry_run: bool, jacoco_cli: str | None) -> None:
    """Aggregate coverage of every module into one report.

    Example:
      buildgate coverage --jacoco-cli ~/lib/jacococli.jar
      buildgate -P ci coverage
    """
    session = _open_session(ctx)
    reporter.print_header(f"Coverage of {session.config.project.group or session.root.name}")
    try:
        if dry_run:
            reporter.print_coverage_plan(session.plan_coverage())
            return
        result = session.aggregate_coverage(jacoco_cli=jacoco_cli)
    except BuildGateError as e:
        reporter.print_error(str(e))
        raise click.Abort from e
    reporter.print_coverage_result(result)


# ── Packaging ──────────────────────────────────────────────────────────


@cli.command("archive")
@click.argument("source_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--prefix", default="", help="Directory prefix for every entry.")
@click.option(
    "--meta-inf",
    "meta_inf",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Extra file placed under META-INF/. Repeatable.",
)
@click.pass_context
def archive_cmd(
    ctx: click.Context,
    source_dir: Path,
    output: Path,
    prefix: str,
    meta_inf: tuple[Path, ...],
) -> None:
    """Package SOURCE_DIR into a reproducible OUTPUT archive (.jar, .zip, .tar, .tar.gz)."""
    session = _open_session(ctx)
    try:
        built = session.build_archive(
            source_dir, output, prefix=prefix, extra_meta_inf=list(meta_inf)
        )
    except BuildGateError as e:
        reporter.print_error(str(e))
        raise click.Abort from e
    reporter.print_archive(built)


@cli.command("release-year")
@click.argument("notice", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--notice-line", is_flag=True, help="Print the documentation copyright line.")
@click.pass_context
def release_year_cmd(ctx: click.Context, notice: Path | None, *, notice_line: bool) -> None:
    """Print the copyright end year from NOTICE (default: the configured file)."""
    session = _open_session(ctx)
    try:
        year = session.release_year(notice)
    except BuildGateError as e:
        reporter.print_error(str(e))
        raise click.Abort from e

    if notice_line:
        release = session.config.release
        click.echo(copyright_notice(release.first_year or year, year, release.copyright_holder))
        return
    click.echo(str(year))


@cli.command("sign")
@click.argument(
    "artifacts", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option("--module", "module_name", required=True, help="Module that produced the artifacts.")
@click.pass_context
def sign_cmd(ctx: click.Context, artifacts: tuple[Path, ...], module_name: str) -> None:
    """Sign ARTIFACTS with gpg if MODULE publishes."""
    session = _open_session(ctx)
    try:
        signed = sign_published_artifacts(
            session.registry, {module_name: list(artifacts)}, session.signer()
        )
    except KeyError as e:
        reporter.print_error(str(e.args[0]))
        raise click.Abort from e
    except BuildGateError as e:
        reporter.print_error(str(e))
        raise click.Abort from e
    reporter.print_signatures(signed)


# ── Configuration ──────────────────────────────────────────────────────


@cli.group("config")
def config_group() -> None:
    """Inspect `.buildgate.yml`."""


@config_group.command("show")
@click.option("--json-output", "as_json", is_flag=True, help="Output as JSON instead of YAML.")
@click.pass_context
def config_show(ctx: click.Context, *, as_json: bool) -> None:
    """Display the resolved configuration with environment variables expanded."""
    try:
        config = load_config(ctx.obj["path"])
    except BuildGateError as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e

    config_dict = _config_to_dict(config)
    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
        return
    console.print()
    console.print("[bold cyan]Configuration:[/bold cyan]")
    console.print()
    click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@click.pass_context
def config_validate(ctx: click.Context) -> None:
    """Validate `.buildgate.yml`.

    Example:
      buildgate config validate
    """
    try:
        config = load_config(ctx.obj["path"])
    except BuildGateError as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e

    errors = validate_config(config)
    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    console.print()
    for idx, error in enumerate(errors, start=1):
        console.print(f"  {idx}. [red]{error}[/red]")
    console.print()
    console.print(f"[dim]Fix these errors in {CONFIG_FILE_NAME} and run 'buildgate config validate' again.[/dim]")
    raise click.Abort
