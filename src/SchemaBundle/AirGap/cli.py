# === NAVMAP v1 ===
# {
#   "module": "SchemaBundle.AirGap.cli",
#   "purpose": "Typer CLI for planning and building air-gapped schema bundles.",
#   "sections": [
#     {"id": "clicontext", "name": "CliContext", "anchor": "class-clicontext", "kind": "class"},
#     {"id": "main", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "build", "name": "build", "anchor": "function-build", "kind": "function"},
#     {"id": "plan", "name": "plan", "anchor": "function-plan", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Typer CLI for the air-gapped bundle builder.

Provides:
- ``build``: fetch every schema and write the rewritten catalog
- ``plan``: show the planned local filename of every entry
- Global options (-v/-vv, --log-dir, --version)

Exit codes: ``0`` for completed builds (even with per-entry failures), ``1``
for fatal errors such as a missing catalog, ``2`` for invalid configuration.

Example:
    $ schemabundle build --catalog src/api/json/catalog.json --out build
"""

from __future__ import annotations

import json
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table

from .catalog import load_catalog
from .errors import AirGapError, UserConfigError
from .filesystem import format_bytes
from .logging_config import setup_logging
from .pipeline import BuildReport, build_air_gapped_package
from .planning import plan_entries
from .settings import BuildSettings, resolve_settings

try:  # pragma: no cover - metadata may be unavailable during development
    __version__ = importlib_metadata.version("schemabundle")
except importlib_metadata.PackageNotFoundError:  # pragma: no cover - local source tree
    __version__ = "0.0.0"

EXIT_FATAL = 1
EXIT_CONFIG = 2

_FORMATS = {"table", "json"}

_console = Console()


class CliContext:
    """Shared state established by the global callback."""

    def __init__(self, verbosity: int = 0, log_dir: Path | None = None):
        self.verbosity = verbosity
        self.log_dir = log_dir
        self.console = _console

    @property
    def log_level(self) -> Optional[str]:
        if self.verbosity >= 2:
            return "DEBUG"
        if self.verbosity == 1:
            return "INFO"
        return None


app = typer.Typer(
    name="schemabundle",
    help="Package a JSON schema catalog into an air-gapped bundle",
    no_args_is_help=True,
)

_context: CliContext | None = None


def get_context() -> CliContext:
    """Return the context created by :func:`main`, or a default one."""
    return _context if _context is not None else CliContext()


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"schemabundle {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    verbosity: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)",
    ),
    log_dir: Optional[Path] = typer.Option(
        None,
        "--log-dir",
        envvar="SCHEMABUNDLE_LOG_DIR",
        help="Write JSON-lines logs to this directory",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Air-gapped schema catalog packager."""
    global _context
    _context = CliContext(verbosity=verbosity, log_dir=log_dir)


def _check_format(format_output: str) -> str:
    normalized = format_output.lower()
    if normalized not in _FORMATS:
        raise typer.BadParameter(f"format must be one of {sorted(_FORMATS)}")
    return normalized


def _resolve(ctx: CliContext, **overrides: Any) -> BuildSettings:
    try:
        return resolve_settings(log_level=ctx.log_level, log_dir=ctx.log_dir, **overrides)
    except UserConfigError as exc:
        ctx.console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(EXIT_CONFIG) from exc


def _report_to_dict(report: BuildReport) -> Dict[str, Any]:
    return {
        "total": report.total,
        "failures": report.failures,
        "downloaded": report.downloaded,
        "copied": report.copied,
        "skipped": report.skipped,
        "bytes_written": report.bytes_written,
        "catalog": str(report.catalog_path) if report.catalog_path else None,
        "schemas_dir": str(report.schemas_dir) if report.schemas_dir else None,
        "elapsed_seconds": round(report.elapsed_seconds, 3),
        "dry_run": report.dry_run,
        "failed_entries": [
            {"index": result.index, "filename": result.filename, "error": result.error}
            for result in report.results
            if result.failed
        ],
    }


def _print_report(console: Console, report: BuildReport) -> None:
    table = Table(title="Air-gapped bundle")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Entries", str(report.total))
    table.add_row("Downloaded", str(report.downloaded))
    table.add_row("Copied (local)", str(report.copied))
    table.add_row("Passed through", str(report.skipped))
    table.add_row("Failures", str(report.failures))
    table.add_row("Bytes written", format_bytes(report.bytes_written))
    table.add_row("Elapsed", f"{report.elapsed_seconds:.2f}s")
    console.print(table)
    for result in report.results:
        if result.failed:
            console.print(f"[red]✗[/red] {result.filename}: {result.error}")
    if report.ok:
        console.print(f"[green]✓ Wrote {report.catalog_path}[/green]")
    else:
        console.print(
            f"[yellow]⚠ Wrote {report.catalog_path} with {report.failures} failure(s)[/yellow]"
        )


@app.command()
def build(
    catalog: Optional[Path] = typer.Option(None, "--catalog", help="Source catalog document"),
    out: Optional[Path] = typer.Option(None, "--out", help="Output bundle directory"),
    schemas_dir: Optional[str] = typer.Option(
        None, "--schemas-dir", help="Schemas subdirectory name inside the bundle"
    ),
    local_dir: Optional[Path] = typer.Option(
        None, "--local-dir", help="Directory of canonical schemas checked before downloading"
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-j", help="Maximum concurrent fetches"
    ),
    max_attempts: Optional[int] = typer.Option(
        None, "--max-attempts", help="Download attempts per schema"
    ),
    base_delay_ms: Optional[int] = typer.Option(
        None, "--base-delay-ms", help="Delay before the first retry, in milliseconds"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Plan filenames without writing or downloading"
    ),
    format_output: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Download every schema in the catalog and write the rewritten catalog.

    Example:
        $ schemabundle build --out build --schemas-dir schemas
    """
    ctx = get_context()
    fmt = _check_format(format_output)
    settings = _resolve(
        ctx,
        catalog=catalog,
        out=out,
        schemas_dir=schemas_dir,
        local_dir=local_dir,
        concurrency=concurrency,
        max_attempts=max_attempts,
        base_delay_ms=base_delay_ms,
    )
    logger = setup_logging(settings.logging)

    try:
        report = build_air_gapped_package(settings, logger=logger, dry_run=dry_run)
    except AirGapError as exc:
        logger.error("%s", exc, extra={"stage": "fatal"})
        raise typer.Exit(EXIT_FATAL) from exc

    if fmt == "json":
        typer.echo(json.dumps(_report_to_dict(report), indent=2))
    elif dry_run:
        ctx.console.print(f"[yellow]DRY-RUN: planned {report.total} entries[/yellow]")
    else:
        _print_report(ctx.console, report)


@app.command()
def plan(
    catalog: Optional[Path] = typer.Option(None, "--catalog", help="Source catalog document"),
    format_output: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Show the local filename planned for every catalog entry.

    Example:
        $ schemabundle plan --format json
    """
    ctx = get_context()
    fmt = _check_format(format_output)
    settings = _resolve(ctx, catalog=catalog)

    try:
        planned = plan_entries(load_catalog(settings.catalog))
    except AirGapError as exc:
        ctx.console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(EXIT_FATAL) from exc

    if fmt == "json":
        rows = [
            {"index": item.index, "name": item.name, "url": item.url, "filename": item.filename}
            for item in planned
        ]
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return

    table = Table(title=str(settings.catalog))
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Filename")
    table.add_column("URL", overflow="fold")
    for item in planned:
        table.add_row(
            str(item.index),
            item.name or "",
            item.filename or "[dim](pass-through)[/dim]",
            item.url or "",
        )
    ctx.console.print(table)


__all__ = ["app", "CliContext", "get_context", "main", "build", "plan", "__version__"]
