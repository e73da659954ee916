from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from ..archiver import compress
from ..config import LOG_LEVELS
from ..extractor import extract, list_archive
from ..operations import Operation, run_operation
from ..paths import default_extract_path
from . import config
from .common import console, get_settings, handle_cli_errors, maybe_write_report, render_result

app = typer.Typer(help="Compress directories into ZIP archives and extract them safely.")
app.add_typer(config.app, name="config")

SKIPPED_EXIT_CODE = 2

SOURCE_ARGUMENT = typer.Argument(
    ..., exists=True, readable=True, help="Directory or file to compress"
)
ARCHIVE_ARGUMENT = typer.Argument(
    ..., exists=True, file_okay=True, dir_okay=False, readable=True, help="ZIP archive"
)
COMPRESS_OUT_OPTION = typer.Option(
    None, "--out", "-o", help="Archive path (default: SOURCE plus the archive suffix)"
)
EXTRACT_OUT_OPTION = typer.Option(
    None, "--out", "-o", help="Destination directory (default: ARCHIVE without its suffix)"
)
STORE_OPTION = typer.Option(False, "--store", help="Store entries without compression")
STRICT_OPTION = typer.Option(
    None,
    "--strict/--best-effort",
    help="Abort on the first unreadable file instead of skipping it (default from config)",
)
FAIL_ON_SKIP_OPTION = typer.Option(
    False, "--fail-on-skip", help=f"Exit with code {SKIPPED_EXIT_CODE} if any file was skipped"
)
REPORT_OPTION = typer.Option(None, "--report", help="Write a YAML report of the run to this path")


@app.callback()
def common(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_level: str | None = typer.Option(
        None, "--log-level", help=f"Log level ({', '.join(LOG_LEVELS)})"
    ),
) -> None:
    """Initialize shared Typer context state."""

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if log_level is not None:
        normalized = log_level.upper()
        if normalized not in LOG_LEVELS:
            raise typer.BadParameter(
                f"Expected one of: {', '.join(LOG_LEVELS)}", param_hint="--log-level"
            )
        ctx.obj["log_level"] = normalized


@app.command("compress")
@handle_cli_errors
def compress_command(
    ctx: typer.Context,
    source: Path = SOURCE_ARGUMENT,
    out: Path | None = COMPRESS_OUT_OPTION,
    store: bool = STORE_OPTION,
    strict: bool | None = STRICT_OPTION,
    fail_on_skip: bool = FAIL_ON_SKIP_OPTION,
    report: Path | None = REPORT_OPTION,
) -> None:
    """Compress a directory (or a single file) into a ZIP archive."""

    settings = get_settings(ctx)
    if store:
        settings = settings.model_copy(update={"compression": "store"})
    if strict is not None:
        settings = settings.model_copy(update={"strict": strict})

    result = compress(source, out, settings=settings)
    render_result(result)
    maybe_write_report(result, report)
    if fail_on_skip and result.skipped:
        raise typer.Exit(SKIPPED_EXIT_CODE)


@app.command("extract")
@handle_cli_errors
def extract_command(
    ctx: typer.Context,
    archive: Path = ARCHIVE_ARGUMENT,
    out: Path | None = EXTRACT_OUT_OPTION,
    report: Path | None = REPORT_OPTION,
) -> None:
    """Extract a ZIP archive into a directory, rejecting entries that escape it."""

    settings = get_settings(ctx)
    destination = out or default_extract_path(archive, settings.archive_suffix)
    result = extract(archive, destination, settings=settings)
    render_result(result)
    maybe_write_report(result, report)


app.command("decompress", help="Alias for 'extract'.")(extract_command)


@app.command("run")
@handle_cli_errors
def run_command(
    ctx: typer.Context,
    operation: Operation = typer.Argument(..., help="compress or decompress"),
    input_path: Path = typer.Argument(..., exists=True, readable=True, help="Input path"),
    output_path: Path | None = typer.Argument(None, help="Output path (optional)"),
    report: Path | None = REPORT_OPTION,
) -> None:
    """Run an operation selected at runtime on an input and output path."""

    settings = get_settings(ctx)
    result = run_operation(operation, input_path, output_path, settings=settings)
    render_result(result)
    maybe_write_report(result, report)


@app.command("list")
@handle_cli_errors
def list_command(
    ctx: typer.Context,
    archive: Path = ARCHIVE_ARGUMENT,
) -> None:
    """List the entries of a ZIP archive without extracting it."""

    get_settings(ctx)
    entries = list_archive(archive)
    if not entries:
        console.print(f"{escape(str(archive))} is empty.")
        return

    table = Table("Name", "Size", "Compressed")
    for entry in entries:
        size = "-" if entry.is_directory else str(entry.size)
        compressed = "-" if entry.is_directory else str(entry.compressed_size)
        table.add_row(escape(entry.name), size, compressed)
    console.print(table)


__all__ = ["app", "common", "compress_command", "extract_command", "list_command", "run_command"]
