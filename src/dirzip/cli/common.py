from __future__ import annotations

import os
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any, ParamSpec, TypeVar, cast

import typer
from rich.console import Console
from rich.markup import escape

from ..config import ConfigStore, Settings, load_settings
from ..errors import ConfigError, DirzipError, PathTraversalError
from ..log import configure_logging
from ..models import OperationResult
from ..report import write_report

console = Console(soft_wrap=True)

CommandParams = ParamSpec("CommandParams")
CommandReturn = TypeVar("CommandReturn")


def handle_cli_errors(
    func: Callable[CommandParams, CommandReturn],
) -> Callable[CommandParams, CommandReturn]:
    @wraps(func)
    def wrapper(*args: CommandParams.args, **kwargs: CommandParams.kwargs) -> CommandReturn:
        try:
            return func(*args, **kwargs)
        except typer.BadParameter:
            raise
        except typer.Exit:
            raise
        except PathTraversalError as exc:
            console.print(f"[red]Error:[/red] {escape(str(exc))}")
            console.print(
                "Extraction aborted. The archive may be malicious; do not trust any of its contents."
            )
            raise typer.Exit(1) from None
        except ConfigError as exc:
            console.print(f"[red]Error:[/red] Invalid configuration: {escape(str(exc))}")
            console.print("Run `dirzip config show` to inspect settings or `dirzip config reset`.")
            raise typer.Exit(1) from None
        except DirzipError as exc:
            console.print(f"[red]Error:[/red] {escape(str(exc))}")
            raise typer.Exit(1) from None
        except Exception as exc:
            if os.getenv("DIRZIP_DEBUG"):
                raise
            console.print(f"[red]Error:[/red] Unexpected failure: {escape(str(exc))}")
            console.print("Set DIRZIP_DEBUG=1 for a stack trace.")
            raise typer.Exit(1) from exc

    return wrapper


def get_settings(ctx: typer.Context, *, store: ConfigStore | None = None) -> Settings:
    """Return settings cached on ``ctx``, loading them and configuring logging once."""

    ctx.ensure_object(dict)
    obj = cast(dict[str, Any], ctx.obj)
    existing = obj.get("settings")
    if isinstance(existing, Settings):
        return existing

    settings = load_settings(store)
    level = obj.get("log_level") or settings.log_level
    if obj.get("verbose"):
        level = "DEBUG"
    configure_logging(level)
    obj["settings"] = settings
    return settings


def render_result(result: OperationResult) -> None:
    verb = "Compressed" if result.operation == "compress" else "Extracted"
    count = len(result.entries)
    noun = "entry" if count == 1 else "entries"
    console.print(
        f"[green]{verb}[/green] {escape(result.source)} -> {escape(result.target)} "
        f"({count} {noun}, {result.bytes_processed} bytes)"
    )
    for skipped in result.skipped:
        console.print(
            f"[yellow]Skipped:[/yellow] {escape(skipped.path)} ({escape(skipped.reason)})"
        )


def maybe_write_report(result: OperationResult, report: Path | None) -> None:
    if report is None:
        return
    write_report(result, report)
    console.print(f"Report written to {escape(str(report))}")


__all__ = [
    "console",
    "get_settings",
    "handle_cli_errors",
    "maybe_write_report",
    "render_result",
]
