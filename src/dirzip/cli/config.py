"""Commands for inspecting and changing stored dirzip settings."""

from __future__ import annotations

import os

import typer
from rich.markup import escape

from ..config import ConfigStore, env_var_for, setting_names
from .common import console, handle_cli_errors

app = typer.Typer(help="Settings stored in the dirzip config file")


@app.command("show")
@handle_cli_errors
def config_show() -> None:
    """Display effective settings, marking values overridden by the environment."""

    store = ConfigStore()
    settings = store.load()
    console.print(f"Config file: {escape(str(store.path))}")
    for name, value in settings.model_dump().items():
        env_var = env_var_for(name)
        suffix = f" [dim](from {env_var})[/dim]" if os.getenv(env_var) else ""
        console.print(f"{name} = {escape(str(value))}{suffix}")


@app.command("set")
@handle_cli_errors
def config_set(
    key: str = typer.Argument(..., help=f"Setting name ({', '.join(setting_names())})"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Persist a single setting."""

    if key not in setting_names():
        raise typer.BadParameter(f"Unknown setting '{key}'", param_hint="KEY")
    store = ConfigStore()
    updated = store.update(**{key: value})
    console.print(f"{key} set to {escape(str(getattr(updated, key)))}")


@app.command("reset")
@handle_cli_errors
def config_reset() -> None:
    """Remove the config file and fall back to defaults."""

    store = ConfigStore()
    store.reset()
    console.print("Settings reset to defaults.")


__all__ = ["app", "config_reset", "config_set", "config_show"]
