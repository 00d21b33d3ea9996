"""
CLI: ``plugin-spine`` — list and run plugins from a terminal.

A thin front end over :class:`~plugin_spine.runtime.PluginRuntime`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from plugin_spine.config import ITERATION_DELAY_PARAM, MAX_ITERATIONS_PARAM
from plugin_spine.errors import PluginSpineError
from plugin_spine.handlers import ITERATE_PARAM
from plugin_spine.logging import configure_logging
from plugin_spine.runtime import PluginRuntime
from plugin_spine.settings import PluginSpineSettings

app = typer.Typer(
    name="plugin-spine",
    help="plugin-spine — discover, resolve, and run plugins.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        from plugin_spine import __version__

        typer.echo(f"plugin-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """plugin-spine CLI."""


# ── Helpers ──────────────────────────────────────────────────────────────


def parse_param(raw: str) -> tuple[str, Any]:
    """Parse ``key=value``; the value is JSON-decoded when possible."""
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise typer.BadParameter(f"expected key=value, got {raw!r}")
    try:
        return key.strip(), json.loads(value)
    except ValueError:
        return key.strip(), value


def _make_runtime(plugins_dir: Path | None, log_level: str) -> PluginRuntime:
    overrides: dict[str, Any] = {"log_level": log_level}
    if plugins_dir is not None:
        overrides["plugins_dir"] = plugins_dir
    settings = PluginSpineSettings(**overrides)
    configure_logging(settings)

    runtime = PluginRuntime(settings)
    runtime.load()
    runtime.register_native()
    return runtime


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("list")
def list_plugins(
    plugins_dir: Path | None = typer.Option(None, "--plugins-dir", "-d"),
    log_level: str = typer.Option("WARNING", "--log-level"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List every plugin the runtime can serve."""
    runtime = _make_runtime(plugins_dir, log_level)
    rows = []
    for plugin_id in runtime.registry.list_plugins():
        manifest = runtime.manifest(plugin_id)
        handler = runtime.handler(plugin_id)
        row = manifest.summary() if manifest else {"id": plugin_id, "name": plugin_id}
        row["iterable"] = handler.supports_iteration()
        rows.append(row)

    if json_out:
        console.print_json(json.dumps(rows, default=str))
        return

    if not rows:
        console.print("[dim]No plugins.[/dim]")
        return

    table = Table(title="Plugins")
    for column in ("id", "name", "version", "iterable"):
        table.add_column(column)
    for row in rows:
        table.add_row(
            row["id"],
            row.get("name") or "",
            row.get("version") or "",
            "yes" if row["iterable"] else "no",
        )
    console.print(table)


@app.command()
def run(
    plugin_id: str = typer.Argument(..., help="Plugin ID"),
    param: list[str] = typer.Option([], "--param", "-p", help="key=value (repeatable)"),
    iterate: bool = typer.Option(False, "--iterate", help="Run repeatedly."),
    max_iterations: int | None = typer.Option(None, "--max-iterations", "-n"),
    delay_ms: int | None = typer.Option(None, "--delay-ms"),
    plugins_dir: Path | None = typer.Option(None, "--plugins-dir", "-d"),
    log_level: str = typer.Option("WARNING", "--log-level"),
) -> None:
    """Run a plugin and print its result as JSON."""
    params = dict(parse_param(p) for p in param)
    if iterate:
        params[ITERATE_PARAM] = True
    if max_iterations is not None:
        params[MAX_ITERATIONS_PARAM] = max_iterations
    if delay_ms is not None:
        params[ITERATION_DELAY_PARAM] = delay_ms

    runtime = _make_runtime(plugins_dir, log_level)
    try:
        result = runtime.execute(plugin_id, params)
    except PluginSpineError as exc:
        err_console.print(f"[bold red]Error[/bold red] ({exc.category.value}): {escape(exc.message)}")
        raise typer.Exit(code=1) from exc
    except Exception as exc:
        err_console.print(f"[bold red]Error[/bold red]: {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    console.print_json(json.dumps(result, default=str))


if __name__ == "__main__":
    app()
