from __future__ import annotations

import asyncio
import importlib
import inspect
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from rich import box
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .capabilities.registry import Registry
from .core.config import AppConfig, ConfigLoadResult, load_config
from .core.console import console, setup_logging
from .core.error_middleware import format_error, format_for_cli
from .core.result import ConfigurationError, Err, try_result
from .protocol import Request
from .server.dispatcher import Dispatcher
from .server.metadata import describe_registry

app = typer.Typer(help="capwire: expose and call versioned capabilities.")
logger = logging.getLogger(__name__)


@dataclass
class AppState:
    config: AppConfig
    config_meta: ConfigLoadResult
    logger: logging.Logger
    verbose: bool = False


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to a capwire config file (TOML or JSON)."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging and show tracebacks on errors."
    ),
) -> None:
    loaded_config, meta = load_config(config_path=config)
    app_logger = setup_logging(level=loaded_config.log_level, verbose=verbose)
    ctx.obj = AppState(config=loaded_config, config_meta=meta, logger=app_logger, verbose=verbose)

    if meta.error:
        console.print(
            Panel(
                f"[bold red]Configuration Error - Safe Mode Active[/bold red]\n\n"
                f"Failed to load {meta.path}:\n{meta.error}\n\n"
                f"[yellow]Using default settings.[/yellow]",
                border_style="red",
            )
        )
    else:
        logger.debug(
            "Loaded configuration from %s (env overrides: %s)",
            meta.path,
            sorted(meta.env_overrides),
        )


def _load_registry(target: str, config: AppConfig) -> Registry:
    """Import ``module:factory`` and build the registry it describes.

    The factory is called with the registry config when it accepts one
    argument; it may also be a ready Registry instance.
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(f"expected MODULE:FACTORY, got {target!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"cannot import {module_name}: {exc}") from exc

    factory = getattr(module, attr, None)
    if isinstance(factory, Registry):
        return factory
    if not callable(factory):
        raise ConfigurationError(f"{target} is not a registry or a registry factory")

    registry = factory(config.registry) if inspect.signature(factory).parameters else factory()
    if not isinstance(registry, Registry):
        raise ConfigurationError(f"{target} returned {type(registry).__name__}, not a Registry")
    return registry


def _exit_with_error(state: AppState, exc: BaseException) -> None:
    console.print(format_for_cli(format_error(exc, include_traceback=state.verbose)))
    raise typer.Exit(code=1)


@app.command("describe")
def describe(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="MODULE:FACTORY returning a Registry."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw descriptor document."),
) -> None:
    """Show what a registry exposes, as reported by its self-description."""
    state: AppState = ctx.obj
    loaded = try_result(lambda: _load_registry(target, state.config))
    if isinstance(loaded, Err):
        _exit_with_error(state, loaded.error)
        return

    document = describe_registry(loaded.value)
    if as_json:
        console.print_json(json.dumps(document))
        return

    table = Table(title=f"{target}", box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Kind", style="magenta")
    table.add_column("Version", style="green")
    table.add_column("Members", style="white")

    for name, descriptor in sorted(document.items()):
        members = ", ".join(descriptor.get("memberNames", [])) or "-"
        table.add_row(name, descriptor["kind"], descriptor["version"], members)

    console.print(table)


def _parse_arg(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@app.command("call")
def call(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="MODULE:FACTORY returning a Registry."),
    api_name: str = typer.Argument(..., help="Capability name."),
    args: list[str] | None = typer.Argument(None, help="Arguments, JSON-decoded when possible."),
    member: str | None = typer.Option(None, "--member", "-m", help="Module member to call."),
    version: str | None = typer.Option(None, "--version", "-V", help="Version range to resolve."),
    timeout: float = typer.Option(10.0, "--timeout", help="Seconds to wait for the reply."),
) -> None:
    """Dispatch one request in-process and print the reply."""
    state: AppState = ctx.obj
    loaded = try_result(lambda: _load_registry(target, state.config))
    if isinstance(loaded, Err):
        _exit_with_error(state, loaded.error)
        return

    request = Request(
        api_name=api_name,
        member_name=member,
        version=version,
        args=tuple(_parse_arg(raw) for raw in args or []),
    )
    dispatcher = Dispatcher(loaded.value)

    async def _run() -> Any:
        return await asyncio.wait_for(dispatcher.call(request), timeout=timeout)

    try:
        result = asyncio.run(_run())
    except TimeoutError as exc:
        _exit_with_error(state, exc)
        return

    if isinstance(result, Err):
        error = result.error
        if isinstance(error, BaseException):
            _exit_with_error(state, error)
        console.print(f"[red]error:[/red] {error!r}")
        raise typer.Exit(code=1)

    try:
        console.print_json(json.dumps(result.value))
    except (TypeError, ValueError):
        console.print(repr(result.value))


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Show the active configuration and where it came from."""
    state: AppState = ctx.obj
    config = state.config
    meta = state.config_meta

    table = Table(title="Config", box=box.SIMPLE, expand=True)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    for key, value in config.model_dump().items():
        table.add_row(key, str(value))

    console.print(table)

    meta_lines = [
        f"Path: {meta.path}",
        "File loaded: yes" if meta.file_loaded else "File loaded: no (using defaults + env)",
    ]

    if meta.env_overrides:
        meta_lines.append("Env overrides: " + ", ".join(sorted(meta.env_overrides)))

    console.print(Panel("\n".join(meta_lines), title="Config source", box=box.SIMPLE))


@app.command("version")
def show_version() -> None:
    """Print the capwire version."""
    console.print(__version__)


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
