"""Shared CLI utilities for agent-fabric commands."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import typer
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.spinner import Spinner

from agent_fabric.config import load_settings
from agent_fabric.core.resource import InstallMode, Scope
from agent_fabric.exceptions import FabricError
from agent_fabric.orchestrator import Orchestrator

console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool) -> None:
    """Route library logging through rich; debug output only with --verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=verbose)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@contextmanager
def fetch_spinner() -> Iterator[None]:
    """Show spinner during fetch operation."""
    with Live(Spinner("dots", text="Fetching..."), console=console, transient=True):
        yield


def print_error(error: Exception | str) -> None:
    console.print(f"[red]Error:[/red] {error}", highlight=False)


def exit_with_error(error: Exception | str) -> None:
    """Print an error and exit with status 1."""
    print_error(error)
    raise typer.Exit(1)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn FabricError into a red error line and exit code 1."""
    try:
        yield
    except FabricError as e:
        exit_with_error(e)


def scope_from_flag(global_install: bool) -> Scope | None:
    return Scope.GLOBAL if global_install else None


def parse_mode(mode: str | None) -> InstallMode | None:
    if mode is None:
        return None
    try:
        return InstallMode(mode)
    except ValueError:
        raise typer.BadParameter(f"Invalid mode '{mode}'. Expected: copy or link")


@contextmanager
def open_orchestrator(naming: str | None = None) -> Iterator[Orchestrator]:
    """Build an orchestrator for the current project.

    The project root is the directory holding agent-fabric.toml, or the
    current directory when there is none.
    """
    with handle_errors():
        settings = load_settings()
        project_root = settings.project_root or Path.cwd()
        orchestrator = Orchestrator.create(project_root, settings, naming_strategy=naming)
    try:
        with handle_errors():
            yield orchestrator
    finally:
        orchestrator.close()
