"""CLI entry point for agent-fabric."""

from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich.table import Table

from agent_fabric import __version__
from agent_fabric.cli.common import (
    console,
    exit_with_error,
    fetch_spinner,
    handle_errors,
    open_orchestrator,
    parse_mode,
    print_error,
    scope_from_flag,
    setup_logging,
)
from agent_fabric.config import CONFIG_FILENAME, create_config, find_config
from agent_fabric.core.resource import ResourceKind
from agent_fabric.naming import NamingStrategy
from agent_fabric.orchestrator import AddResult
from agent_fabric.state.store import StateStore

app = typer.Typer(
    name="agent-fabric",
    help="Install skills, rules and subagents into your coding agents.",
    no_args_is_help=True,
    add_completion=False,
)

KIND_CHOICES = ", ".join(kind.value for kind in ResourceKind)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"agent-fabric {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit.",
        ),
    ] = None,
) -> None:
    """Install skills, rules and subagents into your coding agents."""
    setup_logging(verbose)


def _print_add_result(result: AddResult) -> None:
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}", highlight=False)

    for outcome in result.outcomes:
        for warning in outcome.warnings:
            console.print(f"[dim]{warning}[/dim]", highlight=False)
        if outcome.report is not None:
            for target_result in outcome.report.installed:
                verb = "Replaced" if target_result.replaced else "Added"
                console.print(
                    f"[green]{verb} {outcome.kind} '{outcome.name}'[/green] "
                    f"for {target_result.target.consumer_id} "
                    f"[dim]({target_result.path})[/dim]",
                    highlight=False,
                )
            for target_result in outcome.report.failed:
                print_error(target_result.error)
        if outcome.error is not None:
            print_error(outcome.error)


@app.command()
def add(
    source: Annotated[
        str,
        typer.Argument(
            help="Source: owner/repo[/path][@ref], a GitHub/GitLab URL, a tarball URL, "
            "a local path, npm:<package> or registry:<id>.",
        ),
    ],
    kind: Annotated[
        Optional[List[str]],
        typer.Option("--kind", "-k", help=f"Resource kind to install ({KIND_CHOICES})."),
    ] = None,
    consumer: Annotated[
        Optional[List[str]],
        typer.Option("--consumer", "-c", help="Consumer to install into, e.g. claude-code."),
    ] = None,
    global_install: Annotated[
        bool,
        typer.Option("--global", "-g", help="Install into the global consumer directories."),
    ] = False,
    mode: Annotated[
        Optional[str],
        typer.Option("--mode", "-m", help="copy or link."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Replace existing installs."),
    ] = False,
    naming: Annotated[
        Optional[str],
        typer.Option("--naming", help="Naming strategy for nested resources."),
    ] = None,
    only: Annotated[
        Optional[List[str]],
        typer.Option("--only", help="Install only the named resources."),
    ] = None,
) -> None:
    """Install resources from a source.

    Examples:
      agent-fabric add acme/agent-skills
      agent-fabric add acme/agent-skills/skills/review@v2 --consumer cursor
      agent-fabric add ./my-rules --kind rules --mode link
      agent-fabric add npm:@acme/skills --global
    """
    install_mode = parse_mode(mode)
    if naming is not None:
        try:
            NamingStrategy.from_value(naming)
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="--naming")

    with open_orchestrator(naming) as orchestrator:
        with fetch_spinner():
            result = orchestrator.add(
                source,
                kinds=kind or [ResourceKind.SKILLS.value],
                consumer_ids=consumer,
                scope=scope_from_flag(global_install),
                mode=install_mode,
                force=force,
                only=only,
            )

    if result.is_empty:
        kinds = ", ".join(kind or [ResourceKind.SKILLS.value])
        exit_with_error(f"No {kinds} found in {result.descriptor.display_name}")

    _print_add_result(result)
    if result.failed:
        raise typer.Exit(1)


@app.command("list")
def list_resources(
    kind: Annotated[
        Optional[List[str]],
        typer.Option("--kind", "-k", help=f"Only list these kinds ({KIND_CHOICES})."),
    ] = None,
    global_install: Annotated[
        bool,
        typer.Option("--global", "-g", help="Only list global installs."),
    ] = False,
) -> None:
    """List resources found in consumer directories."""
    with open_orchestrator() as orchestrator:
        result = orchestrator.list(kinds=kind, scope=scope_from_flag(global_install))

    for error in result.errors:
        console.print(
            f"[yellow]Warning:[/yellow] could not scan {error.consumer_id} "
            f"({error.scope.value}): {error.error}",
            highlight=False,
        )

    if not result.resources:
        console.print("[dim]No resources installed[/dim]")
        return

    table = Table(title="Installed resources")
    table.add_column("Name", style="cyan")
    table.add_column("Kind")
    table.add_column("Consumer")
    table.add_column("Scope")
    table.add_column("Description", style="dim")
    for resource in result.resources:
        table.add_row(
            resource.name,
            resource.kind,
            resource.consumer_id,
            resource.scope.value,
            resource.description,
        )
    console.print(table)


@app.command()
def remove(
    name: Annotated[str, typer.Argument(help="Name of the resource to remove.")],
    consumer: Annotated[
        Optional[List[str]],
        typer.Option("--consumer", "-c", help="Only remove from this consumer."),
    ] = None,
    global_install: Annotated[
        bool,
        typer.Option("--global", "-g", help="Only remove the global install."),
    ] = False,
) -> None:
    """Remove an installed resource.

    Examples:
      agent-fabric remove code-review
      agent-fabric remove code-review --consumer cursor
    """
    with open_orchestrator() as orchestrator:
        report = orchestrator.remove(
            name, consumer_ids=consumer, scope=scope_from_flag(global_install)
        )

    for target_result in report.removed:
        console.print(
            f"[green]Removed {report.kind} '{name}'[/green] from {target_result.target.consumer_id}",
            highlight=False,
        )
    for target_result in report.missing:
        console.print(
            f"[yellow]'{name}' was not installed for {target_result.target.consumer_id}[/yellow]",
            highlight=False,
        )
    for target_result in report.failed:
        print_error(target_result.error)
    if report.failed:
        raise typer.Exit(1)


@app.command()
def rollback(
    name: Annotated[str, typer.Argument(help="Name of the resource to roll back.")],
) -> None:
    """Restore the previous recorded version of a resource."""
    with open_orchestrator() as orchestrator:
        record = orchestrator.rollback(name)
    console.print(
        f"[green]Rolled back '{name}'[/green] to {record.version or 'unversioned'} "
        f"from {record.origin}",
        highlight=False,
    )
    console.print("[dim]Run 'agent-fabric add' with --force to reinstall the files[/dim]")


@app.command()
def history(
    name: Annotated[str, typer.Argument(help="Name of the resource.")],
) -> None:
    """Show the recorded version history of a resource."""
    with open_orchestrator() as orchestrator:
        record = orchestrator.store.require(name)

    table = Table(title=f"History of {name}")
    table.add_column("#", justify="right")
    table.add_column("Version")
    table.add_column("Origin")
    table.add_column("Updated")
    table.add_row("current", record.version or "-", record.origin, record.updated_at)
    for index, entry in enumerate(record.history, start=1):
        table.add_row(str(index), entry.version or "-", entry.origin, entry.updated_at)
    console.print(table)


@app.command()
def init(
    directory: Annotated[
        Optional[Path],
        typer.Argument(help="Project directory, defaults to the current directory."),
    ] = None,
) -> None:
    """Create agent-fabric.toml and an empty state file."""
    project_root = directory or Path.cwd()
    existing = find_config(project_root)
    if existing is not None and existing.parent == project_root.resolve():
        exit_with_error(f"{CONFIG_FILENAME} already exists at {existing}")

    with handle_errors():
        settings = create_config(project_root)
        store = StateStore.for_project(project_root, default_config=settings.state_config())
        store.load()

    console.print(f"[green]Created {settings.path}[/green]", highlight=False)
    console.print(f"[dim]State: {store.path}[/dim]", highlight=False)


if __name__ == "__main__":
    app()
