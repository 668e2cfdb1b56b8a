"""CLI entry point for runmux."""

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from runmux import __version__
from runmux.config import (
    Config,
    display_config_warnings,
    find_session,
    load_config,
    load_meta_file,
    save_config,
)
from runmux.errors import MetaFileError, SessionNotFound
from runmux.layouts import SessionPlan, resolve_session
from runmux.models import MetaDocument
from runmux.report import (
    build_plan_table,
    display_layout_errors,
    display_layout_warnings,
    session_plan_to_dict,
)
from runmux.tmux_manager import attach_session, create_session, is_inside_tmux, kill_session, session_exists
from runmux.utils import tmux_safe_name
from runmux.xdg_paths import ensure_directories, get_config_file_path

app = typer.Typer(
    name="runmux",
    help="Resolve and launch tmux layouts declared in meta.json.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

SessionArgument = Annotated[
    str | None,
    typer.Argument(help="Session name (defaults to the first declared session)."),
]
ProjectOption = Annotated[
    Path | None,
    typer.Option("--project", "-p", help="Project directory containing meta.json."),
]
MetaOption = Annotated[
    Path | None,
    typer.Option("--meta", "-m", help="Path to the meta.json file."),
]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-C", help="Config file path."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"runmux {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version."),
    ] = None,
) -> None:
    """Resolve and launch tmux layouts declared in meta.json."""


def _load_project(
    project: Path | None,
    meta: Path | None,
    config_path: Path | None,
    strict: bool = False,
) -> tuple[Config, Path, MetaDocument]:
    """Load settings and the meta document for a project, exiting on failure."""
    project_dir = (project or Path.cwd()).resolve()
    config, config_warnings = load_config(config_path, project_dir=project_dir, strict=strict)
    if config_warnings:
        display_config_warnings(config_warnings, err_console)
        if strict:
            raise typer.Exit(1)

    meta_path = meta or project_dir / config.meta_file
    try:
        document = load_meta_file(meta_path)
    except MetaFileError as e:
        err_console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1) from None
    return config, project_dir, document


def _resolve_plan(document: MetaDocument, session_name: str | None, project_dir: Path, config: Config) -> SessionPlan:
    """Resolve a session from the document, exiting if it is not declared."""
    try:
        session = find_session(document, session_name)
    except SessionNotFound as e:
        err_console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1) from None
    return resolve_session(session, cwd=project_dir, size_tolerance=config.size_tolerance)


def _session_tmux_name(document: MetaDocument, session_name: str | None) -> str:
    try:
        return tmux_safe_name(find_session(document, session_name).name)
    except SessionNotFound as e:
        err_console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1) from None


@app.command()
def resolve(
    session: SessionArgument = None,
    window: Annotated[
        str | None,
        typer.Option("--window", "-w", help="Only resolve this window."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", "-j", help="Print the plan as JSON."),
    ] = False,
    project: ProjectOption = None,
    meta: MetaOption = None,
    config_path: ConfigOption = None,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase verbosity."),
    ] = 0,
) -> None:
    """Print the resolved pane plan for a session."""
    config, project_dir, document = _load_project(project, meta, config_path)

    if verbose > 0:
        err_console.print(f"[dim]Config file: {config_path or get_config_file_path()}[/]")
        err_console.print(f"[dim]Meta file: {meta or project_dir / config.meta_file}[/]")
        err_console.print(f"[dim]Size tolerance: {config.size_tolerance:g}%[/]")

    plan = _resolve_plan(document, session, project_dir, config)
    if window is not None:
        results = tuple(result for result in plan.results if result.window == window)
        if not results:
            err_console.print(f"[red]Error:[/] Window '{window}' not found in session '{plan.session}'.")
            raise typer.Exit(1)
        plan = SessionPlan(session=plan.session, root=plan.root, results=results)

    if as_json:
        typer.echo(json.dumps(session_plan_to_dict(plan), indent=2))
    else:
        console.print(f"[cyan]{plan.session}[/] [dim]{plan.root}[/]")
        for window_plan in plan.plans:
            console.print(build_plan_table(window_plan))
        display_layout_warnings(plan.warnings, err_console)

    if not plan.ok:
        display_layout_errors(plan.errors, err_console)
        raise typer.Exit(1)


@app.command()
def validate(
    project: ProjectOption = None,
    meta: MetaOption = None,
    config_path: ConfigOption = None,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Treat layout warnings as errors."),
    ] = False,
) -> None:
    """Resolve every declared session and report problems."""
    config, project_dir, document = _load_project(project, meta, config_path)
    sessions = document.tmux.sessions if document.tmux else []
    if not sessions:
        err_console.print("[red]Error:[/] No tmux sessions declared.")
        raise typer.Exit(1)

    failed = False
    for session in sessions:
        plan = resolve_session(session, cwd=project_dir, size_tolerance=config.size_tolerance)
        display_layout_warnings(plan.warnings, err_console)
        display_layout_errors(plan.errors, err_console)
        if not plan.ok or (strict and plan.warnings):
            failed = True

    if failed:
        raise typer.Exit(1)
    console.print(f"[green]✓[/] {len(sessions)} session(s) resolved.")


@app.command()
def init(
    session: SessionArgument = None,
    project: ProjectOption = None,
    meta: MetaOption = None,
    config_path: ConfigOption = None,
    attach: Annotated[
        bool | None,
        typer.Option("--attach/--no-attach", help="Attach after creating the session."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Preview commands without executing."),
    ] = False,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase verbosity."),
    ] = 0,
) -> None:
    """Create the tmux session described in meta.json."""
    config, project_dir, document = _load_project(project, meta, config_path)
    effective_attach = config.attach if attach is None else attach

    plan = _resolve_plan(document, session, project_dir, config)
    display_layout_warnings(plan.warnings, err_console)
    if not plan.ok:
        display_layout_errors(plan.errors, err_console)
        raise typer.Exit(1)

    session_name = tmux_safe_name(plan.session)
    if verbose > 0:
        console.print(f"[dim]Session: {session_name}[/]")
        console.print(f"[dim]Root: {plan.root}[/]")

    if not dry_run and session_exists(session_name):
        if effective_attach:
            console.print(f"[blue]Attaching to existing session:[/] {session_name}")
            attach_session(session_name)
        else:
            console.print(f"[yellow]Session already running:[/] {session_name}")
        return

    if effective_attach and not dry_run and is_inside_tmux():
        err_console.print("[red]Error:[/] Already inside a tmux session.")
        err_console.print("[dim]Use --no-attach to create the session in the background.[/]")
        raise typer.Exit(1)

    if verbose > 0 or dry_run:
        console.print(f"[green]Creating new session:[/] {session_name}")

    commands = create_session(
        plan,
        ssh_command=config.ssh_command,
        attach=effective_attach,
        focus_first_pane=config.focus_first_pane,
        dry_run=dry_run,
    )

    if dry_run:
        console.print("[yellow]Commands that would be executed:[/]")
        for cmd in commands:
            console.print(f"  {cmd}", markup=False, highlight=False)
        console.print("[dim]Note: Actual execution uses pane IDs (%N) for reliable targeting.[/]")


@app.command()
def attach(
    session: SessionArgument = None,
    project: ProjectOption = None,
    meta: MetaOption = None,
    config_path: ConfigOption = None,
) -> None:
    """Attach to a running session declared in meta.json."""
    _config, _project_dir, document = _load_project(project, meta, config_path)
    session_name = _session_tmux_name(document, session)
    if not session_exists(session_name):
        err_console.print(f"[red]Error:[/] Session '{session_name}' is not running. Use 'runmux init' first.")
        raise typer.Exit(1)
    attach_session(session_name)


@app.command()
def terminate(
    session: SessionArgument = None,
    project: ProjectOption = None,
    meta: MetaOption = None,
    config_path: ConfigOption = None,
) -> None:
    """Kill a running session declared in meta.json."""
    _config, _project_dir, document = _load_project(project, meta, config_path)
    session_name = _session_tmux_name(document, session)
    if not session_exists(session_name):
        console.print(f"[yellow]Session not running:[/] {session_name}")
        return
    kill_session(session_name)
    console.print(f"[green]✓[/] Terminated session {session_name}")


@app.command()
def init_config() -> None:
    """Create default configuration file."""
    ensure_directories()
    config_file = get_config_file_path()

    if config_file.exists():
        err_console.print(f"[yellow]Config file already exists:[/] {config_file}")
        raise typer.Exit(1)

    save_config(Config())
    console.print(f"[green]✓[/] Created config file: {config_file}")


config_app = typer.Typer(
    name="config",
    help="Configuration management commands.",
)
app.add_typer(config_app, name="config")


@config_app.command("validate")
def config_validate(
    config_path: ConfigOption = None,
    project: ProjectOption = None,
) -> None:
    """Validate all config files and report warnings."""
    project_dir = project or Path.cwd()
    _config, warnings = load_config(config_path, project_dir=project_dir, strict=True)

    if warnings:
        display_config_warnings(warnings, err_console)
        raise typer.Exit(1)

    console.print("[green]✓[/] All config files are valid.")


@config_app.command("show")
def config_show(
    config_path: ConfigOption = None,
    project: ProjectOption = None,
) -> None:
    """Show effective merged configuration."""
    import yaml

    project_dir = project or Path.cwd()
    config, warnings = load_config(config_path, project_dir=project_dir)

    if warnings:
        display_config_warnings(warnings, err_console)

    console.print(yaml.dump(config.model_dump(), default_flow_style=False))


layout_app = typer.Typer(
    name="layout",
    help="Layout reference commands.",
)
app.add_typer(layout_app, name="layout")


@layout_app.command("list")
def layout_list() -> None:
    """List the grid types usable by compact and grid layouts."""
    from rich.table import Table

    from runmux.layouts import GRID_DESCRIPTIONS, grid_slots
    from runmux.models import GRID_PANE_COUNTS, GridType

    table = Table(title="Grid Types")
    table.add_column("Type", style="cyan")
    table.add_column("Panes", justify="right")
    table.add_column("Slots", style="dim")
    table.add_column("Description")

    for grid_type in GridType:
        table.add_row(
            grid_type.value,
            str(GRID_PANE_COUNTS[grid_type]),
            ", ".join(grid_slots(grid_type)),
            GRID_DESCRIPTIONS.get(grid_type, ""),
        )

    console.print(table)


if __name__ == "__main__":
    app()
