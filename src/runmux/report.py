"""Console rendering of resolved plans and their warnings."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from runmux.errors import LayoutError
from runmux.layouts import LayoutWarning, ResolvedPane, SessionPlan, WindowPlan
from runmux.utils import compress_path


def display_layout_warnings(warnings: list[LayoutWarning], console: Console) -> None:
    """Display layout warnings using Rich formatting.

    Args:
        warnings: List of warnings to display.
        console: Rich console to output to.
    """
    if not warnings:
        return

    text = Text()
    for i, warning in enumerate(warnings):
        if i > 0:
            text.append("\n")
        text.append(f"  {warning.window}", style="dim")
        text.append(": ", style="dim")
        text.append(warning.kind.value, style="bold")
        text.append(f" - {warning.message}", style="yellow")

    console.print(Panel(text, title="[yellow]Layout Warnings[/]", border_style="yellow"))


def display_layout_errors(errors: list[LayoutError], console: Console) -> None:
    """Display fatal window errors, one line each."""
    for error in errors:
        console.print(f"[red]Error:[/] {type(error).__name__}: {error}")


def _format_geometry(pane: ResolvedPane) -> str:
    if not pane.split_ancestry:
        return "-"
    parts = []
    for step in pane.split_ancestry:
        size = f" {step.size:g}%" if step.size is not None else ""
        parts.append(f"{step.direction}[{step.index}]{size}")
    return " > ".join(parts)


def build_plan_table(plan: WindowPlan) -> Table:
    """Build a table listing a window's panes in creation order.

    Args:
        plan: The resolved window plan.

    Returns:
        A Rich table.
    """
    table = Table(title=f"{plan.window} ({plan.layout})")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Pane", style="cyan")
    table.add_column("Slot", style="dim")
    table.add_column("Path")
    table.add_column("Command", style="green")
    table.add_column("SSH", style="magenta")
    table.add_column("Geometry", style="dim")

    for pane in plan.panes:
        table.add_row(
            str(pane.index),
            pane.name,
            pane.slot or "",
            compress_path(pane.path),
            pane.command,
            pane.ssh_target or "",
            _format_geometry(pane),
        )
    return table


def pane_to_dict(pane: ResolvedPane) -> dict[str, object]:
    """Serialize a resolved pane for JSON output."""
    data: dict[str, object] = {
        "name": pane.name,
        "command": pane.command,
        "path": pane.path,
        "index": pane.index,
        "splitAncestry": [
            {"direction": step.direction.value, "index": step.index, "size": step.size}
            for step in pane.split_ancestry
        ],
    }
    if pane.ssh_target:
        data["sshTarget"] = pane.ssh_target
    if pane.slot:
        data["slot"] = pane.slot
    if pane.size is not None:
        data["size"] = pane.size
    return data


def warning_to_dict(warning: LayoutWarning) -> dict[str, object]:
    """Serialize a layout warning for JSON output."""
    data: dict[str, object] = {"kind": warning.kind.value, "message": warning.message}
    if warning.count is not None:
        data["count"] = warning.count
    return data


def session_plan_to_dict(plan: SessionPlan) -> dict[str, object]:
    """Serialize a session plan, including per-window errors and warnings."""
    windows: list[dict[str, object]] = []
    for result in plan.results:
        if result.plan is not None:
            windows.append(
                {
                    "name": result.window,
                    "layout": result.plan.layout.value,
                    "path": result.plan.base_dir,
                    "panes": [pane_to_dict(pane) for pane in result.plan.panes],
                    "warnings": [warning_to_dict(warning) for warning in result.plan.warnings],
                }
            )
        else:
            windows.append(
                {
                    "name": result.window,
                    "error": {"kind": type(result.error).__name__, "message": str(result.error)},
                }
            )
    return {"session": plan.session, "root": plan.root, "windows": windows}
