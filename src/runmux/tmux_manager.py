"""Tmux session management for runmux.

Replays resolved window plans against a tmux server. Every function returns
the commands that were (or, with ``dry_run``, would be) executed.
"""

import os
import subprocess
from dataclasses import dataclass, field

from runmux.layouts import ResolvedPane, SessionPlan, WindowPlan
from runmux.utils import tmux_safe_name

# Timeout for all tmux subprocess calls (seconds)
_TMUX_TIMEOUT = 10


def _run_tmux(cmd: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
    """Run a tmux subprocess command with standard timeout.

    Args:
        cmd: Command to execute.
        **kwargs: Additional arguments for subprocess.run.

    Returns:
        CompletedProcess result.
    """
    return subprocess.run(cmd, check=True, timeout=_TMUX_TIMEOUT, **kwargs)  # type: ignore[arg-type]


def _validate_pane_id(pane_id: str, context: str = "") -> None:
    """Validate that a captured pane ID looks correct.

    Args:
        pane_id: The pane ID string (should start with %).
        context: Description for error messages.

    Raises:
        ValueError: If pane ID is empty or malformed.
    """
    if not pane_id or not pane_id.startswith("%"):
        label = f" ({context})" if context else ""
        raise ValueError(f"Invalid pane ID{label}: {pane_id!r}")


def _exact(session_name: str) -> str:
    """Target a session by exact name; a bare name also matches by prefix."""
    return f"={session_name}"


def is_inside_tmux() -> bool:
    """Check if we're running inside a tmux session."""
    return os.environ.get("TMUX") is not None


def session_exists(session_name: str) -> bool:
    """Check if a tmux session with the given name exists.

    Args:
        session_name: The session name to check.

    Returns:
        True if the session exists, False otherwise.
    """
    result = subprocess.run(
        ["tmux", "has-session", "-t", _exact(session_name)],
        capture_output=True,
        check=False,
    )
    return result.returncode == 0


def attach_session(session_name: str, dry_run: bool = False) -> list[str]:
    """Attach to an existing tmux session.

    Args:
        session_name: The session name to attach to.
        dry_run: If True, return commands without executing.

    Returns:
        List of commands that were (or would be) executed.
    """
    cmd = ["tmux", "attach-session", "-t", _exact(session_name)]
    if not dry_run:
        subprocess.run(cmd, check=True)
    return [" ".join(cmd)]


def kill_session(session_name: str, dry_run: bool = False) -> list[str]:
    """Kill a tmux session.

    Args:
        session_name: The session name to kill.
        dry_run: If True, return commands without executing.

    Returns:
        List of commands that were (or would be) executed.
    """
    cmd = ["tmux", "kill-session", "-t", _exact(session_name)]
    if not dry_run:
        _run_tmux(cmd)
    return [" ".join(cmd)]


def compute_split_percentages(sizes: list[float | None]) -> list[float]:
    """Turn advisory sibling sizes into shares summing to 100.

    Unsized siblings split whatever the sized ones leave over; when nothing
    is left they get the average declared share. The result is normalised so
    that mismatched declarations still divide the whole space; all-zero
    declarations split it evenly.

    Args:
        sizes: Declared size per sibling, None when not declared.

    Returns:
        One percentage per sibling.
    """
    if not sizes:
        return []
    declared = [size for size in sizes if size is not None]
    unsized = len(sizes) - len(declared)
    fill = 0.0
    if unsized:
        remainder = 100.0 - sum(declared)
        fill = remainder / unsized if remainder > 0 else sum(declared) / len(declared)
    shares = [size if size is not None else fill for size in sizes]
    total = sum(shares)
    if total <= 0:
        return [100.0 / len(sizes)] * len(sizes)
    return [share * 100.0 / total for share in shares]


@dataclass
class _Replay:
    """Mutable state while replaying one window's split tree."""

    session_name: str
    window_name: str
    dry_run: bool
    commands: list[str] = field(default_factory=list)
    pane_ids: dict[str, str] = field(default_factory=dict)
    created: int = 0

    def placeholder(self) -> str:
        """Positional pane reference used in dry-run output."""
        ref = f"{self.session_name}:{self.window_name}.{self.created}"
        self.created += 1
        return ref

    def run_capture(self, cmd: list[str], context: str) -> str:
        """Run a command that prints a new pane ID and return that ID."""
        self.commands.append(" ".join(cmd))
        if self.dry_run:
            return self.placeholder()
        result = _run_tmux(cmd, capture_output=True, text=True)
        pane_id = result.stdout.strip()
        _validate_pane_id(pane_id, context)
        self.created += 1
        return pane_id

    def run(self, cmd: list[str]) -> None:
        self.commands.append(" ".join(cmd))
        if not self.dry_run:
            _run_tmux(cmd)


def _group_by_step(panes: list[ResolvedPane], depth: int) -> list[list[ResolvedPane]]:
    """Group panes by their child position at the given split depth."""
    groups: dict[int, list[ResolvedPane]] = {}
    for pane in panes:
        groups.setdefault(pane.split_ancestry[depth].index, []).append(pane)
    return list(groups.values())


def _split_region(replay: _Replay, panes: list[ResolvedPane], depth: int, target: str) -> None:
    """Split the pane ``target`` until it holds every pane in ``panes``.

    ``target`` already runs in the directory of the first pane. Each split
    carves the remaining siblings off the previous child's pane, so the first
    child keeps the original pane.
    """
    first = panes[0]
    if len(first.split_ancestry) == depth:
        replay.pane_ids[first.name] = target
        return

    direction = first.split_ancestry[depth].direction
    groups = _group_by_step(panes, depth)
    shares = compute_split_percentages([group[0].split_ancestry[depth].size for group in groups])

    targets = [target]
    current = target
    remaining = 100.0
    for i in range(1, len(groups)):
        previous_share = shares[i - 1]
        remaining -= previous_share
        # Percentage of the current region handed to the new pane
        percent = max(1, min(99, round(remaining * 100.0 / (remaining + previous_share))))
        new_path = os.path.expanduser(groups[i][0].path)
        split_cmd = [
            "tmux",
            "split-window",
            "-d",
            "-P",
            "-F",
            "#{pane_id}",
            "-t",
            current,
            direction.tmux_flag,
            "-p",
            str(percent),
            "-c",
            new_path,
        ]
        current = replay.run_capture(split_cmd, groups[i][0].name)
        targets.append(current)

    for group, group_target in zip(groups, targets, strict=True):
        _split_region(replay, group, depth + 1, group_target)


def apply_window(
    session_name: str,
    plan: WindowPlan,
    first: bool = False,
    ssh_command: str = "ssh",
    dry_run: bool = False,
) -> list[str]:
    """Create a tmux window and lay out its resolved panes.

    Args:
        session_name: The tmux session name.
        plan: The resolved window plan.
        first: If True, create the session with this window.
        ssh_command: Command used to reach a pane's SSH target.
        dry_run: If True, return commands without executing.

    Returns:
        List of commands that were (or would be) executed.
    """
    window_name = tmux_safe_name(plan.window)
    replay = _Replay(session_name=session_name, window_name=window_name, dry_run=dry_run)
    panes = list(plan.panes)
    start_dir = os.path.expanduser(panes[0].path if panes else plan.base_dir)

    if first:
        create_cmd = ["tmux", "new-session", "-d", "-s", session_name]
    else:
        create_cmd = ["tmux", "new-window", "-d", "-t", f"{_exact(session_name)}:"]
    create_cmd += ["-n", window_name, "-c", start_dir, "-P", "-F", "#{pane_id}"]
    root_pane_id = replay.run_capture(create_cmd, f"window {window_name}")

    if not panes:
        return replay.commands

    _split_region(replay, panes, 0, root_pane_id)

    for pane in panes:
        pane_id = replay.pane_ids[pane.name]
        replay.run(["tmux", "select-pane", "-t", pane_id, "-T", pane.name])
        if pane.ssh_target:
            replay.run(["tmux", "send-keys", "-t", pane_id, f"{ssh_command} {pane.ssh_target}", "Enter"])
        if pane.command:
            replay.run(["tmux", "send-keys", "-t", pane_id, pane.command, "Enter"])

    return replay.commands


def create_session(
    plan: SessionPlan,
    ssh_command: str = "ssh",
    attach: bool = True,
    focus_first_pane: bool = True,
    dry_run: bool = False,
) -> list[str]:
    """Create a tmux session from a resolved session plan.

    Windows that failed to resolve are skipped.

    Args:
        plan: The resolved session plan.
        ssh_command: Command used to reach a pane's SSH target.
        attach: Whether to attach to the session afterwards.
        focus_first_pane: Whether to focus the first pane of the first window.
        dry_run: If True, return commands without executing.

    Returns:
        List of commands that were (or would be) executed.
    """
    session_name = tmux_safe_name(plan.session)
    commands: list[str] = []
    window_plans = plan.plans

    for i, window_plan in enumerate(window_plans):
        commands.extend(
            apply_window(session_name, window_plan, first=i == 0, ssh_command=ssh_command, dry_run=dry_run)
        )

    if window_plans and focus_first_pane:
        first_window = tmux_safe_name(window_plans[0].window)
        focus_cmds = [
            ["tmux", "select-window", "-t", f"{_exact(session_name)}:{first_window}"],
            # The first pane always keeps the window's original, top-left pane
            ["tmux", "select-pane", "-t", f"{_exact(session_name)}:{first_window}.{{top-left}}"],
        ]
        for cmd in focus_cmds:
            commands.append(" ".join(cmd))
            if not dry_run:
                _run_tmux(cmd)

    if window_plans and attach:
        commands.extend(attach_session(session_name, dry_run=dry_run))

    return commands
