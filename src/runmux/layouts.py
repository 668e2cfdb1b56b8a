"""Resolve window layouts into ordered pane plans.

Everything here is a pure transformation of the document models: no
subprocesses, no filesystem access and no console output. Non-fatal
conditions are returned as ``LayoutWarning`` values alongside the panes.
"""

import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path, PurePath

from runmux.errors import DuplicatePaneName, LayoutError, MissingLayoutBody, UnknownLayoutKind
from runmux.models import (
    GRID_PANE_COUNTS,
    CompactLayout,
    GridLayout,
    GridType,
    Item,
    PaneSpec,
    Session,
    SplitDirection,
    SplitSpec,
    Window,
)

# Allowed deviation (percentage points) of sibling sizes from 100%
DEFAULT_SIZE_TOLERANCE = 2.0


class LayoutKind(StrEnum):
    """Values of a window's ``layout`` discriminant."""

    COMPACT = "compact"
    GRID = "grid"
    SECTIONS = "sections"


class WarningKind(StrEnum):
    """Non-fatal conditions recovered during resolution."""

    PANE_COUNT_MISMATCH = "PaneCountMismatch"
    SIZE_SUM_MISMATCH = "SizeSumMismatch"
    EMPTY_SECTION = "EmptySection"


@dataclass(frozen=True)
class LayoutWarning:
    """A non-fatal resolution warning."""

    kind: WarningKind
    window: str
    message: str
    count: float | None = None


@dataclass(frozen=True)
class SplitStep:
    """One level of split ancestry: the split's direction, the child's
    position among its siblings, and the child's declared share."""

    direction: SplitDirection
    index: int
    size: float | None = None


@dataclass(frozen=True)
class ResolvedPane:
    """A concrete pane ready for a multiplexer driver."""

    name: str
    command: str
    path: str
    index: int
    ssh_target: str | None = None
    slot: str | None = None
    split_ancestry: tuple[SplitStep, ...] = ()
    size: float | None = None

    @property
    def directions(self) -> tuple[SplitDirection, ...]:
        """Split directions from the outermost split inwards."""
        return tuple(step.direction for step in self.split_ancestry)

    @property
    def size_chain(self) -> tuple[float | None, ...]:
        """Declared shares from the outermost split inwards."""
        return tuple(step.size for step in self.split_ancestry)


# Panes plus warnings, as returned by every layout resolver
ResolvedLayout = tuple[list[ResolvedPane], list[LayoutWarning]]


@dataclass(frozen=True)
class WindowPlan:
    """The resolved panes of a single window."""

    window: str
    base_dir: str
    layout: LayoutKind
    panes: tuple[ResolvedPane, ...] = ()
    warnings: tuple[LayoutWarning, ...] = ()


@dataclass(frozen=True)
class WindowResult:
    """Outcome of resolving one window: a plan or the error that aborted it."""

    window: str
    plan: WindowPlan | None = None
    error: LayoutError | None = None


@dataclass(frozen=True)
class SessionPlan:
    """Per-window resolution results for a session."""

    session: str
    root: str
    results: tuple[WindowResult, ...] = ()

    @property
    def ok(self) -> bool:
        return all(result.error is None for result in self.results)

    @property
    def plans(self) -> list[WindowPlan]:
        return [result.plan for result in self.results if result.plan is not None]

    @property
    def errors(self) -> list[LayoutError]:
        return [result.error for result in self.results if result.error is not None]

    @property
    def warnings(self) -> list[LayoutWarning]:
        return [warning for plan in self.plans for warning in plan.warnings]


# Fixed geometry per grid type, expressed as section trees whose leaf names
# are the slot labels. Depth-first leaf order is the slot order.
GRID_TEMPLATES: dict[GridType, Item] = {
    GridType.SINGLE: PaneSpec(name="main"),
    GridType.VERTICAL: SplitSpec(
        split=SplitDirection.VERTICAL,
        items=[PaneSpec(name="left", size=50), PaneSpec(name="right", size=50)],
    ),
    GridType.HORIZONTAL: SplitSpec(
        split=SplitDirection.HORIZONTAL,
        items=[PaneSpec(name="top", size=50), PaneSpec(name="bottom", size=50)],
    ),
    GridType.TWO_BY_TWO: SplitSpec(
        split=SplitDirection.HORIZONTAL,
        items=[
            SplitSpec(
                split=SplitDirection.VERTICAL,
                size=50,
                items=[PaneSpec(name="top-left", size=50), PaneSpec(name="top-right", size=50)],
            ),
            SplitSpec(
                split=SplitDirection.VERTICAL,
                size=50,
                items=[PaneSpec(name="bottom-left", size=50), PaneSpec(name="bottom-right", size=50)],
            ),
        ],
    ),
    GridType.MAIN_SIDE: SplitSpec(
        split=SplitDirection.VERTICAL,
        items=[
            PaneSpec(name="main", size=66),
            SplitSpec(
                split=SplitDirection.HORIZONTAL,
                size=34,
                items=[PaneSpec(name="top-right", size=50), PaneSpec(name="bottom-right", size=50)],
            ),
        ],
    ),
}

# Descriptions for the layout list command
GRID_DESCRIPTIONS: dict[GridType, str] = {
    GridType.SINGLE: "One full-window pane",
    GridType.VERTICAL: "Two panes side by side (50/50)",
    GridType.HORIZONTAL: "Two stacked panes (50/50)",
    GridType.TWO_BY_TWO: "Four panes in a 2x2 grid",
    GridType.MAIN_SIDE: "Main pane (66%) + two stacked side panes (34%)",
}


def _is_absolute(path: str) -> bool:
    return path.startswith(("/", "~"))


def resolve_pane_path(base_dir: str, path: str | None) -> str:
    """Resolve a path against its parent directory.

    Args:
        base_dir: The enclosing directory.
        path: The declared path, if any.

    Returns:
        ``path`` verbatim when absolute, joined to ``base_dir`` when relative,
        or ``base_dir`` when no path is declared.
    """
    if not path:
        return base_dir
    if _is_absolute(path):
        return path
    return str(PurePath(base_dir) / path)


def resolve_paths(session: Session, window: Window, cwd: Path | str | None = None) -> str:
    """Compute a window's effective base directory.

    Args:
        session: The owning session; its root may be absolute or relative.
        window: The window; its path may be absolute or relative to the root.
        cwd: Directory standing in for the process working directory.

    Returns:
        The window's base directory.
    """
    default_dir = str(cwd) if cwd is not None else os.getcwd()
    root = resolve_pane_path(default_dir, session.root)
    return resolve_pane_path(root, window.path)


def _iter_leaves(
    item: Item, ancestry: tuple[SplitStep, ...] = ()
) -> Iterator[tuple[PaneSpec, tuple[SplitStep, ...]]]:
    """Yield every pane leaf depth-first with its split ancestry."""
    if isinstance(item, PaneSpec):
        yield item, ancestry
        return
    for index, child in enumerate(item.items):
        step = SplitStep(direction=item.split, index=index, size=child.size)
        yield from _iter_leaves(child, (*ancestry, step))


def grid_slots(grid_type: GridType) -> list[str]:
    """Slot labels of a grid type in pane order."""
    return [leaf.name for leaf, _ancestry in _iter_leaves(GRID_TEMPLATES[grid_type])]


def _ensure_unique(panes: list[ResolvedPane], window: str) -> None:
    seen: set[str] = set()
    for pane in panes:
        if pane.name in seen:
            raise DuplicatePaneName(window, pane.name)
        seen.add(pane.name)


def _normalize_pane_count(
    specs: list[PaneSpec], grid_type: GridType, window: str
) -> tuple[list[PaneSpec], list[LayoutWarning]]:
    """Auto-fill or truncate panes to the grid type's fixed count."""
    expected = GRID_PANE_COUNTS[grid_type]
    supplied = len(specs)
    panes = list(specs)
    warnings: list[LayoutWarning] = []

    if supplied < expected:
        missing = expected - supplied
        taken = {spec.name for spec in specs}
        # Synthetic names start at the slot index and skip declared names
        index = supplied
        while len(panes) < expected:
            name = f"pane-{index}"
            if name not in taken:
                panes.append(PaneSpec(name=name))
            index += 1
        warnings.append(
            LayoutWarning(
                kind=WarningKind.PANE_COUNT_MISMATCH,
                window=window,
                message=f"'{grid_type}' expects {expected} panes but {supplied} given; auto-filled {missing}",
                count=missing,
            )
        )
    elif supplied > expected:
        discarded = supplied - expected
        panes = panes[:expected]
        warnings.append(
            LayoutWarning(
                kind=WarningKind.PANE_COUNT_MISMATCH,
                window=window,
                message=f"'{grid_type}' expects {expected} panes but {supplied} given; discarded {discarded}",
                count=discarded,
            )
        )

    return panes, warnings


def _resolve_fixed(
    grid_type: GridType, specs: list[PaneSpec], base_dir: str, window: str
) -> tuple[list[ResolvedPane], list[LayoutWarning]]:
    specs, warnings = _normalize_pane_count(specs, grid_type, window)
    slots = _iter_leaves(GRID_TEMPLATES[grid_type])
    panes = [
        ResolvedPane(
            name=spec.name,
            command=spec.command,
            path=resolve_pane_path(base_dir, spec.path),
            index=index,
            ssh_target=spec.ssh_target,
            slot=slot.name,
            split_ancestry=ancestry,
            size=slot.size,
        )
        for index, (spec, (slot, ancestry)) in enumerate(zip(specs, slots, strict=True))
    ]
    _ensure_unique(panes, window)
    return panes, warnings


def resolve_compact(
    compact: CompactLayout, base_dir: str, window: str = ""
) -> tuple[list[ResolvedPane], list[LayoutWarning]]:
    """Resolve a compact layout.

    Panes are taken in mapping insertion order and normalised to the grid
    type's pane count. Compact panes have no path of their own and all start
    in ``base_dir``.

    Args:
        compact: The compact layout body.
        base_dir: The window's base directory.
        window: Window name used in warnings and errors.

    Returns:
        Tuple of (panes in slot order, warnings).
    """
    specs = [PaneSpec(name=name, command=command) for name, command in compact.panes.items()]
    return _resolve_fixed(compact.type, specs, base_dir, window)


def resolve_grid(
    grid: GridLayout, base_dir: str, window: str = ""
) -> tuple[list[ResolvedPane], list[LayoutWarning]]:
    """Resolve a grid layout.

    Same count policy as compact layouts; each explicit pane may override its
    path and carry an SSH target.

    Args:
        grid: The grid layout body.
        base_dir: The window's base directory.
        window: Window name used in warnings and errors.

    Returns:
        Tuple of (panes in slot order, warnings).

    Raises:
        DuplicatePaneName: If two panes share a name.
    """
    return _resolve_fixed(grid.type, list(grid.panes), base_dir, window)


def _check_section_sizes(item: Item, window: str, tolerance: float) -> list[LayoutWarning]:
    """Warn about splits whose children's sizes don't add up to 100%."""
    if isinstance(item, PaneSpec):
        return []

    warnings: list[LayoutWarning] = []
    if not item.items:
        warnings.append(
            LayoutWarning(
                kind=WarningKind.EMPTY_SECTION,
                window=window,
                message=f"{item.split} split has no items",
            )
        )
        return warnings

    sizes = [child.size for child in item.items]
    declared = [size for size in sizes if size is not None]
    total = sum(declared)
    if declared:
        if len(declared) == len(sizes):
            mismatch = abs(total - 100.0) > tolerance
        else:
            # Unsized items share the remainder, so only an overflow is wrong
            mismatch = total > 100.0 + tolerance
        message = f"sizes of {item.split} split items sum to {total:g}%, expected 100%"
        # A zero or oversize share cannot be honoured whatever the siblings declare
        unusable = [size for size in declared if size == 0 or size > 100.0]
        if unusable:
            mismatch = True
            shares = ", ".join(f"{size:g}%" for size in unusable)
            message = f"{item.split} split has unusable item sizes ({shares}); sum is {total:g}%"
        if mismatch:
            warnings.append(
                LayoutWarning(
                    kind=WarningKind.SIZE_SUM_MISMATCH,
                    window=window,
                    message=message,
                    count=total,
                )
            )

    for child in item.items:
        warnings.extend(_check_section_sizes(child, window, tolerance))
    return warnings


def resolve_section(
    section: Item,
    base_dir: str,
    window: str = "",
    size_tolerance: float = DEFAULT_SIZE_TOLERANCE,
) -> tuple[list[ResolvedPane], list[LayoutWarning]]:
    """Resolve a section tree.

    Panes come out depth-first in declared item order, each tagged with the
    chain of splits enclosing it.

    Args:
        section: Root of the section tree (a split or a single pane).
        base_dir: The window's base directory.
        window: Window name used in warnings and errors.
        size_tolerance: Allowed deviation of sibling sizes from 100%.

    Returns:
        Tuple of (panes, warnings).

    Raises:
        DuplicatePaneName: If two leaves share a name.
    """
    panes = [
        ResolvedPane(
            name=leaf.name,
            command=leaf.command,
            path=resolve_pane_path(base_dir, leaf.path),
            index=index,
            ssh_target=leaf.ssh_target,
            split_ancestry=ancestry,
            size=leaf.size,
        )
        for index, (leaf, ancestry) in enumerate(_iter_leaves(section))
    ]
    _ensure_unique(panes, window)
    return panes, _check_section_sizes(section, window, size_tolerance)


# Type alias for per-kind window resolvers
LayoutResolver = Callable[[Window, str, float], ResolvedLayout]


def _resolve_compact_window(window: Window, base_dir: str, size_tolerance: float) -> ResolvedLayout:
    if window.compact is None:
        raise MissingLayoutBody(window.name, LayoutKind.COMPACT, "compact")
    return resolve_compact(window.compact, base_dir, window=window.name)


def _resolve_grid_window(window: Window, base_dir: str, size_tolerance: float) -> ResolvedLayout:
    if window.grid is None:
        raise MissingLayoutBody(window.name, LayoutKind.GRID, "grid")
    return resolve_grid(window.grid, base_dir, window=window.name)


def _resolve_sections_window(window: Window, base_dir: str, size_tolerance: float) -> ResolvedLayout:
    if window.section is None:
        raise MissingLayoutBody(window.name, LayoutKind.SECTIONS, "section")
    return resolve_section(window.section, base_dir, window=window.name, size_tolerance=size_tolerance)


# Dictionary dispatch for layout kinds
_LAYOUT_RESOLVERS: dict[LayoutKind, LayoutResolver] = {
    LayoutKind.COMPACT: _resolve_compact_window,
    LayoutKind.GRID: _resolve_grid_window,
    LayoutKind.SECTIONS: _resolve_sections_window,
}


def resolve_window(
    session: Session,
    window: Window,
    cwd: Path | str | None = None,
    size_tolerance: float = DEFAULT_SIZE_TOLERANCE,
) -> WindowPlan:
    """Resolve one window into a pane plan.

    Args:
        session: The owning session.
        window: The window to resolve.
        cwd: Directory standing in for the process working directory.
        size_tolerance: Allowed deviation of sibling section sizes from 100%.

    Returns:
        The window plan with its panes and warnings.

    Raises:
        UnknownLayoutKind: If ``window.layout`` is not a known kind.
        MissingLayoutBody: If the body matching the kind is absent.
        DuplicatePaneName: If two panes share a name.
    """
    try:
        kind = LayoutKind(window.layout)
    except ValueError:
        raise UnknownLayoutKind(window.name, window.layout) from None

    base_dir = resolve_paths(session, window, cwd)
    panes, warnings = _LAYOUT_RESOLVERS[kind](window, base_dir, size_tolerance)
    return WindowPlan(
        window=window.name,
        base_dir=base_dir,
        layout=kind,
        panes=tuple(panes),
        warnings=tuple(warnings),
    )


def resolve_session(
    session: Session,
    cwd: Path | str | None = None,
    size_tolerance: float = DEFAULT_SIZE_TOLERANCE,
) -> SessionPlan:
    """Resolve every window of a session independently.

    A window that fails to resolve records its error and leaves the other
    windows untouched.

    Args:
        session: The session to resolve.
        cwd: Directory standing in for the process working directory.
        size_tolerance: Allowed deviation of sibling section sizes from 100%.

    Returns:
        The session plan, one result per window in declared order.
    """
    default_dir = str(cwd) if cwd is not None else os.getcwd()
    results: list[WindowResult] = []
    for window in session.windows:
        try:
            plan = resolve_window(session, window, cwd=default_dir, size_tolerance=size_tolerance)
        except LayoutError as e:
            results.append(WindowResult(window=window.name, error=e))
        else:
            results.append(WindowResult(window=window.name, plan=plan))

    return SessionPlan(
        session=session.name,
        root=resolve_pane_path(default_dir, session.root),
        results=tuple(results),
    )
