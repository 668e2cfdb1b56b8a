"""Document models for the ``tmux`` block of meta.json."""

from enum import StrEnum
from typing import Annotated, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator

from runmux.utils import parse_percentage


class GridType(StrEnum):
    """Fixed-arity pane arrangements shared by compact and grid layouts."""

    SINGLE = "single"
    VERTICAL = "vertical"  # left / right
    HORIZONTAL = "horizontal"  # top / bottom
    TWO_BY_TWO = "two-by-two"
    MAIN_SIDE = "main-side"  # main + two stacked side panes


GRID_PANE_COUNTS: dict[GridType, int] = {
    GridType.SINGLE: 1,
    GridType.VERTICAL: 2,
    GridType.HORIZONTAL: 2,
    GridType.TWO_BY_TWO: 4,
    GridType.MAIN_SIDE: 3,
}


class SplitDirection(StrEnum):
    """Direction of a section split.

    A vertical split draws vertical dividers, so its children sit side by
    side. A horizontal split stacks its children top to bottom.
    """

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    @property
    def tmux_flag(self) -> str:
        """The ``split-window`` flag producing this arrangement."""
        return "-h" if self is SplitDirection.VERTICAL else "-v"


class _DocumentModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class PaneSpec(_DocumentModel):
    """A declared pane: a grid entry or a section leaf."""

    name: str
    command: str = ""
    path: str | None = None
    ssh_target: str | None = Field(default=None, alias="sshTarget")
    size: float | None = None

    @field_validator("command", mode="before")
    @classmethod
    def _none_command(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("size", mode="before")
    @classmethod
    def _parse_size(cls, value: object) -> float | None:
        return parse_percentage(value)


class SplitSpec(_DocumentModel):
    """A section node dividing its space among child items."""

    split: SplitDirection
    size: float | None = None
    items: list["Item"] = []

    @field_validator("size", mode="before")
    @classmethod
    def _parse_size(cls, value: object) -> float | None:
        return parse_percentage(value)


def _item_tag(value: object) -> str:
    """Tag a section item as a split node or a pane leaf."""
    if isinstance(value, dict):
        return "split" if "split" in value else "pane"
    return "split" if isinstance(value, SplitSpec) else "pane"


Item = Annotated[
    Union[Annotated[PaneSpec, Tag("pane")], Annotated[SplitSpec, Tag("split")]],
    Discriminator(_item_tag),
]

SplitSpec.model_rebuild()


class CompactLayout(_DocumentModel):
    """Grid type plus an ordered pane name to command mapping."""

    type: GridType
    panes: dict[str, str] = {}


class GridLayout(_DocumentModel):
    """Grid type plus explicit pane objects."""

    type: GridType
    panes: list[PaneSpec] = []


class Window(_DocumentModel):
    """A named window holding exactly one layout.

    ``layout`` is kept as the raw discriminant string so that unknown kinds
    surface as resolution errors rather than schema errors.
    """

    name: str
    path: str | None = None
    layout: str | None = None
    compact: CompactLayout | None = None
    grid: GridLayout | None = None
    section: Item | None = None


class Session(_DocumentModel):
    """A tmux session and its windows."""

    name: str
    root: str | None = None
    windows: list[Window] = []


class TmuxBlock(_DocumentModel):
    sessions: list[Session] = []


class MetaDocument(_DocumentModel):
    """The parts of meta.json that runmux reads."""

    tmux: TmuxBlock | None = None
