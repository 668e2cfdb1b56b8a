"""Error types raised while loading and resolving tmux layouts."""

from pathlib import Path


class LayoutError(ValueError):
    """A window layout could not be resolved.

    Raised for the whole window; no partial pane list is produced.
    """

    def __init__(self, window: str, message: str) -> None:
        super().__init__(f"window '{window}': {message}")
        self.window = window


class UnknownLayoutKind(LayoutError):
    """The window's ``layout`` discriminant is not compact, grid or sections."""

    def __init__(self, window: str, kind: object) -> None:
        self.kind = kind
        super().__init__(window, f"unknown layout kind {kind!r} (expected 'compact', 'grid' or 'sections')")


class MissingLayoutBody(LayoutError):
    """The discriminant is set but the matching body is absent."""

    def __init__(self, window: str, kind: str, body: str) -> None:
        self.kind = kind
        self.body = body
        super().__init__(window, f"layout '{kind}' requires a '{body}' block")


class DuplicatePaneName(LayoutError):
    """Two panes in the same window share a name."""

    def __init__(self, window: str, pane: str) -> None:
        self.pane = pane
        super().__init__(window, f"duplicate pane name '{pane}'")


class MetaFileError(ValueError):
    """The meta.json document could not be read or validated."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class SessionNotFound(LookupError):
    """A requested session or window is not declared in the document."""
