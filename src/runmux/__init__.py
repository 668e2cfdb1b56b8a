"""Resolve meta.json tmux layouts into concrete pane plans."""

__version__ = "0.1.0"
