"""Configuration management for runmux."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

import yaml
from pydantic import BaseModel, ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from runmux.errors import MetaFileError, SessionNotFound
from runmux.layouts import DEFAULT_SIZE_TOLERANCE
from runmux.models import MetaDocument, Session
from runmux.xdg_paths import get_config_file_path

META_FILE_NAME = "meta.json"
PROJECT_CONFIG_NAME = ".runmux.yaml"
PROJECT_LOCAL_CONFIG_NAME = ".runmux.yaml.local"


@dataclass
class ConfigWarning:
    """A config validation warning."""

    file: str
    field_name: str
    message: str
    value: object = field(default=None, repr=False)


class Config(BaseModel):
    """Configuration settings for runmux."""

    meta_file: str = META_FILE_NAME
    size_tolerance: float = DEFAULT_SIZE_TOLERANCE
    ssh_command: str = "ssh"
    attach: bool = True
    focus_first_pane: bool = True

    # When true in a project config, ignore all parent configs (user config)
    ignore_parent_configs: bool = False


def _deep_merge(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    """Recursively merge override dict into base dict.

    For nested dicts, merges recursively. For all other types, override wins.

    Args:
        base: The base dictionary.
        override: The dictionary with overriding values.

    Returns:
        A new merged dictionary.
    """
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)  # type: ignore[arg-type]
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> tuple[dict[str, object], list[ConfigWarning]]:
    """Load a YAML file and return its contents as a dict with warnings.

    Args:
        path: Path to the YAML file.

    Returns:
        Tuple of (parsed dict, list of warnings). Empty dict on missing/invalid.
    """
    if not path.exists():
        return {}, []
    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        if not isinstance(raw, dict):
            return {}, []
        return cast(dict[str, object], raw), []
    except yaml.YAMLError as e:
        return {}, [ConfigWarning(file=str(path), field_name="(file)", message=f"YAML parse error: {e}")]
    except OSError as e:
        return {}, [ConfigWarning(file=str(path), field_name="(file)", message=f"File read error: {e}")]


def load_config(
    config_path: Path | None = None,
    project_dir: Path | None = None,
    strict: bool = False,
) -> tuple[Config, list[ConfigWarning]]:
    """Load configuration with layered merging.

    Loading order (last value wins via deep merge):
    1. User config (~/.config/runmux/config.yaml) - base
    2. Project config (.runmux.yaml in project_dir) - team/shared overrides
    3. Project local config (.runmux.yaml.local in project_dir) - personal overrides

    If a project config sets ``ignore_parent_configs: true``, the user config is
    skipped and only project configs are used.

    Args:
        config_path: Optional path to user config file. Uses default if None.
        project_dir: Optional project directory containing .runmux.yaml files.
        strict: If True, do not attempt partial recovery on validation errors.

    Returns:
        Tuple of (loaded Config, list of ConfigWarnings).
    """
    warnings: list[ConfigWarning] = []

    user_config, user_warnings = _load_yaml_file(config_path or get_config_file_path())
    warnings.extend(user_warnings)

    if project_dir:
        project_config, proj_warnings = _load_yaml_file(project_dir / PROJECT_CONFIG_NAME)
        warnings.extend(proj_warnings)
        local_config, local_warnings = _load_yaml_file(project_dir / PROJECT_LOCAL_CONFIG_NAME)
        warnings.extend(local_warnings)

        ignore_parent = project_config.get("ignore_parent_configs", False) or local_config.get(
            "ignore_parent_configs", False
        )

        if ignore_parent:
            merged: dict[str, object] = _deep_merge(project_config, local_config)
        else:
            # Normal layered merge: user → project → local
            merged = _deep_merge(user_config, project_config)
            merged = _deep_merge(merged, local_config)
    else:
        merged = user_config

    try:
        return Config.model_validate(merged), warnings
    except ValidationError as e:
        for error in e.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            warnings.append(
                ConfigWarning(
                    file="merged config",
                    field_name=field_path,
                    message=error["msg"],
                    value=error.get("input"),
                )
            )

        if strict:
            return Config(), warnings

        # Attempt partial recovery: remove bad fields and retry
        for error in e.errors():
            if error["loc"]:
                merged.pop(str(error["loc"][0]), None)
        try:
            return Config.model_validate(merged), warnings
        except ValidationError:
            return Config(), warnings


def display_config_warnings(warnings: list[ConfigWarning], console: Console) -> None:
    """Display config warnings using Rich formatting.

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
        text.append(f"  {warning.file}", style="dim")
        text.append(": ", style="dim")
        text.append(warning.field_name, style="bold")
        text.append(f" - {warning.message}", style="yellow")
        if warning.value is not None:
            text.append(f" (got: {warning.value!r})", style="dim")

    console.print(Panel(text, title="[yellow]Config Warnings[/]", border_style="yellow"))


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Save configuration to YAML file.

    Args:
        config: The configuration to save.
        config_path: Optional path to config file. Uses default if None.
    """
    path = config_path or get_config_file_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False)


def load_meta_file(path: Path) -> MetaDocument:
    """Load and validate a meta.json document.

    Args:
        path: Path to the meta.json file.

    Returns:
        The validated document.

    Raises:
        MetaFileError: If the file is missing, unreadable, not JSON, or does
            not match the document schema.
    """
    if not path.exists():
        raise MetaFileError(path, "file not found")
    try:
        with path.open(encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise MetaFileError(path, f"JSON parse error: {e}") from e
    except OSError as e:
        raise MetaFileError(path, f"File read error: {e}") from e

    try:
        return MetaDocument.model_validate(raw)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(loc) for loc in error['loc']) or '(root)'}: {error['msg']}" for error in e.errors()
        )
        raise MetaFileError(path, f"invalid document: {details}") from e


def find_session(document: MetaDocument, name: str | None = None) -> Session:
    """Look up a session in a meta document.

    Args:
        document: The loaded document.
        name: Session name; the first declared session when None.

    Returns:
        The matching session.

    Raises:
        SessionNotFound: If the document declares no sessions or none match.
    """
    sessions = document.tmux.sessions if document.tmux else []
    if not sessions:
        raise SessionNotFound("No tmux sessions declared")
    if name is None:
        return sessions[0]
    for session in sessions:
        if session.name == name:
            return session
    available = ", ".join(session.name for session in sessions)
    raise SessionNotFound(f"Session '{name}' not found (available: {available})")
