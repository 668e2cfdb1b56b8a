"""Tests for runmux.config module."""

import json
import tempfile
from io import StringIO
from pathlib import Path

import pytest
import yaml
from rich.console import Console

from runmux.config import (
    Config,
    ConfigWarning,
    _deep_merge,
    _load_yaml_file,
    display_config_warnings,
    find_session,
    load_config,
    load_meta_file,
    save_config,
)
from runmux.errors import MetaFileError, SessionNotFound
from runmux.models import MetaDocument, PaneSpec


class TestConfig:
    """Tests for Config model."""

    def test_default_values(self) -> None:
        """Should have correct default values."""
        config = Config()
        assert config.meta_file == "meta.json"
        assert config.size_tolerance == 2.0
        assert config.ssh_command == "ssh"
        assert config.attach is True
        assert config.focus_first_pane is True
        assert config.ignore_parent_configs is False

    def test_custom_values(self) -> None:
        """Should accept custom values."""
        config = Config(size_tolerance=5.0, ssh_command="mosh", attach=False)
        assert config.size_tolerance == 5.0
        assert config.ssh_command == "mosh"
        assert config.attach is False


class TestDeepMerge:
    """Tests for _deep_merge function."""

    def test_flat_merge(self) -> None:
        """Should merge flat dicts with override winning."""
        base: dict[str, object] = {"a": 1, "b": 2}
        override: dict[str, object] = {"b": 3, "c": 4}
        assert _deep_merge(base, override) == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self) -> None:
        """Should recursively merge nested dicts."""
        base: dict[str, object] = {"n": {"x": True, "y": 10}}
        override: dict[str, object] = {"n": {"y": 20}}
        assert _deep_merge(base, override) == {"n": {"x": True, "y": 20}}

    def test_override_replaces_non_dict(self) -> None:
        """Should replace non-dict values entirely."""
        assert _deep_merge({"a": [1, 2, 3]}, {"a": [4, 5]}) == {"a": [4, 5]}

    def test_does_not_mutate_inputs(self) -> None:
        """Should not modify the input dicts."""
        base: dict[str, object] = {"a": 1, "nested": {"x": 1}}
        override: dict[str, object] = {"nested": {"y": 2}}
        _deep_merge(base, override)
        assert base == {"a": 1, "nested": {"x": 1}}
        assert override == {"nested": {"y": 2}}


class TestLoadYamlFile:
    """Tests for _load_yaml_file function."""

    def test_missing_file(self) -> None:
        """Should return empty dict for missing file."""
        data, warnings = _load_yaml_file(Path("/nonexistent/path/config.yaml"))
        assert data == {}
        assert warnings == []

    def test_valid_yaml(self, tmp_path: Path) -> None:
        """Should parse valid YAML file."""
        path = tmp_path / "test.yaml"
        path.write_text(yaml.dump({"key": "value"}), encoding="utf-8")
        data, warnings = _load_yaml_file(path)
        assert data == {"key": "value"}
        assert warnings == []

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Should return empty dict with warning for invalid YAML."""
        path = tmp_path / "test.yaml"
        path.write_text("invalid: yaml: content:", encoding="utf-8")
        data, warnings = _load_yaml_file(path)
        assert data == {}
        assert len(warnings) == 1
        assert "YAML parse error" in warnings[0].message

    def test_non_dict_yaml(self, tmp_path: Path) -> None:
        """Should return empty dict when YAML is not a dict."""
        path = tmp_path / "test.yaml"
        path.write_text("- item1\n- item2\n", encoding="utf-8")
        data, warnings = _load_yaml_file(path)
        assert data == {}
        assert warnings == []


class TestLoadConfig:
    """Tests for load_config function."""

    def test_missing_file_returns_defaults(self) -> None:
        """Should return defaults when file doesn't exist."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config, warnings = load_config(Path(tmpdir) / "nonexistent.yaml")
            assert config == Config()
            assert warnings == []

    def test_loads_valid_config(self) -> None:
        """Should load valid config from file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            config_path.write_text(
                yaml.dump({"size_tolerance": 5, "meta_file": "project.json", "attach": False}),
                encoding="utf-8",
            )
            config, warnings = load_config(config_path)
            assert config.size_tolerance == 5.0
            assert config.meta_file == "project.json"
            assert config.attach is False
            assert warnings == []

    def test_validation_error_recovers_partially(self) -> None:
        """Should drop the bad field and keep the rest."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            config_path.write_text(
                yaml.dump({"size_tolerance": "wide", "ssh_command": "mosh"}),
                encoding="utf-8",
            )
            config, warnings = load_config(config_path)
            assert len(warnings) >= 1
            assert warnings[0].field_name == "size_tolerance"
            assert config.size_tolerance == 2.0
            assert config.ssh_command == "mosh"

    def test_strict_mode_no_recovery(self) -> None:
        """Strict mode should not attempt partial recovery."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.yaml"
            config_path.write_text(
                yaml.dump({"size_tolerance": "wide", "ssh_command": "mosh"}),
                encoding="utf-8",
            )
            config, warnings = load_config(config_path, strict=True)
            assert len(warnings) >= 1
            assert config == Config()


class TestLayeredConfig:
    """Tests for layered project configuration loading."""

    def test_project_and_local_override_user(self, tmp_path: Path) -> None:
        """Project config overrides user; local overrides both."""
        user_config = tmp_path / "user.yaml"
        project_dir = tmp_path / "project"
        project_dir.mkdir()

        user_config.write_text(yaml.dump({"ssh_command": "mosh", "size_tolerance": 1.0}), encoding="utf-8")
        (project_dir / ".runmux.yaml").write_text(yaml.dump({"size_tolerance": 3.0}), encoding="utf-8")
        (project_dir / ".runmux.yaml.local").write_text(yaml.dump({"attach": False}), encoding="utf-8")

        config, _warnings = load_config(user_config, project_dir=project_dir)
        assert config.ssh_command == "mosh"
        assert config.size_tolerance == 3.0
        assert config.attach is False

    def test_ignore_parent_configs(self, tmp_path: Path) -> None:
        """Project config with ignore_parent_configs should skip user config."""
        user_config = tmp_path / "user.yaml"
        project_dir = tmp_path / "project"
        project_dir.mkdir()

        user_config.write_text(yaml.dump({"ssh_command": "mosh"}), encoding="utf-8")
        (project_dir / ".runmux.yaml").write_text(
            yaml.dump({"ignore_parent_configs": True, "size_tolerance": 4.0}),
            encoding="utf-8",
        )

        config, _warnings = load_config(user_config, project_dir=project_dir)
        assert config.size_tolerance == 4.0
        assert config.ssh_command == "ssh"

    def test_ignore_parent_configs_in_local(self, tmp_path: Path) -> None:
        """Local config with ignore_parent_configs should skip user config."""
        user_config = tmp_path / "user.yaml"
        project_dir = tmp_path / "project"
        project_dir.mkdir()

        user_config.write_text(yaml.dump({"ssh_command": "mosh"}), encoding="utf-8")
        (project_dir / ".runmux.yaml.local").write_text(
            yaml.dump({"ignore_parent_configs": True}),
            encoding="utf-8",
        )

        config, _warnings = load_config(user_config, project_dir=project_dir)
        assert config.ssh_command == "ssh"


class TestSaveConfig:
    """Tests for save_config function."""

    def test_saves_config(self, tmp_path: Path) -> None:
        """Should save config to file."""
        config_path = tmp_path / "config.yaml"
        save_config(Config(size_tolerance=3.5, attach=False), config_path)

        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
        assert data["size_tolerance"] == 3.5
        assert data["attach"] is False
        assert data["meta_file"] == "meta.json"

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        """Should create parent directories if needed."""
        config_path = tmp_path / "nested" / "dir" / "config.yaml"
        save_config(Config(), config_path)
        assert config_path.exists()

    def test_round_trip(self, tmp_path: Path) -> None:
        """A saved config should load back unchanged."""
        config_path = tmp_path / "config.yaml"
        original = Config(ssh_command="mosh", focus_first_pane=False)
        save_config(original, config_path)
        loaded, warnings = load_config(config_path)
        assert loaded == original
        assert warnings == []


class TestDisplayConfigWarnings:
    """Tests for display_config_warnings function."""

    def test_no_warnings_no_output(self) -> None:
        """Should not print anything when no warnings."""
        output = StringIO()
        display_config_warnings([], Console(file=output, no_color=True))
        assert output.getvalue() == ""

    def test_displays_warnings(self) -> None:
        """Should display warnings in a panel."""
        output = StringIO()
        warnings = [ConfigWarning(file="config.yaml", field_name="attach", message="invalid value", value="bad")]
        display_config_warnings(warnings, Console(file=output, no_color=True, width=120))
        result = output.getvalue()
        assert "Config Warnings" in result
        assert "config.yaml" in result
        assert "invalid value" in result


def _write_meta(path: Path, data: object) -> Path:
    meta_path = path / "meta.json"
    meta_path.write_text(json.dumps(data), encoding="utf-8")
    return meta_path


class TestLoadMetaFile:
    """Tests for load_meta_file function."""

    def test_loads_document(self, tmp_path: Path) -> None:
        """Should load the tmux block of a meta.json."""
        meta_path = _write_meta(
            tmp_path,
            {
                "name": "app",
                "tmux": {
                    "sessions": [
                        {
                            "name": "dev",
                            "root": "/srv",
                            "windows": [
                                {
                                    "name": "code",
                                    "layout": "sections",
                                    "section": {"split": "vertical", "items": [{"name": "a"}, {"name": "b"}]},
                                }
                            ],
                        }
                    ]
                },
            },
        )
        document = load_meta_file(meta_path)
        assert document.tmux is not None
        session = document.tmux.sessions[0]
        assert session.root == "/srv"
        assert session.windows[0].layout == "sections"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Should raise for a missing file."""
        with pytest.raises(MetaFileError, match="file not found") as exc_info:
            load_meta_file(tmp_path / "meta.json")
        assert exc_info.value.path == tmp_path / "meta.json"

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Should raise for malformed JSON."""
        meta_path = tmp_path / "meta.json"
        meta_path.write_text("{not json", encoding="utf-8")
        with pytest.raises(MetaFileError, match="JSON parse error"):
            load_meta_file(meta_path)

    def test_schema_error(self, tmp_path: Path) -> None:
        """Should raise with field locations for schema violations."""
        meta_path = _write_meta(
            tmp_path,
            {"tmux": {"sessions": [{"name": "dev", "windows": [{"name": "w", "compact": {"type": "nine"}}]}]}},
        )
        with pytest.raises(MetaFileError, match="invalid document") as exc_info:
            load_meta_file(meta_path)
        assert "compact.type" in str(exc_info.value)

    def test_non_object_document(self, tmp_path: Path) -> None:
        """Should raise when the top level is not an object."""
        meta_path = _write_meta(tmp_path, ["not", "an", "object"])
        with pytest.raises(MetaFileError):
            load_meta_file(meta_path)


class TestFindSession:
    """Tests for find_session function."""

    def _document(self) -> MetaDocument:
        return MetaDocument.model_validate({"tmux": {"sessions": [{"name": "dev"}, {"name": "ops"}]}})

    def test_defaults_to_first(self) -> None:
        """Should return the first session when no name is given."""
        assert find_session(self._document()).name == "dev"

    def test_by_name(self) -> None:
        """Should look sessions up by name."""
        assert find_session(self._document(), "ops").name == "ops"

    def test_unknown_name(self) -> None:
        """Should raise and list available sessions."""
        with pytest.raises(SessionNotFound, match="dev, ops"):
            find_session(self._document(), "prod")

    def test_no_tmux_block(self) -> None:
        """Should raise when no sessions are declared."""
        with pytest.raises(SessionNotFound):
            find_session(MetaDocument())

    def test_pane_spec_import(self) -> None:
        """Documents should produce typed pane specs."""
        document = MetaDocument.model_validate(
            {
                "tmux": {
                    "sessions": [
                        {
                            "name": "dev",
                            "windows": [
                                {"name": "g", "layout": "grid", "grid": {"type": "single", "panes": [{"name": "p"}]}}
                            ],
                        }
                    ]
                }
            }
        )
        grid = find_session(document).windows[0].grid
        assert grid is not None
        assert isinstance(grid.panes[0], PaneSpec)
