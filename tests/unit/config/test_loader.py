"""Unit tests for TOML configuration loader."""

import tomllib
from pathlib import Path

import pytest

from dynvars.config.loader import (
    deep_merge,
    get_config_dir,
    get_environment,
    load_config,
    load_toml,
)


class TestDeepMerge:
    """Tests for deep_merge function."""

    def test_merge_flat_dicts(self) -> None:
        """Flat dictionaries are merged correctly."""
        result = deep_merge({"a": 1, "b": 2}, {"b": 3, "c": 4})
        assert result == {"a": 1, "b": 3, "c": 4}

    def test_merge_nested_dicts(self) -> None:
        """Nested sections merge key by key."""
        base = {"storage": {"definitions": {"backend": "inmemory"}, "values": {"backend": "inmemory"}}}
        override = {"storage": {"values": {"backend": "postgres"}}}
        result = deep_merge(base, override)
        assert result == {
            "storage": {
                "definitions": {"backend": "inmemory"},
                "values": {"backend": "postgres"},
            }
        }

    def test_override_replaces_non_dict(self) -> None:
        """Non-dict values in override replace base values."""
        assert deep_merge({"a": {"x": 1}}, {"a": "replaced"}) == {"a": "replaced"}

    def test_base_unmodified(self) -> None:
        """Original base dictionary is not modified."""
        base = {"a": {"x": 1}}
        deep_merge(base, {"a": {"y": 2}})
        assert base == {"a": {"x": 1}}


class TestLoadToml:
    """Tests for load_toml function."""

    def test_load_valid_toml(self, tmp_path: Path) -> None:
        """Valid TOML file is loaded correctly."""
        toml_file = tmp_path / "test.toml"
        toml_file.write_text('[overlay]\nfield_name = "vars"\nconflict_retries = 2')

        assert load_toml(toml_file) == {"overlay": {"field_name": "vars", "conflict_retries": 2}}

    def test_load_missing_file_raises(self, tmp_path: Path) -> None:
        """Missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_toml(tmp_path / "nonexistent.toml")

    def test_load_invalid_toml_raises(self, tmp_path: Path) -> None:
        """Invalid TOML syntax raises error."""
        invalid_file = tmp_path / "invalid.toml"
        invalid_file.write_text("invalid = [unclosed")

        with pytest.raises(tomllib.TOMLDecodeError):
            load_toml(invalid_file)


class TestGetEnvironment:
    """Tests for get_environment function."""

    def test_returns_env_var_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Returns DYNVARS_ENV value when set."""
        monkeypatch.setenv("DYNVARS_ENV", "production")
        assert get_environment() == "production"

    def test_defaults_to_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Defaults to 'development' when DYNVARS_ENV not set."""
        monkeypatch.delenv("DYNVARS_ENV", raising=False)
        assert get_environment() == "development"


class TestGetConfigDir:
    """Tests for get_config_dir function."""

    def test_uses_env_var_when_set(
        self, test_config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Uses DYNVARS_CONFIG_DIR when set."""
        monkeypatch.setenv("DYNVARS_CONFIG_DIR", str(test_config_dir))
        assert get_config_dir() == test_config_dir

    def test_raises_for_missing_env_dir(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Raises error when DYNVARS_CONFIG_DIR doesn't exist."""
        monkeypatch.setenv("DYNVARS_CONFIG_DIR", str(tmp_path / "missing"))

        with pytest.raises(FileNotFoundError):
            get_config_dir()


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_default_config(
        self,
        test_config_dir: Path,
        mock_toml_files,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Loads default.toml configuration."""
        mock_toml_files({"default.toml": "app_name = 'test'\ndebug = false"})
        monkeypatch.setenv("DYNVARS_CONFIG_DIR", str(test_config_dir))
        monkeypatch.setenv("DYNVARS_ENV", "nonexistent")

        assert load_config() == {"app_name": "test", "debug": False}

    def test_merges_environment_config(
        self,
        test_config_dir: Path,
        mock_toml_files,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Environment config overrides default config."""
        mock_toml_files(
            {
                "default.toml": "[overlay]\nfield_name = 'variables'\neager_hydration = false",
                "staging.toml": "[overlay]\neager_hydration = true",
            }
        )
        monkeypatch.setenv("DYNVARS_CONFIG_DIR", str(test_config_dir))
        monkeypatch.setenv("DYNVARS_ENV", "staging")

        assert load_config() == {
            "overlay": {"field_name": "variables", "eager_hydration": True}
        }

    def test_missing_default_raises(
        self, test_config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Missing default.toml raises error."""
        monkeypatch.setenv("DYNVARS_CONFIG_DIR", str(test_config_dir))

        with pytest.raises(FileNotFoundError, match="default.toml"):
            load_config()

    def test_repository_config_loads(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The shipped config directory parses for every environment."""
        config_dir = Path(__file__).resolve().parents[3] / "config"
        monkeypatch.setenv("DYNVARS_CONFIG_DIR", str(config_dir))
        for env in ("development", "production"):
            monkeypatch.setenv("DYNVARS_ENV", env)
            config = load_config()
            assert config["overlay"]["field_name"] == "variables"
