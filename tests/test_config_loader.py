"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest

from formpull.adapters.config import AppConfig, ConfigLoader
from formpull.core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for env_key in ConfigLoader.env_mappings:
        monkeypatch.delenv(env_key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def loader():
    return ConfigLoader()


class TestConfigLoader:
    """Test configuration sources and their priority."""

    def test_defaults(self, loader):
        config = loader.load()
        assert config.max_workers == 4
        assert config.log_level == "INFO"
        assert not config.start_from_last
        assert not config.store_passwords

    def test_toml_section(self, loader, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[formpull]\nworkspace = "~/odk"\nmax_workers = 8\nstart_from_last = true\n',
            encoding="utf-8",
        )

        config = loader.load(path)

        assert config.workspace == Path("~/odk").expanduser()
        assert config.max_workers == 8
        assert config.start_from_last

    def test_toml_top_level(self, loader, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('log_level = "DEBUG"\n', encoding="utf-8")
        assert loader.load(path).log_level == "DEBUG"

    def test_priority_cli_over_env_over_toml(self, loader, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text('max_workers = 2\nlog_level = "ERROR"\nstore_passwords = false\n', encoding="utf-8")
        monkeypatch.setenv("FORMPULL_MAX_WORKERS", "6")
        monkeypatch.setenv("FORMPULL_STORE_PASSWORDS", "yes")

        config = loader.load(path, {"max_workers": 3, "log_level": None})

        assert config.max_workers == 3
        assert config.log_level == "ERROR"
        assert config.store_passwords

    def test_env_can_be_ignored(self, loader, monkeypatch):
        monkeypatch.setenv("FORMPULL_MAX_WORKERS", "6")
        assert loader.load(use_env=False).max_workers == 4

    def test_missing_explicit_file(self, loader, tmp_path):
        with pytest.raises(ConfigError):
            loader.load(tmp_path / "missing.toml")

    def test_invalid_toml(self, loader, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("max_workers = = 2", encoding="utf-8")
        with pytest.raises(ConfigError):
            loader.load(path)

    def test_deep_merge(self, loader):
        merged = loader.merge_configs({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}, "b": 4})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 4}


class TestAppConfig:
    """Test settings validation."""

    @pytest.mark.parametrize("data", [
        {"max_workers": 0},
        {"max_workers": "many"},
        {"log_level": "LOUD"},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ConfigError):
            AppConfig.from_dict(data)

    def test_unknown_keys_ignored(self):
        assert AppConfig.from_dict({"colour": "blue"}) == AppConfig()
