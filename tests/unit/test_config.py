"""
Unit tests for the configuration loader.
"""

import pytest
import yaml

from tripwatch.core.config import Config


class TestConfig:
    """Tests for layered YAML and environment configuration."""

    @pytest.fixture
    def config_dir(self, tmp_path):
        (tmp_path / "default.yaml").write_text(
            yaml.safe_dump({
                "api": {"timeout": 15, "base_url": "https://example.test/api"},
                "polling": {"foreground_interval": 30},
                "logging": {"level": "INFO"},
            })
        )
        (tmp_path / "development.yaml").write_text(
            yaml.safe_dump({"logging": {"level": "DEBUG"}})
        )
        return tmp_path

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        monkeypatch.delenv("TRIPWATCH_ENV", raising=False)

    def test_defaults(self, config_dir, monkeypatch):
        monkeypatch.setenv("TRIPWATCH_ENV", "production")
        config = Config(config_dir)
        assert config.get("api.timeout") == 15
        assert config.get("logging.level") == "INFO"

    def test_environment_file_overrides(self, config_dir):
        config = Config(config_dir)
        assert config.env == "development"
        assert config.get("logging.level") == "DEBUG"
        assert config.get("api.timeout") == 15

    def test_environment_variables(self, config_dir, monkeypatch):
        """Double underscores separate levels; values are typed."""
        monkeypatch.setenv("TRIPWATCH_API__TIMEOUT", "5")
        monkeypatch.setenv("TRIPWATCH_POLLING__FOREGROUND_INTERVAL", "7.5")
        monkeypatch.setenv("TRIPWATCH_APP__DEBUG", "true")
        config = Config(config_dir)
        assert config.get("api.timeout") == 5
        assert config.get("polling.foreground_interval") == 7.5
        assert config.get("app.debug") is True

    def test_overrides_win(self, config_dir):
        config = Config(config_dir, overrides={"api": {"timeout": 1}})
        assert config.get("api.timeout") == 1
        assert config.get("api.base_url") == "https://example.test/api"

    def test_missing_keys(self, config_dir):
        config = Config(config_dir)
        assert config.get("nope.nothing", "fallback") == "fallback"
        assert config["nope"] == {}

    def test_from_dict(self, test_config):
        config = Config.from_dict(test_config)
        assert config["segmentation"]["gap_minutes"] == 20
        assert config.get("cache.max_age_days") == 7

    def test_shipped_defaults_load(self):
        """The packaged config/default.yaml carries every section the engine reads."""
        config = Config()
        for section in ("api", "polling", "segmentation", "cache", "session", "web", "logging"):
            assert config[section], section
