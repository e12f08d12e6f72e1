"""
Configuration loader with environment variable support.

Loads configuration from YAML files with hierarchical overrides:
1. config/default.yaml (base configuration)
2. config/{TRIPWATCH_ENV}.yaml (environment-specific)
3. Environment variables (TRIPWATCH_*)
"""

import os
from pathlib import Path
from typing import Any

import yaml

ENV_PREFIX = "TRIPWATCH_"


class Config:
    """
    Hierarchical configuration loader.

    Load order (later overrides earlier):
    1. default.yaml
    2. {TRIPWATCH_ENV}.yaml (development, production, etc.)
    3. Environment variables (TRIPWATCH_*)

    Nested keys in environment variables are separated by a double
    underscore so that key names may themselves contain underscores:

        TRIPWATCH_API__TIMEOUT=5                  -> api.timeout
        TRIPWATCH_POLLING__FOREGROUND_INTERVAL=10 -> polling.foreground_interval

    Usage:
        config = Config()
        interval = config.get('polling.foreground_interval', 30)
        # or
        interval = config['polling']['foreground_interval']
    """

    def __init__(self, config_dir: Path | None = None, overrides: dict | None = None):
        """
        Initialize configuration loader.

        Args:
            config_dir: Path to configuration directory. Defaults to project config/
            overrides: Optional dict merged over the loaded files (tests, CLI flags)
        """
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent.parent / "config"
        self.config_dir = Path(config_dir)
        self.env = os.getenv(f"{ENV_PREFIX}ENV", "development")
        self._overrides = overrides or {}
        self._config = self._load_config()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Build a Config that ignores files and environment; used by tests."""
        config = cls.__new__(cls)
        config.config_dir = Path(".")
        config.env = "test"
        config._overrides = {}
        config._config = dict(data)
        return config

    def _load_config(self) -> dict[str, Any]:
        """Load and merge configuration files."""
        config: dict[str, Any] = {}

        default_path = self.config_dir / "default.yaml"
        if default_path.exists():
            with open(default_path, encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}

        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            with open(env_path, encoding="utf-8") as f:
                env_config = yaml.safe_load(f) or {}
                config = self._deep_merge(config, env_config)

        config = self._apply_env_overrides(config)
        if self._overrides:
            config = self._deep_merge(config, self._overrides)

        return config

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: dict) -> dict:
        """Apply TRIPWATCH_* environment variables (except TRIPWATCH_ENV)."""
        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX) or key == f"{ENV_PREFIX}ENV":
                continue
            path = key[len(ENV_PREFIX) :].lower().split("__")
            self._set_nested(config, path, self._parse_value(value))
        return config

    def _set_nested(self, d: dict, keys: list, value: Any) -> None:
        """Set a nested dictionary value."""
        for key in keys[:-1]:
            d = d.setdefault(key, {})
        d[keys[-1]] = value

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "false"):
            return value.lower() == "true"
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            pass
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Dot-separated path like 'api.timeout' or 'cache.max_age_days'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value: Any = self._config
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        """Get top-level configuration section."""
        return self._config.get(key) or {}

    @property
    def as_dict(self) -> dict[str, Any]:
        """Return configuration as dictionary."""
        return self._config.copy()

    def reload(self) -> None:
        """Reload configuration from files."""
        self._config = self._load_config()
