"""
Configuration loader with priority: CLI > env > TOML > defaults
"""
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Any, Optional

from ...core.constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_WORKERS,
    DEFAULT_PREFERENCES_FILE,
    DEFAULT_WORKSPACE_DIR,
)
from ...core.exceptions import ConfigError


@dataclass
class AppConfig:
    """Application settings"""
    workspace: Path = Path(DEFAULT_WORKSPACE_DIR).expanduser()
    preferences_file: Path = Path(DEFAULT_PREFERENCES_FILE).expanduser()
    max_workers: int = DEFAULT_MAX_WORKERS
    start_from_last: bool = False
    store_passwords: bool = False
    log_level: str = DEFAULT_LOG_LEVEL

    def validate(self) -> None:
        """Validate configuration"""
        if self.max_workers < 1:
            raise ConfigError(f"Invalid max_workers: {self.max_workers}, must be at least 1")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Invalid log_level: {self.log_level}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """Create from dictionary, ignoring unknown keys"""
        values = {}
        for option in fields(cls):
            if option.name not in data or data[option.name] is None:
                continue
            value = data[option.name]
            if option.name in ("workspace", "preferences_file"):
                value = Path(str(value)).expanduser()
            elif option.name == "max_workers":
                try:
                    value = int(value)
                except (TypeError, ValueError) as e:
                    raise ConfigError(f"Invalid max_workers: {value}") from e
            elif option.name in ("start_from_last", "store_passwords"):
                value = value if isinstance(value, bool) else str(value).lower() in ("true", "yes", "1")
            else:
                value = str(value)
            values[option.name] = value

        config = cls(**values)
        config.validate()
        return config


class ConfigLoader:
    """Configuration loader with priority support"""

    env_mappings = {
        "FORMPULL_WORKSPACE": "workspace",
        "FORMPULL_PREFERENCES_FILE": "preferences_file",
        "FORMPULL_MAX_WORKERS": "max_workers",
        "FORMPULL_START_FROM_LAST": "start_from_last",
        "FORMPULL_STORE_PASSWORDS": "store_passwords",
        "FORMPULL_LOG_LEVEL": "log_level",
    }

    def load_toml(self, path: Path) -> Dict[str, Any]:
        """
        Load TOML configuration file.

        Settings may sit at the top level or under a [formpull] table.
        """
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            data = tomllib.loads(path.read_text(encoding='utf-8'))
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Failed to parse TOML configuration: {e}") from e

        section = data.get("formpull")
        return dict(section) if isinstance(section, dict) else data

    def load_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config = {}
        for env_key, config_key in self.env_mappings.items():
            value = os.getenv(env_key)
            if value:
                config[config_key] = self._convert_value(value)
        return config

    def _convert_value(self, value: str) -> Any:
        """Convert string value to appropriate type"""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        return value

    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge multiple configurations with priority.
        Later configs override earlier ones.
        """
        result = {}
        for config in configs:
            result = self._deep_merge(result, config)
        return result

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def load(
        self,
        toml_path: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        use_env: bool = True,
    ) -> AppConfig:
        """
        Load configuration with priority: CLI > env > TOML > defaults

        Without an explicit toml_path, the default config file is used when
        it exists.

        Args:
            toml_path: Path to TOML configuration file
            cli_overrides: CLI parameter overrides (None values are ignored)
            use_env: Whether to load from environment variables

        Returns:
            Application configuration
        """
        configs = []

        if toml_path is not None:
            configs.append(self.load_toml(Path(toml_path).expanduser()))
        else:
            default_path = Path(DEFAULT_CONFIG_FILE).expanduser()
            if default_path.exists():
                configs.append(self.load_toml(default_path))

        if use_env:
            env_config = self.load_env()
            if env_config:
                configs.append(env_config)

        if cli_overrides:
            configs.append({k: v for k, v in cli_overrides.items() if v is not None})

        return AppConfig.from_dict(self.merge_configs(*configs))
