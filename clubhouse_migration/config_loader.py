"""Configuration module for the Clubhouse migration.

Handles loading and accessing configuration settings.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from clubhouse_migration.type_definitions import (
    ClubhouseConfig,
    Config,
    ConfigValue,
    GithubConfig,
    MigrationConfig,
    SectionName,
    TrelloConfig,
)

# Set up basic logging for configuration loading phase
logging.basicConfig(level=logging.INFO, format="%(message)s")
config_logger = logging.getLogger("config_loader")

ENV_PREFIX = "CHM"

DEFAULT_CONFIG_FILE = Path(__file__).parent.parent / "config" / "config.yaml"

MIGRATION_DEFAULTS: dict[str, Any] = {
    "log_level": "INFO",
    "dry_run": False,
    "components": ["trello", "github", "housekeeping"],
    "workers": {"github": 32, "trello": 32, "housekeeping": 32, "clean": 32},
    "wait_timeout_hours": 24,
    "rate_limit_min_delay": 60,
    "rate_limit_max_delay": 120,
    "rate_limit_max_attempts": None,
    "show_progress": True,
    "housekeeping": {},
}


def is_test_environment() -> bool:
    """Detect if code is running in a test environment.

    Returns:
        bool: True if running under pytest or with CHM_TEST_MODE set

    """
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True

    return os.environ.get("CHM_TEST_MODE", "").lower() in ("true", "1", "yes")


class ConfigLoader:
    """Loads and provides access to configuration settings from YAML files and environment variables."""

    def __init__(self, config_file_path: Path | None = None) -> None:
        """Initialize the configuration loader.

        Args:
            config_file_path (Path): Path to the YAML configuration file. Defaults to
                ``$CHM_CONFIG_FILE`` or ``config/config.yaml`` next to the package.

        """
        self._load_environment_configuration()

        if config_file_path is None:
            env_path = os.environ.get(f"{ENV_PREFIX}_CONFIG_FILE")
            config_file_path = Path(env_path) if env_path else DEFAULT_CONFIG_FILE

        self.config_file_path = config_file_path
        self.config: Config = self._load_yaml_config(config_file_path)

        for section in ("clubhouse", "github", "trello", "migration"):
            if not isinstance(self.config.get(section), dict):
                self.config[section] = {}  # type: ignore[literal-required]

        for key, value in MIGRATION_DEFAULTS.items():
            current = self.config["migration"].get(key)
            if current is None:
                self.config["migration"][key] = value.copy() if isinstance(value, dict) else value  # type: ignore[literal-required]
            elif isinstance(value, dict) and isinstance(current, dict):
                self.config["migration"][key] = {**value, **current}  # type: ignore[literal-required]

        self._apply_environment_overrides()

    def _load_environment_configuration(self) -> None:
        """Load environment variables from .env files based on execution context.

        Later files override values from earlier files:
        - .env (base config for all environments)
        - .env.local (local overrides, if present)
        - .env.test (test-specific config, only in test environment)
        """
        load_dotenv(".env")
        config_logger.debug("Loaded base environment from .env")

        if Path(".env.local").exists():
            load_dotenv(".env.local", override=True)
            config_logger.debug("Loaded local overrides from .env.local")

        if is_test_environment():
            config_logger.debug("Running in test environment")
            if Path(".env.test").exists():
                load_dotenv(".env.test", override=True)
                config_logger.debug("Loaded test environment from .env.test")

    def _load_yaml_config(self, config_file_path: Path) -> Config:
        """Load configuration from YAML file.

        A missing file is not fatal: every setting can come from the environment.

        Args:
            config_file_path (Path): Path to the YAML configuration file

        Returns:
            dict: Configuration settings

        """
        try:
            with config_file_path.open("r") as config_file:
                config = yaml.safe_load(config_file) or {}
        except FileNotFoundError:
            config_logger.warning(
                "Config file not found: %s, using environment only", config_file_path,
            )
            config = {}

        if not isinstance(config, dict):
            msg = f"Config file {config_file_path} must contain a mapping at the top level"
            raise ValueError(msg)
        return config  # type: ignore[return-value]

    def _apply_environment_overrides(self) -> None:
        """Override configuration settings with environment variables."""
        for env_var, env_value in os.environ.items():
            if not env_var.startswith(f"{ENV_PREFIX}_"):
                continue

            match env_var.split("_"):
                case ["CHM", "LOG", "LEVEL"]:
                    log_level = env_value.upper()
                    if log_level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "SUCCESS"]:
                        self.config["migration"]["log_level"] = log_level  # type: ignore[typeddict-item]
                    config_logger.debug("Applied log level: %s", log_level)

                case ["CHM", "DRY", "RUN"]:
                    self.config["migration"]["dry_run"] = bool(self._convert_value(env_value))
                    config_logger.debug("Applied dry run: %s", env_value)

                case ["CHM", "WORKERS"]:
                    workers = int(env_value)
                    self.config["migration"]["workers"] = dict.fromkeys(
                        self.config["migration"]["workers"], workers,
                    )
                    config_logger.debug("Applied worker count: %s", workers)

                case ["CHM", ("CLUBHOUSE" | "GITHUB" | "TRELLO") as section, *rest] if rest:
                    key = "_".join(rest).lower()
                    self.config[section.lower()][key] = self._convert_value(env_value)  # type: ignore[literal-required]
                    config_logger.debug("Applied %s config: %s", section.lower(), key)

    def _convert_value(self, value: str) -> ConfigValue:
        """Convert string value to appropriate type."""
        if value.isdigit():
            return int(value)

        match value.lower():
            case "true" | "yes" | "y":
                return True
            case "false" | "no" | "n":
                return False
            case _:
                return value

    def get_clubhouse_config(self) -> ClubhouseConfig:
        """Get Clubhouse-specific configuration."""
        return self.config["clubhouse"]

    def get_github_config(self) -> GithubConfig:
        """Get GitHub-specific configuration."""
        return self.config["github"]

    def get_trello_config(self) -> TrelloConfig:
        """Get Trello-specific configuration."""
        return self.config["trello"]

    def get_migration_config(self) -> MigrationConfig:
        """Get migration-specific configuration."""
        return self.config["migration"]

    def get_value(self, section: SectionName, key: str, default: Any = None) -> Any:
        """Get a specific configuration value.

        Args:
            section (str): Configuration section (clubhouse, github, trello, migration)
            key (str): Configuration key
            default: Default value if not found

        Returns:
            Configuration value or default if not found

        """
        return self.config[section].get(key, default)
