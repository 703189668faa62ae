"""Configuration module for the Clubhouse migration.
Provides a centralized configuration interface using ConfigLoader.
"""

from pathlib import Path
from typing import Any

from clubhouse_migration.config_loader import ConfigLoader
from clubhouse_migration.display import configure_logging
from clubhouse_migration.type_definitions import DirType, LogLevel

# Create a singleton instance of ConfigLoader
_config_loader = ConfigLoader()

# Extract configuration sections for easy access
clubhouse_config = _config_loader.get_clubhouse_config()
github_config = _config_loader.get_github_config()
trello_config = _config_loader.get_trello_config()
migration_config = _config_loader.get_migration_config()

# Set up the var directory structure
root_dir = Path(__file__).parent.parent
var_dir = root_dir / "var"

var_dirs: dict[DirType, Path] = {
    "root": var_dir,
    "logs": var_dir / "logs",
    "results": var_dir / "results",
}

created_dirs = []
for dir_path in var_dirs.values():
    if not dir_path.exists():
        dir_path.mkdir(parents=True, exist_ok=True)
        created_dirs.append(f"Created directory: {dir_path}")

# Set up logging with rich
LOG_LEVEL: LogLevel = migration_config.get("log_level", "INFO")
log_file = var_dirs["logs"] / "migration.log"
logger = configure_logging(LOG_LEVEL, log_file)

for message in created_dirs:
    logger.debug(message)


def get_path(path_type: DirType) -> Path:
    """Get a specific path from var_dirs."""
    if path_type not in var_dirs:
        msg = f"Invalid path type: {path_type}"
        raise ValueError(msg)

    return var_dirs[path_type]


def validate_config(components: list[str] | None = None) -> bool:
    """Validate that the credentials needed by the selected components are set.

    Args:
        components: Components about to run; defaults to ``migration.components``

    Returns:
        True when nothing is missing, False otherwise (the missing variables are logged)

    """
    if components is None:
        components = list(migration_config.get("components", []))

    missing_vars = []
    required: list[tuple[str, dict[str, Any], list[str]]] = [
        ("CLUBHOUSE", dict(clubhouse_config), ["api_token"]),
    ]
    for component in components:
        match component:
            case "github":
                required.append(("GITHUB", dict(github_config), ["api_token", "repository"]))
            case "trello":
                required.append(("TRELLO", dict(trello_config), ["api_key", "token", "organization"]))
            case _:
                continue

    for section, values, keys in required:
        for key in keys:
            if not values.get(key):
                missing_vars.append(f"CHM_{section}_{key.upper()}")

    if missing_vars:
        logger.error(
            "Missing required configuration: %s", ", ".join(missing_vars),
        )
        return False

    return True


def update_from_cli_args(args: Any) -> None:
    """Update migration configuration from CLI arguments.

    Args:
        args: An object containing CLI arguments (typically from argparse)

    """
    if getattr(args, "dry_run", False):
        migration_config["dry_run"] = True
        logger.debug("Setting dry_run=True from CLI arguments")

    if getattr(args, "components", None):
        migration_config["components"] = list(args.components)
        logger.debug("Setting components=%s from CLI arguments", args.components)

    if getattr(args, "workers", None):
        migration_config["workers"] = dict.fromkeys(migration_config["workers"], args.workers)
        logger.debug("Setting workers=%s from CLI arguments", args.workers)

    if getattr(args, "issue_state", None):
        github_config["issue_state"] = args.issue_state
        logger.debug("Setting issue_state=%s from CLI arguments", args.issue_state)
