"""Persist run results as JSON, handling Pydantic models."""

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from clubhouse_migration import config
from clubhouse_migration.models.migration_error import MigrationError


def _json_default(value: Any) -> Any:
    """Best-effort encoder for non-JSON-native objects."""
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return str(value)


def save_results(
    data: Any,
    filename: Path | str,
    directory: Path | str | None = None,
    indent: int = 2,
) -> Path:
    """Save data to a JSON file in the results directory.

    Args:
        data: The data to save (Pydantic model or any JSON-serializable data)
        filename: Name of the file to save; directories in it are ignored
        directory: Directory to save to (default: config.get_path("results"))
        indent: JSON indentation level

    Returns:
        Path of the written file

    Raises:
        MigrationError: If saving fails

    """
    directory = Path(directory) if directory is not None else config.get_path("results")
    filepath = directory / Path(filename).name
    filepath.parent.mkdir(parents=True, exist_ok=True)

    try:
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")

        with filepath.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False, default=_json_default)
    except (OSError, TypeError, ValueError) as e:
        msg = f"Failed to save data to {filepath}"
        raise MigrationError(msg) from e

    config.logger.info("Saved data to %s", filepath)
    return filepath
