"""Models package for data structures used in the application."""

from clubhouse_migration.models.component_results import ComponentResult
from clubhouse_migration.models.migration_error import MigrationError, MigrationSetupError
from clubhouse_migration.models.migration_results import MigrationResult
from clubhouse_migration.models.records import SourceComment, SourceLabel, SourceRecord, SourceUser

__all__ = [
    "ComponentResult",
    "MigrationError",
    "MigrationResult",
    "MigrationSetupError",
    "SourceComment",
    "SourceLabel",
    "SourceRecord",
    "SourceUser",
]
