"""Component result models for tracking migration operations."""

from typing import Any

from pydantic import BaseModel, Field


class ComponentResult(BaseModel):
    """Represents the result of a migration component."""

    success: bool = False
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    dry_run: bool = False
    success_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    total_count: int = 0
    timed_out: bool = False

    def add_error(self, error: str) -> None:
        """Add an error message to the errors list."""
        self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        """Add a warning message to the warnings list."""
        self.warnings.append(warning)

    def merge(self, other: "ComponentResult") -> None:
        """Fold the counters and messages of a sub-step into this result."""
        self.success_count += other.success_count
        self.skipped_count += other.skipped_count
        self.failed_count += other.failed_count
        self.total_count += other.total_count
        self.timed_out = self.timed_out or other.timed_out
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def __setitem__(self, key: str, value: Any) -> None:
        """Support dictionary-style item assignment."""
        self.details[key] = value

    def __getitem__(self, key: str) -> Any:
        """Support dictionary-style item access."""
        return self.details[key]

    def __contains__(self, key: str) -> bool:
        """Support 'in' operator."""
        return key in self.details
