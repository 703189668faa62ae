"""
Migration result models for tracking overall migration operations.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from clubhouse_migration.models.component_results import ComponentResult


class MigrationResult(BaseModel):
    """Represents the overall result of a run over several components."""

    components: dict[str, ComponentResult] = Field(default_factory=dict)
    overall: dict[str, Any] = Field(default_factory=dict)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        self.overall.setdefault("status", "success")
        self.overall.setdefault("start_time", datetime.now(tz=UTC).isoformat())
        self.overall.setdefault("timestamp", datetime.now(tz=UTC).strftime("%Y-%m-%d_%H-%M-%S"))

    @property
    def succeeded(self) -> bool:
        return self.overall.get("status") == "success"

    def record(self, name: str, result: ComponentResult) -> None:
        """Store a component result, failing the run when the component failed."""
        self.components[name] = result
        if not result.success:
            self.overall["status"] = "failed"

    def __getitem__(self, key: str) -> Any:
        """Support dictionary-style item access for top-level attributes."""
        if key == "components":
            return self.components
        if key == "overall":
            return self.overall
        return self.overall[key]

    def __contains__(self, key: str) -> bool:
        """Support 'in' operator for top-level attributes."""
        return key in ["components", "overall"] or key in self.overall
