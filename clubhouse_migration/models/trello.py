"""Validated Trello migration settings."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from clubhouse_migration.models.migration_error import MigrationSetupError


class ListMode(StrEnum):
    """How the lists of a board are carried over."""

    STATE = "state"
    LABEL = "label"
    EPIC = "epic"


class TrelloBoardParams(BaseModel):
    """Per-board options.

    Boards absent from the configuration are not migrated and treat their
    lists as labels.
    """

    name: str
    migrate: bool = False
    migrate_lists_as: ListMode = Field(default=ListMode.LABEL)
    migrate_labels_in: dict[str, str] = Field(default_factory=dict)
    list_state_mapping: dict[str, str] = Field(default_factory=dict)

    @field_validator("migrate_lists_as", mode="before")
    @classmethod
    def _lower_mode(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _state_mode_needs_mapping(self) -> "TrelloBoardParams":
        if self.migrate and self.migrate_lists_as is ListMode.STATE and not self.list_state_mapping:
            msg = f"Missing 'list_state_mapping' for board {self.name}"
            raise ValueError(msg)
        return self


class TrelloMigrationParams(BaseModel):
    """The ``trello`` configuration section, minus credentials."""

    model_config = ConfigDict(extra="ignore")

    boards: list[TrelloBoardParams] = Field(default_factory=list)
    ignored_lists: list[str] = Field(default_factory=list)
    labels_mapping: dict[str, str] = Field(default_factory=dict)
    users_mapping: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "TrelloMigrationParams":
        """Validate a raw configuration section, raising a setup error on bad input."""
        try:
            return cls.model_validate(config)
        except ValidationError as e:
            msg = f"Invalid Trello configuration: {e}"
            raise MigrationSetupError(msg) from e

    def board(self, name: str) -> TrelloBoardParams:
        """Options for a board, matched case-insensitively by name."""
        for params in self.boards:
            if params.name.lower() == name.lower():
                return params
        return TrelloBoardParams(name=name)

    def map_label(self, name: str) -> str:
        return self.labels_mapping.get(name, name)
