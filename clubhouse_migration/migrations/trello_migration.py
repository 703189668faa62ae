"""Trello cards -> Clubhouse stories."""

import threading
from collections.abc import Iterator
from dataclasses import replace
from typing import Any

from clubhouse_migration.clients.clubhouse_client import ClubhouseClient
from clubhouse_migration.clients.trello_client import TrelloClient
from clubhouse_migration.mappings.user_mapping import TrelloUserMapping, UserMapping, trello_user
from clubhouse_migration.migrations.base_migration import RecordMigration
from clubhouse_migration.models import ComponentResult, MigrationSetupError
from clubhouse_migration.models.clubhouse import (
    CreateLabelParams,
    CreateLinkedFileParams,
    CreateStoryParams,
    CreateTaskParams,
    StoryType,
)
from clubhouse_migration.models.records import (
    SourceComment,
    SourceLabel,
    SourceRecord,
    SourceUser,
    parse_timestamp,
)
from clubhouse_migration.models.trello import ListMode, TrelloBoardParams, TrelloMigrationParams
from clubhouse_migration.type_definitions import ApiPayload
from clubhouse_migration.utils.content import cover_image, trello_color

BUGS_LABELS = frozenset({"bug", "type:bug", "type: bug"})
REVIEW_LABELS = frozenset(
    label.lower()
    for label in (
        "verified",
        "__fixed",
        "fixed",
        "status: fixed (to verify)",
        "verified - keeping open because needs test",
        "[ qa ] - to verify",
        "fixed (to verify)",
        "to verify (old)",
        "Done (to verify)",
    )
)
REVIEW_STATE = "Ready for Review"
COMMENT_ACTION = "commentcard"


def card_to_record(card: ApiPayload, board: ApiPayload, trello_list: ApiPayload) -> SourceRecord:
    """Immutable view of a card; timestamps and reporter come later from its history."""
    return SourceRecord(
        source="trello",
        id=card["id"],
        title=card.get("name") or "",
        body=card.get("desc") or "",
        url=card.get("url") or "",
        closed=bool(card.get("closed")),
        labels=tuple(
            SourceLabel(name=label.get("name") or "", color=label.get("color"))
            for label in card.get("labels") or []
        ),
        assignees=tuple(SourceUser(id=member_id) for member_id in card.get("idMembers") or []),
        group=trello_list.get("name"),
        extra={"board": board.get("name") or "", "list": trello_list.get("name") or "", "card": card},
    )


class TrelloMigration(RecordMigration):
    """Migrate the cards of every configured board of a Trello organization.

    Lists become workflow states, labels or epics depending on the board
    settings; see :class:`~clubhouse_migration.models.trello.TrelloBoardParams`.
    """

    component_name = "trello"
    source_name = "trello"
    source_label = "Trello"
    record_kind = "card"
    prefix_unknown_comment_authors = True

    def __init__(
        self,
        clubhouse: ClubhouseClient,
        project_name: str,
        trello: TrelloClient,
        organization: str,
        params: TrelloMigrationParams | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(clubhouse, project_name, **kwargs)
        self.trello = trello
        self.organization = organization
        self.params = params or TrelloMigrationParams()
        self.review_state_id: int | None = None
        # Trello attachment id -> Clubhouse linked file id, kept across retries of a card
        self._linked_files: dict[str, int] = {}
        self._linked_files_lock = threading.Lock()

    def setup(self) -> None:
        if self._ready:
            return
        super().setup()
        self.review_state_id = self.state_id(REVIEW_STATE)
        for board in self.params.boards:
            if board.migrate and board.migrate_lists_as is ListMode.STATE:
                for state_name in board.list_state_mapping.values():
                    self.state_id(state_name)

    def create_user_mapping(self, members: list[ApiPayload]) -> UserMapping:
        return TrelloUserMapping(members, self.trello, self.params.users_mapping)

    def list_record_pages(self) -> Iterator[list[SourceRecord]]:
        for board in self.trello.get_boards(self.organization):
            board_params = self.params.board(board.get("name") or "")
            if board.get("closed") or not board_params.migrate:
                self.logger.info("Skipping closed or ignored board: %s", board.get("name"))
                continue
            for trello_list in self.trello.get_lists(board["id"]):
                list_name = trello_list.get("name") or ""
                if list_name in self.params.ignored_lists:
                    self.logger.debug("Skipping ignored list: %s", list_name)
                    continue
                if board_params.migrate_lists_as is ListMode.STATE and list_name not in board_params.list_state_mapping:
                    msg = f"Missing mapping for {list_name} in 'list_state_mapping' for board {board_params.name}"
                    raise MigrationSetupError(msg)
                cards = self.trello.get_cards(trello_list["id"])
                yield [card_to_record(card, board, trello_list) for card in cards]

    def migrate_card(self, card_id: str) -> ComponentResult:
        """Migrate a single card, whatever its board settings."""
        card = self.trello.get_card(card_id)
        board = self.trello.get_board(card["idBoard"])
        trello_list = self.trello.get_list(card["idList"])
        return self.migrate_single(card_to_record(card, board, trello_list))

    def _board(self, record: SourceRecord) -> TrelloBoardParams:
        return self.params.board(record.extra["board"])

    def _state_for(self, record: SourceRecord) -> int | None:
        if record.closed:
            return self.completed_state_id

        board = self._board(record)
        if board.migrate_lists_as is ListMode.STATE:
            state_name = board.list_state_mapping.get(record.extra["list"])
            if state_name is None:
                msg = f"Missing mapping for {record.extra['list']} in 'list_state_mapping' for board {board.name}"
                raise MigrationSetupError(msg)
            return self.state_id(state_name)

        if any(label.name.lower() in REVIEW_LABELS for label in record.labels):
            return self.review_state_id

        return None

    def build_story(self, record: SourceRecord) -> CreateStoryParams:
        """Complete the record with its action history, then build the story."""
        actions = sorted(
            self.trello.get_card_actions(record.id),
            key=lambda action: parse_timestamp(action.get("date")).timestamp() if action.get("date") else 0.0,
        )
        first = parse_timestamp(actions[0].get("date")) if actions else None
        last = parse_timestamp(actions[-1].get("date")) if actions else None
        state_id = self._state_for(record)
        enriched = replace(
            record,
            created_at=first,
            updated_at=last,
            closed_at=last if state_id is not None and state_id == self.completed_state_id else None,
            author=trello_user(actions[0].get("memberCreator")) if actions else None,
            extra={**record.extra, "actions": actions, "workflow_state_id": state_id},
        )
        return super().build_story(enriched)

    # Transform hooks

    def story_type(self, record: SourceRecord) -> StoryType:
        return "bug" if any(label.name.lower() in BUGS_LABELS for label in record.labels) else "feature"

    def workflow_state_id(self, record: SourceRecord) -> int | None:
        return record.extra.get("workflow_state_id")

    def labels(self, record: SourceRecord) -> list[CreateLabelParams]:
        labels = [
            CreateLabelParams(name=self.params.map_label(label.name), color=trello_color(label.color))
            for label in record.labels
            if label.name.lower() not in BUGS_LABELS
        ]
        if self._board(record).migrate_lists_as is ListMode.LABEL:
            labels.append(CreateLabelParams(name=self.params.map_label(record.extra["list"])))
        return labels

    def epic_name(self, record: SourceRecord) -> str | None:
        board = self._board(record)
        epic_name = record.extra["board"]
        for label in record.labels:
            if label.name in board.migrate_labels_in:
                epic_name = board.migrate_labels_in[label.name]
                break
        if board.migrate_lists_as is ListMode.EPIC:
            epic_name = f"{epic_name} - {record.extra['list']}"
        return epic_name

    def description(self, record: SourceRecord) -> str:
        cover = self.trello.get_card_cover(record.extra["card"])
        if cover and cover.get("url"):
            return cover_image(cover.get("name"), cover["url"]) + record.body
        return record.body

    def fetch_comments(self, record: SourceRecord) -> list[SourceComment]:
        return [
            SourceComment(
                text=(action.get("data") or {}).get("text") or "",
                author=trello_user(action.get("memberCreator")),
                created_at=parse_timestamp(action.get("date")),
            )
            for action in record.extra.get("actions", [])
            if (action.get("type") or "").lower() == COMMENT_ACTION
        ]

    def tasks(self, record: SourceRecord) -> list[CreateTaskParams]:
        tasks = []
        for checklist in self.trello.get_card_checklists(record.id):
            for item in sorted(checklist.get("checkItems") or [], key=lambda item: item.get("pos") or 0):
                tasks.append(
                    CreateTaskParams(
                        description=item.get("name") or "",
                        complete=(item.get("state") or "").lower() == "complete",
                    ),
                )
        return tasks

    def linked_files(self, record: SourceRecord) -> list[int]:
        """Linked files for the card attachments, created once per attachment."""
        linked_file_ids = []
        for attachment in self.trello.get_card_attachments(record.id):
            with self._linked_files_lock:
                existing = self._linked_files.get(attachment["id"])
            if existing is not None:
                linked_file_ids.append(existing)
                continue
            uploader = SourceUser(id=attachment["idMember"]) if attachment.get("idMember") else None
            params = CreateLinkedFileParams(
                name=attachment.get("name") or attachment.get("url") or "attachment",
                url=attachment["url"],
                size=attachment.get("bytes"),
                description=f"Migrated from Trello attachment {attachment['id']}",
                uploader_id=self.users.member_id(uploader),
            )
            if self.dry_run:
                self.logger.info("Dry run: would link file %s", params.name)
                continue
            linked_file_id = self.clubhouse.create_linked_file(params)["id"]
            with self._linked_files_lock:
                self._linked_files[attachment["id"]] = linked_file_id
            linked_file_ids.append(linked_file_id)
        return linked_file_ids
