"""Tests for the Trello cards pipeline."""

import pytest

from clubhouse_migration.clients.exceptions import RateLimitError
from clubhouse_migration.migrations.trello_migration import TrelloMigration
from clubhouse_migration.models import MigrationSetupError
from clubhouse_migration.models.trello import ListMode, TrelloBoardParams, TrelloMigrationParams
from tests.utils.mock_factory import (
    COMPLETED_STATE_ID,
    REVIEW_STATE_ID,
    UNSCHEDULED_STATE_ID,
    FakeClubhouse,
    FakeTrello,
)

pytestmark = pytest.mark.unit

ALICE = {"id": "t-alice", "username": "alice", "fullName": "Alice L."}
ZED = {"id": "t-zed", "username": "zed", "fullName": "Zed Zebra"}


def _params(**overrides):
    config = {
        "boards": [
            {
                "name": "Roadmap",
                "migrate": True,
                "migrate_lists_as": "STATE",
                "list_state_mapping": {"To Do": "Unscheduled", "Done": "Completed"},
            },
            {"name": "Support", "migrate": True, "migrate_lists_as": "label"},
            {"name": "Ops", "migrate": True, "migrate_lists_as": "epic"},
        ],
        "ignored_lists": ["Templates"],
        "labels_mapping": {"prio": "priority"},
    }
    config.update(overrides)
    return TrelloMigrationParams.from_config(config)


def _migration(clubhouse, trello, params=None, **kwargs):
    return TrelloMigration(clubhouse, "Product", trello, "acme", params or _params(), sleep=lambda _: None, **kwargs)


def _actions(card_id, *entries):
    return [
        {"id": f"{card_id}-a{i}", "type": kind, "date": date, "memberCreator": member, "data": data}
        for i, (kind, date, member, data) in enumerate(entries)
    ]


@pytest.fixture
def roadmap(trello):
    board = trello.add_board("Roadmap")
    todo = trello.add_list(board, "To Do")
    card = trello.add_card(
        todo,
        "c1",
        "Fix login",
        desc="Login is broken",
        labels=[{"name": "bug", "color": "red"}, {"name": "prio", "color": "green"}],
        idAttachmentCover="att1",
    )
    trello.actions["c1"] = _actions(
        "c1",
        ("updateCard", "2020-01-03T00:00:00.000Z", ALICE, {}),
        ("createCard", "2020-01-01T00:00:00.000Z", ALICE, {}),
        ("commentCard", "2020-01-02T00:00:00.000Z", ZED, {"text": "hi"}),
    )
    trello.checklists["c1"] = [
        {
            "checkItems": [
                {"name": "second", "pos": 2048, "state": "complete"},
                {"name": "first", "pos": 1024, "state": "incomplete"},
            ],
        },
    ]
    trello.attachments["c1"] = [
        {"id": "att1", "name": "shot.png", "url": "https://trello.example.com/shot.png", "bytes": 10, "idMember": "t-alice"},
    ]
    trello.members["t-alice"] = ALICE
    return board


def test_card_in_state_mode_board(clubhouse, trello, roadmap):
    result = _migration(clubhouse, trello).run()

    assert result.success is True
    [story] = clubhouse.calls_to("create_story")
    assert story["external_id"] == "trello-c1"
    assert story["story_type"] == "bug"
    assert story["workflow_state_id"] == UNSCHEDULED_STATE_ID
    assert story["labels"] == [{"name": "priority", "color": "#61bd4f"}]
    assert story["created_at"].startswith("2020-01-01")
    assert story["updated_at"].startswith("2020-01-03")
    assert "completed_at_override" not in story
    assert story["requested_by_id"] == "m-alice"
    assert story["description"].startswith("![shot.png](https://trello.example.com/shot.png)\n\nLogin is broken")
    assert "imported from Trello card [#c1](https://trello.com/c/c1)" in story["description"]
    assert story["comments"] == [{"text": "**Zed Zebra:** hi", "created_at": "2020-01-02T00:00:00Z"}]
    assert story["tasks"] == [
        {"description": "first", "complete": False},
        {"description": "second", "complete": True},
    ]
    [linked_file] = clubhouse.linked_files
    assert story["linked_file_ids"] == [linked_file["id"]]
    assert linked_file["uploader_id"] == "m-alice"
    assert linked_file["description"] == "Migrated from Trello attachment att1"
    assert [payload["name"] for payload in clubhouse.calls_to("create_epic")] == ["Roadmap"]


def test_retried_card_reuses_its_linked_files(trello, roadmap):
    class ThrottledOnceClubhouse(FakeClubhouse):
        throttled = False

        def create_story(self, params):
            if not self.throttled:
                self.throttled = True
                msg = "Clubhouse HTTP Error 429: Too Many Requests"
                raise RateLimitError(msg, status_code=429)
            return super().create_story(params)

    clubhouse = ThrottledOnceClubhouse()

    result = _migration(clubhouse, trello).run()

    assert result.success_count == 1
    [linked_file] = clubhouse.linked_files
    [story] = clubhouse.calls_to("create_story")
    assert story["linked_file_ids"] == [linked_file["id"]]


def test_archived_card_is_completed_at_last_action(clubhouse, trello):
    board = trello.add_board("Roadmap")
    done = trello.add_list(board, "Done")
    trello.add_card(done, "c2", "Old", closed=True)
    trello.actions["c2"] = _actions(
        "c2",
        ("createCard", "2020-02-01T00:00:00.000Z", ALICE, {}),
        ("updateCard", "2020-02-05T00:00:00.000Z", ALICE, {}),
    )

    _migration(clubhouse, trello).run()

    [story] = clubhouse.calls_to("create_story")
    assert story["workflow_state_id"] == COMPLETED_STATE_ID
    assert story["completed_at_override"].startswith("2020-02-05")


def test_label_mode_adds_list_label_and_review_state(clubhouse, trello):
    board = trello.add_board("Support")
    inbox = trello.add_list(board, "Inbox")
    trello.add_card(inbox, "c3", "Needs check", labels=[{"name": "Fixed", "color": "blue"}])

    _migration(clubhouse, trello).run()

    [story] = clubhouse.calls_to("create_story")
    assert story["story_type"] == "feature"
    assert story["workflow_state_id"] == REVIEW_STATE_ID
    assert story["labels"] == [{"name": "Fixed", "color": "#0079bf"}, {"name": "Inbox"}]
    assert "created_at" not in story


def test_epic_mode_names_epic_after_board_and_list(clubhouse, trello):
    board = trello.add_board("Ops")
    doing = trello.add_list(board, "Doing")
    trello.add_card(doing, "c4", "Deploy")

    _migration(clubhouse, trello).run()

    assert [payload["name"] for payload in clubhouse.calls_to("create_epic")] == ["Ops - Doing"]
    assert "workflow_state_id" not in clubhouse.calls_to("create_story")[0]


def test_labels_can_select_the_epic(clubhouse, trello):
    params = _params(
        boards=[
            {"name": "Support", "migrate": True, "migrate_labels_in": {"Billing": "Billing epic"}},
        ],
    )
    board = trello.add_board("Support")
    inbox = trello.add_list(board, "Inbox")
    trello.add_card(inbox, "c5", "Invoice", labels=[{"name": "Billing", "color": None}])

    _migration(clubhouse, trello, params).run()

    assert [payload["name"] for payload in clubhouse.calls_to("create_epic")] == ["Billing epic"]


def test_closed_unconfigured_boards_and_ignored_lists_are_skipped(clubhouse, trello):
    closed = trello.add_board("Support", closed=True)
    trello.add_card(trello.add_list(closed, "Inbox"), "x1", "closed board")
    other = trello.add_board("Random")
    trello.add_card(trello.add_list(other, "Inbox"), "x2", "not configured")
    ops = trello.add_board("Ops")
    trello.add_card(trello.add_list(ops, "Templates"), "x3", "template")
    trello.add_card(trello.add_list(ops, "Doing"), "x4", "kept")

    result = _migration(clubhouse, trello).run()

    assert result.total_count == 1
    assert [story["external_id"] for story in clubhouse.calls_to("create_story")] == ["trello-x4"]


def test_missing_list_mapping_fails_before_any_story(clubhouse, trello):
    board = trello.add_board("Roadmap")
    trello.add_card(trello.add_list(board, "To Do"), "y1", "fine")
    trello.add_card(trello.add_list(board, "Blocked"), "y2", "unmapped")

    with pytest.raises(MigrationSetupError, match="Missing mapping for Blocked"):
        _migration(clubhouse, trello).run()
    assert clubhouse.calls_to("create_story") == []


def test_mapping_to_unknown_state_is_a_setup_failure(clubhouse, trello):
    params = _params(
        boards=[{"name": "Roadmap", "migrate": True, "migrate_lists_as": "state", "list_state_mapping": {"To Do": "Nope"}}],
    )

    with pytest.raises(MigrationSetupError, match="Nope"):
        _migration(clubhouse, trello, params).run()


def test_dry_run_skips_linked_files(clubhouse, trello, roadmap):
    _migration(clubhouse, trello, dry_run=True).run()

    assert clubhouse.linked_files == []
    assert clubhouse.calls_to("create_story") == []


def test_migrate_single_card(clubhouse, trello, roadmap):
    result = _migration(clubhouse, trello).migrate_card("c1")

    assert result.success_count == 1
    assert clubhouse.calls_to("create_story")[0]["external_id"] == "trello-c1"


def test_state_mode_requires_a_mapping():
    with pytest.raises(MigrationSetupError, match="list_state_mapping"):
        TrelloMigrationParams.from_config({"boards": [{"name": "B", "migrate": True, "migrate_lists_as": "state"}]})


def test_board_params_defaults_and_lookup():
    params = _params()

    assert params.board("roadmap").migrate_lists_as is ListMode.STATE
    assert params.board("Unknown") == TrelloBoardParams(name="Unknown")
    assert params.map_label("prio") == "priority"
    assert params.map_label("other") == "other"
