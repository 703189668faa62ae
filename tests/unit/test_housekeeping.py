"""Tests for the workspace housekeeping steps."""

import logging
from datetime import UTC, datetime, timedelta

import pytest

from clubhouse_migration.clients.exceptions import ApiError
from clubhouse_migration.migrations.housekeeping import Housekeeping
from clubhouse_migration.models import MigrationSetupError
from tests.utils.mock_factory import EPIC_DONE_STATE_ID, FakeClubhouse

pytestmark = pytest.mark.unit

NOW = datetime(2024, 6, 1, tzinfo=UTC)


def _housekeeping(clubhouse, options=None, **kwargs):
    return Housekeeping(clubhouse, options or {}, now=lambda: NOW, sleep=lambda _: None, **kwargs)


def _names(clubhouse):
    return [milestone["name"] for milestone in clubhouse.milestones]


def test_reorder_milestones_by_name_descending():
    clubhouse = FakeClubhouse()
    for name in ("DSS 1.4.0", "DSS 3.1.0", "DSS 2.3.0"):
        clubhouse.add_milestone(name)

    result = _housekeeping(clubhouse).reorder_milestones()

    assert _names(clubhouse) == ["DSS 3.1.0", "DSS 2.3.0", "DSS 1.4.0"]
    assert result.success is True


def test_reorder_already_ordered_skips_the_leading_move():
    clubhouse = FakeClubhouse()
    for name in ("DSS 3.1.0", "DSS 2.3.0", "DSS 1.4.0"):
        clubhouse.add_milestone(name)
    clubhouse.calls.clear()

    _housekeeping(clubhouse).reorder_milestones()

    assert _names(clubhouse) == ["DSS 3.1.0", "DSS 2.3.0", "DSS 1.4.0"]
    # The first milestone is already in front, only the relative moves are sent
    assert len(clubhouse.calls_to("update_milestone")) == 2


def test_rejected_move_means_already_ordered(caplog):
    class RejectingClubhouse(FakeClubhouse):
        def update_milestone(self, milestone_id, params):
            msg = "Clubhouse HTTP Error 400: Bad Request"
            raise ApiError(msg, status_code=400)

    clubhouse = RejectingClubhouse()
    for name in ("DSS 1.4.0", "DSS 3.1.0"):
        clubhouse.add_milestone(name)

    with caplog.at_level(logging.INFO):
        result = _housekeeping(clubhouse).reorder_milestones()

    assert result.success is True
    assert result.failed_count == 0
    assert "already ordered" in caplog.text


def test_epics_are_attached_to_version_milestones():
    clubhouse = FakeClubhouse()
    existing = clubhouse.add_milestone("DSS 2.3.0")
    with_milestone = clubhouse.add_epic("2.3.0 Enhancements")
    without = clubhouse.add_epic("3.1.0 Enhancements", state="done", completed_at_override="2024-01-01T00:00:00Z")
    clubhouse.add_epic("Roadmap")
    linked = clubhouse.add_epic("1.0.0 Enhancements", milestone_id=existing["id"])

    result = _housekeeping(clubhouse).reconcile_epics_to_milestones()

    created = clubhouse.calls_to("create_milestone")
    assert created == [{"name": "DSS 3.1.0", "state": "done", "completed_at_override": "2024-01-01T00:00:00Z"}]
    updates = dict(clubhouse.calls_to("update_epic"))
    assert updates[with_milestone["id"]] == {"milestone_id": existing["id"]}
    assert updates[without["id"]]["milestone_id"] == clubhouse.milestones[0]["id"]
    assert linked["id"] not in updates
    assert result.success is True
    assert _names(clubhouse) == ["DSS 3.1.0", "DSS 2.3.0"]


def test_custom_milestone_pattern():
    clubhouse = FakeClubhouse()
    epic = clubhouse.add_epic("Release 7")

    _housekeeping(clubhouse).reconcile_epics_to_milestones(r"^Release (?P<version>\d+)$", "R{version}")

    assert _names(clubhouse) == ["R7"]
    assert clubhouse.epics[epic["id"]]["milestone_id"] == clubhouse.milestones[0]["id"]


def test_close_done_epics():
    clubhouse = FakeClubhouse()
    done = clubhouse.add_epic("Done", completed=False, stats={"num_stories_done": 3, "num_stories_started": 0, "num_stories_unstarted": 0})
    clubhouse.add_epic("Started", completed=False, stats={"num_stories_done": 3, "num_stories_started": 1, "num_stories_unstarted": 0})
    clubhouse.add_epic("Empty", completed=False, stats={"num_stories_done": 0, "num_stories_started": 0, "num_stories_unstarted": 0})
    clubhouse.add_epic("Closed", completed=True, stats={"num_stories_done": 3})
    clubhouse.add_epic("Archived", archived=True, completed=False, stats={"num_stories_done": 3})

    result = _housekeeping(clubhouse).close_done_epics()

    assert clubhouse.calls_to("update_epic") == [(done["id"], {"epic_state_id": EPIC_DONE_STATE_ID})]
    assert result.success_count == 1


def test_close_done_epics_without_done_state():
    clubhouse = FakeClubhouse()
    clubhouse.epic_states = [state for state in clubhouse.epic_states if state["type"] != "done"]

    with pytest.raises(MigrationSetupError, match="Epic Finished state"):
        _housekeeping(clubhouse).close_done_epics()


def test_archive_completed_stories_and_epics():
    clubhouse = FakeClubhouse()
    old = (NOW - timedelta(days=40)).isoformat()
    recent = (NOW - timedelta(days=2)).isoformat()
    clubhouse.stories = {
        1: {"id": 1, "name": "old", "archived": False, "completed_at": old},
        2: {"id": 2, "name": "recent", "archived": False, "completed_at": recent},
        3: {"id": 3, "name": "open", "archived": False},
    }
    old_epic = clubhouse.add_epic("Old", completed=True, completed_at=old)
    clubhouse.add_epic("Recent", completed=True, completed_at=recent)
    clubhouse.add_epic("Open", completed=False)

    result = _housekeeping(clubhouse).archive_completed(timedelta(days=30), workers=2)

    assert [story_id for story_id, _ in clubhouse.calls_to("update_story")] == [1]
    assert clubhouse.stories[1]["archived"] is True
    assert clubhouse.calls_to("update_epic") == [(old_epic["id"], {"archived": True})]
    assert result.success_count == 2


def test_archive_by_prefix():
    clubhouse = FakeClubhouse()
    sprint = clubhouse.add_epic("Sprint 12")
    clubhouse.add_epic("Sprint 11", archived=True)
    clubhouse.add_epic("Roadmap")

    _housekeeping(clubhouse).archive_by_prefix("Sprint")

    assert clubhouse.calls_to("update_epic") == [(sprint["id"], {"archived": True})]


def test_dry_run_changes_nothing():
    clubhouse = FakeClubhouse()
    clubhouse.add_milestone("DSS 1.0.0")
    clubhouse.add_milestone("DSS 2.0.0")
    clubhouse.add_epic("3.0.0 Enhancements")
    clubhouse.add_epic("Sprint 1")
    options = {"close_done_epics": True, "milestones": True, "archive_prefixes": ["Sprint"], "archive_after_days": 1}

    result = _housekeeping(clubhouse, options, dry_run=True).run()

    assert result.success is True
    assert [call for call, _ in clubhouse.calls if call != "list_epics"] == []
    assert _names(clubhouse) == ["DSS 1.0.0", "DSS 2.0.0"]


def test_run_executes_enabled_steps_only():
    clubhouse = FakeClubhouse()
    clubhouse.add_milestone("DSS 1.0.0")
    clubhouse.add_milestone("DSS 2.0.0")
    clubhouse.add_epic("Sprint 1")

    result = _housekeeping(clubhouse, {"milestones": True}).run()

    assert result.success is True
    assert _names(clubhouse) == ["DSS 2.0.0", "DSS 1.0.0"]
    assert clubhouse.calls_to("update_epic") == []


class FailingEpicClubhouse(FakeClubhouse):
    """Rejects every update of the epics named in ``failing``."""

    def __init__(self, failing):
        super().__init__()
        self.failing = set(failing)

    def update_epic(self, epic_id, params):
        if self.epics[epic_id]["name"] in self.failing:
            msg = "Clubhouse HTTP Error 422: Unprocessable Entity"
            raise ApiError(msg, status_code=422)
        return super().update_epic(epic_id, params)


def test_failed_epic_archive_does_not_stop_the_others():
    clubhouse = FailingEpicClubhouse(["Old A"])
    old = (NOW - timedelta(days=40)).isoformat()
    clubhouse.stories = {1: {"id": 1, "name": "old", "archived": False, "completed_at": old}}
    clubhouse.add_epic("Old A", completed=True, completed_at=old)
    old_b = clubhouse.add_epic("Old B", completed=True, completed_at=old)

    result = _housekeeping(clubhouse).archive_completed(timedelta(days=30), workers=1)

    assert clubhouse.epics[old_b["id"]]["archived"] is True
    assert clubhouse.stories[1]["archived"] is True
    assert result.success_count == 2
    assert result.failed_count == 1
    assert result.success is False
    assert "Old A" in result.errors[0]


def test_failed_prefix_archive_is_counted():
    clubhouse = FailingEpicClubhouse(["Sprint 1"])
    clubhouse.add_epic("Sprint 1")
    sprint_2 = clubhouse.add_epic("Sprint 2")

    result = _housekeeping(clubhouse).archive_by_prefix("Sprint")

    assert clubhouse.epics[sprint_2["id"]]["archived"] is True
    assert (result.success_count, result.failed_count) == (1, 1)


def test_failed_milestone_link_does_not_stop_the_others():
    clubhouse = FailingEpicClubhouse(["1.0.0 Enhancements"])
    clubhouse.add_epic("1.0.0 Enhancements")
    linked = clubhouse.add_epic("2.0.0 Enhancements")

    result = _housekeeping(clubhouse, {"milestones": True}).run()

    assert clubhouse.epics[linked["id"]]["milestone_id"] is not None
    assert result.failed_count == 1
    assert result.success is False
