"""Clubhouse REST v3 client.

Methods take the pydantic request models of ``models.clubhouse`` and return
the decoded JSON responses.
"""

from typing import Any

import requests

from clubhouse_migration.clients.http_client import RestClient
from clubhouse_migration.models.clubhouse import (
    CreateEpicParams,
    CreateLinkedFileParams,
    CreateMilestoneParams,
    CreateStoryParams,
    SearchStoriesParams,
    UpdateEpicParams,
    UpdateMilestoneParams,
    UpdateStoriesParams,
    UpdateStoryParams,
)
from clubhouse_migration.type_definitions import ApiPayload

CLUBHOUSE_API_URL = "https://api.clubhouse.io/api/v3"


class ClubhouseClient(RestClient):
    """Target workspace access."""

    service_name = "Clubhouse"

    def __init__(
        self,
        api_token: str | None = None,
        url: str = CLUBHOUSE_API_URL,
        session: requests.Session | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(url, session=session, **kwargs)
        self.session.headers.update({"Content-Type": "application/json"})
        if api_token:
            self.session.headers["Clubhouse-Token"] = api_token

    # Projects and workflows

    def list_projects(self) -> list[ApiPayload]:
        return self.get("/projects")

    def get_team(self, team_id: int) -> ApiPayload:
        return self.get(f"/teams/{team_id}")

    def get_epic_workflow(self) -> ApiPayload:
        return self.get("/epic-workflow")

    def list_members(self) -> list[ApiPayload]:
        return self.get("/members")

    # Stories

    def search_stories(self, params: SearchStoriesParams) -> list[ApiPayload]:
        return self.post("/stories/search", params.to_payload())

    def create_story(self, params: CreateStoryParams) -> ApiPayload:
        return self.post("/stories", params.to_payload())

    def update_story(self, story_id: int, params: UpdateStoryParams) -> ApiPayload:
        return self.put(f"/stories/{story_id}", params.to_payload())

    def update_stories(self, params: UpdateStoriesParams) -> list[ApiPayload]:
        return self.put("/stories/bulk", params.to_payload())

    def delete_stories(self, story_ids: list[int]) -> None:
        self.delete("/stories/bulk", {"story_ids": story_ids})

    # Epics

    def list_epics(self) -> list[ApiPayload]:
        return self.get("/epics")

    def create_epic(self, params: CreateEpicParams) -> ApiPayload:
        return self.post("/epics", params.to_payload())

    def update_epic(self, epic_id: int, params: UpdateEpicParams) -> ApiPayload:
        return self.put(f"/epics/{epic_id}", params.to_payload())

    def delete_epic(self, epic_id: int) -> None:
        self.delete(f"/epics/{epic_id}")

    # Milestones

    def list_milestones(self) -> list[ApiPayload]:
        return self.get("/milestones")

    def create_milestone(self, params: CreateMilestoneParams) -> ApiPayload:
        return self.post("/milestones", params.to_payload())

    def update_milestone(self, milestone_id: int, params: UpdateMilestoneParams) -> ApiPayload:
        return self.put(f"/milestones/{milestone_id}", params.to_payload())

    def delete_milestone(self, milestone_id: int) -> None:
        self.delete(f"/milestones/{milestone_id}")

    # Labels and files

    def list_labels(self) -> list[ApiPayload]:
        return self.get("/labels")

    def delete_label(self, label_id: int) -> None:
        self.delete(f"/labels/{label_id}")

    def create_linked_file(self, params: CreateLinkedFileParams) -> ApiPayload:
        return self.post("/linked-files", params.to_payload())
