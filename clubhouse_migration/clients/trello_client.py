"""Trello REST v1 client."""

from typing import Any

import requests
from requests import Response

from clubhouse_migration.clients.http_client import RestClient
from clubhouse_migration.type_definitions import ApiPayload

TRELLO_API_URL = "https://api.trello.com/1"
ACTIONS_LIMIT = 1000


class TrelloClient(RestClient):
    """Read-only access to Trello boards, lists and cards.

    Authentication is passed as ``key``/``token`` query parameters on every call.
    """

    service_name = "Trello"

    def __init__(
        self,
        api_key: str | None = None,
        token: str | None = None,
        url: str = TRELLO_API_URL,
        session: requests.Session | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(url, session=session, **kwargs)
        self.auth_params = {"key": api_key, "token": token} if api_key else {}

    def _request(self, method: str, path: str, **kwargs: Any) -> Response:
        kwargs["params"] = {**self.auth_params, **(kwargs.get("params") or {})}
        return super()._request(method, path, **kwargs)

    def get_boards(self, organization: str) -> list[ApiPayload]:
        return self.get(f"/organizations/{organization}/boards")

    def get_board(self, board_id: str) -> ApiPayload:
        return self.get(f"/boards/{board_id}")

    def get_lists(self, board_id: str) -> list[ApiPayload]:
        return self.get(f"/boards/{board_id}/lists")

    def get_list(self, list_id: str) -> ApiPayload:
        return self.get(f"/lists/{list_id}")

    def get_cards(self, list_id: str) -> list[ApiPayload]:
        return self.get(f"/lists/{list_id}/cards")

    def get_card(self, card_id: str) -> ApiPayload:
        return self.get(f"/cards/{card_id}")

    def get_card_actions(self, card_id: str) -> list[ApiPayload]:
        """Full card history, comments included."""
        return self.get(f"/cards/{card_id}/actions", params={"filter": "all", "limit": ACTIONS_LIMIT})

    def get_card_checklists(self, card_id: str) -> list[ApiPayload]:
        return self.get(f"/cards/{card_id}/checklists")

    def get_card_attachments(self, card_id: str) -> list[ApiPayload]:
        return self.get(f"/cards/{card_id}/attachments")

    def get_card_cover(self, card: ApiPayload) -> ApiPayload | None:
        """The attachment used as cover image, when the card has one."""
        attachment_id = card.get("idAttachmentCover")
        if not attachment_id:
            return None
        return self.get(f"/cards/{card['id']}/attachments/{attachment_id}")

    def get_member(self, id_or_username: str) -> ApiPayload:
        return self.get(f"/members/{id_or_username}")
