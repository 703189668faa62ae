"""GitHub REST v3 client.

Only the issue-tracker endpoints the migration reads are covered.
"""

from collections.abc import Iterator
from typing import Any

import requests
from requests import Response

from clubhouse_migration.clients.http_client import HTTP_TOO_MANY_REQUESTS, RestClient
from clubhouse_migration.display import get_logger
from clubhouse_migration.type_definitions import ApiPayload

GITHUB_API_URL = "https://api.github.com"
PAGE_SIZE = 100

HTTP_FORBIDDEN = 403
HTTP_BAD_GATEWAY = 502

# Fragments GitHub puts in 403 bodies when throttling rather than denying access
_THROTTLE_MARKERS = ("abuse", "secondary rate limit", "rate limit exceeded")

logger = get_logger("github")


class GithubClient(RestClient):
    """Read-only access to the issues of a GitHub repository."""

    service_name = "GitHub"

    def __init__(
        self,
        api_token: str | None = None,
        url: str = GITHUB_API_URL,
        session: requests.Session | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(url, session=session, **kwargs)
        self.session.headers.update({"Accept": "application/vnd.github+json"})
        if api_token:
            self.session.headers["Authorization"] = f"token {api_token}"

    def _is_rate_limited(self, response: Response) -> bool:
        if response.status_code in {HTTP_TOO_MANY_REQUESTS, HTTP_BAD_GATEWAY}:
            return True
        if response.status_code != HTTP_FORBIDDEN:
            return False
        if response.headers.get("X-RateLimit-Remaining") == "0":
            return True
        text = response.text.lower() if response.text else ""
        return any(marker in text for marker in _THROTTLE_MARKERS)

    def _pages(self, path: str, params: dict[str, Any] | None = None) -> Iterator[list[ApiPayload]]:
        """Yield each page of a list endpoint, following ``Link: rel="next"``."""
        next_url: str | None = path
        next_params: dict[str, Any] | None = {"per_page": PAGE_SIZE, **(params or {})}
        while next_url:
            response = self._request("GET", next_url, params=next_params)
            yield response.json()
            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string
            next_params = None

    def get_repository(self, repository: str) -> ApiPayload:
        """Repository metadata, ``repository`` being ``owner/name``."""
        return self.get(f"/repos/{repository}")

    def iter_issue_pages(
        self, repository: str, state: str = "open", labels: list[str] | None = None,
    ) -> Iterator[list[ApiPayload]]:
        """Pages of issues (pull requests included, GitHub lists both)."""
        params: dict[str, Any] = {"state": state, "direction": "asc"}
        if labels:
            params["labels"] = ",".join(labels)
        yield from self._pages(f"/repos/{repository}/issues", params)

    def get_issue(self, repository: str, number: int) -> ApiPayload:
        return self.get(f"/repos/{repository}/issues/{number}")

    def get_issue_comments(self, repository: str, number: int) -> list[ApiPayload]:
        comments: list[ApiPayload] = []
        for page in self._pages(f"/repos/{repository}/issues/{number}/comments"):
            comments.extend(page)
        return comments

    def get_user(self, login: str) -> ApiPayload:
        """Full public profile (name and public email included)."""
        return self.get(f"/users/{login}")
