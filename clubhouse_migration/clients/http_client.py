"""Shared requests plumbing for the REST clients.

Each client subclasses :class:`RestClient`, which owns a ``requests.Session``
and turns HTTP failures into the exceptions of ``clients.exceptions``.
"""

from typing import Any

import requests
from requests import Response

from clubhouse_migration.clients.exceptions import (
    ApiError,
    AuthenticationError,
    ClientConnectionError,
    RateLimitError,
    ResourceNotFoundError,
)
from clubhouse_migration.display import get_logger

HTTP_BAD_REQUEST_MIN = 400
HTTP_NO_CONTENT = 204
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429

DEFAULT_TIMEOUT = 60

logger = get_logger("http")


class RestClient:
    """Minimal JSON REST client bound to one base URL."""

    service_name = "REST"

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Response:
        """Send a request and raise the mapped exception on failure."""
        url = self._url(path)
        kwargs.setdefault("timeout", self.timeout)
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.ConnectionError as e:
            msg = f"Failed to connect to {self.service_name} at {url}: {e}"
            raise ClientConnectionError(msg) from e
        except requests.exceptions.Timeout as e:
            msg = f"{self.service_name} request timed out: {method} {url}"
            raise ClientConnectionError(msg) from e

        self._check_response(response)
        return response

    def _is_rate_limited(self, response: Response) -> bool:
        """Whether a failed response means "slow down and retry later"."""
        return response.status_code == HTTP_TOO_MANY_REQUESTS

    def _check_response(self, response: Response) -> None:
        if response.status_code < HTTP_BAD_REQUEST_MIN:
            return

        error_msg = f"{self.service_name} HTTP Error {response.status_code}: {response.reason}"
        detail = _error_detail(response)
        if detail:
            error_msg = f"{error_msg} - {detail}"

        if self._is_rate_limited(response):
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                error_msg,
                status_code=response.status_code,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code == HTTP_NOT_FOUND:
            raise ResourceNotFoundError(error_msg)
        if response.status_code in {401, 403}:
            raise AuthenticationError(error_msg)
        raise ApiError(error_msg, status_code=response.status_code)

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return _json(self._request("GET", path, params=params))

    def post(self, path: str, payload: Any = None) -> Any:
        return _json(self._request("POST", path, json=payload))

    def put(self, path: str, payload: Any = None) -> Any:
        return _json(self._request("PUT", path, json=payload))

    def delete(self, path: str, payload: Any = None) -> None:
        self._request("DELETE", path, json=payload)


def _json(response: Response) -> Any:
    if response.status_code == HTTP_NO_CONTENT or not response.content:
        return None
    return response.json()


def _error_detail(response: Response) -> str:
    """Best-effort message from an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] if response.text else ""
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body.get("errors") or "")
    return ""
