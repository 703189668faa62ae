"""Source user to Clubhouse member resolution.

Each source user is resolved at most once per run. Lookups for the same
user wait on the first caller's result; lookups for different users never
wait on each other's network calls.
"""

from collections.abc import Callable
from concurrent.futures import Future
from threading import Lock
from typing import Any

from clubhouse_migration.clients.exceptions import RateLimitError
from clubhouse_migration.clients.github_client import GithubClient
from clubhouse_migration.clients.trello_client import TrelloClient
from clubhouse_migration.display import get_logger
from clubhouse_migration.models.records import SourceUser
from clubhouse_migration.type_definitions import ApiPayload

type Member = ApiPayload


def _same(value: str | None, other: str | None) -> bool:
    return bool(value) and bool(other) and value.lower() == other.lower()  # type: ignore[union-attr]


class UserMapping:
    """Base resolver; subclasses provide the live profile lookups.

    Args:
        members: Clubhouse members (``GET /members``)
        users_mapping: Manual overrides, source login -> Clubhouse mention name

    """

    source_name = "source"
    match_email = True

    def __init__(self, members: list[Member], users_mapping: dict[str, str] | None = None) -> None:
        self.members = list(members)
        self.users_mapping = dict(users_mapping or {})
        self.logger = get_logger(f"{self.source_name}.users")
        self._lock = Lock()
        self._members_by_key: dict[str, Future[Member | None]] = {}
        self._names_by_key: dict[str, Future[str]] = {}

    def _memoize[T](self, cache: dict[str, Future[T]], key: str, compute: Callable[[], T]) -> T:
        with self._lock:
            cached = cache.get(key)
            if cached is None:
                future: Future[T] = Future()
                cache[key] = future
            else:
                future = cached
        owner = cached is None

        if owner:
            try:
                future.set_result(compute())
            except BaseException as e:
                # Failed lookups are not remembered, the next caller tries again
                with self._lock:
                    cache.pop(key, None)
                future.set_exception(e)
                raise
        return future.result()

    def resolve(self, user: SourceUser | None) -> Member | None:
        """Clubhouse member for a source user, or None when nobody matches."""
        if user is None or not user.key:
            return None
        return self._memoize(self._members_by_key, user.key, lambda: self._find_member(user))

    def member_id(self, user: SourceUser | None) -> str | None:
        member = self.resolve(user)
        return member["id"] if member else None

    def display_name(self, user: SourceUser) -> str:
        """Human readable name of a source user, the login when nothing better is known."""
        if user.name:
            return user.name
        if not user.key:
            return user.label
        return self._memoize(self._names_by_key, user.key, lambda: self._load_display_name(user.key))

    def _match(self, user: SourceUser) -> Member | None:
        """Scan the members once per criterion, strongest criterion first."""
        criteria: list[Callable[[dict[str, Any]], bool]] = []
        if self.match_email:
            criteria.append(lambda profile: _same(user.email, profile.get("email_address")))
        criteria.append(
            lambda profile: any(
                _same(source_value, profile.get(field))
                for source_value in (user.login, user.name)
                for field in ("mention_name", "name")
            ),
        )
        override = self.users_mapping.get(user.login or "")
        if override:
            criteria.append(lambda profile: _same(override, profile.get("mention_name")))

        for criterion in criteria:
            for member in self.members:
                if criterion(member.get("profile") or {}):
                    return member
        return None

    def _find_member(self, user: SourceUser) -> Member | None:
        member = self._match(user)
        if member is not None:
            return member

        try:
            profile = self._fetch_profile(user.key)
        except RateLimitError:
            raise
        except Exception as e:
            self.logger.debug("Could not fetch %s profile of %s: %s", self.source_name, user.key, e)
            profile = None

        if profile is not None:
            member = self._match(profile)
            if member is not None:
                return member

        known = profile or user
        self.logger.warning(
            "Missing %s->clubhouse user mapping for %s (%s) @%s",
            self.source_name, known.login or user.key, known.name, known.email,
        )
        return None

    def _load_display_name(self, key: str) -> str:
        try:
            profile = self._fetch_profile(key)
        except RateLimitError:
            raise
        except Exception as e:
            self.logger.debug("Could not fetch %s profile of %s: %s", self.source_name, key, e)
            return key
        if profile is None:
            return key
        return profile.name or profile.login or key

    def _fetch_profile(self, key: str) -> SourceUser | None:
        raise NotImplementedError


class GithubUserMapping(UserMapping):
    """GitHub logins to Clubhouse members, matching on email, login and name."""

    source_name = "github"

    def __init__(
        self, members: list[Member], github: GithubClient, users_mapping: dict[str, str] | None = None,
    ) -> None:
        super().__init__(members, users_mapping)
        self.github = github

    def _fetch_profile(self, key: str) -> SourceUser | None:
        return github_user(self.github.get_user(key))


class TrelloUserMapping(UserMapping):
    """Trello members to Clubhouse members.

    Trello does not expose email addresses, matching uses the username and
    full name only. Keys may be usernames or member ids.
    """

    source_name = "trello"
    match_email = False

    def __init__(
        self, members: list[Member], trello: TrelloClient, users_mapping: dict[str, str] | None = None,
    ) -> None:
        super().__init__(members, users_mapping)
        self.trello = trello

    def _fetch_profile(self, key: str) -> SourceUser | None:
        return trello_user(self.trello.get_member(key))


def github_user(payload: ApiPayload | None) -> SourceUser | None:
    if not payload:
        return None
    return SourceUser(
        login=payload.get("login"),
        name=payload.get("name") or None,
        email=payload.get("email") or None,
        id=str(payload["id"]) if payload.get("id") is not None else None,
    )


def trello_user(payload: ApiPayload | None) -> SourceUser | None:
    if not payload:
        return None
    return SourceUser(
        login=payload.get("username"),
        name=payload.get("fullName") or None,
        id=payload.get("id"),
    )
