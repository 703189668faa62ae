"""API clients package for the Clubhouse migration."""

from clubhouse_migration.clients.clubhouse_client import ClubhouseClient
from clubhouse_migration.clients.github_client import GithubClient
from clubhouse_migration.clients.trello_client import TrelloClient

__all__ = ["ClubhouseClient", "GithubClient", "TrelloClient"]
