"""Find-or-create of Clubhouse epics by name."""

import threading

from clubhouse_migration.clients.clubhouse_client import ClubhouseClient
from clubhouse_migration.display import get_logger
from clubhouse_migration.models.clubhouse import CreateEpicParams
from clubhouse_migration.type_definitions import ApiPayload

logger = get_logger("epics")


class EpicRegistry:
    """Epics of the workspace, keyed by name.

    The lookup and the creation happen under one lock, so concurrent tasks
    asking for the same missing epic create it exactly once. The epic list is
    fetched on first use and lives as long as the registry.
    """

    def __init__(self, client: ClubhouseClient, *, dry_run: bool = False) -> None:
        self._client = client
        self._dry_run = dry_run
        self._lock = threading.Lock()
        self._epics: dict[str, ApiPayload] | None = None

    def _load(self) -> dict[str, ApiPayload]:
        epics: dict[str, ApiPayload] = {}
        for epic in self._client.list_epics():
            epics.setdefault(epic["name"], epic)
        logger.debug("Loaded %d epics", len(epics))
        return epics

    def get_or_create(self, name: str) -> ApiPayload | None:
        """Epic named ``name``, created when missing.

        Returns None in dry-run mode when the epic does not exist yet.
        """
        with self._lock:
            if self._epics is None:
                self._epics = self._load()
            epic = self._epics.get(name)
            if epic is not None:
                return epic
            if self._dry_run:
                logger.info("Dry run: would create epic %s", name)
                return None
            epic = self._client.create_epic(CreateEpicParams(name=name))
            self._epics[name] = epic
            logger.info("Created epic %s", name)
            return epic

    def __len__(self) -> int:
        with self._lock:
            return len(self._epics or {})
