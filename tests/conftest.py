"""Shared pytest fixtures and configuration for all tests."""

import os
from collections.abc import Generator
from pathlib import Path
from typing import cast

import pytest
from _pytest.config import Config

# Must be set before clubhouse_migration.config is imported by any test module
os.environ["CHM_TEST_MODE"] = "true"
os.environ.setdefault("CHM_CONFIG_FILE", str(Path(__file__).parent / "fixtures" / "config.yaml"))

from tests.utils.mock_factory import (  # noqa: E402
    FakeClubhouse,
    FakeGithub,
    FakeTrello,
    create_mock_clubhouse_client,
)


def pytest_configure(config: Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark a test as a unit test")
    config.addinivalue_line(
        "markers",
        "integration: mark a test as an integration test",
    )
    config.addinivalue_line("markers", "slow: mark a test as slow-running")


def _env_flag(name: str, default: bool = False) -> bool:
    """Read boolean environment flag (true/false)."""
    val = os.environ.get(name, "true" if default else "false").strip().lower()
    return val in {"1", "true", "yes", "on"}


def pytest_collection_modifyitems(config: Config, items: list[pytest.Item]) -> None:
    """Apply default skipping for non-unit tests.

    - Integration tests are skipped unless CHM_RUN_INTEGRATION=true; they talk
      to the real services with the credentials of the environment.
    - Unmarked tests are skipped by default to keep CI stable; mark them
      appropriately or set CHM_RUN_ALL_TESTS=true.
    """
    run_all = _env_flag("CHM_RUN_ALL_TESTS", False)
    run_integration = _env_flag("CHM_RUN_INTEGRATION", False) or run_all

    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled by default. Set CHM_RUN_INTEGRATION=true to enable.",
    )
    skip_unmarked = pytest.mark.skip(
        reason="Unmarked test skipped by default. Mark with unit/integration or set CHM_RUN_ALL_TESTS=true.",
    )

    for item in items:
        kws = item.keywords
        if "integration" in kws and not run_integration:
            item.add_marker(skip_integration)
            continue
        if not run_all and not any(m in kws for m in ("unit", "integration")):
            item.add_marker(skip_unmarked)


@pytest.fixture
def test_env() -> Generator[dict[str, str]]:
    """Fixture to control environment variables during a test.

    Changes made through the yielded mapping affect ``os.environ`` and are
    undone afterwards.
    """
    original_env = os.environ.copy()
    try:
        yield cast("dict[str, str]", os.environ)
    finally:
        os.environ.clear()
        os.environ.update(original_env)


@pytest.fixture
def clubhouse() -> FakeClubhouse:
    return FakeClubhouse()


@pytest.fixture
def github() -> FakeGithub:
    return FakeGithub()


@pytest.fixture
def trello() -> FakeTrello:
    return FakeTrello()


@pytest.fixture
def mock_clubhouse_client():
    return create_mock_clubhouse_client()


@pytest.fixture
def no_sleep() -> list[float]:
    """Sleep replacement recording the requested delays; pass ``no_sleep.append``."""
    return []
