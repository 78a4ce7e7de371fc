"""Pytest configuration and fixtures."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from ctxman.config import CtxmanSettings
from ctxman.store import ContextStore

# Enable pytest-asyncio for all tests
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment variables out of settings."""
    for name in (
        "WORKSPACE_PATH",
        "CTXMAN_WORKSPACE_PATH",
        "CTXMAN_MAX_CONTEXTS",
        "CTXMAN_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Undo logging configuration done by CLI and server tests."""
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A temporary workspace root."""
    path = tmp_path / "my-project"
    path.mkdir()
    return path


@pytest.fixture
def settings(workspace: Path) -> CtxmanSettings:
    """Settings pointing at the temporary workspace."""
    return CtxmanSettings(workspace_path=workspace)


@pytest.fixture
def store_path(settings: CtxmanSettings) -> Path:
    """Location of the store file inside the workspace."""
    return settings.store_path


@pytest.fixture
def store(settings: CtxmanSettings) -> ContextStore:
    """A ContextStore for the temporary workspace."""
    return ContextStore(
        path=settings.store_path,
        project_path=str(settings.workspace_path),
        max_contexts=settings.max_contexts,
    )
