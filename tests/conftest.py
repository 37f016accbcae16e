"""Shared pytest fixtures for the portal backend tests."""

from __future__ import annotations

import sys

import pytest
import structlog

import config
from database import MemoryStore, seed_store
from portal import PortalAPI


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Send structlog output to stdout so capsys can capture it."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep PBKDF2 cheap in tests."""
    monkeypatch.setattr(config, "PASSWORD_HASH_ITERATIONS", 1000)


@pytest.fixture
def store() -> MemoryStore:
    """Empty in-memory store."""
    return MemoryStore()


@pytest.fixture
def seeded_store(store: MemoryStore) -> MemoryStore:
    """In-memory store holding the demo fixture data."""
    seed_store(store)
    return store


@pytest.fixture
def api(seeded_store: MemoryStore) -> PortalAPI:
    return PortalAPI(seeded_store)


@pytest.fixture
def empty_api(store: MemoryStore) -> PortalAPI:
    return PortalAPI(store)
