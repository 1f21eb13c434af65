# tests/storage/conftest.py
"""
Pytest fixtures for conversation store tests.

``store`` is parametrized over every bundled backend so the shared contract
tests run against each of them. The SQLite store writes to ``tmp_path``.
"""

from typing import Any, AsyncGenerator, Dict

import pytest
import pytest_asyncio

from chatmemory.storage import (ConversationStore, InMemoryConversationStore,
                                SqliteConversationStore)

# Small thresholds so trigger behaviour is reachable with a few turns
POLICY_CONFIG: Dict[str, Any] = {
    "summary_trigger_turns": 3,
    "summary_trigger_chars": 50,
    "summary_window_size": 3,
    "default_language": "en",
}


@pytest_asyncio.fixture
async def memory_store() -> AsyncGenerator[InMemoryConversationStore, None]:
    store = InMemoryConversationStore()
    await store.initialize(dict(POLICY_CONFIG))
    yield store
    await store.close()


@pytest_asyncio.fixture
async def sqlite_store(tmp_path) -> AsyncGenerator[SqliteConversationStore, None]:
    store = SqliteConversationStore()
    await store.initialize({**POLICY_CONFIG, "path": str(tmp_path / "conversations.db")})
    yield store
    await store.close()


@pytest.fixture(params=["memory", "sqlite"])
def store_type(request) -> str:
    return request.param


@pytest_asyncio.fixture
async def store(store_type, tmp_path) -> AsyncGenerator[ConversationStore, None]:
    """Each bundled store, initialized with the small test policy."""
    if store_type == "memory":
        backend: ConversationStore = InMemoryConversationStore()
        config = dict(POLICY_CONFIG)
    else:
        backend = SqliteConversationStore()
        config = {**POLICY_CONFIG, "path": str(tmp_path / "contract.db")}
    await backend.initialize(config)
    yield backend
    await backend.close()
