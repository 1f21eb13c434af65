# tests/storage/test_manager.py
"""
Tests for the conversation store factory.
"""

import pytest

from chatmemory.config import MemoryConfig, StorageConfig
from chatmemory.exceptions import ConfigError
from chatmemory.storage import (STORE_MAP, InMemoryConversationStore,
                                SqliteConversationStore,
                                create_conversation_store)
from chatmemory.storage.policy import SummaryTriggerPolicy


def test_store_map():
    assert STORE_MAP == {"memory": InMemoryConversationStore, "sqlite": SqliteConversationStore}


@pytest.mark.asyncio
async def test_default_is_memory_store():
    store = await create_conversation_store()
    assert isinstance(store, InMemoryConversationStore)
    await store.close()


@pytest.mark.asyncio
async def test_sqlite_store_from_config(tmp_path):
    config = MemoryConfig(storage={"type": "sqlite", "path": str(tmp_path / "chat.db")})
    store = await create_conversation_store(config.storage, config)
    try:
        assert isinstance(store, SqliteConversationStore)
        assert (tmp_path / "chat.db").exists()
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_policy_and_language_passed_through():
    config = MemoryConfig(default_language="en", summary_trigger_turns=2,
                          summary_trigger_chars=999, summary_window_size=4)
    store = await create_conversation_store(memory_config=config)
    assert store._policy == SummaryTriggerPolicy(trigger_turns=2, trigger_chars=999, window_size=4)
    assert store._default_language == "en"


@pytest.mark.asyncio
async def test_unknown_type():
    # Bypass validation to reach the factory's own check
    storage = StorageConfig.model_construct(type="redis", path="unused")
    with pytest.raises(ConfigError):
        await create_conversation_store(storage)
