# src/chatmemory/storage/manager.py
"""
Conversation store factory.

Maps the configured ``storage.type`` to a ConversationStore implementation,
instantiates it and runs its async initialization with the backend settings
plus the summary policy taken from the memory configuration.
"""

import logging
from typing import Any, Dict, Optional, Type

from ..config.models import MemoryConfig, StorageConfig
from ..exceptions import ConfigError, StorageError
from .base_store import ConversationStore
from .memory_store import InMemoryConversationStore
from .sqlite_store import SqliteConversationStore

logger = logging.getLogger(__name__)

# --- Mapping from config type string to class ---
STORE_MAP: Dict[str, Type[ConversationStore]] = {
    "memory": InMemoryConversationStore,
    "sqlite": SqliteConversationStore,
}


def _store_settings(storage_config: StorageConfig, memory_config: MemoryConfig) -> Dict[str, Any]:
    return {
        "path": storage_config.path,
        "default_language": memory_config.default_language,
        "summary_trigger_turns": memory_config.summary_trigger_turns,
        "summary_trigger_chars": memory_config.summary_trigger_chars,
        "summary_window_size": memory_config.summary_window_size,
    }


async def create_conversation_store(
    storage_config: Optional[StorageConfig] = None,
    memory_config: Optional[MemoryConfig] = None,
) -> ConversationStore:
    """
    Create and initialize the configured conversation store.

    Args:
        storage_config: Backend selection. Defaults to ``memory_config.storage``.
        memory_config: Supplies the summary policy and default language.

    Returns:
        An initialized ConversationStore.

    Raises:
        ConfigError: If the store type is unsupported.
        StorageError: If the backend fails to initialize.
    """
    memory_config = memory_config or MemoryConfig()
    storage_config = storage_config or memory_config.storage

    store_type = storage_config.type.lower()
    store_cls = STORE_MAP.get(store_type)
    if store_cls is None:
        raise ConfigError(f"Unsupported conversation store type configured: '{storage_config.type}'. "
                          f"Available types: {list(STORE_MAP.keys())}")

    store = store_cls()
    try:
        await store.initialize(_store_settings(storage_config, memory_config))
    except (ConfigError, StorageError):
        raise
    except Exception as e:
        logger.error(f"Failed to initialize '{store_type}' conversation store: {e}", exc_info=True)
        raise StorageError(f"Conversation store initialization failed ({store_type}): {e}") from e
    logger.info(f"Conversation store '{store_type}' initialized.")
    return store
