# src/chatmemory/storage/__init__.py
"""
Storage backends for chatmemory.
"""

from .base_store import ConversationStore
from .manager import STORE_MAP, create_conversation_store
from .memory_store import InMemoryConversationStore
from .policy import SummaryTriggerPolicy
from .sqlite_store import SqliteConversationStore

__all__ = [
    "ConversationStore",
    "InMemoryConversationStore",
    "SqliteConversationStore",
    "SummaryTriggerPolicy",
    "STORE_MAP",
    "create_conversation_store",
]
