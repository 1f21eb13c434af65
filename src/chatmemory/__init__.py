# src/chatmemory/__init__.py
"""
chatmemory - Conversational memory for chat assistants.

Owns the lifecycle of chat sessions, their append-only turn logs, rolling
summaries, and the assembly of a token-bounded memory context (summary plus
most recent turns) for a downstream answer-generation step.
"""

from importlib.metadata import PackageNotFoundError, version

from .collaborators import (
    CharRatioTokenEstimator,
    HangulRatioLanguageDetector,
    LanguageDetector,
    Summarizer,
    TiktokenEstimator,
    TokenEstimator,
    create_token_estimator,
)
from .config import MemoryConfig, StorageConfig, load_memory_config
from .exceptions import (
    ChatMemoryError,
    ConfigError,
    ConversationError,
    OperationCode,
    SessionStorageError,
    StorageError,
)
from .memory import ConversationMemoryManager, SummaryOutcome, SummaryStatus
from .models import (
    ConversationContext,
    ConversationStats,
    MemoryContext,
    Role,
    Session,
    Turn,
)
from .storage import (
    ConversationStore,
    InMemoryConversationStore,
    SqliteConversationStore,
    create_conversation_store,
)

try:
    __version__ = version("chatmemory")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    # Core
    "ConversationMemoryManager",
    "SummaryOutcome",
    "SummaryStatus",
    # Models
    "Session",
    "Turn",
    "Role",
    "MemoryContext",
    "ConversationStats",
    "ConversationContext",
    # Collaborators
    "TokenEstimator",
    "Summarizer",
    "LanguageDetector",
    "CharRatioTokenEstimator",
    "TiktokenEstimator",
    "HangulRatioLanguageDetector",
    "create_token_estimator",
    # Storage
    "ConversationStore",
    "InMemoryConversationStore",
    "SqliteConversationStore",
    "create_conversation_store",
    # Config
    "MemoryConfig",
    "StorageConfig",
    "load_memory_config",
    # Exceptions
    "ChatMemoryError",
    "ConfigError",
    "StorageError",
    "SessionStorageError",
    "ConversationError",
    "OperationCode",
]
