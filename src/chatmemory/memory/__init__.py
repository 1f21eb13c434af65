# src/chatmemory/memory/__init__.py
"""
Conversation memory: session orchestration, context packing and summarization.
"""

from .context_builder import pack_memory_context
from .manager import NO_SUMMARY_MESSAGE, ConversationMemoryManager
from .summarization import SummaryOutcome, SummaryStatus

__all__ = [
    "ConversationMemoryManager",
    "NO_SUMMARY_MESSAGE",
    "SummaryOutcome",
    "SummaryStatus",
    "pack_memory_context",
]
