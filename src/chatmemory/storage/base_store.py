# src/chatmemory/storage/base_store.py
"""
Abstract Base Class for conversation store backends.

This module defines the interface that all conversation store
implementations must adhere to within the chatmemory library: durable,
keyed storage for sessions and their append-only turn logs, plus the
store-owned summary trigger policy.

Concurrency contract: the memory manager does not serialize calls for the
same chat id. Implementations must make :meth:`append_turn` an atomic
increment-and-record (a lock, a single transaction or an atomic counter) so
that concurrent saves cannot lose ``message_count`` updates or double-count
the turns that feed :meth:`should_trigger_summary`.
"""

import abc
from typing import Any, Dict, List, Optional

from ..models import Session, Turn


class ConversationStore(abc.ABC):
    """
    Abstract Base Class for session and turn storage.

    Concrete implementations handle the specifics of storing data
    (process memory, SQLite, ...). All methods are coroutines.
    """

    @abc.abstractmethod
    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Initialize the store with its backend-specific configuration.

        Args:
            config: Backend configuration (e.g. ``{"path": ...}`` for SQLite),
                    plus the summary policy keys ``summary_trigger_turns``,
                    ``summary_trigger_chars``, ``summary_window_size`` and
                    ``default_language``.
        """
        pass

    @abc.abstractmethod
    async def get_session(self, chat_id: str) -> Optional[Session]:
        """
        Retrieve a session by its chat id.

        Returns:
            The Session if found, otherwise None.
        """
        pass

    @abc.abstractmethod
    async def save_session(self, session: Session) -> None:
        """
        Create or overwrite a session record.

        Turns are not touched; they are only ever added by :meth:`append_turn`.
        """
        pass

    @abc.abstractmethod
    async def reset_session(self, chat_id: str) -> None:
        """
        Delete every turn of ``chat_id``, zero ``message_count`` and drop the
        summary. ``chat_id`` and ``created_at`` are preserved. A missing
        session is a no-op.
        """
        pass

    @abc.abstractmethod
    async def append_turn(self, turn: Turn) -> Turn:
        """
        Append a turn to the log of ``turn.chat_id``.

        Atomically assigns ``message_id``, increments the session's
        ``message_count`` and sets ``last_message_at`` to ``turn.created_at``.
        Creates the session (with the default language) if it does not exist.

        Returns:
            The stored turn, carrying its assigned ``message_id``.
        """
        pass

    @abc.abstractmethod
    async def get_recent_turns(self, chat_id: str, limit: int) -> List[Turn]:
        """
        Retrieve the ``limit`` most recent turns.

        Returns:
            Turns in chronological order (oldest first). Ties on
            ``created_at`` keep insertion order.
        """
        pass

    @abc.abstractmethod
    async def get_turn_count(self, chat_id: str) -> int:
        """Live count of stored turns for ``chat_id`` (0 if none)."""
        pass

    @abc.abstractmethod
    async def should_trigger_summary(self, chat_id: str) -> bool:
        """
        Decide whether the rolling summary should be regenerated.

        Bundled stores trigger once ``summary_trigger_turns`` turns have been
        appended since the last summary, or once the most recent
        ``summary_window_size`` turns hold ``summary_trigger_chars`` characters.
        """
        pass

    @abc.abstractmethod
    async def update_summary(self, chat_id: str, text: str) -> None:
        """
        Replace the session summary wholesale and reset the
        turns-since-summary bookkeeping.
        """
        pass

    @abc.abstractmethod
    async def close(self) -> None:
        """Release connections, file handles, etc."""
        pass
