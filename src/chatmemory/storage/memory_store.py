# src/chatmemory/storage/memory_store.py
"""
Process-local conversation store.

Keeps sessions and turn logs in dictionaries guarded by an asyncio.Lock, so
appends are atomic with respect to other coroutines on the same event loop.
Nothing survives a restart; use it for tests, demos and single-process bots.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from ..exceptions import SessionStorageError
from ..models import Session, Turn, utc_now
from .base_store import ConversationStore
from .policy import SummaryTriggerPolicy

logger = logging.getLogger(__name__)


class InMemoryConversationStore(ConversationStore):
    """
    Dictionary-backed ConversationStore.

    Sessions and turns are copied on the way in and out so callers can never mutate
    stored state behind the store's back.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._turns: Dict[str, List[Turn]] = {}
        self._turns_since_summary: Dict[str, int] = {}
        self._lock = asyncio.Lock()
        self._policy = SummaryTriggerPolicy()
        self._default_language = "ko"

    async def initialize(self, config: Dict[str, Any]) -> None:
        self._policy = SummaryTriggerPolicy.from_config(config)
        self._default_language = config.get("default_language", self._default_language)
        logger.info(f"In-memory conversation store initialized with policy {self._policy}")

    async def get_session(self, chat_id: str) -> Optional[Session]:
        session = self._sessions.get(chat_id)
        return session.model_copy(deep=True) if session else None

    async def save_session(self, session: Session) -> None:
        async with self._lock:
            self._sessions[session.chat_id] = session.model_copy(deep=True)
            self._turns.setdefault(session.chat_id, [])
            self._turns_since_summary.setdefault(session.chat_id, 0)
        logger.debug(f"Session '{session.chat_id}' saved to memory.")

    async def reset_session(self, chat_id: str) -> None:
        async with self._lock:
            session = self._sessions.get(chat_id)
            if session is None:
                logger.debug(f"Reset requested for unknown session '{chat_id}'; nothing to do.")
                return
            self._turns[chat_id] = []
            self._turns_since_summary[chat_id] = 0
            session.message_count = 0
            session.summary = None
            session.touch()

    async def append_turn(self, turn: Turn) -> Turn:
        async with self._lock:
            session = self._sessions.get(turn.chat_id)
            if session is None:
                session = Session(chat_id=turn.chat_id, lang=self._default_language)
                self._sessions[turn.chat_id] = session
            stored = turn.model_copy(update={"message_id": uuid.uuid4().hex}, deep=True)
            self._turns.setdefault(turn.chat_id, []).append(stored)
            self._turns_since_summary[turn.chat_id] = self._turns_since_summary.get(turn.chat_id, 0) + 1
            session.message_count += 1
            session.last_message_at = turn.created_at
            session.updated_at = max(utc_now(), session.created_at)
        return stored.model_copy(deep=True)

    async def get_recent_turns(self, chat_id: str, limit: int) -> List[Turn]:
        if limit <= 0:
            return []
        # sorted() is stable, so equal timestamps keep insertion order
        ordered = sorted(self._turns.get(chat_id, []), key=lambda t: t.created_at)
        return [t.model_copy(deep=True) for t in ordered[-limit:]]

    async def get_turn_count(self, chat_id: str) -> int:
        return len(self._turns.get(chat_id, []))

    async def should_trigger_summary(self, chat_id: str) -> bool:
        if chat_id not in self._sessions:
            return False
        since = self._turns_since_summary.get(chat_id, 0)
        window = await self.get_recent_turns(chat_id, self._policy.char_window(since))
        return self._policy.should_trigger(since, (t.text for t in window))

    async def update_summary(self, chat_id: str, text: str) -> None:
        async with self._lock:
            session = self._sessions.get(chat_id)
            if session is None:
                raise SessionStorageError(f"Cannot update summary of unknown session '{chat_id}'.")
            session.summary = text
            session.touch()
            self._turns_since_summary[chat_id] = 0

    async def close(self) -> None:
        logger.debug("In-memory conversation store closed.")
