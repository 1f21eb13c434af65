# src/chatmemory/memory/manager.py
"""
Conversation memory management for chatmemory.

This module provides the ConversationMemoryManager, the orchestrator that owns
a chat session's lifecycle, its append-only turn log and the assembly of a
token-bounded memory context (rolling summary plus recent turns).

The manager holds no conversation state of its own. Everything is read from
and written to the injected ConversationStore on every call; token counting,
summarization and language detection are delegated to injected collaborators.
Token packing lives in `context_builder`, the rolling-summary step in
`summarization`.

Every public operation catches collaborator failures at its boundary and
raises a single ConversationError tagged with the operation's code. The
exceptions are the summary step inside `save_message`, per-turn token
estimation, and language drift detection, which log and carry on.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Union

from ..collaborators import (HangulRatioLanguageDetector, LanguageDetector,
                             Summarizer, TokenEstimator, create_token_estimator)
from ..config.models import MemoryConfig
from ..exceptions import ConversationError, OperationCode
from ..logging_config import configure_logging, log_display
from ..models import (ConversationContext, ConversationStats, MemoryContext,
                      Role, Session, Turn, utc_now)
from ..sessions.activity import is_active
from ..storage.base_store import ConversationStore
from ..storage.manager import create_conversation_store
from . import context_builder, summarization

logger = logging.getLogger(__name__)

NO_SUMMARY_MESSAGE = "No summary generated"


class ConversationMemoryManager:
    """
    Orchestrates sessions, turns and memory context for conversations.

    All collaborators are injected, so the packing and summarization logic
    can be driven by deterministic fakes in tests.
    """

    def __init__(
        self,
        store: ConversationStore,
        summarizer: Summarizer,
        token_estimator: TokenEstimator,
        language_detector: LanguageDetector,
        config: Optional[MemoryConfig] = None,
    ):
        """
        Initializes the ConversationMemoryManager.

        Args:
            store: An initialized ConversationStore.
            summarizer: Produces rolling summaries from turn windows.
            token_estimator: Costs the summary and turns during packing.
            language_detector: Maps user text to a language code.
            config: Memory settings; defaults to ``MemoryConfig()``.
        """
        self._store = store
        self._summarizer = summarizer
        self._estimator = token_estimator
        self._detector = language_detector
        self._config = config or MemoryConfig()
        logger.debug("ConversationMemoryManager initialized with store backend: %s", type(store).__name__)

    @classmethod
    async def create(
        cls,
        summarizer: Summarizer,
        config: Optional[MemoryConfig] = None,
        token_estimator: Optional[TokenEstimator] = None,
        language_detector: Optional[LanguageDetector] = None,
    ) -> "ConversationMemoryManager":
        """
        Asynchronously creates a manager wired to the configured store and the
        bundled token estimator and language detector. Logging handlers are
        installed first when ``config.logging.enabled`` is set.
        """
        config = config or MemoryConfig()
        if config.logging.enabled:
            log_file = configure_logging(config.logging)
            log_display(logger, logging.INFO, "chatmemory logging configured (file: %s)", log_file)
        store = await create_conversation_store(config.storage, config)
        return cls(
            store=store,
            summarizer=summarizer,
            token_estimator=token_estimator or create_token_estimator(config.token_estimator),
            language_detector=language_detector or HangulRatioLanguageDetector(),
            config=config,
        )

    @property
    def config(self) -> MemoryConfig:
        return self._config

    # --- Boundary helpers ---

    @contextmanager
    def _boundary(self, operation: OperationCode, chat_id: Any) -> Iterator[None]:
        """Re-raise any collaborator failure as ConversationError(operation)."""
        try:
            yield
        except ConversationError:
            raise
        except Exception as e:
            logger.error(f"{operation.value} failed for chat '{chat_id}': {e}", exc_info=True)
            raise ConversationError(
                f"Operation failed for chat '{chat_id}'.",
                operation=operation,
                status_code=500,
                cause=e,
            ) from e

    @staticmethod
    def _invalid(operation: OperationCode, message: str) -> ConversationError:
        return ConversationError(message, operation=operation, status_code=400)

    def _check_chat_id(self, chat_id: Any, operation: OperationCode) -> str:
        if isinstance(chat_id, int) and not isinstance(chat_id, bool):
            chat_id = str(chat_id)
        if not isinstance(chat_id, str) or not chat_id.strip():
            raise self._invalid(operation, f"chat_id must be a non-empty string, got {chat_id!r}.")
        return chat_id

    def _check_lang(self, lang: Any, operation: OperationCode) -> str:
        if not isinstance(lang, str) or not lang.strip():
            raise self._invalid(operation, f"lang must be a non-empty language code, got {lang!r}.")
        return lang.strip().lower()

    # --- Session lifecycle ---

    async def initialize_session(self, chat_id: str, lang: Optional[str] = None) -> Session:
        """
        Get-or-create the session for ``chat_id``.

        An existing session is returned unchanged, even when ``lang`` differs.
        A new one starts with no turns, no summary and ``lang`` (or the
        configured default language).
        """
        chat_id = self._check_chat_id(chat_id, OperationCode.INIT_SESSION)
        if lang is not None:
            lang = self._check_lang(lang, OperationCode.INIT_SESSION)
        with self._boundary(OperationCode.INIT_SESSION, chat_id):
            return await self._get_or_create(chat_id, lang)

    async def _get_or_create(self, chat_id: str, lang: Optional[str]) -> Session:
        session = await self._store.get_session(chat_id)
        if session:
            logger.debug(f"Loaded existing session '{chat_id}' (lang={session.lang}).")
            return session
        session = Session(chat_id=chat_id, lang=lang or self._config.default_language)
        await self._store.save_session(session)
        logger.info(f"Created session '{chat_id}' (lang={session.lang}).")
        return session

    async def reset_session(self, chat_id: str) -> None:
        """Clear turns, count and summary while keeping ``chat_id`` and ``created_at``."""
        chat_id = self._check_chat_id(chat_id, OperationCode.RESET_SESSION)
        with self._boundary(OperationCode.RESET_SESSION, chat_id):
            await self._store.reset_session(chat_id)
        logger.info(f"Session '{chat_id}' reset.")

    async def update_language(self, chat_id: str, lang: str) -> Session:
        """
        Set the session language, creating the session if needed.

        Every call persists, even when the language is unchanged.
        """
        chat_id = self._check_chat_id(chat_id, OperationCode.UPDATE_LANGUAGE)
        lang = self._check_lang(lang, OperationCode.UPDATE_LANGUAGE)
        with self._boundary(OperationCode.UPDATE_LANGUAGE, chat_id):
            session = await self._get_or_create(chat_id, lang)
            session.lang = lang
            session.touch()
            await self._store.save_session(session)
        logger.debug(f"Language of session '{chat_id}' set to '{lang}'.")
        return session

    # --- Turn persistence ---

    async def save_message(
        self,
        chat_id: str,
        role: Union[Role, str],
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Turn:
        """
        Append a turn, then run the summary step if the store says it is due.

        Returns:
            The stored turn with its assigned ``message_id``. A failing
            summarizer or trigger check never fails this call; it is logged
            and the previous summary is kept.

        Raises:
            ConversationError: SAVE_MESSAGE if the arguments are invalid (400)
                or the turn could not be stored (500).
        """
        chat_id = self._check_chat_id(chat_id, OperationCode.SAVE_MESSAGE)
        try:
            role = Role(role)
        except ValueError as e:
            raise self._invalid(OperationCode.SAVE_MESSAGE, f"Unknown role {role!r}.") from e
        if not isinstance(text, str):
            raise self._invalid(OperationCode.SAVE_MESSAGE, f"text must be a string, got {type(text).__name__}.")
        if metadata is not None and not isinstance(metadata, dict):
            raise self._invalid(OperationCode.SAVE_MESSAGE, "metadata must be a mapping.")

        with self._boundary(OperationCode.SAVE_MESSAGE, chat_id):
            turn = Turn(chat_id=chat_id, role=role, text=text, created_at=utc_now(), metadata=metadata)
            stored = await self._store.append_turn(turn)
        logger.debug(f"Stored {role.value} turn {stored.message_id} for chat '{chat_id}'.")

        outcome = await summarization.run_summary_step(
            self._store, self._summarizer, chat_id, self._config.summary_window_size
        )
        outcome.log()
        return stored

    async def get_recent_messages(self, chat_id: str, limit: Optional[int] = None) -> List[Turn]:
        """The ``limit`` most recent turns (default ``recent_message_limit``), oldest first."""
        chat_id = self._check_chat_id(chat_id, OperationCode.GET_MESSAGES)
        if limit is None:
            limit = self._config.recent_message_limit
        elif isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise self._invalid(OperationCode.GET_MESSAGES, f"limit must be a non-negative integer, got {limit!r}.")
        with self._boundary(OperationCode.GET_MESSAGES, chat_id):
            return await self._store.get_recent_turns(chat_id, limit)

    async def force_summary_generation(self, chat_id: str) -> str:
        """
        Summarize the latest window now, regardless of the trigger policy.

        Unlike the summary step of `save_message`, failures propagate.

        Returns:
            The new summary, or ``"No summary generated"`` if there were no
            turns to summarize.
        """
        chat_id = self._check_chat_id(chat_id, OperationCode.FORCE_SUMMARY)
        with self._boundary(OperationCode.FORCE_SUMMARY, chat_id):
            summary = await summarization.summarize_window(
                self._store, self._summarizer, chat_id, self._config.summary_window_size
            )
        if summary is None:
            logger.info(f"Forced summary for chat '{chat_id}' skipped: no turns.")
            return NO_SUMMARY_MESSAGE
        logger.info(f"Forced summary generated for chat '{chat_id}'.")
        return summary

    # --- Context assembly ---

    async def load_conversation_context(self, chat_id: str) -> ConversationContext:
        """Session and recent turns as stored, read concurrently and without budgeting."""
        chat_id = self._check_chat_id(chat_id, OperationCode.LOAD_CONTEXT)
        with self._boundary(OperationCode.LOAD_CONTEXT, chat_id):
            session, turns = await asyncio.gather(
                self._store.get_session(chat_id),
                self._store.get_recent_turns(chat_id, self._config.recent_message_limit),
            )
        return ConversationContext(
            session=session,
            recent_messages=turns,
            summary=session.summary if session else None,
        )

    async def build_memory_context(self, chat_id: str, token_budget: Optional[int] = None) -> MemoryContext:
        """
        Assemble the summary and as many recent turns as fit ``token_budget``.

        The summary is always included. Turns are taken newest first and the
        walk stops at the first one that does not fit.

        Args:
            chat_id: The conversation key.
            token_budget: Token limit (defaults to ``default_token_budget``).

        Raises:
            ConversationError: BUILD_CONTEXT for a negative or non-integer
                budget (400) or a store read failure (500).
        """
        chat_id = self._check_chat_id(chat_id, OperationCode.BUILD_CONTEXT)
        if token_budget is None:
            token_budget = self._config.default_token_budget
        if isinstance(token_budget, bool) or not isinstance(token_budget, int) or token_budget < 0:
            raise self._invalid(OperationCode.BUILD_CONTEXT,
                                f"token_budget must be a non-negative integer, got {token_budget!r}.")

        with self._boundary(OperationCode.BUILD_CONTEXT, chat_id):
            session, turns = await asyncio.gather(
                self._store.get_session(chat_id),
                self._store.get_recent_turns(chat_id, self._config.recent_message_limit),
            )

        summary = session.summary if session else None
        context = context_builder.pack_memory_context(summary, turns, self._estimator, token_budget)
        logger.debug(f"Memory context for chat '{chat_id}': {len(context.recent_messages)}/{len(turns)} turns, "
                     f"{context.token_count}/{token_budget} tokens.")
        return context

    # --- Stats and activity ---

    async def get_conversation_stats(self, chat_id: str) -> ConversationStats:
        """
        Live turn count and summary/timestamp info; all-zero if the session is absent.
        """
        chat_id = self._check_chat_id(chat_id, OperationCode.GET_STATS)
        with self._boundary(OperationCode.GET_STATS, chat_id):
            session = await self._store.get_session(chat_id)
            if session is None:
                return ConversationStats()
            count = await self._store.get_turn_count(chat_id)
        return ConversationStats(
            message_count=count,
            has_summary=session.has_summary,
            last_message_at=session.last_message_at,
            created_at=session.created_at,
        )

    async def is_session_active(self, chat_id: str, stale_hours: Optional[float] = None) -> bool:
        """True if the session exists and its last turn is younger than ``stale_hours``."""
        chat_id = self._check_chat_id(chat_id, OperationCode.CHECK_ACTIVITY)
        if stale_hours is None:
            stale_hours = self._config.stale_hours
        if isinstance(stale_hours, bool) or not isinstance(stale_hours, (int, float)) or stale_hours <= 0:
            raise self._invalid(OperationCode.CHECK_ACTIVITY,
                                f"stale_hours must be a positive number, got {stale_hours!r}.")
        with self._boundary(OperationCode.CHECK_ACTIVITY, chat_id):
            session = await self._store.get_session(chat_id)
        if session is None:
            return False
        return is_active(session.last_message_at, stale_hours)

    # --- Language drift ---

    async def detect_and_update_language(self, chat_id: str, text: str) -> str:
        """
        Detect the language of ``text`` and store it if it changed.

        Never raises: any failure is logged and the configured default
        language is returned. An absent session is not created.
        """
        try:
            detected = self._detector.detect_language(text).strip().lower()
            session = await self._store.get_session(self._check_chat_id(chat_id, OperationCode.UPDATE_LANGUAGE))
            if session is not None and session.lang != detected:
                await self.update_language(chat_id, detected)
                logger.info(f"Language of chat '{chat_id}' changed from '{session.lang}' to '{detected}'.")
            return detected
        except Exception as e:
            logger.warning(f"Language detection failed for chat '{chat_id}'; "
                           f"falling back to '{self._config.default_language}': {e}")
            return self._config.default_language

    async def close(self) -> None:
        """Close the underlying store."""
        await self._store.close()
        logger.info("ConversationMemoryManager resources cleanup complete.")

    async def __aenter__(self) -> "ConversationMemoryManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
