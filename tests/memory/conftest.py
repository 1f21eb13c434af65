# tests/memory/conftest.py
"""
Shared pytest fixtures for memory module tests.

Provides deterministic collaborator fakes (token estimator driven by a
text -> cost table, summarizer and language detector mocks), a populated
in-memory store and a ready ConversationMemoryManager.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from chatmemory.collaborators import (LanguageDetector, Summarizer,
                                      TokenEstimator)
from chatmemory.config import MemoryConfig
from chatmemory.memory import ConversationMemoryManager
from chatmemory.models import Role, Turn
from chatmemory.storage import InMemoryConversationStore

# ============================================================================
# FAKES
# ============================================================================


class TableTokenEstimator(TokenEstimator):
    """Returns a fixed cost per text; unknown texts cost ``default``."""

    def __init__(self, costs: Optional[Dict[str, int]] = None, default: int = 1,
                 failing: Optional[set] = None):
        self.costs = dict(costs or {})
        self.default = default
        self.failing = set(failing or ())

    def estimate_tokens(self, text: str) -> int:
        if text in self.failing:
            raise ValueError(f"cannot estimate {text!r}")
        return self.costs.get(text, self.default)


def make_turn(text: str, role: Role = Role.USER, chat_id: str = "chat-1",
              minutes_ago: int = 0, message_id: Optional[str] = None) -> Turn:
    created = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago)
    return Turn(message_id=message_id or f"id-{text}", chat_id=chat_id, role=role,
                text=text, created_at=created)


# ============================================================================
# COLLABORATOR FIXTURES
# ============================================================================


@pytest.fixture
def estimator() -> TableTokenEstimator:
    return TableTokenEstimator()


@pytest.fixture
def mock_summarizer() -> MagicMock:
    """Summarizer mock returning a fixed summary."""
    summarizer = MagicMock(spec=Summarizer)
    summarizer.summarize = AsyncMock(return_value="condensed conversation")
    return summarizer


@pytest.fixture
def mock_detector() -> MagicMock:
    detector = MagicMock(spec=LanguageDetector)
    detector.detect_language.return_value = "en"
    return detector


@pytest.fixture
def memory_config() -> MemoryConfig:
    return MemoryConfig(
        default_language="ko",
        recent_message_limit=10,
        summary_window_size=3,
        summary_trigger_turns=3,
        summary_trigger_chars=4000,
        default_token_budget=100,
    )


@pytest_asyncio.fixture
async def store(memory_config) -> InMemoryConversationStore:
    store = InMemoryConversationStore()
    await store.initialize({
        "default_language": memory_config.default_language,
        "summary_trigger_turns": memory_config.summary_trigger_turns,
        "summary_trigger_chars": memory_config.summary_trigger_chars,
        "summary_window_size": memory_config.summary_window_size,
    })
    return store


@pytest.fixture
def manager(store, mock_summarizer, estimator, mock_detector, memory_config) -> ConversationMemoryManager:
    return ConversationMemoryManager(
        store=store,
        summarizer=mock_summarizer,
        token_estimator=estimator,
        language_detector=mock_detector,
        config=memory_config,
    )


@pytest.fixture
def failing_store() -> MagicMock:
    """A store whose every call raises."""
    store = MagicMock()
    error = RuntimeError("store offline")
    for name in ("get_session", "save_session", "reset_session", "append_turn",
                 "get_recent_turns", "get_turn_count", "should_trigger_summary",
                 "update_summary", "close"):
        setattr(store, name, AsyncMock(side_effect=error))
    return store


@pytest.fixture
def failing_manager(failing_store, mock_summarizer, estimator, mock_detector, memory_config) -> ConversationMemoryManager:
    return ConversationMemoryManager(failing_store, mock_summarizer, estimator, mock_detector, memory_config)


async def seed_turns(store: InMemoryConversationStore, turns: List[Turn]) -> None:
    for turn in turns:
        await store.append_turn(turn)
