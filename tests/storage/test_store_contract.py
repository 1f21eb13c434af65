# tests/storage/test_store_contract.py
"""
Behaviour every bundled ConversationStore must share.

Runs once per backend through the parametrized ``store`` fixture.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from chatmemory.exceptions import SessionStorageError
from chatmemory.models import Role, Session, Turn, coerce_utc


def _turn(chat_id="c1", text="hello", role=Role.USER, **kwargs):
    return Turn(chat_id=chat_id, role=role, text=text, **kwargs)


@pytest.mark.asyncio
async def test_get_missing_session_returns_none(store):
    assert await store.get_session("nobody") is None


@pytest.mark.asyncio
async def test_save_and_get_session(store):
    session = Session(chat_id="c1", lang="ko")
    await store.save_session(session)

    loaded = await store.get_session("c1")
    assert loaded is not None
    assert loaded.chat_id == "c1"
    assert loaded.lang == "ko"
    assert loaded.message_count == 0
    assert loaded.summary is None
    assert loaded.created_at == session.created_at


@pytest.mark.asyncio
async def test_save_session_overwrites(store):
    session = Session(chat_id="c1", lang="ko")
    await store.save_session(session)
    session.lang = "en"
    await store.save_session(session)
    assert (await store.get_session("c1")).lang == "en"


@pytest.mark.asyncio
async def test_append_turn_assigns_id_and_counts(store):
    await store.save_session(Session(chat_id="c1", lang="ko"))

    first = await store.append_turn(_turn(text="one"))
    second = await store.append_turn(_turn(text="two", role=Role.ASSISTANT))

    assert first.message_id and second.message_id
    assert first.message_id != second.message_id
    session = await store.get_session("c1")
    assert session.message_count == 2
    assert session.last_message_at == second.created_at
    assert await store.get_turn_count("c1") == 2


@pytest.mark.asyncio
async def test_append_turn_creates_missing_session_with_default_language(store):
    await store.append_turn(_turn(chat_id="fresh"))
    session = await store.get_session("fresh")
    assert session is not None
    assert session.lang == "en"
    assert session.message_count == 1


@pytest.mark.asyncio
async def test_recent_turns_are_chronological_and_limited(store):
    for i in range(5):
        await store.append_turn(_turn(text=f"m{i}"))

    recent = await store.get_recent_turns("c1", 3)
    assert [t.text for t in recent] == ["m2", "m3", "m4"]
    assert await store.get_recent_turns("c1", 0) == []
    assert await store.get_recent_turns("unknown", 3) == []


@pytest.mark.asyncio
async def test_recent_turns_ordered_by_created_at(store):
    base = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    await store.append_turn(_turn(text="later", created_at=base + timedelta(minutes=5)))
    await store.append_turn(_turn(text="earlier", created_at=base))

    recent = await store.get_recent_turns("c1", 10)
    assert [t.text for t in recent] == ["earlier", "later"]


@pytest.mark.asyncio
async def test_equal_timestamps_keep_insertion_order(store):
    stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    for text in ("a", "b", "c"):
        await store.append_turn(_turn(text=text, created_at=stamp))
    assert [t.text for t in await store.get_recent_turns("c1", 10)] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_turn_metadata_round_trip(store):
    await store.append_turn(_turn(metadata={"sources": ["doc-1"], "latency_ms": 12}))
    (turn,) = await store.get_recent_turns("c1", 1)
    assert turn.metadata == {"sources": ["doc-1"], "latency_ms": 12}
    assert turn.role is Role.USER


@pytest.mark.asyncio
async def test_metadata_with_datetime_and_nested_values(store):
    retrieved_at = datetime(2024, 5, 1, 9, 30, 15, 250000, tzinfo=timezone.utc)
    metadata = {
        "retrieved_at": retrieved_at,
        "evidence": {"sources": [{"id": "doc-1", "score": 0.87}], "count": 1},
    }

    stored = await store.append_turn(_turn(role=Role.ASSISTANT, text="answer", metadata=metadata))

    assert stored.message_id
    (turn,) = await store.get_recent_turns("c1", 1)
    assert turn.metadata["evidence"] == {"sources": [{"id": "doc-1", "score": 0.87}], "count": 1}
    # SQLite hands timestamps back in their JSON (ISO 8601) form
    assert coerce_utc(turn.metadata["retrieved_at"]) == retrieved_at


@pytest.mark.asyncio
async def test_concurrent_appends_do_not_lose_counts(store):
    await store.save_session(Session(chat_id="c1", lang="ko"))
    await asyncio.gather(*(store.append_turn(_turn(text=f"m{i}")) for i in range(20)))

    assert (await store.get_session("c1")).message_count == 20
    assert await store.get_turn_count("c1") == 20


@pytest.mark.asyncio
async def test_reset_clears_turns_and_summary(store):
    original = Session(chat_id="c1", lang="ko")
    await store.save_session(original)
    for i in range(3):
        await store.append_turn(_turn(text=f"m{i}"))
    await store.update_summary("c1", "a summary")

    await store.reset_session("c1")

    session = await store.get_session("c1")
    assert session.chat_id == "c1"
    assert session.created_at == original.created_at
    assert session.message_count == 0
    assert session.summary is None
    assert await store.get_recent_turns("c1", 10) == []
    assert await store.get_turn_count("c1") == 0


@pytest.mark.asyncio
async def test_reset_missing_session_is_noop(store):
    await store.reset_session("nobody")
    assert await store.get_session("nobody") is None


@pytest.mark.asyncio
async def test_update_summary_replaces_wholesale(store):
    await store.save_session(Session(chat_id="c1", lang="ko"))
    await store.update_summary("c1", "first")
    await store.update_summary("c1", "second")
    assert (await store.get_session("c1")).summary == "second"


@pytest.mark.asyncio
async def test_update_summary_unknown_session(store):
    with pytest.raises(SessionStorageError):
        await store.update_summary("nobody", "text")


class TestSummaryTrigger:
    """Policy under test: 3 turns, or 50 chars over the last 3 turns."""

    @pytest.mark.asyncio
    async def test_absent_session(self, store):
        assert await store.should_trigger_summary("nobody") is False

    @pytest.mark.asyncio
    async def test_no_turns(self, store):
        await store.save_session(Session(chat_id="c1", lang="ko"))
        assert await store.should_trigger_summary("c1") is False

    @pytest.mark.asyncio
    async def test_turn_threshold(self, store):
        await store.append_turn(_turn(text="a"))
        await store.append_turn(_turn(text="b"))
        assert await store.should_trigger_summary("c1") is False
        await store.append_turn(_turn(text="c"))
        assert await store.should_trigger_summary("c1") is True

    @pytest.mark.asyncio
    async def test_char_threshold(self, store):
        await store.append_turn(_turn(text="x" * 50))
        assert await store.should_trigger_summary("c1") is True

    @pytest.mark.asyncio
    async def test_summary_resets_count(self, store):
        for text in ("a", "b", "c"):
            await store.append_turn(_turn(text=text))
        await store.update_summary("c1", "abc")
        assert await store.should_trigger_summary("c1") is False

        await store.append_turn(_turn(text="d"))
        assert await store.should_trigger_summary("c1") is False

    @pytest.mark.asyncio
    async def test_chars_before_summary_do_not_count(self, store):
        await store.append_turn(_turn(text="y" * 49))
        await store.update_summary("c1", "long turn")
        await store.append_turn(_turn(text="z"))
        assert await store.should_trigger_summary("c1") is False

    @pytest.mark.asyncio
    async def test_reset_clears_trigger_state(self, store):
        for text in ("a", "b", "c"):
            await store.append_turn(_turn(text=text))
        await store.reset_session("c1")
        assert await store.should_trigger_summary("c1") is False
