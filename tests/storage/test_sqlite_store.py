# tests/storage/test_sqlite_store.py
"""
SQLite-specific behaviour of SqliteConversationStore.
"""

import pytest

from chatmemory.exceptions import ConfigError, SessionStorageError
from chatmemory.models import Role, Session, Turn
from chatmemory.storage import SqliteConversationStore


@pytest.mark.asyncio
async def test_missing_path_is_config_error():
    store = SqliteConversationStore()
    with pytest.raises(ConfigError):
        await store.initialize({})


@pytest.mark.asyncio
async def test_use_before_initialize():
    store = SqliteConversationStore()
    with pytest.raises(SessionStorageError):
        await store.get_session("c1")


@pytest.mark.asyncio
async def test_in_memory_database():
    store = SqliteConversationStore()
    await store.initialize({"path": ":memory:"})
    try:
        await store.append_turn(Turn(chat_id="c1", role=Role.USER, text="hi"))
        assert await store.get_turn_count("c1") == 1
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_data_survives_reopen(tmp_path):
    db_path = str(tmp_path / "nested" / "chat.db")

    store = SqliteConversationStore()
    await store.initialize({"path": db_path})
    await store.save_session(Session(chat_id="c1", lang="ko"))
    stored = await store.append_turn(Turn(chat_id="c1", role=Role.ASSISTANT, text="안녕하세요"))
    await store.update_summary("c1", "greeting")
    await store.close()

    reopened = SqliteConversationStore()
    await reopened.initialize({"path": db_path})
    try:
        session = await reopened.get_session("c1")
        assert session.summary == "greeting"
        assert session.message_count == 1
        (turn,) = await reopened.get_recent_turns("c1", 5)
        assert turn.message_id == stored.message_id
        assert turn.text == "안녕하세요"
        assert turn.created_at == stored.created_at
    finally:
        await reopened.close()


@pytest.mark.asyncio
async def test_custom_table_names(tmp_path):
    store = SqliteConversationStore()
    await store.initialize({
        "path": str(tmp_path / "chat.db"),
        "sessions_table_name": "bot_sessions",
        "turns_table_name": "bot_turns",
    })
    try:
        await store.append_turn(Turn(chat_id="c1", role=Role.USER, text="hi"))
        async with store._conn.execute("SELECT COUNT(*) FROM bot_turns") as cursor:
            row = await cursor.fetchone()
        assert row[0] == 1
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_policy_from_config(sqlite_store):
    for text in ("a", "b"):
        await sqlite_store.append_turn(Turn(chat_id="c1", role=Role.USER, text=text))
    assert await sqlite_store.should_trigger_summary("c1") is False
    await sqlite_store.append_turn(Turn(chat_id="c1", role=Role.USER, text="c"))
    assert await sqlite_store.should_trigger_summary("c1") is True


@pytest.mark.asyncio
async def test_close_is_idempotent(sqlite_store):
    await sqlite_store.close()
    await sqlite_store.close()
