# src/chatmemory/storage/sqlite_store.py
"""
SQLite conversation store using aiosqlite.

This module implements the ConversationStore interface on a single SQLite
file. Sessions and turns live in two tables; every write runs inside one
transaction guarded by an asyncio.Lock, so ``append_turn`` increments
``message_count`` atomically (``message_count = message_count + 1``) and
concurrent saves for the same chat id cannot lose updates.
"""

import asyncio
import json
import logging
import os
import pathlib
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiosqlite

from ..exceptions import ConfigError, SessionStorageError
from ..models import Role, Session, Turn, utc_now
from .base_store import ConversationStore
from .policy import SummaryTriggerPolicy

logger = logging.getLogger(__name__)

# Default table names
DEFAULT_SESSIONS_TABLE = "conversations"
DEFAULT_TURNS_TABLE = "turns"


def _to_db(dt: datetime) -> str:
    """Fixed-width UTC timestamp, so text ordering equals time ordering."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def _from_db(value: Optional[str]) -> datetime:
    return datetime.fromisoformat(value.replace('Z', '+00:00')) if value else utc_now()


class SqliteConversationStore(ConversationStore):
    """
    Manages persistence of sessions and turns in a SQLite database
    using aiosqlite.
    """
    _db_path: pathlib.Path
    _conn: Optional[aiosqlite.Connection] = None
    _sessions_table_name: str
    _turns_table_name: str

    def __init__(self) -> None:
        self._write_lock = asyncio.Lock()
        self._policy = SummaryTriggerPolicy()
        self._default_language = "ko"

    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Open the database and create tables if they don't exist.

        Args:
            config: Expected keys:
                    'path': The SQLite database file (":memory:" allowed).
                    'sessions_table_name' (optional)
                    'turns_table_name' (optional)
                    plus the summary policy keys (see ConversationStore.initialize).

        Raises:
            ConfigError: If 'path' is not provided.
            SessionStorageError: If the database cannot be opened or tables created.
        """
        db_path_str = config.get("path")
        if not db_path_str:
            raise ConfigError("SQLite conversation store 'path' not specified in configuration.")

        self._policy = SummaryTriggerPolicy.from_config(config)
        self._default_language = config.get("default_language", self._default_language)
        self._sessions_table_name = config.get("sessions_table_name", DEFAULT_SESSIONS_TABLE)
        self._turns_table_name = config.get("turns_table_name", DEFAULT_TURNS_TABLE)

        try:
            if db_path_str == ":memory:":
                self._db_path = pathlib.Path(db_path_str)
                self._conn = await aiosqlite.connect(":memory:")
            else:
                self._db_path = pathlib.Path(os.path.expanduser(db_path_str))
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = await aiosqlite.connect(self._db_path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA foreign_keys = ON;")

            await self._conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self._sessions_table_name} (
                    chat_id TEXT PRIMARY KEY, lang TEXT NOT NULL,
                    message_count INTEGER NOT NULL DEFAULT 0, summary TEXT,
                    turns_since_summary INTEGER NOT NULL DEFAULT 0,
                    last_message_at TEXT NOT NULL, created_at TEXT NOT NULL, updated_at TEXT NOT NULL
                )
            """)
            await self._conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self._turns_table_name} (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT, message_id TEXT NOT NULL UNIQUE,
                    chat_id TEXT NOT NULL, role TEXT NOT NULL, text TEXT NOT NULL,
                    created_at TEXT NOT NULL, metadata TEXT,
                    FOREIGN KEY (chat_id) REFERENCES {self._sessions_table_name}(chat_id) ON DELETE CASCADE
                )
            """)
            await self._conn.execute(f"CREATE INDEX IF NOT EXISTS idx_turns_chat_created ON {self._turns_table_name} (chat_id, created_at, seq);")
            await self._conn.commit()
            logger.info(f"SQLite conversation store initialized at: {self._db_path} with tables: "
                        f"{self._sessions_table_name}, {self._turns_table_name}")
        except aiosqlite.Error as e:
            logger.error(f"Failed to initialize aiosqlite database at {self._db_path}: {e}")
            if self._conn:
                await self._conn.close()
                self._conn = None
            raise SessionStorageError(f"Could not initialize SQLite database: {e}") from e

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise SessionStorageError("Database connection not initialized.")
        return self._conn

    def _row_to_session(self, row: aiosqlite.Row) -> Session:
        return Session(
            chat_id=row["chat_id"],
            lang=row["lang"],
            message_count=row["message_count"],
            summary=row["summary"],
            last_message_at=_from_db(row["last_message_at"]),
            created_at=_from_db(row["created_at"]),
            updated_at=_from_db(row["updated_at"]),
        )

    def _row_to_turn(self, row: aiosqlite.Row) -> Turn:
        return Turn(
            message_id=row["message_id"],
            chat_id=row["chat_id"],
            role=Role(row["role"]),
            text=row["text"],
            created_at=_from_db(row["created_at"]),
            metadata=json.loads(row["metadata"] or '{}'),
        )

    async def _rollback(self, conn: aiosqlite.Connection) -> None:
        try:
            await conn.rollback()
        except aiosqlite.Error as rb_e:
            logger.error(f"Rollback failed: {rb_e}")

    async def get_session(self, chat_id: str) -> Optional[Session]:
        conn = self._require_conn()
        try:
            async with conn.execute(f"SELECT * FROM {self._sessions_table_name} WHERE chat_id = ?", (chat_id,)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error(f"aiosqlite error retrieving session '{chat_id}': {e}")
            raise SessionStorageError(f"Database error retrieving session '{chat_id}': {e}") from e
        if not row:
            logger.debug(f"Session '{chat_id}' not found in SQLite.")
            return None
        return self._row_to_session(row)

    async def save_session(self, session: Session) -> None:
        conn = self._require_conn()
        async with self._write_lock:
            try:
                await conn.execute(f"""
                    INSERT INTO {self._sessions_table_name}
                        (chat_id, lang, message_count, summary, last_message_at, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(chat_id) DO UPDATE SET
                        lang = excluded.lang, message_count = excluded.message_count,
                        summary = excluded.summary, last_message_at = excluded.last_message_at,
                        updated_at = excluded.updated_at
                """, (session.chat_id, session.lang, session.message_count, session.summary,
                      _to_db(session.last_message_at), _to_db(session.created_at), _to_db(session.updated_at)))
                await conn.commit()
            except aiosqlite.Error as e:
                logger.error(f"aiosqlite error saving session '{session.chat_id}': {e}")
                await self._rollback(conn)
                raise SessionStorageError(f"Database error saving session '{session.chat_id}': {e}") from e
        logger.debug(f"Session '{session.chat_id}' saved to SQLite.")

    async def reset_session(self, chat_id: str) -> None:
        conn = self._require_conn()
        async with self._write_lock:
            try:
                await conn.execute("BEGIN;")
                await conn.execute(f"DELETE FROM {self._turns_table_name} WHERE chat_id = ?", (chat_id,))
                await conn.execute(f"""
                    UPDATE {self._sessions_table_name}
                    SET message_count = 0, summary = NULL, turns_since_summary = 0, updated_at = ?
                    WHERE chat_id = ?
                """, (_to_db(utc_now()), chat_id))
                await conn.commit()
            except aiosqlite.Error as e:
                logger.error(f"aiosqlite error resetting session '{chat_id}': {e}")
                await self._rollback(conn)
                raise SessionStorageError(f"Database error resetting session '{chat_id}': {e}") from e

    async def append_turn(self, turn: Turn) -> Turn:
        conn = self._require_conn()
        stored = turn.model_copy(update={"message_id": uuid.uuid4().hex})
        now = _to_db(utc_now())
        async with self._write_lock:
            try:
                await conn.execute("BEGIN;")
                await conn.execute(f"""
                    INSERT OR IGNORE INTO {self._sessions_table_name}
                        (chat_id, lang, last_message_at, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                """, (turn.chat_id, self._default_language, now, now, now))
                await conn.execute(f"""
                    INSERT INTO {self._turns_table_name} (message_id, chat_id, role, text, created_at, metadata)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (stored.message_id, stored.chat_id, Role(stored.role).value, stored.text,
                      _to_db(stored.created_at), json.dumps(stored.model_dump(mode="json")["metadata"])))
                await conn.execute(f"""
                    UPDATE {self._sessions_table_name}
                    SET message_count = message_count + 1,
                        turns_since_summary = turns_since_summary + 1,
                        last_message_at = ?, updated_at = MAX(?, created_at)
                    WHERE chat_id = ?
                """, (_to_db(stored.created_at), now, stored.chat_id))
                await conn.commit()
            except (aiosqlite.Error, TypeError, ValueError) as e:
                logger.error(f"Error appending turn for session '{turn.chat_id}': {e}")
                await self._rollback(conn)
                raise SessionStorageError(f"Database error appending turn for '{turn.chat_id}': {e}") from e
        return stored

    async def get_recent_turns(self, chat_id: str, limit: int) -> List[Turn]:
        if limit <= 0:
            return []
        conn = self._require_conn()
        turns: List[Turn] = []
        try:
            async with conn.execute(f"""
                SELECT * FROM {self._turns_table_name} WHERE chat_id = ?
                ORDER BY created_at DESC, seq DESC LIMIT ?
            """, (chat_id, limit)) as cursor:
                async for row in cursor:
                    try:
                        turns.append(self._row_to_turn(row))
                    except (json.JSONDecodeError, ValueError, TypeError) as e:
                        logger.warning(f"Skipping invalid turn data for session {chat_id}, message_id {row['message_id']}: {e}")
        except aiosqlite.Error as e:
            logger.error(f"aiosqlite error retrieving turns for '{chat_id}': {e}")
            raise SessionStorageError(f"Database error retrieving turns for '{chat_id}': {e}") from e
        turns.reverse()
        return turns

    async def get_turn_count(self, chat_id: str) -> int:
        conn = self._require_conn()
        try:
            async with conn.execute(f"SELECT COUNT(*) FROM {self._turns_table_name} WHERE chat_id = ?", (chat_id,)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise SessionStorageError(f"Database error counting turns for '{chat_id}': {e}") from e
        return int(row[0]) if row else 0

    async def should_trigger_summary(self, chat_id: str) -> bool:
        conn = self._require_conn()
        try:
            async with conn.execute(f"SELECT turns_since_summary FROM {self._sessions_table_name} WHERE chat_id = ?", (chat_id,)) as cursor:
                row = await cursor.fetchone()
            if not row:
                return False
            since = int(row["turns_since_summary"])
            window = await self.get_recent_turns(chat_id, self._policy.char_window(since))
        except aiosqlite.Error as e:
            raise SessionStorageError(f"Database error checking summary trigger for '{chat_id}': {e}") from e
        return self._policy.should_trigger(since, (t.text for t in window))

    async def update_summary(self, chat_id: str, text: str) -> None:
        conn = self._require_conn()
        async with self._write_lock:
            try:
                cursor = await conn.execute(f"""
                    UPDATE {self._sessions_table_name}
                    SET summary = ?, turns_since_summary = 0, updated_at = ?
                    WHERE chat_id = ?
                """, (text, _to_db(utc_now()), chat_id))
                await conn.commit()
            except aiosqlite.Error as e:
                logger.error(f"aiosqlite error updating summary for '{chat_id}': {e}")
                await self._rollback(conn)
                raise SessionStorageError(f"Database error updating summary for '{chat_id}': {e}") from e
        if cursor.rowcount == 0:
            raise SessionStorageError(f"Cannot update summary of unknown session '{chat_id}'.")

    async def close(self) -> None:
        if self._conn:
            try:
                await self._conn.close()
                logger.info("SQLite conversation store connection closed.")
            finally:
                self._conn = None
