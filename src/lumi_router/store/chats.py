# src/lumi_router/store/chats.py

from __future__ import annotations

import logging
import os
import sqlite3
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from lumi_router.core.clean import now_ms

log = logging.getLogger("lumi.store")

# Default DB lives at: src/lumi_router/lumi.db (override with LUMI_DB_PATH)
DB_PATH = Path(__file__).resolve().parents[1] / "lumi.db"


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS chats (
    user_id TEXT NOT NULL,
    chat_id TEXT NOT NULL,
    title TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    message_count INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (user_id, chat_id)
);

CREATE INDEX IF NOT EXISTS idx_chats_user_updated
    ON chats (user_id, updated_at DESC);

CREATE TABLE IF NOT EXISTS messages (
    user_id TEXT NOT NULL,
    chat_id TEXT NOT NULL,
    message_id INTEGER NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    PRIMARY KEY (user_id, chat_id, message_id)
);

CREATE INDEX IF NOT EXISTS idx_messages_chat_ts
    ON messages (user_id, chat_id, timestamp);
"""


class ChatNotFoundError(LookupError):
    pass


class ChatStore:
    """
    SQLite-backed chat history, scoped per user id.

    Chats:    list / create / rename / delete
    Messages: save (upsert by id) / load / clear
    """

    def __init__(self, db_path: Optional[Path | str] = None) -> None:
        self.db_path = Path(db_path or os.getenv("LUMI_DB_PATH") or DB_PATH)
        self._ensure_schema()

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _ensure_schema(self) -> None:
        conn = self._conn()
        try:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _chat_row(r) -> Dict[str, Any]:
        return {
            "id": r[0],
            "title": r[1],
            "createdAt": r[2],
            "updatedAt": r[3],
            "messageCount": r[4],
        }

    def _require_chat(self, conn: sqlite3.Connection, user_id: str, chat_id: str) -> None:
        cur = conn.execute(
            "SELECT 1 FROM chats WHERE user_id = ? AND chat_id = ?",
            (user_id, chat_id),
        )
        if cur.fetchone() is None:
            raise ChatNotFoundError(chat_id)

    # --- Chats --------------------------------------------------------------

    def get_user_chats(self, user_id: str) -> List[Dict[str, Any]]:
        """Most recently updated first."""
        conn = self._conn()
        try:
            cur = conn.execute(
                """
                SELECT chat_id, title, created_at, updated_at, message_count
                FROM chats
                WHERE user_id = ?
                ORDER BY updated_at DESC
                """,
                (user_id,),
            )
            rows = cur.fetchall()
        finally:
            conn.close()
        return [self._chat_row(r) for r in rows]

    def get_chat(self, user_id: str, chat_id: str) -> Dict[str, Any]:
        conn = self._conn()
        try:
            cur = conn.execute(
                """
                SELECT chat_id, title, created_at, updated_at, message_count
                FROM chats
                WHERE user_id = ? AND chat_id = ?
                """,
                (user_id, chat_id),
            )
            row = cur.fetchone()
        finally:
            conn.close()
        if row is None:
            raise ChatNotFoundError(chat_id)
        return self._chat_row(row)

    def create_chat(self, user_id: str, title: str = "New Chat") -> Dict[str, Any]:
        chat_id = uuid.uuid4().hex
        ts = now_ms()
        conn = self._conn()
        try:
            conn.execute(
                """
                INSERT INTO chats (user_id, chat_id, title, created_at, updated_at, message_count)
                VALUES (?, ?, ?, ?, ?, 0)
                """,
                (user_id, chat_id, title, ts, ts),
            )
            conn.commit()
        finally:
            conn.close()
        log.info("created chat %s for user %s", chat_id, user_id)
        return {
            "id": chat_id,
            "title": title,
            "createdAt": ts,
            "updatedAt": ts,
            "messageCount": 0,
        }

    def rename_chat(self, user_id: str, chat_id: str, title: str) -> None:
        conn = self._conn()
        try:
            cur = conn.execute(
                "UPDATE chats SET title = ?, updated_at = ? WHERE user_id = ? AND chat_id = ?",
                (title, now_ms(), user_id, chat_id),
            )
            if cur.rowcount == 0:
                raise ChatNotFoundError(chat_id)
            conn.commit()
        finally:
            conn.close()

    def delete_chat(self, user_id: str, chat_id: str) -> None:
        """Remove the chat and every message in it."""
        conn = self._conn()
        try:
            self._require_chat(conn, user_id, chat_id)
            conn.execute(
                "DELETE FROM messages WHERE user_id = ? AND chat_id = ?",
                (user_id, chat_id),
            )
            conn.execute(
                "DELETE FROM chats WHERE user_id = ? AND chat_id = ?",
                (user_id, chat_id),
            )
            conn.commit()
        finally:
            conn.close()
        log.info("deleted chat %s for user %s", chat_id, user_id)

    # --- Messages -----------------------------------------------------------

    def save_message(
        self,
        user_id: str,
        chat_id: str,
        role: str,
        content: str,
        message_id: Optional[int] = None,
        timestamp: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Upsert one message (same id overwrites) and touch the chat.

        Without an explicit id the message gets max(timestamp, last id + 1),
        so two saves in the same millisecond never collide.
        """
        ts = timestamp if timestamp is not None else now_ms()
        conn = self._conn()
        try:
            self._require_chat(conn, user_id, chat_id)
            if message_id is not None:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO messages (user_id, chat_id, message_id, role, content, timestamp)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, chat_id, message_id, role, content, ts),
                )
                mid = message_id
            else:
                # single statement: id allocation and insert can't interleave
                cur = conn.execute(
                    """
                    INSERT INTO messages (user_id, chat_id, message_id, role, content, timestamp)
                    SELECT ?, ?, MAX(?, COALESCE(MAX(message_id), 0) + 1), ?, ?, ?
                    FROM messages
                    WHERE user_id = ? AND chat_id = ?
                    """,
                    (user_id, chat_id, ts, role, content, ts, user_id, chat_id),
                )
                mid = conn.execute(
                    "SELECT message_id FROM messages WHERE rowid = ?", (cur.lastrowid,)
                ).fetchone()[0]
            conn.execute(
                """
                UPDATE chats
                SET updated_at = ?,
                    message_count = (
                        SELECT COUNT(*) FROM messages WHERE user_id = ? AND chat_id = ?
                    )
                WHERE user_id = ? AND chat_id = ?
                """,
                (now_ms(), user_id, chat_id, user_id, chat_id),
            )
            conn.commit()
        finally:
            conn.close()
        return {"id": mid, "role": role, "content": content, "timestamp": ts}

    def load_messages(self, user_id: str, chat_id: str) -> List[Dict[str, Any]]:
        """Oldest first."""
        conn = self._conn()
        try:
            self._require_chat(conn, user_id, chat_id)
            cur = conn.execute(
                """
                SELECT message_id, role, content, timestamp
                FROM messages
                WHERE user_id = ? AND chat_id = ?
                ORDER BY timestamp ASC, message_id ASC
                """,
                (user_id, chat_id),
            )
            rows = cur.fetchall()
        finally:
            conn.close()
        return [
            {"id": r[0], "role": r[1], "content": r[2], "timestamp": r[3]}
            for r in rows
        ]

    def clear_messages(self, user_id: str, chat_id: str) -> None:
        conn = self._conn()
        try:
            self._require_chat(conn, user_id, chat_id)
            conn.execute(
                "DELETE FROM messages WHERE user_id = ? AND chat_id = ?",
                (user_id, chat_id),
            )
            conn.execute(
                "UPDATE chats SET updated_at = ?, message_count = 0 WHERE user_id = ? AND chat_id = ?",
                (now_ms(), user_id, chat_id),
            )
            conn.commit()
        finally:
            conn.close()
