from __future__ import annotations

import json
import uuid
from typing import Any

from .database import SQLiteHealthDB
from .errors import RecordNotFound, RecordValidationError
from .time_utils import normalize_timestamp, to_iso, utc_now

CHAT_ROLES = {"user", "assistant"}


def _normalize_messages(messages: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    normalized: list[dict[str, Any]] = []
    for index, message in enumerate(messages or []):
        if not isinstance(message, dict):
            raise RecordValidationError(f"Message {index} must be an object.")
        role = str(message.get("role") or "").strip().lower()
        if role not in CHAT_ROLES:
            raise RecordValidationError(f"Message {index} has an invalid role.")
        content = str(message.get("content") or "")
        if not content.strip():
            raise RecordValidationError(f"Message {index} has empty content.")
        try:
            timestamp = normalize_timestamp(message.get("timestamp"))
        except ValueError as exc:
            raise RecordValidationError(f"Message {index}: {exc}") from exc
        normalized.append({"role": role, "content": content, "timestamp": timestamp})
    return normalized


def _row_to_chat(row: Any) -> dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "title": row["title"],
        "messages": json.loads(row["messages_json"]),
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


class ChatStore:
    def __init__(self, db: SQLiteHealthDB) -> None:
        self._db = db

    def list_chats(self, user_id: str) -> list[dict[str, Any]]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT id, user_id, title, messages_json, created_at, updated_at
                FROM chats
                WHERE user_id = ?
                ORDER BY updated_at DESC
                """,
                (user_id,),
            ).fetchall()
        return [_row_to_chat(row) for row in rows]

    def get_chat(self, user_id: str, chat_id: str) -> dict[str, Any]:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT id, user_id, title, messages_json, created_at, updated_at
                FROM chats
                WHERE id = ? AND user_id = ?
                """,
                (chat_id, user_id),
            ).fetchone()
        if row is None:
            raise RecordNotFound("Chat not found")
        return _row_to_chat(row)

    def create_chat(
        self,
        *,
        user_id: str,
        title: str | None,
        messages: list[dict[str, Any]] | None,
    ) -> dict[str, Any]:
        now = to_iso(utc_now())
        chat_id = uuid.uuid4().hex
        normalized = _normalize_messages(messages)
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO chats (id, user_id, title, messages_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (chat_id, user_id, (title or "").strip() or "New Chat", json.dumps(normalized), now, now),
            )
        return self.get_chat(user_id, chat_id)

    def replace_chat(
        self,
        *,
        user_id: str,
        chat_id: str,
        title: str | None,
        messages: list[dict[str, Any]] | None,
    ) -> dict[str, Any]:
        normalized = _normalize_messages(messages)
        now = to_iso(utc_now())
        with self._db.connection() as conn:
            cursor = conn.execute(
                """
                UPDATE chats
                SET title = ?, messages_json = ?, updated_at = ?
                WHERE id = ? AND user_id = ?
                """,
                ((title or "").strip() or "Chat", json.dumps(normalized), now, chat_id, user_id),
            )
            if cursor.rowcount == 0:
                raise RecordNotFound("Chat not found")
        return self.get_chat(user_id, chat_id)

    def append_turns(self, *, user_id: str, chat_id: str, turns: list[dict[str, Any]]) -> dict[str, Any]:
        normalized = _normalize_messages(turns)
        now = to_iso(utc_now())
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT messages_json FROM chats WHERE id = ? AND user_id = ?",
                (chat_id, user_id),
            ).fetchone()
            if row is None:
                raise RecordNotFound("Chat not found")
            messages = json.loads(row["messages_json"]) + normalized
            conn.execute(
                "UPDATE chats SET messages_json = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                (json.dumps(messages), now, chat_id, user_id),
            )
        return self.get_chat(user_id, chat_id)

    def delete_chat(self, user_id: str, chat_id: str) -> None:
        with self._db.connection() as conn:
            cursor = conn.execute("DELETE FROM chats WHERE id = ? AND user_id = ?", (chat_id, user_id))
            if cursor.rowcount == 0:
                raise RecordNotFound("Chat not found")

    def delete_all(self, user_id: str) -> int:
        with self._db.connection() as conn:
            cursor = conn.execute("DELETE FROM chats WHERE user_id = ?", (user_id,))
            return cursor.rowcount
