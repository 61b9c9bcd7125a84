from __future__ import annotations

import json
import uuid
from typing import Any

from .database import SQLiteHealthDB
from .errors import RecordNotFound
from .time_utils import to_iso, utc_now


def _row_to_check(row: Any) -> dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "symptoms": json.loads(row["symptoms_json"]),
        "age": row["age"],
        "gender": row["gender"],
        "additionalInfo": row["additional_info"],
        "analysis": json.loads(row["analysis_json"]),
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


class SymptomCheckStore:
    def __init__(self, db: SQLiteHealthDB) -> None:
        self._db = db

    def add_check(
        self,
        *,
        user_id: str,
        symptoms: list[dict[str, Any]],
        analysis: dict[str, Any],
        age: int | None = None,
        gender: str | None = None,
        additional_info: str | None = None,
    ) -> dict[str, Any]:
        now = to_iso(utc_now())
        check_id = uuid.uuid4().hex
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO symptom_checks (
                  id, user_id, symptoms_json, age, gender, additional_info, analysis_json, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    check_id,
                    user_id,
                    json.dumps(symptoms),
                    age,
                    gender,
                    additional_info,
                    json.dumps(analysis),
                    now,
                    now,
                ),
            )
        return self.get_check(user_id, check_id)

    def get_check(self, user_id: str, check_id: str) -> dict[str, Any]:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM symptom_checks WHERE id = ? AND user_id = ?",
                (check_id, user_id),
            ).fetchone()
        if row is None:
            raise RecordNotFound("Symptom check not found")
        return _row_to_check(row)

    def recent_checks(self, user_id: str, limit: int = 20) -> list[dict[str, Any]]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM symptom_checks
                WHERE user_id = ?
                ORDER BY created_at DESC
                LIMIT ?
                """,
                (user_id, max(1, limit)),
            ).fetchall()
        return [_row_to_check(row) for row in rows]
