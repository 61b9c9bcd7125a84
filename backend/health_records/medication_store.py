from __future__ import annotations

import json
import uuid
from typing import Any

from .database import SQLiteHealthDB
from .errors import RecordNotFound, RecordValidationError
from .time_utils import normalize_timestamp, to_iso, utc_now

LOG_STATUSES = {"taken", "missed", "skipped"}

# API field -> (column, kind)
_UPDATABLE_FIELDS: dict[str, tuple[str, str]] = {
    "name": ("name", "required_text"),
    "dosage": ("dosage", "required_text"),
    "frequency": ("frequency", "required_text"),
    "times": ("times_json", "text_list"),
    "startDate": ("start_date", "timestamp"),
    "endDate": ("end_date", "optional_timestamp"),
    "isActive": ("is_active", "flag"),
    "reminderEnabled": ("reminder_enabled", "flag"),
    "instructions": ("instructions", "optional_text"),
    "sideEffects": ("side_effects_json", "text_list"),
}


def _text_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise RecordValidationError(f"{field_name} must be a list.")
    return [str(item).strip() for item in value if str(item).strip()]


def _timestamp(value: Any, field_name: str) -> str:
    try:
        return normalize_timestamp(value)
    except ValueError as exc:
        raise RecordValidationError(f"{field_name}: {exc}") from exc


def _column_value(field_name: str, kind: str, value: Any) -> Any:
    if kind == "required_text":
        text = str(value or "").strip()
        if not text:
            raise RecordValidationError(f"{field_name} cannot be empty.")
        return text
    if kind == "optional_text":
        return None if value is None else str(value)
    if kind == "text_list":
        return json.dumps(_text_list(value, field_name))
    if kind == "timestamp":
        if value is None or not str(value).strip():
            raise RecordValidationError(f"{field_name} cannot be empty.")
        return _timestamp(value, field_name)
    if kind == "optional_timestamp":
        if value is None or not str(value).strip():
            return None
        return _timestamp(value, field_name)
    if not isinstance(value, bool):
        raise RecordValidationError(f"{field_name} must be true or false.")
    return 1 if value else 0


def _row_to_log(row: Any) -> dict[str, Any]:
    return {
        "id": row["id"],
        "medicationId": row["medication_id"],
        "takenAt": row["taken_at"],
        "status": row["status"],
        "notes": row["notes"],
    }


class MedicationStore:
    def __init__(self, db: SQLiteHealthDB) -> None:
        self._db = db

    def _hydrate(self, conn: Any, row: Any) -> dict[str, Any]:
        logs = conn.execute(
            """
            SELECT id, medication_id, taken_at, status, notes
            FROM medication_logs
            WHERE medication_id = ?
            ORDER BY taken_at ASC, created_at ASC
            """,
            (row["id"],),
        ).fetchall()
        return {
            "id": row["id"],
            "userId": row["user_id"],
            "name": row["name"],
            "dosage": row["dosage"],
            "frequency": row["frequency"],
            "times": json.loads(row["times_json"]),
            "startDate": row["start_date"],
            "endDate": row["end_date"],
            "isActive": bool(row["is_active"]),
            "reminderEnabled": bool(row["reminder_enabled"]),
            "instructions": row["instructions"],
            "sideEffects": json.loads(row["side_effects_json"]),
            "logs": [_row_to_log(log) for log in logs],
            "createdAt": row["created_at"],
            "updatedAt": row["updated_at"],
        }

    def _fetch(self, conn: Any, user_id: str, medication_id: str) -> dict[str, Any]:
        row = conn.execute(
            "SELECT * FROM medications WHERE id = ? AND user_id = ?",
            (medication_id, user_id),
        ).fetchone()
        if row is None:
            raise RecordNotFound("Medication not found")
        return self._hydrate(conn, row)

    def add_medication(self, *, user_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        missing = [key for key in ("name", "dosage", "frequency", "times", "startDate") if not payload.get(key)]
        if missing:
            raise RecordValidationError("Name, dosage, frequency, times, and start date are required")
        columns = {
            column: _column_value(field_name, kind, payload.get(field_name))
            for field_name, (column, kind) in _UPDATABLE_FIELDS.items()
            if field_name not in {"isActive", "reminderEnabled"}
        }
        columns["is_active"] = 1
        columns["reminder_enabled"] = 0 if payload.get("reminderEnabled") is False else 1
        now = to_iso(utc_now())
        medication_id = uuid.uuid4().hex
        names = ["id", "user_id", *columns.keys(), "created_at", "updated_at"]
        values = [medication_id, user_id, *columns.values(), now, now]
        with self._db.connection() as conn:
            conn.execute(
                f"INSERT INTO medications ({', '.join(names)}) VALUES ({', '.join('?' for _ in names)})",
                tuple(values),
            )
            return self._fetch(conn, user_id, medication_id)

    def list_medications(self, user_id: str, *, active_only: bool = False) -> list[dict[str, Any]]:
        sql = "SELECT * FROM medications WHERE user_id = ?"
        if active_only:
            sql += " AND is_active = 1"
        sql += " ORDER BY created_at DESC"
        with self._db.connection() as conn:
            rows = conn.execute(sql, (user_id,)).fetchall()
            return [self._hydrate(conn, row) for row in rows]

    def update_medication(self, *, user_id: str, medication_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        assignments: list[str] = []
        values: list[Any] = []
        for field_name, value in updates.items():
            column_kind = _UPDATABLE_FIELDS.get(field_name)
            if column_kind is None:
                continue
            column, kind = column_kind
            assignments.append(f"{column} = ?")
            values.append(_column_value(field_name, kind, value))
        with self._db.connection() as conn:
            if assignments:
                assignments.append("updated_at = ?")
                values.extend([to_iso(utc_now()), medication_id, user_id])
                cursor = conn.execute(
                    f"UPDATE medications SET {', '.join(assignments)} WHERE id = ? AND user_id = ?",
                    tuple(values),
                )
                if cursor.rowcount == 0:
                    raise RecordNotFound("Medication not found")
            return self._fetch(conn, user_id, medication_id)

    def delete_medication(self, user_id: str, medication_id: str) -> None:
        with self._db.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM medications WHERE id = ? AND user_id = ?",
                (medication_id, user_id),
            )
            if cursor.rowcount == 0:
                raise RecordNotFound("Medication not found")

    def log_intake(
        self,
        *,
        user_id: str,
        medication_id: str,
        status: str,
        notes: str | None = None,
        taken_at: str | None = None,
    ) -> dict[str, Any]:
        if status not in LOG_STATUSES:
            raise RecordValidationError(f"Unsupported log status: {status}")
        taken = _timestamp(taken_at, "takenAt")
        now = to_iso(utc_now())
        with self._db.connection() as conn:
            self._fetch(conn, user_id, medication_id)
            conn.execute(
                """
                INSERT INTO medication_logs (id, medication_id, user_id, taken_at, status, notes, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (uuid.uuid4().hex, medication_id, user_id, taken, status, notes, now),
            )
            conn.execute(
                "UPDATE medications SET updated_at = ? WHERE id = ? AND user_id = ?",
                (now, medication_id, user_id),
            )
            return self._fetch(conn, user_id, medication_id)
