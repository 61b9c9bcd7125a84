from __future__ import annotations

import json
import math
import uuid
from typing import Any

from .database import SQLiteHealthDB
from .errors import RecordNotFound, RecordValidationError
from .time_utils import normalize_timestamp, to_iso, utc_now

METRIC_TYPES = {"blood_pressure", "blood_sugar", "weight", "heart_rate", "temperature"}
METRIC_VALUE_FIELDS = {"systolic", "diastolic", "glucose", "weight", "heartRate", "temperature"}


def _normalize_value(value: Any) -> dict[str, float]:
    if not isinstance(value, dict) or not value:
        raise RecordValidationError("Metric value must be a non-empty object.")
    normalized: dict[str, float] = {}
    for key, raw in value.items():
        if key not in METRIC_VALUE_FIELDS:
            raise RecordValidationError(f"Unsupported metric value field: {key}")
        if raw is None:
            continue
        if isinstance(raw, bool):
            raise RecordValidationError(f"Metric value field {key} must be numeric.")
        try:
            number = float(raw)
        except (TypeError, ValueError) as exc:
            raise RecordValidationError(f"Metric value field {key} must be numeric.") from exc
        if not math.isfinite(number):
            raise RecordValidationError(f"Metric value field {key} must be a finite number.")
        normalized[key] = number
    if not normalized:
        raise RecordValidationError("Metric value must contain at least one reading.")
    return normalized


def _row_to_metric(row: Any) -> dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "type": row["metric_type"],
        "value": json.loads(row["value_json"]),
        "unit": row["unit"],
        "notes": row["notes"],
        "measuredAt": row["measured_at"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


class HealthMetricStore:
    def __init__(self, db: SQLiteHealthDB) -> None:
        self._db = db

    def add_metric(
        self,
        *,
        user_id: str,
        metric_type: str,
        value: dict[str, Any],
        unit: str,
        notes: str | None = None,
        measured_at: str | None = None,
    ) -> dict[str, Any]:
        if metric_type not in METRIC_TYPES:
            raise RecordValidationError(f"Unsupported metric type: {metric_type}")
        if not (unit or "").strip():
            raise RecordValidationError("Metric unit is required.")
        normalized = _normalize_value(value)
        try:
            measured = normalize_timestamp(measured_at)
        except ValueError as exc:
            raise RecordValidationError(str(exc)) from exc
        now = to_iso(utc_now())
        metric_id = uuid.uuid4().hex
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO health_metrics (
                  id, user_id, metric_type, value_json, unit, notes, measured_at, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (metric_id, user_id, metric_type, json.dumps(normalized), unit.strip(), notes, measured, now, now),
            )
            row = conn.execute("SELECT * FROM health_metrics WHERE id = ?", (metric_id,)).fetchone()
        return _row_to_metric(row)

    def list_metrics(self, user_id: str, *, metric_type: str | None = None, limit: int = 30) -> list[dict[str, Any]]:
        params: list[Any] = [user_id]
        sql = "SELECT * FROM health_metrics WHERE user_id = ?"
        if metric_type:
            sql += " AND metric_type = ?"
            params.append(metric_type)
        sql += " ORDER BY measured_at DESC LIMIT ?"
        params.append(max(1, int(limit)))
        with self._db.connection() as conn:
            rows = conn.execute(sql, tuple(params)).fetchall()
        return [_row_to_metric(row) for row in rows]

    def delete_metric(self, user_id: str, metric_id: str) -> None:
        with self._db.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM health_metrics WHERE id = ? AND user_id = ?",
                (metric_id, user_id),
            )
            if cursor.rowcount == 0:
                raise RecordNotFound("Metric not found")
