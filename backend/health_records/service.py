from __future__ import annotations

import sqlite3
from typing import Any

from .chat_store import ChatStore
from .database import SQLiteHealthDB
from .medication_store import MedicationStore
from .metric_store import HealthMetricStore
from .symptom_store import SymptomCheckStore


class HealthRecordService:
    """Per-user document collections backed by one SQLite database."""

    def __init__(self, db: SQLiteHealthDB) -> None:
        self.db = db
        self.chats = ChatStore(db)
        self.metrics = HealthMetricStore(db)
        self.medications = MedicationStore(db)
        self.symptom_checks = SymptomCheckStore(db)

    def status(self) -> dict[str, Any]:
        try:
            reachable = self.db.ping()
            error = None
        except sqlite3.Error as exc:
            reachable = False
            error = str(exc)
        return {"connected": reachable, "path": self.db.path, "error": error}
