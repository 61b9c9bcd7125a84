from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class SQLiteHealthDB:
    def __init__(self, db_path: str) -> None:
        self._path = Path(db_path).expanduser().resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    @property
    def path(self) -> str:
        return str(self._path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ping(self) -> bool:
        with self.connection() as conn:
            row = conn.execute("SELECT 1 AS ok").fetchone()
        return bool(row and row["ok"] == 1)

    def _init_schema(self) -> None:
        with self._lock, self.connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS chats (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  title TEXT NOT NULL,
                  messages_json TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS health_metrics (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  metric_type TEXT NOT NULL,
                  value_json TEXT NOT NULL,
                  unit TEXT NOT NULL,
                  notes TEXT,
                  measured_at TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS medications (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  name TEXT NOT NULL,
                  dosage TEXT NOT NULL,
                  frequency TEXT NOT NULL,
                  times_json TEXT NOT NULL,
                  start_date TEXT NOT NULL,
                  end_date TEXT,
                  is_active INTEGER NOT NULL DEFAULT 1,
                  reminder_enabled INTEGER NOT NULL DEFAULT 1,
                  instructions TEXT,
                  side_effects_json TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS medication_logs (
                  id TEXT PRIMARY KEY,
                  medication_id TEXT NOT NULL REFERENCES medications(id) ON DELETE CASCADE,
                  user_id TEXT NOT NULL,
                  taken_at TEXT NOT NULL,
                  status TEXT NOT NULL,
                  notes TEXT,
                  created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS symptom_checks (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  symptoms_json TEXT NOT NULL,
                  age INTEGER,
                  gender TEXT,
                  additional_info TEXT,
                  analysis_json TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_chats_user_updated
                  ON chats(user_id, updated_at DESC);
                CREATE INDEX IF NOT EXISTS idx_health_metrics_user_type_time
                  ON health_metrics(user_id, metric_type, measured_at DESC);
                CREATE INDEX IF NOT EXISTS idx_medications_user_active
                  ON medications(user_id, is_active);
                CREATE INDEX IF NOT EXISTS idx_medication_logs_medication
                  ON medication_logs(medication_id, taken_at);
                CREATE INDEX IF NOT EXISTS idx_symptom_checks_user_created
                  ON symptom_checks(user_id, created_at DESC);
                """
            )
