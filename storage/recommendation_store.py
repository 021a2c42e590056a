"""Persistence for issued recommendations.

Callers depend on the RecommendationStore protocol (``save``/``list``) and
never on a particular backend.
"""
from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol


@dataclass(frozen=True)
class StoredRecommendation:
    """A persisted recommendation with its profile."""

    id: int
    session_id: str
    user_id: Optional[str]
    payload: Dict[str, Any]
    created_at: str


class RecommendationStore(Protocol):
    def save(self, session_id: str, payload: Dict[str, Any], user_id: Optional[str] = None) -> int:
        ...

    def list(self, session_id: str, user_id: Optional[str] = None, limit: Optional[int] = None) -> List[StoredRecommendation]:
        ...


class InMemoryRecommendationStore:
    """Process-local store, newest first."""

    def __init__(self) -> None:
        self._rows: List[StoredRecommendation] = []

    def save(self, session_id: str, payload: Dict[str, Any], user_id: Optional[str] = None) -> int:
        row_id = len(self._rows) + 1
        self._rows.append(
            StoredRecommendation(
                id=row_id,
                session_id=session_id,
                user_id=user_id,
                payload=json.loads(json.dumps(payload)),
                created_at=datetime.now().isoformat(timespec="seconds"),
            )
        )
        return row_id

    def list(self, session_id: str, user_id: Optional[str] = None, limit: Optional[int] = None) -> List[StoredRecommendation]:
        if user_id:
            rows = [r for r in self._rows if r.user_id == user_id]
        else:
            rows = [r for r in self._rows if r.session_id == session_id]
        rows = sorted(rows, key=lambda r: r.id, reverse=True)
        return rows[:limit] if limit else rows


class SQLiteRecommendationStore:
    """SQLite-backed store; the schema is created on first use."""

    def __init__(self, db_path: str | Path):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS recommendations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT,
                    session_id TEXT,
                    payload TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_recommendations_user ON recommendations(user_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_recommendations_session ON recommendations(session_id)")
            conn.commit()
        finally:
            conn.close()

    def save(self, session_id: str, payload: Dict[str, Any], user_id: Optional[str] = None) -> int:
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "INSERT INTO recommendations (user_id, session_id, payload, created_at) VALUES (?, ?, ?, ?)",
                (user_id, session_id, json.dumps(payload), datetime.now().isoformat(timespec="seconds")),
            )
            conn.commit()
            return int(cursor.lastrowid)
        finally:
            conn.close()

    def list(self, session_id: str, user_id: Optional[str] = None, limit: Optional[int] = None) -> List[StoredRecommendation]:
        if user_id:
            query = "SELECT * FROM recommendations WHERE user_id = ?"
            params: List[Any] = [user_id]
        else:
            query = "SELECT * FROM recommendations WHERE session_id = ?"
            params = [session_id]
        query += " ORDER BY id DESC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        conn = self._get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

        return [
            StoredRecommendation(
                id=row["id"],
                session_id=row["session_id"],
                user_id=row["user_id"],
                payload=json.loads(row["payload"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]
