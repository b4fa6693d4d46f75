from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS audio_cache (
    audio_hash TEXT PRIMARY KEY,
    file_path TEXT NOT NULL,
    tts_provider TEXT,
    created_at TEXT NOT NULL
);
"""


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Key-value store ───────────────────────────────────────────────────

    def get_value(self, key: str) -> str | None:
        row = self.conn.execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_value(self, key: str, value: str) -> None:
        """Full overwrite of *key*."""
        now = datetime.now(timezone.utc).isoformat()
        self.conn.execute(
            "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
            (key, value, now),
        )
        self.conn.commit()

    def delete_value(self, key: str) -> None:
        self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        self.conn.commit()

    # ── Audio cache ───────────────────────────────────────────────────────

    def get_audio_cache(self, audio_hash: str) -> str | None:
        row = self.conn.execute(
            "SELECT file_path FROM audio_cache WHERE audio_hash = ?",
            (audio_hash,),
        ).fetchone()
        return row["file_path"] if row else None

    def set_audio_cache(
        self, audio_hash: str, file_path: str, tts_provider: str
    ) -> None:
        now = datetime.now(timezone.utc).isoformat()
        self.conn.execute(
            "INSERT OR REPLACE INTO audio_cache "
            "(audio_hash, file_path, tts_provider, created_at) VALUES (?, ?, ?, ?)",
            (audio_hash, file_path, tts_provider, now),
        )
        self.conn.commit()

