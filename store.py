"""SQLite store for transcript history and user settings."""

from __future__ import annotations

import csv
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from models import TranscriptRecord, TranscriptStats, count_words, words_per_minute

logger = logging.getLogger(__name__)

SAVE_AUDIO = "save_audio"
CLEANUP_ENABLED = "cleanup_enabled"
CLEANUP_STYLE = "cleanup_style"
CLEANUP_CUSTOM_PROMPT = "cleanup_custom_prompt"


def _record_from_row(row: sqlite3.Row) -> TranscriptRecord:
    return TranscriptRecord(
        id=row["id"],
        text=row["text"],
        duration=row["duration"] or 0.0,
        wpm=row["wpm"] or 0.0,
        audio_path=row["audio_path"],
        created_at=row["created_at"],
    )


class SqliteTranscriptStore:
    """Transcripts and key/value settings.

    Thread-safe: the Qt thread reads history while the dictation loop writes.
    """

    def __init__(self, db_path: Path) -> None:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        # caller must hold _lock
        if self._conn is None:
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_db(self) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS transcripts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    text TEXT NOT NULL,
                    duration REAL,
                    wpm REAL,
                    audio_path TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT
                );
                """
            )
            self._migrate_schema(conn)
            conn.commit()

    def _migrate_schema(self, conn: sqlite3.Connection) -> None:
        columns = {row[1] for row in conn.execute("PRAGMA table_info(transcripts)")}
        if "audio_path" not in columns:
            conn.execute("ALTER TABLE transcripts ADD COLUMN audio_path TEXT")

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # ------------------------------------------------------------------
    # Transcripts
    # ------------------------------------------------------------------

    def save_transcript(
        self, text: str, duration: float, audio_path: Optional[str] = None
    ) -> TranscriptRecord:
        wpm = words_per_minute(text, duration)
        created_at = datetime.now().isoformat()
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute(
                "INSERT INTO transcripts (text, duration, wpm, audio_path, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (text, duration, wpm, audio_path, created_at),
            )
            conn.commit()
            transcript_id = cursor.lastrowid
        return TranscriptRecord(
            id=transcript_id,
            text=text,
            duration=duration,
            wpm=wpm,
            audio_path=audio_path,
            created_at=created_at,
        )

    def get_transcript(self, transcript_id: int) -> Optional[TranscriptRecord]:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM transcripts WHERE id = ?", (transcript_id,)
            ).fetchone()
        return _record_from_row(row) if row else None

    def get_transcripts(self, limit: int = 50, offset: int = 0) -> list[TranscriptRecord]:
        with self._lock:
            rows = self._get_conn().execute(
                "SELECT * FROM transcripts ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
        return [_record_from_row(row) for row in rows]

    def iter_transcripts(self, batch_size: int = 200) -> Iterator[TranscriptRecord]:
        offset = 0
        while True:
            batch = self.get_transcripts(limit=batch_size, offset=offset)
            if not batch:
                return
            yield from batch
            offset += len(batch)

    def delete_transcript(self, transcript_id: int) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute("DELETE FROM transcripts WHERE id = ?", (transcript_id,))
            conn.commit()

    def get_stats(self) -> TranscriptStats:
        with self._lock:
            conn = self._get_conn()
            row = conn.execute(
                "SELECT COUNT(*) AS count, SUM(duration) AS total_duration, "
                "AVG(wpm) AS avg_wpm FROM transcripts"
            ).fetchone()
            texts = conn.execute("SELECT text FROM transcripts").fetchall()
        return TranscriptStats(
            count=row["count"],
            total_duration=row["total_duration"] or 0.0,
            avg_wpm=round(row["avg_wpm"] or 0),
            total_words=sum(count_words(t["text"]) for t in texts),
        )

    def export_metadata(self, recordings_dir: Path) -> Path:
        """Write ``metadata.csv`` (audio_file, transcript) for archived recordings."""
        recordings_dir.mkdir(parents=True, exist_ok=True)
        csv_path = recordings_dir / "metadata.csv"
        written = 0
        with csv_path.open("w", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            writer.writerow(["audio_file", "transcript"])
            for record in self.iter_transcripts():
                if record.audio_path and Path(record.audio_path).exists():
                    writer.writerow([Path(record.audio_path).name, record.text])
                    written += 1
        logger.info("exported %d rows to %s", written, csv_path)
        return csv_path

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_setting(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT value FROM settings WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set_setting(self, key: str, value: str) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, value)
            )
            conn.commit()

    def get_flag(self, key: str, default: bool = False) -> bool:
        value = self.get_setting(key)
        if value is None:
            return default
        return value.strip().lower() == "true"

    def set_flag(self, key: str, value: bool) -> None:
        self.set_setting(key, "true" if value else "false")
