from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator

from ..errors import StorageError
from ..models.word import WordMeaning, WordRecord, from_iso, to_iso
from ..stats import last_activity

SCHEMA_VERSION = 2

_COLUMNS = (
    "word",
    "captured_at",
    "source_url",
    "meanings",
    "ease_factor",
    "interval_days",
    "repetitions",
    "lapses",
    "next_review_at",
    "is_mastered",
    "mastered_at",
)


def _dump_meanings(meanings: list[WordMeaning]) -> str:
    return json.dumps([m.to_dict() for m in meanings], ensure_ascii=False)


def _load_meanings(raw: str | None) -> list[WordMeaning]:
    try:
        parsed = json.loads(raw) if raw else []
    except json.JSONDecodeError as exc:
        raise StorageError(f"corrupt meanings payload: {raw[:80]!r}") from exc
    if not isinstance(parsed, list):
        return []
    return [WordMeaning.from_dict(item) for item in parsed if isinstance(item, dict)]


def _record_to_row(record: WordRecord) -> tuple[Any, ...]:
    return (
        record.word,
        to_iso(record.captured_at),
        record.source_url,
        _dump_meanings(record.meanings),
        float(record.ease_factor),
        int(record.interval_days),
        int(record.repetitions),
        int(record.lapses),
        to_iso(record.next_review_at),
        1 if record.is_mastered else 0,
        to_iso(record.mastered_at) if record.mastered_at is not None else None,
    )


def _row_to_record(row: sqlite3.Row) -> WordRecord:
    return WordRecord(
        word=row["word"],
        captured_at=from_iso(row["captured_at"]),
        source_url=row["source_url"] or "",
        meanings=_load_meanings(row["meanings"]),
        ease_factor=float(row["ease_factor"]),
        interval_days=int(row["interval_days"]),
        repetitions=int(row["repetitions"]),
        lapses=int(row["lapses"]),
        next_review_at=from_iso(row["next_review_at"]),
        is_mastered=bool(row["is_mastered"]),
        mastered_at=from_iso(row["mastered_at"]) if row["mastered_at"] else None,
    )


class SQLiteWordBackend:
    """SQLite-backed word store.

    - one connection per backend, opened by :meth:`open` and shared by worker
      threads behind a lock
    - read-modify-write runs inside ``BEGIN IMMEDIATE`` so other processes
      sharing the file cannot interleave a write on the same row
    - timestamps are fixed-width UTC ISO strings; ``next_review_at`` is indexed
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    # --- lifecycle ---
    def open(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            conn: sqlite3.Connection | None = None
            try:
                self._ensure_dirs()
                conn = sqlite3.connect(
                    self.db_path, timeout=10.0, isolation_level=None, check_same_thread=False
                )
                conn.row_factory = sqlite3.Row
                if self.db_path != ":memory:":
                    conn.execute("PRAGMA journal_mode=WAL;")
                self._migrate(conn)
            except (sqlite3.Error, ValueError) as exc:
                # 開きかけの接続を残さない（再試行のたびにハンドルが漏れる）
                if conn is not None:
                    conn.close()
                raise StorageError(f"failed to open word database {self.db_path}: {exc}") from exc
            self._conn = conn

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.close()
            except sqlite3.Error as exc:
                raise StorageError(f"failed to close word database: {exc}") from exc
            finally:
                self._conn = None

    def _ensure_dirs(self) -> None:
        if self.db_path == ":memory:":
            return
        p = Path(self.db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)

    def _migrate(self, conn: sqlite3.Connection) -> None:
        version = int(conn.execute("PRAGMA user_version;").fetchone()[0])
        if version >= SCHEMA_VERSION:
            return
        conn.execute("BEGIN IMMEDIATE;")
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS words (
                    word TEXT PRIMARY KEY,
                    captured_at TEXT NOT NULL,
                    source_url TEXT NOT NULL DEFAULT '',
                    meanings TEXT NOT NULL DEFAULT '[]',
                    ease_factor REAL NOT NULL DEFAULT 2.5,
                    interval_days INTEGER NOT NULL DEFAULT 0,
                    repetitions INTEGER NOT NULL DEFAULT 0,
                    lapses INTEGER NOT NULL DEFAULT 0,
                    next_review_at TEXT NOT NULL,
                    is_mastered INTEGER NOT NULL DEFAULT 0,
                    mastered_at TEXT
                );
                """
            )
            cols = {row["name"] for row in conn.execute("PRAGMA table_info(words);").fetchall()}
            if "meanings" not in cols:
                conn.execute("ALTER TABLE words ADD COLUMN meanings TEXT NOT NULL DEFAULT '[]';")
            if "meaning" in cols:
                # v1 は自由記述の meaning 1 本だけを持っていた。品詞不明の 1 件として移す
                legacy = conn.execute(
                    "SELECT word, meaning FROM words WHERE meaning IS NOT NULL AND TRIM(meaning) != '' "
                    "AND (meanings IS NULL OR meanings = '[]');"
                ).fetchall()
                for row in legacy:
                    payload = [WordMeaning(part_of_speech="unknown", definition=row["meaning"])]
                    conn.execute(
                        "UPDATE words SET meanings = ? WHERE word = ?;",
                        (_dump_meanings(payload), row["word"]),
                    )
                # v1 の時刻は桁数が揃っていないことがある。辞書順比較のため固定幅に直す
                stamps = conn.execute(
                    "SELECT word, captured_at, next_review_at, mastered_at FROM words;"
                ).fetchall()
                for row in stamps:
                    conn.execute(
                        "UPDATE words SET captured_at = ?, next_review_at = ?, mastered_at = ? WHERE word = ?;",
                        (
                            to_iso(from_iso(row["captured_at"])),
                            to_iso(from_iso(row["next_review_at"])),
                            to_iso(from_iso(row["mastered_at"])) if row["mastered_at"] else None,
                            row["word"],
                        ),
                    )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_words_next_review_at ON words(next_review_at);")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_words_is_mastered ON words(is_mastered);")
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
            conn.execute("COMMIT;")
        except (sqlite3.Error, ValueError):
            if conn.in_transaction:
                conn.execute("ROLLBACK;")
            raise

    @contextmanager
    def _session(self, *, write: bool = False) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self._conn
            if conn is None:
                raise StorageError("word database is not open")
            try:
                if write:
                    conn.execute("BEGIN IMMEDIATE;")
                try:
                    yield conn
                except BaseException:
                    if write and conn.in_transaction:
                        conn.execute("ROLLBACK;")
                    raise
                if write:
                    conn.execute("COMMIT;")
            except sqlite3.Error as exc:
                raise StorageError(f"sqlite operation failed: {exc}") from exc

    # --- key-value API ---
    def get(self, word: str) -> WordRecord | None:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM words WHERE word = ?;", (word,)).fetchone()
            return _row_to_record(row) if row is not None else None

    def insert_if_absent(self, record: WordRecord) -> bool:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._session(write=True) as conn:
            cur = conn.execute(
                f"INSERT OR IGNORE INTO words({', '.join(_COLUMNS)}) VALUES ({placeholders});",
                _record_to_row(record),
            )
            return cur.rowcount > 0

    def update(self, word: str, mutate: Callable[[WordRecord], WordRecord]) -> WordRecord | None:
        # UPDATE (not INSERT OR REPLACE) keeps the rowid, i.e. the queue tie-break position
        assignments = ", ".join(f"{col} = ?" for col in _COLUMNS[1:])
        with self._session(write=True) as conn:
            row = conn.execute("SELECT * FROM words WHERE word = ?;", (word,)).fetchone()
            if row is None:
                return None
            updated = mutate(_row_to_record(row))
            values = _record_to_row(updated)
            conn.execute(
                f"UPDATE words SET {assignments} WHERE word = ?;",
                (*values[1:], word),
            )
            return updated

    def delete(self, word: str) -> bool:
        with self._session(write=True) as conn:
            cur = conn.execute("DELETE FROM words WHERE word = ?;", (word,))
            return cur.rowcount > 0

    def clear(self) -> int:
        with self._session(write=True) as conn:
            cur = conn.execute("DELETE FROM words;")
            return cur.rowcount

    # --- queries ---
    def due(self, now: datetime, limit: int | None = None) -> list[WordRecord]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT * FROM words WHERE next_review_at <= ? "
                "ORDER BY next_review_at ASC, rowid ASC LIMIT ?;",
                (to_iso(now), -1 if limit is None else limit),
            ).fetchall()
            return [_row_to_record(row) for row in rows]

    def summary(self) -> tuple[int, int, list[datetime]]:
        # 件数とアクティビティを同じ走査から数え、reviewed_today > total を起こさない
        with self._session() as conn:
            rows = conn.execute("SELECT captured_at, mastered_at, is_mastered FROM words;").fetchall()
        activity = [
            last_activity(
                from_iso(row["captured_at"]),
                from_iso(row["mastered_at"]) if row["mastered_at"] else None,
            )
            for row in rows
        ]
        return len(rows), sum(1 for row in rows if row["is_mastered"]), activity
