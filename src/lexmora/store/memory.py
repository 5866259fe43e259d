from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable

from ..models.word import WordRecord
from ..stats import last_activity


def _copy(record: WordRecord) -> WordRecord:
    return replace(record, meanings=list(record.meanings))


class InMemoryWordBackend:
    """Process-local backend; each instance is an isolated store.

    Insertion order of the dict doubles as the due-queue tie breaker, and
    updates keep a word's original position.
    """

    def __init__(self) -> None:
        self._records: dict[str, WordRecord] = {}
        self._lock = threading.Lock()

    def open(self) -> None:
        return None

    def close(self) -> None:
        return None

    def get(self, word: str) -> WordRecord | None:
        with self._lock:
            record = self._records.get(word)
            return _copy(record) if record is not None else None

    def insert_if_absent(self, record: WordRecord) -> bool:
        with self._lock:
            if record.word in self._records:
                return False
            self._records[record.word] = _copy(record)
            return True

    def update(self, word: str, mutate: Callable[[WordRecord], WordRecord]) -> WordRecord | None:
        with self._lock:
            current = self._records.get(word)
            if current is None:
                return None
            updated = mutate(_copy(current))
            self._records[word] = _copy(updated)
            return updated

    def delete(self, word: str) -> bool:
        with self._lock:
            return self._records.pop(word, None) is not None

    def clear(self) -> int:
        with self._lock:
            removed = len(self._records)
            self._records.clear()
            return removed

    def due(self, now: datetime, limit: int | None = None) -> list[WordRecord]:
        with self._lock:
            # sorted() is stable, so equal timestamps keep insertion order
            items = sorted(
                (r for r in self._records.values() if r.next_review_at <= now),
                key=lambda r: r.next_review_at,
            )
            if limit is not None:
                items = items[:limit]
            return [_copy(r) for r in items]

    def summary(self) -> tuple[int, int, list[datetime]]:
        with self._lock:
            records = list(self._records.values())
        mastered = sum(1 for r in records if r.is_mastered)
        return len(records), mastered, [last_activity(r.captured_at, r.mastered_at) for r in records]
