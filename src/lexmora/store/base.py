from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol

from ..models.word import WordRecord


class WordBackend(Protocol):
    """Synchronous key-value engine behind :class:`WordStore`.

    ストアはこのプロトコル越しにのみ永続化層へ触れる。各メソッドはワーカー
    スレッドから呼ばれるため、実装側でスレッド安全性を保証すること。
    I/O 失敗は :class:`~lexmora.errors.StorageError` として送出する。
    """

    def open(self) -> None: ...

    def close(self) -> None: ...

    def get(self, word: str) -> WordRecord | None: ...

    def insert_if_absent(self, record: WordRecord) -> bool:
        """Insert ``record`` unless its key exists; True when inserted."""
        ...

    def update(self, word: str, mutate: Callable[[WordRecord], WordRecord]) -> WordRecord | None:
        """Read, mutate and write one record as a single atomic unit.

        Returns the stored result, or None when ``word`` has no record.
        """
        ...

    def delete(self, word: str) -> bool: ...

    def clear(self) -> int: ...

    def due(self, now: datetime, limit: int | None = None) -> list[WordRecord]:
        """Records with ``next_review_at <= now``, earliest first, ties by insertion order."""
        ...

    def summary(self) -> tuple[int, int, list[datetime]]:
        """Return ``(total_words, mastered_words, activity)`` from one consistent read.

        ``activity`` holds one last-activity timestamp per record.
        """
        ...
