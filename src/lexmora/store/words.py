from __future__ import annotations

from datetime import UTC, datetime, tzinfo
from functools import partial
from typing import Any, Callable, TypeVar

import anyio

from ..errors import NotFoundError, StorageError
from ..logging import logger
from ..models.word import WordMeaning, WordRecord, normalize_word, utcnow
from ..scheduler import ReviewResponse, apply_review, clamp_quality
from ..stats import ReviewMetrics, build_metrics
from .base import WordBackend
from .locks import KeyedLock

T = TypeVar("T")


class WordStore:
    """Async facade over a :class:`WordBackend`.

    - backend I/O runs in worker threads (``anyio.to_thread``); the event loop
      only suspends while storage is busy
    - mutations on the same normalized word are serialized with a per-key lock;
      different words proceed concurrently
    - the store owns its backend: call :meth:`open`/:meth:`close` or use
      ``async with``
    """

    def __init__(
        self,
        backend: WordBackend,
        *,
        clock: Callable[[], datetime] = utcnow,
        tz: tzinfo = UTC,
    ) -> None:
        self.backend = backend
        self.tz = tz
        self._clock = clock
        self._key_locks = KeyedLock()

    @classmethod
    def from_settings(cls, settings: Any) -> "WordStore":
        """Build the SQLite-backed store described by application settings."""

        from .sqlite import SQLiteWordBackend

        return cls(SQLiteWordBackend(settings.lexmora_db_path), tz=settings.tzinfo)

    # --- lifecycle ---
    async def open(self) -> None:
        await self._run(self.backend.open)

    async def close(self) -> None:
        await self._run(self.backend.close)

    async def __aenter__(self) -> "WordStore":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def now(self) -> datetime:
        return self._clock()

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        # anyio.to_thread.run_sync はキーワード引数を転送しないため partial で包む
        try:
            return await anyio.to_thread.run_sync(partial(func, *args))
        except StorageError as exc:
            logger.error("storage_error", operation=getattr(func, "__name__", repr(func)), error=str(exc))
            raise

    # --- operations ---
    async def get(self, word: str) -> WordRecord | None:
        key = normalize_word(word)
        if not key:
            return None
        return await self._run(self.backend.get, key)

    async def capture(
        self,
        word: str,
        source_url: str = "",
        meanings: list[WordMeaning] | None = None,
    ) -> WordRecord | None:
        """Create a record for ``word`` unless one exists.

        Returns the new record, or None when nothing was written (blank text
        or an already captured word, whose scheduling state is left as is).
        """
        key = normalize_word(word)
        if not key:
            logger.info("word_capture_skipped", reason="blank")
            return None
        async with self._key_locks.hold(key):
            record = WordRecord.new(key, source_url, meanings, now=self.now())
            created = await self._run(self.backend.insert_if_absent, record)
        if not created:
            logger.info("word_capture_skipped", word=key, reason="exists")
            return None
        logger.info("word_captured", word=key, source_url=record.source_url, meanings=len(record.meanings))
        return record

    async def forget(self, word: str) -> bool:
        key = normalize_word(word)
        if not key:
            return False
        async with self._key_locks.hold(key):
            removed = await self._run(self.backend.delete, key)
        if removed:
            logger.info("word_forgotten", word=key)
        return removed

    async def clear_all(self) -> int:
        removed = await self._run(self.backend.clear)
        logger.warning("words_cleared", removed=removed)
        return removed

    async def apply_response(self, word: str, quality: float | ReviewResponse) -> WordRecord:
        """Apply one review response and persist the next schedule.

        Raises:
            NotFoundError: ``word`` was never captured (nothing is created).
            StorageError: the backend failed to read or write.
        """
        key = normalize_word(word)
        q = clamp_quality(quality)
        now = self.now()
        updated = None
        if key:
            async with self._key_locks.hold(key):
                updated = await self._run(
                    self.backend.update, key, partial(apply_review, quality=q, now=now)
                )
        if updated is None:
            logger.warning("review_target_missing", word=key or word)
            raise NotFoundError(word)
        logger.info(
            "review_applied",
            word=key,
            quality=q,
            repetitions=updated.repetitions,
            interval_days=updated.interval_days,
            ease_factor=round(updated.ease_factor, 4),
            lapses=updated.lapses,
        )
        if updated.mastered_at == now:
            logger.info("word_mastered", word=key, repetitions=updated.repetitions)
        return updated

    async def due_queue(self, limit: int | None = None) -> list[WordRecord]:
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")
        return await self._run(self.backend.due, self.now(), limit)

    async def metrics(self) -> ReviewMetrics:
        total, mastered, activity = await self._run(self.backend.summary)
        return build_metrics(total, mastered, activity, now=self.now(), tz=self.tz)
